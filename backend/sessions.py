"""
Session Management for Authentication

Login sessions are opaque random tokens stored in the auth_sessions table.
Every authenticated request slides the expiry window forward; a session that
has been idle longer than SESSION_TIMEOUT_MINUTES is deleted the next time it
is looked up (or by cleanup_expired_sessions).
"""

from fastapi import HTTPException, status, Request
from sqlalchemy.orm import Session
from typing import Optional
from datetime import timedelta
import secrets
import logging

from models import AuthSession, utcnow
import config

logger = logging.getLogger(__name__)


def _expiry_cutoff():
    return utcnow() - timedelta(minutes=config.SESSION_TIMEOUT_MINUTES)


def create_session(db: Session, user_id: int) -> str:
    """
    Create a new session for a user.
    Returns a session token.
    """
    session_token = secrets.token_urlsafe(config.SESSION_TOKEN_LENGTH)

    db.add(AuthSession(token=session_token, user_id=user_id))
    db.commit()

    logger.info(f"Session created for user ID {user_id}")
    return session_token


def get_session(db: Session, session_token: str) -> Optional[AuthSession]:
    """
    Retrieve a session by token.
    Returns None if the session doesn't exist or has expired.
    """
    session_row = db.query(AuthSession).filter(AuthSession.token == session_token).first()
    if not session_row:
        return None

    if session_row.last_active < _expiry_cutoff():
        db.delete(session_row)
        db.commit()
        logger.info(f"Session expired for user ID {session_row.user_id}")
        return None

    session_row.last_active = utcnow()
    db.commit()
    return session_row


def delete_session(db: Session, session_token: str) -> bool:
    """
    Delete a session (logout).
    Returns True if the session was found and deleted.
    """
    session_row = db.query(AuthSession).filter(AuthSession.token == session_token).first()
    if not session_row:
        return False

    user_id = session_row.user_id
    db.delete(session_row)
    db.commit()
    logger.info(f"Session deleted for user ID {user_id}")
    return True


def get_session_token(request: Request) -> Optional[str]:
    return request.headers.get(config.SESSION_HEADER)


def verify_session(request: Request, db: Session) -> AuthSession:
    """
    Resolve the request's session token.
    Raises 401 if the token is missing, unknown or expired.
    """
    session_token = get_session_token(request)

    if not session_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No session token provided"
        )

    session_row = get_session(db, session_token)

    if not session_row:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session"
        )

    return session_row


def cleanup_expired_sessions(db: Session) -> int:
    """
    Remove all expired sessions.
    Returns the number of sessions removed.
    """
    removed = (
        db.query(AuthSession)
        .filter(AuthSession.last_active < _expiry_cutoff())
        .delete(synchronize_session=False)
    )
    db.commit()

    if removed:
        logger.info(f"Cleaned up {removed} expired sessions")

    return removed


def get_active_sessions_count(db: Session) -> int:
    return db.query(AuthSession).filter(AuthSession.last_active >= _expiry_cutoff()).count()
