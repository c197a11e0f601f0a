from fastapi import Depends, HTTPException, status, Request
from sqlalchemy.orm import Session
from passlib.context import CryptContext
from typing import Optional
import logging

from database import get_db
from models import User
from policy import Action, Caller, Decision, Facts, evaluate
import config
import sessions

logger = logging.getLogger(__name__)

# ------------------------------------------------------------------
# PASSWORD HASHING CONFIGURATION
# ------------------------------------------------------------------

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=config.BCRYPT_ROUNDS,
)


def hash_password(password: str) -> str:
    """
    Hash a plain text password using bcrypt.
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain text password against a hashed password.
    """
    return pwd_context.verify(plain_password, hashed_password)


# ------------------------------------------------------------------
# AUTHENTICATION UTILITIES
# ------------------------------------------------------------------

def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    """
    Verify email and password.
    Returns the user on success, None otherwise.
    """
    user = db.query(User).filter(User.email == email.strip().lower()).first()

    if not user:
        return None

    if not verify_password(password, user.password):
        return None

    return user


def login_user(db: Session, email: str, password: str):
    """
    Login logic.
    Returns (session_token, user) on success.
    """
    user = authenticate_user(db, email, password)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    session_token = sessions.create_session(db, user.id)
    return session_token, user


def logout_user(db: Session, session_token: Optional[str]):
    """
    Logout user by deleting session.
    """
    if session_token and sessions.delete_session(db, session_token):
        return {"message": "Logout successful"}
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Session not found"
    )


# ------------------------------------------------------------------
# SESSION-BASED AUTH GUARD
# ------------------------------------------------------------------

def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Dependency to get current authenticated user from session.
    Use this to protect routes that require authentication.
    """
    session_row = sessions.verify_session(request, db)

    # Get user from database to ensure it still exists
    user = db.query(User).filter(User.id == session_row.user_id).first()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    return user


def get_optional_user(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    """
    Like get_current_user, but anonymous requests (no token at all) yield None.
    A token that is present but invalid is still rejected.
    """
    if not sessions.get_session_token(request):
        return None
    return get_current_user(request, db)


# ------------------------------------------------------------------
# PERMISSION CHECKING UTILITIES
# ------------------------------------------------------------------

def caller_for(user: User) -> Caller:
    return Caller(id=user.id, role=user.role)


def authorize(user: User, action: Action, facts: Optional[Facts] = None) -> Decision:
    """
    Ask the permission evaluator and raise 403 with its reason on denial.
    Returns the decision so callers can read its capabilities.
    """
    decision = evaluate(caller_for(user), action, facts)
    if not decision.allowed:
        logger.warning(f"Denied {action.value} for user {user.id}: {decision.reason}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=decision.reason
        )
    return decision
