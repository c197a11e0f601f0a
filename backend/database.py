from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
import config

# ------------------------------------------------------------------
# Database configuration
# ------------------------------------------------------------------

# Use config for database URL
DATABASE_URL = config.DATABASE_URL

_is_sqlite = DATABASE_URL.startswith("sqlite")

# Create SQLAlchemy engine
engine = create_engine(
    DATABASE_URL,
    # Required for SQLite with FastAPI (requests run in a threadpool)
    connect_args={"check_same_thread": False} if _is_sqlite else {},
)

if _is_sqlite:
    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

# Create a configured "Session" class
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

# Base class for ORM models
Base = declarative_base()

# ------------------------------------------------------------------
# Dependency to get DB session
# ------------------------------------------------------------------

def get_db():
    """
    Provides a database session to FastAPI routes.
    Ensures session is properly closed after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
