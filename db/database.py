"""
Database connection and session management for Site Inspector.

Provides:
- Engine construction with connection pooling via SQLAlchemy
- Session factory with context manager support
- Database initialization and verification
- Configuration loading from environment variables

Engines and session factories are built explicitly and handed to the
repositories that need them; there is no module-level engine.
"""

import logging
import os
from contextlib import contextmanager
from typing import Generator

from dotenv import load_dotenv
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from config import ConfigurationError
from db.models import Base

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# ────────────────────────────────────────────────────────────────────────────────
# Configuration
# ────────────────────────────────────────────────────────────────────────────────

def get_database_url() -> str:
    """
    Build the database connection URL from environment variables.

    DATABASE_URL wins when set; otherwise a PostgreSQL URL is assembled
    from the DB_* variables.

    Returns:
        Connection string in SQLAlchemy format.

    Raises:
        ConfigurationError: If required environment variables are missing.
    """
    url = os.getenv("DATABASE_URL")
    if url:
        return url

    host = os.getenv("DB_HOST", "localhost")
    port = os.getenv("DB_PORT", "5432")
    name = os.getenv("DB_NAME", "site_inspector")
    user = os.getenv("DB_USER", "postgres")
    password = os.getenv("DB_PASSWORD")

    if not password:
        raise ConfigurationError(
            "DATABASE_URL or DB_PASSWORD environment variable is required. "
            "Please set it in your .env file."
        )

    return f"postgresql://{user}:{password}@{host}:{port}/{name}"


def get_pool_settings() -> dict:
    """
    Get connection pool settings from environment variables.

    Returns:
        Dictionary with pool configuration.
    """
    return {
        "pool_size": int(os.getenv("DB_POOL_SIZE", "5")),
        "max_overflow": int(os.getenv("DB_MAX_OVERFLOW", "10")),
        "pool_pre_ping": True,  # Verify connections before use
        "pool_recycle": 3600,   # Recycle connections after 1 hour
    }


# ────────────────────────────────────────────────────────────────────────────────
# Engine and Session Management
# ────────────────────────────────────────────────────────────────────────────────

def create_db_engine(database_url: str | None = None, echo: bool = False) -> Engine:
    """
    Create a SQLAlchemy engine.

    Args:
        database_url: Connection string. Defaults to get_database_url().
        echo: Log emitted SQL.

    Returns:
        Configured SQLAlchemy Engine instance.
    """
    database_url = database_url or get_database_url()

    if database_url.startswith("sqlite"):
        logger.info("Creating SQLite database engine...")
        return create_engine(database_url, echo=echo)

    pool_settings = get_pool_settings()
    logger.info("Creating database engine with connection pooling...")
    engine = create_engine(database_url, echo=echo, **pool_settings)
    logger.info(
        f"Engine created (pool_size={pool_settings['pool_size']}, "
        f"max_overflow={pool_settings['max_overflow']})"
    )
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """
    Create a session factory bound to an engine.

    Args:
        engine: Engine the sessions will use.

    Returns:
        Configured sessionmaker instance.
    """
    return sessionmaker(bind=engine, expire_on_commit=False)


@contextmanager
def session_scope(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Context manager for database sessions with automatic commit/rollback.

    Args:
        session_factory: Factory producing new sessions.

    Yields:
        SQLAlchemy Session instance.

    Example:
        with session_scope(factory) as session:
            photo = session.get(Photo, 1)
            photo.ai_processing_status = ProcessingStatus.DONE
        # Automatically commits on success, rolls back on exception
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error(f"Session rollback due to: {e}")
        raise
    finally:
        session.close()


# ────────────────────────────────────────────────────────────────────────────────
# Database Initialization
# ────────────────────────────────────────────────────────────────────────────────

def init_db(engine: Engine) -> bool:
    """
    Initialize database by creating all tables.

    Args:
        engine: Engine to create the tables on.

    Returns:
        True if successful, False otherwise.
    """
    try:
        logger.info("Creating database tables...")
        Base.metadata.create_all(engine)
        logger.info("Database tables created successfully!")
        return True
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        return False


def verify_connection(engine: Engine) -> bool:
    """
    Verify database connection is working.

    Args:
        engine: Engine to test.

    Returns:
        True if connection successful, False otherwise.
    """
    try:
        with engine.connect() as conn:
            result = conn.execute(text("SELECT 1"))
            result.fetchone()
        logger.info("Database connection verified successfully!")
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
