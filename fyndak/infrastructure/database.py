"""
Database Connection
"""
import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from fyndak.core.config import Settings
from fyndak.core.errors import FyndakError, UpstreamFailure

logger = logging.getLogger(__name__)


def build_engine(settings: Settings) -> Engine:
    """
    Create the engine for the configured store

    SQLite (used for tests and local runs) cannot take the pool sizing
    options; an in-memory SQLite database is pinned to one connection so
    every session sees the same data.
    """
    url = settings.DATABASE_URL

    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=settings.DB_ECHO, **kwargs)

    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        echo=settings.DB_ECHO,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    """Create session factory bound to engine"""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine):
    """Initialize database tables"""
    from fyndak.models import Base
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")


def check_database(engine: Engine) -> bool:
    """Test database connection"""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False


@contextmanager
def store_operation(db: Session, failure_message: str):
    """
    Run store calls as one operation

    Service errors roll back and propagate unchanged; store errors roll
    back and surface as a single UpstreamFailure carrying failure_message.
    """
    try:
        yield
    except FyndakError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(failure_message, exc_info=True)
        raise UpstreamFailure(failure_message) from e
