"""Database connection, session management and storage health"""
from sqlalchemy import create_engine, text
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool
from contextlib import contextmanager
from typing import Generator
import logging

from storefront.errors import Unavailable

logger = logging.getLogger(__name__)

Base = declarative_base()

engine = None
SessionLocal = None


def init_database(database_url: str, pool_size: int = 5, max_overflow: int = 10):
    """Initialize database connection"""
    global engine, SessionLocal

    logger.info("Initializing database connection")

    if database_url.startswith("sqlite"):
        # Single shared connection so in-memory databases survive across sessions
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False
        )
    else:
        engine = create_engine(
            database_url,
            pool_pre_ping=True,
            pool_size=pool_size,
            max_overflow=max_overflow,
            echo=False
        )

    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    logger.info("Database connection initialized")

    return engine


def create_tables():
    """Create all tables"""
    # Register every model on Base.metadata
    import storefront.models  # noqa: F401

    logger.info("Creating database tables")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")


def get_db() -> Generator[Session, None, None]:
    """Dependency for getting database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


class StorageHealth:
    """Reports whether the storage backend is reachable"""

    def __init__(self, bind=None):
        self._bind = bind

    def check(self) -> bool:
        bind = self._bind if self._bind is not None else engine
        if bind is None:
            return False
        try:
            with bind.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except DBAPIError as e:
            logger.error(f"Storage health check failed: {e}")
            return False

    def ensure_available(self):
        """Raise Unavailable when the storage backend cannot be reached"""
        if not self.check():
            raise Unavailable("Database not connected. Please try again later.")


def get_storage_health() -> StorageHealth:
    """Dependency for storage health"""
    return StorageHealth()


@contextmanager
def transaction(db: Session):
    """Commit on success, roll back on error; storage failures surface as Unavailable"""
    try:
        yield db
        db.commit()
    except (OperationalError, InterfaceError) as e:
        db.rollback()
        logger.error(f"Storage failure, transaction rolled back: {e}")
        raise Unavailable("Database not connected. Please try again later.") from e
    except Exception:
        db.rollback()
        raise
