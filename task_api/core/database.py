import logging
import time
from typing import Generator
from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool

from .config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def build_engine(database_url: str):
    """Create a SQLAlchemy engine with pool settings suited to the backend"""
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every session gets an empty database
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, echo=settings.debug, **kwargs)

    return create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
        pool_recycle=300,
        echo=settings.debug
    )


engine = build_engine(settings.database_url)

# Session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

# Base class for models
Base = declarative_base()


# Pool activity, logged for troubleshooting connection issues
@event.listens_for(engine, "connect")
def receive_connect(dbapi_connection, connection_record):
    """Enable foreign keys on sqlite connections"""
    logger.info(f"Opened connection to {engine.url.get_backend_name()} database")
    if settings.database_url.startswith("sqlite"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@event.listens_for(engine, "checkout")
def receive_checkout(dbapi_connection, connection_record, connection_proxy):
    logger.debug("Connection checked out")


def get_db() -> Generator[Session, None, None]:
    """
    Request-scoped session, closed when the response is sent

    Yields:
        Session: Database session
    """
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Rolling back session after error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


def init_db() -> bool:
    """
    Create every table the models define

    Returns:
        bool: True if successful, False otherwise
    """
    try:
        # Registers the tables on Base.metadata
        from .. import models  # noqa: F401

        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully")
        return True
    except Exception as e:
        logger.error(f"Could not create tables: {e}")
        return False


def create_tables_with_retry(max_retries: int = 10, delay: int = 5) -> bool:
    """Create database tables, waiting for the database to come up"""
    from .. import models  # noqa: F401

    for attempt in range(max_retries):
        try:
            logger.info(f"Creating tables (attempt {attempt + 1}/{max_retries})")
            Base.metadata.create_all(bind=engine)
            logger.info("Database tables created successfully")
            return True
        except OperationalError as e:
            logger.warning(f"Database not reachable yet: {e}")
            if attempt < max_retries - 1:
                logger.info(f"Retrying in {delay} seconds...")
                time.sleep(delay)
            else:
                logger.error("Failed to connect to database after all retries")
                raise
    return False


def check_db_connection() -> bool:
    """
    Run a trivial query to see whether the database answers

    Returns:
        bool: True if connected, False otherwise
    """
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        logger.debug("Database connection check successful")
        return True
    except Exception as e:
        logger.error(f"Database ping failed: {e}")
        return False
