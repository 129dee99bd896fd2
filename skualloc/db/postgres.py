"""
PostgreSQL database connection and session management.
"""

import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, declarative_base, Session

from skualloc.config import Config

logger = logging.getLogger(__name__)

# SQLAlchemy base for models
Base = declarative_base()

# Engine singleton
_engine = None
_SessionLocal = None


def get_engine():
    """Get or create the SQLAlchemy engine."""
    global _engine
    if _engine is None:
        _engine = create_engine(
            Config.get_database_url(),
            echo=False,  # Set True for SQL debugging
            pool_pre_ping=True,
        )
    return _engine


def get_session() -> Session:
    """Create a new database session."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _SessionLocal()


def get_db():
    """Dependency to get database session."""
    db = get_session()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session):
    """Commit the unit of work on success, roll it back on any failure."""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def init_db(engine=None):
    """Initialize database tables."""
    from skualloc import models  # noqa: F401  registers the mappers
    engine = engine or get_engine()
    Base.metadata.create_all(engine)
    logger.info("Database tables created")


def test_connection():
    """Test the database connection."""
    try:
        engine = get_engine()
        with engine.connect() as conn:
            result = conn.execute(text("SELECT 1"))
            result.fetchone()
        return True, "Connected to database"
    except Exception as e:
        return False, str(e)
