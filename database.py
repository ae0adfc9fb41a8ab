"""
Database configuration and session management.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from config import settings


def build_engine(database_url: str) -> Engine:
    """
    Create the engine for the configured backend.

    SQLite (used for local runs and tests) shares one connection across
    threads; MySQL gets the pooled, timeout-bounded setup.
    """
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    return create_engine(
        database_url,
        echo=False,
        pool_pre_ping=True,
        pool_recycle=3600,
        pool_size=10,
        max_overflow=20,
        connect_args={
            "connect_timeout": 10,
            "read_timeout": 30,
            "write_timeout": 30
        }
    )


engine = build_engine(settings.DATABASE_URL)

# Create session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

# Base class for SQLAlchemy models
Base = declarative_base()


def init_db() -> None:
    """Create the countries table if it does not exist yet."""
    Base.metadata.create_all(bind=engine)


# Dependency to get database session
def get_db():
    """
    Database session dependency for FastAPI.
    Yields a session and closes it after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
