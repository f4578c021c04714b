"""Database connection and session management."""

from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from rab_ledger.config import settings
from rab_ledger.errors import Unavailable


def build_engine(database_url: str, echo: bool = False):
    """Create an engine for the given URL.

    In-memory SQLite shares a single connection (StaticPool); file-backed
    SQLite gets a regular pool so that concurrent requests use separate
    connections.
    """
    if database_url.startswith("sqlite"):
        if ":memory:" in database_url or database_url.rstrip("/") == "sqlite:":
            return create_engine(
                database_url,
                echo=echo,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": 15},
        )
    return create_engine(database_url, echo=echo, pool_pre_ping=True)


engine = build_engine(settings.database_url, settings.database_echo)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def commit_or_rollback(db: Session) -> None:
    """Commit the session, rolling back on failure.

    Lock timeouts and lost connections surface as Unavailable so callers can
    retry; everything else propagates unchanged.
    """
    try:
        db.commit()
    except (OperationalError, PoolTimeoutError) as e:
        db.rollback()
        raise Unavailable("Database temporarily unavailable, please retry") from e
    except Exception:
        db.rollback()
        raise


__all__ = [
    "build_engine",
    "engine",
    "SessionLocal",
    "get_db",
    "commit_or_rollback",
]
