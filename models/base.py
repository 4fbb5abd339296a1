"""
Database configuration and base model.

Uses SQLAlchemy 2.0 declarative style with SQLite.
"""

from pathlib import Path
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

import appdirs


def get_database_path() -> Path:
    """Get the path to the SQLite database file."""
    # Use appdirs for cross-platform data directory
    data_dir = Path(appdirs.user_data_dir("Bracketry", "Bracketry"))
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir / "bracketry.db"


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# Database engine
DATABASE_URL = f"sqlite:///{get_database_path()}"
engine = create_engine(
    DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},  # Allow multi-threaded access
)

# Session factory
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def create_session_factory(url: str, **engine_kwargs) -> sessionmaker:
    """
    Build an independent engine and session factory for ``url``.

    Tables are created on the new engine before the factory is returned.
    """
    if url.startswith("sqlite"):
        engine_kwargs.setdefault("connect_args", {"check_same_thread": False})
    other_engine: Engine = create_engine(url, echo=False, **engine_kwargs)
    Base.metadata.create_all(bind=other_engine)
    return sessionmaker(bind=other_engine, autocommit=False, autoflush=False)


@contextmanager
def get_session(
    factory: Optional[sessionmaker] = None,
) -> Generator[Session, None, None]:
    """Context manager for database sessions."""
    session = (factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    """Initialize the database, creating all tables."""
    Base.metadata.create_all(bind=engine)


def reset_db() -> None:
    """Drop and recreate all tables. USE WITH CAUTION."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
