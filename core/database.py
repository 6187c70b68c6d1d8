"""Database configuration and session management."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import NullPool

Base = declarative_base()


class Database:
    """Database connection manager."""

    def __init__(self, config: dict):
        """
        Initialize database connection.

        Args:
            config: Root configuration dict that may include:
                - database.url: Full SQLAlchemy URL (overrides other fields)
                - database.host/port/name/user/password: Connection pieces for PostgreSQL
                - database.echo: Enable SQL echo for debugging
        """
        self.config = config
        self._engine = None
        self._session_factory = None

    @property
    def url(self) -> str:
        db_config = self.config.get("database", {})
        conn_str = os.environ.get("DB_URL") or db_config.get("url")
        if conn_str:
            return conn_str
        host = os.environ.get("DB_HOST", db_config.get("host", "localhost"))
        port = os.environ.get("DB_PORT", db_config.get("port", 5432))
        name = os.environ.get("DB_NAME", db_config.get("name", "headline_sync"))
        user = os.environ.get("DB_USER", db_config.get("user", "postgres"))
        password = os.environ.get("DB_PASSWORD", db_config.get("password", ""))
        return f"postgresql://{user}:{password}@{host}:{port}/{name}"

    def get_engine(self):
        """Get or create SQLAlchemy engine."""
        if self._engine is None:
            db_config = self.config.get("database", {})
            conn_str = self.url

            engine_kwargs = {
                "pool_pre_ping": True,
                "echo": bool(db_config.get("echo", False)),
            }

            if conn_str.startswith("sqlite"):
                _ensure_sqlite_dir(conn_str)
                engine_kwargs["poolclass"] = NullPool
                engine_kwargs["connect_args"] = {"check_same_thread": False}
            else:
                engine_kwargs["pool_size"] = int(db_config.get("pool_size", 5))
                engine_kwargs["max_overflow"] = int(db_config.get("max_overflow", 10))

            self._engine = create_engine(conn_str, **engine_kwargs)

        return self._engine

    def get_session_factory(self):
        """Get or create session factory."""
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self.get_engine(),
                autocommit=False,
                autoflush=False,
                expire_on_commit=False,
            )
        return self._session_factory

    def get_session(self) -> Session:
        """Create a new database session."""
        return self.get_session_factory()()

    def create_tables(self):
        """Create all database tables."""
        # Register every model on Base.metadata before creating.
        from models import article, category, country, search  # noqa: F401

        Base.metadata.create_all(bind=self.get_engine())

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._session_factory = None


def _ensure_sqlite_dir(conn_str: str) -> None:
    prefix = "sqlite:///"
    if not conn_str.startswith(prefix):
        return
    location = conn_str[len(prefix):]
    if not location or location == ":memory:":
        return
    Path(location).parent.mkdir(parents=True, exist_ok=True)



def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
