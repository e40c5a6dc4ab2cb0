"""
SQLAlchemy engine and session management.

One ``Database`` per process wraps the engine and a session factory.
In-memory SQLite URLs share a single connection (``StaticPool``) so every
thread sees the same data.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def _is_memory_sqlite(url: str) -> bool:
    return url.startswith("sqlite") and (url in ("sqlite://", "sqlite:///") or ":memory:" in url)


def build_engine(url: str, echo: bool = False) -> Engine:
    if _is_memory_sqlite(url):
        return create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if url.startswith("sqlite"):
        return create_engine(url, echo=echo, connect_args={"check_same_thread": False})
    return create_engine(url, echo=echo, pool_pre_ping=True)


class Database:
    """Engine plus session factory."""

    def __init__(self, url: str, echo: bool = False) -> None:
        self.url = url
        self.engine = build_engine(url, echo=echo)
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def create_all(self) -> None:
        """Create missing tables (development and tests)."""
        from callscore.store import tables  # noqa: F401  registers models on Base

        Base.metadata.create_all(self.engine)
        logger.info("Database tables ensured | dialect=%s", self.dialect)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Transactional session: commits on success, rolls back on error."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def ping(self) -> None:
        """Round-trip a trivial query; raises on failure."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1")).scalar_one()

    def dispose(self) -> None:
        self.engine.dispose()
