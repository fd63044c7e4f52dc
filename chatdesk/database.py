"""Conversation store: the persistence client shared by request handlers.

The store is constructed explicitly at process start and injected into
handlers through ``app.state``; there is no module-level engine.
"""
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from chatdesk.core.errors import PersistenceError

logger = logging.getLogger(__name__)


class ConversationStore:
    """
    Lazily connected engine wrapper with an explicit lifecycle.

    init()        create the engine and tables
    session()     yield a Session
    health_check() run a trivial query
    invalidate()  drop the engine so the next call reconnects fresh
    close()       dispose at shutdown
    """

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        self.echo = echo
        self._engine: Optional[Engine] = None

    def _create_engine(self) -> Engine:
        kwargs = {"echo": self.echo}
        if self.database_url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if self.database_url in ("sqlite://", "sqlite:///:memory:"):
                # One shared connection, otherwise every checkout is a new empty db
                kwargs["poolclass"] = StaticPool
        return create_engine(self.database_url, **kwargs)

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = self._create_engine()
            logger.info(f"Database engine created for {self._engine.url.render_as_string(hide_password=True)}")
        return self._engine

    def init(self) -> None:
        """Create tables for all registered models."""
        from chatdesk.models import conversation  # noqa: F401 - register tables

        try:
            SQLModel.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            self.invalidate()
            raise PersistenceError(f"Database init failed: {e}") from e

    @contextmanager
    def session(self) -> Iterator[Session]:
        """
        Yield a database session.

        Callers that catch a SQLAlchemy error call invalidate() so the next
        request opens a fresh connection.
        """
        with Session(self.engine) as session:
            yield session

    def health_check(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.warning(f"Database health check failed: {e}")
            self.invalidate()
            return False

    def invalidate(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def close(self) -> None:
        self.invalidate()
