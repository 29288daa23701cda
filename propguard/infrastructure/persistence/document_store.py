"""
Key/value document stores backing the account store.

A document is a JSON text owned by the caller; the stores never look
inside it. Every backend failure surfaces as PersistenceError.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Optional

import structlog
from sqlalchemy import DateTime, String, Text, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from ...shared.exceptions.base import PersistenceError
from ..config.settings import get_settings

logger = structlog.get_logger(__name__)


class DocumentStore(ABC):
    """Abstract key/value document storage."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the document under `key`, or None when absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Create or replace the document under `key`."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the document under `key`; a missing key is not an error."""


class InMemoryDocumentStore(DocumentStore):
    """Process-local store, mainly for tests and ephemeral sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._documents: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._documents.get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise PersistenceError(f"Document must be text, got {type(value).__name__}", key=key)
        self._documents[key] = value

    def delete(self, key: str) -> None:
        self._documents.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._documents)


class Base(DeclarativeBase):
    pass


class DocumentModel(Base):
    """One stored document."""

    __tablename__ = "documents"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


def create_document_engine(database_url: str) -> Engine:
    """Create an engine; in-memory sqlite shares one connection across sessions."""
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, pool_pre_ping=True)


class SqlAlchemyDocumentStore(DocumentStore):
    """Document store on a single SQL table, one row per key."""

    def __init__(self, database_url: Optional[str] = None, engine: Optional[Engine] = None):
        if engine is None:
            if database_url is None:
                database_url = get_settings().persistence.database_url
            engine = create_document_engine(database_url)

        self.engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)

        try:
            Base.metadata.create_all(engine)
        except SQLAlchemyError as e:
            logger.error("Failed to initialize document table", error=str(e))
            raise PersistenceError(f"Document store initialization failed: {e}") from e

        logger.info("SQL document store initialized", dialect=engine.dialect.name)

    def get(self, key: str) -> Optional[str]:
        try:
            with self._session_factory() as session:
                model = session.get(DocumentModel, key)
                return model.body if model is not None else None
        except SQLAlchemyError as e:
            logger.error("Failed to read document", key=key, error=str(e))
            raise PersistenceError(f"Failed to read document: {e}", key=key) from e

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise PersistenceError(f"Document must be text, got {type(value).__name__}", key=key)
        try:
            with self._session_factory.begin() as session:
                model = session.get(DocumentModel, key)
                if model is None:
                    model = DocumentModel(key=key)
                    session.add(model)
                model.body = value
                model.updated_at = datetime.now(timezone.utc)
        except SQLAlchemyError as e:
            logger.error("Failed to write document", key=key, error=str(e))
            raise PersistenceError(f"Failed to write document: {e}", key=key) from e

    def delete(self, key: str) -> None:
        try:
            with self._session_factory.begin() as session:
                model = session.get(DocumentModel, key)
                if model is not None:
                    session.delete(model)
        except SQLAlchemyError as e:
            logger.error("Failed to delete document", key=key, error=str(e))
            raise PersistenceError(f"Failed to delete document: {e}", key=key) from e

    def dispose(self) -> None:
        """Release pooled connections."""
        self.engine.dispose()
