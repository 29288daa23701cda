"""
PropGuard Infrastructure Layer

- Configuration management with environment-based settings
- Structured logging with correlation tracking
- Execution context for store operations
- Key/value document stores (in-memory and SQLAlchemy)
"""

from .common.context import ExecutionContext, get_current_execution_context, with_execution_context
from .config.settings import AppSettings, get_settings, reload_settings
from .logging.structured_logger import configure_logging, get_logger
from .persistence.document_store import DocumentStore, InMemoryDocumentStore, SqlAlchemyDocumentStore
