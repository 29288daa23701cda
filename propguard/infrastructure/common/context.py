"""Execution context for correlating the log lines of one store operation."""

import contextvars
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class ExecutionContext(BaseModel):
    """Execution context for operation tracking."""

    correlation_id: str
    operation_type: Optional[str] = None
    account_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def create_for_operation(
        cls,
        operation_type: str,
        account_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> "ExecutionContext":
        """Create execution context for a store operation."""
        return cls(
            correlation_id=correlation_id or f"op_{uuid4()}",
            operation_type=operation_type,
            account_id=account_id,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for logging."""
        return self.model_dump(exclude_none=True, exclude={"timestamp"})


_execution_context: contextvars.ContextVar[Optional[ExecutionContext]] = contextvars.ContextVar(
    "execution_context", default=None
)


def get_current_execution_context() -> Optional[ExecutionContext]:
    """Get current execution context."""
    return _execution_context.get()


@contextmanager
def with_execution_context(context: ExecutionContext) -> Iterator[ExecutionContext]:
    """Context manager for execution context; restores the outer context on exit."""
    token = _execution_context.set(context)
    try:
        yield context
    finally:
        _execution_context.reset(token)
