"""
Internal Event Bus

Simple publish-subscribe pattern for domain events.
All operations are synchronous; a failing handler never stops the others.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import structlog

logger = structlog.get_logger(__name__)

ACCOUNT_STATUS_CHANGED = "ACCOUNT_STATUS_CHANGED"
ACCOUNT_ADDED = "ACCOUNT_ADDED"
ACCOUNT_DELETED = "ACCOUNT_DELETED"


@dataclass
class EventHandler:
    """Registered event handler."""
    event_type: str
    handler: Callable[[Any], None]
    priority: int = 0


class EventBus:
    """In-process event bus used by the account store."""

    def __init__(self):
        self._handlers: Dict[str, List[EventHandler]] = {}

    def emit(self, event_type: str, payload: Any) -> None:
        """
        Emit an event to all registered handlers.

        Args:
            event_type: String identifier for the event type
            payload: Event payload (can be any object)
        """
        handlers = sorted(
            self._handlers.get(event_type, []),
            key=lambda h: h.priority,
            reverse=True,
        )

        for handler in handlers:
            try:
                handler.handler(payload)
            except Exception:
                # Subscribers are observers; the mutation that emitted has already happened
                logger.exception("Event handler failed", event_type=event_type)

    def subscribe(self, event_type: str, handler: Callable[[Any], None], priority: int = 0) -> None:
        """
        Subscribe to an event type.

        Args:
            event_type: Event type to subscribe to
            handler: Function to call when event is emitted
            priority: Handler priority (higher numbers called first)
        """
        self._handlers.setdefault(event_type, []).append(
            EventHandler(event_type, handler, priority)
        )

    def unsubscribe(self, event_type: str, handler: Callable[[Any], None]) -> None:
        """Unsubscribe a handler from an event type."""
        if event_type in self._handlers:
            self._handlers[event_type] = [
                h for h in self._handlers[event_type]
                if h.handler != handler
            ]

    def clear(self) -> None:
        """Clear all event handlers. Useful for testing."""
        self._handlers.clear()

    def get_handler_count(self, event_type: Optional[str] = None) -> int:
        """Get count of registered handlers, for one event type or all."""
        if event_type:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())
