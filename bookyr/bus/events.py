"""
Event Bus - booking and hold notifications.

Engines emit after a write; listeners (the CLI's hold notices) subscribe
without importing the engines. Payloads carry ids plus the changed
dataclass, so only the ids are logged.
"""

from typing import Callable, Dict, List, Any, Optional
import logging

logger = logging.getLogger(__name__)


def _payload_ids(event_data: Dict[str, Any]) -> Dict[str, Any]:
    """The *_id and *_ids entries of a payload."""
    return {key: value for key, value in event_data.items() if key.endswith('_id') or key.endswith('_ids')}


def _handler_name(handler: Callable) -> str:
    return getattr(handler, '__name__', repr(handler))


class EventBus:
    """Per-event handler lists. A handler that raises is logged and skipped."""

    def __init__(self):
        self._handlers: Dict[str, List[Callable]] = {}

    def on(self, event_name: str, handler: Callable) -> Callable:
        """
        Register handler for event_name. Registering the same handler twice
        is a no-op, so listeners can be wired on every CLI entry.
        Returns the handler.
        """
        handlers = self._handlers.setdefault(event_name, [])
        if handler not in handlers:
            handlers.append(handler)
            logger.debug(f"Registered handler for '{event_name}': {_handler_name(handler)}")
        return handler

    def off(self, event_name: str, handler: Callable):
        """Unregister a handler. Unknown handlers are ignored."""
        handlers = self._handlers.get(event_name, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event_name: str, event_data: Optional[Dict[str, Any]] = None) -> int:
        """Call every handler for event_name. Returns how many ran without raising."""
        if event_data is None:
            event_data = {}

        handlers = list(self._handlers.get(event_name, []))
        logger.debug(f"Emitting '{event_name}' {_payload_ids(event_data)} to {len(handlers)} handlers")

        delivered = 0
        for handler in handlers:
            try:
                handler(event_data)
                delivered += 1
            except Exception as e:
                logger.error(f"Handler {_handler_name(handler)} failed on '{event_name}': {e}")
        return delivered

    def clear(self):
        self._handlers.clear()


# Singleton instance
bus = EventBus()


# =============================================================================
# STANDARD EVENTS
# =============================================================================

# Booking opportunity events
EVENT_OPPORTUNITY_CREATED = 'opportunity_created'
EVENT_OPPORTUNITY_STATUS_CHANGED = 'opportunity_status_changed'
EVENT_OPPORTUNITY_DELETED = 'opportunity_deleted'

# Hold events
EVENT_HOLD_REQUESTED = 'hold_requested'
EVENT_HOLD_APPROVED = 'hold_approved'
EVENT_HOLD_DECLINED = 'hold_declined'
EVENT_HOLD_CANCELLED = 'hold_cancelled'
EVENT_HOLD_EXPIRED = 'hold_expired'

# Favorites
EVENT_FAVORITE_ADDED = 'favorite_added'
EVENT_FAVORITE_REMOVED = 'favorite_removed'

# Media embeds
EVENT_EMBED_ADDED = 'embed_added'
EVENT_EMBED_REMOVED = 'embed_removed'

# Inquiry composer
EVENT_DRAFT_READY = 'draft_ready'
