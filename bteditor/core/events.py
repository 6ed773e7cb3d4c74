# FILE: bteditor/core/events.py
"""
Change notifications for rendering/UI collaborators.

Goals:
- One bus per editing session, injected into the store and the session
  (no page-global object).
- Every event carries a topic and a ``type`` discriminator plus the entity.
- Handler failures are logged and isolated from the mutation that emitted them.
- Recent events are kept in a bounded history for debugging.

Topics:
- node_changed: created, updated, moved, deleted, batch-updated, type-added, type-removed
- connection_changed: created, deleted, selected, unselected, canceled
- selection_changed: nodes
- state_loaded / state_reset
- grid_changed
- monitor_changed: updated, stopped
"""

import logging
import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional

log = logging.getLogger(__name__)


class EventType(str, Enum):
    """Notification topics."""
    NODE_CHANGED = "node_changed"
    CONNECTION_CHANGED = "connection_changed"
    SELECTION_CHANGED = "selection_changed"
    STATE_LOADED = "state_loaded"
    STATE_RESET = "state_reset"
    GRID_CHANGED = "grid_changed"
    MONITOR_CHANGED = "monitor_changed"


@dataclass
class ChangeEvent:
    """Notification with discriminator and payload."""
    topic: EventType
    type: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "topic": self.topic.value,
            "type": self.type,
            "payload": self.payload,
            "timestamp": self.timestamp,
        }


Handler = Callable[[ChangeEvent], None]


class EventBus:
    """Synchronous observer registry owned by an editing session."""

    def __init__(self, max_history: int = 10):
        self._handlers: Dict[EventType, List[Handler]] = defaultdict(list)
        self._any: List[Handler] = []
        self.history: Deque[ChangeEvent] = deque(maxlen=max_history)
        self.event_counts: Dict[EventType, int] = defaultdict(int)

    def on(self, topic: EventType, handler: Handler) -> Callable[[], None]:
        """Subscribe to a topic; returns an unsubscribe function."""
        self._handlers[topic].append(handler)
        return lambda: self.off(topic, handler)

    def on_any(self, handler: Handler) -> Callable[[], None]:
        """Subscribe to every topic."""
        self._any.append(handler)

        def _unsubscribe() -> None:
            if handler in self._any:
                self._any.remove(handler)
        return _unsubscribe

    def off(self, topic: EventType, handler: Handler) -> None:
        handlers = self._handlers.get(topic, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, topic: EventType, type: Optional[str] = None, **payload: Any) -> ChangeEvent:
        """Build, record and dispatch an event."""
        event = ChangeEvent(topic=topic, type=type, payload=payload)
        self.history.append(event)
        self.event_counts[topic] += 1
        log.debug("event topic=%s type=%s keys=%s", topic.value, type, sorted(payload))

        for handler in list(self._handlers.get(topic, [])) + list(self._any):
            try:
                handler(event)
            except Exception as e:
                log.error("Event handler error topic=%s: %s", topic.value, e, exc_info=True)
        return event

    def get_stats(self) -> Dict[str, Any]:
        return {
            "by_topic": {k.value: v for k, v in self.event_counts.items()},
            "history": [e.to_dict() for e in self.history],
        }
