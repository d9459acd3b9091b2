"""
Event system for translation pipeline observability.

Provides decoupled event publishing and subscription for monitoring
translation progress and debugging.
"""

import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List
import time

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Translation pipeline event types."""

    # Job-level events
    JOB_PHASE_CHANGED = "job_phase_changed"
    BOOK_COMPLETED = "book_completed"
    JOB_FAILED = "job_failed"

    # Glossary events
    GLOSSARY_BUILT = "glossary_built"
    GLOSSARY_TERM_SAVED = "glossary_term_saved"

    # Chapter-level events
    CHAPTER_STARTED = "chapter_started"
    CHAPTER_COMPLETED = "chapter_completed"

    # Segment-level events
    SEGMENT_TRANSLATED = "segment_translated"
    SEGMENT_FAILED = "segment_failed"

    # Consistency events
    CONSISTENCY_FIXED = "consistency_fixed"


@dataclass
class Event:
    """Translation pipeline event.

    Attributes:
        type: Event type
        data: Event-specific data dictionary
        timestamp: Unix timestamp when event occurred
        source: Optional source identifier (e.g., "job_driver")
    """
    type: EventType
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
    source: str = "unknown"


class EventBus:
    """Central event bus for translation pipeline."""

    def __init__(self):
        self._listeners: Dict[EventType, List[Callable]] = {}
        self._history: List[Event] = []
        self._record_history = False

    def subscribe(self, event_type: EventType, callback: Callable[[Event], None]) -> None:
        """Subscribe to an event type.

        Args:
            event_type: Type of event to listen for
            callback: Function to call when event occurs (receives Event object)
        """
        self._listeners.setdefault(event_type, []).append(callback)

    def subscribe_all(self, callback: Callable[[Event], None]) -> None:
        """Subscribe one callback to every event type."""
        for event_type in EventType:
            self.subscribe(event_type, callback)

    def unsubscribe(self, event_type: EventType, callback: Callable) -> None:
        """Unsubscribe from an event type."""
        listeners = self._listeners.get(event_type, [])
        if callback in listeners:
            listeners.remove(callback)

    def publish(self, event: Event) -> None:
        """Publish an event to all subscribers.

        Listener exceptions are logged and never reach the publisher.
        """
        if self._record_history:
            self._history.append(event)

        for listener in self._listeners.get(event.type, []):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Event listener failed for {event.type.value}")

    def emit(self, event_type: EventType, source: str = "unknown", **data: Any) -> None:
        """Build and publish an event in one call."""
        self.publish(Event(type=event_type, data=data, source=source))

    def enable_history(self) -> None:
        """Enable event history recording."""
        self._record_history = True

    def get_history(self) -> List[Event]:
        """Get recorded event history in chronological order."""
        return self._history.copy()

    def clear_history(self) -> None:
        self._history.clear()

    def get_events_by_type(self, event_type: EventType) -> List[Event]:
        """Get recorded events of one type."""
        return [e for e in self._history if e.type == event_type]
