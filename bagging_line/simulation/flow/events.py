"""
Event System for the Bagging Line

Event-driven architecture for inspection results and line control.

CRITICAL RULES:
- Events are emitted by the pipeline and the controller
- Flow Engine, feed and UI bridge ONLY react to events
- At most one scan event and one verdict event per item
"""

import logging
from dataclasses import dataclass
from typing import Dict, Any, Callable, List
from enum import Enum

logger = logging.getLogger("EventDispatcher")


class LineEventType(str, Enum):
    """
    Line event types.

    Emitted on item lifecycle transitions and control changes,
    NOT on every simulation tick.
    """
    # Production
    ITEM_CREATED = "ITEM_CREATED"

    # Metal detector
    SCAN_CLEAR = "SCAN_CLEAR"
    SCAN_FLAGGED = "SCAN_FLAGGED"

    # Checkweigher
    ITEM_PASSED = "ITEM_PASSED"
    ITEM_REJECTED = "ITEM_REJECTED"

    # Disposal
    ITEM_DISPOSED = "ITEM_DISPOSED"

    # Control
    PROFILE_SWITCHED = "PROFILE_SWITCHED"
    PROFILE_SWAP_TIMEOUT = "PROFILE_SWAP_TIMEOUT"
    PRODUCTION_PAUSED = "PRODUCTION_PAUSED"
    PRODUCTION_RESUMED = "PRODUCTION_RESUMED"


VERDICT_EVENTS = (LineEventType.ITEM_PASSED, LineEventType.ITEM_REJECTED)
SCAN_EVENTS = (LineEventType.SCAN_CLEAR, LineEventType.SCAN_FLAGGED)


@dataclass
class Event:
    """
    Line event.

    For scan and verdict events, data carries the inspection record:
    item_id, measured_weight, verdict, contaminant, reject_reason.
    """
    type: LineEventType
    timestamp: float  # Simulation time (seconds)
    line_id: str
    data: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "timestamp": self.timestamp,
            "line_id": self.line_id,
            "data": dict(self.data),
        }

    def __repr__(self) -> str:
        return f"Event({self.type.value}, t={self.timestamp:.2f}s, line={self.line_id})"


class EventDispatcher:
    """
    Event dispatcher for pub-sub pattern.

    Subscribing with event_type=None receives every event.
    """

    def __init__(self, keep_log: bool = True, max_log: int = 10000):
        self._subscribers: Dict[Any, List[Callable[[Event], None]]] = {}
        self._event_log: List[Event] = []  # For debugging/replay
        self._keep_log = keep_log
        self._max_log = max_log

    def subscribe(self, event_type, callback: Callable[[Event], None]) -> None:
        """
        Subscribe to an event type.

        Args:
            event_type: LineEventType, or None for all events
            callback: Function to call when event is emitted
        """
        if event_type not in self._subscribers:
            self._subscribers[event_type] = []
        self._subscribers[event_type].append(callback)

    def unsubscribe(self, event_type, callback: Callable[[Event], None]) -> None:
        callbacks = self._subscribers.get(event_type, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def emit(self, event: Event) -> None:
        """
        Emit an event to all subscribers.

        A failing subscriber is logged and skipped; the emitter never sees it.

        Args:
            event: Event to emit
        """
        if self._keep_log:
            self._event_log.append(event)
            if len(self._event_log) > self._max_log:
                del self._event_log[0]

        for callback in self._subscribers.get(event.type, []) + self._subscribers.get(None, []):
            try:
                callback(event)
            except Exception:
                logger.error(f"Subscriber {callback!r} failed on {event!r}", exc_info=True)

    def get_event_log(self) -> List[Event]:
        """Get event log (for debugging/analysis)"""
        return self._event_log.copy()

    def clear_log(self) -> None:
        """Clear event log"""
        self._event_log.clear()
