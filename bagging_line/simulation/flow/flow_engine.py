"""
Line Flow Engine

Event-driven production tracking for all lines of the plant.

CRITICAL RULES:
- Event-reactive ONLY (no dt-based processing)
- NO control logic
- Read-only metrics for UI/Analytics

Architecture:
  Pipeline/Controller emit events -> Flow Engine reacts -> counters, feed, orders
"""

from typing import Dict, Any, Optional
import logging
from .events import EventDispatcher, Event, LineEventType
from .counters import CounterSystem, WeightStats
from .kpi_tracker import KPITracker
from .feed import VerdictFeed, DEFAULT_FEED_SIZE
from .orders import OrderTracker

logger = logging.getLogger("FlowEngine")

REJECT_COUNTER_BY_REASON = {
    "CONTAMINANT": "rejected_contaminant",
    "RANGE": "rejected_range",
    "TOLERANCE": "rejected_tolerance",
}


class LineFlowEngine:
    """
    Subscribes to line events and maintains counts, KPIs, verdict feeds
    and order progress.
    """

    def __init__(self, event_dispatcher: EventDispatcher, feed_size: int = DEFAULT_FEED_SIZE):
        self.dispatcher = event_dispatcher
        self.counters = CounterSystem()
        self.weights = WeightStats()
        self.kpis = KPITracker(self.counters, self.weights)
        self.feed_size = feed_size
        self.feeds: Dict[str, VerdictFeed] = {}
        self.orders: Dict[str, OrderTracker] = {}
        self.active_profiles: Dict[str, str] = {}  # line -> profile switched to

        self._subscribe_to_events()

        logger.info("LineFlowEngine initialized (event-reactive mode)")

    def _subscribe_to_events(self) -> None:
        self.dispatcher.subscribe(LineEventType.ITEM_CREATED, self._on_item_created)
        self.dispatcher.subscribe(LineEventType.SCAN_CLEAR, self._on_scan_clear)
        self.dispatcher.subscribe(LineEventType.SCAN_FLAGGED, self._on_scan_flagged)
        self.dispatcher.subscribe(LineEventType.ITEM_PASSED, self._on_item_passed)
        self.dispatcher.subscribe(LineEventType.ITEM_REJECTED, self._on_item_rejected)
        self.dispatcher.subscribe(LineEventType.ITEM_DISPOSED, self._on_item_disposed)
        self.dispatcher.subscribe(LineEventType.PROFILE_SWITCHED, self._on_profile_switched)

    def attach_order(self, line_id: str, tracker: OrderTracker) -> None:
        self.orders[line_id] = tracker

    def feed(self, line_id: str) -> VerdictFeed:
        if line_id not in self.feeds:
            self.feeds[line_id] = VerdictFeed(line_id, maxlen=self.feed_size)
        return self.feeds[line_id]

    # ========== Event Handlers ==========

    def _on_item_created(self, event: Event) -> None:
        self.counters.increment(event.line_id, "created")

    def _on_scan_clear(self, event: Event) -> None:
        self.counters.increment(event.line_id, "scanned")

    def _on_scan_flagged(self, event: Event) -> None:
        self.counters.increment(event.line_id, "scanned")
        self.counters.increment(event.line_id, "flagged")
        self.counters.increment(event.line_id, f"flagged_{event.data.get('contaminant', 'UNKNOWN').lower()}")

    def _on_item_passed(self, event: Event) -> None:
        self.counters.increment(event.line_id, "passed")
        self._record_weight(event)
        self.feed(event.line_id).on_verdict(event)
        order = self.orders.get(event.line_id)
        if order is not None:
            order.on_passed(event)

    def _on_item_rejected(self, event: Event) -> None:
        reason = event.data.get("reject_reason")
        counter = REJECT_COUNTER_BY_REASON.get(reason)
        if counter is None:
            logger.warning(f"[{event.line_id}] reject without known reason: {reason}")
            counter = "rejected_other"
        self.counters.increment(event.line_id, counter)
        self._record_weight(event)
        self.feed(event.line_id).on_verdict(event)

    def _on_item_disposed(self, event: Event) -> None:
        self.counters.increment(event.line_id, "disposed")
        if event.data.get("unresolved"):
            self.counters.increment(event.line_id, "removed_unresolved")
            logger.debug(f"[{event.line_id}] item {event.data.get('item_id')} left the line unweighed")

    def _on_profile_switched(self, event: Event) -> None:
        self.counters.increment(event.line_id, "profile_switches")
        # Weight statistics describe one profile at a time
        self.weights.reset(event.line_id)
        self.active_profiles[event.line_id] = event.data.get("to")

    def _record_weight(self, event: Event) -> None:
        weight = event.data.get("measured_weight")
        if weight is None:
            return
        active = self.active_profiles.get(event.line_id)
        if active is not None and event.data.get("profile") != active:
            return  # in-flight item of the previous profile
        self.weights.add(event.line_id, weight)

    # ========== Read-Only Metrics ==========

    def get_metrics(self, line_id: str, current_time: float,
                    final_nominal: Optional[float] = None) -> Dict[str, Any]:
        """
        Get all production metrics of a line (read-only).

        Args:
            current_time: Current simulation time (seconds)
            final_nominal: Nominal weight of the active profile, for giveaway
        """
        return self.kpis.get_all_metrics(line_id, current_time, final_nominal)

    def get_counters(self, line_id: str) -> Dict[str, int]:
        """Get all counters of a line (read-only)"""
        return self.counters.get_all(line_id)

    def get_order(self, line_id: str) -> Optional[OrderTracker]:
        return self.orders.get(line_id)
