"""
Inspection Pipeline

Moves items along the line axis and runs the two inspection checkpoints:

    infeed --> [metal detector] --> [checkweigher] --> outfeed

The detector only FLAGS contaminated items. Rejection happens at the
checkweigher, the final gate, which evaluates in strict order:

    1. flagged by detector        -> REJECTED / CONTAMINANT (exits backward)
    2. outside explicit range     -> REJECTED / RANGE       (exits forward)
    3. within tolerance of nominal -> PASSED
       otherwise                  -> REJECTED / TOLERANCE   (exits forward)
"""

import logging
import time
from typing import Callable, Dict, Any, Optional

from .items import (
    Item, Contaminant, Verdict, RejectReason, ExitDirection, uniform_error,
)
from .flow.events import Event, EventDispatcher, LineEventType

logger = logging.getLogger("InspectionPipeline")

REJECT_EXIT_FACTOR = 1.5


class InspectionPipeline:
    """
    Checkpoint logic for one line.

    Holds no item references between calls; the controller owns the items.
    """

    def __init__(self, line_id: str, rng, dispatcher: Optional[EventDispatcher] = None,
                 clock: Optional[Callable[[], float]] = None):
        """
        Args:
            line_id: Line identifier stamped on events
            rng: Random source for the sensor error
            dispatcher: Event sink (None = no events, e.g. unit tests)
            clock: Simulation clock in seconds (default: wall clock)
        """
        self.line_id = line_id
        self.rng = rng
        self._event_dispatcher = dispatcher
        self._clock = clock or time.time

    # ========== Motion ==========

    def advance(self, item: Item, speed: float) -> None:
        """Move an item one tick. Rejected items leave at 1.5x speed."""
        if item.verdict == Verdict.REJECTED:
            item.ticks_since_verdict += 1
            if item.exit_direction == ExitDirection.BACKWARD:
                item.position -= speed * REJECT_EXIT_FACTOR
            else:
                item.position += speed * REJECT_EXIT_FACTOR
            return

        if item.verdict == Verdict.PASSED:
            item.ticks_since_verdict += 1
        item.position += speed

    # ========== Checkpoints ==========

    def scan_checkpoint(self, item: Item) -> None:
        """Metal detector: flag, never reject. Idempotent."""
        if item.contaminant_checked:
            return

        item.contaminant_checked = True
        if item.contaminant != Contaminant.NONE:
            item.contaminant_flagged = True
            logger.debug(f"[{self.line_id}] item {item.item_id} flagged: {item.contaminant.value}")
            self._emit_event(LineEventType.SCAN_FLAGGED, item)
        else:
            self._emit_event(LineEventType.SCAN_CLEAR, item)

    def weigh_checkpoint(self, item: Item) -> None:
        """Checkweigher: measure once, then resolve the final verdict."""
        if item.measured_weight is not None:
            return

        item.measured_weight = item.simulated_weight + uniform_error(self.rng, item.profile.sensor_accuracy)
        item.verdict = Verdict.WAITING

        verdict, reason, direction = self.evaluate(item)
        item.verdict = verdict
        item.reject_reason = reason
        item.exit_direction = direction
        item.ticks_since_verdict = 0

        if verdict == Verdict.PASSED:
            self._emit_event(LineEventType.ITEM_PASSED, item)
        else:
            logger.debug(f"[{self.line_id}] item {item.item_id} rejected: {reason.value} "
                         f"({item.measured_weight:.3f} kg)")
            self._emit_event(LineEventType.ITEM_REJECTED, item)

    @staticmethod
    def evaluate(item: Item):
        """
        Apply the gate rules to a measured item.

        Returns:
            (verdict, reject_reason, exit_direction)
        """
        profile = item.profile
        reading = item.measured_weight

        if item.contaminant_flagged:
            return Verdict.REJECTED, RejectReason.CONTAMINANT, ExitDirection.BACKWARD

        if reading < profile.range_min or reading > profile.range_max:
            return Verdict.REJECTED, RejectReason.RANGE, ExitDirection.FORWARD

        if abs(reading - profile.final_nominal) <= profile.gate_tolerance:
            return Verdict.PASSED, RejectReason.NONE, ExitDirection.NONE

        return Verdict.REJECTED, RejectReason.TOLERANCE, ExitDirection.FORWARD

    # ========== Events ==========

    def _emit_event(self, event_type: LineEventType, item: Item) -> None:
        if self._event_dispatcher is None:
            return  # No dispatcher set (e.g., in unit tests)

        self._event_dispatcher.emit(Event(
            type=event_type,
            timestamp=self._clock(),
            line_id=self.line_id,
            data=inspection_record(item),
        ))


def inspection_record(item: Item) -> Dict[str, Any]:
    """Payload of scan/verdict events consumed by the renderer and log sinks."""
    return {
        "item_id": item.item_id,
        "profile": item.profile.name,
        "measured_weight": item.measured_weight,
        "verdict": item.verdict.value,
        "contaminant": item.contaminant.value,
        "contaminant_flagged": item.contaminant_flagged,
        "reject_reason": item.reject_reason.value,
    }
