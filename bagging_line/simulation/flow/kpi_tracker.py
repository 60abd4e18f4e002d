"""
KPI Tracker for the Flow Engine

Calculates line KPIs from counters.

CRITICAL RULES:
- Read-only consumer of counter state
- NO control logic
- Deterministic calculations only
"""

from typing import Dict, Any, Optional
from .counters import CounterSystem, WeightStats

REJECT_COUNTERS = ("rejected_contaminant", "rejected_range", "rejected_tolerance")


class KPITracker:
    """
    Line KPI calculator.

    Calculates metrics from counters for analytics/UI.
    """

    def __init__(self, counters: CounterSystem, weights: WeightStats):
        """
        Args:
            counters: Counter system
            weights: Measured weight statistics
        """
        self.counters = counters
        self.weights = weights
        self.start_time = 0.0

    def set_start_time(self, time: float) -> None:
        """Set simulation start time"""
        self.start_time = time

    def inspected(self, line_id: str) -> int:
        return self.counters.get(line_id, "passed") + self.total_rejected(line_id)

    def total_rejected(self, line_id: str) -> int:
        return sum(self.counters.get(line_id, name) for name in REJECT_COUNTERS)

    def calculate_yield(self, line_id: str) -> float:
        """
        Pass rate of weighed items.

        Returns:
            Yield % (0-100)
        """
        inspected = self.inspected(line_id)
        if inspected == 0:
            return 0.0
        return self.counters.get(line_id, "passed") / inspected * 100.0

    def calculate_reject_breakdown(self, line_id: str) -> Dict[str, float]:
        """Share of each reject reason in % of weighed items."""
        inspected = self.inspected(line_id)
        return {
            name: (self.counters.get(line_id, name) / inspected * 100.0) if inspected else 0.0
            for name in REJECT_COUNTERS
        }

    def calculate_throughput(self, line_id: str, current_time: float) -> float:
        """
        Good bags per hour of simulated time.

        Args:
            current_time: Current simulation time (seconds)
        """
        elapsed_hours = (current_time - self.start_time) / 3600.0
        if elapsed_hours <= 0:
            return 0.0
        return self.counters.get(line_id, "passed") / elapsed_hours

    def calculate_giveaway(self, line_id: str, final_nominal: float) -> float:
        """Mean measured weight above nominal (kg per bag)."""
        summary = self.weights.summary(line_id)
        if summary["count"] == 0:
            return 0.0
        return summary["mean"] - final_nominal

    def get_all_metrics(self, line_id: str, current_time: float,
                        final_nominal: Optional[float] = None) -> Dict[str, Any]:
        """
        Get all KPIs of a line.

        Args:
            current_time: Current simulation time (seconds)
            final_nominal: Nominal weight of the active profile (None = no giveaway)
        """
        return {
            "created": self.counters.get(line_id, "created"),
            "inspected": self.inspected(line_id),
            "passed": self.counters.get(line_id, "passed"),
            "rejected": self.total_rejected(line_id),
            "flagged": self.counters.get(line_id, "flagged"),
            "removed_unresolved": self.counters.get(line_id, "removed_unresolved"),
            "yield_percent": self.calculate_yield(line_id),
            "reject_breakdown_percent": self.calculate_reject_breakdown(line_id),
            "throughput_per_hour": self.calculate_throughput(line_id, current_time),
            "weight_stats": self.weights.summary(line_id),
            "giveaway_kg": None if final_nominal is None else self.calculate_giveaway(line_id, final_nominal),
        }
