"""
Counter System for the Flow Engine

Deterministic production counting.

CRITICAL RULES:
- Counts are event-driven, not time-based
- One counter set per line
"""

from typing import Dict, List, Optional


class CounterSystem:
    """
    Production counter system.

    Maintains named counters per line. All increments are event-driven.
    """

    def __init__(self):
        self._counters: Dict[str, Dict[str, int]] = {}

    def increment(self, line_id: str, counter_name: str, amount: int = 1) -> None:
        """
        Increment a counter.

        Args:
            line_id: Line the count belongs to
            counter_name: Name of counter (e.g., 'created', 'rejected_range')
            amount: Amount to increment by
        """
        line = self._counters.setdefault(line_id, {})
        line[counter_name] = line.get(counter_name, 0) + amount

    def get(self, line_id: str, counter_name: str) -> int:
        """Counter value (0 if not exists)"""
        return self._counters.get(line_id, {}).get(counter_name, 0)

    def get_all(self, line_id: str) -> Dict[str, int]:
        """Get all counters of a line"""
        return dict(self._counters.get(line_id, {}))

    def lines(self) -> List[str]:
        return list(self._counters)

    def reset(self, line_id: Optional[str] = None) -> None:
        """
        Reset counters.

        Args:
            line_id: Line to reset (None = reset all)
        """
        if line_id is None:
            self._counters.clear()
        else:
            self._counters.pop(line_id, None)


class WeightStats:
    """
    Running statistics of measured weights per line (Welford).

    Used for giveaway reporting: mean measured weight vs. final nominal.
    """

    def __init__(self):
        self._stats: Dict[str, List[float]] = {}  # line -> [n, mean, m2, min, max]

    def add(self, line_id: str, weight: float) -> None:
        stats = self._stats.get(line_id)
        if stats is None:
            self._stats[line_id] = [1, weight, 0.0, weight, weight]
            return
        n = stats[0] + 1
        delta = weight - stats[1]
        mean = stats[1] + delta / n
        stats[0] = n
        stats[2] += delta * (weight - mean)
        stats[1] = mean
        stats[3] = min(stats[3], weight)
        stats[4] = max(stats[4], weight)

    def summary(self, line_id: str) -> Dict[str, float]:
        stats = self._stats.get(line_id)
        if stats is None:
            return {"count": 0, "mean": 0.0, "std": 0.0, "min": 0.0, "max": 0.0}
        n, mean, m2, lo, hi = stats
        std = (m2 / (n - 1)) ** 0.5 if n > 1 else 0.0
        return {"count": int(n), "mean": mean, "std": std, "min": lo, "max": hi}

    def reset(self, line_id: Optional[str] = None) -> None:
        if line_id is None:
            self._stats.clear()
        else:
            self._stats.pop(line_id, None)
