"""
Production Scheduler

Decides when the bagging machine drops the next sack onto the infeed.
The spawn interval follows the configured throughput:

    interval_ticks = round(ticks_per_second * item_weight * 3600 / rate)

rounded half up, with a floor of MIN_SPAWN_TICKS. Belt speed scales the interval down.
"""

import logging
import math
from typing import Callable, Optional

from .items import Item

logger = logging.getLogger("Scheduler")

MIN_SPAWN_TICKS = 10
MIN_SPAWN_SPEED = 0.1


def compute_spawn_interval(item_weight: float, throughput_rate: float,
                           ticks_per_second: int = 60, multiplier: float = 1.0) -> int:
    """
    Ticks between two sacks at speed 1.

    Args:
        item_weight: Product weight per sack (kg)
        throughput_rate: Bagging rate (kg/h)
        ticks_per_second: Tick driver rate
        multiplier: Demo speed-up applied to the rate
    """
    effective_rate = throughput_rate * (multiplier or 1.0)
    if effective_rate <= 0:
        logger.warning(f"Non-positive throughput {throughput_rate} kg/h, using minimum interval")
        return MIN_SPAWN_TICKS
    ticks = ticks_per_second * item_weight * 3600.0 / effective_rate
    return max(MIN_SPAWN_TICKS, math.floor(ticks + 0.5))


class ProductionScheduler:
    """
    Tick-counting item source.

    The scheduler never resets its counter on pause/resume; the controller
    calls reset() when it wants a clean restart (e.g. after a profile swap).
    """

    def __init__(self, factory: Callable[[], Item], spawn_interval_ticks: int):
        """
        Args:
            factory: Creates an item from the controller's current profile
            spawn_interval_ticks: Interval at speed 1
        """
        self._factory = factory
        self.spawn_interval_ticks = spawn_interval_ticks
        self.ticks_since_last_spawn = 0
        self.paused = False

    def tick(self, speed: float) -> Optional[Item]:
        """Advance one tick; returns a new item when the interval elapsed."""
        self.ticks_since_last_spawn += 1

        if self.paused:
            return None

        threshold = self.spawn_interval_ticks / max(speed, MIN_SPAWN_SPEED)
        if self.ticks_since_last_spawn > threshold:
            self.ticks_since_last_spawn = 0
            return self._factory()
        return None

    def pause(self) -> None:
        self.paused = True

    def resume(self) -> None:
        self.paused = False

    def reset(self) -> None:
        """Restart the interval from zero."""
        self.ticks_since_last_spawn = 0

    def set_interval(self, spawn_interval_ticks: int) -> None:
        self.spawn_interval_ticks = max(MIN_SPAWN_TICKS, int(spawn_interval_ticks))
