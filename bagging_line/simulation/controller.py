"""
Line Controller

Owns everything that changes on a bagging line: the active profile, the
active items, the scheduler and the inspection pipeline.

Per tick:
    1. Scheduler may drop a new sack (profile snapshot captured here)
    2. Pipeline advances every active item
    3. Checkpoints fire once per item, on the tick its position crosses
       the scan / weigh thresholds (latched, never re-derived)
    4. Items off the scale are disposed

CRITICAL RULES:
- tick() never raises; per-item failures are logged and skipped
- Profile switches never touch in-flight items
- Shared state is guarded by a re-entrant lock (tick thread vs. API loop)
"""

import asyncio
import itertools
import logging
import math
import random
import threading
from typing import Dict, Any, List, Optional

from .items import Item, Verdict
from .pipeline import InspectionPipeline
from .profiles import LineProfile, LineGeometry, validate_profile
from .scheduler import ProductionScheduler, compute_spawn_interval
from .flow.events import Event, EventDispatcher, LineEventType

logger = logging.getLogger("LineController")

SPEED_EPSILON = 1e-3


def clamp_speed(value: Any) -> float:
    """
    Sanitize a belt speed control input.

    Non-numeric, non-finite and non-positive values clamp to SPEED_EPSILON.
    """
    try:
        speed = float(value)
    except (TypeError, ValueError):
        return SPEED_EPSILON
    if not math.isfinite(speed) or speed < SPEED_EPSILON:
        return SPEED_EPSILON
    return speed


class LineController:
    """One bagging line: bagging machine, metal detector, checkweigher."""

    def __init__(self, line_id: str, profile: LineProfile,
                 geometry: Optional[LineGeometry] = None,
                 rng=None,
                 dispatcher: Optional[EventDispatcher] = None,
                 ticks_per_second: int = 60,
                 name: Optional[str] = None,
                 speed: float = 1.0,
                 lock=None):
        """
        Args:
            line_id: Line identifier (e.g. 'line_a')
            profile: Initial profile
            geometry: Checkpoint positions (default LineGeometry())
            rng: Random source (default: random.Random(42))
            dispatcher: Event dispatcher (None = no events)
            ticks_per_second: Tick driver rate, used for the spawn interval and clock
            name: Display name
            speed: Initial belt speed
            lock: Shared lock when several lines share one dispatcher
        """
        self.line_id = line_id
        self.name = name or line_id
        self.profile = validate_profile(profile)
        self.geometry = geometry or LineGeometry()
        self.rng = rng if rng is not None else random.Random(42)
        self.ticks_per_second = ticks_per_second
        self.time_step = 1.0 / ticks_per_second
        self.speed = clamp_speed(speed)

        self._lock = lock or threading.RLock()
        self._event_dispatcher = dispatcher
        self._ids = itertools.count(1)

        # Clock
        self.ticks = 0
        self.sim_time = 0.0

        # Items
        self.items: List[Item] = []

        # Display state (last checkpoint results)
        self.last_scan: Optional[str] = None
        self.last_weight: Optional[float] = None
        self.last_verdict: Optional[str] = None

        self.swap_in_progress = False

        self.pipeline = InspectionPipeline(line_id, self.rng, dispatcher, clock=lambda: self.sim_time)
        self.scheduler = ProductionScheduler(self._create_item, self._interval_for(self.profile))

        logger.info(f"[{self.line_id}] controller ready, profile '{self.profile.name}', "
                    f"spawn every {self.scheduler.spawn_interval_ticks} ticks")

    # ============================================================
    # CYCLIC EXECUTION
    # ============================================================

    def tick(self, speed: Optional[float] = None) -> None:
        """
        Advance the line by one tick.

        Args:
            speed: Belt speed for this tick (default: self.speed)
        """
        with self._lock:
            speed = self.speed if speed is None else clamp_speed(speed)

            try:
                new_item = self.scheduler.tick(speed)
            except Exception:
                logger.error(f"[{self.line_id}] scheduler failed", exc_info=True)
                new_item = None

            if new_item is not None:
                self.items.append(new_item)
                self._emit(LineEventType.ITEM_CREATED, {
                    "item_id": new_item.item_id,
                    "profile": new_item.profile.name,
                    "contaminant": new_item.contaminant.value,
                })

            for item in list(self.items):
                try:
                    self._step_item(item, speed)
                except Exception:
                    logger.error(f"[{self.line_id}] item {item.item_id} step failed", exc_info=True)

            for item in [it for it in self.items if self._is_off_scale(it)]:
                try:
                    self._dispose(item, reason="off_scale")
                except Exception:
                    logger.error(f"[{self.line_id}] item {item.item_id} disposal failed", exc_info=True)

            self.ticks += 1
            self.sim_time += self.time_step

    def _step_item(self, item: Item, speed: float) -> None:
        self.pipeline.advance(item, speed)

        if not item.passed_scan and item.position >= self.geometry.scan_position:
            item.passed_scan = True
            self.pipeline.scan_checkpoint(item)
            self.last_scan = item.contaminant.value

        if not item.passed_weigh and item.position >= self.geometry.weigh_position:
            item.passed_weigh = True
            self.pipeline.weigh_checkpoint(item)
            self.last_weight = item.measured_weight
            self.last_verdict = item.verdict.value

    def _is_off_scale(self, item: Item) -> bool:
        if item.position > self.geometry.disposal_position or item.position < 0:
            return True
        return (item.verdict == Verdict.REJECTED
                and item.ticks_since_verdict >= self.geometry.exit_delay_ticks)

    def _dispose(self, item: Item, reason: str) -> None:
        self.items.remove(item)
        self._emit(LineEventType.ITEM_DISPOSED, {
            "item_id": item.item_id,
            "reason": reason,
            "verdict": item.verdict.value,
            "reject_reason": item.reject_reason.value,
            "unresolved": not item.is_resolved,
            "flagged": item.contaminant_flagged,
        })

    def _create_item(self) -> Item:
        return Item.create(
            self.profile,
            self.rng,
            item_id=next(self._ids),
            position=self.geometry.spawn_position,
            created_at=self.sim_time,
        )

    def _interval_for(self, profile: LineProfile) -> int:
        return compute_spawn_interval(
            profile.base_weight,
            profile.throughput_rate,
            ticks_per_second=self.ticks_per_second,
            multiplier=profile.rate_multiplier,
        )

    # ============================================================
    # CONTROL INPUT
    # ============================================================

    def set_speed(self, value: Any) -> float:
        """Set belt speed; invalid values are clamped, never rejected."""
        speed = clamp_speed(value)
        if not isinstance(value, (int, float)) or speed != value:
            logger.warning(f"[{self.line_id}] speed {value!r} clamped to {speed}")
        with self._lock:
            self.speed = speed
        return speed

    def pause(self) -> None:
        with self._lock:
            if self.scheduler.paused:
                return
            self.scheduler.pause()
            self._emit(LineEventType.PRODUCTION_PAUSED, {})
        logger.info(f"[{self.line_id}] production paused")

    def resume(self) -> None:
        with self._lock:
            if not self.scheduler.paused:
                return
            self.scheduler.resume()
            self._emit(LineEventType.PRODUCTION_RESUMED, {})
        logger.info(f"[{self.line_id}] production resumed")

    @property
    def paused(self) -> bool:
        return self.scheduler.paused

    def switch_profile(self, profile: LineProfile) -> None:
        """
        Adopt a profile for items created from now on.

        Raises:
            ProfileConfigError: profile invalid; the current one stays active
        """
        profile = validate_profile(profile)
        with self._lock:
            previous = self.profile
            self.profile = profile
            self.scheduler.set_interval(self._interval_for(profile))
            self._emit(LineEventType.PROFILE_SWITCHED, {
                "from": previous.name,
                "to": profile.name,
                "spawn_interval_ticks": self.scheduler.spawn_interval_ticks,
            })
        logger.info(f"[{self.line_id}] profile switched '{previous.name}' -> '{profile.name}'")

    def has_blocking_items(self) -> bool:
        """True while any item is unmeasured and still before the checkweigher."""
        with self._lock:
            return any(
                not item.is_measured and item.position < self.geometry.weigh_position
                for item in self.items
            )

    async def swap_profile_safely(self, profile: LineProfile,
                                  timeout: float = 30.0,
                                  poll_interval: float = 0.25,
                                  prepare_delay: float = 0.0) -> bool:
        """
        Drain the line, then switch profile.

        Pauses production, waits until no unmeasured item is before the
        checkweigher (or until timeout), switches and resumes. A line that
        was already paused stays paused. Runs beside the tick driver; never
        blocks it.

        Args:
            profile: Profile to adopt
            timeout: Maximum drain wait (seconds); on expiry the swap is forced
            poll_interval: Drain check cadence (seconds)
            prepare_delay: Wait before the first drain check (seconds)

        Returns:
            True if the line drained in time, False on timeout or when
            another swap is already running.

        Raises:
            ProfileConfigError: profile invalid (nothing is paused)
        """
        profile = validate_profile(profile)

        with self._lock:
            if self.swap_in_progress:
                logger.warning(f"[{self.line_id}] profile swap already in progress, ignoring '{profile.name}'")
                return False
            self.swap_in_progress = True
            # An operator pause outlives the swap
            was_paused = self.paused
            self.pause()

        logger.info(f"[{self.line_id}] preparing profile swap to '{profile.name}'")
        loop = asyncio.get_running_loop()
        drained = False
        try:
            if prepare_delay > 0:
                await asyncio.sleep(prepare_delay)

            started = loop.time()
            while True:
                if not self.has_blocking_items():
                    drained = True
                    break
                if loop.time() - started >= timeout:
                    logger.warning(f"[{self.line_id}] line did not drain within {timeout}s, "
                                   f"forcing swap to '{profile.name}'")
                    with self._lock:
                        self._emit(LineEventType.PROFILE_SWAP_TIMEOUT, {"to": profile.name, "timeout": timeout})
                    break
                await asyncio.sleep(poll_interval)
        except asyncio.CancelledError:
            logger.info(f"[{self.line_id}] profile swap to '{profile.name}' cancelled")
            with self._lock:
                self.swap_in_progress = False
                if not was_paused:
                    self.resume()
            raise

        with self._lock:
            self.switch_profile(profile)
            self.scheduler.reset()
            self.swap_in_progress = False
            if not was_paused:
                self.resume()
        return drained

    def remove_item(self, item_id: int) -> bool:
        """
        Manually take an item off the line.

        An item removed before weighing keeps its inspection state as-is
        and is reported with unresolved=True.
        """
        with self._lock:
            item = next((it for it in self.items if it.item_id == item_id), None)
            if item is None:
                return False
            self._dispose(item, reason="manual")
        logger.info(f"[{self.line_id}] item {item_id} removed manually")
        return True

    # ============================================================
    # READ-ONLY VIEWS
    # ============================================================

    def snapshot(self) -> Dict[str, Any]:
        """Renderer view of the line."""
        with self._lock:
            return {
                "line_id": self.line_id,
                "name": self.name,
                "profile": self.profile.to_dict(),
                "speed": self.speed,
                "paused": self.paused,
                "swap_in_progress": self.swap_in_progress,
                "ticks": self.ticks,
                "sim_time": round(self.sim_time, 3),
                "geometry": {
                    "spawn_position": self.geometry.spawn_position,
                    "scan_position": self.geometry.scan_position,
                    "weigh_position": self.geometry.weigh_position,
                    "disposal_position": self.geometry.disposal_position,
                },
                "items": [item.to_dict() for item in self.items],
            }

    def get_tags(self) -> Dict[str, Any]:
        """Exposes line state to the SCADA layer."""
        with self._lock:
            return {
                f"{self.line_id}.profile": self.profile.name,
                f"{self.line_id}.speed": self.speed,
                f"{self.line_id}.paused": self.paused,
                f"{self.line_id}.swap_in_progress": self.swap_in_progress,
                f"{self.line_id}.active_items": len(self.items),
                f"{self.line_id}.spawn_interval_ticks": self.scheduler.spawn_interval_ticks,
                f"{self.line_id}.last_scan": self.last_scan,
                f"{self.line_id}.last_weight": None if self.last_weight is None else round(self.last_weight, 3),
                f"{self.line_id}.last_verdict": self.last_verdict,
                f"{self.line_id}.target_min": self.profile.range_min,
                f"{self.line_id}.target_max": self.profile.range_max,
            }

    # ============================================================
    # EVENTS
    # ============================================================

    def _emit(self, event_type: LineEventType, data: Dict[str, Any]) -> None:
        if self._event_dispatcher is None:
            return
        self._event_dispatcher.emit(Event(
            type=event_type,
            timestamp=self.sim_time,
            line_id=self.line_id,
            data=data,
        ))
