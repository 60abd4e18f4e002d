import logging
import threading
import time
from typing import Dict, Any, List, Optional
from .controller import LineController
from .profiles import LineProfile
from .flow import EventDispatcher, LineFlowEngine

logger = logging.getLogger("SimulationEngine")


class SimulationEngine:
    """
    Manages the main simulation loop and time for all lines.
    """
    def __init__(self, ticks_per_second: int = 60, feed_size: int = 9):
        """
        Initialize Simulation Engine with FIXED timestep.

        Args:
            ticks_per_second: Tick driver rate (default 60 Hz)
            feed_size: Verdict feed length per line

        CRITICAL: Timestep is FIXED for deterministic runs.
        All lines step synchronously with this dt.
        """
        self.lines: Dict[str, LineController] = {}
        self.profiles: Dict[str, LineProfile] = {}  # Presets available for switching
        self.swap_settings: Dict[str, float] = {}
        self.ticks_per_second = ticks_per_second
        self.time_step = 1.0 / ticks_per_second
        self.running = False
        self.ticks = 0
        self.sim_time = 0.0  # Global simulation clock (seconds)
        self.post_step_callbacks = []

        # Serializes the tick thread against control input from the API loop
        self.lock = threading.RLock()

        self.event_dispatcher = EventDispatcher()
        self.flow_engine = LineFlowEngine(self.event_dispatcher, feed_size=feed_size)
        self.flow_engine.kpis.set_start_time(self.sim_time)

    def add_line(self, line: LineController):
        self.lines[line.line_id] = line

    def get_line(self, line_id: str) -> Optional[LineController]:
        return self.lines.get(line_id)

    def set_post_step_callback(self, callback):
        self.post_step_callbacks.append(callback)

    def step(self):
        """
        Advance simulation by one FIXED time step.

        Each line ticks at its own belt speed; post-step callbacks run after
        all lines have moved.
        """
        with self.lock:
            for line in self.lines.values():
                line.tick()

            for callback in self.post_step_callbacks:
                callback()

            self.sim_time += self.time_step
            self.ticks += 1

    def run_loop(self, max_ticks: Optional[int] = None):
        """
        Blocking real-time loop. The API runs this in a thread.

        Args:
            max_ticks: Stop after this many ticks (None = until stop())
        """
        self.running = True
        logger.info(f"Simulation loop started at {self.ticks_per_second} Hz")
        try:
            while self.running:
                start_time = time.time()
                self.step()
                if max_ticks is not None and self.ticks >= max_ticks:
                    break
                elapsed = time.time() - start_time
                time.sleep(max(0.0, self.time_step - elapsed))
        except KeyboardInterrupt:
            pass
        finally:
            self.running = False
            logger.info("Simulation loop stopped")

    def stop(self):
        self.running = False

    def get_all_tags(self) -> Dict[str, Any]:
        """
        Collects all tags from all lines for SCADA.
        """
        all_tags = {
            "Plant.ticks": self.ticks,
            "Plant.sim_time": round(self.sim_time, 3),
        }
        with self.lock:
            for line in self.lines.values():
                all_tags.update(line.get_tags())
                metrics = self.flow_engine.get_metrics(line.line_id, self.sim_time, line.profile.final_nominal)
                for k in ("created", "passed", "rejected", "flagged", "yield_percent", "throughput_per_hour", "giveaway_kg"):
                    value = metrics[k]
                    digits = 4 if k == "giveaway_kg" else 2
                    all_tags[f"{line.line_id}.KPI.{k}"] = round(value, digits) if isinstance(value, float) else value
                order = self.flow_engine.get_order(line.line_id)
                if order is not None:
                    all_tags[f"{line.line_id}.Order.produced_bags"] = order.produced_bags
                    all_tags[f"{line.line_id}.Order.progress_percent"] = round(order.progress_percent, 1)
        return all_tags

    def get_production_metrics(self) -> Dict[str, Any]:
        with self.lock:
            return {
                line_id: self.flow_engine.get_metrics(line_id, self.sim_time, line.profile.final_nominal)
                for line_id, line in self.lines.items()
            }

    def list_lines(self) -> List[Dict[str, Any]]:
        with self.lock:
            return [
                {
                    "line_id": line.line_id,
                    "name": line.name,
                    "profile": line.profile.name,
                    "speed": line.speed,
                    "paused": line.paused,
                }
                for line in self.lines.values()
            ]
