import logging
import random
from typing import Dict, Any, Optional

from .engine import SimulationEngine
from .controller import LineController
from .profiles import LineGeometry, load_profiles
from .flow import ProductionOrder, OrderTracker
from ..settings import load_config

logger = logging.getLogger("Factory")


def build_plant(config: Optional[Dict[str, Any]] = None) -> SimulationEngine:
    """
    Build the plant with all bagging lines.

    Uses a FIXED timestep of 1/ticks_per_second (60 Hz by default).

    CRITICAL: This function ONLY assembles lines and engines.
    - NO checkpoint logic (pipeline)
    - NO counting (flow engine via events)
    """
    config = config or load_config()
    engine = SimulationEngine(
        ticks_per_second=config.get("ticks_per_second", 60),
        feed_size=config.get("feed_size", 9),
    )

    profiles = load_profiles(config)
    geometry = LineGeometry.from_mapping(config.get("geometry", {}))
    engine.profiles = profiles
    engine.swap_settings = dict(config.get("swap", {}))
    seed = config.get("seed")
    orders = config.get("orders", {})

    for index, (line_id, line_cfg) in enumerate(config.get("lines", {}).items()):
        profile_name = line_cfg["profile"]
        if profile_name not in profiles:
            raise KeyError(f"Line {line_id} references unknown profile '{profile_name}'")

        # Each line draws from its own stream so adding a line never shifts another's items
        rng = random.Random(None if seed is None else seed + index)

        line = LineController(
            line_id,
            profiles[profile_name],
            geometry=geometry,
            rng=rng,
            dispatcher=engine.event_dispatcher,
            ticks_per_second=engine.ticks_per_second,
            name=line_cfg.get("name"),
            speed=line_cfg.get("speed", 1.0),
            lock=engine.lock,
        )
        engine.add_line(line)

        order_name = line_cfg.get("order")
        if order_name and order_name in orders:
            engine.flow_engine.attach_order(line_id, OrderTracker(ProductionOrder.from_mapping(orders[order_name])))

    logger.info(f"Plant built with {len(engine.lines)} line(s): {', '.join(engine.lines)}")
    return engine
