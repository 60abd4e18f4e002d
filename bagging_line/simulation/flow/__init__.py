"""
Line Flow Engine

Event-driven production tracking.

Responsibilities:
- Subscribe to line events
- Maintain counts per line
- Keep the capped verdict feed
- Track order progress
- Emit read-only metrics

NO:
- Control logic
- Checkpoint decisions
"""

from .events import Event, EventDispatcher, LineEventType
from .counters import CounterSystem, WeightStats
from .kpi_tracker import KPITracker
from .feed import VerdictFeed, FeedEntry
from .orders import ProductionOrder, OrderTracker
from .flow_engine import LineFlowEngine

__all__ = [
    'Event',
    'EventDispatcher',
    'LineEventType',
    'CounterSystem',
    'WeightStats',
    'KPITracker',
    'VerdictFeed',
    'FeedEntry',
    'ProductionOrder',
    'OrderTracker',
    'LineFlowEngine'
]
