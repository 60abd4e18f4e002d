"""
Simulation Module for the Bagging Line

Architecture:
- SimulationEngine ticks every LineController at a fixed rate
- LineController owns items, scheduler and the active profile
- InspectionPipeline decides scan and weigh outcomes
- Flow engine reacts to the emitted events
"""

from .items import Item, Contaminant, Verdict, RejectReason, ExitDirection
from .profiles import LineProfile, LineGeometry, ItemVariant, ProfileConfigError, GeometryConfigError
from .pipeline import InspectionPipeline
from .scheduler import ProductionScheduler, compute_spawn_interval
from .controller import LineController, clamp_speed
from .engine import SimulationEngine

__all__ = [
    'Item',
    'Contaminant',
    'Verdict',
    'RejectReason',
    'ExitDirection',
    'LineProfile',
    'LineGeometry',
    'ItemVariant',
    'ProfileConfigError',
    'GeometryConfigError',
    'InspectionPipeline',
    'ProductionScheduler',
    'compute_spawn_interval',
    'LineController',
    'clamp_speed',
    'SimulationEngine'
]
