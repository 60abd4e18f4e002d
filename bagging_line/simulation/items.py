"""
Item (sack) model.

Physical attributes (simulated weight, contaminant) are drawn once at
creation from an injected RNG and never change afterwards. Inspection
state is mutated only by the InspectionPipeline.

CRITICAL RULES:
- NO global random state - pass a seeded random.Random
- measured_weight is set exactly once, at the weighing checkpoint
- PASSED / REJECTED are terminal
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, Optional

from .profiles import LineProfile, ItemVariant


class Contaminant(str, Enum):
    NONE = "NONE"
    FERROUS = "FERROUS"
    NON_FERROUS = "NON_FERROUS"
    STAINLESS = "STAINLESS"


class Verdict(str, Enum):
    IN_TRANSIT = "IN_TRANSIT"
    WAITING = "WAITING"
    PASSED = "PASSED"
    REJECTED = "REJECTED"


class RejectReason(str, Enum):
    NONE = "NONE"
    CONTAMINANT = "CONTAMINANT"
    RANGE = "RANGE"
    TOLERANCE = "TOLERANCE"


class ExitDirection(str, Enum):
    NONE = "NONE"
    BACKWARD = "BACKWARD"  # toward infeed
    FORWARD = "FORWARD"    # toward outfeed


# Cumulative draw thresholds: 10% ferrous, 5% non-ferrous, 3% stainless
CONTAMINANT_THRESHOLDS = (
    (0.10, Contaminant.FERROUS),
    (0.15, Contaminant.NON_FERROUS),
    (0.18, Contaminant.STAINLESS),
)

CONTAMINANT_SIZE_MM = {
    Contaminant.NONE: 0.0,
    Contaminant.FERROUS: 2.5,
    Contaminant.NON_FERROUS: 3.0,
    Contaminant.STAINLESS: 3.0,
}

TERMINAL_VERDICTS = (Verdict.PASSED, Verdict.REJECTED)


def uniform_error(rng, accuracy: float) -> float:
    """Symmetric error in [-accuracy, +accuracy]."""
    return rng.uniform(-accuracy, accuracy)


def draw_contaminant(rng) -> Contaminant:
    r = rng.random()
    for threshold, contaminant in CONTAMINANT_THRESHOLDS:
        if r < threshold:
            return contaminant
    return Contaminant.NONE


@dataclass
class Item:
    """A single sack on the line."""
    item_id: int
    profile: LineProfile
    simulated_weight: float
    contaminant: Contaminant = Contaminant.NONE
    position: float = 0.0
    created_at: float = 0.0

    measured_weight: Optional[float] = None
    contaminant_checked: bool = False
    contaminant_flagged: bool = False
    verdict: Verdict = Verdict.IN_TRANSIT
    reject_reason: RejectReason = RejectReason.NONE
    exit_direction: ExitDirection = ExitDirection.NONE
    ticks_since_verdict: int = 0

    # Crossing latches, owned by the controller
    passed_scan: bool = field(default=False, repr=False)
    passed_weigh: bool = field(default=False, repr=False)

    @classmethod
    def create(cls, profile: LineProfile, rng, item_id: int = 0,
               position: float = 0.0, created_at: float = 0.0) -> "Item":
        """
        Draw a new item from a profile snapshot.

        Args:
            profile: Profile captured for the item's whole life
            rng: Random source with random() and uniform(a, b)
            item_id: Line-unique identifier
            position: Spawn position on the line axis
            created_at: Simulation time (seconds)
        """
        weight = (profile.base_weight + profile.container_weight + profile.giveaway
                  + uniform_error(rng, profile.bagging_tolerance))
        return cls(
            item_id=item_id,
            profile=profile,
            simulated_weight=weight,
            contaminant=draw_contaminant(rng),
            position=position,
            created_at=created_at,
        )

    @property
    def contaminant_size_mm(self) -> float:
        return CONTAMINANT_SIZE_MM[self.contaminant]

    @property
    def variant(self) -> ItemVariant:
        return self.profile.variant

    @property
    def is_measured(self) -> bool:
        return self.measured_weight is not None

    @property
    def is_resolved(self) -> bool:
        return self.verdict in TERMINAL_VERDICTS

    def to_dict(self) -> Dict[str, Any]:
        """Renderer view of the item."""
        return {
            "item_id": self.item_id,
            "profile": self.profile.name,
            "variant": self.variant.value,
            "position": round(self.position, 3),
            "simulated_weight": round(self.simulated_weight, 4),
            "measured_weight": None if self.measured_weight is None else round(self.measured_weight, 4),
            "contaminant": self.contaminant.value,
            "contaminant_size_mm": self.contaminant_size_mm,
            "contaminant_checked": self.contaminant_checked,
            "contaminant_flagged": self.contaminant_flagged,
            "verdict": self.verdict.value,
            "reject_reason": self.reject_reason.value,
            "exit_direction": self.exit_direction.value,
        }
