"""
Configuration Profiles and Line Geometry

A profile is an immutable snapshot of the weight formula and the gating
thresholds. Items capture the profile active at their creation, so a
profile swap never changes how an in-flight item is evaluated.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, Optional


class ProfileConfigError(ValueError):
    """Profile is missing a required numeric field."""


class GeometryConfigError(ValueError):
    """Checkpoint positions are out of order."""


class ItemVariant(str, Enum):
    """Renderer dispatch tag (drawing style of the bag)."""
    SACK = "SACK"
    SMALL_BAG = "SMALL_BAG"


REQUIRED_FIELDS = (
    "base_weight",
    "container_weight",
    "giveaway",
    "bagging_tolerance",
    "sensor_accuracy",
    "range_min",
    "range_max",
    "throughput_rate",
)


@dataclass(frozen=True)
class LineProfile:
    """
    Weight formula and gating thresholds for one package preset.

    Weights are in kg, throughput_rate in kg/h.
    """
    name: str
    base_weight: float
    container_weight: float
    giveaway: float
    bagging_tolerance: float
    sensor_accuracy: float
    range_min: float
    range_max: float
    throughput_rate: float
    final_tolerance: Optional[float] = None
    rate_multiplier: float = 1.0
    variant: ItemVariant = ItemVariant.SACK

    @property
    def final_nominal(self) -> float:
        """Expected filled weight: product + empty container + giveaway."""
        return self.base_weight + self.container_weight + self.giveaway

    @property
    def gate_tolerance(self) -> float:
        """Allowed deviation from final_nominal at the weighing gate."""
        if self.final_tolerance is not None:
            return self.final_tolerance
        return self.bagging_tolerance

    @classmethod
    def from_mapping(cls, name: str, data: Dict[str, Any]) -> "LineProfile":
        """
        Build a profile from a settings/API mapping.

        Only presence and numeric type are checked, not ranges.

        Raises:
            ProfileConfigError: a required field is missing or not numeric
        """
        if not isinstance(data, dict):
            raise ProfileConfigError(f"Profile '{name}' must be a mapping")

        missing = [f for f in REQUIRED_FIELDS if data.get(f) is None]
        if missing:
            raise ProfileConfigError(f"Profile '{name}' missing fields: {', '.join(missing)}")

        values = {}
        for field_name in REQUIRED_FIELDS:
            values[field_name] = _as_number(name, field_name, data[field_name])

        final_tolerance = data.get("final_tolerance")
        if final_tolerance is not None:
            final_tolerance = _as_number(name, "final_tolerance", final_tolerance)

        multiplier = _as_number(name, "rate_multiplier", data.get("rate_multiplier", 1.0))

        try:
            variant = ItemVariant(data.get("variant", ItemVariant.SACK.value))
        except ValueError:
            raise ProfileConfigError(f"Profile '{name}' has unknown variant {data.get('variant')!r}")

        return cls(
            name=name,
            final_tolerance=final_tolerance,
            rate_multiplier=multiplier,
            variant=variant,
            **values,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "base_weight": self.base_weight,
            "container_weight": self.container_weight,
            "giveaway": self.giveaway,
            "bagging_tolerance": self.bagging_tolerance,
            "sensor_accuracy": self.sensor_accuracy,
            "range_min": self.range_min,
            "range_max": self.range_max,
            "throughput_rate": self.throughput_rate,
            "final_tolerance": self.final_tolerance,
            "rate_multiplier": self.rate_multiplier,
            "variant": self.variant.value,
            "final_nominal": round(self.final_nominal, 6),
        }


def _as_number(profile_name: str, field_name: str, value: Any) -> float:
    # bool is an int subclass but never a valid weight
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ProfileConfigError(f"Profile '{profile_name}' field '{field_name}' must be numeric")
    if not math.isfinite(value):
        raise ProfileConfigError(f"Profile '{profile_name}' field '{field_name}' must be finite")
    return float(value)


def validate_profile(profile: Any) -> LineProfile:
    """Accept a LineProfile as-is; anything else is a configuration error."""
    if not isinstance(profile, LineProfile):
        raise ProfileConfigError(f"Expected LineProfile, got {type(profile).__name__}")
    return profile


@dataclass(frozen=True)
class LineGeometry:
    """
    Fixed position axis of a line (same units as item position).

    Items appear at spawn_position, are scanned at scan_position, weighed at
    weigh_position and leave the scale past disposal_position. Rejected items
    are dropped exit_delay_ticks after their verdict.
    """
    spawn_position: float = 45.0
    scan_position: float = 274.0
    weigh_position: float = 475.0
    disposal_position: float = 950.0
    exit_delay_ticks: int = 50

    def __post_init__(self):
        if not (self.spawn_position <= self.scan_position < self.weigh_position < self.disposal_position):
            raise GeometryConfigError(
                "Expected spawn <= scan < weigh < disposal, got "
                f"{self.spawn_position} / {self.scan_position} / "
                f"{self.weigh_position} / {self.disposal_position}"
            )
        if self.exit_delay_ticks < 0:
            raise GeometryConfigError("exit_delay_ticks must be >= 0")

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "LineGeometry":
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


def load_profiles(config: Dict[str, Any]) -> Dict[str, LineProfile]:
    """Build every preset in config['profiles']."""
    return {
        name: LineProfile.from_mapping(name, data)
        for name, data in config.get("profiles", {}).items()
    }
