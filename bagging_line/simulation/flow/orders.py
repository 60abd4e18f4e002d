"""
Production order tracking.

Each line works against a production order (lot, silo, total quantity).
Progress is driven by ITEM_PASSED events; the ETA uses the bagging rate.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Any, Optional


@dataclass(frozen=True)
class ProductionOrder:
    lot_no: str
    product_type: str
    quantity_mt: float
    package_kg: float
    bagging_silo: str = ""
    bagging_line: str = ""
    remark: str = ""

    @property
    def total_kg(self) -> float:
        return self.quantity_mt * 1000.0

    @property
    def total_bags(self) -> int:
        if self.package_kg <= 0:
            return 0
        return math.floor(self.total_kg / self.package_kg)

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "ProductionOrder":
        return cls(
            lot_no=str(data["lot_no"]),
            product_type=str(data.get("product_type", "")),
            quantity_mt=float(data["quantity_mt"]),
            package_kg=float(data["package_kg"]),
            bagging_silo=str(data.get("bagging_silo", "")),
            bagging_line=str(data.get("bagging_line", "")),
            remark=str(data.get("remark", "")),
        )


class OrderTracker:
    """Counts good bags against an order."""

    def __init__(self, order: ProductionOrder, produced_bags: int = 0):
        self.order = order
        self.produced_bags = produced_bags

    def on_passed(self, event=None) -> None:
        if self.produced_bags < self.order.total_bags:
            self.produced_bags += 1

    @property
    def produced_kg(self) -> float:
        return self.produced_bags * self.order.package_kg

    @property
    def remaining_kg(self) -> float:
        return max(0.0, self.order.total_kg - self.produced_kg)

    @property
    def progress_percent(self) -> float:
        total = self.order.total_bags
        if total == 0:
            return 0.0
        return min(100.0, self.produced_bags / total * 100.0)

    @property
    def complete(self) -> bool:
        return self.produced_bags >= self.order.total_bags

    def eta(self, rate_kg_per_hour: float, now: Optional[datetime] = None) -> Optional[datetime]:
        """Estimated completion at the given bagging rate (None if rate <= 0)."""
        if rate_kg_per_hour <= 0:
            return None
        now = now or datetime.now()
        return now + timedelta(hours=self.remaining_kg / rate_kg_per_hour)

    def to_dict(self, rate_kg_per_hour: float = 0.0, now: Optional[datetime] = None) -> Dict[str, Any]:
        eta = self.eta(rate_kg_per_hour, now)
        return {
            "lot_no": self.order.lot_no,
            "product_type": self.order.product_type,
            "bagging_silo": self.order.bagging_silo,
            "bagging_line": self.order.bagging_line,
            "remark": self.order.remark,
            "package_kg": self.order.package_kg,
            "total_bags": self.order.total_bags,
            "produced_bags": self.produced_bags,
            "produced_mt": round(self.produced_kg / 1000.0, 2),
            "remaining_kg": round(self.remaining_kg, 2),
            "progress_percent": round(self.progress_percent, 1),
            "eta": eta.strftime("%Y-%m-%d %H:%M") if eta else None,
        }
