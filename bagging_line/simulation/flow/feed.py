"""
Verdict feed: the short rolling list of the most recent checkweigher results
shown next to each machine. Oldest entries are evicted first.
"""

from collections import deque
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Dict, Any, List, Optional

from .events import Event

DEFAULT_FEED_SIZE = 9

CONTAMINANT_LABELS = {
    "NONE": "OK",
    "FERROUS": "Ferrous",
    "NON_FERROUS": "Non-ferrous",
    "STAINLESS": "Stainless",
}


@dataclass
class FeedEntry:
    timestamp: float
    wall_time: str
    line_id: str
    item_id: int
    measured_weight: Optional[float]
    verdict: str
    contaminant: str
    reject_reason: str

    @property
    def metal_label(self) -> str:
        return CONTAMINANT_LABELS.get(self.contaminant, self.contaminant)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["metal"] = self.metal_label
        return data


class VerdictFeed:
    """Capped history of verdict events for one line."""

    def __init__(self, line_id: str, maxlen: int = DEFAULT_FEED_SIZE):
        self.line_id = line_id
        self._entries = deque(maxlen=maxlen)

    def on_verdict(self, event: Event) -> None:
        data = event.data
        self._entries.append(FeedEntry(
            timestamp=event.timestamp,
            wall_time=datetime.now().strftime("%H:%M:%S"),
            line_id=event.line_id,
            item_id=data.get("item_id"),
            measured_weight=data.get("measured_weight"),
            verdict=data.get("verdict"),
            contaminant=data.get("contaminant", "NONE"),
            reject_reason=data.get("reject_reason", "NONE"),
        ))

    def entries(self) -> List[FeedEntry]:
        """Oldest first."""
        return list(self._entries)

    def to_list(self) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)
