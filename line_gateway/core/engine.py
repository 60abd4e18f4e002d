import logging
import time
from typing import Dict, Any, Iterable, Optional

from line_gateway.core.interfaces import ISource, ISink

logger = logging.getLogger("Gateway")


def build_channel_map(tags: Iterable[str], first_channel: int = 101) -> Dict[str, int]:
    """
    Assign consecutive channel ids to tag names in sorted order.

    Sorting keeps the numbering stable between restarts as long as the
    plant layout does not change.
    """
    return {tag: first_channel + index for index, tag in enumerate(sorted(tags))}


def wait_for_snapshot(source: ISource, interval: float = 1.0,
                      max_attempts: Optional[int] = None) -> Dict[str, Any]:
    """
    Poll until the source returns a non-empty snapshot.

    Returns:
        The first non-empty snapshot, or {} after max_attempts failed reads
    """
    attempt = 0
    while True:
        snapshot = source.read()
        if snapshot:
            return snapshot
        attempt += 1
        if max_attempts is not None and attempt >= max_attempts:
            return {}
        logger.warning(f"No snapshot from source yet (attempt {attempt}), retrying in {interval}s")
        time.sleep(interval)


class DataEngine:
    """
    Core Logic: Read -> Filter -> Map -> Write.

    Args:
        source: Where snapshots come from
        sink: Where mapped snapshots go
        mapping: tag -> channel id (None = forward tag names as-is)
        lines: Only forward tags of these lines (None = all); Plant.* tags always pass
    """
    def __init__(self, source: ISource, sink: ISink,
                 mapping: Optional[Dict[str, int]] = None,
                 lines: Optional[Iterable[str]] = None):
        self.source = source
        self.sink = sink
        self.mapping = mapping
        self.lines = set(lines) if lines else None
        self.running = False
        self.steps = 0

    def step(self) -> bool:
        """One poll. Returns False when the source had nothing to offer."""
        raw_data = self.source.read()
        if not raw_data:
            return False

        self.sink.write(self.process(raw_data))
        self.steps += 1
        return True

    def keep(self, tag: str) -> bool:
        if self.lines is None:
            return True
        prefix = tag.split(".", 1)[0]
        return prefix == "Plant" or prefix in self.lines

    def process(self, raw_data: Dict[str, Any]) -> Dict[Any, Any]:
        """
        Filters by line, then maps tag names to channel ids.
        Tags without a channel are dropped when a mapping is set.
        """
        selected = {tag: value for tag, value in raw_data.items() if self.keep(tag)}
        if self.mapping is None:
            return selected

        output = {}
        for tag, value in selected.items():
            if tag in self.mapping:
                output[self.mapping[tag]] = value
        return output

    def run(self, interval: float = 1.0, max_steps: Optional[int] = None):
        self.running = True
        logger.info(f">>> Gateway Started. Polling every {interval}s...")
        try:
            while self.running:
                self.step()
                if max_steps is not None and self.steps >= max_steps:
                    break
                time.sleep(interval)
        except KeyboardInterrupt:
            pass
        finally:
            self.running = False
            logger.info(">>> Gateway Stopped.")

    def stop(self):
        self.running = False
