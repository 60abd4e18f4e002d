import threading
from typing import Dict, Any, List


class ScadaStore:
    """
    Single Source of Truth for the SCADA layer.

    The tick thread publishes tag and feed snapshots; the API reads them.
    Thread-safe storage.
    """
    _instance = None
    _lock = threading.Lock()
    _store: Dict[str, Any] = {}
    _feeds: Dict[str, List[Dict[str, Any]]] = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(ScadaStore, cls).__new__(cls)
            cls._store = {}
            cls._feeds = {}
        return cls._instance

    @classmethod
    def update(cls, tags: Dict[str, Any]):
        """
        Update multiple tags at once.
        """
        with cls._lock:
            cls._store.update(tags)

    @classmethod
    def set_feed(cls, line_id: str, entries: List[Dict[str, Any]]):
        with cls._lock:
            cls._feeds[line_id] = list(entries)

    @classmethod
    def get_all(cls) -> Dict[str, Any]:
        """
        Get entire state snapshot.
        """
        with cls._lock:
            return cls._store.copy()

    @classmethod
    def get(cls, tag_name: str):
        with cls._lock:
            return cls._store.get(tag_name)

    @classmethod
    def get_feed(cls, line_id: str) -> List[Dict[str, Any]]:
        with cls._lock:
            return list(cls._feeds.get(line_id, []))

    @classmethod
    def clear(cls):
        with cls._lock:
            cls._store.clear()
            cls._feeds.clear()
