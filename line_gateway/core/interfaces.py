from abc import ABC, abstractmethod
from typing import Dict, Any


class ISource(ABC):
    """
    Interface for data sources (e.g. the twin's REST state endpoint).
    """
    @abstractmethod
    def read(self) -> Dict[str, Any]:
        """
        Reads one snapshot.
        Returns a dictionary of {tag_name: value}; empty on failure.
        """


class ISink(ABC):
    """
    Interface for data sinks (MQTT broker, SCADA import file).
    """
    @abstractmethod
    def write(self, data: Dict[Any, Any]) -> None:
        """
        Writes one mapped snapshot, keyed by channel id or tag name.
        """


class IAdapter(ABC):
    @abstractmethod
    def connect(self):
        pass

    @abstractmethod
    def disconnect(self):
        pass
