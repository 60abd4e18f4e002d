import logging

import requests

from line_gateway.core.interfaces import ISource, IAdapter

logger = logging.getLogger("RestSource")


class RestSourceAdapter(ISource, IAdapter):
    """
    Reads the SCADA tag snapshot from the twin's REST API (/api/state).
    """
    def __init__(self, url: str, timeout: float = 2.0, session=None):
        self.url = url
        self.timeout = timeout
        self.session = session

    def connect(self):
        if self.session is None:
            self.session = requests.Session()

    def disconnect(self):
        if self.session is not None:
            self.session.close()
            self.session = None

    def read(self) -> dict:
        getter = self.session.get if self.session is not None else requests.get
        try:
            response = getter(self.url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"REST Source Read Failed: {e}")
            return {}

        if response.status_code != 200:
            logger.warning(f"REST Source returned {response.status_code}")
            return {}
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"REST Source returned invalid JSON: {e}")
            return {}
