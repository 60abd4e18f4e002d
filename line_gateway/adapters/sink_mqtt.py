import json
import logging
from typing import Dict, Any

import paho.mqtt.client as mqtt

from line_gateway.core.interfaces import ISink, IAdapter

logger = logging.getLogger("MqttSink")


class MQTTSink(ISink, IAdapter):
    """
    Writes snapshots to an MQTT broker as one flat JSON payload per poll.

    With per_line=True each line's tags go to <topic>/<line_id> instead.
    """
    def __init__(self, broker: str, port: int, topic: str,
                 per_line: bool = False, client=None):
        self.broker = broker
        self.port = port
        self.topic = topic
        self.per_line = per_line
        self.client = client or mqtt.Client(mqtt.CallbackAPIVersion.VERSION2)
        self.connected = False

    def connect(self):
        try:
            logger.info(f"Connecting to MQTT Broker {self.broker}:{self.port}...")
            self.client.connect(self.broker, self.port, 60)
            self.client.loop_start()
            self.connected = True
            logger.info("MQTT Connected ✔")
        except OSError as e:
            logger.error(f"MQTT Connection Failed: {e}")

    def disconnect(self):
        self.client.loop_stop()
        self.client.disconnect()
        self.connected = False

    def payloads(self, data: Dict[Any, Any]) -> Dict[str, Dict[str, Any]]:
        """topic -> payload dict for one snapshot."""
        if not self.per_line:
            return {self.topic: {str(k): v for k, v in data.items()}}

        grouped: Dict[str, Dict[str, Any]] = {}
        for tag, value in data.items():
            prefix, _, name = str(tag).partition(".")
            grouped.setdefault(f"{self.topic}/{prefix}", {})[name or prefix] = value
        return grouped

    def write(self, data: Dict[Any, Any]) -> None:
        if not data:
            return

        for topic, payload in self.payloads(data).items():
            try:
                body = json.dumps(payload)
                logger.debug(f"Publishing to MQTT topic {topic}: {body}")
                self.client.publish(topic, body, qos=0, retain=False)
            except (TypeError, ValueError) as e:
                logger.error(f"MQTT Publish Failed on {topic}: {e}")
