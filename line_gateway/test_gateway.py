"""
Data Gateway - Adapter Tests

Exercises the read -> filter -> map -> write path with in-memory
sources and sinks, the file sink format and the MQTT payload layout.
"""

import json

import requests

from line_gateway.core.engine import DataEngine, build_channel_map, wait_for_snapshot
from line_gateway.core.interfaces import ISource, ISink
from line_gateway.adapters.sink_file import RapidScadaFileSink, format_value
from line_gateway.adapters.sink_mqtt import MQTTSink
from line_gateway.adapters.source_rest import RestSourceAdapter


SNAPSHOT = {
    "Plant.ticks": 120,
    "line_a.profile": "small",
    "line_a.paused": False,
    "line_a.KPI.passed": 7,
    "line_b.profile": "large",
    "line_b.last_weight": None,
}


class StaticSource(ISource):
    def __init__(self, data):
        self.data = data

    def read(self):
        return dict(self.data)


class ListSink(ISink):
    def __init__(self):
        self.writes = []

    def write(self, data):
        self.writes.append(data)


class FakeMqttClient:
    def __init__(self):
        self.published = []

    def connect(self, host, port, keepalive):
        self.host = (host, port)

    def loop_start(self):
        pass

    def loop_stop(self):
        pass

    def disconnect(self):
        pass

    def publish(self, topic, payload, qos=0, retain=False):
        self.published.append((topic, json.loads(payload)))


def test_engine_forwards_raw_tags_without_mapping():
    sink = ListSink()
    engine = DataEngine(StaticSource(SNAPSHOT), sink)

    assert engine.step() is True
    assert sink.writes == [SNAPSHOT]


def test_engine_skips_empty_reads():
    sink = ListSink()
    engine = DataEngine(StaticSource({}), sink)

    assert engine.step() is False
    assert sink.writes == []


def test_engine_filters_lines_but_keeps_plant_tags():
    engine = DataEngine(StaticSource(SNAPSHOT), ListSink(), lines=["line_b"])
    out = engine.process(SNAPSHOT)

    assert set(out) == {"Plant.ticks", "line_b.profile", "line_b.last_weight"}


def test_channel_map_is_sorted_and_drops_unmapped_tags():
    mapping = build_channel_map(["line_a.profile", "Plant.ticks"], first_channel=200)
    assert mapping == {"Plant.ticks": 200, "line_a.profile": 201}

    engine = DataEngine(StaticSource(SNAPSHOT), ListSink(), mapping)
    assert engine.process(SNAPSHOT) == {200: 120, 201: "small"}


def test_run_stops_after_max_steps():
    sink = ListSink()
    engine = DataEngine(StaticSource(SNAPSHOT), sink)
    engine.run(interval=0.0, max_steps=3)

    assert len(sink.writes) == 3
    assert engine.running is False


def test_file_sink_writes_channel_lines(tmp_path):
    path = tmp_path / "scada" / "import.txt"
    sink = RapidScadaFileSink(str(path))
    sink.connect()
    sink.write({101: 25.03, 102: True, 103: None})

    assert path.read_text().splitlines() == ["101;25.03", "102;1", "103;"]
    assert not (tmp_path / "scada" / "import.txt.tmp").exists()


def test_format_value_booleans():
    assert format_value(False) == "0"
    assert format_value(7) == "7"


def test_mqtt_sink_single_payload():
    client = FakeMqttClient()
    sink = MQTTSink("localhost", 1883, "bagging-line/state", client=client)
    sink.connect()
    sink.write({"line_a.profile": "small", 101: 3})

    assert sink.connected
    assert client.published == [("bagging-line/state", {"line_a.profile": "small", "101": 3})]


def test_mqtt_sink_per_line_topics():
    client = FakeMqttClient()
    sink = MQTTSink("localhost", 1883, "bl", per_line=True, client=client)
    sink.write({"line_a.KPI.passed": 7, "line_b.profile": "large", "Plant.ticks": 1})

    topics = dict(client.published)
    assert topics["bl/line_a"] == {"KPI.passed": 7}
    assert topics["bl/line_b"] == {"profile": "large"}
    assert topics["bl/Plant"] == {"ticks": 1}


class FakeResponse:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self._body = body

    def json(self):
        return self._body


def test_rest_source_returns_snapshot(monkeypatch):
    monkeypatch.setattr(requests, "get", lambda url, timeout: FakeResponse(200, SNAPSHOT))
    assert RestSourceAdapter("http://twin/api/state").read() == SNAPSHOT


def test_rest_source_is_empty_on_errors(monkeypatch):
    monkeypatch.setattr(requests, "get", lambda url, timeout: FakeResponse(503, {}))
    assert RestSourceAdapter("http://twin/api/state").read() == {}

    def refuse(url, timeout):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(requests, "get", refuse)
    assert RestSourceAdapter("http://twin/api/state").read() == {}


class WarmingUpSource(ISource):
    """Empty reads until the twin is up."""

    def __init__(self, empty_reads, data):
        self.empty_reads = empty_reads
        self.data = data
        self.reads = 0

    def read(self):
        self.reads += 1
        if self.reads <= self.empty_reads:
            return {}
        return dict(self.data)


def test_first_snapshot_waits_for_source():
    source = WarmingUpSource(3, SNAPSHOT)
    snapshot = wait_for_snapshot(source, interval=0.0)

    assert snapshot == SNAPSHOT
    assert source.reads == 4
    assert len(build_channel_map(snapshot)) == len(SNAPSHOT)


def test_first_snapshot_gives_up_after_max_attempts():
    source = WarmingUpSource(10, SNAPSHOT)
    assert wait_for_snapshot(source, interval=0.0, max_attempts=2) == {}
    assert source.reads == 2
