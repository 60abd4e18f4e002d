import argparse
import json
import logging

from line_gateway.core.engine import DataEngine, build_channel_map, wait_for_snapshot
from line_gateway.core.interfaces import ISink
from line_gateway.adapters.source_rest import RestSourceAdapter
from line_gateway.adapters.sink_mqtt import MQTTSink
from line_gateway.adapters.sink_file import RapidScadaFileSink, LogSink

logger = logging.getLogger("Gateway")


def load_channel_map(path):
    with open(path, "r") as f:
        return {str(tag): int(channel) for tag, channel in json.load(f).items()}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Bagging Line Data Gateway")
    parser.add_argument("--sink", choices=["mqtt", "file", "log"], default="mqtt", help="Select data sink")
    parser.add_argument("--api-url", default="http://localhost:8000/api/state")
    parser.add_argument("--interval", type=float, default=1.0, help="Polling interval (s)")
    parser.add_argument("--line", action="append", dest="lines", help="Forward only this line (repeatable)")
    parser.add_argument("--broker", default="localhost")
    parser.add_argument("--port", type=int, default=1883)
    parser.add_argument("--topic", default="bagging-line/state")
    parser.add_argument("--per-line", action="store_true", help="One MQTT topic per line")
    parser.add_argument("--file", default="gateway_output.txt", help="Rapid SCADA import file")
    parser.add_argument("--channels", default=None, help="JSON tag -> channel id map for the file sink")
    parser.add_argument("--first-channel", type=int, default=101)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format='[GATEWAY] %(asctime)s | %(message)s', datefmt='%H:%M:%S')
    logger.info(f">>> Initializing Data Gateway using {args.sink.upper()} Sink...")

    source = RestSourceAdapter(args.api_url)
    source.connect()

    sink: ISink
    mapping = None
    if args.sink == "mqtt":
        sink = MQTTSink(args.broker, args.port, args.topic, per_line=args.per_line)
    elif args.sink == "file":
        sink = RapidScadaFileSink(args.file)
        if args.channels:
            mapping = load_channel_map(args.channels)
        else:
            # Number channels from the first snapshot the twin serves
            mapping = build_channel_map(wait_for_snapshot(source, args.interval), first_channel=args.first_channel)
            logger.info(f"Assigned {len(mapping)} channels starting at {args.first_channel}")
    else:
        sink = LogSink()

    engine = DataEngine(source, sink, mapping, lines=args.lines)

    try:
        if hasattr(sink, "connect"):
            sink.connect()
        engine.run(interval=args.interval)
    finally:
        if hasattr(sink, "disconnect"):
            sink.disconnect()
        source.disconnect()


if __name__ == "__main__":
    main()
