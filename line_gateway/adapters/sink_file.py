import logging
import os

from line_gateway.core.interfaces import ISink, IAdapter

logger = logging.getLogger("FileSink")


def format_value(value) -> str:
    # SCADA channels take 1/0 for booleans and an empty field for no value
    if isinstance(value, bool):
        return "1" if value else "0"
    if value is None:
        return ""
    return str(value)


class RapidScadaFileSink(ISink, IAdapter):
    """
    Writes data to a text file for Rapid SCADA import.
    Format:
    ChannelID;Value
    """
    def __init__(self, file_path: str):
        self.file_path = file_path
        self.temp_path = file_path + ".tmp"

    def connect(self):
        os.makedirs(os.path.dirname(os.path.abspath(self.file_path)), exist_ok=True)

    def disconnect(self):
        pass

    def write(self, data: dict) -> None:
        if not data:
            return

        try:
            # Write to tmp first, readers never see a half-written file
            with open(self.temp_path, "w") as f:
                for channel_id, value in data.items():
                    f.write(f"{channel_id};{format_value(value)}\n")
            os.replace(self.temp_path, self.file_path)
        except OSError as e:
            logger.error(f"File Sink Write Failed: {e}")


class LogSink(ISink):
    """Debug sink that logs a preview of each snapshot."""
    def write(self, data: dict) -> None:
        logger.info(f"Writing {len(data)} tags: {list(data.items())[:3]}...")
