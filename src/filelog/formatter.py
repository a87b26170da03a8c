"""
Line format of the log file
"""

from datetime import datetime

from .records import LogRecord


class LogLineFormatter:
    """Formats records as ``(<code>) <ISO 8601 local time> - <text>``"""

    encoding = "utf-8"

    def format(self, record: LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.timestamp).isoformat(timespec="seconds")
        return f"({record.severity.code}) {stamp} - {record.text}\n"

    def format_bytes(self, record: LogRecord) -> bytes:
        return self.format(record).encode(self.encoding)
