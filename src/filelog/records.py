"""
Log records consumed by the file logger
"""

import time
from dataclasses import dataclass, field
from enum import Enum


class Severity(Enum):
    """Severity of a log message, with its one-letter file code"""

    NORMAL = "N"
    INFO = "I"
    WARNING = "W"
    CRITICAL = "C"

    @property
    def code(self) -> str:
        return self.value


@dataclass(frozen=True)
class LogRecord:
    """A single immutable log message"""

    text: str
    severity: Severity = Severity.NORMAL
    timestamp: int = field(default_factory=lambda: int(time.time()))
