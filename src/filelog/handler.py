"""
Bridge from the standard logging module to the file logger
"""

import logging
from typing import Optional, Tuple

from .config import LoggerConfig
from .file_logger import FileLogger
from .messages import MessageLog, get_message_log
from .records import Severity

_PACKAGE = __name__.split(".")[0]


def severity_for_level(levelno: int) -> Severity:
    """Map a logging level to a file severity"""
    if levelno >= logging.ERROR:
        return Severity.CRITICAL
    if levelno >= logging.WARNING:
        return Severity.WARNING
    if levelno >= logging.INFO:
        return Severity.INFO
    return Severity.NORMAL


class FileLogHandler(logging.Handler):
    """
    Logging handler that feeds records into a MessageLog

    Records from this package's own loggers are skipped so that
    diagnostics about the log file never end up in it.
    """

    def __init__(self, message_log: Optional[MessageLog] = None, level: int = logging.NOTSET):
        super().__init__(level)
        self.message_log = message_log or get_message_log()

    def emit(self, record: logging.LogRecord) -> None:
        if record.name == _PACKAGE or record.name.startswith(_PACKAGE + "."):
            return
        try:
            self.message_log.add_message(
                self.format(record),
                severity_for_level(record.levelno),
                timestamp=int(record.created),
            )
        except Exception:
            self.handleError(record)


def create_file_logger(
    name: str,
    config: Optional[LoggerConfig] = None,
    formatter: Optional[logging.Formatter] = None,
    level: int = logging.DEBUG,
) -> Tuple[logging.Logger, FileLogger]:
    """
    Create a logger whose records are written to a rotating file

    Args:
        name: Logger name
        config: File logger configuration
        formatter: Optional formatter for the message text
        level: Logger level

    Returns:
        The configured logger and the FileLogger behind it
    """
    message_log = MessageLog()
    file_logger = FileLogger(config, source=message_log)

    logger = logging.getLogger(name)

    # Remove existing handlers
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = FileLogHandler(message_log)
    handler.setFormatter(formatter or logging.Formatter("%(name)s: %(message)s"))

    logger.addHandler(handler)
    logger.setLevel(level)

    return logger, file_logger
