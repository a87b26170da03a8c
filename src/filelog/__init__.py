"""
filelog

Size and age bounded log files with numbered, optionally gzip-compressed
backups.
"""

__version__ = "0.1.0"

from .compression import compress_bytes, compress_stream, decompress_bytes
from .config import (
    AgeType,
    LoggerConfig,
    get_default_config,
    set_default_config,
)
from .engine import RotationEngine, RotationState
from .file_logger import FileLogger
from .formatter import LogLineFormatter
from .handler import FileLogHandler, create_file_logger, severity_for_level
from .messages import MessageLog, get_message_log
from .naming import BackupNamer, list_backups, next_backup_name
from .records import LogRecord, Severity
from .timestamps import add_age, is_obsolete
from .worker import CompressionJob, CompressionResult, CompressionWorker

__all__ = [
    # Configuration
    "AgeType",
    "LoggerConfig",
    "get_default_config",
    "set_default_config",
    # Records and sources
    "LogRecord",
    "Severity",
    "MessageLog",
    "get_message_log",
    "LogLineFormatter",
    # Rotation
    "FileLogger",
    "RotationEngine",
    "RotationState",
    "BackupNamer",
    "next_backup_name",
    "list_backups",
    "add_age",
    "is_obsolete",
    # Compression
    "CompressionJob",
    "CompressionResult",
    "CompressionWorker",
    "compress_bytes",
    "compress_stream",
    "decompress_bytes",
    # Standard logging
    "FileLogHandler",
    "create_file_logger",
    "severity_for_level",
]
