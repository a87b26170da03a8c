"""
File logger: writes the message log to a rotating file
"""

import logging
import os
import threading
from pathlib import Path
from typing import List, Optional, Union

from .config import AgeType, LoggerConfig, get_default_config
from .engine import RotationEngine
from .formatter import LogLineFormatter
from .messages import MessageLog, get_message_log
from .records import LogRecord, Severity
from .worker import CompressionResult

logger = logging.getLogger(__name__)


class FileLogger:
    """
    Appends every message of a MessageLog to ``<directory>/<filename>``

    Writes are buffered and flushed by a single-shot timer at most
    ``flush_interval`` seconds after the first unflushed write. Appends,
    flushes and setters are serialized by one lock; compression runs in
    the background.
    """

    def __init__(
        self,
        config: Optional[LoggerConfig] = None,
        source: Optional[MessageLog] = None,
        engine: Optional[RotationEngine] = None,
    ):
        self.config = config or get_default_config()
        self.source = source or get_message_log()
        self.formatter = LogLineFormatter()
        self.engine = engine or RotationEngine(self.config, report=self._report)

        self._lock = threading.RLock()
        self._flusher: Optional[threading.Timer] = None
        self._directory: Optional[str] = None
        self._closed = False

        self.change_path(self.config.directory)

        for record in self.source.get_messages():
            self.append(record)
        self.source.subscribe(self.append)

    @property
    def path(self) -> Path:
        return self.engine.base_path

    @property
    def closed(self) -> bool:
        return self._closed

    def _report(self, text: str, severity: Severity) -> None:
        self.source.add_message(text, severity)

    # Writing

    def append(self, record: LogRecord) -> None:
        """Write one record; dropped while the file is not open"""
        with self._lock:
            if self._closed:
                return

            self.engine.write(self.formatter.format_bytes(record))
            # A rotation before the write leaves the record unflushed in the new file
            if self.engine.is_open and self.engine.size > 0 and self._flusher is None:
                self._flusher = threading.Timer(self.config.flush_interval, self._flush_timeout)
                self._flusher.daemon = True
                self._flusher.start()

    def _flush_timeout(self) -> None:
        with self._lock:
            if self._flusher is threading.current_thread():
                self._flusher = None
            self.engine.flush()

    def flush(self) -> None:
        with self._lock:
            self.engine.flush()

    def _stop_flusher(self) -> None:
        if self._flusher:
            self._flusher.cancel()
            self._flusher = None

    # Configuration

    def change_path(self, directory: Union[str, "os.PathLike[str]"]) -> None:
        """
        Move the log file to ``directory``

        Directories are compared as plain strings, so a differently spelled
        path to the same place still counts as a change.
        """
        directory = os.fspath(directory)
        with self._lock:
            if self._closed or directory == self._directory:
                return

            self._stop_flusher()
            self.engine.close()

            self._directory = directory
            self.config.directory = directory
            self.engine.prepare()
            self.engine.open()

    def set_max_size(self, size: int) -> None:
        if size <= 0:
            raise ValueError("max size must be positive")
        with self._lock:
            self.config.max_size_bytes = size

    def set_age(self, age: int) -> None:
        if age < 0:
            raise ValueError("age must not be negative")
        with self._lock:
            self.config.max_age = age

    def set_age_type(self, age_type: Union[AgeType, int]) -> None:
        """Unknown values are kept and treated as years"""
        try:
            age_type = AgeType(age_type)
        except ValueError:
            logger.debug("Unknown age type %r, treating as years", age_type)
        with self._lock:
            self.config.age_type = age_type

    def set_backup(self, enabled: bool) -> None:
        with self._lock:
            self.config.backup_enabled = bool(enabled)

    def set_compress_backups(self, enabled: bool) -> None:
        with self._lock:
            self.config.compress_backups = bool(enabled)

    def set_delete_old(self, enabled: bool) -> None:
        with self._lock:
            self.config.delete_old_enabled = bool(enabled)

    # Maintenance

    def delete_old(self) -> List[Path]:
        """Run the eviction sweep now"""
        with self._lock:
            return self.engine.delete_old()

    def wait_for_compression(self, timeout: Optional[float] = None) -> List[CompressionResult]:
        return self.engine.wait_for_compression(timeout)

    def close(self) -> None:
        """Stop logging; compressions already running finish on their own"""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self.source.unsubscribe(self.append)
            self._stop_flusher()
            self.engine.shutdown()

    def __enter__(self) -> "FileLogger":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
