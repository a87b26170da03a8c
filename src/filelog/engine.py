"""
Rotation policy for the active log file

The engine owns the single open log stream and decides when it is turned
into a backup. All methods except the compression completion callback are
expected to be called from one timeline (FileLogger serializes them).
"""

import logging
import os
import re
import threading
from concurrent.futures import Future, wait
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Callable, Dict, List, Optional, Set

from .compression import verify_file
from .config import LoggerConfig
from .naming import BACKUP_SUFFIX, BackupNamer, list_backups
from .records import Severity
from .timestamps import is_obsolete, path_is_obsolete
from .worker import TEMP_MARKER, CompressionResult, CompressionWorker, source_for_temp

OPEN_ERROR_MESSAGE = (
    "An error occurred while trying to open the log file. "
    "Logging to file is disabled."
)

logger = logging.getLogger(__name__)

ReportCallback = Callable[[str, Severity], None]


class RotationState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    ROTATION_PENDING = "rotation_pending"


class RotationEngine:
    """
    Size and age based rotation of ``<directory>/<filename>``

    ``config`` is shared with the owner, so setter changes apply to the
    next decision without telling the engine.
    """

    def __init__(
        self,
        config: LoggerConfig,
        namer: Optional[BackupNamer] = None,
        worker: Optional[CompressionWorker] = None,
        report: Optional[ReportCallback] = None,
    ):
        self.config = config
        self.namer = namer or BackupNamer()
        self.worker = worker or CompressionWorker(
            level=config.compression_level, lock=self.namer.lock
        )
        self.report = report

        self.state = RotationState.CLOSED
        self.stream: Optional[BinaryIO] = None
        self.size = 0

        self._alive = True
        self._pending: Dict["Future[CompressionResult]", str] = {}
        self._pending_lock = threading.Lock()
        self._recovered: Set[str] = set()

    @property
    def base_path(self) -> Path:
        return Path(self.config.log_path)

    @property
    def is_open(self) -> bool:
        return self.state == RotationState.OPEN

    # Active file

    def open(self) -> bool:
        """Open the active file for appending, creating it if needed"""
        if self.stream:
            return True

        path = self.base_path
        stream = None
        try:
            os.makedirs(path.parent, exist_ok=True)
            stream = open(path, "ab")
            os.chmod(path, 0o600)
            self.size = os.fstat(stream.fileno()).st_size
        except OSError as e:
            if stream:
                stream.close()
            self.stream = None
            self.state = RotationState.CLOSED
            logger.warning("Could not open log file %s: %s", path, e)
            if self.report:
                self.report(OPEN_ERROR_MESSAGE, Severity.CRITICAL)
            return False

        self.stream = stream
        self.state = RotationState.OPEN
        return True

    def close(self) -> None:
        """Flush and close the active file"""
        stream, self.stream = self.stream, None
        self.state = RotationState.CLOSED
        if stream is None:
            return
        try:
            stream.close()
        except OSError as e:
            logger.warning("Error closing log file %s: %s", self.base_path, e)

    def flush(self) -> None:
        if self.stream:
            try:
                self.stream.flush()
            except OSError as e:
                logger.warning("Error flushing log file %s: %s", self.base_path, e)

    def write(self, data: bytes) -> bool:
        """
        Append ``data`` to the active file, rotating around it as needed

        A record that would push a non-empty file past the size limit goes
        to a fresh file. A file that reaches the limit after a write is
        rotated out together with the record that filled it. Returns True
        if a rotation happened. Dropped silently while the file is closed.
        """
        if not self.is_open:
            return False

        rotated = False
        if self._rotation_due(len(data)):
            self.rotate()
            rotated = True
            if not self.is_open:
                return rotated

        try:
            self.stream.write(data)
        except OSError as e:
            logger.warning("Error writing to log file %s: %s", self.base_path, e)
            return rotated
        self.size += len(data)

        if self.config.backup_enabled and self.size >= self.config.max_size_bytes:
            self.rotate()
            rotated = True
        return rotated

    def _rotation_due(self, incoming: int) -> bool:
        return (
            self.config.backup_enabled
            and self.size > 0
            and self.size + incoming > self.config.max_size_bytes
        )

    # Rotation

    def rotate(self, reopen: bool = True) -> Optional[Path]:
        """Close the active file, turn it into a backup and reopen"""
        self.flush()
        self.state = RotationState.ROTATION_PENDING
        stream, self.stream = self.stream, None
        if stream:
            try:
                stream.close()
            except OSError as e:
                logger.warning("Error closing log file %s: %s", self.base_path, e)

        backup = self._backup_active_file()
        self.state = RotationState.CLOSED
        self.size = 0

        if reopen:
            self.open()
        return backup

    def _backup_active_file(self) -> Optional[Path]:
        base = self.base_path
        if not base.exists():
            return None

        try:
            backup = self.namer.claim(base, base, compressed=False)
        except OSError as e:
            # Left in place; the next write re-checks the size
            logger.warning("Could not back up log file %s: %s", base, e)
            return None

        logger.debug("Rotated %s to %s", base, backup)
        if self.config.compress_backups:
            self._schedule_compression(backup)
        return backup

    def prepare(self) -> None:
        """
        Startup pass for the current path; the file must be closed

        Finishes interrupted compressions, runs the eviction sweep when
        enabled, then drops an obsolete active file or rotates out an
        oversized one.
        """
        self.recover()
        if self.config.delete_old_enabled:
            self.delete_old()

        base = self.base_path
        if path_is_obsolete(base, self.config.age_type, self.config.max_age):
            try:
                os.remove(base)
                logger.debug("Removed obsolete log file %s", base)
            except OSError as e:
                logger.warning("Could not remove obsolete log file %s: %s", base, e)
        elif self.config.backup_enabled and _file_size(base) >= self.config.max_size_bytes:
            self._backup_active_file()

    # Eviction

    def delete_old(self) -> List[Path]:
        """
        Remove obsolete backups, oldest first

        Only backups of the current kind (compressed or plain) are looked at.
        The walk stops at the first backup that is not obsolete and assumes
        every newer one is younger. Files touched by other tools can break
        that assumption and survive a sweep.
        """
        deleted = []
        with self.namer.lock:
            for path in list_backups(self.base_path, self.config.compress_backups):
                try:
                    modified = os.stat(path).st_mtime
                except OSError:
                    continue  # Already gone
                if not is_obsolete(modified, self.config.age_type, self.config.max_age):
                    break
                try:
                    os.remove(path)
                except OSError as e:
                    logger.warning("Could not remove old backup %s: %s", path, e)
                    continue
                deleted.append(path)

        if deleted:
            logger.debug("Removed %d old backup(s)", len(deleted))
        return deleted

    # Compression

    def _schedule_compression(self, backup: Path) -> None:
        future = self.worker.submit(backup, self._finish_compression)
        if future is None:
            return
        with self._pending_lock:
            self._pending = {f: src for f, src in self._pending.items() if not f.done()}
            self._pending[future] = os.path.realpath(backup)

    def _in_flight_sources(self) -> Set[str]:
        with self._pending_lock:
            return {src for f, src in self._pending.items() if not f.done()}

    def _finish_compression(self, temp_path: Path) -> Optional[Path]:
        """Runs on a worker thread once ``temp_path`` is complete"""
        if not self._alive:
            return None
        base = temp_path.with_name(self.config.filename)
        final = self.namer.claim(temp_path, base, compressed=True)
        logger.debug("Compressed backup saved as %s", final)
        return final

    def wait_for_compression(self, timeout: Optional[float] = None) -> List[CompressionResult]:
        """
        Wait for scheduled compressions and return the finished results

        Jobs that were already done when a later rotation scheduled another
        one are no longer tracked and are not included.
        """
        with self._pending_lock:
            pending = list(self._pending)

        done, _ = wait(pending, timeout=timeout)
        with self._pending_lock:
            self._pending = {f: src for f, src in self._pending.items() if f not in done}
        return [f.result() for f in pending if f in done]

    def recover(self) -> List[Path]:
        """
        Finish compressions interrupted by a previous process

        A temporary file whose plain source still exists is partial and is
        deleted. One whose source is gone was complete; it is checked and
        moved into a compressed backup slot. Temporary files of this
        engine's own running jobs are left alone. Each directory is only
        recovered once, however its path is spelled.
        """
        base = self.base_path
        directory = os.path.realpath(base.parent)
        if directory in self._recovered:
            return []
        self._recovered.add(directory)

        pattern = re.compile(
            rf"^{re.escape(base.name + BACKUP_SUFFIX)}\d*{re.escape(TEMP_MARKER)}[0-9a-z]+$"
        )
        try:
            leftovers = [p for p in base.parent.iterdir() if pattern.match(p.name)]
        except OSError:
            return []

        recovered = []
        with self.namer.lock:
            in_flight = self._in_flight_sources()
            for temp in leftovers:
                source = source_for_temp(temp)
                if os.path.realpath(source) in in_flight:
                    continue
                try:
                    if source.exists() or not verify_file(temp):
                        os.remove(temp)
                        logger.debug("Removed incomplete compressed backup %s", temp)
                        continue
                    recovered.append(self.namer.claim(temp, base, compressed=True))
                except OSError as e:
                    logger.warning("Could not recover %s: %s", temp, e)
        return recovered

    def shutdown(self) -> None:
        """Close the file; running compressions finish without callbacks"""
        self.close()
        self._alive = False
        self.worker.shutdown(wait=False)


def _file_size(path: Path) -> int:
    try:
        return os.stat(path).st_size
    except OSError:
        return 0
