"""
Background compression of retired backup files
"""

import logging
import os
import time
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import nullcontext
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, ContextManager, Optional

from .compression import DEFAULT_LEVEL, compress_stream

READ_CHUNK_SIZE = 512 * 1024  # Bytes
TEMP_MARKER = ".gz."

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[Path], Optional[Path]]


@dataclass
class CompressionJob:
    """One backup being compressed to a temporary destination"""

    source_path: Path
    temp_path: Path


@dataclass
class CompressionResult:
    """Outcome of a compression job"""

    source_path: Path
    temp_path: Path
    ok: bool
    final_path: Optional[Path] = None
    error: Optional[str] = None


def _base36(value: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    out = ""
    while True:
        value, rem = divmod(value, 36)
        out = digits[rem] + out
        if not value:
            return out


def temp_name_for(source: Path) -> Path:
    """Unique temporary destination for compressing ``source``"""
    token = _base36(time.time_ns())
    return source.with_name(f"{source.name}{TEMP_MARKER}{token}")


def source_for_temp(temp_path: Path) -> Path:
    """Plain backup a temporary compression file was produced from"""
    name = temp_path.name
    return temp_path.with_name(name[: name.rindex(TEMP_MARKER)])


def _restore_times(path: Path, stat: os.stat_result) -> None:
    """Copy access and modification times back onto ``path``"""
    os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns))
    # Creation and metadata-change times can't be set from Python


def _remove_quietly(path: Path) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove %s: %s", path, e)


def compress_file(
    job: CompressionJob,
    level: int = DEFAULT_LEVEL,
    lock: Optional[ContextManager[Any]] = None,
) -> CompressionResult:
    """
    Compress ``job.source_path`` into ``job.temp_path``

    The source is only removed after the destination has been written in
    full and given the source's timestamps. Both steps run under ``lock``
    so nobody can remove the destination in between. On failure the
    partial destination is deleted and the source is left as it was.
    """
    source = job.source_path
    dest = job.temp_path

    try:
        stat = os.stat(source)
    except OSError as e:
        return CompressionResult(source, dest, ok=False, error=f"Can't open {source}: {e}")

    try:
        src = open(source, "rb")
    except OSError as e:
        return CompressionResult(source, dest, ok=False, error=f"Can't open {source}: {e}")

    with src:
        try:
            out = open(dest, "xb")
        except OSError as e:
            return CompressionResult(source, dest, ok=False, error=f"Can't open {dest}: {e}")

        try:
            with out:
                ok = compress_stream(src, out, level, chunk_size=READ_CHUNK_SIZE)
        except OSError as e:
            ok = False
            logger.debug("Closing %s failed: %s", dest, e)

    if not ok:
        _remove_quietly(dest)
        return CompressionResult(source, dest, ok=False, error=f"Can't compress {source}")

    try:
        with lock or nullcontext():
            _restore_times(dest, stat)
            os.remove(source)
    except OSError as e:
        _remove_quietly(dest)
        return CompressionResult(source, dest, ok=False, error=f"Can't save to {dest}: {e}")

    return CompressionResult(source, dest, ok=True)


class CompressionWorker:
    """
    Runs compression jobs on a thread pool

    Every job compresses a different source file, so jobs never contend
    with each other. The completion callback runs on the worker thread
    and is expected to rename the temporary file into its final slot.
    """

    def __init__(
        self,
        level: int = DEFAULT_LEVEL,
        max_workers: int = 2,
        lock: Optional[ContextManager[Any]] = None,
    ):
        self.level = level
        self.lock = lock
        self.executor: Optional[ThreadPoolExecutor] = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="filelog-compress"
        )

    def submit(self, source: Path, on_complete: CompletionCallback) -> Optional["Future[CompressionResult]"]:
        """Schedule ``source`` for compression; returns None once shut down"""
        if self.executor is None:
            return None

        job = CompressionJob(source_path=Path(source), temp_path=temp_name_for(Path(source)))
        try:
            return self.executor.submit(self._run, job, on_complete)
        except RuntimeError:
            # Executor is shutting down
            return None

    def _run(self, job: CompressionJob, on_complete: CompletionCallback) -> CompressionResult:
        result = compress_file(job, self.level, self.lock)
        if not result.ok:
            logger.warning("Backup compression failed: %s", result.error)
            return result

        try:
            result.final_path = on_complete(job.temp_path)
        except OSError as e:
            result.error = f"Can't rename {job.temp_path}: {e}"
            logger.warning("Backup compression finished but %s", result.error)
        return result

    def shutdown(self, wait: bool = False) -> None:
        """Stop accepting jobs; running jobs finish in the background"""
        if self.executor:
            self.executor.shutdown(wait=wait)
            self.executor = None
