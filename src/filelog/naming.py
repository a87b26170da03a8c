"""
Backup file naming: <base>.bak[N][.gz]
"""

import logging
import os
import re
import threading
from pathlib import Path
from typing import List, Union

PathLike = Union[str, "os.PathLike[str]"]

BACKUP_SUFFIX = ".bak"
COMPRESSED_SUFFIX = ".gz"

logger = logging.getLogger(__name__)


def _candidate(base_path: Path, index: int, compressed: bool) -> Path:
    number = str(index) if index else ""
    suffix = COMPRESSED_SUFFIX if compressed else ""
    return base_path.with_name(f"{base_path.name}{BACKUP_SUFFIX}{number}{suffix}")


def next_backup_name(base_path: PathLike, compressed: bool) -> Path:
    """
    First free backup name for ``base_path``

    Tries ``<base>.bak`` then ``<base>.bak1``, ``<base>.bak2`` and so on.
    Nothing is created or reserved; use BackupNamer.claim to rename
    without racing other renamers.
    """
    base_path = Path(base_path)
    index = 0
    candidate = _candidate(base_path, index, compressed)
    while os.path.lexists(candidate):
        index += 1
        candidate = _candidate(base_path, index, compressed)
    return candidate


def backup_pattern(base_path: PathLike, compressed: bool) -> "re.Pattern[str]":
    """Regex matching the file names of one kind of backup"""
    name = re.escape(Path(base_path).name)
    suffix = re.escape(COMPRESSED_SUFFIX) if compressed else ""
    return re.compile(rf"^{name}{re.escape(BACKUP_SUFFIX)}\d*{suffix}$")


def list_backups(base_path: PathLike, compressed: bool) -> List[Path]:
    """Existing backups of one kind, oldest modification time first"""
    base_path = Path(base_path)
    pattern = backup_pattern(base_path, compressed)
    directory = base_path.parent

    entries = []
    try:
        candidates = list(directory.iterdir())
    except OSError:
        return []

    for path in candidates:
        if not pattern.match(path.name):
            continue
        try:
            stat = path.stat()
        except OSError:
            continue  # Removed while listing
        if path.is_file():
            entries.append((stat.st_mtime, path.name, path))

    entries.sort()
    return [path for _, _, path in entries]


class BackupNamer:
    """
    Single owner of the backup namespace

    Rotation, compression finalization and the eviction sweep all change
    the set of backup files. They take ``lock`` so a name picked by
    next_backup_name is still free when the rename happens.
    """

    def __init__(self):
        self.lock = threading.RLock()

    def claim(self, source: PathLike, base_path: PathLike, compressed: bool) -> Path:
        """Rename ``source`` to the next free backup slot and return it"""
        source = Path(source)
        with self.lock:
            while True:
                target = next_backup_name(base_path, compressed)
                try:
                    _rename_no_clobber(source, target)
                except FileExistsError:
                    continue  # Created by another process, try the next slot
                logger.debug("Renamed %s to %s", source, target)
                return target


def _rename_no_clobber(source: Path, target: Path) -> None:
    """Rename that fails instead of replacing an existing target"""
    try:
        os.link(source, target)
    except FileExistsError:
        raise
    except OSError:
        # No hard links on this filesystem
        if os.path.lexists(target):
            raise FileExistsError(str(target))
        os.rename(source, target)
        return
    os.unlink(source)
