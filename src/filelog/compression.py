"""
Gzip compression primitives used for backup files
"""

import gzip
import io
import logging
import shutil
import zlib
from typing import BinaryIO, Tuple

DEFAULT_LEVEL = 6
CHUNK_SIZE = 128 * 1024  # Bytes

logger = logging.getLogger(__name__)


def compress_stream(
    source: BinaryIO,
    dest: BinaryIO,
    level: int = DEFAULT_LEVEL,
    chunk_size: int = CHUNK_SIZE,
) -> bool:
    """
    Gzip everything readable from ``source`` into ``dest``

    Copies ``chunk_size`` bytes at a time so large files never sit in
    memory. ``dest`` is left open. Returns False on any codec or IO error.
    """
    try:
        # mtime=0 keeps the output independent of when it was written
        with gzip.GzipFile(filename="", mode="wb", compresslevel=level, fileobj=dest, mtime=0) as gz:
            shutil.copyfileobj(source, gz, chunk_size)
        return True
    except (OSError, ValueError, EOFError, zlib.error) as e:
        logger.debug("Compression failed: %s", e)
        return False


def compress_bytes(data: bytes, level: int = DEFAULT_LEVEL) -> Tuple[bytes, bool]:
    """Gzip a buffer; empty input is reported as a failure"""
    if not data:
        return b"", False

    output = io.BytesIO()
    ok = compress_stream(io.BytesIO(data), output, level)
    return output.getvalue(), ok


def decompress_bytes(data: bytes) -> Tuple[bytes, bool]:
    """Inverse of compress_bytes"""
    if not data:
        return b"", False

    try:
        return gzip.decompress(data), True
    except (OSError, EOFError, zlib.error) as e:
        # BadGzipFile is an OSError; a truncated stream raises EOFError
        logger.debug("Decompression failed: %s", e)
        return b"", False


def verify_file(path) -> bool:
    """Decode a gzip file to the end to check it is complete"""
    try:
        with gzip.open(path, "rb") as f:
            while f.read(CHUNK_SIZE):
                pass
        return True
    except (OSError, EOFError, zlib.error):
        return False
