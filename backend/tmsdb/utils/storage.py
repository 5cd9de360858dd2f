from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import BinaryIO, Optional

from ..errors import PayloadTooLarge

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 1024 * 1024


def unique_file_name(prefix: str, extension: str) -> str:
    """<prefix>-<epoch-ms>-<random>.<ext>"""
    stamp = int(time.time() * 1000)
    suffix = int.from_bytes(os.urandom(4), "big") % 1_000_000_000
    extension = extension.lstrip(".").lower()
    return f"{prefix}-{stamp}-{suffix}.{extension}"


def stream_size(stream: BinaryIO) -> int:
    """Size of a seekable stream, leaving the position at the start."""
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def save_stream(stream: BinaryIO, dest_path: Path, *, max_bytes: Optional[int] = None) -> int:
    """
    Copy `stream` to `dest_path` in chunks and return the byte count.

    A partial file is removed when the size ceiling is crossed.
    """
    dest_path.parent.mkdir(parents=True, exist_ok=True)
    total = 0
    try:
        with dest_path.open("wb") as out:
            while True:
                chunk = stream.read(_CHUNK_SIZE)
                if not chunk:
                    break
                total += len(chunk)
                if max_bytes and total > max_bytes:
                    raise PayloadTooLarge()
                out.write(chunk)
    except Exception:
        delete_if_exists(dest_path)
        raise
    return total


def delete_if_exists(path: Optional[os.PathLike | str]) -> bool:
    if not path:
        return False
    p = Path(path)
    try:
        if p.exists():
            p.unlink()
            return True
    except OSError:
        logger.warning("Could not remove stored file", extra={"path": str(p)})
    return False
