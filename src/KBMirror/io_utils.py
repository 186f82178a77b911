"""Crash-safe filesystem primitives.

**Responsibilities**
--------------------
- Write article bodies and the summary document atomically: temporary file in
  the destination directory, ``fsync``, then :func:`os.replace`. A killed
  process leaves either the previous file or the new one, never a truncated
  mix.
- Create output directories idempotently.
"""

from __future__ import annotations

import logging
import os
import uuid
from contextlib import suppress
from pathlib import Path
from typing import Iterable

__all__ = ["atomic_write", "atomic_write_text", "ensure_directory"]

logger = logging.getLogger(__name__)


def ensure_directory(path: Path) -> Path:
    """Create ``path`` and any missing parents; existing directories are fine."""

    path.mkdir(parents=True, exist_ok=True)
    return path


def atomic_write(
    path: Path,
    chunks: Iterable[bytes],
    *,
    temp_suffix: str = ".part",
    make_parents: bool = True,
) -> int:
    """Atomically write ``chunks`` to ``path`` and return the byte count.

    Args:
        path: Destination file.
        chunks: Byte chunks to write in order; empty chunks are ignored.
        temp_suffix: Suffix for the temporary sibling file.
        make_parents: Create missing parent directories. When ``False`` a
            missing parent raises :class:`FileNotFoundError`.
    """

    if make_parents:
        path.parent.mkdir(parents=True, exist_ok=True)
    suffix = temp_suffix if temp_suffix.startswith(".") else f".{temp_suffix}"
    temp_path = path.with_name(f"{path.name}{suffix}.{uuid.uuid4().hex}")
    written = 0
    replaced = False
    try:
        with temp_path.open("wb") as handle:
            for chunk in chunks:
                if not chunk:
                    continue
                handle.write(chunk)
                written += len(chunk)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, path)
        replaced = True
        logger.debug("wrote %d bytes to %s", written, path)
        return written
    finally:
        if not replaced:
            with suppress(FileNotFoundError):
                temp_path.unlink()


def atomic_write_text(
    path: Path, text: str, *, encoding: str = "utf-8", make_parents: bool = True
) -> int:
    """Atomically write ``text`` to ``path`` using :func:`atomic_write`."""

    return atomic_write(path, [text.encode(encoding)], make_parents=make_parents)
