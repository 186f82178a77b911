# === NAVMAP v1 ===
# {
#   "module": "KBMirror.progress",
#   "purpose": "Append-only JSONL progress log that makes mirroring runs resumable.",
#   "sections": [
#     {
#       "id": "item-to-record",
#       "name": "item_to_record",
#       "anchor": "function-item-to-record",
#       "kind": "function"
#     },
#     {
#       "id": "record-to-item",
#       "name": "record_to_item",
#       "anchor": "function-record-to-item",
#       "kind": "function"
#     },
#     {
#       "id": "read-progress-log",
#       "name": "read_progress_log",
#       "anchor": "function-read-progress-log",
#       "kind": "function"
#     },
#     {
#       "id": "progressstore",
#       "name": "ProgressStore",
#       "anchor": "class-progressstore",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Append-only JSONL progress log that makes mirroring runs resumable.

Responsibilities
----------------
- Persist one ``progress`` record per disposed table-of-contents entry and
  make it durable (flush + ``fsync``) before the engine moves on.
- Rebuild a :class:`~KBMirror.state.RunState` from the log at startup so a
  new run skips everything an earlier run already handled.

Design Notes
------------
- The log is only ever appended to. A crash in the middle of a write can leave
  a torn final line; it is ignored on load and cut off before the next append
  so the file stays line-aligned.
- Records carry ``schema_version`` and ``record_type`` fields in the same
  shape as the download manifests, so other record types can share the file
  later without confusing older readers.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from types import TracebackType
from typing import Any, Dict, List, Mapping, Optional, TextIO

from KBMirror.errors import ProgressCorruptError, ProgressWriteError
from KBMirror.models import Outcome, ProgressItem, TocEntry
from KBMirror.state import RunState

__all__ = [
    "PROGRESS_SCHEMA_VERSION",
    "ProgressLog",
    "ProgressStore",
    "item_to_record",
    "read_progress_log",
    "record_to_item",
]

PROGRESS_SCHEMA_VERSION = 1
RECORD_TYPE = "progress"

logger = logging.getLogger(__name__)


def _utc_timestamp() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def item_to_record(item: ProgressItem, success: bool) -> Dict[str, Any]:
    """Serialise ``item`` into a progress log record."""

    return {
        "record_type": RECORD_TYPE,
        "schema_version": PROGRESS_SCHEMA_VERSION,
        "timestamp": _utc_timestamp(),
        "uuid": item.uuid,
        "path": item.path,
        "path_segments": list(item.path_segments),
        "path_uuids": list(item.path_uuids),
        "toc": item.source_entry.to_payload(),
        "outcome": item.outcome.value,
        "success": bool(success),
    }


def record_to_item(record: Mapping[str, Any]) -> ProgressItem:
    """Rebuild a :class:`ProgressItem` from a decoded record.

    Raises:
        KeyError: A required field is missing.
        ValueError: The outcome value is unknown.
    """

    toc = record["toc"]
    if not isinstance(toc, Mapping):
        raise ValueError("toc must be an object")
    return ProgressItem(
        uuid=str(record["uuid"]),
        path=str(record["path"]),
        path_segments=tuple(str(part) for part in record["path_segments"]),
        path_uuids=tuple(str(part) for part in record["path_uuids"]),
        source_entry=TocEntry.from_payload(toc),
        outcome=Outcome(record["outcome"]),
    )


@dataclass
class ProgressLog:
    """Decoded contents of a progress log file."""

    items: List[ProgressItem]
    valid_bytes: int
    torn_tail: bool = False
    needs_newline: bool = False


def _decode_line(path: Path, line_number: int, raw: bytes) -> Optional[ProgressItem]:
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ProgressCorruptError(path, line_number, f"invalid JSON ({exc})") from exc
    if not isinstance(data, dict):
        raise ProgressCorruptError(
            path, line_number, f"records must be JSON objects, got {type(data).__name__}"
        )
    if data.get("record_type") != RECORD_TYPE:
        return None
    version = data.get("schema_version")
    if version != PROGRESS_SCHEMA_VERSION:
        raise ProgressCorruptError(
            path,
            line_number,
            f"unsupported schema_version {version!r}; expected {PROGRESS_SCHEMA_VERSION}",
        )
    try:
        return record_to_item(data)
    except (KeyError, TypeError, ValueError) as exc:
        raise ProgressCorruptError(path, line_number, f"malformed record ({exc!r})") from exc


def read_progress_log(path: Path) -> ProgressLog:
    """Read every progress record in ``path`` in file order.

    A missing file reads as an empty log. The final line may be torn by an
    interrupted write; if it does not decode it is reported through
    ``torn_tail`` instead of raising.
    """

    if not path.exists():
        return ProgressLog(items=[], valid_bytes=0)

    data = path.read_bytes()
    items: List[ProgressItem] = []
    if data.endswith(b"\n") or not data:
        body, tail = data, b""
    else:
        cut = data.rfind(b"\n") + 1
        body, tail = data[:cut], data[cut:]

    lines = body.split(b"\n")
    for line_number, raw in enumerate(lines, start=1):
        if not raw.strip():
            continue
        item = _decode_line(path, line_number, raw)
        if item is not None:
            items.append(item)

    if not tail.strip():
        return ProgressLog(items=items, valid_bytes=len(data))

    tail_number = body.count(b"\n") + 1
    try:
        item = _decode_line(path, tail_number, tail)
    except ProgressCorruptError as exc:
        logger.warning(
            "Ignoring incomplete progress record at %s:%d (%s)", path, tail_number, exc.reason
        )
        return ProgressLog(items=items, valid_bytes=len(body), torn_tail=True)
    if item is not None:
        items.append(item)
    return ProgressLog(items=items, valid_bytes=len(data), needs_newline=True)


class ProgressStore:
    """Durable record of which entries have been disposed of.

    Usage::

        with ProgressStore(book_path) as store:
            state = store.load(total_entries=len(toc))
            ...
            store.append(state, item, success=True)
    """

    def __init__(self, root: Path, filename: str = "progress.jsonl") -> None:
        self.path = root / filename
        self._handle: Optional[TextIO] = None
        self._previous: List[ProgressItem] = []
        self._log: Optional[ProgressLog] = None

    @property
    def is_interrupted(self) -> bool:
        """``True`` when an earlier run left progress records behind."""
        return bool(self._previous)

    @property
    def previous_items(self) -> List[ProgressItem]:
        return list(self._previous)

    def load(self, total_entries: int) -> RunState:
        """Reconstruct run state from the persisted log."""

        self._log = read_progress_log(self.path)
        state = RunState(total_entries=total_entries)
        self._previous = []
        for item in self._log.items:
            if item.uuid in state.progress_index:
                logger.debug("Duplicate progress record for %s ignored", item.uuid)
                continue
            state.register(item)
            self._previous.append(item)
        state.completed_count = len(state.progress_index)
        if self._previous:
            logger.info(
                "Resuming from %s: %d of %d entries already processed",
                self.path,
                state.completed_count,
                total_entries,
            )
        return state

    def append(self, state: RunState, item: ProgressItem, success: bool) -> None:
        """Durably record ``item`` and advance ``state.completed_count``.

        Raises:
            ProgressWriteError: The record could not be written and synced.
        """

        line = json.dumps(item_to_record(item, success), sort_keys=True, ensure_ascii=False)
        try:
            handle = self._open()
            handle.write(line + "\n")
            handle.flush()
            os.fsync(handle.fileno())
        except OSError as exc:
            raise ProgressWriteError(self.path, item.uuid, exc) from exc
        state.completed_count += 1

    def _open(self) -> TextIO:
        if self._handle is not None:
            return self._handle
        self.path.parent.mkdir(parents=True, exist_ok=True)
        log = self._log
        if log is not None and log.torn_tail:
            os.truncate(self.path, log.valid_bytes)
            logger.debug("Truncated torn progress tail in %s", self.path)
        handle = self.path.open("a", encoding="utf-8")
        if log is not None and log.needs_newline:
            handle.write("\n")
        self._log = None
        self._handle = handle
        return handle

    def close(self) -> None:
        if self._handle is not None and not self._handle.closed:
            self._handle.close()
        self._handle = None

    def __enter__(self) -> "ProgressStore":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.close()
