"""Render the ``SUMMARY.md`` navigation document for a mirrored book."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Mapping
from urllib.parse import quote

from KBMirror.io_utils import atomic_write_text
from KBMirror.models import Outcome, ProgressItem

__all__ = ["render_summary", "write_summary"]

LOGGER = logging.getLogger(__name__)

INDENT = "  "


def _escape_label(text: str) -> str:
    return text.replace("[", r"\[").replace("]", r"\]")


def _summary_line(item: ProgressItem) -> str:
    title = item.source_entry.title
    label = _escape_label(title)
    if item.outcome is Outcome.ARTICLE_OK:
        entry = f"[{label}]({quote(item.path)})"
    elif item.outcome is Outcome.LINK_SKIPPED:
        entry = f"[{label}]({item.source_entry.url})"
    else:
        entry = title
    return f"{INDENT * item.depth}- {entry}"


def render_summary(
    book_name: str, book_desc: str, progress_index: Mapping[str, ProgressItem]
) -> str:
    """Build the document text.

    Sections are plain bullets, saved articles link to their relative path,
    external links point at their original URL and failed articles are listed
    without a link. Nesting follows each item's recorded ancestry.
    """

    lines: List[str] = [f"# {book_name}", ""]
    if book_desc:
        lines.extend([f"> {book_desc}", ""])
    lines.extend(_summary_line(item) for item in progress_index.values())
    return "\n".join(lines) + "\n"


def write_summary(
    output_root: Path,
    book_name: str,
    book_desc: str,
    progress_index: Mapping[str, ProgressItem],
    *,
    filename: str = "SUMMARY.md",
) -> Path:
    """Write the summary into ``output_root``; an identical file is left untouched."""

    target = output_root / filename
    text = render_summary(book_name, book_desc, progress_index)
    if target.exists() and target.read_text(encoding="utf-8") == text:
        LOGGER.debug("Summary %s unchanged", target)
        return target
    atomic_write_text(target, text)
    return target
