# === NAVMAP v1 ===
# {
#   "module": "KBMirror.errors",
#   "purpose": "Error taxonomy for knowledge-base mirroring runs.",
#   "sections": [
#     {
#       "id": "kbmirrorerror",
#       "name": "KBMirrorError",
#       "anchor": "class-kbmirrorerror",
#       "kind": "class"
#     },
#     {
#       "id": "booknotfounderror",
#       "name": "BookNotFoundError",
#       "anchor": "class-booknotfounderror",
#       "kind": "class"
#     },
#     {
#       "id": "emptytocerror",
#       "name": "EmptyTocError",
#       "anchor": "class-emptytocerror",
#       "kind": "class"
#     },
#     {
#       "id": "progresswriteerror",
#       "name": "ProgressWriteError",
#       "anchor": "class-progresswriteerror",
#       "kind": "class"
#     },
#     {
#       "id": "progresscorrupterror",
#       "name": "ProgressCorruptError",
#       "anchor": "class-progresscorrupterror",
#       "kind": "class"
#     },
#     {
#       "id": "articlefetcherror",
#       "name": "ArticleFetchError",
#       "anchor": "class-articlefetcherror",
#       "kind": "class"
#     },
#     {
#       "id": "imagelocalizationerror",
#       "name": "ImageLocalizationError",
#       "anchor": "class-imagelocalizationerror",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Error taxonomy for knowledge-base mirroring runs.

Responsibilities
----------------
- Separate **fatal** conditions (unresolvable book, empty table of contents,
  progress log failures) from **per-entry** failures that the traversal engine
  records and moves past.
- Carry enough context (URLs, paths, uuids) for the end-of-run report without
  forcing callers to parse messages.

Design Notes
------------
- Fatal errors derive from :class:`FatalMirrorError`. The CLI catches them in
  one ``except`` clause, prints the message and exits with code 1; anything
  else is reported as an unexpected error.
- :class:`ArticleFetchError` is the only type the article downloader raises on
  purpose; the engine still treats any exception from the downloader as a
  recoverable failure of that one entry.
"""

from __future__ import annotations

from pathlib import Path

__all__ = (
    "KBMirrorError",
    "FatalMirrorError",
    "BookNotFoundError",
    "EmptyTocError",
    "ProgressWriteError",
    "ProgressCorruptError",
    "ArticleFetchError",
    "ImageLocalizationError",
)


class KBMirrorError(Exception):
    """Base class for all mirroring errors."""


class FatalMirrorError(KBMirrorError):
    """Raised for conditions that abort the whole run."""


class BookNotFoundError(FatalMirrorError):
    """Raised when the source URL does not resolve to a knowledge base."""

    def __init__(self, url: str) -> None:
        super().__init__(f"No book id found for {url}")
        self.url = url


class EmptyTocError(FatalMirrorError):
    """Raised when the knowledge base exposes no table-of-contents entries."""

    def __init__(self, book_id: int | str) -> None:
        super().__init__(f"No table of contents found for book {book_id}")
        self.book_id = book_id


class ProgressWriteError(FatalMirrorError):
    """Raised when a progress record cannot be made durable."""

    def __init__(self, path: Path, uuid: str, cause: BaseException) -> None:
        super().__init__(f"Failed to record progress for {uuid} in {path}: {cause}")
        self.path = path
        self.uuid = uuid


class ProgressCorruptError(FatalMirrorError):
    """Raised when an existing progress log cannot be interpreted."""

    def __init__(self, path: Path, line_number: int, reason: str) -> None:
        super().__init__(f"{path}:{line_number}: {reason}")
        self.path = path
        self.line_number = line_number
        self.reason = reason


class ArticleFetchError(KBMirrorError):
    """Raised when a single article cannot be fetched or written."""

    def __init__(self, message: str, *, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class ImageLocalizationError(ArticleFetchError):
    """Raised when an embedded image cannot be copied next to its article."""
