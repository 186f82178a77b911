# === NAVMAP v1 ===
# {
#   "module": "KBMirror.traversal",
#   "purpose": "Single-pass, resumable walk over a flat table of contents.",
#   "sections": [
#     {
#       "id": "entryclass",
#       "name": "EntryClass",
#       "anchor": "class-entryclass",
#       "kind": "class"
#     },
#     {
#       "id": "classify-entry",
#       "name": "classify_entry",
#       "anchor": "function-classify-entry",
#       "kind": "function"
#     },
#     {
#       "id": "resolve-ancestry",
#       "name": "resolve_ancestry",
#       "anchor": "function-resolve-ancestry",
#       "kind": "function"
#     },
#     {
#       "id": "traversalengine",
#       "name": "TraversalEngine",
#       "anchor": "class-traversalengine",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Single-pass, resumable walk over a flat table of contents.

Responsibilities
----------------
- Turn each :class:`~KBMirror.models.TocEntry` into exactly one disposition:
  a directory, an article file, a recorded failure to create either, or a
  warning for an external link. Targets that resolve outside the book
  directory are recorded as failures and never written.
- Rebuild every entry's output path from parent references using only the
  entries already recorded in the run's progress index.
- Persist each disposition through the :class:`~KBMirror.progress.ProgressStore`
  before touching the next entry.

Design Notes
------------
- Entries are processed strictly one at a time. A child's path depends on its
  parent's progress item being registered first.
- Ancestor walks stop at the first parent that has not been disposed. An entry
  that shows up before its parent therefore gets a path rooted at itself
  rather than an error.
- Article failures are returned as :class:`~KBMirror.models.EntryResult`
  values and recorded in the run's :class:`~KBMirror.report.FailureAggregator`.
  Only :class:`~KBMirror.errors.ProgressWriteError` escapes :meth:`TraversalEngine.run`.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, Protocol, Tuple

from KBMirror.io_utils import ensure_directory
from KBMirror.models import (
    ArticleRequest,
    EntryResult,
    EntryStatus,
    Outcome,
    ProgressItem,
    TocEntry,
    TocType,
)
from KBMirror.progress import ProgressStore
from KBMirror.report import RunReport
from KBMirror.sanitize import join_segments, sanitize_segment
from KBMirror.state import RunState

__all__ = [
    "ArticleFetcher",
    "EntryClass",
    "TraversalEngine",
    "classify_entry",
    "resolve_ancestry",
]

LOGGER = logging.getLogger(__name__)


class ArticleFetcher(Protocol):
    """Anything that can turn an :class:`ArticleRequest` into a file on disk."""

    def download(self, request: ArticleRequest) -> None:
        """Fetch and write the article, raising on any failure."""


EntryCallback = Callable[[EntryResult, RunState], None]


class EntryClass(Enum):
    """How the engine disposes of an entry."""

    CONTAINER = "container"
    LEAF = "leaf"


def classify_entry(entry: TocEntry) -> Optional[EntryClass]:
    """Return the disposition class for ``entry`` or ``None`` when it produces nothing."""

    kind = entry.kind
    if kind is None:
        return None
    if kind in (TocType.TITLE, TocType.LINK) or entry.child_uuid:
        return EntryClass.CONTAINER
    if entry.url:
        return EntryClass.LEAF
    return None


def resolve_ancestry(entry: TocEntry, state: RunState) -> Tuple[List[str], List[str]]:
    """Walk parent references through ``state`` and return root-first segments and uuids."""

    segments: List[str] = []
    uuids: List[str] = []
    seen: set[str] = set()
    current: Optional[TocEntry] = entry
    while current is not None and current.uuid not in seen:
        seen.add(current.uuid)
        segments.insert(0, sanitize_segment(current.title))
        uuids.insert(0, current.uuid)
        parent = state.lookup(current.parent_uuid)
        current = parent.source_entry if parent is not None else None
    return segments, uuids


class TraversalEngine:
    """Drives directory creation and article downloads for one book.

    Args:
        book_path: Root directory of the mirrored book.
        book_id: Remote identifier passed through to the article fetcher.
        store: Progress store that records every disposition.
        fetcher: Article downloader used for leaf entries.
        article_url_prefix: Public URL prefix used for report links and
            article footers.
        content_extension: Suffix appended to article file names.
        skip_image_localization: Forwarded to each :class:`ArticleRequest`.
        make_directory: Idempotent directory factory.
        on_entry: Optional callback invoked after every entry, skipped or not.
    """

    def __init__(
        self,
        *,
        book_path: Path,
        book_id: int | str,
        store: ProgressStore,
        fetcher: ArticleFetcher,
        article_url_prefix: str = "",
        content_extension: str = ".md",
        skip_image_localization: bool = False,
        make_directory: Callable[[Path], Any] = ensure_directory,
        on_entry: Optional[EntryCallback] = None,
    ) -> None:
        self.book_path = book_path
        self.book_id = book_id
        self.store = store
        self.fetcher = fetcher
        self.article_url_prefix = article_url_prefix.rstrip("/")
        self.content_extension = content_extension
        self.skip_image_localization = skip_image_localization
        self.make_directory = make_directory
        self.on_entry = on_entry

    def run(self, entries: Iterable[TocEntry], state: RunState) -> RunReport:
        """Process ``entries`` in order and return the aggregated report."""

        for entry in entries:
            result = self.process_entry(entry, state)
            if self.on_entry is not None:
                self.on_entry(result, state)
        report = state.failures.summary()
        LOGGER.info(
            "Traversal finished: %d/%d entries processed, %d warnings, %d errors",
            state.completed_count,
            state.total_entries,
            report.warning_count,
            report.error_count,
        )
        return report

    def process_entry(self, entry: TocEntry, state: RunState) -> EntryResult:
        """Dispose of a single entry, or skip it."""

        if entry.kind is None:
            return EntryResult(EntryStatus.SKIPPED, entry, reason="unrecognized type")
        if state.lookup(entry.uuid) is not None:
            return EntryResult(EntryStatus.SKIPPED, entry, reason="already processed")

        entry_class = classify_entry(entry)
        if entry_class is EntryClass.CONTAINER:
            return self._dispose_container(entry, state)
        if entry_class is EntryClass.LEAF:
            return self._dispose_article(entry, state)
        return EntryResult(EntryStatus.SKIPPED, entry, reason="no content")

    def article_url(self, entry: TocEntry) -> str:
        return f"{self.article_url_prefix}/{entry.url}"

    def _contains(self, target: Path) -> bool:
        """``True`` when ``target`` stays inside the book directory."""
        return target.resolve().is_relative_to(self.book_path.resolve())

    def _create_directory(self, segments: List[str]) -> Optional[str]:
        """Create the container directory, returning a failure reason instead of raising."""

        target = self.book_path.joinpath(*segments)
        if not self._contains(target):
            return f"path {join_segments(segments)} escapes the book directory"
        try:
            self.make_directory(target)
        except OSError as exc:
            LOGGER.debug("Directory %s failed", target, exc_info=True)
            return f"create directory Error {target}: {exc}"
        return None

    def _dispose_container(self, entry: TocEntry, state: RunState) -> EntryResult:
        segments, uuids = resolve_ancestry(entry, state)
        is_link = entry.kind is TocType.LINK
        reason = None if is_link else self._create_directory(segments)
        if is_link:
            outcome = Outcome.LINK_SKIPPED
        elif reason is None:
            outcome = Outcome.DIR_CREATED
        else:
            outcome = Outcome.DIR_FAILED
        item = ProgressItem(
            uuid=entry.uuid,
            path=join_segments(segments),
            path_segments=tuple(segments),
            path_uuids=tuple(uuids),
            source_entry=entry,
            outcome=outcome,
        )
        if is_link:
            state.failures.record_warning(item)
        elif reason is not None:
            state.failures.record_error(item, self.article_url(entry) if entry.url else "", reason)
        state.register(item)
        self.store.append(state, item, success=outcome is Outcome.DIR_CREATED)
        LOGGER.debug("%s %s", item.outcome.value, item.path)
        if is_link:
            return EntryResult(EntryStatus.WARNING, entry, item=item, reason="external link")
        if reason is not None:
            return EntryResult(EntryStatus.FAILED, entry, item=item, reason=reason)
        return EntryResult(EntryStatus.SUCCESS, entry, item=item)

    def _dispose_article(self, entry: TocEntry, state: RunState) -> EntryResult:
        parent = state.lookup(entry.parent_uuid)
        parent_segments = parent.path_segments if parent is not None else ()
        parent_uuids = parent.path_uuids if parent is not None else ()
        file_name = f"{sanitize_segment(entry.title)}{self.content_extension}"
        segments = (*parent_segments, file_name)
        save_directory = self.book_path.joinpath(*parent_segments)
        save_file_path = self.book_path.joinpath(*segments)
        article_url = self.article_url(entry)

        state.failures.record_attempt()
        reason: Optional[str] = None
        if not self._contains(save_file_path):
            reason = f"path {join_segments(segments)} escapes the book directory"
        else:
            try:
                self.fetcher.download(
                    ArticleRequest(
                        book_id=self.book_id,
                        entry_url=entry.url,
                        save_directory=save_directory,
                        save_file_path=save_file_path,
                        correlation_id=entry.uuid,
                        title=entry.title,
                        source_url=article_url,
                        skip_image_localization=self.skip_image_localization,
                    )
                )
            except Exception as exc:  # any fetch failure is recoverable for this entry
                reason = str(exc) or exc.__class__.__name__
                LOGGER.debug("Article %s failed", article_url, exc_info=True)

        item = ProgressItem(
            uuid=entry.uuid,
            path=join_segments(segments),
            path_segments=segments,
            path_uuids=(*parent_uuids, entry.uuid),
            source_entry=entry,
            outcome=Outcome.ARTICLE_OK if reason is None else Outcome.ARTICLE_FAILED,
        )
        if reason is not None:
            state.failures.record_error(item, article_url, reason)
        state.register(item)
        self.store.append(state, item, success=reason is None)
        if reason is not None:
            return EntryResult(EntryStatus.FAILED, entry, item=item, reason=reason)
        return EntryResult(EntryStatus.SUCCESS, entry, item=item)
