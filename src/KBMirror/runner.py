# === NAVMAP v1 ===
# {
#   "module": "KBMirror.runner",
#   "purpose": "Run orchestration: metadata, preconditions, traversal, report, summary",
#   "sections": [
#     {"id": "mirrorresult", "name": "MirrorResult", "anchor": "class-mirrorresult", "kind": "class"},
#     {"id": "mirrorrun", "name": "MirrorRun", "anchor": "class-mirrorrun", "kind": "class"},
#     {"id": "mirror-book", "name": "mirror_book", "anchor": "function-mirror-book", "kind": "function"}
#   ]
# }
# === /NAVMAP ===
"""Execution harness for mirroring one knowledge base.

Responsibilities
----------------
- Resolve book metadata and enforce the run preconditions (a book id and a
  non-empty table of contents) before anything is written.
- Load the progress log, short-circuit when an earlier run already finished,
  and otherwise drive the :class:`~KBMirror.traversal.TraversalEngine`.
- Emit the end-of-run report and regenerate ``SUMMARY.md`` once traversal is
  over, whether or not some articles failed.

Design Principles
-----------------
- Explicit dependency injection: the HTTP client, metadata client and article
  fetcher can all be supplied by the caller (tests pass fakes).
- The :class:`~KBMirror.state.RunState` lives for exactly one run and is
  passed explicitly; nothing is kept in module globals.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Protocol

import httpx

from KBMirror.config import MirrorConfig
from KBMirror.errors import BookNotFoundError, EmptyTocError
from KBMirror.fetchers import ArticleDownloader, KnowledgeBaseClient, article_url_prefix
from KBMirror.http_session import build_client
from KBMirror.io_utils import ensure_directory
from KBMirror.models import KnowledgeBaseInfo
from KBMirror.progress import ProgressStore
from KBMirror.report import FailureAggregator, RunReport, emit_report
from KBMirror.sanitize import sanitize_segment
from KBMirror.state import RunState
from KBMirror.summary import write_summary
from KBMirror.traversal import ArticleFetcher, EntryCallback, TraversalEngine

__all__ = ["BookInfoSource", "MirrorResult", "MirrorRun", "mirror_book", "resolve_book_path"]

_LOGGER = logging.getLogger(__name__)

StartCallback = Callable[[RunState], None]


class BookInfoSource(Protocol):
    def get_book_info(self, url: str) -> KnowledgeBaseInfo:
        """Return book metadata for ``url``."""


@dataclass
class MirrorResult:
    """Result of a mirroring run."""

    book_path: Path
    book_name: str
    total_entries: int
    completed_count: int
    report: RunReport
    already_complete: bool = False
    summary_path: Optional[Path] = None

    @property
    def is_complete(self) -> bool:
        return self.completed_count == self.total_entries


def resolve_book_path(dist_dir: Path, info: KnowledgeBaseInfo) -> Path:
    """``<dist_dir>/<sanitized book name>``, falling back to the book id."""

    name = sanitize_segment(info.book_name) if info.book_name else ""
    return dist_dir / (name or str(info.book_id))


class MirrorRun:
    """Mirror a single knowledge base according to ``config``.

    Usage::

        with MirrorRun(config) as run:
            result = run.execute("https://www.yuque.com/group/book")
    """

    def __init__(
        self,
        config: MirrorConfig,
        *,
        client: Optional[httpx.Client] = None,
        book_source: Optional[BookInfoSource] = None,
        fetcher: Optional[ArticleFetcher] = None,
        on_start: Optional[StartCallback] = None,
        on_entry: Optional[EntryCallback] = None,
    ) -> None:
        self.config = config
        self._owns_client = False
        if client is None and (book_source is None or fetcher is None):
            client = build_client(config.http)
            self._owns_client = True
        self._client = client
        self.book_source = book_source or KnowledgeBaseClient(self._client, config.http)
        self.fetcher = fetcher or ArticleDownloader(
            self._client, api_base=config.api_base, settings=config.http
        )
        self.on_start = on_start
        self.on_entry = on_entry

    def __enter__(self) -> MirrorRun:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None

    def load_book(self, url: str) -> KnowledgeBaseInfo:
        """Fetch metadata for ``url`` and enforce the run preconditions.

        Raises:
            BookNotFoundError: No book id could be resolved.
            EmptyTocError: The book has no table-of-contents entries.
        """

        info = self.book_source.get_book_info(url)
        if not info.book_id:
            raise BookNotFoundError(url)
        if not info.toc:
            raise EmptyTocError(info.book_id)
        return info

    def execute(self, url: str) -> MirrorResult:
        """Run the whole mirror for ``url`` and return the outcome."""

        cfg = self.config
        info = self.load_book(url)
        book_path = ensure_directory(resolve_book_path(Path(cfg.dist_dir), info))
        total = len(info.toc)

        with ProgressStore(book_path, cfg.progress_file) as store:
            state = store.load(total_entries=total)
            if self.on_start is not None:
                self.on_start(state)
            if state.is_complete:
                _LOGGER.info("Already complete: %s", book_path.resolve())
                return MirrorResult(
                    book_path=book_path,
                    book_name=info.book_name,
                    total_entries=total,
                    completed_count=state.completed_count,
                    report=FailureAggregator().summary(),
                    already_complete=True,
                )

            engine = TraversalEngine(
                book_path=book_path,
                book_id=info.book_id,
                store=store,
                fetcher=self.fetcher,
                article_url_prefix=article_url_prefix(url, info.book_slug),
                content_extension=cfg.content_extension,
                skip_image_localization=cfg.ignore_images,
                on_entry=self.on_entry,
            )
            report = engine.run(info.toc, state)

        emit_report(report, _LOGGER)
        summary_path = write_summary(
            book_path,
            info.book_name,
            info.book_desc,
            state.progress_index,
            filename=cfg.summary_file,
        )
        _LOGGER.info("Generated summary %s", summary_path.resolve())
        if state.is_complete:
            _LOGGER.info("Completed: %s", book_path.resolve())

        return MirrorResult(
            book_path=book_path,
            book_name=info.book_name,
            total_entries=total,
            completed_count=state.completed_count,
            report=report,
            summary_path=summary_path,
        )


def mirror_book(
    url: str,
    config: Optional[MirrorConfig] = None,
    **kwargs,
) -> MirrorResult:
    """Convenience wrapper around :class:`MirrorRun`."""

    with MirrorRun(config or MirrorConfig(), **kwargs) as run:
        return run.execute(url)
