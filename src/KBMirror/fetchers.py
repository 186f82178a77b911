"""Remote collaborators: knowledge-base metadata and article content.

Responsibilities
----------------
- :class:`KnowledgeBaseClient` resolves a public book URL into
  :class:`~KBMirror.models.KnowledgeBaseInfo` by decoding the JSON payload the
  page embeds as ``decodeURIComponent("...")``.
- :class:`ArticleDownloader` fetches one article's markdown source, optionally
  localizes its images, normalizes it and writes it atomically. It implements
  the :class:`~KBMirror.traversal.ArticleFetcher` protocol.

Design Notes
------------
- Both classes borrow an :class:`httpx.Client` owned by the caller so a run
  shares one connection pool.
- An unresolvable book is reported as an empty ``KnowledgeBaseInfo``; the
  driver decides that this is fatal.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Mapping, Optional
from urllib.parse import unquote

import httpx

from KBMirror.config import HttpSettings
from KBMirror.errors import ArticleFetchError
from KBMirror.http_session import request_with_retries
from KBMirror.images import localize_images
from KBMirror.io_utils import atomic_write_text
from KBMirror.models import ArticleRequest, KnowledgeBaseInfo, TocEntry

__all__ = [
    "ArticleDownloader",
    "KnowledgeBaseClient",
    "article_url_prefix",
    "normalize_article",
    "parse_book_page",
]

LOGGER = logging.getLogger(__name__)

BOOK_PAYLOAD = re.compile(r'decodeURIComponent\("(.+)"\)\);', re.MULTILINE)
LINE_BREAK_TAG = re.compile(r"<br(\s?)/>")

PAGE_HEADER = "<!--page header-->"
PAGE_FOOTER = "<!--page footer-->"


def parse_book_page(html: str) -> KnowledgeBaseInfo:
    """Extract book metadata from the HTML of a book page."""

    match = BOOK_PAYLOAD.search(html or "")
    if not match:
        return KnowledgeBaseInfo()
    try:
        payload = json.loads(unquote(match.group(1)))
    except json.JSONDecodeError:
        LOGGER.warning("Book payload found but it is not valid JSON")
        return KnowledgeBaseInfo()
    book = payload.get("book") if isinstance(payload, Mapping) else None
    if not isinstance(book, Mapping):
        return KnowledgeBaseInfo()
    toc_payload = book.get("toc") or []
    return KnowledgeBaseInfo(
        book_id=book.get("id"),
        book_slug=str(book.get("slug") or ""),
        toc=[TocEntry.from_payload(raw) for raw in toc_payload if isinstance(raw, Mapping)],
        book_name=str(book.get("name") or ""),
        book_desc=str(book.get("description") or ""),
    )


def article_url_prefix(url: str, book_slug: str) -> str:
    """Truncate ``url`` right after ``/<book_slug>``; unchanged when the slug is absent."""

    if not book_slug:
        return url
    match = re.match(rf"(.*?/{re.escape(book_slug)}).*", url, re.DOTALL)
    return match.group(1) if match else url


def normalize_article(markdown: str, *, title: str, article_url: str) -> str:
    """Convert HTML line breaks and add the page header and footer."""

    text = LINE_BREAK_TAG.sub("\n", markdown)
    if title:
        text = f"# {title}\n{PAGE_HEADER}\n\n{text}\n\n"
    if article_url:
        text += f"{PAGE_FOOTER}\n- 原文: <{article_url}>"
    return text


class KnowledgeBaseClient:
    """Resolves book metadata from a public book URL."""

    def __init__(self, client: httpx.Client, settings: Optional[HttpSettings] = None) -> None:
        self.client = client
        self.settings = settings or HttpSettings()

    def get_book_info(self, url: str) -> KnowledgeBaseInfo:
        """Return metadata for ``url``; an empty info when the page cannot be resolved."""

        response = request_with_retries(self.client, url, settings=self.settings)
        if response.status_code != 200:
            LOGGER.warning("Book page %s returned HTTP %d", url, response.status_code)
            return KnowledgeBaseInfo()
        info = parse_book_page(response.text)
        if info.resolved:
            LOGGER.info(
                "Resolved book %s (%s) with %d entries", info.book_name, info.book_id, len(info.toc)
            )
        return info


class ArticleDownloader:
    """Fetches article markdown and writes it into the mirrored tree."""

    def __init__(
        self,
        client: httpx.Client,
        *,
        api_base: str,
        settings: Optional[HttpSettings] = None,
    ) -> None:
        self.client = client
        self.api_base = api_base.rstrip("/")
        self.settings = settings or HttpSettings()

    def _fetch_source(self, request: ArticleRequest) -> str:
        api_url = f"{self.api_base}/{request.entry_url}"
        params = {
            "book_id": str(request.book_id),
            "merge_dynamic_data": "false",
            "mode": "markdown",
        }
        try:
            response = request_with_retries(
                self.client, api_url, settings=self.settings, params=params
            )
        except httpx.HTTPError as exc:
            raise ArticleFetchError(f"download article Error: {api_url} {exc}", url=api_url) from exc
        if response.status_code != 200:
            raise ArticleFetchError(
                f"download article Error: {api_url} http status {response.status_code}",
                url=api_url,
            )
        try:
            body: Any = response.json()
        except ValueError as exc:
            raise ArticleFetchError(f"download article Error: {api_url} {exc}", url=api_url) from exc
        data = body.get("data") if isinstance(body, Mapping) else None
        source = data.get("sourcecode") if isinstance(data, Mapping) else None
        if not source:
            raise ArticleFetchError(f"download article Error: {api_url}", url=api_url)
        return str(source)

    def download(self, request: ArticleRequest) -> None:
        """Fetch, normalize and write one article.

        Raises:
            ArticleFetchError: The article could not be fetched, its images
                could not be localized, or the file could not be written.
        """

        if not request.save_directory.is_dir():
            raise ArticleFetchError(
                f"download article Error {request.source_url}: "
                f"directory {request.save_directory} does not exist",
                url=request.source_url,
            )

        markdown = self._fetch_source(request)
        if not request.skip_image_localization:
            markdown = localize_images(
                markdown,
                client=self.client,
                save_directory=request.save_directory,
                image_dir=f"img/{request.correlation_id}",
                settings=self.settings,
            )
        text = normalize_article(markdown, title=request.title, article_url=request.source_url)
        try:
            atomic_write_text(request.save_file_path, text, make_parents=False)
        except OSError as exc:
            raise ArticleFetchError(
                f"download article Error {request.source_url}: {exc}", url=request.source_url
            ) from exc
        LOGGER.debug("Saved %s", request.save_file_path)
