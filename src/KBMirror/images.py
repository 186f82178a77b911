"""Copy remote images referenced by an article next to it and rewrite the links.

Images are stored under ``<article dir>/img/<entry uuid>/`` with names derived
from a hash of their URL, so re-running an article overwrites the same files
instead of accumulating copies.
"""

from __future__ import annotations

import hashlib
import logging
import mimetypes
import re
from pathlib import Path, PurePosixPath
from typing import Dict, Optional
from urllib.parse import urlsplit

import httpx

from KBMirror.config import HttpSettings
from KBMirror.errors import ImageLocalizationError
from KBMirror.http_session import request_with_retries
from KBMirror.io_utils import atomic_write

__all__ = ["MARKDOWN_IMAGE", "image_file_name", "localize_images"]

LOGGER = logging.getLogger(__name__)

MARKDOWN_IMAGE = re.compile(
    r"!\[(?P<alt>[^\]]*)\]\((?P<url>https?://[^\s)]+)(?P<title>\s+\"[^\"]*\")?\)"
)

_KNOWN_SUFFIXES = {".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp", ".bmp", ".ico"}


def image_file_name(url: str, content_type: Optional[str] = None) -> str:
    """Stable local file name for ``url``."""

    digest = hashlib.sha1(url.encode("utf-8")).hexdigest()[:16]
    suffix = PurePosixPath(urlsplit(url).path).suffix.lower()
    if suffix not in _KNOWN_SUFFIXES:
        guessed = mimetypes.guess_extension((content_type or "").split(";")[0].strip())
        suffix = guessed if guessed in _KNOWN_SUFFIXES else ".png"
    return f"{digest}{suffix}"


def localize_images(
    markdown: str,
    *,
    client: httpx.Client,
    save_directory: Path,
    image_dir: str,
    settings: Optional[HttpSettings] = None,
) -> str:
    """Download every remote markdown image in ``markdown`` and return the rewritten text.

    Args:
        markdown: Article body.
        client: HTTP client used for the downloads.
        save_directory: Directory the article file lives in.
        image_dir: Image directory relative to ``save_directory``.
        settings: Retry settings.

    Raises:
        ImageLocalizationError: Any image could not be fetched or written.
    """

    local_names: Dict[str, str] = {}

    def _fetch(url: str) -> str:
        if url in local_names:
            return local_names[url]
        try:
            response = request_with_retries(client, url, settings=settings)
        except httpx.HTTPError as exc:
            raise ImageLocalizationError(
                f"download article image Error {url}: {exc}", url=url
            ) from exc
        if response.status_code != 200:
            raise ImageLocalizationError(
                f"download article image Error {url}: HTTP {response.status_code}", url=url
            )
        name = image_file_name(url, response.headers.get("content-type"))
        target = save_directory / image_dir / name
        try:
            atomic_write(target, [response.content])
        except OSError as exc:
            raise ImageLocalizationError(
                f"download article image Error {url}: {exc}", url=url
            ) from exc
        relative = f"{image_dir}/{name}"
        local_names[url] = relative
        LOGGER.debug("Image %s -> %s", url, target)
        return relative

    def _replace(match: re.Match[str]) -> str:
        local = _fetch(match.group("url"))
        title = match.group("title") or ""
        return f"![{match.group('alt')}]({local}{title})"

    return MARKDOWN_IMAGE.sub(_replace, markdown)
