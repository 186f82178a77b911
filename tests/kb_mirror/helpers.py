"""Test doubles and builders shared across KBMirror tests."""

from __future__ import annotations

from typing import Iterable, List, Optional

from KBMirror.errors import ArticleFetchError
from KBMirror.models import ArticleRequest, KnowledgeBaseInfo, TocEntry


def make_entry(
    uuid: str,
    type_tag: Optional[str],
    title: str,
    *,
    parent: str = "",
    url: str = "",
    child: str = "",
) -> TocEntry:
    return TocEntry(
        uuid=uuid,
        parent_uuid=parent,
        title=title,
        type_tag=type_tag,
        url=url,
        child_uuid=child,
    )


class FakeFetcher:
    """Article fetcher that writes a stub file and fails for selected uuids."""

    def __init__(self, failing: Iterable[str] = ()) -> None:
        self.failing = set(failing)
        self.requests: List[ArticleRequest] = []

    def download(self, request: ArticleRequest) -> None:
        self.requests.append(request)
        if request.correlation_id in self.failing:
            raise ArticleFetchError(f"download article Error: {request.entry_url} boom")
        request.save_file_path.write_text(f"# {request.title}\n", encoding="utf-8")


class FakeBookSource:
    def __init__(self, info: KnowledgeBaseInfo) -> None:
        self.info = info
        self.calls: List[str] = []

    def get_book_info(self, url: str) -> KnowledgeBaseInfo:
        self.calls.append(url)
        return self.info
