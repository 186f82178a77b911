"""Value types shared by the traversal engine, progress store and fetchers.

Table-of-contents entries arrive as loosely typed JSON objects. They are
normalised once into :class:`TocEntry` so the rest of the package can rely on
plain string fields (empty string rather than ``None``) and a single
:class:`TocType` classification.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

__all__ = [
    "TocType",
    "TocEntry",
    "Outcome",
    "ProgressItem",
    "EntryStatus",
    "EntryResult",
    "KnowledgeBaseInfo",
    "ArticleRequest",
]


class TocType(Enum):
    """Kinds of table-of-contents nodes."""

    TITLE = "title"
    LINK = "link"
    ARTICLE = "doc"
    OTHER = "other"

    @classmethod
    def from_tag(cls, tag: Optional[str]) -> Optional["TocType"]:
        """Map a raw type tag onto a member, ``None`` for non-string tags."""

        if not isinstance(tag, str):
            return None
        lowered = tag.lower()
        if lowered == "title":
            return cls.TITLE
        if lowered == "link":
            return cls.LINK
        if lowered in ("doc", "article"):
            return cls.ARTICLE
        return cls.OTHER


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


@dataclass(frozen=True)
class TocEntry:
    """One node of the remote document tree, flat-encoded with a parent reference."""

    uuid: str
    parent_uuid: str = ""
    title: str = ""
    type_tag: Optional[str] = None
    url: str = ""
    child_uuid: str = ""

    @property
    def kind(self) -> Optional[TocType]:
        return TocType.from_tag(self.type_tag)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "TocEntry":
        """Build an entry from the remote JSON representation."""

        type_tag = payload.get("type")
        return cls(
            uuid=_text(payload.get("uuid")),
            parent_uuid=_text(payload.get("parent_uuid")),
            title=_text(payload.get("title")),
            type_tag=type_tag if isinstance(type_tag, str) else None,
            url=_text(payload.get("url")),
            child_uuid=_text(payload.get("child_uuid")),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "uuid": self.uuid,
            "parent_uuid": self.parent_uuid,
            "title": self.title,
            "type": self.type_tag,
            "url": self.url,
            "child_uuid": self.child_uuid,
        }


class Outcome(Enum):
    """Terminal disposition recorded for an entry."""

    DIR_CREATED = "dir_created"
    DIR_FAILED = "dir_failed"
    ARTICLE_OK = "article_ok"
    ARTICLE_FAILED = "article_failed"
    LINK_SKIPPED = "link_skipped"


@dataclass(frozen=True)
class ProgressItem:
    """Record of one disposed entry; never mutated once created."""

    uuid: str
    path: str
    path_segments: Tuple[str, ...]
    path_uuids: Tuple[str, ...]
    source_entry: TocEntry
    outcome: Outcome

    @property
    def depth(self) -> int:
        return max(len(self.path_uuids) - 1, 0)

    @property
    def succeeded(self) -> bool:
        return self.outcome in (Outcome.DIR_CREATED, Outcome.ARTICLE_OK)


class EntryStatus(Enum):
    """Per-entry result tag returned by the traversal engine."""

    SUCCESS = "success"
    SKIPPED = "skipped"
    WARNING = "warning"
    FAILED = "failed"


@dataclass(frozen=True)
class EntryResult:
    """Outcome of processing a single table-of-contents entry."""

    status: EntryStatus
    entry: TocEntry
    item: Optional[ProgressItem] = None
    reason: Optional[str] = None

    @property
    def disposed(self) -> bool:
        return self.item is not None


@dataclass
class KnowledgeBaseInfo:
    """Book metadata resolved from the source page."""

    book_id: Optional[int] = None
    book_slug: str = ""
    toc: list[TocEntry] = field(default_factory=list)
    book_name: str = ""
    book_desc: str = ""

    @property
    def resolved(self) -> bool:
        return bool(self.book_id)


@dataclass(frozen=True)
class ArticleRequest:
    """Everything the article downloader needs to produce one file."""

    book_id: int | str
    entry_url: str
    save_directory: Path
    save_file_path: Path
    correlation_id: str
    title: str
    source_url: str
    skip_image_localization: bool = False
