"""KBMirror: resumable mirroring of hierarchical knowledge bases to local files.

Example:
    from KBMirror import MirrorConfig, mirror_book

    result = mirror_book("https://www.yuque.com/group/book", MirrorConfig(dist_dir="mirror"))
    print(result.completed_count, result.report.error_count)
"""

from KBMirror.config import MirrorConfig, load_config
from KBMirror.errors import (
    ArticleFetchError,
    BookNotFoundError,
    EmptyTocError,
    KBMirrorError,
    ProgressWriteError,
)
from KBMirror.models import Outcome, ProgressItem, TocEntry, TocType
from KBMirror.progress import ProgressStore
from KBMirror.report import FailureAggregator, RunReport
from KBMirror.runner import MirrorResult, MirrorRun, mirror_book
from KBMirror.sanitize import sanitize_segment
from KBMirror.state import RunState
from KBMirror.traversal import TraversalEngine

__version__ = "0.1.0"

__all__ = [
    "ArticleFetchError",
    "BookNotFoundError",
    "EmptyTocError",
    "FailureAggregator",
    "KBMirrorError",
    "MirrorConfig",
    "MirrorResult",
    "MirrorRun",
    "Outcome",
    "ProgressItem",
    "ProgressStore",
    "ProgressWriteError",
    "RunReport",
    "RunState",
    "TocEntry",
    "TocType",
    "TraversalEngine",
    "load_config",
    "mirror_book",
    "sanitize_segment",
]
