"""Run failure aggregation and end-of-run reporting.

Responsibilities
----------------
- Collect link warnings and article failures while the traversal engine keeps
  going, preserving traversal order.
- Package the collected records into a :class:`RunReport` that the CLI, tests
  and JSON sinks can consume.
- Render the report through :mod:`logging` via :func:`emit_report` so the
  console output matches what lands in the structured log file.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from KBMirror.models import ProgressItem

__all__ = [
    "ErrorRecord",
    "WarningRecord",
    "RunReport",
    "FailureAggregator",
    "emit_report",
]

LOGGER = logging.getLogger(__name__)

RETRY_HINT = (
    "The failures above were caused by network errors or dead links. Re-run the "
    "same command to continue; articles that were saved are left untouched."
)


@dataclass(frozen=True)
class ErrorRecord:
    """A failed article fetch."""

    article_url: str
    item: ProgressItem
    message: str


@dataclass(frozen=True)
class WarningRecord:
    """An external link that has no local mirror."""

    item: ProgressItem

    @property
    def url(self) -> str:
        return self.item.source_entry.url


@dataclass
class RunReport:
    """Summary of the warnings and errors gathered during one run."""

    warning_count: int
    error_count: int
    total_article_attempts: int
    warnings: List[WarningRecord] = field(default_factory=list)
    errors: List[ErrorRecord] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "warning_count": self.warning_count,
            "error_count": self.error_count,
            "total_article_attempts": self.total_article_attempts,
            "warnings": [{"path": w.item.path, "url": w.url} for w in self.warnings],
            "errors": [
                {"path": e.item.path, "article_url": e.article_url, "message": e.message}
                for e in self.errors
            ],
        }


class FailureAggregator:
    """Accumulates per-entry warnings and errors without interrupting traversal."""

    def __init__(self) -> None:
        self._warnings: List[WarningRecord] = []
        self._errors: List[ErrorRecord] = []
        self._article_attempts = 0

    @property
    def warnings(self) -> List[WarningRecord]:
        return list(self._warnings)

    @property
    def errors(self) -> List[ErrorRecord]:
        return list(self._errors)

    def record_attempt(self) -> None:
        """Count one article fetch attempt."""
        self._article_attempts += 1

    def record_warning(self, item: ProgressItem) -> WarningRecord:
        record = WarningRecord(item=item)
        self._warnings.append(record)
        return record

    def record_error(self, item: ProgressItem, article_url: str, message: str) -> ErrorRecord:
        record = ErrorRecord(article_url=article_url, item=item, message=message)
        self._errors.append(record)
        return record

    def summary(self) -> RunReport:
        """Return a snapshot of everything recorded so far."""

        return RunReport(
            warning_count=len(self._warnings),
            error_count=len(self._errors),
            total_article_attempts=self._article_attempts,
            warnings=list(self._warnings),
            errors=list(self._errors),
        )


def emit_report(report: RunReport, logger: Optional[logging.Logger] = None) -> None:
    """Log warnings and errors from ``report`` in traversal order."""

    log = logger or LOGGER
    if report.warning_count:
        log.warning("This knowledge base contains the following external links")
        for warning in report.warnings:
            log.warning("---- x %s %s", warning.item.path, warning.url)

    if report.error_count:
        log.error(
            "Attempted %d articles this run, %d failed",
            report.total_article_attempts,
            report.error_count,
        )
        for error in report.errors:
            log.error("%s ---- %s", error.item.path, error.article_url)
            log.error("---- x %s", error.message)
        log.error(RETRY_HINT)
