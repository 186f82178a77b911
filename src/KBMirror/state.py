"""Mutable state owned by one mirroring run."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from KBMirror.models import ProgressItem
from KBMirror.report import ErrorRecord, FailureAggregator, WarningRecord

__all__ = ["RunState"]


@dataclass
class RunState:
    """Progress index and counters for a single run.

    ``progress_index`` preserves insertion order: items restored from disk
    come first, in the order they were recorded, followed by the items
    disposed during the current run.
    """

    total_entries: int
    completed_count: int = 0
    progress_index: Dict[str, ProgressItem] = field(default_factory=dict)
    failures: FailureAggregator = field(default_factory=FailureAggregator)

    @property
    def errors(self) -> List[ErrorRecord]:
        return self.failures.errors

    @property
    def warnings(self) -> List[WarningRecord]:
        return self.failures.warnings

    @property
    def is_complete(self) -> bool:
        return self.completed_count == self.total_entries

    def lookup(self, uuid: str) -> Optional[ProgressItem]:
        if not uuid:
            return None
        return self.progress_index.get(uuid)

    def register(self, item: ProgressItem) -> None:
        if item.uuid in self.progress_index:
            raise ValueError(f"Entry {item.uuid} already has a progress record")
        self.progress_index[item.uuid] = item
