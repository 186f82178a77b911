"""Shared fixtures for KBMirror tests."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable, Iterator, List

import pytest

from KBMirror.logging_utils import ROOT_LOGGER_NAME
from KBMirror.models import TocEntry
from KBMirror.progress import ProgressStore
from KBMirror.traversal import TraversalEngine
from tests.kb_mirror.helpers import FakeFetcher, make_entry

ARTICLE_PREFIX = "https://kb.example.org/team/demo"


@pytest.fixture(autouse=True)
def _restore_package_logger() -> Iterator[None]:
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture(autouse=True)
def _clear_config_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("KBM_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def book_path(tmp_path: Path) -> Path:
    path = tmp_path / "Demo"
    path.mkdir()
    return path


@pytest.fixture
def engine_factory(book_path: Path) -> Callable[..., TraversalEngine]:
    def _factory(store: ProgressStore, fetcher, **kwargs) -> TraversalEngine:
        return TraversalEngine(
            book_path=book_path,
            book_id=42,
            store=store,
            fetcher=fetcher,
            article_url_prefix=ARTICLE_PREFIX,
            **kwargs,
        )

    return _factory


@pytest.fixture
def sample_toc() -> List[TocEntry]:
    return [
        make_entry("1", "TITLE", "Intro"),
        make_entry("2", "DOC", "Hello", parent="1", url="abc"),
    ]
