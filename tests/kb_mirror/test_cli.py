"""
CLI Tests

Exercises the Typer commands through ``typer.testing.CliRunner`` with the
network collaborators replaced by fakes.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from KBMirror import cli
from KBMirror.models import KnowledgeBaseInfo
from KBMirror.runner import MirrorRun
from tests.kb_mirror.helpers import FakeBookSource, FakeFetcher, make_entry

runner = CliRunner()

BOOK_URL = "https://www.yuque.com/team/demo"


def _info() -> KnowledgeBaseInfo:
    return KnowledgeBaseInfo(
        book_id=42,
        book_slug="demo",
        toc=[
            make_entry("1", "TITLE", "Intro"),
            make_entry("2", "DOC", "Hello", parent="1", url="hello"),
        ],
        book_name="Demo",
    )


@pytest.fixture
def fake_run(monkeypatch: pytest.MonkeyPatch):
    state = {"info": _info(), "fetcher": FakeFetcher(), "configs": []}

    def factory(config, **kwargs):
        state["configs"].append(config)
        return MirrorRun(
            config,
            book_source=FakeBookSource(state["info"]),
            fetcher=state["fetcher"],
            **kwargs,
        )

    monkeypatch.setattr(cli, "MirrorRun", factory)
    return state


def test_download_mirrors_book(tmp_path: Path, fake_run) -> None:
    result = runner.invoke(cli.app, ["download", BOOK_URL, "-d", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert "Complete" in result.output
    assert "2/2" in result.output
    assert (tmp_path / "Demo" / "Intro" / "Hello.md").is_file()
    assert fake_run["configs"][0].ignore_images is False


def test_download_passes_ignore_img(tmp_path: Path, fake_run) -> None:
    result = runner.invoke(cli.app, ["download", BOOK_URL, "-d", str(tmp_path), "--ignore-img"])

    assert result.exit_code == 0, result.output
    assert fake_run["configs"][0].ignore_images is True
    assert fake_run["fetcher"].requests[0].skip_image_localization is True


def test_download_reports_failed_articles(tmp_path: Path, fake_run) -> None:
    fake_run["fetcher"] = FakeFetcher(failing={"2"})

    result = runner.invoke(cli.app, ["download", BOOK_URL, "-d", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert "Failed articles" in result.output


def test_download_second_run_is_already_complete(tmp_path: Path, fake_run) -> None:
    runner.invoke(cli.app, ["download", BOOK_URL, "-d", str(tmp_path)])
    result = runner.invoke(cli.app, ["download", BOOK_URL, "-d", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert "Already complete" in result.output


def test_download_unknown_book_exits_non_zero(tmp_path: Path, fake_run) -> None:
    fake_run["info"] = KnowledgeBaseInfo()

    result = runner.invoke(cli.app, ["download", BOOK_URL, "-d", str(tmp_path)])

    assert result.exit_code == 1
    assert "No book id found" in result.output


def test_download_writes_json_logs(tmp_path: Path, fake_run) -> None:
    log_dir = tmp_path / "logs"
    result = runner.invoke(
        cli.app, ["download", BOOK_URL, "-d", str(tmp_path / "out"), "--log-dir", str(log_dir)]
    )

    assert result.exit_code == 0, result.output
    log_files = list(log_dir.glob("kbmirror-*.jsonl"))
    assert len(log_files) == 1
    records = [json.loads(line) for line in log_files[0].read_text(encoding="utf-8").splitlines()]
    assert any(record["message"].startswith("Generated summary") for record in records)


def test_status_reports_outcome_counts(tmp_path: Path, fake_run) -> None:
    fake_run["fetcher"] = FakeFetcher(failing={"2"})
    runner.invoke(cli.app, ["download", BOOK_URL, "-d", str(tmp_path)])

    result = runner.invoke(cli.app, ["status", str(tmp_path / "Demo"), "--raw"])

    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["dir_created"] == 1
    assert data["article_failed"] == 1
    assert data["article_ok"] == 0
    assert data["total"] == 2
    assert data["torn_tail"] is False


def test_status_on_fresh_directory(tmp_path: Path) -> None:
    result = runner.invoke(cli.app, ["status", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert "total" in result.output


def test_status_on_corrupt_log_fails(tmp_path: Path) -> None:
    (tmp_path / "progress.jsonl").write_text("garbage\n", encoding="utf-8")

    result = runner.invoke(cli.app, ["status", str(tmp_path)])

    assert result.exit_code == 1
    assert "Error" in result.output


def test_print_config_honours_file(tmp_path: Path) -> None:
    path = tmp_path / "kbmirror.yaml"
    path.write_text("dist_dir: mirror\n", encoding="utf-8")

    result = runner.invoke(cli.app, ["print-config", "--config", str(path)])

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["dist_dir"] == "mirror"


def test_download_survives_markup_in_titles_and_messages(tmp_path: Path, fake_run) -> None:
    fake_run["info"] = KnowledgeBaseInfo(
        book_id=42,
        toc=[
            make_entry("1", "TITLE", "[bold]Intro"),
            make_entry("2", "DOC", "a [/b] c", parent="1", url="x[/b]"),
        ],
        book_name="Demo [/i]",
    )
    fake_run["fetcher"] = FakeFetcher(failing={"2"})

    result = runner.invoke(cli.app, ["download", BOOK_URL, "-d", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert "Failed articles" in result.output


def test_download_error_message_is_printed_verbatim(tmp_path: Path, fake_run) -> None:
    fake_run["info"] = KnowledgeBaseInfo()

    result = runner.invoke(cli.app, ["download", f"{BOOK_URL}/[/b]", "-d", str(tmp_path)])

    assert result.exit_code == 1
    assert "No book id found" in result.output
    assert "[/b]" in result.output


def test_download_unexpected_error_points_to_verbose(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    def factory(config, **kwargs):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(cli, "MirrorRun", factory)

    result = runner.invoke(cli.app, ["download", BOOK_URL, "-d", str(tmp_path)])

    assert result.exit_code == 1
    assert "Unexpected error" in result.output
    assert "--verbose" in result.output


def test_status_uses_progress_file_from_config(tmp_path: Path, fake_run) -> None:
    config_path = tmp_path / "kbmirror.yaml"
    config_path.write_text("progress_file: state.jsonl\n", encoding="utf-8")
    out = tmp_path / "out"
    runner.invoke(cli.app, ["download", BOOK_URL, "-d", str(out), "-c", str(config_path)])
    assert (out / "Demo" / "state.jsonl").is_file()

    from_config = runner.invoke(
        cli.app, ["status", str(out / "Demo"), "-c", str(config_path), "--raw"]
    )
    overridden = runner.invoke(
        cli.app, ["status", str(out / "Demo"), "--progress-file", "other.jsonl", "--raw"]
    )

    assert from_config.exit_code == 0, from_config.output
    assert json.loads(from_config.stdout)["total"] == 2
    assert json.loads(overridden.stdout)["total"] == 0
