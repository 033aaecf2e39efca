from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest

from aafsync.config import MissingConfigurationError
from aafsync.domain.errors import FeedReadError
from aafsync.domain.model import Category, FeedFormat, RunMode
from aafsync.domain.model.audit import SyncRun
from aafsync.domain.sync import RunResult, SyncRequest
from aafsync.ui import cli

if TYPE_CHECKING:
    from pathlib import Path

NOW = datetime(2026, 9, 1, 8, 30, tzinfo=UTC)


def _fake_sync(captured: dict[str, object]) -> object:
    def fake_sync(archive: str, **kwargs: object) -> RunResult:
        captured["archive"] = archive
        captured.update(kwargs)
        result = RunResult(request=SyncRequest(), started_at=NOW, scope=("0690001A",))
        result.stats_for("student").added = 2
        return result

    return fake_sync


def test_sync_defaults_to_dry_run_over_every_category(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}
    monkeypatch.setattr(cli, "synchronize_archive", _fake_sync(captured))

    cli.main(["sync", "ENT2D.20260901_Complet_69.zip"])

    assert captured["archive"] == "ENT2D.20260901_Complet_69.zip"
    assert captured["categories"] is None
    assert captured["structure_ids"] is None
    assert captured["apply"] is False
    assert captured["format"] is None
    assert captured["mode"] is RunMode.MANUAL


def test_sync_with_flags(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}
    monkeypatch.setattr(cli, "synchronize_archive", _fake_sync(captured))

    cli.main(
        [
            "sync",
            "feed.zip",
            "--category",
            "student",
            "--category",
            "guardian",
            "--structure",
            "0690001A",
            "--apply",
            "--format",
            "delta",
            "--automatic",
        ]
    )

    assert captured["categories"] == [Category.STUDENT, Category.GUARDIAN]
    assert captured["structure_ids"] == ["0690001A"]
    assert captured["apply"] is True
    assert captured["format"] is FeedFormat.DELTA
    assert captured["mode"] is RunMode.AUTOMATIC


def test_sync_writes_diff_output(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(cli, "synchronize_archive", _fake_sync({}))
    output = tmp_path / "diff.json"

    cli.main(["sync", "feed.zip", "--diff-output", str(output)])

    payload = json.loads(output.read_text(encoding="utf-8"))
    assert payload["scope"] == ["0690001A"]
    assert payload["total"]["added"] == 2


def test_unknown_category_is_rejected() -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["sync", "feed.zip", "--category", "teachers"])

    assert excinfo.value.code == 2


def test_blank_structure_is_a_validation_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "synchronize_archive", _fake_sync({}))

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["sync", "feed.zip", "--structure", " "])

    assert excinfo.value.code == 2


def test_non_positive_limit_is_a_validation_error() -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["runs", "--limit", "0"])

    assert excinfo.value.code == 2


def test_sync_failure_exits_with_one(monkeypatch: pytest.MonkeyPatch) -> None:
    def failing_sync(*_: object, **__: object) -> RunResult:
        raise FeedReadError("Feed archive not found: feed.zip")

    monkeypatch.setattr(cli, "synchronize_archive", failing_sync)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["sync", "feed.zip"])

    assert excinfo.value.code == 1


def test_missing_configuration_exits_with_two(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    def unconfigured_sync(*_: object, **__: object) -> RunResult:
        raise MissingConfigurationError(["AAFSYNC_FEED_DIR"])

    monkeypatch.setattr(cli, "synchronize_archive", unconfigured_sync)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["sync", "feed.zip"])

    assert excinfo.value.code == 2
    assert "check AAFSYNC_FEED_DIR" in caplog.text


def test_runs_passes_limit(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: list[int] = []

    def fake_recent_runs(limit: int) -> list[SyncRun]:
        captured.append(limit)
        return [SyncRun(id=1, started_at=NOW, source="feed.zip", exception="boom")]

    monkeypatch.setattr(cli, "recent_runs", fake_recent_runs)

    cli.main(["runs", "--limit", "5"])

    assert captured == [5]
