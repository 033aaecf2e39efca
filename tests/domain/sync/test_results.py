from __future__ import annotations

import json
from datetime import UTC, date, datetime

from aafsync.domain.errors import IssueKind, SyncIssue
from aafsync.domain.model import Category, Person, Subject
from aafsync.domain.reconciliation import PersonsDiff, ReferenceDiff
from aafsync.domain.sync import RunResult, StageStats, SyncRequest, to_jsonable

NOW = datetime(2026, 9, 1, tzinfo=UTC)


def test_total_sums_every_stage() -> None:
    result = RunResult(request=SyncRequest(), started_at=NOW)
    result.stats_for("subject").added = 2
    result.stats_for("student").changed = 3
    result.stats_for("garbage").removed = 1

    total = result.total

    assert (total.added, total.changed, total.removed) == (2, 3, 1)


def test_stage_not_run_leaves_diff_unset() -> None:
    result = RunResult(request=SyncRequest(), started_at=NOW)
    result.set_persons(PersonsDiff(category=Category.GUARDIAN))

    assert result.guardians is not None
    assert result.students is None
    assert result.diff_for(Category.STAFF) is None
    assert result.diff_for(Category.GUARDIAN) is result.guardians


def test_errors_render_issue_messages() -> None:
    result = RunResult(request=SyncRequest(), started_at=NOW)
    result.issues.append(
        SyncIssue(
            kind=IssueKind.REFERENCE,
            message="unknown grade",
            category=Category.STUDENT,
            external_id="E1",
        )
    )

    assert result.errors == ["[reference/student/E1] unknown grade"]


def test_to_dict_is_json_serialisable() -> None:
    result = RunResult(
        request=SyncRequest(categories=frozenset({Category.SUBJECT}), structure_ids=("A",)),
        started_at=NOW,
        scope=("A",),
    )
    result.subjects = ReferenceDiff(add=[Subject(id="S1", external_id="S1", name="Maths")])
    result.students = PersonsDiff(
        category=Category.STUDENT,
        add=[Person(id="TMPSTU000001", birthdate=date(2014, 4, 3))],
    )
    result.stats["subject"] = StageStats(count=1, added=1)

    payload = json.loads(json.dumps(result.to_dict()))

    assert payload["diff"]["subject"]["add"][0]["name"] == "Maths"
    assert payload["diff"]["grade"] is None
    assert payload["diff"]["student"]["add"][0]["birthdate"] == "2014-04-03"
    assert payload["request"]["categories"] == ["subject"]
    assert payload["total"]["added"] == 1


def test_to_jsonable_sorts_sets() -> None:
    assert to_jsonable({"b", "a"}) == ["a", "b"]
