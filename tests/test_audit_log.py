"""Tests for change summaries and the audit log."""

from pathlib import Path

from zeus.audit_log import ChangeSummary, diff_stores, format_audit_entry, log_operation, read_audit_log
from zeus.models import Objective
from zeus.store.store import EntityStore


def test_log_and_read_back(tmp_path: Path) -> None:
    log_operation(tmp_path, "approve", ChangeSummary(changed=["act-1"]), {"item_id": "item-1"})
    log_operation(tmp_path, "restore", metadata={"version": 2})

    entries = read_audit_log(tmp_path)
    assert [e.operation for e in entries] == ["approve", "restore"]
    assert entries[0].changes.changed == ["act-1"]
    assert entries[1].changes.is_empty
    assert [e.operation for e in read_audit_log(tmp_path, last_n=1)] == ["restore"]
    assert read_audit_log(tmp_path, last_n=0) == []
    assert len(read_audit_log(tmp_path, last_n=5)) == 2


def test_missing_log_and_malformed_lines(tmp_path: Path) -> None:
    assert read_audit_log(tmp_path) == []
    log_operation(tmp_path, "init")
    with (tmp_path / "audit.log").open("a", encoding="utf-8") as f:
        f.write("{not json\n\n")
    log_operation(tmp_path, "fix")
    assert [e.operation for e in read_audit_log(tmp_path)] == ["init", "fix"]


def test_format_entry(tmp_path: Path) -> None:
    entry = log_operation(tmp_path, "fix", ChangeSummary(added=["act-2"], removed=["act-1"]), {"fixes": 2})
    text = format_audit_entry(entry)
    assert text.splitlines()[0].endswith("] fix")
    assert "  Added: act-2" in text
    assert "  Removed: act-1" in text
    assert "  fixes: 2" in text
    assert "Changed" not in text


def test_merge_consecutive_summaries() -> None:
    first = ChangeSummary(added=["a"], removed=["b"], changed=["c"])
    second = ChangeSummary(added=["b"], removed=["a", "c"], changed=["d"])
    merged = first.merge(second)
    assert merged == ChangeSummary(added=[], removed=["c"], changed=["b", "d"])
    assert merged.total == 3
    assert ChangeSummary().describe() == "no changes"
    assert merged.describe() == "1 removed, 2 changed"


def test_diff_stores() -> None:
    before = EntityStore([Objective(id="obj-1"), Objective(id="obj-2")])
    after = EntityStore([Objective(id="obj-1", title="Renamed"), Objective(id="obj-3")])
    summary = diff_stores(before, after)
    assert summary.to_dict() == {"added": ["obj-3"], "removed": ["obj-2"], "changed": ["obj-1"]}
    assert ChangeSummary.from_dict(summary.to_dict()) == summary
