"""Tests for the on-disk project layout."""

from pathlib import Path

import pytest
import yaml

from zeus.errors import ValidationError
from zeus.models import Objective
from zeus.persistence import ProjectFiles, ProjectSession, find_project_root
from zeus.store.store import EntityStore


def test_init_only_once(tmp_path: Path) -> None:
    files = ProjectFiles(tmp_path)
    assert files.init() is True
    assert files.config_path.exists()
    assert files.init() is False


def test_store_round_trip(tmp_path: Path, sample_store: EntityStore) -> None:
    files = ProjectFiles(tmp_path)
    files.save_store(sample_store)
    loaded = files.load_store()
    assert loaded.content_equals(sample_store)
    assert not list(files.zeus_dir.glob(".store-*"))


def test_unquoted_yaml_dates_stay_strings(tmp_path: Path) -> None:
    files = ProjectFiles(tmp_path)
    files.init()
    files.store_path.write_text("objective:\n- id: obj-1\n  deadline: 2026-09-01\n", encoding="utf-8")
    assert files.load_store().require("obj-1").deadline == "2026-09-01"


def test_bad_store_file(tmp_path: Path) -> None:
    files = ProjectFiles(tmp_path)
    files.init()
    files.store_path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValidationError):
        files.load_store()


def test_session_save_and_reload(tmp_path: Path, sample_store: EntityStore) -> None:
    ProjectFiles(tmp_path).init()
    session = ProjectSession.load(tmp_path)
    session.store = sample_store
    session.history.snapshot(sample_store, "import")
    session.record("import")
    session.save()

    reloaded = ProjectSession.load(tmp_path)
    assert reloaded.store.content_equals(sample_store)
    assert reloaded.history.versions == [1]
    assert (tmp_path / ".zeus" / "audit.log").exists()


def test_hand_edited_store_is_synced(tmp_path: Path) -> None:
    files = ProjectFiles(tmp_path)
    files.init()
    session = ProjectSession.load(tmp_path)
    session.history.snapshot(session.store, "init")
    session.save()

    data = EntityStore([Objective(id="obj-1", title="Added by hand")]).to_dict()
    files.store_path.write_text(yaml.safe_dump(data), encoding="utf-8")

    reloaded = ProjectSession.load(tmp_path)
    latest = reloaded.history.latest()
    assert latest.version == 2
    assert latest.label == "sync"
    assert latest.changes.added == ["obj-1"]

    # Unchanged on the next load
    reloaded.save()
    assert ProjectSession.load(tmp_path).history.versions == [1, 2]


def test_find_project_root(tmp_path: Path) -> None:
    ProjectFiles(tmp_path).init()
    nested = tmp_path / "docs" / "plans"
    nested.mkdir(parents=True)
    assert find_project_root(nested) == tmp_path.resolve()
