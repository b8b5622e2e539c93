import json
from datetime import date
from pathlib import Path

import pytest

from taskboard import db
from taskboard.enums import Priority
from taskboard.models import Task, TaskList, TaskListManager, TaskUpdate


def _sample_manager() -> TaskListManager:
    manager = TaskListManager()
    manager.default_project.add_todo(
        Task("Groceries", description="milk, eggs", priority=Priority.LOW, tags=["home"])
    )

    work = TaskList("Work")
    report = Task("Report", due_date=date(2030, 3, 1), priority=Priority.HIGH, tags=["docs", "q1"])
    report.edit(TaskUpdate(description="quarterly"))
    shipped = Task("Ship it", completed=True)
    work.add_todo(report)
    work.add_todo(shipped)
    manager.add_project(work)
    return manager


def test_save_then_load_round_trip(tmp_path: Path):
    db_path = tmp_path / "board.db"
    manager = _sample_manager()

    db.save(db_path, manager)
    loaded = db.load(db_path)

    assert loaded is not None
    assert loaded is not manager
    assert loaded.get_projects() == manager.get_projects()
    assert db.manager_to_dict(loaded) == db.manager_to_dict(manager)

    work = loaded.get_projects()[1]
    assert work.tasks[0].due_date == date(2030, 3, 1)
    assert work.tasks[0].edited_at is not None
    assert work.tasks[1].completed is True


def test_save_overwrites_previous_value(tmp_path: Path):
    db_path = tmp_path / "board.db"
    db.save(db_path, _sample_manager())
    db.save(db_path, TaskListManager())

    loaded = db.load(db_path)
    assert loaded is not None
    assert len(loaded.get_projects()) == 1


def test_keys_are_independent(tmp_path: Path):
    db_path = tmp_path / "board.db"
    db.save(db_path, _sample_manager(), key="a")
    assert db.load(db_path, key="b") is None
    assert db.load(db_path, key="a") is not None


def test_load_missing_returns_none(tmp_path: Path):
    assert db.load(tmp_path / "nothing.db") is None

    db_path = tmp_path / "empty.db"
    db.init_db(db_path)
    assert db.load(db_path) is None


def test_corrupt_blob_falls_back_to_fresh_manager(tmp_path: Path):
    db_path = tmp_path / "board.db"
    db.init_db(db_path)
    with db.connect(db_path) as conn:
        conn.execute(
            "INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?)",
            (db.DEFAULT_STORAGE_KEY, "{not json", "2024-01-01T00:00:00Z"),
        )

    assert db.load(db_path) is None
    fresh = db.load_or_create(db_path)
    assert [p.name for p in fresh.get_projects()] == ["Default"]


def test_non_sqlite_file_loads_as_nothing_stored(tmp_path: Path):
    db_path = tmp_path / "board.db"
    db_path.write_text("this is not a database, just text" * 10, encoding="utf-8")

    assert db.load(db_path) is None
    fresh = db.load_or_create(db_path, persist=True)
    assert [p.name for p in fresh.get_projects()] == ["Default"]
    assert db_path.read_text(encoding="utf-8").startswith("this is not a database")


def test_load_or_create_persists_fresh_board_once(tmp_path: Path):
    db_path = tmp_path / "board.db"
    first = db.load_or_create(db_path, persist=True)
    second = db.load_or_create(db_path, persist=True)
    assert first.default_project.id == second.default_project.id

    assert db.load_or_create(tmp_path / "other.db").default_project.id != first.default_project.id
    assert not (tmp_path / "other.db").exists()


def test_unreadable_due_date_is_dropped():
    data = db.manager_to_dict(_sample_manager())
    data["projects"][1]["todos"][0]["due_date"] = "someday"

    manager = db.manager_from_dict(data)
    assert manager.get_projects()[1].tasks[0].due_date is None


def test_import_rejects_bad_document(tmp_path: Path):
    db_path = tmp_path / "board.db"
    db.save(db_path, _sample_manager())

    with pytest.raises(ValueError):
        db.import_json(db_path, {"tasks": []})
    with pytest.raises(ValueError):
        db.import_json(db_path, {"projects": [{"name": "no id"}]})

    loaded = db.load(db_path)
    assert loaded is not None
    assert len(loaded.get_projects()) == 2


def test_export_import(tmp_path: Path):
    src = tmp_path / "src.db"
    dst = tmp_path / "dst.db"
    db.save(src, _sample_manager())

    data = json.loads(json.dumps(db.export_json(src)))
    db.import_json(dst, data)

    assert db.export_json(dst) == db.export_json(src)
