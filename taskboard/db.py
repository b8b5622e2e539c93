from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional

from .config import DEFAULT_STORAGE_KEY
from .enums import Priority
from .models import Task, TaskList, TaskListManager, observe_id, parse_due_date

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS kv (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,  -- JSON document, see manager_to_dict()
    updated_at  TEXT NOT NULL
);
"""


def _iso_now() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


@contextmanager
def connect(db_path: Path) -> Iterator[sqlite3.Connection]:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def init_db(db_path: Path) -> None:
    with connect(db_path) as conn:
        conn.executescript(SCHEMA_SQL)


# ---- document <-> object graph ----


def _ts_to_text(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts else None


def _text_to_ts(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    ts = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _text_to_due(raw: Any, task_id: int) -> Optional[date]:
    try:
        return parse_due_date(raw)
    except ValueError:
        logger.warning("Task #%s has unreadable due date %r; dropping it", task_id, raw)
        return None


def task_to_dict(t: Task) -> dict:
    return {
        "id": t.id,
        "title": t.title,
        "description": t.description,
        "due_date": t.due_date.isoformat() if t.due_date else None,
        "priority": t.priority.value,
        "completed": t.completed,
        "tags": list(t.tags),
        "created_at": _ts_to_text(t.created_at),
        "edited_at": _ts_to_text(t.edited_at),
    }


def task_from_dict(d: dict) -> Task:
    task_id = int(d["id"])
    created_at = _text_to_ts(d.get("created_at"))
    task = Task(
        id=task_id,
        title=str(d.get("title", "")),
        description=str(d.get("description") or ""),
        due_date=_text_to_due(d.get("due_date"), task_id),
        priority=Priority.parse(d.get("priority") or Priority.MEDIUM),
        completed=bool(d.get("completed", False)),
        tags=[str(tag) for tag in d.get("tags") or []],
        edited_at=_text_to_ts(d.get("edited_at")),
    )
    if created_at is not None:
        task.created_at = created_at
    return task


def manager_to_dict(manager: TaskListManager) -> dict:
    return {
        "version": FORMAT_VERSION,
        "projects": [
            {
                "id": p.id,
                "name": p.name,
                "created_at": _ts_to_text(p.created_at),
                "todos": [task_to_dict(t) for t in p.tasks],
            }
            for p in manager.get_projects()
        ],
    }


def manager_from_dict(data: dict) -> TaskListManager:
    """
    Rebuild the object graph. Raises ValueError (or KeyError/TypeError from
    malformed entries) when the document isn't one we wrote.
    """
    if not isinstance(data, dict) or not isinstance(data.get("projects"), list):
        raise ValueError("Not a taskboard document: missing 'projects' list.")

    lists = []
    for p in data["projects"]:
        task_list = TaskList(
            id=int(p["id"]),
            name=str(p["name"]),
            tasks=[task_from_dict(t) for t in p.get("todos", [])],
        )
        created_at = _text_to_ts(p.get("created_at"))
        if created_at is not None:
            task_list.created_at = created_at
        lists.append(task_list)

    if not lists:
        raise ValueError("Not a taskboard document: no projects.")

    for task_list in lists:
        observe_id(task_list.id)
        for t in task_list.tasks:
            observe_id(t.id)
    return TaskListManager(lists)


# ---- store ----


def save(db_path: Path, manager: TaskListManager, key: str = DEFAULT_STORAGE_KEY) -> None:
    blob = json.dumps(manager_to_dict(manager), ensure_ascii=False)
    with connect(db_path) as conn:
        conn.executescript(SCHEMA_SQL)
        conn.execute(
            "INSERT OR REPLACE INTO kv (key, value, updated_at) VALUES (?, ?, ?)",
            (key, blob, _iso_now()),
        )
    logger.debug("Saved %d project(s) under key=%s db=%s", len(manager.get_projects()), key, db_path)


def _read_blob(db_path: Path, key: str) -> Optional[str]:
    if not db_path.exists():
        return None
    with connect(db_path) as conn:
        conn.executescript(SCHEMA_SQL)
        row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return str(row["value"]) if row else None


def load(db_path: Path, key: str = DEFAULT_STORAGE_KEY) -> Optional[TaskListManager]:
    """
    None when nothing is stored under key, or the store or blob can't be read back.
    """
    try:
        blob = _read_blob(db_path, key)
    except sqlite3.DatabaseError as e:
        logger.warning("Store db=%s is unreadable (%s); ignoring it", db_path, e)
        return None
    if blob is None:
        logger.debug("Nothing stored under key=%s db=%s", key, db_path)
        return None
    try:
        manager = manager_from_dict(json.loads(blob))
    except (ValueError, KeyError, TypeError) as e:
        logger.warning("Stored board under key=%s is unreadable (%s); ignoring it", key, e)
        return None
    logger.info("Loaded %d project(s) from db=%s", len(manager.get_projects()), db_path)
    return manager


def _has_blob(db_path: Path, key: str) -> bool:
    try:
        return _read_blob(db_path, key) is not None
    except sqlite3.DatabaseError:
        # unreadable, but not ours to overwrite
        return True


def load_or_create(
    db_path: Path, key: str = DEFAULT_STORAGE_KEY, *, persist: bool = False
) -> TaskListManager:
    """
    With persist=True a fresh board is saved right away when nothing is stored
    under key yet, so the default list keeps its id between calls. Unreadable
    stores are never overwritten here.
    """
    manager = load(db_path, key)
    if manager is None:
        manager = TaskListManager()
        if persist and not _has_blob(db_path, key):
            save(db_path, manager, key)
    return manager


def export_json(db_path: Path, key: str = DEFAULT_STORAGE_KEY) -> dict:
    return manager_to_dict(load_or_create(db_path, key))


def import_json(db_path: Path, data: dict, key: str = DEFAULT_STORAGE_KEY) -> TaskListManager:
    """
    Replace the stored board with data. The document is validated before
    anything is written; a bad one raises ValueError and leaves the store alone.
    """
    try:
        manager = manager_from_dict(data)
    except (KeyError, TypeError) as e:
        raise ValueError(f"Not a taskboard document: {e}") from e
    init_db(db_path)
    save(db_path, manager, key)
    return manager
