from __future__ import annotations

import argparse
import json
import logging
import sqlite3
import sys
from datetime import date
from pathlib import Path
from typing import Optional

from . import db
from .config import default_db_path, log_level, storage_key
from .enums import Priority, SortKey, StatusFilter
from .logging_setup import setup_logging
from .models import Task, TaskList, TaskListManager, TaskUpdate, parse_due_date

logger = logging.getLogger(__name__)


def _parse_date(d: Optional[str]) -> Optional[date]:
    try:
        return parse_due_date(d)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Invalid date '{d}'. Use YYYY-MM-DD.") from e


def _parse_priority(p: str) -> Priority:
    try:
        return Priority.parse(p)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _parse_status(s: str) -> StatusFilter:
    try:
        return StatusFilter.parse(s)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _parse_tags(raw: Optional[str]) -> list[str]:
    if not raw:
        return []
    return [tag.strip() for tag in raw.split(",") if tag.strip()]


def _db_path_from_args(ns: argparse.Namespace) -> Path:
    if getattr(ns, "db", None):
        return Path(ns.db).expanduser().resolve()
    return default_db_path()


def _load(ns: argparse.Namespace) -> TaskListManager:
    return db.load_or_create(_db_path_from_args(ns), storage_key(), persist=True)


def _save(ns: argparse.Namespace, manager: TaskListManager) -> None:
    db.save(_db_path_from_args(ns), manager, storage_key())


def _project(ns: argparse.Namespace, manager: TaskListManager) -> Optional[TaskList]:
    ref = getattr(ns, "project", None)
    if ref is None:
        return manager.default_project
    found = manager.find_project(ref)
    if found is None:
        print(f"Project '{ref}' not found.", file=sys.stderr)
    return found


def _task(ns: argparse.Namespace, project: TaskList) -> Optional[Task]:
    task = project.get_todo_by_id(int(ns.task_id))
    if task is None:
        print(f"Task #{ns.task_id} not found in '{project.name}'.", file=sys.stderr)
    return task


def _print_tasks(tasks: list[Task]) -> None:
    if not tasks:
        print("No tasks found.")
        return
    print(f"{'ID':>13}  {'ST':<4} {'PRI':<6}  {'DUE':<10}  TITLE")
    print("-" * 72)
    for t in tasks:
        due = t.due_date.isoformat() if t.due_date else ""
        if t.completed:
            st = "DONE"
        elif t.is_overdue():
            st = "LATE"
        else:
            st = "TODO"
        tags = f"  [{', '.join(t.tags)}]" if t.tags else ""
        print(f"{t.id:>13}  {st:<4} {t.priority.value:<6}  {due:<10}  {t.title}{tags}")


def cmd_init(ns: argparse.Namespace) -> int:
    path = _db_path_from_args(ns)
    db.init_db(path)
    if db.load(path, storage_key()) is None:
        db.save(path, TaskListManager(), storage_key())
    print(f"Initialized store at: {path}")
    return 0


def cmd_projects(ns: argparse.Namespace) -> int:
    manager = _load(ns)
    default = manager.default_project
    for p in manager.get_projects():
        mark = "*" if p is default else " "
        print(f"{mark} {p.id:>13}  {p.name} ({len(p.tasks)})")
    return 0


def cmd_new_project(ns: argparse.Namespace) -> int:
    name = ns.name.strip()
    if not name:
        print("Project name cannot be empty.", file=sys.stderr)
        return 1
    manager = _load(ns)
    project = TaskList(name)
    manager.add_project(project)
    _save(ns, manager)
    print(f"Added project #{project.id}: {project.name}")
    return 0


def cmd_rm_project(ns: argparse.Namespace) -> int:
    manager = _load(ns)
    project = manager.find_project(ns.ref)
    if project is None:
        print(f"Project '{ns.ref}' not found.", file=sys.stderr)
        return 1
    if project is manager.default_project:
        print("The default project cannot be removed.", file=sys.stderr)
        return 1
    manager.remove_project(project.id)
    _save(ns, manager)
    print(f"Removed project #{project.id}: {project.name}")
    return 0


def cmd_add(ns: argparse.Namespace) -> int:
    manager = _load(ns)
    project = _project(ns, manager)
    if project is None:
        return 1
    task = Task(
        title=ns.title,
        description=ns.description or "",
        due_date=ns.due,
        priority=ns.priority,
        tags=_parse_tags(ns.tags),
    )
    project.add_todo(task)
    _save(ns, manager)
    print(f"Added task #{task.id} to '{project.name}': {task.title}")
    return 0


def cmd_list(ns: argparse.Namespace) -> int:
    manager = _load(ns)
    project = _project(ns, manager)
    if project is None:
        return 1
    tasks = project.view(
        query=ns.search or "",
        status=ns.status,
        priority=ns.priority,
        tags=_parse_tags(ns.tags),
        sort_by=ns.sort,
        ascending=not ns.desc,
    )
    _print_tasks(tasks)
    return 0


def cmd_toggle(ns: argparse.Namespace) -> int:
    manager = _load(ns)
    project = _project(ns, manager)
    if project is None:
        return 1
    task = _task(ns, project)
    if task is None:
        return 1
    task.toggle_complete()
    _save(ns, manager)
    state = "done" if task.completed else "not done"
    print(f"Marked task #{task.id} as {state}.")
    return 0


def cmd_edit(ns: argparse.Namespace) -> int:
    manager = _load(ns)
    project = _project(ns, manager)
    if project is None:
        return 1
    task = _task(ns, project)
    if task is None:
        return 1
    update = TaskUpdate(
        title=ns.title,
        description=ns.description,
        due_date=ns.due,
        priority=ns.priority,
        completed=ns.completed,
        tags=_parse_tags(ns.tags) if ns.tags is not None else None,
        clear_due_date=ns.no_due,
    )
    task.edit(update)
    _save(ns, manager)
    print(f"Updated task #{task.id}: {task.title}")
    return 0


def cmd_rm(ns: argparse.Namespace) -> int:
    manager = _load(ns)
    project = _project(ns, manager)
    if project is None:
        return 1
    task = _task(ns, project)
    if task is None:
        return 1
    project.remove_todo(task.id)
    _save(ns, manager)
    print(f"Removed task #{task.id}: {task.title}")
    return 0


def cmd_tag(ns: argparse.Namespace) -> int:
    manager = _load(ns)
    project = _project(ns, manager)
    if project is None:
        return 1
    task = _task(ns, project)
    if task is None:
        return 1
    if ns.untag:
        task.remove_tag(ns.tag)
    else:
        task.add_tag(ns.tag)
    _save(ns, manager)
    print(f"Task #{task.id} tags: {', '.join(task.tags) or '-'}")
    return 0


def cmd_export(ns: argparse.Namespace) -> int:
    path = _db_path_from_args(ns)
    data = db.export_json(path, storage_key())
    out = Path(ns.out).expanduser().resolve()
    out.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    print(f"Exported to: {out}")
    return 0


def cmd_import(ns: argparse.Namespace) -> int:
    path = _db_path_from_args(ns)
    data_path = Path(ns.file).expanduser().resolve()
    try:
        data = json.loads(data_path.read_text(encoding="utf-8"))
        db.import_json(path, data, storage_key())
    except ValueError as e:
        print(f"Cannot import {data_path}: {e}", file=sys.stderr)
        return 1
    print(f"Imported from: {data_path} into {path}")
    return 0


def _add_project_option(s: argparse.ArgumentParser) -> None:
    s.add_argument("-P", "--project", help="Project id or name (default: the default project).")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="taskboard",
        description="taskboard: projects and todos with search, filters and sorting.",
    )
    p.add_argument(
        "--db",
        help="Path to the SQLite store (default: ~/.taskboard/taskboard.db or TASKBOARD_DB env var)",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr.")
    sub = p.add_subparsers(dest="cmd", required=True)

    s = sub.add_parser("init", help="Initialize the store.")
    s.set_defaults(func=cmd_init)

    s = sub.add_parser("projects", help="List projects.")
    s.set_defaults(func=cmd_projects)

    s = sub.add_parser("new-project", help="Add a project.")
    s.add_argument("name", help="Project name.")
    s.set_defaults(func=cmd_new_project)

    s = sub.add_parser("rm-project", help="Remove a project and its tasks.")
    s.add_argument("ref", help="Project id or name.")
    s.set_defaults(func=cmd_rm_project)

    s = sub.add_parser("add", help="Add a new task.")
    s.add_argument("title", help="Short task title.")
    s.add_argument("-d", "--description", help="Longer description.")
    s.add_argument(
        "-p", "--priority", type=_parse_priority, default=Priority.MEDIUM, help="low, medium or high."
    )
    s.add_argument("--due", type=_parse_date, help="Due date in YYYY-MM-DD.")
    s.add_argument("--tags", help="Comma-separated tags (e.g., work,urgent).")
    _add_project_option(s)
    s.set_defaults(func=cmd_add)

    s = sub.add_parser("list", help="List tasks: search, then filter, then sort.")
    s.add_argument("-s", "--search", help="Text to look for in title or description.")
    s.add_argument("--status", type=_parse_status, help="completed, active or overdue.")
    s.add_argument("--priority", type=_parse_priority, help="low, medium or high.")
    s.add_argument("--tags", help="Comma-separated tags; a task needs any one of them.")
    s.add_argument(
        "--sort",
        choices=[k.value for k in SortKey],
        default=SortKey.DUE_DATE.value,
        help="Sort key (default: due_date).",
    )
    s.add_argument("--desc", action="store_true", help="Sort descending.")
    _add_project_option(s)
    s.set_defaults(func=cmd_list)

    s = sub.add_parser("toggle", help="Toggle a task between done and not done.")
    s.add_argument("task_id", type=int, help="Task ID.")
    _add_project_option(s)
    s.set_defaults(func=cmd_toggle)

    s = sub.add_parser("edit", help="Change some fields of a task.")
    s.add_argument("task_id", type=int, help="Task ID.")
    s.add_argument("--title", help="New title.")
    s.add_argument("-d", "--description", help="New description.")
    s.add_argument("-p", "--priority", type=_parse_priority, help="low, medium or high.")
    g = s.add_mutually_exclusive_group()
    g.add_argument("--due", type=_parse_date, help="New due date in YYYY-MM-DD.")
    g.add_argument("--no-due", action="store_true", help="Drop the due date.")
    g = s.add_mutually_exclusive_group()
    g.add_argument("--done", dest="completed", action="store_const", const=True, help="Mark done.")
    g.add_argument("--undone", dest="completed", action="store_const", const=False, help="Mark not done.")
    s.add_argument("--tags", help="Replace tags (comma-separated; empty string clears them).")
    _add_project_option(s)
    s.set_defaults(func=cmd_edit, completed=None)

    s = sub.add_parser("rm", help="Remove a task.")
    s.add_argument("task_id", type=int, help="Task ID.")
    _add_project_option(s)
    s.set_defaults(func=cmd_rm)

    s = sub.add_parser("tag", help="Add a tag to a task.")
    s.add_argument("task_id", type=int, help="Task ID.")
    s.add_argument("tag", help="Tag text.")
    _add_project_option(s)
    s.set_defaults(func=cmd_tag, untag=False)

    s = sub.add_parser("untag", help="Remove a tag from a task.")
    s.add_argument("task_id", type=int, help="Task ID.")
    s.add_argument("tag", help="Tag text.")
    _add_project_option(s)
    s.set_defaults(func=cmd_tag, untag=True)

    s = sub.add_parser("export", help="Export the board to JSON.")
    s.add_argument("--out", required=True, help="Output JSON file path.")
    s.set_defaults(func=cmd_export)

    s = sub.add_parser("import", help="Replace the board with a JSON export.")
    s.add_argument("file", help="JSON file previously written by taskboard export.")
    s.set_defaults(func=cmd_import)

    return p


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    ns = parser.parse_args(argv)
    setup_logging(logging.DEBUG if ns.verbose else log_level())
    path = _db_path_from_args(ns)
    logger.debug("Running %s with db=%s", ns.cmd, path)
    try:
        return int(ns.func(ns))
    except sqlite3.DatabaseError as e:
        print(f"Cannot use store at {path}: {e}", file=sys.stderr)
        return 1
