from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, fields
from datetime import date, datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional, Union

from .enums import Priority, SortKey, StatusFilter
from .queries import filter_tasks, search_tasks, sort_tasks

logger = logging.getLogger(__name__)

DEFAULT_LIST_NAME = "Default"


class _IdGenerator:
    """
    Millisecond clock ids, bumped by one when the clock hasn't moved
    (or has gone backwards), so every id is strictly greater than the last.
    """

    def __init__(self) -> None:
        self._last = 0

    def next(self) -> int:
        now_ms = time.time_ns() // 1_000_000
        self._last = max(now_ms, self._last + 1)
        return self._last

    def observe(self, used: int) -> None:
        if used > self._last:
            self._last = used


_ids = _IdGenerator()


def next_id() -> int:
    return _ids.next()


def observe_id(used: int) -> None:
    """Make sure ids handed out later are above an id restored from storage."""
    _ids.observe(used)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_due_date(raw: Union[str, date, None]) -> Optional[date]:
    """
    Empty / None -> None. Raises ValueError for text that isn't YYYY-MM-DD.
    """
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    text = str(raw).strip()
    if not text:
        return None
    return date.fromisoformat(text)


def _unique(tags: Iterable[str]) -> List[str]:
    out: List[str] = []
    for tag in tags:
        if tag not in out:
            out.append(tag)
    return out


@dataclass
class TaskUpdate:
    """
    Partial update for Task.edit: fields left as None are not touched.
    Use clear_due_date to drop a due date (None already means "unchanged").
    """

    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[date] = None
    priority: Optional[Priority] = None
    completed: Optional[bool] = None
    tags: Optional[List[str]] = None
    clear_due_date: bool = False

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> TaskUpdate:
        allowed = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - allowed)
        if unknown:
            raise ValueError(f"Unknown task field(s): {', '.join(unknown)}")

        values = dict(data)
        if values.get("priority") is not None:
            values["priority"] = Priority.parse(values["priority"])
        if "due_date" in values:
            due = parse_due_date(values["due_date"])
            values["due_date"] = due
            if due is None:
                values["clear_due_date"] = True
        if values.get("tags") is not None:
            values["tags"] = list(values["tags"])
        return cls(**values)


@dataclass
class Task:
    title: str
    description: str = ""
    due_date: Optional[date] = None
    priority: Priority = Priority.MEDIUM
    completed: bool = False
    tags: List[str] = field(default_factory=list)
    id: int = field(default_factory=next_id)
    created_at: datetime = field(default_factory=utc_now)
    edited_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.priority = Priority.parse(self.priority)
        self.tags = _unique(self.tags)

    def toggle_complete(self) -> None:
        self.completed = not self.completed

    def edit(self, update: TaskUpdate) -> None:
        if update.title is not None:
            self.title = update.title
        if update.description is not None:
            self.description = update.description
        if update.clear_due_date:
            self.due_date = None
        elif update.due_date is not None:
            self.due_date = update.due_date
        if update.priority is not None:
            self.priority = Priority.parse(update.priority)
        if update.completed is not None:
            self.completed = update.completed
        if update.tags is not None:
            self.tags = _unique(update.tags)

        # edited_at never precedes created_at, even if the clock steps back
        self.edited_at = max(utc_now(), self.created_at)

    def add_tag(self, tag: str) -> None:
        if tag not in self.tags:
            self.tags.append(tag)

    def remove_tag(self, tag: str) -> None:
        self.tags = [t for t in self.tags if t != tag]

    def is_overdue(self, today: Optional[date] = None) -> bool:
        if self.completed or self.due_date is None:
            return False
        return self.due_date < (today or date.today())


@dataclass
class TaskList:
    name: str
    tasks: List[Task] = field(default_factory=list)
    id: int = field(default_factory=next_id)
    created_at: datetime = field(default_factory=utc_now)

    def add_todo(self, task: Task) -> None:
        self.tasks.append(task)

    def remove_todo(self, task_id: int) -> None:
        self.tasks = [t for t in self.tasks if t.id != task_id]

    def get_todos(self) -> List[Task]:
        return self.tasks

    def get_todo_by_id(self, task_id: int) -> Optional[Task]:
        for t in self.tasks:
            if t.id == task_id:
                return t
        return None

    def search_todos(self, query: str) -> List[Task]:
        return search_tasks(self.tasks, query)

    def filter_todos(
        self,
        status: Union[str, StatusFilter, None] = None,
        priority: Union[str, Priority, None] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> List[Task]:
        return filter_tasks(self.tasks, status=status, priority=priority, tags=tags)

    def sort_todos(
        self, criteria: Union[str, SortKey, None] = SortKey.DUE_DATE, ascending: bool = True
    ) -> List[Task]:
        return sort_tasks(self.tasks, criteria, ascending=ascending)

    def view(
        self,
        query: str = "",
        status: Union[str, StatusFilter, None] = None,
        priority: Union[str, Priority, None] = None,
        tags: Optional[Iterable[str]] = None,
        sort_by: Union[str, SortKey, None] = SortKey.DUE_DATE,
        ascending: bool = True,
    ) -> List[Task]:
        """
        Search, then filter the matches, then sort what's left.
        """
        found = search_tasks(self.tasks, query)
        kept = filter_tasks(found, status=status, priority=priority, tags=tags)
        return sort_tasks(kept, sort_by, ascending=ascending)


class TaskListManager:
    def __init__(self, lists: Optional[Iterable[TaskList]] = None) -> None:
        self.lists: List[TaskList] = list(lists or [])
        if not self.lists:
            self.lists.append(TaskList(DEFAULT_LIST_NAME))

    @property
    def default_project(self) -> TaskList:
        return self.lists[0]

    def add_project(self, task_list: TaskList) -> None:
        self.lists.append(task_list)

    def remove_project(self, list_id: int) -> None:
        if list_id == self.lists[0].id:
            logger.debug("Ignoring removal of default list id=%s", list_id)
            return
        self.lists = [p for p in self.lists if p.id != list_id]

    def get_projects(self) -> List[TaskList]:
        return self.lists

    def get_project_by_id(self, list_id: int) -> Optional[TaskList]:
        for p in self.lists:
            if p.id == list_id:
                return p
        return None

    def find_project(self, ref: Union[int, str, None]) -> Optional[TaskList]:
        """
        Resolve an id or a name: exact id first, then exact name,
        then case-insensitive name.
        """
        if ref is None:
            return None
        text = str(ref).strip()
        if text.isdigit():
            found = self.get_project_by_id(int(text))
            if found is not None:
                return found
        for p in self.lists:
            if p.name == text:
                return p
        folded = text.casefold()
        for p in self.lists:
            if p.name.casefold() == folded:
                return p
        return None
