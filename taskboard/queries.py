from __future__ import annotations

import unicodedata
from datetime import date
from typing import TYPE_CHECKING, Callable, Dict, Iterable, List, Optional, Tuple, Union

from .enums import Priority, SortKey, StatusFilter

if TYPE_CHECKING:
    from .models import Task


def search_tasks(tasks: Iterable[Task], query: Optional[str]) -> List[Task]:
    """
    Case-insensitive substring match on title or description.
    A blank query matches everything.
    """
    if query is None or not query.strip():
        return list(tasks)
    q = query.lower()
    return [t for t in tasks if q in t.title.lower() or q in t.description.lower()]


def _status_matches(task: Task, status: Optional[StatusFilter], today: Optional[date]) -> bool:
    if status is None:
        return True
    if status is StatusFilter.COMPLETED:
        return task.completed
    if status is StatusFilter.ACTIVE:
        return not task.completed
    return task.is_overdue(today)


def filter_tasks(
    tasks: Iterable[Task],
    *,
    status: Union[str, StatusFilter, None] = None,
    priority: Union[str, Priority, None] = None,
    tags: Optional[Iterable[str]] = None,
    today: Optional[date] = None,
) -> List[Task]:
    """
    All given criteria must hold. For tags a task needs any one of them,
    not all; no tags (or an empty list) lets everything through.
    """
    wanted_status = StatusFilter.parse(status) if status else None
    wanted_priority = Priority.parse(priority) if priority else None
    wanted_tags = set(tags or ())

    out: List[Task] = []
    for t in tasks:
        if not _status_matches(t, wanted_status, today):
            continue
        if wanted_priority is not None and t.priority != wanted_priority:
            continue
        if wanted_tags and wanted_tags.isdisjoint(t.tags):
            continue
        out.append(t)
    return out


def _due_key(task: Task) -> Tuple[bool, date]:
    # tasks without a due date go after dated ones
    return (task.due_date is None, task.due_date or date.min)


def _fold(text: str) -> str:
    # "Éclair" -> "eclair": accents and case only break ties
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()


def _title_key(task: Task) -> Tuple[str, str, str]:
    return (_fold(task.title), task.title.casefold(), task.title)


SORT_KEYS: Dict[SortKey, Callable[[Task], object]] = {
    SortKey.DUE_DATE: _due_key,
    SortKey.PRIORITY: lambda t: t.priority.rank,
    SortKey.TITLE: _title_key,
    SortKey.CREATED_AT: lambda t: t.created_at,
}


def sort_tasks(
    tasks: Iterable[Task],
    criteria: Union[str, SortKey, None] = SortKey.DUE_DATE,
    *,
    ascending: bool = True,
) -> List[Task]:
    """
    Returns a new list; the input order is left alone.

    sorted(reverse=True) flips the comparison rather than the result,
    so ties keep their original order in both directions.
    """
    key = SORT_KEYS[SortKey.parse(criteria)]
    return sorted(tasks, key=key, reverse=not ascending)
