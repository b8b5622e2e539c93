from datetime import date, datetime, timedelta, timezone

import pytest

from taskboard.enums import Priority, SortKey, StatusFilter
from taskboard.models import Task, TaskList
from taskboard.queries import filter_tasks, search_tasks, sort_tasks


def _work_list():
    today = date.today()
    work = TaskList("Work")
    t1 = Task("T1", priority=Priority.HIGH, due_date=today - timedelta(days=1))
    t2 = Task("T2", priority=Priority.LOW, due_date=today + timedelta(days=1))
    work.add_todo(t1)
    work.add_todo(t2)
    return work, t1, t2


def test_example_scenario():
    work, t1, t2 = _work_list()
    assert t1.is_overdue() is True
    assert work.filter_todos(status="overdue") == [t1]
    assert work.sort_todos("dueDate", True) == [t1, t2]


def test_search_is_case_insensitive_on_title_or_description():
    tasks = [Task("Buy MILK"), Task("Call", description="ask about milk"), Task("Other")]
    assert search_tasks(tasks, "milk") == tasks[:2]
    assert search_tasks(tasks, "MiLk") == tasks[:2]


def test_blank_search_matches_everything():
    tasks = [Task("A"), Task("B")]
    assert search_tasks(tasks, "") == tasks
    assert search_tasks(tasks, "   ") == tasks
    assert search_tasks(tasks, None) == tasks


def test_tag_filter_is_a_union():
    only_a = Task("a", tags=["a"])
    only_b = Task("b", tags=["b"])
    neither = Task("n", tags=["c"])
    tasks = [only_a, only_b, neither]

    assert filter_tasks(tasks, tags=["a", "b"]) == [only_a, only_b]
    assert filter_tasks(tasks, tags=[]) == tasks
    assert filter_tasks(tasks, tags=None) == tasks


def test_status_filters():
    today = date(2024, 5, 10)
    done = Task("done", completed=True, due_date=date(2024, 1, 1))
    late = Task("late", due_date=date(2024, 5, 1))
    fresh = Task("fresh", due_date=date(2024, 6, 1))
    tasks = [done, late, fresh]

    assert filter_tasks(tasks, status=StatusFilter.COMPLETED) == [done]
    assert filter_tasks(tasks, status="active") == [late, fresh]
    assert filter_tasks(tasks, status="overdue", today=today) == [late]


def test_filters_are_conjunctive():
    a = Task("a", priority="high", tags=["x"])
    b = Task("b", priority="low", tags=["x"])
    c = Task("c", priority="high", tags=["y"], completed=True)

    assert filter_tasks([a, b, c], priority="high", tags=["x"]) == [a]
    assert filter_tasks([a, b, c], priority=Priority.HIGH, status="active") == [a]


def test_unknown_status_is_rejected():
    with pytest.raises(ValueError):
        filter_tasks([Task("a")], status="pending")


def test_sort_by_priority_is_by_urgency():
    low, high, medium = Task("l", priority="low"), Task("h", priority="high"), Task("m", priority="medium")
    assert sort_tasks([low, high, medium], "priority", ascending=True) == [high, medium, low]
    assert sort_tasks([low, high, medium], SortKey.PRIORITY, ascending=False) == [low, medium, high]


def test_descending_keeps_ties_in_original_order():
    first = Task("first", priority="high")
    second = Task("second", priority="high")
    low = Task("low", priority="low")
    tasks = [first, second, low]

    assert sort_tasks(tasks, "priority", ascending=True) == [first, second, low]
    assert sort_tasks(tasks, "priority", ascending=False) == [low, first, second]


def test_sort_does_not_reorder_stored_tasks():
    work = TaskList("w")
    b, a = Task("b"), Task("a")
    work.add_todo(b)
    work.add_todo(a)
    assert work.sort_todos("title") == [a, b]
    assert work.get_todos() == [b, a]


def test_sort_by_title_ignores_case():
    tasks = [Task("banana"), Task("Apple"), Task("cherry")]
    assert [t.title for t in sort_tasks(tasks, "title")] == ["Apple", "banana", "cherry"]


def test_sort_by_created_at():
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    newer = Task("newer", created_at=base + timedelta(hours=1))
    older = Task("older", created_at=base)
    assert sort_tasks([newer, older], "createdAt") == [older, newer]


def test_missing_due_dates_sort_last_and_unknown_criteria_uses_due_date():
    undated = Task("undated")
    later = Task("later", due_date=date(2030, 1, 2))
    sooner = Task("sooner", due_date=date(2030, 1, 1))

    assert sort_tasks([undated, later, sooner], "bogus") == [sooner, later, undated]
    assert sort_tasks([undated, later, sooner], "due_date", ascending=False) == [undated, later, sooner]


def test_view_composes_search_filter_sort():
    work = TaskList("w")
    report = Task("Write report", priority="low", tags=["docs"])
    review = Task("Review report", priority="high", tags=["docs"])
    email = Task("Email boss", priority="high", tags=["docs"])
    for t in (report, review, email):
        work.add_todo(t)

    out = work.view(query="report", tags=["docs"], sort_by="priority")
    assert out == [review, report]

    assert work.view(query="report", priority="high") == [review]
    assert work.view() == [report, review, email]


def test_sort_by_title_places_accented_letters_with_their_base_letter():
    tasks = [Task("zebra"), Task("Éclair"), Task("apple"), Task("eclair")]
    assert [t.title for t in sort_tasks(tasks, "title")] == ["apple", "eclair", "Éclair", "zebra"]


def test_task_list_search_todos():
    work = TaskList("w")
    hit, miss = Task("Fix bug"), Task("Lunch")
    work.add_todo(hit)
    work.add_todo(miss)
    assert work.search_todos("BUG") == [hit]
