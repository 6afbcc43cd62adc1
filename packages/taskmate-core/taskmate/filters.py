"""
Filtering and sorting of the task list.

Everything here is pure: the same tasks and criteria always give the same
list, and inputs are never mutated, so views can recompute on every render.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Iterable, Optional

from taskmate.dates import DUE_FILTERS, matches_due_filter
from taskmate.errors import ValidationError
from taskmate.models.task import PRIORITY_RANK, Task

STATUS_FILTERS = ("all", "open", "completed")
SORT_OPTIONS = ("newest", "oldest", "priority", "dueDate", "title")


@dataclass(frozen=True)
class TaskFilters:
    """
    Filter and sort criteria for the task list.

    Empty label/priority sets mean "no filtering" on that field.
    """

    status: str = "all"
    labels: frozenset = field(default_factory=frozenset)
    priorities: frozenset = field(default_factory=frozenset)
    due_date: str = "all"
    sort_by: str = "newest"

    def __post_init__(self):
        if self.status not in STATUS_FILTERS:
            raise ValidationError(f"Invalid status filter. Must be one of: {', '.join(STATUS_FILTERS)}")
        if self.due_date not in DUE_FILTERS:
            raise ValidationError(f"Invalid due date filter. Must be one of: {', '.join(DUE_FILTERS)}")
        if self.sort_by not in SORT_OPTIONS:
            raise ValidationError(f"Invalid sort option. Must be one of: {', '.join(SORT_OPTIONS)}")
        object.__setattr__(self, "labels", frozenset(self.labels))
        object.__setattr__(self, "priorities", frozenset(self.priorities))

    @property
    def has_active_filters(self) -> bool:
        return (
            self.status != "all"
            or bool(self.labels)
            or bool(self.priorities)
            or self.due_date != "all"
        )

    def cleared(self) -> "TaskFilters":
        """Same sort, no filters."""
        return TaskFilters(sort_by=self.sort_by)

    def toggle_label(self, label: str) -> "TaskFilters":
        return replace(self, labels=self.labels ^ {label})

    def toggle_priority(self, priority: str) -> "TaskFilters":
        return replace(self, priorities=self.priorities ^ {priority})


@dataclass(frozen=True)
class TaskSummary:
    """Dashboard counters."""

    total: int
    completed: int

    @property
    def open(self) -> int:
        return self.total - self.completed

    @property
    def progress(self) -> int:
        """Completed share as a percentage, halves rounded up."""
        if self.total == 0:
            return 0
        return int(self.completed * 100 / self.total + 0.5)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "completed": self.completed,
            "open": self.open,
            "progress": self.progress,
        }


def _created_ts(task: Task) -> float:
    """Creation time as epoch seconds; naive values are UTC, missing is 0."""
    created = task.created_at
    if created is None:
        return 0.0
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created.timestamp()


def priority_key(task: Task) -> tuple:
    """Highest priority first, then newest first."""
    return (-PRIORITY_RANK.get(task.priority, 0), -_created_ts(task))


def _due_key(task: Task) -> tuple:
    due = task.due
    if due is None:
        return (1, datetime.min)
    return (0, due.value)


_SORT_KEYS = {
    "newest": lambda t: -_created_ts(t),
    "oldest": _created_ts,
    "priority": priority_key,
    "dueDate": _due_key,
    "title": lambda t: (t.title or "").casefold(),
}


def matches_status(task: Task, status: str) -> bool:
    if status == "open":
        return not task.is_complete
    if status == "completed":
        return task.is_complete
    return True


def matches(task: Task, filters: TaskFilters, now: Optional[datetime] = None) -> bool:
    """
    Check a task against every active filter.

    Status, then label, then priority, then due-date bucket; all must pass.
    """
    if not matches_status(task, filters.status):
        return False
    if filters.labels and task.label not in filters.labels:
        return False
    if filters.priorities and task.priority not in filters.priorities:
        return False
    return matches_due_filter(task.due, filters.due_date, now)


def filter_tasks(
    tasks: Iterable[Task],
    filters: TaskFilters,
    now: Optional[datetime] = None,
) -> list[Task]:
    """Return the tasks passing all filters, in their original order."""
    return [task for task in tasks if matches(task, filters, now)]


def sort_tasks(tasks: Iterable[Task], sort_by: str = "newest") -> list[Task]:
    """
    Return a sorted copy of the tasks.

    The sort is stable: tasks with equal keys keep their relative order.
    Undated tasks always come last when sorting by due date.
    """
    if sort_by not in _SORT_KEYS:
        raise ValidationError(f"Invalid sort option. Must be one of: {', '.join(SORT_OPTIONS)}")
    return sorted(tasks, key=_SORT_KEYS[sort_by])


def apply_filters(
    tasks: Iterable[Task],
    filters: Optional[TaskFilters] = None,
    now: Optional[datetime] = None,
) -> list[Task]:
    """Filter then sort the tasks for display."""
    filters = filters or TaskFilters()
    return sort_tasks(filter_tasks(tasks, filters, now), filters.sort_by)


def summarize(tasks: Iterable[Task]) -> TaskSummary:
    """Count total and completed tasks."""
    tasks = list(tasks)
    return TaskSummary(
        total=len(tasks),
        completed=sum(1 for task in tasks if task.is_complete),
    )
