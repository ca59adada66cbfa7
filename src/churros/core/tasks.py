"""Pure task domain logic - no I/O dependencies."""

import logging
from dataclasses import dataclass
from datetime import date

from .recurrence import (
    InvalidDescriptor,
    RecurrenceDescriptor,
    RecurrenceKind,
    is_due,
    parse_kind,
    parse_parity,
)

logger = logging.getLogger(__name__)


def _parse_date(value: str | None) -> date | None:
    if not value:
        return None
    return date.fromisoformat(value.split("T")[0])


@dataclass
class Task:
    """An employee task, one-off or recurring."""

    id: str
    title: str
    assigned_to: str
    is_recurring: bool = False
    description: str | None = None
    due_date: date | None = None
    recurrence_type: str | None = None
    recurrence_day_of_week: int | None = None
    recurrence_day_of_month: int | None = None
    recurrence_week_parity: str | None = None
    recurrence_start_date: date | None = None
    recurrence_end_date: date | None = None
    is_active: bool = True

    @property
    def recurrence(self) -> RecurrenceDescriptor:
        """
        Recurrence descriptor for this task (date-only variant).

        Raises InvalidDescriptor if the stored columns don't form a valid rule.
        """
        if not self.is_recurring:
            return RecurrenceDescriptor(kind=RecurrenceKind.NONE, due=self.due_date)

        kind = parse_kind(self.recurrence_type)
        if kind is RecurrenceKind.NONE:
            raise InvalidDescriptor(f"Task {self.id} is recurring but has no recurrence type")

        return RecurrenceDescriptor(
            kind=kind,
            anchor_day_of_week=self.recurrence_day_of_week,
            anchor_day_of_month=self.recurrence_day_of_month,
            parity=parse_parity(self.recurrence_week_parity),
            start_date=self.recurrence_start_date,
            end_date=self.recurrence_end_date,
        )

    @classmethod
    def from_api(cls, data: dict) -> "Task":
        """Create Task from a `tasks` table row."""
        return cls(
            id=data["id"],
            title=data["title"],
            assigned_to=data.get("assigned_to", ""),
            is_recurring=bool(data.get("is_recurring")),
            description=data.get("description"),
            due_date=_parse_date(data.get("due_date")),
            recurrence_type=data.get("recurrence_type"),
            recurrence_day_of_week=data.get("recurrence_day_of_week"),
            recurrence_day_of_month=data.get("recurrence_day_of_month"),
            recurrence_week_parity=data.get("recurrence_week_parity"),
            recurrence_start_date=_parse_date(data.get("recurrence_start_date")),
            recurrence_end_date=_parse_date(data.get("recurrence_end_date")),
            is_active=data.get("is_active", True),
        )


@dataclass
class TaskCompletion:
    """A task marked done for a specific date."""

    task_id: str
    completion_date: date
    completed_by: str = ""
    notes: str | None = None

    @classmethod
    def from_api(cls, data: dict) -> "TaskCompletion":
        return cls(
            task_id=data["task_id"],
            completion_date=date.fromisoformat(data["completion_date"]),
            completed_by=data.get("completed_by", ""),
            notes=data.get("notes"),
        )


def is_task_due_on(task: Task, day: date) -> bool:
    """Whether the task should show up on `day`. Inactive tasks never do."""
    if not task.is_active:
        return False
    try:
        descriptor = task.recurrence
    except InvalidDescriptor as e:
        logger.warning(f"Task {task.id} has an invalid recurrence: {e}")
        return False
    if descriptor.kind is RecurrenceKind.NONE and descriptor.due is None:
        return False
    return is_due(descriptor, day)


def tasks_for_date(tasks: list[Task], day: date) -> list[Task]:
    """Filter to tasks due on `day`."""
    return [t for t in tasks if is_task_due_on(t, day)]


def is_completed_on(completions: list[TaskCompletion], task_id: str, day: date) -> bool:
    """Check whether a completion exists for the task on `day`."""
    return any(c.task_id == task_id and c.completion_date == day for c in completions)


def pending_for_date(
    tasks: list[Task],
    completions: list[TaskCompletion],
    day: date,
) -> list[Task]:
    """Tasks due on `day` that nobody has completed yet."""
    return [t for t in tasks_for_date(tasks, day) if not is_completed_on(completions, t.id, day)]


def completion_toggle(completions: list[TaskCompletion], task_id: str, day: date) -> str:
    """
    Decide what toggling a task's checkbox on `day` does.

    Returns "delete" if the task is already completed that day, else "insert".
    """
    return "delete" if is_completed_on(completions, task_id, day) else "insert"
