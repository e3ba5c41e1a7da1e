"""
Sprint task metrics: status distribution, completion rate, overdue work.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional

from .calendar import to_day
from .models import Task, TaskStatus


@dataclass
class SprintMetrics:
    """Task-level health figures for a sprint."""
    total_tasks: int = 0
    status_counts: dict[str, int] = field(default_factory=dict)
    priority_counts: dict[str, int] = field(default_factory=dict)
    overdue_tasks: int = 0

    @property
    def completed_tasks(self) -> int:
        return self.status_counts.get(TaskStatus.COMPLETED.value, 0)

    @property
    def completion_rate(self) -> float:
        if self.total_tasks == 0:
            return 0
        return round((self.completed_tasks / self.total_tasks) * 100, 1)

    def to_dict(self) -> dict:
        return {
            "total_tasks": self.total_tasks,
            "completed_tasks": self.completed_tasks,
            "completion_rate": self.completion_rate,
            "overdue_tasks": self.overdue_tasks,
            "status": self.status_counts,
            "priority": self.priority_counts,
        }


def compute_sprint_metrics(tasks: Iterable[Task], as_of: Optional[date] = None) -> SprintMetrics:
    """
    Summarize a sprint's tasks.

    Args:
        tasks: Tasks in the sprint
        as_of: Day used to decide what is overdue (defaults to today)
    """
    tasks = list(tasks or [])
    today = to_day(as_of) or date.today()

    # Known statuses always appear, even at zero
    status_counts = {status.value: 0 for status in TaskStatus}
    for task in tasks:
        status_counts[task.status] = status_counts.get(task.status, 0) + 1

    overdue = 0
    for task in tasks:
        due = to_day(task.due_date)
        if due is not None and due < today and not task.is_completed:
            overdue += 1

    return SprintMetrics(
        total_tasks=len(tasks),
        status_counts=status_counts,
        priority_counts=dict(Counter(t.priority for t in tasks)),
        overdue_tasks=overdue,
    )
