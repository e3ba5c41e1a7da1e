"""
Sprint Burndown Calculator

Builds the daily ideal-vs-actual remaining effort series for a sprint.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Iterable, Optional

from .calendar import enumerate_days, to_day
from .completion import task_completion, task_effort
from .models import Sprint, Task

logger = logging.getLogger(__name__)


@dataclass
class BurndownPoint:
    """One day of the burndown chart."""
    day: date
    ideal: float
    actual: float
    projected: bool = False

    @property
    def label(self) -> str:
        """Short axis label, e.g. "Jan 5"."""
        return f"{self.day.strftime('%b')} {self.day.day}"

    def to_dict(self) -> dict:
        return {
            "date": self.day.isoformat(),
            "label": self.label,
            "ideal": self.ideal,
            "actual": self.actual,
            "projected": self.projected,
        }


@dataclass
class BurndownSeries:
    """Burndown chart data plus effort totals for the sprint."""
    sprint_id: str
    sprint_name: str
    points: list[BurndownPoint] = field(default_factory=list)
    total_effort: float = 0.0
    completed_effort: float = 0.0
    as_of: Optional[date] = None

    @property
    def is_empty(self) -> bool:
        return not self.points

    @property
    def remaining_effort(self) -> float:
        return max(0.0, self.total_effort - self.completed_effort)

    @property
    def completion_percentage(self) -> float:
        if self.total_effort == 0:
            return 0
        return (self.completed_effort / self.total_effort) * 100

    def to_dict(self) -> dict:
        return {
            "sprint": {
                "id": self.sprint_id,
                "name": self.sprint_name,
            },
            "as_of": self.as_of.isoformat() if self.as_of else None,
            "effort": {
                "total": round(self.total_effort, 1),
                "completed": round(self.completed_effort, 1),
                "remaining": round(self.remaining_effort, 1),
                "completion_percentage": round(self.completion_percentage, 1),
            },
            "series": [p.to_dict() for p in self.points],
        }


class BurndownCalculator:
    """
    Computes sprint burndown series.

    "Today" decides which days show recorded progress and which are a flat
    projection. Pass ``as_of`` per call, or a ``today`` callable to pin it
    for every call.

    Usage:
        calculator = BurndownCalculator(today=lambda: date(2024, 1, 3))
        series = calculator.calculate(sprint, tasks)
    """

    def __init__(self, today: Callable[[], date] = date.today):
        self.today = today

    def completion_day(self, task: Task, sprint_start: date) -> date:
        """
        Day a completed task burned down.

        Falls back from completed_date to updated_date to the sprint start
        (legacy records without dates burn as early as possible).
        """
        for value in (task.completed_date, task.updated_date):
            day = to_day(value)
            if day is not None:
                return day
        return sprint_start

    def calculate(
        self,
        sprint: Sprint,
        tasks: Iterable[Task],
        as_of: Optional[date] = None
    ) -> BurndownSeries:
        """
        Calculate the burndown series.

        Args:
            sprint: Sprint providing the date range
            tasks: Tasks whose effort makes up the sprint scope
            as_of: Day treated as "today"

        Returns:
            BurndownSeries (empty if the sprint range is missing or inverted)
        """
        tasks = list(tasks or [])
        today = to_day(as_of) if as_of is not None else None
        if today is None:
            today = self.today()

        total_effort = sum(task_effort(t) for t in tasks)
        burned = [
            (t, task_effort(t) * task_completion(t))
            for t in tasks
            if task_completion(t) > 0
        ]
        completed_effort = sum(effort for _, effort in burned)

        series = BurndownSeries(
            sprint_id=sprint.id,
            sprint_name=sprint.name,
            total_effort=total_effort,
            completed_effort=completed_effort,
            as_of=today,
        )

        days = enumerate_days(sprint.start_date, sprint.end_date)
        if not days:
            logger.warning(
                "Sprint %s has no valid date range (start=%s, end=%s); burndown is empty",
                sprint.id, sprint.start_date, sprint.end_date
            )
            return series

        sprint_start = days[0]
        burn_days = [(self.completion_day(t, sprint_start), effort) for t, effort in burned]

        ideal_burn_rate = total_effort / max(len(days) - 1, 1)
        current_remaining = max(0.0, total_effort - completed_effort)

        for index, day in enumerate(days):
            ideal = max(0.0, total_effort - ideal_burn_rate * index)

            if day > today:
                # Future days hold at current remaining effort
                actual = current_remaining
                projected = True
            else:
                burned_by_day = sum(effort for done_on, effort in burn_days if done_on <= day)
                actual = max(0.0, total_effort - burned_by_day)
                projected = False

            series.points.append(BurndownPoint(
                day=day,
                ideal=round(ideal, 1),
                actual=round(actual, 1),
                projected=projected
            ))

        return series


# Convenience function
def compute_burndown(
    sprint: Sprint,
    tasks: Iterable[Task],
    as_of: Optional[date] = None
) -> BurndownSeries:
    """
    Quick function to compute a sprint burndown.

    Example:
        series = compute_burndown(sprint, sprint_tasks, as_of=date(2024, 1, 3))

        for point in series.points:
            print(point.label, point.ideal, point.actual)
    """
    return BurndownCalculator().calculate(sprint, tasks, as_of=as_of)
