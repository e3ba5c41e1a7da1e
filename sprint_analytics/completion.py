"""
Completion Model

Single weighting rule for how much of a work item is done. Burndown works
at task granularity, velocity at story granularity; both go through
``_completion_fraction`` so the two metrics cannot disagree.
"""

from dataclasses import dataclass
from typing import Iterable

from .models import Story, Task


@dataclass(frozen=True)
class StoryCompletion:
    """Completion of one story derived from its status and tasks."""
    fraction: float
    earned_points: float
    completed_tasks: int = 0
    total_tasks: int = 0

    @property
    def is_complete(self) -> bool:
        """Story counts as delivered (done status or every task completed)."""
        return self.fraction >= 1.0

    def to_dict(self) -> dict:
        return {
            "fraction": round(self.fraction, 4),
            "earned_points": round(self.earned_points, 2),
            "completed_tasks": self.completed_tasks,
            "total_tasks": self.total_tasks,
        }


def _completion_fraction(is_terminal: bool, completed_children: int, total_children: int) -> float:
    # 1. terminal status wins regardless of children
    if is_terminal:
        return 1.0
    # 2. nothing underneath and not finished: nothing earned
    if total_children <= 0:
        return 0.0
    # 3. proportional to finished children
    return min(1.0, completed_children / total_children)


def story_completion(story: Story, tasks_of_story: Iterable[Task] = ()) -> StoryCompletion:
    """
    Calculate how much of a story is complete.

    Args:
        story: The story
        tasks_of_story: The story's own tasks (regardless of which sprint they sit in)

    Returns:
        StoryCompletion with fraction in [0, 1] and earned points
    """
    tasks = list(tasks_of_story or [])
    completed = sum(1 for t in tasks if t.is_completed)

    fraction = _completion_fraction(story.is_done, completed, len(tasks))
    return StoryCompletion(
        fraction=fraction,
        earned_points=fraction * story.story_points,
        completed_tasks=completed,
        total_tasks=len(tasks),
    )


def task_completion(task: Task) -> float:
    """Task-granularity completion: a task is a leaf with no children."""
    return _completion_fraction(task.is_completed, 0, 0)


def task_effort(task: Task) -> float:
    """
    Effort carried by a task.

    Tasks are sized in either unit: story points when set, otherwise
    estimated hours, otherwise nothing.
    """
    if task.story_points:
        return task.story_points
    if task.estimated_hours:
        return task.estimated_hours
    return 0.0


def group_tasks_by_story(tasks: Iterable[Task]) -> dict[str, list[Task]]:
    """Index tasks by their parent story id."""
    grouped: dict[str, list[Task]] = {}
    for task in tasks:
        if task.story_id is not None:
            grouped.setdefault(task.story_id, []).append(task)
    return grouped
