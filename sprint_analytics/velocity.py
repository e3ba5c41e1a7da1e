"""
Sprint Velocity Aggregator

Committed vs delivered story points across sprints whose scope was
committed (completed or locked), with averages, accuracy and trend.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional
from enum import Enum

from .completion import group_tasks_by_story, story_completion
from .models import Sprint, Story, Task, sprint_tasks

# Sprints without a start date sort first
_EPOCH = datetime(1970, 1, 1)

TREND_WINDOW = 3

# Commitment accuracy (%) below which a completed sprint raises an alert
LOW_VELOCITY_THRESHOLD = 85.0

# Legacy records spell these either way
NOT_STARTED_STATUSES = {"todo", "to_do"}


class VelocityTrend(Enum):
    """Direction of recent velocity."""
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"
    INSUFFICIENT_DATA = "insufficient-data"


@dataclass
class VelocityStats:
    """Statistics over completed sprints' delivered points."""
    average: float
    median: float
    std_dev: float
    min: float
    max: float
    sprints_analyzed: int

    @property
    def confidence_range(self) -> tuple[float, float]:
        """95% confidence interval."""
        margin = 1.96 * self.std_dev
        return (max(0, self.average - margin), self.average + margin)

    def to_dict(self) -> dict:
        low, high = self.confidence_range
        return {
            "average": round(self.average, 2),
            "median": round(self.median, 2),
            "std_dev": round(self.std_dev, 2),
            "min": round(self.min, 2),
            "max": round(self.max, 2),
            "sprints_analyzed": self.sprints_analyzed,
            "confidence_range": [round(low, 2), round(high, 2)],
        }


@dataclass
class SprintVelocity:
    """Velocity figures for a single sprint."""
    sprint_id: str
    name: str
    status: str
    start_date: Optional[datetime] = None
    is_locked: bool = False
    committed_points: float = 0.0
    completed_points: float = 0.0
    completed_stories: int = 0
    total_stories: int = 0
    completed_tasks: int = 0
    in_progress_tasks: int = 0
    not_started_tasks: int = 0
    total_tasks: int = 0
    completed_hours: float = 0.0

    @property
    def short_name(self) -> str:
        if len(self.name) > 15:
            return self.name[:15] + "..."
        return self.name

    @property
    def accuracy(self) -> float:
        """Delivered share of committed points, in percent."""
        if self.committed_points <= 0:
            return 0
        return (self.completed_points / self.committed_points) * 100

    @property
    def accuracy_band(self) -> str:
        if self.accuracy >= 90:
            return "on_target"
        elif self.accuracy >= 70:
            return "good"
        elif self.accuracy >= 50:
            return "fair"
        return "poor"

    def to_dict(self) -> dict:
        return {
            "id": self.sprint_id,
            "name": self.name,
            "short_name": self.short_name,
            "status": self.status,
            "start_date": self.start_date.date().isoformat() if self.start_date else None,
            "is_locked": self.is_locked,
            "committed": round(self.committed_points, 2),
            "completed": round(self.completed_points, 2),
            "accuracy": round(self.accuracy, 2),
            "accuracy_band": self.accuracy_band,
            "stories": {
                "completed": self.completed_stories,
                "total": self.total_stories
            },
            "tasks": {
                "completed": self.completed_tasks,
                "in_progress": self.in_progress_tasks,
                "not_started": self.not_started_tasks,
                "total": self.total_tasks
            },
            "completed_hours": round(self.completed_hours, 2),
        }


@dataclass
class VelocityReport:
    """Velocity across all committed sprints."""
    per_sprint: list[SprintVelocity] = field(default_factory=list)
    average_velocity: float = 0.0
    commitment_accuracy: float = 0.0
    trend: VelocityTrend = VelocityTrend.INSUFFICIENT_DATA
    stats: Optional[VelocityStats] = None

    @property
    def total_committed(self) -> float:
        return sum(v.committed_points for v in self.per_sprint)

    @property
    def total_completed(self) -> float:
        return sum(v.completed_points for v in self.per_sprint)

    @property
    def completed_sprints(self) -> list[SprintVelocity]:
        return [v for v in self.per_sprint if v.status == "completed"]

    @property
    def low_velocity_alert(self) -> Optional[dict]:
        """
        Alert when the latest completed sprint missed its commitment.

        Escalates to an alarm when the sprint before it missed as well.
        Returns None when delivery is on target or nothing has completed.
        """
        completed = self.completed_sprints
        if not completed or completed[-1].accuracy >= LOW_VELOCITY_THRESHOLD:
            return None

        latest = completed[-1]
        alert = {
            "type": "velocity_drop",
            "category": "alert",
            "sprint_id": latest.sprint_id,
            "sprint_name": latest.name,
            "accuracy": round(latest.accuracy, 2),
        }

        if len(completed) > 1 and completed[-2].accuracy < LOW_VELOCITY_THRESHOLD:
            previous = completed[-2]
            alert.update({
                "type": "consistent_velocity_drop",
                "category": "alarm",
                "previous_sprint_id": previous.sprint_id,
                "previous_sprint_name": previous.name,
                "previous_accuracy": round(previous.accuracy, 2),
            })

        return alert

    def to_dict(self) -> dict:
        return {
            "summary": {
                "average_velocity": self.average_velocity,
                "commitment_accuracy": self.commitment_accuracy,
                "trend": self.trend.value,
                "low_velocity_alert": self.low_velocity_alert,
                "total_committed": round(self.total_committed, 2),
                "total_completed": round(self.total_completed, 2),
                "sprints_included": len(self.per_sprint),
            },
            "stats": self.stats.to_dict() if self.stats else None,
            "sprints": [v.to_dict() for v in self.per_sprint],
        }


class VelocityAggregator:
    """
    Aggregates velocity metrics from sprints, stories and tasks.

    Usage:
        aggregator = VelocityAggregator()
        report = aggregator.aggregate(sprints, stories, tasks)
        print(report.average_velocity, report.trend.value)
    """

    def include_sprint(self, sprint: Sprint, sprint_id: Optional[str] = None) -> bool:
        """Only committed scope counts; a requested sprint is always shown."""
        if sprint_id is not None:
            return sprint.id == sprint_id
        return sprint.is_committed

    def sprint_velocity(
        self,
        sprint: Sprint,
        stories: list[Story],
        tasks: list[Task],
        tasks_by_story: Optional[dict[str, list[Task]]] = None
    ) -> SprintVelocity:
        """
        Calculate committed and delivered points for one sprint.

        A story's completion uses its own task set, even for tasks that were
        moved to another sprint.
        """
        if tasks_by_story is None:
            tasks_by_story = group_tasks_by_story(tasks)

        sprint_stories = [s for s in stories if s.sprint_id == sprint.id]

        if sprint.committed_points is not None:
            committed = sprint.committed_points
        else:
            committed = sum(s.story_points for s in sprint_stories)

        completions = [
            story_completion(story, tasks_by_story.get(story.id, []))
            for story in sprint_stories
        ]

        scoped_tasks = sprint_tasks(sprint.id, stories, tasks)
        done_tasks = [t for t in scoped_tasks if t.is_completed]

        return SprintVelocity(
            sprint_id=sprint.id,
            name=sprint.name,
            status=sprint.status,
            start_date=sprint.start_date,
            is_locked=sprint.is_locked,
            committed_points=committed,
            completed_points=sum(c.earned_points for c in completions),
            completed_stories=len([c for c in completions if c.is_complete]),
            total_stories=len(sprint_stories),
            completed_tasks=len(done_tasks),
            in_progress_tasks=len([t for t in scoped_tasks if t.status == "in_progress"]),
            not_started_tasks=len([t for t in scoped_tasks if t.status in NOT_STARTED_STATUSES]),
            total_tasks=len(scoped_tasks),
            completed_hours=sum(t.estimated_hours for t in done_tasks),
        )

    def calculate_velocity_stats(self, velocities: list[SprintVelocity]) -> VelocityStats:
        """
        Calculate statistics from completed sprints.

        Args:
            velocities: Sprint velocities (only completed ones are used)
        """
        points = [v.completed_points for v in velocities if v.status == "completed"]
        if not points:
            return VelocityStats(
                average=0, median=0, std_dev=0, min=0, max=0, sprints_analyzed=0
            )

        n = len(points)
        average = sum(points) / n
        sorted_points = sorted(points)
        median = sorted_points[n // 2] if n % 2 == 1 else (sorted_points[n//2 - 1] + sorted_points[n//2]) / 2

        variance = sum((p - average) ** 2 for p in points) / n

        return VelocityStats(
            average=average,
            median=median,
            std_dev=math.sqrt(variance),
            min=min(points),
            max=max(points),
            sprints_analyzed=n
        )

    def classify_trend(self, velocities: list[SprintVelocity]) -> VelocityTrend:
        """Compare newest vs oldest of the last few completed sprints."""
        recent = [v.completed_points for v in velocities if v.status == "completed"][-TREND_WINDOW:]
        if len(recent) < 2:
            return VelocityTrend.INSUFFICIENT_DATA

        if recent[-1] > recent[0]:
            return VelocityTrend.INCREASING
        elif recent[-1] < recent[0]:
            return VelocityTrend.DECREASING
        return VelocityTrend.STABLE

    def aggregate(
        self,
        sprints: Iterable[Sprint],
        stories: Iterable[Story],
        tasks: Iterable[Task],
        sprint_id: Optional[str] = None
    ) -> VelocityReport:
        """
        Aggregate velocity across sprints.

        Args:
            sprints: Candidate sprints (planned/unlocked ones are ignored)
            stories: All stories; matched to sprints by sprint_id
            tasks: All tasks; matched to stories by story_id
            sprint_id: Restrict the report to this one sprint

        Returns:
            VelocityReport in chronological order
        """
        stories = list(stories or [])
        tasks = list(tasks or [])
        tasks_by_story = group_tasks_by_story(tasks)

        included = [s for s in (sprints or []) if self.include_sprint(s, sprint_id)]
        included.sort(key=lambda s: s.start_date or _EPOCH)

        velocities = [
            self.sprint_velocity(sprint, stories, tasks, tasks_by_story)
            for sprint in included
        ]

        stats = self.calculate_velocity_stats(velocities)

        total_committed = sum(v.committed_points for v in velocities)
        total_completed = sum(v.completed_points for v in velocities)
        accuracy = (total_completed / total_committed) * 100 if total_committed > 0 else 0

        return VelocityReport(
            per_sprint=velocities,
            average_velocity=round(stats.average, 2),
            commitment_accuracy=round(accuracy, 2),
            trend=self.classify_trend(velocities),
            stats=stats
        )


# Convenience function
def compute_velocity(
    sprints: Iterable[Sprint],
    stories: Iterable[Story],
    tasks: Iterable[Task],
    sprint_id: Optional[str] = None
) -> VelocityReport:
    """
    Quick function to compute velocity.

    Example:
        report = compute_velocity(sprints, stories, tasks)

        print(f"Average velocity: {report.average_velocity}")
        print(f"Trend: {report.trend.value}")
    """
    return VelocityAggregator().aggregate(sprints, stories, tasks, sprint_id=sprint_id)
