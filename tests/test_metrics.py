"""
Tests for sprint task metrics.
"""

from datetime import date, datetime

from sprint_analytics.metrics import SprintMetrics, compute_sprint_metrics
from sprint_analytics.models import Task


class TestSprintMetrics:
    """Tests for status distribution and overdue work."""

    def test_status_distribution(self):
        tasks = [
            Task(id="t1", status="completed"),
            Task(id="t2", status="completed"),
            Task(id="t3", status="in_progress"),
            Task(id="t4", status="todo"),
        ]

        metrics = compute_sprint_metrics(tasks, as_of=date(2024, 1, 10))

        assert metrics.total_tasks == 4
        assert metrics.status_counts == {"todo": 1, "in_progress": 1, "review": 0, "completed": 2}
        assert metrics.completed_tasks == 2
        assert metrics.completion_rate == 50.0

    def test_unknown_status_kept(self):
        metrics = compute_sprint_metrics([Task(id="t1", status="blocked")], as_of=date(2024, 1, 10))
        assert metrics.status_counts["blocked"] == 1

    def test_completion_rate_rounded(self):
        tasks = [Task(id="t1", status="completed"), Task(id="t2"), Task(id="t3")]
        assert compute_sprint_metrics(tasks, as_of=date(2024, 1, 10)).completion_rate == 33.3

    def test_overdue_excludes_completed(self):
        tasks = [
            Task(id="t1", status="todo", due_date=datetime(2024, 1, 5)),
            Task(id="t2", status="completed", due_date=datetime(2024, 1, 5)),
            Task(id="t3", status="todo", due_date=datetime(2024, 1, 10, 17)),
            Task(id="t4", status="todo"),
        ]

        metrics = compute_sprint_metrics(tasks, as_of=date(2024, 1, 10))

        assert metrics.overdue_tasks == 1

    def test_priority_counts(self):
        tasks = [Task(id="t1", priority="high"), Task(id="t2"), Task(id="t3")]
        metrics = compute_sprint_metrics(tasks, as_of=date(2024, 1, 10))

        assert metrics.priority_counts == {"high": 1, "medium": 2}

    def test_no_tasks(self):
        metrics = compute_sprint_metrics([], as_of=date(2024, 1, 10))

        assert metrics.total_tasks == 0
        assert metrics.completion_rate == 0

    def test_to_dict(self):
        data = SprintMetrics(total_tasks=2, status_counts={"completed": 1, "todo": 1}).to_dict()

        assert data["completed_tasks"] == 1
        assert data["completion_rate"] == 50.0
        assert data["status"] == {"completed": 1, "todo": 1}
