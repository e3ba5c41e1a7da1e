"""
Tests for the velocity aggregator.
"""

import pytest
from datetime import datetime, timedelta

from sprint_analytics.models import Sprint, Story, Task
from sprint_analytics.velocity import (
    VelocityAggregator,
    VelocityReport,
    SprintVelocity,
    VelocityStats,
    VelocityTrend,
    compute_velocity
)


def completed_sprint(sprint_id: str, start: datetime, **kwargs) -> Sprint:
    return Sprint(id=sprint_id, name=f"Sprint {sprint_id}", status="completed", start_date=start, **kwargs)


def done_story(story_id: str, sprint_id: str, points: float) -> Story:
    return Story(id=story_id, sprint_id=sprint_id, status="done", story_points=points)


def history(points: list[float]) -> tuple[list[Sprint], list[Story]]:
    """Completed sprints delivering the given points, oldest first."""
    sprints = []
    stories = []
    for i, p in enumerate(points):
        sprints.append(completed_sprint(f"s{i}", datetime(2024, 1, 1) + timedelta(days=14 * i)))
        stories.append(done_story(f"st{i}", f"s{i}", p))
    return sprints, stories


class TestSprintInclusion:
    """Tests for which sprints count toward velocity."""

    def test_planned_and_unlocked_active_excluded(self):
        sprints = [
            Sprint(id="planned", status="planned"),
            Sprint(id="active", status="active"),
            Sprint(id="locked", status="active", start_date=datetime(2024, 2, 1),
                   locked_date=datetime(2024, 2, 1)),
            completed_sprint("done", datetime(2024, 1, 1)),
        ]

        report = compute_velocity(sprints, [], [])

        assert [v.sprint_id for v in report.per_sprint] == ["done", "locked"]
        assert report.per_sprint[1].is_locked

    def test_single_sprint_mode(self):
        """Requesting one sprint shows it even if not committed."""
        sprints = [Sprint(id="planned", status="planned"), completed_sprint("done", datetime(2024, 1, 1))]

        report = compute_velocity(sprints, [], [], sprint_id="planned")

        assert [v.sprint_id for v in report.per_sprint] == ["planned"]

    def test_chronological_order_missing_start_first(self):
        sprints = [
            completed_sprint("late", datetime(2024, 3, 1)),
            completed_sprint("early", datetime(2024, 1, 1)),
            Sprint(id="undated", status="completed"),
        ]

        report = compute_velocity(sprints, [], [])

        assert [v.sprint_id for v in report.per_sprint] == ["undated", "early", "late"]


class TestSprintVelocity:
    """Tests for per-sprint committed/completed points."""

    def test_committed_snapshot_wins(self):
        sprint = completed_sprint("s1", datetime(2024, 1, 1), committed_points=20)
        stories = [done_story("a", "s1", 5), done_story("b", "s1", 3)]

        velocity = compute_velocity([sprint], stories, []).per_sprint[0]

        assert velocity.committed_points == 20
        assert velocity.completed_points == 8

    def test_committed_falls_back_to_live_points(self):
        sprint = completed_sprint("s1", datetime(2024, 1, 1))
        stories = [
            done_story("a", "s1", 5),
            Story(id="b", sprint_id="s1", status="todo", story_points=3),
            Story(id="c", sprint_id="other", status="done", story_points=13),
        ]

        velocity = compute_velocity([sprint], stories, []).per_sprint[0]

        assert velocity.committed_points == 8
        assert velocity.completed_points == 5

    def test_partial_story_completion(self):
        sprint = completed_sprint("s1", datetime(2024, 1, 1))
        stories = [Story(id="a", sprint_id="s1", status="in_progress", story_points=8)]
        tasks = [
            Task(id="t1", story_id="a", status="completed", estimated_hours=3),
            Task(id="t2", story_id="a", status="todo"),
            Task(id="t3", story_id="a", status="todo"),
            Task(id="t4", story_id="a", status="review"),
        ]

        velocity = compute_velocity([sprint], stories, tasks).per_sprint[0]

        assert velocity.completed_points == 2.0
        assert velocity.completed_stories == 0
        assert velocity.total_stories == 1
        assert velocity.completed_tasks == 1
        assert velocity.total_tasks == 4
        assert velocity.in_progress_tasks == 0
        assert velocity.not_started_tasks == 2
        assert velocity.completed_hours == 3

    def test_story_uses_own_tasks_across_sprints(self):
        """Tasks re-sprinted elsewhere still count toward their story."""
        sprint = completed_sprint("s1", datetime(2024, 1, 1))
        stories = [Story(id="a", sprint_id="s1", status="in_progress", story_points=4)]
        tasks = [
            Task(id="t1", story_id="a", sprint_id="s2", status="completed"),
            Task(id="t2", story_id="a", sprint_id="s1", status="todo"),
        ]

        velocity = compute_velocity([sprint], stories, tasks).per_sprint[0]

        assert velocity.completed_points == 2.0

    def test_empty_sprint(self):
        velocity = compute_velocity([completed_sprint("s1", datetime(2024, 1, 1))], [], []).per_sprint[0]

        assert velocity.committed_points == 0
        assert velocity.completed_points == 0
        assert velocity.accuracy == 0

    def test_completed_bounded_by_story_points(self):
        sprint = completed_sprint("s1", datetime(2024, 1, 1))
        stories = [
            Story(id="a", sprint_id="s1", status="in_progress", story_points=5),
            Story(id="b", sprint_id="s1", status="done", story_points=3),
        ]
        tasks = [Task(id="t1", story_id="a", status="completed")]

        velocity = compute_velocity([sprint], stories, tasks).per_sprint[0]

        assert 0 <= velocity.completed_points <= sum(s.story_points for s in stories)

    def test_task_status_counts(self):
        sprint = completed_sprint("s1", datetime(2024, 1, 1))
        tasks = [
            Task(id="t1", sprint_id="s1", status="completed"),
            Task(id="t2", sprint_id="s1", status="in_progress"),
            Task(id="t3", sprint_id="s1", status="todo"),
            Task(id="t4", sprint_id="s1", status="to_do"),
            Task(id="t5", sprint_id="s1", status="review"),
        ]

        velocity = compute_velocity([sprint], [], tasks).per_sprint[0]
        data = velocity.to_dict()["tasks"]

        assert data == {"completed": 1, "in_progress": 1, "not_started": 2, "total": 5}

    def test_accuracy_band_and_short_name(self):
        velocity = SprintVelocity(
            sprint_id="s1",
            name="A very long sprint name",
            status="completed",
            committed_points=10,
            completed_points=7.5
        )

        assert velocity.accuracy == 75.0
        assert velocity.accuracy_band == "good"
        assert velocity.short_name == "A very long spr..."


class TestVelocityReport:
    """Tests for averages, accuracy and trend."""

    def test_average_uses_completed_sprints_only(self):
        sprints, stories = history([10, 20])
        sprints.append(Sprint(id="locked", status="active", start_date=datetime(2024, 3, 1),
                              locked_date=datetime(2024, 3, 1)))
        stories.append(done_story("x", "locked", 100))

        report = compute_velocity(sprints, stories, [])

        assert report.average_velocity == 15.0
        assert len(report.per_sprint) == 3

    def test_commitment_accuracy(self):
        sprints = [
            completed_sprint("s1", datetime(2024, 1, 1), committed_points=10),
            completed_sprint("s2", datetime(2024, 1, 15), committed_points=10),
        ]
        stories = [done_story("a", "s1", 10), done_story("b", "s2", 5)]

        report = compute_velocity(sprints, stories, [])

        assert report.commitment_accuracy == 75.0
        assert report.total_committed == 20
        assert report.total_completed == 15

    def test_accuracy_zero_when_nothing_committed(self):
        report = compute_velocity([completed_sprint("s1", datetime(2024, 1, 1))], [], [])
        assert report.commitment_accuracy == 0

    def test_average_rounded(self):
        sprints, stories = history([1, 1, 2])
        assert compute_velocity(sprints, stories, []).average_velocity == 1.33

    @pytest.mark.parametrize("points,expected", [
        ([5, 5, 5], VelocityTrend.STABLE),
        ([3, 5, 8], VelocityTrend.INCREASING),
        ([8, 5, 3], VelocityTrend.DECREASING),
        ([20, 3, 9, 3], VelocityTrend.STABLE),
        ([4, 6], VelocityTrend.INCREASING),
        ([4], VelocityTrend.INSUFFICIENT_DATA),
        ([], VelocityTrend.INSUFFICIENT_DATA),
    ])
    def test_trend(self, points, expected):
        sprints, stories = history(points)
        assert compute_velocity(sprints, stories, []).trend == expected

    def test_trend_ignores_locked_active_sprints(self):
        sprints, stories = history([5, 5])
        sprints.append(Sprint(id="locked", status="active", start_date=datetime(2024, 6, 1),
                              locked_date=datetime(2024, 6, 1)))
        stories.append(done_story("x", "locked", 50))

        assert compute_velocity(sprints, stories, []).trend == VelocityTrend.STABLE

    def test_idempotent(self):
        sprints, stories = history([3, 5, 8])

        first = compute_velocity(sprints, stories, [])
        second = compute_velocity(sprints, stories, [])

        assert first.to_dict() == second.to_dict()

    def test_to_dict(self):
        sprints, stories = history([3, 5, 8])

        data = compute_velocity(sprints, stories, []).to_dict()

        assert data["summary"]["trend"] == "increasing"
        assert data["summary"]["sprints_included"] == 3
        assert data["sprints"][0]["start_date"] == "2024-01-01"
        assert data["stats"]["sprints_analyzed"] == 3

    def test_empty_report_to_dict(self):
        data = VelocityReport().to_dict()

        assert data["summary"]["trend"] == "insufficient-data"
        assert data["stats"] is None


class TestLowVelocityAlert:
    """Tests for missed-commitment detection."""

    def sprints_with_accuracy(self, delivered: list[float]) -> tuple[list[Sprint], list[Story]]:
        """Completed sprints committing 10 points each."""
        sprints = []
        stories = []
        for i, points in enumerate(delivered):
            sprints.append(completed_sprint(f"s{i}", datetime(2024, 1, 1) + timedelta(days=14 * i),
                                            committed_points=10))
            stories.append(done_story(f"st{i}", f"s{i}", points))
        return sprints, stories

    def test_on_target(self):
        sprints, stories = self.sprints_with_accuracy([5, 9])
        assert compute_velocity(sprints, stories, []).low_velocity_alert is None

    def test_latest_sprint_below_threshold(self):
        sprints, stories = self.sprints_with_accuracy([10, 8])

        alert = compute_velocity(sprints, stories, []).low_velocity_alert

        assert alert["type"] == "velocity_drop"
        assert alert["category"] == "alert"
        assert alert["sprint_id"] == "s1"
        assert alert["accuracy"] == 80.0
        assert "previous_sprint_id" not in alert

    def test_two_consecutive_misses_escalate(self):
        sprints, stories = self.sprints_with_accuracy([10, 6, 8])

        alert = compute_velocity(sprints, stories, []).low_velocity_alert

        assert alert["type"] == "consistent_velocity_drop"
        assert alert["category"] == "alarm"
        assert alert["previous_sprint_id"] == "s1"
        assert alert["previous_accuracy"] == 60.0

    def test_single_sprint_miss(self):
        sprints, stories = self.sprints_with_accuracy([2])
        assert compute_velocity(sprints, stories, []).low_velocity_alert["category"] == "alert"

    def test_locked_active_sprint_ignored(self):
        sprints, stories = self.sprints_with_accuracy([9])
        sprints.append(Sprint(id="live", status="active", start_date=datetime(2024, 3, 1),
                              locked_date=datetime(2024, 3, 1), committed_points=10))

        assert compute_velocity(sprints, stories, []).low_velocity_alert is None

    def test_no_history(self):
        assert VelocityReport().low_velocity_alert is None

    def test_in_summary(self):
        sprints, stories = self.sprints_with_accuracy([10, 8])
        data = compute_velocity(sprints, stories, []).to_dict()

        assert data["summary"]["low_velocity_alert"]["type"] == "velocity_drop"


class TestVelocityStats:
    """Tests for velocity statistics calculation."""

    def test_calculate_basic_stats(self):
        """Test basic velocity statistics."""
        aggregator = VelocityAggregator()
        velocities = [
            SprintVelocity(sprint_id=str(i), name="", status="completed", completed_points=p)
            for i, p in enumerate([20, 25, 22, 28, 25])
        ]

        stats = aggregator.calculate_velocity_stats(velocities)

        assert stats.average == 24.0
        assert stats.median == 25.0
        assert stats.min == 20
        assert stats.max == 28
        assert stats.sprints_analyzed == 5
        assert stats.std_dev > 0

    def test_empty_history(self):
        """Test with no history."""
        stats = VelocityAggregator().calculate_velocity_stats([])

        assert stats.average == 0
        assert stats.median == 0
        assert stats.sprints_analyzed == 0

    def test_only_completed_sprints_counted(self):
        velocities = [
            SprintVelocity(sprint_id="a", name="", status="completed", completed_points=10),
            SprintVelocity(sprint_id="b", name="", status="active", completed_points=50),
        ]

        stats = VelocityAggregator().calculate_velocity_stats(velocities)

        assert stats.sprints_analyzed == 1
        assert stats.average == 10

    def test_confidence_range(self):
        stats = VelocityStats(average=10, median=10, std_dev=10, min=0, max=20, sprints_analyzed=3)

        low, high = stats.confidence_range

        assert low == 0
        assert high == pytest.approx(29.6)
