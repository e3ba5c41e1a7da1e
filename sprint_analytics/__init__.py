"""
Sprint Analytics

Burndown, velocity and capacity metrics computed from project-management
snapshots (sprints, stories, tasks and leave).
"""

__version__ = "1.0.0"

from .calendar import (
    parse_flexible_date,
    enumerate_days,
    business_days_inclusive,
    overlap_days
)

from .models import (
    Project,
    Sprint,
    Story,
    Task,
    Leave,
    TeamMember,
    Snapshot
)

from .ingest import load_snapshot

from .completion import (
    StoryCompletion,
    story_completion,
    task_completion,
    task_effort
)

from .burndown import (
    BurndownCalculator,
    BurndownSeries,
    BurndownPoint,
    compute_burndown
)

from .velocity import (
    VelocityAggregator,
    VelocityReport,
    SprintVelocity,
    VelocityStats,
    VelocityTrend,
    compute_velocity
)

from .capacity import (
    CapacityPlanner,
    CapacityPolicy,
    PersonCapacity,
    PersonPlanningLoad,
    PlanningStatus,
    TeamCapacitySummary,
    WorkloadLevel,
    compute_capacity,
    compute_planning_workload
)

from .metrics import SprintMetrics, compute_sprint_metrics

__all__ = [
    # Version
    "__version__",

    # Calendar
    "parse_flexible_date",
    "enumerate_days",
    "business_days_inclusive",
    "overlap_days",

    # Entities
    "Project",
    "Sprint",
    "Story",
    "Task",
    "Leave",
    "TeamMember",
    "Snapshot",
    "load_snapshot",

    # Completion
    "StoryCompletion",
    "story_completion",
    "task_completion",
    "task_effort",

    # Burndown
    "BurndownCalculator",
    "BurndownSeries",
    "BurndownPoint",
    "compute_burndown",

    # Velocity
    "VelocityAggregator",
    "VelocityReport",
    "SprintVelocity",
    "VelocityStats",
    "VelocityTrend",
    "compute_velocity",

    # Capacity
    "CapacityPlanner",
    "CapacityPolicy",
    "PersonCapacity",
    "PersonPlanningLoad",
    "PlanningStatus",
    "TeamCapacitySummary",
    "WorkloadLevel",
    "compute_capacity",
    "compute_planning_workload",

    # Metrics
    "SprintMetrics",
    "compute_sprint_metrics",
]
