"""
Canonical entity snapshots consumed by the analytics engine.

Instances are built by ``sprint_analytics.ingest`` from raw API records;
calculators only ever see these normalized shapes.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from enum import Enum


class SprintStatus(Enum):
    """Sprint lifecycle states."""
    PLANNED = "planned"
    ACTIVE = "active"
    COMPLETED = "completed"


class StoryStatus(Enum):
    """Story workflow states."""
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    IN_REVIEW = "in_review"
    DONE = "done"
    BLOCKED = "blocked"
    CANCELLED = "cancelled"


class TaskStatus(Enum):
    """Task workflow states."""
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    COMPLETED = "completed"


class LeaveStatus(Enum):
    """Leave request approval states."""
    APPROVED = "approved"
    PENDING = "pending"
    REJECTED = "rejected"


# Legacy records mark finished stories either way
STORY_DONE_STATUSES = {StoryStatus.DONE.value, "completed"}


@dataclass
class TeamMember:
    """A person on the project roster."""
    email: str
    display_name: Optional[str] = None
    role: str = "Contributor"

    def __post_init__(self):
        if not self.display_name:
            self.display_name = self.email


@dataclass
class Project:
    """Project with its declared team."""
    id: Optional[str] = None
    name: str = ""
    team_members: list[TeamMember] = field(default_factory=list)


@dataclass
class Sprint:
    """Time-boxed iteration."""
    id: str
    name: str = ""
    status: str = SprintStatus.PLANNED.value
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    locked_date: Optional[datetime] = None
    scope_locked: bool = False
    committed_points: Optional[float] = None
    capacity_override: dict[str, float] = field(default_factory=dict)
    project_id: Optional[str] = None

    @property
    def is_completed(self) -> bool:
        return self.status == SprintStatus.COMPLETED.value

    @property
    def is_locked(self) -> bool:
        """Scope was frozen (a lock date was recorded)."""
        return self.scope_locked or self.locked_date is not None

    @property
    def is_committed(self) -> bool:
        """Sprint counts toward velocity: completed or scope-locked."""
        return self.is_completed or self.is_locked


@dataclass
class Story:
    """User-facing unit of value sized in story points."""
    id: str
    title: str = ""
    status: str = StoryStatus.TODO.value
    story_points: float = 0.0
    project_id: Optional[str] = None
    epic_id: Optional[str] = None
    sprint_id: Optional[str] = None
    assigned_to: list[str] = field(default_factory=list)

    @property
    def is_done(self) -> bool:
        return self.status in STORY_DONE_STATUSES


@dataclass
class Task:
    """Execution step, optionally belonging to a story."""
    id: str
    title: str = ""
    status: str = TaskStatus.TODO.value
    estimated_hours: float = 0.0
    story_points: Optional[float] = None
    project_id: Optional[str] = None
    story_id: Optional[str] = None
    sprint_id: Optional[str] = None
    completed_date: Optional[datetime] = None
    updated_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    priority: str = "medium"
    assigned_to: list[str] = field(default_factory=list)

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED.value

    def is_assigned_to(self, email: str) -> bool:
        return email.lower() in (a.lower() for a in self.assigned_to)


@dataclass
class Leave:
    """Leave request for one person."""
    user_email: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: str = LeaveStatus.PENDING.value
    leave_type: str = "leave"

    @property
    def is_approved(self) -> bool:
        """Only approved leave reduces capacity."""
        return self.status == LeaveStatus.APPROVED.value


@dataclass
class Snapshot:
    """Point-in-time bundle of everything the engine reads."""
    project: Project = field(default_factory=Project)
    sprints: list[Sprint] = field(default_factory=list)
    stories: list[Story] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    leaves: list[Leave] = field(default_factory=list)

    def get_sprint(self, sprint_id: Optional[str]) -> Optional[Sprint]:
        for sprint in self.sprints:
            if sprint.id == sprint_id:
                return sprint
        return None

    def tasks_for_sprint(self, sprint: Sprint) -> list[Task]:
        return sprint_tasks(sprint.id, self.stories, self.tasks)


def sprint_tasks(sprint_id: str, stories: list[Story], tasks: list[Task]) -> list[Task]:
    """Tasks scheduled in the sprint or belonging to one of its stories."""
    story_ids = {s.id for s in stories if s.sprint_id == sprint_id}
    return [
        t for t in tasks
        if t.sprint_id == sprint_id or (t.story_id is not None and t.story_id in story_ids)
    ]
