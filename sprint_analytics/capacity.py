"""
Sprint Capacity Planner

Per-person available hours for a sprint after leave, and how assigned
work compares to it.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional
from enum import Enum

from .calendar import business_days_inclusive, enumerate_days, overlap_days, ranges_overlap
from .ingest import coerce_number
from .models import Leave, Project, Sprint, Story, Task, TeamMember

logger = logging.getLogger(__name__)


class WorkloadLevel(Enum):
    """Assigned hours relative to capacity."""
    UNDERUTILIZED = "underutilized"
    OPTIMAL = "optimal"
    HIGH = "high"
    OVERLOADED = "overloaded"


class PlanningStatus(Enum):
    """Planned load relative to capacity, used while filling a sprint."""
    UNDERLOADED = "underloaded"
    HEALTHY = "healthy"
    OVERLOADED = "overloaded"


@dataclass
class CapacityPolicy:
    """Capacity rules and workload thresholds."""
    max_hours_per_sprint: float = 40.0
    default_hours_per_day: float = 8.0

    # Ratios of assigned hours to capacity
    overloaded_ratio: float = 1.1
    high_ratio: float = 0.85
    underutilized_ratio: float = 0.5

    # Sprint planning view
    hours_per_point: float = 2.0
    underloaded_percent: float = 60.0
    overloaded_percent: float = 100.0

    def classify(self, assigned_hours: float, capacity: float) -> WorkloadLevel:
        """Workload level for assigned hours against a capacity."""
        if capacity == 0 and assigned_hours > 0:
            return WorkloadLevel.OVERLOADED
        elif assigned_hours > capacity * self.overloaded_ratio:
            return WorkloadLevel.OVERLOADED
        elif assigned_hours > capacity * self.high_ratio:
            return WorkloadLevel.HIGH
        elif assigned_hours < capacity * self.underutilized_ratio:
            return WorkloadLevel.UNDERUTILIZED
        return WorkloadLevel.OPTIMAL

    def classify_planned_load(self, load_percent: float) -> PlanningStatus:
        if load_percent < self.underloaded_percent:
            return PlanningStatus.UNDERLOADED
        elif load_percent > self.overloaded_percent:
            return PlanningStatus.OVERLOADED
        return PlanningStatus.HEALTHY


@dataclass
class PersonCapacity:
    """Capacity picture for one person in a sprint."""
    email: str
    display_name: str
    role: str = "Contributor"
    is_roster_member: bool = True

    # Calendar
    business_days: int = 0
    leave_days: int = 0
    effective_days: int = 0
    hours_per_day: float = 8.0

    # Hours
    calculated_hours: float = 0.0
    capacity_hours: float = 0.0
    assigned_hours: float = 0.0

    # Work
    tasks_count: int = 0
    completed_tasks: int = 0

    workload_level: WorkloadLevel = WorkloadLevel.UNDERUTILIZED

    @property
    def utilization_percent(self) -> float:
        """Assigned share of capacity, capped at 100%."""
        if self.capacity_hours > 0:
            return min((self.assigned_hours / self.capacity_hours) * 100, 100)
        return 100 if self.assigned_hours > 0 else 0

    @property
    def available_hours(self) -> float:
        return max(0.0, self.capacity_hours - self.assigned_hours)

    def to_dict(self) -> dict:
        return {
            "email": self.email,
            "display_name": self.display_name,
            "role": self.role,
            "is_roster_member": self.is_roster_member,
            "calendar": {
                "business_days": self.business_days,
                "leave_days": self.leave_days,
                "effective_days": self.effective_days,
                "hours_per_day": self.hours_per_day
            },
            "hours": {
                "calculated": round(self.calculated_hours, 1),
                "capacity": round(self.capacity_hours, 1),
                "assigned": round(self.assigned_hours, 1),
                "available": round(self.available_hours, 1)
            },
            "tasks": {
                "count": self.tasks_count,
                "completed": self.completed_tasks
            },
            "workload": {
                "level": self.workload_level.value,
                "utilization_percent": round(self.utilization_percent, 1)
            }
        }


@dataclass
class TeamCapacitySummary:
    """Capacity across everyone working in the sprint."""
    members: list[PersonCapacity] = field(default_factory=list)
    has_valid_dates: bool = True

    @property
    def team_size(self) -> int:
        return len(self.members)

    @property
    def total_capacity_hours(self) -> float:
        """Sum of capped per-person capacity."""
        return sum(m.capacity_hours for m in self.members)

    @property
    def roster_capacity_hours(self) -> float:
        """Capacity of declared project members only."""
        return sum(m.capacity_hours for m in self.members if m.is_roster_member)

    @property
    def total_assigned_hours(self) -> float:
        return sum(m.assigned_hours for m in self.members)

    @property
    def team_utilization(self) -> float:
        if self.total_capacity_hours <= 0:
            return 0
        return (self.total_assigned_hours / self.total_capacity_hours) * 100

    def count_level(self, level: WorkloadLevel) -> int:
        return len([m for m in self.members if m.workload_level == level])

    @property
    def overloaded_count(self) -> int:
        return self.count_level(WorkloadLevel.OVERLOADED)

    @property
    def underutilized_count(self) -> int:
        return self.count_level(WorkloadLevel.UNDERUTILIZED)

    def get_member(self, email: str) -> Optional[PersonCapacity]:
        email = email.lower()
        for member in self.members:
            if member.email == email:
                return member
        return None

    def get_most_overloaded(self, n: int = 3) -> list[PersonCapacity]:
        """Get the N people with the highest assigned-to-capacity ratio."""
        sorted_members = sorted(self.members, key=_load_ratio, reverse=True)
        return sorted_members[:n]

    def get_available_capacity(self, n: int = 3) -> list[PersonCapacity]:
        """Get the N people with the most free hours."""
        sorted_members = sorted(self.members, key=lambda m: m.available_hours, reverse=True)
        return sorted_members[:n]

    def to_dict(self) -> dict:
        return {
            "summary": {
                "team_size": self.team_size,
                "has_valid_dates": self.has_valid_dates,
                "total_capacity_hours": round(self.total_capacity_hours, 1),
                "roster_capacity_hours": round(self.roster_capacity_hours, 1),
                "total_assigned_hours": round(self.total_assigned_hours, 1),
                "team_utilization": round(self.team_utilization, 1),
                "levels": {level.value: self.count_level(level) for level in WorkloadLevel}
            },
            "members": [m.to_dict() for m in self.members]
        }


def _load_ratio(member: PersonCapacity) -> float:
    if member.capacity_hours > 0:
        return member.assigned_hours / member.capacity_hours
    return float("inf") if member.assigned_hours > 0 else 0.0


@dataclass
class PersonPlanningLoad:
    """Planned work for one roster member while a sprint is being filled."""
    email: str
    display_name: str
    role: str = "Contributor"
    capacity_hours: float = 0.0
    task_hours: float = 0.0
    story_hours: float = 0.0
    points: float = 0.0
    status: PlanningStatus = PlanningStatus.HEALTHY

    @property
    def assigned_hours(self) -> float:
        return self.task_hours + self.story_hours

    @property
    def load_percent(self) -> float:
        """Assigned share of capacity; capacity below 1h counts as 1h."""
        capacity = self.capacity_hours if self.capacity_hours > 0 else 1
        return (self.assigned_hours / capacity) * 100

    def to_dict(self) -> dict:
        return {
            "email": self.email,
            "display_name": self.display_name,
            "role": self.role,
            "points": round(self.points, 1),
            "hours": {
                "tasks": round(self.task_hours, 1),
                "stories": round(self.story_hours, 1),
                "assigned": round(self.assigned_hours, 1),
                "capacity": round(self.capacity_hours)
            },
            "load_percent": round(self.load_percent, 1),
            "status": self.status.value
        }


class CapacityPlanner:
    """
    Computes sprint capacity for a project team.

    Usage:
        planner = CapacityPlanner()
        summary = planner.plan(
            project=project,
            sprint=sprint,
            leaves=approved_leaves,
            tasks=sprint_tasks
        )
    """

    def __init__(self, policy: Optional[CapacityPolicy] = None):
        self.policy = policy or CapacityPolicy()

    def build_roster(self, project: Project, tasks: Iterable[Task]) -> list[tuple[TeamMember, bool]]:
        """
        Project members first, then ad-hoc task assignees.

        Returns:
            (member, is_roster_member) pairs
        """
        roster = []
        seen = set()

        for member in project.team_members:
            email = member.email.lower()
            if email not in seen:
                seen.add(email)
                roster.append((member, True))

        for task in tasks:
            for email in (a.lower() for a in task.assigned_to):
                if email not in seen:
                    seen.add(email)
                    roster.append((TeamMember(email=email), False))

        return roster

    def resolve_hours_per_day(self, email: str, overrides: dict) -> float:
        if email in overrides and overrides[email] is not None:
            return coerce_number(overrides[email])
        return self.policy.default_hours_per_day

    def leave_days_for(self, email: str, sprint: Sprint, leaves: Iterable[Leave]) -> int:
        """Calendar days of approved leave inside the sprint."""
        total = 0
        for leave in leaves:
            if leave.user_email.lower() != email or not leave.is_approved:
                continue
            days = overlap_days(leave.start_date, leave.end_date, sprint.start_date, sprint.end_date)
            if days == 0 and (leave.start_date is None or leave.end_date is None):
                logger.debug("Leave for %s has unparseable dates; ignored", email)
            total += days
        return total

    def analyze_person(
        self,
        member: TeamMember,
        sprint: Sprint,
        leaves: list[Leave],
        tasks: list[Task],
        overrides: dict,
        business_days: Optional[int],
        is_roster_member: bool = True
    ) -> PersonCapacity:
        """
        Capacity for a single person.

        Args:
            business_days: Business days in the sprint, or None when the
                sprint range is unusable (capacity then defaults to the ceiling)
        """
        email = member.email.lower()
        ceiling = self.policy.max_hours_per_sprint

        person = PersonCapacity(
            email=email,
            display_name=member.display_name or email,
            role=member.role,
            is_roster_member=is_roster_member,
            hours_per_day=self.resolve_hours_per_day(email, overrides)
        )

        if business_days is None:
            person.calculated_hours = ceiling
            person.capacity_hours = ceiling
        else:
            person.business_days = business_days
            person.leave_days = self.leave_days_for(email, sprint, leaves)
            person.effective_days = max(0, business_days - person.leave_days)
            person.calculated_hours = person.effective_days * person.hours_per_day
            person.capacity_hours = min(person.calculated_hours, ceiling)

        user_tasks = [t for t in tasks if t.is_assigned_to(email)]
        person.tasks_count = len(user_tasks)
        person.completed_tasks = len([t for t in user_tasks if t.is_completed])
        person.assigned_hours = sum(t.estimated_hours for t in user_tasks)
        person.workload_level = self.policy.classify(person.assigned_hours, person.capacity_hours)

        return person

    def plan(
        self,
        project: Project,
        sprint: Sprint,
        leaves: Optional[Iterable[Leave]] = None,
        tasks: Optional[Iterable[Task]] = None,
        capacity_overrides: Optional[dict] = None
    ) -> TeamCapacitySummary:
        """
        Compute capacity for everyone working in the sprint.

        Args:
            project: Project with its declared team
            sprint: Sprint providing dates and stored hours/day overrides
            leaves: Leave records (non-approved ones are ignored)
            tasks: Tasks used for assigned hours and ad-hoc roster entries
            capacity_overrides: Hours/day by email, applied over the sprint's own

        Returns:
            TeamCapacitySummary in roster order
        """
        leaves = list(leaves or [])
        tasks = list(tasks or [])

        overrides = self.merge_overrides(sprint, capacity_overrides)
        business_days = self.sprint_business_days(sprint)

        members = [
            self.analyze_person(member, sprint, leaves, tasks, overrides, business_days, is_roster)
            for member, is_roster in self.build_roster(project, tasks)
        ]

        return TeamCapacitySummary(members=members, has_valid_dates=business_days is not None)

    def merge_overrides(self, sprint: Sprint, capacity_overrides: Optional[dict] = None) -> dict:
        """Sprint-stored hours/day overrides with the caller's applied on top."""
        overrides = dict(sprint.capacity_override)
        for email, hours in (capacity_overrides or {}).items():
            if isinstance(email, str):
                overrides[email.lower()] = hours
        return overrides

    def sprint_business_days(self, sprint: Sprint) -> Optional[int]:
        """Business days in the sprint, or None when its range is unusable."""
        if not enumerate_days(sprint.start_date, sprint.end_date):
            logger.warning(
                "Sprint %s has no valid date range; using %sh per person",
                sprint.id, self.policy.max_hours_per_sprint
            )
            return None
        return business_days_inclusive(sprint.start_date, sprint.end_date)

    def planned_task_hours(self, task: Task) -> float:
        """
        Hours a task adds to each of its assignees.

        Estimated hours are split evenly among assignees; tasks without an
        estimate convert story points to hours instead.
        """
        if task.estimated_hours > 0:
            return task.estimated_hours / max(len(task.assigned_to), 1)
        return (task.story_points or 0) * self.policy.hours_per_point

    def planning_workload(
        self,
        project: Project,
        sprint: Sprint,
        stories: Optional[Iterable[Story]] = None,
        tasks: Optional[Iterable[Task]] = None,
        leaves: Optional[Iterable[Leave]] = None,
        capacity_overrides: Optional[dict] = None
    ) -> list[PersonPlanningLoad]:
        """
        Planned load per roster member while a sprint is being filled.

        Assigned stories in the sprint count story points as hours on top of
        each member's task hours, so load is visible before tasks are broken
        out.

        Args:
            project: Project with its declared team
            sprint: Sprint being planned
            stories: All stories; only those in the sprint count
            tasks: Tasks in the sprint
            leaves: Leave records (non-approved ones are ignored)
            capacity_overrides: Hours/day by email, applied over the sprint's own

        Returns:
            One entry per declared team member, in roster order
        """
        leaves = list(leaves or [])
        tasks = list(tasks or [])
        sprint_stories = [s for s in (stories or []) if s.sprint_id == sprint.id]

        overrides = self.merge_overrides(sprint, capacity_overrides)
        business_days = self.sprint_business_days(sprint)
        nothing_planned = not tasks and not sprint_stories

        loads = []
        for member in project.team_members:
            capacity = self.analyze_person(member, sprint, leaves, [], overrides, business_days)
            email = capacity.email

            person = PersonPlanningLoad(
                email=email,
                display_name=capacity.display_name,
                role=capacity.role,
                capacity_hours=capacity.capacity_hours
            )
            if nothing_planned:
                loads.append(person)
                continue

            user_tasks = [t for t in tasks if t.is_assigned_to(email)]
            user_stories = [
                s for s in sprint_stories
                if email in (a.lower() for a in s.assigned_to)
            ]

            person.task_hours = sum(self.planned_task_hours(t) for t in user_tasks)
            person.story_hours = sum(s.story_points for s in user_stories) * self.policy.hours_per_point
            person.points = (
                sum(t.story_points or 0 for t in user_tasks)
                + sum(s.story_points for s in user_stories)
            )
            person.status = self.policy.classify_planned_load(person.load_percent)
            loads.append(person)

        return loads

    def find_coverage_gaps(
        self,
        sprint: Sprint,
        leaves: Iterable[Leave],
        roster: Iterable[str],
        min_coverage: int = 2
    ) -> list[dict]:
        """
        Find sprint business days where too many people are on leave.

        Args:
            sprint: Sprint to check
            leaves: Leave records (only approved ones count)
            roster: Team members' emails
            min_coverage: Minimum people needed available

        Returns:
            List of gap days with who is out
        """
        emails = []
        for email in roster:
            email = email.lower()
            if email not in emails:
                emails.append(email)

        approved = [
            l for l in leaves
            if l.is_approved and l.user_email.lower() in emails
            and ranges_overlap(l.start_date, l.end_date, sprint.start_date, sprint.end_date)
        ]

        gaps = []
        for day in enumerate_days(sprint.start_date, sprint.end_date):
            if day.weekday() >= 5:  # Skip weekends
                continue

            people_out = []
            for email in emails:
                if any(overlap_days(l.start_date, l.end_date, day, day) for l in approved if l.user_email.lower() == email):
                    people_out.append(email)

            available = len(emails) - len(people_out)
            if available < min_coverage:
                gaps.append({
                    "date": day.isoformat(),
                    "people_out": people_out,
                    "available_count": available,
                    "severity": "critical" if available == 0 else "warning"
                })

        return gaps


# Convenience function
def compute_capacity(
    project: Project,
    sprint: Sprint,
    leaves: Optional[Iterable[Leave]] = None,
    capacity_overrides: Optional[dict] = None,
    tasks: Optional[Iterable[Task]] = None,
    policy: Optional[CapacityPolicy] = None
) -> TeamCapacitySummary:
    """
    Quick function to compute sprint capacity.

    Example:
        summary = compute_capacity(project, sprint, leaves, tasks=tasks)

        print(f"Team capacity: {summary.total_capacity_hours}h")
        for person in summary.members:
            print(f"  {person.display_name}: {person.workload_level.value}")
    """
    planner = CapacityPlanner(policy=policy)
    return planner.plan(project, sprint, leaves, tasks, capacity_overrides)


def compute_planning_workload(
    project: Project,
    sprint: Sprint,
    stories: Optional[Iterable[Story]] = None,
    tasks: Optional[Iterable[Task]] = None,
    leaves: Optional[Iterable[Leave]] = None,
    capacity_overrides: Optional[dict] = None,
    policy: Optional[CapacityPolicy] = None
) -> list[PersonPlanningLoad]:
    """
    Quick function to check planned load while filling a sprint.

    Example:
        for person in compute_planning_workload(project, sprint, stories, tasks):
            print(f"{person.display_name}: {person.load_percent:.0f}% ({person.status.value})")
    """
    planner = CapacityPlanner(policy=policy)
    return planner.planning_workload(project, sprint, stories, tasks, leaves, capacity_overrides)
