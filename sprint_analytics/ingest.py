"""
Ingestion boundary for Sprint Analytics

Turns raw entity records (as returned by the entity API) into the canonical
dataclasses in ``models``. Records arrive with inconsistent shapes: ids as
scalars or nested ``{"id"}``/``{"_id"}`` objects, numbers as strings, single
assignees as plain strings, dates in several formats. All of that coercion
happens here and nowhere else. Nothing in this module raises on bad data.
"""

import logging
import math
from collections.abc import Mapping
from typing import Any, Optional

from .calendar import parse_flexible_date
from .models import (
    Leave,
    LeaveStatus,
    Project,
    Snapshot,
    Sprint,
    SprintStatus,
    Story,
    StoryStatus,
    Task,
    TaskStatus,
    TeamMember,
)

logger = logging.getLogger(__name__)


def normalize_id(value: Any) -> Optional[str]:
    """
    Reduce an identifier reference to a plain string.

    Handles scalar ids, populated objects carrying ``id`` or ``_id``, and
    absent values.
    """
    if isinstance(value, Mapping):
        value = value.get("id") or value.get("_id")

    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (str, int)):
        text = str(value).strip()
        return text or None

    return None


def coerce_number(value: Any, default: float = 0.0) -> float:
    """Non-negative finite float; anything else becomes ``default``."""
    if value is None or isinstance(value, bool):
        return default

    try:
        number = float(value)
    except (TypeError, ValueError):
        return default

    if math.isnan(number) or math.isinf(number) or number < 0:
        return default
    return number


def coerce_optional_number(value: Any) -> Optional[float]:
    """Like ``coerce_number`` but keeps absence distinguishable from zero."""
    if value is None:
        return None
    return coerce_number(value)


def normalize_email(value: Any) -> Optional[str]:
    if isinstance(value, Mapping):
        value = value.get("email")
    if not isinstance(value, str):
        return None
    email = value.strip().lower()
    return email or None


def normalize_assignees(value: Any) -> list[str]:
    """Accept a single assignee or a list; drop blanks and duplicates."""
    items = value if isinstance(value, (list, tuple)) else [value]

    emails = []
    for item in items:
        email = normalize_email(item)
        if email and email not in emails:
            emails.append(email)
    return emails


def normalize_status(value: Any, default: str) -> str:
    """Lower-case status with spaces/hyphens folded to underscores."""
    if not isinstance(value, str) or not value.strip():
        return default
    return value.strip().lower().replace(" ", "_").replace("-", "_")


def _as_mapping(raw: Any) -> Mapping:
    if isinstance(raw, Mapping):
        return raw
    logger.debug("Ignoring non-mapping record: %r", raw)
    return {}


def parse_team_member(raw: Any) -> Optional[TeamMember]:
    """Roster entries are either bare emails or member objects."""
    if isinstance(raw, TeamMember):
        return raw

    if isinstance(raw, str):
        email = normalize_email(raw)
        return TeamMember(email=email) if email else None

    data = _as_mapping(raw)
    email = normalize_email(data.get("email"))
    if not email:
        return None

    name = data.get("full_name") or data.get("name") or data.get("display_name")
    role = data.get("role")
    return TeamMember(
        email=email,
        display_name=name if isinstance(name, str) and name.strip() else None,
        role=role if isinstance(role, str) and role.strip() else "Contributor",
    )


def parse_project(raw: Any) -> Project:
    if isinstance(raw, Project):
        return raw

    data = _as_mapping(raw)
    members = []
    seen = set()
    raw_members = data.get("team_members")
    for entry in raw_members if isinstance(raw_members, (list, tuple)) else []:
        member = parse_team_member(entry)
        if member and member.email not in seen:
            seen.add(member.email)
            members.append(member)

    name = data.get("name")
    return Project(
        id=normalize_id(data.get("id") or data.get("_id")),
        name=name if isinstance(name, str) else "",
        team_members=members,
    )


def parse_capacity_override(raw: Any) -> dict[str, float]:
    """Per-person hours/day overrides keyed by lower-cased email."""
    if not isinstance(raw, Mapping):
        return {}

    overrides = {}
    for key, hours in raw.items():
        email = normalize_email(key)
        if email and hours is not None:
            overrides[email] = coerce_number(hours)
    return overrides


def parse_sprint(raw: Any) -> Sprint:
    if isinstance(raw, Sprint):
        return raw

    data = _as_mapping(raw)
    locked_raw = data.get("locked_date")
    name = data.get("name")

    return Sprint(
        id=normalize_id(data.get("id") or data.get("_id")) or "",
        name=name if isinstance(name, str) else "",
        status=normalize_status(data.get("status"), SprintStatus.PLANNED.value),
        start_date=parse_flexible_date(data.get("start_date")),
        end_date=parse_flexible_date(data.get("end_date")),
        locked_date=parse_flexible_date(locked_raw),
        scope_locked=locked_raw not in (None, ""),
        committed_points=coerce_optional_number(data.get("committed_points")),
        capacity_override=parse_capacity_override(data.get("capacity_override")),
        project_id=normalize_id(data.get("project_id")),
    )


def parse_story(raw: Any) -> Story:
    if isinstance(raw, Story):
        return raw

    data = _as_mapping(raw)
    title = data.get("title") or data.get("name")

    return Story(
        id=normalize_id(data.get("id") or data.get("_id")) or "",
        title=title if isinstance(title, str) else "",
        status=normalize_status(data.get("status"), StoryStatus.TODO.value),
        story_points=coerce_number(data.get("story_points")),
        project_id=normalize_id(data.get("project_id")),
        epic_id=normalize_id(data.get("epic_id")),
        sprint_id=normalize_id(data.get("sprint_id")),
        assigned_to=normalize_assignees(data.get("assigned_to")),
    )


def parse_task(raw: Any) -> Task:
    if isinstance(raw, Task):
        return raw

    data = _as_mapping(raw)
    title = data.get("title") or data.get("name")
    priority = data.get("priority")

    return Task(
        id=normalize_id(data.get("id") or data.get("_id")) or "",
        title=title if isinstance(title, str) else "",
        status=normalize_status(data.get("status"), TaskStatus.TODO.value),
        estimated_hours=coerce_number(data.get("estimated_hours")),
        story_points=coerce_optional_number(data.get("story_points")),
        project_id=normalize_id(data.get("project_id")),
        story_id=normalize_id(data.get("story_id")),
        sprint_id=normalize_id(data.get("sprint_id")),
        completed_date=parse_flexible_date(data.get("completed_date")),
        updated_date=parse_flexible_date(data.get("updated_date")),
        due_date=parse_flexible_date(data.get("due_date")),
        priority=normalize_status(priority, "medium"),
        assigned_to=normalize_assignees(data.get("assigned_to")),
    )


def parse_leave(raw: Any) -> Optional[Leave]:
    """Leaves without a recognizable owner are dropped."""
    if isinstance(raw, Leave):
        return raw

    data = _as_mapping(raw)
    email = normalize_email(data.get("user_email"))
    if not email:
        return None

    leave_type = data.get("leave_type")
    return Leave(
        user_email=email,
        start_date=parse_flexible_date(data.get("start_date")),
        end_date=parse_flexible_date(data.get("end_date")),
        status=normalize_status(data.get("status"), LeaveStatus.PENDING.value),
        leave_type=leave_type if isinstance(leave_type, str) else "leave",
    )


def _parse_many(raw: Any, parse, model) -> list:
    """Parse a list of records, skipping entries that are not records at all."""
    if not isinstance(raw, (list, tuple)):
        return []
    parsed = (parse(item) for item in raw if isinstance(item, (Mapping, model)))
    return [item for item in parsed if item is not None]


def parse_sprints(raw: Any) -> list[Sprint]:
    return _parse_many(raw, parse_sprint, Sprint)


def parse_stories(raw: Any) -> list[Story]:
    return _parse_many(raw, parse_story, Story)


def parse_tasks(raw: Any) -> list[Task]:
    return _parse_many(raw, parse_task, Task)


def parse_leaves(raw: Any) -> list[Leave]:
    return _parse_many(raw, parse_leave, Leave)


def load_snapshot(payload: Any) -> Snapshot:
    """
    Build a Snapshot from a raw payload.

    Example:
        snapshot = load_snapshot({
            "project": {"id": "p1", "team_members": ["alice@example.com"]},
            "sprints": [...],
            "stories": [...],
            "tasks": [...],
            "leaves": [...],
        })
    """
    data = _as_mapping(payload)
    return Snapshot(
        project=parse_project(data.get("project")),
        sprints=parse_sprints(data.get("sprints")),
        stories=parse_stories(data.get("stories")),
        tasks=parse_tasks(data.get("tasks")),
        leaves=parse_leaves(data.get("leaves")),
    )
