"""
FastAPI Service for Sprint Analytics

Accepts entity snapshots and returns computed metrics. Nothing is fetched
or stored here; every request is computed from the posted data.
"""

import logging
import os
from datetime import date, datetime
from typing import Any, Optional
from contextlib import asynccontextmanager

import yaml
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from . import __version__
from .burndown import BurndownCalculator
from .capacity import CapacityPlanner, CapacityPolicy
from .ingest import (
    coerce_number,
    load_snapshot,
    parse_leaves,
    parse_project,
    parse_sprint,
    parse_sprints,
    parse_stories,
    parse_tasks,
)
from .metrics import compute_sprint_metrics
from .velocity import VelocityAggregator

logger = logging.getLogger(__name__)


# Configuration
class Config:
    """Load configuration from config.yaml and environment."""

    def __init__(self, config_path: Optional[str] = None):
        self.config = {}
        config_path = config_path or os.getenv("SPRINT_ANALYTICS_CONFIG", "config/config.yaml")

        if os.path.exists(config_path):
            with open(config_path) as f:
                self.config = yaml.safe_load(f) or {}

        # Override with environment variables
        self._load_env()

    def _load_env(self):
        """Load configuration from environment variables."""
        env_mapping = {
            "SPRINT_ANALYTICS_MAX_HOURS": ("capacity", "max_hours_per_sprint"),
            "SPRINT_ANALYTICS_HOURS_PER_DAY": ("capacity", "default_hours_per_day"),
            "SPRINT_ANALYTICS_LOG_LEVEL": ("logging", "level"),
        }

        for env_var, (section, key) in env_mapping.items():
            value = os.getenv(env_var)
            if value:
                if section not in self.config:
                    self.config[section] = {}
                self.config[section][key] = value

    def get(self, section: str, key: str, default=None):
        """Get configuration value."""
        return (self.config.get(section) or {}).get(key, default)

    @property
    def log_level(self) -> str:
        return str(self.get("logging", "level", "INFO")).upper()

    @property
    def cors_origins(self) -> list[str]:
        return self.get("api", "cors_origins", ["*"])

    @property
    def capacity_policy(self) -> CapacityPolicy:
        defaults = CapacityPolicy()
        return CapacityPolicy(
            max_hours_per_sprint=coerce_number(
                self.get("capacity", "max_hours_per_sprint"), defaults.max_hours_per_sprint
            ),
            default_hours_per_day=coerce_number(
                self.get("capacity", "default_hours_per_day"), defaults.default_hours_per_day
            ),
            overloaded_ratio=coerce_number(
                self.get("thresholds", "overloaded"), defaults.overloaded_ratio
            ),
            high_ratio=coerce_number(
                self.get("thresholds", "high"), defaults.high_ratio
            ),
            underutilized_ratio=coerce_number(
                self.get("thresholds", "underutilized"), defaults.underutilized_ratio
            ),
            hours_per_point=coerce_number(
                self.get("planning", "hours_per_point"), defaults.hours_per_point
            ),
            underloaded_percent=coerce_number(
                self.get("planning", "underloaded_percent"), defaults.underloaded_percent
            ),
            overloaded_percent=coerce_number(
                self.get("planning", "overloaded_percent"), defaults.overloaded_percent
            ),
        )


# Global instances
config = Config()
burndown_calculator = BurndownCalculator()
velocity_aggregator = VelocityAggregator()
capacity_planner = CapacityPlanner(policy=config.capacity_policy)


# Pydantic models for API
class BurndownRequest(BaseModel):
    sprint: dict[str, Any]
    tasks: list[Any] = Field(default_factory=list)
    as_of: Optional[date] = None


class VelocityRequest(BaseModel):
    sprints: list[Any] = Field(default_factory=list)
    stories: list[Any] = Field(default_factory=list)
    tasks: list[Any] = Field(default_factory=list)
    sprint_id: Optional[str] = None


class CapacityRequest(BaseModel):
    project: dict[str, Any] = Field(default_factory=dict)
    sprint: dict[str, Any]
    leaves: list[Any] = Field(default_factory=list)
    tasks: list[Any] = Field(default_factory=list)
    capacity_overrides: Optional[dict[str, Any]] = None
    min_coverage: int = 2


class WorkloadRequest(BaseModel):
    project: dict[str, Any] = Field(default_factory=dict)
    sprint: dict[str, Any]
    stories: list[Any] = Field(default_factory=list)
    tasks: list[Any] = Field(default_factory=list)
    leaves: list[Any] = Field(default_factory=list)
    capacity_overrides: Optional[dict[str, Any]] = None


class MetricsRequest(BaseModel):
    tasks: list[Any] = Field(default_factory=list)
    as_of: Optional[date] = None


class DashboardRequest(BaseModel):
    project: dict[str, Any] = Field(default_factory=dict)
    sprints: list[Any] = Field(default_factory=list)
    stories: list[Any] = Field(default_factory=list)
    tasks: list[Any] = Field(default_factory=list)
    leaves: list[Any] = Field(default_factory=list)
    sprint_id: str
    as_of: Optional[date] = None


# Lifespan context manager
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logging.basicConfig(level=config.log_level)
    logger.info("Sprint Analytics API starting up (v%s)", __version__)
    yield
    logger.info("Sprint Analytics API shutting down")


# Create FastAPI app
app = FastAPI(
    title="Sprint Analytics",
    description="Burndown, velocity and capacity metrics computed from sprint snapshots",
    version=__version__,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Health check
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    policy = capacity_planner.policy
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "capacity_policy": {
            "max_hours_per_sprint": policy.max_hours_per_sprint,
            "default_hours_per_day": policy.default_hours_per_day
        }
    }


@app.post("/api/burndown")
async def get_burndown(request: BurndownRequest):
    """Daily ideal/actual burndown for a sprint."""
    try:
        sprint = parse_sprint(request.sprint)
        tasks = parse_tasks(request.tasks)
        series = burndown_calculator.calculate(sprint, tasks, as_of=request.as_of)
        return series.to_dict()

    except Exception as e:
        logger.exception("Burndown calculation failed")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/velocity")
async def get_velocity(request: VelocityRequest):
    """Velocity across committed sprints."""
    try:
        report = velocity_aggregator.aggregate(
            parse_sprints(request.sprints),
            parse_stories(request.stories),
            parse_tasks(request.tasks),
            sprint_id=request.sprint_id
        )
        return report.to_dict()

    except Exception as e:
        logger.exception("Velocity aggregation failed")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/capacity")
async def get_capacity(request: CapacityRequest):
    """Per-person capacity and workload for a sprint."""
    try:
        project = parse_project(request.project)
        sprint = parse_sprint(request.sprint)
        leaves = parse_leaves(request.leaves)
        tasks = parse_tasks(request.tasks)

        summary = capacity_planner.plan(
            project, sprint, leaves, tasks, request.capacity_overrides
        )
        gaps = capacity_planner.find_coverage_gaps(
            sprint, leaves, [m.email for m in summary.members], request.min_coverage
        )

        result = summary.to_dict()
        result["coverage_gaps"] = gaps
        return result

    except Exception as e:
        logger.exception("Capacity planning failed")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/workload")
async def get_workload(request: WorkloadRequest):
    """Planned load per team member while a sprint is being filled."""
    try:
        loads = capacity_planner.planning_workload(
            parse_project(request.project),
            parse_sprint(request.sprint),
            parse_stories(request.stories),
            parse_tasks(request.tasks),
            parse_leaves(request.leaves),
            request.capacity_overrides
        )
        return {"members": [person.to_dict() for person in loads]}

    except Exception as e:
        logger.exception("Planning workload failed")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/metrics")
async def get_metrics(request: MetricsRequest):
    """Task status distribution and completion rate."""
    try:
        metrics = compute_sprint_metrics(parse_tasks(request.tasks), as_of=request.as_of)
        return metrics.to_dict()

    except Exception as e:
        logger.exception("Sprint metrics failed")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/dashboard")
async def get_dashboard(request: DashboardRequest):
    """All metrics for one sprint of a project snapshot."""
    snapshot = load_snapshot(request.model_dump())
    sprint = snapshot.get_sprint(request.sprint_id)

    if not sprint:
        raise HTTPException(status_code=404, detail=f"Sprint {request.sprint_id} not found")

    try:
        scoped_tasks = snapshot.tasks_for_sprint(sprint)

        burndown = burndown_calculator.calculate(sprint, scoped_tasks, as_of=request.as_of)
        velocity = velocity_aggregator.aggregate(snapshot.sprints, snapshot.stories, snapshot.tasks)
        capacity = capacity_planner.plan(snapshot.project, sprint, snapshot.leaves, scoped_tasks)
        metrics = compute_sprint_metrics(scoped_tasks, as_of=request.as_of)

        return {
            "sprint": {"id": sprint.id, "name": sprint.name, "status": sprint.status},
            "burndown": burndown.to_dict(),
            "velocity": velocity.to_dict(),
            "capacity": capacity.to_dict(),
            "metrics": metrics.to_dict()
        }

    except Exception as e:
        logger.exception("Dashboard computation failed")
        raise HTTPException(status_code=500, detail=str(e))


# Run with: uvicorn sprint_analytics.api:app --reload
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
