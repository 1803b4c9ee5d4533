"""Canned plans used when no live plan-generation backend is wired in.

Any object with ``async generate(goal) -> Plan`` can replace ``DemoPlanner``
in ``create_app``.
"""

import uuid
from typing import Any, Dict, List, Protocol

from .schemas import Plan, PlanStep, utc_now_iso

_DOCKER_DIAGNOSIS: List[Dict[str, Any]] = [
    {
        "id": "step-1",
        "tool": "docker.ps",
        "args": {},
        "risk": "low",
        "description": "List all running Docker containers to identify the API container",
    },
    {
        "id": "step-2",
        "tool": "docker.stats",
        "args": {},
        "risk": "low",
        "description": "Check resource usage (CPU, memory) across all containers",
    },
    {
        "id": "step-3",
        "tool": "docker.logs",
        "args": {"container": "api"},
        "risk": "low",
        "description": "Examine recent logs from the API container for errors or warnings",
    },
    {
        "id": "step-4",
        "tool": "http.probe",
        "args": {"url": "http://localhost:8787/health"},
        "risk": "low",
        "description": "Probe the API health endpoint to measure response time",
    },
    {
        "id": "step-5",
        "tool": "docker.restart",
        "args": {"container": "api"},
        "risk": "medium",
        "description": "Restart the API container if it is unhealthy",
    },
]

_REPO_HEALTH: List[Dict[str, Any]] = [
    {
        "id": "step-1",
        "tool": "git.status",
        "args": {},
        "risk": "low",
        "description": "Check Git repository status for uncommitted changes",
    },
    {
        "id": "step-2",
        "tool": "filesystem.search",
        "args": {"path": ".", "pattern": "*.log"},
        "risk": "low",
        "description": "Search for log files that might be accidentally committed",
    },
    {
        "id": "step-3",
        "tool": "filesystem.search",
        "args": {"path": ".", "pattern": "node_modules"},
        "risk": "low",
        "description": "Check for large directories that should be gitignored",
    },
]


class Planner(Protocol):
    async def generate(self, goal: str) -> Plan: ...


class DemoPlanner:
    async def generate(self, goal: str) -> Plan:
        lowered = goal.lower()
        if any(k in lowered for k in ("docker", "slow", "api")):
            steps = _DOCKER_DIAGNOSIS
        elif any(k in lowered for k in ("repo", "git", "health")):
            steps = _REPO_HEALTH
        else:
            steps = _DOCKER_DIAGNOSIS
        return Plan(
            plan_id=f"plan-{uuid.uuid4().hex[:12]}",
            goal=goal,
            created_at=utc_now_iso(),
            steps=[PlanStep.model_validate(s) for s in steps],
        )
