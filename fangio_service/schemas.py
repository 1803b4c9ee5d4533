"""
Data contract shared by the planner, the store, the approval gate and the
execution engine.

Wire format is camelCase (``planId``, ``approvedAt`` ...); Python code uses
snake_case attributes. Timestamps are kept as the exact ISO-8601 strings that
were written so a persisted run reloads field-for-field identical to what was
emitted live.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


def utc_now_iso() -> str:
    """Current UTC time as ``2026-02-19T00:00:00.000Z``."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, returning None when it is missing or invalid."""
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AuditEventType(str, Enum):
    PLAN_CREATED = "plan.created"
    STEP_APPROVED = "step.approved"
    STEP_STARTED = "step.started"
    STEP_OUTPUT = "step.output"
    STEP_ERROR = "step.error"
    STEP_FINISHED = "step.finished"
    EXECUTION_FINISHED = "execution.finished"


class PlanStep(_WireModel):
    id: str
    tool: str
    args: Dict[str, Any] = Field(default_factory=dict)
    risk: RiskLevel
    description: str
    approved: bool = False
    approved_at: Optional[str] = None

    @model_validator(mode="after")
    def _approved_at_requires_approval(self):
        if not self.approved:
            self.approved_at = None
        return self

    def approve(self, timestamp: str) -> None:
        self.approved = True
        self.approved_at = timestamp

    def revoke(self) -> None:
        self.approved = False
        self.approved_at = None


class PlanMetadata(_WireModel):
    """Trace context correlating a plan and its events across surfaces."""

    trace_id: str
    response_id: str
    channel: str


class Plan(_WireModel):
    plan_id: str
    goal: str
    created_at: str
    steps: List[PlanStep] = Field(default_factory=list)
    metadata: Optional[PlanMetadata] = None

    @field_validator("steps")
    @classmethod
    def _unique_step_ids(cls, steps: List[PlanStep]) -> List[PlanStep]:
        seen = set()
        for step in steps:
            if step.id in seen:
                raise ValueError(f"duplicate step id '{step.id}'")
            seen.add(step.id)
        return steps

    def find_step(self, step_id: str) -> Optional[PlanStep]:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None


class AuditEvent(_WireModel):
    plan_id: str
    type: AuditEventType
    step_id: Optional[str] = None
    data: Optional[Any] = None
    timestamp: str = Field(default_factory=utc_now_iso)


# Request bodies for the HTTP surface


class CreatePlanRequest(_WireModel):
    goal: str = Field(..., min_length=1)
    # accepted as-is; create_plan_metadata drops anything but non-blank strings
    trace_id: Optional[Any] = None
    response_id: Optional[Any] = None
    channel: Optional[Any] = None


class ApproveStepsRequest(_WireModel):
    plan_id: str
    step_ids: List[str]


class ExecutePlanRequest(_WireModel):
    plan_id: str
