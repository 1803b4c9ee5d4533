from dataclasses import dataclass
from typing import Any, Dict, Type, TypeVar

from fastapi import Request
from pydantic import BaseModel, ValidationError

from ..approval_gate import ApprovalGate
from ..config import Settings
from ..engine import ExecutionEngine
from ..planner import Planner
from ..rate_limiter import FixedWindowRateLimiter
from ..store import PlanStore

M = TypeVar("M", bound=BaseModel)


@dataclass
class Services:
    settings: Settings
    store: PlanStore
    gate: ApprovalGate
    engine: ExecutionEngine
    planner: Planner
    plan_limiter: FixedWindowRateLimiter


class ApiError(Exception):
    """Rendered by the app as ``status_code`` with ``payload`` as the JSON body."""

    def __init__(self, status_code: int, payload: Dict[str, Any]):
        super().__init__(payload.get("error", ""))
        self.status_code = status_code
        self.payload = payload


def get_services(request: Request) -> Services:
    return request.app.state.services


def format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts) or "Invalid request"


async def parse_body(request: Request, model: Type[M]) -> M:
    try:
        raw = await request.json()
    except ValueError:
        raise ApiError(400, {"error": "Request body must be valid JSON"})
    if not isinstance(raw, dict):
        raise ApiError(400, {"error": "Request body must be a JSON object"})
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        raise ApiError(400, {"error": format_validation_error(exc)})
