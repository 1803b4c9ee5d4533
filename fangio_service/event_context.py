import uuid
from typing import Any, Dict, Optional

from .schemas import Plan, PlanMetadata


def _clean(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def create_plan_metadata(
    trace_id: Any = None,
    response_id: Any = None,
    channel: Any = None,
    header_channel: Any = None,
) -> PlanMetadata:
    """Build the trace context for a new plan.

    Caller-supplied values win; the channel may also come from a request
    header. Missing ids are freshly generated and the channel defaults to "api".
    """
    return PlanMetadata(
        trace_id=_clean(trace_id) or str(uuid.uuid4()),
        response_id=_clean(response_id) or str(uuid.uuid4()),
        channel=_clean(channel) or _clean(header_channel) or "api",
    )


def get_event_context(plan: Plan) -> PlanMetadata:
    if plan.metadata is not None:
        return plan.metadata
    # plans stored before trace metadata existed
    return PlanMetadata(trace_id=plan.plan_id, response_id=plan.plan_id, channel="unknown")


def with_event_context(plan: Plan, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    enriched = dict(data or {})
    enriched.update(get_event_context(plan).to_wire())
    return enriched
