import logging

from fastapi import APIRouter, Depends, Request

from ..event_context import create_plan_metadata, with_event_context
from ..metrics import plan_rate_limited_total, plans_created_total
from ..schemas import AuditEvent, AuditEventType, CreatePlanRequest, utc_now_iso
from .deps import ApiError, Services, get_services, parse_body

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/plan")
async def create_plan(request: Request, services: Services = Depends(get_services)):
    client_ip = request.client.host if request.client else "unknown"
    if services.plan_limiter.is_limited(client_ip):
        plan_rate_limited_total.inc()
        logger.warning("plan creation rate limit hit for %s", client_ip)
        raise ApiError(429, {"error": "Rate limit exceeded for plan creation"})

    body = await parse_body(request, CreatePlanRequest)

    try:
        plan = await services.planner.generate(body.goal)
    except Exception as exc:
        logger.exception("plan generation failed")
        raise ApiError(400, {"error": str(exc) or "Plan generation failed"})

    plan.metadata = create_plan_metadata(
        trace_id=body.trace_id,
        response_id=body.response_id,
        channel=body.channel,
        header_channel=request.headers.get("x-channel"),
    )
    services.gate.auto_approve(plan, utc_now_iso())

    await services.store.store_plan(plan)
    services.store.emit_event(
        AuditEvent(
            plan_id=plan.plan_id,
            type=AuditEventType.PLAN_CREATED,
            data=with_event_context(plan, {"goal": plan.goal, "stepCount": len(plan.steps)}),
        )
    )
    plans_created_total.inc()
    logger.info("created plan %s (%d steps, trace %s)", plan.plan_id, len(plan.steps), plan.metadata.trace_id)

    return {"planId": plan.plan_id, "plan": plan.to_wire()}
