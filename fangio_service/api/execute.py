import logging

from fastapi import APIRouter, Depends, Request

from ..schemas import ExecutePlanRequest
from .deps import ApiError, Services, get_services, parse_body

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/execute")
async def execute_plan(request: Request, services: Services = Depends(get_services)):
    body = await parse_body(request, ExecutePlanRequest)

    plan = await services.store.get_plan_or_load(body.plan_id)
    if plan is None:
        raise ApiError(404, {"error": "Plan not found"})

    expired = await services.gate.expire_stale_approvals(plan, services.settings.APPROVAL_TTL_MINUTES)
    if expired:
        raise ApiError(
            400,
            {
                "error": "One or more step approvals have expired and must be re-approved",
                "expiredStepIds": expired,
            },
        )

    unapproved = services.gate.unapproved_step_ids(plan)
    if unapproved:
        raise ApiError(400, {"error": "Not all steps are approved", "unapprovedStepIds": unapproved})

    services.engine.launch(plan.plan_id)
    logger.info("accepted execution of plan %s", plan.plan_id)
    return {"ok": True}
