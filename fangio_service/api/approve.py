from fastapi import APIRouter, Depends, Request

from ..errors import PlanNotFoundError
from ..schemas import ApproveStepsRequest
from .deps import ApiError, Services, get_services, parse_body

router = APIRouter()


@router.post("/api/approve")
async def approve_steps(request: Request, services: Services = Depends(get_services)):
    body = await parse_body(request, ApproveStepsRequest)
    try:
        await services.gate.approve(body.plan_id, body.step_ids)
    except PlanNotFoundError:
        raise ApiError(404, {"error": "Plan not found"})
    return {"ok": True}
