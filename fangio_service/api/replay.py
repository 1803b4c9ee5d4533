from typing import Optional

from fastapi import APIRouter, Depends

from .deps import ApiError, Services, get_services

router = APIRouter()


@router.get("/api/replay")
async def replay(planId: Optional[str] = None, services: Services = Depends(get_services)):
    if not planId:
        raise ApiError(400, {"error": "planId query parameter is required"})

    events = services.store.get_events(planId)
    if not events:
        events = await services.store.load_run(planId) or []
    return {"events": [event.to_wire() for event in events]}
