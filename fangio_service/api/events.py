import json
import logging
from typing import AsyncIterator, Awaitable, Callable, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from ..event_bus import QueueSubscriber
from ..schemas import AuditEvent
from ..store import PlanStore
from .deps import ApiError, Services, get_services

logger = logging.getLogger(__name__)
router = APIRouter()

KEEPALIVE = ": keepalive\n\n"


def format_sse(event: AuditEvent) -> str:
    return f"data: {json.dumps(event.to_wire())}\n\n"


async def event_stream(
    store: PlanStore,
    plan_id: str,
    keepalive_seconds: float = 30,
    queue_size: int = 1000,
    is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
) -> AsyncIterator[str]:
    """Backfill the plan's known events, then follow new ones.

    The backfill snapshot and the subscription happen together, before the
    first yield, so no event falls between them.
    """
    subscriber = QueueSubscriber(plan_id, maxsize=queue_size)
    backfill = store.get_events(plan_id)
    store.subscribe(plan_id, subscriber)
    logger.debug("stream opened for plan %s (%d backfilled)", plan_id, len(backfill))
    try:
        for event in backfill:
            yield format_sse(event)
        while True:
            if is_disconnected is not None and await is_disconnected():
                break
            event = await subscriber.get(timeout=keepalive_seconds)
            if event is None:
                yield KEEPALIVE
                continue
            yield format_sse(event)
    finally:
        store.unsubscribe(plan_id, subscriber)
        logger.debug("stream closed for plan %s", plan_id)


@router.get("/api/events")
async def events(request: Request, planId: Optional[str] = None, services: Services = Depends(get_services)):
    if not planId:
        raise ApiError(400, {"error": "planId query parameter is required"})
    cfg = services.settings
    return StreamingResponse(
        event_stream(
            services.store,
            planId,
            keepalive_seconds=cfg.SSE_KEEPALIVE_SECONDS,
            queue_size=cfg.SSE_QUEUE_SIZE,
            is_disconnected=request.is_disconnected,
        ),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive", "X-Accel-Buffering": "no"},
    )
