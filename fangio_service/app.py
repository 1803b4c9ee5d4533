import logging
from contextlib import asynccontextmanager
from typing import Optional

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sentry_sdk.integrations.fastapi import FastApiIntegration
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from .api import approve, events, execute, plan, replay, status
from .api.deps import ApiError, Services
from .approval_gate import ApprovalGate
from .config import Settings, get_settings
from .engine import ExecutionEngine
from .planner import DemoPlanner, Planner
from .rate_limiter import FixedWindowRateLimiter
from .store import PlanStore
from .tools import ToolRegistry, default_registry
from .utils.logger import close_logging

logger = logging.getLogger(__name__)


def _configure_cors(app: FastAPI, cfg: Settings) -> None:
    origins = cfg.cors_origins
    if origins:
        app.add_middleware(CORSMiddleware, allow_origins=origins, allow_credentials=True,
                           allow_methods=["*"], allow_headers=["*"])
    elif not cfg.is_production:
        app.add_middleware(CORSMiddleware, allow_origin_regex=r"^http://(localhost|127\.0\.0\.1):\d+$",
                           allow_credentials=True, allow_methods=["*"], allow_headers=["*"])


def create_app(
    store: Optional[PlanStore] = None,
    planner: Optional[Planner] = None,
    registry: Optional[ToolRegistry] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    cfg = settings or get_settings()

    if cfg.SENTRY_DSN:
        sentry_sdk.init(
            dsn=cfg.SENTRY_DSN,
            integrations=[FastApiIntegration()],
            traces_sample_rate=0.5,
            environment=cfg.ENV,
        )

    store = store or PlanStore(cfg.FANGIO_DATA_DIR)
    engine = ExecutionEngine(store, registry or default_registry(cfg))
    services = Services(
        settings=cfg,
        store=store,
        gate=ApprovalGate(store),
        engine=engine,
        planner=planner or DemoPlanner(),
        plan_limiter=FixedWindowRateLimiter(cfg.PLAN_RATE_LIMIT_MAX, cfg.PLAN_RATE_LIMIT_WINDOW_MS),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("plan service starting, data dir %s", store.data_dir)
        yield
        if engine.in_flight:
            logger.info("waiting for %d in-flight execution(s)", engine.in_flight)
        await engine.wait_idle()
        logger.info("plan service stopped")
        close_logging()

    app = FastAPI(title="Fangio Plan Service", version="1.0.0", lifespan=lifespan)
    app.state.services = services
    _configure_cors(app, cfg)

    # Global limiter for operational endpoints; plan creation has its own window
    limiter = Limiter(key_func=get_remote_address)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        return JSONResponse(status_code=exc.status_code, content=exc.payload)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    for module in (plan, approve, execute, events, replay, status):
        app.include_router(module.router)

    @app.get("/health")
    @limiter.limit("10/second")
    async def health_check(request: Request):
        return {"status": "ok"}

    @app.get("/metrics")
    async def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app
