import time

import httpx
from pydantic import BaseModel, HttpUrl

from ...errors import ToolExecutionError
from ...schemas import RiskLevel
from ..base import SandboxLimits, ToolDefinition


class HttpProbeArgs(BaseModel):
    model_config = {"extra": "forbid"}

    url: HttpUrl


async def _http_probe(args: HttpProbeArgs, limits: SandboxLimits):
    timeout = limits.timeout_ms / 1000
    started = time.perf_counter()
    try:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=False) as client:
            resp = await client.get(str(args.url))
    except httpx.HTTPError as exc:
        raise ToolExecutionError(f"probe of {args.url} failed: {exc}") from exc
    elapsed = time.perf_counter() - started
    return {
        "stdout": f"{resp.status_code} {elapsed:.6f}",
        "stderr": "",
        "exitCode": 0,
        "statusCode": resp.status_code,
        "elapsedSeconds": round(elapsed, 6),
    }


http_probe_tool = ToolDefinition(
    name="http.probe",
    description="Probe an HTTP endpoint and return status code and response time",
    risk=RiskLevel.LOW,
    args_model=HttpProbeArgs,
    execute=_http_probe,
)
