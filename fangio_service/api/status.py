from urllib.parse import urlparse

from fastapi import APIRouter, Depends

from .deps import Services, get_services

router = APIRouter()


@router.get("/api/status")
async def status(services: Services = Depends(get_services)):
    cfg = services.settings
    if not cfg.llm_configured:
        return {"mode": "demo", "provider": "Demo Mode (no API key)", "model": "N/A (canned plans)"}
    host = urlparse(cfg.LLM_BASE_URL).hostname or ""
    provider = "GitHub Models" if host == "models.github.ai" else "Custom OpenAI-compatible"
    return {"mode": "live", "provider": provider, "model": cfg.LLM_MODEL}
