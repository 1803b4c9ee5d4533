import os
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

_POSITIVE_DEFAULTS = {
    "PLAN_RATE_LIMIT_MAX": 30,
    "PLAN_RATE_LIMIT_WINDOW_MS": 60000,
    "FANGIO_TOOL_TIMEOUT_MS": 15000,
    "FANGIO_TOOL_MAX_BUFFER_BYTES": 1048576,
    "SSE_KEEPALIVE_SECONDS": 30,
    "SSE_QUEUE_SIZE": 1000,
    "PORT": 3001,
}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    FANGIO_DATA_DIR: str = Field("./.fangio")
    # Admission control on plan creation
    PLAN_RATE_LIMIT_MAX: int = Field(30)
    PLAN_RATE_LIMIT_WINDOW_MS: int = Field(60000)
    # Approvals older than this must be renewed before execution; <= 0 disables
    APPROVAL_TTL_MINUTES: float = Field(0)
    # Tool sandbox bounds
    FANGIO_TOOL_TIMEOUT_MS: int = Field(15000)
    FANGIO_TOOL_MAX_BUFFER_BYTES: int = Field(1048576)
    FANGIO_ALLOWED_PATHS: str = Field("")
    # Live event streaming
    SSE_KEEPALIVE_SECONDS: float = Field(30)
    SSE_QUEUE_SIZE: int = Field(1000)
    # Planner backend (informational, reported by /api/status)
    LLM_API_KEY: str = Field("")
    GITHUB_TOKEN: str = Field("")
    LLM_BASE_URL: str = Field("https://models.github.ai/inference")
    LLM_MODEL: str = Field("openai/gpt-4o-mini")
    # Service
    PORT: int = Field(3001)
    CORS_ORIGINS: str = Field("")
    ENV: str = Field("development")
    LOG_DIR: str = Field("logs")
    LOG_LEVEL: str = Field("INFO")
    SENTRY_DSN: Optional[str] = Field(None)

    @field_validator(*_POSITIVE_DEFAULTS.keys(), mode="before")
    @classmethod
    def _positive_or_default(cls, v, info):
        default = _POSITIVE_DEFAULTS[info.field_name]
        try:
            value = float(v)
        except (TypeError, ValueError):
            return default
        if value <= 0:
            return default
        return value if info.field_name == "SSE_KEEPALIVE_SECONDS" else int(value)

    @field_validator("APPROVAL_TTL_MINUTES", mode="before")
    @classmethod
    def _ttl_or_disabled(cls, v):
        try:
            value = float(v)
        except (TypeError, ValueError):
            return 0
        return value if value > 0 else 0

    @property
    def allowed_roots(self) -> List[str]:
        configured = [p.strip() for p in self.FANGIO_ALLOWED_PATHS.split(",") if p.strip()]
        if configured:
            return [os.path.realpath(p) for p in configured]
        return [os.path.realpath(os.getcwd())]

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.ENV.lower() == "production" or os.getenv("NODE_ENV", "").lower() == "production"

    @property
    def llm_configured(self) -> bool:
        return bool(self.LLM_API_KEY or self.GITHUB_TOKEN)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
