from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ValidationError

from ..config import Settings, get_settings
from ..errors import ToolArgumentsError, UnknownToolError
from ..schemas import RiskLevel

logger = logging.getLogger(__name__)

ToolResult = Dict[str, Any]


class NoArgs(BaseModel):
    model_config = {"extra": "forbid"}


@dataclass(frozen=True)
class SandboxLimits:
    """Bounds applied to every tool run by a registry."""

    timeout_ms: int
    max_output_bytes: int
    allowed_roots: Tuple[str, ...]

    @classmethod
    def from_settings(cls, settings: Settings) -> "SandboxLimits":
        return cls(
            timeout_ms=settings.FANGIO_TOOL_TIMEOUT_MS,
            max_output_bytes=settings.FANGIO_TOOL_MAX_BUFFER_BYTES,
            allowed_roots=tuple(settings.allowed_roots),
        )


@dataclass
class ToolDefinition:
    name: str
    description: str
    risk: RiskLevel
    args_model: Type[BaseModel]
    execute: Callable[[Any, SandboxLimits], Awaitable[ToolResult]]

    def validate_args(self, args: Optional[Dict[str, Any]]) -> BaseModel:
        try:
            return self.args_model.model_validate(args or {})
        except ValidationError as exc:
            errors = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'args'}: {err['msg']}" for err in exc.errors()
            )
            raise ToolArgumentsError(self.name, errors) from exc


class ToolRegistry:
    """Name -> tool mapping with argument validation before dispatch.

    Every tool run through the registry receives the same ``limits``.
    """

    def __init__(self, tools: Optional[List[ToolDefinition]] = None, limits: Optional[SandboxLimits] = None):
        self.limits = limits or SandboxLimits.from_settings(get_settings())
        self._tools: Dict[str, ToolDefinition] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: ToolDefinition) -> None:
        self._tools[tool.name] = tool

    def get(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    def names(self) -> List[str]:
        return sorted(self._tools)

    async def execute(self, name: str, args: Optional[Dict[str, Any]]) -> ToolResult:
        """Validate ``args`` for ``name`` and run it.

        Raises UnknownToolError, ToolArgumentsError or ToolExecutionError.
        """
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownToolError(name)
        validated = tool.validate_args(args)
        logger.debug("executing tool %s", name)
        return await tool.execute(validated, self.limits)

    def meta(self) -> List[Dict[str, Any]]:
        """Tool descriptions for plan authoring front ends."""
        out = []
        for tool in self._tools.values():
            schema = tool.args_model.model_json_schema()
            args = {key: prop.get("type", "unknown") for key, prop in schema.get("properties", {}).items()}
            out.append(
                {"name": tool.name, "description": tool.description, "risk": tool.risk.value, "args": args}
            )
        return out
