from typing import Optional

from ..config import Settings, get_settings
from .base import NoArgs, SandboxLimits, ToolDefinition, ToolRegistry, ToolResult
from .catalog.docker import docker_logs_tool, docker_ps_tool, docker_restart_tool, docker_stats_tool
from .catalog.filesystem import filesystem_search_tool
from .catalog.git import git_status_tool
from .catalog.http import http_probe_tool
from .command import run_command

BUILTIN_TOOLS = [
    docker_ps_tool,
    docker_stats_tool,
    docker_logs_tool,
    docker_restart_tool,
    git_status_tool,
    filesystem_search_tool,
    http_probe_tool,
]


def default_registry(settings: Optional[Settings] = None) -> ToolRegistry:
    limits = SandboxLimits.from_settings(settings or get_settings())
    return ToolRegistry(BUILTIN_TOOLS, limits=limits)


__all__ = [
    "BUILTIN_TOOLS",
    "NoArgs",
    "SandboxLimits",
    "ToolDefinition",
    "ToolRegistry",
    "ToolResult",
    "default_registry",
    "run_command",
]
