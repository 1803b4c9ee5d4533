import os
from typing import Sequence

from pydantic import BaseModel, Field, field_validator

from ...errors import ToolExecutionError
from ...schemas import RiskLevel
from ..base import SandboxLimits, ToolDefinition
from ..command import run_command


class FilesystemSearchArgs(BaseModel):
    model_config = {"extra": "forbid"}

    path: str = Field(..., min_length=1, max_length=512)
    # simple glob only, no path separators
    pattern: str = Field(..., min_length=1, max_length=128, pattern=r"^[A-Za-z0-9*._?-]+$")

    @field_validator("path")
    @classmethod
    def _path_is_plain(cls, v: str) -> str:
        if "\0" in v:
            raise ValueError("Path contains invalid null byte")
        if v.strip().startswith("-"):
            raise ValueError("Path cannot start with a dash")
        return v


def _within_root(path: str, root: str) -> bool:
    return path == root or path.startswith(root.rstrip(os.sep) + os.sep)


def resolve_search_path(input_path: str, allowed_roots: Sequence[str]) -> str:
    """Resolve ``input_path`` and confine it to ``allowed_roots``."""
    resolved = os.path.realpath(os.path.join(os.getcwd(), input_path))
    if not os.path.exists(resolved):
        raise ToolExecutionError(f'Search path "{input_path}" does not exist')
    if not os.path.isdir(resolved):
        raise ToolExecutionError(f'Search path "{input_path}" must be a directory')
    if not any(_within_root(resolved, root) for root in allowed_roots):
        raise ToolExecutionError(f'Search path "{input_path}" is outside allowed roots')
    return resolved


async def _filesystem_search(args: FilesystemSearchArgs, limits: SandboxLimits):
    search_path = resolve_search_path(args.path, limits.allowed_roots)
    return await run_command("find", [search_path, "-maxdepth", "3", "-name", args.pattern], limits)


filesystem_search_tool = ToolDefinition(
    name="filesystem.search",
    description="Search for files matching a pattern in a directory",
    risk=RiskLevel.LOW,
    args_model=FilesystemSearchArgs,
    execute=_filesystem_search,
)
