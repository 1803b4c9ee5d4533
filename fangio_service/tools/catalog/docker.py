from pydantic import BaseModel, Field

from ...schemas import RiskLevel
from ..base import NoArgs, SandboxLimits, ToolDefinition
from ..command import run_command


class ContainerArgs(BaseModel):
    model_config = {"extra": "forbid"}

    container: str = Field(..., min_length=1, max_length=256, pattern=r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


async def _docker_ps(_args: NoArgs, limits: SandboxLimits):
    return await run_command("docker", ["ps", "--format", "json"], limits)


async def _docker_stats(_args: NoArgs, limits: SandboxLimits):
    return await run_command("docker", ["stats", "--no-stream", "--format", "json"], limits)


async def _docker_logs(args: ContainerArgs, limits: SandboxLimits):
    return await run_command("docker", ["logs", "--tail", "100", args.container], limits)


async def _docker_restart(args: ContainerArgs, limits: SandboxLimits):
    return await run_command("docker", ["restart", args.container], limits)


docker_ps_tool = ToolDefinition(
    name="docker.ps",
    description="List all running Docker containers",
    risk=RiskLevel.LOW,
    args_model=NoArgs,
    execute=_docker_ps,
)

docker_stats_tool = ToolDefinition(
    name="docker.stats",
    description="Get resource usage statistics for all running containers",
    risk=RiskLevel.LOW,
    args_model=NoArgs,
    execute=_docker_stats,
)

docker_logs_tool = ToolDefinition(
    name="docker.logs",
    description="Get the last 100 lines of logs from a container",
    risk=RiskLevel.LOW,
    args_model=ContainerArgs,
    execute=_docker_logs,
)

docker_restart_tool = ToolDefinition(
    name="docker.restart",
    description="Restart a Docker container",
    risk=RiskLevel.MEDIUM,
    args_model=ContainerArgs,
    execute=_docker_restart,
)
