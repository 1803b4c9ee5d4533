from ...schemas import RiskLevel
from ..base import NoArgs, SandboxLimits, ToolDefinition
from ..command import run_command


async def _git_status(_args: NoArgs, limits: SandboxLimits):
    return await run_command("git", ["status", "--porcelain"], limits)


git_status_tool = ToolDefinition(
    name="git.status",
    description="Get the status of the Git repository",
    risk=RiskLevel.LOW,
    args_model=NoArgs,
    execute=_git_status,
)
