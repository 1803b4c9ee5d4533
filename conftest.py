# Shared fixtures: isolated data directory, settings, store and fake tools
import pytest
from pydantic import BaseModel

from fangio_service.config import Settings, get_settings
from fangio_service.errors import ToolExecutionError
from fangio_service.schemas import Plan, PlanMetadata, PlanStep, RiskLevel
from fangio_service.store import PlanStore
from fangio_service.tools import NoArgs, ToolDefinition, ToolRegistry


class ContainerArgs(BaseModel):
    container: str


async def _ok(_args, _limits):
    return {"stdout": " M README.md", "stderr": "", "exitCode": 0}


async def _fail(_args, _limits):
    raise ToolExecutionError("fake exited with code 2: boom", stderr="boom", exit_code=2)


async def _crash(_args, _limits):
    raise RuntimeError("tool crashed")


async def _echo_container(args, _limits):
    return {"stdout": args.container, "stderr": "", "exitCode": 0}


def make_fake_registry() -> ToolRegistry:
    return ToolRegistry(
        [
            ToolDefinition("git.status", "fake git status", RiskLevel.LOW, NoArgs, _ok),
            ToolDefinition("fake.fail", "always fails", RiskLevel.LOW, NoArgs, _fail),
            ToolDefinition("fake.crash", "raises a non-tool error", RiskLevel.LOW, NoArgs, _crash),
            ToolDefinition("docker.logs", "fake docker logs", RiskLevel.LOW, ContainerArgs, _echo_container),
        ]
    )


def make_plan(plan_id, steps=None, metadata=None):
    return Plan(
        plan_id=plan_id,
        goal="test goal",
        created_at="2026-02-19T00:00:00.000Z",
        steps=steps or [],
        metadata=metadata,
    )


def make_step(step_id="step-1", tool="git.status", risk="low", approved=False, approved_at=None, args=None):
    return PlanStep(
        id=step_id,
        tool=tool,
        args=args or {},
        risk=risk,
        description=f"run {tool}",
        approved=approved,
        approved_at=approved_at,
    )


def make_metadata(suffix="test", channel="playground"):
    return PlanMetadata(trace_id=f"trace-{suffix}", response_id=f"resp-{suffix}", channel=channel)


@pytest.fixture
def data_dir(tmp_path):
    path = tmp_path / "fangio-data"
    path.mkdir()
    return path


@pytest.fixture
def store(data_dir):
    s = PlanStore(data_dir)
    yield s
    s.reset()


@pytest.fixture
def fake_registry():
    return make_fake_registry()


@pytest.fixture
def settings(data_dir):
    return Settings(FANGIO_DATA_DIR=str(data_dir))


@pytest.fixture
def env_settings(monkeypatch):
    """Reload cached settings after the test changes environment variables."""
    get_settings.cache_clear()

    def _apply(**env):
        for key, value in env.items():
            monkeypatch.setenv(key, str(value))
        get_settings.cache_clear()
        return get_settings()

    yield _apply
    get_settings.cache_clear()


@pytest.fixture(name="make_plan")
def make_plan_fixture():
    return make_plan


@pytest.fixture(name="make_step")
def make_step_fixture():
    return make_step


@pytest.fixture(name="make_metadata")
def make_metadata_fixture():
    return make_metadata
