import asyncio
import logging

import pytest

from fangio_service.engine import GENERIC_SKIP, HIGH_RISK_SKIP, ExecutionEngine
from fangio_service.errors import PlanNotFoundError
from fangio_service.schemas import AuditEventType as T


def _types(events):
    return [e.type for e in events]


@pytest.fixture
def engine(store, fake_registry):
    return ExecutionEngine(store, fake_registry)


@pytest.mark.asyncio
async def test_approved_step_succeeds_and_run_is_replayable(engine, store, make_plan, make_step, make_metadata):
    plan = make_plan(
        "plan-engine-success",
        [make_step(approved=True, approved_at="2026-02-19T00:00:01.000Z")],
        make_metadata("engine-success", channel="activity_protocol"),
    )
    await store.store_plan(plan)
    await engine.execute_plan(plan.plan_id)

    events = store.get_events(plan.plan_id)
    assert _types(events) == [T.STEP_STARTED, T.STEP_OUTPUT, T.STEP_FINISHED, T.EXECUTION_FINISHED]
    assert events[0].data["tool"] == "git.status"
    assert events[0].data["args"] == {}
    assert events[1].data["stdout"] == " M README.md"
    assert events[1].data["exitCode"] == 0
    for event in events:
        assert event.data["traceId"] == "trace-engine-success"
        assert event.data["responseId"] == "resp-engine-success"
        assert event.data["channel"] == "activity_protocol"

    store.reset()
    assert await store.load_run(plan.plan_id) == events


@pytest.mark.asyncio
async def test_unknown_tool_is_a_step_error_not_a_crash(engine, store, make_plan, make_step, make_metadata):
    plan = make_plan(
        "plan-engine-unknown-tool",
        [make_step(tool="tool.does.not.exist", approved=True, approved_at="2026-02-19T00:00:01.000Z")],
        make_metadata("engine-error", channel="copilot_studio"),
    )
    await store.store_plan(plan)
    await engine.execute_plan(plan.plan_id)

    events = store.get_events(plan.plan_id)
    assert _types(events) == [T.STEP_STARTED, T.STEP_ERROR, T.STEP_FINISHED, T.EXECUTION_FINISHED]
    assert "not found in catalog" in events[1].data["error"]
    assert all(e.data["channel"] == "copilot_studio" for e in events)


@pytest.mark.asyncio
async def test_unapproved_high_risk_step_is_skipped(engine, store, make_plan, make_step, make_metadata):
    plan = make_plan("plan-engine-skip", [make_step(risk="high")], make_metadata("engine-skip"))
    await store.store_plan(plan)
    await engine.execute_plan(plan.plan_id)

    events = store.get_events(plan.plan_id)
    assert _types(events) == [T.STEP_ERROR, T.STEP_FINISHED, T.EXECUTION_FINISHED]
    assert events[0].data["error"] == HIGH_RISK_SKIP
    assert "not approved" in events[0].data["error"].lower()
    assert all(e.data["traceId"] == "trace-engine-skip" for e in events)


@pytest.mark.asyncio
async def test_unapproved_medium_risk_step_gets_generic_message(engine, store, make_plan, make_step):
    plan = make_plan("plan-engine-generic", [make_step(risk="medium")])
    await store.store_plan(plan)
    await engine.execute_plan(plan.plan_id)

    events = store.get_events(plan.plan_id)
    assert _types(events) == [T.STEP_ERROR, T.STEP_FINISHED, T.EXECUTION_FINISHED]
    assert events[0].data["error"] == GENERIC_SKIP


@pytest.mark.asyncio
async def test_one_failing_step_does_not_abort_the_run(engine, store, make_plan, make_step):
    ts = "2026-02-19T00:00:01.000Z"
    plan = make_plan(
        "plan-engine-mixed",
        [
            make_step("s1", tool="fake.fail", approved=True, approved_at=ts),
            make_step("s2", tool="fake.crash", approved=True, approved_at=ts),
            make_step("s3", tool="docker.logs", approved=True, approved_at=ts),
            make_step("s4", tool="docker.logs", approved=True, approved_at=ts, args={"container": "api"}),
            make_step("s5", risk="high"),
        ],
    )
    await store.store_plan(plan)
    await engine.execute_plan(plan.plan_id)

    events = store.get_events(plan.plan_id)
    by_step = {}
    for event in events:
        if event.step_id:
            by_step.setdefault(event.step_id, []).append(event)

    assert _types(by_step["s1"]) == [T.STEP_STARTED, T.STEP_ERROR, T.STEP_FINISHED]
    assert "boom" in by_step["s1"][1].data["error"]
    assert _types(by_step["s2"]) == [T.STEP_STARTED, T.STEP_ERROR, T.STEP_FINISHED]
    assert by_step["s2"][1].data["error"] == "tool crashed"
    # argument validation failure on a known tool
    assert _types(by_step["s3"]) == [T.STEP_STARTED, T.STEP_ERROR, T.STEP_FINISHED]
    assert "Invalid arguments" in by_step["s3"][1].data["error"]
    assert _types(by_step["s4"]) == [T.STEP_STARTED, T.STEP_OUTPUT, T.STEP_FINISHED]
    assert by_step["s4"][1].data["stdout"] == "api"
    assert _types(by_step["s5"]) == [T.STEP_ERROR, T.STEP_FINISHED]

    # steps run in declared order and exactly one terminal event closes the run
    assert [e.step_id for e in events if e.type == T.STEP_FINISHED] == ["s1", "s2", "s3", "s4", "s5"]
    assert _types(events).count(T.EXECUTION_FINISHED) == 1
    assert events[-1].type == T.EXECUTION_FINISHED


@pytest.mark.asyncio
async def test_legacy_plan_without_metadata_uses_fallback_context(engine, store, make_plan, make_step):
    plan = make_plan("plan-legacy", [make_step(approved=True, approved_at="2026-02-19T00:00:01.000Z")])
    await store.store_plan(plan)
    await engine.execute_plan(plan.plan_id)

    for event in store.get_events(plan.plan_id):
        assert event.data["traceId"] == "plan-legacy"
        assert event.data["responseId"] == "plan-legacy"
        assert event.data["channel"] == "unknown"


@pytest.mark.asyncio
async def test_execution_after_restart_reloads_plan_from_disk(engine, store, make_plan, make_step):
    plan = make_plan("plan-restart", [make_step(approved=True, approved_at="2026-02-19T00:00:01.000Z")])
    await store.store_plan(plan)
    await engine.execute_plan(plan.plan_id)
    first = _types(store.get_events(plan.plan_id))

    store.reset()
    await engine.execute_plan(plan.plan_id)
    second = _types(store.get_events(plan.plan_id))

    assert first == second == [T.STEP_STARTED, T.STEP_OUTPUT, T.STEP_FINISHED, T.EXECUTION_FINISHED]


@pytest.mark.asyncio
async def test_missing_plan_raises(engine):
    with pytest.raises(PlanNotFoundError):
        await engine.execute_plan("no-such-plan")


@pytest.mark.asyncio
async def test_launch_runs_in_background_and_logs_failures(engine, store, make_plan, make_step, caplog):
    plan = make_plan("plan-bg", [make_step(approved=True, approved_at="2026-02-19T00:00:01.000Z")])
    await store.store_plan(plan)

    engine.launch(plan.plan_id)
    with caplog.at_level(logging.ERROR, logger="fangio_service.engine"):
        engine.launch("ghost-plan")
        await engine.wait_idle()

    assert engine.in_flight == 0
    assert store.get_events(plan.plan_id)[-1].type == T.EXECUTION_FINISHED
    assert any("ghost-plan" in rec.getMessage() for rec in caplog.records)


@pytest.mark.asyncio
async def test_live_subscriber_sees_the_same_sequence_as_the_log(engine, store, make_plan, make_step):
    plan = make_plan("plan-live", [make_step(approved=True, approved_at="2026-02-19T00:00:01.000Z")])
    await store.store_plan(plan)
    seen = []
    store.subscribe(plan.plan_id, seen.append)

    await asyncio.wait_for(engine.execute_plan(plan.plan_id), timeout=5)

    assert seen == store.get_events(plan.plan_id)
