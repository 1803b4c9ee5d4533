import asyncio
import logging
from typing import Any, Dict, Optional, Set

from .errors import PlanNotFoundError, ToolError
from .event_context import with_event_context
from .metrics import execution_crashes_total, executions_finished_total, steps_executed_total
from .schemas import AuditEvent, AuditEventType, Plan, PlanStep, RiskLevel
from .store import PlanStore
from .tools import ToolRegistry

logger = logging.getLogger(__name__)

HIGH_RISK_SKIP = "High-risk step not approved, skipping"
GENERIC_SKIP = "Step not approved, skipping"


class ExecutionEngine:
    """Runs a plan's steps in order and records every transition as an event.

    A failing step is recorded as ``step.error`` and the run moves on to the
    next step; nothing a tool does can abort the run.
    """

    def __init__(self, store: PlanStore, registry: ToolRegistry):
        self.store = store
        self.registry = registry
        self._tasks: Set[asyncio.Task] = set()

    async def execute_plan(self, plan_id: str) -> None:
        plan = await self.store.get_plan_or_load(plan_id)
        if plan is None:
            raise PlanNotFoundError(plan_id)

        logger.info("executing plan %s (%d steps)", plan_id, len(plan.steps))
        for step in plan.steps:
            if not step.approved:
                self._skip_step(plan, step)
                continue
            await self._run_step(plan, step)

        self._emit(plan, AuditEventType.EXECUTION_FINISHED)
        executions_finished_total.inc()
        await self.store.persist_run(plan_id)
        logger.info("plan %s finished", plan_id)

    def _skip_step(self, plan: Plan, step: PlanStep) -> None:
        message = HIGH_RISK_SKIP if step.risk == RiskLevel.HIGH else GENERIC_SKIP
        logger.warning("plan %s step %s: %s", plan.plan_id, step.id, message)
        self._emit(plan, AuditEventType.STEP_ERROR, step.id, {"error": message})
        self._emit(plan, AuditEventType.STEP_FINISHED, step.id)
        steps_executed_total.labels(outcome="skipped").inc()

    async def _run_step(self, plan: Plan, step: PlanStep) -> None:
        self._emit(plan, AuditEventType.STEP_STARTED, step.id, {"tool": step.tool, "args": step.args})
        try:
            result = await self.registry.execute(step.tool, step.args)
        except ToolError as exc:
            logger.warning("plan %s step %s failed: %s", plan.plan_id, step.id, exc)
            self._fail_step(plan, step, str(exc))
            return
        except Exception as exc:
            logger.exception("plan %s step %s crashed", plan.plan_id, step.id)
            self._fail_step(plan, step, str(exc) or exc.__class__.__name__)
            return

        self._emit(plan, AuditEventType.STEP_OUTPUT, step.id, result)
        self._emit(plan, AuditEventType.STEP_FINISHED, step.id)
        steps_executed_total.labels(outcome="succeeded").inc()

    def _fail_step(self, plan: Plan, step: PlanStep, message: str) -> None:
        self._emit(plan, AuditEventType.STEP_ERROR, step.id, {"error": message})
        self._emit(plan, AuditEventType.STEP_FINISHED, step.id)
        steps_executed_total.labels(outcome="failed").inc()

    def _emit(
        self,
        plan: Plan,
        event_type: AuditEventType,
        step_id: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.store.emit_event(
            AuditEvent(
                plan_id=plan.plan_id,
                type=event_type,
                step_id=step_id,
                data=with_event_context(plan, data),
            )
        )

    # ------------------------------------------------------------------
    # background runs
    # ------------------------------------------------------------------

    def launch(self, plan_id: str) -> asyncio.Task:
        """Start ``execute_plan`` in the background.

        Exceptions escaping the run are logged by a done-callback and never
        reach the caller.
        """
        task = asyncio.create_task(self.execute_plan(plan_id), name=f"execute-{plan_id}")
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("execution task %s was cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            execution_crashes_total.inc()
            logger.error("execution task %s failed: %s", task.get_name(), exc, exc_info=exc)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def wait_idle(self) -> None:
        """Wait for every launched run to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
