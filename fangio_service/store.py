"""
Plan and audit-event store.

Two kinds of artifact live under the data directory:

    plans/<planId>.json   the plan, rewritten on every approval change
    runs/<planId>.json    the ordered event log of the plan's last finished run

Memory is the source of truth for the running process; disk writes are best
effort (plain file writes, logged and swallowed on failure) and make plans
reloadable and finished runs replayable after a restart.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import TypeAdapter, ValidationError

from .event_bus import EventBus, EventHandler
from .metrics import persistence_errors_total
from .schemas import AuditEvent, Plan

logger = logging.getLogger(__name__)

_events_adapter = TypeAdapter(List[AuditEvent])


def _safe_file_name(plan_id: str) -> Optional[str]:
    if not plan_id or plan_id in (".", "..") or "/" in plan_id or "\\" in plan_id or "\0" in plan_id:
        return None
    return f"{plan_id}.json"


class PlanStore:
    def __init__(self, data_dir: Union[str, Path], bus: Optional[EventBus] = None):
        self.data_dir = Path(data_dir)
        self.bus = bus or EventBus()
        self.plans: Dict[str, Plan] = {}
        self.events: Dict[str, List[AuditEvent]] = {}

    @property
    def plans_dir(self) -> Path:
        return self.data_dir / "plans"

    @property
    def runs_dir(self) -> Path:
        return self.data_dir / "runs"

    # ------------------------------------------------------------------
    # plans
    # ------------------------------------------------------------------

    async def store_plan(self, plan: Plan) -> None:
        self.plans[plan.plan_id] = plan
        self.events.setdefault(plan.plan_id, [])
        await self._write_plan(plan)

    def get_plan(self, plan_id: str) -> Optional[Plan]:
        return self.plans.get(plan_id)

    async def get_plan_or_load(self, plan_id: str) -> Optional[Plan]:
        plan = self.plans.get(plan_id)
        if plan is not None:
            return plan
        plan = await self._read_plan(plan_id)
        if plan is not None:
            self.plans[plan_id] = plan
            logger.info("loaded plan %s from disk", plan_id)
        return plan

    async def update_plan(self, plan: Plan) -> None:
        self.plans[plan.plan_id] = plan
        await self._write_plan(plan)

    # ------------------------------------------------------------------
    # events
    # ------------------------------------------------------------------

    def emit_event(self, event: AuditEvent) -> None:
        self.events.setdefault(event.plan_id, []).append(event)
        self.bus.publish(event)

    def get_events(self, plan_id: str) -> List[AuditEvent]:
        return list(self.events.get(plan_id, ()))

    def subscribe(self, plan_id: str, handler: EventHandler) -> None:
        self.bus.subscribe(plan_id, handler)

    def unsubscribe(self, plan_id: str, handler: EventHandler) -> None:
        self.bus.unsubscribe(plan_id, handler)

    async def persist_run(self, plan_id: str) -> None:
        events = self.events.get(plan_id)
        if events is None:
            return
        name = _safe_file_name(plan_id)
        if name is None:
            logger.error("refusing to persist run for unsafe plan id %r", plan_id)
            return
        payload = [event.to_wire() for event in events]
        try:
            await asyncio.to_thread(self._write_json, self.runs_dir / name, payload)
        except Exception:
            persistence_errors_total.labels(kind="run_write").inc()
            logger.exception("failed to persist run %s", plan_id)

    async def load_run(self, plan_id: str) -> Optional[List[AuditEvent]]:
        name = _safe_file_name(plan_id)
        if name is None:
            return None
        try:
            raw = await asyncio.to_thread(self._read_json, self.runs_dir / name)
            return _events_adapter.validate_python(raw)
        except FileNotFoundError:
            return None
        except (OSError, ValueError, ValidationError) as exc:
            persistence_errors_total.labels(kind="run_read").inc()
            logger.warning("could not load run %s: %s", plan_id, exc)
            return None

    def reset(self) -> None:
        """Drop all in-memory state. Files on disk are left alone."""
        self.plans.clear()
        self.events.clear()
        self.bus.clear()

    # ------------------------------------------------------------------
    # disk helpers
    # ------------------------------------------------------------------

    async def _write_plan(self, plan: Plan) -> None:
        name = _safe_file_name(plan.plan_id)
        if name is None:
            logger.error("refusing to persist plan with unsafe id %r", plan.plan_id)
            return
        try:
            await asyncio.to_thread(self._write_json, self.plans_dir / name, plan.to_wire())
        except Exception:
            persistence_errors_total.labels(kind="plan_write").inc()
            logger.exception("failed to persist plan %s", plan.plan_id)

    async def _read_plan(self, plan_id: str) -> Optional[Plan]:
        name = _safe_file_name(plan_id)
        if name is None:
            return None
        try:
            raw = await asyncio.to_thread(self._read_json, self.plans_dir / name)
            return Plan.model_validate(raw)
        except FileNotFoundError:
            return None
        except (OSError, ValueError, ValidationError) as exc:
            persistence_errors_total.labels(kind="plan_read").inc()
            logger.warning("could not load plan %s: %s", plan_id, exc)
            return None

    @staticmethod
    def _write_json(path: Path, payload) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + f".{os.getpid()}.tmp")
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(payload, fh, indent=2)
        os.replace(tmp, path)

    @staticmethod
    def _read_json(path: Path):
        with open(path, "r", encoding="utf-8") as fh:
            return json.load(fh)
