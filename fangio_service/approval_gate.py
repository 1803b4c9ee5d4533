"""
Approval gate between a reviewed plan and its execution.

PRINCIPLES:
1. Low-risk steps are approved when the plan is created; medium and high risk
   steps need an explicit operator approval.
2. Every approval is stamped with the time it was granted.
3. Approvals decay: at execution time an approval older than the configured
   TTL is revoked and the run is refused until the step is re-approved.
4. Approval requests naming unknown step ids are tolerated; those ids are
   ignored so a stale client view cannot fail the whole request.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from .errors import PlanNotFoundError
from .event_context import with_event_context
from .metrics import approvals_expired_total
from .schemas import AuditEvent, AuditEventType, Plan, RiskLevel, parse_timestamp, utc_now_iso
from .store import PlanStore

logger = logging.getLogger(__name__)


class ApprovalGate:
    def __init__(self, store: PlanStore):
        self.store = store

    def auto_approve(self, plan: Plan, timestamp: Optional[str] = None) -> None:
        """
        Apply creation-time approvals.

        Low-risk steps are approved outright. Steps the plan source already
        marked approved but without a timestamp get one, so the TTL check has
        something to measure against.
        """
        timestamp = timestamp or utc_now_iso()
        for step in plan.steps:
            if step.risk == RiskLevel.LOW:
                step.approve(timestamp)
            elif step.approved and not step.approved_at:
                step.approved_at = timestamp

    async def approve(
        self,
        plan_id: str,
        step_ids: Iterable[str],
        approved_at: Optional[str] = None,
    ) -> List[str]:
        """
        Approve the named steps of a plan.

        Args:
            plan_id: Plan to update (loaded from disk if not in memory)
            step_ids: Steps to approve; ids not on the plan are skipped
            approved_at: Approval timestamp, defaults to now

        Returns:
            Ids of the steps that were approved, in request order

        Raises:
            PlanNotFoundError: If the plan is unknown
        """
        plan = await self.store.get_plan_or_load(plan_id)
        if plan is None:
            raise PlanNotFoundError(plan_id)

        approved_at = approved_at or utc_now_iso()
        approved: List[str] = []
        for step_id in step_ids:
            step = plan.find_step(step_id)
            if step is None:
                logger.debug("ignoring approval for unknown step %s on plan %s", step_id, plan_id)
                continue
            step.approve(approved_at)
            approved.append(step_id)
            self.store.emit_event(
                AuditEvent(
                    plan_id=plan_id,
                    type=AuditEventType.STEP_APPROVED,
                    step_id=step_id,
                    data=with_event_context(plan),
                )
            )

        await self.store.update_plan(plan)
        logger.info("approved %d step(s) on plan %s", len(approved), plan_id)
        return approved

    async def expire_stale_approvals(
        self,
        plan: Plan,
        ttl_minutes: float,
        now: Optional[datetime] = None,
    ) -> List[str]:
        """
        Revoke approvals older than ``ttl_minutes``.

        A TTL of zero or less disables the check. Approved steps whose
        ``approvedAt`` is missing or unparsable count as expired. When anything
        is revoked the plan is persisted with the reset flags.

        Returns:
            Ids of the revoked steps (empty when execution may proceed)
        """
        if not ttl_minutes or ttl_minutes <= 0:
            return []

        now = now or datetime.now(timezone.utc)
        ttl = timedelta(minutes=ttl_minutes)
        expired: List[str] = []
        for step in plan.steps:
            if not step.approved:
                continue
            approved_at = parse_timestamp(step.approved_at)
            if approved_at is None or now - approved_at > ttl:
                step.revoke()
                expired.append(step.id)

        if expired:
            approvals_expired_total.inc(len(expired))
            logger.warning(
                "approval TTL (%s min) exceeded on plan %s, revoked: %s",
                ttl_minutes,
                plan.plan_id,
                ", ".join(expired),
            )
            await self.store.update_plan(plan)
        return expired

    @staticmethod
    def unapproved_step_ids(plan: Plan) -> List[str]:
        return [step.id for step in plan.steps if not step.approved]
