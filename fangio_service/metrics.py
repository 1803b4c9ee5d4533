"""Prometheus metrics exported by the plan service.

Exposed on ``GET /metrics`` by the application.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

plans_created_total = Counter("plans_created_total", "Plans created")
plan_rate_limited_total = Counter("plan_rate_limited_total", "Plan creation requests rejected by admission control")
approvals_expired_total = Counter("approvals_expired_total", "Step approvals revoked for exceeding the TTL")

# Execution
steps_executed_total = Counter("steps_executed_total", "Plan steps processed", ["outcome"])
executions_finished_total = Counter("executions_finished_total", "Plan executions run to completion")
execution_crashes_total = Counter("execution_crashes_total", "Background executions that raised")

# Store
persistence_errors_total = Counter("persistence_errors_total", "Plan/run file read or write failures", ["kind"])
event_subscribers = Gauge("event_subscribers", "Live event stream subscribers")
