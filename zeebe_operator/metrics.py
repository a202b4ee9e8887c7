"""
Prometheus metrics, exposed on /metrics by the API.
"""
from prometheus_client import Counter, Gauge

RECONCILE_TOTAL = Counter(
    "zeebe_operator_reconcile_total",
    "Reconcile invocations by outcome",
    ["outcome"],
)
RECONCILE_ERRORS = Counter(
    "zeebe_operator_reconcile_errors_total",
    "Reconcile invocations that failed and were re-queued",
    ["error"],
)
STATUS_UPDATES = Counter(
    "zeebe_operator_status_updates_total",
    "Cluster status writes performed by pollers",
)
ACTIVE_POLLERS = Gauge(
    "zeebe_operator_active_pollers",
    "Status pollers currently registered",
)
REMOTE_CALLS = Counter(
    "zeebe_operator_remote_calls_total",
    "Camunda Cloud console API calls",
    ["operation", "result"],
)
