from prometheus_client import Counter, Gauge, Histogram, start_http_server

# Metrics Definitions
LEASE_ATTEMPTS = Counter(
    "worker_lease_attempts_total",
    "Lease requests sent to the coordinator",
    ["outcome"] # work_found | no_work | transport_error
)

LEASE_PROTOCOL_ERRORS = Counter(
    "worker_lease_protocol_errors_total",
    "Lease responses rejected as protocol violations"
)

WORK_ITEMS = Counter(
    "worker_work_items_total",
    "Work items executed by this worker",
    ["result"] # succeeded | failed
)

WORK_ITEM_DURATION = Histogram(
    "worker_work_item_duration_seconds",
    "Time spent executing one leased work item",
    buckets=[0.1, 0.5, 1.0, 5.0, 10.0, 60.0, 300.0]
)

BACKOFF_SLEEP = Histogram(
    "worker_backoff_sleep_seconds",
    "Requested backoff sleep between lease attempts",
    buckets=[1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 450.0]
)

ACTIVE_LOOPS = Gauge(
    "worker_active_loops",
    "Worker loops currently running in this process"
)


def start_metrics_server(port: int) -> None:
    start_http_server(port)
