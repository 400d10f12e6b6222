"""
Prometheus metrics definitions for the storefront service

All metrics live on one registry so /metrics exposes exactly what this
service defines and tests can import modules repeatedly without duplicate
registration errors.
"""

from prometheus_client import Counter, Histogram, Gauge, CollectorRegistry

registry = CollectorRegistry()

# =============================================================================
# HTTP API METRICS
# =============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code group",
    ["method", "endpoint", "status_code"],
    registry=registry,
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
    registry=registry,
)

http_requests_in_progress = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests currently being processed",
    ["method", "endpoint"],
    registry=registry,
)

# =============================================================================
# DATABASE METRICS
# =============================================================================

db_pool_in_use = Gauge(
    "db_pool_in_use",
    "Number of database connections currently in use",
    registry=registry,
)

db_pool_available = Gauge(
    "db_pool_available",
    "Number of idle database connections available",
    registry=registry,
)

db_pool_wait_seconds = Histogram(
    "db_pool_wait_seconds",
    "Time spent waiting for a database connection",
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
    registry=registry,
)

db_query_duration_seconds = Histogram(
    "db_query_duration_seconds",
    "Database query execution time in seconds",
    ["operation", "table"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
    registry=registry,
)

db_queries_total = Counter(
    "db_queries_total",
    "Total number of database queries by operation type",
    ["operation"],
    registry=registry,
)

db_query_errors_total = Counter(
    "db_query_errors_total",
    "Total number of database query errors by type",
    ["error_type"],
    registry=registry,
)

# =============================================================================
# REDIS METRICS
# =============================================================================

redis_commands_total = Counter(
    "redis_commands_total",
    "Total Redis commands executed by command type",
    ["command"],
    registry=registry,
)

redis_command_duration_seconds = Histogram(
    "redis_command_duration_seconds",
    "Redis command execution time in seconds",
    ["command"],
    buckets=(0.0001, 0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5),
    registry=registry,
)

redis_errors_total = Counter(
    "redis_errors_total",
    "Total Redis errors by type",
    ["error_type"],
    registry=registry,
)

# =============================================================================
# CHECKOUT & PAYMENT METRICS
# =============================================================================

checkouts_total = Counter(
    "checkouts_total",
    "Checkout attempts by flow and result",
    ["flow", "result"],  # flow: guest, user; result: initialized, rejected, gateway_failed
    registry=registry,
)

payment_gateway_requests_total = Counter(
    "payment_gateway_requests_total",
    "Calls to the payment gateway",
    ["operation", "status"],  # operation: initialize, verify
    registry=registry,
)

payment_gateway_duration_seconds = Histogram(
    "payment_gateway_duration_seconds",
    "Payment gateway call latency in seconds",
    ["operation"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0),
    registry=registry,
)

payment_reconciliations_total = Counter(
    "payment_reconciliations_total",
    "Reconciliation attempts by source and outcome",
    ["source", "outcome"],  # source: verify, webhook; outcome: completed, failed, duplicate, unknown_order
    registry=registry,
)

webhook_events_total = Counter(
    "webhook_events_total",
    "Gateway webhook deliveries by event and result",
    ["event", "result"],  # result: processed, duplicate, ignored, invalid_signature
    registry=registry,
)

stock_decrements_total = Counter(
    "stock_decrements_total",
    "Stock decrements applied after confirmed payments",
    ["target"],  # variant, product
    registry=registry,
)

# =============================================================================
# NOTIFICATION METRICS
# =============================================================================

notifications_total = Counter(
    "notifications_total",
    "Notification dispatches by event and status",
    ["event", "status"],  # status: sent, failed
    registry=registry,
)

# =============================================================================
# BACKGROUND TASK METRICS
# =============================================================================

background_tasks_running = Gauge(
    "background_tasks_running",
    "Number of background tasks currently running",
    ["task_name"],
    registry=registry,
)

background_task_errors_total = Counter(
    "background_task_errors_total",
    "Total errors in background tasks",
    ["task_name", "error_type"],
    registry=registry,
)

scheduled_jobs_total = Counter(
    "scheduled_jobs_total",
    "Notification scheduler job runs by job and status",
    ["job", "status"],
    registry=registry,
)
