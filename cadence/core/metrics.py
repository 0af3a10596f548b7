"""Prometheus metrics for the pool, transactions, jobs and workflows."""

from prometheus_client import Counter, Gauge, Histogram

# Connection pool metrics
pool_connections_active = Gauge(
    "cadence_pool_connections_active",
    "Connections currently checked out of the pool",
    ["pool"],
)

pool_queue_depth = Gauge(
    "cadence_pool_queue_depth",
    "Acquirers waiting for a connection",
    ["pool"],
)

pool_acquire_wait_seconds = Histogram(
    "cadence_pool_acquire_wait_seconds",
    "Time spent waiting to acquire a connection",
    ["pool"],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0],
)

pool_acquired_after_wait_total = Counter(
    "cadence_pool_acquired_after_wait_total",
    "Connections handed to a queued waiter",
    ["pool"],
)

pool_timeouts_total = Counter(
    "cadence_pool_timeouts_total",
    "Acquire attempts that hit the connection timeout",
    ["pool"],
)

db_query_duration_seconds = Histogram(
    "cadence_db_query_duration_seconds",
    "Statement execution duration in seconds",
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0],
)

# Transaction metrics
transaction_duration_seconds = Histogram(
    "cadence_transaction_duration_seconds",
    "Transaction duration in seconds",
    ["outcome"],
    buckets=[0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0, 60.0],
)

transaction_conflicts_total = Counter(
    "cadence_transaction_conflicts_total",
    "Transaction attempts that hit a serialization failure or deadlock",
)

# Job metrics
jobs_scheduled_total = Counter(
    "cadence_jobs_scheduled_total",
    "Jobs created by the scheduler",
    ["job_type"],
)

jobs_rescheduled_total = Counter(
    "cadence_jobs_rescheduled_total",
    "Jobs rescheduled with backoff",
    ["job_type"],
)

jobs_max_retries_exceeded_total = Counter(
    "cadence_jobs_max_retries_exceeded_total",
    "Jobs marked failed after exhausting retries",
    ["job_type"],
)

jobs_cancelled_total = Counter(
    "cadence_jobs_cancelled_total",
    "Jobs cancelled",
)

job_queue_depth = Gauge(
    "cadence_job_queue_depth",
    "Ready jobs found by the last poll",
)

jobs_finished_total = Counter(
    "cadence_jobs_finished_total",
    "Job attempts by outcome",
    ["job_type", "outcome"],
)

job_duration_seconds = Histogram(
    "cadence_job_duration_seconds",
    "Job attempt duration in seconds",
    ["job_type"],
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
)

job_queue_errors_total = Counter(
    "cadence_job_queue_errors_total",
    "Poll passes that raised",
)

# Workflow metrics
workflow_step_duration_seconds = Histogram(
    "cadence_workflow_step_duration_seconds",
    "Workflow step duration in seconds",
    ["step_type", "outcome"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 5.0],
)

workflow_executions_total = Counter(
    "cadence_workflow_executions_total",
    "Workflow executions by final status",
    ["status"],
)

# Cache metrics
cache_requests_total = Counter(
    "cadence_cache_requests_total",
    "Cache lookups by result",
    ["result"],
)

validation_service_calls_total = Counter(
    "cadence_validation_service_calls_total",
    "External validation service calls by outcome",
    ["outcome"],
)
