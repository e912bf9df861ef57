"""
Prometheus Metrics for the audit ingestion pipeline and report engine.

Defines Prometheus metrics for tracking:
- Events accepted, dropped on overflow, flushed and lost on flush failure
- Flush outcomes, batch sizes and durations
- Event queue depth
- Report query performance
"""

from prometheus_client import Counter, Gauge, Histogram

# Ingestion Metrics
audit_events_accepted_total = Counter(
    "audit_events_accepted_total",
    "Total number of audit events accepted into the event queue",
)

audit_events_dropped_total = Counter(
    "audit_events_dropped_total",
    "Total number of audit events dropped because the event queue was full",
)

audit_events_flushed_total = Counter(
    "audit_events_flushed_total",
    "Total number of audit events persisted by the batching worker",
)

audit_events_lost_total = Counter(
    "audit_events_lost_total",
    "Total number of audit events discarded after a failed flush",
)

audit_queue_depth = Gauge(
    "audit_queue_depth",
    "Current number of audit events waiting in the event queue",
)

# Flush Metrics
audit_flushes_total = Counter(
    "audit_flushes_total",
    "Total number of batch flush attempts",
    labelnames=["outcome", "trigger"],
)

audit_flush_batch_size = Histogram(
    "audit_flush_batch_size",
    "Number of events per flushed batch",
    buckets=[1, 5, 10, 25, 50, 100, 250, 500],
)

audit_flush_duration_seconds = Histogram(
    "audit_flush_duration_seconds",
    "Batch insert duration in seconds",
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
)

# Report Metrics
report_query_duration_seconds = Histogram(
    "report_query_duration_seconds",
    "Report query execution time in seconds",
    labelnames=["report_id"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
)
