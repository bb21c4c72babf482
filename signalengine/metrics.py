"""
Aggregation Metrics - Prometheus metrics for signal intake and composites

Metrics are registered at import time on the default registry and exposed by
the API's /metrics endpoint.
"""

from prometheus_client import Counter, Gauge, Histogram

from shared.constants import METRICS_NAMESPACE

# Intake
signals_received_total = Counter(
    "signals_received_total",
    "Total input signals accepted for aggregation",
    ["instrument", "category"],
    namespace=METRICS_NAMESPACE,
)

signals_rejected_total = Counter(
    "signals_rejected_total",
    "Total input signals rejected at intake",
    ["reason"],
    namespace=METRICS_NAMESPACE,
)

signals_evicted_total = Counter(
    "signals_evicted_total",
    "Input signals evicted by the per-instrument capacity",
    ["instrument"],
    namespace=METRICS_NAMESPACE,
)

# Aggregation
aggregations_total = Counter(
    "aggregations_total",
    "Aggregation runs by method and outcome",
    ["instrument", "method", "outcome"],
    namespace=METRICS_NAMESPACE,
)

aggregation_duration_seconds = Histogram(
    "aggregation_duration_seconds",
    "Time spent computing one composite",
    ["method"],
    namespace=METRICS_NAMESPACE,
    buckets=[0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25],
)

composite_quality_score = Histogram(
    "composite_quality_score",
    "Quality score of computed composites",
    ["instrument"],
    namespace=METRICS_NAMESPACE,
    buckets=[10, 20, 30, 40, 50, 60, 70, 80, 90, 100],
)

composite_consensus = Histogram(
    "composite_consensus",
    "Consensus of computed composites",
    ["instrument"],
    namespace=METRICS_NAMESPACE,
    buckets=[0.0, 0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0],
)

active_signals = Gauge(
    "active_signals",
    "Active input signals at the last aggregation",
    ["instrument"],
    namespace=METRICS_NAMESPACE,
)

# Sources
source_weight = Gauge(
    "source_weight",
    "Effective aggregation weight per source",
    ["source_id", "category"],
    namespace=METRICS_NAMESPACE,
)

source_outcomes_total = Counter(
    "source_outcomes_total",
    "Performance outcomes reported per source",
    ["source_id", "result"],
    namespace=METRICS_NAMESPACE,
)
