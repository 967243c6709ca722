"""Monitoring configuration for the trainer."""
from prometheus_client import Counter, Histogram, start_http_server

# Assessment metrics
assessment_requests = Counter(
    "dailyvocab_assessment_requests_total",
    "Total number of assessment requests sent to the judge",
    ["mode"],
)

assessment_failures = Counter(
    "dailyvocab_assessment_failures_total",
    "Total number of assessments replaced by fallback feedback",
    ["error_type"],
)

assessment_duration = Histogram(
    "dailyvocab_assessment_duration_seconds",
    "Duration of judge round-trips in seconds",
    ["mode"],
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
)

# Practice metrics
phase_transitions = Counter(
    "dailyvocab_phase_transitions_total",
    "Total number of word phase transitions",
    ["phase"],
)

word_count_changes = Counter(
    "dailyvocab_word_count_changes_total",
    "Total number of words-per-day preference changes",
    ["count"],
)

# Service boundary metrics
rate_limited_requests = Counter(
    "dailyvocab_rate_limited_requests_total",
    "Total number of requests rejected by the rate limiter",
)

corrupt_state_loads = Counter(
    "dailyvocab_corrupt_state_loads_total",
    "Total number of progress loads that fell back to an empty store",
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)
