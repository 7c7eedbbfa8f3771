"""Prometheus metrics for suggestion lifecycle, imports and backend performance"""

from typing import Iterable, Optional

from prometheus_client import Counter, Histogram

from portfolio_assistant.domain.models import Diagnostic, ImportResult

# Suggestion metrics
suggestion_transition_counter = Counter(
    "assistant_suggestion_transitions_total",
    "Suggestion status transitions",
    ["action_type", "status"],  # confirmed | declined
)

execution_counter = Counter(
    "assistant_executions_total",
    "Confirmed suggestions dispatched to the backend",
    ["action_type", "outcome"],  # success | partial | failed_items | error
)

import_item_counter = Counter(
    "assistant_import_items_total",
    "Extracted records by import outcome",
    ["outcome"],  # imported | duplicate | error
)

# Enrichment / normalization metrics
enrichment_failure_counter = Counter(
    "assistant_enrichment_failures_total",
    "Holdings lookups that fell back to extracted data",
)

date_warning_counter = Counter(
    "assistant_date_warnings_total",
    "Plausibility warnings raised on extracted dates",
    ["kind"],  # date_in_future | date_in_past | date_transposed
)

# Backend metrics
backend_latency_histogram = Histogram(
    "backend_command_latency_seconds",
    "Portfolio backend command response time",
    ["command"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

backend_failure_counter = Counter(
    "backend_command_failures_total",
    "Failed portfolio backend commands",
    ["command"],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_transition(action_type: str, status: str) -> None:
    suggestion_transition_counter.labels(action_type=action_type, status=status).inc()


def record_execution(action_type: str, outcome: str, import_result: Optional[ImportResult] = None) -> None:
    """Record executor outcome, and per-item counts for batch imports"""
    execution_counter.labels(action_type=action_type, outcome=outcome).inc()
    if import_result is None:
        return
    import_item_counter.labels(outcome="imported").inc(import_result.imported_count)
    import_item_counter.labels(outcome="duplicate").inc(len(import_result.duplicates))
    import_item_counter.labels(outcome="error").inc(len(import_result.errors))


def record_diagnostics(diagnostics: Iterable[Diagnostic]) -> None:
    """Count enrichment fallbacks and date warnings from a preview"""
    for diagnostic in diagnostics:
        if diagnostic.code == "enrichment_failed":
            enrichment_failure_counter.inc()
        elif diagnostic.code.startswith("date_") and diagnostic.code not in ("date_missing", "date_unparsed"):
            date_warning_counter.labels(kind=diagnostic.code).inc()
