"""
Prometheus Metrics for Newsdesk.

Provides application-level metrics for monitoring.

Metrics included:
- policy_decisions_total: Counter for individual policy decisions
- policy_chain_duration_seconds: Histogram for chain evaluation time
- workflow_transitions_total: Counter for persisted workflow transitions
- http_requests_total: Counter for API responses by status class

Cardinality Guidelines:
- All labels MUST be low-cardinality (small, bounded set of values)
- ALLOWED label values: policy names, outcomes, reason codes, workflow states
- FORBIDDEN label values: user IDs, article IDs, slugs, request paths
- If per-resource metrics needed, use structured logging instead

Usage:
    from apps.core.metrics import increment_policy_decision

    increment_policy_decision('role-gate', 'deny', 'FORBIDDEN')

Setup:
    Add to urls.py:
        from apps.core.metrics import metrics_view
        urlpatterns = [
            path('metrics/', metrics_view, name='prometheus-metrics'),
        ]
"""

import time
from contextlib import contextmanager
import logging

from django.http import HttpResponse
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

logger = logging.getLogger(__name__)


# ============================================================================
# Metric Definitions
# ============================================================================

policy_decisions_total = Counter(
    'newsdesk_policy_decisions_total',
    'Total policy decisions',
    ['policy', 'outcome', 'reason']  # outcome: allow/deny/bypass, reason: reason code or none
)

policy_chain_duration_seconds = Histogram(
    'newsdesk_policy_chain_duration_seconds',
    'Time spent evaluating a policy chain',
    ['chain'],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0]
)

workflow_transitions_total = Counter(
    'newsdesk_workflow_transitions_total',
    'Total persisted workflow transitions',
    ['from_status', 'to_status']
)

http_requests_total = Counter(
    'newsdesk_http_requests_total',
    'Total API responses',
    ['status_class']  # status_class: 2xx, 3xx, 4xx, 5xx, error
)


# ============================================================================
# Helper Functions
# ============================================================================

def increment_policy_decision(policy, outcome, reason=None):
    """Increment policy decision counter."""
    policy_decisions_total.labels(
        policy=policy, outcome=outcome, reason=reason or 'none'
    ).inc()


def increment_workflow_transition(from_status, to_status):
    """Increment workflow transition counter."""
    workflow_transitions_total.labels(from_status=from_status, to_status=to_status).inc()


def _status_code_to_class(status_code) -> str:
    """Convert status code to class label (2xx, 3xx, etc.)."""
    try:
        code = int(status_code)
        if 200 <= code < 300:
            return '2xx'
        elif 300 <= code < 400:
            return '3xx'
        elif 400 <= code < 500:
            return '4xx'
        elif 500 <= code < 600:
            return '5xx'
        else:
            return 'other'
    except (ValueError, TypeError):
        return 'error'


def increment_http_request(status_code):
    """
    Increment HTTP request counter.

    Status codes are grouped into classes (2xx, 3xx, 4xx, 5xx).
    """
    http_requests_total.labels(status_class=_status_code_to_class(status_code)).inc()


# ============================================================================
# Context Managers
# ============================================================================

@contextmanager
def observe_chain_duration(chain_name):
    """Context manager to time a policy chain evaluation."""
    start = time.time()
    try:
        yield
    finally:
        policy_chain_duration_seconds.labels(chain=chain_name).observe(time.time() - start)


# ============================================================================
# Metrics View
# ============================================================================

def metrics_view(request):
    """
    Django view to expose Prometheus metrics.

    Returns metrics in Prometheus text format.
    """
    return HttpResponse(generate_latest(), content_type=CONTENT_TYPE_LATEST)
