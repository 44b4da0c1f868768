"""
Prometheus metrics.

HTTP request metrics are recorded per endpoint by hooks on the app; the quote
pipeline increments its own counters from the order service. Everything is
exposed on /metrics, which carries no auth and belongs behind network rules.
"""
import os
import time

from flask import Blueprint, Response, g, request
from prometheus_client import (
    CONTENT_TYPE_LATEST, REGISTRY, CollectorRegistry, Counter, Gauge, Histogram,
    generate_latest, multiprocess
)

metrics_bp = Blueprint('metrics', __name__)

# Gunicorn workers share PROMETHEUS_MULTIPROC_DIR; metrics then register nowhere
# and the exposition registry aggregates the worker files instead.
MULTIPROCESS_MODE = os.environ.get('PROMETHEUS_MULTIPROC_DIR') is not None

if MULTIPROCESS_MODE:
    registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(registry)
    _metric_registry = None
else:
    registry = REGISTRY
    _metric_registry = REGISTRY

# Quote pricing is CPU-only, submissions hit the store several times
LATENCY_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5)

http_requests_total = Counter(
    'http_requests_total', 'HTTP requests by endpoint and status',
    ['method', 'endpoint', 'http_status'], registry=_metric_registry
)
http_request_duration_seconds = Histogram(
    'http_request_duration_seconds', 'HTTP request latency in seconds',
    ['method', 'endpoint'], registry=_metric_registry, buckets=LATENCY_BUCKETS
)
http_requests_in_flight = Gauge(
    'http_requests_in_flight', 'HTTP requests being processed',
    registry=_metric_registry, multiprocess_mode='livesum'
)

quote_submissions_total = Counter(
    'quote_submissions_total', 'Quote submissions by order kind and outcome',
    ['kind', 'outcome'], registry=_metric_registry
)
order_id_allocation_failures_total = Counter(
    'order_id_allocation_failures_total', 'Counter transactions that did not commit',
    registry=_metric_registry
)
audit_write_failures_total = Counter(
    'audit_write_failures_total', 'Orders saved without their audit entry',
    registry=_metric_registry
)


def setup_metrics_instrumentation(app):
    """Time every request and count it by endpoint and status."""

    @app.before_request
    def start_request_timer():
        g.request_started_at = time.perf_counter()
        http_requests_in_flight.inc()

    @app.after_request
    def record_request(response):
        started = g.pop('request_started_at', None)
        if started is None:
            return response
        endpoint = request.endpoint or 'unknown'
        http_request_duration_seconds.labels(request.method, endpoint).observe(time.perf_counter() - started)
        http_requests_total.labels(request.method, endpoint, response.status_code).inc()
        http_requests_in_flight.dec()
        return response


@metrics_bp.route('/metrics')
def metrics():
    return Response(generate_latest(registry), mimetype=CONTENT_TYPE_LATEST)
