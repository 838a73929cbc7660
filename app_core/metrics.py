from time import perf_counter
from flask import Blueprint, g, request, Response
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

metrics_bp = Blueprint("metrics", __name__)

HTTP_LABELS = ["method", "path", "status"]

REQUEST_LATENCY = Histogram(
    "cinetrack_http_request_latency_seconds",
    "Latency of HTTP requests",
    HTTP_LABELS,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10),
)
REQUEST_COUNT = Counter("cinetrack_http_requests_total", "Total HTTP requests", HTTP_LABELS)
ERROR_COUNT = Counter("cinetrack_http_errors_total", "Total HTTP 5xx responses", HTTP_LABELS)

# detail pages that answered with defaults for one stage (catalog, write_back, user_link, reviews)
DEGRADED_READS = Counter(
    "cinetrack_degraded_reads_total",
    "Detail loads that fell back to defaults for one stage",
    ["stage"],
)
LANGUAGE_FALLBACKS = Counter(
    "cinetrack_catalog_language_fallbacks_total",
    "Catalog detail fetches answered by the fallback language",
    ["reason"],
)


def _route_labels(resp):
    # rule pattern keeps label cardinality bounded (ids stay out of the path)
    rule = request.url_rule.rule if request.url_rule else request.path
    return request.method, rule, str(resp.status_code)

@metrics_bp.before_app_request
def _start_timer():
    g._t_start = perf_counter()

@metrics_bp.after_app_request
def _observe(resp):
    start = g.pop("_t_start", None)
    if start is not None:
        labels = _route_labels(resp)
        REQUEST_LATENCY.labels(*labels).observe(perf_counter() - start)
        REQUEST_COUNT.labels(*labels).inc()
        if resp.status_code >= 500:
            ERROR_COUNT.labels(*labels).inc()
    return resp

@metrics_bp.get("/metrics")
def metrics():
    return Response(generate_latest(), mimetype=CONTENT_TYPE_LATEST)
