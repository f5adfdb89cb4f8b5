import time
from typing import Callable

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from starlette.requests import Request
from starlette.responses import Response


REQUEST_COUNTER = Counter(
    "api_requests_total",
    "HTTP requests total",
    ["method", "path", "status"],
)

REQUEST_LATENCY = Histogram(
    "api_request_duration_seconds",
    "HTTP request latency",
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)

CANDIDATES_ENROLLED = Counter(
    "readlater_candidates_enrolled_total",
    "Read-later bookmarks enrolled as download candidates",
)

CANDIDATES_PRUNED = Counter(
    "readlater_candidates_pruned_total",
    "Download candidates removed after leaving the retention window",
)

DOWNLOAD_COUNTER = Counter(
    "readlater_downloads_total",
    "Candidate download attempts",
    ["status"],
)

DOWNLOAD_DURATION = Histogram(
    "readlater_download_duration_seconds",
    "Time spent fetching, extracting and persisting one candidate",
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, 60),
)

TICK_COUNTER = Counter(
    "readlater_ticks_total",
    "Crawler ticks",
    ["outcome"],
)

TICK_DURATION = Histogram(
    "readlater_tick_duration_seconds",
    "Crawler tick duration",
    buckets=(0.1, 0.5, 1, 5, 10, 30, 60, 120, 300, 600),
)


async def metrics_endpoint(_: Request) -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


async def request_metrics_middleware(request: Request, call_next: Callable):
    start = time.time()
    response = await call_next(request)
    elapsed = time.time() - start
    path = request.url.path
    # feed ids are unguessable tokens; keep them out of the label set
    if path.startswith("/v1/feeds/"):
        parts = path.split("/")
        if len(parts) > 3:
            parts[3] = ":feed_id"
        path = "/".join(parts)
    REQUEST_COUNTER.labels(request.method, path, str(response.status_code)).inc()
    REQUEST_LATENCY.observe(elapsed)
    return response
