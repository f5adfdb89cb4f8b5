import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_crawler_settings, is_crawler_in_process_enabled
from .db import init_db
from .errors import register_error_handlers
from .observability.logging import setup_logging, bind_request_id
from .observability.metrics import metrics_endpoint, request_metrics_middleware
from .observability.sentry import init_sentry
from .routers import feeds, status
from .worker import CrawlerWorker


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup and run the in-process crawler if enabled."""
    init_db()
    worker = None
    if is_crawler_in_process_enabled():
        worker = CrawlerWorker(get_crawler_settings())
        worker.start()
        logger.info("In-process crawler started")
    app.state.crawler = worker
    try:
        yield
    finally:
        if worker is not None:
            worker.stop(timeout=5.0)
        app.state.crawler = None


def create_app() -> FastAPI:
    tags_metadata = [
        {"name": "status", "description": "Service and database health"},
        {"name": "feeds", "description": "Read-later items per feed"},
    ]
    app = FastAPI(
        title="Read Later API",
        version="0.1.0",
        openapi_tags=tags_metadata,
        lifespan=lifespan,
    )
    app.state.crawler = None

    register_error_handlers(app)
    setup_logging()
    init_sentry(app)

    # CORS from environment configuration
    origins = os.getenv("CORS_ALLOW_ORIGINS", "*")
    allow_origins = [o.strip() for o in origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=False,
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    # Metrics middleware
    app.middleware("http")(request_metrics_middleware)
    # Request ID binder
    @app.middleware("http")
    async def add_request_id(request, call_next):
        rid = request.headers.get("X-Request-Id")
        bind_request_id(rid)
        response = await call_next(request)
        if rid:
            response.headers["X-Request-Id"] = rid
        return response

    # Routers
    app.include_router(status.router)
    app.include_router(status.router, prefix="/v1", tags=["v1"])  # v1 status
    app.include_router(feeds.router)
    # Prometheus metrics
    app.add_api_route("/metrics", metrics_endpoint, include_in_schema=False)

    return app


app = create_app()
