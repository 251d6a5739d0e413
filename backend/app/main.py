from __future__ import annotations

from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from sentry_sdk.integrations.fastapi import FastApiIntegration

from .api.routes import concierge as concierge_routes
from .cache import get_all_cache_stats
from .concierge import reference_store
from .errors import DataUnavailable
from .logging_config import SERVICE_NAME, SERVICE_VERSION, configure_structlog, get_logger
from .metrics import PrometheusMiddleware, get_metrics
from .openai_async import close_async_client
from .settings import settings
from .utils import add_cors, add_request_id_tracing

# Configure structured logging (must be done before any logging calls)
configure_structlog(json_logs=not settings.DEBUG)

if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT,
        release=settings.SENTRY_RELEASE or f"{SERVICE_NAME}@dev",
        integrations=[FastApiIntegration()],
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
    )

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    for name in settings.missing_credentials():
        logger.warning("credential_missing", setting=name)
    try:
        await reference_store.areload()
    except (OSError, DataUnavailable) as exc:
        # serve with an empty dataset rather than refusing to start
        logger.error("reference_load_failed", error=str(exc))
    yield
    await close_async_client()


app = FastAPI(
    title="Yaka Concierge API",
    version=SERVICE_VERSION,
    description="Guest concierge chatbot for short-term rental apartments",
    lifespan=lifespan,
)
add_cors(app)
add_request_id_tracing(app)
app.add_middleware(PrometheusMiddleware)

app.include_router(concierge_routes.router)


@app.exception_handler(Exception)
async def unhandled_exception(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", path=request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.get("/", include_in_schema=False)
def root_banner():
    return PlainTextResponse("Yaka chatbot backend is running!")


@app.get("/health")
def health():
    snapshot = reference_store.snapshot
    body = {
        "status": "ok",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "reference_data": snapshot.counts(),
        "missing_credentials": settings.missing_credentials(),
    }
    if settings.DEBUG:
        body["caches"] = get_all_cache_stats()
    return body


@app.get("/metrics")
def metrics():
    """Expose Prometheus metrics."""
    try:
        return get_metrics()
    except Exception:  # pragma: no cover - defensive path
        logger.exception("Metrics export failed")
        raise HTTPException(status_code=503, detail="metrics unavailable")
