"""
Feed client API — entry point.

Startup sequence:
  1. Configure OTel tracing (→ Jaeger via OTLP)
  2. Start the Directory Service HTTP client
  3. Start the Feed Service HTTP client (Kafka subscriptions open per session)
  4. Expose Prometheus /metrics endpoint

Shutdown ends the active session first so its subscription is released.
"""
import logging

from contextlib import asynccontextmanager
from fastapi import FastAPI
from prometheus_client import make_asgi_app

from feedsync.config import settings
from feedsync.telemetry import setup_tracing, instrument_app
from feedsync.clients.directory_client import directory_client
from feedsync.clients.feed_client import feed_service_client
from feedsync.routers import feed, session

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)

# Set up tracing before the app is created so all imports are instrumented
setup_tracing()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup and shutdown of the service clients."""
    logger.info("Starting feed client (env=%s)", settings.environment)

    await directory_client.start()
    await feed_service_client.start()
    app.state.directory = directory_client
    app.state.feed_service = feed_service_client
    app.state.feed_session = None

    logger.info("Service clients ready.")
    yield

    logger.info("Shutting down...")
    if app.state.feed_session is not None:
        await app.state.feed_session.end()
    await feed_service_client.stop()
    await directory_client.stop()


app = FastAPI(
    title="Feed Client API",
    description=(
        "Identity resolution and live feed synchronisation on top of the "
        "Directory and Feed services."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

# ── Routers ────────────────────────────────────────────────────────────────
app.include_router(session.router, prefix="/session", tags=["Session"])
app.include_router(feed.router, tags=["Feed"])

# ── Prometheus metrics endpoint ────────────────────────────────────────────
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── OTel FastAPI instrumentation ──────────────────────────────────────────
instrument_app(app)


@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok", "service": settings.service_name}
