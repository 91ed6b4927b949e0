"""
Observability setup:
  - OpenTelemetry distributed tracing → Jaeger (via OTLP gRPC)
  - Prometheus metrics: identity resolutions, feed loads, pushes, submissions

Tracing is initialised once by the app entry point; the metrics are module
level and shared by every component in the process.
"""
import logging

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from prometheus_client import Counter, Gauge, Histogram

from feedsync.config import settings

logger = logging.getLogger(__name__)

# ─────────────────────────── Prometheus Metrics ───────────────────────────
IDENTITY_RESOLUTIONS_TOTAL = Counter(
    "identity_resolutions_total",
    "Identity resolutions by where the identity came from",
    ["source"],  # 'profile' | 'created' | 'fallback'
)

FEED_LOAD_LATENCY = Histogram(
    "feed_load_latency_seconds",
    "Latency of the initial bulk load of recent posts",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

FEED_LOAD_ERRORS_TOTAL = Counter(
    "feed_load_errors_total",
    "Number of failed bulk loads (previous feed kept)",
)

PUSHED_POSTS_TOTAL = Counter(
    "feed_pushed_posts_total",
    "Posts delivered by the push channel",
    ["outcome"],  # 'inserted' | 'duplicate' | 'dropped'
)

POST_SUBMISSIONS_TOTAL = Counter(
    "post_submissions_total",
    "Post submissions by outcome",
    ["outcome"],  # 'accepted' | 'empty' | 'too_long' | 'in_flight' | 'identity_not_ready' | 'failed'
)

FEED_SIZE = Gauge(
    "feed_size",
    "Number of posts currently held in the local feed",
)


# ─────────────────────────── OpenTelemetry Setup ──────────────────────────
def setup_tracing() -> None:
    """Configure the global OTel TracerProvider with OTLP/Jaeger export."""
    if not settings.otel_enabled:
        logger.info("OTel tracing disabled")
        return

    resource = Resource.create(
        {
            "service.name": settings.service_name,
            "deployment.environment": settings.environment,
        }
    )

    provider = TracerProvider(resource=resource)

    try:
        otlp_exporter = OTLPSpanExporter(
            endpoint=settings.otel_exporter_otlp_endpoint,
            insecure=True,
        )
        provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
        logger.info(
            "OTel tracing configured → %s", settings.otel_exporter_otlp_endpoint
        )
    except Exception as exc:
        logger.warning("OTLP exporter unavailable: %s, spans will not be exported", exc)

    trace.set_tracer_provider(provider)

    # Directory and Feed Service calls both go through httpx
    HTTPXClientInstrumentor().instrument()


def instrument_app(app) -> None:  # noqa: ANN001
    """Call after app is created to add FastAPI request spans."""
    if settings.otel_enabled:
        FastAPIInstrumentor.instrument_app(app)
