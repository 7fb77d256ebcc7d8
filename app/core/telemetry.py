import logging

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from app.core.config import settings
from app.core.db import engine

log = logging.getLogger(__name__)

# Health probes and static image hits would drown out API traces
_UNTRACED_URLS = "api/health,uploads/.*"


def setup_telemetry(app: FastAPI) -> None:
    if not settings.telemetry_enabled:
        log.info("telemetry disabled")
        return

    provider = TracerProvider(
        resource=Resource.create({
            "service.name": settings.service_name,
            "deployment.environment": settings.env,
        })
    )
    exporter = OTLPSpanExporter(endpoint=f"{settings.otlp_endpoint.rstrip('/')}/v1/traces")
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    FastAPIInstrumentor.instrument_app(app, excluded_urls=_UNTRACED_URLS)
    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)
    log.info("telemetry enabled: exporter=%s", settings.otlp_endpoint)
