"""
OpenTelemetry tracing for the checkout service

Services create spans through ``trace.get_tracer(__name__)``; until
``setup_tracing`` installs a provider those spans are no-ops.
"""
from typing import Optional
from urllib.parse import urlparse
import logging

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource, SERVICE_NAME, SERVICE_VERSION, DEPLOYMENT_ENVIRONMENT
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor

logger = logging.getLogger(__name__)

# Requests that should not produce traces
EXCLUDED_URLS = "health,ready"


def setup_tracing(
    service_name: str,
    version: str,
    environment: str = "dev",
    otlp_endpoint: str = "http://localhost:4317"
) -> TracerProvider:
    """
    Install a global tracer provider exporting to an OTLP collector

    Plain ``http://`` endpoints are exported without TLS.
    """
    resource = Resource(attributes={
        SERVICE_NAME: service_name,
        SERVICE_VERSION: version,
        DEPLOYMENT_ENVIRONMENT: environment
    })
    provider = TracerProvider(resource=resource)

    exporter = OTLPSpanExporter(
        endpoint=otlp_endpoint,
        insecure=urlparse(otlp_endpoint).scheme != "https"
    )
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    logger.info(f"Tracing {service_name} to {otlp_endpoint}")
    return provider


def instrument_app(app):
    """Trace incoming requests, probes excluded"""
    FastAPIInstrumentor.instrument_app(app, excluded_urls=EXCLUDED_URLS)
    logger.info("FastAPI instrumented with OpenTelemetry")


def instrument_engine(engine):
    """Trace queries issued through ``engine``"""
    SQLAlchemyInstrumentor().instrument(engine=engine)
    logger.info("SQLAlchemy instrumented with OpenTelemetry")


def shutdown_tracing(provider: Optional[TracerProvider]):
    """Flush pending spans"""
    if provider is None:
        return
    provider.shutdown()
    logger.info("Tracing shut down")
