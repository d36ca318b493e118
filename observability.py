import atexit
import os
from enum import Enum
from functools import lru_cache
import logging
from typing import Optional

from django.conf import settings
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor

logger = logging.getLogger(__name__)

# Global reference to the tracer provider for cleanup
_tracer_provider: Optional[TracerProvider] = None

TRUTHY = ("1", "true", "yes", "on")
FALSY = ("0", "false", "no", "off")


class RelayService(str, Enum):
    """
    Service names reported on every span.
    """
    WEB = "conversion-relay-web"


def tracing_enabled() -> bool:
    release_env = os.getenv("TRACKING_RELEASE_ENV", "local").lower()
    user_flag = os.getenv("TRACKING_ENABLE_TRACING", "").lower()

    # 1.  An explicit falsy flag always disables.
    if user_flag in FALSY:
        return False

    # 2.  Local/build environments stay dark unless the developer opted in.
    if release_env in {"local", "build"} and user_flag not in TRUTHY:
        return False
    return True


@lru_cache(maxsize=1)                    # make sure we initialize only once
def init_tracing(service_name: RelayService) -> None:
    """
    Initialize the OTEL tracer provider exactly once per process.

    Without a provider the OpenTelemetry API hands out no-op tracers, so the
    spans opened around each dispatch cost nothing when tracing is off.
    Set OTEL_SPAN_PROCESSOR=simple for synchronous export while debugging.
    """
    global _tracer_provider

    if not tracing_enabled():
        logger.debug("OpenTelemetry: tracing disabled for %s", service_name.value)
        return

    res = Resource.create(
        {
            "service.name": service_name.value,
            "service.version": os.getenv("TRACKING_VERSION", "dev"),
            "deployment.environment.name": os.getenv("TRACKING_RELEASE_ENV", "local"),
        }
    )

    try:
        provider = TracerProvider(resource=res)
        exporter = OTLPSpanExporter(
            endpoint=settings.OTEL_EXPORTER_OTLP_ENDPOINT,
            insecure=settings.OTEL_EXPORTER_OTLP_INSECURE,
        )

        processor_type = os.getenv("OTEL_SPAN_PROCESSOR", "batch").lower()
        if processor_type == "simple":
            span_processor = SimpleSpanProcessor(exporter)
        else:
            span_processor = BatchSpanProcessor(
                exporter,
                schedule_delay_millis=int(os.getenv("OTEL_BSP_SCHEDULE_DELAY", "500")),
                export_timeout_millis=int(os.getenv("OTEL_BSP_EXPORT_TIMEOUT", "5000")),
            )
        provider.add_span_processor(span_processor)
        logger.debug(f"OpenTelemetry: span processor ({processor_type}) added to TracerProvider")

        trace.set_tracer_provider(provider)
        _tracer_provider = provider
        atexit.register(shutdown_tracing)
    except Exception as e:
        logger.error(f"Failed to initialize OTEL tracer: {e}")
        raise


def shutdown_tracing() -> None:
    """Flush and shut down the tracer provider, if one was installed."""
    global _tracer_provider

    if _tracer_provider is None:
        return
    try:
        _tracer_provider.force_flush(timeout_millis=3000)
        _tracer_provider.shutdown()
    finally:
        _tracer_provider = None
