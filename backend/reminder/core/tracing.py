"""
OpenTelemetry tracing configuration
"""
from typing import Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from reminder import __version__
from reminder.core.config import Settings, get_settings
from reminder.core.logging_config import LoggingConfig

logger = LoggingConfig.get_logger(__name__)

_tracer_provider: Optional[TracerProvider] = None


def configure_tracing(settings: Optional[Settings] = None):
    """
    Install a global tracer provider when tracing is enabled

    Args:
        settings: Settings to read the tracing section from (defaults to get_settings())
    """
    global _tracer_provider

    if _tracer_provider is not None:
        return

    settings = settings or get_settings()
    config = settings.tracing

    if not config.enabled:
        logger.info("OpenTelemetry tracing is disabled via configuration")
        return

    resource = Resource.create({
        "service.name": config.service_name,
        "service.version": __version__,
        "service.environment": settings.app_env,
    })
    _tracer_provider = TracerProvider(resource=resource)

    if config.exporter == "otlp" and config.otlp_endpoint:
        exporter = OTLPSpanExporter(endpoint=config.otlp_endpoint)
        logger.info(f"Using OTLP exporter: {config.otlp_endpoint}")
    else:
        if config.exporter == "otlp":
            logger.warning("OTLP exporter selected but no endpoint configured, falling back to console")
        exporter = ConsoleSpanExporter()

    _tracer_provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(_tracer_provider)
    logger.info("OpenTelemetry tracing configured")


def get_tracer(name: str) -> trace.Tracer:
    """Tracer for a module; spans are no-ops until tracing is configured"""
    return trace.get_tracer(name)


def add_span_attributes(span=None, **kwargs):
    """Set attributes on the given span, or on the current one"""
    span = span or trace.get_current_span()
    if span.is_recording():
        for key, value in kwargs.items():
            span.set_attribute(key, value)


def shutdown_tracing():
    """Flush pending spans and shut the tracer provider down"""
    global _tracer_provider

    if _tracer_provider is None:
        return

    try:
        _tracer_provider.force_flush(timeout_millis=5000)
        _tracer_provider.shutdown()
        logger.info("OpenTelemetry tracing shutdown complete")
    except Exception as e:
        logger.warning(f"Error during tracing shutdown: {e}")
    finally:
        _tracer_provider = None
