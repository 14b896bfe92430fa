"""
Prometheus metrics for the reminder
"""
from typing import Optional

from prometheus_client import (CONTENT_TYPE_LATEST, CollectorRegistry,
                               Histogram, generate_latest)

from reminder.core.errors import MetricsError
from reminder.core.logging_config import LoggingConfig

logger = LoggingConfig.get_logger(__name__)

# Seconds between an entity becoming due and its reminder going out
SEND_DELAY_BUCKETS = (60.0, 300.0, 600.0, 1800.0, 3600.0, 7200.0, 10800.0, 18000.0, 25200.0, 36000.0)


class MetricsProvider:
    """
    Registry and instruments of one reminder instance

    `new_send_delay` only exists when first-sight tracking is enabled.
    """

    def __init__(self, track_new_entities: bool = False):
        self.registry = CollectorRegistry(auto_describe=True)
        self._closed = False
        self.send_delay = Histogram(
            'send_delay',
            'Delay in sending reminders, in seconds past the freshness threshold',
            buckets=SEND_DELAY_BUCKETS,
            registry=self.registry,
        )
        self.new_send_delay: Optional[Histogram] = None
        if track_new_entities:
            self.new_send_delay = Histogram(
                'new_send_delay',
                'Delay in sending the first reminder for an entity, in seconds',
                buckets=SEND_DELAY_BUCKETS,
                registry=self.registry,
            )
        self.batch_size = Histogram(
            'batch_size',
            'Number of reminders sent per tick',
            registry=self.registry,
        )

    def record_batch_size(self, size: int):
        self.batch_size.observe(size)

    def record_send_delay(self, seconds: float, new_entity: bool = False):
        seconds = max(0.0, seconds)
        if new_entity and self.new_send_delay is not None:
            self.new_send_delay.observe(seconds)
        else:
            self.send_delay.observe(seconds)

    def generate(self) -> bytes:
        """Metrics in Prometheus text format"""
        return generate_latest(self.registry)

    def shutdown(self):
        if self._closed:
            return
        self._closed = True
        for collector in (self.send_delay, self.new_send_delay, self.batch_size):
            if collector is not None:
                self.registry.unregister(collector)
        self.new_send_delay = None


# Process-wide provider, owned by the running reminder
_provider: Optional[MetricsProvider] = None


def init_metrics_provider(track_new_entities: bool = False) -> MetricsProvider:
    """Create the process-wide metrics provider, replacing any previous one"""
    global _provider

    if _provider is not None:
        logger.warning("Replacing an existing metrics provider")
        _provider.shutdown()

    try:
        _provider = MetricsProvider(track_new_entities=track_new_entities)
    except ValueError as e:
        raise MetricsError(f"error creating metrics: {e}") from e
    return _provider


def get_metrics_provider() -> Optional[MetricsProvider]:
    return _provider


def shutdown_metrics_provider():
    """Drop the process-wide metrics provider"""
    global _provider

    if _provider is None:
        return
    _provider.shutdown()
    _provider = None


def get_metrics_content_type() -> str:
    """Content type for the metrics endpoint"""
    return CONTENT_TYPE_LATEST
