"""
Prometheus metrics endpoint
"""
from fastapi import APIRouter, Request
from fastapi.responses import Response

from reminder.core.logging_config import LoggingConfig
from reminder.core.metrics import get_metrics_content_type

logger = LoggingConfig.get_logger(__name__)

router = APIRouter(tags=["metrics"])


@router.get("/metrics")
async def metrics(request: Request):
    """
    Prometheus metrics endpoint

    Returns the reminder's metrics in Prometheus text format
    """
    provider = getattr(request.app.state, "metrics_provider", None)
    if provider is None:
        return Response(
            content="# Metrics provider is not running\n",
            media_type="text/plain",
            status_code=503
        )
    try:
        return Response(
            content=provider.generate(),
            media_type=get_metrics_content_type()
        )
    except Exception as e:
        logger.error(f"Error generating metrics: {e}", exc_info=True)
        return Response(
            content="# Error generating metrics\n",
            media_type="text/plain",
            status_code=500
        )
