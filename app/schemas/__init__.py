"""Pydantic schemas for request/response validation."""
from app.schemas.webhook import (
    DownloadStatus,
    WebhookCreate,
    WebhookResponse,
    DownloadUrlResponse,
    StatusCounts,
    DailyStatusCounts,
    WebhookMetricsResponse,
    WebhookTimelineGroup,
    WebhookTimelineResponse,
)

__all__ = [
    "DownloadStatus",
    "WebhookCreate",
    "WebhookResponse",
    "DownloadUrlResponse",
    "StatusCounts",
    "DailyStatusCounts",
    "WebhookMetricsResponse",
    "WebhookTimelineGroup",
    "WebhookTimelineResponse",
]
