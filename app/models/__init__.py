"""Database models."""
from app.models.webhook import WebhookRecord

__all__ = [
    "WebhookRecord",
]
