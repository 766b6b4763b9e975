"""Service layer for webhook processing."""
from app.services.webhook_repository import WebhookRepository
from app.services.webhook_service import WebhookService

__all__ = [
    "WebhookRepository",
    "WebhookService",
]
