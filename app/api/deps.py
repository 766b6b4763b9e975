"""Shared API dependencies."""
from fastapi import Request

from app.services.webhook_service import WebhookService


def get_webhook_service(request: Request) -> WebhookService:
    """Process-wide processing engine built during application startup."""
    return request.app.state.webhook_service
