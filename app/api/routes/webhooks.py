"""Webhook API routes."""
import logging
from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query

from app.api.deps import get_webhook_service
from app.schemas.webhook import (
    DownloadStatus,
    WebhookCreate,
    WebhookResponse,
    DownloadUrlResponse,
    WebhookMetricsResponse,
    WebhookTimelineResponse,
)
from app.services.webhook_service import WebhookService
from app.utils.exceptions import WebhookServiceException, handle_service_exception
from app.utils.timestamps import parse_iso

logger = logging.getLogger(__name__)

router = APIRouter()


def _parse_date(value: Optional[str], name: str) -> Optional[datetime]:
    if not value:
        return None
    parsed = parse_iso(value)
    if parsed is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {name} format"
        )
    return parsed


@router.post(
    "/sintegre",
    response_model=WebhookResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Receive webhook from Sintegre",
    description="Store the webhook and start downloading its file in the background.",
)
async def create_webhook(
    webhook_data: WebhookCreate,
    service: WebhookService = Depends(get_webhook_service)
):
    """
    Receive a Sintegre webhook.

    The record is returned as soon as it is stored; the file download,
    upload and Airflow trigger happen afterwards. Poll the record, the
    timeline or the metrics to follow the outcome.

    Example:
    ```json
    {
      "nome": "IPDO (Informativo Preliminar Diário da Operação)",
      "processo": "Operação em Tempo Real",
      "dataProduto": "20/02/2025",
      "macroProcesso": "Operação do Sistema",
      "periodicidade": "2025-02-20T00:00:00",
      "periodicidadeFinal": "2025-02-20T23:59:59",
      "url": "https://apps08.ons.org.br/ONS.Sintegre.Proxy/webhook?token=<TOKEN>"
    }
    ```
    """
    logger.debug(f"Receiving webhook for '{webhook_data.nome}'")
    try:
        return await service.create(webhook_data)
    except WebhookServiceException as e:
        raise handle_service_exception(e)


@router.get(
    "",
    response_model=List[WebhookResponse],
    summary="List webhooks",
    description="List webhooks, newest first, filtered by creation date and status.",
)
async def list_webhooks(
    start_date: Optional[str] = Query(None, alias="startDate", description="ISO start of the creation window"),
    end_date: Optional[str] = Query(None, alias="endDate", description="ISO end of the creation window"),
    download_status: Optional[DownloadStatus] = Query(None, alias="status", description="Filter by download status"),
    service: WebhookService = Depends(get_webhook_service)
):
    """List webhooks with optional filters."""
    return await service.find_all(
        start_date=_parse_date(start_date, "startDate"),
        end_date=_parse_date(end_date, "endDate"),
        status=download_status.value if download_status else None,
    )


@router.get(
    "/metrics",
    response_model=WebhookMetricsResponse,
    summary="Get webhook metrics",
)
async def get_metrics(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    service: WebhookService = Depends(get_webhook_service)
):
    """
    Get webhook counts.

    Returns totals and per-day counts of success, failed, pending and
    processed webhooks in the creation window.
    """
    return await service.get_metrics(
        start_date=_parse_date(start_date, "startDate"),
        end_date=_parse_date(end_date, "endDate"),
    )


@router.get(
    "/timeline",
    response_model=WebhookTimelineResponse,
    summary="Get webhook events timeline grouped by name",
)
async def get_timeline(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    nome: Optional[str] = Query(None, description="Filter by webhook name"),
    service: WebhookService = Depends(get_webhook_service)
):
    """Get the webhook timeline, one group per `nome`, newest events first."""
    return await service.get_timeline(
        start_date=_parse_date(start_date, "startDate"),
        end_date=_parse_date(end_date, "endDate"),
        nome=nome,
    )


@router.get(
    "/{webhook_id}",
    response_model=WebhookResponse,
    summary="Get webhook details by ID",
)
async def get_webhook(
    webhook_id: str,
    service: WebhookService = Depends(get_webhook_service)
):
    """Get a specific webhook by ID."""
    try:
        return await service.find_one(webhook_id)
    except WebhookServiceException as e:
        raise handle_service_exception(e)


@router.get(
    "/{webhook_id}/download",
    response_model=DownloadUrlResponse,
    summary="Get download URL for webhook file",
)
async def get_download_url(
    webhook_id: str,
    service: WebhookService = Depends(get_webhook_service)
):
    """Get a freshly signed URL for the stored file."""
    try:
        url = await service.get_download_url(webhook_id)
        return DownloadUrlResponse(url=url)
    except WebhookServiceException as e:
        raise handle_service_exception(e)


@router.post(
    "/{webhook_id}/reprocess",
    response_model=WebhookResponse,
    summary="Reprocess webhook by sending it to Airflow again",
)
async def reprocess_webhook(
    webhook_id: str,
    service: WebhookService = Depends(get_webhook_service)
):
    """Trigger Airflow again for a webhook whose file is already stored."""
    try:
        return await service.reprocess(webhook_id)
    except WebhookServiceException as e:
        raise handle_service_exception(e)


@router.post(
    "/{webhook_id}/retry-download",
    response_model=WebhookResponse,
    summary="Manually retry downloading the webhook file",
)
async def retry_download(
    webhook_id: str,
    service: WebhookService = Depends(get_webhook_service)
):
    """
    Retry the file download.

    Resets the retry counters, sets the webhook back to PENDING and starts a
    new processing cycle in the background.
    """
    try:
        return await service.retry_download(webhook_id)
    except WebhookServiceException as e:
        raise handle_service_exception(e)
