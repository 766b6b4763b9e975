"""Pydantic schemas for webhook operations."""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, HttpUrl, field_validator
from pydantic.alias_generators import to_camel
from enum import Enum


class DownloadStatus(str, Enum):
    """Download status enumeration."""

    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    PROCESSED = "PROCESSED"


class CamelModel(BaseModel):
    """Base schema exposing camelCase field names on the wire."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class WebhookCreate(CamelModel):
    """Schema for an inbound Sintegre webhook."""

    nome: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Nome do produto/relatório",
        examples=["IPDO (Informativo Preliminar Diário da Operação)"],
    )
    processo: str = Field(
        ...,
        max_length=255,
        description="Processo relacionado",
        examples=["Operação em Tempo Real"],
    )
    data_produto: str = Field(
        ...,
        max_length=255,
        description="Data de referência do produto",
        examples=["20/02/2025"],
    )
    macro_processo: str = Field(
        ...,
        max_length=255,
        description="Macro processo",
        examples=["Operação do Sistema"],
    )
    periodicidade: datetime = Field(
        ...,
        description="Data/hora inicial da periodicidade",
        examples=["2025-02-20T00:00:00"],
    )
    periodicidade_final: datetime = Field(
        ...,
        description="Data/hora final da periodicidade",
        examples=["2025-02-20T23:59:59"],
    )
    url: HttpUrl = Field(
        ...,
        description="URL para download do arquivo",
    )
    download_status: Optional[DownloadStatus] = Field(
        DownloadStatus.PENDING,
        description="Status do download do arquivo (novos webhooks sempre iniciam PENDING)",
    )

    @field_validator("download_status")
    @classmethod
    def new_webhooks_start_pending(cls, value: Optional[DownloadStatus]) -> DownloadStatus:
        if value not in (None, DownloadStatus.PENDING):
            raise ValueError("new webhooks always start as PENDING")
        return DownloadStatus.PENDING


class WebhookResponse(CamelModel):
    """Schema for a webhook record."""

    id: str
    nome: str
    processo: str
    data_produto: str
    macro_processo: str
    periodicidade: str
    periodicidade_final: str
    url: str
    download_status: DownloadStatus
    s3_key: Optional[str] = None
    error_message: Optional[str] = None
    retry_count: int = 0
    retry_history: List[str] = []
    next_retry_at: Optional[str] = None
    created_at: str
    updated_at: str


class DownloadUrlResponse(BaseModel):
    """Schema for a signed download URL."""

    url: str


class StatusCounts(BaseModel):
    """Record counts by download status."""

    total: int = 0
    success: int = 0
    failed: int = 0
    pending: int = 0
    processed: int = 0


class DailyStatusCounts(StatusCounts):
    """Record counts for one creation day (YYYY-MM-DD)."""

    date: str


class WebhookMetricsResponse(BaseModel):
    """Schema for webhook metrics."""

    total: StatusCounts
    daily: List[DailyStatusCounts]


class WebhookTimelineGroup(BaseModel):
    """Webhooks sharing a `nome`, newest first."""

    nome: str
    events: List[WebhookResponse]


class WebhookTimelineResponse(BaseModel):
    """Schema for the webhook timeline."""

    groups: List[WebhookTimelineGroup]
