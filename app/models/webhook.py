"""Webhook record database model."""
import uuid
from sqlalchemy import Column, String, Integer, Text, JSON, Index, CheckConstraint
from app.database import Base
from app.utils.timestamps import utc_now_iso


class WebhookRecord(Base):
    """One inbound Sintegre notification and its file-processing lifecycle."""

    __tablename__ = "webhook_sintegre"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    nome = Column(String(255), nullable=False)
    processo = Column(String(255), nullable=False)
    data_produto = Column(String(255), nullable=False)
    macro_processo = Column(String(255), nullable=False)
    periodicidade = Column(String(255), nullable=False)
    periodicidade_final = Column(String(255), nullable=False)
    url = Column(Text, nullable=False)
    download_status = Column(String(20), nullable=False, default="PENDING")
    s3_key = Column(String(500), nullable=True)
    error_message = Column(Text, nullable=True)
    retry_count = Column(Integer, nullable=False, default=0)
    retry_history = Column(JSON, nullable=False, default=lambda: [])  # ISO timestamps
    next_retry_at = Column(String(50), nullable=True)
    generation = Column(Integer, nullable=False, default=0)  # Bumped by manual retry
    created_at = Column(String(50), nullable=False, default=utc_now_iso)
    updated_at = Column(
        String(50),
        nullable=False,
        default=utc_now_iso,
        onupdate=utc_now_iso
    )

    __table_args__ = (
        CheckConstraint("retry_count >= 0", name="check_retry_count_positive"),
        CheckConstraint(
            "download_status IN ('PENDING', 'SUCCESS', 'FAILED', 'PROCESSED')",
            name="check_valid_download_status"
        ),
        Index("idx_webhook_sintegre_nome", "nome"),
        Index("idx_webhook_sintegre_status", "download_status"),
        Index("idx_webhook_sintegre_created_at", "created_at"),
    )

    def __repr__(self):
        return (
            f"<WebhookRecord(id='{self.id}', nome='{self.nome}', "
            f"download_status='{self.download_status}', retry_count={self.retry_count})>"
        )

    @property
    def has_stored_file(self) -> bool:
        """Whether the file was uploaded and can be served or reprocessed."""
        return bool(self.s3_key) and self.download_status in ("SUCCESS", "PROCESSED")
