"""Persistence operations for webhook records."""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional
from sqlalchemy import select, func, case, literal_column
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models import WebhookRecord
from app.utils.exceptions import WebhookNotFoundError, CycleSupersededError
from app.utils.timestamps import to_iso, utc_now_iso

logger = logging.getLogger(__name__)


@dataclass
class RetryUpdate:
    """Retry bookkeeping written in a single update."""

    retry_count: int
    retry_history: List[str] = field(default_factory=list)
    next_retry_at: Optional[str] = None
    error_message: Optional[str] = None
    download_status: str = "FAILED"


class WebhookRepository:
    """
    Record store for webhook records.

    Every operation runs in its own session because processing cycles run
    outside any request. Updates lock the row they change. Passing a
    `generation` makes an update conditional on the record still belonging
    to that processing cycle.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def create(self, values: dict) -> WebhookRecord:
        """Insert a new record."""
        async with self.session_maker() as db:
            record = WebhookRecord(**values)
            db.add(record)
            await db.commit()
            await db.refresh(record)

        logger.info(f"Created webhook {record.id} for '{record.nome}'")
        return record

    async def find_by_id(self, webhook_id: str) -> Optional[WebhookRecord]:
        """Get a record by id, or None when it does not exist."""
        async with self.session_maker() as db:
            result = await db.execute(
                select(WebhookRecord).where(WebhookRecord.id == webhook_id)
            )
            return result.scalar_one_or_none()

    async def find_many(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        status: Optional[str] = None,
    ) -> List[WebhookRecord]:
        """List records, newest first, filtered by creation window and status."""
        query = select(WebhookRecord).where(*self._window(start_date, end_date))
        if status:
            query = query.where(WebhookRecord.download_status == status)

        async with self.session_maker() as db:
            result = await db.execute(query.order_by(WebhookRecord.created_at.desc()))
            return list(result.scalars().all())

    async def update_status(
        self,
        webhook_id: str,
        status: str,
        error_message: Optional[str] = None,
        generation: Optional[int] = None,
    ) -> WebhookRecord:
        """Set the download status and error message."""
        return await self._apply(
            webhook_id,
            {"download_status": status, "error_message": error_message},
            generation,
        )

    async def update_fields(
        self,
        webhook_id: str,
        values: dict,
        generation: Optional[int] = None,
    ) -> WebhookRecord:
        """Set arbitrary columns."""
        return await self._apply(webhook_id, values, generation)

    async def update_for_retry(
        self,
        webhook_id: str,
        retry: RetryUpdate,
        generation: Optional[int] = None,
    ) -> WebhookRecord:
        """
        Write retry bookkeeping.

        A FAILED update also clears the storage key. A PENDING update is a
        manual reset and starts a new generation, so cycles launched before
        it stop at their next write.
        """
        values: dict[str, Any] = {
            "retry_count": retry.retry_count,
            "retry_history": list(retry.retry_history),
            "next_retry_at": retry.next_retry_at,
            "error_message": retry.error_message,
            "download_status": retry.download_status,
        }
        if retry.download_status == "FAILED":
            values["s3_key"] = None

        return await self._apply(
            webhook_id,
            values,
            generation,
            bump_generation=retry.download_status == "PENDING",
        )

    async def aggregate_metrics(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> dict:
        """Total and per-day status counts over an optional creation window."""
        window = self._window(start_date, end_date)
        counts = self._count_columns()

        async with self.session_maker() as db:
            totals = (await db.execute(select(*counts).where(*window))).one()

            day = func.substr(WebhookRecord.created_at, literal_column("1"), literal_column("10"))
            daily_rows = await db.execute(
                select(day.label("day"), *counts)
                .where(*window)
                .group_by(day)
                .order_by(day)
            )

            daily = [
                {"date": row.day, **self._counts_from_row(row)}
                for row in daily_rows
            ]

        return {
            "total": self._counts_from_row(totals),
            "daily": daily,
        }

    async def timeline(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        nome: Optional[str] = None,
    ) -> List[WebhookRecord]:
        """Records for the timeline view, newest first."""
        query = select(WebhookRecord).where(*self._window(start_date, end_date))
        if nome:
            query = query.where(WebhookRecord.nome == nome)

        async with self.session_maker() as db:
            result = await db.execute(query.order_by(WebhookRecord.created_at.desc()))
            return list(result.scalars().all())

    async def _apply(
        self,
        webhook_id: str,
        values: dict,
        generation: Optional[int],
        bump_generation: bool = False,
    ) -> WebhookRecord:
        async with self.session_maker() as db:
            result = await db.execute(
                select(WebhookRecord)
                .where(WebhookRecord.id == webhook_id)
                .with_for_update()
            )
            record = result.scalar_one_or_none()

            if not record:
                raise WebhookNotFoundError(webhook_id)

            if generation is not None and record.generation != generation:
                await db.rollback()
                raise CycleSupersededError(webhook_id, generation, record.generation)

            for column, value in values.items():
                setattr(record, column, value)
            if bump_generation:
                record.generation += 1
            record.updated_at = utc_now_iso()

            await db.commit()
            await db.refresh(record)
            return record

    @staticmethod
    def _window(start_date: Optional[datetime], end_date: Optional[datetime]) -> list:
        conditions = []
        if start_date:
            conditions.append(WebhookRecord.created_at >= to_iso(start_date))
        if end_date:
            conditions.append(WebhookRecord.created_at <= to_iso(end_date))
        return conditions

    @staticmethod
    def _count_columns() -> list:
        status = WebhookRecord.download_status
        return [
            func.count(WebhookRecord.id).label("total"),
            func.sum(case((status.in_(["SUCCESS", "PROCESSED"]), 1), else_=0)).label("success"),
            func.sum(case((status == "FAILED", 1), else_=0)).label("failed"),
            func.sum(case((status == "PENDING", 1), else_=0)).label("pending"),
            func.sum(case((status == "PROCESSED", 1), else_=0)).label("processed"),
        ]

    @staticmethod
    def _counts_from_row(row) -> dict:
        return {
            "total": row.total or 0,
            "success": row.success or 0,
            "failed": row.failed or 0,
            "pending": row.pending or 0,
            "processed": row.processed or 0,
        }
