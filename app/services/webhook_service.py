"""Webhook processing engine: intake, file acquisition, retries and queries."""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from app.models import WebhookRecord
from app.schemas.webhook import WebhookCreate, DownloadStatus
from app.services.blob_store import BlobStoreClient
from app.services.file_fetcher import RemoteFileFetcher
from app.services.filenames import build_storage_key, filename_from_key
from app.services.orchestrator import OrchestratorNotifier
from app.services.scheduler import TaskScheduler
from app.services.webhook_repository import WebhookRepository, RetryUpdate
from app.utils.exceptions import (
    CycleSupersededError,
    FileNotAvailableError,
    PreconditionFailedError,
    WebhookNotFoundError,
)
from app.utils.timestamps import to_iso, to_js_iso, utc_now

logger = logging.getLogger(__name__)

STORED_STATUSES = (DownloadStatus.SUCCESS.value, DownloadStatus.PROCESSED.value)


class WebhookService:
    """
    Owns the lifecycle of webhook records.

    A processing cycle runs fetch -> upload -> notify for one record:

    - PENDING -> SUCCESS once the file is uploaded (storage key attached)
    - SUCCESS -> PROCESSED once Airflow accepts the DAG run
    - any step failing -> FAILED, with a retry scheduled after
      `retry_delay_seconds` until `max_retry_attempts` is reached

    Cycles are launched through the scheduler and never block the caller.
    Each cycle carries the record generation it was launched for; a manual
    retry starts a new generation and older cycles stop at their next write.
    """

    def __init__(
        self,
        repository: WebhookRepository,
        fetcher: RemoteFileFetcher,
        blob_store: BlobStoreClient,
        notifier: OrchestratorNotifier,
        scheduler: TaskScheduler,
        max_retry_attempts: int = 3,
        retry_delay_seconds: float = 300,
        signed_url_expires_seconds: int = 3600,
    ):
        self.repository = repository
        self.fetcher = fetcher
        self.blob_store = blob_store
        self.notifier = notifier
        self.scheduler = scheduler
        self.max_retry_attempts = max_retry_attempts
        self.retry_delay_seconds = retry_delay_seconds
        self.signed_url_expires_seconds = signed_url_expires_seconds

    async def create(self, webhook_data: WebhookCreate) -> WebhookRecord:
        """Persist a new PENDING record and start processing it in the background."""
        record = await self.repository.create({
            "nome": webhook_data.nome,
            "processo": webhook_data.processo,
            "data_produto": webhook_data.data_produto,
            "macro_processo": webhook_data.macro_processo,
            "periodicidade": webhook_data.periodicidade.isoformat(),
            "periodicidade_final": webhook_data.periodicidade_final.isoformat(),
            "url": str(webhook_data.url),
            "download_status": DownloadStatus.PENDING.value,
        })

        self._launch(record.nome, record.id, record.url, record.generation)
        return record

    async def process(
        self,
        nome: str,
        webhook_id: str,
        url: str,
        generation: Optional[int] = None,
    ) -> None:
        """
        Run one processing cycle.

        Pipeline failures become retry bookkeeping and are not raised.
        """
        try:
            await self._run_cycle(nome, webhook_id, url, generation)
        except CycleSupersededError as e:
            logger.info(f"Stopping superseded processing cycle: {e}")

    async def _run_cycle(
        self,
        nome: str,
        webhook_id: str,
        url: str,
        generation: Optional[int],
    ) -> None:
        record = await self.repository.find_by_id(webhook_id)
        if not record:
            logger.warning(f"Webhook {webhook_id} disappeared before processing")
            return
        if generation is None:
            generation = record.generation
        elif record.generation != generation:
            raise CycleSupersededError(webhook_id, generation, record.generation)

        logger.info(f"Processing file for webhook {webhook_id} (attempt {record.retry_count + 1})")

        try:
            fetched = await self.fetcher.fetch(url)
        except Exception as e:
            await self._fail(e, webhook_id, generation)
            return

        try:
            key = build_storage_key(nome, webhook_id, fetched.file_name)
            stored_key = await self.blob_store.upload(fetched.local_path, key)

            record = await self.repository.update_fields(
                webhook_id,
                {
                    "download_status": DownloadStatus.SUCCESS.value,
                    "s3_key": stored_key,
                    "error_message": None,
                    "next_retry_at": None,
                },
                generation=generation,
            )
            await self._notify(record, generation)
        except CycleSupersededError:
            raise
        except Exception as e:
            await self._fail(e, webhook_id, generation)
        finally:
            await self.fetcher.remove(fetched.local_path)

    async def _fail(self, error: Exception, webhook_id: str, generation: int) -> None:
        record = await self.repository.find_by_id(webhook_id)
        if not record:
            logger.error(f"Webhook {webhook_id} disappeared after failure: {error}")
            return
        await self.handle_failure(error, record, generation)

    async def handle_failure(
        self,
        error: Exception,
        record: WebhookRecord,
        generation: Optional[int] = None,
    ) -> WebhookRecord:
        """Mark the record FAILED and schedule a retry while attempts remain."""
        if generation is None:
            generation = record.generation

        now = utc_now()
        history = list(record.retry_history or [])

        if record.retry_count < self.max_retry_attempts:
            retry_count = record.retry_count + 1
            next_retry_at = now + timedelta(seconds=self.retry_delay_seconds)
            updated = await self.repository.update_for_retry(
                record.id,
                RetryUpdate(
                    retry_count=retry_count,
                    retry_history=history + [to_iso(now)],
                    next_retry_at=to_iso(next_retry_at),
                    error_message=str(error),
                ),
                generation=generation,
            )
            self._launch(
                record.nome,
                record.id,
                record.url,
                generation,
                delay_seconds=self.retry_delay_seconds,
            )
            logger.error(
                f"File processing failed for webhook {record.id} "
                f"(Attempt {retry_count}/{self.max_retry_attempts}): {error}"
            )
            return updated

        updated = await self.repository.update_for_retry(
            record.id,
            RetryUpdate(
                retry_count=record.retry_count,
                retry_history=history,
                next_retry_at=None,
                error_message=(
                    f"Max retries ({self.max_retry_attempts}) reached. Last error: {error}"
                ),
            ),
            generation=generation,
        )
        logger.error(
            f"File processing for webhook {record.id} exhausted "
            f"{self.max_retry_attempts} retries, manual retry required: {error}"
        )
        return updated

    def _launch(
        self,
        nome: str,
        webhook_id: str,
        url: str,
        generation: int,
        delay_seconds: float = 0,
    ) -> None:
        async def run_cycle():
            await self.process(nome, webhook_id, url, generation)

        if delay_seconds:
            self.scheduler.schedule_after(delay_seconds, run_cycle)
        else:
            self.scheduler.submit(run_cycle)

    def build_run_payload(self, record: WebhookRecord) -> dict:
        """DAG run conf describing the stored file."""
        return {
            "dataProduto": record.data_produto,
            "macroProcesso": record.macro_processo or "",
            "nome": record.nome,
            "periodicidade": to_js_iso(record.periodicidade),
            "periodicidadeFinal": to_js_iso(record.periodicidade_final),
            "processo": record.processo or "",
            "url": record.url,
            "s3Key": record.s3_key,
            "webhookId": record.id,
            "filename": filename_from_key(record.s3_key, record.id),
        }

    async def _notify(self, record: WebhookRecord, generation: Optional[int] = None) -> WebhookRecord:
        await self.notifier.trigger(self.build_run_payload(record), record.nome)
        logger.info(f"Successfully triggered Airflow for webhook {record.id}")
        return await self.repository.update_status(
            record.id,
            DownloadStatus.PROCESSED.value,
            generation=generation,
        )

    async def retry_download(self, webhook_id: str) -> WebhookRecord:
        """Reset retry bookkeeping and start a fresh processing cycle."""
        record = await self.find_one(webhook_id)

        if record.download_status in STORED_STATUSES:
            raise PreconditionFailedError(
                "File is already downloaded successfully",
                webhook_id,
                record.download_status,
            )
        if not record.url:
            raise PreconditionFailedError("Webhook has no URL to download from", webhook_id)

        record = await self.repository.update_for_retry(
            webhook_id,
            RetryUpdate(
                retry_count=0,
                retry_history=[],
                next_retry_at=None,
                error_message=None,
                download_status=DownloadStatus.PENDING.value,
            ),
        )

        logger.info(f"Manual retry requested for webhook {webhook_id}")
        self._launch(record.nome, record.id, record.url, record.generation)
        return record

    async def reprocess(self, webhook_id: str) -> WebhookRecord:
        """Trigger Airflow again for an already stored file."""
        record = await self.find_one(webhook_id)

        if not record.s3_key:
            raise PreconditionFailedError(
                "Cannot reprocess webhook without a processed file",
                webhook_id,
                record.download_status,
            )
        if record.download_status not in STORED_STATUSES:
            raise PreconditionFailedError(
                "Cannot reprocess webhook that has not been successfully downloaded",
                webhook_id,
                record.download_status,
            )

        try:
            return await self._notify(record)
        except Exception as e:
            logger.error(f"Failed to reprocess webhook {webhook_id}: {e}")
            raise

    async def find_all(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        status: Optional[str] = None,
    ) -> List[WebhookRecord]:
        return await self.repository.find_many(start_date, end_date, status)

    async def find_one(self, webhook_id: str) -> WebhookRecord:
        record = await self.repository.find_by_id(webhook_id)
        if not record:
            raise WebhookNotFoundError(webhook_id)
        return record

    async def get_download_url(self, webhook_id: str) -> str:
        """Freshly signed URL for the stored file."""
        record = await self.find_one(webhook_id)

        if not record.has_stored_file:
            raise FileNotAvailableError(webhook_id, record.download_status)

        return self.blob_store.signed_url(record.s3_key, self.signed_url_expires_seconds)

    async def get_metrics(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> dict:
        return await self.repository.aggregate_metrics(start_date, end_date)

    async def get_timeline(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        nome: Optional[str] = None,
    ) -> dict:
        """Records grouped by `nome`, each group ordered newest first."""
        records = await self.repository.timeline(start_date, end_date, nome)

        groups: dict[str, List[WebhookRecord]] = {}
        for record in records:
            groups.setdefault(record.nome, []).append(record)

        return {
            "groups": [
                {"nome": group_nome, "events": events}
                for group_nome, events in groups.items()
            ]
        }
