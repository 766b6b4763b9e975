"""Remote file fetcher that downloads webhook files into scratch storage."""
import asyncio
import logging
import os
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import httpx

from app.services.filenames import filename_from_content_disposition
from app.utils.exceptions import FetchError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchedFile:
    """A downloaded file waiting in scratch storage."""

    local_path: Path
    file_name: str


class RemoteFileFetcher:
    """
    Downloads files referenced by webhooks.

    The scratch directory is shared by every processing cycle in the process.
    Each fetch writes to its own uniquely-prefixed path, so concurrent cycles
    never touch each other's files. Failures raise FetchError and are never
    retried here.
    """

    def __init__(
        self,
        scratch_dir: str,
        timeout: float = 60,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.scratch_dir = Path(scratch_dir)
        self.timeout = timeout
        self.transport = transport

    def ensure_scratch_dir(self) -> None:
        """Create the scratch directory. Called once at startup."""
        self.scratch_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Scratch directory ready at {self.scratch_dir}")

    async def fetch(self, url: str) -> FetchedFile:
        """Download `url` and write the body to a scratch file."""
        logger.debug(f"Starting file download from {url}")

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self.transport,
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.TimeoutException as e:
            raise FetchError(url, "Timeout") from e
        except httpx.HTTPStatusError as e:
            raise FetchError(url, f"HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise FetchError(url, str(e) or e.__class__.__name__) from e

        file_name = self.file_name_from_response(response)
        local_path = self.scratch_dir / f"{uuid.uuid4().hex}_{os.path.basename(file_name)}"

        try:
            await asyncio.to_thread(local_path.write_bytes, response.content)
        except (OSError, ValueError) as e:
            raise FetchError(url, f"Could not write {local_path}: {e}") from e

        logger.info(
            f"Downloaded {file_name} from {url} "
            f"({len(response.content)} bytes, {response.headers.get('content-type')})"
        )
        return FetchedFile(local_path=local_path, file_name=file_name)

    @staticmethod
    def file_name_from_response(response: httpx.Response) -> str:
        """Name from Content-Disposition, or a timestamped fallback."""
        file_name = filename_from_content_disposition(
            response.headers.get("content-disposition")
        )
        if file_name:
            return file_name
        return f"file-{int(time.time() * 1000)}"

    @staticmethod
    async def remove(local_path: Path) -> None:
        """Delete a scratch file. Failures are logged, never raised."""
        try:
            await asyncio.to_thread(os.remove, local_path)
        except OSError as e:
            logger.warning(f"Failed to remove temporary file {local_path}: {e}")
