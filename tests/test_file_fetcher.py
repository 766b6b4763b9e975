"""Tests for the remote file fetcher."""
import base64

import pytest
import httpx

from app.services.file_fetcher import RemoteFileFetcher
from app.utils.exceptions import FetchError


def make_fetcher(tmp_path, handler) -> RemoteFileFetcher:
    return RemoteFileFetcher(
        str(tmp_path / "scratch"),
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_fetch_uses_content_disposition_name(tmp_path):
    """Test the file is named after the Content-Disposition header."""
    def handler(request):
        return httpx.Response(
            200,
            content=b"%PDF-1.4",
            headers={"Content-Disposition": 'attachment; filename="IPDO-20-02-2025.pdf"'},
        )

    fetcher = make_fetcher(tmp_path, handler)
    fetcher.ensure_scratch_dir()

    fetched = await fetcher.fetch("https://sintegre.test/webhook?token=abc")

    assert fetched.file_name == "IPDO-20-02-2025.pdf"
    assert fetched.local_path.parent == tmp_path / "scratch"
    assert fetched.local_path.name.endswith("_IPDO-20-02-2025.pdf")
    assert fetched.local_path.read_bytes() == b"%PDF-1.4"


@pytest.mark.asyncio
async def test_fetch_fallback_name(tmp_path):
    """Test a timestamped name is used without Content-Disposition."""
    fetcher = make_fetcher(tmp_path, lambda request: httpx.Response(200, content=b"data"))
    fetcher.ensure_scratch_dir()

    fetched = await fetcher.fetch("https://sintegre.test/file")

    assert fetched.file_name.startswith("file-")
    assert fetched.file_name[len("file-"):].isdigit()


@pytest.mark.asyncio
async def test_concurrent_fetches_use_distinct_paths(tmp_path):
    """Test two downloads of the same name do not collide."""
    def handler(request):
        return httpx.Response(
            200,
            content=b"x",
            headers={"Content-Disposition": "attachment; filename=same.zip"},
        )

    fetcher = make_fetcher(tmp_path, handler)
    fetcher.ensure_scratch_dir()

    first = await fetcher.fetch("https://sintegre.test/a")
    second = await fetcher.fetch("https://sintegre.test/b")

    assert first.local_path != second.local_path


@pytest.mark.asyncio
async def test_fetch_http_error(tmp_path):
    """Test an error status becomes a FetchError."""
    fetcher = make_fetcher(tmp_path, lambda request: httpx.Response(500))
    fetcher.ensure_scratch_dir()

    with pytest.raises(FetchError) as exc_info:
        await fetcher.fetch("https://sintegre.test/file")

    assert exc_info.value.cause == "HTTP 500"
    assert list((tmp_path / "scratch").iterdir()) == []


@pytest.mark.asyncio
async def test_fetch_timeout(tmp_path):
    """Test a timeout becomes a FetchError."""
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    fetcher = make_fetcher(tmp_path, handler)

    with pytest.raises(FetchError) as exc_info:
        await fetcher.fetch("https://sintegre.test/file")

    assert exc_info.value.cause == "Timeout"
    assert isinstance(exc_info.value.__cause__, httpx.TimeoutException)


@pytest.mark.asyncio
async def test_fetch_connection_error(tmp_path):
    """Test a transport failure becomes a FetchError."""
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    fetcher = make_fetcher(tmp_path, handler)

    with pytest.raises(FetchError):
        await fetcher.fetch("https://sintegre.test/file")


@pytest.mark.asyncio
async def test_remove_deletes_file(tmp_path):
    path = tmp_path / "scratch.pdf"
    path.write_bytes(b"x")

    await RemoteFileFetcher.remove(path)

    assert not path.exists()


@pytest.mark.asyncio
async def test_remove_missing_file_is_quiet(tmp_path):
    await RemoteFileFetcher.remove(tmp_path / "never-existed.pdf")


@pytest.mark.asyncio
async def test_unwritable_file_name(tmp_path):
    """Test a decoded name the filesystem cannot accept becomes a FetchError."""
    encoded = base64.b64encode("a\x00b.pdf".encode("utf-8")).decode("ascii")

    def handler(request):
        return httpx.Response(
            200,
            content=b"x",
            headers={"Content-Disposition": f'attachment; filename="=?utf-8?B?{encoded}?="'},
        )

    fetcher = make_fetcher(tmp_path, handler)
    fetcher.ensure_scratch_dir()

    with pytest.raises(FetchError) as exc_info:
        await fetcher.fetch("https://sintegre.test/file")

    assert isinstance(exc_info.value.__cause__, ValueError)
