"""Tests for bounded image downloads."""

from collections.abc import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from pytest_httpx import HTTPXMock

from catalogaudit.domain.exceptions import ExternalServiceError
from catalogaudit.infrastructure.integrations.http_pool import HttpClientPool
from catalogaudit.infrastructure.integrations.image_download import fetch_image_url

IMAGE_URL = "https://assets.example.org/artist/thumb.jpg"


@pytest_asyncio.fixture(autouse=True)
async def fresh_pool() -> AsyncGenerator[None, None]:
    """Every test gets its own client and lock bound to its event loop."""
    HttpClientPool._lock = None
    yield
    await HttpClientPool.close()
    HttpClientPool._lock = None


class TestFetchImageUrl:
    """Test fetch_image_url."""

    @pytest.mark.asyncio
    async def test_returns_body(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=IMAGE_URL, content=b"\xff\xd8\xffimage-bytes")

        data = await fetch_image_url(IMAGE_URL)

        assert data == b"\xff\xd8\xffimage-bytes"
        assert HttpClientPool.is_initialized()

    @pytest.mark.asyncio
    async def test_sends_user_agent(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=IMAGE_URL, content=b"x")

        await fetch_image_url(IMAGE_URL)

        request = httpx_mock.get_request()
        assert request is not None
        assert request.headers["User-Agent"].startswith("catalogaudit/")

    @pytest.mark.asyncio
    async def test_non_200_raises(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=IMAGE_URL, status_code=404)

        with pytest.raises(ExternalServiceError, match="returned HTTP 404"):
            await fetch_image_url(IMAGE_URL)

    @pytest.mark.asyncio
    async def test_declared_size_over_limit_raises(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=IMAGE_URL, content=b"x" * 2048)

        with pytest.raises(ExternalServiceError, match="too large"):
            await fetch_image_url(IMAGE_URL, max_bytes=1024)

    @pytest.mark.asyncio
    async def test_transport_error_raises(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_exception(httpx.ConnectError("connection refused"), url=IMAGE_URL)

        with pytest.raises(ExternalServiceError, match="connection refused"):
            await fetch_image_url(IMAGE_URL)


class TestHttpClientPool:
    """Test the shared client lifecycle."""

    @pytest.mark.asyncio
    async def test_same_client_until_closed(self) -> None:
        first = await HttpClientPool.get_client()
        assert await HttpClientPool.get_client() is first

        await HttpClientPool.close()

        assert not HttpClientPool.is_initialized()
        assert await HttpClientPool.get_client() is not first
