"""Shared HTTP client pool for connection reuse.

Hey future me - image downloads for a whole library go through ONE httpx.AsyncClient so
keep-alive connections to the image CDNs get reused. Call HttpClientPool.close() at
app shutdown (the API lifespan does).

Usage:
    client = await HttpClientPool.get_client()
    async with client.stream("GET", url) as response:
        ...
"""

import asyncio
import logging
from typing import ClassVar

import httpx

logger = logging.getLogger(__name__)


class HttpClientPool:
    """Lazily created, process-wide httpx.AsyncClient."""

    _client: ClassVar[httpx.AsyncClient | None] = None
    _lock: ClassVar[asyncio.Lock | None] = None

    DEFAULT_TIMEOUT: ClassVar[float] = 30.0
    DEFAULT_MAX_KEEPALIVE: ClassVar[int] = 20
    DEFAULT_MAX_CONNECTIONS: ClassVar[int] = 50
    USER_AGENT: ClassVar[str] = "catalogaudit/0.1 (artist catalog auditor)"

    @classmethod
    def _ensure_lock(cls) -> asyncio.Lock:
        # asyncio.Lock() must be created inside the running loop
        if cls._lock is None:
            cls._lock = asyncio.Lock()
        return cls._lock

    @classmethod
    async def get_client(
        cls,
        timeout: float | None = None,
        max_connections: int | None = None,
    ) -> httpx.AsyncClient:
        """Get the shared client. Configuration only applies to the first call."""
        async with cls._ensure_lock():
            if cls._client is None:
                effective_timeout = timeout or cls.DEFAULT_TIMEOUT
                effective_max_conn = max_connections or cls.DEFAULT_MAX_CONNECTIONS
                cls._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(effective_timeout),
                    limits=httpx.Limits(
                        max_keepalive_connections=cls.DEFAULT_MAX_KEEPALIVE,
                        max_connections=effective_max_conn,
                    ),
                    http2=True,
                    follow_redirects=True,
                    headers={"User-Agent": cls.USER_AGENT},
                )
                logger.info(
                    "HTTP client pool initialized (timeout=%.1fs, max_conn=%d)",
                    effective_timeout,
                    effective_max_conn,
                )
            return cls._client

    @classmethod
    async def close(cls) -> None:
        """Close the shared client. A later get_client() creates a new one."""
        async with cls._ensure_lock():
            if cls._client is not None:
                await cls._client.aclose()
                cls._client = None
                logger.info("HTTP client pool closed")

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._client is not None
