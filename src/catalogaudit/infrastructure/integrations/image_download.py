"""Bounded image downloads."""

import logging

import httpx

from catalogaudit.domain.exceptions import ExternalServiceError
from catalogaudit.infrastructure.integrations.http_pool import HttpClientPool

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 25 * 1024 * 1024
DEFAULT_TIMEOUT_SECONDS = 30.0


async def fetch_image_url(
    url: str,
    max_bytes: int = DEFAULT_MAX_BYTES,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> bytes:
    """Download an image, streaming so an oversized body is cut off early.

    Raises:
        ExternalServiceError: Transport error, non-200 status, or body over max_bytes
    """
    client = await HttpClientPool.get_client()
    try:
        async with client.stream("GET", url, timeout=timeout) as response:
            if response.status_code != 200:
                raise ExternalServiceError(
                    f"image download {url} returned HTTP {response.status_code}"
                )
            declared = response.headers.get("Content-Length")
            if declared and declared.isdigit() and int(declared) > max_bytes:
                raise ExternalServiceError(
                    f"image download {url} too large ({declared} bytes, limit {max_bytes})"
                )

            chunks: list[bytes] = []
            received = 0
            async for chunk in response.aiter_bytes():
                received += len(chunk)
                if received > max_bytes:
                    raise ExternalServiceError(
                        f"image download {url} exceeded {max_bytes} bytes"
                    )
                chunks.append(chunk)
    except httpx.HTTPError as e:
        raise ExternalServiceError(f"image download {url} failed: {e}") from e

    logger.debug("Downloaded %d bytes from %s", received, url)
    return b"".join(chunks)
