"""Metadata provider adapters."""

from catalogaudit.infrastructure.providers.noop_provider import NoopMetadataProvider
from catalogaudit.infrastructure.providers.rate_limited_provider import RateLimitedProvider

__all__ = ["NoopMetadataProvider", "RateLimitedProvider"]
