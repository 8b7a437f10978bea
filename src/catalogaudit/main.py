"""FastAPI application factory."""

import uvicorn
from fastapi import FastAPI

from catalogaudit import __version__
from catalogaudit.api import api_router, register_exception_handlers
from catalogaudit.config import Settings, get_settings
from catalogaudit.domain.ports import IMetadataProvider
from catalogaudit.infrastructure.lifecycle import lifespan
from catalogaudit.infrastructure.observability.middleware import RequestLoggingMiddleware
from catalogaudit.infrastructure.providers import NoopMetadataProvider, RateLimitedProvider
from catalogaudit.infrastructure.rate_limiter import ProviderRateLimiters


def create_app(
    settings: Settings | None = None,
    provider: IMetadataProvider | None = None,
    provider_name: str = "musicbrainz",
) -> FastAPI:
    """Build the application.

    Args:
        settings: Settings to use (defaults to get_settings())
        provider: Metadata provider. Wrapped in the rate limiter registered under
            provider_name. Without one, bulk metadata and image fetches find nothing.
        provider_name: Key into settings.providers.rate_limits
    """
    settings = settings or get_settings()

    application = FastAPI(
        title="catalog-audit API",
        version=__version__,
        description="Audit an artist catalog against configurable rules and repair what fails.",
        lifespan=lifespan,
    )
    application.state.settings = settings
    if provider is not None:
        limiter = ProviderRateLimiters(settings.providers.rate_limits).get(provider_name)
        application.state.provider = RateLimitedProvider(provider, limiter)
    else:
        application.state.provider = NoopMetadataProvider()

    application.add_middleware(RequestLoggingMiddleware)
    register_exception_handlers(application)
    application.include_router(api_router, prefix="/api")

    return application


def run() -> None:
    """Serve the API with uvicorn (the catalogaudit console script)."""
    settings = get_settings()
    uvicorn.run(
        "catalogaudit.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
    )


if __name__ == "__main__":
    run()
