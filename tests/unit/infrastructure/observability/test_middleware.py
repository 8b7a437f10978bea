"""Unit tests for RequestLoggingMiddleware."""

from unittest.mock import patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from catalogaudit.infrastructure.observability.logging import get_correlation_id
from catalogaudit.infrastructure.observability.middleware import (
    CORRELATION_HEADER,
    RequestLoggingMiddleware,
)


class TestRequestLoggingMiddleware:
    """Test suite for RequestLoggingMiddleware."""

    @pytest.fixture
    def app(self) -> FastAPI:
        """Create a FastAPI app with middleware for testing."""
        app = FastAPI()
        app.add_middleware(RequestLoggingMiddleware)

        @app.get("/test")
        async def test_endpoint():
            return {"correlation_id": get_correlation_id()}

        @app.get("/error")
        async def error_endpoint():
            raise ValueError("Test error")

        return app

    @pytest.fixture
    def client(self, app: FastAPI) -> TestClient:
        """Create a test client."""
        return TestClient(app, raise_server_exceptions=False)

    def test_generates_correlation_id(self, client: TestClient):
        """A request without the header gets a fresh id, echoed in the response."""
        response = client.get("/test")

        assert response.status_code == 200
        header = response.headers[CORRELATION_HEADER]
        assert len(header) == 36
        assert response.json()["correlation_id"] == header

    def test_keeps_incoming_correlation_id(self, client: TestClient):
        """An incoming X-Correlation-ID is used for the whole request."""
        response = client.get("/test", headers={CORRELATION_HEADER: "abc-123"})

        assert response.headers[CORRELATION_HEADER] == "abc-123"
        assert response.json()["correlation_id"] == "abc-123"

    def test_successful_request_logs_completion(self, client: TestClient):
        """Test that successful requests log completion with status and duration."""
        with patch("catalogaudit.infrastructure.observability.middleware.logger") as mock_logger:
            client.get("/test")

        mock_logger.info.assert_called_once()
        extra = mock_logger.info.call_args.kwargs["extra"]
        assert extra["method"] == "GET"
        assert extra["path"] == "/test"
        assert extra["status_code"] == 200
        assert extra["duration_ms"] >= 0

    def test_failed_request_logs_exception(self, client: TestClient):
        """Unhandled errors are logged with the exception type."""
        with patch("catalogaudit.infrastructure.observability.middleware.logger") as mock_logger:
            response = client.get("/error")

        assert response.status_code == 500
        mock_logger.exception.assert_called_once()
        assert mock_logger.exception.call_args.kwargs["extra"]["error_type"] == "ValueError"
