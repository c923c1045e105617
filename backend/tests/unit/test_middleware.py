"""
Unit Tests for HTTP middleware and the rate limit handler
"""
import pytest
from unittest.mock import MagicMock
from fastapi import FastAPI, Request
from httpx import AsyncClient, ASGITransport

from storefront.core.middleware import RequestSizeLimitMiddleware, should_skip_logging
from storefront.core.rate_limiter import get_user_identifier, rate_limit_exceeded_handler


@pytest.fixture
def small_app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(RequestSizeLimitMiddleware, max_size=1024)

    @app.post("/echo")
    async def echo(request: Request):
        return {"size": len(await request.body())}

    return app


def _request(path: str = "/api/v1/auth/login") -> Request:
    return Request({
        "type": "http",
        "method": "POST",
        "path": path,
        "query_string": b"",
        "headers": [],
        "client": ("10.0.0.7", 51000),
    })


class TestRequestSizeLimit:

    @pytest.mark.asyncio
    async def test_small_body_passes(self, small_app):
        async with AsyncClient(transport=ASGITransport(app=small_app), base_url="http://test") as ac:
            response = await ac.post("/echo", content=b"x" * 100)

        assert response.status_code == 200
        assert response.json() == {"size": 100}

    @pytest.mark.asyncio
    async def test_large_body_rejected(self, small_app):
        async with AsyncClient(transport=ASGITransport(app=small_app), base_url="http://test") as ac:
            response = await ac.post("/echo", content=b"x" * 2048)

        assert response.status_code == 413
        assert response.json()["detail"].startswith("Request body too large")


class TestSkipLogging:

    @pytest.mark.parametrize("path, skipped", [
        ("/health", True),
        ("/uploads/galaxy.jpg", True),
        ("/api/v1/products", False),
    ])
    def test_paths(self, path, skipped):
        assert should_skip_logging(path) is skipped


class TestRateLimitHandler:

    def test_identifier_prefers_user(self):
        request = _request()
        assert get_user_identifier(request) == "ip:10.0.0.7"

        request.state.user_id = "u-1"
        assert get_user_identifier(request) == "user:u-1"

    @pytest.mark.asyncio
    async def test_retry_after_follows_window(self):
        exc = MagicMock()
        exc.detail = "5 per 1 hour"
        exc.limit.limit.get_expiry.return_value = 3600

        response = await rate_limit_exceeded_handler(_request(), exc)

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "3600"
