"""
Tests for application wiring: health, root, middleware headers
"""
import pytest
from httpx import AsyncClient

from storefront.core.config import settings
from storefront.core.rate_limiter import limiter


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["scheduler_running"] is False

    @pytest.mark.asyncio
    async def test_root(self, client: AsyncClient):
        response = await client.get("/")

        assert response.status_code == 200
        assert response.json()["docs"] == "/docs"


class TestMiddleware:

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, client: AsyncClient):
        response = await client.get("/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    @pytest.mark.asyncio
    async def test_request_id_is_generated(self, client: AsyncClient):
        response = await client.get("/")

        assert response.headers["X-Request-ID"]
        assert "X-Response-Time" in response.headers

    @pytest.mark.asyncio
    async def test_security_headers(self, client: AsyncClient):
        response = await client.get("/")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"

    @pytest.mark.asyncio
    async def test_unknown_route(self, client: AsyncClient):
        response = await client.get("/api/v1/does-not-exist")

        assert response.status_code == 404


@pytest.fixture
def rate_limits(monkeypatch):
    """Turn the limiter on with empty counters for one test"""
    monkeypatch.setattr(limiter, "enabled", True)
    limiter.reset()
    yield limiter
    limiter.reset()


class TestRateLimit:

    @pytest.mark.asyncio
    async def test_forgot_password_is_limited(self, client: AsyncClient, rate_limits):
        responses = [
            await client.post("/api/v1/auth/forgot-password", json={"email": "nobody@example.com"})
            for _ in range(4)
        ]

        assert [r.status_code for r in responses[:3]] == [200, 200, 200]
        limited = responses[3]
        assert limited.status_code == 429
        assert limited.json()["code"] == "RATE_LIMIT_EXCEEDED"
        assert limited.headers["Retry-After"] == "60"

    @pytest.mark.asyncio
    async def test_disabled_in_tests(self, client: AsyncClient):
        for _ in range(4):
            response = await client.post("/api/v1/auth/forgot-password", json={"email": "nobody@example.com"})

        assert response.status_code == 200


class TestRequestSize:

    @pytest.mark.asyncio
    async def test_declared_length_over_limit(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/login",
            content=b"{}",
            headers={
                "Content-Type": "application/json",
                "Content-Length": str(settings.MAX_REQUEST_SIZE + 1),
            },
        )

        assert response.status_code == 413
        assert response.json()["detail"] == "Request body too large. Maximum size is 15MB"
