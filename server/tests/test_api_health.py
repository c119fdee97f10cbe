"""API health tests without the lifecycle database fixtures."""

import pytest
from httpx import ASGITransport, AsyncClient

from charter.main import create_app


@pytest.mark.asyncio
async def test_api_health_endpoints():
    """Health and info respond without touching lifecycle tables."""
    app = create_app()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

        response = await client.get("/ready")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ready"
        assert data["checks"]["workers"] == "disabled"

        response = await client.get("/info")
        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "charter-booking-api"
        assert data["features"]["background_workers"] is False


@pytest.mark.asyncio
async def test_metrics_endpoint():
    """Prometheus exposition format is served."""
    app = create_app()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/metrics")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")


@pytest.mark.asyncio
async def test_openapi_schema_lists_rpc_endpoints():
    app = create_app()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/openapi.json")
        assert response.status_code == 200
        paths = response.json()["paths"]
        assert "post" in paths["/v1/quote/accept"]
        assert "post" in paths["/v1/payment/record"]


@pytest.mark.asyncio
async def test_unauthenticated_call_is_rejected():
    app = create_app()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post("/v1/request/list", json={})
        assert response.status_code == 401
        assert response.json()["code"] == "AUTHENTICATION_REQUIRED"
