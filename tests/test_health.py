"""Unit tests for health check endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

import pytest

if TYPE_CHECKING:
    from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient) -> None:
    """Test the health check endpoint returns valid status."""
    response = await client.get("/api/v1/health")

    assert response.status_code == 200
    data = response.json()
    # Degraded without an API key and with email disabled
    assert data["status"] == "degraded"
    assert data["service"] == "specialist-admin-service"
    assert data["version"] == "1.0.0"
    assert data["checks"]["document_store"]["status"] == "healthy"
    assert data["checks"]["identity_provider"]["status"] == "degraded"
    assert data["checks"]["email"]["status"] == "degraded"


@pytest.mark.asyncio
async def test_health_check_unhealthy_store(client: AsyncClient, store) -> None:
    store.health_check = AsyncMock(return_value={"status": "unhealthy", "error": "connection refused"})

    response = await client.get("/api/v1/health")

    assert response.json()["status"] == "unhealthy"
    assert response.json()["checks"]["document_store"]["message"] == "connection refused"


@pytest.mark.asyncio
async def test_readiness_check(client: AsyncClient) -> None:
    """Test the readiness check endpoint."""
    response = await client.get("/api/v1/ready")

    assert response.status_code == 200
    assert response.json()["status"] == "ready"


@pytest.mark.asyncio
async def test_readiness_check_store_down(client: AsyncClient, store) -> None:
    store.health_check = AsyncMock(return_value={"status": "unhealthy", "error": "timeout"})

    response = await client.get("/api/v1/ready")

    assert response.status_code == 502
    assert response.json()["error"]["code"] == "EXTERNAL_SERVICE_ERROR"


@pytest.mark.asyncio
async def test_liveness_check(client: AsyncClient) -> None:
    """Test the liveness check endpoint."""
    response = await client.get("/api/v1/live")

    assert response.status_code == 200
    assert response.json()["status"] == "alive"


@pytest.mark.asyncio
async def test_security_headers(client: AsyncClient) -> None:
    response = await client.get("/api/v1/live", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
