"""
Health, readiness and liveness probes.

``/health`` reports each dependency separately; ``/ready`` fails with 502
when the document store cannot be reached.
"""
import time
from typing import Annotated

from fastapi import APIRouter, Depends

from ....core.config import Settings, get_settings
from ....core.exceptions import ExternalServiceError
from ....core.responses import HealthCheck, HealthResponse
from ....db.document_store import DocumentStore, get_document_store

router = APIRouter()

SettingsDep = Annotated[Settings, Depends(get_settings)]
StoreDep = Annotated[DocumentStore, Depends(get_document_store)]

_SEVERITY = {"healthy": 0, "degraded": 1, "unhealthy": 2}


async def _probe_store(store: DocumentStore, settings: Settings) -> HealthCheck:
    started = time.perf_counter()
    result = await store.health_check()
    if result.get("status") != "healthy":
        return HealthCheck(status="unhealthy", message=result.get("error") or "Unavailable")
    return HealthCheck(
        status="healthy",
        latency_ms=round((time.perf_counter() - started) * 1000, 2),
        message=f"Connected ({settings.DOCUMENT_STORE_BACKEND})",
    )


def _probe_identity(settings: Settings) -> HealthCheck:
    # The REST backend cannot create accounts without a web API key.
    if settings.IDENTITY_BACKEND == "rest" and not settings.FIREBASE_WEB_API_KEY:
        return HealthCheck(status="degraded", message="FIREBASE_WEB_API_KEY not configured")
    return HealthCheck(status="healthy", message=f"{settings.IDENTITY_BACKEND} backend configured")


def _probe_email(settings: Settings) -> HealthCheck:
    if not settings.EMAIL_ENABLED:
        return HealthCheck(status="degraded", message="Email sending disabled")
    return HealthCheck(status="healthy", message=f"SMTP via {settings.SMTP_HOST}")


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service and dependency status",
)
async def health_check(settings: SettingsDep, store: StoreDep) -> HealthResponse:
    checks = {
        "document_store": await _probe_store(store, settings),
        "identity_provider": _probe_identity(settings),
        "email": _probe_email(settings),
    }
    overall = max((check.status for check in checks.values()), key=_SEVERITY.__getitem__)
    return HealthResponse(
        status=overall,
        service=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.APP_ENV,
        checks=checks,
    )


@router.get("/ready", summary="Readiness probe")
async def readiness_probe(store: StoreDep) -> dict[str, str]:
    result = await store.health_check()
    if result.get("status") != "healthy":
        raise ExternalServiceError("document_store", result.get("error"))
    return {"status": "ready"}


@router.get("/live", summary="Liveness probe")
async def liveness_probe() -> dict[str, str]:
    return {"status": "alive"}
