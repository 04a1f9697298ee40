"""API v1: versioned router.

Router structure
----------------
PUBLIC (no auth):
  /health              → health checks (liveness, readiness)

ADMIN (valid Firebase ID token + ``admin`` role on users/{uid}):
  /specialists/import  → template download, dry-run validation, bulk import
  /fee-requests/*      → list, per-doctor lookup, approve / reject, bulk review
"""
from fastapi import APIRouter, Depends

from ...core.security import require_authentication
from .endpoints import fee_requests, health, specialist_import

router = APIRouter(prefix="/api/v1")

# =========================================================================
# PUBLIC ENDPOINTS: no auth required
# =========================================================================

router.include_router(health.router, tags=["Health"])

# =========================================================================
# ADMIN ENDPOINTS: require auth; role enforcement is per-endpoint
# =========================================================================

router.include_router(
    specialist_import.router,
    dependencies=[Depends(require_authentication)],
)

router.include_router(
    fee_requests.router,
    dependencies=[Depends(require_authentication)],
)
