"""API v1 endpoints package."""

from . import (
	fee_requests,
	health,
	specialist_import,
)

__all__ = [
	"fee_requests",
	"health",
	"specialist_import",
]
