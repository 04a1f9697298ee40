"""Clinic Repository - read-only access to ``clinics/{clinicId}``."""
from __future__ import annotations

from typing import Any

from ..db.document_store import DocumentStore

CLINICS_PATH = "clinics"


class ClinicRepository:
    """Repository for clinic lookups used by the specialist import."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def get_all(self) -> list[dict[str, Any]]:
        """Return every clinic with a name, each carrying its ``id``."""
        clinics = await self.store.read(CLINICS_PATH)
        if not isinstance(clinics, dict):
            return []
        return [
            {**clinic, "id": clinic_id}
            for clinic_id, clinic in clinics.items()
            if isinstance(clinic, dict) and isinstance(clinic.get("name"), str)
        ]

    async def find_by_name(
        self,
        name: str,
        clinics: list[dict[str, Any]] | None = None,
    ) -> tuple[dict[str, Any] | None, list[str]]:
        """Case-insensitive exact name match.

        Returns the matching clinic (or None) and the list of all clinic names.
        Pass ``clinics`` to match against an already loaded list.
        """
        if clinics is None:
            clinics = await self.get_all()
        wanted = name.strip().casefold()
        match = next(
            (clinic for clinic in clinics if clinic["name"].strip().casefold() == wanted),
            None,
        )
        return match, [clinic["name"] for clinic in clinics]
