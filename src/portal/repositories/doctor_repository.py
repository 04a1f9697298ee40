"""Doctor Repository - professional profiles stored at ``doctors/{uid}``."""
from __future__ import annotations

from typing import Any

import structlog

from ..db.document_store import DocumentStore
from ..models.enums import DoctorStatus
from ..schemas.specialist_import import SpecialistImportRecord

log = structlog.get_logger(__name__)

DOCTORS_PATH = "doctors"


def build_doctor_profile(
    record: SpecialistImportRecord,
    uid: str,
    clinic_id: str,
    now: str,
) -> dict[str, Any]:
    """Build the ``doctors/{uid}`` document for an imported specialist."""
    return {
        "accreditations": [],
        "address": record.address,
        "boardCertifications": [],
        "civilStatus": record.civil_status,
        "clinicAffiliations": [clinic_id],
        "contactNumber": record.contact_number,
        "createdAt": now,
        "dateOfBirth": record.date_of_birth.isoformat(),
        "education": [],
        "email": record.email,
        "fellowships": [],
        "firstName": record.first_name,
        "gender": record.gender,
        "isGeneralist": False,
        "isSpecialist": True,
        "lastLogin": now,
        "lastName": record.last_name,
        "lastUpdated": now,
        "medicalLicenseNumber": record.medical_license_number,
        "middleName": record.middle_name,
        "prcExpiryDate": record.prc_expiry_date.isoformat(),
        "prcId": record.prc_id,
        "professionalFee": record.professional_fee,
        "profileImageUrl": "",
        "specialty": record.specialty,
        "status": DoctorStatus.PENDING.value,
        "suffix": record.suffix,
        "userId": uid,
        "verificationDate": None,
        "verificationNotes": "",
        "verifiedByAdminId": None,
        "yearsOfExperience": 0,
    }


class DoctorRepository:
    """Repository for professional profile documents."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    @staticmethod
    def path(uid: str) -> str:
        return f"{DOCTORS_PATH}/{uid}"

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    async def get(self, uid: str) -> dict[str, Any] | None:
        """Get one doctor document, or None when absent or not an object."""
        doctor = await self.store.read(self.path(uid))
        return doctor if isinstance(doctor, dict) else None

    async def get_all(self) -> dict[str, Any]:
        """Return the raw ``doctors`` map (values may be malformed)."""
        doctors = await self.store.read(DOCTORS_PATH)
        return doctors if isinstance(doctors, dict) else {}

    async def find_by_email(self, email: str) -> tuple[str, dict[str, Any]] | None:
        """Case-insensitive email lookup over every doctor document."""
        wanted = email.strip().casefold()
        for uid, doctor in (await self.get_all()).items():
            if not isinstance(doctor, dict):
                continue
            stored = doctor.get("email")
            if isinstance(stored, str) and stored.strip().casefold() == wanted:
                return uid, doctor
        return None

    # =========================================================================
    # WRITE OPERATIONS
    # =========================================================================

    async def save(self, uid: str, doctor: dict[str, Any]) -> None:
        """Replace the whole doctor document (last writer wins)."""
        await self.store.write(self.path(uid), doctor)
        log.debug("doctor_saved", uid=uid)
