"""Tests for the fee-change request endpoints."""

from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import AsyncClient

FEE_URL = "/api/v1/fee-requests"


@pytest_asyncio.fixture
async def pending_doctors(store):
    await store.write("doctors", {
        "doc-1": {
            "isSpecialist": True,
            "firstName": "Maria",
            "lastName": "Santos",
            "email": "maria@example.com",
            "professionalFee": 2000,
            "professionalFeeStatus": "pending",
            "feeChangeRequest": {
                "status": "pending",
                "previousFee": 2000,
                "requestedFee": 2500,
                "requestDate": "2026-03-01T10:00:00.000Z",
            },
        },
        "doc-2": {
            "isSpecialist": True,
            "firstName": "Jose",
            "lastName": "Reyes",
            "professionalFee": 1800,
            "professionalFeeStatus": "pending",
            "feeChangeRequest": {
                "status": "pending",
                "previousFee": 1800,
                "requestedFee": 1600,
                "requestDate": "2026-02-01T09:00:00.000Z",
            },
        },
    })
    return store


@pytest.mark.asyncio
async def test_list_fee_requests(client: AsyncClient, auth_headers, pending_doctors) -> None:
    response = await client.get(FEE_URL, headers=auth_headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert [r["doctorId"] for r in data["requests"]] == ["doc-1", "doc-2"]
    assert data["requests"][0]["requestedFee"] == 2500
    assert data["stats"] == {"total": 2, "pending": 2, "approved": 0, "rejected": 0}


@pytest.mark.asyncio
async def test_list_fee_requests_filtered(client: AsyncClient, auth_headers, pending_doctors) -> None:
    response = await client.get(FEE_URL, headers=auth_headers, params={"doctor_name": "jose"})

    data = response.json()["data"]
    assert [r["doctorId"] for r in data["requests"]] == ["doc-2"]
    assert data["stats"]["total"] == 2


@pytest.mark.asyncio
async def test_list_fee_requests_rejects_inverted_fee_range(client: AsyncClient, auth_headers) -> None:
    response = await client.get(FEE_URL, headers=auth_headers, params={"fee_min": 10, "fee_max": 5})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_doctor_fee_requests(client: AsyncClient, auth_headers, pending_doctors) -> None:
    response = await client.get(f"{FEE_URL}/doctors/doc-2", headers=auth_headers)

    assert response.status_code == 200
    assert [r["doctorId"] for r in response.json()["data"]] == ["doc-2"]


@pytest.mark.asyncio
async def test_approve_fee_request(client: AsyncClient, auth_headers, pending_doctors) -> None:
    response = await client.patch(
        f"{FEE_URL}/doc-1",
        headers=auth_headers,
        json={"status": "approved", "review_notes": "Justified"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Fee change request approved"
    assert body["data"]["professional_fee"] == 2500
    assert body["data"]["reviewed_by"] == "admin-uid"

    doctor = await pending_doctors.read("doctors/doc-1")
    assert doctor["professionalFee"] == 2500
    assert doctor["feeChangeRequest"]["status"] == "approved"


@pytest.mark.asyncio
async def test_reject_fee_request(client: AsyncClient, auth_headers, pending_doctors) -> None:
    response = await client.patch(f"{FEE_URL}/doc-1", headers=auth_headers, json={"status": "rejected"})

    assert response.status_code == 200
    assert response.json()["data"]["professional_fee"] == 2000


@pytest.mark.asyncio
async def test_review_rejects_pending_status(client: AsyncClient, auth_headers, pending_doctors) -> None:
    response = await client.patch(f"{FEE_URL}/doc-1", headers=auth_headers, json={"status": "pending"})

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_review_unknown_doctor(client: AsyncClient, auth_headers) -> None:
    response = await client.patch(f"{FEE_URL}/ghost", headers=auth_headers, json={"status": "approved"})

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "DOCTOR_NOT_FOUND"


@pytest.mark.asyncio
async def test_bulk_approve(client: AsyncClient, auth_headers, pending_doctors) -> None:
    response = await client.post(
        f"{FEE_URL}/bulk-approve",
        headers=auth_headers,
        json={"doctor_ids": ["doc-1", "doc-2", "ghost"]},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Approved 2 of 3 requests"
    assert body["data"]["succeeded"] == ["doc-1", "doc-2"]
    assert body["data"]["failed"] == [{"doctor_id": "ghost", "error": "Doctor not found"}]


@pytest.mark.asyncio
async def test_bulk_reject(client: AsyncClient, auth_headers, pending_doctors) -> None:
    response = await client.post(
        f"{FEE_URL}/bulk-reject",
        headers=auth_headers,
        json={"doctor_ids": ["doc-2"], "review_notes": "Keep current fee"},
    )

    assert response.status_code == 200
    doctor = await pending_doctors.read("doctors/doc-2")
    assert doctor["professionalFee"] == 1800
    assert doctor["professionalFeeStatus"] == "rejected"


@pytest.mark.asyncio
async def test_bulk_requires_ids(client: AsyncClient, auth_headers) -> None:
    response = await client.post(f"{FEE_URL}/bulk-approve", headers=auth_headers, json={"doctor_ids": []})
    assert response.status_code == 422
