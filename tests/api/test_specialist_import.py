"""Tests for the specialist bulk import endpoints."""

from __future__ import annotations

import csv
import io

import pytest
from httpx import AsyncClient

from src.portal.core.security import require_authentication
from src.portal.main import app
from src.portal.services.import_schema import SAMPLE_ROW, TEMPLATE_HEADERS
from tests.conftest import OPERATOR_PASSWORD

IMPORT_URL = "/api/v1/specialists/import"


def _csv_upload(*emails: str) -> dict:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(TEMPLATE_HEADERS)
    writer.writerow([SAMPLE_ROW[header] for header in TEMPLATE_HEADERS])
    for email in emails:
        row = dict(SAMPLE_ROW, **{"Email*": email})
        writer.writerow([row[header] for header in TEMPLATE_HEADERS])
    return {"file": ("specialists.csv", buffer.getvalue().encode("utf-8"), "text/csv")}


@pytest.mark.asyncio
async def test_download_template(client: AsyncClient, auth_headers) -> None:
    response = await client.get(f"{IMPORT_URL}/template", headers=auth_headers)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert 'filename="specialist_import_template.csv"' in response.headers["content-disposition"]
    rows = list(csv.reader(io.StringIO(response.text)))
    assert rows[0] == list(TEMPLATE_HEADERS)
    assert len(rows) == 2


@pytest.mark.asyncio
async def test_validate_reports_row_errors(client: AsyncClient, auth_headers, store) -> None:
    before = store.snapshot()
    response = await client.post(
        f"{IMPORT_URL}/validate",
        headers=auth_headers,
        files=_csv_upload("one@example.com", "not-an-email", "one@example.com"),
    )

    assert response.status_code == 200
    report = response.json()
    assert report["valid"] is False
    assert report["total_rows"] == 3
    assert [error["row"] for error in report["errors"]] == [4, 5]
    assert report["errors"][0]["error"] == "Row 4: Invalid email format"
    assert report["errors"][1]["error"] == "Row 5: Email one@example.com is already used in row 3"
    assert store.snapshot() == before


@pytest.mark.asyncio
async def test_run_import(client: AsyncClient, auth_headers, store, identity) -> None:
    response = await client.post(
        IMPORT_URL,
        headers=auth_headers,
        files=_csv_upload("one@example.com", "two@example.com", "bad-email"),
        data={"operator_password": OPERATOR_PASSWORD},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Imported 2 of 3 specialists"
    result = body["data"]
    assert result["successful"] == 2
    assert result["failed"] == 1
    assert result["errors"][0]["row"] == 5
    assert result["errors"][0]["error_type"] == "validation"
    assert result["errors"][0]["retryable"] is False
    assert {c["email"] for c in result["credentials"]} == {"one@example.com", "two@example.com"}
    assert len(store.snapshot()["doctors"]) == 2
    assert identity.active_email == "admin@example.com"


@pytest.mark.asyncio
async def test_run_import_requires_operator_password(client: AsyncClient, auth_headers, identity) -> None:
    response = await client.post(IMPORT_URL, headers=auth_headers, files=_csv_upload("one@example.com"))

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHORIZED"
    assert identity.create_calls == []


@pytest.mark.asyncio
async def test_unsupported_file_type(client: AsyncClient, auth_headers) -> None:
    response = await client.post(
        f"{IMPORT_URL}/validate",
        headers=auth_headers,
        files={"file": ("specialists.pdf", b"%PDF-1.4", "application/pdf")},
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "SPREADSHEET_FORMAT_ERROR"


@pytest.mark.asyncio
async def test_non_admin_forbidden(client: AsyncClient, auth_headers, store) -> None:
    await store.write("users/admin-uid/role", "specialist")

    response = await client.get(f"{IMPORT_URL}/template", headers=auth_headers)

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "ADMIN_REQUIRED"


@pytest.mark.asyncio
async def test_missing_token_unauthorized(client: AsyncClient) -> None:
    app.dependency_overrides.pop(require_authentication)

    response = await client.get(f"{IMPORT_URL}/template")

    assert response.status_code == 401
    assert "X-Request-ID" in response.headers
