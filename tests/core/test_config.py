"""Tests for application settings validation."""

import pytest
from pydantic import ValidationError

from src.portal.core.config import Settings


def test_import_defaults():
    settings = Settings(DOCUMENT_STORE_BACKEND="memory")
    assert settings.IMPORT_BATCH_SIZE == 5
    assert settings.IMPORT_RECORD_DELAY_SECONDS == 0.5
    assert settings.IMPORT_BATCH_DELAY_SECONDS == 2.0
    assert settings.IMPORT_MAX_RETRIES == 3
    assert settings.IMPORT_RETRY_BASE_DELAY_SECONDS == 1.0


def test_batch_size_bounds():
    with pytest.raises(ValidationError):
        Settings(IMPORT_BATCH_SIZE=0)
    with pytest.raises(ValidationError):
        Settings(IMPORT_BATCH_SIZE=51)


def test_cors_lists():
    settings = Settings(CORS_ORIGINS="https://a.example, https://b.example", CORS_ALLOW_METHODS="GET, POST")
    assert settings.cors_origins_list == ["https://a.example", "https://b.example"]
    assert settings.cors_methods_list == ["GET", "POST"]


def test_wildcard_origins_reject_credentials():
    with pytest.raises(ValidationError, match="CORS_ALLOW_CREDENTIALS"):
        Settings(CORS_ORIGINS="*", CORS_ALLOW_CREDENTIALS=True)


def test_production_requires_firebase_store():
    with pytest.raises(ValidationError, match="DOCUMENT_STORE_BACKEND"):
        Settings(
            APP_ENV="production",
            DOCUMENT_STORE_BACKEND="memory",
            FIREBASE_PROJECT_ID="proj",
            FIREBASE_DATABASE_URL="https://proj.firebaseio.com",
        )


def test_production_rest_backend_requires_api_key():
    with pytest.raises(ValidationError, match="FIREBASE_WEB_API_KEY"):
        Settings(
            APP_ENV="production",
            DOCUMENT_STORE_BACKEND="firebase",
            FIREBASE_PROJECT_ID="proj",
            FIREBASE_DATABASE_URL="https://proj.firebaseio.com",
            IDENTITY_BACKEND="rest",
            FIREBASE_WEB_API_KEY="",
        )


def test_production_admin_backend_without_api_key():
    settings = Settings(
        APP_ENV="production",
        DOCUMENT_STORE_BACKEND="firebase",
        FIREBASE_PROJECT_ID="proj",
        FIREBASE_DATABASE_URL="https://proj.firebaseio.com",
        IDENTITY_BACKEND="admin",
        FIREBASE_WEB_API_KEY="",
    )
    assert settings.is_production
