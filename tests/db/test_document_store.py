"""Tests for the in-memory document store backend."""

import pytest

from src.portal.core.config import Settings
from src.portal.db.document_store import (
    InMemoryDocumentStore,
    create_document_store,
    split_path,
    utc_now_iso,
)


def test_split_path():
    assert split_path("/doctors/abc/") == ["doctors", "abc"]
    assert split_path("") == []


@pytest.mark.asyncio
async def test_read_write_roundtrip_copies_values():
    store = InMemoryDocumentStore()
    doctor = {"firstName": "Ana", "tags": ["a"]}
    await store.write("doctors/d1", doctor)

    doctor["tags"].append("mutated")
    stored = await store.read("doctors/d1")
    assert stored == {"firstName": "Ana", "tags": ["a"]}

    stored["firstName"] = "Changed"
    assert (await store.read("doctors/d1"))["firstName"] == "Ana"


@pytest.mark.asyncio
async def test_read_missing_path_returns_none():
    store = InMemoryDocumentStore({"doctors": {"d1": {"email": "a@example.com"}}})
    assert await store.read("doctors/d2") is None
    assert await store.read("doctors/d1/email/extra") is None


@pytest.mark.asyncio
async def test_write_none_deletes_and_prunes_empty_parents():
    store = InMemoryDocumentStore({"notifications": {"u1": {"n1": {"title": "x"}}}, "doctors": {}})
    await store.write("notifications/u1/n1", None)
    assert "notifications" not in store.snapshot()


@pytest.mark.asyncio
async def test_push_generates_ordered_unique_keys():
    store = InMemoryDocumentStore()
    first = await store.push("activityLogs", {"action": "one"})
    second = await store.push("activityLogs", {"action": "two"})

    assert first != second
    assert sorted([second, first]) == [first, second]
    logs = await store.read("activityLogs")
    assert logs[first]["action"] == "one"
    assert logs[second]["action"] == "two"


@pytest.mark.asyncio
async def test_subscribe_emits_initial_value_and_changes():
    store = InMemoryDocumentStore({"doctors": {"d1": {"professionalFee": 100}}})
    seen = []

    unsubscribe = await store.subscribe("doctors", seen.append)
    await store.write("doctors/d1/professionalFee", 200)
    await store.write("clinics/c1", {"name": "Unrelated"})
    unsubscribe()
    await store.write("doctors/d2", {"professionalFee": 300})

    assert seen == [
        {"d1": {"professionalFee": 100}},
        {"d1": {"professionalFee": 200}},
    ]


@pytest.mark.asyncio
async def test_subscribe_sees_parent_replacement():
    store = InMemoryDocumentStore()
    seen = []
    await store.subscribe("doctors/d1", seen.append)
    await store.write("doctors", {"d1": {"email": "a@example.com"}})
    assert seen == [None, {"email": "a@example.com"}]


@pytest.mark.asyncio
async def test_health_check():
    assert (await InMemoryDocumentStore().health_check())["status"] == "healthy"


def test_create_document_store_memory_backend():
    store = create_document_store(Settings(DOCUMENT_STORE_BACKEND="memory"))
    assert isinstance(store, InMemoryDocumentStore)


def test_utc_now_iso_format():
    stamp = utc_now_iso()
    assert stamp.endswith("Z")
    assert "T" in stamp
