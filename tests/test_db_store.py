"""Tests for RecordStore add/get_all/delete."""

import asyncio

import pytest

from optipanier.db import RecordStore
from optipanier.errors import DuplicateKeyError, StorageError


async def _open(tmp_path):
    store = RecordStore(db_path=tmp_path / "test.db")
    await store.initialize()
    return store


@pytest.mark.asyncio
async def test_add_then_get_all(tmp_path):
    store = await _open(tmp_path)
    record = {"id": "1", "store": "Lidl", "date": "2025-01-10", "items": []}
    await store.add("receipts", record)

    records = await store.get_all("receipts")
    assert records == [record]
    store.close()


@pytest.mark.asyncio
async def test_duplicate_id_rejected_and_original_kept(tmp_path):
    store = await _open(tmp_path)
    await store.add("receipts", {"id": "1", "store": "Lidl"})

    with pytest.raises(DuplicateKeyError) as exc:
        await store.add("receipts", {"id": "1", "store": "Auchan"})
    assert exc.value.record_id == "1"

    records = await store.get_all("receipts")
    assert records == [{"id": "1", "store": "Lidl"}]
    store.close()


@pytest.mark.asyncio
async def test_duplicate_key_is_a_storage_error(tmp_path):
    store = await _open(tmp_path)
    await store.add("loyaltyCards", {"id": "c", "store": "Carrefour", "number": "123"})
    with pytest.raises(StorageError):
        await store.add("loyaltyCards", {"id": "c", "store": "Carrefour", "number": "123"})
    store.close()


@pytest.mark.asyncio
async def test_collections_are_independent(tmp_path):
    store = await _open(tmp_path)
    await store.add("receipts", {"id": "same"})
    await store.add("loyaltyCards", {"id": "same", "store": "Lidl", "number": "A-1"})

    assert len(await store.get_all("receipts")) == 1
    assert await store.get_all("loyaltyCards") == [
        {"id": "same", "store": "Lidl", "number": "A-1"}
    ]
    store.close()


@pytest.mark.asyncio
async def test_delete_removes_exactly_one(tmp_path):
    store = await _open(tmp_path)
    for rid in ("a", "b", "c"):
        await store.add("receipts", {"id": rid})

    await store.delete("receipts", "b")
    assert [r["id"] for r in await store.get_all("receipts")] == ["a", "c"]
    store.close()


@pytest.mark.asyncio
async def test_delete_twice_is_noop(tmp_path):
    store = await _open(tmp_path)
    await store.add("receipts", {"id": "a"})
    await store.delete("receipts", "a")
    await store.delete("receipts", "a")
    assert await store.get_all("receipts") == []
    store.close()


@pytest.mark.asyncio
async def test_get_all_empty(tmp_path):
    store = await _open(tmp_path)
    assert await store.get_all("loyaltyCards") == []
    store.close()


@pytest.mark.asyncio
async def test_records_survive_reopen(tmp_path):
    store = await _open(tmp_path)
    await store.add("receipts", {"id": "keep", "items": [{"name": "Lait", "price": 1.2}]})
    store.close()

    reopened = await _open(tmp_path)
    assert await reopened.get_all("receipts") == [
        {"id": "keep", "items": [{"name": "Lait", "price": 1.2}]}
    ]
    reopened.close()


@pytest.mark.asyncio
async def test_concurrent_adds_all_land(tmp_path):
    store = await _open(tmp_path)
    await asyncio.gather(
        *(store.add("receipts", {"id": f"r{i:02d}"}) for i in range(20))
    )
    records = await store.get_all("receipts")
    assert [r["id"] for r in records] == [f"r{i:02d}" for i in range(20)]
    store.close()


@pytest.mark.asyncio
async def test_unknown_collection(tmp_path):
    store = await _open(tmp_path)
    with pytest.raises(StorageError, match="unknown collection"):
        await store.get_all("coupons")
    store.close()


@pytest.mark.asyncio
async def test_use_before_initialize(tmp_path):
    store = RecordStore(db_path=tmp_path / "test.db")
    with pytest.raises(StorageError, match="not initialized"):
        await store.get_all("receipts")


@pytest.mark.asyncio
async def test_initialize_failure_raises_storage_error(tmp_path):
    """A directory where the database file should be cannot be opened."""
    target = tmp_path / "db"
    target.mkdir()
    store = RecordStore(db_path=target)
    with pytest.raises(StorageError):
        await store.initialize()
    assert store.is_open is False


@pytest.mark.asyncio
async def test_close_is_idempotent(tmp_path):
    store = await _open(tmp_path)
    store.close()
    store.close()
    assert store.is_open is False
