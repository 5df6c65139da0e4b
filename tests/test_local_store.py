"""
Tests for the local cache store

Runs the collection store contract against file-backed key-value
storage in a temporary directory.
"""

import json
from datetime import date, datetime, timezone

import pytest

from familyhub.models import (
    CalendarEvent,
    CollectionKind,
    MealPlanEntry,
    MealRequest,
    ShoppingItem,
    ShoppingItemPatch,
    Task,
    TaskPriority,
    TaskType,
    get_definition,
)
from familyhub.services.storage import (
    FileKeyValueStorage,
    LocalCollectionStore,
    StorageNotice,
    StorageUnavailableError,
)


def names(items):
    return [item.name for item in items]


class TestFileKeyValueStorage:
    """Tests for the device-local key-value storage."""

    def test_missing_key_returns_none(self, kv_storage):
        """Test reading a key that was never written."""
        assert kv_storage.get_item("fh_shopping") is None

    def test_set_then_get(self, kv_storage):
        """Test that a written value is read back."""
        kv_storage.set_item("fh_shopping", "[]")
        assert kv_storage.get_item("fh_shopping") == "[]"
        assert (kv_storage.directory / "fh_shopping.json").exists()

    def test_remove_item(self, kv_storage):
        """Test that removing twice is harmless."""
        kv_storage.set_item("fh_news", "[]")
        kv_storage.remove_item("fh_news")
        kv_storage.remove_item("fh_news")
        assert kv_storage.get_item("fh_news") is None

    def test_rejects_path_like_keys(self, kv_storage):
        """Test that keys cannot escape the data directory."""
        with pytest.raises(ValueError):
            kv_storage.set_item("../outside", "[]")

    def test_quota_exceeded(self, tmp_path):
        """Test that writes beyond the quota are refused."""
        storage = FileKeyValueStorage(tmp_path, quota_bytes=1024)
        storage.set_item("small", "x" * 500)
        with pytest.raises(StorageUnavailableError):
            storage.set_item("large", "x" * 600)
        assert storage.get_item("large") is None

    def test_overwrite_does_not_count_old_value(self, tmp_path):
        """Test that replacing a value only counts the new size."""
        storage = FileKeyValueStorage(tmp_path, quota_bytes=1024)
        storage.set_item("blob", "x" * 900)
        storage.set_item("blob", "y" * 900)
        assert storage.get_item("blob") == "y" * 900


class TestLocalReads:
    """Tests for reading collections."""

    @pytest.mark.asyncio
    async def test_fresh_device_returns_default_snapshot(self, shopping_store):
        """Test that an empty device yields the default shopping list."""
        items = await shopping_store.get_all()
        assert names(items) == ["Milch", "Brot"]

    @pytest.mark.asyncio
    async def test_default_snapshot_is_not_written(self, shopping_store, kv_storage):
        """Test that reading alone does not create the blob."""
        await shopping_store.get_all()
        assert kv_storage.get_item("fh_shopping") is None

    @pytest.mark.asyncio
    async def test_corrupt_blob_returns_default_snapshot(self, shopping_store, kv_storage):
        """Test that unparseable data falls back to the default."""
        kv_storage.set_item("fh_shopping", "{not json")
        assert names(await shopping_store.get_all()) == ["Milch", "Brot"]

    @pytest.mark.asyncio
    async def test_non_list_blob_returns_default_snapshot(self, shopping_store, kv_storage):
        """Test that a blob of the wrong shape falls back to the default."""
        kv_storage.set_item("fh_shopping", '{"id": "1"}')
        assert names(await shopping_store.get_all()) == ["Milch", "Brot"]

    @pytest.mark.asyncio
    async def test_invalid_record_returns_default_snapshot(self, shopping_store, kv_storage):
        """Test that a record failing validation falls back to the default."""
        kv_storage.set_item("fh_shopping", '[{"id": "1"}]')
        assert names(await shopping_store.get_all()) == ["Milch", "Brot"]

    @pytest.mark.asyncio
    async def test_undecodable_blob_returns_default_snapshot(self, shopping_store, kv_storage):
        """Test that bytes that are not UTF-8 fall back to the default."""
        kv_storage.directory.mkdir(parents=True, exist_ok=True)
        (kv_storage.directory / "fh_shopping.json").write_bytes(b'[{"id": "1", "name": "\xff\xfe"}]')
        assert names(await shopping_store.get_all()) == ["Milch", "Brot"]
        assert names(await shopping_store.add(ShoppingItem(id="3", name="Eier"))) == ["Milch", "Brot", "Eier"]

    @pytest.mark.asyncio
    async def test_empty_list_is_not_replaced_by_default(self, shopping_store, kv_storage):
        """Test that an emptied collection stays empty."""
        kv_storage.set_item("fh_shopping", "[]")
        assert await shopping_store.get_all() == []

    @pytest.mark.asyncio
    async def test_kind_without_default_starts_empty(self, kv_storage):
        """Test that recipes start empty."""
        store = LocalCollectionStore(get_definition(CollectionKind.RECIPES), kv_storage)
        assert await store.get_all() == []


class TestLocalMutations:
    """Tests for the mutating operations."""

    @pytest.mark.asyncio
    async def test_shopping_scenario(self, shopping_store):
        """Test add, toggle twice, then delete of one item."""
        await shopping_store.set_all([])

        snapshot = await shopping_store.add(ShoppingItem(id="x", name="Milch", checked=False))
        assert [(i.id, i.checked) for i in snapshot] == [("x", False)]

        snapshot = await shopping_store.update("x", ShoppingItemPatch(checked=True))
        assert snapshot[0].checked is True
        snapshot = await shopping_store.update("x", {"checked": False})
        assert snapshot[0].checked is False

        assert await shopping_store.delete("x") == []
        assert await shopping_store.get_all() == []

    @pytest.mark.asyncio
    async def test_add_appends_to_default_snapshot(self, shopping_store):
        """Test that the first add builds on the default snapshot."""
        snapshot = await shopping_store.add(ShoppingItem(id="3", name="Eier"))
        assert names(snapshot) == ["Milch", "Brot", "Eier"]

    @pytest.mark.asyncio
    async def test_blob_is_camel_case_json_array(self, kv_storage):
        """Test the persisted blob format."""
        store = LocalCollectionStore(get_definition(CollectionKind.MEAL_PLAN), kv_storage)
        await store.add(MealPlanEntry(id="1", day="Montag", meal_name="Pasta"))
        blob = json.loads(kv_storage.get_item("fh_mealPlan"))
        assert blob == [
            {"id": "1", "day": "Montag", "mealName": "Pasta", "ingredients": [], "recipeHint": ""}
        ]

    @pytest.mark.asyncio
    async def test_add_does_not_check_duplicate_ids(self, shopping_store):
        """Test that adding an existing id stores a second entity."""
        await shopping_store.set_all([ShoppingItem(id="1", name="Milch")])
        snapshot = await shopping_store.add(ShoppingItem(id="1", name="Hafermilch"))
        assert names(snapshot) == ["Milch", "Hafermilch"]

    @pytest.mark.asyncio
    async def test_update_applies_to_every_matching_id(self, shopping_store):
        """Test that an update hits all entities sharing the id."""
        await shopping_store.set_all([
            ShoppingItem(id="1", name="Milch"),
            ShoppingItem(id="1", name="Hafermilch"),
            ShoppingItem(id="2", name="Brot"),
        ])
        snapshot = await shopping_store.update("1", {"checked": True})
        assert [i.checked for i in snapshot] == [True, True, False]

    @pytest.mark.asyncio
    async def test_update_missing_id_is_noop(self, shopping_store):
        """Test updating an id that does not exist."""
        before = await shopping_store.get_all()
        assert await shopping_store.update("missing", {"checked": True}) == before

    @pytest.mark.asyncio
    async def test_update_rejects_invalid_patch(self, shopping_store):
        """Test that an invalid patch raises before anything is written."""
        with pytest.raises(ValueError):
            await shopping_store.update("1", {"done": True})

    @pytest.mark.asyncio
    async def test_delete_missing_id_is_noop(self, shopping_store):
        """Test deleting an id that does not exist."""
        snapshot = await shopping_store.delete("missing")
        assert names(snapshot) == ["Milch", "Brot"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind, items", [
        (CollectionKind.SHOPPING, [
            ShoppingItem(id="7", name="Käse", checked=True, category="Kühlung"),
            ShoppingItem(id="8", name="Äpfel", note="Bio"),
        ]),
        (CollectionKind.EVENTS, [
            CalendarEvent(
                id="e1", title="Zahnarzt", date=date(2024, 6, 3), time="09:00",
                end_time="10:00", location="Praxis", assigned_to=["3", "4"],
            ),
            CalendarEvent(id="e2", title="Training", date=date(2024, 6, 4), time="17:30"),
        ]),
        (CollectionKind.HOUSEHOLD_TASKS, [
            Task(id="t1", title="Müll", type=TaskType.HOUSEHOLD, assigned_to="2",
                 priority=TaskPriority.HIGH, done=True),
        ]),
        (CollectionKind.MEAL_REQUESTS, [
            MealRequest(
                id="m1", dish_name="Pfannkuchen", requested_by="4",
                created_at=datetime(2024, 6, 1, 12, 30, 15, 250000, tzinfo=timezone.utc),
            ),
        ]),
        (CollectionKind.MEAL_PLAN, [
            MealPlanEntry(id="p1", day="Montag", meal_name="Suppe", lunch="Brot",
                          ingredients=["Karotten", "Lauch"]),
        ]),
    ])
    async def test_set_all_then_get_all_returns_same_entities(self, kv_storage, kind, items):
        """Test that set_all followed by get_all gives back equal entities."""
        store = LocalCollectionStore(get_definition(kind), kv_storage)
        assert await store.set_all(items) == items
        assert await store.get_all() == items

    @pytest.mark.asyncio
    async def test_insertion_order_is_kept(self, shopping_store):
        """Test that the local store keeps insertion order."""
        await shopping_store.set_all([])
        for name in ["c", "a", "b"]:
            await shopping_store.add(ShoppingItem(id=name, name=name))
        assert names(await shopping_store.get_all()) == ["c", "a", "b"]


class TestLocalWriteFailures:
    """Tests for writes the device refuses."""

    @pytest.fixture
    def tiny_store(self, tmp_path, notice):
        storage = FileKeyValueStorage(tmp_path, quota_bytes=1024)
        return LocalCollectionStore(get_definition(CollectionKind.SHOPPING), storage, notice)

    @pytest.mark.asyncio
    async def test_failed_write_returns_computed_snapshot(self, tiny_store):
        """Test that a refused write is absorbed and the new snapshot returned."""
        big = ShoppingItem(id="big", name="x" * 200, note="y" * 2000)
        snapshot = await tiny_store.add(big)
        assert names(snapshot)[-1] == big.name

    @pytest.mark.asyncio
    async def test_failed_write_leaves_stored_blob_unchanged(self, tiny_store):
        """Test that the stored collection diverges from the returned one."""
        await tiny_store.set_all([ShoppingItem(id="1", name="Milch")])
        await tiny_store.add(ShoppingItem(id="big", name="x", note="y" * 2000))
        assert names(await tiny_store.get_all()) == ["Milch"]

    @pytest.mark.asyncio
    async def test_notice_is_shown_once(self, tiny_store, notice, notices):
        """Test the one-off user notice on repeated failures."""
        for i in range(3):
            await tiny_store.add(ShoppingItem(id=str(i), name="x", note="y" * 2000))
        assert notices == [StorageNotice.DEFAULT_MESSAGE]
        assert notice.shown is True

    @pytest.mark.asyncio
    async def test_unexpected_storage_error_is_absorbed(self, notice, notices):
        """Test that any storage exception is treated as a failed write."""

        class BrokenStorage(FileKeyValueStorage):
            def set_item(self, key, value):
                raise PermissionError("read-only")

        store = LocalCollectionStore(
            get_definition(CollectionKind.SHOPPING), BrokenStorage("/nonexistent"), notice
        )
        snapshot = await store.set_all([ShoppingItem(id="1", name="Milch")])
        assert names(snapshot) == ["Milch"]
        assert len(notices) == 1
