"""
Tests for FamilyHub models

Test strategy:
1. Unit tests for entities and patches (validation, persisted form)
2. Collection definitions (storage keys, defaults, patch coercion)
3. No storage or network access
"""

import pytest
from datetime import date, timedelta

from pydantic import ValidationError

from familyhub.models import (
    COLLECTIONS,
    CalendarEvent,
    CollectionKind,
    FamilyMember,
    FamilyMemberPatch,
    MealPlanEntry,
    MealRequest,
    MemberRole,
    ShoppingItem,
    ShoppingItemPatch,
    Task,
    TaskPatch,
    TaskType,
    get_definition,
    new_entity_id,
)


class TestEntities:
    """Tests for entity models."""

    def test_record_uses_camel_case_names(self):
        """Test that the persisted form uses camelCase field names."""
        task = Task(id="1", title="Müll", assigned_to="3", type=TaskType.HOUSEHOLD)
        record = task.to_record()
        assert record["assignedTo"] == "3"
        assert record["type"] == "household"
        assert "assigned_to" not in record

    def test_record_omits_empty_optional_fields(self):
        """Test that None fields are not persisted."""
        record = ShoppingItem(id="1", name="Milch").to_record()
        assert record == {"id": "1", "name": "Milch", "checked": False}

    def test_entity_accepts_persisted_names(self):
        """Test that stored camelCase records load back."""
        entry = MealPlanEntry.model_validate(
            {"id": "9", "day": "Montag", "mealName": "Pasta", "recipeHint": "Kochen"}
        )
        assert entry.meal_name == "Pasta"
        assert entry.recipe_hint == "Kochen"

    def test_entity_ignores_unknown_fields(self):
        """Test that extra stored fields do not break loading."""
        item = ShoppingItem.model_validate({"id": "1", "name": "Brot", "legacy": True})
        assert item.name == "Brot"

    def test_entity_requires_id(self):
        """Test that an empty id is rejected."""
        with pytest.raises(ValidationError):
            ShoppingItem(id="", name="Milch")

    def test_event_time_format(self):
        """Test that event times must be HH:MM."""
        with pytest.raises(ValidationError):
            CalendarEvent(id="1", title="Training", date=date.today(), time="5pm")

    def test_event_date_round_trips_as_iso_string(self):
        """Test that dates are persisted as ISO strings."""
        event = CalendarEvent(id="1", title="Training", date=date(2024, 5, 1), time="17:00")
        assert event.to_record()["date"] == "2024-05-01"

    def test_created_at_defaults_to_utc(self):
        """Test that creation timestamps are timezone-aware UTC."""
        request = MealRequest(id="1", dish_name="Pizza", requested_by="3")
        assert request.created_at.tzinfo is not None
        assert request.created_at.utcoffset() == timedelta(0)
        assert request.to_record()["createdAt"].endswith("Z")

    def test_whitespace_is_stripped(self):
        """Test that whitespace is stripped from names."""
        assert ShoppingItem(id="1", name="  Milch  ").name == "Milch"

    def test_new_entity_ids_are_distinct(self):
        """Test that ids created back to back differ."""
        ids = {new_entity_id() for _ in range(500)}
        assert len(ids) == 500


class TestPatches:
    """Tests for partial updates."""

    def test_merged_applies_only_set_fields(self):
        """Test that merging keeps fields the patch does not set."""
        item = ShoppingItem(id="1", name="Milch", note="3,5%")
        merged = item.merged(ShoppingItemPatch(checked=True))
        assert merged.checked is True
        assert merged.name == "Milch"
        assert merged.note == "3,5%"

    def test_patch_rejects_unknown_fields(self):
        """Test that unknown patch fields are rejected."""
        with pytest.raises(ValidationError):
            ShoppingItemPatch(colour="red")

    def test_patch_cannot_clear_required_field(self):
        """Test that required entity fields cannot be set to None."""
        with pytest.raises(ValidationError):
            ShoppingItemPatch(name=None)

    def test_patch_can_clear_optional_field(self):
        """Test that optional fields can be cleared."""
        member = FamilyMember(id="1", name="Mama", password="geheim")
        patch = FamilyMemberPatch(password=None)
        assert patch.changes() == {"password": None}
        assert member.merged(patch).password is None

    def test_patch_record_contains_only_set_fields(self):
        """Test the persisted form of a patch."""
        patch = TaskPatch(done=True, assigned_to="2")
        assert patch.to_record() == {"done": True, "assignedTo": "2"}

    def test_task_patch_cannot_change_type(self):
        """Test that a task cannot move between task lists by patch."""
        with pytest.raises(ValidationError):
            TaskPatch(type=TaskType.PERSONAL)


class TestCollections:
    """Tests for collection definitions."""

    def test_every_kind_has_a_definition(self):
        """Test that all collection kinds are defined."""
        assert set(COLLECTIONS) == set(CollectionKind)

    def test_storage_keys(self):
        """Test the device-local storage keys."""
        keys = {kind: definition.storage_key for kind, definition in COLLECTIONS.items()}
        assert keys[CollectionKind.SHOPPING] == "fh_shopping"
        assert keys[CollectionKind.HOUSEHOLD_TASKS] == "fh_household"
        assert keys[CollectionKind.MEAL_PLAN] == "fh_mealPlan"
        assert keys[CollectionKind.WEATHER_FAVORITES] == "fh_weather_favs"
        assert len(set(keys.values())) == len(keys)

    def test_default_shopping_snapshot(self):
        """Test the shopping list a fresh device starts with."""
        items = get_definition(CollectionKind.SHOPPING).default_snapshot()
        assert [(i.id, i.name, i.checked) for i in items] == [
            ("1", "Milch", False),
            ("2", "Brot", True),
        ]

    def test_default_family(self):
        """Test the default family members."""
        family = get_definition(CollectionKind.FAMILY).default_snapshot()
        assert [m.name for m in family] == ["Mama", "Papa", "Leo", "Mia"]
        assert family[0].role == MemberRole.PARENT
        assert all(m.password is None for m in family)

    def test_default_event_is_dated_today(self):
        """Test that the default event is evaluated on each read."""
        events = get_definition(CollectionKind.EVENTS).default_snapshot()
        assert events[0].date == date.today()

    def test_kinds_without_defaults_start_empty(self):
        """Test that most collections start empty."""
        for kind in (CollectionKind.NEWS, CollectionKind.RECIPES, CollectionKind.FEEDBACK):
            assert get_definition(kind).default_snapshot() == []

    def test_coerce_patch_from_dict(self):
        """Test that dict patches accept either field naming."""
        definition = get_definition(CollectionKind.HOUSEHOLD_TASKS)
        assert definition.coerce_patch({"assignedTo": "4"}).changes() == {"assigned_to": "4"}
        assert definition.coerce_patch({"done": True}).changes() == {"done": True}

    def test_coerce_patch_rejects_other_kind_fields(self):
        """Test that a dict patch with another kind's fields is rejected."""
        with pytest.raises(ValidationError):
            get_definition(CollectionKind.SHOPPING).coerce_patch({"done": True})
