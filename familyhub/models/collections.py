"""
Collection Kinds

A collection is the full set of entities of one kind. Each kind is
stored and synchronized independently: there are no cross-collection
transactions, and references between kinds (a task's ``assigned_to``
pointing at a family member) are resolved by lookup, not enforced.
"""

from enum import Enum
from typing import Callable, Union

from pydantic import BaseModel, ConfigDict

from familyhub.models import defaults
from familyhub.models.entities import (
    CalendarEvent,
    CalendarEventPatch,
    Entity,
    EntityPatch,
    FamilyMember,
    FamilyMemberPatch,
    FeedbackItem,
    FeedbackItemPatch,
    MealPlanEntry,
    MealPlanEntryPatch,
    MealRequest,
    MealRequestPatch,
    NewsItem,
    NewsItemPatch,
    Recipe,
    RecipePatch,
    SavedLocation,
    SavedLocationPatch,
    ShoppingItem,
    ShoppingItemPatch,
    Task,
    TaskPatch,
)


class CollectionKind(str, Enum):
    """Every collection the household app persists."""
    FAMILY = "family"
    EVENTS = "events"
    NEWS = "news"
    SHOPPING = "shopping"
    HOUSEHOLD_TASKS = "household_tasks"
    PERSONAL_TASKS = "personal_tasks"
    MEAL_PLAN = "meal_plan"
    MEAL_REQUESTS = "meal_requests"
    RECIPES = "recipes"
    WEATHER_FAVORITES = "weather_favorites"
    FEEDBACK = "feedback"


class CollectionDefinition(BaseModel):
    """
    Static description of one collection kind.

    Attributes:
        kind: The collection kind
        storage_key: Key of the blob in device-local storage
        entity_model: Entity class stored in the collection
        patch_model: Patch class accepted by ``update``
        make_default: Builds the local default snapshot
    """
    model_config = ConfigDict(frozen=True)

    kind: CollectionKind
    storage_key: str
    entity_model: type[Entity]
    patch_model: type[EntityPatch]
    make_default: Callable[[], list[Entity]] = defaults.empty

    def default_snapshot(self) -> list[Entity]:
        return list(self.make_default())

    def coerce_patch(self, patch: Union[EntityPatch, dict]) -> EntityPatch:
        """
        Validate a patch for this kind.

        Plain dicts may use Python field names or the persisted
        camelCase names. Unknown fields raise a ValidationError.
        """
        if isinstance(patch, self.patch_model):
            return patch
        if isinstance(patch, EntityPatch):
            patch = patch.model_dump(exclude_unset=True)
        return self.patch_model.model_validate(patch)


COLLECTIONS: dict[CollectionKind, CollectionDefinition] = {
    definition.kind: definition
    for definition in [
        CollectionDefinition(
            kind=CollectionKind.FAMILY,
            storage_key="fh_family",
            entity_model=FamilyMember,
            patch_model=FamilyMemberPatch,
            make_default=defaults.default_family,
        ),
        CollectionDefinition(
            kind=CollectionKind.EVENTS,
            storage_key="fh_events",
            entity_model=CalendarEvent,
            patch_model=CalendarEventPatch,
            make_default=defaults.default_events,
        ),
        CollectionDefinition(
            kind=CollectionKind.NEWS,
            storage_key="fh_news",
            entity_model=NewsItem,
            patch_model=NewsItemPatch,
        ),
        CollectionDefinition(
            kind=CollectionKind.SHOPPING,
            storage_key="fh_shopping",
            entity_model=ShoppingItem,
            patch_model=ShoppingItemPatch,
            make_default=defaults.default_shopping,
        ),
        CollectionDefinition(
            kind=CollectionKind.HOUSEHOLD_TASKS,
            storage_key="fh_household",
            entity_model=Task,
            patch_model=TaskPatch,
            make_default=defaults.default_household_tasks,
        ),
        CollectionDefinition(
            kind=CollectionKind.PERSONAL_TASKS,
            storage_key="fh_personal",
            entity_model=Task,
            patch_model=TaskPatch,
        ),
        CollectionDefinition(
            kind=CollectionKind.MEAL_PLAN,
            storage_key="fh_mealPlan",
            entity_model=MealPlanEntry,
            patch_model=MealPlanEntryPatch,
        ),
        CollectionDefinition(
            kind=CollectionKind.MEAL_REQUESTS,
            storage_key="fh_mealRequests",
            entity_model=MealRequest,
            patch_model=MealRequestPatch,
        ),
        CollectionDefinition(
            kind=CollectionKind.RECIPES,
            storage_key="fh_recipes",
            entity_model=Recipe,
            patch_model=RecipePatch,
        ),
        CollectionDefinition(
            kind=CollectionKind.WEATHER_FAVORITES,
            storage_key="fh_weather_favs",
            entity_model=SavedLocation,
            patch_model=SavedLocationPatch,
        ),
        CollectionDefinition(
            kind=CollectionKind.FEEDBACK,
            storage_key="fh_feedback",
            entity_model=FeedbackItem,
            patch_model=FeedbackItemPatch,
        ),
    ]
}


def get_definition(kind: CollectionKind) -> CollectionDefinition:
    return COLLECTIONS[kind]
