"""
Data Models Package

Pydantic models for every entity the household app stores, the
matching patch models, and the collection kind definitions.
"""

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
    MemberRole,
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
    TaskPriority,
    TaskType,
    new_entity_id,
)
from familyhub.models.collections import (
    COLLECTIONS,
    CollectionDefinition,
    CollectionKind,
    get_definition,
)

__all__ = [
    # Entities
    "CalendarEvent",
    "Entity",
    "FamilyMember",
    "FeedbackItem",
    "MealPlanEntry",
    "MealRequest",
    "MemberRole",
    "NewsItem",
    "Recipe",
    "SavedLocation",
    "ShoppingItem",
    "Task",
    "TaskPriority",
    "TaskType",
    "new_entity_id",
    # Patches
    "CalendarEventPatch",
    "EntityPatch",
    "FamilyMemberPatch",
    "FeedbackItemPatch",
    "MealPlanEntryPatch",
    "MealRequestPatch",
    "NewsItemPatch",
    "RecipePatch",
    "SavedLocationPatch",
    "ShoppingItemPatch",
    "TaskPatch",
    # Collections
    "COLLECTIONS",
    "CollectionDefinition",
    "CollectionKind",
    "get_definition",
]
