"""
Entity Models for FamilyHub

Every domain record is an Entity: a plain record with a caller-assigned
string id. Entities are the unit of storage for both the local cache
and the remote tables.

DESIGN DECISION: Python field names are snake_case, the persisted form
uses camelCase aliases (``assignedTo``, ``mealName``, ...). Blobs and
table columns therefore keep the field names the household app has
always written.

Id uniqueness is the caller's responsibility. No store checks it.
"""

import datetime as dt
import itertools
import time
from enum import Enum
from typing import Any, ClassVar, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)
from pydantic.alias_generators import to_camel


_id_counter = itertools.count()


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def new_entity_id() -> str:
    """
    Create a timestamp-derived id.

    Millisecond timestamp followed by a three digit sequence number,
    so ids created within the same millisecond stay distinct.
    """
    return f"{time.time_ns() // 1_000_000}{next(_id_counter) % 1000:03d}"


# =============================================================================
# ENUMS
# =============================================================================

class MemberRole(str, Enum):
    """Role of a family member."""
    PARENT = "parent"
    CHILD = "child"
    ADMIN = "admin"


class TaskType(str, Enum):
    """
    Task list a task belongs to.

    Household and personal tasks live in separate collections,
    the type is stored on the task as well.
    """
    HOUSEHOLD = "household"
    PERSONAL = "personal"


class TaskPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# =============================================================================
# BASE CLASSES
# =============================================================================

class Entity(BaseModel):
    """
    Base for every stored record.

    Unknown fields in stored data are ignored so older blobs and
    tables with extra columns still load.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    id: str = Field(
        ...,
        min_length=1,
        description="Caller-assigned identifier, unique within its collection"
    )

    def to_record(self) -> dict[str, Any]:
        """Convert to the persisted field map (camelCase, no empty fields)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def merged(self, patch: "EntityPatch") -> "Entity":
        """Return a copy with the patch's fields applied (last value wins per field)."""
        return self.model_copy(update=patch.changes())


class EntityPatch(BaseModel):
    """
    Partial set of field changes for one entity.

    Only fields explicitly set on the patch are applied. Setting a
    field to None clears it, which is only allowed for fields that
    are optional on the entity.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="forbid",
    )

    entity_model: ClassVar[type[Entity]] = Entity

    @model_validator(mode="after")
    def reject_clearing_required_fields(self) -> "EntityPatch":
        fields = self.entity_model.model_fields
        for name in self.model_fields_set:
            if getattr(self, name) is None and fields[name].default is not None:
                raise ValueError(f"Field '{name}' cannot be cleared")
        return self

    def changes(self) -> dict[str, Any]:
        """Explicitly set fields, keyed by Python field name."""
        return {name: getattr(self, name) for name in self.model_fields_set}

    def to_record(self) -> dict[str, Any]:
        """Explicitly set fields in persisted form (camelCase keys, JSON values)."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


# =============================================================================
# FAMILY
# =============================================================================

class FamilyMember(Entity):
    """
    A member of the household.

    The password is compared by plain equality. Login strength is
    not a concern of this application.
    """
    name: str = Field(..., min_length=1, max_length=100)
    avatar: str = ""
    color: str = ""
    role: MemberRole = MemberRole.CHILD
    password: Optional[str] = None


class FamilyMemberPatch(EntityPatch):
    entity_model: ClassVar[type[Entity]] = FamilyMember

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    avatar: Optional[str] = None
    color: Optional[str] = None
    role: Optional[MemberRole] = None
    password: Optional[str] = None


# =============================================================================
# CALENDAR AND BULLETIN BOARD
# =============================================================================

class CalendarEvent(Entity):
    """A calendar entry, optionally assigned to family members."""
    title: str = Field(..., min_length=1)
    date: dt.date
    time: str = Field(..., pattern=r"^\d{2}:\d{2}$", description="HH:MM")
    end_time: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    location: Optional[str] = None
    description: Optional[str] = None
    assigned_to: list[str] = Field(
        default_factory=list,
        description="Family member ids (soft references)"
    )


class CalendarEventPatch(EntityPatch):
    entity_model: ClassVar[type[Entity]] = CalendarEvent

    title: Optional[str] = Field(default=None, min_length=1)
    date: Optional[dt.date] = None
    time: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    end_time: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    location: Optional[str] = None
    description: Optional[str] = None
    assigned_to: Optional[list[str]] = None


class NewsItem(Entity):
    """A bulletin board post."""
    title: str = Field(..., min_length=1)
    description: str = ""
    image: Optional[str] = Field(default=None, description="Base64 data or URL")
    tag: Optional[str] = None
    created_at: dt.datetime = Field(default_factory=_utcnow)
    author_id: str


class NewsItemPatch(EntityPatch):
    entity_model: ClassVar[type[Entity]] = NewsItem

    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    image: Optional[str] = None
    tag: Optional[str] = None


# =============================================================================
# LISTS
# =============================================================================

class ShoppingItem(Entity):
    name: str = Field(..., min_length=1, max_length=200)
    checked: bool = False
    category: Optional[str] = None
    note: Optional[str] = None


class ShoppingItemPatch(EntityPatch):
    entity_model: ClassVar[type[Entity]] = ShoppingItem

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    checked: Optional[bool] = None
    category: Optional[str] = None
    note: Optional[str] = None


class Task(Entity):
    """A household or personal to-do."""
    title: str = Field(..., min_length=1)
    done: bool = False
    assigned_to: Optional[str] = Field(
        default=None,
        description="Family member id for household tasks"
    )
    type: TaskType
    priority: Optional[TaskPriority] = None
    note: Optional[str] = None


class TaskPatch(EntityPatch):
    entity_model: ClassVar[type[Entity]] = Task

    title: Optional[str] = Field(default=None, min_length=1)
    done: Optional[bool] = None
    assigned_to: Optional[str] = None
    priority: Optional[TaskPriority] = None
    note: Optional[str] = None


# =============================================================================
# MEALS
# =============================================================================

class Recipe(Entity):
    name: str = Field(..., min_length=1)
    ingredients: list[str] = Field(default_factory=list)
    image: Optional[str] = None
    description: Optional[str] = None


class RecipePatch(EntityPatch):
    entity_model: ClassVar[type[Entity]] = Recipe

    name: Optional[str] = Field(default=None, min_length=1)
    ingredients: Optional[list[str]] = None
    image: Optional[str] = None
    description: Optional[str] = None


class MealPlanEntry(Entity):
    """
    One day of the meal plan.

    ``meal_name`` is the main dish (dinner); breakfast and lunch are
    optional free text.
    """
    day: str = Field(..., min_length=1)
    meal_name: str = Field(..., min_length=1)
    breakfast: Optional[str] = None
    lunch: Optional[str] = None
    ingredients: list[str] = Field(default_factory=list)
    recipe_hint: str = ""


class MealPlanEntryPatch(EntityPatch):
    entity_model: ClassVar[type[Entity]] = MealPlanEntry

    day: Optional[str] = Field(default=None, min_length=1)
    meal_name: Optional[str] = Field(default=None, min_length=1)
    breakfast: Optional[str] = None
    lunch: Optional[str] = None
    ingredients: Optional[list[str]] = None
    recipe_hint: Optional[str] = None


class MealRequest(Entity):
    """A dish a family member wishes for."""
    dish_name: str = Field(..., min_length=1)
    requested_by: str = Field(..., description="Family member id")
    created_at: dt.datetime = Field(default_factory=_utcnow)


class MealRequestPatch(EntityPatch):
    entity_model: ClassVar[type[Entity]] = MealRequest

    dish_name: Optional[str] = Field(default=None, min_length=1)


# =============================================================================
# WEATHER AND FEEDBACK
# =============================================================================

class SavedLocation(Entity):
    name: str = Field(..., min_length=1)
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class SavedLocationPatch(EntityPatch):
    entity_model: ClassVar[type[Entity]] = SavedLocation

    name: Optional[str] = Field(default=None, min_length=1)
    lat: Optional[float] = Field(default=None, ge=-90, le=90)
    lng: Optional[float] = Field(default=None, ge=-180, le=180)


class FeedbackItem(Entity):
    user_id: str
    user_name: str
    text: str = Field(..., min_length=1, max_length=2000)
    rating: int = Field(..., ge=1, le=5)
    created_at: dt.datetime = Field(default_factory=_utcnow)
    read: bool = False


class FeedbackItemPatch(EntityPatch):
    entity_model: ClassVar[type[Entity]] = FeedbackItem

    read: Optional[bool] = None
