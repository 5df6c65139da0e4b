"""
Household Controller

Application-level state for one session of the household app, and
the optimistic update flow every user action goes through:

1. Compute the new in-memory collection and apply it immediately
2. Schedule the matching store call in the background
3. Never wait for, or apply, the snapshot the store returns

DESIGN DECISION: Every interaction feels instant regardless of how
slow the bound store is. The price is an unreconciled failure
window: if a store call fails, the in-memory state keeps the change
and the durable copy does not, until the next full reload.

The in-memory state always reflects the order actions were issued
in. The stores may receive two quick calls on one collection in
either order.
"""

import asyncio
from enum import Enum
from typing import Optional, Sequence, Union

from familyhub.config import Settings, get_settings
from familyhub.logger import configure_logging, get_logger
from familyhub.models import (
    CalendarEvent,
    CollectionKind,
    Entity,
    EntityPatch,
    FamilyMember,
    FamilyMemberPatch,
    FeedbackItem,
    FeedbackItemPatch,
    MealPlanEntry,
    MealRequest,
    NewsItem,
    Recipe,
    SavedLocation,
    ShoppingItem,
    ShoppingItemPatch,
    Task,
    TaskPatch,
    TaskType,
    get_definition,
    new_entity_id,
)
from familyhub.services.collaborators import (
    GeminiMealSuggester,
    GeminiPlaceLookup,
    MealSuggester,
    PlaceLookup,
    WeatherFetcher,
    WeatherSnapshot,
)
from familyhub.services.storage import Backend, build_backend


logger = get_logger(__name__)

_TASK_COLLECTIONS = {
    TaskType.HOUSEHOLD: CollectionKind.HOUSEHOLD_TASKS,
    TaskType.PERSONAL: CollectionKind.PERSONAL_TASKS,
}


class LoginResult(str, Enum):
    """Outcome of a login attempt."""
    LOGGED_IN = "logged_in"
    PASSWORD_SET = "password_set"        # First login, password stored
    WRONG_PASSWORD = "wrong_password"
    UNKNOWN_MEMBER = "unknown_member"
    EMPTY_PASSWORD = "empty_password"


class HouseholdState:
    """
    In-memory copy of every collection, plus the logged-in member.

    Indexed by collection kind. Assigning a collection replaces the
    list, so lists handed out earlier are never mutated.
    """

    def __init__(self):
        self._collections: dict[CollectionKind, list[Entity]] = {
            kind: [] for kind in CollectionKind
        }
        self.current_user: Optional[FamilyMember] = None

    def __getitem__(self, kind: CollectionKind) -> list[Entity]:
        return self._collections[kind]

    def __setitem__(self, kind: CollectionKind, items: Sequence[Entity]) -> None:
        self._collections[kind] = list(items)


class HouseholdController:
    """
    Holds the session's in-memory collections and applies user actions.

    Mutating methods are synchronous and must be called from a running
    event loop: the state changes before the method returns, the store
    call runs later as a task. ``flush()`` waits for those tasks.
    """

    def __init__(
        self,
        backend: Backend,
        meal_suggester: Optional[MealSuggester] = None,
        place_lookup: Optional[PlaceLookup] = None,
        weather_fetcher: Optional[WeatherFetcher] = None,
    ):
        self._backend = backend
        self._meal_suggester = meal_suggester
        self._place_lookup = place_lookup
        self._weather_fetcher = weather_fetcher
        self._state = HouseholdState()
        self._pending: set[asyncio.Task] = set()

    # -------------------------------------------------------------------------
    # State access
    # -------------------------------------------------------------------------

    def collection(self, kind: CollectionKind) -> list[Entity]:
        """Current in-memory contents of a collection (a copy)."""
        return list(self._state[kind])

    @property
    def family(self) -> list[FamilyMember]:
        return self.collection(CollectionKind.FAMILY)

    @property
    def events(self) -> list[CalendarEvent]:
        return self.collection(CollectionKind.EVENTS)

    @property
    def news(self) -> list[NewsItem]:
        return self.collection(CollectionKind.NEWS)

    @property
    def shopping_list(self) -> list[ShoppingItem]:
        return self.collection(CollectionKind.SHOPPING)

    @property
    def household_tasks(self) -> list[Task]:
        return self.collection(CollectionKind.HOUSEHOLD_TASKS)

    @property
    def personal_tasks(self) -> list[Task]:
        return self.collection(CollectionKind.PERSONAL_TASKS)

    @property
    def meal_plan(self) -> list[MealPlanEntry]:
        return self.collection(CollectionKind.MEAL_PLAN)

    @property
    def meal_requests(self) -> list[MealRequest]:
        return self.collection(CollectionKind.MEAL_REQUESTS)

    @property
    def recipes(self) -> list[Recipe]:
        return self.collection(CollectionKind.RECIPES)

    @property
    def weather_favorites(self) -> list[SavedLocation]:
        return self.collection(CollectionKind.WEATHER_FAVORITES)

    @property
    def feedback(self) -> list[FeedbackItem]:
        return self.collection(CollectionKind.FEEDBACK)

    @property
    def current_user(self) -> Optional[FamilyMember]:
        return self._state.current_user

    @property
    def pending_writes(self) -> int:
        return len(self._pending)

    # -------------------------------------------------------------------------
    # Loading and persistence
    # -------------------------------------------------------------------------

    async def load(self) -> None:
        """Rehydrate every collection from its store."""
        kinds = list(CollectionKind)
        snapshots = await asyncio.gather(
            *(self._backend[kind].get_all() for kind in kinds)
        )
        for kind, snapshot in zip(kinds, snapshots):
            self._state[kind] = list(snapshot)
        logger.info(
            "state_loaded",
            counts={kind.value: len(self._state[kind]) for kind in kinds},
        )

    async def flush(self) -> None:
        """Wait until every scheduled store call has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _persist(self, kind: CollectionKind, operation: str, *args) -> None:
        loop = asyncio.get_running_loop()
        coro = getattr(self._backend[kind], operation)(*args)
        task = loop.create_task(coro, name=f"{kind.value}.{operation}")
        self._pending.add(task)
        task.add_done_callback(self._on_persisted)

    def _on_persisted(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            # The in-memory state keeps the change
            logger.error("persist_failed", operation=task.get_name(), error=str(error))

    def _add(self, kind: CollectionKind, entity: Entity) -> None:
        self._state[kind] = [*self._state[kind], entity]
        self._persist(kind, "add", entity)

    def _update(self, kind: CollectionKind, entity_id: str, patch: Union[EntityPatch, dict]) -> None:
        patch = get_definition(kind).coerce_patch(patch)
        self._state[kind] = [
            item.merged(patch) if item.id == entity_id else item
            for item in self._state[kind]
        ]
        self._persist(kind, "update", entity_id, patch)

    def _delete(self, kind: CollectionKind, entity_id: str) -> None:
        self._state[kind] = [item for item in self._state[kind] if item.id != entity_id]
        self._persist(kind, "delete", entity_id)

    def _replace(self, kind: CollectionKind, items: Sequence[Entity]) -> None:
        self._state[kind] = list(items)
        self._persist(kind, "set_all", list(items))

    def _find(self, kind: CollectionKind, entity_id: str) -> Optional[Entity]:
        return next((item for item in self._state[kind] if item.id == entity_id), None)

    # -------------------------------------------------------------------------
    # Calendar
    # -------------------------------------------------------------------------

    def add_event(self, event: CalendarEvent) -> None:
        self._add(CollectionKind.EVENTS, event)

    def update_event(self, event_id: str, patch: Union[EntityPatch, dict]) -> None:
        self._update(CollectionKind.EVENTS, event_id, patch)

    def delete_event(self, event_id: str) -> None:
        self._delete(CollectionKind.EVENTS, event_id)

    # -------------------------------------------------------------------------
    # Shopping list
    # -------------------------------------------------------------------------

    def add_shopping_item(self, name: str) -> ShoppingItem:
        item = ShoppingItem(id=new_entity_id(), name=name, checked=False)
        self._add(CollectionKind.SHOPPING, item)
        return item

    def toggle_shopping_item(self, item_id: str) -> None:
        item = self._find(CollectionKind.SHOPPING, item_id)
        if item is None:
            return
        self._update(CollectionKind.SHOPPING, item_id, ShoppingItemPatch(checked=not item.checked))

    def delete_shopping_item(self, item_id: str) -> None:
        self._delete(CollectionKind.SHOPPING, item_id)

    def add_ingredients_to_shopping(self, ingredients: Sequence[str]) -> list[ShoppingItem]:
        """Add one unchecked item per ingredient."""
        items = [
            ShoppingItem(id=new_entity_id(), name=name, checked=False)
            for name in ingredients
            if name.strip()
        ]
        for item in items:
            self._add(CollectionKind.SHOPPING, item)
        return items

    # -------------------------------------------------------------------------
    # Tasks
    # -------------------------------------------------------------------------

    def add_household_task(self, title: str, assigned_to: str) -> Task:
        task = Task(
            id=new_entity_id(),
            title=title,
            done=False,
            assigned_to=assigned_to,
            type=TaskType.HOUSEHOLD,
        )
        self._add(CollectionKind.HOUSEHOLD_TASKS, task)
        return task

    def add_personal_task(self, title: str) -> Task:
        task = Task(id=new_entity_id(), title=title, done=False, type=TaskType.PERSONAL)
        self._add(CollectionKind.PERSONAL_TASKS, task)
        return task

    def toggle_task(self, task_id: str, task_type: TaskType) -> None:
        kind = _TASK_COLLECTIONS[TaskType(task_type)]
        task = self._find(kind, task_id)
        if task is None:
            return
        self._update(kind, task_id, TaskPatch(done=not task.done))

    def delete_task(self, task_id: str, task_type: TaskType) -> None:
        self._delete(_TASK_COLLECTIONS[TaskType(task_type)], task_id)

    # -------------------------------------------------------------------------
    # Meals
    # -------------------------------------------------------------------------

    def update_meal_plan(self, entries: Sequence[MealPlanEntry]) -> None:
        """Replace the whole meal plan."""
        self._replace(CollectionKind.MEAL_PLAN, entries)

    def add_meal_to_plan(self, day: str, meal_name: str, ingredients: Sequence[str]) -> MealPlanEntry:
        """Put a meal on a day, replacing whatever was planned for that day."""
        entry = MealPlanEntry(
            id=new_entity_id(),
            day=day,
            meal_name=meal_name,
            ingredients=list(ingredients),
            recipe_hint="Aus Rezeptlager",
        )
        others = [m for m in self._state[CollectionKind.MEAL_PLAN] if m.day != day]
        self._replace(CollectionKind.MEAL_PLAN, [*others, entry])
        return entry

    def add_meal_request(self, dish_name: str) -> Optional[MealRequest]:
        """Record a dish wish for the logged-in member. Ignored when nobody is logged in."""
        if self.current_user is None:
            return None
        request = MealRequest(
            id=new_entity_id(),
            dish_name=dish_name,
            requested_by=self.current_user.id,
        )
        self._add(CollectionKind.MEAL_REQUESTS, request)
        return request

    def delete_meal_request(self, request_id: str) -> None:
        self._delete(CollectionKind.MEAL_REQUESTS, request_id)

    def add_recipe(self, recipe: Recipe) -> None:
        self._add(CollectionKind.RECIPES, recipe)

    def delete_recipe(self, recipe_id: str) -> None:
        self._delete(CollectionKind.RECIPES, recipe_id)

    async def generate_meal_plan(self, preferences: str = "") -> bool:
        """
        Replace the meal plan with AI suggestions.

        Returns False, leaving the plan alone, when no suggestion is
        available.
        """
        if self._meal_suggester is None:
            return False
        entries = await self._meal_suggester.suggest_meal_plan(preferences)
        if not entries:
            return False
        self.update_meal_plan(entries)
        return True

    # -------------------------------------------------------------------------
    # Family and session
    # -------------------------------------------------------------------------

    def update_family_member(self, member_id: str, patch: Union[EntityPatch, dict]) -> None:
        patch = get_definition(CollectionKind.FAMILY).coerce_patch(patch)
        self._update(CollectionKind.FAMILY, member_id, patch)
        if self.current_user is not None and self.current_user.id == member_id:
            self._state.current_user = self._state.current_user.merged(patch)

    def reset_member_password(self, member_id: str) -> None:
        """Clear a member's password so they choose a new one on next login."""
        self._update(CollectionKind.FAMILY, member_id, FamilyMemberPatch(password=None))

    def login(self, member_id: str, password: str) -> LoginResult:
        """
        Log a family member in.

        A member without a password sets one with their first login.
        Passwords are compared by plain equality.
        """
        member = self._find(CollectionKind.FAMILY, member_id)
        if member is None:
            return LoginResult.UNKNOWN_MEMBER
        if not password.strip():
            return LoginResult.EMPTY_PASSWORD

        if not member.password:
            self._state.current_user = member
            self.update_family_member(member_id, FamilyMemberPatch(password=password))
            return LoginResult.PASSWORD_SET

        if password != member.password:
            return LoginResult.WRONG_PASSWORD
        self._state.current_user = member
        return LoginResult.LOGGED_IN

    def logout(self) -> None:
        self._state.current_user = None

    def open_task_count(self) -> int:
        """Open household tasks assigned to the current user plus open personal tasks."""
        if self.current_user is None:
            return 0
        household = sum(
            1 for task in self._state[CollectionKind.HOUSEHOLD_TASKS]
            if task.assigned_to == self.current_user.id and not task.done
        )
        personal = sum(1 for task in self._state[CollectionKind.PERSONAL_TASKS] if not task.done)
        return household + personal

    def open_shopping_count(self) -> int:
        return sum(1 for item in self._state[CollectionKind.SHOPPING] if not item.checked)

    # -------------------------------------------------------------------------
    # Bulletin board and feedback
    # -------------------------------------------------------------------------

    def post_news(
        self,
        title: str,
        description: str = "",
        tag: Optional[str] = None,
        image: Optional[str] = None,
    ) -> Optional[NewsItem]:
        if self.current_user is None:
            return None
        item = NewsItem(
            id=new_entity_id(),
            title=title,
            description=description,
            tag=tag,
            image=image,
            author_id=self.current_user.id,
        )
        self._add(CollectionKind.NEWS, item)
        return item

    def delete_news(self, news_id: str) -> None:
        self._delete(CollectionKind.NEWS, news_id)

    def submit_feedback(self, text: str, rating: int) -> Optional[FeedbackItem]:
        if self.current_user is None:
            return None
        item = FeedbackItem(
            id=new_entity_id(),
            user_id=self.current_user.id,
            user_name=self.current_user.name,
            text=text,
            rating=rating,
        )
        self._add(CollectionKind.FEEDBACK, item)
        return item

    def mark_feedback_read(self, feedback_id: str) -> None:
        self._update(CollectionKind.FEEDBACK, feedback_id, FeedbackItemPatch(read=True))

    # -------------------------------------------------------------------------
    # Weather
    # -------------------------------------------------------------------------

    def toggle_weather_favorite(self, location: SavedLocation) -> None:
        """Remove the favorite with this location's name, or add the location."""
        favorites = self._state[CollectionKind.WEATHER_FAVORITES]
        matches = [f for f in favorites if f.name == location.name]
        if not matches:
            self._add(CollectionKind.WEATHER_FAVORITES, location)
            return
        for favorite in matches:
            self._delete(CollectionKind.WEATHER_FAVORITES, favorite.id)

    async def add_weather_favorite_by_query(self, query: str) -> Optional[SavedLocation]:
        """Geocode a place name and save it as a favorite."""
        if self._place_lookup is None:
            return None
        place = await self._place_lookup.find_place(query)
        if place is None:
            return None

        for favorite in self._state[CollectionKind.WEATHER_FAVORITES]:
            if favorite.name == place.name:
                return favorite
        location = SavedLocation(id=new_entity_id(), name=place.name, lat=place.lat, lng=place.lng)
        self._add(CollectionKind.WEATHER_FAVORITES, location)
        return location

    async def weather_for(self, location: SavedLocation) -> Optional[WeatherSnapshot]:
        if self._weather_fetcher is None:
            return None
        return await self._weather_fetcher.fetch_weather(location.lat, location.lng)


def create_controller(
    settings: Optional[Settings] = None,
    weather_fetcher: Optional[WeatherFetcher] = None,
    **backend_options,
) -> HouseholdController:
    """
    Factory function to create the controller for a session.

    Resolves the store for every collection kind once and wires the
    Gemini collaborators. ``backend_options`` are passed on to
    build_backend (e.g. ``overrides`` or ``key_value_storage``).

    Call ``await controller.load()`` before use.
    """
    settings = settings or get_settings()
    configure_logging(settings.debug_mode)
    backend = build_backend(settings, **backend_options)
    return HouseholdController(
        backend,
        meal_suggester=GeminiMealSuggester(settings.gemini),
        place_lookup=GeminiPlaceLookup(settings.gemini),
        weather_fetcher=weather_fetcher,
    )
