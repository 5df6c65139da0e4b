"""
External Collaborators

Services the household app calls but does not own: weather data,
AI meal plan suggestions and place lookup. They are consumed through
the fixed contracts below.

CONTRACT: every collaborator is fallible and signals failure with an
empty result (``[]`` or ``None``). Callers treat that as "no
suggestion available", never as an error.

Weather fetching is only consumed through its protocol. Meal
suggestions and place lookup have Gemini-backed implementations.
"""

import json
from typing import Any, Optional, Protocol

import google.generativeai as genai
from pydantic import BaseModel, Field, TypeAdapter

from familyhub.config import GeminiSettings, get_settings
from familyhub.logger import get_logger
from familyhub.models import MealPlanEntry, new_entity_id


logger = get_logger(__name__)


class WeatherSnapshot(BaseModel):
    """Current conditions and forecast for one location."""

    current: dict[str, float] = Field(default_factory=dict)
    hourly: dict[str, list[Any]] = Field(default_factory=dict)
    daily: dict[str, list[Any]] = Field(default_factory=dict)


class Place(BaseModel):
    """A geocoded place."""

    name: str
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class WeatherFetcher(Protocol):
    async def fetch_weather(self, lat: float, lng: float) -> Optional[WeatherSnapshot]: ...


class MealSuggester(Protocol):
    async def suggest_meal_plan(self, preferences: str) -> list[MealPlanEntry]: ...


class PlaceLookup(Protocol):
    async def find_place(self, query: str) -> Optional[Place]: ...


class MealSuggestion(BaseModel):
    """One day of a suggested plan, as returned by the model."""

    day: str
    meal_name: str = Field(..., alias="mealName")
    ingredients: list[str] = Field(default_factory=list)
    recipe_hint: str = Field(default="", alias="recipeHint")


_suggestions = TypeAdapter(list[MealSuggestion])


class _GeminiClient:
    """Shared Gemini set-up. Disabled when no API key is configured."""

    def __init__(self, settings: Optional[GeminiSettings] = None):
        self._settings = settings or get_settings().gemini
        self._model = None

    @property
    def enabled(self) -> bool:
        return bool(self._settings.api_key)

    def _get_model(self) -> "genai.GenerativeModel":
        if self._model is None:
            genai.configure(api_key=self._settings.api_key)
            self._model = genai.GenerativeModel(
                model_name=self._settings.model_name,
                generation_config={
                    "temperature": self._settings.temperature,
                    "max_output_tokens": self._settings.max_tokens,
                    "response_mime_type": "application/json",
                },
            )
        return self._model

    async def generate_json(self, prompt: str) -> Any:
        response = await self._get_model().generate_content_async(prompt)
        return json.loads(response.text)


class GeminiMealSuggester(_GeminiClient):
    """Suggests a three day meal plan."""

    async def suggest_meal_plan(self, preferences: str) -> list[MealPlanEntry]:
        if not self.enabled:
            return []

        prompt = f"""Erstelle einen Essensplan für die nächsten 3 Tage für eine Familie.
Präferenzen: {preferences or 'Gesund und schnell, kinderfreundlich'}.

Antworte NUR mit einem JSON-Array in genau diesem Format:
[{{"day": "Montag", "mealName": "Name des Gerichts", "ingredients": ["Zutat"], "recipeHint": "Kurzer Zubereitungshinweis (max 15 Wörter)"}}]"""

        try:
            suggestions = _suggestions.validate_python(await self.generate_json(prompt))
        except Exception as e:
            logger.warning("meal_suggestion_failed", error=str(e))
            return []

        return [
            MealPlanEntry(
                id=new_entity_id(),
                day=suggestion.day,
                meal_name=suggestion.meal_name,
                ingredients=suggestion.ingredients,
                recipe_hint=suggestion.recipe_hint,
            )
            for suggestion in suggestions
        ]


class GeminiPlaceLookup(_GeminiClient):
    """Turns a free-text place name into coordinates."""

    async def find_place(self, query: str) -> Optional[Place]:
        if not self.enabled or not query.strip():
            return None

        prompt = f"""Finde die Koordinaten für den Ort: "{query}".

Antworte NUR mit einem JSON-Objekt in genau diesem Format:
{{"name": "Ortsname", "lat": 52.52, "lng": 13.405}}"""

        try:
            return Place.model_validate(await self.generate_json(prompt))
        except Exception as e:
            logger.warning("place_lookup_failed", query=query, error=str(e))
            return None
