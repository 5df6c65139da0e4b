"""Services package."""

from familyhub.services.collaborators import (
    GeminiMealSuggester,
    GeminiPlaceLookup,
    MealSuggester,
    Place,
    PlaceLookup,
    WeatherFetcher,
    WeatherSnapshot,
)
from familyhub.services.storage import (
    Backend,
    CollectionStore,
    FileKeyValueStorage,
    GoogleSheetsClient,
    GoogleSheetsCollectionStore,
    KeyValueStorage,
    LocalCollectionStore,
    RemoteError,
    RemoteUnreachableError,
    StorageError,
    StorageNotice,
    StorageUnavailableError,
    StoreFactory,
    TableMapping,
    build_backend,
)

__all__ = [
    # Collaborators
    "GeminiMealSuggester",
    "GeminiPlaceLookup",
    "MealSuggester",
    "Place",
    "PlaceLookup",
    "WeatherFetcher",
    "WeatherSnapshot",
    # Storage services
    "Backend",
    "CollectionStore",
    "FileKeyValueStorage",
    "GoogleSheetsClient",
    "GoogleSheetsCollectionStore",
    "KeyValueStorage",
    "LocalCollectionStore",
    "RemoteError",
    "RemoteUnreachableError",
    "StorageError",
    "StorageNotice",
    "StorageUnavailableError",
    "StoreFactory",
    "TableMapping",
    "build_backend",
]
