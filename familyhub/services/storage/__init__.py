"""
Storage Services Package

One abstract collection store with two implementations: the
device-local cache and the remote Google Sheets tables. The factory
binds every collection kind to one of them at start-up.
"""

from familyhub.services.storage.interface import (
    CollectionStore,
    RemoteError,
    RemoteUnreachableError,
    StorageError,
    StorageUnavailableError,
)
from familyhub.services.storage.local import (
    FileKeyValueStorage,
    KeyValueStorage,
    LocalCollectionStore,
    StorageNotice,
)
from familyhub.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsCollectionStore,
)
from familyhub.services.storage.factory import (
    DEFAULT_TABLES,
    Backend,
    StoreFactory,
    TableMapping,
    build_backend,
)

__all__ = [
    # Interface
    "CollectionStore",
    # Exceptions
    "RemoteError",
    "RemoteUnreachableError",
    "StorageError",
    "StorageUnavailableError",
    # Local cache implementation
    "FileKeyValueStorage",
    "KeyValueStorage",
    "LocalCollectionStore",
    "StorageNotice",
    # Google Sheets implementation
    "GoogleSheetsClient",
    "GoogleSheetsCollectionStore",
    # Binding
    "DEFAULT_TABLES",
    "Backend",
    "StoreFactory",
    "TableMapping",
    "build_backend",
]
