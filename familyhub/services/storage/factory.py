"""
Store Factory

Resolves, once per collection kind at start-up, which store the kind
is bound to:
- remote table store, if a remote endpoint is configured AND the
  table mapping has a table for the kind
- local cache store otherwise

The binding never changes for the rest of the session. There is no
switch-over to the local store when the remote store fails; a remote
store whose connection failed at start-up returns empty collections.

DESIGN DECISION: The resolved stores are returned as a Backend object
that is passed explicitly to whatever needs it. Tests substitute
stores per kind through ``overrides``.
"""

from types import MappingProxyType
from typing import Iterator, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from familyhub.config import Settings, get_settings
from familyhub.logger import get_logger
from familyhub.models import CollectionKind, get_definition
from familyhub.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsCollectionStore,
)
from familyhub.services.storage.interface import CollectionStore
from familyhub.services.storage.local import (
    FileKeyValueStorage,
    KeyValueStorage,
    LocalCollectionStore,
    StorageNotice,
)


logger = get_logger(__name__)


DEFAULT_TABLES: dict[CollectionKind, str] = {
    CollectionKind.FAMILY: "family",
    CollectionKind.EVENTS: "events",
    CollectionKind.SHOPPING: "shopping",
    CollectionKind.HOUSEHOLD_TASKS: "household_tasks",
    CollectionKind.PERSONAL_TASKS: "personal_tasks",
    CollectionKind.MEAL_PLAN: "meal_plans",
    CollectionKind.MEAL_REQUESTS: "meal_requests",
    CollectionKind.RECIPES: "recipes",
    CollectionKind.WEATHER_FAVORITES: "weather_favs",
}


class TableMapping(BaseModel):
    """
    Remote table name per collection kind.

    Kinds without an entry (news and feedback by default) always use
    the local store. Validated when constructed: names must be
    non-empty and no two kinds may share a table.
    """
    model_config = ConfigDict(frozen=True)

    tables: dict[CollectionKind, str] = Field(
        default_factory=lambda: dict(DEFAULT_TABLES)
    )

    @field_validator('tables')
    @classmethod
    def validate_tables(cls, v: dict[CollectionKind, str]) -> dict[CollectionKind, str]:
        cleaned = {kind: name.strip() for kind, name in v.items()}
        empty = [kind.value for kind, name in cleaned.items() if not name]
        if empty:
            raise ValueError(f"Empty table name for: {', '.join(empty)}")
        names = list(cleaned.values())
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Table used by more than one collection: {', '.join(duplicates)}")
        return cleaned

    def table_for(self, kind: CollectionKind) -> Optional[str]:
        return self.tables.get(kind)


class Backend:
    """
    The store bound to every collection kind for this session.

    Stores are looked up by kind (``backend[CollectionKind.SHOPPING]``)
    or by attribute (``backend.shopping``). Bindings are read-only.
    """

    def __init__(self, stores: Mapping[CollectionKind, CollectionStore]):
        missing = [kind.value for kind in CollectionKind if kind not in stores]
        if missing:
            raise ValueError(f"No store bound for: {', '.join(missing)}")
        object.__setattr__(self, "_stores", MappingProxyType(dict(stores)))

    def __getitem__(self, kind: CollectionKind) -> CollectionStore:
        return self._stores[kind]

    def __getattr__(self, name: str) -> CollectionStore:
        try:
            kind = CollectionKind(name)
        except ValueError:
            raise AttributeError(name) from None
        return self._stores[kind]

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("Store bindings cannot change during a session")

    def __iter__(self) -> Iterator[CollectionKind]:
        return iter(self._stores)

    def items(self):
        return self._stores.items()


class StoreFactory:
    """Builds the store for one collection kind."""

    def __init__(
        self,
        key_value_storage: KeyValueStorage,
        table_mapping: Optional[TableMapping] = None,
        remote_configured: bool = False,
        sheets_client: Optional[GoogleSheetsClient] = None,
        notice: Optional[StorageNotice] = None,
    ):
        self._key_value_storage = key_value_storage
        self._table_mapping = table_mapping or TableMapping()
        self._remote_configured = remote_configured
        self._sheets_client = sheets_client
        self._notice = notice or StorageNotice()

    def create(self, kind: CollectionKind) -> CollectionStore:
        definition = get_definition(kind)
        table_name = self._table_mapping.table_for(kind)
        if self._remote_configured and table_name:
            return GoogleSheetsCollectionStore(definition, table_name, self._sheets_client)
        return LocalCollectionStore(definition, self._key_value_storage, self._notice)


def connect_remote(settings: Settings) -> Optional[GoogleSheetsClient]:
    """
    Connect to the configured spreadsheet.

    Returns None (and logs) if the connection cannot be made; the
    remote stores then degrade to no-ops for the session.
    """
    client = GoogleSheetsClient(settings.google_sheets)
    try:
        client.get_spreadsheet()
    except Exception as e:
        logger.error("remote_unavailable", error=str(e))
        return None
    logger.info("remote_connected", spreadsheet_id=settings.google_sheets.spreadsheet_id)
    return client


def build_backend(
    settings: Optional[Settings] = None,
    *,
    table_mapping: Optional[TableMapping] = None,
    key_value_storage: Optional[KeyValueStorage] = None,
    sheets_client: Optional[GoogleSheetsClient] = None,
    notice: Optional[StorageNotice] = None,
    overrides: Optional[Mapping[CollectionKind, CollectionStore]] = None,
) -> Backend:
    """
    Resolve the store for every collection kind.

    Args:
        settings: Application settings (defaults to get_settings())
        table_mapping: Remote table names (defaults to DEFAULT_TABLES)
        key_value_storage: Device-local storage (defaults to a file
            storage in the configured data directory)
        sheets_client: Already-connected remote client. Passing one
            counts as "remote configured" and skips connecting.
        notice: One-off notice shown on the first local write failure
        overrides: Stores to use for specific kinds instead of resolving

    Returns:
        The session's immutable Backend
    """
    settings = settings or get_settings()

    remote_configured = sheets_client is not None or settings.google_sheets.is_configured
    if remote_configured and sheets_client is None:
        sheets_client = connect_remote(settings)

    if key_value_storage is None:
        local_settings = settings.local
        key_value_storage = FileKeyValueStorage(
            local_settings.data_dir,
            quota_bytes=local_settings.quota_bytes,
        )

    factory = StoreFactory(
        key_value_storage=key_value_storage,
        table_mapping=table_mapping,
        remote_configured=remote_configured,
        sheets_client=sheets_client,
        notice=notice,
    )

    overrides = overrides or {}
    stores = {}
    for kind in CollectionKind:
        store = overrides.get(kind) or factory.create(kind)
        stores[kind] = store
        logger.debug("store_bound", collection=kind.value, store=type(store).__name__)

    return Backend(stores)
