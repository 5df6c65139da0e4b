"""
Abstract Collection Store Interface

DESIGN DECISION: Every collection kind is persisted through the same
five operations. This allows us to:
1. Bind each kind to the device-local cache or the remote tables
2. Substitute stores per kind in tests
3. Keep the application layer unaware of where data lives

Every mutating operation returns the post-mutation snapshot of the
whole collection, so a caller can resynchronize without a second read.

All operations are async, including the local ones, so callers get
the same non-blocking contract from every store.

ERROR CONTRACT: no store operation raises a storage failure to its
caller. Failures are logged and the operation returns its best-effort
snapshot. The exceptions below are used inside the storage layer.
"""

from abc import ABC, abstractmethod
from typing import Generic, Sequence, TypeVar, Union

from familyhub.models import CollectionDefinition, Entity, EntityPatch


T = TypeVar("T", bound=Entity)


class CollectionStore(ABC, Generic[T]):
    """
    Abstract store for one collection kind.

    Any storage implementation (local cache, remote tables)
    must implement these methods.
    """

    def __init__(self, definition: CollectionDefinition):
        self._definition = definition

    @property
    def definition(self) -> CollectionDefinition:
        return self._definition

    @property
    def name(self) -> str:
        """Collection kind name, used in log events."""
        return self._definition.kind.value

    @abstractmethod
    async def get_all(self) -> list[T]:
        """
        Return the full collection.

        Order is store-defined. The local store keeps insertion
        order; the remote store returns table order, which must
        not be assumed stable.
        """
        pass

    @abstractmethod
    async def add(self, entity: T) -> list[T]:
        """
        Append one entity.

        The id is not checked for uniqueness; adding an existing id
        stores a second entity with that id.

        Returns:
            Collection snapshot after the append
        """
        pass

    @abstractmethod
    async def update(self, entity_id: str, patch: Union[EntityPatch, dict]) -> list[T]:
        """
        Merge patch fields into the entity with this id.

        Only fields set on the patch change. No-op if no entity matches.

        Args:
            entity_id: Id of the entity to change
            patch: Patch model of this kind, or a dict of field changes

        Returns:
            Collection snapshot after the update

        Raises:
            pydantic.ValidationError: If the patch has unknown or invalid fields
        """
        pass

    @abstractmethod
    async def delete(self, entity_id: str) -> list[T]:
        """
        Remove the entity with this id.

        Deleting an absent id is a no-op.

        Returns:
            Collection snapshot after the delete
        """
        pass

    @abstractmethod
    async def set_all(self, items: Sequence[T]) -> list[T]:
        """
        Replace the entire collection with exactly ``items``.

        Entities not in ``items`` are removed.

        Returns:
            Collection snapshot after the replace
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageUnavailableError(StorageError):
    """Device-local storage refused a write (quota exceeded, disk error)."""
    pass


class RemoteError(StorageError):
    """The remote table service rejected or failed an operation."""
    pass


class RemoteUnreachableError(RemoteError):
    """Could not connect to the remote table service."""
    pass
