"""
Local Cache Storage Implementation

Each collection kind is one serialized blob (a JSON array of entity
records) in synchronous device-local key-value storage, addressed by
a fixed key such as ``fh_shopping``.

TRADEOFFS:
- Single-item operations read the whole blob, change it in memory
  and write the whole blob back (O(n) per operation)
- Read-modify-write is not atomic against interleaved writers; the
  single-threaded UI loop is the only writer
- No schema versioning in the blob
- A failed write leaves the UI state and the stored blob diverged
  until the next full reload
"""

import json
import os
import re
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

from pydantic import ValidationError

from familyhub.logger import get_logger
from familyhub.models import CollectionDefinition, EntityPatch
from familyhub.services.storage.interface import (
    CollectionStore,
    StorageUnavailableError,
    T,
)


logger = get_logger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStorage(ABC):
    """
    Synchronous string key-value storage on the device.

    ``set_item`` raises StorageUnavailableError when the value cannot
    be stored.
    """

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        pass


class FileKeyValueStorage(KeyValueStorage):
    """
    Key-value storage with one file per key in a data directory.

    Writes go to a temporary file that replaces the old one, so a
    crash mid-write leaves the previous value intact. The total size
    of all stored values is capped at ``quota_bytes``, like browser
    local storage.
    """

    def __init__(self, directory: Union[str, Path], quota_bytes: int = 5 * 1024 * 1024):
        self._directory = Path(directory)
        self._quota_bytes = quota_bytes

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self._directory / f"{key}.json"

    def _used_bytes(self, excluding: Path) -> int:
        if not self._directory.is_dir():
            return 0
        return sum(
            path.stat().st_size
            for path in self._directory.glob("*.json")
            if path != excluding
        )

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("local_read_failed", key=key, error=str(e))
            return None

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        data = value.encode("utf-8")
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            used = self._used_bytes(excluding=path)
            if used + len(data) > self._quota_bytes:
                raise StorageUnavailableError(
                    f"Storage quota exceeded writing {key} "
                    f"({used + len(data)} of {self._quota_bytes} bytes)"
                )
            fd, tmp_name = tempfile.mkstemp(dir=self._directory, suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as fh:
                    fh.write(data)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise StorageUnavailableError(f"Failed to write {key}: {e}") from e

    def remove_item(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass


class StorageNotice:
    """
    One-off user notice for local write failures.

    The first failure in a session shows a generic warning through
    ``sink``; later failures are only logged by the store.
    """

    DEFAULT_MESSAGE = "Storage is full. Recent changes may not be saved on this device."

    def __init__(
        self,
        sink: Optional[Callable[[str], None]] = None,
        message: str = DEFAULT_MESSAGE,
    ):
        self._sink = sink
        self._message = message
        self._shown = False

    @property
    def shown(self) -> bool:
        return self._shown

    def notify(self, error: StorageUnavailableError) -> None:
        if self._shown:
            return
        self._shown = True
        logger.warning("storage_notice_shown", error=str(error))
        if self._sink is not None:
            self._sink(self._message)


class LocalCollectionStore(CollectionStore[T]):
    """
    Collection store backed by one blob in device-local storage.

    Reads never fail: a missing or unreadable blob yields the kind's
    default snapshot.
    """

    def __init__(
        self,
        definition: CollectionDefinition,
        storage: KeyValueStorage,
        notice: Optional[StorageNotice] = None,
    ):
        super().__init__(definition)
        self._storage = storage
        self._notice = notice or StorageNotice()

    @property
    def key(self) -> str:
        return self._definition.storage_key

    def _read(self) -> list[T]:
        raw = self._storage.get_item(self.key)
        if raw is None:
            return self._definition.default_snapshot()

        model = self._definition.entity_model
        try:
            records = json.loads(raw)
            if not isinstance(records, list):
                raise ValueError("Stored blob is not a list")
            return [model.model_validate(record) for record in records]
        except (ValueError, TypeError, ValidationError) as e:
            logger.warning("local_blob_unreadable", key=self.key, error=str(e))
            return self._definition.default_snapshot()

    def _write(self, items: Sequence[T]) -> bool:
        value = json.dumps([item.to_record() for item in items], ensure_ascii=False)
        try:
            self._storage.set_item(self.key, value)
            return True
        except Exception as e:
            error = e if isinstance(e, StorageUnavailableError) else StorageUnavailableError(str(e))
            logger.error(
                "local_write_failed",
                collection=self.name,
                key=self.key,
                error=str(error),
            )
            self._notice.notify(error)
            return False

    async def get_all(self) -> list[T]:
        return self._read()

    async def add(self, entity: T) -> list[T]:
        data = self._read()
        data.append(entity)
        self._write(data)
        return data

    async def update(self, entity_id: str, patch: Union[EntityPatch, dict]) -> list[T]:
        patch = self._definition.coerce_patch(patch)
        data = [
            item.merged(patch) if item.id == entity_id else item
            for item in self._read()
        ]
        self._write(data)
        return data

    async def delete(self, entity_id: str) -> list[T]:
        data = [item for item in self._read() if item.id != entity_id]
        self._write(data)
        return data

    async def set_all(self, items: Sequence[T]) -> list[T]:
        data = list(items)
        self._write(data)
        return data
