"""
Google Sheets Storage Implementation

DESIGN DECISION: The remote store is a Google spreadsheet with one
worksheet per collection kind. Each worksheet is used as a table:
1. Row 1 is the column header
2. Column ``id`` is the primary key
3. Every other column is an entity field (persisted camelCase name)
4. Cells hold JSON values so lists, numbers and booleans survive

Columns are added to the header when an entity brings a field the
table has not seen yet.

TRADEOFFS:
- No transactions. ``set_all`` deletes the rows missing from the new
  collection and then upserts the new rows as two separate network
  calls. A reader between the two calls sees an incomplete table, and
  two sessions replacing the same table at the same time race: the
  last network response wins, not the last logical call.
- Writes are never retried. A failed write is logged and dropped; the
  method still returns a fresh read of the table.
- gspread is synchronous. Its calls run in worker threads so the
  event loop keeps serving the UI, and calls on one table are
  serialized per client: within one process the phases of a single
  ``set_all`` are never interleaved with other store calls on that
  table. Other processes get no such guarantee.
"""

import asyncio
import json
import weakref
from typing import Any, Optional, Sequence, Union

import gspread
from google.oauth2.service_account import Credentials
from gspread.utils import rowcol_to_a1
from pydantic import ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential

from familyhub.config import GoogleSheetsSettings, get_settings
from familyhub.logger import get_logger
from familyhub.models import CollectionDefinition, EntityPatch
from familyhub.services.storage.interface import (
    CollectionStore,
    RemoteError,
    RemoteUnreachableError,
    T,
)


logger = get_logger(__name__)

ID_COLUMN = "id"


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and hands out one worksheet per table.
    Only connection set-up is retried.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._tables: dict[str, gspread.Worksheet] = {}
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.

        Raises:
            RemoteUnreachableError: If credentials are missing or rejected
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise RemoteUnreachableError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise RemoteUnreachableError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise RemoteUnreachableError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_table(self, name: str) -> gspread.Worksheet:
        """Get or create the worksheet acting as table ``name``."""
        if name not in self._tables:
            spreadsheet = self.get_spreadsheet()
            try:
                sheet = spreadsheet.worksheet(name)
            except gspread.WorksheetNotFound:
                sheet = spreadsheet.add_worksheet(title=name, rows=1000, cols=10)
                sheet.append_row([ID_COLUMN], value_input_option="RAW")
            self._tables[name] = sheet
        return self._tables[name]


def _encode_cell(value: Any) -> str:
    if value is None:
        return ""
    return json.dumps(value, ensure_ascii=False)


def _decode_cell(cell: str) -> Any:
    # Cells typed by hand in the spreadsheet are plain text
    try:
        return json.loads(cell)
    except ValueError:
        return cell


# client -> table name -> lock
_table_locks: "weakref.WeakKeyDictionary[Any, dict[str, asyncio.Lock]]" = weakref.WeakKeyDictionary()


def _table_lock(client: Any, table_name: str) -> asyncio.Lock:
    locks = _table_locks.setdefault(client, {})
    if table_name not in locks:
        locks[table_name] = asyncio.Lock()
    return locks[table_name]


class GoogleSheetsCollectionStore(CollectionStore[T]):
    """
    Collection store backed by one worksheet.

    Without a client (remote never configured, or the connection
    failed at start-up) every method returns an empty list.
    """

    def __init__(
        self,
        definition: CollectionDefinition,
        table_name: str,
        client: Optional[GoogleSheetsClient] = None,
    ):
        super().__init__(definition)
        self._table_name = table_name
        self._client = client
        self._lock = _table_lock(client, table_name) if client is not None else None

    @property
    def table_name(self) -> str:
        return self._table_name

    @property
    def available(self) -> bool:
        return self._client is not None

    # -------------------------------------------------------------------------
    # Row codec
    # -------------------------------------------------------------------------

    def _record_to_row(self, record: dict[str, Any], header: list[str]) -> list[str]:
        """Convert an entity record to a row in header column order."""
        return [
            str(record[ID_COLUMN]) if column == ID_COLUMN else _encode_cell(record.get(column))
            for column in header
        ]

    def _row_to_entity(self, row: list[str], header: list[str]) -> T:
        """Convert a row to an entity. Empty cells are absent fields."""
        record: dict[str, Any] = {}
        for column, cell in zip(header, row):
            if not column or cell == "":
                continue
            record[column] = cell if column == ID_COLUMN else _decode_cell(cell)
        return self._definition.entity_model.model_validate(record)

    # -------------------------------------------------------------------------
    # Table access
    # -------------------------------------------------------------------------

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_table(self._table_name)

    def _load(self, sheet: gspread.Worksheet) -> tuple[list[str], list[list[str]]]:
        values = sheet.get_all_values()
        header = list(values[0]) if values and any(values[0]) else []
        if header and ID_COLUMN not in header:
            raise RemoteError(f"Table {self._table_name} has no '{ID_COLUMN}' column")
        return header, values[1:]

    def _ensure_columns(
        self,
        sheet: gspread.Worksheet,
        header: list[str],
        columns: Sequence[str],
    ) -> list[str]:
        """Add missing columns to the header row and return the new header."""
        missing = [c for c in [ID_COLUMN, *columns] if c not in header]
        if not missing:
            return header
        header = header + list(dict.fromkeys(missing))
        if len(header) > sheet.col_count:
            sheet.add_cols(len(header) - sheet.col_count)
        sheet.update(range_name="A1", values=[header])
        return header

    @staticmethod
    def _row_numbers(rows: list[list[str]], header: list[str], entity_id: str) -> list[int]:
        """1-based sheet row numbers of rows with this id (row 1 is the header)."""
        id_index = header.index(ID_COLUMN)
        return [
            index
            for index, row in enumerate(rows, start=2)
            if len(row) > id_index and row[id_index] == entity_id
        ]

    def _fetch_all(self) -> list[T]:
        header, rows = self._load(self._sheet())
        if not header:
            return []

        id_index = header.index(ID_COLUMN)
        entities = []
        for row in rows:
            if len(row) <= id_index or not row[id_index]:
                continue  # Skip empty rows
            try:
                entities.append(self._row_to_entity(row, header))
            except ValidationError as e:
                logger.warning(
                    "remote_row_malformed",
                    table=self._table_name,
                    row_id=row[id_index],
                    error=str(e),
                )
        return entities

    # -------------------------------------------------------------------------
    # Blocking table operations (run in a worker thread)
    # -------------------------------------------------------------------------

    def _insert(self, entity: T) -> None:
        try:
            sheet = self._sheet()
            header, _ = self._load(sheet)
            record = entity.to_record()
            header = self._ensure_columns(sheet, header, list(record))
            sheet.append_rows(
                [self._record_to_row(record, header)],
                value_input_option="RAW",
            )
        except Exception as e:
            logger.error(
                "remote_add_failed",
                table=self._table_name,
                entity_id=entity.id,
                error=str(e),
            )

    def _patch_rows(self, entity_id: str, patch: EntityPatch) -> None:
        try:
            sheet = self._sheet()
            header, rows = self._load(sheet)
            changes = patch.to_record()
            row_numbers = self._row_numbers(rows, header, entity_id) if header else []
            if row_numbers and changes:
                header = self._ensure_columns(sheet, header, list(changes))
                cells = [
                    {
                        "range": rowcol_to_a1(row_number, header.index(column) + 1),
                        "values": [[_encode_cell(value)]],
                    }
                    for row_number in row_numbers
                    for column, value in changes.items()
                ]
                sheet.batch_update(cells, value_input_option="RAW")
        except Exception as e:
            logger.error(
                "remote_update_failed",
                table=self._table_name,
                entity_id=entity_id,
                error=str(e),
            )

    def _delete_rows(self, entity_id: str) -> None:
        try:
            sheet = self._sheet()
            header, rows = self._load(sheet)
            row_numbers = self._row_numbers(rows, header, entity_id) if header else []
            # Bottom-up so earlier row numbers stay valid
            for row_number in sorted(row_numbers, reverse=True):
                sheet.delete_rows(row_number)
        except Exception as e:
            logger.error(
                "remote_delete_failed",
                table=self._table_name,
                entity_id=entity_id,
                error=str(e),
            )

    def _delete_missing_rows(self, keep_ids: set[str]) -> None:
        try:
            sheet = self._sheet()
            header, rows = self._load(sheet)
            if not header:
                return
            id_index = header.index(ID_COLUMN)
            stale = [
                index
                for index, row in enumerate(rows, start=2)
                if len(row) > id_index and row[id_index] and row[id_index] not in keep_ids
            ]
            for row_number in sorted(stale, reverse=True):
                sheet.delete_rows(row_number)
        except Exception as e:
            logger.error(
                "remote_reconcile_delete_failed",
                table=self._table_name,
                error=str(e),
            )

    def _upsert_rows(self, items: Sequence[T]) -> None:
        try:
            sheet = self._sheet()
            header, rows = self._load(sheet)
            records = {item.id: item.to_record() for item in items}
            columns = [column for record in records.values() for column in record]
            header = self._ensure_columns(sheet, header, columns)
            last_column = rowcol_to_a1(1, len(header)).rstrip("0123456789")

            updates = []
            appends = []
            for entity_id, record in records.items():
                row = self._record_to_row(record, header)
                row_numbers = self._row_numbers(rows, header, entity_id)
                if not row_numbers:
                    appends.append(row)
                for row_number in row_numbers:
                    updates.append({
                        "range": f"A{row_number}:{last_column}{row_number}",
                        "values": [row],
                    })

            if updates:
                sheet.batch_update(updates, value_input_option="RAW")
            if appends:
                sheet.append_rows(appends, value_input_option="RAW")
        except Exception as e:
            logger.error(
                "remote_reconcile_upsert_failed",
                table=self._table_name,
                error=str(e),
            )

    async def _reread(self) -> list[T]:
        try:
            return await asyncio.to_thread(self._fetch_all)
        except Exception as e:
            logger.error("remote_load_failed", table=self._table_name, error=str(e))
            return []

    # -------------------------------------------------------------------------
    # CollectionStore
    # -------------------------------------------------------------------------

    async def get_all(self) -> list[T]:
        """Select all rows of the table."""
        if self._client is None:
            return []
        async with self._lock:
            return await self._reread()

    async def add(self, entity: T) -> list[T]:
        """Insert one row, then re-read the table whether or not the insert worked."""
        if self._client is None:
            return []
        async with self._lock:
            await asyncio.to_thread(self._insert, entity)
            return await self._reread()

    async def update(self, entity_id: str, patch: Union[EntityPatch, dict]) -> list[T]:
        """
        Rewrite only the patched cells of the rows with this id.

        Other fields of the row are left alone, so two sessions
        patching different fields of one entity do not overwrite
        each other.
        """
        patch = self._definition.coerce_patch(patch)
        if self._client is None:
            return []
        async with self._lock:
            await asyncio.to_thread(self._patch_rows, entity_id, patch)
            return await self._reread()

    async def delete(self, entity_id: str) -> list[T]:
        """Delete the rows with this id."""
        if self._client is None:
            return []
        async with self._lock:
            await asyncio.to_thread(self._delete_rows, entity_id)
            return await self._reread()

    async def set_all(self, items: Sequence[T]) -> list[T]:
        """
        Reconcile the table to exactly ``items``.

        1. Compute the id set of ``items``
        2. Delete every row whose id is not in that set
        3. Upsert ``items`` (update rows by id, append the rest)
        4. Re-read the table

        Steps 2 and 3 are separate calls and not transactional. The
        table lock is held across both, so only other processes can
        see or write the table in between.
        """
        if self._client is None:
            return []
        keep_ids = {item.id for item in items}
        async with self._lock:
            await asyncio.to_thread(self._delete_missing_rows, keep_ids)
            await asyncio.to_thread(self._upsert_rows, list(items))
            return await self._reread()

    async def delete_missing(self, keep_ids: set[str]) -> None:
        """Reconciliation phase 1: delete rows whose id is not in ``keep_ids``."""
        if self._client is None:
            return
        async with self._lock:
            await asyncio.to_thread(self._delete_missing_rows, set(keep_ids))

    async def upsert(self, items: Sequence[T]) -> None:
        """
        Reconciliation phase 2: insert-or-update ``items`` by id.

        Existing rows are rewritten whole. If ``items`` repeats an id,
        the last occurrence wins.
        """
        if self._client is None:
            return
        async with self._lock:
            await asyncio.to_thread(self._upsert_rows, list(items))
