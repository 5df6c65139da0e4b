"""
Shared test fixtures.

No test talks to Google. The remote store runs against an in-memory
worksheet that behaves like the parts of gspread the store uses.
"""

import pytest
from gspread.utils import a1_to_rowcol

from familyhub.models import CollectionKind, get_definition
from familyhub.services.storage import (
    Backend,
    FileKeyValueStorage,
    GoogleSheetsCollectionStore,
    LocalCollectionStore,
    StorageNotice,
    StoreFactory,
)


class FakeWorksheet:
    """In-memory stand-in for gspread.Worksheet."""

    def __init__(self, values=None, col_count=10):
        self.values = [list(row) for row in (values or [["id"]])]
        self.col_count = col_count
        self.calls = []
        self.fail_writes = False

    def _check_write(self, name):
        self.calls.append(name)
        if self.fail_writes:
            raise RuntimeError(f"{name} rejected")

    def _write(self, start, row_values):
        row, col = a1_to_rowcol(start)
        while len(self.values) < row:
            self.values.append([])
        target = self.values[row - 1]
        while len(target) < col - 1 + len(row_values):
            target.append("")
        target[col - 1:col - 1 + len(row_values)] = [str(v) for v in row_values]

    def get_all_values(self):
        self.calls.append("get_all_values")
        width = max((len(row) for row in self.values), default=0)
        return [list(row) + [""] * (width - len(row)) for row in self.values]

    def append_row(self, values, value_input_option=None):
        self._check_write("append_row")
        self.values.append([str(v) for v in values])

    def append_rows(self, values, value_input_option=None):
        self._check_write("append_rows")
        for row in values:
            self.values.append([str(v) for v in row])

    def batch_update(self, data, value_input_option=None):
        self._check_write("batch_update")
        for entry in data:
            self._write(entry["range"].split(":")[0], entry["values"][0])

    def update(self, range_name=None, values=None):
        self._check_write("update")
        self._write(range_name, values[0])

    def delete_rows(self, start_index, end_index=None):
        self._check_write("delete_rows")
        del self.values[start_index - 1:(end_index or start_index)]

    def add_cols(self, cols):
        self.col_count += cols

    def records(self):
        """Rows as dicts keyed by header, for assertions."""
        header = self.values[0]
        return [dict(zip(header, row)) for row in self.values[1:]]


class FakeSheetsClient:
    """Hands out one FakeWorksheet per table name."""

    def __init__(self):
        self.tables = {}

    def get_table(self, name):
        if name not in self.tables:
            self.tables[name] = FakeWorksheet()
        return self.tables[name]

    def seed(self, name, values=None, col_count=10):
        """Replace a table with given contents."""
        self.tables[name] = FakeWorksheet(values, col_count=col_count)
        return self.tables[name]


@pytest.fixture
def sheets_client():
    return FakeSheetsClient()


@pytest.fixture
def kv_storage(tmp_path):
    return FileKeyValueStorage(tmp_path / "data")


@pytest.fixture
def notices():
    """Messages shown to the user by the storage notice."""
    return []


@pytest.fixture
def notice(notices):
    return StorageNotice(sink=notices.append)


@pytest.fixture
def shopping_store(kv_storage, notice):
    return LocalCollectionStore(get_definition(CollectionKind.SHOPPING), kv_storage, notice)


@pytest.fixture
def remote_shopping_store(sheets_client):
    return GoogleSheetsCollectionStore(
        get_definition(CollectionKind.SHOPPING), "shopping", sheets_client
    )


@pytest.fixture
def local_backend(kv_storage, notice):
    """Every kind bound to the local cache."""
    factory = StoreFactory(kv_storage, notice=notice)
    return Backend({kind: factory.create(kind) for kind in CollectionKind})
