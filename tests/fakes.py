"""In-memory stand-in for RemoteStoreClient used across the test suite."""

import re
import threading
from collections import defaultdict
from types import SimpleNamespace
from typing import Any, Dict, List
from unittest.mock import AsyncMock

from sheetsdb.exceptions import PermissionDenied, DocumentNotFound, RateLimited, RemoteStoreError
from sheetsdb.config.config import DEFAULT_TABLE_SCHEMAS
from sheetsdb.services.sheets import RetryPolicy, SheetsDatabase
from sheetsdb.services.sheets.client import TableInfo, DEFAULT_COLUMN_COUNT
from sheetsdb.services.sheets.identity import Verified

_NUMERIC = re.compile(r'^[+-]?\d+(\.\d+)?$')


class FakeSheet:
    def __init__(self, sheet_id, column_count):
        self.sheet_id = sheet_id
        self.column_count = column_count
        self.rows: List[List[Any]] = []


class FakeDocument:
    def __init__(self, doc_id, name, owner):
        self.id = doc_id
        self.name = name
        self.owner = owner
        self.writers = {owner}
        self.sheets: Dict[str, FakeSheet] = {}
        self.permissions: List[Dict[str, Any]] = [
            {'id': f'perm-owner-{doc_id}', 'emailAddress': owner, 'role': 'owner', 'displayName': owner}
        ]


class FakeRemoteStoreClient:
    """Mimics Sheets/Drive storage semantics closely enough for the store's tests.

    With coerce_numbers=True, written cells that look numeric and do not carry
    the text marker are stored as floats, like the real service's type
    inference does.
    """

    def __init__(self, user: Verified = None, coerce_numbers: bool = False):
        self.user = user or Verified(id='104417389212345678901', email='owner@example.com')
        self.coerce_numbers = coerce_numbers
        self.documents: Dict[str, FakeDocument] = {}
        self.calls = defaultdict(int)
        self.failures: Dict[str, List[Exception]] = defaultdict(list)
        self.denied_documents = set()
        self._next_id = 1
        self._lock = threading.Lock()

    # --- test helpers ---

    def fail(self, method: str, error: Exception, times: int = 1) -> None:
        """Makes the next `times` calls of `method` raise `error`."""
        self.failures[method].extend([error] * times)

    def rate_limit(self, method: str, times: int = 1) -> None:
        self.fail(method, RateLimited("Quota exceeded"), times)

    def add_document(self, name: str, owner: str, tables: Dict[str, List[str]] = None) -> str:
        doc_id = self._new_id('doc')
        document = FakeDocument(doc_id, name, owner)
        self.documents[doc_id] = document
        for title, header in (tables or {}).items():
            sheet = self._add_sheet(document, title, max(DEFAULT_COLUMN_COUNT, len(header)))
            if header:
                sheet.rows.append(list(header))
        return doc_id

    def share(self, doc_id: str, email: str) -> None:
        self.documents[doc_id].writers.add(email)

    def rows(self, doc_id: str, table: str) -> List[List[Any]]:
        return self.documents[doc_id].sheets[table].rows

    def _new_id(self, prefix):
        with self._lock:
            value = f"{prefix}-{self._next_id}"
            self._next_id += 1
            return value

    def _add_sheet(self, document, title, column_count):
        sheet = FakeSheet(len(document.sheets) + 100, column_count)
        document.sheets[title] = sheet
        return sheet

    def _enter(self, method: str, doc_id: str = None) -> None:
        self.calls[method] += 1
        if self.failures[method]:
            raise self.failures[method].pop(0)
        if doc_id is not None:
            if doc_id not in self.documents:
                raise DocumentNotFound(f"Requested entity was not found: {doc_id}")
            if doc_id in self.denied_documents or self.user.email not in self.documents[doc_id].writers:
                raise PermissionDenied("The caller does not have permission")

    def _store_value(self, value):
        if self.coerce_numbers and isinstance(value, str) and _NUMERIC.match(value):
            return float(value)
        return value

    def _sheet(self, doc_id, table) -> FakeSheet:
        try:
            return self.documents[doc_id].sheets[table]
        except KeyError:
            raise RemoteStoreError(f"Unable to parse range: '{table}'!A:ZZ", status_code=400)

    # --- RemoteStoreClient surface ---

    def get_values(self, doc_id, table):
        self._enter('get_values', doc_id)
        rows = [list(r) for r in self._sheet(doc_id, table).rows]
        while rows and not any(v not in ('', None) for v in rows[-1]):
            rows.pop()
        return rows

    def get_header(self, doc_id, table):
        self._enter('get_header', doc_id)
        rows = self._sheet(doc_id, table).rows
        return [str(v) for v in rows[0]] if rows else []

    def append_rows(self, doc_id, table, rows):
        self._enter('append_rows', doc_id)
        sheet = self._sheet(doc_id, table)
        for row in rows:
            sheet.rows.append([self._store_value(v) for v in row])

    def update_row(self, doc_id, table, row_number, values):
        self._enter('update_row', doc_id)
        sheet = self._sheet(doc_id, table)
        while len(sheet.rows) < row_number:
            sheet.rows.append([])
        sheet.rows[row_number - 1] = [self._store_value(v) for v in values]

    def update_header_cells(self, doc_id, table, start_column, values):
        self._enter('update_header_cells', doc_id)
        sheet = self._sheet(doc_id, table)
        if not sheet.rows:
            sheet.rows.append([])
        header = sheet.rows[0]
        end = start_column - 1 + len(values)
        if end > sheet.column_count:
            raise RuntimeError(f"Range exceeds grid limits: {end} > {sheet.column_count}")
        while len(header) < end:
            header.append('')
        header[start_column - 1:end] = list(values)

    def list_tables(self, doc_id):
        self._enter('list_tables', doc_id)
        return {
            title: TableInfo(sheet.sheet_id, sheet.column_count)
            for title, sheet in self.documents[doc_id].sheets.items()
        }

    def add_tables(self, doc_id, tables):
        self._enter('add_tables', doc_id)
        document = self.documents[doc_id]
        for title, column_count in tables.items():
            self._add_sheet(document, title, max(DEFAULT_COLUMN_COUNT, column_count))

    def ensure_column_count(self, doc_id, sheet_id, current, required):
        self._enter('ensure_column_count', doc_id)
        for sheet in self.documents[doc_id].sheets.values():
            if sheet.sheet_id == sheet_id:
                sheet.column_count = max(sheet.column_count, required)

    def delete_row(self, doc_id, sheet_id, row_number):
        self._enter('delete_row', doc_id)
        for sheet in self.documents[doc_id].sheets.values():
            if sheet.sheet_id == sheet_id:
                del sheet.rows[row_number - 1]
                return

    def find_documents(self, name, owner_email=None):
        self._enter('find_documents')
        return [
            {'id': d.id, 'name': d.name, 'owners': [{'emailAddress': d.owner}]}
            for d in self.documents.values()
            if d.name == name and (owner_email is None or d.owner == owner_email)
        ]

    def list_shared_documents(self, name, email):
        self._enter('list_shared_documents')
        return [
            {'id': d.id, 'name': d.name, 'owners': [{'emailAddress': d.owner}]}
            for d in self.documents.values()
            if d.name == name and email in d.writers and d.owner != email
        ]

    def create_document(self, name):
        self._enter('create_document')
        doc_id = self._new_id('doc')
        document = FakeDocument(doc_id, name, self.user.email)
        self._add_sheet(document, 'Sheet1', DEFAULT_COLUMN_COUNT)
        self.documents[doc_id] = document
        return doc_id

    def whoami(self):
        self._enter('whoami')
        return self.user

    def create_permission(self, doc_id, email, role, notify=True):
        self._enter('create_permission', doc_id)
        document = self.documents[doc_id]
        document.writers.add(email)
        document.permissions.append(
            {'id': self._new_id('perm'), 'emailAddress': email, 'role': role, 'notify': notify}
        )

    def list_permissions(self, doc_id):
        self._enter('list_permissions', doc_id)
        return [dict(p) for p in self.documents[doc_id].permissions]

    def delete_permission(self, doc_id, permission_id):
        self._enter('delete_permission', doc_id)
        document = self.documents[doc_id]
        for p in list(document.permissions):
            if p['id'] == permission_id:
                document.permissions.remove(p)
                document.writers.discard(p.get('emailAddress'))
                return
        raise DocumentNotFound(f"Permission not found: {permission_id}")


def make_config(**overrides):
    """A stand-in for AppConfig with the default schema and 1s/5s backoff."""
    values = dict(
        document_name='APP_DB',
        table_schemas={name: list(cols) for name, cols in DEFAULT_TABLE_SCHEMAS.items()},
        retry_max_attempts=3,
        retry_base_delay=1,
        retry_max_delay=5,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def make_database(client=None, sleep=None, **overrides):
    """Builds a SheetsDatabase over the fake client; sleeps are recorded, not awaited."""
    client = client or FakeRemoteStoreClient()
    config = make_config(**overrides)
    retry = RetryPolicy.from_config(config, sleep=sleep or AsyncMock())
    return SheetsDatabase(client, config, retry=retry)
