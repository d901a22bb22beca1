"""CRUD over the tables of the active document.

Each call is a one-shot request/response against the remote service; nothing
is cached locally. update() and delete() locate their row from a fresh read
every time, because a concurrent delete shifts the positions of every later
row. Between that read and the write there is no lock or version check, so
concurrent writers resolve as last-write-wins.
"""

import functools
import logging
from collections import namedtuple
from typing import Any, Dict, Iterable, List, Optional, Union

from sheetsdb.config.config import FIRST_DATA_ROW
from sheetsdb.utils.ids import generate_row_id
from .codec import RowCodec
from sheetsdb.exceptions import NotInitialized, RowNotFound, RemoteStoreError

logger = logging.getLogger(__name__)

Eq = namedtuple('Eq', ['column', 'value'])
Range = namedtuple('Range', ['column', 'value'])
Order = namedtuple('Order', ['column', 'ascending'], defaults=[True])


def _as_pair(option, factory):
    """Accepts a namedtuple, a (column, value) tuple or a {'column', 'value'} dict."""
    if option is None:
        return None
    if isinstance(option, dict):
        return factory(option['column'], option['value'])
    return factory(*option)


def _as_order(option) -> Optional[Order]:
    if option is None:
        return None
    if isinstance(option, str):
        return Order(option)
    if isinstance(option, dict):
        return Order(option['column'], option.get('ascending', True))
    return Order(*option)


def _as_text(value: Any) -> str:
    """String form used for loose equality, tolerant of number/string id mismatches."""
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _is_blank(record: Dict[str, Any]) -> bool:
    return all(v is None for v in record.values())


def values_match(value: Any, expected: Any) -> bool:
    return value == expected or _as_text(value) == _as_text(expected)


def compare_values(a: Any, b: Any) -> int:
    """Generic three-way comparison; None first, mixed types by string form."""
    if a is None or b is None:
        return (a is not None) - (b is not None)
    try:
        return (a > b) - (a < b)
    except TypeError:
        a, b = _as_text(a), _as_text(b)
        return (a > b) - (a < b)


class TableStore:
    """select/insert/update/delete against the router's active document."""

    def __init__(self, client, codec: RowCodec, retry, router):
        self.client = client
        self.codec = codec
        self.retry = retry
        self.router = router

    def _document_id(self) -> str:
        doc_id = self.router.current()
        if not doc_id:
            raise NotInitialized("Database not initialized")
        return doc_id

    def _decode_table(self, table: str, values: List[List[Any]]) -> List[Dict[str, Any]]:
        if not values:
            return []
        header = [str(h) for h in values[0]]
        return self.codec.decode_rows(table, header, values[1:])

    async def _read_for_write(self, doc_id: str, table: str):
        """Fresh read of a table: (header, raw data rows, decoded records)."""
        values = await self.retry.run(self.client.get_values, doc_id, table)
        if not values:
            return [], [], []
        header = [str(h) for h in values[0]]
        raw_rows = values[1:]
        return header, raw_rows, self.codec.decode_rows(table, header, raw_rows)

    @staticmethod
    def _locate(rows: List[Dict[str, Any]], eq: Eq) -> int:
        """Index of the first matching row. Blank rows never match but keep their position."""
        for index, row in enumerate(rows):
            if not _is_blank(row) and values_match(row.get(eq.column), eq.value):
                return index
        return -1

    async def select(self, table: str, eq=None, gte=None, lt=None, order=None) -> List[Dict[str, Any]]:
        """Reads a whole table and filters/sorts it locally.

        Filters apply in order: eq, gte, lt, then the sort. A read that stays
        rate limited after all retries yields an empty list.
        """
        self.codec.schemas.get(table)
        doc_id = self._document_id()
        eq, gte, lt, order = _as_pair(eq, Eq), _as_pair(gte, Range), _as_pair(lt, Range), _as_order(order)

        values = await self.retry.run_or_default([], self.client.get_values, doc_id, table)
        if not values:
            logger.debug(f"No rows found in {table}")
            return []

        rows = [r for r in self._decode_table(table, values) if not _is_blank(r)]

        if eq is not None:
            rows = [r for r in rows if values_match(r.get(eq.column), eq.value)]
        if gte is not None:
            rows = [r for r in rows if r.get(gte.column) not in (None, '') and compare_values(r[gte.column], gte.value) >= 0]
        if lt is not None:
            rows = [r for r in rows if r.get(lt.column) not in (None, '') and compare_values(r[lt.column], lt.value) < 0]
        if order is not None:
            rows.sort(
                key=functools.cmp_to_key(lambda a, b: compare_values(a.get(order.column), b.get(order.column))),
                reverse=not order.ascending,
            )

        logger.debug(f"Selected {len(rows)} row(s) from {table}")
        return rows

    async def insert(self, table: str, data: Union[Dict[str, Any], Iterable[Dict[str, Any]]]) -> List[Dict[str, Any]]:
        """Appends one or more records in a single call. Returns them with their ids."""
        self.codec.schemas.get(table)
        doc_id = self._document_id()

        records = [dict(data)] if isinstance(data, dict) else [dict(item) for item in data]
        if not records:
            return []

        for record in records:
            if not record.get('id'):
                record['id'] = generate_row_id()
            if record.get('user_id') is not None:
                record['user_id'] = str(record['user_id'])

        # Cells follow the sheet's header, which may differ from schema order
        header = await self.retry.run(self.client.get_header, doc_id, table)
        rows = [self.codec.encode_for_header(table, header, record) for record in records]
        await self.retry.run(self.client.append_rows, doc_id, table, rows)
        logger.info(f"Inserted {len(rows)} row(s) into {table}")
        return records

    async def update(self, table: str, data: Dict[str, Any], eq) -> Dict[str, Any]:
        """Merges `data` onto the first row matching eq and rewrites that whole row."""
        self.codec.schemas.get(table)
        doc_id = self._document_id()
        eq = _as_pair(eq, Eq)

        header, raw_rows, rows = await self._read_for_write(doc_id, table)
        index = self._locate(rows, eq)
        if index == -1:
            raise RowNotFound(table, eq.column, eq.value)

        merged = {**rows[index], **data}
        row_number = index + FIRST_DATA_ROW
        values = self.codec.encode_for_header(table, header, merged, existing=raw_rows[index])
        await self.retry.run(self.client.update_row, doc_id, table, row_number, values)
        logger.info(f"Updated row {row_number} of {table} where {eq.column} = {eq.value!r}")
        return merged

    async def delete(self, table: str, eq) -> None:
        """Physically removes the first row matching eq."""
        self.codec.schemas.get(table)
        doc_id = self._document_id()
        eq = _as_pair(eq, Eq)

        _, _, rows = await self._read_for_write(doc_id, table)
        index = self._locate(rows, eq)
        if index == -1:
            raise RowNotFound(table, eq.column, eq.value)

        tables = await self.retry.run(self.client.list_tables, doc_id)
        if table not in tables:
            raise RemoteStoreError(f"Sheet {table} not found in {doc_id}")

        row_number = index + FIRST_DATA_ROW
        await self.retry.run(self.client.delete_row, doc_id, tables[table].sheet_id, row_number)
        logger.info(f"Deleted row {row_number} of {table} where {eq.column} = {eq.value!r}")
