"""Conversion between records and flat rows of cell strings.

Sheets infers types from cell content, so an 18-digit identifier written as
plain digits comes back as a float and loses precision. Identifier-class
columns (`id`, `*_id`) are therefore written with a leading text marker and
always read back as strings. Everything else is coerced on read: empty cells
become None, "true"/"false" become bools and numeric text becomes int/float.
"""

import json
import logging
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence

from sheetsdb.config.config import TEXT_PREFIX
from .schema import SchemaRegistry, is_identifier_column

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r'^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$')
_INT_RE = re.compile(r'^[+-]?\d+$')


def encode_value(column: str, value: Any) -> str:
    """Encodes a single cell value for the given column."""
    if value is None:
        return ''
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value)
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (datetime, date)):
        value = value.isoformat()
    text = str(value)
    if is_identifier_column(column) and text != '':
        return f"{TEXT_PREFIX}{text}"
    return text


def decode_value(column: str, raw: Any) -> Any:
    """Decodes a single cell value read from the sheet."""
    if raw is None or raw == '':
        return None

    if is_identifier_column(column):
        if isinstance(raw, float) and raw.is_integer():
            # A human typed digits straight into the cell
            raw = int(raw)
        text = str(raw)
        if text.startswith(TEXT_PREFIX):
            text = text[len(TEXT_PREFIX):]
        return text if text != '' else None

    # Unformatted reads may already hand back typed values
    if isinstance(raw, (bool, int, float)):
        return raw

    text = str(raw)
    if text == 'true':
        return True
    if text == 'false':
        return False
    if _NUMBER_RE.match(text):
        if _INT_RE.match(text):
            return int(text)
        return float(text)
    return text


class RowCodec:
    """Encodes records to schema-ordered rows and decodes them back."""

    def __init__(self, schemas: SchemaRegistry):
        self.schemas = schemas

    def encode(self, table: str, record: Dict[str, Any]) -> List[str]:
        schema = self.schemas.get(table)
        return [encode_value(column, record.get(column)) for column in schema.columns]

    def encode_for_header(self, table: str, header: Sequence[str], record: Dict[str, Any],
                          existing: Optional[Sequence[Any]] = None) -> List[Any]:
        """Encodes a record positioned by the sheet's own header row.

        Cells under header columns the schema does not declare keep their
        `existing` values. Without a header, falls back to schema order.
        """
        schema = self.schemas.get(table)
        if not header:
            return self.encode(table, record)

        row: List[Any] = list(existing or [])
        if len(row) < len(header):
            row.extend([''] * (len(header) - len(row)))
        for index, column in enumerate(header):
            if column in schema.columns:
                row[index] = encode_value(column, record.get(column))

        unplaced = [c for c in schema.columns if c not in header and record.get(c) is not None]
        if unplaced:
            logger.warning(f"Columns missing from the {table} header were not written: {', '.join(unplaced)}")
        return row

    def decode(self, table: str, raw: Sequence[Any]) -> Dict[str, Any]:
        """Decodes a row laid out in schema column order."""
        schema = self.schemas.get(table)
        return self._decode_with_header(schema.columns, raw, allowed=schema.columns)

    def decode_rows(self, table: str, header: Sequence[str], rows: Sequence[Sequence[Any]]) -> List[Dict[str, Any]]:
        """Decodes data rows positioned by the sheet's own header row.

        Columns in the header that the schema does not declare are ignored.
        Schema columns missing from the header decode to None.
        """
        schema = self.schemas.get(table)
        return [self._decode_with_header(header, row, allowed=schema.columns) for row in rows]

    @staticmethod
    def _decode_with_header(header: Sequence[str], raw: Sequence[Any], allowed: Sequence[str]) -> Dict[str, Any]:
        record: Dict[str, Optional[Any]] = {column: None for column in allowed}
        allowed_set = set(allowed)
        for index, column in enumerate(header):
            if column not in allowed_set:
                continue
            value = raw[index] if index < len(raw) else None
            record[column] = decode_value(column, value)
        return record
