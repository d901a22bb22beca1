"""Table schemas: ordered, append-only column lists per table."""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from sheetsdb.exceptions import UnknownTable


def is_identifier_column(column: str) -> bool:
    """`id` and any `*_id` column must travel as text end-to-end."""
    return column == 'id' or column.endswith('_id')


@dataclass(frozen=True)
class TableSchema:
    name: str
    columns: Tuple[str, ...]

    def missing_columns(self, existing_header: Iterable[str]) -> List[str]:
        """Schema columns absent from an existing header row, in schema order."""
        present = set(existing_header)
        return [c for c in self.columns if c not in present]


class SchemaRegistry:
    """Lookup of TableSchema by table name, in declaration order."""

    def __init__(self, mapping: Dict[str, Iterable[str]]):
        self._schemas = {name: TableSchema(name, tuple(cols)) for name, cols in mapping.items()}

    def get(self, table: str) -> TableSchema:
        try:
            return self._schemas[table]
        except KeyError:
            raise UnknownTable(table) from None

    def __contains__(self, table) -> bool:
        return table in self._schemas

    def tables(self) -> List[TableSchema]:
        return list(self._schemas.values())

    def names(self) -> List[str]:
        return list(self._schemas)
