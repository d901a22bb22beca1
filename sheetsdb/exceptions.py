"""Exceptions raised by the row store."""


class SheetsDBError(Exception):
    """Base class for every row store failure."""


class NotAuthenticated(SheetsDBError):
    """No usable credential (or a Pending principal) was supplied."""


class NotInitialized(SheetsDBError):
    """An operation ran before a backing document was resolved."""


class RateLimited(SheetsDBError):
    """The remote service rejected the call because of quota limits."""


class PermissionDenied(SheetsDBError):
    """The remote service refused access to the document."""


class DocumentNotFound(SheetsDBError):
    """The requested document does not exist or is not visible."""


class UnknownTable(SheetsDBError):
    """The schema has no table with the requested name."""

    def __init__(self, table):
        super().__init__(f"Unknown table: {table}")
        self.table = table


class RowNotFound(SheetsDBError):
    """An update/delete predicate matched no row."""

    def __init__(self, table, column, value):
        super().__init__(f"Row not found in {table} where {column} = {value!r}")
        self.table = table
        self.column = column
        self.value = value


class RemoteStoreError(SheetsDBError):
    """Any other remote failure; carries the remote message and status code."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code
