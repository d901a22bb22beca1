"""Spreadsheet-backed row store.

Provides:
- Typed CRUD (select/insert/update/delete) over schema-enforced tables.
- Idempotent bootstrap of the principal's backing spreadsheet.
- Switching between the principal's own and a shared spreadsheet.
- Granting, listing and revoking write access.
"""

# Public API for the sheets service

from sheetsdb.exceptions import (
    SheetsDBError, NotAuthenticated, NotInitialized, RateLimited, PermissionDenied,
    DocumentNotFound, UnknownTable, RowNotFound, RemoteStoreError,
)
from .schema import TableSchema, SchemaRegistry, is_identifier_column
from .codec import RowCodec
from .retry import RetryPolicy
from .identity import Verified, Pending, Principal, IdentityLinker
from .resolver import DocumentResolver
from .tenant import TenantRouter
from .store import TableStore, Eq, Range, Order
from .access import AccessController, Grant, SharedStore
from .database import SheetsDatabase

__all__ = [
    'SheetsDBError', 'NotAuthenticated', 'NotInitialized', 'RateLimited', 'PermissionDenied',
    'DocumentNotFound', 'UnknownTable', 'RowNotFound', 'RemoteStoreError',
    'TableSchema', 'SchemaRegistry', 'is_identifier_column',
    'RowCodec',
    'RetryPolicy',
    'Verified', 'Pending', 'Principal', 'IdentityLinker',
    'DocumentResolver',
    'TenantRouter',
    'TableStore', 'Eq', 'Range', 'Order',
    'AccessController', 'Grant', 'SharedStore',
    'SheetsDatabase',
]
