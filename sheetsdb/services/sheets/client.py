"""Handles Google Sheets/Drive access through gspread and spreadsheet caching.

Every method is blocking; callers run them on worker threads. gspread and
Drive failures are translated into the row store's exception taxonomy.
"""

import functools
import logging
import json
import threading
from collections import namedtuple
from typing import Any, Dict, List, Optional, Sequence

import gspread
from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials as UserCredentials
from gspread.exceptions import APIError, SpreadsheetNotFound

from sheetsdb.config.config import SCOPES, SPREADSHEET_MIME_TYPE, FULL_ROW_RANGE, HEADER_ROW
from sheetsdb.config.config_loader import CREDENTIALS_SERVICE_ACCOUNT, CREDENTIALS_AUTHORIZED_USER
from sheetsdb.utils.error_utils import translate_api_error
from sheetsdb.exceptions import NotAuthenticated, DocumentNotFound, RemoteStoreError
from .identity import Verified

logger = logging.getLogger(__name__)

DRIVE_FILES_URL = 'https://www.googleapis.com/drive/v3/files'
DRIVE_ABOUT_URL = 'https://www.googleapis.com/drive/v3/about'

# Default grid width of a new sheet
DEFAULT_COLUMN_COUNT = 26

TableInfo = namedtuple('TableInfo', ['sheet_id', 'column_count'])


def _quote_title(title: str) -> str:
    return "'" + title.replace("'", "''") + "'"


def _quote_query(value: str) -> str:
    return value.replace('\\', '\\\\').replace("'", "\\'")


def column_letter(column_number: int) -> str:
    """1-based column number to A1 letters (1 -> A, 27 -> AA)."""
    return gspread.utils.rowcol_to_a1(1, column_number)[:-1]


def translate_errors(method):
    """Re-raises gspread failures as row store exceptions."""
    @functools.wraps(method)
    def wrapper(*args, **kwargs):
        try:
            return method(*args, **kwargs)
        except APIError as e:
            raise translate_api_error(e) from e
        except SpreadsheetNotFound as e:
            raise DocumentNotFound(str(e) or "Spreadsheet not found") from e
        except RefreshError as e:
            raise NotAuthenticated(f"Credential refresh failed: {e}") from e
    return wrapper


def build_credentials(config):
    """Builds google-auth credentials from the loaded configuration.

    Raises:
        NotAuthenticated: If no credential is configured or it cannot be used.
        ValueError: If the service account JSON is malformed.
    """
    if config.credentials_kind == CREDENTIALS_SERVICE_ACCOUNT:
        try:
            service_account_info = json.loads(config.service_account_json_string)
        except json.JSONDecodeError as e:
            logger.critical(f"Failed to parse service account JSON from config: {e}")
            raise ValueError("Invalid service account JSON in configuration") from e
        return service_account.Credentials.from_service_account_info(service_account_info, scopes=SCOPES)

    if config.credentials_kind == CREDENTIALS_AUTHORIZED_USER:
        creds = UserCredentials.from_authorized_user_file(config.oauth_token_file, SCOPES)
        if not creds.valid:
            if creds.expired and creds.refresh_token:
                try:
                    creds.refresh(Request())
                except RefreshError as e:
                    raise NotAuthenticated(f"Stored OAuth token could not be refreshed: {e}") from e
            else:
                raise NotAuthenticated("Stored OAuth token is invalid and has no refresh token")
        return creds

    raise NotAuthenticated("No Google credentials configured")


class RemoteStoreClient:
    """Range/structural/discovery/permission operations against Sheets and Drive."""

    def __init__(self, gc: gspread.Client):
        self._gc = gc
        self._spreadsheet_cache: Dict[str, gspread.Spreadsheet] = {}
        self._spreadsheet_cache_lock = threading.Lock()

    @classmethod
    def from_config(cls, config) -> 'RemoteStoreClient':
        logger.info("Initializing gspread client...")
        creds = build_credentials(config)
        client = cls(gspread.authorize(creds))
        logger.info("Successfully authorized gspread client.")
        return client

    # --- Spreadsheet handles ---

    def _spreadsheet(self, doc_id: str) -> gspread.Spreadsheet:
        cached = self._spreadsheet_cache.get(doc_id)
        if cached is not None:
            return cached
        with self._spreadsheet_cache_lock:
            cached = self._spreadsheet_cache.get(doc_id)
            if cached is not None:
                return cached
            logger.debug(f"Spreadsheet cache miss for {doc_id}. Opening...")
            spreadsheet = self._gc.open_by_key(doc_id)
            self._spreadsheet_cache[doc_id] = spreadsheet
            return spreadsheet

    # --- Range operations ---

    @translate_errors
    def get_values(self, doc_id: str, table: str) -> List[List[Any]]:
        """All rows of a table, header included."""
        range_name = f"{_quote_title(table)}!{FULL_ROW_RANGE}"
        response = self._spreadsheet(doc_id).values_get(
            range_name, params={'valueRenderOption': 'UNFORMATTED_VALUE'}
        )
        return response.get('values', [])

    @translate_errors
    def get_header(self, doc_id: str, table: str) -> List[str]:
        range_name = f"{_quote_title(table)}!{HEADER_ROW}:{HEADER_ROW}"
        response = self._spreadsheet(doc_id).values_get(range_name)
        values = response.get('values', [])
        return [str(v) for v in values[0]] if values else []

    @translate_errors
    def append_rows(self, doc_id: str, table: str, rows: Sequence[Sequence[Any]]) -> None:
        """Appends below the last used row, so blank rows inside the table are never filled."""
        spreadsheet = self._spreadsheet(doc_id)
        used = spreadsheet.values_get(f"{_quote_title(table)}!{FULL_ROW_RANGE}").get('values', [])
        range_name = f"{_quote_title(table)}!A{max(len(used), HEADER_ROW) + 1}"
        spreadsheet.values_append(
            range_name,
            params={'valueInputOption': 'RAW', 'insertDataOption': 'INSERT_ROWS'},
            body={'values': [list(r) for r in rows]},
        )
        logger.debug(f"Appended {len(rows)} row(s) to {table} in {doc_id}")

    @translate_errors
    def update_row(self, doc_id: str, table: str, row_number: int, values: Sequence[str]) -> None:
        """Overwrites one row starting at column A (row_number is 1-based)."""
        range_name = f"{_quote_title(table)}!A{row_number}"
        self._spreadsheet(doc_id).values_update(
            range_name, params={'valueInputOption': 'RAW'}, body={'values': [list(values)]}
        )
        logger.debug(f"Updated row {row_number} of {table} in {doc_id}")

    @translate_errors
    def update_header_cells(self, doc_id: str, table: str, start_column: int, values: Sequence[str]) -> None:
        """Writes a contiguous slice of row 1 starting at the 1-based start_column."""
        range_name = f"{_quote_title(table)}!{column_letter(start_column)}{HEADER_ROW}"
        self._spreadsheet(doc_id).values_update(
            range_name, params={'valueInputOption': 'RAW'}, body={'values': [list(values)]}
        )

    # --- Structural operations ---

    @translate_errors
    def list_tables(self, doc_id: str) -> Dict[str, TableInfo]:
        metadata = self._spreadsheet(doc_id).fetch_sheet_metadata()
        tables = {}
        for sheet in metadata.get('sheets', []):
            props = sheet.get('properties', {})
            grid = props.get('gridProperties', {})
            tables[props.get('title')] = TableInfo(props.get('sheetId'), grid.get('columnCount', DEFAULT_COLUMN_COUNT))
        return tables

    @translate_errors
    def add_tables(self, doc_id: str, tables: Dict[str, int]) -> None:
        """Adds one sheet per title in a single batch; values are column counts."""
        if not tables:
            return
        requests = [
            {'addSheet': {'properties': {
                'title': title,
                'gridProperties': {'columnCount': max(DEFAULT_COLUMN_COUNT, column_count)},
            }}}
            for title, column_count in tables.items()
        ]
        self._spreadsheet(doc_id).batch_update({'requests': requests})
        logger.info(f"Added tables {', '.join(tables)} to {doc_id}")

    @translate_errors
    def ensure_column_count(self, doc_id: str, sheet_id: int, current: int, required: int) -> None:
        """Widens a sheet so that `required` columns fit."""
        if current >= required:
            return
        self._spreadsheet(doc_id).batch_update({'requests': [
            {'appendDimension': {'sheetId': sheet_id, 'dimension': 'COLUMNS', 'length': required - current}}
        ]})

    @translate_errors
    def delete_row(self, doc_id: str, sheet_id: int, row_number: int) -> None:
        """Physically removes one row (row_number is 1-based)."""
        self._spreadsheet(doc_id).batch_update({'requests': [
            {'deleteDimension': {'range': {
                'sheetId': sheet_id,
                'dimension': 'ROWS',
                'startIndex': row_number - 1,
                'endIndex': row_number,
            }}}
        ]})
        logger.debug(f"Deleted row {row_number} of sheet {sheet_id} in {doc_id}")

    # --- Discovery ---

    def _drive_request(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        response = self._gc.http_client.request('get', url, params=params)
        return response.json()

    def _list_files(self, query: str, **extra: Any) -> List[Dict[str, Any]]:
        files = []
        params = {
            'q': query,
            'fields': 'nextPageToken, files(id, name, owners(emailAddress, displayName))',
            'pageSize': 100,
        }
        params.update(extra)
        while True:
            body = self._drive_request(DRIVE_FILES_URL, params)
            files.extend(body.get('files', []))
            token = body.get('nextPageToken')
            if not token:
                return files
            params['pageToken'] = token

    @translate_errors
    def find_documents(self, name: str, owner_email: Optional[str] = None) -> List[Dict[str, Any]]:
        """Spreadsheets called `name`, optionally restricted to one owner."""
        query = f"name='{_quote_query(name)}' and mimeType='{SPREADSHEET_MIME_TYPE}' and trashed=false"
        if owner_email:
            query += f" and '{_quote_query(owner_email)}' in owners"
        return self._list_files(query)

    @translate_errors
    def list_shared_documents(self, name: str, email: str) -> List[Dict[str, Any]]:
        """Spreadsheets called `name` that `email` can write but does not own."""
        query = (
            f"name='{_quote_query(name)}' and mimeType='{SPREADSHEET_MIME_TYPE}' and trashed=false"
            f" and '{_quote_query(email)}' in writers"
        )
        files = self._list_files(
            query, includeItemsFromAllDrives=True, supportsAllDrives=True, corpora='allDrives'
        )
        shared = []
        for f in files:
            owners = f.get('owners') or []
            owner_email = owners[0].get('emailAddress') if owners else None
            if owner_email and owner_email != email:
                shared.append(f)
        return shared

    @translate_errors
    def create_document(self, name: str) -> str:
        spreadsheet = self._gc.create(name)
        if not spreadsheet.id:
            raise RemoteStoreError("Failed to create spreadsheet: no ID returned")
        with self._spreadsheet_cache_lock:
            self._spreadsheet_cache[spreadsheet.id] = spreadsheet
        logger.info(f"Spreadsheet '{name}' created with ID: {spreadsheet.id}")
        return spreadsheet.id

    @translate_errors
    def whoami(self) -> Verified:
        """The principal the credentials belong to."""
        body = self._drive_request(DRIVE_ABOUT_URL, {'fields': 'user(permissionId, emailAddress)'})
        user = body.get('user') or {}
        if not user.get('emailAddress'):
            raise NotAuthenticated("Could not determine the signed-in user")
        return Verified(id=user.get('permissionId', ''), email=user['emailAddress'])

    # --- Permissions ---

    @translate_errors
    def create_permission(self, doc_id: str, email: str, role: str, notify: bool = True) -> None:
        self._gc.insert_permission(doc_id, value=email, perm_type='user', role=role, notify=notify)

    @translate_errors
    def list_permissions(self, doc_id: str) -> List[Dict[str, Any]]:
        return self._gc.list_permissions(doc_id)

    @translate_errors
    def delete_permission(self, doc_id: str, permission_id: str) -> None:
        self._gc.remove_permission(doc_id, permission_id)
