import logging
from typing import Any, Dict, Optional

from gspread.exceptions import APIError

from sheetsdb.exceptions import (
    NotAuthenticated, PermissionDenied, RateLimited, DocumentNotFound,
    RemoteStoreError, SheetsDBError,
)

logger = logging.getLogger(__name__)

# Reasons Google reports (sometimes with a 403) when a quota is exhausted
_RATE_LIMIT_REASONS = {'rateLimitExceeded', 'userRateLimitExceeded', 'quotaExceeded'}


def _extract_error(e: APIError) -> Dict[str, Any]:
    """Pulls the `error` object out of an APIError across gspread versions."""
    error = getattr(e, 'error', None)
    if isinstance(error, dict):
        return error
    if e.args and isinstance(e.args[0], dict):
        return e.args[0]
    response = getattr(e, 'response', None)
    try:
        body = response.json()
    except (AttributeError, ValueError):
        return {}
    error = body.get('error') if isinstance(body, dict) else None
    return error if isinstance(error, dict) else {}


def translate_api_error(e: APIError) -> SheetsDBError:
    """Maps a gspread APIError onto the row store's exception taxonomy."""
    error = _extract_error(e)
    response = getattr(e, 'response', None)
    status_code = getattr(response, 'status_code', None)
    if not isinstance(status_code, int):
        status_code = error.get('code') if isinstance(error.get('code'), int) else None

    message = error.get('message') or str(e)
    status = error.get('status') or ''
    reasons = {d.get('reason') for d in error.get('errors', []) if isinstance(d, dict)}

    if status_code == 429 or status == 'RESOURCE_EXHAUSTED' or reasons & _RATE_LIMIT_REASONS:
        return RateLimited(message)
    if status_code == 401 or status == 'UNAUTHENTICATED':
        return NotAuthenticated(message)
    if status_code == 403 or status == 'PERMISSION_DENIED':
        return PermissionDenied(message)
    if status_code == 404 or status == 'NOT_FOUND':
        return DocumentNotFound(message)
    return RemoteStoreError(message, status_code=status_code)


def log_error(message: str, principal: Optional[Any] = None, document_id: Optional[str] = None, exc_info=False):
    """Logs an error message, optionally including principal/document info and exception details."""
    log_message = f"ERROR: {message}"
    if principal is not None:
        log_message += f" | Principal: {getattr(principal, 'email', principal)}"
    if document_id:
        log_message += f" | Document: {document_id}"
    logger.error(log_message, exc_info=exc_info)
