"""Finds or creates a principal's backing spreadsheet and keeps its tables in shape."""

import asyncio
import logging
from typing import Optional

from sheetsdb.exceptions import NotAuthenticated, RateLimited
from sheetsdb.utils.error_utils import log_error
from .identity import Verified
from .schema import SchemaRegistry, TableSchema

logger = logging.getLogger(__name__)


class DocumentResolver:
    """Resolves a principal to a document id, at most once per process.

    Concurrent callers of resolve() share a single in-flight task, so the
    discovery/creation sequence runs exactly once. The result is cached until
    reset() is called.
    """

    def __init__(self, client, schemas: SchemaRegistry, retry, document_name: str):
        self.client = client
        self.schemas = schemas
        self.retry = retry
        self.document_name = document_name
        self.cached_document_id: Optional[str] = None
        self._pending: Optional[asyncio.Task] = None

    async def resolve(self, principal) -> str:
        if not isinstance(principal, Verified):
            raise NotAuthenticated("A verified principal is required to resolve a document")

        if self.cached_document_id is not None:
            return self.cached_document_id

        if self._pending is None:
            logger.debug(f"Starting document resolution for {principal.email}")
            self._pending = asyncio.ensure_future(self._find_or_create(principal))
        pending = self._pending
        try:
            doc_id = await asyncio.shield(pending)
        except Exception as e:
            # Let a later call start over
            if self._pending is pending:
                self._pending = None
            log_error(f"Document resolution failed: {e}", principal=principal)
            raise
        # A reset() while this was in flight must not be undone
        if self._pending is pending:
            self.cached_document_id = doc_id
        return doc_id

    def reset(self) -> None:
        """Forgets the cached document (e.g. after sign-out)."""
        self.cached_document_id = None
        self._pending = None

    async def _find_or_create(self, principal: Verified) -> str:
        files = await self.retry.run(self.client.find_documents, self.document_name, principal.email)
        if files:
            doc_id = files[0]['id']
            if len(files) > 1:
                logger.warning(f"{len(files)} documents named '{self.document_name}' owned by {principal.email}; using {doc_id}")
            logger.info(f"Found existing document owned by {principal.email}: {doc_id}")
            await self.ensure_tables(doc_id)
            return doc_id

        logger.info(f"No document found for {principal.email}. Creating '{self.document_name}'...")
        doc_id = await self.retry.run(self.client.create_document, self.document_name)
        await self._create_all_tables(doc_id)
        return doc_id

    async def _create_all_tables(self, doc_id: str) -> None:
        tables = self.schemas.tables()
        await self.retry.run(self.client.add_tables, doc_id, {t.name: len(t.columns) for t in tables})
        for schema in tables:
            await self.retry.run(self.client.update_header_cells, doc_id, schema.name, 1, list(schema.columns))
        logger.info(f"Created {len(tables)} tables with headers in {doc_id}")

    async def ensure_tables(self, doc_id: str) -> None:
        """Adds missing tables and missing header columns. Best effort.

        Running out of rate-limit retries is logged and ignored; every other
        error propagates.
        """
        try:
            await self._repair(doc_id)
        except RateLimited:
            logger.warning(f"Rate limited while validating tables of {doc_id}. Continuing anyway...")

    async def _repair(self, doc_id: str) -> None:
        existing = await self.retry.run(self.client.list_tables, doc_id)
        missing = [t for t in self.schemas.tables() if t.name not in existing]
        if missing:
            logger.warning(f"Missing tables detected in {doc_id}: {', '.join(t.name for t in missing)}. Recreating...")
            await self.retry.run(self.client.add_tables, doc_id, {t.name: len(t.columns) for t in missing})
            for schema in missing:
                await self.retry.run(self.client.update_header_cells, doc_id, schema.name, 1, list(schema.columns))

        for schema in self.schemas.tables():
            if schema.name in existing:
                await self._repair_header(doc_id, schema, existing[schema.name])
        logger.info(f"All required tables validated in {doc_id}")

    async def _repair_header(self, doc_id: str, schema: TableSchema, info) -> None:
        header = await self.retry.run(self.client.get_header, doc_id, schema.name)
        if not header:
            await self.retry.run(self.client.update_header_cells, doc_id, schema.name, 1, list(schema.columns))
            logger.info(f"Wrote missing header row for {schema.name}")
            return

        missing = schema.missing_columns(header)
        if not missing:
            return

        # Only empty or trailing header cells are written; nothing already there moves
        placements = header_placements(schema, header, missing)
        required = max(len(header), placements[-1][0])
        await self.retry.run(self.client.ensure_column_count, doc_id, info.sheet_id, info.column_count, required)
        for start_column, names in column_runs(placements):
            await self.retry.run(self.client.update_header_cells, doc_id, schema.name, start_column, names)
        logger.info(f"Headers extended for {schema.name}. Added: {', '.join(missing)}")


def header_placements(schema: TableSchema, header, missing):
    """Sorted (1-based position, column) pairs for columns absent from an existing header.

    A column goes to its schema position when that cell is empty; otherwise it
    is appended after the last used position.
    """
    placed = {}
    displaced = []
    for column in missing:
        position = schema.columns.index(column) + 1
        if position > len(header) or header[position - 1] == '':
            placed[position] = column
        else:
            displaced.append(column)

    next_free = max([len(header)] + list(placed)) + 1
    for column in displaced:
        placed[next_free] = column
        next_free += 1
    return sorted(placed.items())


def column_runs(placements):
    """Groups sorted (position, column) pairs into (start position, names) runs of adjacent cells."""
    runs = []
    for position, column in placements:
        if runs and runs[-1][0] + len(runs[-1][1]) == position:
            runs[-1][1].append(column)
        else:
            runs.append((position, [column]))
    return runs
