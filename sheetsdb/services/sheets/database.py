"""Wires the row store components together for one process."""

import logging
from typing import Any, Dict, List, Optional

from sheetsdb.config.config_loader import get_config
from .access import AccessController, Grant, SharedStore
from .client import RemoteStoreClient
from .codec import RowCodec
from .identity import IdentityLinker, Verified
from .resolver import DocumentResolver
from .retry import RetryPolicy
from .schema import SchemaRegistry
from .store import TableStore
from .tenant import TenantRouter

logger = logging.getLogger(__name__)


class SheetsDatabase:
    """One principal's view of the spreadsheet-backed database.

    Each instance owns its own resolver cache, so independent instances
    (e.g. in tests) never share state.
    """

    def __init__(self, client, config, retry: Optional[RetryPolicy] = None):
        self.config = config
        self.client = client
        self.schemas = SchemaRegistry(config.table_schemas)
        self.codec = RowCodec(self.schemas)
        self.retry = retry or RetryPolicy.from_config(config)
        self.resolver = DocumentResolver(client, self.schemas, self.retry, config.document_name)
        self.router = TenantRouter(self.resolver)
        self.store = TableStore(client, self.codec, self.retry, self.router)
        self.access = AccessController(client, self.retry, self.router, self.codec, config.document_name)
        self.identity = IdentityLinker(self.store)

    @classmethod
    def from_config(cls, config=None) -> 'SheetsDatabase':
        config = config or get_config()
        return cls(RemoteStoreClient.from_config(config), config)

    async def open(self, principal) -> str:
        """Resolves the principal's own document and makes it active."""
        doc_id = await self.resolver.resolve(principal)
        self.router.set_original(doc_id)
        return doc_id

    async def whoami(self) -> Verified:
        return await self.retry.run(self.client.whoami)

    def reset(self) -> None:
        """Forgets the resolved and active documents (sign-out)."""
        self.resolver.reset()
        self.router.reset()
        logger.info("Database state reset")

    # --- Rows ---

    async def select(self, table: str, eq=None, gte=None, lt=None, order=None) -> List[Dict[str, Any]]:
        return await self.store.select(table, eq=eq, gte=gte, lt=lt, order=order)

    async def insert(self, table: str, data) -> List[Dict[str, Any]]:
        return await self.store.insert(table, data)

    async def update(self, table: str, data: Dict[str, Any], eq) -> Dict[str, Any]:
        return await self.store.update(table, data, eq)

    async def delete(self, table: str, eq) -> None:
        await self.store.delete(table, eq)

    # --- Tenancy ---

    async def switch_to(self, doc_id: Optional[str]) -> str:
        return await self.router.switch_to(doc_id)

    def current(self) -> Optional[str]:
        return self.router.current()

    def original(self) -> Optional[str]:
        return self.router.original()

    # --- Access ---

    async def grant(self, email: str) -> None:
        await self.access.grant(email)

    async def list_grants(self) -> List[Grant]:
        return await self.access.list_grants()

    async def revoke(self, grant_id: str) -> None:
        await self.access.revoke(grant_id)

    async def list_shared_stores(self, principal: Verified) -> List[SharedStore]:
        return await self.access.list_shared_stores(principal)
