"""Write-access delegation for the principal's own document."""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

from sheetsdb.config.config import GRANT_ROLE, OWNER_ROLE
from .codec import RowCodec
from sheetsdb.exceptions import NotInitialized, SheetsDBError
from .identity import PROFILES_TABLE, Verified

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Grant:
    id: str
    email: str
    role: str
    display_name: Optional[str] = None


@dataclass(frozen=True)
class SharedStore:
    """A document another principal has shared with the caller."""
    id: str
    name: str
    owner_email: Optional[str] = None
    owner_name: Optional[str] = None


class AccessController:
    """grant/list/revoke on the router's original document."""

    def __init__(self, client, retry, router, codec: RowCodec, document_name: str):
        self.client = client
        self.retry = retry
        self.router = router
        self.codec = codec
        self.document_name = document_name

    def _original_document(self) -> str:
        doc_id = self.router.original()
        if not doc_id:
            raise NotInitialized("Database not initialized")
        return doc_id

    async def grant(self, email: str) -> None:
        """Gives `email` write access; Drive notifies the grantee."""
        doc_id = self._original_document()
        await self.retry.run(self.client.create_permission, doc_id, email.strip(), GRANT_ROLE, True)
        logger.info(f"Access granted to {email} on {doc_id}")

    async def list_grants(self) -> List[Grant]:
        doc_id = self._original_document()
        permissions = await self.retry.run(self.client.list_permissions, doc_id)
        return [
            Grant(
                id=p['id'],
                email=p.get('emailAddress') or '',
                role=p.get('role', ''),
                display_name=p.get('displayName'),
            )
            for p in permissions
            if p.get('role') != OWNER_ROLE
        ]

    async def revoke(self, grant_id: str) -> None:
        doc_id = self._original_document()
        await self.retry.run(self.client.delete_permission, doc_id, grant_id)
        logger.info(f"Permission {grant_id} removed from {doc_id}")

    async def list_shared_stores(self, principal: Verified) -> List[SharedStore]:
        """Documents other principals have shared with `principal`, named after their owners."""
        files = await self.retry.run(self.client.list_shared_documents, self.document_name, principal.email)
        logger.debug(f"Found {len(files)} shared document(s) for {principal.email}")
        return list(await asyncio.gather(*(self._describe(f) for f in files)))

    async def _describe(self, file) -> SharedStore:
        owners = file.get('owners') or []
        owner_email = owners[0].get('emailAddress') if owners else None
        owner_name = owner_email.split('@')[0] if owner_email else None

        if owner_email:
            try:
                name = await self._owner_profile_name(file['id'], owner_email)
            except SheetsDBError as e:
                logger.info(f"Could not fetch owner name from document {file['id']}: {e}")
                name = None
            owner_name = name or owner_name

        return SharedStore(id=file['id'], name=file.get('name', ''), owner_email=owner_email, owner_name=owner_name)

    async def _owner_profile_name(self, doc_id: str, owner_email: str) -> Optional[str]:
        values = await self.retry.run(self.client.get_values, doc_id, PROFILES_TABLE)
        if len(values) < 2:
            return None
        header = [str(h) for h in values[0]]
        for profile in self.codec.decode_rows(PROFILES_TABLE, header, values[1:]):
            if profile.get('email') == owner_email:
                full_name = f"{profile.get('first_name') or ''} {profile.get('last_name') or ''}".strip()
                return full_name or None
        return None
