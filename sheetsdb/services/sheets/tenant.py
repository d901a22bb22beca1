"""Tracks which document the table store targets: the principal's own or a shared one."""

import logging
from typing import Optional

from sheetsdb.exceptions import NotInitialized

logger = logging.getLogger(__name__)


class TenantRouter:
    """Holds the original (own) and active document ids.

    No authorization happens here; the remote service rejects writes to a
    document the principal cannot access on the first store call.
    """

    def __init__(self, resolver):
        self.resolver = resolver
        self._original: Optional[str] = None
        self._active: Optional[str] = None

    def original(self) -> Optional[str]:
        return self._original

    def current(self) -> Optional[str]:
        return self._active

    def set_original(self, doc_id: str) -> None:
        """Records the principal's own document; only the first call has effect."""
        if self._original is None:
            self._original = doc_id
            logger.info(f"Set original document to: {doc_id}")
        if self._active is None:
            self._active = self._original

    def is_viewing_shared(self) -> bool:
        return self._active is not None and self._active != self._original

    async def switch_to(self, doc_id: Optional[str]) -> str:
        """Points the store at doc_id, or back at the original document when None."""
        target = doc_id or self._original
        if not target:
            raise NotInitialized("No document available to switch to")

        await self.resolver.ensure_tables(target)
        self._active = target
        if target == self._original:
            logger.info(f"Switched back to original document: {target}")
        else:
            logger.info(f"Switched to shared document: {target}")
        return target

    def reset(self) -> None:
        self._original = None
        self._active = None
