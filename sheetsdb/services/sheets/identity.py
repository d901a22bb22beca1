"""Principals and the step that links a pending principal to a verified one."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from sheetsdb.exceptions import RowNotFound

logger = logging.getLogger(__name__)

PROFILES_TABLE = 'profiles'


@dataclass(frozen=True)
class Verified:
    """An authenticated identity."""
    id: str
    email: str

    def __post_init__(self):
        # ids are opaque text; never let a numeric id in
        object.__setattr__(self, 'id', str(self.id))


@dataclass(frozen=True)
class Pending:
    """Someone known only by e-mail, not yet signed in."""
    email: str


Principal = Union[Verified, Pending]


class IdentityLinker:
    """Moves provisional profiles created for a Pending principal onto a Verified id."""

    def __init__(self, store):
        self.store = store

    async def register_pending(self, email: str, **profile: Any) -> Pending:
        """Inserts a provisional profile for someone who has not signed in yet."""
        record = dict(profile, email=email)
        record.pop('id', None)
        await self.store.insert(PROFILES_TABLE, record)
        logger.info(f"Registered pending profile for {email}")
        return Pending(email)

    async def link(self, pending: Pending, verified: Verified) -> Optional[Dict[str, Any]]:
        """Rewrites the pending profile under the verified id.

        When a profile already exists under the verified id, the pending
        profile only fills its empty fields and is then removed.

        Returns the linked profile, or None when no provisional profile exists
        for the pending e-mail.
        """
        if pending.email != verified.email:
            raise ValueError(f"Cannot link {pending.email} to principal {verified.email}")

        rows = await self.store.select(PROFILES_TABLE, eq=('email', pending.email))
        provisional = [r for r in rows if r.get('id') and r['id'] != verified.id]
        if not provisional:
            logger.debug(f"No pending profile to link for {pending.email}")
            return None

        row = provisional[0]
        pending_fields = {k: v for k, v in row.items() if v is not None and k != 'id'}

        # Profiles are keyed by id: an existing verified profile absorbs the pending one
        existing = await self.store.select(PROFILES_TABLE, eq=('id', verified.id))
        if existing:
            current = existing[0]
            missing = {k: v for k, v in pending_fields.items() if current.get(k) is None}
            linked = await self.store.update(PROFILES_TABLE, missing, ('id', verified.id)) if missing else current
        else:
            linked = dict(pending_fields, id=verified.id)

        try:
            await self.store.delete(PROFILES_TABLE, ('id', row['id']))
        except RowNotFound:
            # Removed concurrently; the verified profile is still recorded below
            logger.warning(f"Pending profile {row['id']} vanished before it could be linked")
        if not existing:
            await self.store.insert(PROFILES_TABLE, linked)
        logger.info(f"Linked pending profile {row['id']} to verified id {verified.id}")
        return linked
