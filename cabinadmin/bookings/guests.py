"""Find-or-create resolution of guests by email."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Mapping

from .errors import StorageError, ValidationError
from .storage import SqliteStore, StorageFault

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class GuestResolver:
    """Maps a guest's email to a single stored guest record.

    Lookup and insert run under one lock per email, so callers sharing a
    resolver never create two guests for the same address. Separate processes
    are not coordinated; the store itself has no unique constraint on email.
    """

    def __init__(self, store: SqliteStore) -> None:
        self.store = store
        # email -> (lock, number of callers holding or waiting on it)
        self._locks: dict[str, tuple[asyncio.Lock, int]] = {}

    @asynccontextmanager
    async def _email_lock(self, email: str) -> AsyncIterator[None]:
        lock, users = self._locks.get(email, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._locks[email] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._locks[email]
            if users == 1:
                del self._locks[email]
            else:
                self._locks[email] = (lock, users - 1)

    async def find_by_email(self, email: str) -> list[dict]:
        try:
            result = await self.store.table("guests").select().eq("email", email).execute()
        except StorageFault as exc:
            logger.error("Guest lookup for %s failed: %s", email, exc, exc_info=exc)
            raise StorageError("Guest could not be looked up", detail=str(exc)) from exc
        return result.data

    async def resolve(self, new_guest: Mapping, email: str | None = None) -> int:
        """Return the id of the guest with ``email``, inserting ``new_guest`` if none exists."""

        email = normalize_email(email or new_guest.get("email") or "")
        if not email:
            raise ValidationError("Guest email is required")

        async with self._email_lock(email):
            existing = await self.find_by_email(email)
            if existing:
                return existing[0]["id"]

            record = {**new_guest, "email": email}
            try:
                result = await self.store.table("guests").insert(record).single().execute()
            except StorageFault as exc:
                logger.error("Guest %s could not be created: %s", email, exc, exc_info=exc)
                raise StorageError("Guest could not be created", detail=str(exc)) from exc
            logger.info("Created guest %s for %s", result.data["id"], email)
            return result.data["id"]
