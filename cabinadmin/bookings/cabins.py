"""Cabin catalog operations used by the cabin table's row actions."""

from __future__ import annotations

import logging
from typing import Mapping

from .errors import NotFoundError, StorageError, ValidationError
from .storage import RowCountFault, SqliteStore, StorageFault

logger = logging.getLogger(__name__)

CABIN_FIELDS = frozenset(
    {"name", "max_capacity", "regular_price", "discount", "description", "image"}
)


class CabinRepository:
    def __init__(self, store: SqliteStore) -> None:
        self.store = store

    async def _execute(self, query, message: str):
        try:
            return await query.execute()
        except RowCountFault as exc:
            logger.error("%s: matched %s rows", message, exc.rows)
            raise NotFoundError(message) from exc
        except StorageFault as exc:
            logger.error("%s: %s", message, exc, exc_info=exc)
            raise StorageError(message, detail=str(exc)) from exc

    def _validate(self, fields: Mapping, *, partial: bool = False) -> dict:
        unknown = set(fields) - CABIN_FIELDS
        if unknown:
            raise ValidationError(f"Unknown cabin fields: {', '.join(sorted(unknown))}")
        if not partial:
            for key in ("name", "max_capacity", "regular_price"):
                if fields.get(key) in (None, ""):
                    raise ValidationError(f"{key} is required")
        if "max_capacity" in fields and fields["max_capacity"] < 1:
            raise ValidationError("Capacity should be at least 1")
        regular_price = fields.get("regular_price")
        discount = fields.get("discount") or 0
        if regular_price is not None and discount > regular_price:
            raise ValidationError("Discount should be less than regular price")
        return dict(fields)

    async def _ensure_name_free(self, name: str, cabin_id: int | None = None) -> None:
        result = await self._execute(
            self.store.table("cabins").select(("id",)).eq("name", name),
            "Cabin could not be looked up",
        )
        if any(row["id"] != cabin_id for row in result.data):
            raise ValidationError(f"A cabin named {name!r} already exists")

    async def list_cabins(self) -> list[dict]:
        result = await self._execute(
            self.store.table("cabins").select().order("name"), "Cabins could not be loaded"
        )
        return result.data

    async def get_cabin(self, cabin_id: int) -> dict:
        result = await self._execute(
            self.store.table("cabins").select().eq("id", cabin_id).single(), "Cabin not found"
        )
        return result.data

    async def create_cabin(self, fields: Mapping) -> dict:
        record = self._validate(fields)
        await self._ensure_name_free(record["name"])
        result = await self._execute(
            self.store.table("cabins").insert(record).single(), "Cabin could not be created"
        )
        logger.info("Cabin %s created: %s", result.data["id"], record["name"])
        return result.data

    async def update_cabin(self, cabin_id: int, fields: Mapping) -> dict:
        if not fields:
            raise ValidationError("No cabin fields to update")
        changes = self._validate(fields, partial=True)
        if "regular_price" in changes or "discount" in changes:
            current = await self.get_cabin(cabin_id)
            self._validate({**current_prices(current), **changes}, partial=True)
        if "name" in changes:
            await self._ensure_name_free(changes["name"], cabin_id)
        result = await self._execute(
            self.store.table("cabins").update(changes).eq("id", cabin_id).single(),
            "Cabin could not be edited",
        )
        return result.data

    async def duplicate_cabin(self, cabin_id: int) -> dict:
        cabin = await self.get_cabin(cabin_id)
        copy = {key: cabin[key] for key in CABIN_FIELDS}
        copy["name"] = f"Copy of {cabin['name']}"
        return await self.create_cabin(copy)

    async def delete_cabin(self, cabin_id: int) -> dict:
        result = await self._execute(
            self.store.table("cabins").delete().eq("id", cabin_id), "Cabin could not be deleted"
        )
        if not result.data:
            raise NotFoundError("Cabin could not be deleted")
        logger.info("Cabin %s deleted", cabin_id)
        return result.data[0]


def current_prices(cabin: Mapping) -> dict:
    return {"regular_price": cabin["regular_price"], "discount": cabin["discount"]}
