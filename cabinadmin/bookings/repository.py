"""Reads and writes of bookings, plus the booking creation workflow."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from . import pricing
from .errors import NotFoundError, StorageError, ValidationError
from .guests import GuestResolver
from .query import Filter, QueryBuilder, SortBy
from .status import BookingStatus, check_transition, parse_status
from .storage import RowCountFault, SqliteStore, StorageFault

logger = logging.getLogger(__name__)

LIST_COLUMNS = (
    "id",
    "created_at",
    "start_date",
    "end_date",
    "num_nights",
    "num_guests",
    "status",
    "total_price",
)

UPDATABLE_FIELDS = frozenset(
    {
        "start_date",
        "end_date",
        "num_nights",
        "num_guests",
        "status",
        "extras_price",
    }
)

STAY_FIELDS = frozenset({"start_date", "end_date", "num_nights"})


@dataclass
class BookingPage:
    data: list[dict]
    count: int


def end_of_day(day: dt.date) -> str:
    return dt.datetime.combine(day, dt.time.max).isoformat()


def is_today_activity(booking: Mapping, today: dt.date) -> bool:
    """Whether a booking checks in or checks out on ``today``."""

    day = today.isoformat()
    return (
        booking["status"] == BookingStatus.UNCONFIRMED.value and booking["start_date"] == day
    ) or (booking["status"] == BookingStatus.CHECKED_IN.value and booking["end_date"] == day)


def _as_date(value: Any, name: str) -> dt.date:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    try:
        return dt.date.fromisoformat(str(value)[:10])
    except ValueError as exc:
        raise ValidationError(f"{name} must be an ISO date") from exc


class BookingRepository:
    """High level façade over the ``bookings`` collection."""

    def __init__(
        self,
        store: SqliteStore,
        query_builder: QueryBuilder,
        *,
        guests: GuestResolver | None = None,
        today: Callable[[], dt.date] = dt.date.today,
        now: Callable[[], dt.datetime] = dt.datetime.now,
    ) -> None:
        self.store = store
        self.query_builder = query_builder
        self.guests = guests or GuestResolver(store)
        self.today = today
        self.now = now

    async def _execute(self, query, message: str):
        try:
            return await query.execute()
        except StorageFault as exc:
            logger.error("%s: %s", message, exc, exc_info=exc)
            raise StorageError(message, detail=str(exc)) from exc

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def list_bookings(
        self,
        filter: Filter | None = None,
        sort_by: SortBy | None = None,
        page: int | None = None,
    ) -> BookingPage:
        query = self.store.table("bookings").select(
            LIST_COLUMNS,
            embed={"cabins": ("name",), "guests": ("full_name", "email")},
            count=True,
        )
        query = self.query_builder.build(query, filter=filter, sort_by=sort_by, page=page)
        result = await self._execute(query, "Bookings could not be loaded")
        return BookingPage(data=result.data, count=result.count)

    async def get_booking(self, booking_id: int) -> dict:
        query = (
            self.store.table("bookings")
            .select("*", embed={"cabins": "*", "guests": "*"})
            .eq("id", booking_id)
            .single()
        )
        try:
            result = await query.execute()
        except RowCountFault as exc:
            logger.error("Booking %s lookup matched %s rows", booking_id, exc.rows)
            raise NotFoundError("Booking not found") from exc
        except StorageFault as exc:
            logger.error("Booking %s could not be loaded: %s", booking_id, exc, exc_info=exc)
            raise StorageError("Booking not found", detail=str(exc)) from exc
        return result.data

    async def get_bookings_after_date(self, since: dt.date | dt.datetime | str) -> list[dict]:
        """Bookings created between ``since`` and the end of today."""

        query = (
            self.store.table("bookings")
            .select(("created_at", "total_price", "extras_price"))
            .gte("created_at", since)
            .lte("created_at", end_of_day(self.today()))
        )
        result = await self._execute(query, "Bookings could not get loaded")
        return result.data

    async def get_stays_after_date(self, since: dt.date | dt.datetime | str) -> list[dict]:
        """Stays starting between ``since`` and today."""

        query = (
            self.store.table("bookings")
            .select("*", embed={"guests": ("full_name",)})
            .gte("start_date", _as_date(since, "since"))
            .lte("start_date", self.today())
        )
        result = await self._execute(query, "Bookings could not get loaded")
        return result.data

    async def get_stays_today_activity(self) -> list[dict]:
        """Bookings arriving today (unconfirmed) or leaving today (checked in)."""

        today = self.today()
        query = (
            self.store.table("bookings")
            .select("*", embed={"guests": ("full_name", "nationality", "country_flag")})
            .or_(
                [
                    [("status", BookingStatus.UNCONFIRMED), ("start_date", today)],
                    [("status", BookingStatus.CHECKED_IN), ("end_date", today)],
                ]
            )
            .order("created_at")
        )
        result = await self._execute(query, "Bookings could not get loaded")
        return result.data

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def _find_cabin(self, cabin_name: str) -> dict:
        query = self.store.table("cabins").select().eq("name", cabin_name)
        result = await self._execute(query, "Cabin could not be looked up")
        if not result.data:
            raise ValidationError("No cabin found with this name")
        if len(result.data) > 1:
            raise ValidationError(f"More than one cabin is named {cabin_name!r}")
        return result.data[0]

    def _check_stay(self, new_booking: Mapping) -> tuple[dt.date, dt.date, int]:
        for key in ("start_date", "end_date", "num_nights"):
            if new_booking.get(key) is None:
                raise ValidationError(f"{key} is required")
        start = _as_date(new_booking["start_date"], "start_date")
        end = _as_date(new_booking["end_date"], "end_date")
        nights = new_booking["num_nights"]
        if end <= start:
            raise ValidationError("End date must be after start date")
        if nights != (end - start).days:
            raise ValidationError("Number of nights does not match the stay dates")
        return start, end, nights

    async def create_booking(
        self, cabin_name: str, new_guest: Mapping, new_booking: Mapping
    ) -> dict:
        """Create a booking for the named cabin, reusing the guest if their email is known.

        Prices are derived from the cabin's current rate and stored on the
        booking. A guest created here is kept even if the booking insert fails.
        """

        start, end, nights = self._check_stay(new_booking)
        extras_price = new_booking.get("extras_price") or 0
        status = parse_status(new_booking.get("status", BookingStatus.UNCONFIRMED))
        cabin = await self._find_cabin(cabin_name)
        guest_id = await self.guests.resolve(new_guest, new_guest.get("email"))

        record = {
            **new_booking,
            "start_date": start,
            "end_date": end,
            "status": status,
            "created_at": self.now().isoformat(timespec="milliseconds"),
            "extras_price": extras_price,
            "cabin_id": cabin["id"],
            "guest_id": guest_id,
            "cabin_price": pricing.cabin_price(cabin, nights),
            "total_price": pricing.total_price(cabin, nights, extras_price),
        }
        query = self.store.table("bookings").insert(record).single()
        try:
            result = await query.execute()
        except StorageFault as exc:
            logger.error("Booking for guest %s could not be created: %s", guest_id, exc, exc_info=exc)
            raise StorageError(str(exc), detail=str(exc)) from exc
        logger.info("Booking %s created for cabin %s", result.data["id"], cabin["name"])
        return result.data

    async def update_booking(self, booking_id: int, fields: Mapping) -> dict:
        """Apply a partial update to one booking.

        Prices stay frozen: only ``extras_price`` may change, and the total is
        rewritten from the stored ``cabin_price`` alongside it. Stay dates and
        night count are checked together against the stored row.
        """

        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update booking fields: {', '.join(sorted(unknown))}")
        if not fields:
            raise ValidationError("No booking fields to update")

        changes = dict(fields)
        if changes.keys() & (STAY_FIELDS | {"status", "extras_price"}):
            current = await self.get_booking(booking_id)
            if "status" in changes:
                changes["status"] = check_transition(current["status"], changes["status"])
            if changes.keys() & STAY_FIELDS:
                start, end, _ = self._check_stay({**current, **changes})
                if "start_date" in changes:
                    changes["start_date"] = start
                if "end_date" in changes:
                    changes["end_date"] = end
            if "extras_price" in changes:
                if changes["extras_price"] is None:
                    raise ValidationError("extras_price is required")
                changes["total_price"] = current["cabin_price"] + changes["extras_price"]

        query = self.store.table("bookings").update(changes).eq("id", booking_id).single()
        try:
            result = await query.execute()
        except RowCountFault as exc:
            logger.error("Booking %s update matched %s rows", booking_id, exc.rows)
            raise NotFoundError("Booking could not be updated") from exc
        except StorageFault as exc:
            logger.error("Booking %s could not be updated: %s", booking_id, exc, exc_info=exc)
            raise StorageError("Booking could not be updated", detail=str(exc)) from exc
        logger.info("Booking %s updated: %s", booking_id, ", ".join(sorted(changes)))
        return result.data

    async def check_in(self, booking_id: int, **fields: Any) -> dict:
        return await self.update_booking(
            booking_id, {**fields, "status": BookingStatus.CHECKED_IN}
        )

    async def check_out(self, booking_id: int) -> dict:
        return await self.update_booking(booking_id, {"status": BookingStatus.CHECKED_OUT})

    async def delete_booking(self, booking_id: int) -> dict:
        """Permanently remove one booking; row-level permissions are the store's concern."""

        query = self.store.table("bookings").delete().eq("id", booking_id)
        result = await self._execute(query, "Booking could not be deleted")
        if not result.data:
            raise NotFoundError("Booking could not be deleted")
        logger.info("Booking %s deleted", booking_id)
        return result.data[0]
