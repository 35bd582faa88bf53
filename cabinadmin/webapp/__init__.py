"""Flask application exposing the cabin administration data layer as JSON."""

from __future__ import annotations

import datetime as dt
from typing import Any, Callable

from flask import Flask, jsonify, request

from cabinadmin.bookings.cabins import CabinRepository
from cabinadmin.bookings.config import Settings
from cabinadmin.bookings.errors import NotFoundError, StorageError, ValidationError
from cabinadmin.bookings.query import Filter, QueryBuilder, SortBy
from cabinadmin.bookings.repository import BookingRepository
from cabinadmin.bookings.storage import SqliteStore

DEFAULT_SORT = "startDate-desc"


def _json_body() -> dict:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def _days_back(today: dt.date) -> dt.date:
    last = request.args.get("last", default=7, type=int)
    if last < 1:
        raise ValidationError("last must be a positive number of days")
    return today - dt.timedelta(days=last)


def create_app(
    settings: Settings | None = None,
    *,
    store: SqliteStore | None = None,
    today: Callable[[], dt.date] = dt.date.today,
    now: Callable[[], dt.datetime] = dt.datetime.now,
) -> Flask:
    """Create and configure the Flask application."""

    settings = settings or Settings.from_env()
    app = Flask(__name__)

    store = store or SqliteStore(settings.database_path)
    query_builder = QueryBuilder(settings.page_size)
    cabins = CabinRepository(store)

    def bookings() -> BookingRepository:
        # Each async view runs on its own event loop, so the resolver's
        # asyncio locks cannot be shared between requests.
        return BookingRepository(store, query_builder, today=today, now=now)

    @app.errorhandler(ValidationError)
    def handle_validation(exc: ValidationError) -> Any:
        return jsonify(error=str(exc)), 400

    @app.errorhandler(NotFoundError)
    def handle_not_found(exc: NotFoundError) -> Any:
        return jsonify(error=str(exc)), 404

    @app.errorhandler(StorageError)
    def handle_storage(exc: StorageError) -> Any:
        return jsonify(error=str(exc)), 500

    # ------------------------------------------------------------------
    # Bookings
    # ------------------------------------------------------------------
    @app.get("/api/bookings")
    async def list_bookings() -> Any:
        status = request.args.get("status")
        filter = Filter("status", status) if status and status != "all" else None
        sort_by = SortBy.parse(request.args.get("sortBy") or DEFAULT_SORT)
        page = request.args.get("page", default=1, type=int)
        result = await bookings().list_bookings(filter=filter, sort_by=sort_by, page=page)
        return jsonify(
            data=result.data,
            count=result.count,
            pageCount=query_builder.page_count(result.count),
        )

    @app.get("/api/bookings/<int:booking_id>")
    async def get_booking(booking_id: int) -> Any:
        return jsonify(await bookings().get_booking(booking_id))

    @app.post("/api/bookings")
    async def create_booking() -> Any:
        body = _json_body()
        booking = await bookings().create_booking(
            cabin_name=body.get("cabin_name") or "",
            new_guest=body.get("guest") or {},
            new_booking=body.get("booking") or {},
        )
        return jsonify(booking), 201

    @app.patch("/api/bookings/<int:booking_id>")
    async def update_booking(booking_id: int) -> Any:
        return jsonify(await bookings().update_booking(booking_id, _json_body()))

    @app.post("/api/bookings/<int:booking_id>/checkin")
    async def check_in(booking_id: int) -> Any:
        extras = _json_body() if request.get_data() else {}
        return jsonify(await bookings().check_in(booking_id, **extras))

    @app.post("/api/bookings/<int:booking_id>/checkout")
    async def check_out(booking_id: int) -> Any:
        return jsonify(await bookings().check_out(booking_id))

    @app.delete("/api/bookings/<int:booking_id>")
    async def delete_booking(booking_id: int) -> Any:
        return jsonify(await bookings().delete_booking(booking_id))

    # ------------------------------------------------------------------
    # Dashboard reports
    # ------------------------------------------------------------------
    @app.get("/api/reports/bookings")
    async def recent_bookings() -> Any:
        since = _days_back(today())
        return jsonify(await bookings().get_bookings_after_date(since))

    @app.get("/api/reports/stays")
    async def recent_stays() -> Any:
        since = _days_back(today())
        return jsonify(await bookings().get_stays_after_date(since))

    @app.get("/api/reports/today")
    async def today_activity() -> Any:
        return jsonify(await bookings().get_stays_today_activity())

    # ------------------------------------------------------------------
    # Cabins
    # ------------------------------------------------------------------
    @app.get("/api/cabins")
    async def list_cabins() -> Any:
        return jsonify(await cabins.list_cabins())

    @app.post("/api/cabins")
    async def create_cabin() -> Any:
        return jsonify(await cabins.create_cabin(_json_body())), 201

    @app.get("/api/cabins/<int:cabin_id>")
    async def get_cabin(cabin_id: int) -> Any:
        return jsonify(await cabins.get_cabin(cabin_id))

    @app.patch("/api/cabins/<int:cabin_id>")
    async def update_cabin(cabin_id: int) -> Any:
        return jsonify(await cabins.update_cabin(cabin_id, _json_body()))

    @app.post("/api/cabins/<int:cabin_id>/duplicate")
    async def duplicate_cabin(cabin_id: int) -> Any:
        return jsonify(await cabins.duplicate_cabin(cabin_id)), 201

    @app.delete("/api/cabins/<int:cabin_id>")
    async def delete_cabin(cabin_id: int) -> Any:
        return jsonify(await cabins.delete_cabin(cabin_id))

    return app


__all__ = ["create_app"]
