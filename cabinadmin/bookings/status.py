"""Booking lifecycle states and the transitions allowed between them."""

from __future__ import annotations

import enum

from .errors import ValidationError


class BookingStatus(str, enum.Enum):
    UNCONFIRMED = "unconfirmed"
    CHECKED_IN = "checked-in"
    CHECKED_OUT = "checked-out"


TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.UNCONFIRMED: frozenset({BookingStatus.UNCONFIRMED, BookingStatus.CHECKED_IN}),
    BookingStatus.CHECKED_IN: frozenset({BookingStatus.CHECKED_IN, BookingStatus.CHECKED_OUT}),
    BookingStatus.CHECKED_OUT: frozenset({BookingStatus.CHECKED_OUT}),
}


def parse_status(value: str | BookingStatus) -> BookingStatus:
    try:
        return BookingStatus(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown booking status: {value!r}") from exc


def check_transition(current: str | BookingStatus, target: str | BookingStatus) -> BookingStatus:
    """Return ``target`` as a status if a booking in ``current`` may move to it."""

    source = parse_status(current)
    destination = parse_status(target)
    if destination not in TRANSITIONS[source]:
        raise ValidationError(
            f"Booking cannot move from {source.value} to {destination.value}"
        )
    return destination
