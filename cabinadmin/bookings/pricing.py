"""Charges derived from a cabin's rate at booking time."""

from __future__ import annotations

from typing import Mapping


def cabin_price(cabin: Mapping, nights: int) -> float:
    """Nightly rate less discount, times the number of nights."""

    return (cabin["regular_price"] - cabin["discount"]) * nights


def total_price(cabin: Mapping, nights: int, extras_price: float) -> float:
    return cabin_price(cabin, nights) + extras_price
