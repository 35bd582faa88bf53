"""Translate filter, sort and page requests into store queries."""

from __future__ import annotations

import enum
import math
import re
from dataclasses import dataclass
from typing import Any

from .errors import ConfigurationError, ValidationError
from .status import parse_status
from .storage import Query

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


class BookingField(str, enum.Enum):
    ID = "id"
    CREATED_AT = "created_at"
    START_DATE = "start_date"
    END_DATE = "end_date"
    NUM_NIGHTS = "num_nights"
    NUM_GUESTS = "num_guests"
    STATUS = "status"
    TOTAL_PRICE = "total_price"
    CABIN_ID = "cabin_id"
    GUEST_ID = "guest_id"

    @classmethod
    def parse(cls, name: "str | BookingField") -> "BookingField":
        """Accept either the column name or its camelCase spelling."""

        if isinstance(name, cls):
            return name
        key = _CAMEL_BOUNDARY.sub("_", str(name)).lower()
        try:
            return cls(key)
        except ValueError as exc:
            raise ValidationError(f"Unknown booking field: {name!r}") from exc


class SortDirection(str, enum.Enum):
    ASC = "asc"
    DESC = "desc"

    @classmethod
    def parse(cls, value: "str | SortDirection") -> "SortDirection":
        try:
            return cls(value)
        except ValueError as exc:
            raise ValidationError(f"Unknown sort direction: {value!r}") from exc


@dataclass(frozen=True)
class Filter:
    field: BookingField
    value: Any

    def __post_init__(self) -> None:
        field = BookingField.parse(self.field)
        object.__setattr__(self, "field", field)
        if field is BookingField.STATUS:
            object.__setattr__(self, "value", parse_status(self.value))


@dataclass(frozen=True)
class SortBy:
    field: BookingField
    direction: SortDirection = SortDirection.ASC

    def __post_init__(self) -> None:
        object.__setattr__(self, "field", BookingField.parse(self.field))
        object.__setattr__(self, "direction", SortDirection.parse(self.direction))

    @classmethod
    def parse(cls, value: str) -> "SortBy":
        """Parse the ``field-direction`` form, e.g. ``startDate-desc``."""

        field, sep, direction = value.rpartition("-")
        if not sep:
            return cls(value)
        return cls(field, direction)

    @property
    def ascending(self) -> bool:
        return self.direction is SortDirection.ASC


class QueryBuilder:
    """Applies an optional equality filter, ordering and page to a query.

    Pages hold exactly ``page_size`` rows: page ``n`` covers offsets
    ``(n - 1) * page_size`` through ``n * page_size - 1`` inclusive.
    """

    def __init__(self, page_size: int) -> None:
        if page_size < 1:
            raise ConfigurationError(f"Page size must be positive, got {page_size}")
        self.page_size = page_size

    def page_bounds(self, page: int) -> tuple[int, int]:
        if page < 1:
            raise ValidationError(f"Page numbers start at 1, got {page}")
        from_ = (page - 1) * self.page_size
        return from_, from_ + self.page_size - 1

    def page_count(self, count: int) -> int:
        return math.ceil(count / self.page_size)

    def build(
        self,
        query: Query,
        filter: Filter | None = None,
        sort_by: SortBy | None = None,
        page: int | None = None,
    ) -> Query:
        if filter is not None:
            query = query.eq(filter.field.value, filter.value)
        if sort_by is not None:
            query = query.order(sort_by.field.value, ascending=sort_by.ascending)
        if page is not None:
            query = query.range(*self.page_bounds(page))
        return query
