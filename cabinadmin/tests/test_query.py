import unittest

from cabinadmin.bookings.errors import ConfigurationError, ValidationError
from cabinadmin.bookings.query import (
    BookingField,
    Filter,
    QueryBuilder,
    SortBy,
    SortDirection,
)
from cabinadmin.bookings.status import BookingStatus
from cabinadmin.bookings.storage import SqliteStore


class FilterAndSortTestCase(unittest.TestCase):
    def test_fields_accept_camel_case(self) -> None:
        self.assertIs(BookingField.parse("startDate"), BookingField.START_DATE)
        self.assertIs(BookingField.parse("total_price"), BookingField.TOTAL_PRICE)
        with self.assertRaises(ValidationError):
            BookingField.parse("guestPassword")

    def test_sort_parsing(self) -> None:
        sort_by = SortBy.parse("startDate-desc")
        self.assertIs(sort_by.field, BookingField.START_DATE)
        self.assertIs(sort_by.direction, SortDirection.DESC)
        self.assertFalse(sort_by.ascending)
        self.assertTrue(SortBy.parse("created_at").ascending)
        with self.assertRaises(ValidationError):
            SortBy.parse("startDate-sideways")

    def test_status_filter_values_are_checked(self) -> None:
        self.assertIs(Filter("status", "checked-in").value, BookingStatus.CHECKED_IN)
        with self.assertRaises(ValidationError):
            Filter("status", "cancelled")
        with self.assertRaises(ValidationError):
            Filter("colour", "red")


class QueryBuilderTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.store = SqliteStore()
        cabin = await self.store.table("cabins").insert(
            {"name": "001", "regular_price": 100}
        ).single().execute()
        guest = await self.store.table("guests").insert(
            {"full_name": "Ana", "email": "ana@example.com"}
        ).single().execute()
        await self.store.table("bookings").insert(
            [
                {
                    "start_date": f"2026-10-{day:02d}",
                    "end_date": f"2026-10-{day + 1:02d}",
                    "num_nights": 1,
                    "status": "checked-in" if day % 3 == 0 else "unconfirmed",
                    "cabin_price": 100,
                    "total_price": 100 + day,
                    "cabin_id": cabin.data["id"],
                    "guest_id": guest.data["id"],
                }
                for day in range(1, 11)
            ]
        ).execute()

    async def asyncTearDown(self) -> None:
        self.store.close()

    def test_page_size_must_be_positive(self) -> None:
        with self.assertRaises(ConfigurationError):
            QueryBuilder(0)

    def test_page_bounds(self) -> None:
        builder = QueryBuilder(4)
        self.assertEqual(builder.page_bounds(1), (0, 3))
        self.assertEqual(builder.page_bounds(3), (8, 11))
        self.assertEqual(builder.page_count(10), 3)
        with self.assertRaises(ValidationError):
            builder.page_bounds(0)

    def test_build_applies_each_part(self) -> None:
        query = QueryBuilder(5).build(
            self.store.table("bookings").select(),
            filter=Filter("status", "unconfirmed"),
            sort_by=SortBy.parse("startDate-desc"),
            page=2,
        )
        self.assertEqual(query.conditions, [("status", "eq", BookingStatus.UNCONFIRMED)])
        self.assertEqual(query.ordering, [("start_date", False)])
        self.assertEqual(query.bounds, (5, 9))

    async def test_pages_never_exceed_page_size(self) -> None:
        for page_size in (1, 3, 4, 10, 15):
            builder = QueryBuilder(page_size)
            seen = []
            for page in range(1, builder.page_count(10) + 1):
                query = builder.build(
                    self.store.table("bookings").select(count=True),
                    sort_by=SortBy("total_price"),
                    page=page,
                )
                result = await query.execute()
                self.assertLessEqual(len(result.data), page_size)
                self.assertEqual(result.count, 10)
                seen.extend(row["total_price"] for row in result.data)
            self.assertEqual(seen, [100 + day for day in range(1, 11)])

    async def test_filter_without_page_returns_full_match(self) -> None:
        query = QueryBuilder(2).build(
            self.store.table("bookings").select(count=True),
            filter=Filter("status", "checked-in"),
        )
        result = await query.execute()
        self.assertEqual(len(result.data), 3)
        self.assertEqual(result.count, 3)


if __name__ == "__main__":
    unittest.main()
