import datetime as dt
import unittest

from cabinadmin.bookings.config import Settings
from cabinadmin.webapp import create_app

TODAY = dt.date(2026, 10, 18)


class WebAppTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.app = create_app(Settings(page_size=2), today=lambda: TODAY)
        self.client = self.app.test_client()
        response = self.client.post(
            "/api/cabins",
            json={"name": "001", "max_capacity": 2, "regular_price": 100, "discount": 20},
        )
        self.assertEqual(response.status_code, 201)
        self.cabin = response.get_json()

    def _create_booking(self, email: str, start: dt.date, nights: int = 3) -> dict:
        response = self.client.post(
            "/api/bookings",
            json={
                "cabin_name": "001",
                "guest": {"full_name": "Jane Doe", "email": email},
                "booking": {
                    "start_date": start.isoformat(),
                    "end_date": (start + dt.timedelta(days=nights)).isoformat(),
                    "num_nights": nights,
                    "num_guests": 1,
                    "extras_price": 15,
                },
            },
        )
        self.assertEqual(response.status_code, 201, response.get_json())
        return response.get_json()

    def test_booking_lifecycle(self) -> None:
        booking = self._create_booking("jane@example.com", TODAY)
        self.assertEqual(booking["total_price"], 255)

        fetched = self.client.get(f"/api/bookings/{booking['id']}").get_json()
        self.assertEqual(fetched["cabins"]["name"], "001")

        today = self.client.get("/api/reports/today").get_json()
        self.assertEqual([row["id"] for row in today], [booking["id"]])

        skipped = self.client.patch(f"/api/bookings/{booking['id']}", json={"status": "checked-out"})
        self.assertEqual(skipped.status_code, 400)

        checked_in = self.client.post(f"/api/bookings/{booking['id']}/checkin")
        self.assertEqual(checked_in.get_json()["status"], "checked-in")
        checked_out = self.client.post(f"/api/bookings/{booking['id']}/checkout")
        self.assertEqual(checked_out.get_json()["status"], "checked-out")

        self.assertEqual(self.client.delete(f"/api/bookings/{booking['id']}").status_code, 200)
        self.assertEqual(self.client.get(f"/api/bookings/{booking['id']}").status_code, 404)

    def test_checkin_body_must_be_an_object(self) -> None:
        booking = self._create_booking("jane@example.com", TODAY)
        url = f"/api/bookings/{booking['id']}/checkin"

        for body in ([1], "late", 20):
            with self.subTest(body=body):
                self.assertEqual(self.client.post(url, json=body).status_code, 400)

        checked_in = self.client.post(url, json={"extras_price": 20})
        self.assertEqual(checked_in.status_code, 200)
        self.assertEqual(checked_in.get_json()["total_price"], 260)

        repriced = self.client.patch(f"/api/bookings/{booking['id']}", json={"total_price": 1})
        self.assertEqual(repriced.status_code, 400)

    def test_list_pages_and_filters(self) -> None:
        for idx in range(3):
            self._create_booking(f"guest{idx}@example.com", TODAY + dt.timedelta(days=idx * 5))

        first = self.client.get("/api/bookings?page=1").get_json()
        self.assertEqual(len(first["data"]), 2)
        self.assertEqual(first["count"], 3)
        self.assertEqual(first["pageCount"], 2)
        starts = [row["start_date"] for row in first["data"]]
        self.assertEqual(starts, sorted(starts, reverse=True))

        unconfirmed = self.client.get("/api/bookings?status=unconfirmed&page=2").get_json()
        self.assertEqual(len(unconfirmed["data"]), 1)

        everything = self.client.get("/api/bookings?status=all&sortBy=totalPrice-asc").get_json()
        self.assertEqual(everything["count"], 3)

        self.assertEqual(self.client.get("/api/bookings?sortBy=password-asc").status_code, 400)
        self.assertEqual(self.client.get("/api/bookings?status=lost").status_code, 400)

    def test_recent_reports(self) -> None:
        self._create_booking("jane@example.com", TODAY - dt.timedelta(days=3))

        stays = self.client.get("/api/reports/stays?last=7").get_json()
        self.assertEqual(len(stays), 1)
        self.assertEqual(stays[0]["guests"], {"full_name": "Jane Doe"})
        self.assertEqual(self.client.get("/api/reports/stays?last=0").status_code, 400)
        self.assertEqual(self.client.get("/api/reports/bookings?last=30").status_code, 200)

    def test_unknown_cabin_rejected(self) -> None:
        response = self.client.post(
            "/api/bookings",
            json={
                "cabin_name": "missing",
                "guest": {"full_name": "Jane Doe", "email": "jane@example.com"},
                "booking": {"start_date": "2026-10-18", "end_date": "2026-10-19", "num_nights": 1},
            },
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"], "No cabin found with this name")

    def test_cabin_routes(self) -> None:
        copy = self.client.post(f"/api/cabins/{self.cabin['id']}/duplicate")
        self.assertEqual(copy.status_code, 201)
        self.assertEqual(copy.get_json()["name"], "Copy of 001")

        edited = self.client.patch(f"/api/cabins/{self.cabin['id']}", json={"discount": 10})
        self.assertEqual(edited.get_json()["discount"], 10)

        names = [row["name"] for row in self.client.get("/api/cabins").get_json()]
        self.assertEqual(names, ["001", "Copy of 001"])

        self.assertEqual(self.client.delete(f"/api/cabins/{self.cabin['id']}").status_code, 200)
        self.assertEqual(self.client.get(f"/api/cabins/{self.cabin['id']}").status_code, 404)


if __name__ == "__main__":
    unittest.main()
