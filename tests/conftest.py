# Imports for testing tools
import datetime
import fnmatch
import json
import re

import httpx
import pytest
from fastapi.testclient import TestClient

# Import your application code
from cafe_console.api_client import CafeApiClient
from cafe_console.cache import QueryCache
from cafe_console.config import settings
from cafe_console.main import app
from cafe_console.session import MemoryTokenStore, seal_token

ADMIN_TOKEN = "admin-token"
STAFF_TOKEN = "staff-token"
GUEST_TOKEN = "guest-token"
CAFE_ID = "C1"


def make_booking(booking_id, status, date, time, notification_sent=False, **extra):
    booking = {
        "booking_id": booking_id,
        "booking_date": date,
        "booking_start_time": time,
        "num_of_guests": 2,
        "special_request": None,
        "booking_status": status,
        "advance_paid": False,
        "transaction_amount": None,
        "transaction_id": None,
        "user_name": f"Guest {booking_id}",
        "user_mobile_no": "+919876543210",
        "user_id": f"U-{booking_id}",
        "cafe_id": CAFE_ID,
        "created_at": "2025-11-01T10:00:00Z",
        "notification_sent": notification_sent,
    }
    booking.update(extra)
    return booking


# --- In-process fake of the external café API ---
class FakeCafeApi:
    """
    Just enough of the café REST API to drive the console end to end.
    Every request is recorded in `calls`; `fail` forces a status code for a
    (method, path) pair.
    """

    PREFIX = "/api"

    def __init__(self):
        self.profiles = {
            ADMIN_TOKEN: {
                "user_id": "A1", "user_name": "Asha", "user_mobile_no": "+919000000001",
                "user_role": "cafe_admin", "cafe_id": CAFE_ID, "cafe_name": "Krown Café",
            },
            STAFF_TOKEN: {
                "user_id": "S1", "user_name": "Sam", "user_mobile_no": "+919000000002",
                "user_role": "cafe_staff", "cafe_id": CAFE_ID, "cafe_name": "Krown Café",
            },
            GUEST_TOKEN: {
                "user_id": "G1", "user_name": "Gita", "user_mobile_no": "+919000000003",
                "user_role": "customer", "cafe_id": None, "cafe_name": None,
            },
        }
        self.logins = {("asha", "secret"): ADMIN_TOKEN, ("sam", "secret"): STAFF_TOKEN, ("gita", "secret"): GUEST_TOKEN}
        self.bookings = {
            b["booking_id"]: b
            for b in [
                make_booking("B1", "rejected", "2025-11-10", "10:00:00"),
                make_booking("B2", "pending", "2025-11-09", "09:00:00"),
                make_booking("B3", "accepted", "2025-11-12", "12:00:00", notification_sent=True),
                make_booking("B4", "pending", "2025-11-11", "18:30:00"),
                make_booking("B5", "cancelled", "2025-11-13", "08:00:00"),
                make_booking("B6", "initiated", "2025-11-11", "18:30:00"),
            ]
        }
        self.slots = [
            {"slot_id": 1, "cafe_id": CAFE_ID, "category": "Lunch", "slot_time": "13:00:00", "is_available": True},
            {"slot_id": 2, "cafe_id": CAFE_ID, "category": "Breakfast", "slot_time": "09:00:00", "is_available": True},
            {"slot_id": 3, "cafe_id": CAFE_ID, "category": "Lunch", "slot_time": "12:00:00", "is_available": False},
            {"slot_id": 4, "cafe_id": CAFE_ID, "category": "Breakfast", "slot_time": "08:30:00", "is_available": True},
        ]
        self.items = [
            {"item_id": 42, "item_name": "Cold Coffee", "item_description": "Iced", "category": "Drinks", "price": 120, "recommended": True},
            {"item_id": 43, "item_name": "Masala Chai", "item_description": "Spiced tea", "category": "Drinks", "price": 40, "recommended": False},
        ]
        self.cafe = {
            "cafe_id": CAFE_ID, "cafe_name": "Krown Café", "cafe_location": "MG Road, Bengaluru",
            "cafe_mobile_no": "+919000000010", "cafe_upi_id": "krown@upi", "opening_time": "08:00",
            "closing_time": "22:00", "latitude": 12.97, "longitude": 77.59,
            "working_days": ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"],
            "cafe_description": "Coffee and books",
        }
        self.cafe_categories = [
            {"name": "Breakfast", "hours": ["08:00", "09:00"]},
            {"name": "Lunch", "hours": ["12:00", "13:00"]},
        ]
        self.taken_upi_ids = {"taken@upi"}
        self.redeems = {}
        self.confirm_error = None
        self.notifications = []
        self.calls = []
        self.fail = {}

    # --- helpers ---
    def count(self, method, path):
        return sum(1 for m, p in self.calls if m == method and p == path)

    @staticmethod
    def ok(data=None, message=None, status=200):
        body = {"success": True, "data": data}
        if message:
            body["message"] = message
        return httpx.Response(status, json=body)

    @staticmethod
    def error(status, message, code=None):
        body = {"success": False, "message": message}
        if code:
            body["code"] = code
        return httpx.Response(status, json=body)

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path[len(self.PREFIX):]
        method = request.method
        self.calls.append((method, path))
        params = dict(request.url.params)
        body = json.loads(request.content) if request.content else {}

        forced = self.fail.get((method, path))
        if forced:
            return self.error(forced, "forced failure")

        if method == "POST" and path == "/cafes/login":
            token = self.logins.get((body.get("login_user_name"), body.get("password_hash")))
            if not token:
                return self.error(401, "Invalid credentials")
            return self.ok({"user": self.profiles[token], "token": token})

        auth = request.headers.get("Authorization", "")
        token = auth[len("Bearer "):] if auth.startswith("Bearer ") else None
        if token not in self.profiles:
            return self.error(401, "Unauthorized")

        if method == "GET" and path == "/cafes/admin/me":
            return self.ok(self.profiles[token])

        m = re.fullmatch(r"/bookings/cafe/([^/]+)", path)
        if method == "GET" and m:
            rows = [b for b in self.bookings.values() if b["cafe_id"] == m.group(1)]
            search = params.get("search", "").lower()
            if search:
                rows = [b for b in rows if search in b["user_name"].lower() or search in b["user_mobile_no"]]
            return self.ok(rows)

        m = re.fullmatch(r"/bookings/([^/]+)/status", path)
        if method == "PATCH" and m:
            booking = self.bookings.get(m.group(1))
            if booking is None:
                return self.error(404, "Booking not found")
            if booking["booking_status"] not in ("pending", "initiated"):
                return self.error(409, "Booking already decided")
            booking["booking_status"] = body["status"]
            return self.ok(booking, message="Booking status updated")

        if method == "POST" and path == "/push/send":
            booking = self.bookings[body["data"]["booking_id"]]
            if booking["notification_sent"]:
                return self.error(409, "Notification already sent")
            booking["notification_sent"] = True
            self.notifications.append({
                "notification_id": len(self.notifications) + 1,
                "user_id": body["user_id"],
                "title": body["title"],
                "body": body["body"],
                "data": body["data"],
                "created_at": "2025-11-09T09:05:00Z",
            })
            return self.ok({"sent": True})

        if method == "GET" and path == "/notifications":
            rows = [n for n in self.notifications if n["user_id"] == params.get("user_id")]
            return self.ok(rows)

        m = re.fullmatch(r"/bookings/cafe-slots/manage/([^/]+)", path)
        if method == "GET" and m:
            return self.ok([s for s in self.slots if s["cafe_id"] == m.group(1)])

        if method == "PATCH" and path == "/bookings/cafe-slots/availability":
            for slot in self.slots:
                if slot["category"] == body["category"] and int(slot["slot_time"][:2]) == body["hour"]:
                    slot["is_available"] = body["is_available"]
            return self.ok(message="Slot updated")

        m = re.fullmatch(r"/cafes/cafe/([^/]+)", path)
        if method == "GET" and m:
            return self.ok({"items": self.items})

        if method == "POST" and path == "/cafes/items/create":
            item = {k: body[k] for k in ("item_name", "item_description", "category", "price", "recommended")}
            item["item_id"] = max(i["item_id"] for i in self.items) + 1
            self.items.append(item)
            return self.ok(item, status=201)

        if method == "PUT" and path == "/cafes/items/update":
            for item in self.items:
                if item["item_id"] == body["item_id"]:
                    item.update({k: v for k, v in body.items() if k != "item_id"})
            return self.ok()

        if method == "DELETE" and path == "/cafes/items/delete":
            self.items = [i for i in self.items if i["item_id"] != body["item_id"]]
            return self.ok()

        if method == "POST" and path == "/redeems":
            n = len(self.redeems) + 1
            item = next((i for i in self.items if i["item_id"] == body["itemId"]), None)
            if item is None:
                return self.error(404, "Item not found")
            redeem = {
                "redeem_id": f"R{n}",
                "cafe_id": body["cafeId"],
                "user_id": "U-redeem",
                "user_mobile_no": body["userMobile"],
                "user_name": "Ravi",
                "item_id": item["item_id"],
                "item_name": item["item_name"],
                "is_redeemed": False,
                "initiater_role": self.profiles[token]["user_role"],
                "redeem_code": f"CODE{n}",
                "created_at": "2025-11-09T09:00:00Z",
                "updated_at": None,
            }
            self.redeems[redeem["redeem_id"]] = redeem
            return self.ok({"redeem_id": redeem["redeem_id"]}, message="Redeem initiated. Code sent to user.", status=201)

        if method == "GET" and path == "/redeems/cafe":
            rows = [r for r in self.redeems.values() if r["cafe_id"] == params.get("cafeId")]
            if params.get("userMobile"):
                rows = [r for r in rows if r["user_mobile_no"] == params["userMobile"]]
            if params.get("type") == "initiated":
                rows = [r for r in rows if not r["is_redeemed"]]
            elif params.get("type") == "confirmed":
                rows = [r for r in rows if r["is_redeemed"]]
            return self.ok(rows)

        if method == "POST" and path == "/redeems/confirm":
            if self.confirm_error:
                return self.error(*self.confirm_error)
            redeem = self.redeems.get(body["redeemId"])
            if redeem is None:
                return self.error(404, "Redeem not found")
            if redeem["is_redeemed"]:
                return self.error(409, "Already redeemed", code="ALREADY_REDEEMED")
            if redeem["redeem_code"] != body["redeemCode"]:
                return self.error(400, "Invalid redeem code")
            redeem["is_redeemed"] = True
            redeem["updated_at"] = datetime.datetime.now(datetime.timezone.utc).isoformat()
            return self.ok(redeem, message="Redeem confirmed successfully!")

        m = re.fullmatch(r"/bookings/cafe-analytics/([^/]+)", path)
        if method == "GET" and m:
            rows = [
                {
                    "booking_id": f"B{i}", "booking_date": "2025-11-01", "booking_start_time": "10:00:00",
                    "booking_status": "accepted", "advance_paid": i % 2 == 0,
                    "transaction_amount": 100.0 if i % 2 == 0 else None,
                    "user_name": "Guest", "user_mobile_no": "+919876543210",
                }
                for i in range(20)
            ]
            return self.ok({
                "summary": {"total_amount": 1000, "paid_bookings": 10, "normal_bookings": 10},
                "chart": [{"date": "2025-11-01", "total_amount": 1000, "paid_amount": 1000}],
                "rows": rows,
            })

        m = re.fullmatch(r"/bookings/cafe-slots/([^/]+)", path)
        if method == "GET" and m:
            return self.ok({"categories": self.cafe_categories})

        m = re.fullmatch(r"/cafes/([^/]+)", path)
        if method == "GET" and m:
            if m.group(1) != self.cafe["cafe_id"]:
                return self.error(404, "Cafe not found")
            return self.ok(self.cafe)
        if method == "PUT" and m:
            if body.get("cafe_upi_id") in self.taken_upi_ids:
                return self.error(409, "UPI ID already in use")
            categories = body.pop("categories", None)
            self.cafe.update({k: v for k, v in body.items() if k in self.cafe})
            if categories is not None:
                self.cafe_categories = categories
            return self.ok(self.cafe, message="Cafe updated")

        if method == "GET" and path == "/admin/dashboard/stats":
            return self.ok({"total_cafes": 3, "active_users": 120, "total_referrals": 7})

        return self.error(404, f"No route for {method} {path}")


# --- Fixtures ---
@pytest.fixture
def fake_api():
    return FakeCafeApi()


@pytest.fixture
def http_client(fake_api):
    return httpx.AsyncClient(
        base_url="http://cafe.test/api",
        transport=httpx.MockTransport(fake_api.handle),
    )


@pytest.fixture
def token_store():
    return MemoryTokenStore(ADMIN_TOKEN)


@pytest.fixture
def api(http_client, token_store):
    """A CafeApiClient talking to the fake API as the café admin."""
    return CafeApiClient(http_client, token_store)


@pytest.fixture
def query_cache():
    """Pass-through cache (no Redis)."""
    return QueryCache(None)


@pytest.fixture
def no_debounce(monkeypatch):
    monkeypatch.setattr(settings, "SEARCH_DEBOUNCE_SECONDS", 0.0)


# --- API Test Client Fixture ---
@pytest.fixture
def client(fake_api):
    """Provides a TestClient wired to the fake café API and no Redis."""
    with TestClient(app, follow_redirects=False) as c:
        c.portal.call(app.state.http_client.aclose)
        app.state.http_client = httpx.AsyncClient(
            base_url="http://cafe.test/api",
            transport=httpx.MockTransport(fake_api.handle),
        )
        app.state.query_cache = QueryCache(None)
        yield c


def login_as(client: TestClient, token: str) -> None:
    client.cookies.set(settings.SESSION_COOKIE_NAME, seal_token(token))


class InMemoryRedis:
    """The handful of async Redis commands QueryCache uses, kept in a dict."""

    def __init__(self):
        self.store = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value

    async def incr(self, key):
        self.store[key] = str(int(self.store.get(key) or 0) + 1)
        return int(self.store[key])

    async def delete(self, *keys):
        for key in keys:
            self.store.pop(key, None)

    async def scan_iter(self, match=None):
        for key in list(self.store):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key


@pytest.fixture
def redis_client():
    return InMemoryRedis()
