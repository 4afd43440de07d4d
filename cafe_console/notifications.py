"""
Booking notifications: message presets, the send command and the history query.

A booking can be notified at most once. `notification_sent` is checked here
before any request goes out, but the API stays authoritative: a 409 from
/push/send is reported the same way.
"""
import logging
from typing import Any, Dict, List, Optional

from . import cache
from .api_client import CafeApiClient
from .cache import QueryCache
from .exceptions import AlreadyNotified, ApiRejected, InvalidValue, MissingField
from .schemas import Booking, BookingStatus, Notification, NotificationTemplate

logger = logging.getLogger("cafe_console.notifications")

TEMPLATES: Dict[str, List[NotificationTemplate]] = {
    "accepted": [
        NotificationTemplate(
            title="Booking confirmed",
            body="Hi {user_name}, your table for {guests} at {cafe_name} on {date} at {time} is confirmed. See you soon!",
        ),
        NotificationTemplate(
            title="You're all set!",
            body="Good news {user_name}! {cafe_name} has accepted your booking for {date}, {time}.",
        ),
        NotificationTemplate(
            title="Table reserved",
            body="Your reservation at {cafe_name} ({date}, {time}) is accepted. Please arrive 10 minutes early.",
        ),
    ],
    "rejected": [
        NotificationTemplate(
            title="Booking update",
            body="Sorry {user_name}, {cafe_name} cannot take your booking for {date} at {time}.",
        ),
        NotificationTemplate(
            title="Fully booked",
            body="We're fully booked on {date} at {time}. Please try another slot at {cafe_name}.",
        ),
        NotificationTemplate(
            title="Booking declined",
            body="Your booking request at {cafe_name} was declined. Any advance paid will be refunded.",
        ),
    ],
    "generic": [
        NotificationTemplate(
            title="Message from {cafe_name}",
            body="Hi {user_name}, there is an update about your booking on {date} at {time}.",
        ),
        NotificationTemplate(
            title="Booking reminder",
            body="Reminder: your booking at {cafe_name} is on {date} at {time}.",
        ),
        NotificationTemplate(
            title="We'd love to hear from you",
            body="Thanks for choosing {cafe_name}, {user_name}! Reply in the app if you need anything.",
        ),
    ],
}


def template_category(target: Optional[BookingStatus]) -> str:
    if target is BookingStatus.ACCEPTED:
        return "accepted"
    if target is BookingStatus.REJECTED:
        return "rejected"
    return "generic"


class _Defaults(dict):
    def __missing__(self, key):
        return ""


def render_template(category: str, index: int, booking: Booking, cafe_name: Optional[str] = None) -> NotificationTemplate:
    presets = TEMPLATES.get(category)
    if presets is None:
        raise InvalidValue("template", f"Unknown template category {category!r}")
    if not 0 <= index < len(presets):
        raise InvalidValue("template", f"Template {index} does not exist for {category}")
    values = _Defaults(
        user_name=booking.user_name or "there",
        cafe_name=cafe_name or "our café",
        guests=booking.num_of_guests,
        date=booking.booking_date.strftime("%d %b %Y"),
        time=booking.booking_start_time.strftime("%I:%M %p"),
    )
    preset = presets[index]
    return NotificationTemplate(
        title=preset.title.format_map(values),
        body=preset.body.format_map(values),
    )


def templates_for(category: str, booking: Booking, cafe_name: Optional[str] = None) -> List[NotificationTemplate]:
    return [render_template(category, i, booking, cafe_name) for i in range(len(TEMPLATES[category]))]


class NotificationService:
    def __init__(self, api: CafeApiClient, query_cache: QueryCache):
        self.api = api
        self.cache = query_cache

    async def send(
        self,
        cafe_id: str,
        booking: Booking,
        title: str,
        body: str,
        user_id: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Sends a push notification about `booking` to its customer.

        Raises AlreadyNotified without any request if the booking was already
        notified. Never retried automatically.
        """
        if booking.notification_sent:
            logger.warning(f"Refusing to notify booking {booking.booking_id} twice")
            raise AlreadyNotified(booking.booking_id)
        if not title or not title.strip():
            raise MissingField("title")
        if not body or not body.strip():
            raise MissingField("body")
        user_id = user_id or booking.user_id
        if not user_id:
            raise MissingField("user_id")

        payload_data = dict(data or {})
        payload_data["booking_id"] = booking.booking_id
        payload_data["cafe_id"] = cafe_id

        try:
            result = await self.api.post(
                "/push/send",
                json={
                    "user_id": user_id,
                    "title": title.strip(),
                    "body": body.strip(),
                    "data": payload_data,
                },
            )
        except ApiRejected as e:
            if e.status == 409:
                raise AlreadyNotified(booking.booking_id, message=e.message)
            raise

        logger.info(f"Notification sent for booking {booking.booking_id}")
        await self.cache.invalidate(cache.BOOKINGS, cafe_id)
        await self.cache.invalidate(cache.NOTIFICATIONS, booking.booking_id)
        return result

    async def history(self, booking_id: str, user_id: str) -> List[Notification]:
        """Notifications whose data references this booking, as logged by the API."""

        async def fetch():
            return await self.api.get(
                "/notifications", params={"booking_id": booking_id, "user_id": user_id}
            ) or []

        rows = await self.cache.get_or_fetch(fetch, cache.NOTIFICATIONS, booking_id, user_id)
        notifications = [Notification.model_validate(row) for row in rows]
        return [n for n in notifications if str(n.data.get("booking_id")) == str(booking_id)]
