import logging
from typing import Any, Hashable, Iterable, List, Optional

from . import cache
from .api_client import CafeApiClient
from .cache import QueryCache
from .config import settings
from .exceptions import (
    ApiRejected,
    ConsoleError,
    InvalidTransition,
    InvalidValue,
    NavigationRequired,
    NotFound,
)
from .notifications import NotificationService, template_category, templates_for
from .querying import LatestQueryGate
from .schemas import (
    OPERATOR_TARGETS,
    STATUS_WEIGHT,
    UNKNOWN_STATUS_WEIGHT,
    Booking,
    BookingStatus,
    NotificationDraft,
    StatusChangeOutcome,
    StatusChangePrompt,
)

logger = logging.getLogger("cafe_console.bookings")

VIEWS = ("recent", "past")


def sort_bookings(bookings: Iterable[Booking]) -> List[Booking]:
    """
    Awaiting-decision bookings first, then accepted, then rejected/cancelled.
    Within a group the latest date+time comes first; booking_id breaks ties.
    """
    ordered = sorted(bookings, key=lambda b: b.booking_id)
    # sorted() is stable, so each pass keeps the order of the previous one for equal keys
    ordered.sort(key=lambda b: b.starts_at, reverse=True)
    ordered.sort(key=lambda b: STATUS_WEIGHT.get(b.status, UNKNOWN_STATUS_WEIGHT))
    return ordered


def parse_target(status: str) -> BookingStatus:
    try:
        target = BookingStatus(status)
    except ValueError:
        target = None
    if target not in OPERATOR_TARGETS:
        raise InvalidValue("status", "Bookings can only be accepted or rejected")
    return target


def check_transition(booking: Booking, target: BookingStatus) -> None:
    if not booking.awaiting_decision:
        raise InvalidTransition(booking.booking_id, booking.booking_status, target.value)


class BookingStatusController:
    def __init__(
        self,
        api: CafeApiClient,
        query_cache: QueryCache,
        gate: Optional[LatestQueryGate] = None,
        session_key: Hashable = "anonymous",
        notifications: Optional[NotificationService] = None,
    ):
        self.api = api
        self.cache = query_cache
        self.gate = gate or LatestQueryGate()
        self.session_key = session_key
        self.notifications = notifications or NotificationService(api, query_cache)

    async def _fetch_bookings(self, cafe_id: str, view: str, search: Optional[str]) -> List[Any]:
        async def fetch():
            return await self.api.get(
                f"/bookings/cafe/{cafe_id}", params={"view": view, "search": search}
            ) or []

        return await self.cache.get_or_fetch(fetch, cache.BOOKINGS, cafe_id, view, search)

    async def list_bookings(self, cafe_id: str, view: str = "recent", search: Optional[str] = None) -> List[Booking]:
        """
        Bookings for a café, sorted for display.

        A newer call from the same session with different parameters wins; this
        one then raises QuerySuperseded. Free-text searches are debounced.
        """
        if view not in VIEWS:
            raise InvalidValue("view", "View must be 'recent' or 'past'")
        search = (search or "").strip() or None
        delay = settings.SEARCH_DEBOUNCE_SECONDS if search else 0.0

        rows = await self.gate.run(
            (self.session_key, "bookings", cafe_id),
            lambda: self._fetch_bookings(cafe_id, view, search),
            delay=delay,
        )
        return sort_bookings(Booking.model_validate(row) for row in rows)

    async def find_booking(self, cafe_id: str, booking_id: str) -> Booking:
        for view in VIEWS:
            for row in await self._fetch_bookings(cafe_id, view, None):
                if str(row.get("booking_id")) == str(booking_id):
                    return Booking.model_validate(row)
        raise NotFound("Booking", booking_id)

    async def update_status(self, cafe_id: str, booking: Booking, status: str) -> BookingStatus:
        """
        Accepts or rejects a booking that is still pending/initiated.
        `cafe_id` is the operator's café, whose lists are refreshed afterwards.

        Nothing is changed locally; on success the café's booking lists are
        invalidated so the next read shows the server's state.
        """
        target = parse_target(status)
        check_transition(booking, target)

        try:
            await self.api.patch(f"/bookings/{booking.booking_id}/status", json={"status": target.value})
        except ApiRejected as e:
            if e.status in (400, 409, 422):
                logger.warning(f"API refused {target.value} for booking {booking.booking_id}: {e.message}")
                raise InvalidTransition(booking.booking_id, booking.booking_status, target.value, message=e.message)
            raise

        logger.info(f"Booking {booking.booking_id} {booking.booking_status} -> {target.value}")
        await self.cache.invalidate(cache.BOOKINGS, cafe_id)
        return target

    def request_status_change(self, booking: Booking, status: str, cafe_name: Optional[str] = None) -> StatusChangePrompt:
        """First step of accept/reject: validate, and offer a notification if none was sent yet."""
        target = parse_target(status)
        check_transition(booking, target)
        category = template_category(target)
        offer = not booking.notification_sent
        return StatusChangePrompt(
            booking_id=booking.booking_id,
            target=target,
            offer_notification=offer,
            template_category=category,
            templates=templates_for(category, booking, cafe_name) if offer else [],
        )

    async def apply_status_change(
        self,
        cafe_id: str,
        booking: Booking,
        status: str,
        notification: Optional[NotificationDraft] = None,
    ) -> StatusChangeOutcome:
        """
        Second step: update the status, then optionally notify.

        The two calls are independent. If the update succeeds and the
        notification fails, the booking keeps its new status and stays
        un-notified; the failure is reported in the outcome.
        """
        target = await self.update_status(cafe_id, booking, status)

        if notification is None or booking.notification_sent:
            return StatusChangeOutcome(booking_id=booking.booking_id, status=target, notification="skipped")

        try:
            await self.notifications.send(
                cafe_id,
                booking,
                notification.title,
                notification.body,
                data=notification.data,
            )
        except NavigationRequired:
            raise
        except ConsoleError as e:
            logger.error(f"Booking {booking.booking_id} is {target.value} but notification failed: {e.message}")
            return StatusChangeOutcome(
                booking_id=booking.booking_id,
                status=target,
                notification="failed",
                notice=e.message,
            )
        return StatusChangeOutcome(booking_id=booking.booking_id, status=target, notification="sent")
