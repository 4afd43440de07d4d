import logging
from collections import OrderedDict
from typing import Dict, Iterable, List

from . import cache
from .api_client import CafeApiClient
from .cache import QueryCache
from .exceptions import InvalidValue, NotFound
from .schemas import Slot

logger = logging.getLogger("cafe_console.slots")


def group_slots(slots: Iterable[Slot]) -> Dict[str, List[Slot]]:
    """Slots by category, each list ordered by slot_time (HH:MM:SS compares as text)."""
    grouped: Dict[str, List[Slot]] = OrderedDict()
    for slot in slots:
        grouped.setdefault(slot.category, []).append(slot)
    for category_slots in grouped.values():
        category_slots.sort(key=lambda s: s.slot_time)
    return grouped


def slot_hour(slot: Slot) -> int:
    """
    The hour the availability endpoint addresses a slot by. Minutes are
    dropped, so half-hour slots share an hour with their neighbour.
    """
    hour_part, _, rest = slot.slot_time.partition(":")
    try:
        hour = int(hour_part)
    except ValueError:
        raise InvalidValue("slot_time", f"Unreadable slot time {slot.slot_time!r}")
    if rest[:2] not in ("", "00"):
        logger.warning(
            f"Slot {slot.slot_id} ({slot.category} {slot.slot_time}) is not on the hour; "
            f"toggling hour {hour} may affect a different slot"
        )
    return hour


class SlotController:
    def __init__(self, api: CafeApiClient, query_cache: QueryCache):
        self.api = api
        self.cache = query_cache

    async def list_slots(self, cafe_id: str) -> List[Slot]:
        async def fetch():
            return await self.api.get(f"/bookings/cafe-slots/manage/{cafe_id}") or []

        rows = await self.cache.get_or_fetch(fetch, cache.SLOTS, cafe_id)
        return [Slot.model_validate(row) for row in rows]

    async def find_slot(self, cafe_id: str, slot_id: int) -> Slot:
        for slot in await self.list_slots(cafe_id):
            if slot.slot_id == slot_id:
                return slot
        raise NotFound("Slot", str(slot_id))

    async def toggle_availability(self, cafe_id: str, slot: Slot, is_available: bool) -> None:
        await self.api.patch(
            "/bookings/cafe-slots/availability",
            json={
                "cafe_id": cafe_id,
                "category": slot.category,
                "hour": slot_hour(slot),
                "is_available": is_available,
            },
        )
        logger.info(f"Slot {slot.slot_id} in {cafe_id} set available={is_available}")
        await self.cache.invalidate(cache.SLOTS, cafe_id)
