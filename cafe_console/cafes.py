"""
Café profile settings, editable by the café admin only.

The profile and the slot categories live behind two endpoints; they are read
together and written in one PUT. Saving invalidates the profile and the slot
lists, since categories and hours drive the slot grid.
"""

import asyncio
import logging
import re
from typing import Any, List

from . import cache
from .api_client import CafeApiClient
from .cache import QueryCache
from .exceptions import ApiRejected, DuplicateUpiId, InvalidValue, MissingField
from .schemas import CafeProfile, CafeProfileUpdate, CafeSettings, SlotCategory

logger = logging.getLogger("cafe_console.cafes")

MOBILE_RE = re.compile(r"^\+?\d{10,15}$")
TIME_RE = re.compile(r"^\d{2}:\d{2}(:\d{2})?$")
HOUR_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

MIN_LENGTHS = {
    "cafe_name": 3,
    "cafe_location": 5,
    "cafe_upi_id": 5,
}


def _validate_categories(categories: List[SlotCategory]) -> List[SlotCategory]:
    seen = set()
    cleaned = []
    for category in categories:
        name = (category.name or "").strip()
        if not name:
            raise MissingField("categories", "Every slot category needs a name")
        if name.lower() in seen:
            raise InvalidValue("categories", f"Slot category {name!r} is listed twice")
        seen.add(name.lower())
        for hour in category.hours:
            if not HOUR_RE.match(hour or ""):
                raise InvalidValue("categories", f"{hour!r} in {name} is not a valid HH:MM time")
        cleaned.append(SlotCategory(name=name, hours=sorted(set(category.hours))))
    return cleaned


def validate_cafe_update(update: CafeProfileUpdate) -> CafeProfileUpdate:
    """Checks an edited profile and returns it with names trimmed and hours sorted."""
    values = {}
    for field in ("cafe_name", "cafe_location", "cafe_mobile_no", "cafe_upi_id", "opening_time", "closing_time"):
        value = (getattr(update, field) or "").strip()
        if not value:
            raise MissingField(field)
        values[field] = value

    for field, minimum in MIN_LENGTHS.items():
        if len(values[field]) < minimum:
            raise InvalidValue(field, f"{field} must be at least {minimum} characters")
    if not MOBILE_RE.match(values["cafe_mobile_no"]):
        raise InvalidValue("cafe_mobile_no", "Enter a valid café phone number")
    for field in ("opening_time", "closing_time"):
        if not TIME_RE.match(values[field]):
            raise InvalidValue(field, f"{field} must look like HH:MM")

    if update.latitude is not None and not -90 <= update.latitude <= 90:
        raise InvalidValue("latitude", "Latitude must be between -90 and 90")
    if update.longitude is not None and not -180 <= update.longitude <= 180:
        raise InvalidValue("longitude", "Longitude must be between -180 and 180")

    for day in update.working_days:
        if day not in WEEKDAYS:
            raise InvalidValue("working_days", f"{day!r} is not a day of the week")

    if update.categories is not None:
        values["categories"] = _validate_categories(update.categories)
    if update.cafe_description is not None:
        values["cafe_description"] = update.cafe_description.strip()
    return update.model_copy(update=values)


class CafeProfileController:
    def __init__(self, api: CafeApiClient, query_cache: QueryCache):
        self.api = api
        self.cache = query_cache

    async def get_profile(self, cafe_id: str) -> CafeSettings:
        async def fetch():
            profile, slots = await asyncio.gather(
                self.api.get(f"/cafes/{cafe_id}"),
                self.api.get(f"/bookings/cafe-slots/{cafe_id}"),
            )
            categories = slots.get("categories") if isinstance(slots, dict) else slots
            return {"profile": profile, "categories": categories or []}

        data = await self.cache.get_or_fetch(fetch, cache.CAFE, cafe_id)
        return CafeSettings(
            profile=CafeProfile.model_validate(data["profile"]),
            categories=[SlotCategory.model_validate(c) for c in data["categories"]],
        )

    async def update_profile(self, cafe_id: str, update: CafeProfileUpdate) -> Any:
        update = validate_cafe_update(update)
        payload = update.model_dump(exclude_none=True)
        try:
            result = await self.api.put(f"/cafes/{cafe_id}", json={**payload, "cafe_id": cafe_id})
        except ApiRejected as e:
            if e.status == 409 or "upi" in e.message.lower():
                logger.warning(f"UPI ID {update.cafe_upi_id!r} refused for cafe {cafe_id}: {e.message}")
                raise DuplicateUpiId(update.cafe_upi_id, message=e.message)
            raise

        logger.info(f"Updated profile for cafe {cafe_id}")
        await self.cache.invalidate(cache.CAFE, cafe_id)
        await self.cache.invalidate(cache.SLOTS, cafe_id)
        return result
