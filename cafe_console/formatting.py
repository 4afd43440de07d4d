import datetime
import logging
from typing import Optional, Union
from zoneinfo import ZoneInfo

logger = logging.getLogger("cafe_console.formatting")

IST = ZoneInfo("Asia/Kolkata")


def format_ist(value: Optional[Union[str, datetime.datetime]]) -> str:
    """
    Formats a UTC timestamp from the API in Indian Standard Time.

    "2025-11-07T01:08:21.991Z" -> "7 Nov 2025, 6:38 am"
    """
    if not value:
        return "--"
    try:
        if isinstance(value, str):
            value = datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
        if value.tzinfo is None:
            value = value.replace(tzinfo=datetime.timezone.utc)
    except ValueError as e:
        logger.error(f"Error formatting date {value!r}: {e}")
        return "--"
    local = value.astimezone(IST)
    hour = local.hour % 12 or 12
    meridiem = "am" if local.hour < 12 else "pm"
    return f"{local.day} {local:%b} {local.year}, {hour}:{local:%M} {meridiem}"


def format_slot_time(slot_time: str) -> str:
    """Converts HH:MM:SS to hh:mm AM/PM."""
    parts = slot_time.split(":")
    hour = int(parts[0] or 0)
    minute = int(parts[1]) if len(parts) > 1 and parts[1] else 0
    return datetime.time(hour, minute).strftime("%I:%M %p")


def _group_indian(digits: str) -> str:
    # Last three digits, then groups of two: 12,34,567
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def number_format(value: float) -> str:
    negative = value < 0
    whole, _, fraction = f"{abs(value):.3f}".rstrip("0").rstrip(".").partition(".")
    text = _group_indian(whole)
    if fraction:
        text = f"{text}.{fraction}"
    return f"-{text}" if negative else text


def currency_format(value: float) -> str:
    negative = value < 0
    whole, fraction = f"{abs(value):.2f}".split(".")
    text = f"₹{_group_indian(whole)}.{fraction}"
    return f"-{text}" if negative else text
