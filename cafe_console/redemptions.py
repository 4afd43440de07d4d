"""
Redemption workflow.

Two steps, both done by café staff:

1. initiate: staff picks the customer (by mobile) and an item. The API creates
   the redemption unconfirmed and sends the redeem code to the customer, not to
   the console.
2. confirm: the customer reads the code out, staff submits it. Only a matching
   code flips `is_redeemed`, and only once.

The initiated/confirmed split shown to operators is computed from the single
café list (partition_redemptions); there is no separate store for either half.
"""
import logging
import re
from typing import Iterable, List, Optional, Union

from . import cache
from .api_client import CafeApiClient
from .cache import QueryCache
from .config import settings
from .exceptions import (
    AlreadyConfirmed,
    ApiRejected,
    CodeMismatch,
    InvalidMobile,
    InvalidValue,
    MissingField,
)
from .items import MenuItemController
from .schemas import MenuItem, Redemption, RedemptionPartition

logger = logging.getLogger("cafe_console.redemptions")

STATES = ("initiated", "confirmed")

# API error codes for the two refusals confirm() distinguishes
ALREADY_CONFIRMED_CODES = ("ALREADY_CONFIRMED", "ALREADY_REDEEMED")
MISMATCH_CODES = ("INVALID_CODE", "INVALID_REDEEM_CODE", "CODE_MISMATCH")

_SEPARATORS = re.compile(r"[\s-]")
_TEN_DIGITS = re.compile(r"[0-9]{10}")


def normalize_mobile(raw: Optional[str]) -> str:
    """
    Canonical "+91XXXXXXXXXX" form of an operator-typed mobile number.

    Spaces and hyphens are ignored, and a leading +91 or 91 is dropped when what
    remains is ten digits. Anything else raises InvalidMobile.
    """
    if raw is None:
        raise InvalidMobile("")
    code = settings.MOBILE_COUNTRY_CODE
    digits = _SEPARATORS.sub("", raw)
    if digits.startswith("+" + code):
        digits = digits[len(code) + 1:]
    elif digits.startswith(code) and len(digits) == len(code) + 10:
        digits = digits[len(code):]
    if not _TEN_DIGITS.fullmatch(digits):
        raise InvalidMobile(raw)
    return f"+{code}{digits}"


def partition_redemptions(redemptions: Iterable[Redemption]) -> RedemptionPartition:
    initiated, confirmed = [], []
    for r in redemptions:
        (confirmed if r.is_redeemed else initiated).append(r)
    return RedemptionPartition(initiated=initiated, confirmed=confirmed)


def filter_redemptions(redemptions: Iterable[Redemption], text: Optional[str]) -> List[Redemption]:
    q = (text or "").strip().lower()
    if not q:
        return list(redemptions)
    return [
        r for r in redemptions
        if any(
            q in (v or "").lower()
            for v in (r.user_mobile_no, r.user_name, r.item_name, r.redeem_code, r.initiater_role)
        )
    ]


class RedemptionController:
    def __init__(self, api: CafeApiClient, query_cache: QueryCache, items: Optional[MenuItemController] = None):
        self.api = api
        self.cache = query_cache
        self.items = items or MenuItemController(api, query_cache)

    async def list_redeemable_items(self, cafe_id: str) -> List[MenuItem]:
        return await self.items.list_items(cafe_id)

    async def initiate(self, cafe_id: str, user_mobile: str, item_id: Union[int, str, None]) -> str:
        """
        Starts a redemption and returns the API's confirmation message. The
        redeem code goes to the customer and is never returned here.
        """
        if not (user_mobile or "").strip():
            raise MissingField("user_mobile", "Enter user mobile number")
        mobile = normalize_mobile(user_mobile)
        if item_id is None or str(item_id).strip() == "":
            raise MissingField("item_id", "Select an item to redeem")

        payload = await self.api.post(
            "/redeems",
            json={"cafeId": cafe_id, "userMobile": mobile, "itemId": item_id},
            envelope=True,
        ) or {}
        logger.info(f"Redemption of item {item_id} initiated at cafe {cafe_id}")
        await self.cache.invalidate(cache.REDEEMS, cafe_id)
        message = payload.get("message") if isinstance(payload, dict) else None
        return message or "Redeem initiated! Ask user for redeem code"

    async def user_redemptions(self, cafe_id: str, user_mobile: str, state: str = "initiated") -> List[Redemption]:
        """A customer's redemptions at this café in one state. Always read fresh."""
        if state not in STATES:
            raise InvalidValue("type", "type must be 'initiated' or 'confirmed'")
        if not (user_mobile or "").strip():
            raise MissingField("user_mobile", "Enter user mobile number")
        mobile = normalize_mobile(user_mobile)

        rows = await self.api.get(
            "/redeems/cafe", params={"cafeId": cafe_id, "userMobile": mobile, "type": state}
        ) or []
        redemptions = [Redemption.model_validate(row) for row in rows]
        halves = partition_redemptions(redemptions)
        return halves.initiated if state == "initiated" else halves.confirmed

    async def confirm(
        self,
        cafe_id: str,
        redeem_id: str,
        redeem_code: str,
        known: Optional[Redemption] = None,
    ) -> str:
        """
        Confirms a redemption with the code the customer received.

        A redemption already known to be confirmed is refused without a call.
        The API decides whether the code matches. Refusals other than
        "already confirmed" and "wrong code" (unknown id, bad request) come
        back as ApiRejected.
        """
        if not (redeem_code or "").strip():
            raise MissingField("redeem_code", "Enter redeem code")
        if known is not None and known.is_redeemed:
            raise AlreadyConfirmed(redeem_id)

        try:
            payload = await self.api.post(
                "/redeems/confirm",
                json={"redeemId": redeem_id, "redeemCode": redeem_code.strip()},
                envelope=True,
            ) or {}
        except ApiRejected as e:
            code = (e.api_error_code or "").upper()
            if e.status == 409 or code in ALREADY_CONFIRMED_CODES:
                logger.warning(f"Redemption {redeem_id} was already confirmed")
                raise AlreadyConfirmed(redeem_id, message=e.message)
            if e.status == 400 or code in MISMATCH_CODES:
                logger.warning(f"Redemption {redeem_id} confirmation refused: {e.message}")
                raise CodeMismatch(redeem_id, message=e.message)
            raise

        logger.info(f"Redemption {redeem_id} confirmed at cafe {cafe_id}")
        await self.cache.invalidate(cache.REDEEMS, cafe_id)
        message = payload.get("message") if isinstance(payload, dict) else None
        return message or "Redeem confirmed successfully!"

    async def cafe_redemptions(self, cafe_id: str) -> List[Redemption]:
        async def fetch():
            return await self.api.get("/redeems/cafe", params={"cafeId": cafe_id}) or []

        rows = await self.cache.get_or_fetch(fetch, cache.REDEEMS, cafe_id)
        return [Redemption.model_validate(row) for row in rows]

    async def find_redemption(self, cafe_id: str, redeem_id: str) -> Optional[Redemption]:
        for r in await self.cafe_redemptions(cafe_id):
            if str(r.redeem_id) == str(redeem_id):
                return r
        return None
