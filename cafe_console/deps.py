from typing import Annotated

from fastapi import Depends, Request

from . import auth
from .analytics import AnalyticsReader
from .api_client import CafeApiClient
from .bookings import BookingStatusController
from .cafes import CafeProfileController
from .cache import QueryCache
from .exceptions import NotFound
from .items import MenuItemController
from .notifications import NotificationService
from .querying import LatestQueryGate
from .redemptions import RedemptionController
from .schemas import OperatorProfile
from .session import CookieTokenStore
from .slots import SlotController


def get_token_store(request: Request) -> CookieTokenStore:
    return CookieTokenStore(request)


def get_query_cache(request: Request) -> QueryCache:
    return request.app.state.query_cache


def get_query_gate(request: Request) -> LatestQueryGate:
    return request.app.state.query_gate


def get_api(request: Request, store: Annotated[CookieTokenStore, Depends(get_token_store)]) -> CafeApiClient:
    return CafeApiClient(request.app.state.http_client, store)


def require_view(view: str):
    """Dependency that resolves the operator and applies the view's allow-set."""
    allowed = auth.VIEW_ROLES[view]

    async def resolve(
        api: Annotated[CafeApiClient, Depends(get_api)],
        store: Annotated[CookieTokenStore, Depends(get_token_store)],
    ) -> OperatorProfile:
        return await auth.resolve_operator(api, store, allowed)

    return resolve


def cafe_of(profile: OperatorProfile) -> str:
    if not profile.cafe_id:
        raise NotFound("Cafe", f"for operator {profile.user_id}")
    return profile.cafe_id


def get_booking_controller(
    api: Annotated[CafeApiClient, Depends(get_api)],
    query_cache: Annotated[QueryCache, Depends(get_query_cache)],
    gate: Annotated[LatestQueryGate, Depends(get_query_gate)],
    store: Annotated[CookieTokenStore, Depends(get_token_store)],
) -> BookingStatusController:
    return BookingStatusController(api, query_cache, gate=gate, session_key=store.fingerprint())


def get_notification_service(
    api: Annotated[CafeApiClient, Depends(get_api)],
    query_cache: Annotated[QueryCache, Depends(get_query_cache)],
) -> NotificationService:
    return NotificationService(api, query_cache)


def get_slot_controller(
    api: Annotated[CafeApiClient, Depends(get_api)],
    query_cache: Annotated[QueryCache, Depends(get_query_cache)],
) -> SlotController:
    return SlotController(api, query_cache)


def get_item_controller(
    api: Annotated[CafeApiClient, Depends(get_api)],
    query_cache: Annotated[QueryCache, Depends(get_query_cache)],
) -> MenuItemController:
    return MenuItemController(api, query_cache)


def get_redemption_controller(
    api: Annotated[CafeApiClient, Depends(get_api)],
    query_cache: Annotated[QueryCache, Depends(get_query_cache)],
) -> RedemptionController:
    return RedemptionController(api, query_cache)


def get_analytics_reader(
    api: Annotated[CafeApiClient, Depends(get_api)],
    gate: Annotated[LatestQueryGate, Depends(get_query_gate)],
    store: Annotated[CookieTokenStore, Depends(get_token_store)],
) -> AnalyticsReader:
    return AnalyticsReader(api, gate=gate, session_key=store.fingerprint())


def get_cafe_controller(
    api: Annotated[CafeApiClient, Depends(get_api)],
    query_cache: Annotated[QueryCache, Depends(get_query_cache)],
) -> CafeProfileController:
    return CafeProfileController(api, query_cache)
