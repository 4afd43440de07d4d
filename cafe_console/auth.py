import logging
from typing import Iterable, Optional

from .api_client import CafeApiClient
from .config import settings
from .exceptions import (
    AccessDenied,
    AuthenticationRequired,
    MissingField,
    TransportFailure,
)
from .schemas import OperatorProfile, Role
from .session import TokenStore

logger = logging.getLogger("cafe_console.auth")

ADMIN_ONLY = frozenset({Role.CAFE_ADMIN})
ANY_OPERATOR = frozenset({Role.CAFE_ADMIN, Role.CAFE_STAFF})

# Every protected view declares its allow-set here, and only here.
VIEW_ROLES = {
    "profile": ANY_OPERATOR,
    "admin_dashboard": ADMIN_ONLY,
    "analytics": ANY_OPERATOR,
    "bookings": ANY_OPERATOR,
    "slots": ANY_OPERATOR,
    "redeem": ANY_OPERATOR,
    "items": ANY_OPERATOR,
    "cafe_profile": ADMIN_ONLY,
}


def landing_for(role: Optional[Role]) -> str:
    if role is Role.CAFE_ADMIN:
        return settings.ADMIN_LANDING_PATH
    if role is Role.CAFE_STAFF:
        return settings.STAFF_LANDING_PATH
    return settings.UNAUTHORIZED_PATH


def check_role(profile: OperatorProfile, allowed: Iterable[Role], store: TokenStore) -> OperatorProfile:
    """
    Lets the profile through if its role is in `allowed`.

    A known role that is not allowed here is bounced to its own landing page
    and keeps its session. An unrecognised role loses the credential and goes
    to the not-authorized page.
    """
    role = profile.role
    if role is None:
        logger.warning(f"Operator {profile.user_id} has unrecognised role {profile.user_role!r}")
        store.clear()
        raise AccessDenied(settings.UNAUTHORIZED_PATH, clear_credential=True)
    if role not in allowed:
        logger.info(f"Operator {profile.user_id} ({role.value}) redirected to landing page")
        raise AccessDenied(landing_for(role))
    return profile


async def fetch_profile(api: CafeApiClient, store: TokenStore) -> OperatorProfile:
    """
    Calls the identity endpoint.

    No token: redirect to login without calling the API. 401: the credential is
    cleared and the operator goes to login. 403: cleared, not-authorized page.
    Anything else (network, 5xx) surfaces as a retryable TransportFailure and
    keeps the credential.
    """
    if not store.get():
        raise AuthenticationRequired(settings.LOGIN_PATH, clear_credential=False)

    try:
        data = await api.get("/cafes/admin/me")
    except AccessDenied as e:
        store.clear()
        raise AccessDenied(settings.UNAUTHORIZED_PATH, clear_credential=True, message=e.message)

    if not data:
        store.clear()
        raise AuthenticationRequired(settings.LOGIN_PATH)
    try:
        return OperatorProfile.model_validate(data)
    except ValueError as e:
        logger.error(f"Identity endpoint returned an unusable profile: {e}")
        raise TransportFailure("The café service sent an unreadable profile.")


async def resolve_operator(api: CafeApiClient, store: TokenStore, allowed: Iterable[Role]) -> OperatorProfile:
    profile = await fetch_profile(api, store)
    return check_role(profile, allowed, store)


async def login(api: CafeApiClient, store: TokenStore, username: str, password: str) -> str:
    """Exchanges credentials for a token, stores it and returns the landing path."""
    if not username.strip():
        raise MissingField("login_user_name", "Username is required")
    if not password.strip():
        raise MissingField("password_hash", "Password is required")

    try:
        data = await api.post(
            "/cafes/login",
            json={"login_user_name": username.strip(), "password_hash": password},
        ) or {}
    except AuthenticationRequired:
        raise AuthenticationRequired(settings.LOGIN_PATH, clear_credential=False, message="Invalid credentials")
    user = data.get("user") if isinstance(data, dict) else None
    token = data.get("token") if isinstance(data, dict) else None
    if not user or not token:
        raise AuthenticationRequired(settings.LOGIN_PATH, clear_credential=False, message="Invalid credentials")

    role = Role.parse(user.get("user_role"))
    if role is None:
        logger.warning(f"Login refused for unrecognised role {user.get('user_role')!r}")
        raise AccessDenied(settings.UNAUTHORIZED_PATH, message="You do not have access to this panel.")

    store.set(token)
    logger.info(f"Operator {user.get('user_id')} logged in as {role.value}")
    return landing_for(role)


def logout(store: TokenStore) -> str:
    store.clear()
    return settings.LOGIN_PATH
