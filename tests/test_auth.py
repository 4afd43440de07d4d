import pytest

from cafe_console import auth
from cafe_console.config import settings
from cafe_console.exceptions import AccessDenied, AuthenticationRequired, MissingField, TransportFailure
from cafe_console.schemas import OperatorProfile, Role
from cafe_console.session import MemoryTokenStore

from conftest import ADMIN_TOKEN, GUEST_TOKEN, STAFF_TOKEN


def _profile(role):
    return OperatorProfile(user_id="U1", user_name="Op", user_role=role, cafe_id="C1")


def test_every_view_declares_roles():
    assert auth.VIEW_ROLES["admin_dashboard"] == {Role.CAFE_ADMIN}
    assert auth.VIEW_ROLES["cafe_profile"] == {Role.CAFE_ADMIN}
    for view in ("analytics", "bookings", "slots", "redeem", "items", "profile"):
        assert auth.VIEW_ROLES[view] == {Role.CAFE_ADMIN, Role.CAFE_STAFF}


def test_landing_pages():
    assert auth.landing_for(Role.CAFE_ADMIN) == settings.ADMIN_LANDING_PATH
    assert auth.landing_for(Role.CAFE_STAFF) == settings.STAFF_LANDING_PATH
    assert auth.landing_for(None) == settings.UNAUTHORIZED_PATH


# --- Role checks ---

def test_staff_on_admin_view_goes_to_staff_landing():
    store = MemoryTokenStore(STAFF_TOKEN)

    with pytest.raises(AccessDenied) as exc:
        auth.check_role(_profile("cafe_staff"), auth.VIEW_ROLES["admin_dashboard"], store)

    assert exc.value.location == settings.STAFF_LANDING_PATH
    assert exc.value.clear_credential is False
    assert store.get() == STAFF_TOKEN


def test_unknown_role_is_cleared():
    store = MemoryTokenStore(GUEST_TOKEN)

    with pytest.raises(AccessDenied) as exc:
        auth.check_role(_profile("customer"), auth.VIEW_ROLES["bookings"], store)

    assert exc.value.location == settings.UNAUTHORIZED_PATH
    assert exc.value.clear_credential is True
    assert store.get() is None


def test_allowed_role_passes():
    profile = _profile("cafe_admin")
    assert auth.check_role(profile, auth.VIEW_ROLES["admin_dashboard"], MemoryTokenStore(ADMIN_TOKEN)) is profile


# --- Identity endpoint ---

@pytest.mark.asyncio
async def test_no_token_redirects_without_calling(api, token_store, fake_api):
    token_store.clear()

    with pytest.raises(AuthenticationRequired) as exc:
        await auth.fetch_profile(api, token_store)

    assert exc.value.location == settings.LOGIN_PATH
    assert fake_api.calls == []


@pytest.mark.asyncio
async def test_resolve_admin(api, token_store):
    profile = await auth.resolve_operator(api, token_store, auth.VIEW_ROLES["admin_dashboard"])
    assert profile.role is Role.CAFE_ADMIN
    assert profile.cafe_id == "C1"


@pytest.mark.asyncio
async def test_resolve_staff_on_admin_view(api, token_store):
    token_store.set(STAFF_TOKEN)

    with pytest.raises(AccessDenied) as exc:
        await auth.resolve_operator(api, token_store, auth.VIEW_ROLES["cafe_profile"])

    assert exc.value.location == settings.STAFF_LANDING_PATH
    assert token_store.get() == STAFF_TOKEN


@pytest.mark.asyncio
async def test_resolve_unknown_role(api, token_store):
    token_store.set(GUEST_TOKEN)

    with pytest.raises(AccessDenied) as exc:
        await auth.resolve_operator(api, token_store, auth.VIEW_ROLES["bookings"])

    assert exc.value.location == settings.UNAUTHORIZED_PATH
    assert token_store.get() is None


@pytest.mark.asyncio
async def test_401_clears_token(api, token_store, fake_api):
    token_store.set("expired-token")

    with pytest.raises(AuthenticationRequired) as exc:
        await auth.fetch_profile(api, token_store)

    assert exc.value.location == settings.LOGIN_PATH
    assert exc.value.clear_credential is True
    assert token_store.get() is None


@pytest.mark.asyncio
async def test_403_clears_token(api, token_store, fake_api):
    fake_api.fail[("GET", "/cafes/admin/me")] = 403

    with pytest.raises(AccessDenied) as exc:
        await auth.fetch_profile(api, token_store)

    assert exc.value.location == settings.UNAUTHORIZED_PATH
    assert exc.value.clear_credential is True
    assert token_store.get() is None


@pytest.mark.asyncio
async def test_server_error_keeps_token(api, token_store, fake_api):
    fake_api.fail[("GET", "/cafes/admin/me")] = 500

    with pytest.raises(TransportFailure) as exc:
        await auth.fetch_profile(api, token_store)

    assert exc.value.retryable is True
    assert token_store.get() == ADMIN_TOKEN


# --- Login / logout ---

@pytest.mark.asyncio
@pytest.mark.parametrize("username, landing", [
    ("asha", settings.ADMIN_LANDING_PATH),
    ("sam", settings.STAFF_LANDING_PATH),
])
async def test_login_stores_token_and_lands(api, token_store, username, landing):
    token_store.clear()

    assert await auth.login(api, token_store, username, "secret") == landing
    assert token_store.get() is not None


@pytest.mark.asyncio
async def test_login_with_bad_password(api, token_store):
    token_store.clear()

    with pytest.raises(AuthenticationRequired) as exc:
        await auth.login(api, token_store, "asha", "wrong")

    assert exc.value.message == "Invalid credentials"
    assert token_store.get() is None


@pytest.mark.asyncio
async def test_login_refuses_customer_accounts(api, token_store):
    token_store.clear()

    with pytest.raises(AccessDenied):
        await auth.login(api, token_store, "gita", "secret")
    assert token_store.get() is None


@pytest.mark.asyncio
async def test_login_requires_both_fields(api, token_store, fake_api):
    with pytest.raises(MissingField):
        await auth.login(api, token_store, "", "secret")
    with pytest.raises(MissingField):
        await auth.login(api, token_store, "asha", " ")
    assert fake_api.calls == []


def test_logout_clears():
    store = MemoryTokenStore(ADMIN_TOKEN)
    assert auth.logout(store) == settings.LOGIN_PATH
    assert store.get() is None
