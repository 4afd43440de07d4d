from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.responses import RedirectResponse

from .. import auth, schemas
from ..api_client import CafeApiClient
from ..deps import get_api, get_token_store, require_view
from ..session import CookieTokenStore

router = APIRouter(tags=["Session"])


@router.post("/login", status_code=status.HTTP_303_SEE_OTHER)
async def login(
        credentials: schemas.LoginRequest,
        api: Annotated[CafeApiClient, Depends(get_api)],
        store: Annotated[CookieTokenStore, Depends(get_token_store)],
):
    """
    Exchange username/password for an API token and go to the role's landing page.
    """
    landing = await auth.login(api, store, credentials.login_user_name, credentials.password_hash)
    return store.apply(RedirectResponse(landing, status_code=status.HTTP_303_SEE_OTHER))


@router.post("/logout", status_code=status.HTTP_303_SEE_OTHER)
def logout(store: Annotated[CookieTokenStore, Depends(get_token_store)]):
    target = auth.logout(store)
    return store.apply(RedirectResponse(target, status_code=status.HTTP_303_SEE_OTHER))


@router.get("/dashboard", status_code=status.HTTP_303_SEE_OTHER)
async def dashboard(
        api: Annotated[CafeApiClient, Depends(get_api)],
        store: Annotated[CookieTokenStore, Depends(get_token_store)],
):
    """
    Send the operator to the landing page for their role.
    """
    profile = await auth.fetch_profile(api, store)
    if profile.role is None:
        auth.check_role(profile, auth.ANY_OPERATOR, store)
    return RedirectResponse(auth.landing_for(profile.role), status_code=status.HTTP_303_SEE_OTHER)


@router.get("/dashboard/me", response_model=schemas.OperatorProfile)
def me(profile: Annotated[schemas.OperatorProfile, Depends(require_view("profile"))]):
    return profile
