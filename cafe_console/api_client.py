"""
HTTP client for the external café REST API.

Injects the operator's bearer token from the TokenStore, unwraps the
`{"data": ...}` envelope and turns every failure into a ConsoleError:

- 401 -> AuthenticationRequired (stored token cleared)
- 403 -> AccessDenied
- other 4xx -> ApiRejected, carrying the server's message
- 5xx, timeouts, connection errors, non-JSON bodies -> TransportFailure
"""

import logging
from typing import Any, Optional

import httpx

from .config import settings
from .exceptions import (
    AccessDenied,
    ApiRejected,
    AuthenticationRequired,
    TransportFailure,
)
from .session import TokenStore

logger = logging.getLogger("cafe_console.api")


def create_http_client(transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """Shared connection pool, created once in the app lifespan."""
    return httpx.AsyncClient(
        base_url=settings.API_BASE_URL.rstrip("/"),
        timeout=settings.API_TIMEOUT_SECONDS,
        headers={"Content-Type": "application/json", "X-Client-Name": "cafe-console"},
        transport=transport,
    )


def _error_message(payload: Any, fallback: str) -> str:
    if isinstance(payload, dict):
        for key in ("message", "detail", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value
    return fallback


def _error_code(payload: Any) -> Optional[str]:
    if isinstance(payload, dict):
        for key in ("code", "error_code", "errorCode"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
    return None


class CafeApiClient:
    """
    Per-operator view of the café API. Cheap to build; the underlying
    httpx.AsyncClient is shared.
    """

    def __init__(self, http: httpx.AsyncClient, store: TokenStore):
        self.http = http
        self.store = store

    def _headers(self) -> dict:
        token = self.store.get()
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict] = None,
        json: Any = None,
        envelope: bool = False,
    ) -> Any:
        """
        Sends one request and returns the `data` member of the response body,
        or the whole body when `envelope` is True.
        """
        if params:
            params = {k: v for k, v in params.items() if v is not None and v != ""}
        try:
            response = await self.http.request(
                method, path, params=params or None, json=json, headers=self._headers()
            )
        except httpx.TimeoutException:
            logger.error(f"{method} {path} timed out")
            raise TransportFailure("The café service timed out. Please retry.")
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise TransportFailure()

        logger.info(f"{method} {path} -> {response.status_code}")

        try:
            payload = response.json() if response.content else None
        except ValueError:
            payload = None
            if response.is_success:
                logger.error(f"{method} {path} returned a non-JSON body")
                raise TransportFailure("The café service sent an unreadable response.", status=response.status_code)

        if response.status_code == 401:
            self.store.clear()
            raise AuthenticationRequired(settings.LOGIN_PATH)
        if response.status_code == 403:
            raise AccessDenied(settings.UNAUTHORIZED_PATH, message=_error_message(payload, "Access denied"))
        if response.status_code >= 500:
            raise TransportFailure(status=response.status_code)
        if response.status_code >= 400:
            raise ApiRejected(
                response.status_code,
                _error_message(payload, "The request was rejected"),
                error_code=_error_code(payload),
            )

        if envelope:
            return payload
        if isinstance(payload, dict) and "data" in payload:
            return payload["data"]
        return payload

    async def get(self, path: str, **kwargs) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs) -> Any:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs) -> Any:
        return await self.request("PUT", path, **kwargs)

    async def patch(self, path: str, **kwargs) -> Any:
        return await self.request("PATCH", path, **kwargs)

    async def delete(self, path: str, **kwargs) -> Any:
        return await self.request("DELETE", path, **kwargs)
