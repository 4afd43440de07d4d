"""
Credential storage for the console.

The operator's bearer token for the café API is the only client-side
credential. Everything that needs it goes through a TokenStore (get/set/clear);
nothing else reads cookies directly.

Invalidation rule: a 401 from the café API clears the stored token (see
auth.resolve_operator and api_client.CafeApiClient). Transient failures never do.
"""
import hashlib
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Request, Response
from jose import jwt, JWTError

from .config import settings

logger = logging.getLogger("cafe_console.session")

_CLEAR = object()


class TokenStore(ABC):
    @abstractmethod
    def get(self) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, token: str) -> None:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...

    def fingerprint(self) -> str:
        """Stable, non-reversible id for the current credential ("anonymous" if none)."""
        token = self.get()
        if not token:
            return "anonymous"
        return hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]


class MemoryTokenStore(TokenStore):
    """Keeps the token in memory. Used by scripts and tests."""

    def __init__(self, token: Optional[str] = None):
        self._token = token

    def get(self) -> Optional[str]:
        return self._token

    def set(self, token: str) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None


def seal_token(token: str) -> str:
    """Wraps the bearer token in a signed, expiring cookie value."""
    now = datetime.now(timezone.utc)
    claims = {
        "tok": token,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=settings.SESSION_MAX_AGE_SECONDS)).timestamp()),
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def unseal_token(value: Optional[str]) -> Optional[str]:
    """Returns the bearer token, or None if the cookie is missing, tampered with or expired."""
    if not value:
        return None
    try:
        claims = jwt.decode(value, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        logger.warning("Discarding session cookie that failed verification.")
        return None
    token = claims.get("tok")
    return token if isinstance(token, str) and token else None


class CookieTokenStore(TokenStore):
    """
    Reads the token from the request cookie. Writes are buffered and flushed onto
    whichever response is finally sent (see apply), since redirects are built
    after the handler has run.
    """

    def __init__(self, request: Request):
        self._token = unseal_token(request.cookies.get(settings.SESSION_COOKIE_NAME))
        self._pending = None

    def get(self) -> Optional[str]:
        return self._token

    def set(self, token: str) -> None:
        self._token = token
        self._pending = token

    def clear(self) -> None:
        self._token = None
        self._pending = _CLEAR

    @property
    def dirty(self) -> bool:
        return self._pending is not None

    def apply(self, response: Response) -> Response:
        if self._pending is _CLEAR:
            clear_cookie(response)
        elif self._pending is not None:
            response.set_cookie(
                settings.SESSION_COOKIE_NAME,
                seal_token(self._pending),
                max_age=settings.SESSION_MAX_AGE_SECONDS,
                httponly=True,
                samesite="lax",
                secure=settings.SESSION_COOKIE_SECURE,
            )
        self._pending = None
        return response


def clear_cookie(response: Response) -> Response:
    response.delete_cookie(
        settings.SESSION_COOKIE_NAME,
        httponly=True,
        samesite="lax",
        secure=settings.SESSION_COOKIE_SECURE,
    )
    return response
