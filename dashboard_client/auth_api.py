"""
Sign-in and refresh exchanges against the backend auth endpoints.
These calls go straight to the HTTP client: no bearer header, no 401 handling.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

import httpx

from dashboard_client.errors import RefreshError, SignInError

logger = logging.getLogger(__name__)

LOGIN_PATH = "/api/auth/login"
REFRESH_PATH = "/api/auth/refresh"


@dataclass(frozen=True)
class TokenGrant:
    access_token: str
    expires_at: float  # epoch seconds
    refresh_token: str | None = None


def parse_expires_at(value) -> float:
    """expiresAt is epoch milliseconds (number) or an ISO-8601 string. Returns epoch seconds."""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Invalid expiresAt: {value!r}")
    if isinstance(value, (int, float)):
        return value / 1000.0
    dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def _error_message(r: httpx.Response, default: str) -> str:
    try:
        body = r.json()
    except ValueError:
        return default
    if isinstance(body, dict):
        return str(body.get("message") or body.get("detail") or default)
    return default


def _parse_grant(data: dict) -> TokenGrant:
    return TokenGrant(
        access_token=data["accessToken"],
        expires_at=parse_expires_at(data["expiresAt"]),
        refresh_token=data.get("refreshToken") or None,
    )


class AuthApi:
    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    async def sign_in(self, customer_id: str, token: str) -> TokenGrant:
        try:
            r = await self._client.post(
                LOGIN_PATH,
                json={"customerId": customer_id, "token": token},
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise SignInError(f"Sign-in request failed: {e}") from e
        if r.status_code != 200:
            raise SignInError(_error_message(r, "Invalid credentials"))
        try:
            return _parse_grant(r.json())
        except (KeyError, ValueError, TypeError) as e:
            raise SignInError(f"Malformed sign-in response: {e}") from e

    async def refresh(self, refresh_token: str) -> TokenGrant:
        try:
            r = await self._client.post(
                REFRESH_PATH,
                json={"refreshToken": refresh_token},
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise RefreshError(f"Refresh request failed: {e}") from e
        if r.status_code != 200:
            raise RefreshError(_error_message(r, "Refresh rejected"))
        try:
            return _parse_grant(r.json())
        except (KeyError, ValueError, TypeError) as e:
            raise RefreshError(f"Malformed refresh response: {e}") from e
