"""
Request pipeline: every backend call goes through here.
Before send: bearer token (when valid) and, for POST/PUT/PATCH, an Idempotency-Key.
After receive: a 401 triggers one refresh-and-retry per logical call; anything that still
fails clears the session and sends the UI back to sign-in.
"""
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Mapping

import httpx

from dashboard_client.auth_api import AuthApi
from dashboard_client.config import Settings
from dashboard_client.context import SessionContext
from dashboard_client.errors import RefreshError, SessionExpiredError
from dashboard_client.idempotency import IDEMPOTENCY_HEADER, generate_idempotency_key, needs_idempotency_key
from dashboard_client.offline_queue import QueuedAction
from dashboard_client.refresh import RefreshCoordinator
from dashboard_client.token_store import Session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApiRequest:
    """One logical call. attempt counts refresh-triggered resends; only attempt 0 may retry."""

    method: str
    path: str
    params: Mapping[str, Any] | None = None
    json: Any = None
    headers: Mapping[str, str] = field(default_factory=dict)
    attempt: int = 0

    def retried(self) -> "ApiRequest":
        return replace(self, attempt=self.attempt + 1)

    def with_header(self, name: str, value: str) -> "ApiRequest":
        headers = dict(self.headers)
        headers[name] = value
        return replace(self, headers=headers)


def build_client(settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    """HTTP client for the backend base address."""
    return httpx.AsyncClient(
        base_url=settings.api_base_url,
        timeout=settings.request_timeout,
        headers={"Content-Type": "application/json"},
        transport=transport,
    )


class RequestPipeline:
    def __init__(
        self,
        context: SessionContext,
        client: httpx.AsyncClient,
        *,
        auth_api: AuthApi | None = None,
        coordinator: RefreshCoordinator | None = None,
        on_logout: Callable[[str], None] | None = None,
        key_factory: Callable[[], str] = generate_idempotency_key,
    ):
        self._context = context
        self._tokens = context.tokens
        self._client = client
        self._auth = auth_api or AuthApi(client)
        self._coordinator = coordinator or RefreshCoordinator(self._tokens, self._auth.refresh)
        self._on_logout = on_logout
        self._key_factory = key_factory

    # --- session lifecycle ---

    async def sign_in(self, customer_id: str, credential: str) -> Session:
        """Sign-in exchange; on success the session belongs to customer_id. Raises SignInError."""
        grant = await self._auth.sign_in(customer_id, credential)
        self._tokens.set_session(
            grant.access_token,
            grant.refresh_token,
            expires_at=grant.expires_at,
            subject=customer_id,
        )
        logger.info("Signed in customer_id=%s", customer_id)
        return self._tokens.session

    def sign_out(self) -> None:
        """Explicit sign-out: drop the session and anything queued on its behalf."""
        subject = self._tokens.subject
        self._tokens.clear()
        self._context.offline.clear()
        logger.info("Signed out customer_id=%s", subject)

    # --- requests ---

    def prepare(self, request: ApiRequest) -> ApiRequest:
        """Fix the idempotency key before the first send so a retry reuses it."""
        if not needs_idempotency_key(request.method):
            return request
        if IDEMPOTENCY_HEADER in httpx.Headers(dict(request.headers)):
            return request
        return request.with_header(IDEMPOTENCY_HEADER, self._key_factory())

    async def send(self, request: ApiRequest) -> httpx.Response:
        """
        Send request. Non-401 responses come back as-is (no retry); transport errors propagate.
        Raises SessionExpiredError when authorization cannot be recovered.
        """
        return await self._dispatch(self.prepare(request))

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        return await self.send(ApiRequest(method.upper(), path, params=params, json=json, headers=dict(headers or {})))

    async def get(self, path: str, **kwargs) -> httpx.Response:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs) -> httpx.Response:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs) -> httpx.Response:
        return await self.request("PUT", path, **kwargs)

    async def patch(self, path: str, **kwargs) -> httpx.Response:
        return await self.request("PATCH", path, **kwargs)

    async def delete(self, path: str, **kwargs) -> httpx.Response:
        return await self.request("DELETE", path, **kwargs)

    # --- offline ---

    async def submit(self, request: ApiRequest) -> httpx.Response | None:
        """Send, or queue a mutating request while offline (returns None when queued)."""
        offline = self._context.offline
        if not offline.is_online and needs_idempotency_key(request.method):
            prepared = self.prepare(request)
            action = offline.add(f"{prepared.method} {prepared.path}", prepared)
            logger.info("Offline: queued %s as id=%s", action.type, action.id)
            return None
        return await self.send(request)

    async def replay_offline(self) -> int:
        """Replay queued requests in order; their idempotency keys were fixed when queued."""

        async def _replay(action: QueuedAction) -> None:
            response = await self._dispatch(action.payload)
            response.raise_for_status()

        return await self._context.offline.replay(_replay)

    # --- internals ---

    def _build(self, request: ApiRequest, token: str | None) -> httpx.Request:
        headers = httpx.Headers(dict(request.headers))
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return self._client.build_request(
            request.method,
            request.path,
            params=request.params,
            json=request.json,
            headers=headers,
        )

    async def _dispatch(self, request: ApiRequest, token: str | None = None) -> httpx.Response:
        token = token or self._tokens.get_valid_access_token()
        response = await self._client.send(self._build(request, token))
        if response.status_code != 401:
            return response

        if request.attempt > 0:
            self._force_logout("still unauthorized after refresh")
            raise SessionExpiredError("Unauthorized after token refresh", response=response)

        # Another caller may have refreshed while this request was in flight
        current = self._tokens.get_valid_access_token()
        if current is not None and current != token:
            return await self._dispatch(request.retried(), current)

        generation = self._tokens.generation
        try:
            new_token = await self._coordinator.refresh()
        except RefreshError as e:
            # A sign-out or new sign-in during the refresh owns the store now
            if self._tokens.generation == generation:
                self._force_logout(str(e))
            raise SessionExpiredError(f"Session expired: {e}", response=response) from e
        return await self._dispatch(request.retried(), new_token)

    def _force_logout(self, reason: str) -> None:
        logger.info("Session cleared (%s); redirecting to %s", reason, self._context.settings.sign_in_path)
        self._tokens.clear()
        if self._on_logout is not None:
            self._on_logout(self._context.settings.sign_in_path)
