"""Inventory provider wire client.

Every call is a JSON POST of ``{query, variables}`` to one GraphQL endpoint.
authenticate() trades credentials for a bearer token; execute() sends a
query with ``Authorization: Bearer <token>``. A call fails on one of three
channels, each raised as ProviderCallFailed with its own diagnostic:

- transport: no response at all (timeouts, DNS, connection resets)
- status: non-2xx; the body text is the diagnostic
- errors: 2xx whose JSON carries a non-empty ``errors`` list

Tokens are cached process-wide until shortly before the expiry the provider
reports. A 401/403 on a query drops the cached token. When the rejected
token came from the cache the client re-authenticates once and resends the
query, so a stale cached token never reaches the query compiler; a rejected
fresh token raises AuthenticationFailure.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
import structlog

from storefront.config import settings
from storefront.inventory.errors import (
    AuthenticationFailure,
    MalformedResponse,
    ProviderCallFailed,
    ProviderNotConfigured,
    ProviderTransportError,
)

log = structlog.get_logger("inventory.provider")

AUTH_QUERY = """
query Authenticate($username: String!, $password: String!) {
  authenticate {
    username_and_password(username: $username, password: $password) {
      token
      expires
    }
  }
}
""".strip()


# === Token cache ===


def parse_expiry(raw: Any) -> datetime | None:
    """Read the provider's ``expires``: epoch seconds/millis or ISO-8601."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return None
        try:
            raw = float(text)
        except ValueError:
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                return None
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    if isinstance(raw, int | float):
        seconds = raw / 1000 if raw > 1e11 else raw
        try:
            return datetime.fromtimestamp(seconds, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    return None


@dataclass
class CachedToken:
    token: str
    expires_at: datetime


class TokenCache:
    """Bearer tokens keyed by username. Tokens without an expiry are never kept."""

    def __init__(self) -> None:
        self._tokens: dict[str, CachedToken] = {}

    def get(self, username: str, margin_seconds: int, now: datetime | None = None) -> str | None:
        entry = self._tokens.get(username)
        if entry is None:
            return None
        now = now or datetime.now(UTC)
        if now + timedelta(seconds=margin_seconds) >= entry.expires_at:
            self._tokens.pop(username, None)
            return None
        return entry.token

    def put(self, username: str, token: str, expires_at: datetime | None) -> None:
        if expires_at is None:
            return
        self._tokens[username] = CachedToken(token=token, expires_at=expires_at)

    def invalidate(self, username: str) -> None:
        self._tokens.pop(username, None)

    def clear(self) -> None:
        self._tokens.clear()


token_cache = TokenCache()


# === Client ===


class InventoryProvider:
    """Thin async client over one provider endpoint."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        api_url: str | None = None,
        username: str | None = None,
        password: str | None = None,
        timeout: float | None = None,
        cache: TokenCache | None = None,
    ) -> None:
        self._http = http_client
        self.api_url = api_url or settings.provider_api_url
        self.username = username if username is not None else settings.provider_username
        self._password = password if password is not None else settings.provider_password
        self.timeout = timeout or settings.provider_timeout_seconds
        if cache is None and settings.token_cache_enabled:
            cache = token_cache
        self._cache = cache
        # Token last served from the cache, and stale tokens mapped to their replacement.
        self._reused_token: str | None = None
        self._replaced: dict[str, str] = {}

    @property
    def configured(self) -> bool:
        return bool(self.username and self._password)

    async def authenticate(self) -> str:
        """Return a bearer token. Any failure here is fatal for the request."""
        if not self.configured:
            raise ProviderNotConfigured("Provider credentials are not configured")

        if self._cache is not None:
            cached = self._cache.get(self.username, settings.token_expiry_margin_seconds)
            if cached:
                log.debug("provider_token_reused")
                self._reused_token = cached
                return cached

        try:
            data = await self._post(
                {
                    "query": AUTH_QUERY,
                    "variables": {"username": self.username, "password": self._password},
                }
            )
        except (ProviderCallFailed, MalformedResponse) as exc:
            log.error(
                "provider_auth_failed",
                channel=getattr(exc, "channel", "malformed"),
                status=getattr(exc, "status_code", None),
                diagnostic=getattr(exc, "diagnostic", str(exc)),
            )
            raise AuthenticationFailure(f"Provider authentication failed: {exc}") from exc

        grant = ((data.get("authenticate") or {}).get("username_and_password")) or {}
        token = grant.get("token") if isinstance(grant, dict) else None
        if not token or not isinstance(token, str):
            log.error("provider_auth_no_token")
            raise AuthenticationFailure("Provider authentication returned no token")

        if self._cache is not None:
            self._cache.put(self.username, token, parse_expiry(grant.get("expires")))
        log.info("provider_authenticated", cached=self._cache is not None)
        return token

    async def execute(
        self,
        query: str,
        token: str,
        variables: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send one GraphQL query and return its ``data`` object.

        A rejected token that came from the cache is replaced by a fresh one
        and the same query is sent again; a rejected fresh token is fatal.
        """
        token = self._replaced.get(token, token)
        payload: dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables
        try:
            return await self._post(payload, headers={"Authorization": f"Bearer {token}"})
        except ProviderCallFailed as exc:
            if exc.status_code not in (401, 403):
                raise
            if self._cache is not None:
                self._cache.invalidate(self.username)
            if token == self._reused_token:
                self._reused_token = None
                log.info("provider_cached_token_rejected", status=exc.status_code)
                fresh = await self.authenticate()
                self._replaced[token] = fresh
                return await self.execute(query, fresh, variables)
            log.warning("provider_token_rejected", status=exc.status_code)
            raise AuthenticationFailure(
                f"Provider rejected bearer token ({exc.status_code})"
            ) from exc

    async def _post(
        self,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        try:
            resp = await self._http.post(
                self.api_url,
                json=payload,
                headers=headers or {},
                timeout=self.timeout,
            )
        except httpx.RequestError as exc:
            raise ProviderTransportError(f"{type(exc).__name__}: {exc}") from exc

        if not 200 <= resp.status_code < 300:
            raise ProviderCallFailed("status", resp.text, resp.status_code)

        try:
            body = resp.json()
        except ValueError as exc:
            raise MalformedResponse(f"Provider returned non-JSON body: {resp.text[:200]}") from exc
        if not isinstance(body, dict):
            raise MalformedResponse("Provider returned a non-object JSON body")

        errors = body.get("errors")
        if errors:
            raise ProviderCallFailed("errors", json.dumps(errors), resp.status_code)

        data = body.get("data")
        if not isinstance(data, dict):
            raise MalformedResponse("Provider response has no data object")
        return data
