"""Token check delegated to the Supabase auth server."""
from __future__ import annotations

import logging

import httpx

from snare_relay.application.dto.principal import Principal
from snare_relay.application.exceptions import AuthenticationError
from snare_relay.infrastructure.auth.claims import principal_from_claims

logger = logging.getLogger(__name__)


class SupabaseVerifier:
    """Resolve a bearer token with ``GET {SUPABASE_URL}/auth/v1/user``.

    Costs one HTTP round-trip per WebSocket upgrade, but honours sessions
    revoked on the Supabase side, which local JWT decoding cannot.
    """

    def __init__(
        self,
        supabase_url: str,
        anon_key: str,
        *,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._user_url = f"{supabase_url.rstrip('/')}/auth/v1/user"
        self._anon_key = anon_key
        self._timeout = timeout
        self._client = client

    async def verify(self, token: str) -> Principal:
        headers = {"Authorization": f"Bearer {token}", "apikey": self._anon_key}
        try:
            if self._client is not None:
                response = await self._client.get(self._user_url, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(self._user_url, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Supabase auth request failed: %s", exc)
            raise AuthenticationError("Auth server unavailable") from exc

        if response.status_code != 200:
            raise AuthenticationError(f"Invalid token (auth server returned {response.status_code})")
        try:
            user = response.json()
        except ValueError as exc:
            logger.warning("Supabase auth returned a non-JSON body")
            raise AuthenticationError("Auth server returned an unreadable user") from exc
        if not isinstance(user, dict):
            raise AuthenticationError("Auth server returned an unreadable user")
        return principal_from_claims(user, subject_key="id")
