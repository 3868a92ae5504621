from __future__ import annotations

import jwt

from snare_relay.application.dto.principal import Principal
from snare_relay.application.exceptions import AuthenticationError
from snare_relay.infrastructure.auth.claims import principal_from_claims


class HS256Verifier:
    """Verify JWTs signed with a shared secret (Supabase legacy JWT secret)."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        *,
        audience: str | None = "authenticated",
    ) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self._audience = audience

    async def verify(self, token: str) -> Principal:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                audience=self._audience,
                options={"verify_aud": self._audience is not None},
            )
        except jwt.PyJWTError as exc:
            raise AuthenticationError(str(exc)) from exc
        return principal_from_claims(payload)
