"""FastAPI dependency injection helpers."""
from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.requests import HTTPConnection

from snare_relay.application.dto.principal import Principal
from snare_relay.application.exceptions import AuthenticationError
from snare_relay.application.ports.auth import TokenVerifier
from snare_relay.config import settings
from snare_relay.infrastructure.auth.hs256_verifier import HS256Verifier
from snare_relay.infrastructure.auth.jwks_verifier import JWKSVerifier
from snare_relay.infrastructure.auth.supabase_verifier import SupabaseVerifier
from snare_relay.infrastructure.ws.liveness import LivenessMonitor
from snare_relay.infrastructure.ws.registry import ConnectionRegistry
from snare_relay.infrastructure.ws.router import MessageRouter

_bearer_scheme = HTTPBearer(auto_error=False)


@lru_cache(maxsize=1)
def get_verifier() -> TokenVerifier | None:
    """Verifier for JWT_VERIFY_MODE; None means identities are not checked."""
    mode = settings.JWT_VERIFY_MODE
    if mode == "hs256":
        assert settings.JWT_SECRET, "JWT_SECRET must be set when JWT_VERIFY_MODE=hs256"
        return HS256Verifier(
            settings.JWT_SECRET, settings.JWT_ALGORITHM, audience=settings.JWT_AUDIENCE,
        )
    if mode == "jwks":
        assert settings.JWKS_URL, "JWKS_URL must be set when JWT_VERIFY_MODE=jwks"
        return JWKSVerifier(settings.JWKS_URL, audience=settings.JWT_AUDIENCE)
    if mode == "supabase":
        assert settings.SUPABASE_URL and settings.SUPABASE_ANON_KEY, (
            "SUPABASE_URL and SUPABASE_ANON_KEY must be set when JWT_VERIFY_MODE=supabase"
        )
        return SupabaseVerifier(settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY)
    return None


VerifierDep = Annotated[TokenVerifier | None, Depends(get_verifier)]


def get_registry(conn: HTTPConnection) -> ConnectionRegistry:
    return conn.app.state.registry


def get_message_router(conn: HTTPConnection) -> MessageRouter:
    return conn.app.state.message_router


def get_liveness(conn: HTTPConnection) -> LivenessMonitor:
    return conn.app.state.liveness


RegistryDep = Annotated[ConnectionRegistry, Depends(get_registry)]
MessageRouterDep = Annotated[MessageRouter, Depends(get_message_router)]
LivenessDep = Annotated[LivenessMonitor, Depends(get_liveness)]


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
    verifier: VerifierDep,
) -> Principal | None:
    if verifier is None:
        return None
    if credentials is None:
        raise AuthenticationError("Missing bearer token")
    return await verifier.verify(credentials.credentials)


CurrentPrincipal = Annotated[Principal | None, Depends(get_current_principal)]
