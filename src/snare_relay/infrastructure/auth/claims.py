from __future__ import annotations

from typing import Any

from snare_relay.application.dto.principal import Principal
from snare_relay.application.exceptions import AuthenticationError
from snare_relay.domain.value_objects.ids import UserId


def principal_from_claims(claims: dict[str, Any], *, subject_key: str = "sub") -> Principal:
    """Build a Principal from Supabase-style token claims or a user object."""
    subject = claims.get(subject_key)
    if not subject:
        raise AuthenticationError(f"Token has no {subject_key!r} claim")
    return Principal(
        user_id=UserId(str(subject)),
        role=claims.get("role", "authenticated"),
        email=claims.get("email"),
    )
