from __future__ import annotations


class AppError(Exception):
    """Base application error.

    ``code`` is the machine-readable value sent to clients in error frames.
    """

    code = "app_error"

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class AuthenticationError(AppError):
    code = "unauthenticated"


class ForbiddenError(AppError):
    code = "forbidden"


class MalformedEnvelope(AppError):
    """Inbound frame failed protocol validation; the connection stays open."""

    code = "malformed_envelope"


class RecipientNotConnected(AppError):
    """No live connection is registered for the requested user."""

    code = "recipient_not_connected"

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__(f"User {user_id!r} is not connected")


class ConnectionClosed(AppError):
    code = "connection_closed"


class LivenessTimeout(AppError):
    code = "liveness_timeout"
