"""Domain errors raised by the chat services and mapped to HTTP responses in main."""

from __future__ import annotations


class LiveChatError(Exception):
    """Base class for expected, user-facing chat failures."""

    status_code = 400

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ValidationError(LiveChatError):
    """Malformed input: body too long, attachment too large, bad enum value."""

    status_code = 422


class AuthorizationError(LiveChatError):
    """Caller may not perform the operation (non-author edit, expired window)."""

    status_code = 403


class NotFoundError(LiveChatError):
    status_code = 404


class ConcurrencyConflict(LiveChatError):
    """A concurrent write won; the caller may retry once."""

    status_code = 409


class ImmutableMessageError(ValidationError, AuthorizationError):
    """System messages can never be edited."""

    status_code = 422


class RateLimitedError(LiveChatError):
    """Guest session sent too many messages in the current minute."""

    status_code = 429
