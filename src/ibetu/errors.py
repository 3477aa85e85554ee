"""Domain error taxonomy.

Services raise these; the global error handler renders every one of them as
the ``{"error": ..., "data": null}`` envelope.
"""

from __future__ import annotations

NOT_AUTHENTICATED = "Not authenticated"


class IBetUError(Exception):
    """Base class for errors surfaced to API callers."""

    default_message = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationError(IBetUError):
    """No verified caller identity."""

    default_message = NOT_AUTHENTICATED


class AuthorizationError(IBetUError):
    """Caller lacks the relationship required for the target row."""

    default_message = "Not allowed"


class NotFoundError(AuthorizationError):
    """Row missing, not visible to the caller, or not in the expected state.

    One variant covers all three cases.
    """

    default_message = "Not found or already processed"


class ValidationError(IBetUError):
    """Malformed input. The message is specific since it reveals nothing sensitive."""

    default_message = "Invalid input"


class StoreError(IBetUError):
    """Underlying persistence failure."""

    default_message = "Database error"


class ExternalServiceError(IBetUError):
    """Email or other third-party delivery failure.

    Bet notifications swallow it; payment reminders surface it to the sender.
    """

    default_message = "External service failed"
