"""Error taxonomy for schedule delivery.

Only ``TransientSourceFailure`` is recovered locally (the failing calendar or
task list contributes nothing). Everything else reaches the request router,
which turns it into a distinct, user-facing outcome.
"""

from __future__ import annotations


class CalendarBotError(Exception):
    """Base class for request-scoped failures."""

    details: dict | str | None = None


class ConfigurationError(CalendarBotError):
    """Raised at startup when required settings are missing."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        keys = ", ".join(key.upper() for key in self.missing)
        super().__init__(f"Missing required configuration: {keys}")


class ProfileNotFound(CalendarBotError):
    """No profile matches the user id or sender address."""


class DestinationNotSet(CalendarBotError):
    """The profile has no WhatsApp number to deliver to."""


class CredentialMissing(CalendarBotError):
    """A calendar-dependent action was requested without a Google token on file."""


class AuthExpired(CalendarBotError):
    """The provider rejected the credential (HTTP 401/403)."""

    def __init__(self, message: str = "Credential rejected by provider", status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class TransientSourceFailure(CalendarBotError):
    """One container fetch failed. Never surfaced to callers."""

    def __init__(self, container_id: str, cause: BaseException) -> None:
        self.container_id = container_id
        self.cause = cause
        super().__init__(f"{container_id}: {cause}")


class DispatchRejected(CalendarBotError):
    """The messaging provider refused to deliver the final message."""

    def __init__(
        self,
        message: str = "Messaging provider rejected the message",
        status_code: int | None = None,
        details: dict | str | None = None,
    ) -> None:
        self.status_code = status_code
        self.details = details
        super().__init__(message)
