"""Pydantic schemas for the inbound trigger surface."""

from __future__ import annotations

from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class TriggerAction(str, Enum):
    WELCOME = "welcome"
    TEST = "test"
    DAILY = "daily"
    WEEKLY = "weekly"
    HELP = "help"


class ErrorCategory(str, Enum):
    """Failure categories surfaced to callers."""

    PROFILE_NOT_FOUND = "profile_not_found"
    DESTINATION_NOT_SET = "destination_not_set"
    CREDENTIAL_MISSING = "credential_missing"
    AUTH_EXPIRED = "auth_expired"
    DISPATCH_REJECTED = "dispatch_rejected"


class DirectTrigger(BaseModel):
    """Trusted call naming the user directly (dashboard, scheduler)."""

    action: TriggerAction = Field(..., description="welcome | test | daily | weekly | help")
    user_id: UUID


class InboundMessage(BaseModel):
    """A text message extracted from a provider webhook envelope."""

    sender: str
    text: str

    @property
    def command(self) -> str:
        return self.text.strip().lower()


class DispatchResult(BaseModel):
    """What the messaging provider said about one send."""

    accepted: bool
    message_id: str | None = None
    status_code: int | None = None
    details: dict | str | None = None


class TriggerResult(BaseModel):
    """Outcome of one trigger.

    On success ``dispatch`` carries the provider acknowledgment. On error
    ``error`` names the category and ``details`` may carry provider output.
    """

    status: str = "success"  # success | error
    action: TriggerAction | None = None
    message: str | None = None
    item_count: int | None = None
    error: ErrorCategory | None = None
    details: dict | str | None = None
    dispatch: DispatchResult | None = None

    @property
    def ok(self) -> bool:
        return self.status == "success"
