"""
Trigger routing.

Classifies a trigger into an action and a destination, runs the schedule
pipeline when the action needs it, and hands the text to the dispatcher:

- Direct: trusted caller names ``{action, user_id}``
- Inbound: WhatsApp sender + free text, resolved by phone number

Each failure kind maps to its own message because each asks the user to
do something different (add a number, connect Google, sign in again).
"""

from datetime import datetime, timezone, tzinfo
from typing import Callable
import logging

from app.core.errors import (
    AuthExpired,
    CalendarBotError,
    CredentialMissing,
    DestinationNotSet,
    DispatchRejected,
    ProfileNotFound,
)
from app.integrations.whatsapp.client import Dispatcher
from app.models.profile import Profile
from app.schemas.schedule import ScheduleMode, UnifiedItem
from app.schemas.trigger import (
    DirectTrigger,
    DispatchResult,
    ErrorCategory,
    InboundMessage,
    TriggerAction,
    TriggerResult,
)
from app.services.profiles import ProfileLookup
from app.services.schedule.aggregator import ScheduleAggregator
from app.services.schedule.formatter import format_schedule, resolve_zone

logger = logging.getLogger(__name__)

WELCOME_MESSAGE = (
    "👋 Welcome to Calendar Bot! Every morning you'll get your schedule here.\n"
    "Reply *daily* for the next 24 hours or *weekly* for the week ahead."
)
TEST_MESSAGE = "✅ Test message: your WhatsApp number is connected."
HELP_MESSAGE = (
    "🤖 I understand these commands:\n"
    "• *daily* - events and tasks for the next 24 hours\n"
    "• *weekly* - events and tasks for the next 7 days"
)
PROFILE_NOT_FOUND_MESSAGE = "Profile not found."
UNKNOWN_SENDER_MESSAGE = (
    "❓ This number isn't linked to an account yet. "
    "Add it in your dashboard to receive your schedule."
)
DESTINATION_NOT_SET_MESSAGE = "Add your WhatsApp number in the dashboard to receive messages."
CREDENTIAL_MISSING_MESSAGE = (
    "🔗 Your Google Calendar isn't connected yet. "
    "Connect it from the dashboard so I can read your schedule."
)
AUTH_EXPIRED_MESSAGE = (
    "🔒 Your Google connection has expired. "
    "Please sign in again from the dashboard to keep receiving your schedule."
)
DISPATCH_REJECTED_MESSAGE = "WhatsApp refused to deliver the message."

FIXED_MESSAGES = {
    TriggerAction.WELCOME: WELCOME_MESSAGE,
    TriggerAction.TEST: TEST_MESSAGE,
    TriggerAction.HELP: HELP_MESSAGE,
}
INBOUND_COMMANDS = {
    "daily": TriggerAction.DAILY,
    "weekly": TriggerAction.WEEKLY,
}
FAILURE_OUTCOMES: dict[type[CalendarBotError], tuple[ErrorCategory, str]] = {
    ProfileNotFound: (ErrorCategory.PROFILE_NOT_FOUND, PROFILE_NOT_FOUND_MESSAGE),
    DestinationNotSet: (ErrorCategory.DESTINATION_NOT_SET, DESTINATION_NOT_SET_MESSAGE),
    CredentialMissing: (ErrorCategory.CREDENTIAL_MISSING, CREDENTIAL_MISSING_MESSAGE),
    AuthExpired: (ErrorCategory.AUTH_EXPIRED, AUTH_EXPIRED_MESSAGE),
    DispatchRejected: (ErrorCategory.DISPATCH_REJECTED, DISPATCH_REJECTED_MESSAGE),
}
REPORTED_ERRORS = tuple(FAILURE_OUTCOMES)
# Failures the user can fix; the user hears about them over WhatsApp too.
USER_FIXABLE_ERRORS = (CredentialMissing, AuthExpired)


def failure_result(
    action: TriggerAction | None,
    error: CalendarBotError,
    dispatch: DispatchResult | None = None,
) -> TriggerResult:
    """Map a router failure to its category and user-facing message."""
    category, message = FAILURE_OUTCOMES[type(error)]
    details = error.details
    if dispatch is not None and not dispatch.accepted:
        details = dispatch.details
    return TriggerResult(
        status="error",
        action=action,
        error=category,
        message=message,
        details=details,
        dispatch=dispatch,
    )


def parse_inbound_envelope(body: dict) -> InboundMessage | None:
    """Extract sender and text from a WhatsApp webhook envelope.

    Returns ``None`` for envelopes without a text message (status
    callbacks, media, reactions).
    """
    try:
        message = body["entry"][0]["changes"][0]["value"]["messages"][0]
    except (KeyError, IndexError, TypeError):
        return None
    sender = message.get("from")
    text = (message.get("text") or {}).get("body")
    if not sender or text is None:
        return None
    return InboundMessage(sender=sender, text=text)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TriggerRouter:
    """Runs one trigger from resolution to dispatch. Holds no state between requests."""

    def __init__(
        self,
        profiles: ProfileLookup,
        dispatcher: Dispatcher,
        aggregator: ScheduleAggregator | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.profiles = profiles
        self.dispatcher = dispatcher
        self.aggregator = aggregator or ScheduleAggregator()
        self.clock = clock

    async def handle_direct(self, trigger: DirectTrigger) -> TriggerResult:
        try:
            profile = await self.profiles.get_by_user_id(trigger.user_id)
            if profile is None:
                logger.info("Direct trigger for unknown user %s", trigger.user_id)
                raise ProfileNotFound(f"No profile for user {trigger.user_id}")
            if not profile.whatsapp_number:
                raise DestinationNotSet(f"User {profile.id} has no WhatsApp number")
            return await self._run(trigger.action, profile, profile.whatsapp_number)
        except REPORTED_ERRORS as e:
            return failure_result(trigger.action, e)

    async def handle_inbound(self, message: InboundMessage) -> TriggerResult:
        profile = await self.profiles.get_by_destination(message.sender)
        if profile is None:
            # No profile means no trusted destination; answer the sender anyway.
            logger.info("Inbound message from unknown sender")
            dispatch = await self.dispatcher.send(message.sender, UNKNOWN_SENDER_MESSAGE)
            result = failure_result(None, ProfileNotFound(message.sender), dispatch)
            result.message = UNKNOWN_SENDER_MESSAGE
            return result

        action = INBOUND_COMMANDS.get(message.command, TriggerAction.HELP)
        try:
            return await self._run(action, profile, message.sender)
        except REPORTED_ERRORS as e:
            return failure_result(action, e)

    async def _run(self, action: TriggerAction, profile: Profile, destination: str) -> TriggerResult:
        if action in FIXED_MESSAGES:
            return await self._deliver(action, destination, FIXED_MESSAGES[action])

        mode = ScheduleMode(action.value)
        tz = resolve_zone(profile.timezone)
        now = self.clock()

        try:
            items = await self._aggregate(profile, mode, now, tz)
        except USER_FIXABLE_ERRORS as e:
            return await self._notify_failure(action, destination, e)

        text = format_schedule(items, mode, tz, now=now)
        result = await self._deliver(action, destination, text)
        result.item_count = len(items)
        logger.info("Sent %s schedule to user %s (%d items)", mode.value, profile.id, len(items))
        return result

    async def _aggregate(
        self,
        profile: Profile,
        mode: ScheduleMode,
        now: datetime,
        tz: tzinfo,
    ) -> list[UnifiedItem]:
        credential = profile.google_access_token
        if not credential:
            raise CredentialMissing(f"User {profile.id} has not connected Google")
        try:
            return await self.aggregator.aggregate(credential, mode, now, tz)
        except AuthExpired:
            logger.warning("Google credential expired for user %s", profile.id)
            raise

    async def _deliver(self, action: TriggerAction, destination: str, text: str) -> TriggerResult:
        dispatch = await self.dispatcher.send(destination, text)
        if not dispatch.accepted:
            raise DispatchRejected(status_code=dispatch.status_code, details=dispatch.details)
        return TriggerResult(action=action, message=text, dispatch=dispatch)

    async def _notify_failure(
        self,
        action: TriggerAction,
        destination: str,
        error: CalendarBotError,
    ) -> TriggerResult:
        """Tell the user what to fix, and report the failure to the caller."""
        _, text = FAILURE_OUTCOMES[type(error)]
        dispatch = await self.dispatcher.send(destination, text)
        return failure_result(action, error, dispatch)
