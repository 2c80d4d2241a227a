"""Schedule data model and API request/response schemas."""

from app.schemas.schedule import EventItem, ScheduleMode, TaskItem, UnifiedItem, Window
from app.schemas.trigger import (
    DirectTrigger,
    DispatchResult,
    ErrorCategory,
    InboundMessage,
    TriggerAction,
    TriggerResult,
)

__all__ = [
    "EventItem",
    "ScheduleMode",
    "TaskItem",
    "UnifiedItem",
    "Window",
    "DirectTrigger",
    "DispatchResult",
    "ErrorCategory",
    "InboundMessage",
    "TriggerAction",
    "TriggerResult",
]
