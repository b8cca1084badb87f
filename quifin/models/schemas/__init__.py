from .base import ResponseBase
from .reminders import ReminderRunResult, SchedulerSnapshot
from .notifications import NotificationTestRequest, NotificationTestResult

__all__ = [
    # Base
    "ResponseBase",

    # Reminders
    "ReminderRunResult",
    "SchedulerSnapshot",

    # Notifications
    "NotificationTestRequest",
    "NotificationTestResult",
]
