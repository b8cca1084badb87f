from .enums import CadenceType, ReminderKind
from .subscriptions import Subscription
from .fx_rates import FxRate
from .settings import Setting
from .reminder_logs import ReminderLog

__all__ = [
    "CadenceType",
    "ReminderKind",
    "Subscription",
    "FxRate",
    "Setting",
    "ReminderLog",
]
