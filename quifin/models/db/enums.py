"""Central Enum definitions for subscription & reminder states.

These replace scattered string literals to ensure consistency across
DB models, schemas, and the reminder engine.
"""
from __future__ import annotations
import enum


class CadenceType(str, enum.Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMIANNUAL = "semiannual"
    YEARLY = "yearly"
    CUSTOM = "custom"


class ReminderKind(str, enum.Enum):
    CHARGE = "charge"


__all__ = [
    "CadenceType",
    "ReminderKind",
]
