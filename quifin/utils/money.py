"""Pure money math & display helpers used by reminder message rendering."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

_CENT = Decimal("0.01")
# Separator Intl's de-DE currency format puts between the figure and the symbol.
_NBSP = "\u00a0"


@dataclass(frozen=True, slots=True)
class EffectiveCosts:
    currency: str
    monthly: float
    annualized: float
    monthly_eur: Optional[float]
    annualized_eur: Optional[float]


def effective_costs(amount: float, cadence_months: int, currency: str, rate_to_eur: Optional[float]) -> EffectiveCosts:
    """Spread one charge over its cadence and annualize it.

    ``rate_to_eur`` is ignored for EUR; for other currencies a missing or
    non-positive rate leaves the EUR figures as ``None``.
    """
    months = max(1, int(cadence_months))
    monthly = float(amount) / months
    annualized = monthly * 12
    code = currency.strip().upper()
    if code == "EUR":
        return EffectiveCosts(code, monthly, annualized, monthly, annualized)
    if rate_to_eur is None or not rate_to_eur > 0:
        return EffectiveCosts(code, monthly, annualized, None, None)
    return EffectiveCosts(code, monthly, annualized, monthly * rate_to_eur, annualized * rate_to_eur)


def _two_places(value: float) -> Decimal:
    return Decimal(repr(float(value))).quantize(_CENT, rounding=ROUND_HALF_UP)


def format_amount(value: float) -> str:
    """en-US grouping, two decimals: 1234.5 -> '1,234.50'."""
    return f"{_two_places(value):,.2f}"


def format_eur(value: float) -> str:
    """de-DE EUR currency: 1234.5 -> '1.234,50 €'."""
    us = format_amount(value)
    de = us.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{de}{_NBSP}€"


__all__ = ["EffectiveCosts", "effective_costs", "format_amount", "format_eur"]
