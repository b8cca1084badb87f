"""Plain-text notification bodies."""
from __future__ import annotations

from datetime import datetime
from typing import Mapping

from quifin.config import TEST_NOTIFICATION
from quifin.services.reminder_store import SubscriptionSnapshot
from quifin.utils.money import effective_costs, format_amount, format_eur
from quifin.utils.time import civil_at, format_display_date


def _due_phrase(offset_days: int, charge_date: str) -> str:
    display = format_display_date(charge_date)
    if offset_days == 1:
        return f"due tomorrow ({display})"
    return f"due in {offset_days} days ({display})"


def build_charge_reminder_body(
    subscription: SubscriptionSnapshot,
    offset_days: int,
    fx_rates: Mapping[str, float],
) -> str:
    """Render the reminder text for one (subscription, window) candidate.

    EUR subscriptions show EUR figures only. Other currencies show the
    converted EUR figure next to the original one, or ``n/a`` when no rate
    is on file.
    """
    currency = subscription.currency.upper()
    costs = effective_costs(
        subscription.amount, subscription.cadence_months, currency, fx_rates.get(currency)
    )

    if currency == "EUR":
        monthly_line = f"Effective monthly EUR: {format_eur(costs.monthly)}"
        annualized_line = f"Annualized EUR: {format_eur(costs.annualized)}"
    else:
        monthly_original = f"({format_amount(costs.monthly)} {currency})"
        annualized_original = f"({format_amount(costs.annualized)} {currency})"
        monthly_eur = format_eur(costs.monthly_eur) if costs.monthly_eur is not None else "n/a"
        annualized_eur = format_eur(costs.annualized_eur) if costs.annualized_eur is not None else "n/a"
        monthly_line = f"Effective monthly EUR: {monthly_eur} {monthly_original}"
        annualized_line = f"Annualized EUR: {annualized_eur} {annualized_original}"

    lines = [
        f"Your subscription {subscription.name} is {_due_phrase(offset_days, subscription.next_charge_date)}.",
        "",
        f"Original amount: {format_amount(subscription.amount)} {currency}",
        monthly_line,
        annualized_line,
    ]
    if subscription.cancel_url:
        lines.extend(["", subscription.cancel_url])
    return "\n".join(lines)


def build_test_notification_body(now: datetime, time_zone: str) -> str:
    local = civil_at(now, time_zone)
    sent_at = f"{local.day:02d}/{local.month:02d}/{local.year:04d}, {local.hour:02d}:{local.minute:02d}"
    return "\n".join([TEST_NOTIFICATION["intro"], f"Sent at: {sent_at}"])


__all__ = ["build_charge_reminder_body", "build_test_notification_body"]
