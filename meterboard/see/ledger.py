"""
Ledger Roll-up - Granted, used and remaining balances.
"""

from datetime import datetime
from typing import Iterable, Optional

from meterboard.config.currency import DEFAULT_CURRENCY_NAME, USD_CREDIT_TYPE_ID
from meterboard.connect.base import Grant
from meterboard.see.models import BalanceSummary, GrantBalance


def grant_balance(grant: Grant) -> GrantBalance:
    """Roll one grant's schedule and ledger into granted/used amounts."""
    granted = sum(item.amount for item in grant.access_schedule_items)
    # Negative ledger amounts are consumption
    used = sum(-entry.amount for entry in grant.ledger_entries if entry.amount < 0)

    return GrantBalance(
        id=grant.id,
        type=grant.type,
        product_name=grant.product_name,
        granted=granted,
        used=used,
    )


def rollup_ledger(grants: Iterable[Grant], as_of: Optional[datetime] = None) -> BalanceSummary:
    """
    Roll a customer's grants into one balance summary.

    The currency label comes from the first grant (USD when there are none),
    so mixed-currency customers get totals summed across currencies. Use
    ``rollup_ledger_by_currency`` for a per-currency view.
    """
    grants = list(grants)

    if grants:
        currency_name = grants[0].credit_type_name
        currency_id = grants[0].credit_type_id
    else:
        currency_name = DEFAULT_CURRENCY_NAME
        currency_id = USD_CREDIT_TYPE_ID

    processed = [grant_balance(grant) for grant in grants]

    return BalanceSummary(
        currency_name=currency_name,
        currency_id=currency_id,
        total_granted=sum(g.granted for g in processed),
        total_used=sum(g.used for g in processed),
        processed_grants=processed,
        as_of=as_of,
    )


def rollup_ledger_by_currency(
    grants: Iterable[Grant],
    as_of: Optional[datetime] = None,
) -> list[BalanceSummary]:
    """One balance summary per credit type, in first-seen order."""
    groups: dict[tuple[str, str], list[Grant]] = {}
    for grant in grants:
        key = (grant.credit_type_id, grant.credit_type_name)
        groups.setdefault(key, []).append(grant)

    return [rollup_ledger(group, as_of=as_of) for group in groups.values()]
