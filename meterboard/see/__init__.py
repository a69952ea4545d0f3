"""
See Module - Billing Aggregation

Roll balances, usage costs, draft-invoice spend and alerts into the
aggregates the dashboard renders.
"""

from meterboard.see.aggregator import BillingAggregator
from meterboard.see.alerts import find_alerts
from meterboard.see.costs import retrieve_cost
from meterboard.see.ledger import rollup_ledger, rollup_ledger_by_currency
from meterboard.see.models import (
    AlertLookup,
    BalanceSummary,
    BucketSummary,
    CostAggregate,
    FetchResult,
    SpendAggregate,
)
from meterboard.see.normalize import normalize_product_name
from meterboard.see.spend import classify_spend
from meterboard.see.window import trailing_window

__all__ = [
    "AlertLookup",
    "BalanceSummary",
    "BillingAggregator",
    "BucketSummary",
    "CostAggregate",
    "FetchResult",
    "SpendAggregate",
    "classify_spend",
    "find_alerts",
    "normalize_product_name",
    "retrieve_cost",
    "rollup_ledger",
    "rollup_ledger_by_currency",
    "trailing_window",
]
