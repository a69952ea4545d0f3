"""
Data models for billing aggregation.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from meterboard.connect.base import AlertRecord, LineItem


def _percentage(used: float, granted: float) -> float:
    if granted > 0:
        return min(100.0, max(0.0, used / granted * 100))
    return 0.0


@dataclass
class FetchResult:
    """Tagged outcome of an aggregate fetch: success with a result, or an error message."""
    status: str
    result: Any = None
    message: Optional[str] = None
    raw_data: Any = None

    @classmethod
    def success(cls, result: Any, raw_data: Any = None) -> "FetchResult":
        return cls(status="success", result=result, raw_data=raw_data)

    @classmethod
    def error(cls, message: str) -> "FetchResult":
        return cls(status="error", message=message)

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> dict:
        if not self.ok:
            return {"status": self.status, "message": self.message}

        result = self.result
        if hasattr(result, "to_dict"):
            result = result.to_dict()
        elif isinstance(result, list):
            result = [r.to_dict() if hasattr(r, "to_dict") else r for r in result]
        return {"status": self.status, "result": result}


# Ledger roll-up

@dataclass
class GrantBalance:
    """Granted, used and remaining amounts for one grant."""
    id: str
    type: str
    product_name: str
    granted: float
    used: float

    @property
    def remaining(self) -> float:
        # Over-consumed grants go negative
        return self.granted - self.used

    @property
    def percentage_used(self) -> float:
        return _percentage(self.used, self.granted)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "product_name": self.product_name,
            "granted": self.granted,
            "used": self.used,
            "remaining": self.remaining,
        }


@dataclass
class BalanceSummary:
    """Balance roll-up across a customer's grants."""
    currency_name: str
    currency_id: str
    total_granted: float = 0.0
    total_used: float = 0.0
    processed_grants: list[GrantBalance] = field(default_factory=list)
    as_of: Optional[datetime] = None

    @property
    def total_remaining(self) -> float:
        return self.total_granted - self.total_used

    @property
    def percentage_used(self) -> float:
        """Share of the granted balance consumed, clamped to 0-100 for display."""
        return _percentage(self.total_used, self.total_granted)

    def to_dict(self) -> dict:
        return {
            "currency_name": self.currency_name,
            "currency_id": self.currency_id,
            "as_of": self.as_of.isoformat() if self.as_of else None,
            "total_granted": self.total_granted,
            "total_used": self.total_used,
            "total_remaining": self.total_remaining,
            "percentage_used": round(self.percentage_used, 1),
            "processed_grants": [g.to_dict() for g in self.processed_grants],
        }


@dataclass
class CustomerBalance:
    """First-grant currency summary plus the per-currency breakdown."""
    summary: BalanceSummary
    balances_by_currency: list[BalanceSummary] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            **self.summary.to_dict(),
            "balances_by_currency": [b.to_dict() for b in self.balances_by_currency],
        }


# Cost normalizer

@dataclass
class BucketSummary:
    """
    Per-bucket cost roll-up for charting.

    ``dimensions`` sums totals by group value and ``products`` by normalized
    product name. ``to_dict`` flattens both next to the known fields.
    """
    total: float
    period_start: str
    type: str
    dimensions: dict[str, float] = field(default_factory=dict)
    products: dict[str, float] = field(default_factory=dict)
    line_items: list[LineItem] = field(default_factory=list)

    def to_dict(self) -> dict:
        # Product sums are written after dimension sums and win on key collision
        return {
            "total": self.total,
            **self.dimensions,
            **self.products,
            "starting_on": self.period_start,
            "type": self.type,
            "line_items": [item.to_dict() for item in self.line_items],
        }


@dataclass
class CostAggregate:
    """Grouped, currency-labelled cost breakdown over a window."""
    products: dict[str, dict[str, list[str]]] = field(default_factory=dict)
    items: list[BucketSummary] = field(default_factory=list)
    currency_name: str = ""

    @property
    def total(self) -> float:
        return sum(item.total for item in self.items)

    def product_total(self, product_name: str) -> float:
        return sum(item.products.get(product_name, 0.0) for item in self.items)

    def to_dict(self) -> dict:
        return {
            "products": self.products,
            "items": [item.to_dict() for item in self.items],
            "currency_name": self.currency_name,
        }


# Spend classifier

BALANCE_DRAWDOWN = "Balance Drawdown"
OVERAGES = "Overages"


@dataclass
class ProductSpend:
    """Current-period spend on one normalized product."""
    total: float
    currency_name: str
    balance_drawdown: float
    overages: float
    type: str

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "currency_name": self.currency_name,
            "balanceDrawdown": self.balance_drawdown,
            "overages": self.overages,
            "type": self.type,
        }


@dataclass
class CommitApplicationTotal:
    total: float
    currency_name: str

    def to_dict(self) -> dict:
        return {"total": self.total, "currency_name": self.currency_name}


@dataclass
class SpendAggregate:
    """Draft-invoice spend split by currency, product and commit application."""
    total_by_currency: dict[str, float] = field(default_factory=dict)
    product_totals: dict[str, ProductSpend] = field(default_factory=dict)
    commit_application_totals: dict[str, CommitApplicationTotal] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "total": dict(self.total_by_currency),
            "productTotals": {k: v.to_dict() for k, v in self.product_totals.items()},
            "commitApplicationTotals": {
                k: v.to_dict() for k, v in self.commit_application_totals.items()
            },
        }


# Alert lookup

@dataclass
class AlertLookup:
    """The alert surfaced for each recognized alert type."""
    balance_alert: Optional[AlertRecord] = None
    spend_alert: Optional[AlertRecord] = None
    commit_percentage_alert: Optional[AlertRecord] = None

    def to_dict(self) -> dict:
        return {
            "balanceAlert": self.balance_alert.to_dict() if self.balance_alert else None,
            "spendAlert": self.spend_alert.to_dict() if self.spend_alert else None,
            "commitPercentageAlert": (
                self.commit_percentage_alert.to_dict() if self.commit_percentage_alert else None
            ),
        }


# Invoices and usage

@dataclass
class InvoiceSummary:
    id: str
    start_timestamp: Optional[str]
    end_timestamp: Optional[str]
    total: float
    status: str
    currency_name: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "start_timestamp": self.start_timestamp,
            "end_timestamp": self.end_timestamp,
            "total": self.total,
            "status": self.status,
            "currency_name": self.currency_name,
        }


@dataclass
class MetricUsage:
    """Usage of one billable metric over the request window."""
    billable_metric_id: str
    billable_metric_name: str
    raw_usage_data: list[dict] = field(default_factory=list)
    aggregated_value: float = 0.0
    error: Optional[str] = None

    @property
    def total_entries(self) -> int:
        return len(self.raw_usage_data)

    def to_dict(self) -> dict:
        data = {
            "billable_metric": {
                "id": self.billable_metric_id,
                "name": self.billable_metric_name,
            },
            "raw_usage_data": self.raw_usage_data,
            "aggregated_value": self.aggregated_value,
            "total_entries": self.total_entries,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class UsageReport:
    customer_id: str
    usage_data: list[MetricUsage] = field(default_factory=list)

    @property
    def total_metrics(self) -> int:
        return len(self.usage_data)

    @property
    def failed_metrics(self) -> list[MetricUsage]:
        return [m for m in self.usage_data if m.error is not None]

    def to_dict(self) -> dict:
        return {
            "customer_id": self.customer_id,
            "total_metrics": self.total_metrics,
            "usage_data": [m.to_dict() for m in self.usage_data],
        }
