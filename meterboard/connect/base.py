"""
Base classes and records for billing API connectors.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from meterboard.config.currency import DEFAULT_CURRENCY_NAME, USD_CREDIT_TYPE_ID


class AlertType(str, Enum):
    """Alert types the dashboard recognizes."""
    BALANCE = "low_remaining_contract_credit_and_commit_balance_reached"
    SPEND = "spend_threshold_reached"
    COMMIT_PERCENTAGE = "low_remaining_commit_percentage_reached"


class WindowSize(str, Enum):
    """Granularity of invoice breakdowns and usage windows."""
    HOUR = "HOUR"
    DAY = "DAY"


class DashboardType(str, Enum):
    """Embeddable dashboards offered by the billing API."""
    INVOICES = "invoices"
    USAGE = "usage"
    COMMITS_AND_CREDITS = "commits_and_credits"


USAGE_PRODUCT_LIST_ITEM = "UsageProductListItem"
CPU_CONVERSION = "cpu_conversion"


def _amount(value: Any) -> float:
    if value is None:
        return 0.0
    return float(value)


@dataclass
class Page:
    """One page of a cursor-paginated list endpoint."""
    data: list
    next_page: Optional[str] = None


@dataclass
class ScheduleItem:
    """An amount made available by a grant's access schedule."""
    amount: float
    starting_at: Optional[str] = None
    ending_before: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict) -> "ScheduleItem":
        return cls(
            amount=_amount(data.get("amount")),
            starting_at=data.get("starting_at"),
            ending_before=data.get("ending_before"),
        )


@dataclass
class LedgerEntry:
    """A ledger movement; negative amounts are consumption."""
    amount: float
    type: Optional[str] = None
    timestamp: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict) -> "LedgerEntry":
        return cls(
            amount=_amount(data.get("amount")),
            type=data.get("type"),
            timestamp=data.get("timestamp"),
        )


@dataclass
class Grant:
    """A credit or commit balance allocated to a customer."""
    id: str
    type: str
    product_name: str
    credit_type_name: str = DEFAULT_CURRENCY_NAME
    credit_type_id: str = USD_CREDIT_TYPE_ID
    access_schedule_items: list[ScheduleItem] = field(default_factory=list)
    ledger_entries: list[LedgerEntry] = field(default_factory=list)
    contract_id: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict) -> "Grant":
        schedule = data.get("access_schedule") or {}
        credit_type = schedule.get("credit_type") or {}
        product = data.get("product") or {}
        contract = data.get("contract") or {}

        return cls(
            id=data.get("id", ""),
            type=data.get("type", ""),
            product_name=data.get("name") or product.get("name", ""),
            credit_type_name=credit_type.get("name") or DEFAULT_CURRENCY_NAME,
            credit_type_id=credit_type.get("id") or USD_CREDIT_TYPE_ID,
            access_schedule_items=[
                ScheduleItem.from_api(item) for item in schedule.get("schedule_items") or []
            ],
            ledger_entries=[LedgerEntry.from_api(entry) for entry in data.get("ledger") or []],
            contract_id=contract.get("id"),
        )


@dataclass
class LineItem:
    """A line of a usage breakdown bucket."""
    name: str
    product_type: str
    total: float
    credit_type_name: str
    pricing_group_values: dict = field(default_factory=dict)
    presentation_group_values: dict = field(default_factory=dict)
    raw: dict = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: dict) -> "LineItem":
        credit_type = data.get("credit_type") or {}
        return cls(
            name=data.get("name", ""),
            product_type=data.get("product_type", ""),
            total=_amount(data.get("total")),
            credit_type_name=credit_type.get("name", ""),
            pricing_group_values=dict(data.get("pricing_group_values") or {}),
            presentation_group_values=dict(data.get("presentation_group_values") or {}),
            raw=data,
        )

    def to_dict(self) -> dict:
        if self.raw:
            return self.raw
        return {
            "name": self.name,
            "product_type": self.product_type,
            "total": self.total,
            "credit_type": {"name": self.credit_type_name},
            "pricing_group_values": self.pricing_group_values,
            "presentation_group_values": self.presentation_group_values,
        }


@dataclass
class UsageBreakdownBucket:
    """One time bucket of an invoice breakdown."""
    type: str
    period_start: str
    total: float
    line_items: Optional[list[LineItem]] = None

    @classmethod
    def from_api(cls, data: dict) -> "UsageBreakdownBucket":
        raw_items = data.get("line_items")
        return cls(
            type=data.get("type", ""),
            period_start=data.get("breakdown_start_timestamp", ""),
            total=_amount(data.get("total")),
            line_items=(
                [LineItem.from_api(item) for item in raw_items]
                if raw_items is not None else None
            ),
        )

    @property
    def is_usage(self) -> bool:
        return self.type == "USAGE"

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "breakdown_start_timestamp": self.period_start,
            "total": self.total,
            "line_items": (
                [item.to_dict() for item in self.line_items]
                if self.line_items is not None else None
            ),
        }


@dataclass
class DraftInvoiceLineItem:
    """A line of a draft invoice."""
    name: str
    total: float
    credit_type_name: str
    product_type: str
    applied_commit_id: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict) -> "DraftInvoiceLineItem":
        credit_type = data.get("credit_type") or {}
        applied = data.get("applied_commit_or_credit") or {}
        return cls(
            name=data.get("name", ""),
            total=_amount(data.get("total")),
            credit_type_name=credit_type.get("name", ""),
            product_type=data.get("type", ""),
            applied_commit_id=applied.get("id") or None,
        )

    @property
    def has_commit_applied(self) -> bool:
        return self.applied_commit_id is not None


@dataclass
class Invoice:
    """An invoice (draft or finalized)."""
    id: str
    start_timestamp: Optional[str]
    end_timestamp: Optional[str]
    total: float
    status: str
    currency_name: str
    contract_id: Optional[str] = None
    line_items: list[DraftInvoiceLineItem] = field(default_factory=list)
    pdf_url: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict) -> "Invoice":
        credit_type = data.get("credit_type") or {}
        external = data.get("external_invoice") or {}
        return cls(
            id=data.get("id", ""),
            start_timestamp=data.get("start_timestamp"),
            end_timestamp=data.get("end_timestamp"),
            total=_amount(data.get("total")),
            status=data.get("status", ""),
            currency_name=credit_type.get("name", ""),
            contract_id=data.get("contract_id"),
            line_items=[DraftInvoiceLineItem.from_api(item) for item in data.get("line_items") or []],
            pdf_url=external.get("pdf_url"),
        )


@dataclass
class Alert:
    """Alert definition."""
    id: str
    type: str
    name: str = ""
    threshold: Optional[float] = None
    enabled: Optional[bool] = None
    status: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict) -> "Alert":
        return cls(
            id=data.get("id", ""),
            type=data.get("type", ""),
            name=data.get("name", ""),
            threshold=data.get("threshold"),
            enabled=data.get("enabled"),
            status=data.get("status"),
        )


@dataclass
class AlertRecord:
    """An alert as seen from one customer."""
    alert: Alert
    customer_status: Optional[str] = None
    id: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict) -> "AlertRecord":
        return cls(
            id=data.get("id"),
            customer_status=data.get("customer_status"),
            alert=Alert.from_api(data.get("alert") or {}),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_status": self.customer_status,
            "alert": {
                "id": self.alert.id,
                "type": self.alert.type,
                "name": self.alert.name,
                "threshold": self.alert.threshold,
                "enabled": self.alert.enabled,
                "status": self.alert.status,
            },
        }


@dataclass
class Customer:
    """Billing customer."""
    id: str
    name: str
    external_id: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict) -> "Customer":
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            external_id=data.get("external_id"),
        )

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "external_id": self.external_id}


@dataclass
class BillableMetric:
    """Server-defined aggregation over raw usage events."""
    id: str
    name: str

    @classmethod
    def from_api(cls, data: dict) -> "BillableMetric":
        return cls(id=data.get("id", ""), name=data.get("name", ""))


@dataclass
class Contract:
    """Customer contract (v2)."""
    id: str
    name: Optional[str] = None
    billing_provider: Optional[str] = None
    raw: dict = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: dict) -> "Contract":
        billing = data.get("customer_billing_provider_configuration") or {}
        return cls(
            id=data.get("id", ""),
            name=data.get("name"),
            billing_provider=billing.get("billing_provider"),
            raw=data,
        )

    @property
    def bills_through_stripe(self) -> bool:
        return self.billing_provider == "stripe"

    def to_dict(self) -> dict:
        if self.raw:
            return self.raw
        return {"id": self.id, "name": self.name}


class BaseBillingConnector(ABC):
    """Base class for billing API connectors."""

    provider_name: str = "base"

    @abstractmethod
    def connect(self) -> bool:
        """Check the credential against the API. Returns True if usable."""
        pass

    def close(self) -> None:
        """Release network resources. Nothing to release by default."""
        pass

    @abstractmethod
    def list_customers(self, next_page: Optional[str] = None) -> Page:
        """One page of customers."""
        pass

    @abstractmethod
    def retrieve_customer(self, customer_id: str) -> dict:
        pass

    @abstractmethod
    def list_balances(
        self,
        customer_id: str,
        covering_date: datetime,
        next_page: Optional[str] = None,
        include_archived: bool = False,
        include_ledgers: bool = True,
        include_contract_balances: bool = True,
    ) -> Page:
        """One page of grants (credits and commits) with their ledgers."""
        pass

    @abstractmethod
    def list_invoice_breakdowns(
        self,
        customer_id: str,
        starting_on: datetime,
        ending_before: datetime,
        window_size: Optional[str] = None,
        next_page: Optional[str] = None,
    ) -> Page:
        """One page of time-bucketed invoice breakdowns."""
        pass

    @abstractmethod
    def list_invoices(self, customer_id: str, status: Optional[str] = None) -> list[dict]:
        pass

    @abstractmethod
    def retrieve_invoice(self, customer_id: str, invoice_id: str) -> dict:
        pass

    @abstractmethod
    def list_customer_alerts(self, customer_id: str) -> list[dict]:
        pass

    @abstractmethod
    def create_alert(self, payload: dict) -> dict:
        pass

    @abstractmethod
    def archive_alert(self, alert_id: str) -> dict:
        pass

    @abstractmethod
    def list_billable_metrics(self, customer_id: str) -> list[dict]:
        pass

    @abstractmethod
    def retrieve_billable_metric(self, billable_metric_id: str) -> dict:
        pass

    @abstractmethod
    def list_usage_with_groups(
        self,
        customer_id: str,
        billable_metric_id: str,
        starting_on: datetime,
        ending_before: datetime,
        window_size: str = "DAY",
    ) -> list[dict]:
        pass

    @abstractmethod
    def ingest_usage(self, events: list[dict]) -> None:
        pass

    @abstractmethod
    def preview_events(self, customer_id: str, events: list[dict]) -> dict:
        pass

    @abstractmethod
    def list_contracts(self, customer_id: str, next_page: Optional[str] = None) -> Page:
        pass

    @abstractmethod
    def retrieve_contract(self, customer_id: str, contract_id: str) -> dict:
        pass

    @abstractmethod
    def edit_contract(self, payload: dict) -> dict:
        pass

    @abstractmethod
    def retrieve_subscription_quantity_history(
        self,
        customer_id: str,
        contract_id: str,
        subscription_id: str,
    ) -> dict:
        pass

    @abstractmethod
    def get_embeddable_url(
        self,
        customer_id: str,
        dashboard: str,
        color_overrides: Optional[list[dict]] = None,
    ) -> str:
        pass

    @abstractmethod
    def download(self, url: str) -> bytes:
        """Fetch a document (invoice PDF) by absolute URL."""
        pass
