"""
Billing Aggregator - Fetch from the billing API and roll up into dashboard aggregates.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Optional

from meterboard.config.settings import Settings
from meterboard.connect.base import (
    AlertRecord,
    BaseBillingConnector,
    BillableMetric,
    Contract,
    Customer,
    DashboardType,
    Grant,
    Invoice,
    UsageBreakdownBucket,
)
from meterboard.connect.pagination import paginate
from meterboard.errors import UNKNOWN_ERROR, describe_error
from meterboard.see.alerts import find_alerts
from meterboard.see.costs import retrieve_cost
from meterboard.see.ledger import rollup_ledger, rollup_ledger_by_currency
from meterboard.see.models import (
    CustomerBalance,
    FetchResult,
    InvoiceSummary,
    MetricUsage,
    UsageReport,
)
from meterboard.see.spend import classify_spend
from meterboard.see.window import trailing_window, utc_now

logger = logging.getLogger(__name__)

# Colour overrides for embedded dashboards rendered on a dark background
DARK_THEME_COLOR_OVERRIDES = [
    {"name": "Gray_dark", "value": "#ffffff"},
    {"name": "Gray_medium", "value": "#d1d5db"},
    {"name": "Gray_light", "value": "#ffffff"},
    {"name": "Gray_extralight", "value": "#1f2937"},
    {"name": "White", "value": "#1f2937"},
    {"name": "Primary_medium", "value": "#3b82f6"},
    {"name": "Primary_light", "value": "#60a5fa"},
    {"name": "Primary_green", "value": "#10b981"},
    {"name": "Primary_red", "value": "#ef4444"},
    {"name": "Progress_bar", "value": "#f59e0b"},
]


class BillingAggregator:
    """
    Aggregates billing data for one connector.

    Every public fetch returns a ``FetchResult`` instead of raising, so
    independent dashboard panels can fail on their own.
    """

    def __init__(self, connector: BaseBillingConnector, settings: Optional[Settings] = None):
        self.connector = connector
        self.settings = settings or Settings()

    def close(self) -> None:
        self.connector.close()

    def _failed(self, action: str, error: Exception) -> FetchResult:
        message = describe_error(error)
        logger.warning("Error %s from %s: %s", action, self.connector.provider_name, message)
        return FetchResult.error(message)

    # Customers

    def get_customers(self) -> FetchResult:
        """All customers, drained across pages."""
        try:
            records = paginate(lambda cursor: self.connector.list_customers(next_page=cursor))
            return FetchResult.success([Customer.from_api(r) for r in records], raw_data=records)
        except Exception as e:
            return self._failed("listing customers", e)

    def get_customer(self, customer_id: str) -> FetchResult:
        try:
            return FetchResult.success(self.connector.retrieve_customer(customer_id))
        except Exception as e:
            return self._failed("fetching customer details", e)

    # Balance

    def get_balance(
        self,
        customer_id: str,
        contract_id: Optional[str] = None,
        as_of: Optional[datetime] = None,
    ) -> FetchResult:
        """Ledger roll-up of the customer's credits and commits."""
        as_of = as_of or utc_now()
        try:
            records = paginate(lambda cursor: self.connector.list_balances(
                customer_id,
                covering_date=as_of,
                next_page=cursor,
                include_archived=False,
                include_ledgers=True,
                include_contract_balances=True,
            ))
            grants = [Grant.from_api(r) for r in records]
            if contract_id:
                grants = [g for g in grants if g.contract_id == contract_id]

            balance = CustomerBalance(
                summary=rollup_ledger(grants, as_of=as_of),
                balances_by_currency=rollup_ledger_by_currency(grants, as_of=as_of),
            )
            return FetchResult.success(balance, raw_data=records)
        except Exception as e:
            return self._failed("fetching balance", e)

    # Costs

    def get_cost_breakdown(
        self,
        customer_id: str,
        window_size: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> FetchResult:
        """Usage cost breakdown over the trailing window."""
        start, end = trailing_window(self.settings.window_days, now)
        window_size = window_size or self.settings.window_size
        try:
            records = paginate(lambda cursor: self.connector.list_invoice_breakdowns(
                customer_id,
                starting_on=start,
                ending_before=end,
                window_size=window_size,
                next_page=cursor,
            ))
            buckets = [UsageBreakdownBucket.from_api(r) for r in records]
            usage = [b for b in buckets if b.is_usage]
            return FetchResult.success(retrieve_cost(usage), raw_data=records)
        except Exception as e:
            return self._failed("fetching invoice breakdowns", e)

    # Spend

    def get_current_spend(self, customer_id: str, contract_id: Optional[str] = None) -> FetchResult:
        """Classify the line items of the customer's draft invoices."""
        try:
            records = self.connector.list_invoices(customer_id, status="DRAFT")
            invoices = [Invoice.from_api(r) for r in records]
            if contract_id:
                invoices = [i for i in invoices if i.contract_id == contract_id]

            line_items = [item for invoice in invoices for item in invoice.line_items]
            return FetchResult.success(classify_spend(line_items), raw_data=records)
        except Exception as e:
            return self._failed("fetching draft invoices", e)

    def get_invoices(self, customer_id: str) -> FetchResult:
        try:
            records = self.connector.list_invoices(customer_id)
            invoices = [
                InvoiceSummary(
                    id=i.id,
                    start_timestamp=i.start_timestamp,
                    end_timestamp=i.end_timestamp,
                    total=i.total,
                    status=i.status,
                    currency_name=i.currency_name,
                )
                for i in (Invoice.from_api(r) for r in records)
            ]
            return FetchResult.success(invoices)
        except Exception as e:
            return self._failed("fetching invoices", e)

    def download_invoice_pdf(self, customer_id: str, invoice_id: str) -> FetchResult:
        try:
            invoice = Invoice.from_api(self.connector.retrieve_invoice(customer_id, invoice_id))
            if not invoice.pdf_url:
                return FetchResult.error("PDF URL not available for this invoice")
            return FetchResult.success(self.connector.download(invoice.pdf_url))
        except Exception as e:
            return self._failed("downloading invoice PDF", e)

    # Alerts

    def get_alerts(self, customer_id: str) -> FetchResult:
        try:
            records = [AlertRecord.from_api(r) for r in self.connector.list_customer_alerts(customer_id)]
            return FetchResult.success(find_alerts(records), raw_data=records)
        except Exception as e:
            return self._failed("fetching alerts", e)

    # Usage

    def _metric_usage(
        self,
        customer_id: str,
        metric: BillableMetric,
        start: datetime,
        end: datetime,
    ) -> MetricUsage:
        try:
            entries = self.connector.list_usage_with_groups(
                customer_id,
                metric.id,
                starting_on=start,
                ending_before=end,
                window_size="DAY",
            )
        except Exception as e:
            logger.warning("Usage for metric %s failed: %s", metric.id, describe_error(e))
            return MetricUsage(
                billable_metric_id=metric.id,
                billable_metric_name=metric.name,
                error=describe_error(e) or UNKNOWN_ERROR,
            )

        return MetricUsage(
            billable_metric_id=metric.id,
            billable_metric_name=metric.name,
            raw_usage_data=entries,
            aggregated_value=sum(entry.get("value") or 0 for entry in entries),
        )

    def get_usage(self, customer_id: str, now: Optional[datetime] = None) -> FetchResult:
        """
        Daily usage per billable metric over the trailing window.

        A failure for one metric is recorded on that metric with zeroed
        aggregates; the remaining metrics are still fetched.
        """
        start, end = trailing_window(self.settings.window_days, now)
        try:
            metrics = [
                BillableMetric.from_api(m)
                for m in self.connector.list_billable_metrics(customer_id)
            ]
        except Exception as e:
            return self._failed("listing billable metrics", e)

        report = UsageReport(customer_id=customer_id)
        for metric in metrics:
            report.usage_data.append(self._metric_usage(customer_id, metric, start, end))
        return FetchResult.success(report)

    def get_billable_metric(self, billable_metric_id: str) -> FetchResult:
        try:
            return FetchResult.success(self.connector.retrieve_billable_metric(billable_metric_id))
        except Exception as e:
            return self._failed("fetching billable metric", e)

    # Contracts

    def get_contracts(self, customer_id: str) -> FetchResult:
        try:
            records = paginate(lambda cursor: self.connector.list_contracts(customer_id, next_page=cursor))
            return FetchResult.success([Contract.from_api(r) for r in records], raw_data=records)
        except Exception as e:
            return self._failed("listing contracts", e)

    def get_contract(self, customer_id: str, contract_id: str) -> FetchResult:
        try:
            return FetchResult.success(self.connector.retrieve_contract(customer_id, contract_id))
        except Exception as e:
            return self._failed("fetching contract details", e)

    # Embedded dashboards

    def get_embeddable_url(
        self,
        customer_id: str,
        dashboard: DashboardType = DashboardType.INVOICES,
        theme: Optional[str] = None,
    ) -> FetchResult:
        overrides = DARK_THEME_COLOR_OVERRIDES if theme == "dark" else None
        try:
            url = self.connector.get_embeddable_url(
                customer_id,
                DashboardType(dashboard).value,
                color_overrides=overrides,
            )
            return FetchResult.success(url)
        except Exception as e:
            return self._failed("creating embeddable link", e)

    # Dashboard fan-out

    def get_dashboard(
        self,
        customer_id: str,
        contract_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> dict[str, FetchResult]:
        """
        Fetch every dashboard panel in parallel.

        Panels do not depend on each other; each result carries its own status.
        """
        tasks = {
            "balance": lambda: self.get_balance(customer_id, contract_id, as_of=now),
            "costs": lambda: self.get_cost_breakdown(customer_id, now=now),
            "spend": lambda: self.get_current_spend(customer_id, contract_id),
            "alerts": lambda: self.get_alerts(customer_id),
            "invoices": lambda: self.get_invoices(customer_id),
            "usage": lambda: self.get_usage(customer_id, now=now),
        }

        with ThreadPoolExecutor(max_workers=len(tasks)) as pool:
            futures = {name: pool.submit(task) for name, task in tasks.items()}
            return {name: future.result() for name, future in futures.items()}
