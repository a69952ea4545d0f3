"""
Demo Connector - Canned billing data for offline use.

Mirrors the shapes the Metronome API returns so every aggregate can be
exercised without credentials.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from meterboard.config.currency import USD_CREDIT_TYPE_ID
from meterboard.connect.base import BaseBillingConnector, Page
from meterboard.connect.metronome import to_iso

logger = logging.getLogger(__name__)

DEMO_CUSTOMER_ID = "cust-demo-1"
DEMO_CONTRACT_ID = "contract-demo-1"

USD = {"id": USD_CREDIT_TYPE_ID, "name": "USD (cents)"}

DEMO_CUSTOMERS = [
    {"id": DEMO_CUSTOMER_ID, "name": "Acme Corp", "external_id": "acme"},
    {"id": "cust-demo-2", "name": "Globex", "external_id": "globex"},
    {"id": "cust-demo-3", "name": "Initech", "external_id": "initech"},
]

# Per-day usage lines: (name, product_type, total, pricing groups, presentation groups)
DEMO_DAILY_LINES = [
    ("API Calls - Tier 1", "UsageProductListItem", 1200.0, {"region": "us-east-1"}, {}),
    ("API Calls - Tier 2", "UsageProductListItem", 300.0, {"region": "eu-west-1"}, {}),
    ("Storage", "UsageProductListItem", 450.0, {}, {"bucket": "archive"}),
    ("Compute Hours", "UsageProductListItem", 800.0, {"region": "us-east-1"}, {"team": "ml"}),
    ("Promotional Credit", "CreditLineItem", -500.0, {}, {}),
]


class DemoConnector(BaseBillingConnector):
    """In-memory connector serving deterministic demo data."""

    provider_name = "demo"

    def __init__(self, page_size: int = 10):
        self.page_size = page_size
        self.created_alerts: list[dict] = []
        self.archived_alerts: list[str] = []
        self.ingested_events: list[dict] = []
        self.contract_edits: list[dict] = []
        self._alerts = [
            {
                "customer_status": "ok",
                "alert": {
                    "id": "alert-demo-balance",
                    "type": "low_remaining_contract_credit_and_commit_balance_reached",
                    "name": "CUSTOM_BALANCE_ALERT",
                    "threshold": 50000,
                    "enabled": True,
                    "status": "enabled",
                },
            },
            {
                "customer_status": "ok",
                "alert": {
                    "id": "alert-demo-spend",
                    "type": "spend_threshold_reached",
                    "name": "CUSTOM_SPEND_THRESHOLD_ALERT",
                    "threshold": 100000,
                    "enabled": True,
                    "status": "enabled",
                },
            },
        ]

    def connect(self) -> bool:
        return True

    def _slice(self, records: list, next_page: Optional[str]) -> Page:
        start = int(next_page) if next_page else 0
        end = start + self.page_size
        cursor = str(end) if end < len(records) else None
        return Page(data=records[start:end], next_page=cursor)

    # Customers

    def list_customers(self, next_page: Optional[str] = None) -> Page:
        return self._slice(DEMO_CUSTOMERS, next_page)

    def retrieve_customer(self, customer_id: str) -> dict:
        for customer in DEMO_CUSTOMERS:
            if customer["id"] == customer_id:
                return customer
        return {}

    # Balances

    def list_balances(
        self,
        customer_id: str,
        covering_date: datetime,
        next_page: Optional[str] = None,
        include_archived: bool = False,
        include_ledgers: bool = True,
        include_contract_balances: bool = True,
    ) -> Page:
        start = covering_date - timedelta(days=30)
        grants = [
            {
                "id": "commit-demo-1",
                "type": "PREPAID",
                "name": "Annual Commit",
                "product": {"name": "Prepaid Commit"},
                "contract": {"id": DEMO_CONTRACT_ID},
                "access_schedule": {
                    "credit_type": USD,
                    "schedule_items": [
                        {"amount": 1000000, "starting_at": to_iso(start)},
                    ],
                },
                "ledger": [
                    {"amount": 1000000, "type": "PREPAID_COMMIT_SEGMENT_START"},
                    {"amount": -412500, "type": "PREPAID_COMMIT_AUTOMATED_INVOICE_DEDUCTION"},
                ],
            },
            {
                "id": "credit-demo-1",
                "type": "CREDIT",
                "name": None,
                "product": {"name": "Onboarding Credit"},
                "contract": {"id": DEMO_CONTRACT_ID},
                "access_schedule": {
                    "credit_type": USD,
                    "schedule_items": [{"amount": 50000, "starting_at": to_iso(start)}],
                },
                "ledger": [
                    {"amount": -30000, "type": "CREDIT_AUTOMATED_INVOICE_DEDUCTION"},
                ],
            },
        ]
        if not include_ledgers:
            for grant in grants:
                grant["ledger"] = []
        return self._slice(grants, next_page)

    # Invoices

    def list_invoice_breakdowns(
        self,
        customer_id: str,
        starting_on: datetime,
        ending_before: datetime,
        window_size: Optional[str] = None,
        next_page: Optional[str] = None,
    ) -> Page:
        step = timedelta(hours=1) if window_size == "HOUR" else timedelta(days=1)
        scale = 1 / 24 if window_size == "HOUR" else 1.0

        buckets = []
        current = starting_on
        while current < ending_before:
            lines = [
                {
                    "name": name,
                    "product_type": product_type,
                    "total": round(total * scale, 4),
                    "credit_type": USD,
                    "pricing_group_values": pricing,
                    "presentation_group_values": presentation,
                }
                for name, product_type, total, pricing, presentation in DEMO_DAILY_LINES
            ]
            buckets.append({
                "type": "USAGE",
                "breakdown_start_timestamp": to_iso(current),
                "total": round(sum(line["total"] for line in lines), 4),
                "line_items": lines,
            })
            current = current + step

        return self._slice(buckets, next_page)

    def _draft_invoice(self) -> dict:
        now = datetime.now(timezone.utc)
        return {
            "id": "invoice-demo-draft",
            "start_timestamp": to_iso(now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)),
            "end_timestamp": None,
            "total": 2390000,
            "status": "DRAFT",
            "contract_id": DEMO_CONTRACT_ID,
            "credit_type": USD,
            "line_items": [
                {
                    "name": "API Calls - Tier 1",
                    "total": 1200000,
                    "type": "usage",
                    "credit_type": USD,
                    "applied_commit_or_credit": {"id": "commit-demo-1"},
                },
                {
                    "name": "API Calls - Tier 2",
                    "total": 300000,
                    "type": "usage",
                    "credit_type": USD,
                    "applied_commit_or_credit": None,
                },
                {
                    "name": "Storage",
                    "total": 450000,
                    "type": "usage",
                    "credit_type": USD,
                    "applied_commit_or_credit": {"id": "credit-demo-1"},
                },
                {
                    "name": "CPU Conversion",
                    "total": 440000,
                    "type": "cpu_conversion",
                    "credit_type": USD,
                    "applied_commit_or_credit": None,
                },
                {
                    "name": "Commit Drawdown",
                    "total": -1650000,
                    "type": "commit",
                    "credit_type": USD,
                    "applied_commit_or_credit": None,
                },
            ],
        }

    def _finalized_invoice(self) -> dict:
        return {
            "id": "invoice-demo-1",
            "start_timestamp": "2026-08-01T00:00:00.000Z",
            "end_timestamp": "2026-09-01T00:00:00.000Z",
            "total": 2150000,
            "status": "FINALIZED",
            "contract_id": DEMO_CONTRACT_ID,
            "credit_type": USD,
            "line_items": [],
            "external_invoice": {"pdf_url": None},
        }

    def list_invoices(self, customer_id: str, status: Optional[str] = None) -> list[dict]:
        invoices = [self._draft_invoice(), self._finalized_invoice()]
        if status:
            invoices = [i for i in invoices if i["status"] == status]
        return invoices

    def retrieve_invoice(self, customer_id: str, invoice_id: str) -> dict:
        for invoice in self.list_invoices(customer_id):
            if invoice["id"] == invoice_id:
                return invoice
        return {}

    # Alerts

    def list_customer_alerts(self, customer_id: str) -> list[dict]:
        return list(self._alerts)

    def create_alert(self, payload: dict) -> dict:
        alert_id = f"alert-demo-{len(self.created_alerts) + 1}"
        self.created_alerts.append(payload)
        logger.info("Demo alert %s created: %s", alert_id, payload.get("alert_type"))
        return {"id": alert_id}

    def archive_alert(self, alert_id: str) -> dict:
        self.archived_alerts.append(alert_id)
        return {"id": alert_id}

    # Usage

    def list_billable_metrics(self, customer_id: str) -> list[dict]:
        return [
            {"id": "metric-demo-api", "name": "API Calls"},
            {"id": "metric-demo-storage", "name": "Storage GB"},
        ]

    def retrieve_billable_metric(self, billable_metric_id: str) -> dict:
        for metric in self.list_billable_metrics(DEMO_CUSTOMER_ID):
            if metric["id"] == billable_metric_id:
                return {**metric, "aggregation_type": "SUM"}
        return {}

    def list_usage_with_groups(
        self,
        customer_id: str,
        billable_metric_id: str,
        starting_on: datetime,
        ending_before: datetime,
        window_size: str = "DAY",
    ) -> list[dict]:
        value = 1500.0 if billable_metric_id == "metric-demo-api" else 42.0
        entries = []
        current = starting_on
        while current < ending_before:
            following = current + timedelta(days=1)
            entries.append({
                "starting_on": to_iso(current),
                "ending_before": to_iso(following),
                "group_key": None,
                "group_value": None,
                "value": value,
            })
            current = following
        return entries

    def ingest_usage(self, events: list[dict]) -> None:
        self.ingested_events.extend(events)

    def preview_events(self, customer_id: str, events: list[dict]) -> dict:
        return {"data": {"customer_id": customer_id, "events": events, "line_items": []}}

    # Contracts

    def list_contracts(self, customer_id: str, next_page: Optional[str] = None) -> Page:
        contracts = [
            {
                "id": DEMO_CONTRACT_ID,
                "name": "Acme Annual",
                "customer_billing_provider_configuration": {"billing_provider": "stripe"},
            },
        ]
        return self._slice(contracts, next_page)

    def retrieve_contract(self, customer_id: str, contract_id: str) -> dict:
        for contract in self.list_contracts(customer_id).data:
            if contract["id"] == contract_id:
                return contract
        return {}

    def edit_contract(self, payload: dict) -> dict:
        self.contract_edits.append(payload)
        return {"id": payload.get("contract_id")}

    def retrieve_subscription_quantity_history(
        self,
        customer_id: str,
        contract_id: str,
        subscription_id: str,
    ) -> dict:
        return {
            "subscription_id": subscription_id,
            "history": [
                {"starting_at": "2026-09-01T00:00:00.000Z", "data": [{"quantity": 5}]},
                {"starting_at": "2026-10-01T00:00:00.000Z", "data": [{"quantity": 8}]},
            ],
        }

    # Dashboards and documents

    def get_embeddable_url(
        self,
        customer_id: str,
        dashboard: str,
        color_overrides: Optional[list[dict]] = None,
    ) -> str:
        return f"https://embed.example.com/{dashboard}?customer={customer_id}"

    def download(self, url: str) -> bytes:
        return b"%PDF-1.4 demo"
