"""
Tests for the billing aggregator against demo and failing connectors.
"""

from meterboard.connect.base import DashboardType
from meterboard.connect.demo import DEMO_CONTRACT_ID, DEMO_CUSTOMER_ID, DemoConnector
from meterboard.errors import AuthError, UpstreamError
from meterboard.see import BillingAggregator
from meterboard.see.aggregator import DARK_THEME_COLOR_OVERRIDES
from meterboard.see.models import BALANCE_DRAWDOWN, OVERAGES, FetchResult

from tests.conftest import NOW


class BrokenConnector(DemoConnector):
    """Demo data, except every list call fails upstream."""

    def list_customers(self, next_page=None):
        raise UpstreamError("500: customers unavailable")

    def list_balances(self, customer_id, covering_date, next_page=None, **kwargs):
        raise AuthError(403)

    def list_invoice_breakdowns(self, customer_id, starting_on, ending_before, window_size=None, next_page=None):
        raise UpstreamError("503: try later")

    def list_invoices(self, customer_id, status=None):
        raise RuntimeError("socket closed")

    def list_customer_alerts(self, customer_id):
        raise UpstreamError()

    def list_billable_metrics(self, customer_id):
        raise UpstreamError("500: metrics down")


class FlakyUsageConnector(DemoConnector):
    """Usage for the storage metric fails; everything else works."""

    def list_usage_with_groups(self, customer_id, billable_metric_id, starting_on, ending_before, window_size="DAY"):
        if billable_metric_id == "metric-demo-storage":
            raise UpstreamError("500: usage unavailable")
        return super().list_usage_with_groups(customer_id, billable_metric_id, starting_on, ending_before, window_size)


class RecordingConnector(DemoConnector):
    """Records the embed options it receives."""

    def __init__(self):
        super().__init__()
        self.embed_calls = []

    def get_embeddable_url(self, customer_id, dashboard, color_overrides=None):
        self.embed_calls.append((dashboard, color_overrides))
        return super().get_embeddable_url(customer_id, dashboard, color_overrides)


class TestFetchResult:
    """Tests for the tagged result."""

    def test_success_dict(self):
        assert FetchResult.success({"a": 1}).to_dict() == {"status": "success", "result": {"a": 1}}

    def test_error_dict(self):
        data = FetchResult.error("boom").to_dict()

        assert data == {"status": "error", "message": "boom"}
        assert "result" not in data


class TestCustomers:
    """Tests for customer listing."""

    def test_paginates_all_customers(self):
        connector = DemoConnector(page_size=2)

        result = BillingAggregator(connector).get_customers()

        assert result.ok
        assert [c.id for c in result.result] == [DEMO_CUSTOMER_ID, "cust-demo-2", "cust-demo-3"]

    def test_listing_failure(self):
        result = BillingAggregator(BrokenConnector()).get_customers()

        assert result.to_dict() == {"status": "error", "message": "500: customers unavailable"}

    def test_customer_details(self, aggregator):
        assert aggregator.get_customer(DEMO_CUSTOMER_ID).result["name"] == "Acme Corp"


class TestBalance:
    """Tests for get_balance."""

    def test_demo_balance(self, aggregator):
        result = aggregator.get_balance(DEMO_CUSTOMER_ID, as_of=NOW)

        summary = result.result.summary
        assert result.ok
        assert summary.currency_name == "USD (cents)"
        assert summary.total_granted == 1050000
        assert summary.total_used == 442500
        assert summary.total_remaining == 607500
        assert [g.product_name for g in summary.processed_grants] == ["Annual Commit", "Onboarding Credit"]
        assert len(result.raw_data) == 2

    def test_grants_across_pages(self):
        result = BillingAggregator(DemoConnector(page_size=1)).get_balance(DEMO_CUSTOMER_ID, as_of=NOW)

        assert len(result.result.summary.processed_grants) == 2

    def test_contract_filter(self, aggregator):
        assert aggregator.get_balance(DEMO_CUSTOMER_ID, DEMO_CONTRACT_ID).result.summary.total_granted == 1050000
        assert aggregator.get_balance(DEMO_CUSTOMER_ID, "other").result.summary.processed_grants == []

    def test_to_dict_includes_currency_breakdown(self, aggregator):
        data = aggregator.get_balance(DEMO_CUSTOMER_ID, as_of=NOW).to_dict()["result"]

        assert data["total_remaining"] == 607500
        assert data["balances_by_currency"][0]["currency_name"] == "USD (cents)"

    def test_auth_failure(self):
        result = BillingAggregator(BrokenConnector()).get_balance(DEMO_CUSTOMER_ID)

        assert result.status == "error"
        assert result.message == "Invalid API key. Please check your Metronome API key in settings."


class TestCostBreakdown:
    """Tests for get_cost_breakdown."""

    def test_demo_costs(self, aggregator):
        result = aggregator.get_cost_breakdown(DEMO_CUSTOMER_ID, now=NOW)
        costs = result.result

        assert result.ok
        assert len(costs.items) == 31
        assert costs.currency_name == "USD (cents)"
        assert costs.products == {
            "API Calls": {"region": ["us-east-1", "eu-west-1"]},
            "Storage": {"bucket": ["archive"]},
            "Compute Hours": {"region": ["us-east-1"], "team": ["ml"]},
        }
        assert costs.items[0].products == {"API Calls": 1500, "Storage": 450, "Compute Hours": 800}
        assert costs.items[0].dimensions == {"us-east-1": 2000, "eu-west-1": 300, "archive": 450, "ml": 800}
        assert costs.items[0].period_start == "2026-09-19T00:00:00.000Z"
        assert costs.product_total("API Calls") == 1500 * 31

    def test_buckets_across_pages(self):
        result = BillingAggregator(DemoConnector(page_size=7)).get_cost_breakdown(DEMO_CUSTOMER_ID, now=NOW)

        assert len(result.result.items) == 31

    def test_non_usage_buckets_dropped(self):
        class MixedConnector(DemoConnector):
            def list_invoice_breakdowns(self, *args, **kwargs):
                page = super().list_invoice_breakdowns(*args, **kwargs)
                page.data[0] = {**page.data[0], "type": "SCHEDULED"}
                return page

        result = BillingAggregator(MixedConnector(page_size=100)).get_cost_breakdown(DEMO_CUSTOMER_ID, now=NOW)

        assert len(result.result.items) == 30

    def test_upstream_failure(self):
        result = BillingAggregator(BrokenConnector()).get_cost_breakdown(DEMO_CUSTOMER_ID)

        assert result.to_dict() == {"status": "error", "message": "503: try later"}


class TestCurrentSpend:
    """Tests for get_current_spend."""

    def test_demo_spend(self, aggregator):
        spend = aggregator.get_current_spend(DEMO_CUSTOMER_ID).result

        assert spend.total_by_currency == {"USD (cents)": 2390000}
        assert set(spend.product_totals) == {"API Calls", "Storage"}
        assert spend.product_totals["API Calls"].balance_drawdown == 1200000
        assert spend.product_totals["API Calls"].overages == 300000
        assert spend.commit_application_totals[BALANCE_DRAWDOWN].total == 1650000
        assert spend.commit_application_totals[OVERAGES].total == 440000

    def test_other_contract_is_empty(self, aggregator):
        assert aggregator.get_current_spend(DEMO_CUSTOMER_ID, "other").result.total_by_currency == {}

    def test_unexpected_exception(self):
        result = BillingAggregator(BrokenConnector()).get_current_spend(DEMO_CUSTOMER_ID)

        assert result.message == "socket closed"


class TestAlertsAndInvoices:
    """Tests for alerts, invoices and documents."""

    def test_alerts(self, aggregator):
        alerts = aggregator.get_alerts(DEMO_CUSTOMER_ID).result

        assert alerts.balance_alert.alert.id == "alert-demo-balance"
        assert alerts.spend_alert.alert.id == "alert-demo-spend"
        assert alerts.commit_percentage_alert is None

    def test_alerts_unknown_error(self):
        assert BillingAggregator(BrokenConnector()).get_alerts(DEMO_CUSTOMER_ID).message == "Unknown error"

    def test_invoices(self, aggregator):
        invoices = aggregator.get_invoices(DEMO_CUSTOMER_ID).result

        assert [i.status for i in invoices] == ["DRAFT", "FINALIZED"]

    def test_pdf_missing(self, aggregator):
        result = aggregator.download_invoice_pdf(DEMO_CUSTOMER_ID, "invoice-demo-1")

        assert result.message == "PDF URL not available for this invoice"

    def test_pdf_download(self):
        class PdfConnector(DemoConnector):
            def _finalized_invoice(self):
                return {**super()._finalized_invoice(), "external_invoice": {"pdf_url": "https://pdf.test/1"}}

        result = BillingAggregator(PdfConnector()).download_invoice_pdf(DEMO_CUSTOMER_ID, "invoice-demo-1")

        assert result.result == b"%PDF-1.4 demo"


class TestUsage:
    """Tests for get_usage."""

    def test_demo_usage(self, aggregator):
        report = aggregator.get_usage(DEMO_CUSTOMER_ID, now=NOW).result

        assert report.total_metrics == 2
        assert report.usage_data[0].aggregated_value == 1500 * 31
        assert report.usage_data[0].total_entries == 31
        assert report.failed_metrics == []

    def test_metric_failure_is_isolated(self):
        report = BillingAggregator(FlakyUsageConnector()).get_usage(DEMO_CUSTOMER_ID, now=NOW).result

        failed = report.failed_metrics
        assert [m.billable_metric_id for m in failed] == ["metric-demo-storage"]
        assert failed[0].error == "500: usage unavailable"
        assert failed[0].aggregated_value == 0
        assert failed[0].to_dict()["total_entries"] == 0
        assert report.usage_data[0].aggregated_value == 1500 * 31

    def test_metric_listing_failure(self):
        result = BillingAggregator(BrokenConnector()).get_usage(DEMO_CUSTOMER_ID)

        assert result.message == "500: metrics down"


class TestContractsAndEmbeds:
    """Tests for contracts and embeddable dashboards."""

    def test_contracts(self, aggregator):
        contracts = aggregator.get_contracts(DEMO_CUSTOMER_ID).result

        assert [c.id for c in contracts] == [DEMO_CONTRACT_ID]
        assert contracts[0].bills_through_stripe

    def test_dark_theme_overrides(self):
        connector = RecordingConnector()
        aggregator = BillingAggregator(connector)

        result = aggregator.get_embeddable_url(DEMO_CUSTOMER_ID, DashboardType.USAGE, theme="dark")
        aggregator.get_embeddable_url(DEMO_CUSTOMER_ID, "invoices")

        assert result.result == f"https://embed.example.com/usage?customer={DEMO_CUSTOMER_ID}"
        assert connector.embed_calls == [
            ("usage", DARK_THEME_COLOR_OVERRIDES),
            ("invoices", None),
        ]


class TestDashboard:
    """Tests for the dashboard fan-out."""

    def test_all_panels(self, aggregator):
        results = aggregator.get_dashboard(DEMO_CUSTOMER_ID, now=NOW)

        assert set(results) == {"balance", "costs", "spend", "alerts", "invoices", "usage"}
        assert all(r.ok for r in results.values())

    def test_panels_fail_independently(self):
        class BalanceDown(DemoConnector):
            def list_balances(self, *args, **kwargs):
                raise UpstreamError("500: ledger down")

        results = BillingAggregator(BalanceDown()).get_dashboard(DEMO_CUSTOMER_ID, now=NOW)

        assert results["balance"].to_dict() == {"status": "error", "message": "500: ledger down"}
        assert results["costs"].ok
        assert results["spend"].ok
        assert results["usage"].ok
