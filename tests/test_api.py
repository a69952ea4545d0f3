"""
Tests for the REST API using demo data.
"""

import httpx
import pytest
from fastapi.testclient import TestClient

from api.main import app
from meterboard.connect.demo import DEMO_CONTRACT_ID, DEMO_CUSTOMER_ID, DemoConnector
from meterboard.errors import INVALID_API_KEY

from tests.conftest import key_checker

DEMO = {"demo": "true"}


@pytest.fixture
def client():
    return TestClient(app)


class TestInfo:
    """Tests for root and health."""

    def test_root(self, client):
        data = client.get("/").json()

        assert data["name"] == "meterboard API"
        assert "balance" in data["endpoints"]

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"


class TestReadRoutes:
    """Tests for the read-only aggregates."""

    def test_customers(self, client):
        data = client.get("/customers", params=DEMO).json()

        assert data["status"] == "success"
        assert [c["id"] for c in data["result"]] == [DEMO_CUSTOMER_ID, "cust-demo-2", "cust-demo-3"]

    def test_balance(self, client):
        data = client.get(f"/customers/{DEMO_CUSTOMER_ID}/balance", params=DEMO).json()

        assert data["status"] == "success"
        assert data["result"]["total_granted"] == 1050000
        assert data["result"]["total_remaining"] == 607500

    def test_costs(self, client):
        data = client.get(f"/customers/{DEMO_CUSTOMER_ID}/costs", params=DEMO).json()

        assert set(data["result"]["products"]) == {"API Calls", "Storage", "Compute Hours"}
        assert data["result"]["items"][0]["API Calls"] == 1500

    def test_hourly_costs(self, client):
        data = client.get(f"/customers/{DEMO_CUSTOMER_ID}/costs", params={**DEMO, "window_size": "HOUR"}).json()

        assert len(data["result"]["items"]) == 31 * 24
        assert data["result"]["items"][0]["API Calls"] == 62.5

    def test_invalid_window_size(self, client):
        response = client.get(f"/customers/{DEMO_CUSTOMER_ID}/costs", params={**DEMO, "window_size": "WEEK"})

        assert response.status_code == 422

    def test_contracts(self, client):
        listed = client.get(f"/customers/{DEMO_CUSTOMER_ID}/contracts", params=DEMO).json()
        single = client.get(f"/customers/{DEMO_CUSTOMER_ID}/contracts/{DEMO_CONTRACT_ID}", params=DEMO).json()

        assert [c["id"] for c in listed["result"]] == [DEMO_CONTRACT_ID]
        assert single["result"]["name"] == "Acme Annual"

    def test_spend(self, client):
        data = client.get(f"/customers/{DEMO_CUSTOMER_ID}/spend", params=DEMO).json()

        assert data["result"]["total"] == {"USD (cents)": 2390000}
        assert data["result"]["productTotals"]["Storage"]["balanceDrawdown"] == 450000

    def test_alerts(self, client):
        data = client.get(f"/customers/{DEMO_CUSTOMER_ID}/alerts", params=DEMO).json()

        assert data["result"]["balanceAlert"]["alert"]["id"] == "alert-demo-balance"
        assert data["result"]["commitPercentageAlert"] is None

    def test_usage(self, client):
        data = client.get(f"/customers/{DEMO_CUSTOMER_ID}/usage", params=DEMO).json()

        assert data["result"]["total_metrics"] == 2

    def test_dashboard(self, client):
        data = client.get(f"/customers/{DEMO_CUSTOMER_ID}/dashboard", params=DEMO).json()

        assert set(data) == {"balance", "costs", "spend", "alerts", "invoices", "usage"}
        assert all(panel["status"] == "success" for panel in data.values())

    def test_embed(self, client):
        params = {**DEMO, "dashboard": "usage", "theme": "dark"}
        data = client.get(f"/customers/{DEMO_CUSTOMER_ID}/embed", params=params).json()

        assert data["result"] == f"https://embed.example.com/usage?customer={DEMO_CUSTOMER_ID}"

    def test_missing_pdf(self, client):
        data = client.get(f"/customers/{DEMO_CUSTOMER_ID}/invoices/invoice-demo-1/pdf", params=DEMO).json()

        assert data == {"status": "error", "message": "PDF URL not available for this invoice"}


class TestWriteRoutes:
    """Tests for alert, contract and usage writes."""

    def test_create_alert(self, client):
        response = client.post(
            f"/customers/{DEMO_CUSTOMER_ID}/alerts",
            params=DEMO,
            json={"kind": "spend", "threshold": 25},
        )

        assert response.json() == {"status": "success", "result": {"id": "alert-demo-1"}}

    def test_create_alert_invalid_threshold(self, client):
        data = client.post(
            f"/customers/{DEMO_CUSTOMER_ID}/alerts",
            params=DEMO,
            json={"kind": "balance", "threshold": -1},
        ).json()

        assert data == {"status": "error", "message": "Threshold must be greater than 0"}

    def test_create_alert_unknown_kind(self, client):
        data = client.post(
            f"/customers/{DEMO_CUSTOMER_ID}/alerts",
            params=DEMO,
            json={"kind": "usage", "threshold": 5},
        ).json()

        assert data["status"] == "error"

    def test_delete_alert(self, client):
        data = client.delete("/alerts/alert-demo-spend", params=DEMO).json()

        assert data == {"status": "success", "result": None}

    def test_recharge(self, client):
        data = client.post(
            f"/customers/{DEMO_CUSTOMER_ID}/recharge",
            params=DEMO,
            json={"amount": 100, "currency_id": "credit-1", "product_id": "prod-1"},
        ).json()

        assert data["result"]["contract_id"] == DEMO_CONTRACT_ID
        assert data["result"]["recharge_amount"] == 100

    def test_subscription_quantity(self, client):
        data = client.post(
            f"/customers/{DEMO_CUSTOMER_ID}/contracts/{DEMO_CONTRACT_ID}/subscriptions/sub-1/quantity",
            params=DEMO,
            json={"quantity": 4, "starting_at": "2026-11-01"},
        ).json()

        assert data == {"status": "success", "result": {"id": DEMO_CONTRACT_ID}}

    def test_send_usage(self, client):
        data = client.post(
            f"/customers/{DEMO_CUSTOMER_ID}/usage",
            params=DEMO,
            json={"event_type": "api_call", "properties": {"count": 2}},
        ).json()

        assert data["result"]["message"] == "Usage data sent successfully"
        assert data["result"]["usage"]["properties"] == {"count": 2}


class ClosingDemoConnector(DemoConnector):
    closed = 0

    def close(self):
        ClosingDemoConnector.closed += 1


class TestLiveWithoutKey:
    """Without ?demo=true the live API is used even when no key is set."""

    def test_reads_report_invalid_key(self, client, live_env):
        route = live_env.get("/v1/customers").mock(
            return_value=httpx.Response(401, json={"message": "Unauthorized"})
        )

        data = client.get("/customers").json()

        assert data == {"status": "error", "message": INVALID_API_KEY}
        assert "Authorization" not in route.calls.last.request.headers

    def test_writes_report_invalid_key(self, client, live_env):
        live_env.post("/v1/alerts/create").mock(
            return_value=httpx.Response(401, json={"message": "Unauthorized"})
        )

        data = client.post("/customers/c1/alerts", json={"kind": "spend", "threshold": 25}).json()

        assert data["status"] == "error"

    def test_header_key_is_sent(self, client, live_env):
        live_env.get("/v1/customers").mock(side_effect=key_checker("header-key"))

        data = client.get("/customers", headers={"X-Api-Key": "header-key"}).json()

        assert data == {"status": "success", "result": []}

    def test_connector_closed_after_request(self, client, monkeypatch):
        monkeypatch.setattr("api.main.create_connector", lambda settings, demo=False: ClosingDemoConnector())
        before = ClosingDemoConnector.closed

        client.get("/customers")

        assert ClosingDemoConnector.closed == before + 1


class TestValidateKey:
    """Tests for POST /validate-key."""

    def test_valid(self, client, live_env):
        route = live_env.get("/v1/customers").mock(side_effect=key_checker("good"))

        response = client.post("/validate-key", json={"apiKey": "good"})

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert route.calls.last.request.url.params["limit"] == "1"

    def test_invalid(self, client, live_env):
        live_env.get("/v1/customers").mock(side_effect=key_checker("good"))

        response = client.post("/validate-key", json={"apiKey": "bad"})

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid API key"}

    def test_upstream_unreachable(self, client, live_env):
        live_env.get("/v1/customers").mock(side_effect=httpx.ConnectError("connection refused"))

        response = client.post("/validate-key", json={"apiKey": "good"})

        assert response.status_code == 401

    @pytest.mark.parametrize("body", [{}, {"apiKey": ""}, {"apiKey": None}])
    def test_missing(self, client, live_env, body):
        route = live_env.get("/v1/customers")

        response = client.post("/validate-key", json=body)

        assert response.status_code == 400
        assert response.json() == {"error": "API key is required"}
        assert not route.called
