"""
Metronome Connector - REST access to the Metronome billing API.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from meterboard.config.settings import DEFAULT_BASE_URL, DEFAULT_TIMEOUT
from meterboard.connect.base import BaseBillingConnector, Page
from meterboard.errors import AuthError, UpstreamError

logger = logging.getLogger(__name__)


def to_iso(moment: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a trailing Z."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    text = moment.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def _error_message(response: httpx.Response) -> tuple[str, Any]:
    try:
        body = response.json()
    except ValueError:
        body = response.text

    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict):
            message = err.get("message") or str(body)
        else:
            message = body.get("message") or err or str(body)
    else:
        message = str(body) or response.reason_phrase

    return f"{response.status_code}: {message}", body


class MetronomeConnector(BaseBillingConnector):
    """Metronome connector over httpx."""

    provider_name = "metronome"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.Client] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)

    # Internal helpers

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Any = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        try:
            response = self._client.request(
                method,
                url,
                params=params or None,
                json=json,
                headers=self._headers(),
            )
        except httpx.HTTPError as e:
            raise UpstreamError(str(e) or None) from e

        if response.status_code in (401, 403):
            raise AuthError(response.status_code, _error_message(response)[1])
        if response.status_code >= 400:
            message, body = _error_message(response)
            raise UpstreamError(message, response.status_code, body)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError("Malformed response from billing API", response.status_code) from e

    def _get(self, path: str, **params) -> Any:
        return self._request("GET", path, params=params)

    def _post(self, path: str, body: Any, **params) -> Any:
        return self._request("POST", path, params=params, json=body)

    @staticmethod
    def _page(body: dict) -> Page:
        return Page(data=list(body.get("data") or []), next_page=body.get("next_page"))

    # Connection

    def connect(self) -> bool:
        """Validate the API key with a one-record customer listing."""
        if not self.api_key:
            logger.warning("Metronome API key not provided")
            return False

        try:
            self._get("/v1/customers", limit=1)
        except UpstreamError as e:
            logger.warning("Metronome connection failed: %s", e.message)
            return False

        return True

    def close(self) -> None:
        self._client.close()

    # Customers

    def list_customers(self, next_page: Optional[str] = None) -> Page:
        return self._page(self._get("/v1/customers", next_page=next_page))

    def retrieve_customer(self, customer_id: str) -> dict:
        return self._get(f"/v1/customers/{customer_id}").get("data", {})

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
        body = {
            "customer_id": customer_id,
            "covering_date": to_iso(covering_date),
            "include_archived": include_archived,
            "include_contract_balances": include_contract_balances,
            "include_ledgers": include_ledgers,
        }
        if next_page:
            body["next_page"] = next_page
        return self._page(self._post("/v1/contracts/customerBalances/list", body))

    # Invoices

    def list_invoice_breakdowns(
        self,
        customer_id: str,
        starting_on: datetime,
        ending_before: datetime,
        window_size: Optional[str] = None,
        next_page: Optional[str] = None,
    ) -> Page:
        body = self._get(
            f"/v1/customers/{customer_id}/invoices/breakdowns",
            starting_on=to_iso(starting_on),
            ending_before=to_iso(ending_before),
            window_size=window_size,
            next_page=next_page,
        )
        return self._page(body)

    def list_invoices(self, customer_id: str, status: Optional[str] = None) -> list[dict]:
        body = self._get(f"/v1/customers/{customer_id}/invoices", status=status)
        return list(body.get("data") or [])

    def retrieve_invoice(self, customer_id: str, invoice_id: str) -> dict:
        return self._get(f"/v1/customers/{customer_id}/invoices/{invoice_id}").get("data", {})

    # Alerts

    def list_customer_alerts(self, customer_id: str) -> list[dict]:
        body = self._post("/v1/customer-alerts/list", {"customer_id": customer_id})
        return list(body.get("data") or [])

    def create_alert(self, payload: dict) -> dict:
        return self._post("/v1/alerts/create", payload).get("data", {})

    def archive_alert(self, alert_id: str) -> dict:
        return self._post("/v1/alerts/archive", {"id": alert_id}).get("data", {})

    # Usage

    def list_billable_metrics(self, customer_id: str) -> list[dict]:
        body = self._get(f"/v1/customers/{customer_id}/billable-metrics")
        return list(body.get("data") or [])

    def retrieve_billable_metric(self, billable_metric_id: str) -> dict:
        return self._get(f"/v1/billable-metrics/{billable_metric_id}").get("data", {})

    def list_usage_with_groups(
        self,
        customer_id: str,
        billable_metric_id: str,
        starting_on: datetime,
        ending_before: datetime,
        window_size: str = "DAY",
    ) -> list[dict]:
        body = self._post(
            "/v1/usage/groups",
            {
                "customer_id": customer_id,
                "billable_metric_id": billable_metric_id,
                "window_size": window_size,
                "starting_on": to_iso(starting_on),
                "ending_before": to_iso(ending_before),
            },
        )
        return list(body.get("data") or [])

    def ingest_usage(self, events: list[dict]) -> None:
        self._post("/v1/ingest", events)

    def preview_events(self, customer_id: str, events: list[dict]) -> dict:
        return self._post(f"/v1/customers/{customer_id}/previewEvents", {"events": events})

    # Contracts

    def list_contracts(self, customer_id: str, next_page: Optional[str] = None) -> Page:
        body = {"customer_id": customer_id}
        if next_page:
            body["next_page"] = next_page
        return self._page(self._post("/v2/contracts/list", body))

    def retrieve_contract(self, customer_id: str, contract_id: str) -> dict:
        body = self._post(
            "/v2/contracts/get",
            {"customer_id": customer_id, "contract_id": contract_id},
        )
        return body.get("data", {})

    def edit_contract(self, payload: dict) -> dict:
        return self._post("/v2/contracts/edit", payload).get("data", {})

    def retrieve_subscription_quantity_history(
        self,
        customer_id: str,
        contract_id: str,
        subscription_id: str,
    ) -> dict:
        body = self._post(
            "/v1/contracts/getSubscriptionQuantityHistory",
            {
                "customer_id": customer_id,
                "contract_id": contract_id,
                "subscription_id": subscription_id,
            },
        )
        return body.get("data", {})

    # Dashboards and documents

    def get_embeddable_url(
        self,
        customer_id: str,
        dashboard: str,
        color_overrides: Optional[list[dict]] = None,
    ) -> str:
        payload: dict = {"customer_id": customer_id, "dashboard": dashboard}
        if color_overrides:
            payload["color_overrides"] = color_overrides
        body = self._post("/v1/dashboards/getEmbeddableUrl", payload)
        return (body.get("data") or {}).get("url", "")

    def download(self, url: str) -> bytes:
        try:
            response = self._client.get(url)
        except httpx.HTTPError as e:
            raise UpstreamError(str(e) or None) from e
        if response.status_code >= 400:
            raise UpstreamError(
                f"Failed to download PDF: {response.reason_phrase}",
                response.status_code,
            )
        return response.content
