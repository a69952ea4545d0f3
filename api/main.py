"""
meterboard REST API - FastAPI application for the billing dashboard.
"""

from datetime import datetime
from typing import Any, Iterator, Optional

from fastapi import Depends, FastAPI, Header, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field

from meterboard import __version__
from meterboard.config import Settings
from meterboard.connect import create_connector
from meterboard.connect.base import DashboardType, WindowSize
from meterboard.manage import AlertManager, ContractManager, EventManager
from meterboard.see import BillingAggregator


# FastAPI app
app = FastAPI(
    title="meterboard API",
    description="Billing dashboard - balances, spend, usage costs and alerts",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request models
class GroupValue(BaseModel):
    key: str
    value: str


class AlertRequest(BaseModel):
    """Alert creation request."""
    kind: str = Field(..., description="spend, balance or commit-percentage")
    threshold: float = Field(..., description="Amount in major units, or percentage")
    group_values: Optional[list[GroupValue]] = Field(None, description="Scope the alert to group values")


class RechargeRequest(BaseModel):
    """Balance recharge request."""
    amount: float = Field(..., description="Amount to add")
    currency_id: str = Field(..., description="Credit type ID")
    product_id: str = Field(..., description="Commit product ID")
    contract_id: Optional[str] = Field(None, description="Contract to recharge; defaults to the Stripe-billed one")
    threshold_amount: Optional[float] = Field(None, description="Enable auto recharge below this balance")


class AutoRechargeRequest(BaseModel):
    is_enabled: Optional[bool] = None
    threshold_amount: Optional[float] = None
    recharge_to_amount: Optional[float] = None


class SpendThresholdRequest(BaseModel):
    is_enabled: Optional[bool] = None
    spend_threshold_amount: Optional[float] = None


class SubscriptionQuantityRequest(BaseModel):
    quantity: int = Field(..., description="New subscription quantity")
    starting_at: Optional[str] = Field(None, description="UTC start; defaults to next midnight")


class UsageEventRequest(BaseModel):
    event_type: str
    properties: dict[str, Any] = Field(default_factory=dict)
    timestamp: Optional[str] = None


class PreviewRequest(BaseModel):
    events: list[dict[str, Any]]


class ValidateKeyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    api_key: Optional[str] = Field(None, alias="apiKey")


# Helper functions
def get_aggregator(
    demo: bool = Query(False, description="Use demo data"),
    x_api_key: Optional[str] = Header(None),
) -> Iterator[BillingAggregator]:
    """Aggregator for one request; its HTTP client is closed afterwards."""
    settings = Settings.from_env().with_api_key(x_api_key)
    aggregator = BillingAggregator(create_connector(settings, demo=demo), settings)
    try:
        yield aggregator
    finally:
        aggregator.close()


# Routes
@app.get("/")
async def root():
    """API root - info."""
    return {
        "name": "meterboard API",
        "version": __version__,
        "description": "Billing dashboard aggregation",
        "endpoints": {
            "customers": "/customers",
            "balance": "/customers/{customer_id}/balance",
            "costs": "/customers/{customer_id}/costs",
            "spend": "/customers/{customer_id}/spend",
            "alerts": "/customers/{customer_id}/alerts",
            "invoices": "/customers/{customer_id}/invoices",
            "usage": "/customers/{customer_id}/usage",
            "dashboard": "/customers/{customer_id}/dashboard",
            "validate_key": "/validate-key",
        },
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}


@app.post("/validate-key")
def validate_key(request: ValidateKeyRequest):
    """Check an API key by listing a single customer with it."""
    if not request.api_key:
        return JSONResponse({"error": "API key is required"}, status_code=400)

    settings = Settings.from_env().with_api_key(request.api_key)
    connector = create_connector(settings)
    try:
        valid = connector.connect()
    finally:
        connector.close()

    if not valid:
        return JSONResponse({"error": "Invalid API key"}, status_code=401)
    return {"success": True}


@app.get("/customers")
def list_customers(
    aggregator: BillingAggregator = Depends(get_aggregator),
):
    """List all customers."""
    return aggregator.get_customers().to_dict()


@app.get("/customers/{customer_id}")
def customer_details(
    customer_id: str,
    aggregator: BillingAggregator = Depends(get_aggregator),
):
    return aggregator.get_customer(customer_id).to_dict()


@app.get("/customers/{customer_id}/balance")
def customer_balance(
    customer_id: str,
    contract_id: Optional[str] = Query(None, description="Only grants on this contract"),
    aggregator: BillingAggregator = Depends(get_aggregator),
):
    """Credit and commit balance roll-up."""
    return aggregator.get_balance(customer_id, contract_id).to_dict()


@app.get("/customers/{customer_id}/costs")
def customer_costs(
    customer_id: str,
    window_size: Optional[WindowSize] = Query(None, description="Breakdown granularity"),
    aggregator: BillingAggregator = Depends(get_aggregator),
):
    """Usage cost breakdown over the trailing window."""
    return aggregator.get_cost_breakdown(
        customer_id,
        window_size=window_size.value if window_size else None,
    ).to_dict()


@app.get("/customers/{customer_id}/spend")
def customer_spend(
    customer_id: str,
    contract_id: Optional[str] = Query(None, description="Only invoices on this contract"),
    aggregator: BillingAggregator = Depends(get_aggregator),
):
    """Current-period spend from draft invoices."""
    return aggregator.get_current_spend(customer_id, contract_id).to_dict()


@app.get("/customers/{customer_id}/alerts")
def customer_alerts(
    customer_id: str,
    aggregator: BillingAggregator = Depends(get_aggregator),
):
    return aggregator.get_alerts(customer_id).to_dict()


@app.post("/customers/{customer_id}/alerts")
def create_alert(
    customer_id: str,
    request: AlertRequest,
    aggregator: BillingAggregator = Depends(get_aggregator),
):
    """Create a spend, balance or commit-percentage alert."""
    manager = AlertManager(aggregator)
    group_values = [g.model_dump() for g in request.group_values] if request.group_values else None

    creators = {
        "spend": manager.create_spend_alert,
        "balance": manager.create_balance_alert,
        "commit-percentage": manager.create_commit_percentage_alert,
    }
    if request.kind not in creators:
        return {"status": "error", "message": f"Unknown alert kind: {request.kind}"}

    return creators[request.kind](customer_id, request.threshold, group_values).to_dict()


@app.delete("/alerts/{alert_id}")
def delete_alert(
    alert_id: str,
    aggregator: BillingAggregator = Depends(get_aggregator),
):
    return AlertManager(aggregator).delete_alert(alert_id).to_dict()


@app.get("/customers/{customer_id}/invoices")
def customer_invoices(
    customer_id: str,
    aggregator: BillingAggregator = Depends(get_aggregator),
):
    return aggregator.get_invoices(customer_id).to_dict()


@app.get("/customers/{customer_id}/invoices/{invoice_id}/pdf")
def customer_invoice_pdf(
    customer_id: str,
    invoice_id: str,
    aggregator: BillingAggregator = Depends(get_aggregator),
):
    """Invoice PDF, or a tagged error when the invoice has none."""
    result = aggregator.download_invoice_pdf(customer_id, invoice_id)
    if not result.ok:
        return result.to_dict()
    return Response(content=result.result, media_type="application/pdf")


@app.get("/customers/{customer_id}/usage")
def customer_usage(
    customer_id: str,
    aggregator: BillingAggregator = Depends(get_aggregator),
):
    """Usage per billable metric; failed metrics carry an error."""
    return aggregator.get_usage(customer_id).to_dict()


@app.post("/customers/{customer_id}/usage")
def send_usage(
    customer_id: str,
    request: UsageEventRequest,
    aggregator: BillingAggregator = Depends(get_aggregator),
):
    manager = EventManager(aggregator)
    return manager.send_usage(
        customer_id,
        request.event_type,
        request.properties,
        request.timestamp,
    ).to_dict()


@app.post("/customers/{customer_id}/usage/preview")
def preview_usage(
    customer_id: str,
    request: PreviewRequest,
    aggregator: BillingAggregator = Depends(get_aggregator),
):
    manager = EventManager(aggregator)
    return manager.preview_events(customer_id, request.events).to_dict()


@app.get("/customers/{customer_id}/contracts")
def customer_contracts(
    customer_id: str,
    aggregator: BillingAggregator = Depends(get_aggregator),
):
    return aggregator.get_contracts(customer_id).to_dict()


@app.get("/customers/{customer_id}/contracts/{contract_id}")
def contract_details(
    customer_id: str,
    contract_id: str,
    aggregator: BillingAggregator = Depends(get_aggregator),
):
    return aggregator.get_contract(customer_id, contract_id).to_dict()


@app.post("/customers/{customer_id}/recharge")
def recharge(
    customer_id: str,
    request: RechargeRequest,
    aggregator: BillingAggregator = Depends(get_aggregator),
):
    """Add a prepaid commit, optionally with auto recharge."""
    manager = ContractManager(aggregator)
    contract = {"id": request.contract_id} if request.contract_id else None
    return manager.recharge_balance(
        customer_id,
        request.amount,
        request.currency_id,
        request.product_id,
        contract=contract,
        threshold_amount=request.threshold_amount,
    ).to_dict()


@app.patch("/customers/{customer_id}/contracts/{contract_id}/auto-recharge")
def auto_recharge(
    customer_id: str,
    contract_id: str,
    request: AutoRechargeRequest,
    aggregator: BillingAggregator = Depends(get_aggregator),
):
    manager = ContractManager(aggregator)
    return manager.update_auto_recharge(
        customer_id,
        contract_id,
        is_enabled=request.is_enabled,
        threshold_amount=request.threshold_amount,
        recharge_to_amount=request.recharge_to_amount,
    ).to_dict()


@app.patch("/customers/{customer_id}/contracts/{contract_id}/spend-threshold")
def spend_threshold(
    customer_id: str,
    contract_id: str,
    request: SpendThresholdRequest,
    aggregator: BillingAggregator = Depends(get_aggregator),
):
    manager = ContractManager(aggregator)
    return manager.update_spend_threshold(
        customer_id,
        contract_id,
        is_enabled=request.is_enabled,
        spend_threshold_amount=request.spend_threshold_amount,
    ).to_dict()


@app.post("/customers/{customer_id}/contracts/{contract_id}/subscriptions/{subscription_id}/quantity")
def subscription_quantity(
    customer_id: str,
    contract_id: str,
    subscription_id: str,
    request: SubscriptionQuantityRequest,
    aggregator: BillingAggregator = Depends(get_aggregator),
):
    manager = ContractManager(aggregator)
    return manager.update_subscription_quantity(
        customer_id,
        contract_id,
        subscription_id,
        request.quantity,
        starting_at=request.starting_at,
    ).to_dict()


@app.get("/customers/{customer_id}/contracts/{contract_id}/subscriptions/{subscription_id}/history")
def subscription_history(
    customer_id: str,
    contract_id: str,
    subscription_id: str,
    aggregator: BillingAggregator = Depends(get_aggregator),
):
    manager = ContractManager(aggregator)
    return manager.get_subscription_quantity_history(customer_id, contract_id, subscription_id).to_dict()


@app.get("/billable-metrics/{billable_metric_id}")
def billable_metric(
    billable_metric_id: str,
    aggregator: BillingAggregator = Depends(get_aggregator),
):
    return aggregator.get_billable_metric(billable_metric_id).to_dict()


@app.get("/customers/{customer_id}/dashboard")
def customer_dashboard(
    customer_id: str,
    contract_id: Optional[str] = Query(None),
    aggregator: BillingAggregator = Depends(get_aggregator),
):
    """Every dashboard panel, fetched in parallel; each carries its own status."""
    results = aggregator.get_dashboard(customer_id, contract_id)
    return {name: result.to_dict() for name, result in results.items()}


@app.get("/customers/{customer_id}/embed")
def embeddable_url(
    customer_id: str,
    dashboard: DashboardType = Query(DashboardType.INVOICES),
    theme: Optional[str] = Query(None, description="light or dark"),
    aggregator: BillingAggregator = Depends(get_aggregator),
):
    return aggregator.get_embeddable_url(customer_id, dashboard, theme).to_dict()


# Run with: uvicorn api.main:app --reload
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
