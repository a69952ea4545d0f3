"""
meterboard CLI - Command line interface for the billing dashboard.
"""

import json
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from meterboard.config import Settings, compact_number, configure_logging, format_currency
from meterboard.connect import create_connector
from meterboard.connect.base import DashboardType, WindowSize
from meterboard.manage import AlertManager, ContractManager, EventManager
from meterboard.see import BillingAggregator, FetchResult
from meterboard.see.window import format_date

app = typer.Typer(
    name="meterboard",
    help="Billing dashboard - balances, spend, usage costs and alerts",
    add_completion=False,
)
console = Console()

DEMO_CUSTOMER_ID = "cust-demo-1"


def create_aggregator(
    api_key: Optional[str] = None,
    demo: bool = False,
) -> BillingAggregator:
    """Create an aggregator from the environment, with an optional key override."""
    settings = Settings.from_env().with_api_key(api_key)
    configure_logging(settings.log_level)
    connector = create_connector(settings, demo=demo)
    return BillingAggregator(connector, settings)


def _emit_json(result: FetchResult) -> None:
    console.print(json.dumps(result.to_dict(), indent=2, default=str), soft_wrap=True, markup=False)


def _ensure_ok(result: FetchResult) -> None:
    if not result.ok:
        console.print(f"[red]Error:[/] {result.message}")
        raise typer.Exit(code=1)


def _customer(customer_id: Optional[str], demo: bool) -> str:
    if customer_id:
        return customer_id
    if demo:
        return DEMO_CUSTOMER_ID
    console.print("[red]Error:[/] --customer is required")
    raise typer.Exit(code=2)


@app.command()
def customers(
    api_key: Optional[str] = typer.Option(None, "--api-key", "-k", help="Override METRONOME_API_TOKEN"),
    demo: bool = typer.Option(False, "--demo", help="Use demo data"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
):
    """List customers."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task("Fetching customers...", total=None)
        aggregator = create_aggregator(api_key, demo)
        result = aggregator.get_customers()

    if json_output:
        _emit_json(result)
        return
    _ensure_ok(result)

    table = Table(title="Customers")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="magenta")
    table.add_column("External ID")

    for customer in result.result:
        table.add_row(customer.id, customer.name, customer.external_id or "-")

    console.print(table)


@app.command()
def balance(
    customer: Optional[str] = typer.Option(None, "--customer", "-c", help="Customer ID"),
    contract: Optional[str] = typer.Option(None, "--contract", help="Only grants on this contract"),
    api_key: Optional[str] = typer.Option(None, "--api-key", "-k"),
    demo: bool = typer.Option(False, "--demo"),
    json_output: bool = typer.Option(False, "--json", "-j"),
):
    """Show credit and commit balances."""
    aggregator = create_aggregator(api_key, demo)
    result = aggregator.get_balance(_customer(customer, demo), contract_id=contract)

    if json_output:
        _emit_json(result)
        return
    _ensure_ok(result)

    symbols = aggregator.settings.currency_symbols
    for summary in result.result.balances_by_currency or [result.result.summary]:
        currency = summary.currency_name
        console.print(Panel(
            f"[bold]Granted:[/] {format_currency(summary.total_granted, currency, symbols)}\n"
            f"[bold]Used:[/] [yellow]{format_currency(summary.total_used, currency, symbols)}[/]\n"
            f"[bold]Remaining:[/] [green]{format_currency(summary.total_remaining, currency, symbols)}[/]\n"
            f"[bold]Used %:[/] {summary.percentage_used:.1f}%",
            title=f"Balance ({currency})",
        ))

        table = Table(title="Grants")
        table.add_column("Grant")
        table.add_column("Type")
        table.add_column("Granted", justify="right")
        table.add_column("Used", justify="right")
        table.add_column("Remaining", justify="right")

        for grant in summary.processed_grants:
            remaining_color = "red" if grant.remaining < 0 else "green"
            table.add_row(
                grant.product_name,
                grant.type,
                format_currency(grant.granted, currency, symbols),
                format_currency(grant.used, currency, symbols),
                f"[{remaining_color}]{format_currency(grant.remaining, currency, symbols)}[/]",
            )

        console.print(table)


@app.command()
def costs(
    customer: Optional[str] = typer.Option(None, "--customer", "-c", help="Customer ID"),
    window_size: Optional[WindowSize] = typer.Option(None, "--window", "-w", help="Breakdown granularity"),
    api_key: Optional[str] = typer.Option(None, "--api-key", "-k"),
    demo: bool = typer.Option(False, "--demo"),
    json_output: bool = typer.Option(False, "--json", "-j"),
):
    """Show usage costs over the trailing window, grouped by product."""
    aggregator = create_aggregator(api_key, demo)
    result = aggregator.get_cost_breakdown(
        _customer(customer, demo),
        window_size=window_size.value if window_size else None,
    )

    if json_output:
        _emit_json(result)
        return
    _ensure_ok(result)

    aggregate = result.result
    currency = aggregate.currency_name
    symbols = aggregator.settings.currency_symbols

    table = Table(title=f"Usage Costs ({aggregator.settings.window_days} days)")
    table.add_column("Product", style="cyan")
    table.add_column("Cost", justify="right")
    table.add_column("Groups")

    for product, groups in aggregate.products.items():
        group_text = ", ".join(f"{key}: {'/'.join(values)}" for key, values in groups.items())
        table.add_row(
            product,
            format_currency(aggregate.product_total(product), currency, symbols),
            group_text or "-",
        )

    console.print(table)
    console.print(Panel(
        f"[bold]Buckets:[/] {len(aggregate.items)}\n"
        f"[bold]Total:[/] [yellow]{format_currency(aggregate.total, currency, symbols)}[/]",
        title="Summary",
    ))


@app.command()
def spend(
    customer: Optional[str] = typer.Option(None, "--customer", "-c", help="Customer ID"),
    contract: Optional[str] = typer.Option(None, "--contract", help="Only invoices on this contract"),
    api_key: Optional[str] = typer.Option(None, "--api-key", "-k"),
    demo: bool = typer.Option(False, "--demo"),
    json_output: bool = typer.Option(False, "--json", "-j"),
):
    """Show current-period spend from draft invoices."""
    aggregator = create_aggregator(api_key, demo)
    result = aggregator.get_current_spend(_customer(customer, demo), contract_id=contract)

    if json_output:
        _emit_json(result)
        return
    _ensure_ok(result)

    aggregate = result.result
    symbols = aggregator.settings.currency_symbols

    totals = "\n".join(
        f"[bold]{currency}:[/] [yellow]{format_currency(amount, currency, symbols)}[/]"
        for currency, amount in aggregate.total_by_currency.items()
    )
    console.print(Panel(totals or "No charges yet", title="Current Spend"))

    if aggregate.product_totals:
        table = Table(title="Spend by Product")
        table.add_column("Product", style="cyan")
        table.add_column("Total", justify="right")
        table.add_column("Balance Drawdown", justify="right")
        table.add_column("Overages", justify="right")

        for name, product in aggregate.product_totals.items():
            currency = product.currency_name
            table.add_row(
                name,
                format_currency(product.total, currency, symbols),
                f"[green]{format_currency(product.balance_drawdown, currency, symbols)}[/]",
                f"[red]{format_currency(product.overages, currency, symbols)}[/]",
            )

        console.print(table)

    if aggregate.commit_application_totals:
        table = Table(title="Commit Application")
        table.add_column("Status")
        table.add_column("Total", justify="right")

        for status_name, bucket in aggregate.commit_application_totals.items():
            table.add_row(status_name, format_currency(bucket.total, bucket.currency_name, symbols))

        console.print(table)


@app.command()
def alerts(
    customer: Optional[str] = typer.Option(None, "--customer", "-c", help="Customer ID"),
    api_key: Optional[str] = typer.Option(None, "--api-key", "-k"),
    demo: bool = typer.Option(False, "--demo"),
    json_output: bool = typer.Option(False, "--json", "-j"),
):
    """Show the customer's balance, spend and commit-percentage alerts."""
    aggregator = create_aggregator(api_key, demo)
    result = aggregator.get_alerts(_customer(customer, demo))

    if json_output:
        _emit_json(result)
        return
    _ensure_ok(result)

    lookup = result.result
    table = Table(title="Alerts")
    table.add_column("Kind")
    table.add_column("Alert ID", style="cyan")
    table.add_column("Threshold", justify="right")
    table.add_column("Status")

    for kind, record in (
        ("Balance", lookup.balance_alert),
        ("Spend", lookup.spend_alert),
        ("Commit %", lookup.commit_percentage_alert),
    ):
        if record is None:
            table.add_row(kind, "[dim]none[/]", "-", "-")
            continue
        threshold = record.alert.threshold
        table.add_row(
            kind,
            record.alert.id,
            f"{threshold:g}" if threshold is not None else "-",
            record.customer_status or record.alert.status or "-",
        )

    console.print(table)


@app.command()
def invoices(
    customer: Optional[str] = typer.Option(None, "--customer", "-c", help="Customer ID"),
    api_key: Optional[str] = typer.Option(None, "--api-key", "-k"),
    demo: bool = typer.Option(False, "--demo"),
    json_output: bool = typer.Option(False, "--json", "-j"),
):
    """List invoices."""
    aggregator = create_aggregator(api_key, demo)
    result = aggregator.get_invoices(_customer(customer, demo))

    if json_output:
        _emit_json(result)
        return
    _ensure_ok(result)

    symbols = aggregator.settings.currency_symbols
    table = Table(title="Invoices")
    table.add_column("Invoice", style="cyan")
    table.add_column("Period")
    table.add_column("Status")
    table.add_column("Total", justify="right")

    for invoice in result.result:
        period = f"{format_date(invoice.start_timestamp) or '?'} - {format_date(invoice.end_timestamp) or 'now'}"
        table.add_row(
            invoice.id,
            period,
            invoice.status,
            format_currency(invoice.total, invoice.currency_name, symbols),
        )

    console.print(table)


@app.command()
def usage(
    customer: Optional[str] = typer.Option(None, "--customer", "-c", help="Customer ID"),
    api_key: Optional[str] = typer.Option(None, "--api-key", "-k"),
    demo: bool = typer.Option(False, "--demo"),
    json_output: bool = typer.Option(False, "--json", "-j"),
):
    """Show raw usage per billable metric."""
    aggregator = create_aggregator(api_key, demo)
    result = aggregator.get_usage(_customer(customer, demo))

    if json_output:
        _emit_json(result)
        return
    _ensure_ok(result)

    table = Table(title="Usage by Billable Metric")
    table.add_column("Metric", style="cyan")
    table.add_column("Total", justify="right")
    table.add_column("Entries", justify="right")
    table.add_column("Error")

    for metric in result.result.usage_data:
        table.add_row(
            metric.billable_metric_name,
            compact_number(metric.aggregated_value),
            str(metric.total_entries),
            f"[red]{metric.error}[/]" if metric.error else "",
        )

    console.print(table)


@app.command()
def dashboard(
    customer: Optional[str] = typer.Option(None, "--customer", "-c", help="Customer ID"),
    kind: DashboardType = typer.Option(DashboardType.INVOICES, "--type", "-t", help="Dashboard to embed"),
    theme: Optional[str] = typer.Option(None, "--theme", help="light or dark"),
    api_key: Optional[str] = typer.Option(None, "--api-key", "-k"),
    demo: bool = typer.Option(False, "--demo"),
):
    """Print an embeddable dashboard URL."""
    aggregator = create_aggregator(api_key, demo)
    result = aggregator.get_embeddable_url(_customer(customer, demo), kind, theme=theme)
    _ensure_ok(result)
    console.print(result.result)


@app.command("alert-create")
def alert_create(
    kind: str = typer.Argument(..., help="spend, balance or commit-percentage"),
    threshold: float = typer.Argument(..., help="Amount in major units, or percentage"),
    customer: Optional[str] = typer.Option(None, "--customer", "-c", help="Customer ID"),
    api_key: Optional[str] = typer.Option(None, "--api-key", "-k"),
    demo: bool = typer.Option(False, "--demo"),
):
    """Create a spend, balance or commit-percentage alert."""
    aggregator = create_aggregator(api_key, demo)
    manager = AlertManager(aggregator)
    customer_id = _customer(customer, demo)

    creators = {
        "spend": manager.create_spend_alert,
        "balance": manager.create_balance_alert,
        "commit-percentage": manager.create_commit_percentage_alert,
    }
    if kind not in creators:
        console.print(f"[red]Error:[/] unknown alert kind {kind!r}")
        raise typer.Exit(code=2)

    result = creators[kind](customer_id, threshold)
    _ensure_ok(result)
    console.print(f"[green]Created {kind} alert[/] {result.result.get('id', '')}")


@app.command("alert-delete")
def alert_delete(
    alert_id: str = typer.Argument(..., help="Alert ID to archive"),
    api_key: Optional[str] = typer.Option(None, "--api-key", "-k"),
    demo: bool = typer.Option(False, "--demo"),
):
    """Archive an alert."""
    aggregator = create_aggregator(api_key, demo)
    result = AlertManager(aggregator).delete_alert(alert_id)
    _ensure_ok(result)
    console.print(f"[green]Archived alert[/] {alert_id}")


@app.command()
def recharge(
    amount: float = typer.Argument(..., help="Amount to add to the balance"),
    currency_id: str = typer.Option(..., "--currency-id", help="Credit type ID"),
    product_id: str = typer.Option(..., "--product-id", help="Commit product ID"),
    threshold: Optional[float] = typer.Option(None, "--threshold", help="Enable auto recharge below this balance"),
    customer: Optional[str] = typer.Option(None, "--customer", "-c", help="Customer ID"),
    api_key: Optional[str] = typer.Option(None, "--api-key", "-k"),
    demo: bool = typer.Option(False, "--demo"),
):
    """Add a prepaid commit to the customer's Stripe-billed contract."""
    aggregator = create_aggregator(api_key, demo)
    result = ContractManager(aggregator).recharge_balance(
        _customer(customer, demo),
        amount,
        currency_id,
        product_id,
        threshold_amount=threshold,
    )
    _ensure_ok(result)
    console.print(
        f"[green]Recharged[/] {result.result['recharge_amount']:g} "
        f"on contract {result.result['contract_id']}"
    )


@app.command("send-usage")
def send_usage(
    event_type: str = typer.Argument(..., help="Usage event type"),
    properties: str = typer.Option("{}", "--properties", "-p", help="Event properties as JSON"),
    timestamp: Optional[str] = typer.Option(None, "--timestamp", help="ISO timestamp, defaults to now"),
    customer: Optional[str] = typer.Option(None, "--customer", "-c", help="Customer ID"),
    api_key: Optional[str] = typer.Option(None, "--api-key", "-k"),
    demo: bool = typer.Option(False, "--demo"),
):
    """Send one usage event."""
    try:
        props = json.loads(properties)
    except json.JSONDecodeError as e:
        console.print(f"[red]Error:[/] invalid --properties JSON: {e}")
        raise typer.Exit(code=2)

    aggregator = create_aggregator(api_key, demo)
    result = EventManager(aggregator).send_usage(_customer(customer, demo), event_type, props, timestamp)
    _ensure_ok(result)
    console.print(f"[green]{result.result['message']}[/] ({result.result['usage']['transaction_id']})")


@app.command()
def validate(
    api_key: Optional[str] = typer.Option(None, "--api-key", "-k", help="Override METRONOME_API_TOKEN"),
):
    """Check that the API key is accepted by the billing API."""
    aggregator = create_aggregator(api_key)
    if not aggregator.settings.api_key:
        console.print("[red]Error:[/] API key is required")
        raise typer.Exit(code=2)

    try:
        valid = aggregator.connector.connect()
    finally:
        aggregator.close()

    if not valid:
        console.print("[red]Error:[/] Invalid API key")
        raise typer.Exit(code=1)
    console.print("[green]API key is valid[/]")


@app.command()
def version():
    """Show version information."""
    from meterboard import __version__
    console.print(f"meterboard v{__version__}")
    console.print("Billing dashboard aggregation")


def main():
    """Entry point."""
    app()


if __name__ == "__main__":
    main()
