#!/usr/bin/env python3
"""
Demo script for meterboard - Billing Dashboard Aggregation.

Run this to see the dashboard aggregates built from demo data.
"""

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from meterboard.config import format_currency
from meterboard.connect import DemoConnector
from meterboard.connect.demo import DEMO_CUSTOMER_ID
from meterboard.manage import AlertManager
from meterboard.see import BillingAggregator


console = Console()


def main():
    console.print(Panel.fit(
        "[bold blue]meterboard[/bold blue]\n"
        "Billing Dashboard Aggregation\n"
        "[dim]Demo Mode - Using simulated data[/dim]",
        border_style="blue",
    ))
    console.print()

    connector = DemoConnector(page_size=2)
    aggregator = BillingAggregator(connector)

    # Customers
    console.print("[bold]1. Listing customers...[/bold]")
    customers = aggregator.get_customers()
    table = Table(title="Customers")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("External ID", style="dim")
    for customer in customers.result:
        table.add_row(customer.id, customer.name, customer.external_id or "-")
    console.print(table)
    console.print()

    # Balance
    console.print("[bold]2. Rolling up the credit and commit ledger...[/bold]")
    balance = aggregator.get_balance(DEMO_CUSTOMER_ID).result.summary
    grants = Table(title="Grants")
    grants.add_column("Grant", style="cyan")
    grants.add_column("Type")
    grants.add_column("Granted", justify="right")
    grants.add_column("Used", justify="right")
    grants.add_column("Remaining", justify="right")
    for grant in balance.processed_grants:
        grants.add_row(
            grant.product_name,
            grant.type,
            format_currency(grant.granted, balance.currency_name),
            format_currency(grant.used, balance.currency_name),
            format_currency(grant.remaining, balance.currency_name),
        )
    console.print(grants)
    console.print(Panel(
        f"[bold]Granted:[/] {format_currency(balance.total_granted, balance.currency_name)}\n"
        f"[bold]Used:[/] [yellow]{format_currency(balance.total_used, balance.currency_name)}[/]\n"
        f"[bold]Remaining:[/] [green]{format_currency(balance.total_remaining, balance.currency_name)}[/]\n"
        f"[bold]Consumed:[/] {balance.percentage_used:.1f}%",
        title="Balance",
    ))
    console.print()

    # Costs
    console.print("[bold]3. Breaking down usage costs (last 30 days)...[/bold]")
    costs = aggregator.get_cost_breakdown(DEMO_CUSTOMER_ID).result
    product_table = Table(title="Cost by Product")
    product_table.add_column("Product", style="cyan")
    product_table.add_column("Total", justify="right")
    product_table.add_column("Group keys", style="dim")
    for name, groups in costs.products.items():
        product_table.add_row(
            name,
            format_currency(costs.product_total(name), costs.currency_name),
            ", ".join(groups) or "-",
        )
    console.print(product_table)
    console.print(f"   [dim]{len(costs.items)} daily buckets, "
                  f"{format_currency(costs.total, costs.currency_name)} in total[/dim]\n")

    # Spend
    console.print("[bold]4. Classifying current-period spend...[/bold]")
    spend = aggregator.get_current_spend(DEMO_CUSTOMER_ID).result
    spend_table = Table(title="Draft Invoice Spend")
    spend_table.add_column("Product", style="cyan")
    spend_table.add_column("Total", justify="right")
    spend_table.add_column("Balance Drawdown", justify="right", style="green")
    spend_table.add_column("Overages", justify="right", style="red")
    for name, product in spend.product_totals.items():
        spend_table.add_row(
            name,
            format_currency(product.total, product.currency_name),
            format_currency(product.balance_drawdown, product.currency_name),
            format_currency(product.overages, product.currency_name),
        )
    console.print(spend_table)
    console.print()

    # Alerts
    console.print("[bold]5. Looking up alerts...[/bold]")
    alerts = aggregator.get_alerts(DEMO_CUSTOMER_ID).result
    for label, record in (
        ("Balance", alerts.balance_alert),
        ("Spend", alerts.spend_alert),
        ("Commit percentage", alerts.commit_percentage_alert),
    ):
        if record:
            console.print(f"   {label}: [cyan]{record.alert.name}[/] at {record.alert.threshold / 100:,.2f}")
        else:
            console.print(f"   {label}: [dim]not configured[/dim]")

    created = AlertManager(aggregator).create_spend_alert(DEMO_CUSTOMER_ID, 2500)
    console.print(f"   Created spend alert [green]{created.result['id']}[/]\n")

    # Usage
    console.print("[bold]6. Summarizing metered usage...[/bold]")
    usage = aggregator.get_usage(DEMO_CUSTOMER_ID).result
    for metric in usage.usage_data:
        console.print(
            f"   {metric.billable_metric_name}: {metric.aggregated_value:,.0f} "
            f"[dim]({metric.total_entries} days)[/dim]"
        )
    console.print()

    console.print(Panel.fit(
        "[bold green]Demo complete![/bold green]\n\n"
        "Next steps:\n"
        "  1. Set METRONOME_API_TOKEN in .env\n"
        "  2. Run: meterboard dashboard <customer-id>\n"
        "  3. Start API: uvicorn api.main:app --reload",
        border_style="green",
    ))


if __name__ == "__main__":
    main()
