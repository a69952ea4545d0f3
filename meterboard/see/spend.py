"""
Spend Classifier - Split draft-invoice spend into balance drawdown and overages.
"""

from typing import Iterable

from meterboard.connect.base import CPU_CONVERSION, DraftInvoiceLineItem
from meterboard.see.models import (
    BALANCE_DRAWDOWN,
    OVERAGES,
    CommitApplicationTotal,
    ProductSpend,
    SpendAggregate,
)
from meterboard.see.normalize import normalize_product_name


def commit_status(line: DraftInvoiceLineItem) -> str:
    return BALANCE_DRAWDOWN if line.has_commit_applied else OVERAGES


def counts_toward_commit_application(line: DraftInvoiceLineItem) -> bool:
    """Commit-applied lines always count; overage lines only for CPU conversion."""
    if line.has_commit_applied:
        return True
    return line.product_type == CPU_CONVERSION


def classify_spend(line_items: Iterable[DraftInvoiceLineItem]) -> SpendAggregate:
    """
    Accumulate draft-invoice charges.

    Only positive lines are counted. CPU conversion lines stay out of the
    per-product totals but feed the commit application view even when no
    commit was applied. A product's ``type`` is whatever its last line said.
    """
    aggregate = SpendAggregate()

    for line in line_items:
        if line.total <= 0:
            continue

        currency = line.credit_type_name
        aggregate.total_by_currency[currency] = (
            aggregate.total_by_currency.get(currency, 0.0) + line.total
        )

        if line.product_type != CPU_CONVERSION:
            name = normalize_product_name(line.name)
            product = aggregate.product_totals.get(name)
            if product is None:
                product = ProductSpend(
                    total=0.0,
                    currency_name=currency,
                    balance_drawdown=0.0,
                    overages=0.0,
                    type=line.product_type,
                )
                aggregate.product_totals[name] = product

            product.total += line.total
            product.type = line.product_type
            if line.has_commit_applied:
                product.balance_drawdown += line.total
            else:
                product.overages += line.total

        if counts_toward_commit_application(line):
            status = commit_status(line)
            bucket = aggregate.commit_application_totals.get(status)
            if bucket is None:
                aggregate.commit_application_totals[status] = CommitApplicationTotal(
                    total=line.total,
                    currency_name=currency,
                )
            else:
                bucket.total += line.total

    return aggregate
