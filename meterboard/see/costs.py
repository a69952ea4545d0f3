"""
Cost Normalizer - Roll usage breakdowns into a grouped cost view.
"""

from typing import Iterable

from meterboard.connect.base import USAGE_PRODUCT_LIST_ITEM, LineItem, UsageBreakdownBucket
from meterboard.see.models import BucketSummary, CostAggregate
from meterboard.see.normalize import normalize_product_name


def is_billable_usage(line: LineItem) -> bool:
    """Usage product lines with a non-negative total; credits and other products are skipped."""
    return line.total >= 0 and line.product_type == USAGE_PRODUCT_LIST_ITEM


def _add_group_values(
    group_values: dict,
    dimensions: dict[str, float],
    product_groups: dict[str, list[str]],
    total: float,
) -> None:
    for key, value in group_values.items():
        if not value:
            continue

        dimensions[value] = dimensions.get(value, 0.0) + total

        seen = product_groups.setdefault(key, [])
        if value not in seen:
            seen.append(value)


def retrieve_cost(buckets: Iterable[UsageBreakdownBucket]) -> CostAggregate:
    """
    Roll time-bucketed usage breakdowns into a cost aggregate.

    For every bucket, billable usage lines are summed by normalized product
    name and by each pricing and presentation group value. A line carrying
    both kinds of group values contributes to each. ``products`` records every
    distinct group value seen per product and group key, in first-seen order.
    ``currency_name`` is taken from the last line processed.
    """
    products: dict[str, dict[str, list[str]]] = {}
    items: list[BucketSummary] = []
    currency_name = ""

    for bucket in buckets:
        if bucket.line_items is None:
            continue

        dimensions: dict[str, float] = {}
        product_names: dict[str, float] = {}

        for line in bucket.line_items:
            if not is_billable_usage(line):
                continue

            name = normalize_product_name(line.name)
            currency_name = line.credit_type_name

            product_groups = products.setdefault(name, {})
            product_names[name] = product_names.get(name, 0.0) + line.total

            for group_values in (line.pricing_group_values, line.presentation_group_values):
                if group_values:
                    _add_group_values(group_values, dimensions, product_groups, line.total)

        items.append(BucketSummary(
            total=bucket.total,
            period_start=bucket.period_start,
            type=bucket.type,
            dimensions=dimensions,
            products=product_names,
            line_items=list(bucket.line_items),
        ))

    return CostAggregate(products=products, items=items, currency_name=currency_name)
