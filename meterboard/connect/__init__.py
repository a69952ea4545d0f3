"""
Connect Module - Billing API Integrations

Pull balances, invoice breakdowns, alerts and usage from the billing API.
"""

import logging

from meterboard.config.settings import Settings
from meterboard.connect.base import (
    AlertRecord,
    AlertType,
    BaseBillingConnector,
    DraftInvoiceLineItem,
    Grant,
    LineItem,
    Page,
    UsageBreakdownBucket,
)
from meterboard.connect.demo import DemoConnector
from meterboard.connect.metronome import MetronomeConnector
from meterboard.connect.pagination import iter_pages, paginate

logger = logging.getLogger(__name__)

__all__ = [
    "AlertRecord",
    "AlertType",
    "BaseBillingConnector",
    "DemoConnector",
    "DraftInvoiceLineItem",
    "Grant",
    "LineItem",
    "MetronomeConnector",
    "Page",
    "UsageBreakdownBucket",
    "create_connector",
    "iter_pages",
    "paginate",
]


def create_connector(settings: Settings, demo: bool = False) -> BaseBillingConnector:
    """Demo data only when asked for; otherwise the live API, key or not."""
    if demo:
        return DemoConnector()

    if not settings.api_key:
        logger.warning("Metronome API key not provided. Requests will be rejected upstream.")

    return MetronomeConnector(
        api_key=settings.api_key,
        base_url=settings.base_url,
        timeout=settings.timeout,
    )
