"""
Event Manager - Send and preview usage events.
"""

import logging
import time
from datetime import datetime
from typing import Optional, Union

from meterboard.connect.metronome import to_iso
from meterboard.errors import ValidationError, describe_error
from meterboard.see.aggregator import BillingAggregator
from meterboard.see.models import FetchResult
from meterboard.see.window import parse_timestamp, utc_now

logger = logging.getLogger(__name__)


def transaction_id() -> str:
    return f"txn_{int(time.time() * 1000)}"


def build_usage_event(
    customer_id: str,
    event_type: str,
    properties: Optional[dict] = None,
    timestamp: Optional[Union[str, datetime]] = None,
) -> dict:
    if not event_type:
        raise ValidationError("Event type is required")

    moment = parse_timestamp(timestamp) if timestamp else utc_now()
    return {
        "customer_id": customer_id,
        "event_type": event_type,
        "transaction_id": transaction_id(),
        "timestamp": to_iso(moment),
        "properties": properties or {},
    }


class EventManager:
    """Sends usage events for a customer."""

    def __init__(self, aggregator: BillingAggregator):
        self.aggregator = aggregator

    def send_usage(
        self,
        customer_id: str,
        event_type: str,
        properties: Optional[dict] = None,
        timestamp: Optional[Union[str, datetime]] = None,
    ) -> FetchResult:
        try:
            event = build_usage_event(customer_id, event_type, properties, timestamp)
            self.aggregator.connector.ingest_usage([event])
            return FetchResult.success({"message": "Usage data sent successfully", "usage": event})
        except Exception as e:
            logger.warning("Error sending usage data: %s", describe_error(e))
            return FetchResult.error(describe_error(e))

    def preview_events(self, customer_id: str, events: list[dict]) -> FetchResult:
        """Price events against the customer's contract without ingesting them."""
        try:
            return FetchResult.success(self.aggregator.connector.preview_events(customer_id, events))
        except Exception as e:
            logger.warning("Error previewing events: %s", describe_error(e))
            return FetchResult.error(describe_error(e))
