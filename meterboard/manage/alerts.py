"""
Alert Manager - Create and archive customer alerts.
"""

import logging
from typing import Optional

from meterboard.config.currency import USD_CREDIT_TYPE_ID
from meterboard.connect.base import AlertType
from meterboard.errors import ValidationError, describe_error, require_positive
from meterboard.see.aggregator import BillingAggregator
from meterboard.see.alerts import CUSTOM_BALANCE_ALERT_NAME, CUSTOM_SPEND_THRESHOLD_ALERT_NAME
from meterboard.see.models import FetchResult

logger = logging.getLogger(__name__)


def build_alert_payload(
    customer_id: str,
    alert_type: AlertType,
    name: str,
    threshold: float,
    group_values: Optional[list[dict]] = None,
    credit_type_id: str = USD_CREDIT_TYPE_ID,
) -> dict:
    payload = {
        "customer_id": customer_id,
        "alert_type": alert_type.value,
        "name": name,
        "evaluate_on_create": True,
        "threshold": threshold,
        "credit_type_id": credit_type_id,
    }
    if group_values:
        payload["group_values"] = group_values
    return payload


class AlertManager:
    """Creates the dashboard's balance, spend and commit-percentage alerts."""

    def __init__(self, aggregator: BillingAggregator):
        self.aggregator = aggregator

    def _create(self, payload: dict) -> FetchResult:
        try:
            return FetchResult.success(self.aggregator.connector.create_alert(payload))
        except Exception as e:
            logger.warning("Error creating %s alert: %s", payload.get("alert_type"), describe_error(e))
            return FetchResult.error(describe_error(e))

    def create_spend_alert(
        self,
        customer_id: str,
        threshold: float,
        group_values: Optional[list[dict]] = None,
    ) -> FetchResult:
        """Alert when spend reaches ``threshold`` (major units, sent in cents)."""
        try:
            amount = require_positive(threshold, "Threshold")
        except ValidationError as e:
            return FetchResult.error(str(e))

        return self._create(build_alert_payload(
            customer_id,
            AlertType.SPEND,
            CUSTOM_SPEND_THRESHOLD_ALERT_NAME,
            amount * 100,
            group_values,
        ))

    def create_balance_alert(
        self,
        customer_id: str,
        threshold: float,
        group_values: Optional[list[dict]] = None,
    ) -> FetchResult:
        """Alert when the remaining credit and commit balance drops to ``threshold``."""
        try:
            amount = require_positive(threshold, "Threshold")
        except ValidationError as e:
            return FetchResult.error(str(e))

        return self._create(build_alert_payload(
            customer_id,
            AlertType.BALANCE,
            CUSTOM_BALANCE_ALERT_NAME,
            amount * 100,
            group_values,
        ))

    def create_commit_percentage_alert(
        self,
        customer_id: str,
        percentage: float,
        group_values: Optional[list[dict]] = None,
    ) -> FetchResult:
        try:
            value = require_positive(percentage, "Percentage")
            if value > 100:
                raise ValidationError("Percentage must be at most 100")
        except ValidationError as e:
            return FetchResult.error(str(e))

        return self._create(build_alert_payload(
            customer_id,
            AlertType.COMMIT_PERCENTAGE,
            f"Commit Percentage Alert - {value:g}%",
            value,
            group_values,
        ))

    def delete_alert(self, alert_id: str) -> FetchResult:
        try:
            self.aggregator.connector.archive_alert(alert_id)
            return FetchResult.success(None)
        except Exception as e:
            logger.warning("Error archiving alert %s: %s", alert_id, describe_error(e))
            return FetchResult.error(describe_error(e))
