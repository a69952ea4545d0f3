"""
Alert Lookup - Surface the alert for each recognized type.
"""

from typing import Iterable, Optional

from meterboard.connect.base import AlertRecord, AlertType
from meterboard.see.models import AlertLookup

CUSTOM_SPEND_THRESHOLD_ALERT_NAME = "CUSTOM_SPEND_THRESHOLD_ALERT"
CUSTOM_BALANCE_ALERT_NAME = "CUSTOM_BALANCE_ALERT"


def first_alert_of_type(records: Iterable[AlertRecord], alert_type: AlertType) -> Optional[AlertRecord]:
    for record in records:
        if record.alert.type == alert_type.value:
            return record
    return None


def find_alerts(records: Iterable[AlertRecord]) -> AlertLookup:
    """First alert of each type in input order; later duplicates are ignored."""
    records = list(records)
    return AlertLookup(
        balance_alert=first_alert_of_type(records, AlertType.BALANCE),
        spend_alert=first_alert_of_type(records, AlertType.SPEND),
        commit_percentage_alert=first_alert_of_type(records, AlertType.COMMIT_PERCENTAGE),
    )


def custom_spend_alerts(records: Iterable[AlertRecord]) -> list[AlertRecord]:
    """Spend alerts created by this dashboard."""
    return [
        r for r in records
        if r.alert.type == AlertType.SPEND.value
        and r.alert.name == CUSTOM_SPEND_THRESHOLD_ALERT_NAME
    ]
