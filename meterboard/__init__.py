"""
meterboard - Billing dashboard aggregation

Browse customers, balances, spend, usage costs and alerts from a
metering and billing API.
"""

__version__ = "0.1.0"

from meterboard.config import Settings
from meterboard.connect import DemoConnector, MetronomeConnector, create_connector
from meterboard.manage import AlertManager, ContractManager, EventManager
from meterboard.see import BillingAggregator, FetchResult

__all__ = [
    "AlertManager",
    "BillingAggregator",
    "ContractManager",
    "DemoConnector",
    "EventManager",
    "FetchResult",
    "MetronomeConnector",
    "Settings",
    "create_connector",
]
