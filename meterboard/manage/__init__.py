"""
Manage Module - Alerts, contract edits and usage events.
"""

from meterboard.manage.alerts import AlertManager
from meterboard.manage.contracts import ContractManager
from meterboard.manage.events import EventManager

__all__ = [
    "AlertManager",
    "ContractManager",
    "EventManager",
]
