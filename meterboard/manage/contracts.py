"""
Contract Manager - Recharges, auto-recharge, spend thresholds and subscription quantities.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional, Union

from meterboard.connect.base import Contract
from meterboard.connect.metronome import to_iso
from meterboard.connect.pagination import paginate
from meterboard.errors import ValidationError, describe_error, require_positive
from meterboard.see.aggregator import BillingAggregator
from meterboard.see.models import FetchResult
from meterboard.see.window import next_quantity_start, parse_timestamp, utc_now

logger = logging.getLogger(__name__)

RECHARGE_PRIORITY = 10
STRIPE_INVOICE_GATE = {
    "payment_gate_type": "STRIPE",
    "stripe_config": {"payment_type": "INVOICE"},
}


def build_recharge_payload(
    customer_id: str,
    contract_id: str,
    amount: float,
    currency_id: str,
    product_id: str,
    threshold_amount: Optional[float] = None,
    now: Optional[datetime] = None,
) -> dict:
    """
    Contract edit adding a one-year prepaid commit, paid by Stripe invoice.

    With ``threshold_amount`` the commit is labelled an auto recharge and a
    prepaid balance threshold configuration is added that tops the balance
    back up to ``amount``.
    """
    start = (now or utc_now()).replace(minute=0, second=0, microsecond=0)
    end = start + timedelta(days=365)

    access_schedule = {
        "credit_type_id": currency_id,
        "schedule_items": [
            {
                "amount": amount,
                "ending_before": to_iso(end),
                "starting_at": to_iso(start),
            }
        ],
    }

    payload = {
        "customer_id": customer_id,
        "contract_id": contract_id,
        "add_commits": [
            {
                "product_id": product_id,
                "type": "PREPAID",
                "name": "Auto Recharge" if threshold_amount else "Recharge",
                "access_schedule": access_schedule,
                "invoice_schedule": {
                    "schedule_items": [{"amount": amount, "timestamp": to_iso(start)}],
                },
                "priority": RECHARGE_PRIORITY,
                "payment_gate_config": STRIPE_INVOICE_GATE,
            }
        ],
    }

    if threshold_amount:
        payload["add_prepaid_balance_threshold_configuration"] = {
            "is_enabled": True,
            "threshold_amount": threshold_amount,
            "recharge_to_amount": amount,
            "commit": {
                "product_id": product_id,
                "type": "PREPAID",
                "name": "Auto Recharge",
                "access_schedule": access_schedule,
                "priority": RECHARGE_PRIORITY,
            },
            "payment_gate_config": STRIPE_INVOICE_GATE,
        }

    return payload


class ContractManager:
    """Edits customer contracts on behalf of the dashboard."""

    def __init__(self, aggregator: BillingAggregator):
        self.aggregator = aggregator

    @property
    def connector(self):
        return self.aggregator.connector

    def _find_stripe_contract(self, customer_id: str) -> Optional[Contract]:
        records = paginate(lambda cursor: self.connector.list_contracts(customer_id, next_page=cursor))
        for record in records:
            contract = Contract.from_api(record)
            if contract.bills_through_stripe:
                return contract
        return None

    def recharge_balance(
        self,
        customer_id: str,
        amount: float,
        currency_id: str,
        product_id: str,
        contract: Optional[Union[Contract, dict]] = None,
        threshold_amount: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> FetchResult:
        """Add a prepaid commit to the customer's Stripe-billed contract."""
        try:
            amount = require_positive(amount, "Recharge amount")
            if threshold_amount is not None:
                threshold_amount = require_positive(threshold_amount, "Threshold amount")

            if isinstance(contract, dict):
                contract = Contract.from_api(contract)
            if contract is None:
                contract = self._find_stripe_contract(customer_id)
            if contract is None:
                return FetchResult.error(
                    "No contract found with Stripe billing configuration for this customer"
                )

            payload = build_recharge_payload(
                customer_id,
                contract.id,
                amount,
                currency_id,
                product_id,
                threshold_amount=threshold_amount,
                now=now,
            )
            commit_data = self.connector.edit_contract(payload)
            logger.info("Recharged %s on contract %s", amount, contract.id)
            return FetchResult.success({
                "contract_id": contract.id,
                "recharge_amount": amount,
                "commit_data": commit_data,
            })
        except Exception as e:
            logger.warning("Error recharging balance: %s", describe_error(e))
            return FetchResult.error(describe_error(e))

    def update_auto_recharge(
        self,
        customer_id: str,
        contract_id: str,
        is_enabled: Optional[bool] = None,
        threshold_amount: Optional[float] = None,
        recharge_to_amount: Optional[float] = None,
    ) -> FetchResult:
        """Update only the provided fields of the prepaid balance threshold configuration."""
        try:
            update: dict = {}
            if is_enabled is not None:
                update["is_enabled"] = is_enabled
            if threshold_amount is not None:
                update["threshold_amount"] = require_positive(threshold_amount, "Threshold amount")
            if recharge_to_amount is not None:
                update["recharge_to_amount"] = require_positive(recharge_to_amount, "Recharge amount")

            data = self.connector.edit_contract({
                "customer_id": customer_id,
                "contract_id": contract_id,
                "update_prepaid_balance_threshold_configuration": update,
            })
            return FetchResult.success({"contract_id": contract_id, "update_data": data})
        except Exception as e:
            logger.warning("Error updating auto recharge: %s", describe_error(e))
            return FetchResult.error(describe_error(e))

    def update_spend_threshold(
        self,
        customer_id: str,
        contract_id: str,
        is_enabled: Optional[bool] = None,
        spend_threshold_amount: Optional[float] = None,
    ) -> FetchResult:
        try:
            update: dict = {}
            if is_enabled is not None:
                update["is_enabled"] = is_enabled
            if spend_threshold_amount is not None:
                update["spend_threshold_amount"] = require_positive(
                    spend_threshold_amount, "Spend threshold"
                )

            data = self.connector.edit_contract({
                "customer_id": customer_id,
                "contract_id": contract_id,
                "update_spend_threshold_configuration": update,
            })
            return FetchResult.success({"contract_id": contract_id, "update_data": data})
        except Exception as e:
            logger.warning("Error updating spend threshold: %s", describe_error(e))
            return FetchResult.error(describe_error(e))

    def update_subscription_quantity(
        self,
        customer_id: str,
        contract_id: str,
        subscription_id: str,
        quantity: int,
        starting_at: Optional[Union[str, datetime]] = None,
        now: Optional[datetime] = None,
    ) -> FetchResult:
        """
        Schedule a subscription quantity change.

        Without ``starting_at`` the change starts at the next UTC midnight.
        """
        try:
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
                raise ValidationError("Quantity must be a non-negative integer")

            if starting_at is not None:
                start = parse_timestamp(starting_at)
            else:
                start = next_quantity_start(now)

            data = self.connector.edit_contract({
                "customer_id": customer_id,
                "contract_id": contract_id,
                "update_subscriptions": [
                    {
                        "subscription_id": subscription_id,
                        "quantity_updates": [
                            {"starting_at": to_iso(start), "quantity": quantity},
                        ],
                    }
                ],
            })
            return FetchResult.success(data)
        except Exception as e:
            logger.warning("Error updating subscription quantity: %s", describe_error(e))
            return FetchResult.error(describe_error(e))

    def get_subscription_quantity_history(
        self,
        customer_id: str,
        contract_id: str,
        subscription_id: str,
    ) -> FetchResult:
        try:
            history = self.connector.retrieve_subscription_quantity_history(
                customer_id, contract_id, subscription_id
            )
            logger.debug("Subscription quantity history: %s", history)
            return FetchResult.success(history)
        except Exception as e:
            logger.warning("Error fetching subscription quantity history: %s", describe_error(e))
            return FetchResult.error(describe_error(e))
