"""
Tests for the ledger roll-up.
"""

from meterboard.config.currency import USD_CREDIT_TYPE_ID
from meterboard.connect.base import Grant
from meterboard.see.ledger import grant_balance, rollup_ledger, rollup_ledger_by_currency

from tests.conftest import NOW


def make_grant(grant_id, schedule, ledger, currency="USD (cents)", currency_id=USD_CREDIT_TYPE_ID,
               name="Commit", contract_id=None):
    return Grant.from_api({
        "id": grant_id,
        "type": "PREPAID",
        "name": name,
        "contract": {"id": contract_id} if contract_id else None,
        "access_schedule": {
            "credit_type": {"id": currency_id, "name": currency},
            "schedule_items": [{"amount": amount} for amount in schedule],
        },
        "ledger": [{"amount": amount} for amount in ledger],
    })


class TestGrantBalance:
    """Tests for a single grant."""

    def test_granted_and_used(self):
        balance = grant_balance(make_grant("g1", [100, 50], [100, -60, -30]))

        assert balance.granted == 150
        assert balance.used == 90
        assert balance.remaining == 60
        assert balance.percentage_used == 60

    def test_over_consumed_goes_negative(self):
        balance = grant_balance(make_grant("g1", [50], [-60]))

        assert balance.remaining == -10
        assert balance.percentage_used == 100

    def test_zero_schedule(self):
        balance = grant_balance(make_grant("g1", [], [-5]))

        assert balance.granted == 0
        assert balance.used == 5
        assert balance.percentage_used == 0

    def test_product_name_falls_back_to_product(self):
        grant = Grant.from_api({"id": "g1", "type": "CREDIT", "name": None, "product": {"name": "Promo"}})

        assert grant.product_name == "Promo"


class TestRollupLedger:
    """Tests for rollup_ledger."""

    def test_totals(self):
        summary = rollup_ledger([
            make_grant("g1", [100, 50], [-60, -30]),
            make_grant("g2", [200], [-10]),
        ], as_of=NOW)

        assert summary.total_granted == 350
        assert summary.total_used == 100
        assert summary.total_remaining == 250
        assert [g.id for g in summary.processed_grants] == ["g1", "g2"]
        assert summary.as_of == NOW

    def test_empty_defaults_to_usd(self):
        summary = rollup_ledger([])

        assert summary.currency_name == "USD"
        assert summary.currency_id == USD_CREDIT_TYPE_ID
        assert summary.total_granted == 0
        assert summary.percentage_used == 0
        assert summary.processed_grants == []

    def test_currency_from_first_grant(self):
        summary = rollup_ledger([
            make_grant("g1", [100], [], currency="EUR", currency_id="eur"),
            make_grant("g2", [100], [], currency="USD (cents)"),
        ])

        assert summary.currency_name == "EUR"
        assert summary.currency_id == "eur"
        # Mixed currencies are summed together in the single summary
        assert summary.total_granted == 200

    def test_percentage_clamped(self):
        summary = rollup_ledger([make_grant("g1", [100], [-250])])

        assert summary.percentage_used == 100
        assert summary.to_dict()["percentage_used"] == 100

    def test_to_dict(self):
        data = rollup_ledger([make_grant("g1", [100], [-25])], as_of=NOW).to_dict()

        assert data["total_remaining"] == 75
        assert data["percentage_used"] == 25
        assert data["as_of"] == NOW.isoformat()
        assert data["processed_grants"][0]["remaining"] == 75


class TestRollupByCurrency:
    """Tests for the per-currency roll-up."""

    def test_groups_in_first_seen_order(self):
        summaries = rollup_ledger_by_currency([
            make_grant("g1", [100], [-10], currency="EUR", currency_id="eur"),
            make_grant("g2", [300], [-30]),
            make_grant("g3", [50], [-5], currency="EUR", currency_id="eur"),
        ])

        assert [s.currency_name for s in summaries] == ["EUR", "USD (cents)"]
        assert summaries[0].total_granted == 150
        assert summaries[0].total_used == 15
        assert summaries[1].total_granted == 300

    def test_empty(self):
        assert rollup_ledger_by_currency([]) == []
