"""
Tests for the draft-invoice spend classifier.
"""

from meterboard.connect.base import DraftInvoiceLineItem
from meterboard.see.models import BALANCE_DRAWDOWN, OVERAGES
from meterboard.see.spend import classify_spend, counts_toward_commit_application

from tests.conftest import draft_line


def lines(*raw):
    return [DraftInvoiceLineItem.from_api(r) for r in raw]


class TestClassifySpend:
    """Tests for classify_spend."""

    def test_drawdown_and_overages(self):
        result = classify_spend(lines(
            draft_line("API Calls - Tier 1", 100, commit_id="c1"),
            draft_line("API Calls - Tier 2", 30),
        ))

        product = result.product_totals["API Calls"]
        assert product.total == 130
        assert product.balance_drawdown == 100
        assert product.overages == 30
        assert result.total_by_currency == {"USD (cents)": 130}

    def test_cpu_conversion_overage_counts_toward_commit_application(self):
        result = classify_spend(lines(draft_line("CPU Conversion", 40, product_type="cpu_conversion")))

        assert result.product_totals == {}
        assert result.total_by_currency == {"USD (cents)": 40}
        assert result.commit_application_totals[OVERAGES].total == 40

    def test_regular_overage_stays_out_of_commit_application(self):
        result = classify_spend(lines(draft_line("Storage", 30)))

        assert result.product_totals["Storage"].overages == 30
        assert result.commit_application_totals == {}

    def test_commit_applied_lines_count_toward_commit_application(self):
        result = classify_spend(lines(
            draft_line("Storage", 100, commit_id="c1"),
            draft_line("CPU Conversion", 25, product_type="cpu_conversion", commit_id="c1"),
        ))

        assert result.commit_application_totals[BALANCE_DRAWDOWN].total == 125
        assert result.commit_application_totals[BALANCE_DRAWDOWN].currency_name == "USD (cents)"
        assert list(result.product_totals) == ["Storage"]

    def test_non_positive_lines_ignored(self):
        result = classify_spend(lines(
            draft_line("Commit", -1000, product_type="commit"),
            draft_line("Free", 0),
        ))

        assert result.total_by_currency == {}
        assert result.product_totals == {}
        assert result.commit_application_totals == {}

    def test_type_is_last_write(self):
        result = classify_spend(lines(
            draft_line("API - Tier 1", 10, product_type="usage"),
            draft_line("API - Tier 2", 5, product_type="subscription"),
        ))

        assert result.product_totals["API"].type == "subscription"

    def test_product_currency_from_first_line(self):
        result = classify_spend(lines(
            draft_line("API - Tier 1", 10, currency="USD (cents)"),
            draft_line("API - Tier 2", 5, currency="EUR"),
        ))

        assert result.product_totals["API"].currency_name == "USD (cents)"
        assert result.total_by_currency == {"USD (cents)": 10, "EUR": 5}

    def test_to_dict_keys(self):
        data = classify_spend(lines(draft_line("Storage", 100, commit_id="c1"))).to_dict()

        assert set(data) == {"total", "productTotals", "commitApplicationTotals"}
        assert data["productTotals"]["Storage"]["balanceDrawdown"] == 100
        assert data["productTotals"]["Storage"]["overages"] == 0
        assert data["commitApplicationTotals"][BALANCE_DRAWDOWN] == {
            "total": 100,
            "currency_name": "USD (cents)",
        }


class TestCountsTowardCommitApplication:
    """Tests for the commit application predicate."""

    def test_predicate(self):
        applied, overage, cpu = lines(
            draft_line("A", 1, commit_id="c1"),
            draft_line("B", 1),
            draft_line("C", 1, product_type="cpu_conversion"),
        )

        assert counts_toward_commit_application(applied)
        assert not counts_toward_commit_application(overage)
        assert counts_toward_commit_application(cpu)
