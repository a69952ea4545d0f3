"""
Shared fixtures for meterboard tests.
"""

import logging
from datetime import datetime, timezone

import httpx
import pytest
import respx

from meterboard.connect.demo import DemoConnector
from meterboard.see import BillingAggregator

NOW = datetime(2026, 10, 19, 15, 30, tzinfo=timezone.utc)
LIVE_BASE_URL = "https://billing.test"


@pytest.fixture(autouse=True)
def reset_meterboard_logger():
    """CLI runs install handlers bound to captured streams; drop them after each test."""
    yield
    logger = logging.getLogger("meterboard")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def live_env(monkeypatch):
    """No API key, no .env file, and the billing API mocked at a test host."""
    monkeypatch.delenv("METRONOME_API_TOKEN", raising=False)
    monkeypatch.setenv("METRONOME_BASE_URL", LIVE_BASE_URL)
    monkeypatch.setenv("METERBOARD_LOG_LEVEL", "CRITICAL")
    monkeypatch.setattr("meterboard.config.settings.load_dotenv", lambda *args, **kwargs: False)
    with respx.mock(base_url=LIVE_BASE_URL, assert_all_called=False) as mock:
        yield mock


def key_checker(valid_key):
    """respx side effect accepting only one bearer token."""
    def check(request):
        if request.headers.get("Authorization") == f"Bearer {valid_key}":
            return httpx.Response(200, json={"data": [], "next_page": None})
        return httpx.Response(401, json={"message": "Unauthorized"})
    return check


@pytest.fixture
def demo_connector():
    return DemoConnector()


@pytest.fixture
def aggregator(demo_connector):
    return BillingAggregator(demo_connector)


def usage_line(name, total, pricing=None, presentation=None,
               product_type="UsageProductListItem", currency="USD (cents)"):
    """Raw usage breakdown line item."""
    return {
        "name": name,
        "product_type": product_type,
        "total": total,
        "credit_type": {"name": currency},
        "pricing_group_values": pricing,
        "presentation_group_values": presentation,
    }


def draft_line(name, total, product_type="usage", commit_id=None, currency="USD (cents)"):
    """Raw draft invoice line item."""
    return {
        "name": name,
        "total": total,
        "type": product_type,
        "credit_type": {"name": currency},
        "applied_commit_or_credit": {"id": commit_id} if commit_id else None,
    }
