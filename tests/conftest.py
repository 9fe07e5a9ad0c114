"""Shared fixtures and payload builders for the test suite."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Iterable
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlparse

import pytest
import requests

from cryptohistory.types import AssetRef, DateWindow


def days_between(start: date, end: date) -> list[date]:
    """Inclusive list of days from start to end."""
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]


def make_quote_entry(
    day: date, currencies: Iterable[str] = ("USD",), price: float = 100.0
) -> dict[str, Any]:
    """Build one entry of an asset's ``quotes`` list."""
    stamp = day.isoformat()
    return {
        "time_open": f"{stamp}T00:00:00.000Z",
        "time_close": f"{stamp}T23:59:59.999Z",
        "time_high": f"{stamp}T12:00:00.000Z",
        "time_low": f"{stamp}T03:00:00.000Z",
        "quote": {
            currency: {
                "open": price,
                "high": price + 10,
                "low": price - 10,
                "close": price + 5,
                "volume": 1000.0,
                "market_cap": 1_000_000.0,
                "timestamp": f"{stamp}T23:59:59.999Z",
            }
            for currency in currencies
        },
    }


def make_payload(
    asset_id: int,
    name: str,
    symbol: str,
    days: Iterable[date],
    currencies: Iterable[str] = ("USD",),
) -> dict[str, Any]:
    """Build the payload the endpoint returns for one asset."""
    currencies = list(currencies)
    return {
        "id": asset_id,
        "name": name,
        "symbol": symbol,
        "quotes": [make_quote_entry(day, currencies) for day in days],
    }


def make_response(
    json_data: Any = None, status: int = 200, json_error: Exception | None = None
) -> MagicMock:
    """Build a mock ``requests.Response``."""
    response = MagicMock()
    response.status_code = status
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status} Server Error")
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = json_data
    return response


class FakeEndpoint:
    """Stand-in for the OHLCV endpoint that answers from canned payloads.

    :param payloads: Asset payloads keyed by id.
    :param failing_ids: Requests mentioning any of these ids raise a
        connection error.
    """

    def __init__(
        self, payloads: dict[int, dict[str, Any]], failing_ids: Iterable[int] = ()
    ) -> None:
        self.payloads = payloads
        self.failing_ids = set(failing_ids)
        self.urls: list[str] = []

    def get(self, url: str, timeout: float | None = None) -> MagicMock:
        self.urls.append(url)
        ids = [int(i) for i in parse_qs(urlparse(url).query)["id"][0].split(",")]
        if self.failing_ids.intersection(ids):
            raise requests.ConnectionError("connection reset by peer")
        if len(ids) == 1:
            data: Any = self.payloads.get(ids[0], {})
        else:
            data = {str(i): self.payloads[i] for i in ids if i in self.payloads}
        return make_response({"status": {"error_code": 0}, "data": data})


@pytest.fixture
def window() -> DateWindow:
    """Ten day window in January 2020."""
    return DateWindow(start=date(2020, 1, 1), end=date(2020, 1, 10))


@pytest.fixture
def assets() -> list[AssetRef]:
    """Three well-known assets."""
    return [
        AssetRef(id=1, slug="bitcoin", name="Bitcoin", symbol="BTC"),
        AssetRef(id=1027, slug="ethereum", name="Ethereum", symbol="ETH"),
        AssetRef(id=825, slug="tether", name="Tether", symbol="USDT"),
    ]


@pytest.fixture
def sleeps() -> list[float]:
    """Records pauses instead of sleeping; pass ``sleeps.append`` as sleep."""
    return []
