from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import pytest
import requests

from services.coinapi_source import CoinApiError, CoinApiSource
from services.price_sources import PriceUnavailableError

TS = datetime(2021, 5, 1, 13, 45, 10, tzinfo=timezone.utc)


class _StubResponse:
    def __init__(self, status_code: int, body: str, headers: dict[str, str] | None = None) -> None:
        self.status_code = status_code
        self.text = body
        self.headers = headers or {}

    def json(self, **kwargs: Any) -> Any:
        return json.loads(self.text, **kwargs)

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)  # type: ignore[arg-type]


class _StubSession:
    def __init__(self, response: _StubResponse | Exception) -> None:
        self._response = response
        self.calls: list[dict[str, Any]] = []
        self.mounted: list[str] = []

    def mount(self, prefix: str, adapter: object) -> None:
        self.mounted.append(prefix)

    def get(self, url: str, **kwargs: Any) -> _StubResponse:
        self.calls.append({"url": url, **kwargs})
        if isinstance(self._response, Exception):
            raise self._response
        return self._response


def _source(session: _StubSession, api_key: str | None = "secret") -> CoinApiSource:
    return CoinApiSource(api_key=api_key, session=session)  # type: ignore[arg-type]


def test_fetch_snapshot_parses_rate() -> None:
    body = '{"time": "2021-05-01T13:45:10.0000000Z", "asset_id_base": "BTC", "asset_id_quote": "EUR", "rate": 47123.456789}'
    session = _StubSession(_StubResponse(200, body, headers={"x-ratelimit-remaining": "99"}))

    quote = _source(session).fetch_snapshot("btc", "eur", TS)

    assert quote.rate == Decimal("47123.456789")
    assert quote.base_id == "BTC"
    assert quote.quote_id == "EUR"
    assert quote.valid_from == quote.valid_to == TS

    (call,) = session.calls
    assert call["url"] == "https://rest.coinapi.io/v1/exchangerate/BTC/EUR"
    assert call["params"] == {"time": "2021-05-01T13:45:10Z"}
    assert call["headers"] == {"X-CoinAPI-Key": "secret"}
    assert set(session.mounted) == {"https://", "http://"}


def test_missing_api_key_is_unavailable() -> None:
    session = _StubSession(_StubResponse(200, "{}"))

    with pytest.raises(PriceUnavailableError):
        _source(session, api_key=None).fetch_snapshot("BTC", "EUR", TS)

    assert session.calls == []


def test_http_error_carries_status_and_message() -> None:
    session = _StubSession(_StubResponse(401, '{"error": "Invalid API key"}'))

    with pytest.raises(CoinApiError) as exc_info:
        _source(session).fetch_snapshot("BTC", "EUR", TS)

    assert exc_info.value.status_code == 401
    assert "Invalid API key" in str(exc_info.value)


def test_network_failure_is_wrapped() -> None:
    session = _StubSession(requests.ConnectionError("boom"))

    with pytest.raises(CoinApiError, match="request failed"):
        _source(session).fetch_snapshot("BTC", "EUR", TS)


def test_payload_without_rate_is_rejected() -> None:
    session = _StubSession(_StubResponse(200, '{"asset_id_base": "BTC"}'))

    with pytest.raises(CoinApiError, match="no usable rate"):
        _source(session).fetch_snapshot("BTC", "EUR", TS)


def test_invalid_json_is_rejected() -> None:
    session = _StubSession(_StubResponse(200, "<html>"))

    with pytest.raises(CoinApiError, match="invalid JSON"):
        _source(session).fetch_snapshot("BTC", "EUR", TS)
