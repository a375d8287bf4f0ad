from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import requests
from requests import Response
from requests.adapters import HTTPAdapter
from urllib3.util import Retry

from .price_sources import PriceSnapshotSource, PriceUnavailableError
from .price_types import PriceQuote

logger = logging.getLogger(__name__)


class CoinApiError(PriceUnavailableError):
    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        payload: Any | None = None,
        base_id: str | None = None,
        quote_id: str | None = None,
    ) -> None:
        super().__init__(message, base_id=base_id, quote_id=quote_id)
        self.status_code = status_code
        self.payload = payload


class CoinApiSource(PriceSnapshotSource):
    """Exchange rates from CoinAPI's ``/v1/exchangerate/{base}/{quote}`` endpoint.

    Transient failures (rate limiting, 5xx) are retried with exponential backoff
    by the mounted adapter before an error is raised.
    """

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str = "https://rest.coinapi.io",
        timeout: float = 10.0,
        session: requests.Session | None = None,
        retry_attempts: int = 5,
        retry_backoff_seconds: float = 1,
        source_name: str = "coinapi-exchangerate",
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.source_name = source_name
        self._session = session or requests.Session()

        retry = Retry(
            total=retry_attempts,
            backoff_factor=retry_backoff_seconds,
            status_forcelist={429, 500, 502, 503, 504},
            allowed_methods={"GET"},
        )
        adapter = HTTPAdapter(max_retries=retry)
        self._session.mount("https://", adapter)
        self._session.mount("http://", adapter)

    def fetch_snapshot(self, base_id: str, quote_id: str, timestamp: datetime) -> PriceQuote:
        base = base_id.upper()
        quote = quote_id.upper()
        if not self.api_key:
            raise CoinApiError("CoinAPI key is not configured", base_id=base, quote_id=quote)

        payload = self._request(
            f"/v1/exchangerate/{base}/{quote}",
            params={"time": self._format_time(timestamp)},
            base_id=base,
            quote_id=quote,
        )
        rate = self._to_decimal(payload.get("rate"))
        if rate is None or rate <= 0:
            raise CoinApiError(
                f"CoinAPI returned no usable rate for {base}/{quote}",
                payload=payload,
                base_id=base,
                quote_id=quote,
            )

        return PriceQuote(
            timestamp=timestamp,
            base_id=base,
            quote_id=quote,
            rate=rate,
            source=self.source_name,
            valid_from=timestamp,
            valid_to=timestamp,
        )

    def _request(self, path: str, *, params: dict[str, Any], base_id: str, quote_id: str) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self._session.get(
                url,
                params=params,
                timeout=self.timeout,
                headers={"X-CoinAPI-Key": self.api_key or ""},
            )
            response.raise_for_status()
        except requests.HTTPError as exc:
            resp = exc.response
            message, payload_err = self._extract_error(resp)
            raise CoinApiError(
                message,
                status_code=resp.status_code,
                payload=payload_err,
                base_id=base_id,
                quote_id=quote_id,
            ) from exc
        except requests.RequestException as exc:
            status_code = getattr(getattr(exc, "response", None), "status_code", None)
            raise CoinApiError(
                "CoinAPI request failed",
                status_code=status_code,
                base_id=base_id,
                quote_id=quote_id,
            ) from exc

        remaining_calls = response.headers.get("x-ratelimit-remaining")
        if remaining_calls is not None:
            logger.info("CoinAPI calls left: %s", remaining_calls)

        try:
            payload: dict[str, Any] = response.json(parse_float=Decimal)
        except ValueError as exc:
            raise CoinApiError(
                "CoinAPI returned invalid JSON",
                payload=response.text,
                base_id=base_id,
                quote_id=quote_id,
            ) from exc

        if not isinstance(payload, dict):
            raise CoinApiError(
                "CoinAPI returned unexpected payload type",
                payload=payload,
                base_id=base_id,
                quote_id=quote_id,
            )
        return payload

    @staticmethod
    def _format_time(timestamp: datetime) -> str:
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return timestamp.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

    @staticmethod
    def _to_decimal(value: Any) -> Decimal | None:
        if value is None:
            return None
        try:
            return Decimal(str(value))
        except ArithmeticError:
            return None

    @staticmethod
    def _extract_error(response: Response) -> tuple[str, Any]:
        message = "CoinAPI request failed"
        try:
            payload = response.json()
            if isinstance(payload, dict) and payload.get("error"):
                message = str(payload["error"])
        except ValueError:
            payload = response.text
        return message, payload


__all__ = ["CoinApiError", "CoinApiSource"]
