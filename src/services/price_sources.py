from __future__ import annotations

from datetime import datetime
from typing import Protocol

from .price_types import PriceQuote


class PriceUnavailableError(RuntimeError):
    """A rate could not be obtained; the run cannot continue without it."""

    def __init__(self, message: str, *, base_id: str | None = None, quote_id: str | None = None) -> None:
        super().__init__(message)
        self.base_id = base_id
        self.quote_id = quote_id


class PriceSnapshotSource(Protocol):
    def fetch_snapshot(self, base_id: str, quote_id: str, timestamp: datetime) -> PriceQuote: ...


__all__ = [
    "PriceSnapshotSource",
    "PriceUnavailableError",
]
