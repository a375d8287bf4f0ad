from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal


@dataclass(frozen=True)
class PriceQuote:
    """Rate of ``base_id`` in ``quote_id`` and the window it is valid for."""

    timestamp: datetime
    base_id: str
    quote_id: str
    rate: Decimal
    source: str
    valid_from: datetime
    valid_to: datetime

    def covers(self, timestamp: datetime) -> bool:
        return self.valid_from <= timestamp <= self.valid_to


__all__ = ["PriceQuote"]
