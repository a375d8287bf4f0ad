from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Protocol


class PriceProvider(Protocol):
    """Spot rate oracle: how many units of ``quote_id`` one unit of ``base_id`` is worth at ``timestamp``.

    Implementations are expected to memoize; the calculator may ask for the same key repeatedly.
    """

    def rate(self, base_id: str, quote_id: str, timestamp: datetime) -> Decimal: ...
