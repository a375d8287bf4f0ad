from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from .price_sources import PriceSnapshotSource
from .price_store import PriceStore
from .price_types import PriceQuote

logger = logging.getLogger(__name__)


class PriceService:
    """Memoizing price oracle: in-process cache, then the persistent store, then the remote source.

    A failing store is not fatal: the service logs a warning once and keeps
    serving from memory for the rest of the run.
    """

    def __init__(
        self,
        source: PriceSnapshotSource,
        store: PriceStore,
    ) -> None:
        self.source = source
        self.store = store
        self._memo: dict[tuple[str, str, datetime], Decimal] = {}
        self._store_available = True

    @property
    def store_available(self) -> bool:
        return self._store_available

    def rate(self, base_id: str, quote_id: str, timestamp: datetime) -> Decimal:
        base = base_id.upper()
        quote = quote_id.upper()
        key = (base, quote, timestamp)
        cached = self._memo.get(key)
        if cached is not None:
            return cached

        rate = self._read_store(base, quote, timestamp)
        if rate is None:
            logger.info("Fetching price %s/%s @%s", base, quote, timestamp.isoformat())
            fetched = self.source.fetch_snapshot(base_id=base, quote_id=quote, timestamp=timestamp)
            self._write_store(fetched)
            rate = fetched.rate

        self._memo[key] = rate
        return rate

    def clear(self) -> None:
        self._memo.clear()
        if self._store_available:
            self.store.clear()

    def _read_store(self, base: str, quote: str, timestamp: datetime) -> Decimal | None:
        if not self._store_available:
            return None
        try:
            existing = self.store.read(base_id=base, quote_id=quote, timestamp=timestamp)
        except OSError as exc:
            self._disable_store(exc)
            return None
        return existing.rate if existing is not None else None

    def _write_store(self, quote: PriceQuote) -> None:
        if not self._store_available:
            return
        try:
            self.store.write(quote)
        except OSError as exc:
            self._disable_store(exc)

    def _disable_store(self, exc: OSError) -> None:
        logger.warning("Price cache unavailable (%s); continuing with in-memory prices only", exc)
        self._store_available = False


__all__ = ["PriceService"]
