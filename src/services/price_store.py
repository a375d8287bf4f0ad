from __future__ import annotations

import json
import logging
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Protocol

from .price_types import PriceQuote

logger = logging.getLogger(__name__)


class PriceStore(Protocol):
    def write(self, quote: PriceQuote) -> None: ...

    def read(self, base_id: str, quote_id: str, timestamp: datetime) -> PriceQuote | None: ...

    def clear(self) -> None: ...


class JsonlPriceStore(PriceStore):
    """Append-only JSONL files, one per currency pair.

    Every write is appended and closed straight away, so quotes fetched before a
    crash are still on disk afterwards.
    """

    def __init__(self, *, root_dir: Path) -> None:
        self.root_dir = root_dir

    def write(self, quote: PriceQuote) -> None:
        path = self._file_path(quote.base_id, quote.quote_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        record = {
            "timestamp": quote.timestamp.isoformat(),
            "base_id": quote.base_id,
            "quote_id": quote.quote_id,
            "rate": str(quote.rate),
            "source": quote.source,
            "valid_from": quote.valid_from.isoformat(),
            "valid_to": quote.valid_to.isoformat(),
        }
        with path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record))
            handle.write("\n")

    def read(self, base_id: str, quote_id: str, timestamp: datetime) -> PriceQuote | None:
        path = self._file_path(base_id, quote_id)
        if not path.exists():
            return None

        best: PriceQuote | None = None
        with path.open("r", encoding="utf-8") as handle:
            for line in handle:
                line = line.strip()
                if not line:
                    continue
                quote = self._parse_line(line)
                if quote is None or not quote.covers(timestamp):
                    continue
                # Narrower, more recent snapshots win over wide ones.
                if best is None or quote.timestamp > best.timestamp:
                    best = quote

        return best

    def clear(self) -> None:
        prices_dir = self.root_dir / "prices"
        if not prices_dir.exists():
            return
        removed = 0
        for path in prices_dir.glob("*.jsonl"):
            path.unlink()
            removed += 1
        logger.info("Cleared %d cached price files from %s", removed, prices_dir)

    @staticmethod
    def _parse_line(line: str) -> PriceQuote | None:
        try:
            record = json.loads(line)
            valid_from_raw = record.get("valid_from", record["timestamp"])
            valid_to_raw = record.get("valid_to") or valid_from_raw
            return PriceQuote(
                timestamp=datetime.fromisoformat(record["timestamp"]),
                base_id=record["base_id"],
                quote_id=record["quote_id"],
                rate=Decimal(record["rate"]),
                source=record.get("source", ""),
                valid_from=datetime.fromisoformat(valid_from_raw),
                valid_to=datetime.fromisoformat(valid_to_raw),
            )
        except (ValueError, KeyError, ArithmeticError):
            logger.warning("Skipping unreadable price cache line: %s", line)
            return None

    def _file_path(self, base_id: str, quote_id: str) -> Path:
        safe_base = base_id.upper()
        safe_quote = quote_id.upper()
        return self.root_dir / "prices" / f"{safe_base}-{safe_quote}.jsonl"


__all__ = ["JsonlPriceStore", "PriceStore"]
