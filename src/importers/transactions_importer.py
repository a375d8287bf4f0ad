from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Iterator

from pydantic import ValidationError

from domain.ledger import TransactionRecord

logger = logging.getLogger(__name__)

# Positional layout of the transaction export; the header row itself is skipped.
TRANSACTION_COLUMNS = (
    "tx_id",
    "timestamp",
    "account",
    "tx_type",
    "out_asset",
    "out_amount",
    "in_asset",
    "in_amount",
    "fee_asset",
    "fee_amount",
)


class MalformedInputError(Exception):
    def __init__(self, message: str, *, row_number: int, row: list[str]) -> None:
        super().__init__(f"{message} at row {row_number}: {row}")
        self.row_number = row_number
        self.row = row


class TransactionCsvImporter:
    def __init__(self, source_path: Path | str) -> None:
        self._source_path = Path(source_path)

    def load_records(self) -> list[TransactionRecord]:
        records = list(self.iter_records())
        logger.info("Loaded %d transaction records from %s", len(records), self._source_path)
        return records

    def iter_records(self) -> Iterator[TransactionRecord]:
        with self._source_path.open(encoding="utf-8", newline="") as handle:
            reader = csv.reader(handle)
            next(reader, None)
            for row_number, row in enumerate(reader, start=2):
                if not any(cell.strip() for cell in row):
                    continue
                yield self._parse_row(row_number, row)

    @staticmethod
    def _parse_row(row_number: int, row: list[str]) -> TransactionRecord:
        if len(row) > len(TRANSACTION_COLUMNS):
            raise MalformedInputError(
                f"Expected at most {len(TRANSACTION_COLUMNS)} columns, got {len(row)}",
                row_number=row_number,
                row=row,
            )
        values = {name: cell.strip() for name, cell in zip(TRANSACTION_COLUMNS, row)}
        for optional in ("account", "out_asset", "out_amount", "fee_asset", "fee_amount"):
            if values.get(optional) == "":
                del values[optional]
        try:
            return TransactionRecord.model_validate(values)
        except ValidationError as exc:
            raise MalformedInputError(
                f"Invalid transaction record ({exc.error_count()} errors: {exc.errors()[0]['msg']})",
                row_number=row_number,
                row=row,
            ) from exc
