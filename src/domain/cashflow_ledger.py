from __future__ import annotations

from typing import Iterable, Iterator

from .ledger import CashflowRecord


class CashflowLedger:
    """Append-only sequence of cashflow records in the order they were produced."""

    def __init__(self, records: Iterable[CashflowRecord] = ()) -> None:
        self._records: list[CashflowRecord] = list(records)

    def append(self, record: CashflowRecord) -> None:
        self._records.append(record)

    def extend(self, records: Iterable[CashflowRecord]) -> None:
        self._records.extend(records)

    def __iter__(self) -> Iterator[CashflowRecord]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    @property
    def records(self) -> tuple[CashflowRecord, ...]:
        return tuple(self._records)
