from __future__ import annotations

import csv
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Iterable

from domain.ledger import CashflowRecord
from utils.formatting import format_decimal

CASHFLOW_COLUMNS = (
    "tx_out",
    "datetime_out",
    "tx_in",
    "datetime_in",
    "asset",
    "amount",
    "base_price",
    "actual_costs",
    "actual_proceeds",
    "gains_short_term",
    "gains_long_term",
)


def _cell(value: Decimal | datetime | int | str | None) -> str:
    if value is None:
        return ""
    if isinstance(value, Decimal):
        return format_decimal(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def cashflow_row(record: CashflowRecord) -> dict[str, str]:
    return {
        "tx_out": _cell(record.outflow_tx_id),
        "datetime_out": _cell(record.outflow_time),
        "tx_in": _cell(record.inflow_tx_id),
        "datetime_in": _cell(record.inflow_time),
        "asset": record.asset,
        "amount": _cell(record.amount),
        "base_price": _cell(record.unit_cost),
        "actual_costs": _cell(record.actual_costs),
        "actual_proceeds": _cell(record.actual_proceeds),
        "gains_short_term": _cell(record.short_term_gain),
        "gains_long_term": _cell(record.long_term_gain),
    }


def write_cashflow_csv(records: Iterable[CashflowRecord], path: Path) -> None:
    """Write the cashflow report in processing order; optional fields become empty cells."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=CASHFLOW_COLUMNS)
        writer.writeheader()
        for record in records:
            writer.writerow(cashflow_row(record))
