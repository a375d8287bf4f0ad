from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import StrEnum
from typing import NewType

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

AssetId = NewType("AssetId", str)
TransactionId = NewType("TransactionId", int)

LONG_TERM_THRESHOLD_DAYS = 365
DEFAULT_PRECISION = Decimal("0.00000001")


class TransactionType(StrEnum):
    TRADE = "Trade"
    STAKING_REWARD = "Staking Reward"


class AccountingMethod(StrEnum):
    FIFO = "FIFO"
    LIFO = "LIFO"


class HoldingPeriod(StrEnum):
    SHORT_TERM = "SHORT_TERM"
    LONG_TERM = "LONG_TERM"


def holding_period(acquired_at: datetime, disposed_at: datetime) -> HoldingPeriod:
    """Classify a disposal by whole days held; exactly 365 days is still short-term."""
    if (disposed_at - acquired_at).days > LONG_TERM_THRESHOLD_DAYS:
        return HoldingPeriod.LONG_TERM
    return HoldingPeriod.SHORT_TERM


class TransactionRecord(BaseModel):
    """A single row of the input ledger.

    ``tx_type`` is kept as the raw string; interpreting it is the calculator's job.
    """

    model_config = ConfigDict(frozen=True)

    tx_id: TransactionId
    timestamp: datetime
    account: str = ""
    tx_type: str
    out_asset: AssetId | None = None
    out_amount: Decimal | None = None
    in_asset: AssetId
    in_amount: Decimal
    fee_asset: AssetId | None = None
    fee_amount: Decimal | None = None

    @field_validator("timestamp", mode="after")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @field_validator("out_asset", "in_asset", "fee_asset", mode="before")
    @classmethod
    def _normalize_asset(cls, value: str | None) -> str | None:
        if value is None:
            return None
        code = value.strip().upper()
        return code or None

    @field_validator("out_amount", "fee_amount", mode="before")
    @classmethod
    def _empty_amount(cls, value: str | Decimal | None) -> str | Decimal | None:
        if isinstance(value, str) and value.strip() == "":
            return None
        return value

    @model_validator(mode="after")
    def _validate_fields(self) -> TransactionRecord:
        if not self.in_asset:
            raise ValueError("in_asset must be non-empty")
        if self.in_amount < 0:
            raise ValueError("in_amount must be >= 0")
        if self.out_amount is not None and self.out_amount < 0:
            raise ValueError("out_amount must be >= 0")
        if (self.fee_asset is None) != (self.fee_amount is None):
            raise ValueError("fee_asset and fee_amount must be given together")
        if self.fee_amount is not None and self.fee_amount < 0:
            raise ValueError("fee_amount must be >= 0")
        return self

    @property
    def has_fee(self) -> bool:
        return self.fee_asset is not None and self.fee_amount is not None and self.fee_amount > 0


@dataclass
class Lot:
    """Acquisition batch owned by exactly one inventory; consumed in place."""

    source_tx_id: TransactionId
    acquired_at: datetime
    remaining_amount: Decimal
    unit_cost: Decimal


@dataclass(frozen=True)
class LotFragment:
    source_tx_id: TransactionId
    acquired_at: datetime
    amount: Decimal
    unit_cost: Decimal

    @property
    def cost(self) -> Decimal:
        return self.amount * self.unit_cost


class CashflowRecord(BaseModel):
    """One line of the cashflow report.

    Sign convention for ``amount``:
    - Positive amount is an inflow (a lot was deposited).
    - Negative amount is an outflow (part of a lot was disposed).
    """

    model_config = ConfigDict(frozen=True)

    asset: AssetId
    outflow_tx_id: TransactionId | None = None
    outflow_time: datetime | None = None
    inflow_tx_id: TransactionId
    inflow_time: datetime
    amount: Decimal
    unit_cost: Decimal
    actual_costs: Decimal
    actual_proceeds: Decimal | None = None
    short_term_gain: Decimal | None = None
    long_term_gain: Decimal | None = None

    @model_validator(mode="after")
    def _validate_fields(self) -> CashflowRecord:
        if self.short_term_gain is not None and self.long_term_gain is not None:
            raise ValueError("A cashflow record carries at most one of short_term_gain/long_term_gain")
        if (self.outflow_tx_id is None) != (self.outflow_time is None):
            raise ValueError("outflow_tx_id and outflow_time must be given together")
        return self

    @property
    def is_outflow(self) -> bool:
        return self.outflow_tx_id is not None

    @property
    def gain(self) -> Decimal | None:
        if self.short_term_gain is not None:
            return self.short_term_gain
        return self.long_term_gain
