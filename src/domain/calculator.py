from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from pydantic import BaseModel, ConfigDict, field_validator

from .cashflow_ledger import CashflowLedger
from .inventory import Inventory
from .ledger import (
    DEFAULT_PRECISION,
    AccountingMethod,
    AssetId,
    CashflowRecord,
    HoldingPeriod,
    Lot,
    LotFragment,
    TransactionId,
    TransactionRecord,
    TransactionType,
    holding_period,
)
from .pricing import PriceProvider

logger = logging.getLogger(__name__)


class MalformedTransactionError(Exception):
    def __init__(self, message: str, *, record: TransactionRecord | None = None) -> None:
        if record is not None:
            message = f"{message} (tx_id={record.tx_id} type={record.tx_type!r} @{record.timestamp.isoformat()})"
        super().__init__(message)
        self.record = record


class UnknownTransactionTypeError(MalformedTransactionError):
    pass


class CalculationConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_asset: AssetId = AssetId("EUR")
    method: AccountingMethod = AccountingMethod.FIFO
    precision: Decimal = DEFAULT_PRECISION

    @field_validator("base_asset", mode="before")
    @classmethod
    def _normalize_base_asset(cls, value: str) -> str:
        code = value.strip().upper()
        if not code:
            raise ValueError("base_asset must be non-empty")
        return code

    @field_validator("precision", mode="after")
    @classmethod
    def _validate_precision(cls, value: Decimal) -> Decimal:
        if value < 0:
            raise ValueError("precision must be >= 0")
        return value


@dataclass(frozen=True)
class _Fee:
    asset: AssetId
    amount: Decimal

    def halved(self) -> _Fee:
        return _Fee(asset=self.asset, amount=self.amount / 2)


class CapitalGainsCalculator:
    """Turn transaction records into cashflow records against per-asset lot inventories.

    Records must be fed in source order: which lot a disposal is matched against
    depends on everything processed before it.
    """

    def __init__(self, *, price_provider: PriceProvider, config: CalculationConfig | None = None) -> None:
        self._price_provider = price_provider
        self.config = config or CalculationConfig()
        self._inventories: dict[str, Inventory] = {}
        self._ledger = CashflowLedger()

    @property
    def ledger(self) -> CashflowLedger:
        return self._ledger

    def process(self, records: Iterable[TransactionRecord]) -> CashflowLedger:
        for record in records:
            self.process_record(record)
        return self._ledger

    def process_record(self, record: TransactionRecord) -> None:
        try:
            tx_type = TransactionType(record.tx_type)
        except ValueError as exc:
            raise UnknownTransactionTypeError(f"Unknown transaction type {record.tx_type!r}", record=record) from exc

        logger.debug("Processing tx_id=%s type=%s", record.tx_id, tx_type)
        if tx_type == TransactionType.TRADE:
            self.trade(record)
        elif tx_type == TransactionType.STAKING_REWARD:
            self.staking_reward(record)

    def open_lots(self) -> dict[str, tuple[Lot, ...]]:
        return {asset: inventory.lots for asset, inventory in sorted(self._inventories.items()) if len(inventory)}

    def purchase(
        self,
        asset: str,
        *,
        amount: Decimal,
        unit_cost: Decimal,
        actual_costs: Decimal,
        tx_id: TransactionId,
        timestamp: datetime,
    ) -> CashflowRecord:
        # The base asset is the unit of account; holding it opens no lot.
        if asset != self.config.base_asset:
            self._inventory(asset).deposit(
                Lot(source_tx_id=tx_id, acquired_at=timestamp, remaining_amount=amount, unit_cost=unit_cost)
            )

        # Market value above what was paid (discounts, gifts, rewards) is realized immediately.
        gain = amount * unit_cost - actual_costs
        entry = CashflowRecord(
            asset=AssetId(asset),
            inflow_tx_id=tx_id,
            inflow_time=timestamp,
            amount=amount,
            unit_cost=unit_cost,
            actual_costs=actual_costs,
            short_term_gain=gain if gain >= self.config.precision else None,
        )
        self._ledger.append(entry)
        return entry

    def sale(
        self,
        asset: str,
        *,
        amount: Decimal,
        proceeds: Decimal,
        tx_id: TransactionId,
        timestamp: datetime,
    ) -> list[CashflowRecord]:
        fragments = self._inventory(asset).withdraw(amount)
        entries: list[CashflowRecord] = []
        for fragment in fragments:
            if amount < self.config.precision:
                proceeds_slice = proceeds
            else:
                proceeds_slice = proceeds * fragment.amount / amount
            entries.append(
                self._disposal_entry(asset, fragment, proceeds=proceeds_slice, tx_id=tx_id, timestamp=timestamp)
            )
        self._ledger.extend(entries)
        return entries

    def convert_fee_to_base(
        self,
        asset: str,
        *,
        amount: Decimal,
        tx_id: TransactionId,
        timestamp: datetime,
    ) -> Decimal:
        """Consume ``amount`` of ``asset`` at cost and return its value in the base asset.

        Each consumed fragment is logged as a disposal whose proceeds equal its cost,
        so paying a fee never realizes a gain by itself.
        """
        fragments = self._inventory(asset).withdraw(amount)
        value = Decimal(0)
        for fragment in fragments:
            self._ledger.append(
                self._disposal_entry(asset, fragment, proceeds=fragment.cost, tx_id=tx_id, timestamp=timestamp)
            )
            value += fragment.cost
        return value

    def staking_reward(self, record: TransactionRecord) -> CashflowRecord:
        base = self.config.base_asset
        if record.in_asset == base:
            unit_cost = Decimal(1)
        else:
            unit_cost = self._price_provider.rate(record.in_asset, base, record.timestamp)

        amount = record.in_amount
        actual_costs = Decimal(0)
        fee = self._fee_of(record)
        if fee is not None:
            if fee.asset == record.in_asset:
                amount -= fee.amount
            else:
                actual_costs = self._fee_base_value(fee, tx_id=record.tx_id, timestamp=record.timestamp)

        if amount <= 0:
            raise MalformedTransactionError("Staking reward leaves nothing after fees", record=record)

        return self.purchase(
            record.in_asset,
            amount=amount,
            unit_cost=unit_cost,
            actual_costs=actual_costs,
            tx_id=record.tx_id,
            timestamp=record.timestamp,
        )

    def trade(self, record: TransactionRecord) -> None:
        if record.out_asset is None or record.out_amount is None:
            raise MalformedTransactionError("Trade without outgoing asset", record=record)

        if record.out_asset == record.in_asset:
            logger.debug("Skipping tx_id=%s: %s traded for itself", record.tx_id, record.in_asset)
            return

        base = self.config.base_asset
        fee = self._fee_of(record)
        if base in (record.out_asset, record.in_asset):
            self._simple_trade(
                out_asset=record.out_asset,
                out_amount=record.out_amount,
                in_asset=record.in_asset,
                in_amount=record.in_amount,
                fee=fee,
                record=record,
            )
        else:
            self._foreign_trade(record, fee=fee)

    def _foreign_trade(self, record: TransactionRecord, *, fee: _Fee | None) -> None:
        """Split a trade between two non-base assets into a sale for base and a purchase with it."""
        assert record.out_asset is not None and record.out_amount is not None
        base = self.config.base_asset

        rate = self._price_provider.rate(record.out_asset, base, record.timestamp)
        base_value = record.out_amount * rate

        sell_fee: _Fee | None = None
        buy_fee: _Fee | None = None
        if fee is not None:
            if fee.asset == record.out_asset:
                sell_fee = fee
            elif fee.asset == record.in_asset:
                buy_fee = fee
            else:
                sell_fee = buy_fee = fee.halved()

        self._simple_trade(
            out_asset=record.out_asset,
            out_amount=record.out_amount,
            in_asset=base,
            in_amount=base_value,
            fee=sell_fee,
            record=record,
        )
        self._simple_trade(
            out_asset=base,
            out_amount=base_value,
            in_asset=record.in_asset,
            in_amount=record.in_amount,
            fee=buy_fee,
            record=record,
        )

    def _simple_trade(
        self,
        *,
        out_asset: AssetId,
        out_amount: Decimal,
        in_asset: AssetId,
        in_amount: Decimal,
        fee: _Fee | None,
        record: TransactionRecord,
    ) -> None:
        base = self.config.base_asset

        if fee is not None:
            if fee.asset == out_asset:
                out_amount += fee.amount
            elif fee.asset == in_asset:
                in_amount -= fee.amount
            else:
                fee_value = self._fee_base_value(fee, tx_id=record.tx_id, timestamp=record.timestamp)
                if out_asset == base:
                    out_amount += fee_value
                else:
                    in_amount -= fee_value

        if out_asset == base:
            if in_amount <= 0:
                raise MalformedTransactionError(f"Trade receives no {in_asset} after fees", record=record)
            self.purchase(
                in_asset,
                amount=in_amount,
                unit_cost=out_amount / in_amount,
                actual_costs=out_amount,
                tx_id=record.tx_id,
                timestamp=record.timestamp,
            )
        else:
            if out_amount <= 0:
                raise MalformedTransactionError(f"Trade disposes no {out_asset}", record=record)
            self.sale(
                out_asset,
                amount=out_amount,
                proceeds=in_amount,
                tx_id=record.tx_id,
                timestamp=record.timestamp,
            )

    def _fee_base_value(self, fee: _Fee, *, tx_id: TransactionId, timestamp: datetime) -> Decimal:
        if fee.asset == self.config.base_asset:
            return fee.amount
        return self.convert_fee_to_base(fee.asset, amount=fee.amount, tx_id=tx_id, timestamp=timestamp)

    @staticmethod
    def _fee_of(record: TransactionRecord) -> _Fee | None:
        if not record.has_fee:
            return None
        assert record.fee_asset is not None and record.fee_amount is not None
        return _Fee(asset=record.fee_asset, amount=record.fee_amount)

    def _disposal_entry(
        self,
        asset: str,
        fragment: LotFragment,
        *,
        proceeds: Decimal,
        tx_id: TransactionId,
        timestamp: datetime,
    ) -> CashflowRecord:
        costs = fragment.cost
        gain = proceeds - costs
        period = holding_period(fragment.acquired_at, timestamp)
        return CashflowRecord(
            asset=AssetId(asset),
            outflow_tx_id=tx_id,
            outflow_time=timestamp,
            inflow_tx_id=fragment.source_tx_id,
            inflow_time=fragment.acquired_at,
            amount=-fragment.amount,
            unit_cost=fragment.unit_cost,
            actual_costs=costs,
            actual_proceeds=proceeds,
            short_term_gain=gain if period == HoldingPeriod.SHORT_TERM else None,
            long_term_gain=gain if period == HoldingPeriod.LONG_TERM else None,
        )

    def _inventory(self, asset: str) -> Inventory:
        inventory = self._inventories.get(asset)
        if inventory is None:
            inventory = Inventory(asset, method=self.config.method, precision=self.config.precision)
            self._inventories[asset] = inventory
        return inventory
