from __future__ import annotations

from collections import deque
from dataclasses import replace
from decimal import Decimal

from .ledger import DEFAULT_PRECISION, AccountingMethod, AssetId, Lot, LotFragment


class InventoryError(Exception):
    def __init__(self, message: str, *, asset: str) -> None:
        super().__init__(message)
        self.asset = asset


class InsufficientInventoryError(InventoryError):
    """Withdrawal exceeds known holdings; the input ledger is incomplete or out of order."""

    def __init__(self, *, asset: str, requested: Decimal, available: Decimal) -> None:
        self.requested = requested
        self.available = available
        self.shortfall = requested - available
        message = (
            f"Insufficient inventory for asset={asset} "
            f"requested={requested} available={available} shortfall={self.shortfall}"
        )
        super().__init__(message, asset=asset)


class Inventory:
    """Open lots of a single asset, kept in consumption order.

    FIFO deposits go to the back and LIFO deposits to the front, so a withdrawal
    always consumes from the front of the queue.
    """

    def __init__(
        self,
        asset: AssetId | str,
        *,
        method: AccountingMethod = AccountingMethod.FIFO,
        precision: Decimal = DEFAULT_PRECISION,
    ) -> None:
        if precision < 0:
            raise ValueError("precision must be >= 0")
        self.asset = asset
        self.method = method
        self.precision = precision
        self._lots: deque[Lot] = deque()

    def __len__(self) -> int:
        return len(self._lots)

    @property
    def total(self) -> Decimal:
        return sum((lot.remaining_amount for lot in self._lots), start=Decimal(0))

    @property
    def lots(self) -> tuple[Lot, ...]:
        """Copies of the open lots in consumption order."""
        return tuple(replace(lot) for lot in self._lots)

    def deposit(self, lot: Lot) -> None:
        if lot.remaining_amount < 0:
            raise ValueError("Lot.remaining_amount must be >= 0")
        # Dust lots would only surface as zero-amount disposals later.
        if lot.remaining_amount == 0 or lot.remaining_amount < self.precision:
            return
        if self.method == AccountingMethod.FIFO:
            self._lots.append(lot)
        else:
            self._lots.appendleft(lot)

    def withdraw(self, amount: Decimal) -> list[LotFragment]:
        if amount <= 0:
            raise ValueError("withdrawal amount must be > 0")

        available = self.total
        if not self._lots or available + self.precision < amount:
            raise InsufficientInventoryError(asset=self.asset, requested=amount, available=available)

        fragments: list[LotFragment] = []
        remaining = amount
        while self._lots:
            lot = self._lots[0]
            take = min(remaining, lot.remaining_amount)
            fragments.append(
                LotFragment(
                    source_tx_id=lot.source_tx_id,
                    acquired_at=lot.acquired_at,
                    amount=take,
                    unit_cost=lot.unit_cost,
                )
            )

            lot.remaining_amount -= take
            # Drop dust so rounding noise never survives as a micro-lot.
            if lot.remaining_amount <= 0 or lot.remaining_amount < self.precision:
                self._lots.popleft()

            remaining -= take
            if remaining <= 0 or remaining < self.precision:
                break

        consumed = sum((fragment.amount for fragment in fragments), start=Decimal(0))
        if abs(consumed - amount) > self.precision:
            raise InsufficientInventoryError(asset=self.asset, requested=amount, available=consumed)
        return fragments
