from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class DecimalAsString(TypeDecorator):
    impl = String
    cache_ok = True

    def process_bind_param(self, value: Decimal | None, dialect: object) -> str | None:
        if value is None:
            return None
        return str(value)

    def process_result_value(self, value: str | None, dialect: object) -> Decimal | None:
        if value is None:
            return None
        return Decimal(value)


class Base(DeclarativeBase):
    pass


class CashflowRecordOrm(Base):
    __tablename__ = "cashflow_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # Position in the report; the ledger order is significant.
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    asset: Mapped[str] = mapped_column(String, nullable=False)
    outflow_tx_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    outflow_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    inflow_tx_id: Mapped[int] = mapped_column(Integer, nullable=False)
    inflow_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    amount: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    actual_costs: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    actual_proceeds: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    short_term_gain: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    long_term_gain: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
