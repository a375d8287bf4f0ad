from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from db import models
from domain.ledger import AssetId, CashflowRecord, TransactionId


class CashflowRecordRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_many(self, records: Iterable[CashflowRecord]) -> int:
        start = self._next_sequence()
        orm_records = [self._to_orm(record, sequence) for sequence, record in enumerate(records, start=start)]
        self._session.add_all(orm_records)
        self._session.commit()
        return len(orm_records)

    def list(self) -> list[CashflowRecord]:
        stmt = select(models.CashflowRecordOrm).order_by(models.CashflowRecordOrm.sequence.asc())
        return [self._to_domain(record) for record in self._session.scalars(stmt)]

    def list_for_asset(self, asset: str) -> list[CashflowRecord]:
        stmt = (
            select(models.CashflowRecordOrm)
            .where(models.CashflowRecordOrm.asset == asset.upper())
            .order_by(models.CashflowRecordOrm.sequence.asc())
        )
        return [self._to_domain(record) for record in self._session.scalars(stmt)]

    def _next_sequence(self) -> int:
        current = self._session.scalar(select(func.max(models.CashflowRecordOrm.sequence)))
        return 0 if current is None else current + 1

    @staticmethod
    def _to_orm(record: CashflowRecord, sequence: int) -> models.CashflowRecordOrm:
        return models.CashflowRecordOrm(
            sequence=sequence,
            asset=record.asset,
            outflow_tx_id=record.outflow_tx_id,
            outflow_time=record.outflow_time,
            inflow_tx_id=record.inflow_tx_id,
            inflow_time=record.inflow_time,
            amount=record.amount,
            unit_cost=record.unit_cost,
            actual_costs=record.actual_costs,
            actual_proceeds=record.actual_proceeds,
            short_term_gain=record.short_term_gain,
            long_term_gain=record.long_term_gain,
        )

    @staticmethod
    def _to_domain(orm_record: models.CashflowRecordOrm) -> CashflowRecord:
        return CashflowRecord(
            asset=AssetId(orm_record.asset),
            outflow_tx_id=TransactionId(orm_record.outflow_tx_id) if orm_record.outflow_tx_id is not None else None,
            outflow_time=_as_utc(orm_record.outflow_time),
            inflow_tx_id=TransactionId(orm_record.inflow_tx_id),
            inflow_time=_as_utc(orm_record.inflow_time),
            amount=orm_record.amount,
            unit_cost=orm_record.unit_cost,
            actual_costs=orm_record.actual_costs,
            actual_proceeds=orm_record.actual_proceeds,
            short_term_gain=orm_record.short_term_gain,
            long_term_gain=orm_record.long_term_gain,
        )


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite drops the offset on the way back.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)
