from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from domain.calculator import CalculationConfig, CapitalGainsCalculator
from domain.ledger import CashflowRecord, Lot, TransactionRecord
from domain.pricing import PriceProvider
from importers.transactions_importer import TransactionCsvImporter
from reports import write_cashflow_csv
from utils.tax_summary import TaxSummary, compute_tax_summary

logger = logging.getLogger(__name__)


class CapitalGainsReport:
    def __init__(
        self,
        records: Iterable[CashflowRecord],
        *,
        open_lots: dict[str, tuple[Lot, ...]] | None = None,
    ) -> None:
        self.records: list[CashflowRecord] = list(records)
        self.open_lots = open_lots or {}

    def __len__(self) -> int:
        return len(self.records)

    def write_csv(self, path: Path) -> None:
        write_cashflow_csv(self.records, path)

    def summary(self) -> TaxSummary:
        return compute_tax_summary(self.records)


class Accountant:
    """Ties a configuration and a price provider to one calculation run."""

    def __init__(self, *, price_provider: PriceProvider, config: CalculationConfig | None = None) -> None:
        self._price_provider = price_provider
        self.config = config or CalculationConfig()

    def analyze(self, records: Iterable[TransactionRecord]) -> CapitalGainsReport:
        calculator = CapitalGainsCalculator(price_provider=self._price_provider, config=self.config)
        ledger = calculator.process(records)
        logger.info(
            "Computed %d cashflow records (base=%s method=%s)",
            len(ledger),
            self.config.base_asset,
            self.config.method,
        )
        return CapitalGainsReport(ledger, open_lots=calculator.open_lots())

    def analyze_file(self, path: Path) -> CapitalGainsReport:
        return self.analyze(TransactionCsvImporter(path).load_records())
