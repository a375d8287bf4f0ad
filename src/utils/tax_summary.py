from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable

from domain.ledger import CashflowRecord

from .formatting import format_currency, format_signed_currency


@dataclass
class YearlyTaxSummary:
    year: int
    disposals: int = 0
    proceeds: Decimal = Decimal("0")
    cost_basis: Decimal = Decimal("0")
    short_term_gain: Decimal = Decimal("0")
    long_term_gain: Decimal = Decimal("0")
    income: Decimal = Decimal("0")

    @property
    def taxable_gain(self) -> Decimal:
        """Short-term disposals plus income from acquisitions; long-term gains are reported separately."""
        return self.short_term_gain + self.income


@dataclass
class TaxSummary:
    years: list[YearlyTaxSummary] = field(default_factory=list)

    def for_year(self, year: int) -> YearlyTaxSummary | None:
        for row in self.years:
            if row.year == year:
                return row
        return None


def compute_tax_summary(records: Iterable[CashflowRecord]) -> TaxSummary:
    """Aggregate cashflow records per calendar year.

    Disposals are attributed to the year of the outflow, acquisition income
    (rewards, discounts) to the year of the inflow.
    """
    by_year: dict[int, YearlyTaxSummary] = {}

    for record in records:
        if record.outflow_time is not None:
            row = by_year.setdefault(record.outflow_time.year, YearlyTaxSummary(year=record.outflow_time.year))
            row.disposals += 1
            row.proceeds += record.actual_proceeds or Decimal("0")
            row.cost_basis += record.actual_costs
            if record.short_term_gain is not None:
                row.short_term_gain += record.short_term_gain
            if record.long_term_gain is not None:
                row.long_term_gain += record.long_term_gain
        elif record.short_term_gain is not None:
            row = by_year.setdefault(record.inflow_time.year, YearlyTaxSummary(year=record.inflow_time.year))
            row.income += record.short_term_gain

    return TaxSummary(years=[by_year[year] for year in sorted(by_year)])


def render_tax_summary(summary: TaxSummary, *, base_asset: str = "EUR") -> None:
    print(f"Yearly capital gains ({base_asset}):")
    if not summary.years:
        print("  (no taxable events)")
        return

    labels = ("Year", "Disposals", "Proceeds", "Cost basis", "Short-term", "Long-term", "Income")
    rows = [
        (
            str(row.year),
            str(row.disposals),
            format_currency(row.proceeds),
            format_currency(row.cost_basis),
            format_signed_currency(row.short_term_gain),
            format_signed_currency(row.long_term_gain),
            format_currency(row.income),
        )
        for row in summary.years
    ]
    widths = [max(len(label), max(len(row[idx]) for row in rows)) for idx, label in enumerate(labels)]

    header = " ".join(
        f"{label:<{widths[idx]}}" if idx == 0 else f"{label:>{widths[idx]}}" for idx, label in enumerate(labels)
    )
    lines = [header, "-" * len(header)]
    for row in rows:
        lines.append(
            " ".join(f"{cell:<{widths[idx]}}" if idx == 0 else f"{cell:>{widths[idx]}}" for idx, cell in enumerate(row))
        )

    print("\n".join(lines))
