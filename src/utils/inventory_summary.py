from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Mapping, Sequence

from domain.ledger import Lot

from .formatting import format_currency, format_decimal


@dataclass
class AssetInventorySummary:
    asset_id: str
    lots: int
    quantity: Decimal
    cost_basis: Decimal


@dataclass
class InventorySummary:
    assets: list[AssetInventorySummary] = field(default_factory=list)


def compute_inventory_summary(open_lots: Mapping[str, Sequence[Lot]]) -> InventorySummary:
    summaries: list[AssetInventorySummary] = []
    for asset_id, lots in sorted(open_lots.items(), key=lambda item: item[0]):
        if not lots:
            continue
        summaries.append(
            AssetInventorySummary(
                asset_id=asset_id,
                lots=len(lots),
                quantity=sum((lot.remaining_amount for lot in lots), start=Decimal(0)),
                cost_basis=sum((lot.remaining_amount * lot.unit_cost for lot in lots), start=Decimal(0)),
            )
        )
    return InventorySummary(assets=summaries)


def render_inventory_summary(summary: InventorySummary, *, base_asset: str = "EUR") -> None:
    print("Open inventory:")
    if not summary.assets:
        print("  (empty)")
        return

    cost_label = f"Cost {base_asset}"
    rows = [
        (asset.asset_id, str(asset.lots), format_decimal(asset.quantity), format_currency(asset.cost_basis))
        for asset in summary.assets
    ]

    asset_width = max(len("Asset"), max(len(row[0]) for row in rows))
    lots_width = max(len("Lots"), max(len(row[1]) for row in rows))
    quantity_width = max(len("Quantity"), max(len(row[2]) for row in rows))
    cost_width = max(len(cost_label), max(len(row[3]) for row in rows))

    header = f"{'Asset':<{asset_width}} {'Lots':>{lots_width}} {'Quantity':>{quantity_width}} {cost_label:>{cost_width}}"
    lines = [header, "-" * len(header)]
    for asset_id, lots, quantity, cost in rows:
        lines.append(f"{asset_id:<{asset_width}} {lots:>{lots_width}} {quantity:>{quantity_width}} {cost:>{cost_width}}")

    print("\n".join(lines))
