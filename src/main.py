from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from accountant import Accountant, CapitalGainsReport
from config import AppSettings, load_settings
from db.db import init_db
from db.repositories import CashflowRecordRepository
from domain.calculator import MalformedTransactionError
from domain.inventory import InventoryError
from importers.transactions_importer import MalformedInputError
from services.coinapi_source import CoinApiSource
from services.price_service import PriceService
from services.price_sources import PriceUnavailableError
from services.price_store import JsonlPriceStore
from utils.inventory_summary import compute_inventory_summary, render_inventory_summary
from utils.tax_summary import render_tax_summary

logger = logging.getLogger(__name__)

FATAL_ERRORS = (MalformedInputError, MalformedTransactionError, InventoryError, PriceUnavailableError)


def build_price_service(settings: AppSettings) -> PriceService:
    store = JsonlPriceStore(root_dir=settings.price_cache_dir)
    source = CoinApiSource(api_key=settings.coinapi_api_key)
    return PriceService(source=source, store=store)


def run(
    input_path: Path,
    output_path: Path,
    *,
    settings: AppSettings,
    clear_cache: bool = False,
    db_path: Path | None = None,
) -> CapitalGainsReport:
    price_service = build_price_service(settings)
    if clear_cache:
        price_service.clear()

    accountant = Accountant(price_provider=price_service, config=settings.calculation_config())
    report = accountant.analyze_file(input_path)

    report.write_csv(output_path)
    print(f"Wrote {len(report)} cashflow records to {output_path}")

    if db_path is not None:
        session = init_db(db_path, reset=False)
        stored = CashflowRecordRepository(session).create_many(report.records)
        print(f"Stored {stored} cashflow records in {db_path}")

    render_tax_summary(report.summary(), base_asset=accountant.config.base_asset)
    render_inventory_summary(compute_inventory_summary(report.open_lots), base_asset=accountant.config.base_asset)
    return report


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Process transaction statements into capital gains statements.")
    parser.add_argument("-i", "--input", type=Path, default=Path("transactions.csv"), help="Transaction file to process")
    parser.add_argument("-o", "--output", type=Path, default=Path("cashflows.csv"), help="Cashflow report to write")
    parser.add_argument("-c", "--config", type=Path, default=None, help="Settings file (.env format)")
    parser.add_argument("--clear", action="store_true", help="Clear the price cache before running")
    parser.add_argument("--db", type=Path, default=None, help="Append the report to this SQLite file")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    settings = load_settings(args.config)
    try:
        run(
            args.input,
            args.output,
            settings=settings,
            clear_cache=args.clear,
            db_path=args.db,
        )
    except FATAL_ERRORS as exc:
        logger.error("Aborting, no report written: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
