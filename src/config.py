from __future__ import annotations

from decimal import Decimal
from functools import cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from domain.calculator import CalculationConfig
from domain.ledger import DEFAULT_PRECISION, AccountingMethod

PROJECT_ROOT = Path(__file__).resolve().parents[1]


class AppSettings(BaseSettings):
    base_asset: str = "EUR"
    accounting_method: AccountingMethod = AccountingMethod.FIFO
    currency_precision: Decimal = DEFAULT_PRECISION
    coinapi_api_key: str | None = None
    price_cache_dir: Path = PROJECT_ROOT / ".cache"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    def calculation_config(self) -> CalculationConfig:
        return CalculationConfig(
            base_asset=self.base_asset,
            method=self.accounting_method,
            precision=self.currency_precision,
        )


@cache
def config() -> AppSettings:
    return AppSettings()


def load_settings(env_file: Path | None = None) -> AppSettings:
    if env_file is None:
        return config()
    return AppSettings(_env_file=env_file)  # type: ignore[call-arg]
