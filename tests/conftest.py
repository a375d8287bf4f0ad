from decimal import Decimal
from typing import Generator

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from db.models import Base
from domain.calculator import CalculationConfig, CapitalGainsCalculator
from tests.helpers.price_providers import FixedPriceProvider
from tests.helpers.time_utils import DEFAULT_TIME_GEN

engine: Engine = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
session_factory = sessionmaker(engine)


@pytest.fixture(scope="function")
def test_session() -> Generator[Session, None, None]:
    with session_factory() as session:
        yield session


@pytest.fixture(scope="function", autouse=True)
def reset_db() -> Generator[None, None, None]:
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture(autouse=True)
def _reset_default_time_gen() -> None:
    DEFAULT_TIME_GEN.reset()


@pytest.fixture(scope="function")
def price_provider() -> FixedPriceProvider:
    return FixedPriceProvider(
        {
            ("BTC", "EUR"): Decimal("20000"),
            ("ETH", "EUR"): Decimal("1500"),
            ("XTZ", "EUR"): Decimal("2"),
            ("BNB", "EUR"): Decimal("300"),
        }
    )


@pytest.fixture(scope="function")
def calculator(price_provider: FixedPriceProvider) -> CapitalGainsCalculator:
    return CapitalGainsCalculator(price_provider=price_provider, config=CalculationConfig(base_asset="EUR"))
