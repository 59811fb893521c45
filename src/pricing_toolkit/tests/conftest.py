"""Shared pytest fixtures for pricing_toolkit tests."""

import pytest

from pricing_toolkit.enums import ExerciseType, OptionType
from pricing_toolkit.market_environment import ContractSpec, MarketState


# ---------------------------------------------------------------------------
# Scalar constants
# ---------------------------------------------------------------------------

SPOT = 100.0
STRIKE = 100.0
RATE = 0.05
VOL = 0.20
DIV = 0.0
MATURITY = 1.0


@pytest.fixture()
def spot() -> float:
    return SPOT


@pytest.fixture()
def strike() -> float:
    return STRIKE


@pytest.fixture()
def risk_free_rate() -> float:
    return RATE


@pytest.fixture()
def vol() -> float:
    return VOL


# ---------------------------------------------------------------------------
# Market state
# ---------------------------------------------------------------------------


@pytest.fixture()
def market() -> MarketState:
    """ATM market with no dividends."""
    return MarketState(spot=SPOT, volatility=VOL, risk_free_rate=RATE, dividend_yield=DIV)


@pytest.fixture()
def dividend_market() -> MarketState:
    return MarketState(spot=SPOT, volatility=VOL, risk_free_rate=RATE, dividend_yield=0.03)


# ---------------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------------


@pytest.fixture()
def euro_call_contract() -> ContractSpec:
    return ContractSpec(OptionType.CALL, STRIKE, MATURITY, ExerciseType.EUROPEAN)


@pytest.fixture()
def euro_put_contract() -> ContractSpec:
    return ContractSpec(OptionType.PUT, STRIKE, MATURITY, ExerciseType.EUROPEAN)


@pytest.fixture()
def american_put_contract() -> ContractSpec:
    return ContractSpec(OptionType.PUT, STRIKE, MATURITY, ExerciseType.AMERICAN)
