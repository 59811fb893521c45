"""Edge-case tests: zero vol, near-zero expiry, deep ITM/OTM, extreme rates.

These tests verify that the library behaves correctly (or fails gracefully)
at the boundaries of its input space.
"""

import numpy as np
import pytest

from pricing_toolkit.enums import (
    ExerciseType,
    LatticeKind,
    OptionType,
    PricingMethod,
    TreeCalibration,
)
from pricing_toolkit.exceptions import ArbitrageViolationError, DomainError
from pricing_toolkit.market_environment import ContractSpec, MarketState
from pricing_toolkit.valuation import (
    LatticeParams,
    OptionValuation,
    bsm_greeks,
    bsm_price,
    down_out_put_price,
    lattice_price,
)

RATE = 0.05
LATTICE_METHODS = [PricingMethod.BINOMIAL, PricingMethod.TRINOMIAL]
ALL_METHODS = [PricingMethod.BSM, *LATTICE_METHODS]


def _pv(
    method: PricingMethod,
    *,
    strike: float = 100.0,
    option_type: OptionType = OptionType.CALL,
    exercise: ExerciseType = ExerciseType.EUROPEAN,
    spot: float = 100.0,
    vol: float = 0.20,
    rate: float = RATE,
    q: float = 0.0,
    maturity: float = 0.5,
    valuation_time: float = 0.0,
    num_steps: int = 400,
) -> float:
    market = MarketState(
        spot=spot,
        volatility=vol,
        risk_free_rate=rate,
        dividend_yield=q,
        valuation_time=valuation_time,
    )
    contract = ContractSpec(option_type, strike, maturity, exercise)
    params = LatticeParams(TreeCalibration.CRR, num_steps=num_steps) if method in LATTICE_METHODS else None
    return OptionValuation(contract, market, method, params).present_value()


# ═══════════════════════════════════════════════════════════════════════
#  Zero volatility
# ═══════════════════════════════════════════════════════════════════════


class TestZeroVolatility:
    """Volatility must be strictly positive for every engine."""

    def test_market_rejects_zero_vol(self):
        with pytest.raises(DomainError):
            MarketState(spot=100.0, volatility=0.0, risk_free_rate=RATE)

    def test_bsm_rejects_zero_vol(self):
        with pytest.raises(DomainError):
            bsm_price(OptionType.CALL, 100.0, 100.0, 0.0, 0.0, RATE, 1.0)

    def test_lattice_rejects_zero_vol(self):
        with pytest.raises(DomainError):
            lattice_price(
                TreeCalibration.CRR,
                OptionType.CALL,
                ExerciseType.EUROPEAN,
                100.0,
                100.0,
                0.0,
                0.0,
                RATE,
                1.0,
                10,
                kind=LatticeKind.BINOMIAL,
            )


# ═══════════════════════════════════════════════════════════════════════
#  Low volatility
# ═══════════════════════════════════════════════════════════════════════


class TestLowVolatility:
    """With sigma -> 0 the price tends to the discounted forward intrinsic."""

    @pytest.mark.parametrize("option_type,strike", [(OptionType.CALL, 90.0), (OptionType.PUT, 110.0)])
    def test_itm_near_forward_intrinsic(self, option_type, strike):
        pv = _pv(PricingMethod.BSM, option_type=option_type, strike=strike, vol=1e-4)
        forward = 100.0 * np.exp(RATE * 0.5)
        expected = np.exp(-RATE * 0.5) * max(option_type.phi * (forward - strike), 0.0)
        assert pv == pytest.approx(expected, abs=1e-6)

    @pytest.mark.parametrize("option_type,strike", [(OptionType.CALL, 120.0), (OptionType.PUT, 80.0)])
    def test_otm_near_zero(self, option_type, strike):
        assert _pv(PricingMethod.BSM, option_type=option_type, strike=strike, vol=1e-3) < 1e-10


# ═══════════════════════════════════════════════════════════════════════
#  Near-zero expiry
# ═══════════════════════════════════════════════════════════════════════


class TestNearZeroExpiry:
    @pytest.mark.parametrize(
        "option_type,strike,expected",
        [(OptionType.CALL, 90.0, 10.0), (OptionType.PUT, 110.0, 10.0), (OptionType.CALL, 110.0, 0.0)],
    )
    @pytest.mark.parametrize("method", ALL_METHODS)
    def test_price_tends_to_intrinsic(self, method, option_type, strike, expected):
        # one hour of remaining life
        pv = _pv(
            method,
            option_type=option_type,
            strike=strike,
            maturity=1.0,
            valuation_time=1.0 - 1.0 / (365.0 * 24.0),
            num_steps=50,
        )
        assert pv == pytest.approx(expected, abs=1e-2)

    def test_bsm_at_expiry_is_intrinsic(self):
        assert bsm_price(OptionType.PUT, 95.0, 100.0, 0.2, 0.0, RATE, 0.0) == 5.0
        assert bsm_price(OptionType.CALL, 95.0, 100.0, 0.2, 0.0, RATE, 0.0) == 0.0

    def test_greeks_stay_finite_close_to_expiry(self):
        greeks = bsm_greeks(OptionType.CALL, 100.0, 100.0, 0.2, 0.0, RATE, 1e-6)
        assert all(np.isfinite(v) for v in greeks.as_dict().values())


# ═══════════════════════════════════════════════════════════════════════
#  Deep moneyness
# ═══════════════════════════════════════════════════════════════════════


class TestDeepMoneyness:
    @pytest.mark.parametrize("method", ALL_METHODS)
    def test_deep_itm_call(self, method):
        pv = _pv(method, strike=20.0)
        assert pv == pytest.approx(100.0 - 20.0 * np.exp(-RATE * 0.5), abs=1e-6)

    @pytest.mark.parametrize("method", ALL_METHODS)
    def test_deep_otm_call(self, method):
        assert _pv(method, strike=400.0) < 1e-8

    @pytest.mark.parametrize("method", ALL_METHODS)
    def test_deep_itm_put(self, method):
        pv = _pv(method, strike=400.0, option_type=OptionType.PUT)
        assert pv == pytest.approx(400.0 * np.exp(-RATE * 0.5) - 100.0, abs=1e-6)

    @pytest.mark.parametrize("method", ALL_METHODS)
    def test_deep_otm_put(self, method):
        assert _pv(method, strike=20.0, option_type=OptionType.PUT) < 1e-8


# ═══════════════════════════════════════════════════════════════════════
#  Extreme rates
# ═══════════════════════════════════════════════════════════════════════


class TestExtremeRates:
    @pytest.mark.parametrize("method", ALL_METHODS)
    def test_high_rate_call_value_increases(self, method):
        assert _pv(method, rate=0.20) > _pv(method, rate=0.01)

    @pytest.mark.parametrize("method", ALL_METHODS)
    def test_high_rate_put_value_decreases(self, method):
        put = OptionType.PUT
        assert _pv(method, option_type=put, rate=0.20) < _pv(method, option_type=put, rate=0.01)

    @pytest.mark.parametrize("method", ALL_METHODS)
    def test_negative_rate(self, method):
        pv = _pv(method, rate=-0.02, option_type=OptionType.PUT)
        assert pv == pytest.approx(
            bsm_price(OptionType.PUT, 100.0, 100.0, 0.2, 0.0, -0.02, 0.5), abs=2e-2
        )

    def test_bsm_and_binomial_agree_at_extreme_rate(self):
        bsm = _pv(PricingMethod.BSM, rate=0.30, maturity=1.0)
        tree = _pv(PricingMethod.BINOMIAL, rate=0.30, maturity=1.0, num_steps=1000)
        assert tree == pytest.approx(bsm, abs=1e-2)

    def test_coarse_crr_tree_with_extreme_rate_raises(self):
        with pytest.raises(ArbitrageViolationError):
            _pv(PricingMethod.BINOMIAL, rate=0.5, vol=0.05, maturity=4.0, num_steps=2)


# ═══════════════════════════════════════════════════════════════════════
#  High volatility
# ═══════════════════════════════════════════════════════════════════════


class TestHighVolatility:
    @pytest.mark.parametrize("method", ALL_METHODS)
    def test_high_vol_prices_finite_and_bounded(self, method):
        pv = _pv(method, vol=3.0)
        assert np.isfinite(pv)
        assert 0.0 < pv < 100.0

    def test_call_approaches_spot(self):
        assert 95.0 < bsm_price(OptionType.CALL, 100.0, 100.0, 5.0, 0.0, 0.0, 1.0) < 100.0

    def test_high_vol_call_exceeds_low_vol_call(self):
        assert _pv(PricingMethod.BSM, vol=1.0) > _pv(PricingMethod.BSM, vol=0.1)


# ═══════════════════════════════════════════════════════════════════════
#  American exercise
# ═══════════════════════════════════════════════════════════════════════


class TestAmericanEdgeCases:
    @pytest.mark.parametrize("method", LATTICE_METHODS)
    def test_deep_itm_american_put_is_intrinsic(self, method):
        pv = _pv(
            method,
            option_type=OptionType.PUT,
            exercise=ExerciseType.AMERICAN,
            spot=50.0,
            strike=100.0,
            rate=0.10,
        )
        assert pv == pytest.approx(50.0, abs=1e-9)

    def test_american_put_at_least_intrinsic_everywhere(self):
        for spot in (60.0, 80.0, 100.0, 120.0):
            pv = _pv(
                PricingMethod.BINOMIAL,
                option_type=OptionType.PUT,
                exercise=ExerciseType.AMERICAN,
                spot=spot,
                num_steps=200,
            )
            assert pv >= max(100.0 - spot, 0.0) - 1e-12


# ═══════════════════════════════════════════════════════════════════════
#  Barrier boundaries
# ═══════════════════════════════════════════════════════════════════════


class TestBarrierBoundaries:
    def test_spot_at_barrier_is_worthless(self):
        assert down_out_put_price(90.0, 100.0, 0.3, 0.02, 1.0, 90.0) == 0.0

    def test_barrier_above_strike_is_worthless(self):
        assert down_out_put_price(120.0, 100.0, 0.3, 0.02, 1.0, 105.0) == 0.0

    def test_knock_out_never_exceeds_vanilla(self):
        for barrier in (50.0, 70.0, 85.0, 95.0):
            ko = down_out_put_price(100.0, 100.0, 0.3, 0.02, 1.0, barrier)
            vanilla = bsm_price(OptionType.PUT, 100.0, 100.0, 0.3, 0.0, 0.02, 1.0)
            assert 0.0 <= ko <= vanilla
