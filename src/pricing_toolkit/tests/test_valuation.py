"""Tests for the valuation dispatcher and the contract/market containers."""

import dataclasses

import numpy as np
import pytest

from pricing_toolkit.enums import (
    ExerciseType,
    GreekCalculationMethod,
    OptionType,
    PricingMethod,
    TreeCalibration,
)
from pricing_toolkit.exceptions import (
    ConfigurationError,
    DomainError,
    InvalidStepCountError,
    UnsupportedFeatureError,
)
from pricing_toolkit.market_environment import ContractSpec, MarketState
from pricing_toolkit.valuation import (
    LatticeParams,
    MonteCarloParams,
    OptionValuation,
    bsm_price,
)
from pricing_toolkit.valuation.bsm import _BSMEuropeanValuation
from pricing_toolkit.valuation.lattice import _BinomialValuation, _TrinomialValuation


class TestContractSpec:
    """Tests for ContractSpec dataclass."""

    def test_valid_contract(self):
        spec = ContractSpec(OptionType.CALL, 100.0, 1.0, ExerciseType.EUROPEAN)
        assert spec.option_type is OptionType.CALL
        assert spec.exercise_type is ExerciseType.EUROPEAN
        assert spec.strike == 100.0

    def test_invalid_option_type(self):
        with pytest.raises(ConfigurationError, match="option_type must be OptionType enum"):
            ContractSpec("CALL", 100.0, 1.0, ExerciseType.EUROPEAN)

    def test_invalid_exercise_type(self):
        with pytest.raises(ConfigurationError, match="exercise_type"):
            ContractSpec(OptionType.CALL, 100.0, 1.0, "american")

    @pytest.mark.parametrize("strike,maturity", [(0.0, 1.0), (-5.0, 1.0), (100.0, 0.0)])
    def test_non_positive_terms(self, strike, maturity):
        with pytest.raises(DomainError):
            ContractSpec(OptionType.PUT, strike, maturity, ExerciseType.EUROPEAN)

    def test_non_numeric_strike(self):
        with pytest.raises(ConfigurationError):
            ContractSpec(OptionType.PUT, None, 1.0, ExerciseType.EUROPEAN)

    def test_frozen(self):
        spec = ContractSpec(OptionType.CALL, 100.0, 1.0, ExerciseType.EUROPEAN)
        with pytest.raises(dataclasses.FrozenInstanceError):
            spec.strike = 90.0

    def test_exercise_type_has_no_default(self):
        with pytest.raises(TypeError):
            ContractSpec(OptionType.PUT, 100.0, 1.0)


class TestMarketState:
    def test_replace_returns_copy(self, market):
        bumped = market.replace(spot=105.0)
        assert bumped.spot == 105.0
        assert market.spot == 100.0
        assert bumped.volatility == market.volatility

    def test_replace_validates(self, market):
        with pytest.raises(DomainError):
            market.replace(volatility=-0.1)

    @pytest.mark.parametrize(
        "field,value",
        [("spot", 0.0), ("volatility", 0.0), ("dividend_yield", -0.01), ("valuation_time", -1.0)],
    )
    def test_invalid_fields(self, field, value):
        kwargs = {"spot": 100.0, "volatility": 0.2, "risk_free_rate": 0.05, field: value}
        with pytest.raises(DomainError):
            MarketState(**kwargs)

    def test_nan_rate_rejected(self):
        with pytest.raises(DomainError):
            MarketState(spot=100.0, volatility=0.2, risk_free_rate=float("nan"))

    def test_negative_rate_allowed(self):
        assert MarketState(spot=100.0, volatility=0.2, risk_free_rate=-0.01).risk_free_rate == -0.01

    def test_time_to_maturity(self, euro_call_contract):
        market = MarketState(spot=100.0, volatility=0.2, risk_free_rate=0.05, valuation_time=0.25)
        assert market.time_to_maturity(euro_call_contract) == pytest.approx(0.75)

    def test_valuation_after_maturity(self, euro_call_contract):
        market = MarketState(spot=100.0, volatility=0.2, risk_free_rate=0.05, valuation_time=1.5)
        with pytest.raises(DomainError):
            market.time_to_maturity(euro_call_contract)


class TestOptionValuationDispatch:
    @pytest.mark.parametrize(
        "method,exercise,impl",
        [
            (PricingMethod.BSM, ExerciseType.EUROPEAN, _BSMEuropeanValuation),
            (PricingMethod.BINOMIAL, ExerciseType.EUROPEAN, _BinomialValuation),
            (PricingMethod.BINOMIAL, ExerciseType.AMERICAN, _BinomialValuation),
            (PricingMethod.TRINOMIAL, ExerciseType.EUROPEAN, _TrinomialValuation),
            (PricingMethod.TRINOMIAL, ExerciseType.AMERICAN, _TrinomialValuation),
        ],
    )
    def test_registry_routes(self, market, method, exercise, impl):
        contract = ContractSpec(OptionType.PUT, 100.0, 1.0, exercise)
        params = None
        if method is not PricingMethod.BSM:
            params = LatticeParams(TreeCalibration.CRR, num_steps=10)
        val = OptionValuation(contract, market, method, params)
        assert isinstance(val._impl, impl)

    def test_bsm_american_unsupported(self, market, american_put_contract):
        with pytest.raises(UnsupportedFeatureError):
            OptionValuation(american_put_contract, market, PricingMethod.BSM)

    def test_string_pricing_method_rejected(self, market, euro_call_contract):
        with pytest.raises(ConfigurationError, match="pricing_method"):
            OptionValuation(euro_call_contract, market, "bsm")

    def test_bsm_rejects_params(self, market, euro_call_contract):
        with pytest.raises(ConfigurationError):
            OptionValuation(
                euro_call_contract, market, PricingMethod.BSM, LatticeParams(TreeCalibration.CRR)
            )

    def test_lattice_rejects_mc_params(self, market, euro_call_contract):
        with pytest.raises(ConfigurationError):
            OptionValuation(
                euro_call_contract, market, PricingMethod.TRINOMIAL, MonteCarloParams()
            )

    @pytest.mark.parametrize("method", [PricingMethod.BINOMIAL, PricingMethod.TRINOMIAL])
    def test_lattice_requires_params(self, market, euro_call_contract, method):
        with pytest.raises(ConfigurationError, match="LatticeParams"):
            OptionValuation(euro_call_contract, market, method)

    def test_integral_float_step_count(self, market, euro_call_contract):
        params = LatticeParams(TreeCalibration.CRR, num_steps=100.0)
        assert params.num_steps == 100
        assert isinstance(params.num_steps, int)
        pv = OptionValuation(
            euro_call_contract, market, PricingMethod.BINOMIAL, params
        ).present_value()
        expected = OptionValuation(
            euro_call_contract,
            market,
            PricingMethod.BINOMIAL,
            LatticeParams(TreeCalibration.CRR, num_steps=100),
        ).present_value()
        assert pv == expected

    def test_lattice_params_require_calibration(self):
        with pytest.raises(TypeError):
            LatticeParams()
        with pytest.raises(TypeError):
            LatticeParams(num_steps=50)

    @pytest.mark.parametrize("num_steps", [100.5, True, "100", 0.0])
    def test_bad_step_counts_rejected(self, num_steps):
        with pytest.raises(InvalidStepCountError):
            LatticeParams(TreeCalibration.CRR, num_steps=num_steps)

    def test_wrong_container_types(self, market, euro_call_contract):
        with pytest.raises(ConfigurationError):
            OptionValuation({"strike": 100.0}, market, PricingMethod.BSM)
        with pytest.raises(ConfigurationError):
            OptionValuation(euro_call_contract, {"spot": 100.0}, PricingMethod.BSM)

    def test_valuation_after_maturity(self, euro_call_contract):
        market = MarketState(spot=100.0, volatility=0.2, risk_free_rate=0.05, valuation_time=2.0)
        with pytest.raises(DomainError):
            OptionValuation(euro_call_contract, market, PricingMethod.BSM)

    def test_remaining_life_used(self, euro_call_contract):
        market = MarketState(spot=100.0, volatility=0.2, risk_free_rate=0.05, valuation_time=0.5)
        pv = OptionValuation(euro_call_contract, market, PricingMethod.BSM).present_value()
        assert pv == pytest.approx(bsm_price(OptionType.CALL, 100.0, 100.0, 0.2, 0.0, 0.05, 0.5))

    def test_bsm_solve_is_present_value(self, market, euro_put_contract):
        val = OptionValuation(euro_put_contract, market, PricingMethod.BSM)
        assert val.solve() == pytest.approx(val.present_value())


class TestMethodEquivalence:
    @pytest.mark.parametrize("method", [PricingMethod.BINOMIAL, PricingMethod.TRINOMIAL])
    @pytest.mark.parametrize("option_type", [OptionType.CALL, OptionType.PUT])
    def test_european_methods_agree(self, dividend_market, method, option_type):
        contract = ContractSpec(option_type, 105.0, 1.0, ExerciseType.EUROPEAN)
        analytic = OptionValuation(contract, dividend_market, PricingMethod.BSM).present_value()
        tree = OptionValuation(
            contract, dividend_market, method, LatticeParams(TreeCalibration.CRR, num_steps=400)
        ).present_value()
        assert np.isclose(tree, analytic, atol=1e-2)

    def test_american_put_premium(self, market):
        euro = ContractSpec(OptionType.PUT, 110.0, 1.0, ExerciseType.EUROPEAN)
        amer = ContractSpec(OptionType.PUT, 110.0, 1.0, ExerciseType.AMERICAN)
        params = LatticeParams(TreeCalibration.CRR, num_steps=300)
        pv_euro = OptionValuation(euro, market, PricingMethod.BINOMIAL, params).present_value()
        pv_amer = OptionValuation(amer, market, PricingMethod.BINOMIAL, params).present_value()
        assert pv_amer > pv_euro


class TestGreekMethodResolution:
    def test_string_greek_method_rejected(self, market, euro_call_contract):
        val = OptionValuation(euro_call_contract, market, PricingMethod.BSM)
        with pytest.raises(ConfigurationError):
            val.delta(greek_calc_method="numerical")

    def test_tree_method_rejected_for_bsm(self, market, euro_call_contract):
        val = OptionValuation(euro_call_contract, market, PricingMethod.BSM)
        with pytest.raises(UnsupportedFeatureError):
            val.gamma(greek_calc_method=GreekCalculationMethod.TREE)

    def test_tree_rho_is_numerical(self, market, euro_call_contract):
        bsm = OptionValuation(euro_call_contract, market, PricingMethod.BSM)
        tree = OptionValuation(
            euro_call_contract,
            market,
            PricingMethod.BINOMIAL,
            LatticeParams(TreeCalibration.CRR, num_steps=400),
        )
        assert np.isclose(tree.rho(), bsm.rho(), rtol=1e-2)

    def test_bumps_do_not_mutate_market(self, market, euro_call_contract):
        val = OptionValuation(euro_call_contract, market, PricingMethod.BSM)
        val.vega(greek_calc_method=GreekCalculationMethod.NUMERICAL)
        val.theta(greek_calc_method=GreekCalculationMethod.NUMERICAL)
        assert val.market == market
