from __future__ import annotations

import logging

from ..enums import ExerciseType, GreekCalculationMethod, PricingMethod
from ..exceptions import ConfigurationError, UnsupportedFeatureError
from ..market_environment import ContractSpec, MarketState
from .bsm import GreekSet, _BSMEuropeanValuation
from .lattice import PriceLattice, _BinomialValuation, _TrinomialValuation
from .params import LatticeParams, ValuationParams

logger = logging.getLogger(__name__)

# ── Implementation registry ─────────────────────────────────────────
# Maps (PricingMethod, ExerciseType) → implementation class.
_VANILLA_REGISTRY: dict[tuple[PricingMethod, ExerciseType], type] = {
    (PricingMethod.BSM, ExerciseType.EUROPEAN): _BSMEuropeanValuation,
    (PricingMethod.BINOMIAL, ExerciseType.EUROPEAN): _BinomialValuation,
    (PricingMethod.BINOMIAL, ExerciseType.AMERICAN): _BinomialValuation,
    (PricingMethod.TRINOMIAL, ExerciseType.EUROPEAN): _TrinomialValuation,
    (PricingMethod.TRINOMIAL, ExerciseType.AMERICAN): _TrinomialValuation,
}

_LATTICE_METHODS = (PricingMethod.BINOMIAL, PricingMethod.TRINOMIAL)


class OptionValuation:
    """Single-option valuation dispatcher.

    Routes to the appropriate engine based on the PricingMethod parameter.

    Attributes
    ==========
    contract: ContractSpec
        Contract terms (type, strike, maturity, exercise style).
    market: MarketState
        Spot, volatility, rate, dividend yield and valuation time.
    pricing_method: PricingMethod
        BSM (closed form), BINOMIAL or TRINOMIAL.
    params: LatticeParams or None
        Lattice configuration; required for tree methods, must be None for BSM.

    Methods
    =======
    present_value:
        Returns the present value of the option.
    solve:
        Returns the engine's raw output (price lattice for tree methods).
    greeks:
        Full closed-form Greek set (BSM only).
    delta, gamma, theta, vega, rho:
        First/second order sensitivities. ANALYTICAL for BSM, TREE for
        delta/gamma/theta on lattices, NUMERICAL (bump-and-revalue) otherwise.
    """

    def __init__(
        self,
        contract: ContractSpec,
        market: MarketState,
        pricing_method: PricingMethod,
        params: ValuationParams | None = None,
    ) -> None:
        if not isinstance(contract, ContractSpec):
            raise ConfigurationError(
                f"contract must be ContractSpec, got {type(contract).__name__}"
            )
        if not isinstance(market, MarketState):
            raise ConfigurationError(f"market must be MarketState, got {type(market).__name__}")
        # Validate pricing_method early; comparisons below rely on enum identity
        if not isinstance(pricing_method, PricingMethod):
            raise ConfigurationError(
                f"pricing_method must be PricingMethod enum, got {type(pricing_method).__name__}"
            )
        self.contract = contract
        self.market = market
        self.pricing_method = pricing_method
        self.params: ValuationParams | None = self._validate_and_default_params(
            pricing_method=pricing_method, params=params
        )

        # raises DomainError when the valuation time is past maturity
        self.time_to_maturity = market.time_to_maturity(contract)

        impl_cls = _VANILLA_REGISTRY.get((pricing_method, contract.exercise_type))
        if impl_cls is None:
            raise UnsupportedFeatureError(
                "BSM is only applicable to European option valuation. "
                "Select BINOMIAL or TRINOMIAL for American options."
            )
        self._impl = impl_cls(self)

    @staticmethod
    def _validate_and_default_params(
        *,
        pricing_method: PricingMethod,
        params: ValuationParams | None,
    ) -> ValuationParams | None:
        if pricing_method in _LATTICE_METHODS:
            if not isinstance(params, LatticeParams):
                raise ConfigurationError(
                    f"pricing_method={pricing_method.name} requires params=LatticeParams"
                )
            return params

        if params is not None:
            raise ConfigurationError(
                f"pricing_method={pricing_method.name} does not accept valuation params"
            )
        return None

    def solve(self) -> float | PriceLattice:
        """Run the pricing method's core solver and return its raw output.

        - Binomial / trinomial: the full price lattice
        - BSM: scalar option value
        """
        solver = getattr(self._impl, "solve", None)
        if solver is None:
            return self.present_value()
        return solver()

    def present_value(self) -> float:
        """Calculate present value of the option."""
        pv = float(self._impl.present_value())
        logger.debug(
            "PV method=%s exercise=%s pv=%.8g",
            self.pricing_method.name,
            self.contract.exercise_type.name,
            pv,
        )
        return pv

    def greeks(self) -> GreekSet:
        """All twelve closed-form Greeks (BSM only)."""
        if self.pricing_method is not PricingMethod.BSM:
            raise UnsupportedFeatureError(
                "The full Greek set is only available for the BSM pricing method."
            )
        return self._impl.greeks()

    def _resolve_greek_method(
        self,
        greek_calc_method: GreekCalculationMethod | None,
        *,
        tree_capable: bool = False,
    ) -> GreekCalculationMethod:
        """Resolve the effective greek calculation method, validating compatibility.

        Parameters
        ----------
        tree_capable : bool
            Whether tree extraction is available for this greek (delta, gamma,
            theta; not vega or rho).
        """
        if greek_calc_method is not None and not isinstance(
            greek_calc_method, GreekCalculationMethod
        ):
            raise ConfigurationError(
                f"greek_calc_method must be GreekCalculationMethod enum, "
                f"got {type(greek_calc_method).__name__}"
            )

        if greek_calc_method is None:
            if self.pricing_method is PricingMethod.BSM:
                return GreekCalculationMethod.ANALYTICAL
            if tree_capable:
                return GreekCalculationMethod.TREE
            return GreekCalculationMethod.NUMERICAL

        if (
            greek_calc_method is GreekCalculationMethod.ANALYTICAL
            and self.pricing_method is not PricingMethod.BSM
        ):
            raise UnsupportedFeatureError(
                "Analytical greeks are only available for the BSM pricing method."
            )
        if greek_calc_method is GreekCalculationMethod.TREE:
            if self.pricing_method not in _LATTICE_METHODS:
                raise UnsupportedFeatureError(
                    "Tree greeks are only available for BINOMIAL/TRINOMIAL pricing."
                )
            if not tree_capable:
                raise UnsupportedFeatureError(
                    "Only delta, gamma and theta support GreekCalculationMethod.TREE."
                )
        return greek_calc_method

    def _bumped(self, **changes) -> OptionValuation:
        """Sibling valuation on a modified market for bump-and-revalue."""
        return OptionValuation(
            contract=self.contract,
            market=self.market.replace(**changes),
            pricing_method=self.pricing_method,
            params=self.params,
        )

    def delta(
        self,
        epsilon: float | None = None,
        greek_calc_method: GreekCalculationMethod | None = None,
    ) -> float:
        """Calculate option delta.

        Parameters
        ==========
        epsilon: float, optional
            Spot bump for the NUMERICAL method (default 1% of spot).
        greek_calc_method: GreekCalculationMethod, optional
            None defaults to ANALYTICAL for BSM and TREE for lattices.
        """
        method = self._resolve_greek_method(greek_calc_method, tree_capable=True)
        if method is not GreekCalculationMethod.NUMERICAL:
            return self._impl.delta()

        if epsilon is None:
            epsilon = self.market.spot / 100
        value_left = self._bumped(spot=self.market.spot - epsilon).present_value()
        value_right = self._bumped(spot=self.market.spot + epsilon).present_value()
        return (value_right - value_left) / (2 * epsilon)

    def gamma(
        self,
        epsilon: float | None = None,
        greek_calc_method: GreekCalculationMethod | None = None,
    ) -> float:
        """Calculate option gamma (see :meth:`delta` for the method options)."""
        method = self._resolve_greek_method(greek_calc_method, tree_capable=True)
        if method is not GreekCalculationMethod.NUMERICAL:
            return self._impl.gamma()

        if epsilon is None:
            epsilon = self.market.spot / 100
        value_left = self._bumped(spot=self.market.spot - epsilon).present_value()
        value_right = self._bumped(spot=self.market.spot + epsilon).present_value()
        value_center = self.present_value()
        return (value_right - 2 * value_center + value_left) / (epsilon**2)

    def theta(
        self,
        epsilon: float | None = None,
        greek_calc_method: GreekCalculationMethod | None = None,
    ) -> float:
        """Calculate option theta per year of calendar time.

        The NUMERICAL method moves the valuation time forward by *epsilon*
        years (default 1/365) and takes a forward difference.
        """
        method = self._resolve_greek_method(greek_calc_method, tree_capable=True)
        if method is not GreekCalculationMethod.NUMERICAL:
            return self._impl.theta()

        if epsilon is None:
            epsilon = min(1.0 / 365.0, 0.5 * self.time_to_maturity)
        later = self._bumped(valuation_time=self.market.valuation_time + epsilon)
        return (later.present_value() - self.present_value()) / epsilon

    def vega(
        self,
        epsilon: float = 0.01,
        greek_calc_method: GreekCalculationMethod | None = None,
    ) -> float:
        """Calculate option vega per 1.0 (i.e. 100 vol points) of volatility."""
        method = self._resolve_greek_method(greek_calc_method)
        if method is GreekCalculationMethod.ANALYTICAL:
            return self._impl.vega()

        vol = self.market.volatility
        epsilon = min(epsilon, 0.5 * vol)
        value_left = self._bumped(volatility=vol - epsilon).present_value()
        value_right = self._bumped(volatility=vol + epsilon).present_value()
        return (value_right - value_left) / (2 * epsilon)

    def rho(
        self,
        epsilon: float = 1.0e-4,
        greek_calc_method: GreekCalculationMethod | None = None,
    ) -> float:
        """Calculate option rho per 1.0 of the continuously compounded rate."""
        method = self._resolve_greek_method(greek_calc_method)
        if method is GreekCalculationMethod.ANALYTICAL:
            return self._impl.greeks().rho

        rate = self.market.risk_free_rate
        value_left = self._bumped(risk_free_rate=rate - epsilon).present_value()
        value_right = self._bumped(risk_free_rate=rate + epsilon).present_value()
        return (value_right - value_left) / (2 * epsilon)
