"""Black-Scholes-Merton option valuation with continuous dividend yield.

Every public function takes the same seven arguments::

    (option_type, spot, strike, volatility, dividend_yield, risk_free_rate, time_to_maturity)

and shares one set of pre-computed inputs (discount factors, d1, d2).

Greeks are raw derivatives: per 1.0 of volatility, per 1.0 of rate and per
year. Time sensitivities (theta, charm, veta) are taken with respect to
calendar time, i.e. they are minus the derivative with respect to
time-to-maturity.
"""

from __future__ import annotations
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Callable, NamedTuple
import numpy as np
from scipy.stats import norm
from ..enums import OptionType
from ..exceptions import ConfigurationError
from ..utils import (
    ensure_enum,
    ensure_finite,
    ensure_finite_result,
    ensure_non_negative,
    ensure_positive,
)

if TYPE_CHECKING:
    from .core import OptionValuation


GREEK_NAMES = (
    "delta",
    "gamma",
    "theta",
    "vega",
    "rho",
    "vanna",
    "volga",
    "charm",
    "veta",
    "speed",
    "zomma",
    "ultima",
)


class _BSMInputs(NamedTuple):
    """Pre-computed inputs shared across all BSM Greek calculations."""

    phi: float
    spot: float
    strike: float
    volatility: float
    time_to_maturity: float
    risk_free_rate: float
    dividend_yield: float
    df_r: float
    df_q: float
    d1: float
    d2: float


@dataclass(frozen=True, slots=True)
class GreekSet:
    """All closed-form sensitivities for one (contract, market) pair."""

    delta: float
    gamma: float
    theta: float
    vega: float
    rho: float
    vanna: float
    volga: float
    charm: float
    veta: float
    speed: float
    zomma: float
    ultima: float

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


def _calculate_d_values(
    spot: float,
    strike: float,
    time_to_maturity: float,
    volatility: float,
    risk_free_rate: float,
    dividend_yield: float,
) -> tuple[float, float]:
    """Calculate d1 and d2 for BSM model.

    At expiry the deterministic limit is returned:
    d1 = d2 = +inf when spot > strike, -inf when spot < strike, 0 at the money.
    """
    if time_to_maturity == 0.0:
        if spot > strike:
            return np.inf, np.inf
        elif spot < strike:
            return -np.inf, -np.inf
        return 0.0, 0.0

    denominator = volatility * np.sqrt(time_to_maturity)
    numerator = np.log(spot / strike) + time_to_maturity * (
        risk_free_rate - dividend_yield + 0.5 * volatility**2
    )
    d1 = numerator / denominator
    d2 = d1 - denominator
    return d1, d2


def _bsm_inputs(
    option_type: OptionType,
    spot: float,
    strike: float,
    volatility: float,
    dividend_yield: float,
    risk_free_rate: float,
    time_to_maturity: float,
) -> _BSMInputs:
    """Validate the seven pricing arguments and compute the shared terms."""
    ensure_enum(option_type, OptionType, "option_type")
    spot = ensure_positive(spot, "spot")
    strike = ensure_positive(strike, "strike")
    volatility = ensure_positive(volatility, "volatility")
    dividend_yield = ensure_non_negative(dividend_yield, "dividend_yield")
    risk_free_rate = ensure_finite(risk_free_rate, "risk_free_rate")
    time_to_maturity = ensure_non_negative(time_to_maturity, "time_to_maturity")

    d1, d2 = _calculate_d_values(
        spot, strike, time_to_maturity, volatility, risk_free_rate, dividend_yield
    )
    return _BSMInputs(
        phi=option_type.phi,
        spot=spot,
        strike=strike,
        volatility=volatility,
        time_to_maturity=time_to_maturity,
        risk_free_rate=risk_free_rate,
        dividend_yield=dividend_yield,
        df_r=float(np.exp(-risk_free_rate * time_to_maturity)),
        df_q=float(np.exp(-dividend_yield * time_to_maturity)),
        d1=d1,
        d2=d2,
    )


# ---------------------------------------------------------------------------
# Formulas on pre-computed inputs
# ---------------------------------------------------------------------------


def _price(inp: _BSMInputs) -> float:
    phi = inp.phi
    return phi * inp.df_q * inp.spot * norm.cdf(phi * inp.d1) - phi * inp.strike * inp.df_r * norm.cdf(
        phi * inp.d2
    )


def _delta(inp: _BSMInputs) -> float:
    if inp.time_to_maturity == 0.0:
        return inp.phi if inp.phi * (inp.spot - inp.strike) > 0 else 0.0
    return inp.phi * inp.df_q * norm.cdf(inp.phi * inp.d1)


def _gamma(inp: _BSMInputs) -> float:
    if inp.time_to_maturity == 0.0:
        return 0.0
    sqrt_t = np.sqrt(inp.time_to_maturity)
    return inp.df_q * norm.pdf(inp.d1) / (inp.spot * inp.volatility * sqrt_t)


def _vega(inp: _BSMInputs) -> float:
    if inp.time_to_maturity == 0.0:
        return 0.0
    return inp.spot * inp.df_q * norm.pdf(inp.d1) * np.sqrt(inp.time_to_maturity)


def _theta(inp: _BSMInputs) -> float:
    if inp.time_to_maturity == 0.0:
        return 0.0
    phi = inp.phi
    decay = -(
        inp.spot * inp.df_q * norm.pdf(inp.d1) * inp.volatility / (2 * np.sqrt(inp.time_to_maturity))
    )
    carry = -phi * inp.risk_free_rate * inp.strike * inp.df_r * norm.cdf(phi * inp.d2)
    income = phi * inp.dividend_yield * inp.spot * inp.df_q * norm.cdf(phi * inp.d1)
    return decay + carry + income


def _rho(inp: _BSMInputs) -> float:
    if inp.time_to_maturity == 0.0:
        return 0.0
    phi = inp.phi
    return phi * inp.strike * inp.time_to_maturity * inp.df_r * norm.cdf(phi * inp.d2)


def _vanna(inp: _BSMInputs) -> float:
    if inp.time_to_maturity == 0.0:
        return 0.0
    return -inp.df_q * norm.pdf(inp.d1) * inp.d2 / inp.volatility


def _volga(inp: _BSMInputs) -> float:
    if inp.time_to_maturity == 0.0:
        return 0.0
    return _vega(inp) * inp.d1 * inp.d2 / inp.volatility


def _charm(inp: _BSMInputs) -> float:
    if inp.time_to_maturity == 0.0:
        return 0.0
    phi = inp.phi
    tau = inp.time_to_maturity
    sig_sqrt_t = inp.volatility * np.sqrt(tau)
    drift_term = (
        2 * (inp.risk_free_rate - inp.dividend_yield) * tau - inp.d2 * sig_sqrt_t
    ) / (2 * tau * sig_sqrt_t)
    return phi * inp.dividend_yield * inp.df_q * norm.cdf(phi * inp.d1) - inp.df_q * norm.pdf(
        inp.d1
    ) * drift_term


def _veta(inp: _BSMInputs) -> float:
    if inp.time_to_maturity == 0.0:
        return 0.0
    tau = inp.time_to_maturity
    sig_sqrt_t = inp.volatility * np.sqrt(tau)
    bracket = (
        inp.dividend_yield
        + (inp.risk_free_rate - inp.dividend_yield) * inp.d1 / sig_sqrt_t
        - (1 + inp.d1 * inp.d2) / (2 * tau)
    )
    return inp.spot * inp.df_q * norm.pdf(inp.d1) * np.sqrt(tau) * bracket


def _speed(inp: _BSMInputs) -> float:
    if inp.time_to_maturity == 0.0:
        return 0.0
    sig_sqrt_t = inp.volatility * np.sqrt(inp.time_to_maturity)
    return -_gamma(inp) / inp.spot * (inp.d1 / sig_sqrt_t + 1)


def _zomma(inp: _BSMInputs) -> float:
    if inp.time_to_maturity == 0.0:
        return 0.0
    return _gamma(inp) * (inp.d1 * inp.d2 - 1) / inp.volatility


def _ultima(inp: _BSMInputs) -> float:
    if inp.time_to_maturity == 0.0:
        return 0.0
    d1, d2 = inp.d1, inp.d2
    return -_vega(inp) / inp.volatility**2 * (d1 * d2 * (1 - d1 * d2) + d1**2 + d2**2)


_GREEK_FORMULAS: dict[str, Callable[[_BSMInputs], float]] = {
    "delta": _delta,
    "gamma": _gamma,
    "theta": _theta,
    "vega": _vega,
    "rho": _rho,
    "vanna": _vanna,
    "volga": _volga,
    "charm": _charm,
    "veta": _veta,
    "speed": _speed,
    "zomma": _zomma,
    "ultima": _ultima,
}


def _greek_set(inp: _BSMInputs) -> GreekSet:
    return GreekSet(
        **{name: ensure_finite_result(fn(inp), name) for name, fn in _GREEK_FORMULAS.items()}
    )


# ---------------------------------------------------------------------------
# Public scalar API
# ---------------------------------------------------------------------------


def bsm_price(
    option_type: OptionType,
    spot: float,
    strike: float,
    volatility: float,
    dividend_yield: float,
    risk_free_rate: float,
    time_to_maturity: float,
) -> float:
    """Closed-form Black-Scholes-Merton price of a European option.

    .. math::

        V = \\phi e^{-q\\tau} S N(\\phi d_1) - \\phi K e^{-r\\tau} N(\\phi d_2)

    with :math:`\\phi = +1` for calls and :math:`-1` for puts. At
    ``time_to_maturity == 0`` the intrinsic value is returned.

    Raises
    ------
    DomainError
        If spot, strike or volatility is not positive, time_to_maturity or
        dividend_yield is negative, or any input/result is non-finite.
    """
    inp = _bsm_inputs(
        option_type, spot, strike, volatility, dividend_yield, risk_free_rate, time_to_maturity
    )
    return ensure_finite_result(_price(inp), "bsm_price")


def bsm_greeks(
    option_type: OptionType,
    spot: float,
    strike: float,
    volatility: float,
    dividend_yield: float,
    risk_free_rate: float,
    time_to_maturity: float,
) -> GreekSet:
    """Compute the full Greek suite from a single set of d1/d2 terms."""
    inp = _bsm_inputs(
        option_type, spot, strike, volatility, dividend_yield, risk_free_rate, time_to_maturity
    )
    return _greek_set(inp)


def bsm_greek(
    name: str,
    option_type: OptionType,
    spot: float,
    strike: float,
    volatility: float,
    dividend_yield: float,
    risk_free_rate: float,
    time_to_maturity: float,
) -> float:
    """Compute a single Greek by name (see ``GREEK_NAMES``)."""
    try:
        formula = _GREEK_FORMULAS[name]
    except KeyError:
        raise ConfigurationError(f"Unknown greek '{name}'; expected one of {GREEK_NAMES}") from None
    inp = _bsm_inputs(
        option_type, spot, strike, volatility, dividend_yield, risk_free_rate, time_to_maturity
    )
    return ensure_finite_result(formula(inp), name)


def delta(option_type, spot, strike, volatility, dividend_yield, risk_free_rate, time_to_maturity):
    """dV/dS = phi e^{-q tau} N(phi d1)."""
    return bsm_greek(
        "delta", option_type, spot, strike, volatility, dividend_yield, risk_free_rate, time_to_maturity
    )


def gamma(option_type, spot, strike, volatility, dividend_yield, risk_free_rate, time_to_maturity):
    """d2V/dS2 = e^{-q tau} n(d1) / (S sigma sqrt(tau))."""
    return bsm_greek(
        "gamma", option_type, spot, strike, volatility, dividend_yield, risk_free_rate, time_to_maturity
    )


def theta(option_type, spot, strike, volatility, dividend_yield, risk_free_rate, time_to_maturity):
    """dV/dt (calendar time, per year)."""
    return bsm_greek(
        "theta", option_type, spot, strike, volatility, dividend_yield, risk_free_rate, time_to_maturity
    )


def vega(option_type, spot, strike, volatility, dividend_yield, risk_free_rate, time_to_maturity):
    """dV/dsigma = S e^{-q tau} n(d1) sqrt(tau)."""
    return bsm_greek(
        "vega", option_type, spot, strike, volatility, dividend_yield, risk_free_rate, time_to_maturity
    )


def rho(option_type, spot, strike, volatility, dividend_yield, risk_free_rate, time_to_maturity):
    """dV/dr = phi K tau e^{-r tau} N(phi d2)."""
    return bsm_greek(
        "rho", option_type, spot, strike, volatility, dividend_yield, risk_free_rate, time_to_maturity
    )


def vanna(option_type, spot, strike, volatility, dividend_yield, risk_free_rate, time_to_maturity):
    """d2V/dS dsigma."""
    return bsm_greek(
        "vanna", option_type, spot, strike, volatility, dividend_yield, risk_free_rate, time_to_maturity
    )


def volga(option_type, spot, strike, volatility, dividend_yield, risk_free_rate, time_to_maturity):
    """d2V/dsigma2 (a.k.a. vomma)."""
    return bsm_greek(
        "volga", option_type, spot, strike, volatility, dividend_yield, risk_free_rate, time_to_maturity
    )


def charm(option_type, spot, strike, volatility, dividend_yield, risk_free_rate, time_to_maturity):
    """d(delta)/dt."""
    return bsm_greek(
        "charm", option_type, spot, strike, volatility, dividend_yield, risk_free_rate, time_to_maturity
    )


def veta(option_type, spot, strike, volatility, dividend_yield, risk_free_rate, time_to_maturity):
    """d(vega)/dt."""
    return bsm_greek(
        "veta", option_type, spot, strike, volatility, dividend_yield, risk_free_rate, time_to_maturity
    )


def speed(option_type, spot, strike, volatility, dividend_yield, risk_free_rate, time_to_maturity):
    """d(gamma)/dS."""
    return bsm_greek(
        "speed", option_type, spot, strike, volatility, dividend_yield, risk_free_rate, time_to_maturity
    )


def zomma(option_type, spot, strike, volatility, dividend_yield, risk_free_rate, time_to_maturity):
    """d(gamma)/dsigma."""
    return bsm_greek(
        "zomma", option_type, spot, strike, volatility, dividend_yield, risk_free_rate, time_to_maturity
    )


def ultima(option_type, spot, strike, volatility, dividend_yield, risk_free_rate, time_to_maturity):
    """d(volga)/dsigma."""
    return bsm_greek(
        "ultima", option_type, spot, strike, volatility, dividend_yield, risk_free_rate, time_to_maturity
    )


# ---------------------------------------------------------------------------
# OptionValuation implementation
# ---------------------------------------------------------------------------


class _BSMEuropeanValuation:
    """Black-Scholes-Merton European option valuation."""

    def __init__(self, parent: OptionValuation) -> None:
        self.parent = parent

    def _bsm_inputs(self) -> _BSMInputs:
        contract = self.parent.contract
        market = self.parent.market
        return _bsm_inputs(
            contract.option_type,
            market.spot,
            contract.strike,
            market.volatility,
            market.dividend_yield,
            market.risk_free_rate,
            market.time_to_maturity(contract),
        )

    def present_value(self) -> float:
        """Calculate present value using BSM formula."""
        return ensure_finite_result(_price(self._bsm_inputs()), "bsm_price")

    def greeks(self) -> GreekSet:
        return _greek_set(self._bsm_inputs())

    def delta(self) -> float:
        return self.greeks().delta

    def gamma(self) -> float:
        return self.greeks().gamma

    def theta(self) -> float:
        return self.greeks().theta

    def vega(self) -> float:
        return self.greeks().vega
