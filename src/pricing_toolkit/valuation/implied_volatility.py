"""Implied volatility solver on the Black-Scholes-Merton closed form."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Callable

import numpy as np
from scipy import optimize

from ..enums import ImpliedVolMethod, OptionType
from ..exceptions import NonConvergenceError, DomainError
from ..utils import (
    ensure_enum,
    ensure_finite,
    ensure_non_negative,
    ensure_positive,
    forward_price,
    log_timing,
    put_call_parity_rhs,
)
from .bsm import bsm_price, vega as bsm_vega
from .params import ImpliedVolParams


logger = logging.getLogger(__name__)

# Vega below this is treated as vanished (deep ITM/OTM or tau -> 0).
MIN_VEGA = 1.0e-12


@dataclass(frozen=True, slots=True)
class ImpliedVolResult:
    """Result container for implied volatility calculation."""

    implied_vol: float
    iterations: int
    residual: float


def _price_bounds(
    option_type: OptionType,
    spot: float,
    strike: float,
    dividend_yield: float,
    risk_free_rate: float,
    time_to_maturity: float,
) -> tuple[float, float]:
    """No-arbitrage lower/upper bounds for a European option price."""
    carry = dict(
        spot=spot,
        risk_free_rate=risk_free_rate,
        dividend_yield=dividend_yield,
        time_to_maturity=time_to_maturity,
    )
    df_r = np.exp(-risk_free_rate * time_to_maturity)
    call_minus_put = put_call_parity_rhs(strike=strike, **carry)
    if option_type is OptionType.CALL:
        lower = max(0.0, call_minus_put)
        upper = forward_price(**carry) * df_r
    else:  # PUT
        lower = max(0.0, -call_minus_put)
        upper = strike * df_r
    return float(lower), float(upper)


def _newton_raphson(
    *,
    f: Callable[[float], float],
    vega: Callable[[float], float],
    low: float,
    high: float,
    initial: float,
    tol: float,
    max_iter: int,
) -> ImpliedVolResult:
    """Run safeguarded Newton-Raphson updates for implied volatility.

    ``f(vol)`` is the residual ``market_price - model_price``, which decreases
    in vol. The step is ``vol + f(vol) / vega(vol)``. Iteration stops once both
    the price residual and the size of the next Newton step are within ``tol``.
    """
    vol = float(initial)

    for i in range(max_iter):
        diff = f(vol)
        slope = vega(vol)
        if not np.isfinite(slope) or slope < MIN_VEGA:
            raise NonConvergenceError(
                f"Vega vanished (vega={slope:.3g}) at vol={vol:.6g} after {i + 1} iterations; "
                "option is too deep in/out of the money or too close to expiry"
            )
        if abs(diff) <= tol and abs(diff) <= tol * slope:
            return ImpliedVolResult(implied_vol=vol, iterations=i + 1, residual=diff)

        # Residual > 0: model too cheap, root lies above vol.
        if diff > 0:
            low = max(low, vol)
        else:
            high = min(high, vol)

        candidate = vol + diff / slope
        if not np.isfinite(candidate) or candidate <= low or candidate >= high:
            candidate = 0.5 * (low + high)

        vol = candidate

    raise NonConvergenceError(
        f"Newton-Raphson did not converge within {max_iter} iterations (last vol={vol:.6g})"
    )


def _brentq(
    *,
    f: Callable[[float], float],
    low: float,
    high: float,
    tol: float,
    max_iter: int,
) -> ImpliedVolResult:
    f_low, f_high = f(low), f(high)
    if f_low * f_high > 0:
        raise NonConvergenceError("Price not bracketed by vol_bounds; adjust bounds.")
    try:
        implied, info = optimize.brentq(
            f, low, high, xtol=tol * 1.0e-2, maxiter=max_iter, full_output=True
        )
    except RuntimeError as exc:
        raise NonConvergenceError(f"brentq failed: {exc}") from exc
    return ImpliedVolResult(
        implied_vol=float(implied), iterations=int(info.iterations), residual=f(implied)
    )


def solve_implied_volatility(
    option_type: OptionType,
    spot: float,
    strike: float,
    market_price: float,
    dividend_yield: float,
    risk_free_rate: float,
    time_to_maturity: float,
    initial_vol: float = 0.2,
    *,
    params: ImpliedVolParams | None = None,
    log_timings: bool = False,
) -> ImpliedVolResult:
    """Solve for the volatility that reproduces *market_price* under BSM.

    Parameters
    ----------
    option_type
        OptionType.CALL or OptionType.PUT.
    spot, strike, dividend_yield, risk_free_rate, time_to_maturity
        Market and contract scalars.
    market_price
        Observed option price per unit.
    initial_vol
        Newton starting point (default 0.2). Ignored when ``params`` is given.
    params
        Solver configuration (tolerance, iteration cap, bounds, method).
        Newton-Raphson stops only when the price residual and the next
        volatility step are both within ``tol``. Brent stops on its bracket
        width. For flat-vega inputs (deep in/out of the money, short expiry)
        a small price residual alone does not bound the volatility error.
    log_timings
        When ``True``, emit timing logs for the solver section.

    Returns
    -------
    ImpliedVolResult
        Implied volatility, iteration count and final pricing residual.

    Raises
    ------
    DomainError
        If inputs are invalid or *market_price* is outside no-arbitrage bounds.
    NonConvergenceError
        If vega vanishes or the iteration cap is reached.
    """
    ensure_enum(option_type, OptionType, "option_type")
    spot = ensure_positive(spot, "spot")
    strike = ensure_positive(strike, "strike")
    market_price = ensure_finite(market_price, "market_price")
    dividend_yield = ensure_non_negative(dividend_yield, "dividend_yield")
    risk_free_rate = ensure_finite(risk_free_rate, "risk_free_rate")
    time_to_maturity = ensure_positive(time_to_maturity, "time_to_maturity")
    if params is None:
        params = ImpliedVolParams(initial_vol=initial_vol)

    min_price, max_price = _price_bounds(
        option_type, spot, strike, dividend_yield, risk_free_rate, time_to_maturity
    )
    if market_price < min_price - params.tol or market_price > max_price + params.tol:
        raise DomainError(
            f"market_price {market_price:.6g} is outside no-arbitrage bounds "
            f"[{min_price:.6g}, {max_price:.6g}]"
        )

    def f(vol: float) -> float:
        return market_price - bsm_price(
            option_type, spot, strike, vol, dividend_yield, risk_free_rate, time_to_maturity
        )

    def vega_at(vol: float) -> float:
        return bsm_vega(
            option_type, spot, strike, vol, dividend_yield, risk_free_rate, time_to_maturity
        )

    low, high = params.vol_bounds
    with log_timing(logger, "Implied vol solver", log_timings):
        if params.method is ImpliedVolMethod.NEWTON_RAPHSON:
            result = _newton_raphson(
                f=f,
                vega=vega_at,
                low=low,
                high=high,
                initial=params.initial_vol,
                tol=params.tol,
                max_iter=params.max_iter,
            )
        else:
            result = _brentq(f=f, low=low, high=high, tol=params.tol, max_iter=params.max_iter)

    logger.debug(
        "Implied vol method=%s iterations=%d implied_vol=%.6g residual=%.3g",
        params.method.value,
        result.iterations,
        result.implied_vol,
        result.residual,
    )
    return result


def implied_volatility(
    option_type: OptionType,
    spot: float,
    strike: float,
    market_price: float,
    dividend_yield: float,
    risk_free_rate: float,
    time_to_maturity: float,
    initial_vol: float = 0.2,
    *,
    params: ImpliedVolParams | None = None,
) -> float:
    """Implied volatility as a bare float (see :func:`solve_implied_volatility`)."""
    return solve_implied_volatility(
        option_type,
        spot,
        strike,
        market_price,
        dividend_yield,
        risk_free_rate,
        time_to_maturity,
        initial_vol,
        params=params,
    ).implied_vol
