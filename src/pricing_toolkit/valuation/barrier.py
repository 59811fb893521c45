"""Barrier option valuation.

Knock-out options whose payoff is cancelled once the underlying touches a
barrier during the option's lifetime.

Supports:
- Closed-form down-and-out put (A1..A8 decomposition, no dividends)
- Closed-form down-and-out / up-and-out calls and puts with dividend yield
  (Reiner-Rubinstein formulas, continuous monitoring)
- Monte Carlo pricing on discretely monitored GBM paths, with an optional
  Brownian-bridge correction towards continuous monitoring
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
import logging

import numpy as np
from scipy.stats import norm

from ..enums import BarrierType, OptionType
from ..exceptions import DomainError, InvalidStepCountError
from ..stochastic_processes import knock_out_paths, simulate_gbm_paths
from ..utils import (
    ensure_enum,
    ensure_finite,
    ensure_finite_result,
    ensure_non_negative,
    ensure_positive,
    intrinsic_value,
    log_timing,
)
from .bsm import bsm_price
from .params import MonteCarloParams


logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Closed forms
# ---------------------------------------------------------------------------


def down_out_put_price(
    spot: float,
    strike: float,
    volatility: float,
    risk_free_rate: float,
    time_to_maturity: float,
    barrier: float,
) -> float:
    """Closed-form down-and-out put on a non-dividend-paying asset.

    P = A1 - A2 - A3 + A4 - (L/S)^(2r/sigma^2 - 1) * (A5 - A6 - A7 + A8)

    with lambda = (r + sigma^2/2) / sigma^2 and

    - A1 = K e^{-rT} N(-d2),            A2 = S N(-d1)
    - A3 = K e^{-rT} N(-x1 + sigma sqrt T), A4 = S N(-x1)
    - A5 = (L^2/S) N(y),                A6 = (L^2/S) N(y1)
    - A7 = K e^{-rT} N(y - sigma sqrt T),   A8 = K e^{-rT} N(y1 - sigma sqrt T)

    A1 - A2 is the vanilla put; the remaining terms remove the value of
    paths that touch L before expiry.

    Returns 0 when the barrier is at or above the strike (every
    in-the-money path has crossed L) or when spot is already at or
    below the barrier.
    """
    S = ensure_positive(spot, "spot")
    K = ensure_positive(strike, "strike")
    sigma = ensure_positive(volatility, "volatility")
    r = ensure_finite(risk_free_rate, "risk_free_rate")
    T = ensure_positive(time_to_maturity, "time_to_maturity")
    L = ensure_positive(barrier, "barrier")

    if S <= L or L >= K:
        return 0.0

    sqrt_T = np.sqrt(T)
    sig_sqrt_T = sigma * sqrt_T
    df = np.exp(-r * T)
    lam = (r + 0.5 * sigma**2) / sigma**2

    d1 = (np.log(S / K) + (r + 0.5 * sigma**2) * T) / sig_sqrt_T
    d2 = d1 - sig_sqrt_T
    x1 = np.log(S / L) / sig_sqrt_T + lam * sig_sqrt_T
    y = np.log(L**2 / (S * K)) / sig_sqrt_T + lam * sig_sqrt_T
    y1 = np.log(L / S) / sig_sqrt_T + lam * sig_sqrt_T

    A1 = K * df * norm.cdf(-d2)
    A2 = S * norm.cdf(-d1)
    A3 = K * df * norm.cdf(-x1 + sig_sqrt_T)
    A4 = S * norm.cdf(-x1)
    A5 = (L**2 / S) * norm.cdf(y)
    A6 = (L**2 / S) * norm.cdf(y1)
    A7 = K * df * norm.cdf(y - sig_sqrt_T)
    A8 = K * df * norm.cdf(y1 - sig_sqrt_T)

    reflection = (L / S) ** (2.0 * r / sigma**2 - 1.0)
    price = A1 - A2 - A3 + A4 - reflection * (A5 - A6 - A7 + A8)
    # tiny negative values are round-off near the barrier
    return max(ensure_finite_result(price, "down_out_put_price"), 0.0)


def barrier_option_analytical(
    option_type: OptionType,
    barrier_type: BarrierType,
    spot: float,
    strike: float,
    barrier: float,
    time_to_maturity: float,
    risk_free_rate: float,
    volatility: float,
    dividend_yield: float = 0.0,
) -> float:
    """Knock-out option price under continuous monitoring.

    Parameters
    ----------
    option_type : OptionType
        OptionType.CALL or OptionType.PUT
    barrier_type : BarrierType
        BarrierType.DOWN_AND_OUT or BarrierType.UP_AND_OUT
    spot, strike, barrier : float
        Current spot, strike and barrier level
    time_to_maturity : float
        Time to maturity in years
    risk_free_rate : float
        Continuously compounded risk-free rate
    volatility : float
        Annualised volatility
    dividend_yield : float, optional
        Continuous dividend yield (default: 0.0)

    Returns
    -------
    float
        Barrier option price; 0 if spot is already on the knocked-out side.

    Notes
    -----
    Each knock-out price is the vanilla price less the matching knock-in
    value (in-out parity), except where a direct expression exists.

    References
    ----------
    Rubinstein, M., & Reiner, E. (1991). Breaking down the barriers.
    Risk, 4(8), 28-35.
    Hull, J. C. Options, Futures, and Other Derivatives, ch. 26.
    """
    ensure_enum(option_type, OptionType, "option_type")
    ensure_enum(barrier_type, BarrierType, "barrier_type")
    S = ensure_positive(spot, "spot")
    K = ensure_positive(strike, "strike")
    H = ensure_positive(barrier, "barrier")
    T = ensure_positive(time_to_maturity, "time_to_maturity")
    r = ensure_finite(risk_free_rate, "risk_free_rate")
    sigma = ensure_positive(volatility, "volatility")
    q = ensure_non_negative(dividend_yield, "dividend_yield")

    if barrier_type is BarrierType.DOWN_AND_OUT and S <= H:
        return 0.0
    if barrier_type is BarrierType.UP_AND_OUT and S >= H:
        return 0.0

    sig_sqrt_T = sigma * np.sqrt(T)
    df_r = np.exp(-r * T)
    df_q = np.exp(-q * T)
    lam = (r - q + 0.5 * sigma**2) / sigma**2

    x1 = np.log(S / H) / sig_sqrt_T + lam * sig_sqrt_T
    y = np.log(H**2 / (S * K)) / sig_sqrt_T + lam * sig_sqrt_T
    y1 = np.log(H / S) / sig_sqrt_T + lam * sig_sqrt_T

    # reflection weights on the asset and cash legs
    w_s = S * df_q * (H / S) ** (2.0 * lam)
    w_k = K * df_r * (H / S) ** (2.0 * lam - 2.0)

    N = norm.cdf
    vanilla = bsm_price(option_type, S, K, sigma, q, r, T)

    if barrier_type is BarrierType.DOWN_AND_OUT:
        if option_type is OptionType.CALL:
            if H <= K:
                c_di = w_s * N(y) - w_k * N(y - sig_sqrt_T)
                price = vanilla - c_di
            else:
                price = (
                    S * df_q * N(x1)
                    - K * df_r * N(x1 - sig_sqrt_T)
                    - w_s * N(y1)
                    + w_k * N(y1 - sig_sqrt_T)
                )
        else:  # PUT
            if H >= K:
                return 0.0
            p_di = (
                -S * df_q * N(-x1)
                + K * df_r * N(-x1 + sig_sqrt_T)
                + w_s * (N(y) - N(y1))
                - w_k * (N(y - sig_sqrt_T) - N(y1 - sig_sqrt_T))
            )
            price = vanilla - p_di
    else:  # UP_AND_OUT
        if option_type is OptionType.CALL:
            if H <= K:
                return 0.0
            c_ui = (
                S * df_q * N(x1)
                - K * df_r * N(x1 - sig_sqrt_T)
                - w_s * (N(-y) - N(-y1))
                + w_k * (N(-y + sig_sqrt_T) - N(-y1 + sig_sqrt_T))
            )
            price = vanilla - c_ui
        else:  # PUT
            if H >= K:
                p_ui = -w_s * N(-y) + w_k * N(-y + sig_sqrt_T)
                price = vanilla - p_ui
            else:
                price = (
                    -S * df_q * N(-x1)
                    + K * df_r * N(-x1 + sig_sqrt_T)
                    + w_s * N(-y1)
                    - w_k * N(-y1 + sig_sqrt_T)
                )

    return max(ensure_finite_result(price, "barrier_option_analytical"), 0.0)


# ---------------------------------------------------------------------------
# Monte Carlo
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BarrierSimulationResult:
    """Monte Carlo estimate of a knock-out option price.

    Attributes
    ==========
    price:
        Discounted mean payoff over all simulated paths.
    std_error:
        Standard error of ``price`` (sample std with ddof=1 over sqrt(n)).
        NaN when only one path was simulated.
    num_paths:
        Number of simulated paths.
    knocked_out_fraction:
        Share of paths that touched a barrier.
    """

    price: float
    std_error: float
    num_paths: int
    knocked_out_fraction: float

    def confidence_interval(self, z: float = 1.96) -> tuple[float, float]:
        """Symmetric normal-approximation interval price +/- z * std_error."""
        half_width = z * self.std_error
        return self.price - half_width, self.price + half_width


@dataclass(frozen=True, slots=True)
class _BatchSpec:
    option_type: OptionType
    spot: float
    strike: float
    maturity: float
    num_steps: int
    risk_free_rate: float
    volatility: float
    dividend_yield: float
    lower: float | None
    upper: float | None
    brownian_bridge: bool


def _bridge_crossed(
    paths: np.ndarray,
    lower: float | None,
    upper: float | None,
    volatility: float,
    delta_t: float,
    rng: np.random.Generator,
) -> np.ndarray:
    """Flag paths that cross a barrier between monitoring dates.

    Conditional on two endpoints on the surviving side of barrier B, a
    Brownian bridge in log space touches B with probability
    exp(-2 ln(S_i/B) ln(S_{i+1}/B) / (sigma^2 h)).
    """
    start, end = paths[:-1], paths[1:]
    var = volatility**2 * delta_t
    survive = np.ones(start.shape, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        if lower is not None:
            inside = (start > lower) & (end > lower)
            p_lo = np.exp(-2.0 * np.log(start / lower) * np.log(end / lower) / var)
            survive *= np.where(inside, 1.0 - p_lo, 1.0)
        if upper is not None:
            inside = (start < upper) & (end < upper)
            p_hi = np.exp(-2.0 * np.log(upper / start) * np.log(upper / end) / var)
            survive *= np.where(inside, 1.0 - p_hi, 1.0)
    u = rng.uniform(size=start.shape)
    return (u >= survive).any(axis=0)


def _simulate_batch(
    spec: _BatchSpec, seed: np.random.SeedSequence, num_paths: int
) -> tuple[float, float, int]:
    """Simulate one batch; return (sum payoff, sum payoff^2, knocked-out count)."""
    rng = np.random.default_rng(seed)
    paths = simulate_gbm_paths(
        spec.spot,
        spec.volatility,
        spec.risk_free_rate,
        spec.maturity,
        spec.num_steps,
        num_paths,
        dividend_yield=spec.dividend_yield,
        random_seed=rng,
    )
    terminal = knock_out_paths(paths, spec.lower, spec.upper)[-1]
    alive = terminal > 0.0
    if spec.brownian_bridge:
        delta_t = spec.maturity / spec.num_steps
        alive &= ~_bridge_crossed(
            paths, spec.lower, spec.upper, spec.volatility, delta_t, rng
        )

    payoff = np.where(alive, intrinsic_value(spec.option_type, terminal, spec.strike), 0.0)
    return float(payoff.sum()), float(np.dot(payoff, payoff)), int(num_paths - alive.sum())


def _warn_if_high_std_error(
    *,
    std_error: float,
    price: float,
    num_paths: int,
    params: MonteCarloParams,
    label: str,
) -> None:
    """Emit a warning log if MC standard error is high relative to the PV estimate."""
    scale = max(abs(price), 1.0e-12)
    ratio = std_error / scale
    logger.debug(
        "MC %s std_error=%.6g ratio=%.6g paths=%d",
        label,
        std_error,
        ratio,
        num_paths,
    )
    if params.std_error_warn_ratio is None or num_paths < 2:
        return
    if ratio > params.std_error_warn_ratio:
        logger.warning(
            "MC %s standard error high: std_error=%.6g ratio=%.6g (>%.3g) paths=%d",
            label,
            std_error,
            ratio,
            params.std_error_warn_ratio,
            num_paths,
        )


def simulate_barrier(
    option_type: OptionType,
    n_sims: int,
    spot: float,
    maturity: float,
    num_steps: int,
    risk_free_rate: float,
    volatility: float,
    barrier: float | None,
    strike: float,
    *,
    upper_barrier: float | None = None,
    dividend_yield: float = 0.0,
    params: MonteCarloParams | None = None,
) -> BarrierSimulationResult:
    """Monte Carlo price of a knock-out option on GBM paths.

    Parameters
    ==========
    option_type:
        OptionType.CALL or OptionType.PUT
    n_sims:
        total number of simulated paths
    spot, maturity, risk_free_rate, volatility, strike:
        market and contract scalars
    num_steps:
        monitoring dates per path (h = maturity / num_steps)
    barrier:
        lower knock-out level L (None for an up-and-out only contract)
    upper_barrier:
        optional upper knock-out level H; together with ``barrier`` this is a
        double knock-out
    dividend_yield:
        continuous dividend yield q
    params:
        MonteCarloParams (seed, batching, threads, bridge correction)

    Returns
    =======
    BarrierSimulationResult
    """
    ensure_enum(option_type, OptionType, "option_type")
    if int(n_sims) != n_sims or n_sims < 1:
        raise InvalidStepCountError(f"n_sims must be an integer >= 1, got {n_sims}")
    if int(num_steps) != num_steps or num_steps < 1:
        raise InvalidStepCountError(f"num_steps must be an integer >= 1, got {num_steps}")
    spec = _BatchSpec(
        option_type=option_type,
        spot=ensure_positive(spot, "spot"),
        strike=ensure_positive(strike, "strike"),
        maturity=ensure_positive(maturity, "maturity"),
        num_steps=int(num_steps),
        risk_free_rate=ensure_finite(risk_free_rate, "risk_free_rate"),
        volatility=ensure_positive(volatility, "volatility"),
        dividend_yield=ensure_non_negative(dividend_yield, "dividend_yield"),
        lower=None if barrier is None else ensure_positive(barrier, "barrier"),
        upper=None if upper_barrier is None else ensure_positive(upper_barrier, "upper_barrier"),
        brownian_bridge=False if params is None else params.brownian_bridge,
    )
    if spec.lower is None and spec.upper is None:
        raise DomainError("at least one of barrier / upper_barrier must be given")
    if spec.lower is not None and spec.upper is not None and spec.lower >= spec.upper:
        raise DomainError(f"barrier ({spec.lower}) must be below upper_barrier ({spec.upper})")
    if params is None:
        params = MonteCarloParams()

    n_sims = int(n_sims)
    full, rest = divmod(n_sims, params.batch_size)
    sizes = [params.batch_size] * full + ([rest] if rest else [])
    seeds = np.random.SeedSequence(params.random_seed).spawn(len(sizes))

    with log_timing(logger, "Barrier MC simulation", params.log_timings):
        if params.num_workers > 1 and len(sizes) > 1:
            with ThreadPoolExecutor(max_workers=params.num_workers) as pool:
                batches = list(pool.map(lambda args: _simulate_batch(spec, *args), zip(seeds, sizes)))
        else:
            batches = [_simulate_batch(spec, seed, size) for seed, size in zip(seeds, sizes)]

    # reduce in batch order
    total = total_sq = 0.0
    knocked = 0
    for batch_sum, batch_sq, batch_knocked in batches:
        total += batch_sum
        total_sq += batch_sq
        knocked += batch_knocked

    discount = float(np.exp(-spec.risk_free_rate * spec.maturity))
    mean = total / n_sims
    if n_sims > 1:
        variance = max((total_sq - n_sims * mean**2) / (n_sims - 1), 0.0)
        std_error = discount * float(np.sqrt(variance / n_sims))
    else:
        std_error = float("nan")
    price = discount * mean

    logger.debug(
        "Barrier MC: paths=%d steps=%d batches=%d knocked_out=%d price=%.6g",
        n_sims,
        spec.num_steps,
        len(sizes),
        knocked,
        price,
    )
    _warn_if_high_std_error(
        std_error=std_error,
        price=price,
        num_paths=n_sims,
        params=params,
        label="barrier",
    )
    return BarrierSimulationResult(
        price=float(price),
        std_error=std_error,
        num_paths=n_sims,
        knocked_out_fraction=knocked / n_sims,
    )


def simulate_barrier_price(
    option_type: OptionType,
    n_sims: int,
    spot: float,
    maturity: float,
    num_steps: int,
    risk_free_rate: float,
    volatility: float,
    barrier: float | None,
    strike: float,
    *,
    upper_barrier: float | None = None,
    dividend_yield: float = 0.0,
    params: MonteCarloParams | None = None,
) -> float:
    """Monte Carlo knock-out price as a bare float (see :func:`simulate_barrier`)."""
    return simulate_barrier(
        option_type,
        n_sims,
        spot,
        maturity,
        num_steps,
        risk_free_rate,
        volatility,
        barrier,
        strike,
        upper_barrier=upper_barrier,
        dividend_yield=dividend_yield,
        params=params,
    ).price
