"Path simulation for geometric Brownian motion and barrier-monitored paths"

from __future__ import annotations

import logging

import numpy as np

from .exceptions import DomainError, InvalidStepCountError
from .utils import ensure_finite, ensure_non_negative, ensure_positive


logger = logging.getLogger(__name__)

__all__ = [
    "time_grid",
    "simulate_gbm_paths",
    "breach_mask",
    "knock_out_paths",
    "clamp_to_barrier",
]


def time_grid(maturity: float, num_steps: int) -> np.ndarray:
    """Equally spaced monitoring dates 0, h, 2h, ..., T in year fractions."""
    maturity = ensure_positive(maturity, "maturity")
    if int(num_steps) != num_steps or num_steps < 1:
        raise InvalidStepCountError(f"num_steps must be an integer >= 1, got {num_steps}")
    return np.linspace(0.0, maturity, int(num_steps) + 1)


def simulate_gbm_paths(
    spot: float,
    volatility: float,
    risk_free_rate: float,
    maturity: float,
    num_steps: int,
    num_paths: int,
    *,
    dividend_yield: float = 0.0,
    random_seed: int | np.random.Generator | None = None,
) -> np.ndarray:
    """Generate risk-neutral geometric Brownian motion paths.

    Implements the Black-Scholes-Merton dynamics
    dS_t = (r - q) * S_t * dt + sigma * S_t * dW_t
    exactly in log space, so there is no discretisation bias at the
    monitoring dates.

    Parameters
    ==========
    spot: float
        initial value S_0
    volatility: float
        annualised volatility sigma
    risk_free_rate: float
        continuously compounded short rate r
    maturity: float
        horizon T in years
    num_steps: int
        number of monitoring steps; h = T / num_steps
    num_paths: int
        number of simulated paths
    dividend_yield: float, optional
        continuous dividend yield q
    random_seed: int, numpy Generator or None
        seed (or ready-made generator) for reproducibility

    Returns
    =======
    paths: np.ndarray
        array of shape (num_steps + 1, num_paths); row 0 equals spot.
        A fresh array is returned on every call.
    """
    spot = ensure_positive(spot, "spot")
    volatility = ensure_positive(volatility, "volatility")
    risk_free_rate = ensure_finite(risk_free_rate, "risk_free_rate")
    dividend_yield = ensure_non_negative(dividend_yield, "dividend_yield")
    grid = time_grid(maturity, num_steps)
    if int(num_paths) != num_paths or num_paths < 1:
        raise InvalidStepCountError(f"num_paths must be an integer >= 1, got {num_paths}")
    num_steps, num_paths = int(num_steps), int(num_paths)

    if isinstance(random_seed, np.random.Generator):
        rng = random_seed
    else:
        rng = np.random.default_rng(random_seed)

    delta_t = grid[1] - grid[0]
    drift = (risk_free_rate - dividend_yield - 0.5 * volatility**2) * delta_t
    diffusion = volatility * np.sqrt(delta_t)

    # log increments, one row per step
    increments = drift + diffusion * rng.standard_normal((num_steps, num_paths))

    log_paths = np.empty((num_steps + 1, num_paths), dtype=float)
    log_paths[0] = np.log(spot)
    np.cumsum(increments, axis=0, out=log_paths[1:])
    log_paths[1:] += log_paths[0]

    logger.debug("GBM paths simulated: steps=%d paths=%d dt=%.6g", num_steps, num_paths, delta_t)
    return np.exp(log_paths)


def _check_barriers(lower: float | None, upper: float | None) -> None:
    if lower is not None and lower <= 0:
        raise DomainError(f"lower barrier must be positive, got {lower}")
    if upper is not None and upper <= 0:
        raise DomainError(f"upper barrier must be positive, got {upper}")
    if lower is not None and upper is not None and lower >= upper:
        raise DomainError(f"lower barrier ({lower}) must be below upper barrier ({upper})")


def breach_mask(
    paths: np.ndarray, lower: float | None = None, upper: float | None = None
) -> np.ndarray:
    """Boolean array marking every date on or after a path's first barrier touch.

    A touch is S <= lower or S >= upper. Once True, the mask stays True for
    the rest of the path.
    """
    _check_barriers(lower, upper)
    paths = np.asarray(paths, dtype=float)
    touched = np.zeros(paths.shape, dtype=bool)
    if lower is not None:
        touched |= paths <= lower
    if upper is not None:
        touched |= paths >= upper
    return np.logical_or.accumulate(touched, axis=0)


def knock_out_paths(
    paths: np.ndarray, lower: float | None = None, upper: float | None = None
) -> np.ndarray:
    """Zero every path from its first barrier touch onwards.

    This is the pricing variant: a knocked-out path carries value 0 at all
    later dates, so its terminal payoff is 0.
    """
    mask = breach_mask(paths, lower, upper)
    return np.where(mask, 0.0, np.asarray(paths, dtype=float))


def clamp_to_barrier(
    paths: np.ndarray, lower: float | None = None, upper: float | None = None
) -> np.ndarray:
    """Pin every path at the barrier it first touched.

    Illustrative bounded-path variant: from the first touch onwards the path
    sits at exactly the breached barrier level (lower or upper).
    """
    paths = np.asarray(paths, dtype=float)
    mask = breach_mask(paths, lower, upper)
    if not mask.any():
        return paths.copy()

    first = np.argmax(mask, axis=0)  # first True per column
    cols = np.arange(paths.shape[1])
    at_first = paths[first, cols]
    if lower is not None:
        level = np.where(at_first <= lower, lower, upper if upper is not None else lower)
    else:
        level = np.full(paths.shape[1], upper, dtype=float)
    return np.where(mask, level[np.newaxis, :], paths)
