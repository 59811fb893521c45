"""Helper functions shared by the pricing engines."""

from __future__ import annotations

from contextlib import contextmanager
from enum import Enum
from math import comb
from typing import Callable
from collections.abc import Iterator
import time
import numpy as np

from .enums import OptionType
from .exceptions import ArbitrageViolationError, ConfigurationError, DomainError

__all__ = [
    "log_timing",
    "ensure_enum",
    "ensure_finite",
    "ensure_positive",
    "ensure_non_negative",
    "ensure_finite_result",
    "intrinsic_value",
    "forward_price",
    "put_call_parity_rhs",
    "put_call_parity_gap",
    "binomial_pmf",
    "expected_binomial",
    "expected_binomial_payoff",
]


@contextmanager
def log_timing(logger, label: str, enabled: bool) -> Iterator[None]:
    """Log timing for a code block when enabled is True."""
    if not enabled:
        yield
        return
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        logger.debug("Timing %s: %.6fs", label, elapsed)


# ---------------------------------------------------------------------------
# Boundary validation
# ---------------------------------------------------------------------------


def ensure_enum(value, enum_cls: type[Enum], name: str) -> None:
    """Raise ConfigurationError unless *value* is a member of *enum_cls*."""
    if not isinstance(value, enum_cls):
        raise ConfigurationError(
            f"{name} must be {enum_cls.__name__} enum, got {type(value).__name__}"
        )


def ensure_finite(value, name: str) -> float:
    """Coerce *value* to float and reject NaN/Inf."""
    try:
        out = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be numeric, got {type(value).__name__}") from exc
    if not np.isfinite(out):
        raise DomainError(f"{name} must be finite, got {value}")
    return out


def ensure_positive(value, name: str) -> float:
    out = ensure_finite(value, name)
    if out <= 0.0:
        raise DomainError(f"{name} must be positive, got {value}")
    return out


def ensure_non_negative(value, name: str) -> float:
    out = ensure_finite(value, name)
    if out < 0.0:
        raise DomainError(f"{name} must be >= 0, got {value}")
    return out


def ensure_finite_result(value: float, label: str) -> float:
    """Reject NaN/Inf produced mid-computation before it reaches a caller."""
    out = float(value)
    if not np.isfinite(out):
        raise DomainError(f"{label} produced a non-finite value ({out}); check inputs")
    return out


# ---------------------------------------------------------------------------
# Payoffs and no-arbitrage identities
# ---------------------------------------------------------------------------


def intrinsic_value(
    option_type: OptionType, spot: np.ndarray | float, strike: float
) -> np.ndarray | float:
    """Vectorized vanilla payoff: max(S-K,0) for calls, max(K-S,0) for puts."""
    if option_type is OptionType.CALL:
        return np.maximum(spot - strike, 0.0)
    return np.maximum(strike - spot, 0.0)


def forward_price(
    *, spot: float, risk_free_rate: float, dividend_yield: float, time_to_maturity: float
) -> float:
    """No-arbitrage forward price under a continuous dividend yield."""
    return float(spot * np.exp((risk_free_rate - dividend_yield) * time_to_maturity))


def put_call_parity_rhs(
    *,
    spot: float,
    strike: float,
    risk_free_rate: float,
    dividend_yield: float,
    time_to_maturity: float,
) -> float:
    """Compute the RHS of put-call parity for European options.

    Returns C - P implied by no-arbitrage, i.e. S e^{-q tau} - K e^{-r tau}.
    """
    return float(
        spot * np.exp(-dividend_yield * time_to_maturity)
        - strike * np.exp(-risk_free_rate * time_to_maturity)
    )


def put_call_parity_gap(
    *,
    call_price: float,
    put_price: float,
    spot: float,
    strike: float,
    risk_free_rate: float,
    dividend_yield: float,
    time_to_maturity: float,
) -> float:
    """Return call-put parity residual: (C - P) - RHS."""
    rhs = put_call_parity_rhs(
        spot=spot,
        strike=strike,
        risk_free_rate=risk_free_rate,
        dividend_yield=dividend_yield,
        time_to_maturity=time_to_maturity,
    )
    return float(call_price - put_price - rhs)


# ---------------------------------------------------------------------------
# Binomial distribution helpers (closed-form check on the recombining tree)
# ---------------------------------------------------------------------------


def binomial_pmf(k: np.ndarray | int, n: int, p: float) -> np.ndarray:
    """Binomial(n, p) probability mass function.

    Parameters
    ==========
    k:
        Success count(s). Can be an int or a numpy array of ints.
    n:
        Number of trials (>= 0).
    p:
        Success probability in [0, 1].
    """
    if n < 0:
        raise DomainError("n must be >= 0")

    p = float(p)
    if not (0.0 <= p <= 1.0):
        raise DomainError("p must be in [0, 1]")

    k_arr = np.asarray(k, dtype=int)
    out = np.zeros_like(k_arr, dtype=float)

    in_support = (k_arr >= 0) & (k_arr <= n)
    if not np.any(in_support):
        return out

    ks = k_arr[in_support]
    combs = np.array([comb(n, int(kk)) for kk in ks], dtype=float)
    out[in_support] = combs * (p**ks) * ((1.0 - p) ** (n - ks))
    return out


def expected_binomial(
    n: int,
    p: float,
    f: Callable[[np.ndarray], np.ndarray],
) -> float:
    """Compute $\\mathbb{E}[f(K)]$ where $K \\sim \\text{Binomial}(n, p)$."""
    if n < 0:
        raise DomainError("n must be >= 0")
    p = float(p)
    if not (0.0 <= p <= 1.0):
        raise DomainError("p must be in [0, 1]")

    ks = np.arange(n + 1)
    pmf = binomial_pmf(ks, n=n, p=p)
    vals = np.asarray(f(ks), dtype=float)
    if vals.shape != ks.shape:
        raise DomainError("f(k) must return an array with same shape as k")
    return float(np.dot(pmf, vals))


def expected_binomial_payoff(
    *,
    spot: float,
    strike: float,
    option_type: OptionType,
    n: int,
    up: float,
    down: float,
    p: float,
) -> float:
    """Expected vanilla payoff under a binomial terminal distribution.

    Notes
    -----
    The terminal spot after k up-moves is $S_T(k) = S_0 u^k d^{n-k}$.
    Works for any (u, d, p) calibration, so it doubles as a closed-form
    reference for the European lattice: discounting this expectation by
    $e^{-r\\tau}$ must reproduce the tree's root value.
    This function returns the expected terminal payoff (not discounted).
    """
    ensure_enum(option_type, OptionType, "option_type")
    if n < 1:
        raise DomainError("n must be >= 1")
    if up <= 0 or down <= 0 or up <= down:
        raise DomainError("up/down multipliers must satisfy 0 < down < up")
    if not (0.0 <= p <= 1.0):
        raise ArbitrageViolationError("risk-neutral probability p must be in [0, 1]")

    def payoff_from_k(ks: np.ndarray) -> np.ndarray:
        terminal = spot * (up**ks) * (down ** (n - ks))
        return intrinsic_value(option_type, terminal, strike)

    return expected_binomial(n=n, p=p, f=payoff_from_k)
