"""Tabular sensitivity surfaces and convergence studies.

Every function returns a pandas DataFrame so results can be inspected,
plotted or exported directly.
"""

from __future__ import annotations

from collections.abc import Sequence
import logging

import numpy as np
import pandas as pd

from .enums import BarrierType, ExerciseType, LatticeKind, OptionType, TreeCalibration
from .exceptions import ConfigurationError, UnsupportedFeatureError
from .market_environment import ContractSpec, MarketState
from .utils import ensure_enum
from .valuation.barrier import barrier_option_analytical, simulate_barrier
from .valuation.bsm import GREEK_NAMES, bsm_greek, bsm_price
from .valuation.lattice import lattice_price
from .valuation.params import MonteCarloParams


logger = logging.getLogger(__name__)

__all__ = [
    "greek_surface",
    "spot_greek_surface",
    "lattice_convergence",
    "barrier_convergence",
]


def _evaluator(greek: str):
    if greek == "price":
        return bsm_price
    if greek not in GREEK_NAMES:
        raise ConfigurationError(
            f"Unknown greek '{greek}'; expected 'price' or one of {GREEK_NAMES}"
        )
    return lambda *args: bsm_greek(greek, *args)


def greek_surface(
    greek: str,
    option_type: OptionType,
    spot: float,
    strikes: Sequence[float],
    maturities: Sequence[float],
    *,
    volatility: float,
    risk_free_rate: float,
    dividend_yield: float = 0.0,
) -> pd.DataFrame:
    """Closed-form Greek (or ``"price"``) over a strike x maturity grid.

    Returns
    -------
    pd.DataFrame
        Index: maturity (years). Columns: strike.
    """
    ensure_enum(option_type, OptionType, "option_type")
    fn = _evaluator(greek)
    values = np.array(
        [
            [
                fn(option_type, spot, k, volatility, dividend_yield, risk_free_rate, t)
                for k in strikes
            ]
            for t in maturities
        ],
        dtype=float,
    )
    return pd.DataFrame(
        values,
        index=pd.Index(list(maturities), name="maturity"),
        columns=pd.Index(list(strikes), name="strike"),
    )


def spot_greek_surface(
    greek: str,
    option_type: OptionType,
    spots: Sequence[float],
    maturities: Sequence[float],
    strike: float,
    *,
    volatility: float,
    risk_free_rate: float,
    dividend_yield: float = 0.0,
) -> pd.DataFrame:
    """Closed-form Greek (or ``"price"``) over a spot x maturity grid.

    Index: maturity (years). Columns: spot.
    """
    ensure_enum(option_type, OptionType, "option_type")
    fn = _evaluator(greek)
    values = np.array(
        [
            [
                fn(option_type, s, strike, volatility, dividend_yield, risk_free_rate, t)
                for s in spots
            ]
            for t in maturities
        ],
        dtype=float,
    )
    return pd.DataFrame(
        values,
        index=pd.Index(list(maturities), name="maturity"),
        columns=pd.Index(list(spots), name="spot"),
    )


def lattice_convergence(
    contract: ContractSpec, market: MarketState, steps: Sequence[int]
) -> pd.DataFrame:
    """CRR, JR and trinomial prices against the closed form as steps grow.

    Only European contracts have a closed-form reference here.

    Returns
    -------
    pd.DataFrame
        Index ``num_steps``; columns ``crr``, ``jr``, ``trinomial``,
        ``analytic``, ``crr_error``, ``jr_error``, ``trinomial_error``.
    """
    if contract.exercise_type is not ExerciseType.EUROPEAN:
        raise UnsupportedFeatureError(
            "lattice_convergence needs a closed-form reference; use a European contract."
        )
    tau = market.time_to_maturity(contract)
    args = (
        contract.option_type,
        contract.exercise_type,
        market.spot,
        contract.strike,
        market.volatility,
        market.dividend_yield,
        market.risk_free_rate,
        tau,
    )
    analytic = bsm_price(
        contract.option_type,
        market.spot,
        contract.strike,
        market.volatility,
        market.dividend_yield,
        market.risk_free_rate,
        tau,
    )

    rows = []
    for n in steps:
        crr = lattice_price(TreeCalibration.CRR, *args, n, kind=LatticeKind.BINOMIAL)
        jr = lattice_price(TreeCalibration.JR, *args, n, kind=LatticeKind.BINOMIAL)
        tri = lattice_price(TreeCalibration.CRR, *args, n, kind=LatticeKind.TRINOMIAL)
        rows.append(
            {
                "num_steps": int(n),
                "crr": crr,
                "jr": jr,
                "trinomial": tri,
                "analytic": analytic,
                "crr_error": abs(crr - analytic),
                "jr_error": abs(jr - analytic),
                "trinomial_error": abs(tri - analytic),
            }
        )
    logger.debug("Lattice convergence computed for steps=%s", list(steps))
    return pd.DataFrame(rows).set_index("num_steps")


def barrier_convergence(
    option_type: OptionType,
    sim_counts: Sequence[int],
    *,
    spot: float = 100.0,
    strike: float = 100.0,
    volatility: float = 0.4,
    risk_free_rate: float = 0.0,
    maturity: float = 1.0,
    barrier: float = 90.0,
    num_steps: int = 252,
    params: MonteCarloParams | None = None,
) -> pd.DataFrame:
    """Monte Carlo down-and-out estimates against the continuous-monitoring closed form.

    Returns
    -------
    pd.DataFrame
        Index ``n_sims``; columns ``estimate``, ``std_error``,
        ``closed_form``, ``abs_error``.
    """
    closed_form = barrier_option_analytical(
        option_type,
        BarrierType.DOWN_AND_OUT,
        spot,
        strike,
        barrier,
        maturity,
        risk_free_rate,
        volatility,
    )
    rows = []
    for n_sims in sim_counts:
        result = simulate_barrier(
            option_type,
            n_sims,
            spot,
            maturity,
            num_steps,
            risk_free_rate,
            volatility,
            barrier,
            strike,
            params=params,
        )
        rows.append(
            {
                "n_sims": int(n_sims),
                "estimate": result.price,
                "std_error": result.std_error,
                "closed_form": closed_form,
                "abs_error": abs(result.price - closed_form),
            }
        )
    return pd.DataFrame(rows).set_index("n_sims")
