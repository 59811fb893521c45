"""Option valuation and pricing engines.

This module provides a unified interface for pricing vanilla and barrier
options using several methods: Black-Scholes-Merton closed forms, binomial
and trinomial lattices, and Monte Carlo simulation.

Public API
----------
Core classes:
    OptionValuation: Main dispatcher for vanilla option pricing
    GreekSet: The twelve closed-form BSM sensitivities
    PriceLattice: Full node grid of a backward-induced tree

Parameter classes:
    LatticeParams: Configuration for binomial/trinomial tree pricing
    MonteCarloParams: Configuration for Monte Carlo barrier pricing
    ImpliedVolParams: Configuration for the implied volatility solver
    ValuationParams: Union type for valuation parameter classes
"""

from .core import OptionValuation
from .params import (
    LatticeParams,
    MonteCarloParams,
    ImpliedVolParams,
    ValuationParams,
)
from .bsm import (
    GREEK_NAMES,
    GreekSet,
    bsm_price,
    bsm_greeks,
    bsm_greek,
    delta,
    gamma,
    theta,
    vega,
    rho,
    vanna,
    volga,
    charm,
    veta,
    speed,
    zomma,
    ultima,
)
from .lattice import PriceLattice, build_tree, lattice_price
from .implied_volatility import (
    ImpliedVolResult,
    implied_volatility,
    solve_implied_volatility,
)
from .barrier import (
    BarrierSimulationResult,
    barrier_option_analytical,
    down_out_put_price,
    simulate_barrier,
    simulate_barrier_price,
)

__all__ = [
    # Core valuation classes
    "OptionValuation",
    "GreekSet",
    "PriceLattice",
    # Parameter classes
    "LatticeParams",
    "MonteCarloParams",
    "ImpliedVolParams",
    "ValuationParams",
    # Black-Scholes-Merton
    "GREEK_NAMES",
    "bsm_price",
    "bsm_greeks",
    "bsm_greek",
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
    # Lattices
    "build_tree",
    "lattice_price",
    # Implied volatility
    "ImpliedVolResult",
    "implied_volatility",
    "solve_implied_volatility",
    # Barrier options
    "BarrierSimulationResult",
    "barrier_option_analytical",
    "down_out_put_price",
    "simulate_barrier",
    "simulate_barrier_price",
]
