from .enums import (
    OptionType,
    ExerciseType,
    PricingMethod,
    TreeCalibration,
    LatticeKind,
    BarrierType,
    ImpliedVolMethod,
    GreekCalculationMethod,
)
from .exceptions import (
    PricingToolkitError,
    DomainError,
    InvalidStepCountError,
    ConfigurationError,
    ArbitrageViolationError,
    UnsupportedFeatureError,
    NumericalError,
    NonConvergenceError,
)
from .market_environment import ContractSpec, MarketState
from .stochastic_processes import (
    time_grid,
    simulate_gbm_paths,
    breach_mask,
    knock_out_paths,
    clamp_to_barrier,
)
from .valuation import (
    OptionValuation,
    GreekSet,
    PriceLattice,
    LatticeParams,
    MonteCarloParams,
    ImpliedVolParams,
    bsm_price,
    bsm_greeks,
    build_tree,
    lattice_price,
    ImpliedVolResult,
    implied_volatility,
    solve_implied_volatility,
    BarrierSimulationResult,
    barrier_option_analytical,
    down_out_put_price,
    simulate_barrier,
    simulate_barrier_price,
)
from .structuring import participation_rate, GuaranteedNote, structure_guaranteed_note
from .utils import forward_price, put_call_parity_rhs, put_call_parity_gap
from .analysis import greek_surface, spot_greek_surface, lattice_convergence, barrier_convergence


__all__ = [
    "OptionType",
    "ExerciseType",
    "PricingMethod",
    "TreeCalibration",
    "LatticeKind",
    "BarrierType",
    "ImpliedVolMethod",
    "GreekCalculationMethod",
    "PricingToolkitError",
    "DomainError",
    "InvalidStepCountError",
    "ConfigurationError",
    "ArbitrageViolationError",
    "UnsupportedFeatureError",
    "NumericalError",
    "NonConvergenceError",
    "ContractSpec",
    "MarketState",
    "time_grid",
    "simulate_gbm_paths",
    "breach_mask",
    "knock_out_paths",
    "clamp_to_barrier",
    "OptionValuation",
    "GreekSet",
    "PriceLattice",
    "LatticeParams",
    "MonteCarloParams",
    "ImpliedVolParams",
    "bsm_price",
    "bsm_greeks",
    "build_tree",
    "lattice_price",
    "ImpliedVolResult",
    "implied_volatility",
    "solve_implied_volatility",
    "BarrierSimulationResult",
    "barrier_option_analytical",
    "down_out_put_price",
    "simulate_barrier",
    "simulate_barrier_price",
    "participation_rate",
    "GuaranteedNote",
    "structure_guaranteed_note",
    "greek_surface",
    "spot_greek_surface",
    "lattice_convergence",
    "barrier_convergence",
    "forward_price",
    "put_call_parity_rhs",
    "put_call_parity_gap",
]
