"""Parameter classes for method-specific valuation configuration.

Each pricing method (lattice, Monte Carlo, implied vol) has its own parameter
class that explicitly documents the configuration options available for it.
"""

from dataclasses import dataclass
import warnings

import numpy as np

from ..enums import ImpliedVolMethod, TreeCalibration
from ..exceptions import ConfigurationError, DomainError, InvalidStepCountError


@dataclass(frozen=True, slots=True)
class LatticeParams:
    """Parameters for binomial/trinomial tree option valuation.

    Attributes
    ==========
    calibration:
        Up/down move calibration: TreeCalibration.CRR or TreeCalibration.JR.
        Required; there is no default scheme.
    num_steps:
        Number of time steps in the tree. Integral floats such as 100.0 are
        accepted and stored as int.
        More steps increase accuracy but also computation time (O(n^2)).
        Default: 500.
    log_timings:
        When True, emit DEBUG timing records for the induction.
    """

    calibration: TreeCalibration | str
    num_steps: int = 500
    log_timings: bool = False

    def __post_init__(self):
        if isinstance(self.calibration, str):
            object.__setattr__(self, "calibration", TreeCalibration(self.calibration))
        if not isinstance(self.calibration, TreeCalibration):
            raise ConfigurationError(f"calibration must be a TreeCalibration, got {self.calibration}")
        if (
            isinstance(self.num_steps, bool)
            or not isinstance(self.num_steps, (int, float, np.integer))
            or (isinstance(self.num_steps, float) and not np.isfinite(self.num_steps))
        ):
            raise InvalidStepCountError(f"num_steps must be an integer >= 1, got {self.num_steps!r}")
        if int(self.num_steps) != self.num_steps or self.num_steps < 1:
            raise InvalidStepCountError(f"num_steps must be an integer >= 1, got {self.num_steps}")
        object.__setattr__(self, "num_steps", int(self.num_steps))
        if self.num_steps > 20_000:
            warnings.warn(
                f"num_steps={self.num_steps} builds a lattice with ~{self.num_steps**2:.2e} "
                "nodes; memory usage may be high.",
                RuntimeWarning,
            )


@dataclass(frozen=True, slots=True)
class MonteCarloParams:
    """Parameters for Monte Carlo barrier valuation.

    Attributes
    ==========
    random_seed:
        Random seed for reproducibility. If None, uses fresh OS entropy.
    batch_size:
        Paths simulated per batch. Bounds peak memory at roughly
        ``batch_size * (num_steps + 1) * 8`` bytes per worker.
    num_workers:
        Number of worker threads. Batches draw from independent streams
        spawned from ``random_seed``, so the estimate does not depend on it.
    brownian_bridge:
        Apply the Brownian-bridge crossing probability between monitoring
        dates, approximating a continuously monitored barrier.
    std_error_warn_ratio:
        If set, log a warning when std_error / |price| exceeds this ratio.
    log_timings:
        When True, emit DEBUG timing records for the simulation.
    """

    random_seed: int | None = None
    batch_size: int = 50_000
    num_workers: int = 1
    brownian_bridge: bool = False
    std_error_warn_ratio: float | None = None
    log_timings: bool = False

    def __post_init__(self):
        if self.batch_size < 1:
            raise InvalidStepCountError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.num_workers < 1:
            raise ConfigurationError(f"num_workers must be >= 1, got {self.num_workers}")
        if self.std_error_warn_ratio is not None and self.std_error_warn_ratio <= 0:
            raise DomainError(
                f"std_error_warn_ratio must be positive, got {self.std_error_warn_ratio}"
            )


@dataclass(frozen=True, slots=True)
class ImpliedVolParams:
    """Parameters for the implied volatility solver.

    Attributes
    ==========
    initial_vol:
        Starting guess for Newton-Raphson. Default: 0.2.
    tol:
        Absolute tolerance on the pricing residual and, for Newton-Raphson,
        on the size of the final volatility step. Default: 1e-6.
    max_iter:
        Iteration cap; exceeding it raises NonConvergenceError. Default: 100.
    vol_bounds:
        Search interval used as the Newton safeguard bracket and for Brent.
    method:
        ImpliedVolMethod.NEWTON_RAPHSON or ImpliedVolMethod.BRENTQ.
    """

    initial_vol: float = 0.2
    tol: float = 1.0e-6
    max_iter: int = 100
    vol_bounds: tuple[float, float] = (1.0e-6, 10.0)
    method: ImpliedVolMethod | str = ImpliedVolMethod.NEWTON_RAPHSON

    def __post_init__(self):
        if isinstance(self.method, str):
            object.__setattr__(self, "method", ImpliedVolMethod(self.method))
        if not isinstance(self.method, ImpliedVolMethod):
            raise ConfigurationError(f"method must be an ImpliedVolMethod, got {self.method}")
        low, high = self.vol_bounds
        if low <= 0 or high <= 0 or low >= high:
            raise DomainError("vol_bounds must be positive and satisfy low < high")
        if not (low < self.initial_vol < high):
            raise DomainError(f"initial_vol must lie inside vol_bounds, got {self.initial_vol}")
        if self.tol <= 0:
            raise DomainError(f"tol must be positive, got {self.tol}")
        if self.max_iter < 1:
            raise InvalidStepCountError(f"max_iter must be >= 1, got {self.max_iter}")


# Type alias for any valuation parameters
ValuationParams = LatticeParams | MonteCarloParams
