"""Valuation of European and American options on recombining binomial and
trinomial trees, calibrated with Cox-Ross-Rubinstein or Jarrow-Rudd moves.

Lattices are stored as dense 2-D arrays with rows = state index (number of
down-moves) and columns = time step. A binomial tree occupies the upper
triangle of an ``(n+1, n+1)`` grid; a trinomial tree uses a ``(2n+1, n+1)``
grid where step ``t`` holds ``2t+1`` states. Cells outside the tree are NaN.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import TYPE_CHECKING
import logging
import numpy as np
from ..enums import ExerciseType, LatticeKind, OptionType, TreeCalibration
from ..exceptions import ArbitrageViolationError, ConfigurationError, InvalidStepCountError
from ..utils import (
    ensure_enum,
    ensure_finite,
    ensure_finite_result,
    ensure_non_negative,
    ensure_positive,
    intrinsic_value,
    log_timing,
)
from .params import LatticeParams

if TYPE_CHECKING:
    from .core import OptionValuation


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _StepParameters:
    """Per-step multipliers and branch probabilities (ordered up, [mid,] down)."""

    log_moves: tuple[float, ...]
    probabilities: tuple[float, ...]
    discount: float
    delta_t: float


@dataclass(frozen=True, slots=True)
class PriceLattice:
    """Option and spot values on every node of a recombining tree.

    Attributes
    ==========
    option_values:
        Node values, shape (num_states, num_steps + 1), rows = state, cols = step.
    spot_values:
        Underlying price at each node, same shape.
        Both arrays are read-only once the tree is built.
    probabilities:
        Branch probabilities (p_up, p_down) or (p_up, p_mid, p_down).
    discount:
        One-step discount factor e^{-r h}.
    """

    option_values: np.ndarray
    spot_values: np.ndarray
    kind: LatticeKind
    calibration: TreeCalibration
    option_type: OptionType
    exercise_type: ExerciseType
    num_steps: int
    delta_t: float
    probabilities: tuple[float, ...]
    discount: float

    def num_states(self, step: int) -> int:
        """Number of live nodes at *step*."""
        return step + 1 if self.kind is LatticeKind.BINOMIAL else 2 * step + 1

    def _check_node(self, step: int, state: int) -> None:
        if not 0 <= step <= self.num_steps:
            raise IndexError(f"step must be in [0, {self.num_steps}], got {step}")
        if not 0 <= state < self.num_states(step):
            raise IndexError(
                f"state must be in [0, {self.num_states(step) - 1}] at step {step}, got {state}"
            )

    def node(self, step: int, state: int) -> float:
        """Option value at (time-step, state-index)."""
        self._check_node(step, state)
        return float(self.option_values[state, step])

    def spot_at(self, step: int, state: int) -> float:
        """Underlying price at (time-step, state-index)."""
        self._check_node(step, state)
        return float(self.spot_values[state, step])

    def layer(self, step: int) -> np.ndarray:
        """Copy of the option values at *step*, ordered from highest spot down."""
        self._check_node(step, 0)
        return self.option_values[: self.num_states(step), step].copy()

    @property
    def root(self) -> float:
        return float(self.option_values[0, 0])

    def present_value(self) -> float:
        return self.root

    # ------------------------------------------------------------------
    # Tree Greeks (Hull Ch. 13 / 21)
    # ------------------------------------------------------------------

    def _first_step_nodes(self) -> tuple[np.ndarray, np.ndarray]:
        """Values and spots of the outermost nodes used for finite differences."""
        if self.kind is LatticeKind.BINOMIAL:
            if self.num_steps < 2:
                raise InvalidStepCountError("Tree gamma/theta require num_steps >= 2.")
            rows, step = np.array([0, 1, 2]), 2
        else:
            rows, step = np.array([0, 1, 2]), 1
        return self.option_values[rows, step], self.spot_values[rows, step]

    def delta(self) -> float:
        """Extract delta from the first step of the tree.

        .. math::

            \\Delta = \\frac{f_u - f_d}{S_u - S_d}
        """
        if self.kind is LatticeKind.BINOMIAL:
            f, s = self.option_values[:2, 1], self.spot_values[:2, 1]
        else:
            f, s = self.option_values[[0, 2], 1], self.spot_values[[0, 2], 1]
        return float((f[0] - f[1]) / (s[0] - s[1]))

    def gamma(self) -> float:
        """Extract gamma from three adjacent nodes.

        Uses step 2 of a binomial tree or step 1 of a trinomial tree:

        .. math::

            \\Gamma = \\frac{\\Delta_+ - \\Delta_-}{(S_{uu}-S_{dd})/2}
        """
        f, s = self._first_step_nodes()
        delta_up = (f[0] - f[1]) / (s[0] - s[1])
        delta_down = (f[1] - f[2]) / (s[1] - s[2])
        h = (s[0] - s[2]) / 2.0
        return float((delta_up - delta_down) / h)

    def theta(self) -> float:
        """Calendar-time theta from the central node, per year.

        .. math::

            \\Theta = \\frac{f_{mid} - f_0}{t_{mid}}

        where :math:`f_{mid}` is the central node two binomial steps (or one
        trinomial step) ahead.
        """
        f, _ = self._first_step_nodes()
        horizon = 2.0 * self.delta_t if self.kind is LatticeKind.BINOMIAL else self.delta_t
        return float((f[1] - self.root) / horizon)


# ---------------------------------------------------------------------------
# Calibration
# ---------------------------------------------------------------------------


def _check_probabilities(probabilities: tuple[float, ...], label: str) -> None:
    for p in probabilities:
        if not (0.0 <= p <= 1.0) or not np.isfinite(p):
            raise ArbitrageViolationError(
                f"{label} calibration gives branch probability {p:.6g} outside [0, 1]; "
                "increase volatility or num_steps"
            )


def _binomial_parameters(
    calibration: TreeCalibration,
    volatility: float,
    risk_free_rate: float,
    dividend_yield: float,
    delta_t: float,
) -> _StepParameters:
    carry = risk_free_rate - dividend_yield
    sig_sqrt_dt = volatility * np.sqrt(delta_t)
    if calibration is TreeCalibration.CRR:
        log_up, log_down = sig_sqrt_dt, -sig_sqrt_dt
        up, down = np.exp(log_up), np.exp(log_down)
        p = (np.exp(carry * delta_t) - down) / (up - down)
    else:  # JR
        drift = (carry - 0.5 * volatility**2) * delta_t
        log_up, log_down = drift + sig_sqrt_dt, drift - sig_sqrt_dt
        p = 0.5
    probabilities = (float(p), float(1.0 - p))
    _check_probabilities(probabilities, f"Binomial {calibration.name}")
    return _StepParameters(
        log_moves=(float(log_up), float(log_down)),
        probabilities=probabilities,
        discount=float(np.exp(-risk_free_rate * delta_t)),
        delta_t=delta_t,
    )


def _trinomial_parameters(
    calibration: TreeCalibration,
    volatility: float,
    risk_free_rate: float,
    dividend_yield: float,
    delta_t: float,
) -> _StepParameters:
    """Combine two half-step binomial moves into one trinomial step.

    Each half-step matches the first two moments of log-price over h/2, so
    the up/mid/down probabilities are products of the half-step ones.
    """
    carry = risk_free_rate - dividend_yield
    log_up = volatility * np.sqrt(2.0 * delta_t)
    if calibration is TreeCalibration.CRR:
        growth = np.exp(carry * delta_t / 2.0)
        half_up = np.exp(volatility * np.sqrt(delta_t / 2.0))
        half_down = 1.0 / half_up
        p_up = ((growth - half_down) / (half_up - half_down)) ** 2
        p_down = ((half_up - growth) / (half_up - half_down)) ** 2
        drift = 0.0
    else:  # JR
        p_up, p_down = 0.25, 0.25
        drift = (carry - 0.5 * volatility**2) * delta_t
    p_mid = 1.0 - p_up - p_down
    probabilities = (float(p_up), float(p_mid), float(p_down))
    _check_probabilities(probabilities, f"Trinomial {calibration.name}")
    return _StepParameters(
        log_moves=(float(drift + log_up), float(drift), float(drift - log_up)),
        probabilities=probabilities,
        discount=float(np.exp(-risk_free_rate * delta_t)),
        delta_t=delta_t,
    )


def _spot_lattice(spot: float, kind: LatticeKind, params: _StepParameters, num_steps: int) -> np.ndarray:
    """Spot on every node; row = state (down-moves), column = time step."""
    t_idx = np.arange(num_steps + 1)[None, :]
    if kind is LatticeKind.BINOMIAL:
        log_up, log_down = params.log_moves
        j_idx = np.arange(num_steps + 1)[:, None]
        log_spot = (t_idx - j_idx) * log_up + j_idx * log_down
        live = j_idx <= t_idx
    else:
        log_up, drift, _ = params.log_moves
        j_idx = np.arange(2 * num_steps + 1)[:, None]
        log_spot = t_idx * drift + (t_idx - j_idx) * (log_up - drift)
        live = j_idx <= 2 * t_idx
    lattice = spot * np.exp(log_spot)
    return np.where(live, lattice, np.nan)


# ---------------------------------------------------------------------------
# Backward induction
# ---------------------------------------------------------------------------


def build_tree(
    calibration: TreeCalibration,
    option_type: OptionType,
    exercise_type: ExerciseType,
    spot: float,
    strike: float,
    volatility: float,
    dividend_yield: float,
    risk_free_rate: float,
    time_to_maturity: float,
    num_steps: int,
    *,
    kind: LatticeKind,
    log_timings: bool = False,
) -> PriceLattice:
    """Build and backward-induce a recombining price tree.

    Parameters
    ==========
    calibration:
        TreeCalibration.CRR or TreeCalibration.JR
    option_type, exercise_type:
        Vanilla payoff direction and exercise style.
    spot, strike, volatility, dividend_yield, risk_free_rate, time_to_maturity:
        Market and contract scalars (time in years).
    num_steps:
        Number of time steps (>= 1).
    kind:
        LatticeKind.BINOMIAL or LatticeKind.TRINOMIAL. Required.

    Returns
    =======
    PriceLattice
        Full node grid; ``.root`` is the option value.

    Raises
    ======
    InvalidStepCountError
        If num_steps < 1.
    ArbitrageViolationError
        If the calibration yields a branch probability outside [0, 1].
    """
    ensure_enum(calibration, TreeCalibration, "calibration")
    ensure_enum(option_type, OptionType, "option_type")
    ensure_enum(exercise_type, ExerciseType, "exercise_type")
    ensure_enum(kind, LatticeKind, "kind")
    if isinstance(num_steps, bool) or not isinstance(num_steps, (int, np.integer)):
        raise ConfigurationError(f"num_steps must be an int, got {type(num_steps).__name__}")
    if num_steps < 1:
        raise InvalidStepCountError(f"num_steps must be >= 1, got {num_steps}")
    num_steps = int(num_steps)
    spot = ensure_positive(spot, "spot")
    strike = ensure_positive(strike, "strike")
    volatility = ensure_positive(volatility, "volatility")
    dividend_yield = ensure_non_negative(dividend_yield, "dividend_yield")
    risk_free_rate = ensure_finite(risk_free_rate, "risk_free_rate")
    time_to_maturity = ensure_positive(time_to_maturity, "time_to_maturity")

    delta_t = time_to_maturity / num_steps
    if kind is LatticeKind.BINOMIAL:
        params = _binomial_parameters(
            calibration, volatility, risk_free_rate, dividend_yield, delta_t
        )
    else:
        params = _trinomial_parameters(
            calibration, volatility, risk_free_rate, dividend_yield, delta_t
        )
    logger.debug(
        "%s %s %s num_steps=%d probabilities=%s",
        kind.value,
        calibration.value,
        exercise_type.value,
        num_steps,
        params.probabilities,
    )

    with log_timing(logger, f"{kind.value} lattice induction", log_timings):
        spot_lattice = _spot_lattice(spot, kind, params, num_steps)
        option_lattice = np.full_like(spot_lattice, np.nan)
        intrinsic = intrinsic_value(option_type, spot_lattice, strike)
        option_lattice[:, num_steps] = intrinsic[:, num_steps]

        is_american = exercise_type is ExerciseType.AMERICAN
        probs = params.probabilities
        for t in range(num_steps - 1, -1, -1):
            n_live = t + 1 if kind is LatticeKind.BINOMIAL else 2 * t + 1
            nxt = option_lattice[:, t + 1]
            continuation = sum(
                prob * nxt[offset : offset + n_live] for offset, prob in enumerate(probs)
            ) * params.discount
            if is_american:
                continuation = np.maximum(intrinsic[:n_live, t], continuation)
            option_lattice[:n_live, t] = continuation

    ensure_finite_result(option_lattice[0, 0], "lattice induction")
    option_lattice.flags.writeable = False
    spot_lattice.flags.writeable = False
    return PriceLattice(
        option_values=option_lattice,
        spot_values=spot_lattice,
        kind=kind,
        calibration=calibration,
        option_type=option_type,
        exercise_type=exercise_type,
        num_steps=num_steps,
        delta_t=delta_t,
        probabilities=probs,
        discount=params.discount,
    )


def lattice_price(
    calibration: TreeCalibration,
    option_type: OptionType,
    exercise_type: ExerciseType,
    spot: float,
    strike: float,
    volatility: float,
    dividend_yield: float,
    risk_free_rate: float,
    time_to_maturity: float,
    num_steps: int,
    *,
    kind: LatticeKind,
) -> float:
    """Root value of :func:`build_tree`."""
    return build_tree(
        calibration,
        option_type,
        exercise_type,
        spot,
        strike,
        volatility,
        dividend_yield,
        risk_free_rate,
        time_to_maturity,
        num_steps,
        kind=kind,
    ).root


# ---------------------------------------------------------------------------
# OptionValuation implementations
# ---------------------------------------------------------------------------


class _LatticeValuationBase:
    """Base class for tree option valuation."""

    kind: LatticeKind

    def __init__(self, parent: OptionValuation) -> None:
        self.parent = parent
        if not isinstance(parent.params, LatticeParams):
            raise ConfigurationError("Lattice valuation requires LatticeParams on OptionValuation")
        self.lattice_params: LatticeParams = parent.params

    def solve(self) -> PriceLattice:
        """Compute the full option value lattice."""
        contract = self.parent.contract
        market = self.parent.market
        return build_tree(
            self.lattice_params.calibration,
            contract.option_type,
            contract.exercise_type,
            market.spot,
            contract.strike,
            market.volatility,
            market.dividend_yield,
            market.risk_free_rate,
            market.time_to_maturity(contract),
            self.lattice_params.num_steps,
            kind=self.kind,
            log_timings=self.lattice_params.log_timings,
        )

    def present_value(self) -> float:
        return self.solve().root

    def delta(self) -> float:
        return self.solve().delta()

    def gamma(self) -> float:
        return self.solve().gamma()

    def theta(self) -> float:
        return self.solve().theta()


class _BinomialValuation(_LatticeValuationBase):
    """European/American option valuation on a binomial tree."""

    kind = LatticeKind.BINOMIAL


class _TrinomialValuation(_LatticeValuationBase):
    """European/American option valuation on a trinomial tree."""

    kind = LatticeKind.TRINOMIAL
