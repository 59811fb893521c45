"""Enums for option valuation."""

from enum import Enum

__all__ = [
    "OptionType",
    "ExerciseType",
    "PricingMethod",
    "TreeCalibration",
    "LatticeKind",
    "BarrierType",
    "ImpliedVolMethod",
    "GreekCalculationMethod",
]


class OptionType(Enum):
    CALL = "call"
    PUT = "put"

    @property
    def phi(self) -> float:
        """Payoff direction: +1 for calls, -1 for puts."""
        return 1.0 if self is OptionType.CALL else -1.0


class ExerciseType(Enum):
    EUROPEAN = "european"
    AMERICAN = "american"


class PricingMethod(Enum):
    BSM = "bsm"
    BINOMIAL = "binomial"
    TRINOMIAL = "trinomial"


class TreeCalibration(Enum):
    CRR = "crr"  # Cox-Ross-Rubinstein
    JR = "jr"  # Jarrow-Rudd


class LatticeKind(Enum):
    BINOMIAL = "binomial"
    TRINOMIAL = "trinomial"


class BarrierType(Enum):
    DOWN_AND_OUT = "down_and_out"
    UP_AND_OUT = "up_and_out"


class ImpliedVolMethod(Enum):
    NEWTON_RAPHSON = "newton_raphson"
    BRENTQ = "brentq"


class GreekCalculationMethod(Enum):
    ANALYTICAL = "analytical"  # closed form, BSM only
    TREE = "tree"  # read off the lattice
    NUMERICAL = "numerical"  # bump-and-revalue
