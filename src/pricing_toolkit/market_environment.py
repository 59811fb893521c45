"""Contract and market-state containers passed by value to every engine."""

from __future__ import annotations
from dataclasses import dataclass, replace as dc_replace

from .enums import ExerciseType, OptionType
from .exceptions import DomainError
from .utils import ensure_enum, ensure_finite, ensure_non_negative, ensure_positive


@dataclass(frozen=True, slots=True)
class ContractSpec:
    """Contract specification for a vanilla option.

    Attributes
    ==========
    option_type:
        OptionType.CALL or OptionType.PUT
    strike:
        Strike price (> 0).
    maturity:
        Maturity T in years from the origin of the valuation clock (> 0).
    exercise_type:
        ExerciseType.EUROPEAN or ExerciseType.AMERICAN
    """

    option_type: OptionType
    strike: float
    maturity: float
    exercise_type: ExerciseType

    def __post_init__(self) -> None:
        ensure_enum(self.option_type, OptionType, "option_type")
        ensure_enum(self.exercise_type, ExerciseType, "exercise_type")
        object.__setattr__(self, "strike", ensure_positive(self.strike, "strike"))
        object.__setattr__(self, "maturity", ensure_positive(self.maturity, "maturity"))


@dataclass(frozen=True, slots=True)
class MarketState:
    """Immutable market snapshot.

    ``valuation_time`` is measured on the same clock as
    ``ContractSpec.maturity``; the remaining life is ``maturity - valuation_time``.
    """

    spot: float
    volatility: float
    risk_free_rate: float
    dividend_yield: float = 0.0
    valuation_time: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "spot", ensure_positive(self.spot, "spot"))
        object.__setattr__(self, "volatility", ensure_positive(self.volatility, "volatility"))
        object.__setattr__(
            self, "risk_free_rate", ensure_finite(self.risk_free_rate, "risk_free_rate")
        )
        object.__setattr__(
            self, "dividend_yield", ensure_non_negative(self.dividend_yield, "dividend_yield")
        )
        object.__setattr__(
            self, "valuation_time", ensure_non_negative(self.valuation_time, "valuation_time")
        )

    def time_to_maturity(self, contract: ContractSpec) -> float:
        """Remaining life tau = T - t; valuation_time must lie in [0, T]."""
        if self.valuation_time > contract.maturity:
            raise DomainError(
                f"valuation_time ({self.valuation_time}) is after maturity ({contract.maturity})"
            )
        return contract.maturity - self.valuation_time

    def replace(self, **changes) -> MarketState:
        """Return a copy with *changes* applied (the original is never mutated)."""
        return dc_replace(self, **changes)
