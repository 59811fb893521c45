"""Capital-guaranteed note structuring.

A guaranteed note pays back the nominal at maturity plus a share of the
underlying's upside. It is replicated with a zero-coupon bond that grows to
the nominal and ``x * nominal / S`` at-the-money calls, where the
participation rate ``x`` spends the remaining budget on the calls::

    x = S (1 - e^{-r tau}) / C
"""

from __future__ import annotations

from dataclasses import dataclass
import logging

import numpy as np

from .enums import OptionType
from .exceptions import DomainError
from .market_environment import MarketState
from .utils import ensure_finite, ensure_positive
from .valuation.bsm import bsm_price


logger = logging.getLogger(__name__)

__all__ = ["participation_rate", "GuaranteedNote", "structure_guaranteed_note"]


def participation_rate(
    spot: float,
    nominal: float,
    risk_free_rate: float,
    time_to_maturity: float,
    call_price: float,
) -> float:
    """Share of the underlying's upside a guaranteed note can pass on.

    Parameters
    ==========
    spot:
        Current underlying level S (> 0); the calls are struck at S.
    nominal:
        Note nominal N (> 0). The rate itself does not depend on N, but the
        argument is validated so a degenerate note is rejected.
    risk_free_rate:
        Continuously compounded rate r.
    time_to_maturity:
        Note life tau in years (> 0).
    call_price:
        Price C of one at-the-money call (> 0).

    Returns
    =======
    float
        x = S (1 - e^{-r tau}) / C
    """
    spot = ensure_positive(spot, "spot")
    ensure_positive(nominal, "nominal")
    risk_free_rate = ensure_finite(risk_free_rate, "risk_free_rate")
    time_to_maturity = ensure_positive(time_to_maturity, "time_to_maturity")
    call_price = ensure_finite(call_price, "call_price")
    if call_price <= 0.0:
        raise DomainError(f"call_price must be positive, got {call_price}")
    return float(spot * (1.0 - np.exp(-risk_free_rate * time_to_maturity)) / call_price)


@dataclass(frozen=True, slots=True)
class GuaranteedNote:
    """A structured capital-guaranteed note and its replication cost.

    Attributes
    ==========
    nominal:
        Amount guaranteed at maturity.
    spot:
        Underlying level at inception; the embedded calls are struck here.
    maturity:
        Note life in years.
    participation_rate:
        Share x of the underlying's relative upside paid on top of nominal.
    bond_cost:
        Present value of the zero-coupon bond, nominal * e^{-r tau}.
    option_cost:
        Cost of the x * nominal / spot calls.
    """

    nominal: float
    spot: float
    maturity: float
    participation_rate: float
    bond_cost: float
    option_cost: float

    @property
    def num_calls(self) -> float:
        """Number of at-the-money calls held per note."""
        return self.participation_rate * self.nominal / self.spot

    def payoff(self, terminal_spot: np.ndarray | float) -> np.ndarray | float:
        """Note payoff nominal * (1 + x * max(S_T/S - 1, 0))."""
        upside = np.maximum(np.asarray(terminal_spot, dtype=float) / self.spot - 1.0, 0.0)
        return self.nominal * (1.0 + self.participation_rate * upside)

    def replication_payoff(self, terminal_spot: np.ndarray | float) -> np.ndarray | float:
        """Bond plus calls: nominal + x * (nominal/S) * max(S_T - S, 0)."""
        calls = np.maximum(np.asarray(terminal_spot, dtype=float) - self.spot, 0.0)
        return self.nominal + self.num_calls * calls


def structure_guaranteed_note(
    market: MarketState, maturity: float, nominal: float
) -> GuaranteedNote:
    """Price the embedded at-the-money call and size the upside participation."""
    maturity = ensure_positive(maturity, "maturity")
    nominal = ensure_positive(nominal, "nominal")
    call_price = bsm_price(
        OptionType.CALL,
        market.spot,
        market.spot,
        market.volatility,
        market.dividend_yield,
        market.risk_free_rate,
        maturity,
    )
    x = participation_rate(market.spot, nominal, market.risk_free_rate, maturity, call_price)
    bond_cost = nominal * float(np.exp(-market.risk_free_rate * maturity))
    option_cost = x * nominal / market.spot * call_price
    logger.debug(
        "Guaranteed note: nominal=%.6g call=%.6g participation=%.6g bond=%.6g options=%.6g",
        nominal,
        call_price,
        x,
        bond_cost,
        option_cost,
    )
    return GuaranteedNote(
        nominal=nominal,
        spot=market.spot,
        maturity=maturity,
        participation_rate=x,
        bond_cost=bond_cost,
        option_cost=float(option_cost),
    )
