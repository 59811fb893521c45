"""Custom exception hierarchy for the pricing_toolkit library.

All library-specific exceptions inherit from :class:`PricingToolkitError`,
enabling callers to catch *any* library error with a single ``except`` clause::

    try:
        pv = bsm_price(OptionType.CALL, 100.0, 100.0, 0.2, 0.0, 0.05, 1.0)
    except PricingToolkitError as exc:
        log.error("Library error: %s", exc)

Engines validate their inputs before computing anything, so a raised error
never comes with a partial result.
"""

from __future__ import annotations


class PricingToolkitError(Exception):
    """Base exception for all library errors."""


# ── Input validation ────────────────────────────────────────────────


class DomainError(PricingToolkitError):
    """Invalid mathematical input (non-positive vol/spot/strike, zero denominator, NaN/Inf)."""


class InvalidStepCountError(PricingToolkitError):
    """Lattice step count or simulation path/step count below 1."""


class ConfigurationError(PricingToolkitError):
    """Wrong types passed to a public API (e.g. raw str instead of enum)."""


class ArbitrageViolationError(ConfigurationError):
    """Calibration implies a risk-neutral probability outside [0, 1]."""


# ── Feature support ─────────────────────────────────────────────────


class UnsupportedFeatureError(PricingToolkitError):
    """Requested feature combination is not supported."""


# ── Numerical issues ────────────────────────────────────────────────


class NumericalError(PricingToolkitError):
    """Base for errors arising from numerical computation."""


class NonConvergenceError(NumericalError):
    """An iterative solver hit its iteration cap or its derivative vanished."""
