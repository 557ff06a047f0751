"""Exception hierarchy for pattern building, composition and integration."""
from __future__ import annotations


class EpiwireError(RuntimeError):
    """Base class for every error raised by epiwire."""
    pass


# ---------------------------------------------------------------------------
# Pattern topology
# ---------------------------------------------------------------------------

class PatternError(EpiwireError):
    """Raised when a pattern references or connects something invalid."""
    pass


class UnknownBox(PatternError):
    pass


class UnknownPort(PatternError):
    pass


class UnknownJunction(PatternError):
    pass


class ArgumentIndexOutOfRange(PatternError):
    pass


class DuplicateInputWire(PatternError):
    """Raised when an input port (or outer output) is given a second source."""
    pass


class UnconnectedPort(PatternError):
    """Raised when a box input or outer output has no source at composition."""
    pass


# ---------------------------------------------------------------------------
# Box interface vs. assigned system
# ---------------------------------------------------------------------------

class InterfaceMismatch(EpiwireError):
    """Raised when a box's declared interface disagrees with its system."""
    pass


class PortCountMismatch(InterfaceMismatch):
    pass


class ArityMismatch(InterfaceMismatch):
    pass


# ---------------------------------------------------------------------------
# Dimensions and numerics
# ---------------------------------------------------------------------------

class DimensionMismatch(EpiwireError, ValueError):
    """Raised when a state or input vector has the wrong length."""
    pass


class RuntimeDimensionMismatch(EpiwireError):
    """Raised when a user dynamics/readout function disagrees with its declared
    dimensions the first time it is evaluated."""
    pass


class NumericalFailure(EpiwireError):
    """Raised when a step method fails (NaN/Inf, step-size underflow, solver error)."""
    pass
