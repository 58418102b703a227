"""
Monitoring Errors
=================
Error taxonomy for SREWMA monitoring.

Key Principle: A silently wrong statistic is worse than a halted run.
Every failure carries enough context (time index, matrix condition)
to diagnose the upstream data problem.

All errors derive from ValueError so callers that already guard
analysis code with ``except ValueError`` keep working.
"""

from typing import Optional


class SREWMAError(ValueError):
    """Base class for all monitoring errors."""

    def __init__(self, message: str, time_index: Optional[int] = None):
        self.time_index = time_index
        if time_index is not None:
            message = f"[t={time_index}] {message}"
        super().__init__(message)


class InsufficientReferenceSize(SREWMAError):
    """Reference sample too small for its dimensionality (need n > p)."""

    def __init__(self, n_reference: int, dimension: int):
        self.n_reference = n_reference
        self.dimension = dimension
        super().__init__(
            f"Reference sample has {n_reference} observations but dimension is "
            f"{dimension}; need at least {dimension + 1}"
        )


class SingularCovariance(SREWMAError):
    """Covariance of the reference sample is not invertible within tolerance."""

    def __init__(
        self,
        condition_number: float,
        n_reference: int,
        time_index: Optional[int] = None,
        reason: str = "",
    ):
        self.condition_number = condition_number
        self.n_reference = n_reference
        detail = f": {reason}" if reason else ""
        super().__init__(
            f"Reference covariance is singular or ill-conditioned "
            f"(condition number {condition_number:.3e}, n={n_reference}){detail}",
            time_index=time_index,
        )


class DimensionMismatch(SREWMAError):
    """Observation dimensionality differs from the reference sample."""

    def __init__(self, expected: int, actual: int, time_index: Optional[int] = None):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Observation has dimension {actual}, expected {expected}",
            time_index=time_index,
        )


class NonFiniteObservation(SREWMAError):
    """Observation contains NaN or infinite values."""

    def __init__(self, time_index: Optional[int] = None):
        super().__init__("Observation contains NaN or infinite values", time_index=time_index)


class InvalidObservation(SREWMAError):
    """Observation cannot be read as a numeric vector (ragged or non-numeric)."""

    def __init__(self, reason: str, time_index: Optional[int] = None):
        self.reason = reason
        super().__init__(f"Observation is not a numeric vector: {reason}", time_index=time_index)


class MonitorTerminated(SREWMAError):
    """Observation fed to a monitor that has already terminated."""


class ConfigurationError(SREWMAError):
    """Monitor configuration failed validation."""
