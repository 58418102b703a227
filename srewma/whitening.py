"""
Whitening Estimator
===================
Decorrelates and standardizes a reference sample so that spatial
ranks computed in the whitened space are affine invariant.

Given a reference sample X (n x p) with sample covariance S, the
whitening transform T satisfies:

    T^T T = S^{-1}

and every row x is mapped to T x (row-wise: X @ T.T). The whitened
reference then has identity sample covariance.

Two factorizations are supported:
- 'cholesky':  T is the upper Cholesky factor of S^{-1}
- 'symmetric': T = S^{-1/2} from the eigendecomposition of S

Both give the same whitened geometry up to an orthogonal rotation,
so spatial rank norms (and the monitoring statistic) do not depend
on the choice.

Singularity is judged on the condition number of the correlation
matrix, so rescaling a variable (changing its units) never turns an
acceptable reference into a singular one.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy import linalg

from .errors import InsufficientReferenceSize, SingularCovariance

logger = logging.getLogger(__name__)

WHITENING_METHODS = ('cholesky', 'symmetric')

# Correlation-matrix condition numbers above this are treated as singular
DEFAULT_MAX_CONDITION = 1e12


@dataclass
class WhiteningResult:
    """Whitening transform and the whitened reference sample."""
    transform: np.ndarray        # p x p, transform.T @ transform == inv(covariance)
    whitened: np.ndarray         # n x p, reference @ transform.T
    covariance: np.ndarray       # p x p sample covariance (ddof=1)
    condition_number: float      # of the correlation matrix, scale free

    @property
    def dimension(self) -> int:
        return self.transform.shape[0]

    def apply(self, points: np.ndarray) -> np.ndarray:
        """Whiten further points into the same coordinate system."""
        return apply_whitening(self.transform, points)


def apply_whitening(transform: np.ndarray, points: np.ndarray) -> np.ndarray:
    """
    Whiten a single point or a matrix of row points.

    Args:
        transform: p x p whitening transform
        points: Array of shape (p,) or (k, p)

    Returns:
        Whitened array with the same shape as points
    """
    return np.asarray(points, dtype=float) @ transform.T


def sample_covariance(reference: np.ndarray) -> np.ndarray:
    """Unbiased sample covariance of row observations, always 2-D."""
    return np.atleast_2d(np.cov(reference, rowvar=False, ddof=1))


def correlation_condition_number(covariance: np.ndarray) -> float:
    """
    Condition number of the correlation matrix D^{-1/2} S D^{-1/2}, D = diag(S).

    Unlike cond(S) this does not depend on the units of each variable.
    Returns inf when a variable has zero (or non-finite) variance.
    """
    variances = np.diag(covariance)
    if not np.all(np.isfinite(variances)) or np.any(variances <= 0):
        return float(np.inf)
    scale = np.sqrt(variances)
    correlation = covariance / np.outer(scale, scale)
    return float(np.linalg.cond(correlation))


def whiten(
    reference: np.ndarray,
    method: str = 'cholesky',
    max_condition: float = DEFAULT_MAX_CONDITION,
    time_index: Optional[int] = None,
) -> WhiteningResult:
    """
    Compute the whitening transform of a reference sample.

    Args:
        reference: Reference sample, shape (n, p) with n >= p + 1
        method: 'cholesky' or 'symmetric'
        max_condition: Largest acceptable correlation-matrix condition number
        time_index: Monitoring step, only used for error context

    Returns:
        WhiteningResult with transform and whitened reference

    Raises:
        InsufficientReferenceSize: If n <= p
        SingularCovariance: If the covariance is not invertible within tolerance
        ValueError: If method is unknown
    """
    if method not in WHITENING_METHODS:
        raise ValueError(f"Unknown whitening method '{method}', expected one of {WHITENING_METHODS}")

    reference = np.asarray(reference, dtype=float)
    if reference.ndim != 2:
        raise ValueError(f"Reference sample must be 2-D, got shape {reference.shape}")

    n, p = reference.shape
    if n <= p:
        raise InsufficientReferenceSize(n, p)

    covariance = sample_covariance(reference)

    if not np.all(np.isfinite(covariance)):
        raise SingularCovariance(np.inf, n, time_index, reason="non-finite covariance")

    condition_number = correlation_condition_number(covariance)
    if not np.isfinite(condition_number) or condition_number > max_condition:
        raise SingularCovariance(condition_number, n, time_index)

    if condition_number > max_condition * 1e-3:
        logger.warning(
            f"Reference covariance is ill-conditioned (cond={condition_number:.3e}, n={n})"
        )

    try:
        if method == 'cholesky':
            precision = linalg.inv(covariance)
            # Symmetrize to absorb round-off before factorizing
            precision = 0.5 * (precision + precision.T)
            transform = linalg.cholesky(precision, lower=False)
        else:
            eigvals, eigvecs = linalg.eigh(covariance)
            if np.min(eigvals) <= 0:
                raise linalg.LinAlgError("covariance is not positive-definite")
            transform = (eigvecs / np.sqrt(eigvals)) @ eigvecs.T
    except (linalg.LinAlgError, ValueError) as e:
        raise SingularCovariance(condition_number, n, time_index, reason=str(e)) from e

    return WhiteningResult(
        transform=transform,
        whitened=reference @ transform.T,
        covariance=covariance,
        condition_number=condition_number,
    )
