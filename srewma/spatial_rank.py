"""
Spatial Rank Estimator
======================
Multivariate generalization of the rank: the spatial rank of a point x
relative to a reference cloud {x_1, ..., x_n} is the average unit
vector pointing from the reference points towards x:

    r(x) = (1/n') * sum_j (x - x_j) / ||x - x_j||

Reference points that coincide exactly with x have no direction and
are excluded from both the sum and the denominator n'. When every
reference point coincides with x the rank is the zero vector.

A point deep inside the cloud has a rank near zero; a point far
outside has a rank of norm close to 1, pointing away from the cloud.

All functions expect inputs already whitened into the same
coordinate system (see whitening.py).
"""

import numpy as np


def spatial_rank(query: np.ndarray, reference: np.ndarray) -> np.ndarray:
    """
    Spatial rank of a query point relative to a reference set.

    Args:
        query: Whitened query point, shape (p,)
        reference: Whitened reference set, shape (n, p)

    Returns:
        Rank vector of shape (p,) with Euclidean norm <= 1
    """
    query = np.asarray(query, dtype=float)
    reference = np.atleast_2d(np.asarray(reference, dtype=float))
    return rank_from_differences(query - reference)


def rank_from_differences(diffs: np.ndarray) -> np.ndarray:
    """
    Spatial rank from the differences x - x_j, one row per reference point.

    Zero rows are coincident points and are excluded. Whitening the raw
    differences keeps exact duplicates at exactly zero, which whitening
    query and reference separately does not guarantee.

    Args:
        diffs: Array of shape (n, p)

    Returns:
        Rank vector of shape (p,)
    """
    diffs = np.atleast_2d(diffs)
    norms = np.linalg.norm(diffs, axis=1)
    nonzero = norms > 0
    n_effective = int(np.count_nonzero(nonzero))

    if n_effective == 0:
        return np.zeros(diffs.shape[1])

    return (diffs[nonzero] / norms[nonzero, None]).sum(axis=0) / n_effective


def reference_ranks(reference: np.ndarray) -> np.ndarray:
    """
    Leave-one-out spatial ranks of every reference point.

    Each row i is the spatial rank of reference[i] against all other
    reference points.

    Args:
        reference: Whitened reference set, shape (n, p)

    Returns:
        Array of shape (n, p)
    """
    reference = np.atleast_2d(np.asarray(reference, dtype=float))
    n = reference.shape[0]

    ranks = np.empty_like(reference)
    for i in range(n):
        others = np.delete(reference, i, axis=0)
        ranks[i] = spatial_rank(reference[i], others)

    return ranks


def squared_rank_norms(ranks: np.ndarray) -> np.ndarray:
    """Squared Euclidean norm of each rank vector (rows)."""
    ranks = np.atleast_2d(ranks)
    return np.einsum('ij,ij->i', ranks, ranks)
