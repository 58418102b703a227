"""
Observation Data Adapter
========================
Converts caller-supplied tables into the numeric matrices the
monitoring engine consumes.

Only generic handling lives here: column selection, numeric coercion
and dropping incomplete rows. Dataset-specific preprocessing is the
caller's responsibility.
"""

from typing import List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .errors import InsufficientReferenceSize

ArrayLike = Union[pd.DataFrame, np.ndarray, list]


def as_observation_matrix(
    data: ArrayLike,
    columns: Optional[List[str]] = None,
    drop_incomplete: bool = True,
) -> np.ndarray:
    """
    Convert a DataFrame or array-like into an (n, p) float matrix.

    For DataFrames, the selected columns (default: all numeric columns)
    are coerced to numeric. With drop_incomplete, rows with missing or
    non-finite values are dropped; otherwise they are kept as NaN so the
    monitor can reject them at their position in the stream.

    Args:
        data: DataFrame or array-like of shape (n, p)
        columns: Variable columns to use when data is a DataFrame
        drop_incomplete: Drop rows with missing or non-finite values

    Returns:
        Float array of shape (n, p)

    Raises:
        ValueError: If columns are missing, nothing numeric remains,
            or an array input is not 2-D
    """
    if isinstance(data, pd.DataFrame):
        if columns is not None:
            missing = [c for c in columns if c not in data.columns]
            if missing:
                raise ValueError(f"Columns not found in data: {missing}")
            frame = data[columns]
        else:
            frame = data.select_dtypes(include='number')

        if frame.shape[1] == 0:
            raise ValueError("No numeric variable columns found")
        matrix = frame.apply(pd.to_numeric, errors='coerce').to_numpy(dtype=float)
    else:
        matrix = np.asarray(data, dtype=float)
        if matrix.ndim == 1:
            matrix = matrix.reshape(-1, 1)
        if matrix.ndim != 2:
            raise ValueError(f"Observation data must be 2-D, got shape {matrix.shape}")

    if drop_incomplete:
        matrix = matrix[np.all(np.isfinite(matrix), axis=1)]
        if matrix.shape[0] == 0:
            raise ValueError("No complete numeric rows found in observation data")

    return matrix


def split_reference(
    data: ArrayLike,
    n_reference: int,
    columns: Optional[List[str]] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Split a table into the in-control reference sample and the stream.

    The first n_reference complete rows form the reference sample;
    the remaining rows are the monitoring stream, in order.

    Raises:
        InsufficientReferenceSize: If n_reference <= number of variables
        ValueError: If there are fewer than n_reference rows
    """
    matrix = as_observation_matrix(data, columns)
    n, p = matrix.shape

    if n_reference <= p:
        raise InsufficientReferenceSize(n_reference, p)
    if n < n_reference:
        raise ValueError(f"Need at least {n_reference} complete rows, got {n}")

    return matrix[:n_reference], matrix[n_reference:]
