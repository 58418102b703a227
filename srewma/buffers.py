from __future__ import annotations

from typing import Optional

import numpy as np


class ReferenceBuffer:
    """Append-only store of p-dimensional rows with amortized growth.

    Backed by a numpy array whose capacity doubles when full, so a
    monitoring run of k steps costs O(k) copies in total rather than
    O(k^2) from repeated ``np.vstack``.
    """

    def __init__(self, initial: np.ndarray, capacity: Optional[int] = None) -> None:
        initial = np.atleast_2d(np.asarray(initial, dtype=float))
        n, p = initial.shape
        cap = max(capacity or 0, 2 * n, 1)
        self._data = np.empty((cap, p), dtype=float)
        self._data[:n] = initial
        self._size = n

    def __len__(self) -> int:
        return self._size

    @property
    def dimension(self) -> int:
        return self._data.shape[1]

    @property
    def capacity(self) -> int:
        return self._data.shape[0]

    def append(self, row: np.ndarray) -> None:
        if self._size == self.capacity:
            grown = np.empty((2 * self.capacity, self.dimension), dtype=float)
            grown[:self._size] = self._data[:self._size]
            self._data = grown
        self._data[self._size] = row
        self._size += 1

    def view(self) -> np.ndarray:
        """Read-only view of the stored rows."""
        out = self._data[:self._size]
        out.flags.writeable = False
        return out

    def snapshot(self) -> np.ndarray:
        return self._data[:self._size].copy()
