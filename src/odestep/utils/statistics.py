"""Streaming statistics on vector samples."""

from __future__ import annotations

import numpy as np


class VectorSampleStatistics:
    """Accumulate min, max, mean and covariance of vector samples.

    Samples are never stored: only running extrema (with the index of the
    sample that produced them), the sum and the lower triangle of the sum
    of outer products are kept. The dimension is fixed by the first sample.
    """

    def __init__(self):
        self._n = 0
        self._dimension = -1
        self._min: np.ndarray | None = None
        self._max: np.ndarray | None = None
        self._min_indices: np.ndarray | None = None
        self._max_indices: np.ndarray | None = None
        self._sum: np.ndarray | None = None
        self._sum2: np.ndarray | None = None

    def add(self, x: np.ndarray) -> None:
        """Add one sample."""
        x = np.asarray(x, dtype=float)
        if x.ndim != 1:
            raise ValueError(f"sample must be 1D, got shape {x.shape}")

        if self._n == 0:
            self._dimension = len(x)
            self._min = x.copy()
            self._max = x.copy()
            self._min_indices = np.zeros(self._dimension, dtype=int)
            self._max_indices = np.zeros(self._dimension, dtype=int)
            self._sum = x.copy()
            self._sum2 = np.outer(x, x)
        else:
            if len(x) != self._dimension:
                raise ValueError(
                    f"sample has dimension {len(x)}, expected {self._dimension}"
                )
            lower = x < self._min
            upper = ~lower & (x > self._max)
            self._min[lower] = x[lower]
            self._min_indices[lower] = self._n
            self._max[upper] = x[upper]
            self._max_indices[upper] = self._n
            self._sum += x
            self._sum2 += np.outer(x, x)
        self._n += 1

    def add_all(self, points: np.ndarray) -> None:
        """Add every row of a 2D array as a sample."""
        for point in np.atleast_2d(points):
            self.add(point)

    def merge(self, other: VectorSampleStatistics) -> None:
        """Fold another accumulator into this one.

        Extrema taken from ``other`` are attributed to the first index of
        the merged block, since individual sample indices are not kept.
        """
        if other._n == 0:
            return
        if self._n == 0:
            self._dimension = other._dimension
            self._min = other._min.copy()
            self._max = other._max.copy()
            self._min_indices = other._min_indices.copy()
            self._max_indices = other._max_indices.copy()
            self._sum = other._sum.copy()
            self._sum2 = other._sum2.copy()
        else:
            if other._dimension != self._dimension:
                raise ValueError(
                    f"cannot merge dimension {other._dimension} "
                    f"into {self._dimension}"
                )
            lower = other._min < self._min
            upper = other._max > self._max
            self._min[lower] = other._min[lower]
            self._min_indices[lower] = self._n
            self._max[upper] = other._max[upper]
            self._max_indices[upper] = self._n
            self._sum += other._sum
            self._sum2 += other._sum2
        self._n += other._n

    def __len__(self) -> int:
        return self._n

    @property
    def dimension(self) -> int:
        """Sample dimension, -1 before the first sample."""
        return self._dimension

    @property
    def min(self) -> np.ndarray | None:
        return None if self._min is None else self._min.copy()

    @property
    def max(self) -> np.ndarray | None:
        return None if self._max is None else self._max.copy()

    @property
    def min_indices(self) -> np.ndarray | None:
        return None if self._min_indices is None else self._min_indices.copy()

    @property
    def max_indices(self) -> np.ndarray | None:
        return None if self._max_indices is None else self._max_indices.copy()

    @property
    def mean(self) -> np.ndarray | None:
        """Componentwise mean, or None without samples."""
        if self._n == 0:
            return None
        return self._sum / self._n

    @property
    def covariance(self) -> np.ndarray | None:
        """Unbiased covariance matrix, or None with fewer than 2 samples."""
        if self._n < 2:
            return None
        n = self._n
        return (n * self._sum2 - np.outer(self._sum, self._sum)) / (n * (n - 1))

    def __repr__(self) -> str:
        return (
            f"VectorSampleStatistics(n={self._n}, dimension={self._dimension})"
        )
