"""Growable row/column index buffers for sparse pattern construction.

The exact number of nonzeros of a pattern is only known after all elements have
been visited, and inserting into an already materialized sparse matrix is slow.
Candidate positions are therefore accumulated as COO triplets (without values)
in preallocated NumPy arrays whose capacity grows geometrically on overflow,
giving amortized O(1) appends. The buffers are trimmed to the emitted length
before the skeleton is materialized.

Key Classes:
    TripletBuffer: Parallel growable row/col index arrays

Key Functions:
    estimate_capacity: Initial buffer size for an element loop
"""

import numpy as onp
from typing import Optional, Sequence, Tuple

from fepattern import logger


def estimate_capacity(
    ndofs_per_cell: int,
    num_cells: int,
    ndofs: int,
    symmetric: bool = False,
    local_coupling: Optional[onp.ndarray] = None,
) -> int:
    """Estimate the number of triplets emitted by the element loop.

    Args:
        ndofs_per_cell (int): Local dofs of the representative element.
        num_cells (int): Number of elements.
        ndofs (int): Total number of dofs, reserved for the diagonal.
        symmetric (bool, optional): Only the upper triangle is emitted.
            Defaults to False.
        local_coupling (Optional[onp.ndarray], optional): Local coupling mask;
            if given, its number of True entries is the per-element count.

    Returns:
        int: Initial buffer capacity.
    """
    n = ndofs_per_cell
    if local_coupling is not None:
        per_cell = int(onp.count_nonzero(local_coupling))
    elif symmetric:
        per_cell = n * (n + 1) // 2
    else:
        per_cell = n * n
    return per_cell * num_cells + ndofs


class TripletBuffer:
    """Parallel row and column index arrays with geometric growth.

    Attributes:
        rows (onp.ndarray): Row index storage, valid up to ``len(self)``.
        cols (onp.ndarray): Column index storage, valid up to ``len(self)``.
        growth_factor (float): Capacity multiplier applied on overflow.

    Example:
        >>> buf = TripletBuffer(2)
        >>> buf.append(0, 1)
        >>> buf.extend([1, 2], [1, 2])
        >>> buf.capacity >= 3
        True
        >>> rows, cols = buf.trim()
    """

    def __init__(self, capacity: int, growth_factor: float = 1.5):
        capacity = max(int(capacity), 0)
        self.rows = onp.empty(capacity, dtype=onp.int64)
        self.cols = onp.empty(capacity, dtype=onp.int64)
        self.growth_factor = growth_factor
        self._length = 0
        self.num_resizes = 0

    def __len__(self) -> int:
        return self._length

    @property
    def capacity(self) -> int:
        return self.rows.shape[0]

    def _grow(self, required: int) -> None:
        capacity = self.capacity
        new_capacity = max(capacity, 1)
        while new_capacity < required:
            new_capacity = max(int(new_capacity * self.growth_factor), new_capacity + 1)
        if new_capacity == capacity:
            return
        rows = onp.empty(new_capacity, dtype=onp.int64)
        cols = onp.empty(new_capacity, dtype=onp.int64)
        rows[: self._length] = self.rows[: self._length]
        cols[: self._length] = self.cols[: self._length]
        self.rows, self.cols = rows, cols
        self.num_resizes += 1
        logger.debug(f"Triplet buffer grown from {capacity} to {new_capacity}")

    def append(self, row: int, col: int) -> None:
        """Append a single (row, col) position."""
        if self._length >= self.capacity:
            self._grow(self._length + 1)
        self.rows[self._length] = row
        self.cols[self._length] = col
        self._length += 1

    def extend(self, rows: Sequence[int], cols: Sequence[int]) -> None:
        """Append a batch of positions.

        Raises:
            ValueError: If ``rows`` and ``cols`` differ in length.
        """
        rows = onp.asarray(rows, dtype=onp.int64).reshape(-1)
        cols = onp.asarray(cols, dtype=onp.int64).reshape(-1)
        if rows.shape != cols.shape:
            raise ValueError(f"rows and cols differ in length: {rows.shape[0]} vs {cols.shape[0]}")
        count = rows.shape[0]
        if count == 0:
            return
        end = self._length + count
        if end > self.capacity:
            self._grow(end)
        self.rows[self._length : end] = rows
        self.cols[self._length : end] = cols
        self._length = end

    def trim(self) -> Tuple[onp.ndarray, onp.ndarray]:
        """Shrink storage to the emitted length and return ``(rows, cols)``."""
        self.rows = self.rows[: self._length].copy()
        self.cols = self.cols[: self._length].copy()
        return self.rows, self.cols

    @classmethod
    def concatenate(cls, buffers: Sequence["TripletBuffer"], growth_factor: float = 1.5) -> "TripletBuffer":
        """Join buffers filled independently, e.g. one per worker."""
        total = sum(len(buf) for buf in buffers)
        out = cls(total, growth_factor)
        for buf in buffers:
            out.extend(buf.rows[: len(buf)], buf.cols[: len(buf)])
        return out
