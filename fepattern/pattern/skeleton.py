"""Sparse skeletons built from COO triplets.

A skeleton is a JAX BCOO matrix whose stored positions are the nonzero
pattern of a system matrix. Stored values are placeholders (zeros) and carry
no meaning. Skeletons produced here always have deduplicated, row-major
sorted indices, so they can be used directly as the structure of an assembled
matrix.

The module supports:
    - Materializing a skeleton from (possibly duplicated) row/col triplets
    - Set union of skeletons and resetting stored values
    - A symmetric view over an upper-triangle skeleton
    - Inspection helpers: position sets, nnz per row, diagonal check and
      per-row preallocation counts

Example:
    >>> K = materialize_skeleton(onp.array([0, 0, 1]), onp.array([0, 0, 1]), 2)
    >>> K.nse
    2
"""

import jax.numpy as np
import numpy as onp
from dataclasses import dataclass
from typing import List, Set, Tuple
from jax.experimental.sparse import BCOO

from fepattern import logger

from jax import config
config.update("jax_enable_x64", True)


def _unique_positions(rows: onp.ndarray, cols: onp.ndarray, n: int) -> Tuple[onp.ndarray, onp.ndarray]:
    """Deduplicate positions and sort them row-major."""
    rows = onp.asarray(rows, dtype=onp.int64)
    cols = onp.asarray(cols, dtype=onp.int64)
    if rows.size and (rows.min() < 0 or cols.min() < 0 or rows.max() >= n or cols.max() >= n):
        raise IndexError(f"Triplet index out of range for a {n}x{n} skeleton")
    if rows.size == 0:
        return rows, cols
    keys = onp.unique(rows * n + cols)
    return keys // n, keys % n


def _skeleton_from_positions(rows: onp.ndarray, cols: onp.ndarray, n: int, dtype=onp.float64) -> BCOO:
    indices = np.asarray(onp.column_stack([rows, cols]).reshape(-1, 2))
    data = np.zeros(rows.shape[0], dtype=dtype)
    return BCOO((data, indices), shape=(n, n), indices_sorted=True, unique_indices=True)


def materialize_skeleton(rows: onp.ndarray, cols: onp.ndarray, n: int, dtype=onp.float64) -> BCOO:
    """Build a skeleton from row/col triplets, merging duplicate positions.

    Args:
        rows (onp.ndarray): Row indices, duplicates allowed.
        cols (onp.ndarray): Column indices, same length as ``rows``.
        n (int): Matrix dimension.
        dtype (optional): Placeholder value dtype. Defaults to float64.

    Returns:
        BCOO: ``(n, n)`` skeleton with unique, sorted indices and zero values.

    Raises:
        IndexError: If an index lies outside ``[0, n)``.
    """
    logger.debug(f"Creating sparse skeleton with JAX BCOO from {len(rows)} triplets...")
    rows, cols = _unique_positions(rows, cols, n)
    K = _skeleton_from_positions(rows, cols, n, dtype)
    logger.debug(f"Skeleton has {K.nse} stored positions")
    return K


def skeleton_positions(K: BCOO) -> Tuple[onp.ndarray, onp.ndarray]:
    """Row and column arrays of the stored positions of ``K``."""
    indices = onp.asarray(K.indices)
    return indices[:, 0], indices[:, 1]


def merge_skeletons(K: BCOO, K2: BCOO) -> BCOO:
    """Union of the stored positions of two skeletons, values reset to zero.

    Raises:
        ValueError: If the shapes differ.
    """
    if K.shape != K2.shape:
        raise ValueError(f"Cannot merge skeletons of shape {K.shape} and {K2.shape}")
    rows1, cols1 = skeleton_positions(K)
    rows2, cols2 = skeleton_positions(K2)
    rows, cols = _unique_positions(
        onp.concatenate([rows1, rows2]), onp.concatenate([cols1, cols2]), K.shape[0]
    )
    return _skeleton_from_positions(rows, cols, K.shape[0], K.dtype)


def fill_zero(K: BCOO) -> BCOO:
    """Same structure as ``K`` with all stored values set to zero."""
    return BCOO(
        (np.zeros_like(K.data), K.indices),
        shape=K.shape,
        indices_sorted=K.indices_sorted,
        unique_indices=K.unique_indices,
    )


def pattern_positions(K: BCOO) -> Set[Tuple[int, int]]:
    """Stored positions of ``K`` as a set of ``(row, col)`` tuples."""
    rows, cols = skeleton_positions(K)
    return set(zip(rows.tolist(), cols.tolist()))


def nnz_per_row(K: BCOO) -> onp.ndarray:
    """Number of stored positions in every row."""
    rows, _ = skeleton_positions(K)
    return onp.bincount(rows, minlength=K.shape[0])


def has_full_diagonal(K: BCOO) -> bool:
    """True if every diagonal position is stored."""
    rows, cols = skeleton_positions(K)
    diagonal = onp.zeros(K.shape[0], dtype=bool)
    diagonal[rows[rows == cols]] = True
    return bool(diagonal.all())


def preallocation_counts(K: BCOO) -> Tuple[int, List[int]]:
    """Per-row nonzero counts for preallocating an AIJ (CSR) matrix.

    Returns:
        Tuple[int, List[int]]: ``(n_rows, nnz)`` where ``nnz[i]`` is the
            number of stored positions in row ``i``.

    Raises:
        ValueError: If ``K`` is not square.
    """
    n_rows, n_cols = K.shape
    if n_rows != n_cols:
        raise ValueError(f"Skeleton must be square, got shape={K.shape}.")
    return n_rows, nnz_per_row(K).astype(int).tolist()


@dataclass
class SymmetricPattern:
    """Symmetric view of an upper-triangle skeleton.

    Only positions with ``row <= col`` of ``upper`` belong to the view; any
    stored lower-triangle position is ignored.

    Attributes:
        upper (BCOO): Skeleton holding the upper triangle.

    Example:
        >>> sym = build_symmetric_pattern(dh)
        >>> K = sym.full()  # both triangles
    """

    upper: BCOO

    @property
    def shape(self) -> Tuple[int, int]:
        return self.upper.shape

    @property
    def nse(self) -> int:
        return self.upper.nse

    def upper_positions(self) -> Tuple[onp.ndarray, onp.ndarray]:
        rows, cols = skeleton_positions(self.upper)
        keep = rows <= cols
        return rows[keep], cols[keep]

    def positions(self) -> Set[Tuple[int, int]]:
        """Upper-triangle positions of the view."""
        rows, cols = self.upper_positions()
        return set(zip(rows.tolist(), cols.tolist()))

    def full(self) -> BCOO:
        """Mirror the upper triangle into a full skeleton."""
        rows, cols = self.upper_positions()
        rows, cols = _unique_positions(
            onp.concatenate([rows, cols]), onp.concatenate([cols, rows]), self.shape[0]
        )
        return _skeleton_from_positions(rows, cols, self.shape[0], self.upper.dtype)
