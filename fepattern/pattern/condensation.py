"""Sparsity fill-in from condensing affine constraints.

Eliminating a constrained dof ``c = sum_k a_k * m_k + b`` from a system moves
the row and column of ``c`` onto its masters ``m_k``. Every stored position
``(r, c)`` of the matrix therefore spreads to ``(r, m_k)``, every ``(c, r)``
to ``(m_k, r)``, and positions between two constrained dofs spread to all
pairs of their masters. The new positions must be part of the skeleton before
assembly, since adding entries to a materialized sparse matrix afterwards is
very expensive.

Only constrained dofs with at least one master take part; prescribed dofs
(no masters) contribute nothing from their side. Chained constraints are not
resolved here.

Key Classes:
    ConstraintCondenser: Computes the fill-in and merges it into a skeleton
"""

import numpy as onp
from typing import Any, Dict, Optional
from jax.experimental.sparse import BCOO

from fepattern import logger
from fepattern.errors import PreconditionError
from fepattern.pattern.options import resolve_pattern_options
from fepattern.pattern.skeleton import materialize_skeleton, merge_skeletons, skeleton_positions
from fepattern.pattern.triplets import TripletBuffer


class ConstraintCondenser:
    """Adds the condensation pattern of a ConstraintHandler to a skeleton.

    Attributes:
        ch (ConstraintHandler): Closed constraint handler.
        keep_constrained (bool): If False, constrained dofs are excluded from
            the pattern and no fill-in is created on their rows/columns or on
            constrained masters.
        symmetric (bool): The skeleton stores the upper triangle only; emitted
            positions are stored as ``(min, max)``.
        options (Dict[str, Any]): Resolved builder options.

    Example:
        >>> condenser = ConstraintCondenser(ch)
        >>> K = condenser.condense(K)
    """

    def __init__(
        self,
        ch,
        keep_constrained: bool = True,
        symmetric: bool = False,
        options: Optional[Dict[str, Any]] = None,
    ):
        if not ch.is_closed:
            raise PreconditionError("ConstraintHandler must be closed before condensation")
        self.ch = ch
        self.keep_constrained = keep_constrained
        self.symmetric = symmetric
        self.options = resolve_pattern_options(options)

    def has_affine_constraints(self) -> bool:
        """True if any constraint slot has at least one master."""
        return any(coeffs for coeffs in self.ch.dofcoefficients)

    def _masters(self, dof: int):
        return self.ch.coefficients_for_dof(dof) or ()

    def collect_triplets(self, K: BCOO) -> TripletBuffer:
        """Emit the fill-in positions for every stored position of ``K``.

        Positions are visited column by column. Positions where neither the
        row nor the column dof has masters need no action and are skipped.
        """
        ch = self.ch
        keep = self.keep_constrained
        capacity = self.options['condensation_capacity_factor'] * len(ch.dofcoefficients)
        buffer = TripletBuffer(capacity, self.options['growth_factor'])

        has_masters = onp.zeros(K.shape[0], dtype=bool)
        for dof, slot in ch.dofmapping.items():
            if ch.dofcoefficients[slot]:
                has_masters[dof] = True

        rows, cols = skeleton_positions(K)
        order = onp.lexsort((rows, cols))
        rows, cols = rows[order], cols[order]
        active = has_masters[rows] | has_masters[cols]

        for row, col in zip(rows[active].tolist(), cols[active].tolist()):
            col_masters = self._masters(col)
            row_masters = self._masters(row)
            if not col_masters:
                if not keep and ch.is_constrained(col):
                    continue
                for d, _ in row_masters:
                    buffer.append(d, col)
            elif not row_masters:
                if not keep and ch.is_constrained(row):
                    continue
                for d, _ in col_masters:
                    buffer.append(row, d)
            else:
                for d1, _ in col_masters:
                    if not keep and ch.is_constrained(d1):
                        continue
                    for d2, _ in row_masters:
                        if not keep and ch.is_constrained(d2):
                            continue
                        buffer.append(d1, d2)
        return buffer

    def condense(self, K: BCOO) -> BCOO:
        """Merge the condensation fill-in into ``K``.

        Args:
            K (BCOO): Skeleton built for the dof handler of ``ch``.

        Returns:
            BCOO: ``K`` itself if there are no affine constraints with masters,
                otherwise a new skeleton holding the union of ``K`` and the
                fill-in, with zero values.
        """
        if not self.has_affine_constraints():
            logger.debug("No affine constraints with masters, skipping condensation")
            return K

        buffer = self.collect_triplets(K)
        rows, cols = buffer.trim()
        if self.symmetric:
            rows, cols = onp.minimum(rows, cols), onp.maximum(rows, cols)

        K2 = materialize_skeleton(rows, cols, K.shape[0], K.dtype)
        merged = merge_skeletons(K, K2)
        logger.info(
            f"Condensation added {merged.nse - K.nse} positions "
            f"({len(rows)} triplets from {len(self.ch.dofcoefficients)} constraints)"
        )
        return merged
