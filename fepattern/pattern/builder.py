"""Sparsity pattern construction for finite element system matrices.

This module computes the skeleton of the global matrix, i.e. the set of
positions that may hold a nonzero, from the dof numbering of a DofHandler.
Every pair of dofs that share an element is a candidate position. Candidates
can be pruned by a field/component coupling, restricted to the upper triangle
for symmetric matrices, and positions touching constrained dofs can be
dropped. The diagonal is always part of the pattern. When a ConstraintHandler
is given, the fill-in caused by condensing its affine constraints is added.

The module supports:
    - Full and symmetric (upper-triangle) patterns
    - Field, component or local dof coupling restrictions
    - Exclusion of constrained dofs (``keep_constrained=False``)
    - Condensation fill-in for affine constraints
    - Elements with different numbers of local dofs (without coupling)

Key Classes:
    PatternBuilder: Element loop, triplet collection and materialization

Key Functions:
    build_pattern: Full pattern as a BCOO skeleton
    build_symmetric_pattern: Upper-triangle pattern as a SymmetricPattern

Example:
    >>> dh = DofHandler([[0, 1], [1, 2]])
    >>> dh.add_field("u", 1)
    >>> dh.close()
    >>> K = build_pattern(dh)
    >>> sorted(pattern_positions(K))
    [(0, 0), (0, 1), (1, 0), (1, 1), (1, 2), (2, 1), (2, 2)]
"""

import numpy as onp
from typing import Any, Dict, Optional, Tuple
from jax.experimental.sparse import BCOO

from fepattern import logger
from fepattern.errors import ConfigurationError, PreconditionError
from fepattern.pattern.condensation import ConstraintCondenser
from fepattern.pattern.coupling import coupling_to_local_dof_coupling
from fepattern.pattern.options import resolve_pattern_options
from fepattern.pattern.skeleton import SymmetricPattern, materialize_skeleton
from fepattern.pattern.triplets import TripletBuffer, estimate_capacity


class PatternBuilder:
    """Builds the sparsity pattern of a DofHandler.

    Attributes:
        dh (DofHandler): Closed dof handler providing the element dofs.
        ch (Optional[ConstraintHandler]): Closed constraint handler, or None.
        symmetric (bool): Only emit positions with ``row <= col``.
        keep_constrained (bool): Keep positions involving constrained dofs.
        coupling (Optional[array-like]): Coupling specification, or None for
            full coupling.
        options (Dict[str, Any]): Resolved builder options.

    Note:
        The symmetric filter compares raw global dof numbers: a local pair
        ``(i, j)`` is skipped when ``dofs[i] > dofs[j]``. "Upper triangle"
        therefore refers to the global numbering, not to the local element
        ordering.
    """

    def __init__(
        self,
        dh,
        ch=None,
        symmetric: bool = False,
        keep_constrained: bool = True,
        coupling=None,
        options: Optional[Dict[str, Any]] = None,
    ):
        if not dh.is_closed:
            raise PreconditionError("DofHandler must be closed before building a sparsity pattern")
        if not keep_constrained and ch is None:
            raise PreconditionError("keep_constrained=False requires a ConstraintHandler")
        if ch is not None:
            if not ch.is_closed:
                raise PreconditionError("ConstraintHandler must be closed before building a sparsity pattern")
            if ch.ndofs != dh.ndofs():
                raise PreconditionError(
                    f"ConstraintHandler has {ch.ndofs} dofs but DofHandler has {dh.ndofs()}"
                )
        self.dh = dh
        self.ch = ch
        self.symmetric = symmetric
        self.keep_constrained = keep_constrained
        self.coupling = coupling
        self.options = resolve_pattern_options(options)

    def local_coupling(self) -> Optional[onp.ndarray]:
        """Local dof coupling mask, or None for full coupling."""
        if self.coupling is None:
            return None
        return coupling_to_local_dof_coupling(self.dh, self.coupling, self.symmetric)

    def estimate_capacity(self, local_coupling: Optional[onp.ndarray] = None) -> int:
        return estimate_capacity(
            self.dh.ndofs_per_cell(),
            self.dh.getncells(),
            self.dh.ndofs(),
            symmetric=self.symmetric,
            local_coupling=local_coupling,
        )

    def collect_triplets(self) -> Tuple[onp.ndarray, onp.ndarray]:
        """Emit the candidate positions of all elements plus the diagonal.

        Returns:
            Tuple[onp.ndarray, onp.ndarray]: Trimmed ``(rows, cols)`` arrays,
                possibly containing duplicates.

        Raises:
            ConfigurationError: If the coupling is malformed or an element's
                dof count does not match the local coupling mask.
        """
        dh = self.dh
        ndofs = dh.ndofs()
        ncells = dh.getncells()
        local_coupling = self.local_coupling()
        capacity = self.estimate_capacity(local_coupling)
        logger.debug(f"Estimated {capacity} triplets for {ncells} cells and {ndofs} dofs")
        buffer = TripletBuffer(capacity, self.options['growth_factor'])

        constrained = None
        if not self.keep_constrained:
            constrained = self.ch.constrained_mask()

        for cell_id in range(ncells):
            # Elements may have different numbers of dofs
            global_dofs = dh.celldofs(cell_id)
            n = global_dofs.shape[0]
            rows = onp.repeat(global_dofs[:, None], n, axis=1)
            cols = onp.repeat(global_dofs[None, :], n, axis=0)
            if local_coupling is None:
                keep = onp.ones((n, n), dtype=bool)
            else:
                if local_coupling.shape[0] != n:
                    raise ConfigurationError(
                        f"Cell {cell_id} has {n} dofs but the coupling mask is "
                        f"{local_coupling.shape[0]}x{local_coupling.shape[0]}; coupling "
                        f"requires a uniform element layout"
                    )
                keep = local_coupling.copy()
            if self.symmetric:
                keep &= rows <= cols
            if constrained is not None:
                keep &= ~(constrained[rows] | constrained[cols])
            buffer.extend(rows[keep], cols[keep])

        # Diagonal entries are always present
        diagonal = onp.arange(ndofs, dtype=onp.int64)
        buffer.extend(diagonal, diagonal)

        logger.debug(
            f"Collected {len(buffer)} triplets (capacity {buffer.capacity}, "
            f"{buffer.num_resizes} resizes)"
        )
        return buffer.trim()

    def build(self) -> BCOO:
        """Materialize the skeleton and add condensation fill-in.

        Returns:
            BCOO: ``(ndofs, ndofs)`` skeleton with zero placeholder values.
        """
        rows, cols = self.collect_triplets()
        K = materialize_skeleton(rows, cols, self.dh.ndofs(), self.options['dtype'])

        if self.ch is not None:
            condenser = ConstraintCondenser(
                self.ch,
                keep_constrained=self.keep_constrained,
                symmetric=self.symmetric,
                options=self.options,
            )
            K = condenser.condense(K)
        return K


def build_pattern(
    dh,
    ch=None,
    *,
    keep_constrained: bool = True,
    coupling=None,
    options: Optional[Dict[str, Any]] = None,
) -> BCOO:
    """Create the sparsity pattern of the dof numbering in ``dh``.

    Args:
        dh (DofHandler): Closed dof handler.
        ch (Optional[ConstraintHandler], optional): Closed constraint handler.
            If given, the fill-in from condensing its affine constraints is
            added. Defaults to None.
        keep_constrained (bool, optional): Keep positions that involve
            constrained dofs. False requires ``ch``. Defaults to True.
        coupling (array-like, optional): Square boolean coupling between
            fields, components or local dofs. Defaults to full coupling.
        options (Optional[Dict[str, Any]], optional): Builder options, see
            :mod:`fepattern.pattern.options`.

    Returns:
        BCOO: Skeleton with both triangles stored and zero values.

    Raises:
        ConfigurationError: For a malformed coupling or invalid options.
        PreconditionError: If a handler is not closed, or
            ``keep_constrained=False`` without ``ch``.

    Example:
        >>> K = build_pattern(dh, coupling=[[True, True], [True, False]])
    """
    builder = PatternBuilder(
        dh, ch, symmetric=False, keep_constrained=keep_constrained,
        coupling=coupling, options=options,
    )
    return builder.build()


def build_symmetric_pattern(
    dh,
    ch=None,
    *,
    keep_constrained: bool = True,
    coupling=None,
    options: Optional[Dict[str, Any]] = None,
) -> SymmetricPattern:
    """Create the symmetric sparsity pattern of ``dh`` from its upper triangle.

    Arguments are those of :func:`build_pattern`; the coupling must be
    symmetric.

    Returns:
        SymmetricPattern: View over the upper-triangle skeleton.
    """
    builder = PatternBuilder(
        dh, ch, symmetric=True, keep_constrained=keep_constrained,
        coupling=coupling, options=options,
    )
    return SymmetricPattern(builder.build())


# Aliases
create_sparsity_pattern = build_pattern
create_symmetric_sparsity_pattern = build_symmetric_pattern
