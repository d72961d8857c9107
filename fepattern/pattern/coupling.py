"""Expansion of field/component coupling into a local dof coupling mask.

A coupling specification is a square boolean matrix that states which parts of
the discretization interact. It can be given on three levels:

    - fields: ``(nfields, nfields)``, e.g. velocity/pressure blocks
    - components: ``(ncomponents, ncomponents)`` over all field components
    - local dofs: ``(ndofs_per_cell, ndofs_per_cell)``, a template of the
      element matrix

Whatever the level, it is expanded into an element-local boolean mask of shape
``(ndofs_per_cell, ndofs_per_cell)`` that is applied to every element. The
mask assumes that all elements share the layout of the representative
element.

Example:
    Stokes-like coupling without a pressure-pressure block:

    >>> coupling = [[True, True], [True, False]]
    >>> mask = coupling_to_local_dof_coupling(dh, coupling, sym=False)
"""

import numpy as onp

from fepattern import logger
from fepattern.errors import ConfigurationError


def coupling_to_local_dof_coupling(dh, coupling, sym: bool) -> onp.ndarray:
    """Compute the ``(ndofs_per_cell, ndofs_per_cell)`` local coupling mask.

    Args:
        dh (DofHandler): Closed dof handler.
        coupling (array-like): Square boolean coupling matrix given per field,
            per component or per local dof.
        sym (bool): The pattern is symmetric; the coupling must be symmetric.

    Returns:
        onp.ndarray: Boolean local dof coupling mask.

    Raises:
        ConfigurationError: If the coupling is not square, not symmetric while
            ``sym`` is set, or its size matches none of the three levels.
    """
    coupling = onp.asarray(coupling)
    if coupling.ndim != 2 or coupling.shape[0] != coupling.shape[1]:
        raise ConfigurationError(f"coupling not square, got shape {coupling.shape}")
    coupling = coupling.astype(bool)
    if sym and not onp.array_equal(coupling, coupling.T):
        raise ConfigurationError("coupling not symmetric")

    n = dh.ndofs_per_cell()
    sz = coupling.shape[0]
    field_names = dh.field_names
    field_dims = dh.field_dims
    dof_ranges = [dh.dof_range(name) for name in field_names]
    out = onp.zeros((n, n), dtype=bool)

    if sz == len(field_names):  # Coupling given by fields
        for j, jrange in enumerate(dof_ranges):
            for i, irange in enumerate(dof_ranges):
                out[irange.start : irange.stop, jrange.start : jrange.stop] = coupling[i, j]
        level = "fields"
    elif sz == sum(field_dims):  # Coupling given by components
        component_offsets = onp.concatenate([[0], onp.cumsum(field_dims)])
        # Global component index of every local dof; components are interleaved per node
        local_components = onp.empty(n, dtype=onp.int64)
        for f, frange in enumerate(dof_ranges):
            offsets_in_field = onp.arange(len(frange))
            local_components[frange.start : frange.stop] = (
                offsets_in_field % field_dims[f] + component_offsets[f]
            )
        out[:, :] = coupling[onp.ix_(local_components, local_components)]
        level = "components"
    elif sz == n:  # Coupling given by template local matrix
        out[:, :] = coupling
        level = "local dofs"
    else:
        raise ConfigurationError(
            f"could not create coupling: size {sz} matches neither the number of "
            f"fields ({len(field_names)}), components ({sum(field_dims)}) nor local "
            f"dofs per element ({n})"
        )

    logger.debug(f"Expanded {sz}x{sz} coupling given by {level} to a {n}x{n} local mask")
    return out
