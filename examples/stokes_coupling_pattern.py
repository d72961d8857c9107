#!/usr/bin/env python3
"""
Coupling restrictions for a mixed velocity-pressure problem.

A 2D velocity field u (2 components) and a pressure field p (1 component)
share the nodes of a quadrilateral mesh. The Stokes system has no
pressure-pressure block, and the velocity components only couple to each
other through the viscous term when a full stress tensor is used. The
example compares the size of the pattern for:

- No coupling restriction
- A field coupling without the p-p block
- A component coupling without the ux-uy blocks and the p-p block
- The symmetric counterparts
"""

import numpy as onp

from fepattern import DofHandler
from fepattern.pattern import build_pattern, build_symmetric_pattern


def rectangle_mesh(nx=10, ny=10):
    cells = []
    for j in range(ny):
        for i in range(nx):
            n0 = j * (nx + 1) + i
            cells.append([n0, n0 + 1, n0 + nx + 2, n0 + nx + 1])
    return cells


def main():
    dh = DofHandler(rectangle_mesh(10, 10))
    dh.add_field("u", 2)
    dh.add_field("p", 1)
    dh.close()
    print(f"Number of dofs: {dh.ndofs()}, local dofs per cell: {dh.ndofs_per_cell()}")

    # Field coupling: rows/cols are (u, p)
    field_coupling = onp.array([[True, True],
                                [True, False]])

    # Component coupling: rows/cols are (ux, uy, p)
    component_coupling = onp.array([[True, False, True],
                                    [False, True, True],
                                    [True, True, False]])

    patterns = {
        "full coupling": build_pattern(dh),
        "field coupling": build_pattern(dh, coupling=field_coupling),
        "component coupling": build_pattern(dh, coupling=component_coupling),
    }
    for name, K in patterns.items():
        print(f"{name:>20s}: {K.nse} positions")

    sym = build_symmetric_pattern(dh, coupling=component_coupling)
    print(f"{'symmetric':>20s}: {sym.nse} positions in the upper triangle")


if __name__ == "__main__":
    main()
