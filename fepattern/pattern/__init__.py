"""Sparsity pattern module for finite element system matrices.

Key Components:
    coupling: Expansion of field/component coupling to local dof masks
    triplets: Growable row/col index buffers
    skeleton: BCOO skeleton materialization, union and inspection
    builder: Element loop and public pattern builders
    condensation: Fill-in from affine constraints
    options: Builder option defaults and validation

Public API:
    build_pattern: Full sparsity pattern
    build_symmetric_pattern: Upper-triangle pattern with a symmetric view
    PatternBuilder: Stage-by-stage pattern construction
    ConstraintCondenser: Condensation fill-in
    SymmetricPattern: Symmetric view over an upper-triangle skeleton
"""

from .coupling import coupling_to_local_dof_coupling
from .triplets import TripletBuffer, estimate_capacity
from .skeleton import (
    SymmetricPattern,
    materialize_skeleton,
    merge_skeletons,
    fill_zero,
    skeleton_positions,
    pattern_positions,
    nnz_per_row,
    has_full_diagonal,
    preallocation_counts,
)
from .condensation import ConstraintCondenser
from .builder import (
    PatternBuilder,
    build_pattern,
    build_symmetric_pattern,
    create_sparsity_pattern,  # alias for build_pattern
    create_symmetric_sparsity_pattern,  # alias for build_symmetric_pattern
)
from .options import DEFAULT_PATTERN_OPTIONS, resolve_pattern_options

__all__ = [
    # Builders
    'PatternBuilder',
    'build_pattern',
    'build_symmetric_pattern',
    'create_sparsity_pattern',
    'create_symmetric_sparsity_pattern',

    # Components
    'coupling_to_local_dof_coupling',
    'ConstraintCondenser',
    'TripletBuffer',
    'estimate_capacity',

    # Skeletons
    'SymmetricPattern',
    'materialize_skeleton',
    'merge_skeletons',
    'fill_zero',
    'skeleton_positions',
    'pattern_positions',
    'nnz_per_row',
    'has_full_diagonal',
    'preallocation_counts',

    # Options
    'DEFAULT_PATTERN_OPTIONS',
    'resolve_pattern_options',
]
