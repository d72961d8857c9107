"""Dof numbering and constraint collaborators.

Key Components:
    dof_handler: Field registration and global dof numbering
    constraints: Affine constraints and prescribed dofs

Public API:
    DofHandler: Distributes global dofs over mesh nodes
    Field: Field record held by a DofHandler
    AffineConstraint: A single affine constraint record
    ConstraintHandler: Collects and closes constraints
"""

from .dof_handler import DofHandler, Field
from .constraints import AffineConstraint, ConstraintHandler

__all__ = [
    'DofHandler',
    'Field',
    'AffineConstraint',
    'ConstraintHandler',
]
