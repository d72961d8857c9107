"""
fepattern Examples Package

This package contains example scripts demonstrating sparsity pattern
construction with fepattern, from plain element coupling to coupling
restrictions and the fill-in caused by affine constraints.

Available Examples:
- periodic_pattern: Periodic and Dirichlet constraints on a quad mesh
- stokes_coupling_pattern: Field and component coupling for a mixed problem

Usage:
    python -m examples.periodic_pattern
    python -m examples.stokes_coupling_pattern
"""
