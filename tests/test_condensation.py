"""
Tests for the condensation fill-in of affine constraints.

These tests verify the positions added to a skeleton when constrained dofs are
eliminated onto their masters, for full and symmetric patterns, with and
without exclusion of constrained dofs.
"""
import jax.numpy as jnp
import pytest

from fepattern.dofs import AffineConstraint, ConstraintHandler, DofHandler
from fepattern.errors import PreconditionError
from fepattern.pattern import (
    ConstraintCondenser,
    build_pattern,
    build_symmetric_pattern,
    has_full_diagonal,
    pattern_positions,
)

# Mark all tests in this module as condensation tests
pytestmark = pytest.mark.condensation


def line_dof_handler(num_cells):
    dh = DofHandler([[i, i + 1] for i in range(num_cells)])
    dh.add_field("u", 1)
    dh.close()
    return dh


def hanging_node_dof_handler():
    """One coarse quad next to two fine quads with hanging node 6.

        3-------2-------7
        |       |  F2   |
        |   C   6-------5
        |       |  F1   |
        0-------1-------4

    With a scalar field the dof numbers equal the node numbers.
    """
    cells = [[0, 1, 2, 3], [1, 4, 5, 6], [6, 5, 7, 2]]
    dh = DofHandler(cells)
    dh.add_field("u", 1)
    dh.close()
    return dh


def midpoint_constraint_handler(dh, dof, left, right, prescribed=()):
    ch = ConstraintHandler(dh)
    ch.add_affine_constraint(AffineConstraint(dof, [(left, 0.5), (right, 0.5)]))
    if prescribed:
        ch.add_prescribed_dofs(prescribed)
    ch.close()
    return ch


class TestMidpointScenario:
    """Dof 1 constrained as 0.5 * dof 0 + 0.5 * dof 2 on a two-element line."""

    def test_condensation_adds_master_coupling(self):
        """Test that condensation adds (0, 2) and (2, 0) to the base pattern."""
        dh = line_dof_handler(2)
        ch = midpoint_constraint_handler(dh, 1, 0, 2)
        base = pattern_positions(build_pattern(dh))
        condensed = pattern_positions(build_pattern(dh, ch))
        assert condensed - base == {(0, 2), (2, 0)}, f"Got {sorted(condensed - base)}"
        assert base <= condensed

    def test_values_reset_to_zero(self):
        """Test that condensed skeleton values are zero placeholders."""
        dh = line_dof_handler(2)
        K = build_pattern(dh, midpoint_constraint_handler(dh, 1, 0, 2))
        assert jnp.all(K.data == 0.0)
        assert K.unique_indices and K.indices_sorted

    def test_symmetric_condensation(self):
        """Test that the symmetric view of the condensed pattern mirrors the full one."""
        dh = line_dof_handler(2)
        ch = midpoint_constraint_handler(dh, 1, 0, 2)
        sym = build_symmetric_pattern(dh, ch)
        assert (0, 2) in sym.positions()
        assert all(r <= c for r, c in pattern_positions(sym.upper))
        assert pattern_positions(sym.full()) == pattern_positions(build_pattern(dh, ch))

    def test_exclusion_keeps_master_fill(self):
        """Test exclusion of the constrained dof with master fill from its diagonal."""
        dh = line_dof_handler(2)
        ch = midpoint_constraint_handler(dh, 1, 0, 2)
        K = build_pattern(dh, ch, keep_constrained=False)
        assert pattern_positions(K) == {(0, 0), (0, 2), (1, 1), (2, 0), (2, 2)}


class TestCondenser:
    """Direct use of the ConstraintCondenser."""

    def test_fill_on_longer_line(self):
        """Test the fill-in of an interior midpoint constraint."""
        dh = line_dof_handler(4)
        ch = midpoint_constraint_handler(dh, 2, 1, 3)
        K = build_pattern(dh)
        K1 = ConstraintCondenser(ch).condense(K)
        assert pattern_positions(K1) - pattern_positions(K) == {(1, 3), (3, 1)}

    def test_condensation_is_idempotent(self):
        """Test that condensing twice gives the same positions as once."""
        dh = hanging_node_dof_handler()
        ch = midpoint_constraint_handler(dh, 6, 1, 2)
        condenser = ConstraintCondenser(ch)
        K = build_pattern(dh)
        once = condenser.condense(K)
        twice = condenser.condense(once)
        again = condenser.condense(K)
        assert pattern_positions(twice) == pattern_positions(once)
        assert pattern_positions(again) == pattern_positions(once)

    def test_prescribed_only_returns_same_skeleton(self):
        """Test that constraints without masters leave the skeleton untouched."""
        dh = line_dof_handler(3)
        ch = ConstraintHandler(dh)
        ch.add_prescribed_dofs([0, 3])
        ch.close()
        K = build_pattern(dh)
        condenser = ConstraintCondenser(ch)
        assert not condenser.has_affine_constraints()
        assert condenser.condense(K) is K

    def test_prescribed_dof_adds_nothing(self):
        """Test that a prescribed dof next to an affine constraint adds no fill of its own."""
        dh = line_dof_handler(4)
        with_prescribed = midpoint_constraint_handler(dh, 2, 1, 3, prescribed=[0])
        without = midpoint_constraint_handler(dh, 2, 1, 3)
        assert pattern_positions(build_pattern(dh, with_prescribed)) == pattern_positions(
            build_pattern(dh, without)
        )

    def test_exclusion_skips_constrained_master(self):
        """Test that a prescribed master gets no fill when constrained dofs are excluded."""
        dh = line_dof_handler(3)
        ch = midpoint_constraint_handler(dh, 1, 0, 2, prescribed=[0])
        positions = pattern_positions(build_pattern(dh, ch, keep_constrained=False))
        assert (0, 2) not in positions and (2, 0) not in positions
        assert (2, 2) in positions
        assert positions == {(0, 0), (1, 1), (2, 2), (2, 3), (3, 2), (3, 3)}

    def test_exclusion_skips_constrained_neighbours(self):
        """Test that no fill is emitted towards a prescribed dof next to an affine one."""
        dh = line_dof_handler(4)
        # Dof 2 tied to the line ends, its neighbour 3 prescribed
        ch = midpoint_constraint_handler(dh, 2, 0, 4, prescribed=[3])
        K = build_pattern(dh)
        base = pattern_positions(K)

        excluded = pattern_positions(ConstraintCondenser(ch, keep_constrained=False).condense(K))
        kept = pattern_positions(ConstraintCondenser(ch, keep_constrained=True).condense(K))

        assert excluded - base == {(0, 4), (1, 4), (4, 0), (4, 1)}, f"Got {sorted(excluded - base)}"
        assert kept - base == {(0, 3), (0, 4), (1, 4), (3, 0), (4, 0), (4, 1)}, f"Got {sorted(kept - base)}"

    def test_open_constraint_handler(self):
        """Test that the condenser requires a closed ConstraintHandler."""
        ch = ConstraintHandler(line_dof_handler(2))
        with pytest.raises(PreconditionError):
            ConstraintCondenser(ch)


class TestHangingNode:
    """Hanging node between a coarse and two fine quadrilaterals."""

    def test_fill_connects_neighbours_to_masters(self):
        """Test that every neighbour of the hanging node couples to both masters."""
        dh = hanging_node_dof_handler()
        ch = midpoint_constraint_handler(dh, 6, 1, 2)
        base = pattern_positions(build_pattern(dh))
        condensed = pattern_positions(build_pattern(dh, ch))
        assert (4, 2) not in base and (7, 1) not in base
        neighbours = {c for r, c in base if r == 6} - {6}
        assert neighbours == {1, 2, 4, 5, 7}
        for r in neighbours:
            for master in (1, 2):
                assert (r, master) in condensed, f"Missing {(r, master)}"
                assert (master, r) in condensed, f"Missing {(master, r)}"

    def test_symmetric_hanging_node(self):
        """Test the symmetric view against the full condensed pattern."""
        dh = hanging_node_dof_handler()
        ch = midpoint_constraint_handler(dh, 6, 1, 2)
        sym = build_symmetric_pattern(dh, ch)
        assert pattern_positions(sym.full()) == pattern_positions(build_pattern(dh, ch))

    def test_exclusion_with_hanging_node(self):
        """Test that excluded constrained dofs only keep their diagonal."""
        dh = hanging_node_dof_handler()
        ch = midpoint_constraint_handler(dh, 6, 1, 2)
        K = build_pattern(dh, ch, keep_constrained=False)
        positions = pattern_positions(K)
        assert has_full_diagonal(K)
        for r, c in positions:
            if r != c:
                assert 6 not in (r, c), f"Constrained dof in position {(r, c)}"
        # Masters may appear through the condensation of the diagonal
        assert (1, 2) in positions and (2, 1) in positions


class TestPeriodicConstraints:
    """Right boundary of a quad mesh tied to its left boundary."""

    def setup_periodic(self, nx=3, ny=2):
        def node(i, j):
            return j * (nx + 1) + i

        cells = [
            [node(i, j), node(i + 1, j), node(i + 1, j + 1), node(i, j + 1)]
            for j in range(ny)
            for i in range(nx)
        ]
        dh = DofHandler(cells)
        dh.add_field("u", 1)
        dh.close()

        ch = ConstraintHandler(dh)
        ch.add_prescribed_dofs([dh.node_dofs("u", node(i, 0))[0] for i in range(nx + 1)])
        for j in range(1, ny + 1):
            left = dh.node_dofs("u", node(0, j))[0]
            right = dh.node_dofs("u", node(nx, j))[0]
            ch.add_affine_constraint(AffineConstraint(right, [(left, 1.0)]))
        ch.close()
        return dh, ch

    def test_masters_are_unconstrained(self):
        """Test that no master of a periodic constraint is itself constrained."""
        dh, ch = self.setup_periodic()
        for coefficients in ch.dofcoefficients:
            for master, _ in coefficients or ():
                assert not ch.is_constrained(master), f"Master {master} is constrained"

    def test_neighbours_couple_to_left_boundary(self):
        """Test that neighbours without masters of a right boundary dof couple to its left partner."""
        dh, ch = self.setup_periodic()
        base = pattern_positions(build_pattern(dh))
        condensed = pattern_positions(build_pattern(dh, ch))
        for dof, slot in ch.dofmapping.items():
            for master, _ in ch.dofcoefficients[slot] or ():
                for r in {c for r, c in base if r == dof}:
                    if ch.coefficients_for_dof(r):
                        continue
                    assert (r, master) in condensed and (master, r) in condensed
        sym = build_symmetric_pattern(dh, ch)
        assert pattern_positions(sym.full()) == condensed


if __name__ == "__main__":
    # Run tests when executed directly
    pytest.main([__file__, "-v"])
