"""Affine constraints and prescribed dofs.

This module collects linear constraints of the form

    u[c] = sum_k a_k * u[m_k] + b

where ``c`` is the constrained dof and ``m_k`` are its master dofs (hanging
nodes, periodicity, multi-point constraints), together with prescribed dofs
``u[c] = b`` that have no masters (Dirichlet conditions).

After :meth:`ConstraintHandler.close` the handler exposes the lookup tables
read by the sparsity pattern code:

    - ``dofmapping``: dict from constrained dof to its slot
    - ``dofcoefficients``: per slot, ``None`` for a prescribed dof or the
      ordered list of ``(master_dof, coefficient)`` pairs
    - ``inhomogeneities``: per slot, the constant ``b``

Chains of constraints (a master that is itself constrained) are stored as
given; they are expected to be resolved by the caller.

Example:
    Hanging node 1 between nodes 0 and 2:

    >>> ch = ConstraintHandler(dh)
    >>> ch.add_affine_constraint(AffineConstraint(1, [(0, 0.5), (2, 0.5)]))
    >>> ch.close()
    >>> ch.coefficients_for_dof(1)
    [(0, 0.5), (2, 0.5)]
"""

import numpy as onp
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple, Union

from fepattern import logger
from fepattern.errors import PreconditionError


@dataclass
class AffineConstraint:
    """A single affine constraint on one dof.

    Attributes:
        constrained_dof (int): Dof whose value is determined by the constraint.
        entries (List[Tuple[int, float]]): ``(master_dof, coefficient)`` pairs.
            An empty list constrains the dof to the constant ``b``.
        b (float): Inhomogeneity. Defaults to 0.0.

    Example:
        >>> AffineConstraint(4, [(3, 0.5), (5, 0.5)])
    """

    constrained_dof: int
    entries: List[Tuple[int, float]] = field(default_factory=list)
    b: float = 0.0


class ConstraintHandler:
    """Collects affine constraints and prescribed dofs for a DofHandler.

    Attributes:
        dh: The closed DofHandler the constraints refer to.
        ndofs (int): Number of dofs of ``dh``.
        dofmapping (Dict[int, int]): Constrained dof to slot, set by close().
        dofcoefficients (List[Optional[List[Tuple[int, float]]]]): Master
            entries per slot, ``None`` for prescribed dofs.
        inhomogeneities (List[float]): Constant term per slot.
        prescribed_dofs (onp.ndarray): Sorted dofs constrained without masters.
        free_dofs (onp.ndarray): Sorted dofs that are not constrained.
    """

    def __init__(self, dh):
        if not dh.is_closed:
            raise PreconditionError("DofHandler must be closed before creating a ConstraintHandler")
        self.dh = dh
        self.ndofs = dh.ndofs()
        self._affine: List[AffineConstraint] = []
        self._prescribed: List[Tuple[int, float]] = []
        self._closed = False

        self.dofmapping: Dict[int, int] = {}
        self.dofcoefficients: List[Optional[List[Tuple[int, float]]]] = []
        self.inhomogeneities: List[float] = []
        self.prescribed_dofs = onp.array([], dtype=onp.int64)
        self.free_dofs = onp.array([], dtype=onp.int64)

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise PreconditionError("Cannot add constraints to a closed ConstraintHandler")

    def add_affine_constraint(self, constraint: AffineConstraint) -> None:
        """Add an affine constraint.

        Raises:
            PreconditionError: If the handler is closed.
        """
        self._check_open()
        self._affine.append(constraint)

    def add_prescribed_dofs(
        self, dofs: Iterable[int], values: Union[float, Iterable[float]] = 0.0
    ) -> None:
        """Prescribe dofs to fixed values (Dirichlet conditions).

        Args:
            dofs (Iterable[int]): Dofs to prescribe.
            values (Union[float, Iterable[float]], optional): A single value for
                all dofs or one value per dof. Defaults to 0.0.

        Raises:
            PreconditionError: If the handler is closed.
            ValueError: If the number of values does not match the dofs.
        """
        self._check_open()
        dofs = [int(d) for d in dofs]
        if isinstance(values, (int, float)):
            values = [float(values)] * len(dofs)
        else:
            values = [float(v) for v in values]
        if len(values) != len(dofs):
            raise ValueError(f"Got {len(values)} values for {len(dofs)} prescribed dofs")
        self._prescribed.extend(zip(dofs, values))

    def _check_dof(self, dof: int, what: str) -> None:
        if not 0 <= dof < self.ndofs:
            raise ValueError(f"{what} dof {dof} out of range [0, {self.ndofs - 1}]")

    def close(self) -> None:
        """Validate the constraints and build the lookup tables.

        Master entries referring to the same master dof are merged by summing
        their coefficients, keeping the order of first appearance.

        Raises:
            PreconditionError: If the handler is already closed.
            ValueError: If a dof is out of range, constrained twice, or
                constrained to itself.
        """
        if self._closed:
            raise PreconditionError("ConstraintHandler is already closed")

        dofmapping = {}
        dofcoefficients = []
        inhomogeneities = []

        for dof, value in self._prescribed:
            self._check_dof(dof, "Prescribed")
            if dof in dofmapping:
                raise ValueError(f"Dof {dof} is constrained more than once")
            dofmapping[dof] = len(dofcoefficients)
            dofcoefficients.append(None)
            inhomogeneities.append(value)

        for i, constraint in enumerate(self._affine):
            dof = int(constraint.constrained_dof)
            self._check_dof(dof, f"Constraint {i}: constrained")
            if dof in dofmapping:
                raise ValueError(f"Dof {dof} is constrained more than once")
            merged: Dict[int, float] = {}
            for master, coeff in constraint.entries:
                master = int(master)
                self._check_dof(master, f"Constraint {i}: master")
                if master == dof:
                    raise ValueError(f"Constraint {i}: dof {dof} cannot be its own master")
                merged[master] = merged.get(master, 0.0) + float(coeff)
            dofmapping[dof] = len(dofcoefficients)
            dofcoefficients.append(list(merged.items()))
            inhomogeneities.append(float(constraint.b))

        self.dofmapping = dofmapping
        self.dofcoefficients = dofcoefficients
        self.inhomogeneities = inhomogeneities
        constrained = self.constrained_mask()
        self.prescribed_dofs = onp.sort(
            onp.array([d for d, s in dofmapping.items() if dofcoefficients[s] is None], dtype=onp.int64)
        )
        self.free_dofs = onp.flatnonzero(~constrained).astype(onp.int64)
        self._closed = True
        logger.debug(
            f"ConstraintHandler closed: {len(self._affine)} affine constraints, "
            f"{len(self.prescribed_dofs)} prescribed dofs"
        )

    def constrained_mask(self) -> onp.ndarray:
        """Boolean array of length ``ndofs``, True for constrained dofs."""
        mask = onp.zeros(self.ndofs, dtype=bool)
        if self.dofmapping:
            mask[onp.fromiter(self.dofmapping.keys(), dtype=onp.int64)] = True
        return mask

    def is_constrained(self, dof: int) -> bool:
        return dof in self.dofmapping

    def coefficients_for_dof(self, dof: int) -> Optional[List[Tuple[int, float]]]:
        """Master entries of a dof.

        Returns:
            Optional[List[Tuple[int, float]]]: None if the dof is free or
                prescribed, otherwise its ``(master_dof, coefficient)`` list.
        """
        slot = self.dofmapping.get(dof)
        if slot is None:
            return None
        return self.dofcoefficients[slot]
