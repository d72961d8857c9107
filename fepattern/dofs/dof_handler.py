"""Degree of freedom numbering for finite element meshes.

This module provides a small DofHandler that distributes global degrees of
freedom over the nodes of a mesh for one or more fields. It exposes the
read-only interface consumed by the sparsity pattern builder: total dof count,
local dofs per element, field names and component counts, local dof ranges per
field and the global dofs of every element.

Numbering is done cell by cell in ascending cell order. Within a cell the
fields are visited in the order they were added, and within a field the nodes
are visited in cell order with the components of a node numbered
consecutively. Nodes shared between cells share their dofs.

Key Classes:
    DofHandler: Field registration, dof numbering and element dof queries

Example:
    Two linear 1D elements sharing node 1:

    >>> from fepattern.dofs import DofHandler
    >>> dh = DofHandler([[0, 1], [1, 2]])
    >>> dh.add_field("u", 1)
    >>> dh.close()
    >>> dh.ndofs()
    3
    >>> dh.celldofs(1)
    array([1, 2])
"""

import numpy as onp
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from fepattern import logger
from fepattern.errors import PreconditionError


@dataclass
class Field:
    """A field registered on a DofHandler.

    Attributes:
        name (str): Field name, unique within the handler.
        dim (int): Number of components per node (1 for scalar fields).
        num_cell_nodes (Optional[int]): Number of leading cell nodes the
            field lives on. None means all nodes of every cell, which allows
            e.g. a pressure field on the vertices of a quadratic cell.
    """

    name: str
    dim: int
    num_cell_nodes: Optional[int] = None

    def nodes_in_cell(self, cell: Sequence[int]) -> Sequence[int]:
        if self.num_cell_nodes is None:
            return cell
        return cell[: self.num_cell_nodes]


class DofHandler:
    """Distributes global dofs over mesh nodes for a set of fields.

    Attributes:
        cells (List[List[int]]): Node ids of every cell. Cells may have
            different numbers of nodes.
        num_nodes (int): Number of nodes in the mesh.
        fields (List[Field]): Registered fields in insertion order.

    Note:
        The handler must be closed with :meth:`close` before any dof query.
        Once closed, no field may be added.
    """

    def __init__(self, cells: Sequence[Sequence[int]], num_nodes: Optional[int] = None):
        self.cells = [[int(node) for node in cell] for cell in cells]
        max_node = max((max(cell) for cell in self.cells if cell), default=-1)
        if num_nodes is None:
            num_nodes = max_node + 1
        elif num_nodes <= max_node:
            raise ValueError(
                f"num_nodes={num_nodes} but cells reference node {max_node}"
            )
        self.num_nodes = num_nodes
        self.fields: List[Field] = []
        self._closed = False
        self._ndofs = 0
        self._cell_dofs: List[onp.ndarray] = []
        self._node_dofs: Dict[str, Dict[int, List[int]]] = {}

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def field_names(self) -> List[str]:
        return [field.name for field in self.fields]

    @property
    def field_dims(self) -> List[int]:
        return [field.dim for field in self.fields]

    def add_field(self, name: str, dim: int, num_cell_nodes: Optional[int] = None) -> None:
        """Register a field on the mesh.

        Args:
            name (str): Field name.
            dim (int): Number of components per node.
            num_cell_nodes (Optional[int], optional): Restrict the field to the
                first ``num_cell_nodes`` nodes of each cell. Defaults to None
                (all nodes).

        Raises:
            PreconditionError: If the handler is already closed.
            ValueError: If the name is taken or ``dim``/``num_cell_nodes``
                is not positive.
        """
        if self._closed:
            raise PreconditionError("Cannot add a field to a closed DofHandler")
        if name in self.field_names:
            raise ValueError(f"Field '{name}' is already defined")
        if not isinstance(dim, int) or dim <= 0:
            raise ValueError(f"Field '{name}': dim must be a positive integer, got {dim}")
        if num_cell_nodes is not None and num_cell_nodes <= 0:
            raise ValueError(
                f"Field '{name}': num_cell_nodes must be positive, got {num_cell_nodes}"
            )
        self.fields.append(Field(name, dim, num_cell_nodes))

    def close(self) -> None:
        """Number all dofs and freeze the handler.

        Raises:
            PreconditionError: If the handler is already closed.
            ValueError: If no field was added.
        """
        if self._closed:
            raise PreconditionError("DofHandler is already closed")
        if not self.fields:
            raise ValueError("DofHandler needs at least one field before close()")

        next_dof = 0
        node_dofs = {field.name: {} for field in self.fields}
        cell_dofs = []
        for cell in self.cells:
            dofs = []
            for field in self.fields:
                seen = node_dofs[field.name]
                for node in field.nodes_in_cell(cell):
                    if node not in seen:
                        seen[node] = list(range(next_dof, next_dof + field.dim))
                        next_dof += field.dim
                    dofs.extend(seen[node])
            cell_dofs.append(onp.asarray(dofs, dtype=onp.int64))

        self._ndofs = next_dof
        self._cell_dofs = cell_dofs
        self._node_dofs = node_dofs
        self._closed = True
        logger.debug(
            f"DofHandler closed: {self._ndofs} dofs, {len(self.cells)} cells, "
            f"fields {self.field_names}"
        )

    def _check_closed(self) -> None:
        if not self._closed:
            raise PreconditionError("DofHandler must be closed before querying dofs")

    def ndofs(self) -> int:
        """Total number of dofs."""
        self._check_closed()
        return self._ndofs

    def getncells(self) -> int:
        return len(self.cells)

    def ndofs_per_cell(self, cell_id: Optional[int] = None) -> int:
        """Number of local dofs of a cell.

        Args:
            cell_id (Optional[int], optional): Cell to query. If None, the
                first cell is used as the representative element.
                A mesh without cells has no representative element and
                gives 0.

        Returns:
            int: Local dof count.
        """
        self._check_closed()
        if cell_id is None:
            if not self._cell_dofs:
                return 0
            cell_id = 0
        return len(self._cell_dofs[cell_id])

    def field_offsets(self) -> List[int]:
        """Local offsets of the field blocks in the representative cell."""
        self._check_closed()
        offsets = [0]
        if not self.cells:
            return offsets * (len(self.fields) + 1)
        cell = self.cells[0]
        for field in self.fields:
            offsets.append(offsets[-1] + field.dim * len(field.nodes_in_cell(cell)))
        return offsets

    def dof_range(self, field_name: str) -> range:
        """Local dof index range of a field within the representative cell.

        Args:
            field_name (str): Name of the field.

        Returns:
            range: Contiguous local indices occupied by the field.

        Raises:
            KeyError: If the field does not exist.
        """
        names = self.field_names
        if field_name not in names:
            raise KeyError(f"Unknown field '{field_name}', available: {names}")
        offsets = self.field_offsets()
        idx = names.index(field_name)
        return range(offsets[idx], offsets[idx + 1])

    def celldofs(self, cell_id: int) -> onp.ndarray:
        """Ordered global dofs of a cell.

        Args:
            cell_id (int): Cell index.

        Returns:
            onp.ndarray: Integer array of length ``ndofs_per_cell(cell_id)``.
        """
        self._check_closed()
        return self._cell_dofs[cell_id].copy()

    def node_dofs(self, field_name: str, node_id: int) -> List[int]:
        """Global dofs of a node for one field.

        Raises:
            KeyError: If the field does not live on the node.
        """
        self._check_closed()
        try:
            return list(self._node_dofs[field_name][node_id])
        except KeyError:
            raise KeyError(f"Field '{field_name}' has no dofs on node {node_id}") from None
