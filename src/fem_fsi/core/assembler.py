from typing import Optional

import numpy as np
import scipy.sparse as sp

from fem_fsi.core.mesh import MeshModel


class MeshAssembler:
    def __init__(self, mesh: MeshModel, dofs_per_node: int):
        """
        Finite element assembler for vector-valued nodal fields using
        scipy sparse matrices.

        Degrees of freedom are numbered node by node with interleaved
        components: dof = node * dofs_per_node + component.

        Parameters
        ----------
        mesh : MeshModel
            The computational mesh.
        dofs_per_node : int
            Number of components per node.

        Attributes
        ----------
        dofs_count : int
            Total number of degrees of freedom in the system
        dofs_array : np.ndarray
            Element-to-DOF connectivity array (n_elements x element dofs)
        """
        self.mesh = mesh
        self.dofs_per_node = dofs_per_node
        self.dofs_count = mesh.node_count * dofs_per_node
        self.dofs_array: Optional[np.ndarray] = None
        self._precompute_dofs()

    def _precompute_dofs(self):
        """Element DOF connectivity."""
        cells = self.mesh.cells
        components = np.arange(self.dofs_per_node)
        self.dofs_array = (
            cells[:, :, None] * self.dofs_per_node + components[None, None, :]
        ).reshape(len(cells), -1)

    def node_dofs(self, nodes: np.ndarray) -> np.ndarray:
        """DOFs of the given nodes, interleaved (len(nodes) * dofs_per_node,)."""
        nodes = np.asarray(nodes, dtype=np.int64)
        return (nodes[:, None] * self.dofs_per_node + np.arange(self.dofs_per_node)).reshape(-1)

    def assemble_matrix(self, element_matrices: np.ndarray) -> sp.csr_matrix:
        """
        Assemble a global sparse matrix from per-element matrices.

        Parameters
        ----------
        element_matrices : np.ndarray
            Local matrices (n_elements x n_edofs x n_edofs).

        Returns
        -------
        scipy.sparse.csr_matrix
            Global matrix; duplicate entries are summed.
        """
        n_edofs = self.dofs_array.shape[1]
        rows = np.repeat(self.dofs_array, n_edofs, axis=1).ravel()
        cols = np.tile(self.dofs_array, (1, n_edofs)).ravel()
        values = np.asarray(element_matrices, dtype=np.float64).ravel()
        return sp.coo_matrix(
            (values, (rows, cols)), shape=(self.dofs_count, self.dofs_count)
        ).tocsr()

    def assemble_vector(self, element_vectors: np.ndarray) -> np.ndarray:
        """Assemble a global vector from per-element vectors (n_elements x n_edofs)."""
        F = np.zeros(self.dofs_count)
        np.add.at(F, self.dofs_array.ravel(), np.asarray(element_vectors).ravel())
        return F
