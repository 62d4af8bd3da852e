"""
MeshModel class module.

A mesh is a flat arena of elements of a single cell type, addressed by integer
index. Vertex coordinates are mutable (the solid mesh is displaced in place
during coupling), connectivity is fixed.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional, Tuple

import numpy as np

from fem_fsi.elements import ElementType, ReferenceElement, get_reference_element

logger = logging.getLogger(__name__)

Facet = Tuple[int, int]


class MeshModel:
    """
    Unstructured mesh made of one cell type.

    Parameters
    ----------
    coords : np.ndarray
        Vertex coordinates (n_nodes x dim).
    cells : np.ndarray
        Connectivity (n_elements x nodes_per_element), reference node order.
    element_type : ElementType or str
        Cell type of every element.
    facet_tags : dict, optional
        Boundary id per boundary facet ``(element, local face)``. Facets not
        listed get boundary id 0.
    boundary_names : dict, optional
        Mapping of boundary names to boundary ids.
    name : str, optional
        Label used in log messages.

    Attributes
    ----------
    cells : np.ndarray
        Element connectivity.
    element_type : ElementType
        Cell type.
    reference_element : ReferenceElement
        Reference element matching ``element_type``.
    boundary_names : dict
        Mapping of boundary names to ids.
    revision : int
        Counter incremented whenever vertex coordinates change.

    Raises
    ------
    ValueError
        If the connectivity does not match the cell type or references
        missing nodes.
    """

    def __init__(
        self,
        coords: np.ndarray,
        cells: np.ndarray,
        element_type,
        facet_tags: Optional[Dict[Facet, int]] = None,
        boundary_names: Optional[Dict[str, int]] = None,
        name: str = "mesh",
    ):
        if isinstance(element_type, str):
            element_type = ElementType[element_type]
        self.element_type = ElementType(element_type)
        self.reference_element: ReferenceElement = get_reference_element(self.element_type)

        coords = np.array(coords, dtype=np.float64)
        cells = np.array(cells, dtype=np.int64)
        if coords.ndim != 2 or coords.shape[1] != self.reference_element.reference_dim:
            raise ValueError(
                f"{self.element_type.name} mesh needs coordinates of shape "
                f"(n, {self.reference_element.reference_dim}), got {coords.shape}"
            )
        if cells.ndim != 2 or cells.shape[1] != self.reference_element.node_count:
            raise ValueError(
                f"{self.element_type.name} cells need {self.reference_element.node_count} "
                f"nodes, got shape {cells.shape}"
            )
        if cells.size and (cells.min() < 0 or cells.max() >= len(coords)):
            raise ValueError("Connectivity references nodes outside the coordinate array")

        self._coords = coords
        self.cells = cells
        self.name = name
        self.boundary_names: Dict[str, int] = dict(boundary_names or {})
        self.revision = 0

        self._boundary_facets: Optional[List[Facet]] = None
        self._facet_tags: Dict[Facet, int] = {}
        if facet_tags:
            boundary = set(self.boundary_facets)
            for facet, tag in facet_tags.items():
                facet = (int(facet[0]), int(facet[1]))
                if facet not in boundary:
                    raise ValueError(f"Facet {facet} is not on the boundary of {name}")
                self._facet_tags[facet] = int(tag)

        self._geometry_lock = threading.Lock()
        self._geometry_owner: Optional[int] = None

    # =========================================================================
    # Geometry
    # =========================================================================

    @property
    def coords(self) -> np.ndarray:
        """Vertex coordinates (n_nodes x dim)."""
        return self._coords

    @coords.setter
    def coords(self, value: np.ndarray) -> None:
        value = np.asarray(value, dtype=np.float64)
        if value.shape != self._coords.shape:
            raise ValueError(f"Coordinate shape {value.shape} does not match {self._coords.shape}")
        self._coords = value.copy()
        self.touch()

    def touch(self) -> None:
        """Mark the vertex coordinates as modified."""
        self.revision += 1

    @property
    def dim(self) -> int:
        return self._coords.shape[1]

    @property
    def node_count(self) -> int:
        return len(self._coords)

    @property
    def elements_count(self) -> int:
        return len(self.cells)

    @property
    def n_active_cells(self) -> int:
        """Number of active (leaf) cells; all cells are active after refinement."""
        return len(self.cells)

    def vertices(self) -> np.ndarray:
        """Sorted indices of the vertices referenced by the connectivity."""
        return np.unique(self.cells)

    def element_coords(self, element: int) -> np.ndarray:
        """Coordinates of the nodes of one element (node_count x dim)."""
        return self._coords[self.cells[element]]

    def element_centers(self) -> np.ndarray:
        return self._coords[self.cells].mean(axis=1)

    def bounding_boxes(self) -> Tuple[np.ndarray, np.ndarray]:
        """Axis-aligned bounding box of every element.

        Returns
        -------
        lower, upper : np.ndarray
            Box corners (n_elements x dim).
        """
        element_coords = self._coords[self.cells]
        return element_coords.min(axis=1), element_coords.max(axis=1)

    # =========================================================================
    # Geometry lock
    # =========================================================================

    @property
    def geometry_owned_by_current_thread(self) -> bool:
        return self._geometry_owner == threading.get_ident()

    def acquire_geometry(self) -> None:
        """Take exclusive ownership of the vertex coordinates.

        Blocks while another thread owns them.
        """
        self._geometry_lock.acquire()
        self._geometry_owner = threading.get_ident()

    def release_geometry(self) -> None:
        self._geometry_owner = None
        self._geometry_lock.release()

    @contextmanager
    def geometry_access(self) -> Iterator[MeshModel]:
        """Hold the vertex coordinates for the duration of a query.

        Waits while another thread has the mesh displaced. A thread that
        already owns the geometry passes straight through.
        """
        if self.geometry_owned_by_current_thread:
            yield self
            return
        self.acquire_geometry()
        try:
            yield self
        finally:
            self.release_geometry()

    # =========================================================================
    # Boundary
    # =========================================================================

    @property
    def boundary_facets(self) -> List[Facet]:
        """Faces owned by exactly one element, in (element, face) order."""
        if self._boundary_facets is None:
            self._boundary_facets = self._find_boundary_facets()
        return self._boundary_facets

    def _find_boundary_facets(self) -> List[Facet]:
        owners: Dict[Tuple[int, ...], List[Facet]] = defaultdict(list)
        for e, cell in enumerate(self.cells):
            for f, local_nodes in enumerate(self.reference_element.faces):
                key = tuple(sorted(int(cell[i]) for i in local_nodes))
                owners[key].append((e, f))
        facets = [entries[0] for entries in owners.values() if len(entries) == 1]
        return sorted(facets)

    def boundary_id(self, element: int, face: int) -> int:
        """Boundary id of a boundary facet (0 when untagged)."""
        return self._facet_tags.get((element, face), 0)

    def set_boundary_id(self, element: int, face: int, boundary_id: int) -> None:
        if (element, face) not in set(self.boundary_facets):
            raise ValueError(f"Facet ({element}, {face}) is not on the boundary of {self.name}")
        self._facet_tags[(element, face)] = int(boundary_id)

    @property
    def facet_tags(self) -> Dict[Facet, int]:
        """Boundary id of every boundary facet."""
        return {facet: self.boundary_id(*facet) for facet in self.boundary_facets}

    def boundary_ids(self) -> List[int]:
        """Distinct boundary ids present on the mesh."""
        return sorted(set(self.facet_tags.values()))

    def facet_nodes(self, element: int, face: int) -> np.ndarray:
        """Global node indices of a facet."""
        return self.cells[element][list(self.reference_element.faces[face])]

    def facet_center(self, element: int, face: int) -> np.ndarray:
        return self._coords[self.facet_nodes(element, face)].mean(axis=0)

    def iter_boundary_facets(self, boundary_id: Optional[int] = None) -> Iterator[Facet]:
        for facet in self.boundary_facets:
            if boundary_id is None or self.boundary_id(*facet) == boundary_id:
                yield facet

    def boundary_nodes(self, boundary_ids) -> np.ndarray:
        """Sorted global node indices lying on facets with the given ids."""
        boundary_ids = set(boundary_ids)
        nodes = set()
        for facet in self.boundary_facets:
            if self.boundary_id(*facet) in boundary_ids:
                nodes.update(int(n) for n in self.facet_nodes(*facet))
        return np.array(sorted(nodes), dtype=np.int64)

    def colorize(self, classifier: Callable[[np.ndarray], Optional[int]]) -> None:
        """Assign boundary ids from facet centers.

        Parameters
        ----------
        classifier : callable
            Called with each boundary facet center; returns the boundary id,
            or None to keep the current one.
        """
        for facet in self.boundary_facets:
            tag = classifier(self.facet_center(*facet))
            if tag is not None:
                self._facet_tags[facet] = int(tag)

    # =========================================================================
    # Refinement
    # =========================================================================

    def refine_global(self, levels: int = 1) -> None:
        """Uniformly refine every element ``levels`` times.

        Quadrilaterals and hexahedra are split into 2^dim children through
        edge, face and cell midpoints, triangles into 4 and tetrahedra into 8.
        Boundary ids are inherited by the child facets.
        """
        if levels < 0:
            raise ValueError(f"Refinement levels must be non-negative: {levels}")
        for _ in range(levels):
            self._refine_once()
        if levels:
            logger.debug(
                "Refined %s %d times: %d cells, %d nodes",
                self.name,
                levels,
                self.elements_count,
                self.node_count,
            )

    def _refine_once(self) -> None:
        new_coords = [tuple(x) for x in self._coords]
        midpoints: Dict[Tuple[int, ...], int] = {}

        def midpoint(*nodes: int) -> int:
            key = tuple(sorted(set(int(n) for n in nodes)))
            if len(key) == 1:
                return key[0]
            if key not in midpoints:
                midpoints[key] = len(new_coords)
                new_coords.append(tuple(self._coords[list(key)].mean(axis=0)))
            return midpoints[key]

        if self.element_type in (ElementType.quad, ElementType.hexahedron):
            children = self._split_tensor_product(midpoint)
        elif self.element_type is ElementType.triangle:
            children = self._split_triangles(midpoint)
        elif self.element_type is ElementType.tetra:
            children = self._split_tetrahedra(midpoint)
        else:
            raise NotImplementedError(f"Refinement of {self.element_type.name} meshes")

        # Parent boundary facets, with every node (old or new) lying on them
        facet_members: Dict[int, List[Tuple[frozenset, int]]] = defaultdict(list)
        for facet in self.boundary_facets:
            corners = [int(n) for n in self.facet_nodes(*facet)]
            members = set(corners)
            for key, index in midpoints.items():
                if set(key) <= set(corners):
                    members.add(index)
            members = frozenset(members)
            tag = self.boundary_id(*facet)
            for node in members:
                facet_members[node].append((members, tag))

        self._coords = np.array(new_coords, dtype=np.float64)
        self.cells = np.array(children, dtype=np.int64)
        self._fix_orientation()
        self._boundary_facets = None

        tags: Dict[Facet, int] = {}
        for facet in self.boundary_facets:
            nodes = [int(n) for n in self.facet_nodes(*facet)]
            for members, tag in facet_members[nodes[0]]:
                if all(n in members for n in nodes):
                    if tag != 0:
                        tags[facet] = tag
                    break
        self._facet_tags = tags
        self.touch()

    def _split_tensor_product(self, midpoint) -> List[List[int]]:
        # Reference corners mapped to the lattice {0, 2}^dim
        corners = ((self.reference_element.reference_nodes + 1)).astype(int)
        dim = corners.shape[1]
        offsets = np.array(np.meshgrid(*([[0, 1]] * dim), indexing="ij")).reshape(dim, -1).T
        children = []
        for cell in self.cells:

            def lattice_node(point):
                involved = [
                    int(cell[i])
                    for i, corner in enumerate(corners)
                    if all(p == 1 or p == c for p, c in zip(point, corner))
                ]
                return midpoint(*involved)

            for offset in offsets:
                children.append([lattice_node(offset + corner // 2) for corner in corners])
        return children

    def _split_triangles(self, midpoint) -> List[List[int]]:
        children = []
        for a, b, c in self.cells:
            ab, bc, ca = midpoint(a, b), midpoint(b, c), midpoint(c, a)
            children.extend([[a, ab, ca], [ab, b, bc], [ca, bc, c], [ab, bc, ca]])
        return children

    def _split_tetrahedra(self, midpoint) -> List[List[int]]:
        children = []
        for n0, n1, n2, n3 in self.cells:
            m01, m02, m03 = midpoint(n0, n1), midpoint(n0, n2), midpoint(n0, n3)
            m12, m13, m23 = midpoint(n1, n2), midpoint(n1, n3), midpoint(n2, n3)
            children.extend([
                [n0, m01, m02, m03],
                [m01, n1, m12, m13],
                [m02, m12, n2, m23],
                [m03, m13, m23, n3],
                # Inner octahedron split along the m02-m13 diagonal
                [m02, m13, m01, m12],
                [m02, m13, m12, m23],
                [m02, m13, m23, m03],
                [m02, m13, m03, m01],
            ])
        return children

    def _fix_orientation(self) -> None:
        """Swap two nodes of simplices with negative orientation."""
        if self.element_type not in (ElementType.triangle, ElementType.tetra):
            return
        x = self._coords[self.cells]
        edges = x[:, 1:, :] - x[:, :1, :]
        signed = np.linalg.det(edges)
        flip = signed < 0
        self.cells[flip, 1], self.cells[flip, 2] = self.cells[flip, 2], self.cells[flip, 1].copy()

    # =========================================================================
    # I/O
    # =========================================================================

    def to_meshio(self, point_data=None, cell_data=None):
        """Convert to a :class:`meshio.Mesh`."""
        from fem_fsi.core.mesh.io import to_meshio

        return to_meshio(self, point_data=point_data, cell_data=cell_data)

    def write_mesh(self, filename: str, **kwargs) -> None:
        """Write the mesh to a file, format inferred from the extension."""
        from fem_fsi.core.mesh.io import write_mesh

        write_mesh(self, filename, **kwargs)

    def save(self, filepath: str, compression: str = "gzip") -> None:
        """Save the mesh, including boundary ids, to HDF5."""
        from fem_fsi.core.mesh.io import write_hdf5

        write_hdf5(self, filepath, compression=compression)

    @classmethod
    def load(cls, filepath: str) -> "MeshModel":
        """Load a mesh from HDF5 or any meshio-readable format."""
        from fem_fsi.core.mesh.io import load_mesh

        return load_mesh(filepath)

    def copy(self) -> "MeshModel":
        return MeshModel(
            self._coords.copy(),
            self.cells.copy(),
            self.element_type,
            facet_tags=dict(self._facet_tags),
            boundary_names=dict(self.boundary_names),
            name=self.name,
        )

    def __repr__(self) -> str:
        return (
            f"<MeshModel '{self.name}': {self.elements_count} {self.element_type.name} "
            f"cells, {self.node_count} nodes, dim={self.dim}>"
        )
