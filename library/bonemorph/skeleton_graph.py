"""
Skeleton graph data model.

A graph is one connected component of a skeleton. Vertices are clusters of
junction or end-point voxels, edges are the branches between them. Storage is
flat: edges refer to their end vertices by index, vertices refer to their
branches by index, so there are no reference cycles and a graph can be shared
read-only between threads.
"""

from dataclasses import dataclass
from typing import Iterator, NamedTuple, Sequence, Tuple

from .geometry import centroid


class Point(NamedTuple):
    """Voxel coordinates in image space."""
    x: int
    y: int
    z: int


@dataclass(frozen=True)
class Vertex:
    """A cluster of voxels and the indices of the edges meeting at it."""
    points: Tuple[Point, ...]
    branches: Tuple[int, ...] = ()

    @property
    def degree(self) -> int:
        return len(self.branches)


@dataclass(frozen=True)
class Edge:
    """
    A branch between the vertices v1 and v2.

    The slab voxels run from one end vertex toward the other, but which end
    comes first is not recorded; callers resolve it by adjacency.
    """
    v1: int
    v2: int
    slabs: Tuple[Point, ...] = ()

    def opposite_vertex(self, vertex: int) -> int:
        """
        Index of the end vertex that is not `vertex`.

        Raises:
            ValueError: If `vertex` is not an end of this edge
        """
        if vertex == self.v1:
            return self.v2
        if vertex == self.v2:
            return self.v1
        raise ValueError(f"Vertex {vertex} is not an end of edge ({self.v1}, {self.v2})")

    @property
    def is_loop(self) -> bool:
        return self.v1 == self.v2


@dataclass(frozen=True)
class Graph:
    """One skeleton component, owning its vertices and edges."""
    vertices: Tuple[Vertex, ...]
    edges: Tuple[Edge, ...]

    @classmethod
    def build(cls,
              vertex_points: Sequence[Sequence[Sequence[int]]],
              edges: Sequence[Tuple[int, int, Sequence[Sequence[int]]]]) -> 'Graph':
        """
        Assemble a graph from plain coordinate lists.

        Branch lists are filled in edge order, so a vertex's branches appear
        in the order its edges are given.

        Args:
            vertex_points: For every vertex, its voxels as (x, y, z)
            edges: (v1, v2, slabs) triples with slabs as (x, y, z)

        Returns:
            Graph instance
        """
        branches = [[] for _ in vertex_points]
        edge_list = []
        for index, (v1, v2, slabs) in enumerate(edges):
            for v in (v1, v2):
                if not 0 <= v < len(vertex_points):
                    raise ValueError(f"Edge {index} refers to unknown vertex {v}")
            # A loop enters its vertex twice
            branches[v1].append(index)
            branches[v2].append(index)
            edge_list.append(Edge(v1, v2, tuple(Point(*p) for p in slabs)))

        vertices = tuple(
            Vertex(tuple(Point(*p) for p in points), tuple(b))
            for points, b in zip(vertex_points, branches)
        )
        return cls(vertices, tuple(edge_list))

    def degree(self, vertex: int) -> int:
        return self.vertices[vertex].degree

    def triple_points(self) -> Iterator[int]:
        """Indices of the vertices where exactly three branches meet, in vertex order."""
        for index, vertex in enumerate(self.vertices):
            if vertex.degree == 3:
                yield index

    def vertex_centroid(self, vertex: int) -> Tuple[float, float, float]:
        return centroid(self.vertices[vertex].points)

    def branches(self, vertex: int) -> Tuple[Edge, ...]:
        return tuple(self.edges[e] for e in self.vertices[vertex].branches)
