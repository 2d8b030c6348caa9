"""
Angles between the branches of skeleton triple points.

The input image is skeletonized, the skeleton is turned into graphs, and at
every vertex where exactly three branches meet the three pairwise angles
between the branches are measured. Branch directions are taken either from a
point a fixed number of voxels along each branch ("nth point"), or from the
centroid of the vertex at the far end of each branch ("vertex to vertex").
"""

import math
import numpy as np
import pandas as pd
import logging
from dataclasses import dataclass
from enum import Enum
from numbers import Integral
from typing import List, Optional, Sequence, Tuple
from tqdm import tqdm

from .errors import InvalidArgumentError
from .geometry import clamp, is_voxel_26_connected, joined_vector_angle
from .image_check import check_image
from .skeleton_graph import Edge, Graph
from .skeletonization import GraphExtractor, Skeletonizer, extract_graphs, skeletonize_volume

logger = logging.getLogger(__name__)

DEFAULT_NTH_POINT = 0
VERTEX_TO_VERTEX = -1

AngleTriple = Tuple[float, float, float]
ResultSet = List[List[AngleTriple]]

# Branch pairs measured at each triple point, in result order
BRANCH_PAIRS = ((0, 1), (0, 2), (1, 2))


class MeasurementMode(Enum):
    NTH_POINT = "nth_point"
    VERTEX_TO_VERTEX = "vertex_to_vertex"


@dataclass(frozen=True)
class Measurement:
    """How branch directions are sampled; offset is only used by NTH_POINT."""
    mode: MeasurementMode
    offset: int = 0

    @classmethod
    def from_nth_point(cls, nth_point: int) -> 'Measurement':
        """
        Convert the integer form (offset, or -1 for vertex to vertex).

        Raises:
            InvalidArgumentError: If nth_point is negative but not VERTEX_TO_VERTEX,
                or not an integer
        """
        if isinstance(nth_point, bool) or not isinstance(nth_point, Integral):
            raise InvalidArgumentError("Invalid nth point value")
        if nth_point == VERTEX_TO_VERTEX:
            return cls(MeasurementMode.VERTEX_TO_VERTEX)
        if nth_point < 0:
            raise InvalidArgumentError("Invalid nth point value")
        return cls(MeasurementMode.NTH_POINT, int(nth_point))

    @property
    def nth_point(self) -> int:
        if self.mode is MeasurementMode.VERTEX_TO_VERTEX:
            return VERTEX_TO_VERTEX
        return self.offset


class TriplePointAngles:
    """
    Skeletonizes a binary image and measures the branch angles at its triple points.

    Results are stored per skeleton: results[g][t] holds the three angles
    (radians) of the t-th triple point of graph g, for the branch pairs
    (b0, b1), (b0, b2), (b1, b2) in the order the graph lists the branches.
    """

    def __init__(self,
                 nth_point: int = DEFAULT_NTH_POINT,
                 skeletonizer: Skeletonizer = skeletonize_volume,
                 graph_extractor: GraphExtractor = extract_graphs):
        """
        Initialize the analysis.

        Args:
            nth_point: Distance in voxels along each branch at which it is
                       sampled, or VERTEX_TO_VERTEX
            skeletonizer: Callable thinning the input image
            graph_extractor: Callable turning the skeleton into graphs
        """
        self.measurement = Measurement.from_nth_point(nth_point)
        self.skeletonizer = skeletonizer
        self.graph_extractor = graph_extractor
        self.input_image = None
        self.graphs: Optional[List[Graph]] = None
        self._results: Optional[ResultSet] = None

    @property
    def nth_point(self) -> int:
        return self.measurement.nth_point

    @property
    def results(self) -> Optional[ResultSet]:
        """Angles of the previous run, None before the first successful run."""
        return self._results

    def get_results(self) -> Optional[ResultSet]:
        return self._results

    def set_input_image(self, image: np.ndarray) -> None:
        """
        Set the binary image to analyse.

        Raises:
            MissingInputError: If image is None
            InvalidArgumentError: If image is not binary
        """
        check_image(image)
        self.input_image = image

    def set_nth_point(self, nth_point: int) -> None:
        """
        Set the distance of the angle measurement from the triple point.

        Args:
            nth_point: Voxels along each branch, or VERTEX_TO_VERTEX

        Raises:
            InvalidArgumentError: If nth_point < 0 and nth_point != VERTEX_TO_VERTEX
        """
        self.measurement = Measurement.from_nth_point(nth_point)

    def calculate_triple_point_angles(self) -> ResultSet:
        """
        Calculate the triple point angles of the input image.

        Returns:
            The new results, also available from `results`

        Raises:
            MissingInputError: If no input image is set
            InvalidArgumentError: If the image is not binary, or it could not be skeletonized
        """
        check_image(self.input_image)
        self._results = None
        self.graphs = None

        skeleton = self.skeletonizer(self.input_image)
        graphs = self.graph_extractor(skeleton)
        if graphs is None or len(graphs) == 0:
            raise InvalidArgumentError("Input image could not be skeletonized")

        logger.info(f"Measuring triple point angles in {len(graphs)} skeletons "
                    f"({self.measurement.mode.value}, nth point {self.nth_point})")
        results = [self.angles_for_graph(graph)
                   for graph in tqdm(graphs, desc="Measuring triple points", disable=len(graphs) < 100)]

        self.graphs = list(graphs)
        self._results = results
        logger.info(f"Found {sum(len(r) for r in results)} triple points")
        return results

    def run(self) -> ResultSet:
        return self.calculate_triple_point_angles()

    def angles_for_graph(self, graph: Graph) -> List[AngleTriple]:
        """
        Measure every triple point of one graph.

        Args:
            graph: Skeleton graph

        Returns:
            One angle triple per degree 3 vertex, in vertex order
        """
        return [self.vertex_angles(graph, vertex) for vertex in graph.triple_points()]

    def vertex_angles(self, graph: Graph, vertex: int) -> AngleTriple:
        """
        Angles between the three branches of a triple point.

        A vertex with a branch looping back to itself has no direction for that
        branch, so all three of its angles are nan.

        Raises:
            InvalidArgumentError: If the vertex is not a triple point
        """
        branches = graph.branches(vertex)
        if len(branches) != 3:
            raise InvalidArgumentError(f"Vertex {vertex} is not a triple point")
        if any(edge.is_loop for edge in branches):
            logger.warning(f"Self-loop branch at triple point {vertex}, angles set to nan")
            return (math.nan, math.nan, math.nan)

        apex = graph.vertex_centroid(vertex)
        if self.measurement.mode is MeasurementMode.VERTEX_TO_VERTEX:
            ends = [graph.vertex_centroid(edge.opposite_vertex(vertex)) for edge in branches]
        else:
            ends = [self._nth_point_of_edge(graph, vertex, edge) for edge in branches]

        return tuple(joined_vector_angle(ends[i], ends[j], apex) for i, j in BRANCH_PAIRS)

    def _nth_point_of_edge(self, graph: Graph, vertex: int, edge: Edge) -> Sequence[float]:
        slabs = edge.slabs
        if not slabs:
            # Vertices touch directly, the branch has no voxels of its own
            return graph.vertex_centroid(edge.opposite_vertex(vertex))

        vertex_points = graph.vertices[vertex].points
        start_at_zero = any(is_voxel_26_connected(slabs[0], p) for p in vertex_points)
        n = clamp(self.measurement.offset, 0, len(slabs) - 1)

        if start_at_zero:
            # Vertex is the start of the edge so count "up"
            return slabs[n]

        # Vertex is the end of the edge so count "down"
        return slabs[len(slabs) - n - 1]

    def to_dataframe(self) -> pd.DataFrame:
        """
        Results as a long table, one row per triple point.

        Raises:
            ValueError: If the analysis has not been run
        """
        if self._results is None:
            raise ValueError("No results. Call calculate_triple_point_angles() first.")

        rows = []
        for g, (graph, triples) in enumerate(zip(self.graphs, self._results)):
            for t, (vertex, thetas) in enumerate(zip(graph.triple_points(), triples)):
                cx, cy, cz = graph.vertex_centroid(vertex)
                row = {
                    'skeleton': g,
                    'triple_point': t,
                    'vertex': vertex,
                    'centroid_x': cx,
                    'centroid_y': cy,
                    'centroid_z': cz,
                }
                for k, theta in enumerate(thetas):
                    row[f'theta{k}'] = theta
                    row[f'theta{k}_deg'] = math.degrees(theta)
                rows.append(row)

        columns = ['skeleton', 'triple_point', 'vertex', 'centroid_x', 'centroid_y', 'centroid_z',
                   'theta0', 'theta0_deg', 'theta1', 'theta1_deg', 'theta2', 'theta2_deg']
        return pd.DataFrame(rows, columns=columns)


def triple_point_angles(image: np.ndarray, nth_point: int = DEFAULT_NTH_POINT) -> ResultSet:
    """
    Convenience function for a one-off measurement.

    Args:
        image: Binary 2D or 3D image
        nth_point: Voxels along each branch, or VERTEX_TO_VERTEX

    Returns:
        Angle triples per skeleton
    """
    analysis = TriplePointAngles(nth_point=nth_point)
    analysis.set_input_image(image)
    return analysis.calculate_triple_point_angles()
