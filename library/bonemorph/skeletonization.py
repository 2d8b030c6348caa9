"""
Skeletonization and skeleton graph extraction.

These are the default collaborators of the triple point analysis. Any
callable with the same signature can be passed in their place:

    Skeletonizer:    volume -> skeleton volume
    GraphExtractor:  skeleton volume -> sequence of Graph
"""

import numpy as np
import logging
from typing import Callable, Dict, List, Sequence, Tuple
from tqdm import tqdm

from scipy.sparse import csgraph
from skan import Skeleton
from skimage.morphology import skeletonize

from .image_check import BINARY_BLACK, BINARY_WHITE, as_volume
from .skeleton_graph import Graph

logger = logging.getLogger(__name__)

Skeletonizer = Callable[[np.ndarray], np.ndarray]
GraphExtractor = Callable[[np.ndarray], Sequence[Graph]]


def skeletonize_volume(volume: np.ndarray) -> np.ndarray:
    """
    Thin a binary volume to a one voxel wide skeleton.

    Args:
        volume: 2D or 3D binary image, non-zero voxels are foreground

    Returns:
        New uint8 (z, y, x) volume with skeleton voxels set to 255
    """
    binary = as_volume(volume) > 0
    logger.info(f"Skeletonizing volume of shape {binary.shape}")
    skeleton = skeletonize(binary)
    logger.debug(f"Skeleton has {int(np.count_nonzero(skeleton))} voxels")
    return np.where(skeleton, BINARY_WHITE, BINARY_BLACK).astype(np.uint8)


def _first_node_order(labels: np.ndarray) -> np.ndarray:
    """Labels sorted by their lowest node id, i.e. by raster order of their first voxel."""
    unique, first = np.unique(labels, return_index=True)
    return unique[np.argsort(first, kind='stable')]


def _vertex_clusters(pixel_graph: Skeleton, vertex_nodes: np.ndarray) -> np.ndarray:
    """Cluster label of every vertex node; touching vertex nodes share a label."""
    if vertex_nodes.size == 0:
        return np.empty(0, dtype=int)
    touching = pixel_graph.graph[vertex_nodes][:, vertex_nodes]
    _, clusters = csgraph.connected_components(touching, directed=False)
    return clusters


def extract_graphs(skeleton: np.ndarray) -> List[Graph]:
    """
    Convert a skeleton volume into one graph per connected component.

    The 26-connected pixel graph and its branch paths come from skan. Skeleton
    voxels with exactly two neighbours are slabs, all others (end points,
    junctions, isolated voxels) are vertex voxels, and touching vertex voxels
    form one vertex. A closed ring without vertex voxels gets a single vertex
    at its first voxel and one loop edge through the rest of the ring.

    Args:
        skeleton: 2D or 3D skeleton image, non-zero voxels are skeleton

    Returns:
        List of Graph, one per component, ordered by the raster position of
        the component's first voxel. Empty if the skeleton is empty.
    """
    skel = as_volume(skeleton) > 0
    if not skel.any():
        logger.warning("Skeleton is empty, no graphs extracted")
        return []

    pixel_graph = Skeleton(skel)
    coordinates = np.asarray(pixel_graph.coordinates).astype(int)
    degrees = np.asarray(pixel_graph.degrees)
    n_components, component_of = csgraph.connected_components(pixel_graph.graph, directed=False)
    logger.info(f"Skeleton: {n_components} components, {pixel_graph.n_paths} paths")

    def points(nodes):
        return [(x, y, z) for z, y, x in coordinates[nodes].tolist()]

    vertex_nodes = np.flatnonzero(degrees != 2)
    clusters = _vertex_clusters(pixel_graph, vertex_nodes)
    node_cluster = np.full(len(degrees), -1, dtype=int)
    node_cluster[vertex_nodes] = clusters

    # Cluster label -> (component, index within the component)
    local_index: Dict[int, Tuple[int, int]] = {}
    component_vertices: List[list] = [[] for _ in range(n_components)]
    for cluster in (_first_node_order(clusters) if clusters.size else []):
        nodes = vertex_nodes[clusters == cluster]
        component = int(component_of[nodes[0]])
        local_index[int(cluster)] = (component, len(component_vertices[component]))
        component_vertices[component].append(points(nodes))

    component_edges: List[list] = [[] for _ in range(n_components)]
    for i in tqdm(range(pixel_graph.n_paths), desc="Tracing branches", disable=pixel_graph.n_paths < 1000):
        path = np.asarray(pixel_graph.path(i))
        first, last = int(node_cluster[path[0]]), int(node_cluster[path[-1]])

        if first < 0:
            # Closed ring of slabs, skan repeats the start node at the end
            ring = path[:-1] if len(path) > 1 and path[0] == path[-1] else path
            component = int(component_of[ring[0]])
            vertex = len(component_vertices[component])
            component_vertices[component].append(points(ring[:1]))
            component_edges[component].append((vertex, vertex, points(ring[1:])))
            logger.debug(f"Ring of {len(ring)} voxels in component {component + 1}")
            continue

        slabs = path[1:-1]
        if first == last and slabs.size == 0:
            # Link between two voxels of the same junction
            continue
        component, v1 = local_index[first]
        _, v2 = local_index[last]
        component_edges[component].append((v1, v2, points(slabs)))

    graphs = [Graph.build(component_vertices[c], component_edges[c])
              for c in _first_node_order(component_of)]

    logger.info(f"Extracted {len(graphs)} graphs")
    return graphs
