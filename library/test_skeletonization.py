"""
Tests for skeletonization and skeleton graph extraction.
"""

import math
import numpy as np
import pytest
from scipy import ndimage

from bonemorph import extract_graphs, skeletonize_volume
from bonemorph.geometry import is_voxel_26_connected
from bonemorph.skeleton_graph import Edge, Graph, Point
from bonemorph.triple_point_angles import TriplePointAngles


def make_voxel_y():
    """Planar 'T' of one voxel wide lines: x = 4..16 at y = 10, and y = 10..16 at x = 10."""
    volume = np.zeros((1, 21, 21), dtype=np.uint8)
    volume[0, 10, 4:17] = 255
    volume[0, 10:17, 10] = 255
    return volume


def test_extract_graphs_of_empty_skeleton():
    assert extract_graphs(np.zeros((4, 4, 4), dtype=np.uint8)) == []


def test_extract_graphs_of_line():
    volume = np.zeros((1, 5, 10), dtype=np.uint8)
    volume[0, 2, 1:9] = 255
    graphs = extract_graphs(volume)

    assert len(graphs) == 1
    graph = graphs[0]
    assert len(graph.vertices) == 2
    assert len(graph.edges) == 1
    assert graph.vertices[0].points == (Point(1, 2, 0),)
    assert graph.vertices[1].points == (Point(8, 2, 0),)
    assert graph.edges[0].slabs == tuple(Point(x, 2, 0) for x in range(2, 8))
    assert list(graph.triple_points()) == []


def test_extract_graphs_of_voxel_y():
    graphs = extract_graphs(make_voxel_y())

    assert len(graphs) == 1
    graph = graphs[0]
    assert sorted(v.degree for v in graph.vertices) == [1, 1, 1, 3]
    assert len(graph.edges) == 3

    junction = list(graph.triple_points())
    assert len(junction) == 1
    points = set(graph.vertices[junction[0]].points)
    assert Point(10, 10, 0) in points
    assert points <= {Point(9, 10, 0), Point(10, 10, 0), Point(11, 10, 0), Point(10, 11, 0)}
    assert all(4 <= len(edge.slabs) <= 5 for edge in graph.edges)


def test_extracted_slabs_form_paths_between_their_vertices():
    graph = extract_graphs(make_voxel_y())[0]
    for edge in graph.edges:
        for a, b in zip(edge.slabs, edge.slabs[1:]):
            assert is_voxel_26_connected(a, b)
        assert any(is_voxel_26_connected(edge.slabs[0], p) for p in graph.vertices[edge.v1].points)
        assert any(is_voxel_26_connected(edge.slabs[-1], p) for p in graph.vertices[edge.v2].points)


def test_extract_graphs_splits_components():
    volume = np.zeros((2, 10, 10), dtype=np.uint8)
    volume[0, 2, 1:8] = 255
    volume[1, 7, 1:8] = 255
    volume[0, 9, 9] = 255
    graphs = extract_graphs(volume)

    assert len(graphs) == 3
    # Components are ordered by their first voxel in (z, y, x) raster order
    assert [len(g.edges) for g in graphs] == [1, 0, 1]
    # The isolated voxel is a vertex without branches
    assert graphs[1].vertices[0].degree == 0


def test_extract_graphs_accepts_2d_images():
    image = np.zeros((5, 10), dtype=bool)
    image[2, 1:9] = True
    graphs = extract_graphs(image)
    assert len(graphs) == 1
    assert graphs[0].vertices[0].points == (Point(1, 2, 0),)


def test_voxel_y_angles_close_around_the_junction():
    analysis = TriplePointAngles(nth_point=1, skeletonizer=lambda v: v)
    analysis.set_input_image(make_voxel_y())
    results = analysis.run()

    assert len(results) == 1
    assert len(results[0]) == 1
    theta = results[0][0]
    # Planar junction inside the triangle of its sample points
    assert sum(theta) == pytest.approx(2 * math.pi, abs=1e-9)
    assert max(theta) > math.radians(170)


def test_skeletonize_volume_output():
    volume = np.zeros((9, 9, 9), dtype=np.uint8)
    volume[2:7, 2:7, 2:7] = 255
    skeleton = skeletonize_volume(volume)

    assert skeleton.dtype == np.uint8
    assert skeleton.shape == volume.shape
    assert set(np.unique(skeleton)).issubset({0, 255})
    assert np.count_nonzero(skeleton) > 0
    assert np.all(volume[skeleton > 0] == 255)


def test_skeletonize_volume_keeps_thin_line_inside_input():
    volume = np.zeros((5, 5, 12), dtype=np.uint8)
    volume[2, 2, 1:11] = 255
    skeleton = skeletonize_volume(volume)

    assert np.count_nonzero(skeleton) > 0
    assert np.all(volume[skeleton > 0] == 255)


def test_graph_build_validates_vertex_indices():
    with pytest.raises(ValueError):
        Graph.build([[(0, 0, 0)]], [(0, 3, [])])


def test_edge_opposite_vertex():
    edge = Edge(2, 5)
    assert edge.opposite_vertex(2) == 5
    assert edge.opposite_vertex(5) == 2
    with pytest.raises(ValueError):
        edge.opposite_vertex(1)


DIAMOND = [(5, 2), (6, 3), (7, 4), (6, 5), (5, 6), (4, 5), (3, 4), (4, 3)]


def make_ring_and_y():
    """A diamond ring, every voxel with two neighbours, beside the voxel 'T'."""
    volume = make_voxel_y()
    for x, y in DIAMOND:
        volume[0, y, x] = 255
    return volume


def test_ring_becomes_one_graph_with_a_loop():
    volume = np.zeros((1, 9, 9), dtype=np.uint8)
    for x, y in DIAMOND:
        volume[0, y, x] = 255
    graphs = extract_graphs(volume)

    assert len(graphs) == 1
    ring = graphs[0]
    assert len(ring.vertices) == 1
    assert ring.vertices[0].points == (Point(5, 2, 0),)
    assert len(ring.edges) == 1
    assert ring.edges[0].is_loop
    assert len(ring.edges[0].slabs) == len(DIAMOND) - 1
    assert list(ring.triple_points()) == []


def test_every_component_becomes_a_graph():
    volume = make_ring_and_y()
    _, n_components = ndimage.label(volume > 0, structure=np.ones((3, 3, 3)))
    graphs = extract_graphs(volume)

    assert len(graphs) == n_components == 2
    # The ring starts on row 2, before the 'T' on row 10
    assert graphs[0].edges[0].is_loop
    assert len(list(graphs[1].triple_points())) == 1


def test_ring_only_image_has_no_triple_points():
    volume = np.zeros((1, 9, 9), dtype=np.uint8)
    for x, y in DIAMOND:
        volume[0, y, x] = 255
    analysis = TriplePointAngles(skeletonizer=lambda v: v)
    analysis.set_input_image(volume)

    assert analysis.run() == [[]]


def test_ring_keeps_angle_results_aligned_with_components():
    analysis = TriplePointAngles(nth_point=1, skeletonizer=lambda v: v)
    analysis.set_input_image(make_ring_and_y())
    results = analysis.run()

    assert len(results) == 2
    assert results[0] == []
    assert len(results[1]) == 1
