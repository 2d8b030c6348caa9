"""
Tests for the triple point angle measurement.
"""

import logging
import math
import numpy as np
import pytest

from bonemorph import (
    Graph,
    InvalidArgumentError,
    MissingInputError,
    TriplePointAngles,
    VERTEX_TO_VERTEX,
)
from bonemorph.triple_point_angles import Measurement, MeasurementMode, triple_point_angles

RIGHT = math.pi / 2
STRAIGHT = math.pi


def make_y_graph(reverse_last=False, length=5):
    """
    One triple point at (10, 10, 0) with straight branches along +x, +y and -x.

    Every branch has `length` slabs and ends in a single voxel vertex.
    """
    centre = (10, 10, 0)
    directions = [(1, 0, 0), (0, 1, 0), (-1, 0, 0)]
    vertex_points = [[centre]]
    edges = []
    for i, (dx, dy, dz) in enumerate(directions):
        slabs = [(10 + dx * k, 10 + dy * k, dz * k) for k in range(1, length + 1)]
        end = (10 + dx * (length + 1), 10 + dy * (length + 1), 0)
        vertex_points.append([end])
        if reverse_last and i == len(directions) - 1:
            slabs = slabs[::-1]
        edges.append((0, i + 1, slabs))
    return Graph.build(vertex_points, edges)


def make_line_graph():
    return Graph.build([[(0, 0, 0)], [(4, 0, 0)]], [(0, 1, [(1, 0, 0), (2, 0, 0), (3, 0, 0)])])


def make_binary_image():
    image = np.zeros((3, 20, 20), dtype=np.uint8)
    image[1, 10, 4:17] = 255
    image[1, 10:17, 10] = 255
    return image


def make_analysis(graphs, nth_point=0):
    analysis = TriplePointAngles(nth_point=nth_point,
                                 skeletonizer=lambda volume: volume,
                                 graph_extractor=lambda skeleton: graphs)
    analysis.set_input_image(make_binary_image())
    return analysis


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("value", [-2, -3, -100])
def test_set_nth_point_rejects_negative_values(value):
    analysis = TriplePointAngles()
    with pytest.raises(InvalidArgumentError, match="Invalid nth point value"):
        analysis.set_nth_point(value)


@pytest.mark.parametrize("value", [VERTEX_TO_VERTEX, 0, 1, 25])
def test_set_nth_point_accepts_valid_values(value):
    analysis = TriplePointAngles()
    analysis.set_nth_point(value)
    assert analysis.nth_point == value


def test_set_nth_point_rejects_non_integers():
    analysis = TriplePointAngles()
    with pytest.raises(InvalidArgumentError):
        analysis.set_nth_point(1.5)
    with pytest.raises(InvalidArgumentError):
        analysis.set_nth_point(True)


def test_constructor_validates_nth_point():
    with pytest.raises(InvalidArgumentError):
        TriplePointAngles(nth_point=-5)


def test_measurement_modes():
    assert Measurement.from_nth_point(-1).mode is MeasurementMode.VERTEX_TO_VERTEX
    measurement = Measurement.from_nth_point(3)
    assert measurement.mode is MeasurementMode.NTH_POINT
    assert measurement.offset == 3
    assert measurement.nth_point == 3


def test_set_input_image_rejects_none():
    analysis = TriplePointAngles()
    with pytest.raises(MissingInputError, match="Must have an input image"):
        analysis.set_input_image(None)


def test_set_input_image_rejects_non_binary():
    analysis = TriplePointAngles()
    image = np.arange(27, dtype=np.uint8).reshape(3, 3, 3)
    with pytest.raises(InvalidArgumentError, match="Input image must be binary"):
        analysis.set_input_image(image)


def test_errors_are_value_errors():
    analysis = TriplePointAngles()
    with pytest.raises(ValueError):
        analysis.set_input_image(None)
    with pytest.raises(ValueError):
        analysis.set_nth_point(-7)


def test_calculate_without_image_fails():
    analysis = TriplePointAngles(skeletonizer=lambda v: v, graph_extractor=lambda s: [make_y_graph()])
    with pytest.raises(MissingInputError):
        analysis.calculate_triple_point_angles()


# ---------------------------------------------------------------------------
# Angles
# ---------------------------------------------------------------------------

def test_y_graph_nth_point():
    analysis = make_analysis([make_y_graph()], nth_point=2)
    results = analysis.calculate_triple_point_angles()

    assert len(results) == 1
    assert len(results[0]) == 1
    assert results[0][0] == pytest.approx((RIGHT, STRAIGHT, RIGHT), abs=1e-6)
    assert analysis.results is results


def test_y_graph_vertex_to_vertex_matches_nth_point():
    nth = make_analysis([make_y_graph()], nth_point=2).run()
    v2v = make_analysis([make_y_graph()], nth_point=VERTEX_TO_VERTEX).run()

    assert v2v[0][0] == pytest.approx((RIGHT, STRAIGHT, RIGHT), abs=1e-6)
    assert v2v[0][0] == pytest.approx(nth[0][0], abs=1e-6)


def test_branch_orientation_is_resolved_by_adjacency():
    forward = make_analysis([make_y_graph()], nth_point=1).run()
    reversed_branch = make_analysis([make_y_graph(reverse_last=True)], nth_point=1).run()

    assert reversed_branch[0][0] == pytest.approx(forward[0][0], abs=1e-9)


def test_oversized_nth_point_saturates():
    graph = make_y_graph(length=5)
    clamped = make_analysis([graph], nth_point=100).run()
    last = make_analysis([graph], nth_point=4).run()

    assert clamped[0][0] == pytest.approx(last[0][0], abs=1e-12)


def test_clamping_does_not_change_offset_of_later_branches():
    # b0 is short, b1 bends toward +x after two voxels
    graph = Graph.build(
        [[(10, 10, 0)], [(13, 10, 0)], [(14, 12, 0)], [(4, 10, 0)]],
        [
            (0, 1, [(11, 10, 0), (12, 10, 0)]),
            (0, 2, [(10, 11, 0), (10, 12, 0), (11, 12, 0), (12, 12, 0), (13, 12, 0)]),
            (0, 3, [(9, 10, 0), (8, 10, 0), (7, 10, 0), (6, 10, 0), (5, 10, 0)]),
        ]
    )
    analysis = make_analysis([graph], nth_point=3)
    theta = analysis.run()[0][0]

    # b0 is sampled at (12, 10, 0), b1 at (12, 12, 0)
    assert theta[0] == pytest.approx(math.pi / 4, abs=1e-9)
    assert analysis.nth_point == 3


def test_only_degree_three_vertices_are_measured():
    # A cross (degree 4), a line and a graph with two triple points
    cross = Graph.build(
        [[(5, 5, 0)], [(7, 5, 0)], [(5, 7, 0)], [(3, 5, 0)], [(5, 3, 0)]],
        [(0, 1, [(6, 5, 0)]), (0, 2, [(5, 6, 0)]), (0, 3, [(4, 5, 0)]), (0, 4, [(5, 4, 0)])]
    )
    double = Graph.build(
        [[(0, 0, 0)], [(4, 0, 0)], [(0, 2, 0)], [(0, -2, 0)], [(4, 2, 0)], [(4, -2, 0)]],
        [
            (0, 1, [(1, 0, 0), (2, 0, 0), (3, 0, 0)]),
            (0, 2, [(0, 1, 0)]),
            (0, 3, [(0, -1, 0)]),
            (1, 4, [(4, 1, 0)]),
            (1, 5, [(4, -1, 0)]),
        ]
    )
    graphs = [cross, make_line_graph(), double]
    results = make_analysis(graphs).run()

    assert [len(r) for r in results] == [len(list(g.triple_points())) for g in graphs]
    assert [len(r) for r in results] == [0, 0, 2]


def test_angles_lie_between_zero_and_pi():
    double = Graph.build(
        [[(0, 0, 0)], [(4, 1, 2)], [(-1, 3, 0)], [(1, -3, -1)], [(7, 3, 2)], [(6, -2, 4)]],
        [
            (0, 1, [(1, 0, 1), (2, 1, 1), (3, 1, 2)]),
            (0, 2, [(-1, 1, 0), (-1, 2, 0)]),
            (0, 3, [(0, -1, 0), (1, -2, -1)]),
            (1, 4, [(5, 2, 2), (6, 3, 2)]),
            (1, 5, [(5, 0, 3), (6, -1, 4)]),
        ]
    )
    for nth_point in (VERTEX_TO_VERTEX, 0, 1, 2, 10):
        for triple in make_analysis([double], nth_point=nth_point).run()[0]:
            assert all(0.0 <= theta <= math.pi for theta in triple)


def test_results_per_graph_keep_graph_order():
    results = make_analysis([make_line_graph(), make_y_graph(), make_line_graph()], nth_point=2).run()
    assert results[0] == []
    assert len(results[1]) == 1
    assert results[2] == []


def test_branch_without_slabs_uses_opposite_vertex():
    graph = Graph.build(
        [[(10, 10, 0)], [(11, 10, 0)], [(10, 16, 0)], [(4, 10, 0)]],
        [
            (0, 1, []),
            (0, 2, [(10, 11, 0), (10, 12, 0), (10, 13, 0), (10, 14, 0), (10, 15, 0)]),
            (0, 3, [(9, 10, 0), (8, 10, 0), (7, 10, 0), (6, 10, 0), (5, 10, 0)]),
        ]
    )
    theta = make_analysis([graph], nth_point=2).run()[0][0]
    assert theta == pytest.approx((RIGHT, STRAIGHT, RIGHT), abs=1e-9)


def make_lollipop_graph():
    """A ring on a stem: vertex 0 has a stem branch and a loop counted twice."""
    return Graph.build(
        [[(10, 10, 0)], [(14, 10, 0)]],
        [
            (0, 1, [(11, 10, 0), (12, 10, 0), (13, 10, 0)]),
            (0, 0, [(9, 11, 0), (8, 12, 0), (9, 13, 0), (10, 12, 0), (10, 11, 0)]),
        ]
    )


def test_self_loop_at_triple_point_gives_nan(caplog):
    graph = make_lollipop_graph()
    assert graph.degree(0) == 3

    analysis = make_analysis([graph, make_y_graph()], nth_point=2)
    with caplog.at_level(logging.WARNING):
        results = analysis.run()

    assert len(results[0]) == 1
    assert all(math.isnan(theta) for theta in results[0][0])
    assert "Self-loop" in caplog.text
    # Triple points elsewhere in the image are still measured
    assert results[1][0] == pytest.approx((RIGHT, STRAIGHT, RIGHT), abs=1e-6)
    assert len(analysis.to_dataframe()) == 2


def test_no_graphs_fails_without_results():
    for extracted in ([], None):
        analysis = make_analysis(extracted)
        with pytest.raises(InvalidArgumentError, match="Input image could not be skeletonized"):
            analysis.calculate_triple_point_angles()
        assert analysis.results is None


def test_failed_run_discards_previous_results():
    graphs = [make_y_graph()]
    analysis = make_analysis(graphs)
    analysis.run()
    assert analysis.get_results() is not None

    graphs.clear()
    with pytest.raises(InvalidArgumentError):
        analysis.run()
    assert analysis.get_results() is None


def test_each_run_replaces_results():
    analysis = make_analysis([make_y_graph()], nth_point=2)
    first = analysis.run()
    second = analysis.run()
    assert first == second
    assert first is not second
    assert len(second) == 1


def test_skeletonizer_receives_input_image():
    received = []
    image = make_binary_image()

    def skeletonizer(volume):
        received.append(volume)
        return volume

    analysis = TriplePointAngles(skeletonizer=skeletonizer, graph_extractor=lambda s: [make_y_graph()])
    analysis.set_input_image(image)
    analysis.run()
    assert received[0] is image


def test_to_dataframe():
    analysis = make_analysis([make_line_graph(), make_y_graph()], nth_point=2)
    with pytest.raises(ValueError):
        analysis.to_dataframe()

    analysis.run()
    df = analysis.to_dataframe()
    assert len(df) == 1
    row = df.iloc[0]
    assert row['skeleton'] == 1
    assert row['vertex'] == 0
    assert (row['centroid_x'], row['centroid_y'], row['centroid_z']) == (10.0, 10.0, 0.0)
    assert row['theta1_deg'] == pytest.approx(180.0)


def test_default_collaborators_on_voxel_image():
    analysis = TriplePointAngles(nth_point=2)
    analysis.set_input_image(make_binary_image())
    results = analysis.run()

    assert len(results) == 1
    for triple in results[0]:
        assert all(0.0 <= theta <= math.pi for theta in triple)


def test_triple_point_angles_function():
    image = make_binary_image()
    analysis = TriplePointAngles(nth_point=1)
    analysis.set_input_image(image)

    assert triple_point_angles(image, nth_point=1) == analysis.run()
