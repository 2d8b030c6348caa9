"""
bonemorph Package

Trabecular bone morphometry of binary micro-CT volumes: local thickness and
spacing, volume fraction and triple point branch angles.
"""

__version__ = "1.0.0"

from .errors import MissingInputError, InvalidArgumentError
from .volume_loader import load_image_stack, load_tiff_stack, load_volume, binarize
from .skeleton_graph import Point, Vertex, Edge, Graph
from .skeletonization import skeletonize_volume, extract_graphs
from .triple_point_angles import (
    TriplePointAngles,
    Measurement,
    MeasurementMode,
    triple_point_angles,
    DEFAULT_NTH_POINT,
    VERTEX_TO_VERTEX
)
from .roi import Roi, RoiManager
from .thickness import Thickness, local_thickness
from .volume_fraction import VolumeFraction
from .results import ResultsTable
from .analysis import analyze_volume, TrabecularAnalyzer
from .visualization import visualize_results

__all__ = [
    'MissingInputError',
    'InvalidArgumentError',
    'load_image_stack',
    'load_tiff_stack',
    'load_volume',
    'binarize',
    'Point',
    'Vertex',
    'Edge',
    'Graph',
    'skeletonize_volume',
    'extract_graphs',
    'TriplePointAngles',
    'Measurement',
    'MeasurementMode',
    'triple_point_angles',
    'DEFAULT_NTH_POINT',
    'VERTEX_TO_VERTEX',
    'Roi',
    'RoiManager',
    'Thickness',
    'local_thickness',
    'VolumeFraction',
    'ResultsTable',
    'analyze_volume',
    'TrabecularAnalyzer',
    'visualize_results'
]
