"""
Bone volume fraction (BV/TV).

Bone volume is measured from the foreground and total volume from the whole
image, or from the ROI footprint when a ROI manager is set. Volumes are either
voxel counts or the enclosed volumes of marching cubes surfaces.
"""

import numpy as np
import logging
from typing import Dict, Optional, Tuple

from skimage.measure import marching_cubes

from .errors import InvalidArgumentError, MissingInputError
from .image_check import as_volume, bit_depth, is_binary, is_color
from .results import ResultsTable
from .roi import RoiManager, roi_mask

logger = logging.getLogger(__name__)

VOXEL = 0
SURFACE = 1
VOLUME_ALGORITHMS = {VOXEL: "voxel", SURFACE: "surface"}

DEFAULT_SURFACE_RESAMPLING = 6


def mesh_volume(vertices: np.ndarray, faces: np.ndarray) -> float:
    """
    Volume enclosed by a closed triangle mesh (divergence theorem).
    """
    if len(faces) == 0:
        return 0.0
    v0 = vertices[faces[:, 0]]
    v1 = vertices[faces[:, 1]]
    v2 = vertices[faces[:, 2]]
    return float(abs(np.einsum('ij,ij->i', v0, np.cross(v1, v2)).sum()) / 6.0)


def surface_volume(mask: np.ndarray,
                   spacing: Tuple[float, float, float] = (1.0, 1.0, 1.0),
                   resampling: int = 1) -> float:
    """
    Volume inside the marching cubes surface of a boolean mask.

    Args:
        mask: Boolean (z, y, x) volume
        spacing: (z, y, x) voxel size
        resampling: Marching cubes step size in voxels, 0 means 1

    Returns:
        Enclosed volume in spacing units cubed
    """
    if not mask.any():
        return 0.0
    # Pad so that surfaces touching the image border are closed
    padded = np.pad(mask.astype(np.float32), 1, mode='constant', constant_values=0)
    vertices, faces, _, _ = marching_cubes(padded, level=0.5, spacing=spacing,
                                           step_size=max(1, int(resampling)))
    return mesh_volume(vertices, faces)


class VolumeFraction:
    """
    Measures the bone volume fraction of a binary or thresholded grayscale image.
    """

    def __init__(self,
                 volume_algorithm: int = VOXEL,
                 surface_resampling: int = DEFAULT_SURFACE_RESAMPLING,
                 min_threshold: Optional[float] = None,
                 max_threshold: Optional[float] = None,
                 spacing: Tuple[float, float, float] = (1.0, 1.0, 1.0),
                 unit: str = "pixel"):
        self.set_volume_algorithm(volume_algorithm)
        self.set_surface_resampling(surface_resampling)
        self.min_threshold = min_threshold
        self.max_threshold = max_threshold
        self.spacing = tuple(spacing)
        self.unit = unit
        self.image = None
        self.title = "image"
        self.roi_manager: Optional[RoiManager] = None
        self.results: Optional[Dict[str, float]] = None

    def set_image(self, image: np.ndarray, title: str = "image") -> None:
        """
        Set the image to measure.

        Raises:
            MissingInputError: If image is None
            InvalidArgumentError: If the image is not 8 or 16 bit, or is a colour image
        """
        if image is None:
            raise MissingInputError("Must have an input image")
        image = np.asarray(image)
        if image.dtype != bool and bit_depth(image) not in (8, 16):
            raise InvalidArgumentError("Input image bit depth must be 8 or 16")
        if is_color(image) or image.ndim not in (2, 3):
            raise InvalidArgumentError("Need a binary or grayscale image")
        self.image = as_volume(image)
        self.title = title

    def set_volume_algorithm(self, algorithm: int) -> None:
        if algorithm not in VOLUME_ALGORITHMS:
            raise InvalidArgumentError("No such surface algorithm")
        self.volume_algorithm = algorithm

    def set_surface_resampling(self, resampling: int) -> None:
        if resampling < 0:
            raise InvalidArgumentError("Resampling value must be >= 0")
        self.surface_resampling = resampling

    def set_roi_manager(self, roi_manager: RoiManager) -> None:
        """
        Restrict the measurement to the ROIs of a manager.

        Raises:
            MissingInputError: If roi_manager is None
            InvalidArgumentError: If roi_manager has no ROIs
        """
        if roi_manager is None:
            raise MissingInputError("May not use a null ROI Manager")
        if roi_manager.get_count() == 0:
            raise InvalidArgumentError("May not use an empty ROI Manager")
        self.roi_manager = roi_manager

    def foreground(self) -> np.ndarray:
        """Boolean mask of the bone phase."""
        if self.min_threshold is None and self.max_threshold is None:
            if not is_binary(self.image):
                raise InvalidArgumentError("Grayscale images need a threshold")
            return self.image > 0
        low = self.image.min() if self.min_threshold is None else self.min_threshold
        high = self.image.max() if self.max_threshold is None else self.max_threshold
        return (self.image >= low) & (self.image <= high)

    def run(self) -> ResultsTable:
        """
        Measure BV, TV and BV/TV.

        Returns:
            Table with one row for the image; the raw values are kept in `results`
        """
        if self.image is None:
            raise MissingInputError("Must have an input image")

        self.results = None
        total = np.ones(self.image.shape, dtype=bool)
        if self.roi_manager is not None:
            total = roi_mask(self.roi_manager, self.image.shape)
        bone = self.foreground() & total

        algorithm = VOLUME_ALGORITHMS[self.volume_algorithm]
        logger.info(f"Measuring volume fraction of {self.title} ({algorithm})")
        if self.volume_algorithm == VOXEL:
            voxel_volume = float(np.prod(self.spacing))
            bone_volume = np.count_nonzero(bone) * voxel_volume
            total_volume = np.count_nonzero(total) * voxel_volume
        else:
            bone_volume = surface_volume(bone, self.spacing, self.surface_resampling)
            total_volume = surface_volume(total, self.spacing, self.surface_resampling)

        fraction = bone_volume / total_volume if total_volume > 0 else float('nan')
        self.results = {
            'bone_volume': float(bone_volume),
            'total_volume': float(total_volume),
            'volume_fraction': float(fraction)
        }
        logger.info(f"BV/TV of {self.title}: {fraction:.4f}")

        table = ResultsTable()
        table.set_measurement_in_first_free_row(self.title, f"BV ({self.unit}³)", self.results['bone_volume'])
        table.set_measurement_in_first_free_row(self.title, f"TV ({self.unit}³)", self.results['total_volume'])
        table.set_measurement_in_first_free_row(self.title, "BV/TV", self.results['volume_fraction'])
        return table
