"""
Local thickness of trabeculae (Tb.Th) and of the spaces between them (Tb.Sp).

The thickness of a voxel is the diameter of the largest sphere that fits
inside the structure and contains the voxel (Hildebrand & Ruegsegger).
Spacing is the same measure computed on the background.
"""

import numpy as np
import logging
from typing import Callable, Dict, Optional, Sequence, Tuple
from tqdm import tqdm

from scipy import ndimage

from .errors import InvalidArgumentError, MissingInputError
from .image_check import BINARY_BLACK, as_volume, check_image, is_voxel_isotropic
from .results import ResultsTable
from .roi import RoiManager, crop_to_rois

logger = logging.getLogger(__name__)

TRABECULAR_THICKNESS = "Tb.Th"
TRABECULAR_SPACING = "Tb.Sp"

# Sphere radii are grouped in steps of this fraction of the smallest voxel size
RADIUS_RESOLUTION = 0.5
ANISOTROPY_TOLERANCE = 1e-3

ThicknessBackend = Callable[..., np.ndarray]


def local_thickness(volume: np.ndarray,
                    inverse: bool = False,
                    spacing: Sequence[float] = (1.0, 1.0, 1.0),
                    mask: bool = True) -> np.ndarray:
    """
    Local thickness map of a binary volume.

    Every foreground voxel is the centre of an inscribed sphere whose radius is
    its distance to the background. The map holds, for each voxel, the largest
    diameter of the spheres covering it.

    Args:
        volume: Binary (z, y, x) volume, non-zero voxels are foreground
        inverse: Measure the background instead (spacing)
        spacing: (z, y, x) voxel size; the map is in the same unit
        mask: Zero the map outside the measured phase

    Returns:
        float32 thickness map with the shape of volume
    """
    binary = as_volume(volume) > 0
    if inverse:
        binary = ~binary

    thickness = np.zeros(binary.shape, dtype=np.float32)
    if not binary.any():
        logger.warning("Nothing to measure, the phase is empty")
        return thickness

    spacing = tuple(float(s) for s in spacing)
    distance = ndimage.distance_transform_edt(binary, sampling=spacing)

    step = min(spacing) * RADIUS_RESOLUTION
    levels = np.floor(distance / step) * step
    radii = np.unique(levels[binary])
    radii = radii[radii > 0]

    for radius in tqdm(radii, desc="Fitting spheres", disable=len(radii) < 50):
        centres = binary & (levels == radius)
        covered = ndimage.distance_transform_edt(~centres, sampling=spacing) < radius
        np.maximum(thickness, np.float32(2 * radius), out=thickness, where=covered)

    if mask:
        thickness[~binary] = 0

    return thickness


def thickness_statistics(thickness_map: np.ndarray) -> Dict[str, float]:
    """
    Mean, sample standard deviation and maximum of the non-zero voxels of a map.
    """
    values = thickness_map[thickness_map > 0]
    if values.size == 0:
        return {'mean': 0.0, 'std': 0.0, 'max': 0.0}
    return {
        'mean': float(values.mean()),
        'std': float(values.std(ddof=1)) if values.size > 1 else 0.0,
        'max': float(values.max())
    }


class Thickness:
    """
    Measures trabecular thickness and/or spacing of a binary image.
    """

    def __init__(self,
                 do_thickness: bool = True,
                 do_spacing: bool = False,
                 mask_thickness: bool = True,
                 use_roi: bool = False,
                 spacing: Tuple[float, float, float] = (1.0, 1.0, 1.0),
                 unit: str = "pixel",
                 thickness_backend: ThicknessBackend = local_thickness):
        """
        Initialize the command.

        Args:
            do_thickness: Measure the foreground (Tb.Th)
            do_spacing: Measure the background (Tb.Sp)
            mask_thickness: Zero the maps outside the measured phase
            use_roi: Crop the image to the ROI manager before measuring
            spacing: (z, y, x) voxel size
            unit: Unit of the voxel size, used in column headings
            thickness_backend: Callable(volume, inverse, spacing, mask) -> map
        """
        self.do_thickness = do_thickness
        self.do_spacing = do_spacing
        self.mask_thickness = mask_thickness
        self.use_roi = use_roi
        self.spacing = tuple(spacing)
        self.unit = unit
        self.thickness_backend = thickness_backend
        self.image = None
        self.title = "image"
        self.roi_manager: Optional[RoiManager] = None
        self.result_maps: Dict[str, np.ndarray] = {}
        self.result_stats: Dict[str, Dict[str, float]] = {}

    def set_image(self, image: np.ndarray, title: str = "image") -> None:
        """
        Set the binary image to measure.

        Raises:
            MissingInputError: If image is None
            InvalidArgumentError: If image is not binary
        """
        check_image(image)
        self.image = as_volume(image)
        self.title = title
        if not is_voxel_isotropic(self.spacing, ANISOTROPY_TOLERANCE):
            logger.warning(f"Voxels are anisotropic {self.spacing}, thickness values may be biased")

    def set_roi_manager(self, roi_manager: RoiManager) -> None:
        if roi_manager is None:
            raise MissingInputError("May not use a null ROI Manager")
        self.roi_manager = roi_manager

    def _measured_image(self) -> np.ndarray:
        if not self.use_roi:
            return self.image
        cropped = None
        if self.roi_manager is not None:
            cropped = crop_to_rois(self.roi_manager, self.image, fill_background=True, fill_value=BINARY_BLACK)
        if cropped is None:
            raise InvalidArgumentError("There are no valid ROIs in the ROI Manager for cropping")
        return cropped

    def get_local_thickness(self, do_foreground: bool) -> np.ndarray:
        """
        Thickness map of the foreground (Tb.Th) or the background (Tb.Sp).
        """
        if self.image is None:
            raise MissingInputError("Must have an input image")
        legend = TRABECULAR_THICKNESS if do_foreground else TRABECULAR_SPACING
        logger.info(f"Computing {legend} map of {self.title}")
        return self.thickness_backend(self._measured_image(),
                                      inverse=not do_foreground,
                                      spacing=self.spacing,
                                      mask=self.mask_thickness)

    def run(self) -> ResultsTable:
        """
        Measure the selected phases.

        Returns:
            Table with mean, standard deviation and maximum of every measure

        Raises:
            MissingInputError: If no image is set
            InvalidArgumentError: If nothing is selected, or ROI cropping finds no ROIs
        """
        if not self.do_thickness and not self.do_spacing:
            raise InvalidArgumentError("Nothing to process")

        self.result_maps = {}
        self.result_stats = {}
        table = ResultsTable()

        phases = []
        if self.do_thickness:
            phases.append((True, TRABECULAR_THICKNESS))
        if self.do_spacing:
            phases.append((False, TRABECULAR_SPACING))

        for do_foreground, legend in phases:
            thickness_map = self.get_local_thickness(do_foreground)
            stats = thickness_statistics(thickness_map)
            self.result_maps[legend] = thickness_map
            self.result_stats[legend] = stats
            self.show_thickness_stats(table, legend, stats)

        return table

    def show_thickness_stats(self, table: ResultsTable, legend: str, stats: Dict[str, float]) -> None:
        title = f"{self.title}_{legend}"
        table.set_measurement_in_first_free_row(title, f"{legend} Mean ({self.unit})", stats['mean'])
        table.set_measurement_in_first_free_row(title, f"{legend} Std Dev ({self.unit})", stats['std'])
        table.set_measurement_in_first_free_row(title, f"{legend} Max ({self.unit})", stats['max'])
        logger.info(f"{legend} of {self.title}: mean {stats['mean']:.3f}, "
                    f"std {stats['std']:.3f}, max {stats['max']:.3f} {self.unit}")
