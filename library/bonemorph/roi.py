"""
Rectangular regions of interest on volume slices.

A ROI either belongs to one slice (z is a 0-based slice index) or, with
z=None, to every slice of the volume.
"""

import numpy as np
import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

DEFAULT_Z_MIN = 0
DEFAULT_Z_MAX = np.iinfo(np.int32).max

Limits = Tuple[int, int, int, int, int, int]


@dataclass(frozen=True)
class Roi:
    x: int
    y: int
    width: int
    height: int
    z: Optional[int] = None
    name: str = ""

    @property
    def bounds(self) -> Tuple[int, int, int, int]:
        """(min_x, max_x, min_y, max_y), maxima exclusive."""
        return self.x, self.x + self.width, self.y, self.y + self.height

    def is_valid(self) -> bool:
        return self.width > 0 and self.height > 0


class RoiManager:
    """Ordered collection of ROIs."""

    def __init__(self, rois: Sequence[Roi] = ()):
        self._rois = list(rois)

    def add(self, roi: Roi) -> None:
        self._rois.append(roi)

    def reset(self) -> None:
        self._rois.clear()

    def get_count(self) -> int:
        return len(self._rois)

    def __len__(self) -> int:
        return len(self._rois)

    def __iter__(self) -> Iterator[Roi]:
        return iter(self._rois)


def get_slice_rois(manager: RoiManager, z: int) -> List[Roi]:
    """
    ROIs that apply to slice z.

    Args:
        manager: ROI collection
        z: 0-based slice index

    Returns:
        The ROIs of slice z followed by the ROIs without a slice, each group
        in manager order. Empty for a negative slice index.
    """
    if z < 0:
        return []
    slice_rois = [roi for roi in manager if roi.z == z]
    shared_rois = [roi for roi in manager if roi.z is None]
    return slice_rois + shared_rois


def get_limits(manager: RoiManager) -> Optional[Limits]:
    """
    Bounding box of all ROIs.

    Returns:
        (min_x, max_x, min_y, max_y, min_z, max_z) with exclusive x and y maxima
        and inclusive z limits, or None if the manager is empty. If any ROI has
        no slice the z limits are (DEFAULT_Z_MIN, DEFAULT_Z_MAX).
    """
    if manager.get_count() == 0:
        return None

    min_x = min_y = min_z = np.iinfo(np.int32).max
    max_x = max_y = max_z = np.iinfo(np.int32).min
    no_z = False

    for roi in manager:
        x0, x1, y0, y1 = roi.bounds
        min_x, max_x = min(min_x, x0), max(max_x, x1)
        min_y, max_y = min(min_y, y0), max(max_y, y1)
        if roi.z is None:
            no_z = True
        else:
            min_z, max_z = min(min_z, roi.z), max(max_z, roi.z)

    if no_z:
        min_z, max_z = DEFAULT_Z_MIN, DEFAULT_Z_MAX

    return min_x, max_x, min_y, max_y, min_z, max_z


def _clip_limits(limits: Limits, shape: Tuple[int, int, int], padding: int = 0) -> Optional[Limits]:
    min_x, max_x, min_y, max_y, min_z, max_z = limits
    depth, height, width = shape
    min_x, max_x = max(0, min_x - padding), min(width, max_x + padding)
    min_y, max_y = max(0, min_y - padding), min(height, max_y + padding)
    min_z, max_z = max(0, min_z), min(depth - 1, max_z)
    if min_x >= max_x or min_y >= max_y or min_z > max_z:
        return None
    return min_x, max_x, min_y, max_y, min_z, max_z


def roi_mask(manager: RoiManager, shape: Tuple[int, int, int]) -> np.ndarray:
    """
    Boolean footprint of the ROIs in a volume of the given (z, y, x) shape.
    """
    mask = np.zeros(shape, dtype=bool)
    for roi in manager:
        if not roi.is_valid():
            continue
        x0, x1, y0, y1 = roi.bounds
        x0, y0 = max(0, x0), max(0, y0)
        if roi.z is None:
            mask[:, y0:y1, x0:x1] = True
        elif 0 <= roi.z < shape[0]:
            mask[roi.z, y0:y1, x0:x1] = True
    return mask


def crop_stack(manager: RoiManager,
               volume: np.ndarray,
               fill_background: bool = False,
               fill_value: int = 0,
               padding: int = 0) -> Optional[np.ndarray]:
    """
    Crop a volume to the bounding box of the ROIs.

    Only voxels inside a ROI of their slice are copied; the rest of the crop
    is set to fill_value. With fill_background, voxels inside the ROIs that
    are not foreground (non-zero) are set to fill_value as well.

    Args:
        manager: ROI collection
        volume: (z, y, x) volume
        fill_background: Replace background voxels inside the ROIs with fill_value
        fill_value: Value for voxels outside the ROIs
        padding: Extra voxels added around the crop in x and y

    Returns:
        Cropped volume, or None if there are no valid ROIs inside the volume
    """
    limits = get_limits(RoiManager([roi for roi in manager if roi.is_valid()]))
    if limits is None:
        return None
    limits = _clip_limits(limits, volume.shape, padding)
    if limits is None:
        return None

    min_x, max_x, min_y, max_y, min_z, max_z = limits
    footprint = roi_mask(manager, volume.shape)[min_z:max_z + 1, min_y:max_y, min_x:max_x]
    source = volume[min_z:max_z + 1, min_y:max_y, min_x:max_x]

    cropped = np.full(source.shape, fill_value, dtype=volume.dtype)
    keep = footprint & (source != 0) if fill_background else footprint
    cropped[keep] = source[keep]

    logger.debug(f"Cropped {volume.shape} to {cropped.shape}")
    return cropped


def crop_to_rois(manager: RoiManager, volume: np.ndarray, fill_background: bool = False,
                 fill_value: int = 0) -> Optional[np.ndarray]:
    return crop_stack(manager, volume, fill_background, fill_value, padding=0)
