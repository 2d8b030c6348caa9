"""
Checks run on input volumes before any measurement.
"""

import numpy as np
import logging
from typing import Sequence

from .errors import InvalidArgumentError, MissingInputError

logger = logging.getLogger(__name__)

BINARY_BLACK = 0
BINARY_WHITE = 255

NOT_BINARY_IMAGE_ERROR = "Input image must be binary"
NO_IMAGE_ERROR = "Must have an input image"


def is_binary(volume: np.ndarray) -> bool:
    """
    Check whether a volume is a binary (black & white) image.

    Boolean arrays are binary. Integer arrays are binary when they are 8-bit
    and contain no values other than 0 and 255.

    Args:
        volume: 2D or 3D array

    Returns:
        True if the volume is binary
    """
    if volume.ndim not in (2, 3):
        return False
    if volume.dtype == bool:
        return True
    if volume.dtype != np.uint8:
        return False
    values = np.unique(volume)
    return bool(np.isin(values, (BINARY_BLACK, BINARY_WHITE)).all())


def is_color(volume: np.ndarray) -> bool:
    """True for (z, y, x, channel) stacks."""
    return volume.ndim == 4


def bit_depth(volume: np.ndarray) -> int:
    """Bit depth of a volume, colour stacks count every channel."""
    depth = volume.dtype.itemsize * 8
    if volume.ndim == 4:
        depth *= volume.shape[-1]
    return depth


def is_voxel_isotropic(spacing: Sequence[float], tolerance: float = 1e-3) -> bool:
    """
    Check that voxel dimensions are equal within a relative tolerance.

    Args:
        spacing: Voxel size along each axis
        tolerance: Allowed relative difference between the largest and smallest size

    Returns:
        True if the voxels are (nearly) cubic
    """
    spacing = np.asarray(spacing, dtype=float)
    if np.any(spacing <= 0):
        raise InvalidArgumentError("Voxel spacing must be positive")
    return bool((spacing.max() - spacing.min()) / spacing.min() <= tolerance)


def check_image(volume: np.ndarray) -> None:
    """
    Validate an input image for the binary-only commands.

    Raises:
        MissingInputError: If volume is None
        InvalidArgumentError: If volume is not binary
    """
    if volume is None:
        raise MissingInputError(NO_IMAGE_ERROR)
    if not is_binary(np.asarray(volume)):
        raise InvalidArgumentError(NOT_BINARY_IMAGE_ERROR)


def as_volume(image: np.ndarray) -> np.ndarray:
    """Promote a single 2D slice to a one-slice (z, y, x) volume."""
    image = np.asarray(image)
    if image.ndim == 2:
        return image[np.newaxis, ...]
    return image
