"""
Loading of binary micro-CT stacks from image sequences and TIFF files.
"""

import os
import glob
import numpy as np
from PIL import Image
import tifffile as tiff
import logging
from typing import Optional

from .image_check import BINARY_BLACK, BINARY_WHITE

logger = logging.getLogger(__name__)

def load_image_stack(directory: str,
                     file_pattern: str = "*.bmp",
                     exclude_pattern: str = None,
                     sort_by: str = "name") -> np.ndarray:
    """
    Load a stack of 2D image files (BMP, PNG, single-page TIFF) into a 3D volume.

    Args:
        directory: Path to directory containing the slice files
        file_pattern: Glob pattern for file matching
        exclude_pattern: Glob pattern for files to exclude
        sort_by: Sorting method ('name', 'number', 'date')

    Returns:
        3D numpy array with shape (depth, height, width)

    Raises:
        FileNotFoundError: If no files match
        ValueError: If images have inconsistent dimensions
    """
    pattern = os.path.join(directory, file_pattern)
    file_list = glob.glob(pattern)

    if exclude_pattern:
        full_exclude_pattern = os.path.join(directory, exclude_pattern)
        excluded_files = set(glob.glob(full_exclude_pattern))
        logger.info(f"Excluding files: {excluded_files}")
        file_list = [f for f in file_list if f not in excluded_files]

    if not file_list:
        raise FileNotFoundError(f"No files matching {file_pattern} found in {directory}")

    if sort_by == "name":
        file_list.sort()
    elif sort_by == "number":
        # Natural sort on the digits of the file name
        file_list.sort(key=lambda x: int(''.join(filter(str.isdigit, os.path.basename(x))) or 0))
    elif sort_by == "date":
        file_list.sort(key=lambda x: os.path.getmtime(x))
    else:
        raise ValueError(f"Unknown sort method: {sort_by}")

    logger.info(f"Loading {len(file_list)} slices from {directory}")

    first_img = np.array(Image.open(file_list[0]).convert('L'))
    height, width = first_img.shape

    volume = np.zeros((len(file_list), height, width), dtype=np.uint8)

    for i, file_path in enumerate(file_list):
        img_array = np.array(Image.open(file_path).convert('L'))
        if img_array.shape != (height, width):
            raise ValueError(f"Image {file_path} has inconsistent dimensions: "
                             f"expected {(height, width)}, got {img_array.shape}")
        volume[i] = img_array

    logger.info(f"Volume loaded successfully: {volume.shape}")
    return volume

def load_tiff_stack(path: str) -> np.ndarray:
    """
    Load a multi-page TIFF file as a (depth, height, width) volume.

    Args:
        path: Path to the TIFF file

    Returns:
        3D numpy array
    """
    if not os.path.isfile(path):
        raise FileNotFoundError(f"No such TIFF file: {path}")
    volume = tiff.imread(path)
    if volume.ndim == 2:
        volume = volume[np.newaxis, ...]
    logger.info(f"Loaded TIFF stack {path}: {volume.shape} {volume.dtype}")
    return volume

def load_volume(path: str, **kwargs) -> np.ndarray:
    """Load a directory of slices or a TIFF file, whichever path points to."""
    if os.path.isdir(path):
        return load_image_stack(path, **kwargs)
    return load_tiff_stack(path)

def save_tiff_stack(volume: np.ndarray, path: str, spacing: Optional[tuple] = None,
                    unit: str = "pixel") -> None:
    """
    Write a volume as an ImageJ-compatible TIFF stack.

    Args:
        volume: 3D array (depth, height, width)
        path: Output path
        spacing: Optional (z, y, x) voxel size written to the ImageJ metadata
        unit: Unit of the voxel size
    """
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    kwargs = {}
    if spacing is not None:
        kwargs['resolution'] = (1.0 / spacing[2], 1.0 / spacing[1])
        kwargs['metadata'] = {'spacing': spacing[0], 'unit': unit}
    if volume.dtype == np.float64:
        volume = volume.astype(np.float32)
    tiff.imwrite(path, volume, imagej=True, **kwargs)
    logger.info(f"Saved volume to {path}")

def get_volume_info(volume: np.ndarray) -> dict:
    """
    Get information about the loaded volume.

    Args:
        volume: 3D numpy array

    Returns:
        Dictionary with volume information
    """
    return {
        'shape': volume.shape,
        'dtype': volume.dtype,
        'min_value': volume.min(),
        'max_value': volume.max(),
        'foreground_voxels': int(np.count_nonzero(volume)),
        'foreground_fraction': float(np.count_nonzero(volume)) / volume.size
    }

def binarize(volume: np.ndarray, threshold: Optional[float] = None) -> np.ndarray:
    """
    Convert a volume to a 0/255 binary image.

    Args:
        volume: Volume to convert
        threshold: Voxels strictly above this value become foreground.
                   Otsu's threshold is used when None.

    Returns:
        uint8 volume containing only 0 and 255
    """
    if threshold is None:
        from skimage.filters import threshold_otsu
        threshold = threshold_otsu(volume)
        logger.info(f"Otsu threshold: {threshold}")
    binary = np.where(volume > threshold, BINARY_WHITE, BINARY_BLACK)
    return binary.astype(np.uint8)
