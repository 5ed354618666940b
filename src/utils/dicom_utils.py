"""
DICOM Utility Functions

This module provides helper functions for the spatial DICOM tags the volume
builder needs:
- Image matrix size (Rows/Columns)
- Pixel spacing
- Image position and slice location

Inputs:
    - pydicom.Dataset objects

Outputs:
    - Parsed tag values, or None when the tag is missing or malformed

Requirements:
    - pydicom library
"""

from typing import Optional, Tuple
from pydicom.dataset import Dataset


def get_image_dimensions(dataset: Dataset) -> Tuple[Optional[int], Optional[int]]:
    """
    Get matrix size from DICOM dataset.

    Returns:
        Tuple of (rows, columns); an entry is None if missing or not positive
    """
    rows = columns = None
    try:
        if hasattr(dataset, 'Rows'):
            rows = int(dataset.Rows)
        if hasattr(dataset, 'Columns'):
            columns = int(dataset.Columns)
    except (TypeError, ValueError):
        return None, None
    if rows is not None and rows <= 0:
        rows = None
    if columns is not None and columns <= 0:
        columns = None
    return rows, columns


def _spacing_pair(value) -> Optional[Tuple[float, float]]:
    try:
        if value and len(value) >= 2:
            row_spacing = float(value[0])
            col_spacing = float(value[1])
            if row_spacing > 0 and col_spacing > 0:
                return (row_spacing, col_spacing)
    except (TypeError, ValueError):
        pass
    return None


def get_pixel_spacing(dataset: Dataset) -> Optional[Tuple[float, float]]:
    """
    Get pixel spacing from DICOM dataset.
    Checks sources in priority order:
    1. Pixel Spacing (0028,0030)
    2. Imager Pixel Spacing (0018,1164)

    Returns:
        Tuple of (row_spacing, column_spacing) in mm, or None if not available
    """
    for keyword in ('PixelSpacing', 'ImagerPixelSpacing'):
        spacing = _spacing_pair(getattr(dataset, keyword, None))
        if spacing is not None:
            return spacing
    return None


def get_image_position(dataset: Dataset) -> Optional[Tuple[float, float, float]]:
    """
    Get ImagePositionPatient (0020,0032) from DICOM dataset.

    Returns:
        (X, Y, Z) coordinates in mm, or None if not available
    """
    try:
        pos = getattr(dataset, 'ImagePositionPatient', None)
        if pos and len(pos) >= 3:
            return (float(pos[0]), float(pos[1]), float(pos[2]))
    except (TypeError, ValueError):
        pass
    return None


def get_slice_location(dataset: Dataset) -> Optional[float]:
    """Get SliceLocation (0020,1041), or None if not available."""
    try:
        value = getattr(dataset, 'SliceLocation', None)
        if value is not None and value != "":
            return float(value)
    except (TypeError, ValueError):
        pass
    return None
