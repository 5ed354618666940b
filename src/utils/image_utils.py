"""
Image Utility Functions

This module converts rendered rasters to Pillow images, corrects their aspect
ratio from physical pixel spacing, and writes them to disk.

Inputs:
    - Raster objects and pixel spacings
    - Output file paths

Outputs:
    - PIL Image objects
    - PNG files

Requirements:
    - PIL/Pillow for image handling
    - numpy for array operations
"""

from pathlib import Path
from typing import Optional, Union

import numpy as np
from PIL import Image

from core.mpr_volume import Raster


def raster_to_image(raster: Raster) -> Image.Image:
    """
    Convert an 8-bit grayscale raster to a PIL Image (mode 'L').

    Args:
        raster: Rendered raster

    Returns:
        PIL Image of size (raster.width, raster.height)
    """
    array = np.ascontiguousarray(raster.as_2d(), dtype=np.uint8)
    return Image.fromarray(array).convert('L')


def physical_display_size(width: int, height: int,
                          pixel_spacing_x: float, pixel_spacing_y: float) -> tuple:
    """
    Size at which a slice shows square physical pixels.

    The smaller spacing keeps one screen pixel per sample; the other axis is
    stretched by the spacing ratio.

    Returns:
        (display_width, display_height)
    """
    if pixel_spacing_x <= 0 or pixel_spacing_y <= 0:
        return (width, height)
    unit = min(pixel_spacing_x, pixel_spacing_y)
    return (
        max(1, int(round(width * pixel_spacing_x / unit))),
        max(1, int(round(height * pixel_spacing_y / unit))),
    )


def resize_to_physical_aspect(image: Image.Image, pixel_spacing_x: float,
                              pixel_spacing_y: float) -> Image.Image:
    """Resize image so each screen pixel covers the same distance on both axes."""
    size = physical_display_size(image.width, image.height, pixel_spacing_x, pixel_spacing_y)
    if size == (image.width, image.height):
        return image
    return image.resize(size, Image.Resampling.LANCZOS)


def save_raster_png(raster: Raster, output_path: Union[str, Path],
                    pixel_spacing_x: Optional[float] = None,
                    pixel_spacing_y: Optional[float] = None) -> Path:
    """
    Save a raster as PNG, optionally corrected to physical aspect ratio.

    Args:
        raster: Rendered raster
        output_path: Destination file
        pixel_spacing_x: Column spacing in mm (aspect correction when both given)
        pixel_spacing_y: Row spacing in mm

    Returns:
        Path written
    """
    image = raster_to_image(raster)
    if pixel_spacing_x is not None and pixel_spacing_y is not None:
        image = resize_to_physical_aspect(image, pixel_spacing_x, pixel_spacing_y)
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    image.save(path, format='PNG')
    return path
