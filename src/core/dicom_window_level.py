"""
DICOM window/level handling.

This module maps float intensity slices to 8-bit grayscale rasters with the
linear VOI LUT window function, converts window/level between raw and
rescaled units, and extracts window center/width and presets from DICOM
datasets.

Inputs:
    - MPRSlice objects or float pixel arrays, window center/width
    - pydicom Dataset for tag extraction

Outputs:
    - Raster (row-major uint8), windowed uint8 arrays
    - (center, width) tuples, preset lists

Requirements:
    - numpy, pydicom
    - core.mpr_volume, core.mpr_errors
"""

from typing import List, Optional, Tuple

import numpy as np
from pydicom.dataset import Dataset

from core.mpr_errors import InvalidSliceError
from core.mpr_volume import MPRSlice, Raster


def apply_window_level(
    pixel_array: np.ndarray,
    window_center: float,
    window_width: float,
) -> np.ndarray:
    """
    Apply the linear window function. Returns uint8 array of the same shape.

    v <= lower -> 0, v >= upper -> 255, otherwise
    round((v - lower) / (upper - lower) * 255) with halves rounded up.
    """
    values = np.asarray(pixel_array, dtype=np.float64)
    window_min = window_center - window_width / 2.0
    window_max = window_center + window_width / 2.0

    output = np.zeros(values.shape, dtype=np.uint8)
    output[values >= window_max] = 255
    # Evaluated after the upper bound so a collapsed window (min == max) never divides
    inside = (values > window_min) & (values < window_max)
    if np.any(inside):
        scaled = (values[inside] - window_min) / (window_max - window_min) * 255.0
        output[inside] = np.clip(np.floor(scaled + 0.5), 0, 255).astype(np.uint8)
    output[values <= window_min] = 0
    return output


def render_slice(slice_: MPRSlice, window_center: float, window_width: float) -> Raster:
    """
    Render a slice to an 8-bit grayscale raster.

    Raises:
        InvalidSliceError: non-positive dimensions or buffer size mismatch
    """
    width, height = slice_.width, slice_.height
    pixel_data = np.asarray(slice_.pixel_data)
    if width <= 0 or height <= 0:
        raise InvalidSliceError(f"Slice dimensions must be positive, got {width}x{height}")
    if pixel_data.size != width * height:
        raise InvalidSliceError(
            f"Slice has {pixel_data.size} pixels, expected {width * height} ({width}x{height})"
        )
    return Raster(
        width=width,
        height=height,
        pixels=apply_window_level(pixel_data.reshape(-1), window_center, window_width),
    )


def convert_window_level_rescaled_to_raw(
    center: float, width: float, slope: float, intercept: float
) -> Tuple[float, float]:
    """Convert window/level from rescaled to raw pixel values. Returns (raw_center, raw_width)."""
    if slope == 0.0:
        return center, width
    return (center - intercept) / slope, width / slope


def convert_window_level_raw_to_rescaled(
    center: float, width: float, slope: float, intercept: float
) -> Tuple[float, float]:
    """Convert window/level from raw to rescaled. Returns (rescaled_center, rescaled_width)."""
    return center * slope + intercept, width * slope


def parse_window_value(value) -> List[float]:
    """Parse a WindowCenter/WindowWidth value that may be single or multi-valued."""
    if value is None:
        return []
    if isinstance(value, str):
        if '\\' in value:
            return [float(p.strip()) for p in value.split('\\') if p.strip()]
        return [float(value)] if value.strip() else []
    try:
        return [float(x) for x in value]
    except TypeError:
        return [float(value)]


def get_window_level_from_dataset(dataset: Dataset) -> Tuple[Optional[float], Optional[float]]:
    """
    Get the first window center and width from DICOM tags.
    Returns (window_center, window_width); either may be None.
    """
    try:
        centers = parse_window_value(getattr(dataset, 'WindowCenter', None))
        widths = parse_window_value(getattr(dataset, 'WindowWidth', None))
        center = centers[0] if centers else None
        width = widths[0] if widths else None
        return center, width
    except (TypeError, ValueError) as e:
        print(f"Error reading window/level tags: {e}")
        return None, None


def get_window_level_presets_from_dataset(dataset: Dataset) -> List[Tuple[float, float, Optional[str]]]:
    """
    Get all window center/width presets from DICOM dataset.
    Returns list of (window_center, window_width, preset_name).
    """
    presets = []
    try:
        window_centers = parse_window_value(getattr(dataset, 'WindowCenter', None))
        window_widths = parse_window_value(getattr(dataset, 'WindowWidth', None))
        explanations = parse_explanations(getattr(dataset, 'WindowCenterWidthExplanation', None))
    except (TypeError, ValueError):
        return []
    num_presets = max(len(window_centers), len(window_widths))
    for i in range(num_presets):
        wc = window_centers[i] if i < len(window_centers) else (window_centers[-1] if window_centers else None)
        ww = window_widths[i] if i < len(window_widths) else (window_widths[-1] if window_widths else None)
        if wc is None or ww is None:
            continue
        if i < len(explanations) and explanations[i]:
            preset_name = explanations[i]
        else:
            preset_name = None if i == 0 else f"Preset {i + 1}"
        presets.append((wc, ww, preset_name))
    return presets


def parse_explanations(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [p.strip() for p in value.split('\\')]
    return [str(p).strip() for p in value]
