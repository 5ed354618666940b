"""
Volume Builder

This module constructs an immutable Volume from an ordered set of 2D slice
sources. Slices are sorted by their spatial z-coordinate, validated for
consistent dimensions, decoded, rescaled to calibrated units and stacked.

Inputs:
    - Sequence of slice sources (see SliceSource)
    - Optional cancellation event and progress callback

Outputs:
    - Volume
    - VolumeBuildError subclasses on failure (no partial volumes)

Requirements:
    - numpy for buffer allocation
    - core.mpr_volume, core.mpr_errors
    - utils.debug_log for optional diagnostics
"""

import threading
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

import numpy as np

from core.mpr_errors import (
    InconsistentDimensionsError,
    InsufficientSlicesError,
    MissingDimensionsError,
    MissingPixelDataError,
    VolumeBuildCancelled,
)
from core.mpr_volume import Volume
from utils.debug_log import debug_log

# Slice spacing never drops below this, even when all slices share one position
MIN_SLICE_SPACING = 0.001


@runtime_checkable
class SliceSource(Protocol):
    """
    One 2D slice as supplied by the import layer.

    Any attribute may be None when the underlying file does not carry it.
    ``pixel_value`` returns the raw (unrescaled) sample at column x, row y.
    Sources may additionally provide ``pixel_array()`` returning the whole
    (rows, columns) raw array, which the builder prefers when present.
    """
    rows: Optional[int]
    columns: Optional[int]
    rescale_slope: Optional[float]
    rescale_intercept: Optional[float]
    window_center: Optional[float]
    window_width: Optional[float]
    pixel_spacing: Optional[Tuple[float, float]]
    image_position: Optional[Tuple[float, float, float]]
    slice_location: Optional[float]

    def pixel_value(self, x: int, y: int) -> float:
        ...


@dataclass(frozen=True)
class BuildDefaults:
    """Fallbacks used when the first slice lacks calibration or spacing tags."""
    rescale_slope: float = 1.0
    rescale_intercept: float = 0.0
    window_center: float = 40.0
    window_width: float = 400.0
    pixel_spacing: Tuple[float, float] = (1.0, 1.0)
    min_slice_spacing: float = MIN_SLICE_SPACING


def _coordinate(value) -> Optional[float]:
    """Parse one coordinate; None when missing or not numeric."""
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def slice_z_position(source: SliceSource) -> float:
    """
    Resolve the z-coordinate used to order a slice.

    Priority:
    1. z component of the 3D image position (skipped when missing or not numeric)
    2. Scalar slice location
    3. 0.0
    """
    position = getattr(source, "image_position", None)
    if position is not None and len(position) >= 3:
        z = _coordinate(position[2])
        if z is not None:
            return z
    location = _coordinate(getattr(source, "slice_location", None))
    if location is not None:
        return location
    return 0.0


def sort_sources_by_position(sources: Sequence[SliceSource]) -> List[SliceSource]:
    """Stable ascending sort by slice_z_position."""
    return sorted(sources, key=slice_z_position)


def _validate_dimensions(sorted_sources: Sequence[SliceSource]) -> Tuple[int, int]:
    for source in sorted_sources:
        rows = getattr(source, "rows", None)
        columns = getattr(source, "columns", None)
        if not rows or not columns or rows <= 0 or columns <= 0:
            raise MissingDimensionsError()

    first_rows = int(sorted_sources[0].rows)
    first_columns = int(sorted_sources[0].columns)
    for index, source in enumerate(sorted_sources):
        if int(source.rows) != first_rows or int(source.columns) != first_columns:
            raise InconsistentDimensionsError(
                f"All slices must have the same image dimensions: slice {index} is "
                f"{source.rows}x{source.columns}, expected {first_rows}x{first_columns}"
            )
    return first_rows, first_columns


def decode_raw_samples(source: SliceSource, rows: int, columns: int) -> np.ndarray:
    """
    Read the raw samples of one slice as a (rows, columns) float64 array.

    Raises:
        MissingPixelDataError: decoding failed or produced the wrong shape
    """
    bulk_reader = getattr(source, "pixel_array", None)
    try:
        if callable(bulk_reader):
            raw = bulk_reader()
            if raw is None:
                raise MissingPixelDataError()
            raw = np.asarray(raw, dtype=np.float64)
        else:
            raw = np.empty((rows, columns), dtype=np.float64)
            for y in range(rows):
                for x in range(columns):
                    value = source.pixel_value(x, y)
                    if value is None:
                        raise MissingPixelDataError()
                    raw[y, x] = value
    except MissingPixelDataError:
        raise
    except Exception as e:
        raise MissingPixelDataError(f"Unable to extract pixel data from slice: {e}") from e

    if raw.shape != (rows, columns):
        raise MissingPixelDataError(
            f"Decoded pixel data has shape {raw.shape}, expected {(rows, columns)}"
        )
    return raw


def _first_or_default(value, default):
    return default if value is None else float(value)


def build_volume(
    sources: Sequence[SliceSource],
    cancel_event: Optional[threading.Event] = None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
    defaults: Optional[BuildDefaults] = None,
) -> Volume:
    """
    Build a Volume from slice sources.

    Rescale parameters, default window and pixel spacing are captured from the
    first slice (after sorting) and applied to the whole volume.

    Args:
        sources: Slice sources in any order
        cancel_event: When set, the build stops before the next slice
        progress_callback: Called as (decoded_slices, total_slices)
        defaults: Fallback values for tags missing from the first slice

    Returns:
        Volume

    Raises:
        InsufficientSlicesError: fewer than 2 slices
        MissingDimensionsError: a slice lacks rows/columns
        InconsistentDimensionsError: slices differ in rows/columns
        MissingPixelDataError: a slice could not be decoded
        VolumeBuildCancelled: cancel_event was set
    """
    defaults = defaults or BuildDefaults()
    if len(sources) < 2:
        raise InsufficientSlicesError()

    sorted_sources = sort_sources_by_position(sources)
    rows, columns = _validate_dimensions(sorted_sources)

    first = sorted_sources[0]
    rescale_slope = _first_or_default(first.rescale_slope, defaults.rescale_slope)
    rescale_intercept = _first_or_default(first.rescale_intercept, defaults.rescale_intercept)
    window_center = _first_or_default(first.window_center, defaults.window_center)
    window_width = _first_or_default(first.window_width, defaults.window_width)
    pixel_spacing = first.pixel_spacing or defaults.pixel_spacing
    spacing_row, spacing_column = float(pixel_spacing[0]), float(pixel_spacing[1])

    slice_count = len(sorted_sources)
    slice_size = rows * columns
    volume_data = np.empty(slice_size * slice_count, dtype=np.float32)

    for slice_index, source in enumerate(sorted_sources):
        if cancel_event is not None and cancel_event.is_set():
            raise VolumeBuildCancelled()
        raw = decode_raw_samples(source, rows, columns)
        offset = slice_index * slice_size
        volume_data[offset:offset + slice_size] = (raw * rescale_slope + rescale_intercept).reshape(-1)
        if progress_callback:
            progress_callback(slice_index + 1, slice_count)

    first_z = slice_z_position(first)
    last_z = slice_z_position(sorted_sources[-1])
    spacing_z = max(abs(last_z - first_z) / (slice_count - 1), defaults.min_slice_spacing)

    position = first.image_position
    if position is not None and len(position) >= 3:
        origin = (_coordinate(position[0]) or 0.0, _coordinate(position[1]) or 0.0, first_z)
    else:
        origin = (0.0, 0.0, first_z)

    debug_log(
        "volume_builder.py:build_volume",
        "Volume built",
        {
            "dimensions": [columns, rows, slice_count],
            "spacing": [spacing_column, spacing_row, spacing_z],
            "rescale": [rescale_slope, rescale_intercept],
        },
    )

    return Volume(
        data=volume_data,
        width=columns,
        height=rows,
        depth=slice_count,
        spacing_x=spacing_column,
        spacing_y=spacing_row,
        spacing_z=spacing_z,
        origin=origin,
        rescale_slope=rescale_slope,
        rescale_intercept=rescale_intercept,
        window_center=window_center,
        window_width=window_width,
    )
