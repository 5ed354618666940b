"""
DICOM Slice Source

This module adapts pydicom datasets to the slice source interface consumed by
the volume builder. Tag values are read once at construction; pixel data is
decoded lazily and cached on first use.

Inputs:
    - pydicom.Dataset objects (one per slice)

Outputs:
    - DatasetSliceSource objects exposing rows, columns, rescale, window,
      pixel spacing, position and raw samples

Requirements:
    - pydicom, numpy
    - core.dicom_pixel_array, core.dicom_rescale, core.dicom_window_level
    - utils.dicom_utils
"""

import threading
from typing import List, Optional, Sequence, Tuple

import numpy as np
from pydicom.dataset import Dataset

from core.dicom_pixel_array import get_pixel_array
from core.dicom_rescale import get_rescale_parameters, infer_rescale_type
from core.dicom_window_level import (
    get_window_level_from_dataset,
    get_window_level_presets_from_dataset,
)
from utils.dicom_utils import (
    get_image_dimensions,
    get_image_position,
    get_pixel_spacing,
    get_slice_location,
)


class DatasetSliceSource:
    """
    One DICOM image presented as a volume builder slice source.

    ``pixel_array()`` and ``pixel_value()`` return raw stored values; the
    builder applies the rescale itself.
    """

    def __init__(self, dataset: Dataset):
        """
        Initialize the slice source.

        Args:
            dataset: pydicom Dataset for a single-frame grayscale image
        """
        self.dataset = dataset
        self.rows, self.columns = get_image_dimensions(dataset)
        slope, intercept, rescale_type = get_rescale_parameters(dataset)
        self.rescale_slope: Optional[float] = slope
        self.rescale_intercept: Optional[float] = intercept
        self.rescale_type: Optional[str] = infer_rescale_type(dataset, slope, intercept, rescale_type)
        self.window_center, self.window_width = get_window_level_from_dataset(dataset)
        self.pixel_spacing: Optional[Tuple[float, float]] = get_pixel_spacing(dataset)
        self.image_position: Optional[Tuple[float, float, float]] = get_image_position(dataset)
        self.slice_location: Optional[float] = get_slice_location(dataset)

        self._pixels: Optional[np.ndarray] = None
        self._pixels_lock = threading.Lock()

    @property
    def window_presets(self) -> List[Tuple[float, float, Optional[str]]]:
        return get_window_level_presets_from_dataset(self.dataset)

    @property
    def source_path(self) -> Optional[str]:
        return getattr(self.dataset, 'filename', None)

    def pixel_array(self) -> Optional[np.ndarray]:
        """Raw (rows, columns) pixel array, or None if it cannot be decoded."""
        with self._pixels_lock:
            if self._pixels is None:
                self._pixels = get_pixel_array(self.dataset)
            return self._pixels

    def pixel_value(self, x: int, y: int) -> Optional[float]:
        """Raw sample at column x, row y."""
        pixels = self.pixel_array()
        if pixels is None:
            return None
        return float(pixels[y, x])

    def release_pixels(self) -> None:
        """Drop the cached pixel array once the volume has been built."""
        with self._pixels_lock:
            self._pixels = None

    def __repr__(self) -> str:
        return (
            f"DatasetSliceSource(path={self.source_path!r}, size={self.rows}x{self.columns}, "
            f"position={self.image_position}, location={self.slice_location})"
        )


def slice_sources_from_datasets(datasets: Sequence[Dataset]) -> List[DatasetSliceSource]:
    """Wrap datasets as slice sources, preserving order."""
    return [DatasetSliceSource(dataset) for dataset in datasets]
