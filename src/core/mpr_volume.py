"""
MPR volume data model.

This module defines the immutable 3D volume built from a stack of slices,
the orthogonal planes and projection modes used to cut it, and the 2D
slice and 8-bit raster objects handed to the presentation layer.

Inputs:
    - Flat float intensity buffers and spatial/calibration metadata

Outputs:
    - Volume, MPRSlice and Raster objects
    - MPRPlane and ProjectionMode enumerations

Requirements:
    - numpy for buffer storage
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

import numpy as np


class MPRPlane(Enum):
    """Orthogonal slice plane for multi-planar reconstruction."""

    AXIAL = "axial"
    SAGITTAL = "sagittal"
    CORONAL = "coronal"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


class ProjectionMode(Enum):
    """Reduction applied along the projected axis."""

    MAX = "max"
    MIN = "min"
    AVERAGE = "average"

    @property
    def display_name(self) -> str:
        return _PROJECTION_DISPLAY_NAMES[self]


_PROJECTION_DISPLAY_NAMES = {
    ProjectionMode.MAX: "Maximum Intensity (MIP)",
    ProjectionMode.MIN: "Minimum Intensity (MinIP)",
    ProjectionMode.AVERAGE: "Average Intensity (AIP)",
}


def _readonly_float_buffer(values) -> np.ndarray:
    buffer = np.array(values, dtype=np.float32).reshape(-1)
    buffer.flags.writeable = False
    return buffer


@dataclass(frozen=True, eq=False)
class Volume:
    """
    3D scalar grid built from a stack of 2D slices.

    The buffer is flat and row-major within each slice, with slices stacked
    in ascending spatial order, so voxel (x, y, z) lives at
    ``z * width * height + y * width + x``. The buffer is read-only and the
    object is safe to share between threads.

    Attributes:
        data: Flat float32 intensity buffer (calibrated units, e.g. HU)
        width: Number of columns
        height: Number of rows
        depth: Number of slices
        spacing_x: Column spacing in mm
        spacing_y: Row spacing in mm
        spacing_z: Slice spacing in mm (always > 0)
        origin: Physical (x, y, z) position of the first slice
        rescale_slope: Slope applied to raw samples
        rescale_intercept: Intercept applied to raw samples
        window_center: Default display window center
        window_width: Default display window width
    """
    data: np.ndarray
    width: int
    height: int
    depth: int
    spacing_x: float
    spacing_y: float
    spacing_z: float
    origin: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    rescale_slope: float = 1.0
    rescale_intercept: float = 0.0
    window_center: float = 40.0
    window_width: float = 400.0
    volume_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self):
        object.__setattr__(self, "data", _readonly_float_buffer(self.data))
        if self.width <= 0 or self.height <= 0 or self.depth <= 0:
            raise ValueError(
                f"Volume dimensions must be positive, got {self.width}x{self.height}x{self.depth}"
            )
        if self.data.size != self.width * self.height * self.depth:
            raise ValueError(
                f"Volume buffer has {self.data.size} values, expected "
                f"{self.width * self.height * self.depth}"
            )
        if not self.spacing_z > 0:
            raise ValueError(f"Slice spacing must be positive, got {self.spacing_z}")

    @property
    def voxels(self) -> np.ndarray:
        """Read-only (depth, height, width) view of the buffer."""
        return self.data.reshape(self.depth, self.height, self.width)

    @property
    def voxel_count(self) -> int:
        return self.width * self.height * self.depth

    @property
    def physical_size(self) -> Tuple[float, float, float]:
        """Extent in millimeters along x, y and z."""
        return (
            self.width * self.spacing_x,
            self.height * self.spacing_y,
            self.depth * self.spacing_z,
        )

    def voxel_value(self, x: int, y: int, z: int) -> Optional[float]:
        """Voxel at integer position, or None outside the grid."""
        if not (0 <= x < self.width and 0 <= y < self.height and 0 <= z < self.depth):
            return None
        return float(self.data[z * self.width * self.height + y * self.width + x])


@dataclass(frozen=True, eq=False)
class MPRSlice:
    """
    2D cut or projection taken from a Volume.

    ``pixel_data`` is flat and row-major with ``width * height`` values.
    Pixel spacings are already remapped from the volume's 3D spacing for the
    slice's plane. Construction does not validate the buffer length; the
    renderer does.
    """
    plane: MPRPlane
    index: int
    width: int
    height: int
    pixel_data: np.ndarray
    pixel_spacing_x: float
    pixel_spacing_y: float

    def as_2d(self) -> np.ndarray:
        return np.asarray(self.pixel_data).reshape(self.height, self.width)

    @property
    def physical_size(self) -> Tuple[float, float]:
        return (self.width * self.pixel_spacing_x, self.height * self.pixel_spacing_y)


@dataclass(frozen=True, eq=False)
class Raster:
    """Row-major 8-bit grayscale image, one byte per pixel."""
    width: int
    height: int
    pixels: np.ndarray

    def as_2d(self) -> np.ndarray:
        return self.pixels.reshape(self.height, self.width)

    def pixel(self, x: int, y: int) -> int:
        return int(self.pixels[y * self.width + x])

    def to_bytes(self) -> bytes:
        return self.pixels.astype(np.uint8, copy=False).tobytes()
