"""
Intensity projections (AIP, MIP, MinIP).

This module creates average, maximum, and minimum intensity projections of a
Volume along any of the three orthogonal axes. The slab always starts at
voxel 0 along the projected axis and covers ``slab_thickness`` voxels (the
full extent when omitted). The output slice has the geometry of the
orthogonal cut perpendicular to the projected axis.

Scans are processed one output row at a time; an optional cancellation event
is checked between rows so interactive callers can abandon stale requests.

Inputs:
    - Volume, MPRPlane, ProjectionMode, optional slab thickness
    - Optional threading.Event for cancellation

Outputs:
    - MPRSlice (float32 pixel data, index 0)

Requirements:
    - numpy
    - core.mpr_volume, core.slice_extractor (plane geometry)
"""

import threading
from typing import Optional

import numpy as np

from core.mpr_errors import ProjectionCancelled
from core.mpr_volume import MPRPlane, MPRSlice, ProjectionMode, Volume
from core.slice_extractor import plane_geometry


def effective_slab_thickness(extent: int, slab_thickness: Optional[int]) -> int:
    """Number of voxels scanned: full extent for None or values below 1."""
    if slab_thickness is None or slab_thickness < 1:
        return extent
    return min(int(slab_thickness), extent)


def _row_block(voxels: np.ndarray, plane: MPRPlane, row: int, slab_end: int) -> np.ndarray:
    """Voxels feeding one output row, shaped (slab voxels, output width)."""
    if plane is MPRPlane.AXIAL:
        return voxels[:slab_end, row, :]
    if plane is MPRPlane.SAGITTAL:
        return voxels[:, row, :slab_end].T
    return voxels[row, :slab_end, :]


def _reduce(block: np.ndarray, mode: ProjectionMode) -> np.ndarray:
    if mode is ProjectionMode.MAX:
        return np.max(block, axis=0)
    if mode is ProjectionMode.MIN:
        return np.min(block, axis=0)
    return np.sum(block, axis=0, dtype=np.float64) / block.shape[0]


def project(
    volume: Volume,
    plane: MPRPlane,
    mode: ProjectionMode,
    slab_thickness: Optional[int] = None,
    cancel_event: Optional[threading.Event] = None,
) -> MPRSlice:
    """
    Compute an intensity projection through a slab of the volume.

    Args:
        volume: Source volume
        plane: Plane whose perpendicular axis is projected
               (axial projects along z, sagittal along x, coronal along y)
        mode: MAX, MIN or AVERAGE
        slab_thickness: Voxels along the projected axis, starting at 0
        cancel_event: Checked between output rows

    Returns:
        MPRSlice with index 0

    Raises:
        ProjectionCancelled: cancel_event was set during the scan
    """
    geometry = plane_geometry(volume, plane)
    slab_end = effective_slab_thickness(geometry.extent, slab_thickness)
    voxels = volume.voxels
    pixel_data = np.empty((geometry.height, geometry.width), dtype=np.float32)

    for row in range(geometry.height):
        if cancel_event is not None and cancel_event.is_set():
            raise ProjectionCancelled()
        pixel_data[row, :] = _reduce(_row_block(voxels, plane, row, slab_end), mode)

    return MPRSlice(
        plane=plane,
        index=0,
        width=geometry.width,
        height=geometry.height,
        pixel_data=pixel_data.reshape(-1),
        pixel_spacing_x=geometry.pixel_spacing_x,
        pixel_spacing_y=geometry.pixel_spacing_y,
    )


def average_intensity_projection(
    volume: Volume, plane: MPRPlane, slab_thickness: Optional[int] = None
) -> MPRSlice:
    """Create Average Intensity Projection along the plane's axis."""
    return project(volume, plane, ProjectionMode.AVERAGE, slab_thickness)


def maximum_intensity_projection(
    volume: Volume, plane: MPRPlane, slab_thickness: Optional[int] = None
) -> MPRSlice:
    """Create Maximum Intensity Projection along the plane's axis."""
    return project(volume, plane, ProjectionMode.MAX, slab_thickness)


def minimum_intensity_projection(
    volume: Volume, plane: MPRPlane, slab_thickness: Optional[int] = None
) -> MPRSlice:
    """Create Minimum Intensity Projection along the plane's axis."""
    return project(volume, plane, ProjectionMode.MIN, slab_thickness)
