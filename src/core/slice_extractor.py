"""
Slice Extractor

This module reads axis-aligned 2D cross-sections (axial, sagittal, coronal)
out of a Volume and defines the per-plane geometry shared with the
intensity projection code.

Out-of-range indices return None rather than raising: callers scrub indices
with interactive controls that transiently step past the ends.

Inputs:
    - Volume, MPRPlane, slice index

Outputs:
    - MPRSlice or None
    - Maximum valid index per plane

Requirements:
    - numpy for strided reads
    - core.mpr_volume
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional

import numpy as np

from core.mpr_volume import MPRPlane, MPRSlice, Volume


@dataclass(frozen=True)
class PlaneGeometry:
    """
    Output shape and spacing of a cut through a volume.

    ``fixed_axis`` is the numpy axis of ``Volume.voxels`` (depth, height, width)
    held constant by the cut, which is also the axis a projection reduces.
    """
    fixed_axis: int
    width: int
    height: int
    pixel_spacing_x: float
    pixel_spacing_y: float
    extent: int


_GEOMETRY: Dict[MPRPlane, Callable[[Volume], PlaneGeometry]] = {
    MPRPlane.AXIAL: lambda v: PlaneGeometry(0, v.width, v.height, v.spacing_x, v.spacing_y, v.depth),
    MPRPlane.SAGITTAL: lambda v: PlaneGeometry(2, v.depth, v.height, v.spacing_z, v.spacing_y, v.width),
    MPRPlane.CORONAL: lambda v: PlaneGeometry(1, v.width, v.depth, v.spacing_x, v.spacing_z, v.height),
}

if set(_GEOMETRY) != set(MPRPlane):
    raise RuntimeError("Plane geometry table does not cover every MPRPlane")


def plane_geometry(volume: Volume, plane: MPRPlane) -> PlaneGeometry:
    return _GEOMETRY[plane](volume)


def max_slice_index(volume: Volume, plane: MPRPlane) -> int:
    """Axial: depth-1, sagittal: width-1, coronal: height-1."""
    return plane_geometry(volume, plane).extent - 1


def orient_plane_array(plane: MPRPlane, cut: np.ndarray) -> np.ndarray:
    """
    Arrange a 2D cut of ``Volume.voxels`` as (output rows, output columns).

    Axial cuts are (y, x) and coronal cuts (z, x) already. Sagittal cuts come
    out of numpy as (z, y) and are transposed so columns run along z.
    """
    if plane is MPRPlane.SAGITTAL:
        return cut.T
    return cut


def _make_slice(volume: Volume, plane: MPRPlane, index: int, pixels: np.ndarray) -> MPRSlice:
    geometry = plane_geometry(volume, plane)
    return MPRSlice(
        plane=plane,
        index=index,
        width=geometry.width,
        height=geometry.height,
        # Copied out of the read-only volume view
        pixel_data=np.array(pixels, dtype=np.float32).reshape(-1),
        pixel_spacing_x=geometry.pixel_spacing_x,
        pixel_spacing_y=geometry.pixel_spacing_y,
    )


def extract_axial_slice(volume: Volume, index: int) -> Optional[MPRSlice]:
    """Axial slice at z = index (width x height)."""
    if not 0 <= index < volume.depth:
        return None
    return _make_slice(volume, MPRPlane.AXIAL, index, volume.voxels[index, :, :])


def extract_sagittal_slice(volume: Volume, index: int) -> Optional[MPRSlice]:
    """Sagittal slice at x = index (depth x height)."""
    if not 0 <= index < volume.width:
        return None
    cut = orient_plane_array(MPRPlane.SAGITTAL, volume.voxels[:, :, index])
    return _make_slice(volume, MPRPlane.SAGITTAL, index, cut)


def extract_coronal_slice(volume: Volume, index: int) -> Optional[MPRSlice]:
    """Coronal slice at y = index (width x depth)."""
    if not 0 <= index < volume.height:
        return None
    return _make_slice(volume, MPRPlane.CORONAL, index, volume.voxels[:, index, :])


_EXTRACTORS: Dict[MPRPlane, Callable[[Volume, int], Optional[MPRSlice]]] = {
    MPRPlane.AXIAL: extract_axial_slice,
    MPRPlane.SAGITTAL: extract_sagittal_slice,
    MPRPlane.CORONAL: extract_coronal_slice,
}


def extract_slice(volume: Volume, plane: MPRPlane, index: int) -> Optional[MPRSlice]:
    """
    Extract a slice for any plane.

    Args:
        volume: Source volume
        plane: Cutting plane
        index: Position along the plane's fixed axis

    Returns:
        MPRSlice, or None if index is outside [0, max_slice_index]
    """
    return _EXTRACTORS[plane](volume, index)
