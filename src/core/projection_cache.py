"""
Projection Cache

This module memoizes intensity projections so interactive callers can flip
between planes and modes without rescanning the volume. Entries are keyed by
volume identity, plane, mode and effective slab thickness, so a slab of 0,
None or anything past the extent share one entry.

Inputs:
    - Volume, MPRPlane, ProjectionMode, slab thickness, optional cancel event

Outputs:
    - Cached or freshly computed MPRSlice

Requirements:
    - threading for thread-safe caching
    - core.dicom_projections
"""

import threading
from typing import Dict, Optional, Tuple

from core.dicom_projections import effective_slab_thickness, project
from core.mpr_volume import MPRPlane, MPRSlice, ProjectionMode, Volume
from core.slice_extractor import plane_geometry

CacheKey = Tuple[str, MPRPlane, ProjectionMode, int]


class ProjectionCache:
    """
    Thread-safe cache of projection results.

    Two threads missing the same key at once both compute it; the later
    store wins. Cached slices are shared, so callers must not modify them.
    """

    def __init__(self, max_entries: int = 32):
        """
        Initialize the cache.

        Args:
            max_entries: Oldest entries are evicted beyond this count
        """
        self.max_entries = max_entries
        self._cache: Dict[CacheKey, MPRSlice] = {}
        self._cache_lock = threading.Lock()

    def _key(self, volume: Volume, plane: MPRPlane, mode: ProjectionMode,
             slab_thickness: Optional[int]) -> CacheKey:
        extent = plane_geometry(volume, plane).extent
        return (volume.volume_id, plane, mode, effective_slab_thickness(extent, slab_thickness))

    def get(self, volume: Volume, plane: MPRPlane, mode: ProjectionMode,
            slab_thickness: Optional[int] = None) -> Optional[MPRSlice]:
        key = self._key(volume, plane, mode, slab_thickness)
        with self._cache_lock:
            return self._cache.get(key)

    def get_or_compute(
        self,
        volume: Volume,
        plane: MPRPlane,
        mode: ProjectionMode,
        slab_thickness: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> MPRSlice:
        """
        Return the cached projection, computing and storing it on a miss.

        Raises:
            ProjectionCancelled: cancel_event was set during computation
        """
        key = self._key(volume, plane, mode, slab_thickness)
        with self._cache_lock:
            cached = self._cache.get(key)
        if cached is not None:
            return cached

        result = project(volume, plane, mode, slab_thickness, cancel_event=cancel_event)
        with self._cache_lock:
            self._cache[key] = result
            while len(self._cache) > self.max_entries:
                # dicts keep insertion order: drop the oldest entry
                del self._cache[next(iter(self._cache))]
        return result

    def clear(self, volume_id: Optional[str] = None) -> None:
        """
        Clear cached projections.

        Args:
            volume_id: If provided, clear only entries for this volume.
                       If None, clear entire cache.
        """
        with self._cache_lock:
            if volume_id is None:
                self._cache.clear()
            else:
                keys_to_remove = [key for key in self._cache if key[0] == volume_id]
                for key in keys_to_remove:
                    del self._cache[key]

    def __len__(self) -> int:
        with self._cache_lock:
            return len(self._cache)
