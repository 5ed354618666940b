"""
MPR Controller

This module coordinates multi-planar reconstruction for a presentation layer:
it builds the volume in the background, tracks the current index of each
plane, the window/level and the projection settings, and produces rendered
rasters on request.

State machine:
    UNINITIALIZED -> LOADING -> BUILT | FAILED
    BUILT -> LOADING when another stack is loaded

Projection requests carry a per-plane generation number. A newer request for
the same plane cancels the in-flight scan, and a result whose generation has
been superseded is discarded.

Inputs:
    - Slice sources (or a prebuilt Volume)
    - Index, window/level and projection changes

Outputs:
    - Rendered rasters per plane
    - Normalized reference line positions

Requirements:
    - concurrent.futures for background build and parallel rendering
    - core engine modules, utils.config_manager, utils.debug_log
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum
from typing import Callable, Dict, Optional, Sequence, Tuple

from core.dicom_window_level import render_slice
from core.mpr_errors import MPREngineError, ProjectionCancelled, VolumeBuildCancelled
from core.mpr_volume import MPRPlane, MPRSlice, ProjectionMode, Raster, Volume
from core.projection_cache import ProjectionCache
from core.slice_extractor import extract_slice, max_slice_index
from core.volume_builder import BuildDefaults, SliceSource, build_volume
from utils.config_manager import ConfigManager
from utils.debug_log import debug_log


class ControllerState(Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    BUILT = "built"
    FAILED = "failed"


# For each view: (plane whose index runs along the view's rows, plane whose index runs along its columns)
_REFERENCE_PLANES: Dict[MPRPlane, Tuple[MPRPlane, MPRPlane]] = {
    MPRPlane.AXIAL: (MPRPlane.CORONAL, MPRPlane.SAGITTAL),
    MPRPlane.SAGITTAL: (MPRPlane.CORONAL, MPRPlane.AXIAL),
    MPRPlane.CORONAL: (MPRPlane.AXIAL, MPRPlane.SAGITTAL),
}


def build_defaults_from_config(config: ConfigManager) -> BuildDefaults:
    """Volume builder fallbacks taken from configuration."""
    slope, intercept = config.get_default_rescale()
    center, width = config.get_default_window()
    return BuildDefaults(
        rescale_slope=slope,
        rescale_intercept=intercept,
        window_center=center,
        window_width=width,
        pixel_spacing=config.get_default_pixel_spacing(),
        min_slice_spacing=config.get_min_slice_spacing(),
    )


class MPRController:
    """
    Orchestrates volume loading and per-plane rendering.

    Handles:
    - Background volume build with cancellation of superseded loads
    - Index clamping and reset to the volume center
    - Window/level and named presets
    - Cached, cancellable intensity projections
    - Concurrent rendering of the three planes
    """

    def __init__(
        self,
        config: Optional[ConfigManager] = None,
        projection_cache: Optional[ProjectionCache] = None,
        on_volume_loaded: Optional[Callable[[Volume], None]] = None,
        on_load_failed: Optional[Callable[[str], None]] = None,
    ):
        """
        Initialize the controller.

        Args:
            config: Configuration manager (a default one is created if None)
            projection_cache: Shared projection cache (a private one is created if None)
            on_volume_loaded: Called from the build thread after a volume is installed
            on_load_failed: Called from the build thread with the error message
        """
        self.config = config if config is not None else ConfigManager()
        self.projection_cache = projection_cache if projection_cache is not None else ProjectionCache()
        self.on_volume_loaded = on_volume_loaded
        self.on_load_failed = on_load_failed

        self._lock = threading.RLock()
        self._build_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="mpr-build")
        self._render_executor = ThreadPoolExecutor(max_workers=len(MPRPlane), thread_name_prefix="mpr-render")

        self.state = ControllerState.UNINITIALIZED
        self.volume: Optional[Volume] = None
        self.error_message: Optional[str] = None

        self.indices: Dict[MPRPlane, int] = {plane: 0 for plane in MPRPlane}
        self.window_center, self.window_width = self.config.get_default_window()
        self.projection_mode: Optional[ProjectionMode] = None
        self.slab_thickness: Optional[int] = self.config.get_default_slab_thickness()

        self._load_generation = 0
        self._build_cancel: Optional[threading.Event] = None
        self._generations: Dict[MPRPlane, int] = {plane: 0 for plane in MPRPlane}
        self._inflight: Dict[MPRPlane, threading.Event] = {}

    # Loading

    def load_sources(self, sources: Sequence[SliceSource]) -> "Future[Volume]":
        """
        Build a volume from slice sources on the background build thread.

        A load already in progress is cancelled. The returned future resolves
        after the controller state has been updated, so ``future.result()``
        can be followed directly by rendering calls.
        """
        with self._lock:
            if self._build_cancel is not None:
                self._build_cancel.set()
            cancel_event = threading.Event()
            self._build_cancel = cancel_event
            self._load_generation += 1
            generation = self._load_generation
            self.state = ControllerState.LOADING
            self.error_message = None
        defaults = build_defaults_from_config(self.config)
        return self._build_executor.submit(self._build_task, list(sources), cancel_event, generation, defaults)

    def _build_task(self, sources, cancel_event: threading.Event, generation: int,
                    defaults: BuildDefaults) -> Volume:
        try:
            volume = build_volume(sources, cancel_event=cancel_event, defaults=defaults)
        except VolumeBuildCancelled:
            with self._lock:
                if generation == self._load_generation:
                    self.state = ControllerState.BUILT if self.volume is not None else ControllerState.UNINITIALIZED
            raise
        except MPREngineError as e:
            self._report_build_failure(f"Failed to build volume: {e}", generation)
            raise
        except Exception as e:
            self._report_build_failure(f"Failed to build volume: {type(e).__name__}: {e}", generation)
            raise

        with self._lock:
            if generation != self._load_generation:
                # A newer load superseded this one while it was finishing
                raise VolumeBuildCancelled()
            self._install_volume(volume)
        if self.on_volume_loaded:
            self.on_volume_loaded(volume)
        return volume

    def _report_build_failure(self, message: str, generation: int) -> None:
        with self._lock:
            if generation != self._load_generation:
                return
            self.state = ControllerState.FAILED
            self.error_message = message
        print(message)
        if self.on_load_failed:
            self.on_load_failed(message)

    def cancel_load(self) -> None:
        """Cancel the load in progress, if any."""
        with self._lock:
            if self._build_cancel is not None:
                self._build_cancel.set()

    def load_volume(self, volume: Volume) -> None:
        """Install an already built volume."""
        with self._lock:
            if self._build_cancel is not None:
                self._build_cancel.set()
            self._load_generation += 1
            self._install_volume(volume)

    def _install_volume(self, volume: Volume) -> None:
        previous = self.volume
        self.volume = volume
        self.state = ControllerState.BUILT
        self.error_message = None
        self.window_center = volume.window_center
        self.window_width = volume.window_width
        self._cancel_inflight_projections()
        if previous is not None:
            self.projection_cache.clear(previous.volume_id)
        self.reset_to_center()
        debug_log(
            "mpr_controller.py:_install_volume",
            "Volume installed",
            {"volume_id": volume.volume_id, "size": [volume.width, volume.height, volume.depth]},
        )

    def shutdown(self) -> None:
        """Cancel pending work and stop worker threads."""
        self.cancel_load()
        with self._lock:
            self._cancel_inflight_projections()
        self._build_executor.shutdown(wait=True)
        self._render_executor.shutdown(wait=True)

    # Indices

    def max_index(self, plane: MPRPlane) -> int:
        with self._lock:
            if self.volume is None:
                return 0
            return max_slice_index(self.volume, plane)

    def set_index(self, plane: MPRPlane, value: int) -> int:
        """Set a plane's index, clamped to [0, max_index]. Returns the stored value."""
        with self._lock:
            clamped = min(max(int(value), 0), max(self.max_index(plane), 0))
            self.indices[plane] = clamped
            return clamped

    def reset_to_center(self) -> None:
        """Move every plane to the middle of the volume."""
        with self._lock:
            for plane in MPRPlane:
                self.indices[plane] = self.max_index(plane) // 2

    def reference_positions(self, plane: MPRPlane) -> Tuple[float, float]:
        """
        Normalized crosshair positions for a view.

        Returns:
            (horizontal, vertical): the horizontal line's position down the
            view and the vertical line's position across it, each in [0, 1].
            0.5 when the other plane has a single slice.
        """
        row_plane, column_plane = _REFERENCE_PLANES[plane]
        with self._lock:
            return (self._normalized_index(row_plane), self._normalized_index(column_plane))

    def _normalized_index(self, plane: MPRPlane) -> float:
        maximum = self.max_index(plane)
        if maximum <= 0:
            return 0.5
        return self.indices[plane] / maximum

    # Window/level and projection settings

    def set_window(self, center: float, width: float) -> None:
        with self._lock:
            self.window_center = float(center)
            self.window_width = float(width)

    def apply_window_preset(self, name: str) -> bool:
        """Apply a named preset from configuration. Returns False for unknown names."""
        preset = self.config.get_window_preset(name)
        if preset is None:
            return False
        self.set_window(*preset)
        return True

    def set_projection(self, mode: Optional[ProjectionMode], slab_thickness: Optional[int] = None) -> None:
        """
        Switch between plain slices (mode None) and intensity projections.

        In-flight projections are cancelled and their results discarded.
        """
        with self._lock:
            self.projection_mode = mode
            self.slab_thickness = slab_thickness
            self._cancel_inflight_projections()

    def _cancel_inflight_projections(self) -> None:
        for plane in MPRPlane:
            self._generations[plane] += 1
        for cancel_event in self._inflight.values():
            cancel_event.set()
        self._inflight.clear()

    # Rendering

    def current_slice(self, plane: MPRPlane) -> Optional[MPRSlice]:
        """
        Slice currently shown for a plane: the cut at the plane's index, or
        the projection along it when a projection mode is active.

        Returns None before a volume is built and for superseded projections.
        """
        with self._lock:
            volume = self.volume
            mode = self.projection_mode
            slab_thickness = self.slab_thickness
            index = self.indices[plane]
            if volume is None:
                return None
            if mode is None:
                return extract_slice(volume, plane, index)

            previous = self._inflight.get(plane)
            if previous is not None:
                previous.set()
            self._generations[plane] += 1
            generation = self._generations[plane]
            cancel_event = threading.Event()
            self._inflight[plane] = cancel_event

        try:
            result = self.projection_cache.get_or_compute(
                volume, plane, mode, slab_thickness, cancel_event=cancel_event
            )
        except ProjectionCancelled:
            return None

        with self._lock:
            if self._inflight.get(plane) is cancel_event:
                del self._inflight[plane]
            if generation != self._generations[plane]:
                debug_log(
                    "mpr_controller.py:current_slice",
                    "Discarded stale projection",
                    {"plane": plane.value, "generation": generation},
                )
                return None
        return result

    def render_view(self, plane: MPRPlane) -> Optional[Raster]:
        """Render the current slice of a plane with the current window/level."""
        slice_ = self.current_slice(plane)
        if slice_ is None:
            return None
        with self._lock:
            center, width = self.window_center, self.window_width
        return render_slice(slice_, center, width)

    def render_all(self) -> Dict[MPRPlane, Optional[Raster]]:
        """Render the three planes concurrently."""
        futures = {plane: self._render_executor.submit(self.render_view, plane) for plane in MPRPlane}
        return {plane: future.result() for plane, future in futures.items()}
