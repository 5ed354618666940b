"""
MPR engine errors.

This module defines the typed failures raised by volume construction,
intensity projection and rendering.

Inputs:
    - None

Outputs:
    - Exception classes with human-readable messages

Requirements:
    - Standard library only
"""


class MPREngineError(Exception):
    """Base class for all MPR engine failures."""

    default_message = "MPR engine error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.default_message)


class VolumeBuildError(MPREngineError):
    """A volume could not be built from the given slices."""

    default_message = "Failed to build volume"


class InsufficientSlicesError(VolumeBuildError):
    default_message = "At least 2 slices are required to build a volume"


class InconsistentDimensionsError(VolumeBuildError):
    default_message = "All slices must have the same image dimensions"


class MissingPixelDataError(VolumeBuildError):
    default_message = "Unable to extract pixel data from slice"


class MissingDimensionsError(VolumeBuildError):
    default_message = "Slice does not report image dimensions (rows/columns)"


class VolumeBuildCancelled(VolumeBuildError):
    default_message = "Volume build was cancelled"


class InvalidSliceError(MPREngineError):
    """Slice geometry does not match its pixel buffer."""

    default_message = "Slice dimensions do not match its pixel data"


class ProjectionCancelled(MPREngineError):
    default_message = "Intensity projection was cancelled"
