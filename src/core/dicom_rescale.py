"""
DICOM rescale parameters and type inference.

This module provides rescale slope, intercept, and type extraction from DICOM
datasets for the slice source adapter, and infers the rescale type (HU for
CT) when the tag is missing.

Inputs:
    - pydicom Dataset

Outputs:
    - (rescale_slope, rescale_intercept, rescale_type) tuples
    - Inferred rescale type string

Requirements:
    - pydicom
"""

from typing import Any, Optional, Tuple
from pydicom.dataset import Dataset


def first_tag_value(dataset: Dataset, keyword: str) -> Any:
    """Value of a tag, taking the first item of multi-valued elements. None if absent or empty."""
    value = getattr(dataset, keyword, None)
    if value is None or value == "":
        return None
    if isinstance(value, (list, tuple)) or type(value).__name__ == "MultiValue":
        return value[0] if len(value) else None
    return value


def get_rescale_parameters(dataset: Dataset) -> Tuple[Optional[float], Optional[float], Optional[str]]:
    """
    Extract rescale parameters from DICOM dataset.

    Args:
        dataset: pydicom Dataset

    Returns:
        Tuple of (rescale_slope, rescale_intercept, rescale_type); missing entries are None
    """
    try:
        # RescaleSlope (0028,1053), RescaleIntercept (0028,1052)
        slope = first_tag_value(dataset, 'RescaleSlope')
        intercept = first_tag_value(dataset, 'RescaleIntercept')
        rescale_slope = float(slope) if slope is not None else None
        rescale_intercept = float(intercept) if intercept is not None else None

        # RescaleType (0028,1054)
        type_value = first_tag_value(dataset, 'RescaleType')
        rescale_type = str(type_value).strip() if type_value is not None else None
        if not rescale_type:
            rescale_type = None

        return rescale_slope, rescale_intercept, rescale_type
    except (TypeError, ValueError) as e:
        print(f"Error extracting rescale parameters: {e}")
        return None, None, None


def infer_rescale_type(
    dataset: Dataset,
    rescale_slope: Optional[float],
    rescale_intercept: Optional[float],
    rescale_type: Optional[str]
) -> Optional[str]:
    """
    Infer rescale type when RescaleType tag is missing.
    CT images carry Hounsfield Units whenever a rescale is present.

    Returns:
        Inferred rescale type (e.g., "HU") or original rescale_type
    """
    if rescale_type:
        return rescale_type

    modality = getattr(dataset, 'Modality', None)
    if modality and str(modality).upper() == 'CT':
        if rescale_slope is not None and rescale_intercept is not None:
            return "HU"

    return None
