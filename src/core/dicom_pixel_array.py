"""
DICOM pixel array extraction.

This module decodes raw (unrescaled) pixel arrays from single-frame grayscale
DICOM datasets for the slice source adapter. Compressed transfer syntaxes
that pydicom cannot decode are reported once per file.

Inputs:
    - pydicom Dataset

Outputs:
    - NumPy pixel arrays (or None on failure)

Requirements:
    - pydicom, numpy
"""

import threading
from typing import Optional

import numpy as np
from pydicom.dataset import Dataset

# Track files that have shown compression errors (suppress redundant messages)
_compression_error_files: set = set()
_compression_error_lock = threading.Lock()


def _is_compression_error(error_msg: str) -> bool:
    error_msg = error_msg.lower()
    return (
        "pylibjpeg" in error_msg or
        "missing required dependencies" in error_msg or
        "unable to convert" in error_msg or
        "decode" in error_msg
    )


def _report_compression_error(dataset: Dataset, error_msg: str) -> None:
    key = getattr(dataset, 'filename', None) or error_msg[:100]
    with _compression_error_lock:
        if key in _compression_error_files:
            return
        _compression_error_files.add(key)
    print(f"[COMPRESSION ERROR] {key}: compressed DICOM pixel data cannot be decoded.")
    print(f"  Error: {error_msg[:200]}")
    print(f"  To decode compressed DICOM files, install optional dependencies:")
    print(f"    pip install pylibjpeg pyjpegls")


def get_pixel_array(dataset: Dataset) -> Optional[np.ndarray]:
    """
    Extract the 2D raw pixel array from a DICOM dataset.

    Args:
        dataset: pydicom Dataset

    Returns:
        (rows, columns) NumPy array, or None if extraction fails or the
        dataset is not a single grayscale frame
    """
    try:
        pixel_array = dataset.pixel_array
    except MemoryError as e:
        print(f"Memory error extracting pixel array: {e}")
        return None
    except Exception as e:
        error_msg = str(e)
        if _is_compression_error(error_msg):
            _report_compression_error(dataset, error_msg)
        else:
            print(f"Error extracting pixel array: {e}")
        return None

    if pixel_array.ndim != 2:
        print(f"Unsupported pixel array shape {pixel_array.shape}: expected a single grayscale frame")
        return None
    return pixel_array
