"""
DICOM File Loader

This module reads DICOM files for volume reconstruction from:
- Single files
- Multiple files
- Directories (with recursive search)
- Files regardless of extension

Images without pixel data (structured reports, presentation states) are
skipped, and loaded images can be grouped by series so a single stack can
be handed to the volume builder.

Inputs:
    - File paths (single or multiple)
    - Directory paths

Outputs:
    - List of successfully loaded DICOM datasets
    - List of files that failed to load (with error messages)
    - Datasets grouped by SeriesInstanceUID

Requirements:
    - pydicom library for DICOM file reading
    - pathlib for path handling
"""

import os
import warnings
from collections import OrderedDict
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import pydicom
from pydicom.errors import InvalidDicomError

from utils.debug_log import debug_log

# Progress callback signature: (current: int, total: int, filename: str) -> None
ProgressCallback = Callable[[int, int, str], None]

UNKNOWN_SERIES_UID = "unknown"


class DICOMLoader:
    """
    Handles loading DICOM files from various sources.

    Supports:
    - Single file loading
    - Multiple file loading
    - Recursive directory scanning
    - Extension-agnostic file loading (attempts to load all files as DICOM)
    """

    def __init__(self):
        """Initialize the DICOM loader."""
        self.loaded_files: List[pydicom.Dataset] = []
        self.failed_files: List[Tuple[str, str]] = []  # (path, error_message)

    def load_file(self, file_path: str) -> Optional[pydicom.Dataset]:
        """
        Load a single DICOM file.

        Args:
            file_path: Path to the DICOM file

        Returns:
            pydicom.Dataset if successful, None otherwise
        """
        try:
            # Excess padding warnings are informational; pydicom handles the padding itself
            with warnings.catch_warnings():
                warnings.filterwarnings('ignore', message='.*excess padding.*', category=UserWarning)
                dataset = pydicom.dcmread(file_path, force=True)
        except InvalidDicomError as e:
            self.failed_files.append((file_path, f"Invalid DICOM file: {str(e)}"))
            return None
        except MemoryError as e:
            self.failed_files.append((file_path, f"Memory error: File too large to load. Error: {str(e)}"))
            return None
        except OSError as e:
            self.failed_files.append((file_path, f"File system error: {str(e)}"))
            return None
        except Exception as e:
            # force=True lets dcmread accept arbitrary bytes; parsing junk fails in many ways
            self.failed_files.append((file_path, f"Error loading file: {str(e)}"))
            return None

        if 'PixelData' not in dataset:
            self.failed_files.append((file_path, "No pixel data"))
            return None

        self.loaded_files.append(dataset)
        return dataset

    def load_files(self, file_paths: List[str],
                   progress_callback: Optional[ProgressCallback] = None) -> List[pydicom.Dataset]:
        """
        Load multiple DICOM files.

        Args:
            file_paths: List of file paths
            progress_callback: Optional callback (current, total, filename)

        Returns:
            List of successfully loaded DICOM datasets
        """
        self.loaded_files = []
        self.failed_files = []

        total_files = len(file_paths)
        for idx, file_path in enumerate(file_paths):
            if progress_callback:
                progress_callback(idx + 1, total_files, os.path.basename(file_path))
            self.load_file(file_path)

        debug_log(
            "dicom_loader.py:load_files",
            "Files loaded",
            {"loaded": len(self.loaded_files), "failed": len(self.failed_files)},
        )
        return self.loaded_files

    def load_directory(self, directory_path: str, recursive: bool = True,
                       progress_callback: Optional[ProgressCallback] = None) -> List[pydicom.Dataset]:
        """
        Load all DICOM files from a directory.

        Args:
            directory_path: Path to the directory
            recursive: If True, search subdirectories recursively
            progress_callback: Optional callback (current, total, filename)

        Returns:
            List of successfully loaded DICOM datasets
        """
        dir_path = Path(directory_path)
        if not dir_path.exists() or not dir_path.is_dir():
            self.loaded_files = []
            self.failed_files = [(directory_path, "Directory does not exist or is not a directory")]
            return []

        if recursive:
            file_paths = sorted(str(p) for p in dir_path.rglob('*') if p.is_file())
        else:
            file_paths = sorted(str(p) for p in dir_path.iterdir() if p.is_file())
        return self.load_files(file_paths, progress_callback=progress_callback)

    def get_failed_files(self) -> List[Tuple[str, str]]:
        """
        Get list of files that failed to load with error messages.

        Returns:
            List of tuples (file_path, error_message)
        """
        return self.failed_files.copy()

    def clear(self) -> None:
        """Clear loaded files and failed files lists."""
        self.loaded_files = []
        self.failed_files = []


def group_datasets_by_series(datasets: List[pydicom.Dataset]) -> Dict[str, List[pydicom.Dataset]]:
    """
    Group datasets by SeriesInstanceUID, keeping first-seen series order.

    Datasets without the tag are collected under UNKNOWN_SERIES_UID.
    """
    series: Dict[str, List[pydicom.Dataset]] = OrderedDict()
    for dataset in datasets:
        uid = str(getattr(dataset, 'SeriesInstanceUID', '') or UNKNOWN_SERIES_UID)
        series.setdefault(uid, []).append(dataset)
    return series


def largest_series(datasets: List[pydicom.Dataset]) -> List[pydicom.Dataset]:
    """Datasets of the series with the most images (first series wins ties)."""
    groups = group_datasets_by_series(datasets)
    if not groups:
        return []
    return max(groups.values(), key=len)
