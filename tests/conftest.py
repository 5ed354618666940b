"""
Pytest and unittest configuration for DICOM MPR Engine tests.

Adds project src/ to sys.path so tests can import from core and utils.
Run tests from project root with:
  - pytest
  - python -m unittest discover -s tests -p "test_*.py"
  - python tests/run_tests.py
"""

import sys
import os

import pytest

# Add src to path so that "from core.xxx" and "from utils.xxx" work
_project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_src_dir = os.path.join(_project_root, "src")
if _src_dir not in sys.path:
    sys.path.insert(0, _src_dir)


def pytest_configure(config):
    config.addinivalue_line("markers", "dicom_io: mark test as writing DICOM files with pydicom")


@pytest.fixture(autouse=True)
def _debug_log_disabled(monkeypatch):
    """Keep debug logging off unless a test enables it explicitly."""
    monkeypatch.delenv("DICOMMPR_DEBUG_LOG", raising=False)
    monkeypatch.delenv("DICOMMPR_DEBUG_LOG_PATH", raising=False)
