"""
Unit tests for window/level rendering and tag parsing (core.dicom_window_level).

Tests the linear window mapping, render_slice validation and window preset
extraction from in-memory pydicom datasets.
"""

import os
import sys
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import numpy as np
from pydicom.dataset import Dataset

from core.dicom_window_level import (
    apply_window_level,
    convert_window_level_raw_to_rescaled,
    convert_window_level_rescaled_to_raw,
    get_window_level_from_dataset,
    get_window_level_presets_from_dataset,
    parse_window_value,
    render_slice,
)
from core.mpr_errors import InvalidSliceError
from core.mpr_volume import MPRPlane, MPRSlice


def _slice(values, width, height):
    return MPRSlice(MPRPlane.AXIAL, 0, width, height, np.asarray(values, dtype=np.float32), 1.0, 1.0)


class TestApplyWindowLevel(unittest.TestCase):
    """Tests for the window mapping with center 40, width 400 (range -160..240)."""

    def test_bounds(self):
        output = apply_window_level(np.array([-1000.0, -160.0, 240.0, 3000.0]), 40.0, 400.0)
        self.assertEqual(output.tolist(), [0, 0, 255, 255])

    def test_center_maps_to_128(self):
        self.assertEqual(apply_window_level(np.array([40.0]), 40.0, 400.0)[0], 128)

    def test_rounds_to_nearest(self):
        # Quarter points of the window: 63.75 and 191.25
        output = apply_window_level(np.array([-60.0, 140.0]), 40.0, 400.0)
        self.assertEqual(output.tolist(), [64, 191])

    def test_monotonic(self):
        values = np.linspace(-300.0, 400.0, 701)
        output = apply_window_level(values, 40.0, 400.0).astype(int)
        self.assertTrue(np.all(np.diff(output) >= 0))

    def test_dtype_and_shape(self):
        output = apply_window_level(np.zeros((3, 5)), 0.0, 100.0)
        self.assertEqual(output.dtype, np.uint8)
        self.assertEqual(output.shape, (3, 5))

    def test_zero_width_thresholds(self):
        output = apply_window_level(np.array([9.0, 10.0, 11.0]), 10.0, 0.0)
        self.assertEqual(output.tolist(), [0, 0, 255])

    def test_negative_width_does_not_divide(self):
        with np.errstate(all='raise'):
            output = apply_window_level(np.array([-5.0, 0.0, 5.0]), 0.0, -10.0)
        self.assertEqual(output.dtype, np.uint8)
        self.assertEqual(len(output), 3)


class TestRenderSlice(unittest.TestCase):

    def test_render(self):
        raster = render_slice(_slice([-1000.0, 40.0, 240.0, 1000.0, 0.0, -160.0], 3, 2), 40.0, 400.0)
        self.assertEqual((raster.width, raster.height), (3, 2))
        self.assertEqual(raster.pixels.tolist(), [0, 128, 255, 255, 102, 0])

    def test_buffer_size_mismatch(self):
        with self.assertRaises(InvalidSliceError):
            render_slice(_slice([0.0] * 5, 3, 2), 40.0, 400.0)

    def test_non_positive_dimensions(self):
        with self.assertRaises(InvalidSliceError):
            render_slice(_slice([], 0, 0), 40.0, 400.0)


class TestWindowConversions(unittest.TestCase):

    def test_rescaled_to_raw_and_back(self):
        raw = convert_window_level_rescaled_to_raw(40.0, 400.0, 1.0, -1024.0)
        self.assertEqual(raw, (1064.0, 400.0))
        self.assertEqual(convert_window_level_raw_to_rescaled(*raw, 1.0, -1024.0), (40.0, 400.0))

    def test_zero_slope_passthrough(self):
        self.assertEqual(convert_window_level_rescaled_to_raw(40.0, 400.0, 0.0, 5.0), (40.0, 400.0))


class TestWindowTags(unittest.TestCase):
    """Tests for window tag parsing from pydicom datasets."""

    def test_parse_window_value(self):
        self.assertEqual(parse_window_value(None), [])
        self.assertEqual(parse_window_value("40\\400"), [40.0, 400.0])
        self.assertEqual(parse_window_value([1, 2]), [1.0, 2.0])
        self.assertEqual(parse_window_value(7), [7.0])

    def test_single_window(self):
        ds = Dataset()
        ds.WindowCenter = 50
        ds.WindowWidth = 350
        self.assertEqual(get_window_level_from_dataset(ds), (50.0, 350.0))

    def test_missing_window(self):
        self.assertEqual(get_window_level_from_dataset(Dataset()), (None, None))

    def test_multi_valued_presets_with_explanations(self):
        ds = Dataset()
        ds.WindowCenter = [40, -600]
        ds.WindowWidth = [400, 1500]
        ds.WindowCenterWidthExplanation = ["SOFT", "LUNG"]
        self.assertEqual(get_window_level_from_dataset(ds), (40.0, 400.0))
        self.assertEqual(
            get_window_level_presets_from_dataset(ds),
            [(40.0, 400.0, "SOFT"), (-600.0, 1500.0, "LUNG")],
        )

    def test_presets_without_explanations(self):
        ds = Dataset()
        ds.WindowCenter = [40, 300]
        ds.WindowWidth = [400, 1500]
        presets = get_window_level_presets_from_dataset(ds)
        self.assertEqual(presets[0][2], None)
        self.assertEqual(presets[1][2], "Preset 2")


if __name__ == '__main__':
    unittest.main()
