"""
Unit tests for the pydicom-backed slice source (core.dicom_slice_source)
together with the rescale and pixel array helpers it relies on.

Uses in-memory CT datasets; no DICOM files required.
"""

import os
import sys
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import numpy as np
from pydicom.dataset import Dataset

from core.dicom_pixel_array import get_pixel_array
from core.dicom_rescale import first_tag_value, get_rescale_parameters, infer_rescale_type
from core.dicom_slice_source import DatasetSliceSource, slice_sources_from_datasets
from core.volume_builder import SliceSource, build_volume
from mpr_test_helpers import make_ct_dataset


class TestDatasetSliceSource(unittest.TestCase):
    """Tests for DatasetSliceSource."""

    def setUp(self):
        self.pixels = [[0, 1, 2], [10, 11, 12]]
        self.source = DatasetSliceSource(make_ct_dataset(self.pixels, z=7.5))

    def test_satisfies_protocol(self):
        self.assertIsInstance(self.source, SliceSource)

    def test_tags(self):
        self.assertEqual((self.source.rows, self.source.columns), (2, 3))
        self.assertEqual(self.source.rescale_slope, 1.0)
        self.assertEqual(self.source.rescale_intercept, -1024.0)
        self.assertEqual(self.source.rescale_type, "HU")
        self.assertEqual((self.source.window_center, self.source.window_width), (40.0, 400.0))
        self.assertEqual(self.source.pixel_spacing, (0.5, 0.5))
        self.assertEqual(self.source.image_position, (-10.0, -20.0, 7.5))
        self.assertEqual(self.source.slice_location, 7.5)

    def test_raw_pixels(self):
        np.testing.assert_array_equal(self.source.pixel_array(), np.array(self.pixels))
        self.assertEqual(self.source.pixel_value(2, 1), 12.0)

    def test_release_pixels(self):
        first = self.source.pixel_array()
        self.assertIs(self.source.pixel_array(), first)
        self.source.release_pixels()
        np.testing.assert_array_equal(self.source.pixel_array(), first)

    def test_missing_tags_are_none(self):
        source = DatasetSliceSource(Dataset())
        self.assertIsNone(source.rows)
        self.assertIsNone(source.rescale_slope)
        self.assertIsNone(source.window_center)
        self.assertIsNone(source.pixel_spacing)
        self.assertIsNone(source.image_position)
        self.assertIsNone(source.pixel_array())
        self.assertIsNone(source.pixel_value(0, 0))

    def test_window_presets(self):
        self.assertEqual(self.source.window_presets, [(40.0, 400.0, None)])

    def test_build_volume_from_datasets(self):
        datasets = [make_ct_dataset([[z, z + 1], [z + 2, z + 3]], z=2.0 * z) for z in (2, 0, 1)]
        volume = build_volume(slice_sources_from_datasets(datasets))
        self.assertEqual((volume.width, volume.height, volume.depth), (2, 2, 3))
        self.assertAlmostEqual(volume.spacing_z, 2.0)
        self.assertEqual(volume.origin, (-10.0, -20.0, 0.0))
        self.assertEqual(volume.voxel_value(1, 1, 2), 2 + 3 - 1024.0)
        self.assertEqual((volume.spacing_x, volume.spacing_y), (0.5, 0.5))


class TestRescaleHelpers(unittest.TestCase):

    def test_first_tag_value(self):
        ds = Dataset()
        ds.WindowCenter = [10, 20]
        self.assertEqual(first_tag_value(ds, 'WindowCenter'), 10)
        self.assertIsNone(first_tag_value(ds, 'RescaleSlope'))

    def test_rescale_parameters(self):
        ds = Dataset()
        ds.RescaleSlope = 2
        ds.RescaleIntercept = -100
        ds.RescaleType = "US"
        self.assertEqual(get_rescale_parameters(ds), (2.0, -100.0, "US"))
        self.assertEqual(get_rescale_parameters(Dataset()), (None, None, None))

    def test_infer_rescale_type(self):
        ct = Dataset()
        ct.Modality = "CT"
        self.assertEqual(infer_rescale_type(ct, 1.0, -1024.0, None), "HU")
        self.assertIsNone(infer_rescale_type(ct, None, None, None))
        self.assertEqual(infer_rescale_type(ct, 1.0, 0.0, "OD"), "OD")
        mr = Dataset()
        mr.Modality = "MR"
        self.assertIsNone(infer_rescale_type(mr, 1.0, 0.0, None))


class TestGetPixelArray(unittest.TestCase):

    def test_decodes_single_frame(self):
        array = get_pixel_array(make_ct_dataset([[-5, 5]], z=0))
        self.assertEqual(array.shape, (1, 2))
        self.assertEqual(array.tolist(), [[-5, 5]])

    def test_missing_pixel_data(self):
        self.assertIsNone(get_pixel_array(Dataset()))


if __name__ == '__main__':
    unittest.main()
