"""
Unit tests for volume construction (core.volume_builder).

Builds volumes from synthetic slice sources and checks ordering, spacing,
calibration, origin and every failure mode.
"""

import os
import sys
import threading
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import numpy as np

from core.mpr_errors import (
    InconsistentDimensionsError,
    InsufficientSlicesError,
    MissingDimensionsError,
    MissingPixelDataError,
    VolumeBuildCancelled,
    VolumeBuildError,
)
from core.mpr_volume import MPRPlane
from core.slice_extractor import extract_slice
from core.volume_builder import (
    BuildDefaults,
    build_volume,
    decode_raw_samples,
    slice_z_position,
    sort_sources_by_position,
)
from mpr_test_helpers import FakeSliceSource, encoded_value, make_encoded_stack


def _stack_with_values(z_values):
    """2x2 slices whose samples are z * 1000 + y * 10 + x."""
    return [
        FakeSliceSource([[z * 1000 + y * 10 + x for x in range(2)] for y in range(2)], z=z)
        for z in z_values
    ]


class BulkSliceSource(FakeSliceSource):
    """Fake source that also offers a whole-array reader."""

    def __init__(self, array, **kwargs):
        super().__init__(array.tolist(), **kwargs)
        self.array = array
        self.pixel_value_calls = 0

    def pixel_array(self):
        return self.array

    def pixel_value(self, x, y):
        self.pixel_value_calls += 1
        return super().pixel_value(x, y)


class TestBuildVolume(unittest.TestCase):
    """Tests for build_volume on valid stacks."""

    def test_four_slice_stack(self):
        volume = build_volume(_stack_with_values([0, 1, 2, 3]))
        self.assertEqual((volume.width, volume.height, volume.depth), (2, 2, 4))
        self.assertAlmostEqual(volume.spacing_z, 1.0)
        axial = extract_slice(volume, MPRPlane.AXIAL, 1)
        self.assertEqual((axial.width, axial.height), (2, 2))
        self.assertEqual(axial.pixel_data.tolist(), [1000.0, 1001.0, 1010.0, 1011.0])

    def test_unsorted_input_is_sorted_by_position(self):
        volume = build_volume(_stack_with_values([3, 0, 2, 1]))
        for z in range(4):
            self.assertEqual(volume.voxel_value(0, 0, z), z * 1000.0)

    def test_spacing_from_extent_over_gaps(self):
        sources = make_encoded_stack(2, 2, 3, spacing=2.5)
        self.assertAlmostEqual(build_volume(sources).spacing_z, 2.5)

    def test_descending_positions_give_positive_spacing(self):
        sources = _stack_with_values([0, 1, 2])
        for source, z in zip(sources, (10.0, 5.0, 0.0)):
            source.image_position = (0.0, 0.0, z)
        volume = build_volume(sources)
        self.assertAlmostEqual(volume.spacing_z, 5.0)
        self.assertEqual(volume.origin[2], 0.0)
        # The slice at z=0 was the last one given
        self.assertEqual(volume.voxel_value(0, 0, 0), 2000.0)

    def test_coincident_positions_clamp_spacing(self):
        volume = build_volume(_stack_with_values([0, 0, 0]))
        self.assertAlmostEqual(volume.spacing_z, 0.001)

    def test_rescale_applied_to_every_voxel(self):
        sources = make_encoded_stack(2, 2, 2, rescale_slope=2.0, rescale_intercept=-1024.0)
        volume = build_volume(sources)
        self.assertEqual(volume.voxel_value(1, 1, 1), encoded_value(1, 1, 1) * 2.0 - 1024.0)
        self.assertEqual(volume.rescale_slope, 2.0)
        self.assertEqual(volume.rescale_intercept, -1024.0)

    def test_calibration_taken_from_first_sorted_slice(self):
        sources = make_encoded_stack(2, 2, 2)
        sources[0].rescale_slope, sources[0].rescale_intercept = 1.0, 0.0
        sources[0].window_center, sources[0].window_width = 50.0, 350.0
        sources[0].pixel_spacing = (0.5, 0.75)
        sources[1].rescale_slope, sources[1].rescale_intercept = 3.0, 100.0
        sources[1].window_center, sources[1].window_width = -600.0, 1500.0
        sources[1].pixel_spacing = (2.0, 2.0)
        volume = build_volume(list(reversed(sources)))
        self.assertEqual(volume.voxel_value(1, 1, 1), encoded_value(1, 1, 1))
        self.assertEqual((volume.window_center, volume.window_width), (50.0, 350.0))
        self.assertEqual(volume.spacing_y, 0.5)
        self.assertEqual(volume.spacing_x, 0.75)

    def test_missing_tags_use_defaults(self):
        volume = build_volume(make_encoded_stack(2, 2, 2))
        self.assertEqual((volume.rescale_slope, volume.rescale_intercept), (1.0, 0.0))
        self.assertEqual((volume.window_center, volume.window_width), (40.0, 400.0))
        self.assertEqual((volume.spacing_x, volume.spacing_y), (1.0, 1.0))

    def test_custom_defaults(self):
        defaults = BuildDefaults(window_center=-600.0, window_width=1500.0, pixel_spacing=(0.7, 0.8))
        volume = build_volume(make_encoded_stack(2, 2, 2), defaults=defaults)
        self.assertEqual((volume.window_center, volume.window_width), (-600.0, 1500.0))
        self.assertEqual((volume.spacing_x, volume.spacing_y), (0.8, 0.7))

    def test_origin_from_first_image_position(self):
        sources = _stack_with_values([0, 1])
        sources[0].image_position = (-120.5, -80.25, 4.0)
        sources[1].image_position = (-120.5, -80.25, 6.0)
        volume = build_volume(sources)
        self.assertEqual(volume.origin, (-120.5, -80.25, 4.0))

    def test_origin_without_position_uses_slice_location(self):
        sources = [
            FakeSliceSource([[1.0]], slice_location=7.0),
            FakeSliceSource([[2.0]], slice_location=9.0),
        ]
        volume = build_volume(sources)
        self.assertEqual(volume.origin, (0.0, 0.0, 7.0))
        self.assertAlmostEqual(volume.spacing_z, 2.0)

    def test_progress_callback(self):
        calls = []
        build_volume(make_encoded_stack(2, 2, 3), progress_callback=lambda done, total: calls.append((done, total)))
        self.assertEqual(calls, [(1, 3), (2, 3), (3, 3)])

    def test_bulk_reader_preferred(self):
        sources = [
            BulkSliceSource(np.full((2, 2), float(z)), z=z)
            for z in range(2)
        ]
        volume = build_volume(sources)
        self.assertEqual(volume.voxel_value(1, 1, 1), 1.0)
        self.assertEqual(sum(s.pixel_value_calls for s in sources), 0)


class TestBuildVolumeErrors(unittest.TestCase):
    """Tests for build_volume failure modes."""

    def test_empty_and_single_slice(self):
        with self.assertRaises(InsufficientSlicesError):
            build_volume([])
        with self.assertRaises(InsufficientSlicesError):
            build_volume(_stack_with_values([0]))

    def test_inconsistent_dimensions(self):
        sources = _stack_with_values([0, 1])
        sources.append(FakeSliceSource([[0.0, 0.0, 0.0]] * 2, z=2))
        with self.assertRaises(InconsistentDimensionsError) as ctx:
            build_volume(sources)
        self.assertIn("same image dimensions", str(ctx.exception))

    def test_missing_dimensions(self):
        sources = _stack_with_values([0, 1])
        sources[1].rows = None
        with self.assertRaises(MissingDimensionsError):
            build_volume(sources)

    def test_missing_dimensions_reported_before_inconsistent(self):
        sources = _stack_with_values([0, 1])
        sources.append(FakeSliceSource([[0.0] * 3] * 2, z=2))
        sources.append(FakeSliceSource([[0.0] * 2] * 2, z=3, columns=0))
        with self.assertRaises(MissingDimensionsError):
            build_volume(sources)

    def test_missing_pixel_value(self):
        sources = _stack_with_values([0, 1])
        sources[1].pixels[1][1] = None
        with self.assertRaises(MissingPixelDataError):
            build_volume(sources)

    def test_decode_exception_becomes_missing_pixel_data(self):
        sources = _stack_with_values([0, 1])
        sources[0].pixels = []  # pixel_value raises IndexError
        with self.assertRaises(MissingPixelDataError):
            build_volume(sources)

    def test_bulk_reader_returning_none(self):
        sources = [BulkSliceSource(np.zeros((2, 2)), z=z) for z in range(2)]
        sources[1].array = None
        with self.assertRaises(MissingPixelDataError):
            build_volume(sources)

    def test_bulk_reader_wrong_shape(self):
        source = BulkSliceSource(np.zeros((3, 2)), z=0)
        with self.assertRaises(MissingPixelDataError):
            decode_raw_samples(source, 2, 2)

    def test_cancelled_build(self):
        cancel = threading.Event()
        cancel.set()
        with self.assertRaises(VolumeBuildCancelled):
            build_volume(_stack_with_values([0, 1]), cancel_event=cancel)

    def test_cancel_between_slices(self):
        cancel = threading.Event()

        def progress(done, total):
            if done == 1:
                cancel.set()

        with self.assertRaises(VolumeBuildCancelled):
            build_volume(_stack_with_values([0, 1, 2]), cancel_event=cancel, progress_callback=progress)

    def test_errors_share_base_class(self):
        for error in (InsufficientSlicesError, InconsistentDimensionsError, MissingDimensionsError,
                      MissingPixelDataError, VolumeBuildCancelled):
            self.assertTrue(issubclass(error, VolumeBuildError))
            self.assertTrue(str(error()))


class TestSlicePosition(unittest.TestCase):
    """Tests for z-position resolution and ordering."""

    def test_image_position_wins(self):
        source = FakeSliceSource([[0.0]], image_position=(1.0, 2.0, 3.0), slice_location=9.0)
        self.assertEqual(slice_z_position(source), 3.0)

    def test_slice_location_fallback(self):
        self.assertEqual(slice_z_position(FakeSliceSource([[0.0]], slice_location=-4.5)), -4.5)

    def test_unusable_z_component_falls_back_to_slice_location(self):
        for position in ((1.0, 2.0, None), (1.0, 2.0, "n/a")):
            source = FakeSliceSource([[0.0]], image_position=position, slice_location=6.5)
            self.assertEqual(slice_z_position(source), 6.5)
        self.assertEqual(slice_z_position(FakeSliceSource([[0.0]], image_position=(1.0, 2.0, None))), 0.0)

    def test_unusable_origin_components_become_zero(self):
        sources = _stack_with_values([0, 1])
        sources[0].image_position = (None, -80.25, 0.0)
        volume = build_volume(sources)
        self.assertEqual(volume.origin, (0.0, -80.25, 0.0))

    def test_zero_when_unpositioned(self):
        self.assertEqual(slice_z_position(FakeSliceSource([[0.0]])), 0.0)

    def test_sort_is_stable(self):
        first = FakeSliceSource([[1.0]])
        second = FakeSliceSource([[2.0]])
        third = FakeSliceSource([[3.0]], z=-1)
        self.assertEqual(sort_sources_by_position([first, second, third]), [third, first, second])


if __name__ == '__main__':
    unittest.main()
