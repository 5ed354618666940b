"""
DICOM MPR Engine - Command Line Entry Point

Loads a DICOM series from a directory, reconstructs the volume and writes one
axial, sagittal or coronal view (a slice or an intensity projection) as an
8-bit grayscale PNG.

Inputs:
    - Command line arguments (directory, plane, index, projection, window)

Outputs:
    - PNG file
    - Exit status (0 on success)

Requirements:
    - pydicom for DICOM file handling
    - numpy for array operations
    - PIL/Pillow for PNG output
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

# Add src directory to path
src_dir = Path(__file__).parent
sys.path.insert(0, str(src_dir))

from core.dicom_loader import DICOMLoader, largest_series
from core.dicom_projections import project
from core.dicom_slice_source import slice_sources_from_datasets
from core.dicom_window_level import render_slice
from core.mpr_controller import build_defaults_from_config
from core.mpr_errors import MPREngineError
from core.mpr_volume import MPRPlane, ProjectionMode
from core.slice_extractor import extract_slice, max_slice_index
from core.volume_builder import build_volume, sort_sources_by_position
from utils.config_manager import ConfigManager
from utils.image_utils import save_raster_png


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Render an MPR view of a DICOM series to PNG.")
    parser.add_argument("directory", help="Directory containing the DICOM series")
    parser.add_argument("-o", "--output", required=True, help="Output PNG path")
    parser.add_argument("--plane", choices=[p.value for p in MPRPlane], default=MPRPlane.AXIAL.value)
    parser.add_argument("--index", type=int, default=None,
                        help="Slice index along the plane (default: middle slice)")
    parser.add_argument("--projection", choices=[m.value for m in ProjectionMode], default=None,
                        help="Render an intensity projection instead of a slice")
    parser.add_argument("--slab", type=int, default=None,
                        help="Projection slab thickness in voxels, starting at 0 (default: full extent)")
    parser.add_argument("--center", type=float, default=None, help="Window center")
    parser.add_argument("--width", type=float, default=None, help="Window width")
    parser.add_argument("--preset", default=None, help="Named window preset (e.g. lung, bone)")
    parser.add_argument("--no-aspect", action="store_true",
                        help="Write one PNG pixel per sample without physical aspect correction")
    parser.add_argument("--config-dir", default=None,
                        help="Directory holding the configuration file (default: user config directory)")
    return parser.parse_args(argv)


def _print_progress(current: int, total: int, filename: str) -> None:
    print(f"\rLoading {current}/{total}: {filename}", end="", flush=True)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    config = ConfigManager(config_dir=args.config_dir)

    loader = DICOMLoader()
    datasets = loader.load_directory(args.directory, progress_callback=_print_progress)
    print()
    for path, error in loader.get_failed_files():
        print(f"Skipped {path}: {error}")
    series = largest_series(datasets)
    if not series:
        print(f"No DICOM images found in {args.directory}")
        return 1
    config.set_last_path(args.directory)

    sources = slice_sources_from_datasets(series)
    try:
        volume = build_volume(sources, defaults=build_defaults_from_config(config))
    except MPREngineError as e:
        print(f"Failed to build volume: {e}")
        return 1
    # Units follow the calibration of the first sorted slice
    units = sort_sources_by_position(sources)[0].rescale_type or "raw"
    for source in sources:
        source.release_pixels()
    print(f"Built volume {volume.width}x{volume.height}x{volume.depth}, "
          f"spacing {volume.spacing_x:.3f}/{volume.spacing_y:.3f}/{volume.spacing_z:.3f} mm, values in {units}")

    plane = MPRPlane(args.plane)
    if args.projection:
        slab = args.slab if args.slab is not None else config.get_default_slab_thickness()
        slice_ = project(volume, plane, ProjectionMode(args.projection), slab)
    else:
        index = args.index if args.index is not None else max_slice_index(volume, plane) // 2
        slice_ = extract_slice(volume, plane, index)
        if slice_ is None:
            print(f"Index {index} is out of range for {plane.display_name} "
                  f"(0-{max_slice_index(volume, plane)})")
            return 1

    center, width = volume.window_center, volume.window_width
    if args.preset:
        preset = config.get_window_preset(args.preset)
        if preset is None:
            print(f"Unknown window preset '{args.preset}'. "
                  f"Available: {', '.join(sorted(config.get_window_presets()))}")
            return 1
        center, width = preset
    if args.center is not None:
        center = args.center
    if args.width is not None:
        width = args.width

    raster = render_slice(slice_, center, width)
    if args.no_aspect:
        output = save_raster_png(raster, args.output)
    else:
        output = save_raster_png(raster, args.output, slice_.pixel_spacing_x, slice_.pixel_spacing_y)
    config.set_last_export_path(str(output.parent))
    print(f"Wrote {output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
