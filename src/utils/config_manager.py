"""
Configuration Manager

This module handles persistent storage and retrieval of MPR engine settings.
Settings are stored in a JSON file in the user's application data directory
and merged over built-in defaults.

Inputs:
    - Engine preferences (default window/level, slab thickness, presets, paths)

Outputs:
    - Loaded configuration values
    - Saved configuration file

Requirements:
    - json module (standard library)
    - pathlib module (standard library)
    - os module (standard library)
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple


class ConfigManager:
    """
    Manages MPR engine configuration.

    Handles loading and saving of settings including:
    - Fallback calibration used when slices lack rescale/window/spacing tags
    - Minimum slice spacing
    - Default slab thickness
    - Named window/level presets
    - Last opened and last export paths
    """

    def __init__(self, config_filename: str = "mpr_engine_config.json",
                 config_dir: Optional[str] = None):
        """
        Initialize the configuration manager.

        Args:
            config_filename: Name of the configuration file to use
            config_dir: Directory holding the file; defaults to the user config directory
        """
        if config_dir is not None:
            self.config_dir = Path(config_dir)
        elif os.name == 'nt':  # Windows
            app_data = os.getenv('APPDATA', os.path.expanduser('~'))
            self.config_dir = Path(app_data) / "DICOMMPREngine"
        else:  # Mac/Linux
            self.config_dir = Path.home() / ".config" / "DICOMMPREngine"

        self.config_path = self.config_dir / config_filename

        self.default_config = {
            "last_path": "",
            "last_export_path": "",
            "default_window_center": 40.0,
            "default_window_width": 400.0,
            "default_rescale_slope": 1.0,
            "default_rescale_intercept": 0.0,
            "default_pixel_spacing": [1.0, 1.0],  # (row, column) mm
            "min_slice_spacing": 0.001,  # mm
            "default_slab_thickness": 0,  # 0 = full extent
            "window_presets": {
                "soft_tissue": {"center": 40.0, "width": 400.0},
                "lung": {"center": -600.0, "width": 1500.0},
                "bone": {"center": 500.0, "width": 2000.0},
                "brain": {"center": 40.0, "width": 80.0},
            },
        }

        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """
        Load configuration from file, or return defaults if file doesn't exist.

        Returns:
            Dictionary containing configuration values
        """
        config = json.loads(json.dumps(self.default_config))
        if not self.config_path.exists():
            return config
        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                loaded_config = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            # If file is corrupted, use defaults
            print(f"Warning: Could not load config file: {e}")
            return config
        if not isinstance(loaded_config, dict):
            print(f"Warning: Ignoring config file with unexpected content: {self.config_path}")
            return config
        config.update(loaded_config)
        return config

    def save_config(self) -> bool:
        """
        Save current configuration to file.

        Returns:
            True if save was successful, False otherwise
        """
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, 'w', encoding='utf-8') as f:
                json.dump(self.config, f, indent=4, ensure_ascii=False)
            return True
        except IOError as e:
            print(f"Error saving config file: {e}")
            return False

    def get(self, key: str, default: Any = None) -> Any:
        return self.config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.config[key] = value

    def get_last_path(self) -> str:
        return self.config.get("last_path", "")

    def set_last_path(self, path: str) -> None:
        self.config["last_path"] = path
        self.save_config()

    def get_last_export_path(self) -> str:
        return self.config.get("last_export_path", "")

    def set_last_export_path(self, path: str) -> None:
        self.config["last_export_path"] = path
        self.save_config()

    def get_default_window(self) -> Tuple[float, float]:
        """
        Get the window used when a stack carries no window tags.

        Returns:
            (window_center, window_width)
        """
        return (
            float(self.config.get("default_window_center", 40.0)),
            float(self.config.get("default_window_width", 400.0)),
        )

    def set_default_window(self, center: float, width: float) -> None:
        self.config["default_window_center"] = float(center)
        self.config["default_window_width"] = float(width)
        self.save_config()

    def get_default_rescale(self) -> Tuple[float, float]:
        """Returns (rescale_slope, rescale_intercept) used when tags are missing."""
        return (
            float(self.config.get("default_rescale_slope", 1.0)),
            float(self.config.get("default_rescale_intercept", 0.0)),
        )

    def get_default_pixel_spacing(self) -> Tuple[float, float]:
        """Returns (row_spacing, column_spacing) in mm used when tags are missing."""
        spacing = self.config.get("default_pixel_spacing", [1.0, 1.0])
        try:
            row_spacing, col_spacing = float(spacing[0]), float(spacing[1])
        except (TypeError, ValueError, IndexError):
            return (1.0, 1.0)
        if row_spacing <= 0 or col_spacing <= 0:
            return (1.0, 1.0)
        return (row_spacing, col_spacing)

    def get_min_slice_spacing(self) -> float:
        value = float(self.config.get("min_slice_spacing", 0.001))
        return value if value > 0 else 0.001

    def get_default_slab_thickness(self) -> Optional[int]:
        """
        Get the default projection slab thickness.

        Returns:
            Voxel count, or None for the full extent
        """
        value = int(self.config.get("default_slab_thickness", 0) or 0)
        return value if value > 0 else None

    def set_default_slab_thickness(self, thickness: Optional[int]) -> None:
        self.config["default_slab_thickness"] = int(thickness or 0)
        self.save_config()

    def get_window_presets(self) -> Dict[str, Tuple[float, float]]:
        """
        Get named window/level presets.

        Returns:
            Dict of preset name -> (center, width)
        """
        presets = {}
        for name, preset in self.config.get("window_presets", {}).items():
            try:
                presets[name] = (float(preset["center"]), float(preset["width"]))
            except (KeyError, TypeError, ValueError):
                print(f"Warning: Ignoring malformed window preset '{name}'")
        return presets

    def get_window_preset(self, name: str) -> Optional[Tuple[float, float]]:
        return self.get_window_presets().get(name)

    def set_window_preset(self, name: str, center: float, width: float) -> None:
        presets = dict(self.config.get("window_presets", {}))
        presets[name] = {"center": float(center), "width": float(width)}
        self.config["window_presets"] = presets
        self.save_config()
