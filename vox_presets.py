#!/usr/bin/env python3
"""vox_presets.py — JSON settings & presets for the SVG Voxelizer.

A preset is a flat JSON object mirroring VoxelConfig with camelCase keys:

    {"gridResolution": 16, "threshold": 0.3, "blockType": "square", ...}

Loading merges onto an existing configuration, so partial presets are valid.
The persisted app settings (loaded at startup, saved on change/exit) use the
same format.
"""

from __future__ import annotations

import json
from dataclasses import fields, replace
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from vox_engine import VoxelConfig

__all__ = [
    "SETTINGS_PATH",
    "FIELD_KEYS",
    "ConfigParseError",
    "config_to_dict",
    "config_from_dict",
    "load_preset",
    "save_preset",
    "SettingsStore",
]

SETTINGS_PATH = Path.home() / ".svg_voxelizer" / "settings.json"

# python attribute -> JSON key
FIELD_KEYS: Dict[str, str] = {
    "grid_resolution": "gridResolution",
    "threshold": "threshold",
    "block_type": "blockType",
    "block_color": "blockColor",
    "use_gradient": "useGradient",
    "gradient_start": "gradientStart",
    "gradient_end": "gradientEnd",
    "invert_output": "invertOutput",
    "size_variation": "sizeVariation",
    "block_rotation": "blockRotation",
}

LogFn = Optional[Callable[[str], None]]


class ConfigParseError(ValueError):
    """Preset/settings JSON is malformed or holds wrong-typed values."""


def config_to_dict(config: VoxelConfig) -> Dict[str, Any]:
    return {FIELD_KEYS[f.name]: getattr(config, f.name) for f in fields(config)}


def _coerce(attr: str, value: Any, current: Any) -> Any:
    # bool is an int subclass; keep the two apart.
    if isinstance(current, bool):
        if isinstance(value, bool):
            return value
    elif isinstance(current, int):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if float(value).is_integer():
                return int(value)
    elif isinstance(current, float):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
    elif isinstance(current, str):
        if isinstance(value, str):
            return value
    raise ConfigParseError(f"Bad value for {FIELD_KEYS[attr]!r}: {value!r}")


def config_from_dict(data: Dict[str, Any], base: Optional[VoxelConfig] = None) -> VoxelConfig:
    """
    Merge known keys of data onto base (defaults when None).
    Unknown keys are ignored; the result is clamped into valid ranges.
    """
    if not isinstance(data, dict):
        raise ConfigParseError(f"Expected a JSON object, got {type(data).__name__}")
    base = base or VoxelConfig()
    changes: Dict[str, Any] = {}
    for attr, key in FIELD_KEYS.items():
        if key in data:
            changes[attr] = _coerce(attr, data[key], getattr(base, attr))
    return replace(base, **changes).clamped()


def load_preset(path: Path, base: Optional[VoxelConfig] = None) -> VoxelConfig:
    """
    Read a preset file and merge it onto base.

    Raises ConfigParseError for malformed JSON (including non UTF-8 bytes),
    OSError when unreadable.
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ConfigParseError(f"Preset {Path(path).name} is not UTF-8 text: {e}") from e
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigParseError(f"Malformed preset {Path(path).name}: {e}") from e
    return config_from_dict(data, base)


def save_preset(path: Path, config: VoxelConfig) -> None:
    """Write the complete configuration as indented JSON."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(config_to_dict(config), indent=2), encoding="utf-8")


class SettingsStore:
    """
    App-level settings file: load once at startup, save on change and exit.
    Load never raises; a broken or missing file yields the default config.
    """

    def __init__(self, path: Path = SETTINGS_PATH, logfn: LogFn = None):
        self.path = Path(path)
        self.logfn = logfn

    def load(self, default: Optional[VoxelConfig] = None) -> VoxelConfig:
        default = default or VoxelConfig()
        if not self.path.exists():
            return default
        try:
            return load_preset(self.path, default)
        except (ConfigParseError, OSError) as e:
            if self.logfn:
                self.logfn(f"ERR: Settings not loaded ({self.path}): {e}")
            return default

    def save(self, config: VoxelConfig) -> bool:
        try:
            save_preset(self.path, config)
            return True
        except OSError as e:
            if self.logfn:
                self.logfn(f"ERR: Settings not saved ({self.path}): {e}")
            return False
