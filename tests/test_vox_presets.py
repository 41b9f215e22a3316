"""
test_vox_presets.py
-------------------
JSON preset load/save and the app settings file.
"""

import json

import pytest

from vox_engine import VoxelConfig
from vox_presets import (
    ConfigParseError,
    SettingsStore,
    config_from_dict,
    config_to_dict,
    load_preset,
    save_preset,
)


@pytest.fixture
def custom_config():
    return VoxelConfig(
        grid_resolution=24,
        threshold=0.45,
        block_type="circle",
        block_color="#ff8800",
        use_gradient=True,
        gradient_start="#000000",
        gradient_end="#ffffff",
        invert_output=True,
        size_variation=0.25,
        block_rotation=30,
    )


def test_round_trip(tmp_path, custom_config):
    p = tmp_path / "preset.json"
    save_preset(p, custom_config)
    assert load_preset(p, VoxelConfig()) == custom_config


def test_saved_file_is_flat_camel_case(tmp_path, custom_config):
    p = tmp_path / "preset.json"
    save_preset(p, custom_config)
    data = json.loads(p.read_text(encoding="utf-8"))
    assert data == {
        "gridResolution": 24,
        "threshold": 0.45,
        "blockType": "circle",
        "blockColor": "#ff8800",
        "useGradient": True,
        "gradientStart": "#000000",
        "gradientEnd": "#ffffff",
        "invertOutput": True,
        "sizeVariation": 0.25,
        "blockRotation": 30,
    }


def test_partial_preset_changes_only_named_field(tmp_path, custom_config):
    p = tmp_path / "partial.json"
    p.write_text(json.dumps({"gridResolution": 32}), encoding="utf-8")
    loaded = load_preset(p, custom_config)
    assert loaded.grid_resolution == 32
    assert config_to_dict(loaded) == {**config_to_dict(custom_config), "gridResolution": 32}


def test_unknown_keys_ignored(custom_config):
    assert config_from_dict({"somethingElse": 1}, custom_config) == custom_config


def test_values_are_clamped():
    cfg = config_from_dict({"gridResolution": 500, "sizeVariation": 5})
    assert cfg.grid_resolution == 64
    assert cfg.size_variation == 0.9


def test_malformed_json_raises(tmp_path):
    p = tmp_path / "bad.json"
    p.write_text("{gridResolution: ", encoding="utf-8")
    with pytest.raises(ConfigParseError):
        load_preset(p, VoxelConfig())


@pytest.mark.parametrize("payload", [
    [1, 2, 3],
    {"gridResolution": "big"},
    {"useGradient": 1},
    {"threshold": True},
    {"blockColor": 123},
    {"gridResolution": 12.5},
])
def test_wrong_shapes_raise(payload):
    with pytest.raises(ConfigParseError):
        config_from_dict(payload, VoxelConfig())


def test_missing_file_raises_oserror(tmp_path):
    with pytest.raises(OSError):
        load_preset(tmp_path / "nope.json")


def test_settings_store_defaults_when_missing(tmp_path):
    store = SettingsStore(tmp_path / "settings.json")
    assert store.load() == VoxelConfig()


def test_settings_store_round_trip(tmp_path, custom_config):
    store = SettingsStore(tmp_path / "nested" / "settings.json")
    assert store.save(custom_config)
    assert store.load() == custom_config


def test_settings_store_broken_file_keeps_default(tmp_path):
    p = tmp_path / "settings.json"
    p.write_text("not json", encoding="utf-8")
    lines = []
    store = SettingsStore(p, logfn=lines.append)
    default = VoxelConfig(grid_resolution=8)
    assert store.load(default) == default
    assert lines and lines[0].startswith("ERR:")


def test_non_utf8_preset_is_a_parse_error(tmp_path):
    p = tmp_path / "binary.json"
    p.write_bytes(b'{"gridResolution": \xff\xfe}')
    with pytest.raises(ConfigParseError):
        load_preset(p, VoxelConfig())


def test_settings_store_non_utf8_file_keeps_default(tmp_path):
    p = tmp_path / "settings.json"
    p.write_bytes(b"\xff\xfe\x00garbage")
    lines = []
    default = VoxelConfig(grid_resolution=8)
    assert SettingsStore(p, logfn=lines.append).load(default) == default
    assert lines and "not UTF-8" in lines[0]
