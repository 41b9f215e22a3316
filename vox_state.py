from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from PySide6 import QtCore


@dataclass(frozen=True)
class StateKeys:
    last_input_dir: str = "last_input_dir"
    last_output_dir: str = "last_output_dir"
    last_preset_dir: str = "last_preset_dir"
    last_preview_file: str = "last_preview_file"


class StateMemory:
    """
    Folder memory for the main window using QSettings.

    Voxel settings themselves are NOT stored here; those go to the JSON
    settings file (vox_presets.SettingsStore) so they stay portable as presets.
    """

    def __init__(self, org: str, app: str, settings: Optional[QtCore.QSettings] = None):
        self.settings = settings or QtCore.QSettings(org, app)
        self.k = StateKeys()

    def _get_path(self, key: str) -> Optional[Path]:
        raw = str(self.settings.value(key, "") or "").strip()
        return Path(raw) if raw else None

    def _set_path(self, key: str, p: Optional[Path]) -> None:
        self.settings.setValue(key, str(p) if p else "")

    # ----------------- Folders -----------------

    def last_input_dir(self) -> Optional[Path]:
        p = self._get_path(self.k.last_input_dir)
        return p if p and p.is_dir() else None

    def last_output_dir(self) -> Optional[Path]:
        return self._get_path(self.k.last_output_dir)

    def last_preset_dir(self) -> Path:
        p = self._get_path(self.k.last_preset_dir)
        return p if p and p.is_dir() else Path.home()

    def last_preview_file(self) -> Optional[str]:
        p = self._get_path(self.k.last_preview_file)
        return p.name if p else None

    def remember(
        self,
        *,
        input_dir: Optional[Path] = None,
        output_dir: Optional[Path] = None,
        preset_file: Optional[Path] = None,
        preview_file: Optional[Path] = None,
    ) -> None:
        if input_dir is not None:
            self._set_path(self.k.last_input_dir, input_dir)
        if output_dir is not None:
            self._set_path(self.k.last_output_dir, output_dir)
        if preset_file is not None:
            self._set_path(self.k.last_preset_dir, self._dir_for_path(preset_file))
        if preview_file is not None:
            self._set_path(self.k.last_preview_file, preview_file)
        self.settings.sync()

    # ----------------- Utilities -----------------

    @staticmethod
    def _dir_for_path(p: Path) -> Path:
        if p.is_dir():
            return p
        # even if it doesn't exist, still derive a directory
        return p.parent if p.suffix else p
