#!/usr/bin/env python3
r"""
vox_ui.py — SVG Voxelizer main window (Dark Neon)

Layout: Hero + Run/Progress card + (Folders, Settings) | (Preview, Log)

- Settings are loaded from the JSON settings file at startup and saved on
  every change and on close.
- Preview re-uses the rasterized grid of the selected file; only grid
  resolution or a different file triggers a new render.
- Run is disabled while a batch is in flight.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from PySide6 import QtCore, QtGui, QtSvgWidgets, QtWidgets

import vox_batch as eng
from vox_engine import BLOCK_TYPES, GRID_RANGE, VoxelConfig, count_shapes
from vox_presets import ConfigParseError, SettingsStore, load_preset, save_preset
from vox_raster import RenderError
from vox_state import StateMemory

APP_ORG = "InfiniWorks"
APP_NAME = "SvgVoxelizer"

# Digits shown by the threshold and size variation spin boxes.
SPIN_DECIMALS = 3


def spin_value(shown: float, stored: float, decimals: int = SPIN_DECIMALS) -> float:
    """
    Value to keep for a QDoubleSpinBox field. While the box still shows the
    stored value rounded to its decimals, the stored (more precise) value wins.
    """
    if abs(shown - stored) <= 0.5 * 10 ** -decimals:
        return stored
    return round(shown, decimals)


# ---------------- UI helpers ----------------
ACCENT = QtGui.QColor(0, 220, 255)

PALETTE = {
    "text": "rgba(234,242,255,225)",
    "muted": "rgba(234,242,255,150)",
    "panel": "rgba(13, 18, 38, 0.72)",
    "field": "rgba(7, 10, 18, 0.62)",
    "edge": "rgba(255,255,255,0.08)",
    "accent": "rgba(0,220,255,0.45)",
}

STYLE = """
QMainWindow {{
    background: qlineargradient(x1:0, y1:0, x2:1, y2:1, stop:0 #060812, stop:1 #0B0620);
}}
#Hero, #Card {{
    border-radius: 16px;
    background-color: {panel};
    border: 1px solid {edge};
}}
#HeroTitle {{ color: #FFFFFF; font-size: 22px; font-weight: 900; }}
#HeroSub, #StatusLine {{ color: {muted}; }}
#CardTitle {{ color: {text}; font-weight: 900; }}
QLabel, QCheckBox {{ color: {text}; }}
QLineEdit, QPlainTextEdit, QComboBox, QSpinBox, QDoubleSpinBox {{
    border-radius: 8px;
    border: 1px solid {edge};
    padding: 5px 8px;
    background-color: {field};
    color: {text};
}}
QPushButton {{
    border-radius: 10px;
    padding: 7px 12px;
    background-color: rgba(255,255,255,0.06);
    border: 1px solid {edge};
    color: {text};
    font-weight: 800;
}}
QPushButton:hover, #NeonCTA {{ border-color: {accent}; }}
QPushButton:disabled {{ color: {muted}; }}
QProgressBar {{
    border-radius: 8px;
    border: 1px solid {edge};
    text-align: center;
    color: {text};
}}
QProgressBar::chunk {{ border-radius: 8px; background-color: {accent}; }}
"""


def _shadow(widget: QtWidgets.QWidget, blur: int, color: QtGui.QColor, dy: int = 0):
    fx = QtWidgets.QGraphicsDropShadowEffect(widget)
    fx.setBlurRadius(blur)
    fx.setOffset(0, dy)
    fx.setColor(color)
    widget.setGraphicsEffect(fx)
    return fx


class CardFrame(QtWidgets.QFrame):
    """Rounded panel with an optional title; children go into body_layout()."""

    def __init__(self, title: str = "", parent=None):
        super().__init__(parent)
        self.setObjectName("Card")
        self._body = QtWidgets.QVBoxLayout(self)
        self._body.setContentsMargins(12, 10, 12, 12)
        if title:
            label = QtWidgets.QLabel(title)
            label.setObjectName("CardTitle")
            self._body.addWidget(label)
        _shadow(self, 36, QtGui.QColor(0, 0, 0, 150), dy=12)

    def body_layout(self) -> QtWidgets.QVBoxLayout:
        return self._body


class NeonCTAButton(QtWidgets.QPushButton):
    """Primary action; its glow breathes while the button is enabled."""

    def __init__(self, text: str, parent=None):
        super().__init__(text, parent)
        self.setObjectName("NeonCTA")
        self.setCursor(QtCore.Qt.PointingHandCursor)
        self._fx = _shadow(self, 30, ACCENT)

        self._pulse = QtCore.QVariantAnimation(self)
        self._pulse.setStartValue(24)
        self._pulse.setKeyValueAt(0.5, 56)
        self._pulse.setEndValue(24)
        self._pulse.setDuration(1600)
        self._pulse.setLoopCount(-1)
        self._pulse.valueChanged.connect(lambda v: self._fx.setBlurRadius(int(v)))
        self._pulse.start()

    def changeEvent(self, e: QtCore.QEvent) -> None:
        if e.type() == QtCore.QEvent.EnabledChange:
            if self.isEnabled():
                self._pulse.start()
            else:
                self._pulse.stop()
                self._fx.setBlurRadius(0)
        super().changeEvent(e)


class ColorButton(QtWidgets.QPushButton):
    """Swatch button holding a hex color; click opens QColorDialog."""
    colorChanged = QtCore.Signal(str)

    def __init__(self, color: str = "#000000", parent=None):
        super().__init__(parent)
        self.setCursor(QtCore.Qt.PointingHandCursor)
        self.setFixedWidth(110)
        self._color = color
        self._paint()
        self.clicked.connect(self._pick)  # type: ignore[arg-type]

    def color(self) -> str:
        return self._color

    def set_color(self, color: str) -> None:
        self._color = color
        self._paint()

    def _paint(self) -> None:
        self.setText(self._color)
        self.setStyleSheet(f"border-left: 18px solid {self._color};")

    def _pick(self) -> None:
        c = QtWidgets.QColorDialog.getColor(QtGui.QColor(self._color), self, "Choose color")
        if c.isValid():
            self.set_color(c.name())
            self.colorChanged.emit(self._color)


@dataclass(slots=True)
class LogLine:
    text: str
    level: str = "INFO"  # INFO/WARN/ERR


class MainWindow(QtWidgets.QMainWindow):
    def __init__(self):
        super().__init__()

        self._state = StateMemory(APP_ORG, APP_NAME)
        self._store = SettingsStore(logfn=lambda s: self._log(s, "ERR"))
        self._runner = eng.BatchRunner()
        self._preview = eng.PreviewSession()

        self._input_dir: Optional[Path] = None
        self._output_dir: Optional[Path] = None
        self._files: list[str] = []
        self._restoring = False
        self._config = VoxelConfig()

        self.setWindowTitle("SVG Voxelizer")
        self.setMinimumSize(1180, 760)

        self._log_buffer: list[LogLine] = []
        self._log_flush_timer = QtCore.QTimer(self)
        self._log_flush_timer.setInterval(80)
        self._log_flush_timer.timeout.connect(self._flush_log)
        self._log_flush_timer.start()

        self._build_ui()
        self._apply_theme()

        # ---------------- Restore state ----------------
        self._apply_config(self._store.load())
        last_in = self._state.last_input_dir()
        if last_in:
            self._set_input(last_in)
        last_out = self._state.last_output_dir()
        if last_out:
            self._set_output(last_out)

        self._wire()
        self._refresh_preview()

    # ---------------- build ----------------
    def _build_ui(self) -> None:
        root = QtWidgets.QWidget()
        self.setCentralWidget(root)

        outer = QtWidgets.QVBoxLayout(root)
        outer.setContentsMargins(14, 14, 14, 14)
        outer.setSpacing(10)

        # ---------------- HERO (top) ----------------
        hero = QtWidgets.QFrame()
        hero.setObjectName("Hero")
        h = QtWidgets.QHBoxLayout(hero)
        h.setContentsMargins(18, 16, 18, 16)
        title_wrap = QtWidgets.QVBoxLayout()
        title = QtWidgets.QLabel("SVG Voxelizer")
        title.setObjectName("HeroTitle")
        subtitle = QtWidgets.QLabel("Batch-redraw SVG icons in a blocky style.")
        subtitle.setObjectName("HeroSub")
        title_wrap.addWidget(title)
        title_wrap.addWidget(subtitle)
        h.addLayout(title_wrap, 1)
        outer.addWidget(hero)

        # ---------------- TOP PANEL (Run/Progress) ----------------
        top_controls = CardFrame("")
        outer.addWidget(top_controls)
        tcl = top_controls.body_layout()

        btn_row = QtWidgets.QHBoxLayout()
        self.btn_run = NeonCTAButton("Run")
        self.btn_run.setMinimumWidth(110)
        self.btn_run.setMaximumWidth(180)
        btn_row.addWidget(self.btn_run)
        btn_row.addStretch(1)
        tcl.addLayout(btn_row)

        self.bar = QtWidgets.QProgressBar()
        self.bar.setRange(0, 100)
        self.bar.setValue(0)
        self.status_line = QtWidgets.QLabel("Ready.")
        self.status_line.setObjectName("StatusLine")
        tcl.addWidget(self.bar)
        tcl.addWidget(self.status_line)

        # ---------------- Body ----------------
        body = QtWidgets.QWidget()
        outer.addWidget(body, 1)
        main = QtWidgets.QHBoxLayout(body)
        main.setContentsMargins(0, 0, 0, 0)
        main.setSpacing(14)

        left = QtWidgets.QVBoxLayout()
        right = QtWidgets.QVBoxLayout()
        main.addLayout(left, 7)
        main.addLayout(right, 8)

        # Folders
        folders = CardFrame("Folders")
        left.addWidget(folders)
        fg = QtWidgets.QGridLayout()
        folders.body_layout().addLayout(fg)

        self.edit_input = QtWidgets.QLineEdit()
        self.edit_input.setReadOnly(True)
        self.edit_input.setPlaceholderText("Input folder with .svg files")
        self.btn_browse_input = QtWidgets.QPushButton("Input…")
        self.edit_output = QtWidgets.QLineEdit()
        self.edit_output.setReadOnly(True)
        self.edit_output.setPlaceholderText("Output folder (default: <input>_voxelized)")
        self.btn_browse_output = QtWidgets.QPushButton("Output…")
        fg.addWidget(self.edit_input, 0, 0)
        fg.addWidget(self.btn_browse_input, 0, 1)
        fg.addWidget(self.edit_output, 1, 0)
        fg.addWidget(self.btn_browse_output, 1, 1)

        # Settings
        settings = CardFrame("Settings")
        left.addWidget(settings)
        form = QtWidgets.QFormLayout()
        settings.body_layout().addLayout(form)

        self.spin_grid = QtWidgets.QSpinBox()
        self.spin_grid.setRange(*GRID_RANGE)
        self.spin_threshold = QtWidgets.QDoubleSpinBox()
        self.spin_threshold.setRange(0.0, 1.0)
        self.spin_threshold.setSingleStep(0.05)
        self.spin_threshold.setDecimals(SPIN_DECIMALS)
        self.cmb_block = QtWidgets.QComboBox()
        self.cmb_block.addItems(list(BLOCK_TYPES))
        self.btn_color = ColorButton()
        self.chk_gradient = QtWidgets.QCheckBox("Use gradient")
        self.btn_grad_start = ColorButton()
        self.btn_grad_end = ColorButton()
        self.chk_invert = QtWidgets.QCheckBox("Invert output")
        self.spin_variation = QtWidgets.QDoubleSpinBox()
        self.spin_variation.setRange(0.0, 0.9)
        self.spin_variation.setSingleStep(0.05)
        self.spin_variation.setDecimals(SPIN_DECIMALS)
        self.spin_rotation = QtWidgets.QSpinBox()
        self.spin_rotation.setRange(0, 90)
        self.spin_rotation.setSuffix("°")

        form.addRow("Grid resolution", self.spin_grid)
        form.addRow("Threshold", self.spin_threshold)
        form.addRow("Block type", self.cmb_block)
        form.addRow("Block color", self.btn_color)
        form.addRow("", self.chk_gradient)
        form.addRow("Gradient start", self.btn_grad_start)
        form.addRow("Gradient end", self.btn_grad_end)
        form.addRow("", self.chk_invert)
        form.addRow("Size variation", self.spin_variation)
        form.addRow("Rotation", self.spin_rotation)

        preset_row = QtWidgets.QHBoxLayout()
        self.btn_load_preset = QtWidgets.QPushButton("Load preset…")
        self.btn_save_preset = QtWidgets.QPushButton("Save preset…")
        preset_row.addWidget(self.btn_load_preset)
        preset_row.addWidget(self.btn_save_preset)
        settings.body_layout().addLayout(preset_row)
        left.addStretch(1)

        # Preview
        preview = CardFrame("Preview")
        right.addWidget(preview, 3)
        self.cmb_preview = QtWidgets.QComboBox()
        preview.body_layout().addWidget(self.cmb_preview)
        self.svg_view = QtSvgWidgets.QSvgWidget()
        self.svg_view.setMinimumSize(260, 260)
        preview.body_layout().addWidget(self.svg_view, 1, QtCore.Qt.AlignCenter)
        self.preview_info = QtWidgets.QLabel("")
        preview.body_layout().addWidget(self.preview_info)

        # Log
        log_card = CardFrame("Log")
        right.addWidget(log_card, 2)
        row = QtWidgets.QHBoxLayout()
        self.cmb_filter = QtWidgets.QComboBox()
        self.cmb_filter.addItems(["All", "INFO", "WARN", "ERR"])
        self.btn_clear_log = QtWidgets.QPushButton("Clear")
        row.addWidget(self.cmb_filter)
        row.addStretch(1)
        row.addWidget(self.btn_clear_log)
        log_card.body_layout().addLayout(row)
        self.log = QtWidgets.QPlainTextEdit()
        self.log.setReadOnly(True)
        log_card.body_layout().addWidget(self.log, 1)

    def _apply_theme(self) -> None:
        f = self.font()
        f.setFamily("Segoe UI Variable" if sys.platform.startswith("win") else "Segoe UI")
        f.setPointSize(11)
        self.setFont(f)
        self.setStyleSheet(STYLE.format(**PALETTE))

    def _wire(self) -> None:
        self.btn_run.clicked.connect(self._run_convert)  # type: ignore[arg-type]
        self.btn_browse_input.clicked.connect(self._browse_input)  # type: ignore[arg-type]
        self.btn_browse_output.clicked.connect(self._browse_output)  # type: ignore[arg-type]
        self.btn_load_preset.clicked.connect(self._load_preset)  # type: ignore[arg-type]
        self.btn_save_preset.clicked.connect(self._save_preset)  # type: ignore[arg-type]
        self.btn_clear_log.clicked.connect(self._clear_log)  # type: ignore[arg-type]
        self.cmb_filter.currentTextChanged.connect(self._flush_log)  # type: ignore[arg-type]
        self.cmb_preview.currentTextChanged.connect(self._on_preview_file)  # type: ignore[arg-type]

        self.spin_grid.valueChanged.connect(self._on_settings_changed)
        self.spin_threshold.valueChanged.connect(self._on_settings_changed)
        self.cmb_block.currentIndexChanged.connect(self._on_settings_changed)
        self.btn_color.colorChanged.connect(self._on_settings_changed)
        self.chk_gradient.toggled.connect(self._on_settings_changed)
        self.btn_grad_start.colorChanged.connect(self._on_settings_changed)
        self.btn_grad_end.colorChanged.connect(self._on_settings_changed)
        self.chk_invert.toggled.connect(self._on_settings_changed)
        self.spin_variation.valueChanged.connect(self._on_settings_changed)
        self.spin_rotation.valueChanged.connect(self._on_settings_changed)

    # ---------------- config <-> widgets ----------------
    def current_config(self) -> VoxelConfig:
        return VoxelConfig(
            grid_resolution=self.spin_grid.value(),
            threshold=spin_value(self.spin_threshold.value(), self._config.threshold),
            block_type=self.cmb_block.currentText(),
            block_color=self.btn_color.color(),
            use_gradient=self.chk_gradient.isChecked(),
            gradient_start=self.btn_grad_start.color(),
            gradient_end=self.btn_grad_end.color(),
            invert_output=self.chk_invert.isChecked(),
            size_variation=spin_value(self.spin_variation.value(), self._config.size_variation),
            block_rotation=self.spin_rotation.value(),
        )

    def _apply_config(self, config: VoxelConfig) -> None:
        self._restoring = True
        self._config = config
        try:
            self.spin_grid.setValue(config.grid_resolution)
            self.spin_threshold.setValue(config.threshold)
            self.cmb_block.setCurrentText(config.block_type)
            self.btn_color.set_color(config.block_color)
            self.chk_gradient.setChecked(config.use_gradient)
            self.btn_grad_start.set_color(config.gradient_start)
            self.btn_grad_end.set_color(config.gradient_end)
            self.chk_invert.setChecked(config.invert_output)
            self.spin_variation.setValue(config.size_variation)
            self.spin_rotation.setValue(config.block_rotation)
        finally:
            self._restoring = False

    def _on_settings_changed(self, *_args) -> None:
        if self._restoring:
            return
        self._config = self.current_config()
        self._store.save(self._config)
        self._refresh_preview()

    # ---------------- folders ----------------
    def _set_input(self, p: Path) -> None:
        self._input_dir = Path(p)
        self.edit_input.setText(str(self._input_dir))
        self._files = self._runner.gateway.list_svg_files(self._input_dir)
        if self._output_dir is None:
            self._set_output(eng.default_output_dir(self._input_dir))

        self.cmb_preview.blockSignals(True)
        self.cmb_preview.clear()
        self.cmb_preview.addItems(self._files)
        last = self._state.last_preview_file()
        if last and last in self._files:
            self.cmb_preview.setCurrentText(last)
        self.cmb_preview.blockSignals(False)
        self._on_preview_file(self.cmb_preview.currentText())

        self.btn_run.setText(f"Run ({len(self._files)} files)")
        self._log(f"Found {len(self._files)} SVG file(s) in {self._input_dir}")

    def _set_output(self, p: Path) -> None:
        self._output_dir = Path(p)
        self.edit_output.setText(str(self._output_dir))

    def _browse_input(self) -> None:
        start = str(self._input_dir or QtCore.QDir.homePath())
        p = QtWidgets.QFileDialog.getExistingDirectory(self, "Choose SVG folder", start)
        if p:
            self._set_input(Path(p))
            self._state.remember(input_dir=Path(p))

    def _browse_output(self) -> None:
        start = str(self._output_dir or self._input_dir or QtCore.QDir.homePath())
        p = QtWidgets.QFileDialog.getExistingDirectory(self, "Choose output folder", start)
        if p:
            self._set_output(Path(p))
            self._state.remember(output_dir=Path(p))

    # ---------------- presets ----------------
    def apply_preset_file(self, path: Path) -> bool:
        """Load a preset onto the current settings; on failure keep them and say why."""
        try:
            config = load_preset(Path(path), self._config)
        except (ConfigParseError, OSError) as e:
            self._log(f"ERR: Preset not loaded: {e}", "ERR")
            QtWidgets.QMessageBox.warning(self, "SVG Voxelizer", f"Preset could not be loaded:\n{e}")
            return False
        self._apply_config(config)
        self._store.save(config)
        self._state.remember(preset_file=Path(path))
        self._log(f"Preset loaded: {Path(path).name}")
        self._refresh_preview()
        return True

    def _load_preset(self) -> None:
        p, _ = QtWidgets.QFileDialog.getOpenFileName(
            self, "Load preset", str(self._state.last_preset_dir()), "Presets (*.json)"
        )
        if p:
            self.apply_preset_file(Path(p))

    def _save_preset(self) -> None:
        p, _ = QtWidgets.QFileDialog.getSaveFileName(
            self, "Save preset", str(self._state.last_preset_dir() / "preset.json"), "Presets (*.json)"
        )
        if not p:
            return
        try:
            save_preset(Path(p), self.current_config())
        except OSError as e:
            self._log(f"ERR: Preset not saved: {e}", "ERR")
            return
        self._state.remember(preset_file=Path(p))
        self._log(f"Preset saved: {Path(p).name}")

    # ---------------- preview ----------------
    def _on_preview_file(self, name: str) -> None:
        if self._input_dir and name:
            self._preview.set_source(self._input_dir / name)
            self._state.remember(preview_file=self._input_dir / name)
        else:
            self._preview.set_source(None)
        self._refresh_preview()

    def _refresh_preview(self) -> None:
        try:
            svg_text = self._preview.render(self.current_config())
        except (RenderError, OSError, UnicodeDecodeError) as e:
            self.svg_view.load(QtCore.QByteArray())
            self.preview_info.setText(f"Preview failed: {e}")
            return
        if svg_text is None:
            self.svg_view.load(QtCore.QByteArray())
            self.preview_info.setText("Choose an input folder to preview.")
            return
        self.svg_view.load(QtCore.QByteArray(svg_text.encode("utf-8")))
        self.preview_info.setText(f"{count_shapes(svg_text)} shapes")

    # ---------------- logging ----------------
    def _log(self, msg: str, level: str = "INFO") -> None:
        if level == "INFO" and msg.startswith("ERR:"):
            level = "ERR"
        self._log_buffer.append(LogLine(text=msg, level=level))

    def _clear_log(self) -> None:
        self.log.clear()
        self._log_buffer.clear()

    def _flush_log(self) -> None:
        if not self._log_buffer:
            return

        want = self.cmb_filter.currentText()
        lines = self._log_buffer[:]
        self._log_buffer.clear()

        out = [ln.text for ln in lines if want == "All" or ln.level == want]
        if out:
            self.log.appendPlainText("\n".join(out))
            sb = self.log.verticalScrollBar()
            sb.setValue(sb.maximum())

    # ---------------- run ----------------
    def _on_progress(self, i: int, total: int, name: str) -> None:
        self.status_line.setText(f"Processing {i}/{total}: {name}")
        self.bar.setValue(int((i - 1) * 100 / max(1, total)))
        QtWidgets.QApplication.processEvents()

    def _run_convert(self) -> None:
        if self._runner.running:
            return
        if not self._input_dir or not self._files:
            self._log("ERR: Choose an input folder with SVG files first.", "ERR")
            return
        output_dir = self._output_dir or eng.default_output_dir(self._input_dir)
        config = self.current_config()

        self._log("=== RUN ===")
        self._log(f"Input: {self._input_dir}")
        self._log(f"Output: {output_dir}")
        self.btn_run.setEnabled(False)
        self.bar.setValue(0)
        try:
            report = self._runner.start(
                self._input_dir,
                output_dir,
                config,
                logfn=lambda s: self._log(s),
                progressfn=self._on_progress,
            )
            if report is not None:
                self.status_line.setText(
                    f"Done. processed={report.processed} saved={report.saved} errors={report.failed}"
                )
                self.bar.setValue(100)
        finally:
            self.btn_run.setEnabled(True)

    # --------------- shutdown ---------------
    def closeEvent(self, e: QtGui.QCloseEvent) -> None:
        self._store.save(self.current_config())
        super().closeEvent(e)


def main() -> None:
    app = QtWidgets.QApplication(sys.argv)
    app.setApplicationName(APP_NAME)
    app.setOrganizationName(APP_ORG)

    w = MainWindow()
    w.show()

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
