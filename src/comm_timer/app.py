from __future__ import annotations

import sys
import logging
from pathlib import Path
from typing import Optional

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QIcon, QMouseEvent
from PyQt6.QtWidgets import (
    QApplication,
    QCheckBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QListWidget,
    QMainWindow,
    QPushButton,
    QSpinBox,
    QSystemTrayIcon,
    QVBoxLayout,
    QWidget,
)

from .alert_dispatcher import DEFAULT_TITLE, AlertDispatcher
from .channels import AlertChannels
from .config import EngineConfig
from .engine import CommTimeEngine
from .logging_setup import configure_logging
from .qt_channels import (
    NoVibrator,
    QtAudioSink,
    TrayNotifier,
    WindowFocusSink,
    WindowTitleSink,
    qt_sample_rate,
)
from .timefmt import format_hms
from .tone import ToneSynthesizer

logger = logging.getLogger(__name__)

FLASH_STYLE = "QWidget#central { background-color: #dc2626; }"


class MainWindow(QMainWindow):  # pragma: no cover - UI
    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        super().__init__()
        self.setWindowTitle(DEFAULT_TITLE)
        self.resize(420, 560)

        self._tray = QSystemTrayIcon(self)
        self._tray.setToolTip(DEFAULT_TITLE)
        self._tray.setIcon(QIcon())
        self._tray.setVisible(True)

        channels = AlertChannels(
            audio=QtAudioSink(self),
            vibrator=NoVibrator(),
            notifier=TrayNotifier(self._tray),
            title=WindowTitleSink(self),
            focus=WindowFocusSink(self),
        )
        dispatcher = AlertDispatcher(ToneSynthesizer(qt_sample_rate), channels)
        self.engine = CommTimeEngine(dispatcher, config)

        central = QWidget()
        central.setObjectName("central")
        self._central = central
        layout = QVBoxLayout(central)

        # Ringing banner
        self.banner = QPushButton("Stop alarm")
        self.banner.setVisible(False)
        self.banner.clicked.connect(self.engine.acknowledge)
        layout.addWidget(self.banner)

        # Meeting timer
        self.meeting_label = QLabel(format_hms(0))
        self.meeting_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.meeting_label.setStyleSheet("font-size: 36px;")
        layout.addWidget(self.meeting_label)
        row = QHBoxLayout()
        self.meeting_btn = QPushButton("Start")
        self.meeting_btn.clicked.connect(lambda: self.engine.toggle_meeting())
        reset_btn = QPushButton("Reset")
        reset_btn.clicked.connect(self.engine.reset_meeting)
        row.addWidget(self.meeting_btn)
        row.addWidget(reset_btn)
        layout.addLayout(row)

        cd_row = QHBoxLayout()
        self.countdown_cb = QCheckBox("Count down to")
        self.target_edit = QLineEdit()
        self.target_edit.setPlaceholderText("HH:MM")
        self.countdown_cb.toggled.connect(self._apply_countdown)
        self.target_edit.editingFinished.connect(self._apply_countdown)
        cd_row.addWidget(self.countdown_cb)
        cd_row.addWidget(self.target_edit)
        layout.addLayout(cd_row)

        # Alarm points
        self.points_list = QListWidget()
        layout.addWidget(self.points_list)
        pt_row = QHBoxLayout()
        self.point_minutes = QSpinBox()
        self.point_minutes.setRange(1, 600)
        add_btn = QPushButton("Add alarm point")
        add_btn.clicked.connect(lambda: self.engine.add_alarm_point(self.point_minutes.value()))
        del_btn = QPushButton("Remove selected")
        del_btn.clicked.connect(self._remove_selected_point)
        pt_row.addWidget(self.point_minutes)
        pt_row.addWidget(add_btn)
        pt_row.addWidget(del_btn)
        layout.addLayout(pt_row)

        # Pomodoro
        self.pomo_label = QLabel()
        self.pomo_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.pomo_label.setStyleSheet("font-size: 24px;")
        layout.addWidget(self.pomo_label)
        pomo_row = QHBoxLayout()
        self.pomo_btn = QPushButton("Start pomodoro")
        self.pomo_btn.clicked.connect(lambda: self.engine.toggle_pomodoro())
        pomo_reset = QPushButton("Reset")
        pomo_reset.clicked.connect(self.engine.reset_pomodoro)
        pomo_row.addWidget(self.pomo_btn)
        pomo_row.addWidget(pomo_reset)
        layout.addLayout(pomo_row)

        self.setCentralWidget(central)

        e = self.engine
        e.meeting.seconds_changed.connect(lambda s: self.meeting_label.setText(format_hms(s)))
        e.meeting.state_changed.connect(lambda s: self.meeting_btn.setText("Pause" if s == "running" else "Start"))
        e.alarm_points.changed.connect(self._refresh_points)
        e.alarm_points.remaining_changed.connect(self._refresh_points)
        e.pomodoro.seconds_changed.connect(lambda _s: self._refresh_pomodoro())
        e.pomodoro.phase_changed.connect(lambda _p: self._refresh_pomodoro())
        e.pomodoro.cycle_completed.connect(lambda _c: self._refresh_pomodoro())
        e.pomodoro.running_changed.connect(
            lambda r: self.pomo_btn.setText("Pause pomodoro" if r else "Start pomodoro")
        )
        e.dispatcher.ringing_changed.connect(self.banner.setVisible)
        e.dispatcher.flashing_changed.connect(self._apply_flash)
        e.dispatcher.diagnostic.connect(lambda ch, msg: logger.debug("channel %s: %s", ch, msg))

        self._refresh_points()
        self._refresh_pomodoro()
        e.start_clock()

    # --- Slots ----------------------------------------------------------
    def mousePressEvent(self, event: QMouseEvent) -> None:
        self.engine.acknowledge_by_click()
        super().mousePressEvent(event)

    def _apply_countdown(self) -> None:
        target = self.target_edit.text().strip() or None
        self.engine.set_countdown(self.countdown_cb.isChecked(), target)

    def _apply_flash(self, flashing: bool) -> None:
        self._central.setStyleSheet(FLASH_STYLE if flashing else "")

    def _remove_selected_point(self) -> None:
        item = self.points_list.currentItem()
        if item is not None:
            self.engine.remove_alarm_point(item.data(Qt.ItemDataRole.UserRole))

    def _refresh_points(self) -> None:
        self.points_list.clear()
        for p in self.engine.alarm_points.points:
            mark = "done" if p.done else format_hms(p.remaining_seconds)
            self.points_list.addItem(f"{p.target_minutes} min  ({mark})")
            self.points_list.item(self.points_list.count() - 1).setData(Qt.ItemDataRole.UserRole, p.id)

    def _refresh_pomodoro(self) -> None:
        pomo = self.engine.pomodoro
        limit = "∞" if pomo.config().infinite_mode else str(pomo.config().cycles)
        phase = "Work" if pomo.phase == "work" else "Break"
        self.pomo_label.setText(
            f"{phase} {format_hms(pomo.elapsed_seconds)}  cycle {pomo.cycles_completed}/{limit}"
        )


def run(argv: Optional[list[str]] = None) -> int:  # pragma: no cover
    if argv is None:
        argv = sys.argv
    app = QApplication(argv)
    data_dir = Path.home() / ".comm_timer"
    configure_logging(data_dir)
    window = MainWindow()
    window.show()
    return app.exec()


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(run())
