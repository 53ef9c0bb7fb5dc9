import sys
from PySide6.QtCore import Qt, QEvent, QTimer
from PySide6.QtGui import QFont
from PySide6.QtWidgets import (
    QApplication,
    QDialog,
    QHBoxLayout,
    QInputDialog,
    QLabel,
    QLineEdit,
    QMainWindow,
    QMenu,
    QMessageBox,
    QPushButton,
    QStyle,
    QSystemTrayIcon,
    QVBoxLayout,
    QWidget,
)
from jsw.common.logger import log
from jsw.common.setup import PATHS
from jsw.core.config import SaveTimerSetting
from jsw.core.errors import AuthError, InvalidState
from jsw.core.session import StopwatchSession
from jsw.ui.dialogs import LoginDialog, SettingsDialog
from jsw.util import format_time, parse_time_input


# One row of widgets per timer slot. Holds no timer state, everything shown comes from coordinator signals.
class IssueRow(QWidget):

    def __init__(self, window, index):
        super().__init__()
        self.index = index
        self._window = window

        lay = QHBoxLayout(self)
        lay.setContentsMargins(0, 0, 0, 0)

        self.key_edit = QLineEdit()
        self.key_edit.setPlaceholderText("ISSUE-123")
        self.key_edit.setFixedWidth(110)
        self.key_edit.editingFinished.connect(lambda: window._on_key_edited(self.index))
        lay.addWidget(self.key_edit)

        self.time_lbl = QLabel("")
        self.time_lbl.setFont(QFont("Consolas", 12))
        self.time_lbl.setMinimumWidth(80)
        self.time_lbl.setAlignment(Qt.AlignCenter)
        self.time_lbl.setContextMenuPolicy(Qt.CustomContextMenu)
        self.time_lbl.customContextMenuRequested.connect(
            lambda pos: window._on_time_context_menu(self.index, self.time_lbl.mapToGlobal(pos))
        )
        lay.addWidget(self.time_lbl)

        self.toggle_btn = QPushButton("Start")
        self.toggle_btn.clicked.connect(lambda _=False: window._on_toggle(self.index))
        lay.addWidget(self.toggle_btn)

    def set_running(self, running):
        self.toggle_btn.setText("Pause" if running else "Start")
        f = self.time_lbl.font()
        f.setBold(running)
        self.time_lbl.setFont(f)


class MainWindow(QMainWindow):

    def __init__(self, session):
        super().__init__()
        self.setWindowTitle("Jira StopWatch")
        self.session = session
        self.coordinator = session.coordinator
        self._rows = []
        self._tray = None

        central = QWidget()
        self.setCentralWidget(central)
        self._main_lay = QVBoxLayout(central)
        self._rows_lay = QVBoxLayout()
        self._main_lay.addLayout(self._rows_lay)

        footer = QHBoxLayout()
        self._login_btn = QPushButton("Log in")
        self._login_btn.clicked.connect(self._login)
        footer.addWidget(self._login_btn)
        self._status_lbl = QLabel("")
        footer.addWidget(self._status_lbl, 1)
        self._cfg_btn = QPushButton("Settings")
        self._cfg_btn.clicked.connect(self._on_config)
        footer.addWidget(self._cfg_btn)
        self._main_lay.addLayout(footer)

        self.coordinator.timerStarted.connect(self._on_timer_started)
        self.coordinator.outputUpdated.connect(self._on_output)
        self.coordinator.reportFailed.connect(self._on_report_failed)
        self.session.autoLoginFinished.connect(self._on_auto_login)

        needs_login = self.session.start()
        self._apply_window_flags()
        self._rebuild_rows()
        self.coordinator.tick()
        self.coordinator.start_ticking()

        if needs_login:
            QTimer.singleShot(0, self._login)

    # ------------------------------------------------------------------ #
    #  Rows                                                                #
    # ------------------------------------------------------------------ #

    def _rebuild_rows(self):
        while len(self._rows) > len(self.coordinator):
            row = self._rows.pop()
            self._rows_lay.removeWidget(row)
            row.deleteLater()
        while len(self._rows) < len(self.coordinator):
            row = IssueRow(self, len(self._rows))
            self._rows.append(row)
            self._rows_lay.addWidget(row)
        for index, snap in enumerate(self.coordinator.snapshots()):
            row = self._rows[index]
            row.key_edit.setText(snap.issue_key)
            row.time_lbl.setText(format_time(snap.elapsed) if snap.issue_key else "")
            row.set_running(snap.running)
        QTimer.singleShot(0, self.adjustSize)

    def _apply_window_flags(self):
        self.setWindowFlag(Qt.WindowStaysOnTopHint, self.session.settings.always_on_top)

    # ------------------------------------------------------------------ #
    #  Coordinator signals                                                 #
    # ------------------------------------------------------------------ #

    def _on_timer_started(self, index):
        for row in self._rows:
            row.set_running(row.index == index)

    def _on_output(self, index, text):
        if index < len(self._rows):
            self._rows[index].time_lbl.setText(text)
            self._rows[index].set_running(self.coordinator.snapshot(index).running)

    def _on_report_failed(self, index, issue_key, message):
        self._status_lbl.setText(f"{issue_key}: {message}")

    def _on_auto_login(self, error):
        if error is None:
            self._status_lbl.setText(f"Logged in as {self.session.settings.username}")
        else:
            self._status_lbl.setText(str(error))
            self._login()

    # ------------------------------------------------------------------ #
    #  Button handlers                                                     #
    # ------------------------------------------------------------------ #

    def _on_toggle(self, index):
        try:
            if self.coordinator.snapshot(index).running:
                self.coordinator.request_pause(index)
            else:
                self.coordinator.request_start(index)
        except InvalidState as e:
            self._status_lbl.setText(str(e))

    def _on_key_edited(self, index):
        row = self._rows[index]
        try:
            self.coordinator.set_issue_key(index, row.key_edit.text())
        except InvalidState as e:
            row.key_edit.setText(self.coordinator.snapshot(index).issue_key)
            self._status_lbl.setText(str(e))

    def _on_time_context_menu(self, index, global_pos):
        menu = QMenu(self)
        edit_act = menu.addAction("Edit time...")
        edit_act.setEnabled(self.coordinator.timer_editable)
        reset_act = menu.addAction("Reset")
        chosen = menu.exec(global_pos)
        try:
            if chosen == edit_act:
                text, ok = QInputDialog.getText(self, "Edit time", "Time (H:MM:SS, M:SS or minutes):")
                if ok:
                    seconds = parse_time_input(text)
                    if seconds is None:
                        self._status_lbl.setText(f"Couldn't read '{text}' as a time")
                    else:
                        self.coordinator.set_elapsed(index, seconds)
            elif chosen == reset_act:
                self.coordinator.reset(index)
        except InvalidState as e:
            self._status_lbl.setText(str(e))

    def _login(self):
        s = self.session.settings
        dlg = LoginDialog(self, s.username, s.password, s.remember_credentials)
        while dlg.exec() == QDialog.Accepted:
            try:
                self.session.login(dlg.username, dlg.password, dlg.remember)
                self._status_lbl.setText(f"Logged in as {dlg.username}")
                return
            except AuthError as e:
                QMessageBox.warning(self, "Login failed", str(e))

    def _on_config(self):
        dlg = SettingsDialog(self, self.session.settings)
        if dlg.exec() == QDialog.Accepted:
            self.session.apply_preferences(**dlg.chosen())
            self._apply_window_flags()
            self.show()
            self._rebuild_rows()

    # ------------------------------------------------------------------ #
    #  Window events                                                       #
    # ------------------------------------------------------------------ #

    def changeEvent(self, event):
        if event.type() == QEvent.WindowStateChange and self.isMinimized():
            self.session.on_focus_lost()
            if self.session.settings.minimize_to_tray and QSystemTrayIcon.isSystemTrayAvailable():
                QTimer.singleShot(0, self._hide_to_tray)
        super().changeEvent(event)

    def _hide_to_tray(self):
        if self._tray is None:
            self._tray = QSystemTrayIcon(self.style().standardIcon(QStyle.SP_ComputerIcon), self)
            self._tray.activated.connect(self._restore_from_tray)
        self._tray.show()
        self.hide()

    def _restore_from_tray(self, _reason):
        self._tray.hide()
        self.showNormal()
        self.activateWindow()

    def closeEvent(self, event):
        keep_elapsed = None
        if self.session.settings.save_timer_state == SaveTimerSetting.ASK:
            keep_elapsed = QMessageBox.question(
                self, "Save timers", "Keep the tracked times for next time?"
            ) == QMessageBox.Yes
        try:
            self.session.shutdown(keep_elapsed)
        except OSError as e:
            log.exception("Failed to save settings on exit")
            QMessageBox.warning(self, "Save Error", f"Failed to save settings:\n{e}")
        event.accept()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main():
    app = QApplication(sys.argv)
    window = MainWindow(StopwatchSession.from_paths(PATHS))
    window.show()
    sys.exit(app.exec())
