"""Login and settings dialogs."""

from PySide6.QtCore import Qt
from PySide6.QtWidgets import (
    QCheckBox,
    QComboBox,
    QDialog,
    QDialogButtonBox,
    QFormLayout,
    QLineEdit,
    QSpinBox,
    QVBoxLayout,
)
from jsw.core.config import SaveTimerSetting

_SAVE_MODES = [
    ("Never", SaveTimerSetting.NEVER),
    ("Always", SaveTimerSetting.ALWAYS),
    ("Ask on exit", SaveTimerSetting.ASK),
]


# Helper to wrap a form in OK/Cancel buttons
def _with_buttons(dialog, form):
    outer = QVBoxLayout(dialog)
    outer.addLayout(form)
    buttons = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
    buttons.accepted.connect(dialog.accept)
    buttons.rejected.connect(dialog.reject)
    outer.addWidget(buttons)


class LoginDialog(QDialog):

    def __init__(self, parent, username="", password="", remember=False):
        super().__init__(parent)
        self.setWindowTitle("Log in to Jira")
        self.setWindowFlags(self.windowFlags() | Qt.WindowStaysOnTopHint)
        self.setModal(True)

        form = QFormLayout()
        self._username = QLineEdit(username)
        self._password = QLineEdit(password)
        self._password.setEchoMode(QLineEdit.Password)
        self._remember = QCheckBox("Remember me")
        self._remember.setChecked(remember)
        form.addRow("Username", self._username)
        form.addRow("Password", self._password)
        form.addRow("", self._remember)
        _with_buttons(self, form)

    @property
    def username(self):
        return self._username.text().strip()

    @property
    def password(self):
        return self._password.text()

    @property
    def remember(self):
        return self._remember.isChecked()


# Output values are read off the dialog by MainWindow after it closes
class SettingsDialog(QDialog):

    def __init__(self, parent, settings):
        super().__init__(parent)
        self.setWindowTitle("Settings")
        self.setWindowFlags(self.windowFlags() | Qt.WindowStaysOnTopHint)
        self.setModal(True)

        form = QFormLayout()
        self._url = QLineEdit(settings.jira_base_url)
        self._url.setPlaceholderText("https://yourcompany.atlassian.net")
        form.addRow("Jira URL", self._url)

        self._count = QSpinBox()
        self._count.setRange(1, 20)
        self._count.setValue(settings.issue_count)
        form.addRow("Issue count", self._count)

        self._save_mode = QComboBox()
        for label, _ in _SAVE_MODES:
            self._save_mode.addItem(label)
        self._save_mode.setCurrentIndex([m for _, m in _SAVE_MODES].index(settings.save_timer_state))
        form.addRow("Save timers", self._save_mode)

        self._always_on_top = QCheckBox("Always on top")
        self._always_on_top.setChecked(settings.always_on_top)
        self._minimize_to_tray = QCheckBox("Minimize to tray")
        self._minimize_to_tray.setChecked(settings.minimize_to_tray)
        self._pause_active = QCheckBox("Pause active timer when minimized")
        self._pause_active.setChecked(settings.pause_active_timer)
        self._editable = QCheckBox("Allow editing timers")
        self._editable.setChecked(settings.timer_editable)
        for box in (self._always_on_top, self._minimize_to_tray, self._pause_active, self._editable):
            form.addRow("", box)
        _with_buttons(self, form)

    def chosen(self):
        return {
            "jira_base_url": self._url.text().strip(),
            "issue_count": self._count.value(),
            "save_timer_state": _SAVE_MODES[self._save_mode.currentIndex()][1],
            "always_on_top": self._always_on_top.isChecked(),
            "minimize_to_tray": self._minimize_to_tray.isChecked(),
            "pause_active_timer": self._pause_active.isChecked(),
            "timer_editable": self._editable.isChecked(),
        }
