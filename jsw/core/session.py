"""Startup/shutdown glue between the settings file, the Jira client and the timers."""

from PySide6.QtCore import QObject, Signal, Slot

from jsw.common.logger import log
from jsw.core.config import SaveTimerSetting, SettingsStore
from jsw.core.coordinator import TimerCoordinator
from jsw.core.errors import AuthError
from jsw.core.jira_client import JiraClient
from jsw.core.timer_state import PersistedIssue
from jsw.core.vault import CredentialVault


class StopwatchSession(QObject):

    # Emitted once the background login with remembered credentials is done. Carries the AuthError, or None on
    # success.
    autoLoginFinished = Signal(object)
    _loginDone = Signal(str, object)

    def __init__(self, store, client=None, coordinator=None, parent=None):
        super().__init__(parent)
        self.store = store
        self.client = client if client is not None else JiraClient()
        self.coordinator = coordinator if coordinator is not None else TimerCoordinator(self.client)
        self.settings = None
        self._loginDone.connect(self._on_login_done)

    @classmethod
    def from_paths(cls, paths):
        vault = CredentialVault(paths.salt_file)
        return cls(SettingsStore(paths.settings_file, vault))

    # Loads settings, lays out the timers and, with remembered credentials, starts logging in on the coordinator's
    # executor. Returns True when there is nothing to log in with and the caller should ask the user right away.
    def start(self):
        self.settings = s = self.store.load()
        self.client.base_url = s.jira_base_url
        self.coordinator.timer_editable = s.timer_editable
        self.coordinator.resize(max(1, s.issue_count))

        if s.persisted_issues:
            self.coordinator.import_from_persistence(s.persisted_issues)
        else:
            self.coordinator.import_from_persistence([PersistedIssue(key) for key in s.issue_keys])

        if not s.credentials_restored:
            log.warning("Credentials could not be restored, a new login is needed.")
        if not (s.username and s.password):
            return True

        future = self.coordinator.executor.submit(self.client.authenticate, s.username, s.password)
        future.add_done_callback(
            lambda f, user=s.username: self._loginDone.emit(user, None if f.cancelled() else f.exception())
        )
        return False

    # Runs on the session's thread, queued there from the executor.
    @Slot(str, object)
    def _on_login_done(self, username, error):
        if error is None:
            log.info(f"Automatic login as '{username}' succeeded.")
        else:
            log.warning(f"Automatic login as '{username}' failed: {error}")
            if not isinstance(error, AuthError):
                error = AuthError(str(error))
        self.autoLoginFinished.emit(error)

    # AuthError propagates so the UI can prompt again. Timers aren't touched either way.
    def login(self, username, password, remember):
        self.client.authenticate(username, password)
        s = self.settings
        s.remember_credentials = remember
        if remember:
            s.username = username
            s.password = password
        else:
            s.username = ""
            s.password = ""
        s.first_run = False

    def apply_preferences(self, jira_base_url=None, issue_count=None, always_on_top=None, minimize_to_tray=None,
                          pause_active_timer=None, timer_editable=None, save_timer_state=None, current_filter=None):
        s = self.settings
        if jira_base_url is not None and jira_base_url != s.jira_base_url:
            s.jira_base_url = jira_base_url
            self.client.base_url = jira_base_url
        if issue_count is not None and issue_count != s.issue_count:
            removed = self.coordinator.resize(issue_count)
            for snap in removed:
                if snap.issue_key:
                    log.info(f"Dropped slot for '{snap.issue_key}' with {snap.elapsed:.0f}s tracked")
            s.issue_count = issue_count
        if timer_editable is not None:
            s.timer_editable = timer_editable
            self.coordinator.timer_editable = timer_editable
        if save_timer_state is not None:
            s.save_timer_state = SaveTimerSetting(save_timer_state)
        if always_on_top is not None:
            s.always_on_top = always_on_top
        if minimize_to_tray is not None:
            s.minimize_to_tray = minimize_to_tray
        if pause_active_timer is not None:
            s.pause_active_timer = pause_active_timer
        if current_filter is not None:
            s.current_filter = current_filter

    # Called by the UI when the window is minimized or loses focus.
    def on_focus_lost(self):
        if self.settings.pause_active_timer:
            self.coordinator.pause_all()

    # Flattens the timers back into the settings and writes them. `keep_elapsed` answers the question when
    # saveTimerState is ASK; with ASK and no answer the times are not kept.
    def save(self, keep_elapsed=None):
        s = self.settings
        issues = self.coordinator.export_for_persistence()
        s.issue_keys = [i.issue_key for i in issues]
        mode = s.save_timer_state
        if mode == SaveTimerSetting.ALWAYS or (mode == SaveTimerSetting.ASK and keep_elapsed):
            s.persisted_issues = issues
        else:
            s.persisted_issues = []
        if not s.remember_credentials:
            s.username = ""
            s.password = ""
        s.issue_count = len(self.coordinator)
        self.store.save(s)

    # Pauses first so the final times are materialized, then saves.
    def shutdown(self, keep_elapsed=None):
        self.coordinator.shutdown()
        self.save(keep_elapsed)
        log.info("Session shut down")
