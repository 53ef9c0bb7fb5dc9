"""Owns every issue timer and keeps at most one of them running.

All mutations happen on the thread the coordinator lives on (the Qt GUI
thread in the app). Remote reports run on a small thread pool and their
results come back through a Qt signal, which Qt queues onto the
coordinator's thread, so report completions are serialized with user
commands and ticks.
"""

import time
from concurrent.futures import ThreadPoolExecutor

from PySide6.QtCore import QObject, QTimer, Signal, Slot

from jsw.common.logger import log
from jsw.core.errors import InvalidState
from jsw.core.timer_state import IssueTimer, PersistedIssue
from jsw.util import format_time

TICK_INTERVAL_MS = 5000


class TimerCoordinator(QObject):

    timerStarted = Signal(int)
    outputUpdated = Signal(int, str)
    reportFailed = Signal(int, str, str)
    _reportDone = Signal(int, str, object)

    def __init__(self, client, count=1, executor=None, parent=None):
        super().__init__(parent)
        self._client = client
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="jsw-report")
        # (slot index, issue key) pairs with a report still out
        self._in_flight = set()
        self._ticker = None
        self.timer_editable = False
        self.slots = []
        self._reportDone.connect(self._on_report_done)
        self.resize(count)

    # ------------------------------------------------------------------ #
    #  Slot access                                                         #
    # ------------------------------------------------------------------ #

    # Shared with the session for other network calls that must stay off this thread
    @property
    def executor(self):
        return self._executor

    def __len__(self):
        return len(self.slots)

    def _slot(self, index):
        if not 0 <= index < len(self.slots):
            raise IndexError(f"No timer slot {index} (have {len(self.slots)})")
        return self.slots[index]

    def snapshot(self, index):
        return self._slot(index).snapshot()

    def snapshots(self):
        return [t.snapshot() for t in self.slots]

    def active_slot(self):
        for index, timer in enumerate(self.slots):
            if timer.running:
                return index
        return None

    def _emit_output(self, index):
        timer = self.slots[index]
        self.outputUpdated.emit(index, format_time(timer.elapsed) if timer.assigned else "")

    # ------------------------------------------------------------------ #
    #  Commands                                                            #
    # ------------------------------------------------------------------ #

    # Grows with empty slots or drops trailing ones. A running timer among the dropped slots is paused first so its
    # final time is materialized; the dropped slots are handed back.
    def resize(self, count, now=None):
        if count < 1:
            raise ValueError(f"Need at least one timer slot, got {count}")
        removed = []
        while len(self.slots) > count:
            index = len(self.slots) - 1
            timer = self.slots.pop()
            if timer.running:
                timer.pause(now)
                log.info(f"Paused running timer '{timer.issue_key}' before removing slot {index}")
            removed.append(timer.snapshot())
        removed.reverse()
        while len(self.slots) < count:
            self.slots.append(IssueTimer())
        log.info(f"Resized timers to {count} slots ({len(removed)} removed)")
        return removed

    # Pauses whatever else is running, then starts the requested slot.
    def request_start(self, index, now=None):
        timer = self._slot(index)
        if not timer.assigned:
            raise InvalidState(f"Slot {index} has no issue assigned")
        if timer.running:
            return
        now = time.monotonic() if now is None else now
        for other_index, other in enumerate(self.slots):
            if other_index != index and other.running:
                other.pause(now)
                self._emit_output(other_index)
        timer.start(now)
        log.info(f"Started timer for '{timer.issue_key}' in slot {index}")
        self.timerStarted.emit(index)

    def request_pause(self, index, now=None):
        timer = self._slot(index)
        if timer.running:
            timer.pause(now)
            log.info(f"Paused timer for '{timer.issue_key}' in slot {index}")
            self._emit_output(index)

    def pause_all(self, now=None):
        now = time.monotonic() if now is None else now
        for index, timer in enumerate(self.slots):
            if timer.running:
                self.request_pause(index, now)

    # Assigning a different key restarts the slot from zero, an empty key returns it to idle. Either way the slot
    # has to be paused.
    def set_issue_key(self, index, issue_key):
        timer = self._slot(index)
        issue_key = (issue_key or "").strip()
        if issue_key == timer.issue_key:
            return
        timer.reassign(issue_key)
        self._emit_output(index)

    def set_elapsed(self, index, seconds):
        if not self.timer_editable:
            raise InvalidState("Editing timers is disabled in the settings")
        self._slot(index).set_elapsed(seconds)
        self._emit_output(index)

    def reset(self, index):
        self._slot(index).set_elapsed(0)
        self._emit_output(index)

    # ------------------------------------------------------------------ #
    #  Tick / reporting                                                    #
    # ------------------------------------------------------------------ #

    # Flushes every slot and pushes the new values out. The local flush always happens, remote reports are
    # best-effort and a slot that failed just gets reported again next tick.
    def tick(self, now=None):
        now = time.monotonic() if now is None else now
        for index, timer in enumerate(self.slots):
            timer.flush(now)
            self._emit_output(index)

        if not self._client.is_authenticated:
            return
        for index, timer in enumerate(self.slots):
            if timer.assigned and (index, timer.issue_key) not in self._in_flight:
                self._dispatch_report(index, timer.issue_key, timer.elapsed)

    def _dispatch_report(self, index, issue_key, elapsed):
        self._in_flight.add((index, issue_key))
        future = self._executor.submit(self._client.report_elapsed, issue_key, elapsed)
        future.add_done_callback(
            lambda f, i=index, k=issue_key: self._reportDone.emit(i, k, None if f.cancelled() else f.exception())
        )

    # Runs on the coordinator's thread. Only clears its own (slot, key) marker, so a late result for an old key
    # never frees up the slot while the new key's report is still out. Results for a slot that has since been
    # removed or pointed at another issue are dropped.
    @Slot(int, str, object)
    def _on_report_done(self, index, issue_key, error):
        self._in_flight.discard((index, issue_key))
        if index >= len(self.slots) or self.slots[index].issue_key != issue_key:
            log.debug(f"Discarding stale report result for '{issue_key}' (slot {index})")
            return
        if error is None:
            log.debug(f"Reported elapsed time for '{issue_key}'")
            return
        log.warning(f"Reporting elapsed time for '{issue_key}' failed, will retry next tick: {error}")
        self.reportFailed.emit(index, issue_key, str(error))

    def start_ticking(self, interval_ms=TICK_INTERVAL_MS):
        if self._ticker is None:
            self._ticker = QTimer(self)
            self._ticker.timeout.connect(self.tick)
        self._ticker.start(interval_ms)

    def stop_ticking(self):
        if self._ticker is not None:
            self._ticker.stop()

    # ------------------------------------------------------------------ #
    #  Persistence                                                         #
    # ------------------------------------------------------------------ #

    def export_for_persistence(self, now=None):
        now = time.monotonic() if now is None else now
        for timer in self.slots:
            timer.flush(now)
        return [PersistedIssue(t.issue_key, t.elapsed) for t in self.slots]

    # Seeds slots in order from a saved list. Nothing resumes running across a restart, and entries past the
    # current slot count are ignored.
    def import_from_persistence(self, issues):
        self.pause_all()
        if len(issues) > len(self.slots):
            log.warning(f"Ignoring {len(issues) - len(self.slots)} saved issues beyond the {len(self.slots)} slots")
        for index, issue in enumerate(issues[:len(self.slots)]):
            self.slots[index] = IssueTimer(issue.issue_key, issue.elapsed)
        for index in range(len(self.slots)):
            self._emit_output(index)

    def shutdown(self, now=None):
        self.stop_ticking()
        self.pause_all(now)
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)
