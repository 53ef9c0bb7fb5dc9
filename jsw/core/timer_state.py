import time
from dataclasses import dataclass
from jsw.common.logger import log
from jsw.core.errors import InvalidState


# Read-only view of a timer handed out to the UI and the persistence layer.
@dataclass(frozen=True)
class TimerSnapshot:
    issue_key: str
    elapsed: float
    running: bool


# This object handles actual time tracking for a single issue. It uses monotonic seconds for accuracy (clock change
# immunity). Every method takes an optional `now` so callers (and tests) can drive the clock themselves.
#
# Elapsed time only ever moves at flush/pause time, nothing computes a live value on the side.
class IssueTimer:

    def __init__(self, issue_key="", elapsed=0.0):
        self.issue_key = issue_key
        self.elapsed = float(elapsed)
        self.running = False
        self.last_tick_at = None

        log.debug(f"Initialized new timer '{issue_key}', with elapsed of {elapsed}")

    @property
    def assigned(self):
        return bool(self.issue_key)

    # Start and pause methods for the timer. Neither knows about other timers, the coordinator is the one keeping
    # only one of them running.
    def start(self, now=None):
        if not self.running:
            self.running = True
            self.last_tick_at = time.monotonic() if now is None else now
            log.debug(f"Started timer '{self.issue_key}' at mono {self.last_tick_at}")
    def pause(self, now=None):
        if self.running:
            now = time.monotonic() if now is None else now
            self.elapsed += max(0.0, now - self.last_tick_at)
            self.running = False
            self.last_tick_at = None
            log.debug(f"Paused timer '{self.issue_key}' at mono {now}, elapsed is now {self.elapsed:.1f}")

    # Rolls the running time into elapsed without actually stopping the timer.
    def flush(self, now=None):
        if self.running and self.last_tick_at is not None:
            now = time.monotonic() if now is None else now
            # A clock that went backwards never takes time away
            if now > self.last_tick_at:
                self.elapsed += now - self.last_tick_at
                self.last_tick_at = now

    # Points the timer at another issue, which always starts over from zero.
    def reassign(self, issue_key):
        if self.running:
            raise InvalidState(f"Timer for '{self.issue_key}' is running, pause it before changing its issue")
        log.debug(f"Reassigned timer '{self.issue_key}' -> '{issue_key}'")
        self.issue_key = issue_key
        self.elapsed = 0.0
        self.last_tick_at = None

    # Manually sets the accumulated time. Only allowed while paused.
    def set_elapsed(self, seconds):
        if self.running:
            raise InvalidState(f"Timer for '{self.issue_key}' is running, pause it before editing its time")
        self.elapsed = max(0.0, float(seconds))
        log.debug(f"Manually set timer '{self.issue_key}' time to {self.elapsed} seconds")

    def snapshot(self):
        return TimerSnapshot(self.issue_key, self.elapsed, self.running)


# One saved slot: which issue it pointed at and how much time it had. Idle slots are saved with an empty key so
# positions survive a restart.
@dataclass(frozen=True)
class PersistedIssue:
    issue_key: str
    elapsed: float = 0.0
