"""
Submit a scrobble batch and follow the backend session until it finishes.

    Idle -> Submitting -> Polling -> Completed | Failed

The backend processes a batch asynchronously and hands back a session id.
We poll that session one request at a time (never two in flight), applying
every progress update as it arrives, until it reports completed or failed.

Each submission gets its own PollHandle. Anything that would write state or
schedule the next poll checks the handle first, so a cancelled (disposed)
submission can never touch the state of a newer one.
"""

from __future__ import annotations
import logging
import threading
from enum import Enum
from typing import Any, Callable, Sequence

from recordscrobbler.errors import ScrobbleInProgressError
from recordscrobbler.session import ScrobbleProgress, ScrobbleResult, SessionStatus
from recordscrobbler.timing import ScrobbleEntry

log = logging.getLogger("orchestrator")

POLL_INTERVAL = 1.0
POLL_INITIAL_DELAY = 0.5


class State(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"


class PollHandle:
    """Cancellation token scoped to one submission."""

    def __init__(self):
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def sleep(self, seconds: float) -> bool:
        """Wait; True when cancelled meanwhile."""
        return self._cancelled.wait(timeout=max(0.0, seconds))


class ScrobbleOrchestrator:
    """Single-flight submit-then-poll driver.

    `backend` needs two methods:
      submit_scrobble_batch(batch, release_context) -> session id
      get_scrobble_session_status(session_id) -> SessionStatus
    """

    def __init__(self, backend, poll_interval: float = POLL_INTERVAL,
                 initial_delay: float = POLL_INITIAL_DELAY,
                 on_change: Callable[["ScrobbleOrchestrator"], None] | None = None):
        self.backend = backend
        self.poll_interval = poll_interval
        self.initial_delay = initial_delay
        self.on_change = on_change

        self._lock = threading.Lock()
        self._handle: PollHandle | None = None
        self.state = State.IDLE
        self.session_id: str | None = None
        self.progress: ScrobbleProgress | None = None
        self.result: ScrobbleResult | None = None
        self.error: str | None = None

    @property
    def busy(self) -> bool:
        return self.state in (State.SUBMITTING, State.POLLING)

    # -------- public API --------
    def submit(self, batch: Sequence[ScrobbleEntry], release_context: dict[str, Any]) -> ScrobbleResult | None:
        """Submit and poll on the calling thread; returns the final result, if any."""
        handle = self._begin()
        return self._run(handle, batch, release_context)

    def start(self, batch: Sequence[ScrobbleEntry], release_context: dict[str, Any]) -> threading.Thread:
        """Same as submit(), polling on a daemon thread."""
        handle = self._begin()
        thread = threading.Thread(
            target=self._run,
            args=(handle, batch, release_context),
            name="scrobble-poll",
            daemon=True,
        )
        thread.start()
        return thread

    def cancel(self) -> None:
        """Drop the current submission (navigation away); stops any pending poll."""
        with self._lock:
            handle, self._handle = self._handle, None
            if handle is None:
                return
            handle.cancel()
            if self.busy:
                log.info("Stopped following scrobble session %s", self.session_id)
                self.state = State.IDLE
        self._notify()

    # -------- state machine --------
    def _begin(self) -> PollHandle:
        with self._lock:
            if self.busy:
                raise ScrobbleInProgressError("A scrobble submission is already in progress")
            if self._handle is not None:
                self._handle.cancel()
            handle = PollHandle()
            self._handle = handle
            self.state = State.SUBMITTING
            self.session_id = None
            self.progress = None
            self.result = None
            self.error = None
        self._notify()
        return handle

    def _current(self, handle: PollHandle) -> bool:
        return self._handle is handle and not handle.cancelled

    def _run(self, handle: PollHandle, batch, release_context) -> ScrobbleResult | None:
        log.info("Submitting %s scrobbles for %s", len(batch), release_context.get("album") or "release")
        try:
            session_id = self.backend.submit_scrobble_batch(batch, release_context)
        except Exception as e:
            log.error("Scrobble submission failed: %s", e)
            self._fail(handle, str(e) or "Failed to scrobble tracks")
            return None

        with self._lock:
            if not self._current(handle):
                return None
            self.session_id = session_id
            self.state = State.POLLING
        log.info("Scrobble session %s started", session_id)
        self._notify()

        return self._poll(handle, session_id)

    def _poll(self, handle: PollHandle, session_id: str) -> ScrobbleResult | None:
        if handle.sleep(self.initial_delay):
            return None

        while True:
            try:
                status: SessionStatus = self.backend.get_scrobble_session_status(session_id)
            except Exception as e:
                log.error("Error polling scrobble session %s: %s", session_id, e)
                self._fail(handle, str(e) or "Failed to get scrobble progress")
                return None

            result = None
            with self._lock:
                if not self._current(handle):
                    return None
                if status.progress is not None:
                    self.progress = status.progress
                if status.is_terminal:
                    result = self._freeze(session_id, status)
                    self.result = result
                    self.error = status.error
                    self.state = State.COMPLETED if result.ok else State.FAILED
                    self._handle = None
            self._notify()

            if result is not None:
                log.info("Scrobble session %s %s: success=%s failed=%s ignored=%s",
                         session_id, result.status, result.success, result.failed, result.ignored)
                return result

            log.debug("Session %s progress: %s", session_id, status.progress)
            if handle.sleep(self.poll_interval):
                return None

    def _freeze(self, session_id: str, status: SessionStatus) -> ScrobbleResult:
        progress = status.progress or self.progress or ScrobbleProgress()
        return ScrobbleResult(
            session_id=session_id,
            status=status.status,
            success=progress.success,
            failed=progress.failed,
            ignored=progress.ignored,
            errors=(status.error,) if status.error else (),
        )

    def _fail(self, handle: PollHandle, message: str) -> None:
        with self._lock:
            if not self._current(handle):
                return
            self.error = message
            self.state = State.FAILED
            self._handle = None
        self._notify()

    def _notify(self) -> None:
        if self.on_change is None:
            return
        try:
            self.on_change(self)
        except Exception as e:
            log.debug("on_change callback failed: %s", e)
