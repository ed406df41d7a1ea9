"""
api/session.py — Extraction session store
==========================================
Process-wide record of the single extraction session: its status, the
samples collected so far, the input it is running on, and the "latest
sample" slot served by GET /live.

Thread safety
-------------
Samples are appended from the engine's callback thread(s) while request
handlers read status and snapshots.  Two locks are used:

    _lock         session status, samples, input / uploaded paths
    _latest_lock  the latest-sample slot

When both are needed they are always taken in that order.  No lock is
ever held across a call into the engine.

Lifecycle
---------
    idle ──begin_session──▶ running ──mark_finishing──▶ finishing
                               │                            │
                               └──────────finish────────────┴──▶ complete | failed

`begin_session` is the only way back into `running`; it clears the
previous samples.  Samples arriving outside `running` are dropped.
"""

import threading
from dataclasses import dataclass
from enum import Enum

from features.vitals import Sample
from utils.logger import get_logger

logger = get_logger("api.session")


class SessionStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    FINISHING = "finishing"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_active(self) -> bool:
        return self in (SessionStatus.RUNNING, SessionStatus.FINISHING)

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETE, SessionStatus.FAILED)


class SessionBusyError(RuntimeError):
    """Raised by `begin_session` while another session is active."""


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only copy of the session state at one instant."""

    status: SessionStatus
    samples: tuple[Sample, ...]
    latest: Sample | None
    input_path: str
    uploaded_path: str
    error_message: str
    failure_kind: str

    @property
    def readings_count(self) -> int:
        return len(self.samples)


class SessionStore:
    """
    Single source of truth for the extraction session.

    Instantiate once per application and share it between the HTTP
    handlers and the extraction driver.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._latest_lock = threading.Lock()

        self._status = SessionStatus.IDLE
        self._samples: list[Sample] = []
        self._input_path = ""
        self._uploaded_path = ""
        self._error_message = ""
        self._failure_kind = ""

        self._latest: Sample | None = None

    # ── Session lifecycle ────────────────────────────────────────────────

    def begin_session(self, input_path: str) -> None:
        """
        Enter `running` for `input_path` ("" = live camera).

        Raises SessionBusyError if a session is already running or
        finishing.
        """
        with self._lock:
            if self._status.is_active:
                raise SessionBusyError(
                    f"Session already {self._status.value} on "
                    f"{self._input_path or 'live camera'}"
                )
            self._samples = []
            self._input_path = input_path
            self._error_message = ""
            self._failure_kind = ""
            self._status = SessionStatus.RUNNING
        logger.info("Session started (%s).", input_path or "live camera")

    def mark_finishing(self) -> None:
        """The engine has returned; stop accepting samples."""
        with self._lock:
            if self._status is SessionStatus.RUNNING:
                self._status = SessionStatus.FINISHING

    def finish(self, ok: bool, error: str = "", failure_kind: str = "") -> None:
        """Move to `complete` or `failed`.  Ignored once terminal."""
        with self._lock:
            if not self._status.is_active:
                return
            if ok:
                self._status = SessionStatus.COMPLETE
            else:
                self._status = SessionStatus.FAILED
                self._error_message = error or "extraction failed"
                self._failure_kind = failure_kind
            count = len(self._samples)
            status = self._status

        if ok:
            logger.info("Session complete — %d readings.", count)
        else:
            logger.error("Session failed (%s): %s", failure_kind or "error", error)
        if status is SessionStatus.FAILED and count:
            logger.warning("Failed session kept %d partial readings.", count)

    # ── Samples ──────────────────────────────────────────────────────────

    def append_sample(self, sample: Sample) -> bool:
        """
        Append `sample` to the running session.

        Returns False (and stores nothing) when no session is running;
        late callbacks are expected and are not an error.
        """
        with self._lock:
            if self._status is not SessionStatus.RUNNING:
                return False
            self._samples.append(sample)
            return True

    def set_latest(self, sample: Sample) -> None:
        with self._latest_lock:
            self._latest = sample

    def clear_latest(self) -> None:
        with self._latest_lock:
            self._latest = None

    # ── Uploaded video ───────────────────────────────────────────────────

    def set_uploaded_path(self, path: str) -> None:
        with self._lock:
            self._uploaded_path = path

    @property
    def uploaded_path(self) -> str:
        with self._lock:
            return self._uploaded_path

    # ── Readers ──────────────────────────────────────────────────────────

    @property
    def status(self) -> SessionStatus:
        with self._lock:
            return self._status

    @property
    def latest(self) -> Sample | None:
        with self._latest_lock:
            return self._latest

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            with self._latest_lock:
                return SessionSnapshot(
                    status=self._status,
                    samples=tuple(self._samples),
                    latest=self._latest,
                    input_path=self._input_path,
                    uploaded_path=self._uploaded_path,
                    error_message=self._error_message,
                    failure_kind=self._failure_kind,
                )
