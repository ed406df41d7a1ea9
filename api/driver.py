"""
api/driver.py — Extraction driver
==================================
Runs one extraction session end-to-end against the engine backend:

    settings → engine callbacks → initialize() → run() (blocking) → finish

The caller must already have moved the `SessionStore` into `running`
(via `begin_session`).  Whatever happens inside, `run()` leaves the store
in `complete` or `failed` and closes the engine.

Callbacks may be invoked from engine-owned threads.  They only touch the
session through the store's locks and never raise back into the engine:
a failing callback is logged and the engine carries on.

Live camera runs are bounded by `LIVE_RUN_SECONDS`; a timer asks the
engine to stop when it elapses.  File runs end with the video.
"""

import threading
from dataclasses import dataclass
from typing import Callable

from api.session import SessionStore
from config import LIVE_RUN_SECONDS
from engine.base import (
    EngineBackend,
    EngineInitError,
    EngineSettings,
    EngineStatus,
    EngineUnavailableError,
    ExtractionEngine,
    MetricsBuffer,
)
from features.vitals import Sample, make_sample
from utils.logger import get_logger

logger = get_logger("api.driver")

# Failure kinds recorded on the session and echoed by the API
ENGINE_UNAVAILABLE = "engine_unavailable"
ENGINE_INIT = "engine_init"
ENGINE_RUN = "engine_run"


@dataclass(frozen=True)
class RunResult:
    """Outcome of one run, with the samples frozen at the end of it."""

    ok: bool
    samples: tuple[Sample, ...] = ()
    failure_kind: str = ""
    message: str = ""

    @property
    def readings_count(self) -> int:
        return len(self.samples)


SampleListener = Callable[[Sample], None]


class ExtractionDriver:
    """
    Drives the extraction engine for one session at a time.

    Parameters
    ----------
    store            : SessionStore   Receives samples and the final status.
    backend          : EngineBackend  Source of engine instances.
    on_sample        : callable       Optional hook called with every stored sample.
    live_run_seconds : float          Wall-clock cap for live camera runs.
    """

    def __init__(
        self,
        store: SessionStore,
        backend: EngineBackend,
        on_sample: SampleListener | None = None,
        live_run_seconds: float = LIVE_RUN_SECONDS,
    ):
        self._store = store
        self._backend = backend
        self._on_sample = on_sample
        self._live_run_seconds = live_run_seconds

    @property
    def backend(self) -> EngineBackend:
        return self._backend

    @property
    def live_run_seconds(self) -> float:
        return self._live_run_seconds

    def run(self, input_path: str, api_key: str) -> RunResult:
        """Process `input_path` ("" = live camera) to completion."""
        try:
            return self._run(input_path, api_key)
        except Exception as exc:
            logger.exception("Unexpected error during extraction:")
            return self._fail(ENGINE_RUN, f"Unexpected error during extraction: {exc}")

    # ── Private ──────────────────────────────────────────────────────────

    def _run(self, input_path: str, api_key: str) -> RunResult:
        if input_path:
            settings = EngineSettings.for_video(input_path, api_key)
            logger.info("Processing video file: %s", input_path)
        else:
            settings = EngineSettings.for_camera(api_key)
            logger.info("Processing live camera for %.0f s", self._live_run_seconds)

        try:
            engine = self._backend.create(settings)
        except EngineUnavailableError as exc:
            # Nothing stale should be served from /live either
            self._store.clear_latest()
            return self._fail(ENGINE_UNAVAILABLE, str(exc))

        # The engine is closed before the session turns terminal on every path
        with engine:
            failure = self._drive(engine, settings)
        if failure is not None:
            return self._fail(*failure)

        samples = self._freeze()
        self._store.finish(True)
        logger.info("Processing completed (%d readings).", len(samples))
        return RunResult(ok=True, samples=samples)

    def _drive(self, engine: ExtractionEngine, settings: EngineSettings) -> tuple[str, str] | None:
        """Initialize and run `engine`; returns (kind, message) on failure."""
        engine.set_on_core_metrics_output(self._on_core_metrics)
        engine.set_on_video_output(self._on_video_output)
        engine.set_on_status_change(self._on_status_change)

        try:
            engine.initialize()
        except EngineInitError as exc:
            return ENGINE_INIT, f"Failed to initialize engine: {exc}"

        timer = None
        if settings.is_live:
            timer = threading.Timer(self._live_run_seconds, engine.stop)
            timer.daemon = True
            timer.start()

        try:
            engine.run()
        except Exception as exc:
            logger.exception("Engine run failed:")
            return ENGINE_RUN, f"Processing failed: {exc}"
        finally:
            if timer is not None:
                timer.cancel()
        return None

    def _freeze(self) -> tuple[Sample, ...]:
        # finishing blocks begin_session, so the samples cannot be cleared here
        self._store.mark_finishing()
        return self._store.snapshot().samples

    def _fail(self, kind: str, message: str) -> RunResult:
        samples = self._freeze()
        self._store.finish(False, message, failure_kind=kind)
        return RunResult(ok=False, samples=samples, failure_kind=kind, message=message)

    def _on_core_metrics(self, metrics: MetricsBuffer, timestamp_ms: int) -> None:
        try:
            sample = make_sample(
                timestamp_ms,
                metrics.last_pulse_rate(),
                metrics.last_breathing_rate(),
            )
            if sample is None:
                return
            if not self._store.append_sample(sample):
                logger.debug("Dropped late sample @%d ms.", timestamp_ms)
                return
            self._store.set_latest(sample)
            logger.debug(
                "[Presage SDK] t=%d ms  HR=%s BPM  BR=%s breaths/min",
                sample.timestamp_ms,
                sample.heart_rate_bpm,
                sample.breathing_rate_bpm,
            )
            if self._on_sample is not None:
                self._on_sample(sample)
        except Exception:
            logger.exception("Metrics callback failed (engine continues):")

    def _on_video_output(self, frame, timestamp_ms: int) -> None:
        # Headless: frames are not displayed
        return None

    def _on_status_change(self, status: EngineStatus) -> None:
        logger.info("Status: %s", status.description)
