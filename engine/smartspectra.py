"""
engine/smartspectra.py — Presage SmartSpectra engine backend
=============================================================
The SmartSpectra SDK is a native (C++) library.  We drive it through its
processor binary (``presage_processor`` by default, see
``config.ENGINE_BINARY``), which wraps the SDK's continuous/REST
foreground container and prints one JSON event per line on stdout:

    {"event": "metrics", "timestamp": 1234,
     "pulse": [{"value": 72.1, "time": 3.2}, ...],
     "breathing": [{"value": 15.0, "time": 3.2}, ...]}
    {"event": "status", "code": 0, "description": "OK"}
    {"event": "frame", "timestamp": 1234}
    {"event": "error", "message": "..."}

Any other stdout line is the SDK's own log output and is forwarded to
our logger at DEBUG level.

`run()` reads events on the calling thread and dispatches them to the
registered callbacks.  stderr is drained on a helper thread (a full pipe
would otherwise stall the process) and its tail is used as the error
message when the process exits non-zero.
"""

import collections
import json
import os
import shutil
import subprocess
import threading

from config import ENGINE_BINARY, ENGINE_STOP_GRACE_SECONDS
from engine.base import (
    EngineBackend,
    EngineInitError,
    EngineRunError,
    EngineSettings,
    EngineStatus,
    ExtractionEngine,
    MetricsBuffer,
    RateReading,
    UnavailableBackend,
)
from utils.logger import get_logger

logger = get_logger("engine.smartspectra")

_STDERR_TAIL_LINES = 20


def _flag(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_command(binary: str, settings: EngineSettings) -> list[str]:
    """Translate `EngineSettings` into the processor's command line."""
    args = {
        "api_key": settings.api_key,
        "operation_mode": settings.operation_mode,
        "integration_mode": settings.integration_mode,
        "headless": settings.headless,
        "enable_edge_metrics": settings.enable_edge_metrics,
        "verbosity": settings.verbosity_level,
        "buffer_duration": settings.preprocessed_data_buffer_duration_s,
        "capture_width_px": settings.capture_width_px,
        "capture_height_px": settings.capture_height_px,
        "codec": settings.codec,
        "auto_lock": settings.auto_lock,
        "camera_device_index": settings.device_index,
        "video": settings.input_video_path,
    }
    return [binary] + [f"--{name}={_flag(value)}" for name, value in args.items()]


def _parse_rates(raw) -> tuple[RateReading, ...]:
    readings = []
    for item in raw or ():
        if isinstance(item, dict):
            if item.get("value") is None:
                continue
            readings.append(
                RateReading(
                    value=float(item["value"]),
                    time=float(item.get("time", 0.0)),
                    confidence=item.get("confidence"),
                )
            )
        else:
            readings.append(RateReading(value=float(item)))
    return tuple(readings)


def parse_metrics(event: dict) -> tuple[MetricsBuffer, int]:
    """Decode a ``metrics`` event into a buffer and its engine timestamp."""
    buffer = MetricsBuffer(
        pulse_rates=_parse_rates(event.get("pulse")),
        breathing_rates=_parse_rates(event.get("breathing")),
    )
    return buffer, int(event.get("timestamp", 0))


class SmartSpectraEngine(ExtractionEngine):
    """One run of the SmartSpectra processor binary."""

    def __init__(self, settings: EngineSettings, binary: str = ENGINE_BINARY):
        super().__init__(settings)
        self._binary = binary
        self._command: list[str] = []
        self._proc: subprocess.Popen | None = None
        self._proc_lock = threading.Lock()
        self._stop_requested = threading.Event()
        self._stderr_tail: collections.deque[str] = collections.deque(maxlen=_STDERR_TAIL_LINES)
        self._stderr_thread: threading.Thread | None = None
        self._engine_error: str | None = None

    # ── Lifecycle ────────────────────────────────────────────────────────

    def initialize(self) -> None:
        resolved = shutil.which(self._binary)
        if resolved is None:
            raise EngineInitError(f"SmartSpectra processor '{self._binary}' not found on PATH")

        path = self.settings.input_video_path
        if path and not os.path.isfile(path):
            raise EngineInitError(f"Input video not found: {path}")

        self._command = build_command(resolved, self.settings)
        logger.info(
            "Engine initialised (%s, %dx%d %s, source=%s)",
            self.settings.operation_mode,
            self.settings.capture_width_px,
            self.settings.capture_height_px,
            self.settings.codec,
            path or f"camera:{self.settings.device_index}",
        )

    def run(self) -> None:
        if not self._command:
            raise EngineRunError("Engine not initialised")

        with self._proc_lock:
            if self._stop_requested.is_set():
                logger.info("Stop requested before start; not launching the engine.")
                return
            try:
                self._proc = subprocess.Popen(
                    self._command,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    text=True,
                    bufsize=1,
                )
            except OSError as exc:
                raise EngineRunError(f"Could not start SmartSpectra processor: {exc}") from exc
        proc = self._proc

        self._stderr_thread = threading.Thread(
            target=self._drain_stderr, args=(proc,), daemon=True
        )
        self._stderr_thread.start()

        for line in proc.stdout:  # type: ignore[union-attr]
            self._handle_line(line.strip())

        returncode = proc.wait()
        self._stderr_thread.join(timeout=2.0)

        if self._stop_requested.is_set():
            logger.info("Engine stopped on request (exit code %s).", returncode)
            return
        if self._engine_error:
            raise EngineRunError(self._engine_error)
        if returncode != 0:
            tail = " | ".join(self._stderr_tail) or "no stderr output"
            raise EngineRunError(f"Processor exited with code {returncode}: {tail}")

    def stop(self) -> None:
        self._stop_requested.set()
        with self._proc_lock:
            proc = self._proc
        if proc is None or proc.poll() is not None:
            return
        logger.info("Stopping SmartSpectra processor (pid %d)…", proc.pid)
        proc.terminate()
        try:
            proc.wait(timeout=ENGINE_STOP_GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            logger.warning("Processor ignored SIGTERM; killing it.")
            proc.kill()

    def close(self) -> None:
        proc = self._proc
        if proc is not None and proc.poll() is None:
            self.stop()
        if proc is not None:
            for stream in (proc.stdout, proc.stderr):
                if stream is not None:
                    stream.close()
        self._proc = None

    # ── Private ──────────────────────────────────────────────────────────

    def _drain_stderr(self, proc: subprocess.Popen) -> None:
        for line in proc.stderr:  # type: ignore[union-attr]
            line = line.rstrip()
            if line:
                self._stderr_tail.append(line)
                logger.debug("[sdk] %s", line)

    def _handle_line(self, line: str) -> None:
        if not line:
            return
        if not line.startswith("{"):
            logger.debug("[sdk] %s", line)
            return
        try:
            event = json.loads(line)
        except json.JSONDecodeError:
            logger.debug("[sdk] %s", line)
            return

        try:
            self._dispatch(event)
        except (TypeError, ValueError, KeyError, AttributeError) as exc:
            logger.warning("Skipping malformed engine event (%s): %s", exc, line)

    def _dispatch(self, event: dict) -> None:
        kind = event.get("event")
        if kind == "metrics":
            if self._on_metrics is not None:
                buffer, timestamp = parse_metrics(event)
                self._on_metrics(buffer, timestamp)
        elif kind == "frame":
            if self._on_video is not None:
                self._on_video(None, int(event.get("timestamp", 0)))
        elif kind == "status":
            if self._on_status is not None:
                self._on_status(
                    EngineStatus(
                        code=int(event.get("code", 0)),
                        description=str(event.get("description", "")),
                    )
                )
        elif kind == "error":
            self._engine_error = str(event.get("message", "unknown engine error"))
            logger.error("Engine reported error: %s", self._engine_error)
        else:
            logger.debug("Ignoring unknown engine event: %s", kind)


class SmartSpectraBackend(EngineBackend):
    """Hands out `SmartSpectraEngine` instances bound to one binary."""

    name = "Presage SmartSpectra SDK"

    def __init__(self, binary: str = ENGINE_BINARY):
        self.binary = binary

    @property
    def available(self) -> bool:
        return shutil.which(self.binary) is not None

    def create(self, settings: EngineSettings) -> SmartSpectraEngine:
        return SmartSpectraEngine(settings, binary=self.binary)


def load_backend(binary: str = ENGINE_BINARY) -> EngineBackend:
    """Real backend when the processor binary is installed, else the stand-in."""
    backend = SmartSpectraBackend(binary)
    if backend.available:
        logger.info("✓ Presage SmartSpectra SDK available (%s)", binary)
        return backend

    logger.warning("⚠️  Presage SmartSpectra SDK NOT AVAILABLE — '%s' not on PATH", binary)
    logger.warning("Server will start in limited mode. Install the SDK to extract vitals.")
    return UnavailableBackend(
        name=SmartSpectraBackend.name,
        reason=f"Presage SmartSpectra SDK not available ('{binary}' not on PATH)",
    )
