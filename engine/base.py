"""
engine/base.py — Extraction engine contract
============================================
The vital-sign extraction engine (SmartSpectra) is an opaque, stateful,
callback-driven component.  This module pins down the surface the rest
of the project relies on:

    settings  →  engine.set_on_*(callback)  →  initialize()  →  run()

`run()` blocks the calling thread until the input is exhausted (video
file) or `stop()` is called (live camera).  While it runs, the engine
pushes metrics, frames and status changes into the registered callbacks,
possibly from threads it owns.

Engines are obtained from an `EngineBackend`, which also advertises
whether the engine is usable at all on this host (`available`).  An
engine instance is single-use: one per extraction run, always closed
afterwards (use it as a context manager).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional

from config import (
    BUFFER_DURATION_SECONDS,
    CAMERA_INDEX,
    CAPTURE_CODEC,
    CAPTURE_HEIGHT,
    CAPTURE_WIDTH,
    ENGINE_VERBOSITY,
    INTEGRATION_MODE,
    OPERATION_MODE,
)


# ── Errors ───────────────────────────────────────────────────────────────────

class EngineError(Exception):
    """Base class for failures reported by the extraction engine."""


class EngineUnavailableError(EngineError):
    """The engine is not installed / cannot be loaded on this host."""


class EngineInitError(EngineError):
    """Engine initialisation (or callback registration) failed."""


class EngineRunError(EngineError):
    """The engine failed while processing the input."""


# ── Settings ─────────────────────────────────────────────────────────────────

@dataclass
class EngineSettings:
    """Configuration handed to the engine for one run."""

    api_key: str = ""
    input_video_path: str = ""
    device_index: int = CAMERA_INDEX       # -1 disables the camera (file mode)
    operation_mode: str = OPERATION_MODE
    integration_mode: str = INTEGRATION_MODE
    headless: bool = True
    capture_width_px: int = CAPTURE_WIDTH
    capture_height_px: int = CAPTURE_HEIGHT
    codec: str = CAPTURE_CODEC
    auto_lock: bool = True
    enable_edge_metrics: bool = True
    verbosity_level: int = ENGINE_VERBOSITY
    preprocessed_data_buffer_duration_s: float = BUFFER_DURATION_SECONDS

    @classmethod
    def for_video(cls, path: str, api_key: str) -> "EngineSettings":
        return cls(api_key=api_key, input_video_path=path, device_index=-1)

    @classmethod
    def for_camera(cls, api_key: str) -> "EngineSettings":
        return cls(api_key=api_key, input_video_path="", device_index=CAMERA_INDEX)

    @property
    def is_live(self) -> bool:
        return not self.input_video_path


# ── Metrics ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RateReading:
    value: float
    time: float = 0.0
    confidence: Optional[float] = None


@dataclass(frozen=True)
class MetricsBuffer:
    """Rate channels of one core-metrics callback, oldest value first."""

    pulse_rates: tuple[RateReading, ...] = ()
    breathing_rates: tuple[RateReading, ...] = ()

    def last_pulse_rate(self) -> float | None:
        return self.pulse_rates[-1].value if self.pulse_rates else None

    def last_breathing_rate(self) -> float | None:
        return self.breathing_rates[-1].value if self.breathing_rates else None


@dataclass(frozen=True)
class EngineStatus:
    code: int
    description: str


MetricsCallback = Callable[[MetricsBuffer, int], None]
VideoCallback = Callable[[Any, int], None]
StatusCallback = Callable[[EngineStatus], None]


# ── Engine ───────────────────────────────────────────────────────────────────

class ExtractionEngine(ABC):
    """Single-use engine instance bound to one `EngineSettings`."""

    def __init__(self, settings: EngineSettings):
        self.settings = settings
        self._on_metrics: MetricsCallback | None = None
        self._on_video: VideoCallback | None = None
        self._on_status: StatusCallback | None = None

    def set_on_core_metrics_output(self, callback: MetricsCallback) -> None:
        self._on_metrics = callback

    def set_on_video_output(self, callback: VideoCallback) -> None:
        self._on_video = callback

    def set_on_status_change(self, callback: StatusCallback) -> None:
        self._on_status = callback

    @abstractmethod
    def initialize(self) -> None:
        """Validate settings and acquire resources.  Raises EngineInitError."""

    @abstractmethod
    def run(self) -> None:
        """Process the input on the calling thread.  Raises EngineRunError."""

    @abstractmethod
    def stop(self) -> None:
        """Ask a running engine to return from `run()` as soon as possible."""

    def close(self) -> None:
        """Release every resource.  Safe to call more than once."""

    def __enter__(self) -> "ExtractionEngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class EngineBackend(ABC):
    """Capability that hands out engine instances (or refuses to)."""

    name: str = "engine"

    @property
    @abstractmethod
    def available(self) -> bool:
        ...

    @property
    def description(self) -> str:
        if self.available:
            return f"{self.name} is AVAILABLE and ACTIVE"
        return f"{self.name} is NOT AVAILABLE"

    @abstractmethod
    def create(self, settings: EngineSettings) -> ExtractionEngine:
        ...


class UnavailableBackend(EngineBackend):
    """Stand-in used when no engine is installed."""

    def __init__(self, name: str = "Presage SmartSpectra SDK", reason: str = ""):
        self.name = name
        self.reason = reason or f"{name} not available on this host"

    @property
    def available(self) -> bool:
        return False

    def create(self, settings: EngineSettings) -> ExtractionEngine:
        raise EngineUnavailableError(self.reason)

