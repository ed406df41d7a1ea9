"""Scripted in-process engine backend used across the test suite."""

import threading

from engine.base import (
    EngineBackend,
    EngineInitError,
    EngineRunError,
    EngineSettings,
    EngineStatus,
    ExtractionEngine,
    MetricsBuffer,
    RateReading,
)


def metrics(timestamp, pulse=(), breathing=()):
    """One scripted callback: (timestamp, MetricsBuffer)."""
    return (
        timestamp,
        MetricsBuffer(
            pulse_rates=tuple(RateReading(value=v) for v in pulse),
            breathing_rates=tuple(RateReading(value=v) for v in breathing),
        ),
    )


# pulse 72..75 on every callback, breathing from the third one on
HEALTHY_SCRIPT = [
    metrics(1000, pulse=[72.0]),
    metrics(2000, pulse=[72.0, 74.0]),
    metrics(3000, pulse=[73.0], breathing=[15.0]),
    metrics(4000, pulse=[75.0], breathing=[15.5, 16.0]),
    metrics(5000, pulse=[76.0], breathing=[15.0]),
    metrics(6000, pulse=[75.0], breathing=[15.0]),
]


class FakeEngine(ExtractionEngine):
    def __init__(self, settings: EngineSettings, backend: "FakeBackend"):
        super().__init__(settings)
        self.backend = backend
        self.closed = False
        self.stop_event = threading.Event()

    def initialize(self) -> None:
        if self.backend.init_error:
            raise EngineInitError(self.backend.init_error)

    def run(self) -> None:
        self.backend.started.set()
        if self.backend.gate is not None:
            self.backend.gate.wait(timeout=10)

        # Deliver callbacks from an engine-owned thread, like the real SDK
        def emit():
            self._on_status(EngineStatus(code=0, description="Processing"))
            for timestamp, buffer in self.backend.script:
                self._on_metrics(buffer, timestamp)
                self._on_video(None, timestamp)

        worker = threading.Thread(target=emit)
        worker.start()
        worker.join()

        if self.backend.wait_for_stop:
            self.stop_event.wait(timeout=5)
        if self.backend.run_error:
            raise EngineRunError(self.backend.run_error)

    def stop(self) -> None:
        self.stop_event.set()

    def close(self) -> None:
        self.closed = True
        if self.backend.on_close is not None:
            self.backend.on_close()


class FakeBackend(EngineBackend):
    name = "Fake SDK"

    def __init__(
        self,
        script=(),
        init_error=None,
        run_error=None,
        gate=None,
        wait_for_stop=False,
    ):
        self.script = list(script)
        self.init_error = init_error
        self.run_error = run_error
        self.gate = gate
        self.wait_for_stop = wait_for_stop
        self.started = threading.Event()
        self.on_close = None
        self.engines: list[FakeEngine] = []

    @property
    def available(self) -> bool:
        return True

    def create(self, settings: EngineSettings) -> FakeEngine:
        engine = FakeEngine(settings, self)
        self.engines.append(engine)
        return engine
