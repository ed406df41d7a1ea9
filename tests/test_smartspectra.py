import os
import stat
import sys
import textwrap
import threading

import pytest

from api.driver import ExtractionDriver
from api.session import SessionStatus, SessionStore
from engine.base import EngineInitError, EngineRunError, EngineSettings, UnavailableBackend
from engine.smartspectra import (
    SmartSpectraBackend,
    SmartSpectraEngine,
    build_command,
    load_backend,
    parse_metrics,
)


def make_processor(tmp_path, body: str) -> str:
    """Write an executable stand-in for the processor binary."""
    path = tmp_path / "presage_processor"
    path.write_text(f"#!{sys.executable}\n" + textwrap.dedent(body))
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


@pytest.fixture
def video(tmp_path):
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"\x00\x00\x00\x18ftypmp42")
    return str(path)


def _collect(engine):
    samples, statuses, frames = [], [], []
    engine.set_on_core_metrics_output(lambda m, ts: samples.append((ts, m)))
    engine.set_on_status_change(statuses.append)
    engine.set_on_video_output(lambda frame, ts: frames.append(ts))
    return samples, statuses, frames


def test_command_carries_every_setting():
    settings = EngineSettings.for_video("/v.mp4", "abc")
    cmd = build_command("/usr/bin/presage_processor", settings)

    assert cmd[0] == "/usr/bin/presage_processor"
    assert "--api_key=abc" in cmd
    assert "--video=/v.mp4" in cmd
    assert "--camera_device_index=-1" in cmd
    assert "--operation_mode=continuous" in cmd
    assert "--integration_mode=rest" in cmd
    assert "--headless=true" in cmd
    assert "--enable_edge_metrics=true" in cmd
    assert "--capture_width_px=1280" in cmd
    assert "--capture_height_px=720" in cmd
    assert "--codec=MJPG" in cmd
    assert "--auto_lock=true" in cmd
    assert "--buffer_duration=0.5" in cmd
    assert "--verbosity=1" in cmd


def test_camera_command_uses_device_zero():
    cmd = build_command("p", EngineSettings.for_camera("abc"))
    assert "--camera_device_index=0" in cmd
    assert "--video=" in cmd


def test_parse_metrics_keeps_channel_order():
    buffer, ts = parse_metrics(
        {
            "event": "metrics",
            "timestamp": 4200,
            "pulse": [{"value": 70.0, "time": 1.0}, {"value": 71.5, "time": 2.0}],
            "breathing": [],
        }
    )
    assert ts == 4200
    assert buffer.last_pulse_rate() == 71.5
    assert buffer.last_breathing_rate() is None


def test_missing_binary_is_unavailable(tmp_path):
    missing = str(tmp_path / "nope")
    assert not SmartSpectraBackend(missing).available
    assert isinstance(load_backend(missing), UnavailableBackend)


def test_initialize_rejects_missing_video(tmp_path):
    binary = make_processor(tmp_path, "pass\n")
    engine = SmartSpectraEngine(EngineSettings.for_video(str(tmp_path / "gone.mp4"), "k"), binary)
    with pytest.raises(EngineInitError):
        engine.initialize()


def test_run_dispatches_events(tmp_path, video):
    binary = make_processor(
        tmp_path,
        """
        import json, sys
        print("I0101 sdk log line")
        print(json.dumps({"event": "status", "code": 0, "description": "Face found"}))
        print(json.dumps({"event": "frame", "timestamp": 33}))
        print(json.dumps({"event": "metrics", "timestamp": 1000,
                          "pulse": [{"value": 72.0, "time": 1.0}], "breathing": []}))
        print(json.dumps({"event": "metrics", "timestamp": 2000,
                          "pulse": [{"value": 73.0}], "breathing": [{"value": 15.0}]}))
        assert "--api_key=k" in sys.argv
        """,
    )
    backend = SmartSpectraBackend(binary)
    assert backend.available

    with backend.create(EngineSettings.for_video(video, "k")) as engine:
        samples, statuses, frames = _collect(engine)
        engine.initialize()
        engine.run()

    assert [ts for ts, _ in samples] == [1000, 2000]
    assert samples[1][1].last_breathing_rate() == 15.0
    assert statuses[0].description == "Face found"
    assert frames == [33]


def test_nonzero_exit_raises_with_stderr(tmp_path, video):
    binary = make_processor(
        tmp_path,
        """
        import sys
        sys.stderr.write("license check failed\\n")
        sys.exit(3)
        """,
    )
    engine = SmartSpectraEngine(EngineSettings.for_video(video, "k"), binary)
    engine.initialize()
    with pytest.raises(EngineRunError, match="license check failed"):
        engine.run()
    engine.close()


def test_error_event_raises(tmp_path, video):
    binary = make_processor(
        tmp_path,
        """
        import json
        print(json.dumps({"event": "error", "message": "invalid api key"}))
        """,
    )
    engine = SmartSpectraEngine(EngineSettings.for_video(video, "k"), binary)
    engine.initialize()
    with pytest.raises(EngineRunError, match="invalid api key"):
        engine.run()
    engine.close()


def test_stop_ends_a_live_run(tmp_path):
    binary = make_processor(
        tmp_path,
        """
        import json, time
        ts = 0
        while True:
            ts += 100
            print(json.dumps({"event": "metrics", "timestamp": ts,
                              "pulse": [{"value": 70.0}]}), flush=True)
            time.sleep(0.05)
        """,
    )
    engine = SmartSpectraEngine(EngineSettings.for_camera("k"), binary)
    samples, _, _ = _collect(engine)
    engine.initialize()

    timer = threading.Timer(0.5, engine.stop)
    timer.start()
    engine.run()
    timer.join()
    engine.close()

    assert samples
    assert all(ts > 0 for ts, _ in samples)


def test_stop_before_run_skips_launch(tmp_path):
    marker = tmp_path / "launched"
    binary = make_processor(tmp_path, f"open({str(marker)!r}, 'w').close()\n")
    engine = SmartSpectraEngine(EngineSettings.for_camera("k"), binary)
    engine.initialize()
    engine.stop()
    engine.run()
    assert not os.path.exists(marker)


def test_malformed_metrics_line_is_skipped(tmp_path, video):
    binary = make_processor(
        tmp_path,
        """
        import json
        print(json.dumps({"event": "metrics", "timestamp": 1000, "pulse": [{"value": 72.0}]}))
        print(json.dumps({"event": "metrics", "timestamp": None, "pulse": [{"value": 73.0}]}))
        print(json.dumps({"event": "metrics", "timestamp": 1500, "pulse": [{"value": "n/a"}]}))
        print(json.dumps({"event": "frame", "timestamp": "later"}))
        print(json.dumps({"event": "metrics", "timestamp": 2000, "pulse": [{"value": 74.0}]}))
        """,
    )
    store = SessionStore()
    store.begin_session(video)
    result = ExtractionDriver(store, SmartSpectraBackend(binary)).run(video, "k")

    assert result.ok
    assert [s.timestamp_ms for s in result.samples] == [1000, 2000]
    assert [s.heart_rate_bpm for s in result.samples] == [72.0, 74.0]
    assert store.status is SessionStatus.COMPLETE
