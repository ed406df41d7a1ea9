"""
config.py — Centralised configuration & engine parameters
==========================================================
Every tunable constant in the project lives here so that the rest of the
codebase can import from a single source of truth.  A handful of values
can be overridden from the environment (handy inside the container).
"""

import os

from utils.logger import get_logger

logger = get_logger("config")


def _get_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value else default


def _get_int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except ValueError:
        return default


# ─── Server ──────────────────────────────────────────────────────────────────
HOST: str = "0.0.0.0"
PORT: int = _get_int_env("PORT", 8080)

API_TITLE = "Presage Vitals Engine"
API_VERSION = "0.2.0"

# ─── Filesystem ──────────────────────────────────────────────────────────────
UPLOAD_DIR: str = _get_str_env("UPLOAD_DIR", "/app/uploads")
DEFAULT_CLI_VIDEO: str = "/app/uploads/test-video.mp4"

# ─── Camera ──────────────────────────────────────────────────────────────────
CAMERA_DEVICE_PATH: str = "/dev/video0"   # Checked for /status and live runs
CAMERA_INDEX: int = 0                     # Device index handed to the engine

# ─── SmartSpectra engine ─────────────────────────────────────────────────────
# The SDK is driven through its native processor binary.  When the binary
# is not on PATH the service still boots, but reports sdk_available=false.
ENGINE_BINARY: str = _get_str_env("PRESAGE_BINARY", "presage_processor")

OPERATION_MODE: str = "continuous"
INTEGRATION_MODE: str = "rest"
CAPTURE_WIDTH: int = 1280
CAPTURE_HEIGHT: int = 720
CAPTURE_CODEC: str = "MJPG"
ENGINE_VERBOSITY: int = 1
BUFFER_DURATION_SECONDS: float = 0.5      # Preprocessed-data buffer (continuous mode)

# Live camera runs are capped; the driver asks the engine to stop after this.
LIVE_RUN_SECONDS: float = _get_float_env("LIVE_RUN_SECONDS", 10.0)
# terminate() → kill() escalation window when stopping the engine process
ENGINE_STOP_GRACE_SECONDS: float = 5.0

DATA_SOURCE = "presage_sdk"

# ─── API key ─────────────────────────────────────────────────────────────────
API_KEY_ENV_VARS = ("SMARTSPECTRA_API_KEY", "PRESAGE_API_KEY")


def resolve_api_key(cli_value: str | None = None) -> str:
    """
    Resolve the SmartSpectra API key.

    Order: explicit CLI argument, then SMARTSPECTRA_API_KEY, then
    PRESAGE_API_KEY.  An empty string is returned (with a warning) when
    none is set; the engine is still allowed to run.
    """
    if cli_value:
        return cli_value
    for name in API_KEY_ENV_VARS:
        value = os.getenv(name)
        if value:
            return value
    logger.warning(
        "No API key provided. Set SMARTSPECTRA_API_KEY or pass it as an argument."
    )
    return ""
