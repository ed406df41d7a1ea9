"""
camera/probe.py — Camera presence & video container probing
============================================================
Two small OpenCV-side helpers used by the HTTP layer:

* `camera_device_available()` — is there a capture device node for live
  runs?  (Checked with a stat, opening the device would steal it from
  the engine.)
* `probe_video(path)` — frame count / fps / size of an uploaded video,
  or None when OpenCV cannot decode the container.
"""

import os
from dataclasses import asdict, dataclass

import cv2

from config import CAMERA_DEVICE_PATH
from utils.logger import get_logger

logger = get_logger("camera.probe")


@dataclass(frozen=True)
class VideoInfo:
    frame_count: int
    fps: float
    width: int
    height: int
    duration_seconds: float | None

    def to_json(self) -> dict:
        return asdict(self)


def camera_device_available(device_path: str = CAMERA_DEVICE_PATH) -> bool:
    return os.path.exists(device_path)


def probe_video(path: str) -> VideoInfo | None:
    """Read container metadata without decoding the whole stream."""
    cap = cv2.VideoCapture(path)
    try:
        if not cap.isOpened():
            logger.warning("OpenCV could not open %s — not a decodable video?", path)
            return None

        frame_count = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
        fps = float(cap.get(cv2.CAP_PROP_FPS))
        width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
    finally:
        cap.release()

    # Some containers report 0 / NaN fps; duration is unknown then
    duration = frame_count / fps if fps > 0 and frame_count > 0 else None
    info = VideoInfo(
        frame_count=frame_count,
        fps=fps if fps == fps else 0.0,
        width=width,
        height=height,
        duration_seconds=duration,
    )
    logger.info(
        "Video probe: %dx%d, %d frames @ %.1f FPS", width, height, frame_count, info.fps
    )
    return info
