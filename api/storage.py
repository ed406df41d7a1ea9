"""
api/storage.py — Uploaded video persistence
============================================
Writes request bodies to the upload directory as
``video_<unix_seconds>.mp4``.  Files are never deleted by the service;
two uploads within the same second overwrite each other.
"""

import os
import time
from dataclasses import dataclass

from config import UPLOAD_DIR
from utils.logger import get_logger

logger = get_logger("api.storage")


class UploadError(OSError):
    """The uploaded file could not be written."""


@dataclass(frozen=True)
class UploadRecord:
    filename: str
    path: str
    size_bytes: int


def upload_filename(now: float | None = None) -> str:
    return f"video_{int(time.time() if now is None else now)}.mp4"


def save_upload(data: bytes, upload_dir: str = UPLOAD_DIR) -> UploadRecord:
    """Persist `data` byte-for-byte and return where it went."""
    filename = upload_filename()
    path = os.path.join(upload_dir, filename)
    try:
        os.makedirs(upload_dir, exist_ok=True)
        with open(path, "wb") as fh:
            fh.write(data)
    except OSError as exc:
        logger.error("Failed to save upload to %s: %s", path, exc)
        raise UploadError(f"Failed to save uploaded file: {exc}") from exc

    logger.info("Video file saved: %s (%d bytes)", path, len(data))
    return UploadRecord(filename=filename, path=path, size_bytes=len(data))
