"""
api/schemas.py — Pydantic response models
==========================================
Centralises the data-transfer objects so FastAPI can document the
endpoints.  Aggregates and individual samples are plain dicts (see
features/vitals.py): empty channels must serialise as ``{}`` and absent
rates must be omitted, which fixed models would not do.
"""

from typing import Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    error: str
    hint: Optional[str] = None


class StatusResponse(BaseModel):
    status: str                     # "SDK Ready" | "SDK Not Initialized"
    sdk_available: bool
    sdk_status: str
    sdk_initialized: bool
    camera_running: bool
    camera_available: bool
    video_file_uploaded: bool
    video_file_path: str
    readings_count: int
    session_status: str             # idle | running | finishing | complete | failed
    last_error: Optional[str] = None


class VideoInfoData(BaseModel):
    frame_count: int
    fps: float
    width: int
    height: int
    duration_seconds: Optional[float] = None


class UploadResponse(BaseModel):
    message: str
    filename: str
    path: str
    size_bytes: int
    video_info: Optional[VideoInfoData] = None


class ProcessVideoResponse(BaseModel):
    success: bool
    video_file: str
    vitals: dict
    processing_complete: bool = True
    data_source: str
    note: str


class ProcessVideoFailure(BaseModel):
    success: bool = False
    error: str
    message: str
    video_file: str
    failure_kind: Optional[str] = None
    readings_count: Optional[int] = None


class RunStartedResponse(BaseModel):
    message: str
    check_console: str
    using_video_file: bool


class LivePlaceholder(BaseModel):
    message: str
    suggestion: str
