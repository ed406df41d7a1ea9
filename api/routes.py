"""
api/routes.py — FastAPI route definitions
==========================================
All HTTP endpoints are defined here and wired into the app via
`app.include_router(router)` in `api/app.py`.

Endpoint summary
----------------
    GET  /health          — Liveness probe ("OK", text/plain)
    GET  /status          — SDK availability, session state, uploaded video
    POST /upload          — Store a raw MP4 body for a later GET /test
    POST /process-video   — Store a raw MP4 body, extract vitals, return the summary
    GET  /test            — Start a background run (uploaded video or live camera)
    GET  /live            — Most recent sample

Only one extraction session may be active; every endpoint that would
start or disturb one answers 409 while it runs.
"""

import threading
from dataclasses import dataclass

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.concurrency import run_in_threadpool

from api.driver import ENGINE_INIT, ENGINE_RUN, ENGINE_UNAVAILABLE, ExtractionDriver
from api.schemas import (
    ErrorResponse,
    LivePlaceholder,
    ProcessVideoFailure,
    ProcessVideoResponse,
    RunStartedResponse,
    StatusResponse,
    UploadResponse,
    VideoInfoData,
)
from api.session import SessionBusyError, SessionStore
from api.storage import UploadError, save_upload
from camera.probe import camera_device_available, probe_video
from config import DATA_SOURCE
from features.vitals import summarize
from utils.logger import get_logger

logger = get_logger("api.routes")

router = APIRouter()

NO_DATA_ERROR = "No vitals data extracted from video"


@dataclass
class ServiceContext:
    """Per-application state shared by every request (see create_app)."""

    store: SessionStore
    driver: ExtractionDriver
    api_key: str
    upload_dir: str


def get_context(request: Request) -> ServiceContext:
    return request.app.state.vitals


# ── Helpers ───────────────────────────────────────────────────────────────────

def _busy(message: str) -> JSONResponse:
    return JSONResponse(status_code=409, content=ErrorResponse(error=message).model_dump(exclude_none=True))


def _no_body(hint: str) -> JSONResponse:
    logger.warning("Rejected request without a video body.")
    body = ErrorResponse(error="No video file provided", hint=hint)
    return JSONResponse(status_code=400, content=body.model_dump())


def _save_failed() -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(error="Failed to save uploaded file").model_dump(exclude_none=True),
    )


# ── Health ────────────────────────────────────────────────────────────────────

@router.get("/health", response_class=PlainTextResponse)
async def health():
    """Simple liveness check."""
    return "OK"


# ── Status ────────────────────────────────────────────────────────────────────

@router.get("/status")
async def status(ctx: ServiceContext = Depends(get_context)) -> StatusResponse:
    snapshot = ctx.store.snapshot()
    backend = ctx.driver.backend
    available = backend.available
    return StatusResponse(
        status="SDK Ready" if available else "SDK Not Initialized",
        sdk_available=available,
        sdk_status=backend.description,
        sdk_initialized=available,
        camera_running=snapshot.status.is_active,
        camera_available=camera_device_available(),
        video_file_uploaded=bool(snapshot.uploaded_path),
        video_file_path=snapshot.uploaded_path,
        readings_count=snapshot.readings_count,
        session_status=snapshot.status.value,
        last_error=snapshot.error_message or None,
    )


# ── Upload ────────────────────────────────────────────────────────────────────

@router.post("/upload")
async def upload(request: Request, ctx: ServiceContext = Depends(get_context)):
    """
    Store the raw request body as the video used by GET /test.

    Returns 409 while a session is active, 400 for an empty body.
    """
    if ctx.store.status.is_active:
        return _busy("Processing already running. Wait for it to complete.")

    body = await request.body()
    if not body:
        return _no_body("Send video file as raw binary data in POST body")

    try:
        record = await run_in_threadpool(save_upload, body, ctx.upload_dir)
    except UploadError:
        return _save_failed()

    ctx.store.set_uploaded_path(record.path)
    info = await run_in_threadpool(probe_video, record.path)

    return UploadResponse(
        message="Video file uploaded successfully",
        filename=record.filename,
        path=record.path,
        size_bytes=record.size_bytes,
        video_info=VideoInfoData(**info.to_json()) if info else None,
    )


# ── Synchronous processing ────────────────────────────────────────────────────

@router.post("/process-video")
async def process_video(request: Request, ctx: ServiceContext = Depends(get_context)):
    """
    Store the raw MP4 body, run the engine over it to completion and
    return the vitals summary.

    Returns 409 while a session is active, 400 for an empty body and 500
    when the engine fails or produces no readings.
    """
    busy_message = "Processing already in progress. Wait for current processing to complete."
    if ctx.store.status.is_active:
        return _busy(busy_message)

    body = await request.body()
    if not body:
        return _no_body("Send video file as raw binary data in POST body")

    try:
        record = await run_in_threadpool(save_upload, body, ctx.upload_dir)
    except UploadError:
        return _save_failed()

    try:
        ctx.store.begin_session(record.path)
    except SessionBusyError:
        return _busy(busy_message)
    ctx.store.set_uploaded_path(record.path)

    logger.info("Processing video with Presage SmartSpectra SDK…")
    result = await run_in_threadpool(ctx.driver.run, record.path, ctx.api_key)

    if result.failure_kind in (ENGINE_INIT, ENGINE_RUN):
        failure = ProcessVideoFailure(
            error="Vitals extraction failed",
            message=result.message,
            video_file=record.filename,
            failure_kind=result.failure_kind,
            readings_count=result.readings_count,
        )
        return JSONResponse(status_code=500, content=failure.model_dump())

    if result.readings_count == 0:
        if result.failure_kind == ENGINE_UNAVAILABLE:
            message = f"{result.message}. Install the SDK to extract real vital signs."
        else:
            message = (
                "Presage SDK did not return any vital sign readings. "
                "Check video quality and ensure face is visible."
            )
        failure = ProcessVideoFailure(error=NO_DATA_ERROR, message=message, video_file=record.filename)
        return JSONResponse(status_code=500, content=failure.model_dump(exclude_none=True))

    return ProcessVideoResponse(
        success=True,
        video_file=record.filename,
        vitals=summarize(result.samples),
        data_source=DATA_SOURCE,
        note="Vitals extracted using Presage SmartSpectra SDK",
    )


# ── Background processing ─────────────────────────────────────────────────────

@router.get("/test", status_code=202)
async def start_test(ctx: ServiceContext = Depends(get_context)):
    """
    Start a run in a background thread and return immediately.

    Uses the last uploaded video when there is one, otherwise the live
    camera for a bounded window.  Poll GET /status and GET /live.
    Answers 400 when there is neither an uploaded video nor a camera.
    """
    if ctx.store.status.is_active:
        return _busy("Processing already running")

    video_path = ctx.store.uploaded_path
    if not video_path and not camera_device_available():
        logger.warning("No video file uploaded and no camera device found.")
        body = ErrorResponse(
            error="No video file uploaded and camera check failed. Cannot proceed.",
            hint="Upload a video file first using POST /upload",
        )
        return JSONResponse(status_code=400, content=body.model_dump())

    try:
        ctx.store.begin_session(video_path)
    except SessionBusyError:
        return _busy("Processing already running")

    thread = threading.Thread(
        target=ctx.driver.run,
        args=(video_path, ctx.api_key),
        name="extraction-run",
        daemon=True,
    )
    thread.start()

    if video_path:
        message = "Video file processing started. Processing entire video."
    else:
        message = f"Camera test started. Will run for {ctx.driver.live_run_seconds:g} seconds."
    logger.info(message)

    return RunStartedResponse(
        message=message,
        check_console="Vital signs will be printed to console/stdout",
        using_video_file=bool(video_path),
    )


# ── Live ──────────────────────────────────────────────────────────────────────

@router.get("/live")
async def live(ctx: ServiceContext = Depends(get_context)):
    """Most recent sample, or a hint to start a run."""
    latest = ctx.store.latest
    if latest is None:
        return LivePlaceholder(
            message="No vitals data available yet",
            suggestion="Call /test first to collect data",
        )
    return latest.to_json()
