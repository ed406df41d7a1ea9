"""
api/app.py — FastAPI application factory
==========================================
Creates and configures the FastAPI instance and the per-application
service state (session store + extraction driver).

CORS
----
Every response carries permissive CORS headers and any OPTIONS request
is answered directly with 200.  This is done in a small middleware
rather than Starlette's CORSMiddleware because the browser frontend is
not the only client: the headers must be present even when no Origin
header was sent.
"""

from fastapi import FastAPI, Request
from fastapi.responses import Response

from api.driver import ExtractionDriver
from api.routes import ServiceContext, router
from api.session import SessionStore
from config import API_TITLE, API_VERSION, LIVE_RUN_SECONDS, UPLOAD_DIR
from engine.base import EngineBackend
from engine.smartspectra import load_backend
from utils.logger import get_logger

logger = get_logger("api.app")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def create_app(
    api_key: str = "",
    backend: EngineBackend | None = None,
    store: SessionStore | None = None,
    upload_dir: str = UPLOAD_DIR,
    live_run_seconds: float = LIVE_RUN_SECONDS,
) -> FastAPI:
    """
    Construct and return the configured FastAPI application.

    `backend` defaults to the SmartSpectra processor found on PATH (or
    the unavailable stand-in).  Tests pass their own backend and store.
    """
    app = FastAPI(
        title=API_TITLE,
        version=API_VERSION,
        description="Extracts heart and breathing rate from video with the Presage SmartSpectra SDK.",
    )

    if backend is None:
        backend = load_backend()
    if store is None:
        store = SessionStore()

    app.state.vitals = ServiceContext(
        store=store,
        driver=ExtractionDriver(store, backend, live_run_seconds=live_run_seconds),
        api_key=api_key,
        upload_dir=upload_dir,
    )

    # ── CORS ────────────────────────────────────────────────────────────
    @app.middleware("http")
    async def cors_headers(request: Request, call_next):
        if request.method == "OPTIONS":
            response = Response(status_code=200)
        else:
            response = await call_next(request)
        response.headers.update(CORS_HEADERS)
        return response

    # ── Mount routes ────────────────────────────────────────────────────
    app.include_router(router)

    logger.info("Engine: %s", backend.description)
    logger.info("Uploads: %s", upload_dir)
    return app
