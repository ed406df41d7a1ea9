#!/usr/bin/env python3
"""
Presage Vitals Engine — Main Entry Point
=========================================
Launches the FastAPI backend with Uvicorn on 0.0.0.0:8080.

Run with:  python main.py [API_KEY]

The API key falls back to SMARTSPECTRA_API_KEY, then PRESAGE_API_KEY.
The server starts even when the SmartSpectra SDK is missing; /status
then reports sdk_available=false.
"""

import argparse

import uvicorn

from api.app import create_app
from config import HOST, PORT, resolve_api_key


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Presage vitals extraction server")
    parser.add_argument("api_key", nargs="?", default=None, help="SmartSpectra API key")
    parser.add_argument("--host", default=HOST)
    parser.add_argument("--port", type=int, default=PORT)
    args = parser.parse_args(argv)

    app = create_app(api_key=resolve_api_key(args.api_key))
    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        reload=False,
        log_level="info",
    )


if __name__ == "__main__":
    main()
