#!/usr/bin/env python3
"""
demo_cli.py — Single-shot vitals extraction
============================================
Runs the extraction pipeline over a local video file WITHOUT the HTTP
server and streams the vitals to stdout.

Usage:
    python demo_cli.py YOUR_API_KEY [video_file_path]

The API key may instead come from SMARTSPECTRA_API_KEY.  The video path
defaults to /app/uploads/test-video.mp4.  Exit code 0 on success, 1 on
any failure.
"""

import argparse
import logging
import os
import sys

from api.driver import ExtractionDriver
from api.session import SessionStore
from config import DEFAULT_CLI_VIDEO
from engine.base import EngineBackend
from engine.smartspectra import load_backend
from features.vitals import Sample
from utils.logger import get_logger, set_level

logger = get_logger("demo_cli")


def print_vitals(sample: Sample) -> None:
    """One stdout line per callback that carried both rates."""
    if sample.has_both_rates:
        print(
            f"Vitals - Pulse: {sample.heart_rate_bpm:g} BPM, "
            f"Breathing: {sample.breathing_rate_bpm:g} BPM",
            flush=True,
        )


def _usage() -> None:
    print("Usage: hello-vitals YOUR_API_KEY [video_file_path]")
    print("Or set SMARTSPECTRA_API_KEY environment variable")
    print("Get your API key from: https://physiology.presagetech.com")
    print(f"Video file path is optional (default: {DEFAULT_CLI_VIDEO})")


def main(argv: list[str] | None = None, backend: EngineBackend | None = None) -> int:
    parser = argparse.ArgumentParser(description="SmartSpectra Hello Vitals")
    parser.add_argument("api_key", nargs="?", default=None, help="SmartSpectra API key")
    parser.add_argument("video_path", nargs="?", default=DEFAULT_CLI_VIDEO, help="Input video")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    if args.verbose:
        set_level(logging.DEBUG)

    api_key = args.api_key or os.getenv("SMARTSPECTRA_API_KEY")
    if not api_key:
        _usage()
        return 1

    print(f"Using video file: {args.video_path}")
    print("Starting SmartSpectra Hello Vitals...")

    store = SessionStore()
    store.begin_session(args.video_path)
    driver = ExtractionDriver(
        store,
        backend if backend is not None else load_backend(),
        on_sample=print_vitals,
    )

    print("Vitals will be printed to console as they are calculated.")
    result = driver.run(args.video_path, api_key)
    if not result.ok:
        print(f"Error: {result.message}", file=sys.stderr)
        return 1

    print("Done!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
