#!/usr/bin/env python3
"""Entry point: detect, answer and optionally fill one job application page."""
from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))

from jobfill.log import configure, get_logger
from jobfill.config import PROFILE_PATH

log = get_logger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Answer and autofill a job application's screening questions.")
    parser.add_argument("url", help="Job posting or application URL")
    parser.add_argument("--fill", action="store_true", help="Write answers into the form (accept-all review)")
    parser.add_argument("--save", action="store_true", help="Save generated answers to the answer cache")
    parser.add_argument("--no-cache", action="store_true", help="Ignore cached answers and regenerate everything")
    parser.add_argument("--headed", action="store_true", help="Show the browser window")
    parser.add_argument("--no-report", action="store_true", help="Skip writing the markdown report")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    if args.verbose:
        configure("DEBUG")
    if not PROFILE_PATH.exists():
        log.warning("No profile at %s, answers will use an empty profile", PROFILE_PATH)
        log.warning("Copy config/profile.example.yaml to config/profile.yaml and fill it in")

    from jobfill.agent import run

    result = asyncio.run(
        run(
            args.url,
            fill=args.fill,
            save=args.save,
            use_cached=not args.no_cache,
            headless=False if args.headed else None,
            write_report=not args.no_report,
        )
    )
    log.info("Run complete.")
    job = result["job"]
    if job:
        log.info("  Job: %s @ %s", job["title"], job["company"])
    log.info("  Questions: %d", result["questions"])
    log.info("  Answers: %d (%d from cache, %d failed)", result["answers"], result["from_cache"], result["failed"])
    if args.fill:
        log.info("  Filled: %d", result["filled"])
    if args.save:
        log.info("  Saved to cache: %d", result["saved"])
    if result["report_path"]:
        log.info("  Report: %s", result["report_path"])
    if result["error"]:
        log.error("  Error: %s", result["error"])
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
