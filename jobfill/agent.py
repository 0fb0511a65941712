"""
Application assist runner.

Runs: open page → detect posting → extract questions → generate answers →
(optional) autofill → (optional) save to cache → run report.
"""
from __future__ import annotations

import os
from typing import Any

from playwright.async_api import async_playwright

from jobfill.answer_cache import AnswerCache, JsonStore
from jobfill.autofill import PlaywrightForm
from jobfill.backend import get_backend
from jobfill.channel import AssistSession, CommandChannel
from jobfill.config import cache_path, ensure_dirs, get_env, load_profile, load_settings
from jobfill.detectors import get_detector
from jobfill.log import get_logger
from jobfill.models import FillResult
from jobfill.page import PageSnapshot
from jobfill.report import build_run_report, write_run_report

log = get_logger(__name__)

_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


def _empty_result(url: str, reason: str) -> dict[str, Any]:
    return {
        "url": url, "job": None, "questions": 0, "answers": 0,
        "from_cache": 0, "failed": 0, "filled": 0, "saved": 0,
        "report_path": None, "error": reason,
    }


async def _checked(channel: CommandChannel, message: dict) -> dict:
    response = await channel.handle(message)
    if not response.get("success"):
        log.error("%s failed: %s", message["action"], response.get("error"))
    return response


async def run(
    url: str,
    *,
    fill: bool = False,
    save: bool = False,
    use_cached: bool = True,
    headless: bool | None = None,
    write_report: bool = True,
    settings: dict | None = None,
    profile: dict | None = None,
) -> dict[str, Any]:
    ensure_dirs()
    settings = settings or load_settings()
    profile = profile if profile is not None else load_profile()
    if headless is None:
        headless = os.environ.get("RUN_HEADLESS", "true").lower() in ("1", "true", "yes")

    cache = AnswerCache(
        JsonStore(cache_path(settings)),
        similarity_floor=float(settings["cache"]["similarity_floor"]),
    )
    backend = get_backend(settings, get_env)

    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=headless)
        context = await browser.new_context(viewport={"width": 1280, "height": 900}, user_agent=_USER_AGENT)
        page = await context.new_page()
        page.set_default_timeout(20_000)
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=25_000)
            await page.wait_for_timeout(2_000)
            snapshot = await PageSnapshot.from_playwright(page)

            detector = get_detector(
                url, page=snapshot, cache_ttl=float(settings["detector"]["cache_ttl_seconds"])
            )
            if detector is None:
                log.warning("No detector for %s", url)
                return _empty_result(url, "unsupported site")

            session = AssistSession(
                detector, cache, backend, profile,
                form=PlaywrightForm(page),
                autofill_settings=settings.get("autofill", {}),
            )
            channel = CommandChannel(session)

            job = session.job()
            if job is None:
                log.warning("No job posting detected on %s", url)
            await _checked(channel, {"action": "GET_SCREENING_QUESTIONS"})
            questions = session.questions()
            log.info("Found %d screening question(s)", len(questions))

            generation = {"success": True}
            if questions:
                generation = await _checked(channel, {"action": "GENERATE_ANSWERS", "useCached": use_cached})
            orchestrator = session.orchestrator
            answers = orchestrator.answers if generation.get("success") else []

            fill_result: FillResult | None = None
            if fill and answers:
                await _checked(channel, {"action": "FILL_ANSWERS"})
                fill_result = session.last_fill

            saved = 0
            if save:
                failed_ids = {f.question_id for f in (fill_result.failures if fill_result else [])}
                for a in answers:
                    if a.from_cache or a.question_id in failed_ids:
                        continue
                    response = await _checked(
                        channel, {"action": "SAVE_ANSWER_TO_CACHE", "questionId": a.question_id}
                    )
                    saved += bool(response.get("success"))
        finally:
            await browser.close()

    report_path = None
    if write_report:
        content = build_run_report(url, job, questions, answers, orchestrator.run, fill_result)
        report_path = write_run_report(content, job)

    stats = orchestrator.statistics()
    log.info(
        "Run complete: questions=%d, generated=%d, cached=%d, filled=%d, saved=%d",
        len(questions), stats.generated, stats.from_cache,
        fill_result.filled_count if fill_result else 0, saved,
    )
    return {
        "url": url,
        "job": job.to_dict() if job else None,
        "questions": len(questions),
        "answers": len(answers),
        "from_cache": stats.from_cache,
        "failed": len(orchestrator.run.errors),
        "filled": fill_result.filled_count if fill_result else 0,
        "saved": saved,
        "report_path": str(report_path) if report_path else None,
        "error": None if generation.get("success") else generation.get("error"),
    }

