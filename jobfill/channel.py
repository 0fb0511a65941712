"""Command channel between the host page UI and the pipeline.

Every command returns ``{"success": True, ...payload}`` or
``{"success": False, "error": message}``.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable

from jobfill.answer_cache import AnswerCache
from jobfill.autofill import AutofillEngine, FormSurface
from jobfill.backend import GenerationBackend
from jobfill.detectors import JobDetector
from jobfill.errors import CommandError, JobfillError
from jobfill.log import get_logger
from jobfill.models import FillResult, JobPosting, ScreeningQuestion
from jobfill.orchestrator import GenerationOrchestrator
from jobfill.page import PageSnapshot
from jobfill.sanitizer import safe_clone, sanitize_job_data

log = get_logger(__name__)


class AssistSession:
    """Everything one page's assist flow needs, passed around explicitly."""

    def __init__(
        self,
        detector: JobDetector,
        cache: AnswerCache,
        backend: GenerationBackend,
        profile: dict | None = None,
        form: FormSurface | None = None,
        autofill_settings: dict | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.detector = detector
        self.cache = cache
        self.backend = backend
        # raw text for generation; escaping happens only on channel output
        self.profile = safe_clone(profile or {})
        self.form = form
        self.autofill_settings = autofill_settings or {}
        self._sleep = sleep
        self._questions: list[ScreeningQuestion] | None = None
        self._orchestrator: GenerationOrchestrator | None = None
        self.last_fill: FillResult | None = None

    @property
    def page(self) -> PageSnapshot:
        return self.detector.page

    def update_page(self, page: PageSnapshot) -> None:
        if page.url != self.page.url:
            self._questions = None
            self._orchestrator = None
        self.detector.refresh(page)

    def job(self) -> JobPosting | None:
        return self.detector.detect()

    def questions(self) -> list[ScreeningQuestion]:
        if self._questions is None:
            self._questions = self.detector.extract_questions()
        return self._questions

    @property
    def orchestrator(self) -> GenerationOrchestrator:
        if self._orchestrator is None:
            self._orchestrator = GenerationOrchestrator(
                self.questions(), self.backend, self.cache, self.profile, self.job()
            )
        return self._orchestrator

    def autofill(self) -> AutofillEngine:
        if self.form is None:
            raise CommandError("No form surface attached to this session")
        if self._sleep is not None:
            return AutofillEngine(self.form, sleep=self._sleep)
        return AutofillEngine(self.form)


def _require(message: dict, key: str) -> str:
    value = message.get(key)
    if value is None or value == "":
        raise CommandError(f"Missing required field: {key}")
    if not isinstance(value, str):
        raise CommandError(f"{key} must be a string")
    return value


def _delay_ms(value: Any) -> int:
    bad = CommandError("delayMs must be a non-negative number")
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise bad
    try:
        delay = int(value)
    except (ValueError, OverflowError):
        raise bad from None
    if delay < 0:
        raise bad
    return delay


class CommandChannel:
    def __init__(self, session: AssistSession) -> None:
        self.session = session
        self._handlers: dict[str, Callable[[dict], Awaitable[dict]]] = {
            "GET_JOB_DATA": self._get_job_data,
            "GET_SCREENING_QUESTIONS": self._get_questions,
            "GENERATE_ANSWERS": self._generate,
            "REGENERATE_ANSWER": self._regenerate,
            "UPDATE_ANSWER": self._update,
            "SAVE_ANSWER_TO_CACHE": self._save,
            "FILL_ANSWERS": self._fill,
        }

    async def handle(self, message: Any) -> dict:
        if not isinstance(message, dict):
            return {"success": False, "error": "Malformed message: expected an object"}
        action = message.get("action")
        handler = self._handlers.get(action) if isinstance(action, str) else None
        if handler is None:
            log.warning("Rejected command: %r", action)
            return {"success": False, "error": f"Unknown action: {action}"}

        log.debug("Handling %s", action)
        try:
            payload = await handler(message)
        except (JobfillError, ValueError, RuntimeError) as exc:
            log.warning("%s failed: %s", action, exc)
            return {"success": False, "error": str(exc)}
        return {"success": True, **payload}

    async def _get_job_data(self, message: dict) -> dict:
        job = self.session.job()
        return {"jobData": sanitize_job_data(job.to_dict()) if job else None}

    async def _get_questions(self, message: dict) -> dict:
        out = []
        for q in self.session.questions():
            data = q.to_dict()
            # selectors stay raw so they remain valid CSS
            selector = data.pop("selector")
            out.append({**sanitize_job_data(data), "selector": selector})
        return {"questions": out}

    async def _generate(self, message: dict) -> dict:
        orch = self.session.orchestrator
        await orch.generate_all(use_cached=bool(message.get("useCached", True)))
        return orch.to_dict()

    async def _regenerate(self, message: dict) -> dict:
        answer = await self.session.orchestrator.regenerate(_require(message, "questionId"))
        return {"answer": answer.to_dict()}

    async def _update(self, message: dict) -> dict:
        text = message.get("answer")
        if not isinstance(text, str):
            raise CommandError("Missing required field: answer")
        answer = self.session.orchestrator.update_answer(_require(message, "questionId"), text)
        return {"answer": answer.to_dict()}

    async def _save(self, message: dict) -> dict:
        rating = message.get("rating")
        if rating is not None and not isinstance(rating, int):
            raise CommandError("rating must be an integer")
        entry = self.session.orchestrator.save_answer(_require(message, "questionId"), rating)
        return {"cachedAnswer": entry.to_dict()}

    async def _fill(self, message: dict) -> dict:
        raw = message.get("answers")
        if raw is None:
            answers: Any = self.session.orchestrator.answers
        elif isinstance(raw, dict):
            answers = {str(k): str(v) for k, v in raw.items()}
        elif isinstance(raw, list):
            answers = {
                str(item["questionId"]): str(item.get("answer", ""))
                for item in raw
                if isinstance(item, dict) and item.get("questionId")
            }
        else:
            raise CommandError("answers must be an object or a list")

        cfg = self.session.autofill_settings
        result = await self.session.autofill().fill_answers(
            self.session.questions(),
            answers,
            skip_filled=bool(message.get("skipFilled", cfg.get("skip_filled", False))),
            simulate_typing=bool(message.get("simulateTyping", cfg.get("simulate_typing", True))),
            delay_ms=_delay_ms(message.get("delayMs", cfg.get("delay_ms", 30))),
        )
        self.session.last_fill = result
        return {"result": result.to_dict()}
