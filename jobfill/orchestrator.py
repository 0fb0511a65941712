"""Drive answer generation for one batch of screening questions.

One ``GenerationOrchestrator`` per generation context (questions, profile,
posting). Questions are answered strictly in order so progress callbacks and
statistics are deterministic.
"""
from __future__ import annotations

import inspect
from typing import Any, Awaitable, Callable, Union

from jobfill.answer_cache import AnswerCache
from jobfill.backend import GenerationBackend, format_answer
from jobfill.errors import BackendError, BackendUnreachable, UnknownQuestionError
from jobfill.log import get_logger
from jobfill.models import (
    CachedAnswer,
    GeneratedAnswer,
    GenerationError,
    GenerationProgress,
    GenerationRun,
    GenerationStatistics,
    JobPosting,
    RunState,
    ScreeningQuestion,
)
from jobfill.sanitizer import sanitize_answer

log = get_logger(__name__)

ProgressCallback = Callable[[GenerationProgress], Union[None, Awaitable[None]]]


class GenerationOrchestrator:
    def __init__(
        self,
        questions: list[ScreeningQuestion],
        backend: GenerationBackend,
        cache: AnswerCache,
        profile: dict | None = None,
        job: JobPosting | None = None,
    ) -> None:
        self.questions = list(questions)
        self._by_id = {q.id: q for q in self.questions}
        self.backend = backend
        self.cache = cache
        self.profile = profile or {}
        self.job = job
        self.run = GenerationRun(total=len(self.questions))
        self._answers: dict[str, GeneratedAnswer] = {}

    @property
    def answers(self) -> list[GeneratedAnswer]:
        """Current answers in question order; unanswered questions are absent."""
        return [self._answers[q.id] for q in self.questions if q.id in self._answers]

    def _question(self, question_id: str) -> ScreeningQuestion:
        try:
            return self._by_id[question_id]
        except KeyError:
            raise UnknownQuestionError(question_id) from None

    def _from_cache(self, question: ScreeningQuestion) -> GeneratedAnswer | None:
        matches = self.cache.lookup(question.text, question.type, limit=1)
        if not matches:
            return None
        entry, score = matches[0]
        self.cache.record_usage(entry.id)
        log.debug("Cache hit for %s (similarity %.2f)", question.id, score)
        return GeneratedAnswer(
            question_id=question.id,
            answer=format_answer(sanitize_answer(entry.answer_text), question.max_length),
            from_cache=True,
            cache_id=entry.id,
            similarity=score,
        )

    async def _from_backend(self, question: ScreeningQuestion) -> GeneratedAnswer:
        reply = await self.backend.generate(question, self.profile, self.job, {"useCached": False})
        return GeneratedAnswer(
            question_id=question.id,
            answer=sanitize_answer(reply.answer),
            from_cache=False,
            confidence=reply.confidence,
            token_count=reply.token_count,
        )

    async def generate_all(
        self,
        use_cached: bool = True,
        on_progress: ProgressCallback | None = None,
    ) -> list[GeneratedAnswer]:
        if self.run.state == RunState.RUNNING:
            raise RuntimeError("A generation run is already in progress")

        self.run = GenerationRun(total=len(self.questions), state=RunState.RUNNING)
        self._answers = {}
        log.info("Generating answers for %d question(s) via %s", len(self.questions), self.backend.name)

        try:
            for index, question in enumerate(self.questions, 1):
                answer = self._from_cache(question) if use_cached else None
                if answer is None:
                    try:
                        answer = await self._from_backend(question)
                    except BackendUnreachable:
                        raise
                    except BackendError as exc:
                        log.warning("No answer for %s: %s", question.id, exc)
                        self.run.errors.append(GenerationError(question.id, question.text, str(exc)))

                if answer is not None:
                    self._answers[question.id] = answer

                self.run.current = index
                if on_progress is not None:
                    result = on_progress(GenerationProgress(index, len(self.questions), question.text))
                    if inspect.isawaitable(result):
                        await result
        except BackendUnreachable as exc:
            self.run.state = RunState.FAILED
            self._answers = {}
            log.error("Generation run failed: %s", exc)
            raise
        except BaseException:
            self.run.state = RunState.FAILED
            raise

        self.run.state = RunState.COMPLETE
        self.run.statistics = self.statistics()
        stats = self.run.statistics
        log.info(
            "Generation complete: %d generated, %d from cache, %d failed",
            stats.generated, stats.from_cache, len(self.run.errors),
        )
        return self.answers

    async def regenerate(self, question_id: str) -> GeneratedAnswer:
        """Fresh backend answer for one question, replacing any earlier one."""
        question = self._question(question_id)
        answer = await self._from_backend(question)
        self._answers[question_id] = answer
        self.run.statistics = self.statistics()
        return answer

    def accept(self, answer: GeneratedAnswer) -> GeneratedAnswer:
        self._question(answer.question_id)
        answer.answer = sanitize_answer(answer.answer)
        self._answers[answer.question_id] = answer
        return answer

    def update_answer(self, question_id: str, text: str) -> GeneratedAnswer:
        self._question(question_id)
        current = self._answers.get(question_id)
        if current is None:
            current = GeneratedAnswer(question_id=question_id, answer="")
            self._answers[question_id] = current
        current.answer = sanitize_answer(text)
        current.user_edited = True
        return current

    def save_answer(self, question_id: str, rating: int | None = None) -> CachedAnswer:
        question = self._question(question_id)
        answer = self._answers.get(question_id)
        if answer is None or not answer.answer:
            raise ValueError(f"No answer to save for question {question_id}")
        return self.cache.save(question, answer.answer, rating)

    def statistics(self) -> GenerationStatistics:
        answers = self.answers
        confidences = [a.confidence for a in answers if not a.from_cache and a.confidence is not None]
        by_type: dict[str, int] = {}
        for a in answers:
            qtype = self._by_id[a.question_id].type
            by_type[qtype] = by_type.get(qtype, 0) + 1
        return GenerationStatistics(
            total_questions=len(self.questions),
            generated=sum(1 for a in answers if not a.from_cache),
            from_cache=sum(1 for a in answers if a.from_cache),
            user_edited=sum(1 for a in answers if a.user_edited),
            total_tokens=sum(a.token_count or 0 for a in answers),
            average_confidence=round(sum(confidences) / len(confidences), 3) if confidences else None,
            by_type=by_type,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "answers": [a.to_dict() for a in self.answers],
            "statistics": self.statistics().to_dict(),
            "errors": [{"questionId": e.question_id, "error": e.error} for e in self.run.errors],
        }
