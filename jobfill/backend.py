"""Answer generation backends: hosted HTTP endpoint, Groq chat, or offline template."""
from __future__ import annotations

import asyncio
import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable

import openai
import requests

from jobfill.config import get_env
from jobfill.errors import BackendError, BackendUnreachable
from jobfill.log import get_logger
from jobfill.models import JobPosting, ScreeningQuestion
from jobfill.retry import retry

log = get_logger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_MODEL = "llama-3.3-70b-versatile"

_GUIDELINES: dict[str, list[str]] = {
    "companyInterest": [
        "Express genuine interest in the company and role",
        "Connect your skills and experience to the job requirements",
        "Be specific and authentic",
        "Keep it concise (150-250 words)",
    ],
    "strengths": [
        "Choose 2-3 specific strengths relevant to the role",
        "Provide concrete examples from your experience",
        "Keep it focused (100-200 words)",
    ],
    "weaknesses": [
        "Pick a genuine but non-critical weakness",
        "Show what you are doing to improve",
        "Keep it brief (80-150 words)",
    ],
    "projectExperience": [
        "Use the situation, task, action, result structure",
        "Quantify the outcome where possible",
        "Keep it focused (150-250 words)",
    ],
    "careerMotivation": [
        "Explain where you want to grow and why this role fits",
        "Stay positive about past employers",
        "Keep it concise (100-200 words)",
    ],
    "technicalSkills": [
        "Name the tools and languages you actually use",
        "Tie them to the job's stack",
        "Keep it concise (80-150 words)",
    ],
    "salary": [
        "Give a researched range or defer politely",
        "Keep it to one or two sentences",
    ],
    "availability": [
        "State a concrete start date or notice period",
        "Keep it to one sentence",
    ],
    "workStyle": [
        "Describe how you collaborate and communicate",
        "Keep it concise (80-150 words)",
    ],
    "generic": [
        "Answer the question directly",
        "Draw on the candidate profile where relevant",
        "Keep it concise (under 150 words)",
    ],
}


@dataclass
class BackendReply:
    answer: str
    confidence: float | None = None
    token_count: int | None = None


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text or "") / 4)


def estimate_confidence(answer: str, question: ScreeningQuestion, profile: dict) -> float:
    """Heuristic 0..1 score: longer, specific, quantified answers score higher."""
    score = 0.7
    if len(answer) > 200:
        score += 0.1
    low = answer.lower()
    if "example" in low or "specifically" in low:
        score += 0.05
    if re.search(r"\d", answer):
        score += 0.05
    if profile.get("resume") or profile.get("experience_summary") or profile.get("summary"):
        score += 0.05
    return round(min(score, 1.0), 2)


def format_answer(raw: str, max_length: int | None) -> str:
    """Trim to ``max_length`` at a sentence boundary, hard-cutting as a last resort."""
    answer = (raw or "").strip()
    if max_length and len(answer) > max_length:
        truncated = ""
        for sentence in re.split(r"(?<=[.!?])\s+", answer):
            if len(truncated) + len(sentence) + 1 > max_length:
                break
            truncated = f"{truncated} {sentence}".strip()
        answer = truncated or answer[: max(max_length - 3, 0)].rstrip() + "..."
        answer = answer[:max_length]
    return re.sub(r"\n{3,}", "\n\n", answer)


def _profile_context(profile: dict, job: JobPosting | None) -> str:
    lines = ["CANDIDATE PROFILE:"]
    name = profile.get("name") or " ".join(
        p for p in (profile.get("first_name"), profile.get("last_name")) if p
    )
    if name:
        lines.append(f"Name: {name}")
    title = profile.get("title") or profile.get("current_title")
    if title:
        lines.append(f"Current role: {title}")
    if profile.get("years_experience"):
        lines.append(f"Experience: {profile['years_experience']} years")
    skills = profile.get("skills") or []
    if skills:
        lines.append(f"Skills: {', '.join(str(s) for s in skills[:12])}")
    summary = profile.get("summary") or profile.get("experience_summary")
    if summary:
        lines.append(f"Summary: {summary}")

    lines.append("")
    lines.append("TARGET POSITION:")
    if job is not None:
        lines.append(f"Company: {job.company or 'Not specified'}")
        lines.append(f"Role: {job.title or 'Not specified'}")
        if job.description:
            lines.append(f"Job description: {job.description[:500]}")
    else:
        lines.append("Not specified")
    return "\n".join(lines)


def build_prompt(question: ScreeningQuestion, profile: dict, job: JobPosting | None = None) -> str:
    guidelines = list(_GUIDELINES.get(question.topic, _GUIDELINES["generic"]))
    if question.max_length:
        guidelines.append(f"Maximum length: {question.max_length} characters")
    if question.type in ("boolean", "select") and question.options:
        guidelines.append(f"Reply with exactly one of: {', '.join(question.options)}")
    elif question.type == "boolean":
        guidelines.append("Reply with exactly Yes or No")
    elif question.type == "numeric":
        guidelines.append("Reply with a single number")

    numbered = "\n".join(f"{i}. {g}" for i, g in enumerate(guidelines, 1))
    return (
        f"{_profile_context(profile, job)}\n\n"
        f"TASK: Answer the following screening question for a job application.\n\n"
        f'QUESTION: "{question.text}"\n\n'
        f"GUIDELINES:\n{numbered}\n\n"
        "Write the answer in first person without placeholders:"
    )


class GenerationBackend(ABC):
    name: str = ""

    @abstractmethod
    async def generate(
        self,
        question: ScreeningQuestion,
        profile: dict,
        job: JobPosting | None = None,
        options: dict[str, Any] | None = None,
    ) -> BackendReply:
        """Answer one question; raise BackendError or BackendUnreachable on failure."""


class HttpBackend(GenerationBackend):
    """Hosted endpoint taking ``{question, profile, options}`` and returning JSON."""

    name = "http"

    def __init__(self, url: str, timeout: float = 30, session: requests.Session | None = None) -> None:
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    @retry(max_attempts=2, base_delay=1.0, retryable=(requests.Timeout,))
    def _post(self, payload: dict) -> requests.Response:
        return self.session.post(self.url, json=payload, timeout=self.timeout)

    async def generate(self, question, profile, job=None, options=None) -> BackendReply:
        payload = {
            "question": question.to_dict(),
            "profile": profile,
            "options": {**(options or {}), "job": job.to_dict() if job else None},
        }
        try:
            r = await asyncio.to_thread(self._post, payload)
        except requests.ConnectionError as exc:
            raise BackendUnreachable(f"Cannot reach generation backend at {self.url}: {exc}") from exc
        except requests.RequestException as exc:
            raise BackendError(f"Generation request failed: {exc}") from exc

        try:
            data = r.json()
        except ValueError as exc:
            raise BackendError(f"Backend returned non-JSON response (HTTP {r.status_code})") from exc

        if not r.ok or not isinstance(data, dict) or data.get("error"):
            detail = data.get("error") if isinstance(data, dict) else data
            raise BackendError(f"Backend error (HTTP {r.status_code}): {detail}")

        answer = data.get("answer")
        if not isinstance(answer, str) or not answer.strip():
            raise BackendError("Backend returned an empty answer")
        return BackendReply(
            answer=format_answer(answer, question.max_length),
            confidence=data.get("confidence"),
            token_count=data.get("tokenCount"),
        )


class OpenAIBackend(GenerationBackend):
    """OpenAI-compatible chat completions, pointed at Groq by default."""

    name = "groq"

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        base_url: str = GROQ_BASE_URL,
        max_tokens: int = 400,
        client: Any = None,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self.client = client or openai.AsyncOpenAI(api_key=api_key, base_url=base_url)

    @retry(max_attempts=2, base_delay=2.0, retryable=(openai.RateLimitError, openai.APITimeoutError))
    async def _complete(self, prompt: str) -> Any:
        return await self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=self.max_tokens,
        )

    async def generate(self, question, profile, job=None, options=None) -> BackendReply:
        prompt = build_prompt(question, profile, job)
        try:
            r = await self._complete(prompt)
        except openai.APITimeoutError as exc:
            raise BackendError(f"Generation timed out: {exc}") from exc
        except openai.APIConnectionError as exc:
            raise BackendUnreachable(f"Cannot reach {self.name} API: {exc}") from exc
        except openai.APIError as exc:
            raise BackendError(f"Generation failed: {exc}") from exc

        content = (r.choices[0].message.content or "").strip() if r.choices else ""
        if not content:
            raise BackendError("Model returned an empty answer")
        answer = format_answer(content, question.max_length)
        usage = getattr(r, "usage", None)
        tokens = getattr(usage, "total_tokens", None) or estimate_tokens(prompt + answer)
        return BackendReply(
            answer=answer,
            confidence=estimate_confidence(answer, question, profile),
            token_count=tokens,
        )


class TemplateBackend(GenerationBackend):
    """Offline answers assembled from the profile; used when nothing else is configured."""

    name = "template"

    async def generate(self, question, profile, job=None, options=None) -> BackendReply:
        answer = self._answer(question, profile, job)
        return BackendReply(
            answer=format_answer(answer, question.max_length),
            confidence=0.5,
            token_count=0,
        )

    @staticmethod
    def _answer(question: ScreeningQuestion, profile: dict, job: JobPosting | None) -> str:
        if question.type == "boolean":
            return "Yes"
        if question.type == "select" and question.options:
            return question.options[0]
        if question.type == "numeric":
            return str(profile.get("years_experience") or 0)

        skills = ", ".join(str(s) for s in (profile.get("skills") or [])[:5])
        company = job.company if job and job.company else "your company"
        role = job.title if job and job.title else "this role"
        summary = profile.get("summary", "")
        if question.topic == "availability":
            return profile.get("availability") or "I can start within two weeks of an offer."
        if question.topic == "salary":
            return profile.get("salary_expectation") or "I am open to a competitive offer in line with the market for this role."
        parts = [f"I am excited about the {role} position at {company}."]
        if summary:
            parts.append(summary)
        if skills:
            parts.append(f"My experience includes {skills}, which I would bring to the team.")
        return " ".join(parts)


def get_backend(settings: dict, env_getter: Callable[[str], str] = get_env) -> GenerationBackend:
    cfg = settings.get("backend", {})
    url = env_getter("JOBFILL_BACKEND_URL") or cfg.get("url", "")
    if url:
        log.info("Using generation backend: HTTP (%s)", url)
        return HttpBackend(url, timeout=float(cfg.get("timeout_seconds", 30)))

    api_key = env_getter("GROQ_API_KEY")
    if api_key:
        model = env_getter("GROQ_LLM_MODEL") or cfg.get("model", DEFAULT_MODEL)
        log.info("Using generation backend: Groq (%s)", model)
        return OpenAIBackend(api_key, model=model, max_tokens=int(cfg.get("max_tokens", 400)))

    log.info("No backend URL or GROQ_API_KEY set, using template answers")
    return TemplateBackend()
