"""Data models for postings, screening questions, answers and runs."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

QUESTION_TYPES: tuple[str, ...] = ("text", "boolean", "select", "numeric")


@dataclass(frozen=True)
class SalaryRange:
    min: int
    max: int
    currency: str | None = None
    raw: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"min": self.min, "max": self.max, "currency": self.currency, "raw": self.raw}


@dataclass(frozen=True)
class JobPosting:
    title: str | None
    company: str | None
    location: str | None
    application_url: str
    source_site: str
    description: str | None = None
    salary_range: SalaryRange | None = None
    job_type: str | None = None
    seniority: str | None = None
    remote: bool = False
    skills: frozenset[str] = frozenset()
    applicant_count: int | None = None
    posted_date: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "company": self.company,
            "location": self.location,
            "salaryRange": self.salary_range.to_dict() if self.salary_range else None,
            "jobType": self.job_type,
            "seniority": self.seniority,
            "remote": self.remote,
            "skills": sorted(self.skills),
            "applicantCount": self.applicant_count,
            "postedDate": self.posted_date,
            "applicationUrl": self.application_url,
            "sourceSite": self.source_site,
            "description": self.description,
        }


@dataclass(frozen=True)
class ScreeningQuestion:
    id: str
    text: str
    type: str = "text"
    is_required: bool = False
    max_length: int | None = None
    options: tuple[str, ...] | None = None
    selector: str | None = None
    topic: str = "generic"
    current_value: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "type": self.type,
            "isRequired": self.is_required,
            "maxLength": self.max_length,
            "options": list(self.options) if self.options is not None else None,
            "selector": self.selector,
            "topic": self.topic,
            "currentValue": self.current_value,
        }


@dataclass
class CachedAnswer:
    id: str
    question_signature: str
    question_text: str
    answer_text: str
    question_type: str
    created_at: str
    rating: int | None = None
    usage_count: int = 0
    last_used: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "questionSignature": self.question_signature,
            "questionText": self.question_text,
            "answerText": self.answer_text,
            "questionType": self.question_type,
            "rating": self.rating,
            "usageCount": self.usage_count,
            "createdAt": self.created_at,
            "lastUsed": self.last_used,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "CachedAnswer":
        return cls(
            id=str(raw["id"]),
            question_signature=raw.get("questionSignature", ""),
            question_text=raw.get("questionText", ""),
            answer_text=raw.get("answerText", ""),
            question_type=raw.get("questionType", "text"),
            created_at=raw.get("createdAt", ""),
            rating=raw.get("rating"),
            usage_count=int(raw.get("usageCount", 0)),
            last_used=raw.get("lastUsed", ""),
        )


@dataclass
class GeneratedAnswer:
    question_id: str
    answer: str
    from_cache: bool = False
    cache_id: str | None = None
    similarity: float | None = None
    confidence: float | None = None
    token_count: int | None = None
    user_edited: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "questionId": self.question_id,
            "answer": self.answer,
            "fromCache": self.from_cache,
            "cacheId": self.cache_id,
            "similarity": self.similarity,
            "confidence": self.confidence,
            "tokenCount": self.token_count,
            "userEdited": self.user_edited,
        }


@dataclass
class GenerationProgress:
    current: int
    total: int
    question: str


@dataclass
class GenerationError:
    question_id: str
    question_text: str
    error: str


@dataclass
class GenerationStatistics:
    total_questions: int = 0
    generated: int = 0
    from_cache: int = 0
    user_edited: int = 0
    total_tokens: int = 0
    average_confidence: float | None = None
    by_type: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalQuestions": self.total_questions,
            "generated": self.generated,
            "fromCache": self.from_cache,
            "userEdited": self.user_edited,
            "totalTokens": self.total_tokens,
            "averageConfidence": self.average_confidence,
            "byType": dict(self.by_type),
        }


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class GenerationRun:
    total: int = 0
    current: int = 0
    state: RunState = RunState.IDLE
    statistics: GenerationStatistics = field(default_factory=GenerationStatistics)
    errors: list[GenerationError] = field(default_factory=list)


@dataclass
class FillFailure:
    question_id: str
    reason: str


@dataclass
class FillResult:
    success: bool = True
    filled_count: int = 0
    failures: list[FillFailure] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "filledCount": self.filled_count,
            "failures": [{"questionId": f.question_id, "reason": f.reason} for f in self.failures],
            "skipped": list(self.skipped),
        }
