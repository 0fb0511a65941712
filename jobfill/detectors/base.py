"""Detector interface shared by every supported job board.

A detector reads one page snapshot. ``detect()`` memoizes the extracted
posting for ``cache_ttl`` seconds because UI components poll the same page
repeatedly while it is open; there is no reliable "DOM changed" signal on
third-party pages, so expiry is purely time-based.
"""
from __future__ import annotations

import copy
import re
import time
from abc import ABC, abstractmethod
from typing import Callable, Iterable

from bs4 import Tag

from jobfill.log import get_logger
from jobfill.models import JobPosting, SalaryRange, ScreeningQuestion
from jobfill.page import PageSnapshot, element_text
from jobfill.questions import QuestionDetector

log = get_logger(__name__)

DEFAULT_CACHE_TTL = 5.0

REMOTE_KEYWORDS: tuple[str, ...] = ("remote", "work from home", "wfh", "telecommute", "anywhere")

# (pattern, label) checked in order; the first hit wins
JOB_TYPE_VOCAB: tuple[tuple[str, str], ...] = (
    (r"\bfull[\s-]?time\b", "Full-time"),
    (r"\bpart[\s-]?time\b", "Part-time"),
    (r"\bintern(?:ship)?s?\b", "Internship"),
    (r"\bcontract(?:or)?\b", "Contract"),
    (r"\btemporary\b|\btemp\b", "Temporary"),
    (r"\bvolunteer\b", "Volunteer"),
)

SENIORITY_VOCAB: tuple[tuple[str, str], ...] = (
    (r"\bintern(?:ship)?\b", "Internship"),
    (r"\bentry[\s-]?level\b|\bjunior\b|\bgraduate\b", "Entry level"),
    (r"\bmid[\s-]?senior\b", "Mid-Senior level"),
    (r"\bassociate\b", "Associate"),
    (r"\bdirector\b", "Director"),
    (r"\bexecutive\b|\bvice president\b|\bchief\b", "Executive"),
    (r"\bsenior\b|\bstaff\b|\bprincipal\b|\blead\b", "Mid-Senior level"),
)

SKILL_KEYWORDS: tuple[str, ...] = (
    "JavaScript", "TypeScript", "Python", "Java", "Go", "Rust", "C++", "C#", "Ruby",
    "React", "Vue.js", "Angular", "Node.js", "Django", "Flask", "FastAPI",
    "AWS", "GCP", "Azure", "Docker", "Kubernetes", "Terraform",
    "SQL", "PostgreSQL", "MySQL", "MongoDB", "Redis", "Kafka", "Spark",
    "Git", "CI/CD", "Agile", "REST API", "GraphQL", "Machine Learning",
    "TensorFlow", "PyTorch", "HTML", "CSS",
)

_CURRENCY_SYMBOLS = {"$": "USD", "€": "EUR", "£": "GBP", "₹": "INR"}
_CURRENCY_CODE_RE = re.compile(r"\b(USD|EUR|GBP|CAD|AUD|INR)\b")
_SALARY_RE = re.compile(
    r"(?P<cur>[$€£₹])?\s*(?P<min>\d[\d,]*(?:\.\d+)?)\s*(?P<k1>[kK])?(?:\s*/\s*\w+)?"
    r"\s*(?:-|–|—|to)\s*"
    r"(?P<cur2>[$€£₹])?\s*(?P<max>\d[\d,]*(?:\.\d+)?)\s*(?P<k2>[kK])?"
)
_APPLICANT_RE = re.compile(r"(\d[\d,]*)")


def parse_job_type(text: str | None) -> str | None:
    if not text:
        return None
    low = text.lower()
    for pattern, label in JOB_TYPE_VOCAB:
        if re.search(pattern, low):
            return label
    return None


def parse_seniority(text: str | None) -> str | None:
    if not text:
        return None
    low = text.lower()
    for pattern, label in SENIORITY_VOCAB:
        if re.search(pattern, low):
            return label
    return None


def parse_applicant_count(text: str | None) -> int | None:
    """Leading integer of '50 applicants', '100+ applicants', 'Over 1,200 applicants'."""
    if not text:
        return None
    match = _APPLICANT_RE.search(text)
    if not match:
        return None
    return int(match.group(1).replace(",", ""))


def is_remote(location: str | None, description: str | None, keywords: Iterable[str] = REMOTE_KEYWORDS) -> bool:
    combined = f"{location or ''} {description or ''}".lower()
    return any(re.search(rf"\b{re.escape(k)}\b", combined) for k in keywords)


def _to_number(raw: str, has_k: bool) -> int:
    value = float(raw.replace(",", ""))
    return int(round(value * 1000)) if has_k else int(round(value))


def extract_salary(text: str | None) -> SalaryRange | None:
    """Parse '$50k-$80k', '$120,000 - $150,000', '90K to 110K EUR'.

    A bare number range with neither currency nor 'k' is not treated as a
    salary (years, headcounts); anything unparsable yields None.
    """
    if not text:
        return None
    for match in _SALARY_RE.finditer(text):
        symbol = match.group("cur") or match.group("cur2")
        k1, k2 = bool(match.group("k1")), bool(match.group("k2"))
        code = _CURRENCY_CODE_RE.search(text)
        if not (symbol or k1 or k2 or code):
            continue
        try:
            low = _to_number(match.group("min"), k1 or (k2 and float(match.group("min").replace(",", "")) < 1000))
            high = _to_number(match.group("max"), k2 or (k1 and float(match.group("max").replace(",", "")) < 1000))
        except ValueError:
            continue
        if low <= 0 or high < low:
            continue
        currency = _CURRENCY_SYMBOLS.get(symbol) if symbol else (code.group(1) if code else None)
        return SalaryRange(min=low, max=high, currency=currency, raw=match.group(0).strip())
    return None


def extract_skills(source: str | Iterable[str] | None) -> frozenset[str]:
    """Skills from tag texts, or keyword matches when given a description."""
    if not source:
        return frozenset()
    if isinstance(source, str):
        found = set()
        for skill in SKILL_KEYWORDS:
            if re.search(rf"(?<![\w+#]){re.escape(skill)}(?![\w+#])", source, re.IGNORECASE):
                found.add(skill)
        return frozenset(found)
    return frozenset(t.strip() for t in source if t and t.strip() and len(t.strip()) < 50)


def clean_description(text: str | None) -> str:
    if not text:
        return ""
    return re.sub(r"\s+", " ", text).strip()


class JobDetector(ABC):
    """One job board's view of a page.

    Subclasses declare ``name``, ``domains``, ``job_path_patterns`` and
    ``form_selectors`` and implement ``extract_job_data``.
    """

    name: str = ""
    domains: tuple[str, ...] = ()
    job_path_patterns: tuple[str, ...] = ()
    form_selectors: tuple[str, ...] = ()
    remote_keywords: tuple[str, ...] = REMOTE_KEYWORDS

    def __init__(
        self,
        page: PageSnapshot,
        *,
        cache_ttl: float = DEFAULT_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
        question_detector: QuestionDetector | None = None,
    ) -> None:
        self.page = page
        self.cache_ttl = cache_ttl
        self.cache: JobPosting | None = None
        self.cache_time: float | None = None
        self._clock = clock
        self._questions = question_detector or QuestionDetector()

    @classmethod
    def matches_host(cls, hostname: str) -> bool:
        host = (hostname or "").lower()
        return any(host == d or host.endswith("." + d) for d in cls.domains)

    def matches_path(self) -> bool:
        return any(re.search(p, self.page.path) for p in self.job_path_patterns)

    def is_job_board(self) -> bool:
        return self.matches_host(self.page.hostname) and self.matches_path()

    @abstractmethod
    def extract_job_data(self) -> JobPosting:
        """Read the posting from the current snapshot; missing nodes become None."""

    def parse_job_type(self, text: str | None) -> str | None:
        return parse_job_type(text)

    def parse_seniority(self, text: str | None) -> str | None:
        return parse_seniority(text)

    def parse_applicant_count(self, text: str | None) -> int | None:
        return parse_applicant_count(text)

    def is_remote(self, location: str | None, description: str | None) -> bool:
        return is_remote(location, description, self.remote_keywords)

    def detect(self) -> JobPosting | None:
        cached = self.get_cached()
        if cached is not None:
            log.debug("[%s] Returning cached posting", self.name)
            return cached

        if not self.is_job_board():
            return None

        try:
            posting = self.extract_job_data()
        except Exception as exc:
            log.error("[%s] Extraction failed on %s: %s", self.name, self.page.url, exc)
            return None

        if not posting.title or not posting.company:
            log.warning("[%s] Incomplete posting on %s (title=%r, company=%r)",
                        self.name, self.page.url, posting.title, posting.company)
            return None

        self.cache = posting
        self.cache_time = self._clock()
        log.info("[%s] Detected: %s @ %s", self.name, posting.title, posting.company)
        return posting

    def get_cached(self) -> JobPosting | None:
        if self.cache is None or self.cache_time is None:
            return None
        if self._clock() - self.cache_time < self.cache_ttl:
            return self.cache
        self.clear_cache()
        return None

    def clear_cache(self) -> None:
        self.cache = None
        self.cache_time = None

    def refresh(self, page: PageSnapshot) -> None:
        """Attach a newer snapshot; navigating to another URL drops the cache."""
        if page.url != self.page.url:
            self.clear_cache()
        self.page = page

    def extract_questions(self) -> list[ScreeningQuestion]:
        roots: list[Tag] = []
        for sel in self.form_selectors:
            for el in self.page.select(sel):
                if not any(el is r for r in roots):
                    roots.append(el)
        return self._questions.detect(self.page, roots or None)

    # -- DOM helpers ---------------------------------------------------------

    def description_text(self, selectors: list[str], strip: tuple[str, ...] = ()) -> str:
        """Description body with application forms and UI chrome removed."""
        for sel in selectors:
            el = self.page.select_one(sel)
            if el is None:
                continue
            clone = copy.copy(el)
            for junk in strip:
                for node in self.page.select(junk, clone):
                    node.decompose()
            text = clean_description(element_text(clone))
            if text:
                return text
        return ""

    def texts(self, selector: str) -> list[str]:
        return [t for t in (element_text(el) for el in self.page.select(selector)) if t]
