"""Answer cache: previously accepted answers, retrieved by question similarity.

Entries are persisted through a small JSON-file store. The cache never
evicts; entries accumulate until removed outside this package.
"""
from __future__ import annotations

import fcntl
import json
import os
import tempfile
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from jobfill.log import get_logger
from jobfill.models import CachedAnswer, ScreeningQuestion
from jobfill.questions import question_signature
from jobfill.sanitizer import POLLUTION_KEYS, sanitize_answer

log = get_logger(__name__)

DEFAULT_SIMILARITY_FLOOR = 0.6

STOP_WORDS: frozenset[str] = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "is", "are", "was", "were", "be", "been", "being",
    "have", "has", "had", "do", "does", "did", "will", "would", "could",
    "should", "may", "might", "can", "this", "that", "these", "those",
    "what", "which", "who", "whom", "how", "when", "where", "why", "your",
    "you", "we", "our", "us", "me", "my", "i", "it", "its",
})


def _lock(f, exclusive: bool = True) -> None:
    """Advisory file lock (Unix fcntl)."""
    try:
        op = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH
        fcntl.flock(f.fileno(), op)
    except (OSError, AttributeError):
        pass


def _unlock(f) -> None:
    try:
        fcntl.flock(f.fileno(), fcntl.LOCK_UN)
    except (OSError, AttributeError):
        pass


def keywords(text: str) -> set[str]:
    return {w for w in question_signature(text).split() if len(w) > 2 and w not in STOP_WORDS}


def similarity(a: str, b: str) -> float:
    """1.0 for identical signatures, otherwise Jaccard over question keywords."""
    sig_a, sig_b = question_signature(a), question_signature(b)
    if sig_a and sig_a == sig_b:
        return 1.0
    ka, kb = keywords(a), keywords(b)
    if not ka or not kb:
        return 0.0
    return len(ka & kb) / len(ka | kb)


class JsonStore:
    """Key-value store persisted as one JSON object on disk.

    Reads take a shared lock, writes go to a temp file that replaces the
    original under an exclusive lock on a sidecar ``.lock`` file.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock_path = self.path.with_name(self.path.name + ".lock")

    def load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            _lock(f, exclusive=False)
            try:
                raw = f.read()
            finally:
                _unlock(f)
        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            log.error("Answer store %s is corrupt (%s); starting empty", self.path.name, exc)
            return {}
        if not isinstance(data, dict):
            log.warning("Answer store %s is not a mapping; starting empty", self.path.name)
            return {}
        return {k: v for k, v in data.items() if k not in POLLUTION_KEYS}

    def save(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._lock_path, "a", encoding="utf-8") as lock_file:
            _lock(lock_file)
            try:
                fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".answers-", suffix=".tmp")
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as f:
                        json.dump(data, f, indent=2, ensure_ascii=False)
                    os.replace(tmp, self.path)
                except BaseException:
                    if os.path.exists(tmp):
                        os.unlink(tmp)
                    raise
            finally:
                _unlock(lock_file)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AnswerCache:
    def __init__(
        self,
        store: JsonStore | None = None,
        similarity_floor: float = DEFAULT_SIMILARITY_FLOOR,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.store = store
        self.similarity_floor = similarity_floor
        self._now = now
        self._entries: list[CachedAnswer] = []
        if store is not None:
            self._load()

    def _load(self) -> None:
        for key, raw in self.store.load().items():
            try:
                self._entries.append(CachedAnswer.from_dict(raw))
            except (KeyError, TypeError, ValueError) as exc:
                log.warning("Skipping malformed cache entry %s: %s", key, exc)
        self._entries.sort(key=lambda e: e.created_at)
        log.debug("Loaded %d cached answer(s)", len(self._entries))

    def _persist(self) -> None:
        if self.store is not None:
            self.store.save({e.id: e.to_dict() for e in self._entries})

    def _get(self, answer_id: str) -> CachedAnswer | None:
        return next((e for e in self._entries if e.id == answer_id), None)

    def lookup(
        self,
        question_text: str,
        question_type: str | None = None,
        limit: int | None = None,
    ) -> list[tuple[CachedAnswer, float]]:
        """Entries scoring above the similarity floor, best and newest first."""
        scored: list[tuple[float, str, int, CachedAnswer]] = []
        for index, entry in enumerate(self._entries):
            if question_type is not None and entry.question_type != question_type:
                continue
            score = similarity(question_text, entry.question_text or entry.question_signature)
            if score > self.similarity_floor:
                scored.append((score, entry.created_at, index, entry))

        scored.sort(key=lambda item: (item[0], item[1], item[2]), reverse=True)
        results = [(entry, round(score, 4)) for score, _, _, entry in scored]
        return results[:limit] if limit is not None else results

    def save(self, question: ScreeningQuestion, answer_text: str, rating: int | None = None) -> CachedAnswer:
        if rating is not None and not 1 <= rating <= 5:
            raise ValueError(f"rating must be between 1 and 5, got {rating}")
        stamp = self._now().isoformat()
        entry = CachedAnswer(
            id=f"answer_{uuid.uuid4().hex[:12]}",
            question_signature=question_signature(question.text),
            question_text=question.text,
            answer_text=sanitize_answer(answer_text),
            question_type=question.type,
            created_at=stamp,
            rating=rating,
            usage_count=0,
            last_used=stamp,
        )
        self._entries.append(entry)
        self._persist()
        log.info("Cached answer %s for %r", entry.id, question.text[:60])
        return entry

    def record_usage(self, answer_id: str) -> bool:
        entry = self._get(answer_id)
        if entry is None:
            return False
        entry.usage_count += 1
        entry.last_used = self._now().isoformat()
        self._persist()
        return True

    def update_rating(self, answer_id: str, rating: int) -> bool:
        if not 1 <= rating <= 5:
            raise ValueError(f"rating must be between 1 and 5, got {rating}")
        entry = self._get(answer_id)
        if entry is None:
            return False
        entry.rating = rating
        self._persist()
        return True

    def all(self) -> list[CachedAnswer]:
        return list(self._entries)

    def statistics(self) -> dict[str, Any]:
        by_type: dict[str, int] = {}
        for e in self._entries:
            by_type[e.question_type] = by_type.get(e.question_type, 0) + 1
        ratings = [e.rating for e in self._entries if e.rating is not None]
        return {
            "total_answers": len(self._entries),
            "by_type": by_type,
            "total_usage": sum(e.usage_count for e in self._entries),
            "average_rating": round(sum(ratings) / len(ratings), 2) if ratings else None,
        }

    def __len__(self) -> int:
        return len(self._entries)
