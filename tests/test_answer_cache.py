"""
Tests for the answer cache and its JSON store.
"""
import json
from datetime import datetime, timedelta, timezone

import pytest

from conftest import make_question
from jobfill.answer_cache import AnswerCache, JsonStore, keywords, similarity


class Ticker:
    """Clock that moves one minute forward on every call."""

    def __init__(self):
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        self.now += timedelta(minutes=1)
        return self.now


FIXED = datetime(2024, 6, 1, tzinfo=timezone.utc)


class TestSimilarity:
    def test_identical_signature_scores_one(self):
        assert similarity("Why us?", "why   US") == 1.0

    def test_keyword_jaccard(self):
        """Should drop stop words and short words before comparing."""
        assert keywords("What is your greatest strength?") == {"greatest", "strength"}
        assert similarity("What is your greatest strength?", "Describe your greatest strength") == pytest.approx(2 / 3)

    def test_no_keywords_scores_zero(self):
        assert similarity("Why?", "Who are you?") == 0.0


class TestLookup:
    """Tests for AnswerCache.lookup."""

    def test_below_floor_excluded(self, cache):
        cache.save(make_question(0, "What is your greatest strength?"), "Focus.")
        assert cache.lookup("What is your greatest weakness?") == []

    def test_partial_match_above_floor(self, cache):
        entry = cache.save(make_question(0, "What is your greatest strength?"), "Focus.")
        assert cache.lookup("Describe your greatest strength") == [(entry, 0.6667)]

    def test_best_then_newest_first(self):
        cache = AnswerCache(now=Ticker())
        old = cache.save(make_question(0, "What is your greatest strength?"), "old")
        new = cache.save(make_question(0, "What is your greatest strength?"), "new")
        partial = cache.save(make_question(0, "Describe your greatest strength"), "partial")

        results = cache.lookup("What is your greatest strength?")
        assert [e for e, _ in results] == [new, old, partial]
        assert [s for _, s in results] == [1.0, 1.0, 0.6667]

    def test_same_timestamp_falls_back_to_insertion_order(self):
        cache = AnswerCache(now=lambda: FIXED)
        first = cache.save(make_question(0, "When can you start?"), "Now")
        second = cache.save(make_question(0, "When can you start?"), "Monday")
        assert [e for e, _ in cache.lookup("When can you start?")] == [second, first]

    def test_type_filter(self, cache):
        cache.save(make_question(0, "Are you willing to relocate?", qtype="boolean"), "Yes")
        text_entry = cache.save(make_question(0, "Are you willing to relocate?"), "Happy to discuss")
        results = cache.lookup("Are you willing to relocate?", question_type="text")
        assert [e for e, _ in results] == [text_entry]

    def test_limit(self, cache):
        for i in range(3):
            cache.save(make_question(0, "What is your notice period?"), f"{i} weeks")
        assert len(cache.lookup("What is your notice period?", limit=1)) == 1

    def test_score_equal_to_floor_excluded(self):
        cache = AnswerCache(similarity_floor=2 / 3)
        cache.save(make_question(0, "What is your greatest strength?"), "Focus.")
        assert cache.lookup("Describe your greatest strength") == []
        assert len(cache.lookup("What is your greatest strength?")) == 1

    def test_custom_floor(self):
        cache = AnswerCache(similarity_floor=0.9)
        cache.save(make_question(0, "What is your greatest strength?"), "Focus.")
        assert cache.lookup("Describe your greatest strength") == []


class TestSaveAndUpdate:
    def test_save_fields(self, cache):
        q = make_question(3, "Why do you want to work here?")
        entry = cache.save(q, "  Because<script>x()</script> I like it  ", rating=4)
        assert entry.id.startswith("answer_")
        assert entry.answer_text == "Because I like it"
        assert entry.question_signature == "why do you want to work here"
        assert entry.question_type == "text"
        assert entry.rating == 4
        assert entry.usage_count == 0
        assert entry.created_at == entry.last_used
        assert len(cache) == 1

    @pytest.mark.parametrize("rating", [0, 6, -1])
    def test_save_rejects_out_of_range_rating(self, cache, rating):
        with pytest.raises(ValueError):
            cache.save(make_question(0, "Why us?"), "text", rating=rating)
        assert len(cache) == 0

    def test_update_rating(self, cache):
        entry = cache.save(make_question(0, "Why us?"), "text")
        assert cache.update_rating(entry.id, 5) is True
        assert entry.rating == 5
        assert cache.update_rating("answer_missing", 3) is False
        with pytest.raises(ValueError):
            cache.update_rating(entry.id, 9)

    def test_record_usage(self):
        cache = AnswerCache(now=Ticker())
        entry = cache.save(make_question(0, "Why us?"), "text")
        created = entry.last_used
        assert cache.record_usage(entry.id) is True
        assert cache.record_usage(entry.id) is True
        assert entry.usage_count == 2
        assert entry.last_used > created
        assert cache.record_usage("answer_missing") is False

    def test_statistics(self, cache):
        assert cache.statistics() == {"total_answers": 0, "by_type": {}, "total_usage": 0, "average_rating": None}
        a = cache.save(make_question(0, "Why us?"), "x", rating=4)
        cache.save(make_question(1, "Relocate?", qtype="boolean"), "Yes", rating=5)
        cache.save(make_question(2, "Years?", qtype="numeric"), "4")
        cache.record_usage(a.id)
        assert cache.statistics() == {
            "total_answers": 3,
            "by_type": {"text": 1, "boolean": 1, "numeric": 1},
            "total_usage": 1,
            "average_rating": 4.5,
        }


class TestPersistence:
    """Tests for JsonStore-backed caches."""

    def test_reload_from_disk(self, file_cache, store_path):
        entry = file_cache.save(make_question(0, "What is your greatest strength?"), "Focus.", rating=3)
        file_cache.record_usage(entry.id)

        on_disk = json.loads(store_path.read_text(encoding="utf-8"))
        assert list(on_disk) == [entry.id]
        assert on_disk[entry.id]["usageCount"] == 1

        reloaded = AnswerCache(JsonStore(store_path))
        assert [e.to_dict() for e in reloaded.all()] == [entry.to_dict()]
        assert reloaded.lookup("What is your greatest strength?")[0][0].answer_text == "Focus."

    def test_no_temp_files_left(self, file_cache, store_path):
        file_cache.save(make_question(0, "Why us?"), "x")
        assert list(store_path.parent.glob(".answers-*")) == []

    def test_missing_file_is_empty(self, store_path):
        assert JsonStore(store_path).load() == {}

    def test_corrupt_file_starts_empty(self, store_path):
        store_path.write_text("{not json", encoding="utf-8")
        cache = AnswerCache(JsonStore(store_path))
        assert len(cache) == 0
        cache.save(make_question(0, "Why us?"), "x")
        assert len(json.loads(store_path.read_text(encoding="utf-8"))) == 1

    def test_non_mapping_file_starts_empty(self, store_path):
        store_path.write_text("[1, 2]", encoding="utf-8")
        assert JsonStore(store_path).load() == {}

    def test_pollution_and_malformed_entries_skipped(self, store_path):
        good = {
            "id": "answer_good", "questionText": "Why us?", "answerText": "x",
            "questionType": "text", "createdAt": "2024-01-01T00:00:00+00:00",
        }
        store_path.write_text(json.dumps({
            "__proto__": {"id": "answer_evil"},
            "answer_bad": {"questionText": "no id"},
            "answer_str": "not a dict",
            "answer_good": good,
        }), encoding="utf-8")
        cache = AnswerCache(JsonStore(store_path))
        assert [e.id for e in cache.all()] == ["answer_good"]

    def test_entries_sorted_by_creation(self, store_path):
        def entry(i, stamp):
            return {"id": f"answer_{i}", "questionText": "Why us?", "answerText": str(i),
                    "questionType": "text", "createdAt": stamp}
        store_path.write_text(json.dumps({
            "answer_b": entry("b", "2024-02-01T00:00:00+00:00"),
            "answer_a": entry("a", "2024-01-01T00:00:00+00:00"),
        }), encoding="utf-8")
        cache = AnswerCache(JsonStore(store_path))
        assert [e.id for e in cache.all()] == ["answer_a", "answer_b"]
