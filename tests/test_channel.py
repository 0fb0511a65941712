"""
Tests for the command channel and the assist session behind it.
"""
import asyncio

import pytest

from conftest import FakeForm, ScriptedBackend
from jobfill.backend import TemplateBackend
from jobfill.channel import AssistSession, CommandChannel
from jobfill.detectors import GreenhouseDetector
from jobfill.page import PageSnapshot

URL = "https://boards.greenhouse.io/globex/jobs/4012345"
HTML = """
<html><head><title>Job Application for R&amp;D Engineer at Globex</title></head><body>
<div class="job__title"><h1>R&amp;D Engineer</h1></div>
<div class="job__location"><div>Berlin</div></div>
<div class="job__description"><p>Prototype hardware tooling in Python.</p></div>
<form id="application-form">
  <label for="q1">Why do you want to work at Globex?</label>
  <textarea id="q1" name="q1"></textarea>
  <label for="q2">Are you authorized to work in Germany?</label>
  <select id="q2" name="q2"><option value="">Select...</option><option value="1">Yes</option><option value="0">No</option></select>
</form>
</body></html>
"""

AUTH_OPTIONS = (("", "Select..."), ("1", "Yes"), ("0", "No"))


class GatedBackend(ScriptedBackend):
    """Blocks every generation until ``gate`` is set."""

    def __init__(self):
        super().__init__()
        self.entered = asyncio.Event()
        self.gate = asyncio.Event()

    async def generate(self, question, profile, job=None, options=None):
        self.entered.set()
        await self.gate.wait()
        return await super().generate(question, profile, job, options)


def _form():
    return FakeForm().add("#q1", multiline=True).add("#q2", kind="select", options=AUTH_OPTIONS)


def _session(cache, backend=None, form=None, html=HTML, url=URL, profile=None, **kwargs):
    detector = GreenhouseDetector(PageSnapshot(url, html))
    return AssistSession(
        detector, cache, backend or ScriptedBackend(), profile or {"name": "<b>Ann</b>"},
        form=form, **kwargs,
    )


@pytest.fixture
def form():
    return _form()


@pytest.fixture
def session(cache, form, recording_sleep):
    return _session(cache, form=form, autofill_settings={"simulate_typing": False}, sleep=recording_sleep)


@pytest.fixture
def channel(session):
    return CommandChannel(session)


def _ids(session):
    return [q.id for q in session.questions()]


class TestEnvelope:
    """Tests for message validation."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message", ["GET_JOB_DATA", None, ["GET_JOB_DATA"]])
    async def test_malformed_message(self, channel, message):
        response = await channel.handle(message)
        assert response == {"success": False, "error": "Malformed message: expected an object"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("action", ["DELETE_EVERYTHING", None, 42, "get_job_data"])
    async def test_unknown_action(self, channel, action):
        response = await channel.handle({"action": action})
        assert response["success"] is False
        assert response["error"].startswith("Unknown action")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("action", ["REGENERATE_ANSWER", "UPDATE_ANSWER", "SAVE_ANSWER_TO_CACHE"])
    @pytest.mark.parametrize("question_id", [["x"], {"id": "x"}, 7])
    async def test_non_string_question_id(self, channel, action, question_id):
        response = await channel.handle({"action": action, "questionId": question_id, "answer": "Mine"})
        assert response == {"success": False, "error": "questionId must be a string"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("delay", [None, [1], "fast", -5, True, float("inf")])
    async def test_bad_delay(self, channel, session, form, delay):
        q1, _ = _ids(session)
        response = await channel.handle({"action": "FILL_ANSWERS", "answers": {q1: "Mission"}, "delayMs": delay})
        assert response == {"success": False, "error": "delayMs must be a non-negative number"}
        assert form.controls["#q1"]["value"] == ""

    @pytest.mark.asyncio
    async def test_generate_while_running(self, cache, form):
        backend = GatedBackend()
        channel = CommandChannel(_session(cache, backend=backend, form=form))

        first = asyncio.ensure_future(channel.handle({"action": "GENERATE_ANSWERS", "useCached": False}))
        await backend.entered.wait()
        second = await channel.handle({"action": "GENERATE_ANSWERS"})
        backend.gate.set()

        assert second == {"success": False, "error": "A generation run is already in progress"}
        assert (await first)["success"] is True


class TestQueries:
    @pytest.mark.asyncio
    async def test_get_job_data_is_escaped(self, channel):
        response = await channel.handle({"action": "GET_JOB_DATA"})
        assert response["success"] is True
        job = response["jobData"]
        assert job["title"] == "R&amp;D Engineer"
        assert job["company"] == "Globex"
        assert job["sourceSite"] == "Greenhouse"

    @pytest.mark.asyncio
    async def test_get_job_data_off_board(self, cache):
        channel = CommandChannel(_session(cache, url="https://boards.greenhouse.io/globex"))
        assert await channel.handle({"action": "GET_JOB_DATA"}) == {"success": True, "jobData": None}

    @pytest.mark.asyncio
    async def test_get_screening_questions(self, channel, session):
        response = await channel.handle({"action": "GET_SCREENING_QUESTIONS"})
        questions = response["questions"]
        assert [q["id"] for q in questions] == _ids(session)
        assert [q["type"] for q in questions] == ["text", "boolean"]
        assert questions[1]["options"] == ["Yes", "No"]

    @pytest.mark.asyncio
    async def test_question_selectors_not_escaped(self, cache):
        html = """
        <html><body><div class="job__title"><h1>Engineer</h1></div>
        <form id="application-form">
          <label>Years of "hands-on" Python?<input name="years_python"></label>
        </form></body></html>
        """
        channel = CommandChannel(_session(cache, html=html))
        question, = (await channel.handle({"action": "GET_SCREENING_QUESTIONS"}))["questions"]
        assert question["selector"] == 'input[name="years_python"]'
        assert question["text"] == "Years of &quot;hands-on&quot; Python?"

    def test_profile_kept_raw_without_pollution_keys(self, cache):
        session = _session(cache, profile={"name": "<b>Ann</b>", "__proto__": {"admin": True}})
        assert session.profile == {"name": "<b>Ann</b>"}


class TestGeneration:
    @pytest.mark.asyncio
    async def test_generate_answers(self, channel):
        response = await channel.handle({"action": "GENERATE_ANSWERS", "useCached": False})
        assert response["success"] is True
        assert len(response["answers"]) == 2
        assert response["statistics"]["generated"] == 2
        assert response["errors"] == []

    @pytest.mark.asyncio
    async def test_unreachable_backend_reported(self, cache, form):
        from jobfill.errors import BackendUnreachable

        session = _session(cache, form=form)
        backend = ScriptedBackend(failures={qid: BackendUnreachable("down") for qid in _ids(session)})
        session.backend = backend
        response = await CommandChannel(session).handle({"action": "GENERATE_ANSWERS"})
        assert response == {"success": False, "error": "down"}

    @pytest.mark.asyncio
    async def test_regenerate(self, channel, session):
        qid = _ids(session)[0]
        response = await channel.handle({"action": "REGENERATE_ANSWER", "questionId": qid})
        assert response["success"] is True
        assert response["answer"]["questionId"] == qid
        assert response["answer"]["fromCache"] is False

    @pytest.mark.asyncio
    async def test_regenerate_requires_known_id(self, channel):
        missing = await channel.handle({"action": "REGENERATE_ANSWER"})
        assert missing == {"success": False, "error": "Missing required field: questionId"}
        unknown = await channel.handle({"action": "REGENERATE_ANSWER", "questionId": "q9_nope"})
        assert unknown == {"success": False, "error": "Unknown question id: q9_nope"}

    @pytest.mark.asyncio
    async def test_update_answer(self, channel, session):
        qid = _ids(session)[0]
        response = await channel.handle({"action": "UPDATE_ANSWER", "questionId": qid, "answer": " Mine "})
        assert response["answer"]["answer"] == "Mine"
        assert response["answer"]["userEdited"] is True

        bad = await channel.handle({"action": "UPDATE_ANSWER", "questionId": qid, "answer": 3})
        assert bad["success"] is False


class TestSaveToCache:
    @pytest.mark.asyncio
    async def test_save(self, channel, session, cache):
        qid = _ids(session)[0]
        await channel.handle({"action": "GENERATE_ANSWERS"})
        response = await channel.handle({"action": "SAVE_ANSWER_TO_CACHE", "questionId": qid, "rating": 5})
        assert response["success"] is True
        assert response["cachedAnswer"]["rating"] == 5
        assert len(cache) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rating", ["5", 2.5, 9])
    async def test_bad_rating(self, channel, session, cache, rating):
        qid = _ids(session)[0]
        await channel.handle({"action": "GENERATE_ANSWERS"})
        response = await channel.handle({"action": "SAVE_ANSWER_TO_CACHE", "questionId": qid, "rating": rating})
        assert response["success"] is False
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_nothing_to_save(self, channel, session):
        qid = _ids(session)[0]
        response = await channel.handle({"action": "SAVE_ANSWER_TO_CACHE", "questionId": qid})
        assert response["success"] is False
        assert "No answer" in response["error"]


class TestFill:
    """Tests for FILL_ANSWERS."""

    @pytest.mark.asyncio
    async def test_fill_from_mapping(self, channel, session, form):
        q1, q2 = _ids(session)
        response = await channel.handle({"action": "FILL_ANSWERS", "answers": {q1: "Mission", q2: "Yes"}})
        assert response["success"] is True
        assert response["result"] == {"success": True, "filledCount": 2, "failures": [], "skipped": []}
        assert form.controls["#q1"]["value"] == "Mission"
        assert form.controls["#q2"]["value"] == "1"
        assert session.last_fill.filled_count == 2

    @pytest.mark.asyncio
    async def test_fill_from_list(self, channel, session, form):
        q1, q2 = _ids(session)
        response = await channel.handle({
            "action": "FILL_ANSWERS",
            "answers": [{"questionId": q1, "answer": "Mission"}, {"answer": "orphan"}, "junk"],
        })
        assert response["result"]["filledCount"] == 1
        assert response["result"]["skipped"] == [q2]

    @pytest.mark.asyncio
    async def test_fill_uses_session_answers(self, channel, session, form):
        q1, q2 = _ids(session)
        await channel.handle({"action": "GENERATE_ANSWERS"})
        await channel.handle({"action": "UPDATE_ANSWER", "questionId": q2, "answer": "Yes"})
        response = await channel.handle({"action": "FILL_ANSWERS"})
        assert response["result"]["filledCount"] == 2
        assert form.controls["#q1"]["value"] == "Answer to Why do you want to work at Globex?"

    @pytest.mark.asyncio
    async def test_fill_options_override_settings(self, channel, session, form, recording_sleep):
        q1, _ = _ids(session)
        await channel.handle({
            "action": "FILL_ANSWERS", "answers": {q1: "abc"}, "simulateTyping": True, "delayMs": 10,
        })
        assert recording_sleep.delays == [0.01, 0.01]
        assert [e[2] for e in form.events if e[0] == "input"] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_skip_filled_flag(self, channel, session, form):
        q1, _ = _ids(session)
        form.controls["#q1"]["value"] = "Typed by hand"
        response = await channel.handle({"action": "FILL_ANSWERS", "answers": {q1: "New"}, "skipFilled": True})
        assert q1 in response["result"]["skipped"]
        assert form.controls["#q1"]["value"] == "Typed by hand"

    @pytest.mark.asyncio
    async def test_profile_text_reaches_form_unescaped(self, cache, form, recording_sleep):
        """Should type profile punctuation as-is, not as HTML entities."""
        session = _session(
            cache, backend=TemplateBackend(), form=form, sleep=recording_sleep,
            profile={"name": "Ann", "summary": "I'm free from 1/9 & can relocate."},
            autofill_settings={"simulate_typing": False},
        )
        channel = CommandChannel(session)

        generated = await channel.handle({"action": "GENERATE_ANSWERS", "useCached": False})
        filled = await channel.handle({"action": "FILL_ANSWERS"})
        saved = await channel.handle({"action": "SAVE_ANSWER_TO_CACHE", "questionId": _ids(session)[0]})

        expected = "I am excited about the R&D Engineer position at Globex. I'm free from 1/9 & can relocate."
        assert generated["answers"][0]["answer"] == expected
        assert filled["result"]["filledCount"] == 2
        assert form.controls["#q1"]["value"] == expected
        assert saved["cachedAnswer"]["answerText"] == expected

    @pytest.mark.asyncio
    async def test_bad_answers_payload(self, channel):
        response = await channel.handle({"action": "FILL_ANSWERS", "answers": "Mission"})
        assert response == {"success": False, "error": "answers must be an object or a list"}

    @pytest.mark.asyncio
    async def test_no_form_attached(self, cache):
        channel = CommandChannel(_session(cache))
        response = await channel.handle({"action": "FILL_ANSWERS", "answers": {}})
        assert response == {"success": False, "error": "No form surface attached to this session"}


class TestSessionPage:
    def test_navigation_resets_questions(self, session):
        before = session.questions()
        session.update_page(PageSnapshot("https://boards.greenhouse.io/globex/jobs/999", "<html></html>"))
        assert session.questions() == []
        assert before

    def test_same_url_keeps_questions(self, session):
        before = session.questions()
        session.update_page(PageSnapshot(URL, "<html></html>"))
        assert session.questions() is before
