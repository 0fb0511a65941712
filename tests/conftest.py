"""
Shared fixtures: fake form surface, scripted backends and a recording sleep.

Nothing here touches a real browser or network.
"""
import os
import tempfile

os.environ.setdefault("JOBFILL_LOG_DIR", tempfile.mkdtemp(prefix="jobfill-logs-"))

import pytest

from jobfill.answer_cache import AnswerCache, JsonStore
from jobfill.autofill import ControlState
from jobfill.backend import BackendReply, GenerationBackend
from jobfill.models import ScreeningQuestion


class FakeForm:
    """In-memory FormSurface; ``controls`` maps selector -> control dict."""

    def __init__(self, controls=None):
        self.controls = controls or {}
        self.events = []

    def add(self, selector, kind="text", value="", disabled=False, options=(), maxlength=None, reject=False,
            multiline=False):
        self.controls[selector] = {
            "kind": kind,
            "value": value,
            "disabled": disabled,
            "options": tuple(options),
            "maxlength": maxlength,
            "reject": reject,
            "multiline": multiline,
        }
        return self

    def _write(self, selector, value):
        control = self.controls[selector]
        if control["reject"]:
            return
        if not control["multiline"]:
            # browsers drop line breaks from <input> values
            value = value.replace("\r", "").replace("\n", "")
        if control["maxlength"] is not None:
            value = value[: control["maxlength"]]
        control["value"] = value

    async def describe(self, selector):
        control = self.controls.get(selector)
        if control is None:
            return None
        return ControlState(
            control["kind"], control["value"], control["disabled"], control["options"], control["multiline"]
        )

    async def clear(self, selector):
        self._write(selector, "")

    async def type_step(self, selector, step):
        if step.char == "\n" and not self.controls[selector]["multiline"]:
            self.events.append(("submit", selector, None))
        self._write(selector, step.value)
        self.events.append(("input", selector, step.char))

    async def set_value(self, selector, value):
        self._write(selector, value)
        self.events.append(("input", selector, value))

    async def commit(self, selector):
        self.events.append(("change", selector, None))

    async def select_option(self, selector, value):
        self._write(selector, value)
        self.events.append(("change", selector, value))

    async def set_checked(self, selector, checked):
        self._write(selector, "true" if checked else "")
        self.events.append(("click", selector, checked))

    async def check_radio(self, selector, value):
        self._write(selector, value)
        self.events.append(("click", selector, value))


class ScriptedBackend(GenerationBackend):
    """Answers ``Answer to <text>``; ``failures`` maps question id -> exception."""

    name = "scripted"

    def __init__(self, failures=None, confidence=0.8, tokens=10):
        self.failures = failures or {}
        self.confidence = confidence
        self.tokens = tokens
        self.calls = []

    async def generate(self, question, profile, job=None, options=None):
        self.calls.append(question.id)
        exc = self.failures.get(question.id)
        if exc is not None:
            raise exc
        return BackendReply(f"Answer to {question.text}", self.confidence, self.tokens)


class RecordingSleep:
    """Virtual clock: records every requested delay instead of sleeping."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)

    @property
    def elapsed(self):
        return sum(self.delays)


def make_question(position, text, qtype="text", selector=None, **kwargs):
    from jobfill.questions import classify_topic, make_question_id

    return ScreeningQuestion(
        id=make_question_id(position, text),
        text=text,
        type=qtype,
        selector=selector or f"#q{position}",
        topic=classify_topic(text),
        **kwargs,
    )


@pytest.fixture
def fake_form():
    return FakeForm()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def backend():
    return ScriptedBackend()


@pytest.fixture
def cache():
    return AnswerCache()


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "answers.json"


@pytest.fixture
def file_cache(store_path):
    return AnswerCache(JsonStore(store_path))


@pytest.fixture
def five_questions():
    texts = [
        "Why do you want to work at our company?",
        "Describe a challenging project you led recently.",
        "What is your greatest strength as an engineer?",
        "When can you start if we make you an offer?",
        "What are your salary expectations for this role?",
    ]
    return [make_question(i, t) for i, t in enumerate(texts)]

