"""Write accepted answers back into an application form.

The engine talks to the page through a ``FormSurface``; ``PlaywrightForm``
is the live implementation. Typing is modelled as a generator of single
character steps so the pacing can be driven by any sleep function.
"""
from __future__ import annotations

import asyncio
import re
from typing import Awaitable, Callable, Iterable, Iterator, Mapping, NamedTuple, Optional, Protocol, Union

from playwright.async_api import Error as PlaywrightError

from jobfill.errors import FillError
from jobfill.log import get_logger
from jobfill.models import FillFailure, FillResult, GeneratedAnswer, ScreeningQuestion
from jobfill.sanitizer import sanitize_answer

log = get_logger(__name__)

ELEMENT_NOT_FOUND = "element not found"
FIELD_DISABLED = "field disabled"
VALUE_REJECTED = "value rejected"

_TRUTHY = {"yes", "true", "1", "y", "on", "checked"}

Sleep = Callable[[float], Awaitable[None]]


class ControlState(NamedTuple):
    kind: str  # text | select | checkbox | radio
    value: str
    disabled: bool = False
    options: tuple[tuple[str, str], ...] = ()  # (value, label)
    multiline: bool = False  # textarea or contenteditable


_LINE_BREAK_RE = re.compile(r"\s*[\r\n]+\s*")


def single_line(text: str) -> str:
    """Join paragraphs with spaces; Enter in an <input> submits the form."""
    return _LINE_BREAK_RE.sub(" ", text).strip()


class TypingStep(NamedTuple):
    char: str
    value: str


def typing_steps(text: str) -> Iterator[TypingStep]:
    """One step per character: the character typed and the value after it."""
    for i, ch in enumerate(text, 1):
        yield TypingStep(ch, text[:i])


class FormSurface(Protocol):
    async def describe(self, selector: str) -> Optional[ControlState]: ...

    async def clear(self, selector: str) -> None: ...

    async def type_step(self, selector: str, step: TypingStep) -> None: ...

    async def set_value(self, selector: str, value: str) -> None: ...

    async def commit(self, selector: str) -> None: ...

    async def select_option(self, selector: str, value: str) -> None: ...

    async def set_checked(self, selector: str, checked: bool) -> None: ...

    async def check_radio(self, selector: str, value: str) -> None: ...


def _is_truthy(text: str) -> bool:
    """'Yes', 'true', 'Yes, I am authorized' -> True; judged on the first word."""
    words = re.findall(r"\w+", text.lower())
    return bool(words) and words[0] in _TRUTHY


def _match_option(options: Iterable[tuple[str, str]], answer: str) -> Optional[str]:
    """Option value matching ``answer`` by value, then case-insensitive label."""
    options = list(options)
    for value, _ in options:
        if value == answer:
            return value
    wanted = answer.strip().lower()
    for value, label in options:
        if label.strip().lower() == wanted:
            return value
    return None


class AutofillEngine:
    def __init__(self, form: FormSurface, sleep: Sleep = asyncio.sleep) -> None:
        self.form = form
        self._sleep = sleep

    async def fill_answers(
        self,
        questions: list[ScreeningQuestion],
        answers: Union[Mapping[str, str], Iterable[GeneratedAnswer]],
        skip_filled: bool = False,
        simulate_typing: bool = True,
        delay_ms: int = 30,
    ) -> FillResult:
        if isinstance(answers, Mapping):
            by_id = dict(answers)
        else:
            by_id = {a.question_id: a.answer for a in answers}

        result = FillResult()
        for question in questions:
            text = sanitize_answer(by_id.get(question.id) or "")
            if not text:
                result.skipped.append(question.id)
                continue
            try:
                written = await self._fill_one(question, text, skip_filled, simulate_typing, delay_ms)
            except FillError as exc:
                log.warning("Fill failed for %s (%s): %s", question.id, question.selector, exc.reason)
                result.failures.append(FillFailure(question.id, exc.reason))
                continue
            if written:
                result.filled_count += 1
            else:
                result.skipped.append(question.id)

        result.success = not result.failures
        log.info(
            "Autofill: %d filled, %d skipped, %d failed",
            result.filled_count, len(result.skipped), len(result.failures),
        )
        return result

    async def _fill_one(
        self,
        question: ScreeningQuestion,
        text: str,
        skip_filled: bool,
        simulate_typing: bool,
        delay_ms: int,
    ) -> bool:
        selector = question.selector
        if not selector:
            raise FillError(ELEMENT_NOT_FOUND)
        state = await self.form.describe(selector)
        if state is None:
            raise FillError(ELEMENT_NOT_FOUND)
        if state.disabled:
            raise FillError(FIELD_DISABLED)
        if skip_filled and state.value.strip():
            log.debug("Skipping %s: already filled", question.id)
            return False

        if state.kind in ("select", "radio"):
            expected = _match_option(state.options, text)
            if expected is None and question.type == "boolean":
                wanted = "yes" if _is_truthy(text) else "no"
                expected = _match_option(state.options, wanted)
            if expected is None:
                raise FillError(VALUE_REJECTED)
            if state.kind == "select":
                await self.form.select_option(selector, expected)
            else:
                await self.form.check_radio(selector, expected)
        elif state.kind == "checkbox":
            checked = _is_truthy(text)
            expected = "true" if checked else ""
            await self.form.set_checked(selector, checked)
        else:
            if not state.multiline:
                text = single_line(text)
            expected = text
            if simulate_typing:
                await self._type(selector, text, delay_ms)
            else:
                await self.form.set_value(selector, text)
            await self.form.commit(selector)

        after = await self.form.describe(selector)
        if after is None or after.value != expected:
            raise FillError(VALUE_REJECTED)
        return True

    async def _type(self, selector: str, text: str, delay_ms: int) -> None:
        await self.form.clear(selector)
        for i, step in enumerate(typing_steps(text)):
            if i:
                await self._sleep(delay_ms / 1000.0)
            await self.form.type_step(selector, step)


_DESCRIBE_JS = """el => ({
  tag: el.tagName.toLowerCase(),
  multiline: el.tagName === 'TEXTAREA' || el.isContentEditable,
  type: (el.getAttribute('type') || '').toLowerCase(),
  value: el.type === 'checkbox' ? (el.checked ? 'true' : '') : (el.value || ''),
  disabled: !!el.disabled || el.getAttribute('aria-disabled') === 'true',
  options: el.tagName === 'SELECT' ? Array.from(el.options).map(o => [o.value, o.text.trim()]) : [],
})"""

_RADIO_JS = """els => els.map(el => [
  el.value,
  ((el.labels && el.labels.length ? el.labels[0].innerText : el.value) || '').trim(),
  el.checked,
  !!el.disabled,
])"""


class PlaywrightForm:
    """``FormSurface`` over an async Playwright ``Page``."""

    def __init__(self, page) -> None:
        self.page = page

    def _first(self, selector: str):
        return self.page.locator(selector).first

    async def describe(self, selector: str) -> Optional[ControlState]:
        try:
            loc = self.page.locator(selector)
            if await loc.count() == 0:
                return None
            info = await loc.first.evaluate(_DESCRIBE_JS)
            if info["type"] == "radio":
                radios = await loc.evaluate_all(_RADIO_JS)
                checked = next((r[0] for r in radios if r[2]), "")
                return ControlState(
                    kind="radio",
                    value=checked,
                    disabled=all(r[3] for r in radios),
                    options=tuple((r[0], r[1]) for r in radios),
                )
        except PlaywrightError as exc:
            log.debug("describe(%s) failed: %s", selector, exc)
            return None

        if info["tag"] == "select":
            kind = "select"
        elif info["type"] == "checkbox":
            kind = "checkbox"
        else:
            kind = "text"
        return ControlState(
            kind=kind,
            value=info["value"],
            disabled=info["disabled"],
            options=tuple((o[0], o[1]) for o in info["options"]),
            multiline=bool(info["multiline"]),
        )

    async def _run(self, action: Awaitable) -> None:
        try:
            await action
        except PlaywrightError as exc:
            raise FillError(VALUE_REJECTED) from exc

    async def clear(self, selector: str) -> None:
        await self._run(self._first(selector).fill(""))

    async def type_step(self, selector: str, step: TypingStep) -> None:
        # real key events; the site's own listeners see each keystroke
        await self._run(self._first(selector).press_sequentially(step.char))

    async def set_value(self, selector: str, value: str) -> None:
        await self._run(self._first(selector).fill(value))

    async def commit(self, selector: str) -> None:
        await self._run(self._first(selector).dispatch_event("change"))

    async def select_option(self, selector: str, value: str) -> None:
        await self._run(self._first(selector).select_option(value=value))

    async def set_checked(self, selector: str, checked: bool) -> None:
        await self._run(self._first(selector).set_checked(checked))

    async def check_radio(self, selector: str, value: str) -> None:
        await self._run(self.page.locator(f'{selector}[value="{value}"]').first.check())
