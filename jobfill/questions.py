"""Detect screening questions inside application forms."""
from __future__ import annotations

import hashlib
import re

from bs4 import Tag

from jobfill.log import get_logger
from jobfill.models import ScreeningQuestion
from jobfill.page import PageSnapshot, element_text

log = get_logger(__name__)

# topic -> (score, keywords); the highest-scoring matched topic wins
TOPIC_PATTERNS: dict[str, tuple[int, list[str]]] = {
    "companyInterest": (15, [
        "why do you want to work", "why are you interested in", "why this company",
        "what interests you about", "why do you want to join", "what attracts you to",
        "why should we hire you", "why are you applying",
    ]),
    "projectExperience": (12, [
        "describe a project", "challenging project", "difficult situation",
        "problem you solved", "achievement", "accomplishment", "example of when you",
        "tell me about a time", "tell us about a time", "give an example",
        "describe your experience with",
    ]),
    "strengths": (10, [
        "greatest strength", "top skill", "your strengths", "key competencies",
        "what makes you qualified", "unique skills", "core strengths",
    ]),
    "weaknesses": (10, [
        "greatest weakness", "areas for improvement", "what do you struggle with",
        "areas to develop",
    ]),
    "careerMotivation": (10, [
        "why are you leaving", "career goals", "where do you see yourself",
        "what are you looking for", "career aspirations", "professional goals",
        "why this role", "what motivates you",
    ]),
    "technicalSkills": (10, [
        "technical skills", "programming languages", "tools and technologies",
        "software proficiency", "technical experience", "years of experience",
        "development experience",
    ]),
    "salary": (8, [
        "salary expectation", "desired salary", "compensation", "expected pay",
        "salary range", "pay expectation",
    ]),
    "workStyle": (8, [
        "work style", "how do you work", "team or independent", "work environment",
        "collaboration style", "remote or office", "willing to relocate", "commute",
    ]),
    "availability": (5, [
        "when can you start", "availability", "start date", "notice period",
        "how soon can you", "earliest start",
    ]),
}

# Plain contact/profile fields are filled from the profile, not answered
_CONTACT_FIELD_RE = re.compile(
    r"^\s*(first name|last name|full name|name|preferred name|e-?mail( address)?|phone( number)?|"
    r"mobile|address|city|zip|postal code|country|resume|cv|cover letter|linkedin( profile| url)?|"
    r"website|portfolio|github)\s*\*?\s*$",
    re.IGNORECASE,
)
_SKIP_INPUT_TYPES = {"hidden", "submit", "button", "reset", "image", "file", "password", "email", "tel", "search"}
_CONTAINER_CLASS_RE = re.compile(r"question|field|form-group|application-question", re.IGNORECASE)
_REQUIRED_CLASS_RE = re.compile(r"required|mandatory", re.IGNORECASE)
_PLACEHOLDER_OPTION_RE = re.compile(r"^(select|choose|please select|--)", re.IGNORECASE)
_SIMPLE_ID_RE = re.compile(r"^[A-Za-z][\w-]*$")
_YES_NO = {"yes", "no"}

MIN_QUESTION_LENGTH = 10


def question_signature(text: str) -> str:
    """Lower-cased, punctuation-free, whitespace-collapsed question text."""
    low = (text or "").lower()
    low = re.sub(r"[^\w\s]", " ", low)
    return re.sub(r"\s+", " ", low).strip()


def make_question_id(position: int, text: str) -> str:
    digest = hashlib.sha1(question_signature(text).encode("utf-8")).hexdigest()[:10]
    return f"q{position}_{digest}"


def classify_topic(text: str) -> str:
    low = (text or "").lower()
    best, best_score = "generic", 0
    for topic, (score, keywords) in TOPIC_PATTERNS.items():
        if score > best_score and any(k in low for k in keywords):
            best, best_score = topic, score
    return best


def _clean_label(text: str) -> str:
    text = re.sub(r"\s+", " ", text or "").strip()
    return re.sub(r"\s*\*+\s*$", "", text).strip()


def _own_text(label: Tag, control: Tag) -> str:
    """Label text without the text of the control nested inside it."""
    parts: list[str] = []
    for s in label.find_all(string=True):
        parent = s.parent
        if parent is control or (isinstance(parent, Tag) and any(p is control for p in parent.parents)):
            continue
        if parent is not None and parent.name in ("option", "select", "textarea", "script", "style"):
            continue
        parts.append(str(s))
    return re.sub(r"\s+", " ", " ".join(parts)).strip()


class QuestionDetector:
    """Site-agnostic screening-question extraction.

    Detectors pass the form roots for their board; without roots every
    ``form`` on the page is scanned, and without forms the whole document.
    """

    def __init__(self, min_length: int = MIN_QUESTION_LENGTH) -> None:
        self.min_length = min_length

    def detect(self, page: PageSnapshot, roots: list[Tag] | None = None) -> list[ScreeningQuestion]:
        if not roots:
            roots = page.select("form") or [page.soup]

        questions: list[ScreeningQuestion] = []
        seen_selectors: set[str] = set()
        seen_radio_groups: set[str] = set()

        for root in roots:
            for control in root.find_all(["textarea", "input", "select"]):
                q = self._analyze(page, control, len(questions), seen_radio_groups)
                if q is None or (q.selector and q.selector in seen_selectors):
                    continue
                if q.selector:
                    seen_selectors.add(q.selector)
                questions.append(q)

        log.debug("Detected %d screening question(s) on %s", len(questions), page.hostname)
        return questions

    def _analyze(
        self,
        page: PageSnapshot,
        control: Tag,
        position: int,
        seen_radio_groups: set[str],
    ) -> ScreeningQuestion | None:
        tag = control.name
        input_type = (control.get("type") or "text").lower() if tag == "input" else tag
        if tag == "input" and input_type in _SKIP_INPUT_TYPES:
            return None
        if control.has_attr("hidden") or control.get("aria-hidden") == "true":
            return None

        options: tuple[str, ...] | None = None
        current: str | None = None

        if input_type == "radio":
            name = control.get("name") or ""
            if not name or name in seen_radio_groups:
                return None
            seen_radio_groups.add(name)
            group = page.select(f'input[type="radio"][name="{name}"]')
            options = tuple(self._radio_label(page, r) for r in group)
            checked = [r for r in group if r.has_attr("checked")]
            current = (checked[0].get("value") or "") if checked else None
            text = self._group_text(control)
            qtype = "boolean" if {o.lower() for o in options} == _YES_NO else "select"
            selector = f'input[type="radio"][name="{name}"]'
        else:
            text = self._find_question_text(page, control)
            selector = self._selector_for(control)
            if tag == "select":
                options = tuple(
                    element_text(o) for o in control.find_all("option")
                    if element_text(o) and o.get("value", "x") != "" and not _PLACEHOLDER_OPTION_RE.match(element_text(o))
                )
                selected = control.find("option", selected=True)
                current = element_text(selected) if selected is not None and selected.get("value", "x") != "" else None
                qtype = "boolean" if options and {o.lower() for o in options} == _YES_NO else "select"
            elif input_type == "checkbox":
                qtype = "boolean"
                current = "yes" if control.has_attr("checked") else None
            elif input_type == "number":
                qtype = "numeric"
                current = control.get("value") or None
            elif tag == "textarea":
                qtype = "text"
                current = element_text(control) or None
            else:
                qtype = "text"
                current = control.get("value") or None

        text = _clean_label(text)
        if not self._looks_like_question(text):
            return None

        return ScreeningQuestion(
            id=make_question_id(position, text),
            text=text,
            type=qtype,
            is_required=self._is_required(page, control),
            max_length=self._max_length(control),
            options=options,
            selector=selector,
            topic=classify_topic(text),
            current_value=current,
        )

    def _looks_like_question(self, text: str) -> bool:
        if not text or _CONTACT_FIELD_RE.match(text):
            return False
        return len(text) >= self.min_length or text.endswith("?")

    def _find_label(self, page: PageSnapshot, control: Tag) -> Tag | None:
        cid = control.get("id")
        if cid:
            label = page.select_one(f'label[for="{cid}"]')
            if label is not None:
                return label
        parent_label = control.find_parent("label")
        if parent_label is not None:
            return parent_label
        prev = control.find_previous_sibling()
        if prev is not None and prev.name == "label":
            return prev
        return None

    def _find_question_text(self, page: PageSnapshot, control: Tag) -> str:
        label = self._find_label(page, control)
        text = _own_text(label, control) if label is not None else ""

        if not text and control.get("aria-label"):
            text = control["aria-label"].strip()
        if not text and control.get("aria-labelledby"):
            text = " ".join(page.text(f'[id="{ref}"]') for ref in control["aria-labelledby"].split()).strip()

        container = control.find_parent(class_=_CONTAINER_CLASS_RE)
        if container is not None:
            heading = container.select_one("h1, h2, h3, h4, h5, h6, legend, .question-text, .field-label")
            heading_text = element_text(heading)
            if heading is not label and len(heading_text) > len(text):
                text = heading_text

        if not text:
            text = (control.get("placeholder") or "").strip()
        return text

    def _group_text(self, control: Tag) -> str:
        fieldset = control.find_parent("fieldset")
        if fieldset is not None:
            legend = fieldset.find("legend")
            if legend is not None:
                return element_text(legend)
        container = control.find_parent(class_=_CONTAINER_CLASS_RE)
        if container is not None:
            heading = container.select_one("h1, h2, h3, h4, h5, h6, legend, .question-text, .field-label, label:not([for])")
            if heading is not None:
                return element_text(heading)
        return ""

    def _radio_label(self, page: PageSnapshot, radio: Tag) -> str:
        label = self._find_label(page, radio)
        text = _own_text(label, radio) if label is not None else ""
        if not text:
            nxt = radio.find_next_sibling()
            if nxt is not None and nxt.name == "label":
                text = element_text(nxt)
        return text or (radio.get("value") or "")

    def _is_required(self, page: PageSnapshot, control: Tag) -> bool:
        if control.has_attr("required") or control.get("aria-required") == "true":
            return True
        label = self._find_label(page, control)
        if label is not None:
            label_text = element_text(label)
            if "*" in label_text or "required" in label_text.lower():
                return True
        return control.find_parent(class_=_REQUIRED_CLASS_RE) is not None

    @staticmethod
    def _max_length(control: Tag) -> int | None:
        raw = control.get("maxlength")
        try:
            value = int(raw) if raw is not None else 0
        except (TypeError, ValueError):
            return None
        return value if value > 0 else None

    @staticmethod
    def _selector_for(control: Tag) -> str:
        cid = control.get("id")
        if cid:
            return f"#{cid}" if _SIMPLE_ID_RE.match(cid) else f'[id="{cid}"]'
        name = control.get("name")
        if name:
            return f'{control.name}[name="{name}"]'
        path: list[str] = []
        node: Tag | None = control
        while node is not None and node.name not in ("body", "html", "[document]"):
            siblings = node.parent.find_all(node.name, recursive=False) if node.parent else [node]
            index = next((i for i, s in enumerate(siblings, 1) if s is node), 1)
            path.insert(0, f"{node.name}:nth-of-type({index})")
            node = node.parent
        return " > ".join(path)
