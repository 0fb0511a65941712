"""Sanitize text pulled from pages, profiles and the generation backend.

Every function here is pure and never raises on bad input: unsafe content is
escaped, stripped or replaced with an empty value instead.
"""
from __future__ import annotations

import dataclasses
import re
from typing import Any, NamedTuple
from urllib.parse import urlparse

from jobfill.log import get_logger

log = get_logger(__name__)

_HTML_ESCAPES: dict[str, str] = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#x27;",
    "/": "&#x2F;",
}
_ESCAPE_RE = re.compile(r"[&<>\"'/]")

_BLOCK_TAGS = ("script", "iframe", "object")
_BLOCK_RES = [
    re.compile(rf"<{tag}\b[^>]*>.*?</{tag}\s*>", re.IGNORECASE | re.DOTALL) for tag in _BLOCK_TAGS
]
# Unterminated or self-closing openers left after block removal
_OPENER_RE = re.compile(r"</?(?:script|iframe|object|embed)\b[^>]*>", re.IGNORECASE)
_EVENT_QUOTED_RE = re.compile(r"\s*\bon\w+\s*=\s*(\"[^\"]*\"|'[^']*')", re.IGNORECASE)
_EVENT_BARE_RE = re.compile(r"\s*\bon\w+\s*=\s*[^\s>]*", re.IGNORECASE)
_JS_URI_RE = re.compile(r"javascript\s*:", re.IGNORECASE)
_DATA_HTML_RE = re.compile(r"data:text/html[^\"'\s>]*", re.IGNORECASE)
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE_RE = re.compile(r"^[\d\s\-+()]+$")

POLLUTION_KEYS: frozenset[str] = frozenset({"__proto__", "constructor", "prototype"})
DEFAULT_FILENAME = "file.txt"

_SQL_PATTERNS = [
    re.compile(r"\b(SELECT|INSERT|UPDATE|DELETE|DROP|CREATE|ALTER|EXEC|EXECUTE)\b", re.IGNORECASE),
    re.compile(r"(;|--|/\*|\*/)"),
    re.compile(r"\bOR\b.*=", re.IGNORECASE),
    re.compile(r"\bAND\b.*=", re.IGNORECASE),
]
_SCRIPT_PATTERNS = [
    re.compile(r"<script[^>]*>.*</script>", re.IGNORECASE | re.DOTALL),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"\bon\w+\s*=", re.IGNORECASE),
]
_COMMAND_PATTERNS = [
    re.compile(r"[;&|`$()<>]"),
]
_UNSAFE_CONTENT_PATTERNS = [
    re.compile(r"<script", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"\bon\w+=", re.IGNORECASE),
    re.compile(r"<iframe", re.IGNORECASE),
    re.compile(r"<object", re.IGNORECASE),
    re.compile(r"<embed", re.IGNORECASE),
    re.compile(r"eval\(", re.IGNORECASE),
    re.compile(r"expression\(", re.IGNORECASE),
]

_PROFILE_EMAIL_KEYS = {"email"}
_PROFILE_URL_KEYS = {"linkedin", "github", "portfolio", "website", "url"}
_PROFILE_PHONE_KEYS = {"phone"}


class ValidationResult(NamedTuple):
    valid: bool
    reason: str


def escape_html(text: Any) -> str:
    if not isinstance(text, str):
        return ""
    return _ESCAPE_RE.sub(lambda m: _HTML_ESCAPES[m.group(0)], text)


def sanitize_html(html: Any) -> str:
    """Strip active content while keeping the remaining markup."""
    if not isinstance(html, str):
        return ""
    out = html
    for block in _BLOCK_RES:
        out = block.sub("", out)
    out = _OPENER_RE.sub("", out)
    out = _EVENT_QUOTED_RE.sub("", out)
    out = _EVENT_BARE_RE.sub("", out)
    out = _JS_URI_RE.sub("", out)
    out = _DATA_HTML_RE.sub("", out)
    return out


def sanitize_answer(text: Any) -> str:
    """Gate for answer text written to form values or the answer cache.

    Form values are never rendered as markup, so entities would show up
    literally; active content is stripped instead of escaped.
    """
    if not isinstance(text, str):
        return ""
    return _CONTROL_RE.sub("", sanitize_html(text)).strip()


def is_safe_content(content: Any) -> bool:
    if not isinstance(content, str):
        return False
    return not any(p.search(content) for p in _UNSAFE_CONTENT_PATTERNS)


def is_valid_email(value: Any) -> bool:
    return isinstance(value, str) and bool(_EMAIL_RE.match(value))


def is_valid_url(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def is_valid_phone(value: Any) -> bool:
    if not isinstance(value, str) or not _PHONE_RE.match(value):
        return False
    return len(re.sub(r"\D", "", value)) >= 10


def safe_clone(obj: Any) -> Any:
    """Deep copy of plain containers that never carries prototype-pollution keys."""
    if isinstance(obj, dict):
        return {k: safe_clone(v) for k, v in obj.items() if k not in POLLUTION_KEYS}
    if isinstance(obj, list):
        return [safe_clone(item) for item in obj]
    if isinstance(obj, tuple):
        return tuple(safe_clone(item) for item in obj)
    return obj


def _as_plain(obj: Any) -> Any:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: getattr(obj, f.name) for f in dataclasses.fields(obj)}
    return obj


def sanitize_job_data(obj: Any) -> Any:
    """Escape every string leaf of a (possibly nested) job-data structure."""
    obj = _as_plain(obj)
    if isinstance(obj, str):
        return escape_html(obj)
    if isinstance(obj, dict):
        clean: dict[Any, Any] = {}
        for key, value in obj.items():
            if key in POLLUTION_KEYS:
                log.warning("Dropped dangerous key %r from job data", key)
                continue
            clean[key] = sanitize_job_data(value)
        return clean
    if isinstance(obj, (list, tuple)):
        return [sanitize_job_data(item) for item in obj]
    if isinstance(obj, (set, frozenset)):
        return sorted(sanitize_job_data(item) for item in obj if isinstance(item, str))
    if obj is None or isinstance(obj, (bool, int, float)):
        return obj
    # Unknown objects are never passed through
    return escape_html(str(obj))


def _sanitize_profile_value(key: str, value: Any) -> Any:
    low = key.lower() if isinstance(key, str) else ""
    if isinstance(value, str):
        if low in _PROFILE_EMAIL_KEYS:
            return value if is_valid_email(value) else ""
        if low in _PROFILE_URL_KEYS:
            return value if is_valid_url(value) else ""
        if low in _PROFILE_PHONE_KEYS:
            return value if is_valid_phone(value) else ""
        if low == "resume":
            return sanitize_filename(value)
        return escape_html(value)
    if isinstance(value, dict):
        return sanitize_user_profile(value)
    if isinstance(value, (list, tuple)):
        return [_sanitize_profile_value("", item) for item in value]
    if value is None or isinstance(value, (bool, int, float)):
        return value
    return escape_html(str(value))


def sanitize_user_profile(profile: Any) -> dict[str, Any]:
    """Escape profile text and blank out invalid email, URL and phone fields."""
    profile = _as_plain(profile)
    if not isinstance(profile, dict):
        return {}
    clean: dict[str, Any] = {}
    for key, value in profile.items():
        if key in POLLUTION_KEYS:
            log.warning("Dropped dangerous key %r from profile", key)
            continue
        clean[key] = _sanitize_profile_value(key, value)
    return clean


def sanitize_filename(name: Any) -> str:
    if not isinstance(name, str):
        return DEFAULT_FILENAME
    clean = re.sub(r"[/\\]", "", name)
    clean = clean.replace("\x00", "")
    clean = re.sub(r"^\.+", "", clean)
    clean = clean[:255]
    return clean or DEFAULT_FILENAME


def validate_input(text: Any) -> ValidationResult:
    if not isinstance(text, str):
        return ValidationResult(False, "Input must be a string")
    if any(p.search(text) for p in _SQL_PATTERNS):
        return ValidationResult(False, "Potential SQL injection detected")
    if any(p.search(text) for p in _SCRIPT_PATTERNS):
        return ValidationResult(False, "Potential script injection detected")
    if any(p.search(text) for p in _COMMAND_PATTERNS):
        return ValidationResult(False, "Potential command injection detected")
    return ValidationResult(True, "")
