"""Logging setup for jobfill: stderr console plus a daily file under logs/."""
from __future__ import annotations

import logging
import os
import re
import sys
from datetime import datetime
from pathlib import Path

_DEFAULT_LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
_DATE_FMT = "%Y-%m-%d %H:%M:%S"
_QUIET = ("playwright", "urllib3", "httpx", "httpcore", "openai", "asyncio")

# Groq / OpenAI style keys can show up in backend error messages
_SECRET_RE = re.compile(r"\b(gsk_|sk-)[A-Za-z0-9_-]{8,}")

_configured = False


class _RedactSecrets(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        if _SECRET_RE.search(message):
            record.msg = _SECRET_RE.sub(r"\1***", message)
            record.args = None
        return True


def get_logger(name: str) -> logging.Logger:
    if not _configured:
        configure()
    return logging.getLogger(name)


def configure(level: str | None = None, log_dir: Path | None = None) -> None:
    """Install handlers on the root logger once; later calls only adjust the level.

    ``level`` defaults to ``LOG_LEVEL`` and ``log_dir`` to ``JOBFILL_LOG_DIR``.
    """
    global _configured
    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    numeric = getattr(logging, level_name, logging.INFO)
    root = logging.getLogger()
    root.setLevel(numeric)

    if _configured:
        for handler in root.handlers:
            if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
                handler.setLevel(numeric)
        return
    _configured = True

    if root.handlers:
        # pytest and embedding hosts bring their own handlers
        return

    formatter = logging.Formatter(_FORMAT, datefmt=_DATE_FMT)
    redact = _RedactSecrets()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric)
    console.setFormatter(formatter)
    console.addFilter(redact)
    root.addHandler(console)

    for name in _QUIET:
        logging.getLogger(name).setLevel(logging.WARNING)

    directory = Path(log_dir or os.environ.get("JOBFILL_LOG_DIR") or _DEFAULT_LOG_DIR)
    try:
        directory.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(directory / f"jobfill_{datetime.now():%Y-%m-%d}.log", encoding="utf-8")
    except OSError as exc:
        root.warning("File logging disabled (%s): %s", directory, exc)
        return
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(formatter)
    fh.addFilter(redact)
    root.addHandler(fh)
