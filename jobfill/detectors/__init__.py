from __future__ import annotations

from urllib.parse import urlparse

from .base import (
    JobDetector,
    clean_description,
    extract_salary,
    extract_skills,
    is_remote,
    parse_applicant_count,
    parse_job_type,
    parse_seniority,
)
from .greenhouse import GreenhouseDetector
from .indeed import IndeedDetector
from .lever import LeverDetector
from .linkedin import LinkedInDetector
from .workday import WorkdayDetector

from jobfill.log import get_logger
from jobfill.page import PageSnapshot

log = get_logger(__name__)

__all__ = [
    "JobDetector", "LinkedInDetector", "GreenhouseDetector", "LeverDetector",
    "IndeedDetector", "WorkdayDetector", "DETECTORS", "detector_class_for", "get_detector",
    "clean_description", "extract_salary", "extract_skills", "is_remote",
    "parse_applicant_count", "parse_job_type", "parse_seniority",
]

DETECTORS: tuple[type[JobDetector], ...] = (
    LinkedInDetector,
    GreenhouseDetector,
    LeverDetector,
    IndeedDetector,
    WorkdayDetector,
)


def detector_class_for(url: str) -> type[JobDetector] | None:
    host = (urlparse(url).hostname or "").lower()
    for cls in DETECTORS:
        if cls.matches_host(host):
            return cls
    return None


def get_detector(url: str, html: str = "", page: PageSnapshot | None = None, **kwargs) -> JobDetector | None:
    """Instantiate the detector registered for ``url``'s host, or None.

    Pass either raw ``html`` or an existing ``page`` snapshot; keyword
    arguments (``cache_ttl``, ``clock``) go to the detector.
    """
    cls = detector_class_for(url)
    if cls is None:
        log.debug("No detector registered for %s", url)
        return None
    log.info("Using detector: %s", cls.name)
    return cls(page or PageSnapshot(url, html), **kwargs)
