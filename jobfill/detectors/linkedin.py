"""LinkedIn job pages (``/jobs/view/<id>`` and search panes with ``currentJobId``)."""
from __future__ import annotations

from jobfill.detectors.base import JobDetector, clean_description, extract_salary, extract_skills
from jobfill.models import JobPosting

_TITLE = [
    ".jobs-unified-top-card__job-title",
    ".job-details-jobs-unified-top-card__job-title",
    "h1.t-24",
    ".jobs-details-top-card__job-title",
]
_COMPANY = [
    ".jobs-unified-top-card__company-name a",
    ".jobs-unified-top-card__company-name",
    ".job-details-jobs-unified-top-card__company-name a",
    ".job-details-jobs-unified-top-card__company-name",
    ".jobs-details-top-card__company-name",
]
_LOCATION = [
    ".jobs-unified-top-card__bullet",
    ".jobs-unified-top-card__workplace-type",
    ".job-details-jobs-unified-top-card__primary-description-container .tvm__text",
    ".jobs-details-top-card__location",
]
_SALARY = [
    ".jobs-unified-top-card__job-insight--highlight",
    ".job-details-jobs-unified-top-card__job-insight--highlight",
    ".salary",
]
# The highlighted chip carries the salary, so job type only reads the others
_INSIGHTS = [
    ".jobs-unified-top-card__job-insight:not(.jobs-unified-top-card__job-insight--highlight)",
    ".job-details-jobs-unified-top-card__job-insight:not(.job-details-jobs-unified-top-card__job-insight--highlight)",
]
_APPLICANTS = [".jobs-unified-top-card__applicant-count", ".num-applicants__caption"]
_POSTED = [".jobs-unified-top-card__posted-date", ".jobs-details-top-card__posted-date"]
_DESCRIPTION = [".jobs-description__content", ".jobs-description-content__text", "#job-details"]


class LinkedInDetector(JobDetector):
    name = "LinkedIn"
    domains = ("linkedin.com",)
    job_path_patterns = (r"^/jobs/view/\d+",)
    form_selectors = (".jobs-easy-apply-modal", ".jobs-easy-apply-content", "form")

    def matches_path(self) -> bool:
        if super().matches_path():
            return True
        return self.page.path.startswith("/jobs/") and bool(self.page.query.get("currentJobId"))

    def extract_job_data(self) -> JobPosting:
        page = self.page
        location = page.text_with_fallback(_LOCATION) or None
        description = self.description_text(_DESCRIPTION, strip=("button", ".jobs-description__footer"))

        tags = self.texts(".job-details-skill-match-status-list__skill")
        skills = extract_skills(tags) or extract_skills(description)

        insight_text = " ".join(t for sel in _INSIGHTS for t in self.texts(sel))
        seniority_text = page.text(".jobs-description__seniority-item") or insight_text

        return JobPosting(
            title=page.text_with_fallback(_TITLE) or None,
            company=page.text_with_fallback(_COMPANY) or None,
            location=location,
            salary_range=extract_salary(page.text_with_fallback(_SALARY)),
            job_type=self.parse_job_type(insight_text),
            seniority=self.parse_seniority(seniority_text),
            remote=self.is_remote(location, description),
            skills=skills,
            applicant_count=self.parse_applicant_count(page.text_with_fallback(_APPLICANTS)),
            posted_date=page.text_with_fallback(_POSTED) or None,
            application_url=page.attr(".jobs-apply-button", "href") or page.url,
            source_site=self.name,
            description=clean_description(description) or None,
        )
