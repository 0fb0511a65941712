"""Lever postings (jobs.lever.co/<company>/<uuid>)."""
from __future__ import annotations

from jobfill.detectors.base import JobDetector, extract_salary, extract_skills
from jobfill.models import JobPosting

_TITLE = [".posting-headline h2", "h2[class*=\"title\"]", ".job-title"]
_COMPANY = [".company-name", ".main-header-text h1"]
_LOCATION = [".posting-categories .location", ".location", ".posting-categories .sort-by-location"]
_COMMITMENT = [".posting-categories .commitment", ".commitment"]
_WORKPLACE = [".posting-categories .workplaceTypes", ".workplaceTypes", ".workplaceType"]
_SALARY = ["[data-qa=\"salary-range\"]", ".posting-categories .compensation", ".compensation"]
_DESCRIPTION = ["[data-qa=\"job-description\"]", ".posting-page .content", ".content", ".posting-description"]


class LeverDetector(JobDetector):
    name = "Lever"
    domains = ("lever.co",)
    job_path_patterns = (r"^/[^/]+/[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}(/apply)?/?$",)
    form_selectors = ("#application-form", "form.application-form", ".application-page form")
    remote_keywords = ("remote", "work from home", "wfh", "distributed", "anywhere")

    def _company(self) -> str:
        page = self.page
        company = page.text_with_fallback(_COMPANY) or page.attr(".main-header-logo img", "alt")
        if company:
            return company.replace(" logo", "").strip()
        slug = page.path.strip("/").split("/")[0]
        return slug.replace("-", " ").title()

    def extract_job_data(self) -> JobPosting:
        page = self.page
        location = page.text_with_fallback(_LOCATION) or None
        workplace = page.text_with_fallback(_WORKPLACE)
        description = self.description_text(_DESCRIPTION, strip=(".application-form", "form", ".apply-section"))
        salary_text = page.text_with_fallback(_SALARY)

        return JobPosting(
            title=page.text_with_fallback(_TITLE) or None,
            company=self._company() or None,
            location=location,
            salary_range=extract_salary(salary_text) if salary_text else None,
            job_type=self.parse_job_type(page.text_with_fallback(_COMMITMENT)),
            seniority=self.parse_seniority(page.text_with_fallback(_TITLE)),
            remote=self.is_remote(f"{location or ''} {workplace}", description),
            skills=extract_skills(description),
            applicant_count=None,
            posted_date=None,
            application_url=page.attr(".postings-btn", "href") or page.url,
            source_site=self.name,
            description=description or None,
        )
