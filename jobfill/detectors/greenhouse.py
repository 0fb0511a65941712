"""Greenhouse hosted boards (boards.greenhouse.io, job-boards.greenhouse.io)."""
from __future__ import annotations

import re

from jobfill.detectors.base import JobDetector, extract_salary, extract_skills
from jobfill.models import JobPosting

_TITLE = [".job__title h1", ".job__title .section-header", "h1.section-header", ".app-title", "h1"]
_COMPANY = [".company-name", "#header .company-name", "#header h1"]
_LOCATION = [".job__location div", ".job__location", ".location", ".app-info .location"]
_SALARY = [".pay-range", ".job__pay", ".pay-transparency"]
_DESCRIPTION = [".job__description", "#content", ".content", "#app-body"]
_EMPLOYMENT = [".job__employment-type", ".employment-type"]

_TITLE_COMPANY_RE = re.compile(r"\bat\s+(.+?)\s*$", re.IGNORECASE)
_BOARD_HOSTS = {"boards", "job-boards"}


class GreenhouseDetector(JobDetector):
    name = "Greenhouse"
    domains = ("greenhouse.io",)
    job_path_patterns = (r"/jobs/\d+",)
    form_selectors = ("#application_form", "#application-form", ".application--form")

    def _company(self) -> str:
        page = self.page
        company = page.text_with_fallback(_COMPANY) or page.meta("og:site_name")
        if company:
            return company
        match = _TITLE_COMPANY_RE.search(page.document_title)
        if match:
            return match.group(1)
        # boards.greenhouse.io/<company>/jobs/<id>
        host_prefix = page.hostname.split(".")[0]
        if host_prefix in _BOARD_HOSTS:
            slug = page.path.strip("/").split("/")[0]
            return slug.replace("-", " ").title() if slug and slug != "jobs" else ""
        return host_prefix.title()

    def extract_job_data(self) -> JobPosting:
        page = self.page
        location = page.text_with_fallback(_LOCATION) or None
        description = self.description_text(
            _DESCRIPTION, strip=("#application_form", "#application-form", ".application--form", "form")
        )
        salary_text = page.text_with_fallback(_SALARY)

        return JobPosting(
            title=page.text_with_fallback(_TITLE) or None,
            company=self._company() or None,
            location=location,
            salary_range=extract_salary(salary_text) if salary_text else None,
            job_type=self.parse_job_type(page.text_with_fallback(_EMPLOYMENT)),
            seniority=self.parse_seniority(page.text_with_fallback(_TITLE)),
            remote=self.is_remote(location, description),
            skills=extract_skills(description),
            applicant_count=None,
            posted_date=None,
            application_url=page.attr("#apply_button", "href") or page.url,
            source_site=self.name,
            description=description or None,
        )
