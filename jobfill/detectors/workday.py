"""Workday career sites (<tenant>.wd<N>.myworkdayjobs.com/.../job/...)."""
from __future__ import annotations

import re

from jobfill.detectors.base import JobDetector, extract_salary, extract_skills
from jobfill.models import JobPosting

_TITLE = ['[data-automation-id="jobPostingHeader"]', 'h2[data-automation-id*="title"]']
_COMPANY = ['[data-automation-id="company"]', ".company-logo-text"]
_LOCATION = [
    '[data-automation-id="locations"] dd',
    '[data-automation-id="locations"]',
    'dd[data-automation-id="location"] span',
    '[data-automation-id="location"]',
]
_TIME_TYPE = ['[data-automation-id="time"] dd', '[data-automation-id="timeType"]', 'dd[data-automation-id*="time"] span']
_POSTED = ['[data-automation-id="postedOn"] dd', '[data-automation-id="postedOn"]']
_SALARY = ['[data-automation-id="salary"]', '[data-automation-id="payRange"]']
_DESCRIPTION = ['[data-automation-id="jobPostingDescription"]']

_TENANT_RE = re.compile(r"^([^.]+)\.(?:wd\d+\.)?(?:myworkdayjobs|workdayjobs|workday)\.com$")


class WorkdayDetector(JobDetector):
    name = "Workday"
    domains = ("myworkdayjobs.com", "workdayjobs.com", "workday.com")
    job_path_patterns = (r"/job/",)
    form_selectors = (
        '[data-automation-id="applyFlowPage"]',
        '[data-automation-id="questionnairePage"]',
        "form",
    )
    remote_keywords = ("remote", "work from home", "wfh", "virtual", "telecommute")

    def _company(self) -> str:
        company = self.page.text_with_fallback(_COMPANY)
        if company:
            return company
        match = _TENANT_RE.match(self.page.hostname)
        return match.group(1).replace("-", " ").title() if match else ""

    def extract_job_data(self) -> JobPosting:
        page = self.page
        location = page.text_with_fallback(_LOCATION).removeprefix("locations").strip() or None
        description = self.description_text(_DESCRIPTION)
        salary_text = page.text_with_fallback(_SALARY)

        return JobPosting(
            title=page.text_with_fallback(_TITLE) or None,
            company=self._company() or None,
            location=location,
            salary_range=extract_salary(salary_text) if salary_text else None,
            job_type=self.parse_job_type(page.text_with_fallback(_TIME_TYPE)),
            seniority=self.parse_seniority(page.text_with_fallback(_TITLE)),
            remote=self.is_remote(location, description),
            skills=extract_skills(description),
            applicant_count=None,
            posted_date=page.text_with_fallback(_POSTED).removeprefix("posted on").strip() or None,
            application_url=page.attr('[data-automation-id="adventureButton"]', "href") or page.url,
            source_site=self.name,
            description=description or None,
        )
