"""Indeed job pages (``/viewjob`` and ``/rc/clk`` redirects)."""
from __future__ import annotations

from jobfill.detectors.base import JobDetector, extract_salary, extract_skills
from jobfill.models import JobPosting

_TITLE = [
    '[data-testid="jobsearch-JobInfoHeader-title"] span',
    '[data-testid="jobsearch-JobInfoHeader-title"]',
    ".jobsearch-JobInfoHeader-title",
    'h1[class*="jobTitle"]',
]
_COMPANY = [
    '[data-testid="inlineHeader-companyName"] a',
    '[data-testid="inlineHeader-companyName"]',
    '[data-company-name="true"]',
    ".jobsearch-CompanyInfoContainer a",
]
_LOCATION = [
    '[data-testid="inlineHeader-companyLocation"]',
    '[data-testid="job-location"]',
    '.jobsearch-JobInfoHeader-subtitle [data-testid="text-location"]',
    ".companyLocation",
]
_SALARY = ["#salaryInfoAndJobType .salary", '[data-testid="salary-and-benefits"]', "#salaryInfoAndJobType"]
_JOB_TYPE = ['[data-testid="job-type-text"]', "#jobDetailsSection .metadata", "#salaryInfoAndJobType .jobType"]
_APPLICANTS = ['[data-testid="hiring-multiple-candidates"]', ".hiring-urgency"]
_POSTED = ['[data-testid="job-age"]', ".jobsearch-JobMetadataFooter .date"]


class IndeedDetector(JobDetector):
    name = "Indeed"
    domains = ("indeed.com",)
    job_path_patterns = (r"^/viewjob", r"^/rc/clk", r"^/pagead/clk")
    form_selectors = (".ia-BasePage form", "#ia-container form", "form")

    def extract_job_data(self) -> JobPosting:
        page = self.page
        location = page.text_with_fallback(_LOCATION) or None
        description = self.description_text(["#jobDescriptionText"])
        salary_text = page.text_with_fallback(_SALARY)

        return JobPosting(
            title=page.text_with_fallback(_TITLE) or None,
            company=page.text_with_fallback(_COMPANY) or None,
            location=location,
            salary_range=extract_salary(salary_text) if salary_text else None,
            job_type=self.parse_job_type(page.text_with_fallback(_JOB_TYPE)),
            seniority=self.parse_seniority(page.text_with_fallback(_TITLE)),
            remote=self.is_remote(location, description),
            skills=extract_skills(description),
            applicant_count=self.parse_applicant_count(page.text_with_fallback(_APPLICANTS)),
            posted_date=page.text_with_fallback(_POSTED) or None,
            application_url=(
                page.attr("#applyButtonLinkContainer a", "href")
                or page.attr('[data-testid="apply-button"]', "href")
                or page.url
            ),
            source_site=self.name,
            description=description or None,
        )
