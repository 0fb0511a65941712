"""Markdown report for one assist run."""
from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from jobfill.config import REPORTS_DIR
from jobfill.log import get_logger
from jobfill.models import FillResult, GeneratedAnswer, GenerationRun, JobPosting, ScreeningQuestion
from jobfill.sanitizer import sanitize_filename

log = get_logger(__name__)

_FILL_HINTS: dict[str, str] = {
    "element not found": "Control moved or was re-rendered; re-run detection on the open form",
    "field disabled": "Site disabled the field; it may unlock after earlier answers",
    "value rejected": "Site rejected the value; fill it manually or adjust the answer",
}


def _clip(text: str, limit: int) -> str:
    text = " ".join((text or "").split())
    return text[:limit] + ("…" if len(text) > limit else "")


def build_run_report(
    url: str,
    job: JobPosting | None,
    questions: list[ScreeningQuestion],
    answers: list[GeneratedAnswer],
    run: GenerationRun | None = None,
    fill: FillResult | None = None,
) -> str:
    date = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M")
    lines: list[str] = [f"# Application Assist Report — {date}", ""]

    if job is None:
        lines.append(f"No job posting detected at <{url}>.")
        lines.append("")
    else:
        lines.append(f"## {job.title} @ {job.company}")
        lines.append("")
        lines.append(f"- **Source:** {job.source_site}")
        if job.location:
            lines.append(f"- **Location:** {job.location}{' (remote)' if job.remote else ''}")
        if job.salary_range:
            s = job.salary_range
            lines.append(f"- **Salary:** {s.min:,}–{s.max:,} {s.currency or ''}".rstrip())
        if job.job_type or job.seniority:
            lines.append(f"- **Type:** {' / '.join(x for x in (job.job_type, job.seniority) if x)}")
        if job.applicant_count is not None:
            lines.append(f"- **Applicants:** {job.applicant_count}")
        if job.skills:
            lines.append(f"- **Skills:** {', '.join(sorted(job.skills)[:10])}")
        lines.append(f"- **Apply:** [{job.source_site}]({job.application_url})")
        lines.append("")

    by_id = {a.question_id: a for a in answers}
    failed = {f.question_id: f.reason for f in (fill.failures if fill else [])}
    if questions:
        lines.append("## Screening Questions")
        lines.append("")
        lines.append("| # | Question | Type | Source | Answer | Filled |")
        lines.append("|--:|----------|------|--------|--------|--------|")
        for i, q in enumerate(questions, 1):
            a = by_id.get(q.id)
            if a is None:
                source, answer = "—", "_no answer_"
            elif a.from_cache:
                source, answer = f"cache ({a.similarity or 0:.0%})", _clip(a.answer, 60)
            else:
                source, answer = "generated", _clip(a.answer, 60)
            if fill is None:
                filled = "—"
            elif q.id in failed:
                filled = f"✗ {failed[q.id]}"
            elif q.id in fill.skipped:
                filled = "skipped"
            else:
                filled = "✓"
            req = "*" if q.is_required else ""
            lines.append(f"| {i} | {_clip(q.text, 50)}{req} | {q.type} | {source} | {answer} | {filled} |")
        lines.append("")
    else:
        lines.append("No screening questions detected.")
        lines.append("")

    if run is not None:
        st = run.statistics
        lines.append("## Generation")
        lines.append("")
        lines.append(
            f"**{st.generated}** generated | **{st.from_cache}** from cache | "
            f"**{len(run.errors)}** failed | **{st.total_tokens}** tokens"
        )
        if st.average_confidence is not None:
            lines.append(f"- Average confidence: {st.average_confidence:.0%}")
        for err in run.errors:
            lines.append(f"- _{_clip(err.question_text, 50)}: {err.error}_")
        lines.append("")

    if fill is not None and fill.failures:
        lines.append("## Troubleshooting")
        lines.append("")
        for reason in sorted(set(failed.values())):
            lines.append(f"- **{reason}:** {_FILL_HINTS.get(reason, reason)}")
        lines.append("")

    log.info("Built run report: %d question(s), %d answer(s)", len(questions), len(answers))
    return "\n".join(lines)


def write_run_report(content: str, job: JobPosting | None = None) -> Path:
    REPORTS_DIR.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%d_%H%M%S")
    label = sanitize_filename(f"{job.company}_{job.title}"[:60].replace(" ", "_")) if job else "no_job"
    path = REPORTS_DIR / f"assist_{stamp}_{label}.md"
    path.write_text(content, encoding="utf-8")
    log.info("Report written → %s", path)
    return path
