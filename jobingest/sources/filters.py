from __future__ import annotations

from jobingest.core.models import JobFilters, JobPosting
from jobingest.utils.text import mentions_remote, parse_salary_range


def matches_filters(job: JobPosting, filters: JobFilters) -> bool:
    if filters.location and filters.location.lower() not in job.location.lower():
        return False
    if filters.company and filters.company.lower() != job.company.lower():
        return False
    if filters.remote is not None:
        is_remote = mentions_remote(job.location) or any(mentions_remote(tag) for tag in job.tags)
        if is_remote != filters.remote:
            return False
    if filters.tags:
        job_tags = {tag.lower() for tag in job.tags}
        if not all(tag.lower() in job_tags for tag in filters.tags):
            return False
    if filters.salary_min is not None or filters.salary_max is not None:
        salary = parse_salary_range(job.salary)
        if salary is None:
            return False
        low, high = salary
        if filters.salary_min is not None and high < filters.salary_min:
            return False
        if filters.salary_max is not None and low > filters.salary_max:
            return False
    return True


def apply_filters(jobs: list[JobPosting], filters: JobFilters | None) -> list[JobPosting]:
    if filters is None:
        return jobs
    return [job for job in jobs if matches_filters(job, filters)]
