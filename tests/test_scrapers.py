from __future__ import annotations

from types import SimpleNamespace

import pytest

from jobingest.collectors.request_executor import HttpStatusError, TransientNetworkError
from jobingest.core.models import JobFilters, ScrapingOptions
from jobingest.sources import linkedin, remoteok
from jobingest.sources.base import AllVersionsFailedError
from jobingest.sources.versioned import FallbackState, VersionedScraper


class FakeExecutor:
    """Serves canned pages; a list value is consumed one response per request."""

    def __init__(self, pages: dict[str, object]) -> None:
        self.pages = pages
        self.requested: list[str] = []

    def fetch(self, url: str) -> SimpleNamespace:
        self.requested.append(url)
        value = self.pages.get(url)
        if isinstance(value, list):
            value = value.pop(0) if len(value) > 1 else value[0]
        if value is None:
            raise HttpStatusError(404, "Not Found", url)
        if isinstance(value, Exception):
            raise value
        return SimpleNamespace(text=value)

    def session_info(self) -> dict[str, object]:
        return {"request_count": len(self.requested)}

    def close(self) -> None:
        pass


def no_sleep(seconds: float) -> None:
    pass


def remoteok_row(title: str, company: str, link: str, tags: tuple[str, ...] = ()) -> str:
    spans = "".join(f"<span>{tag}</span>" for tag in tags)
    return (
        '<tr class="job">'
        f'<td class="company_and_position"><h2>{title}</h2><h3>{company}</h3></td>'
        f'<td class="source"><a href="{link}">Apply</a></td>'
        f'<td class="tags">{spans}</td>'
        "</tr>"
    )


NEXT = '<div class="pagination"><span class="next"><a href="?page=2">Next</a></span></div>'

PAGE_ONE = (
    "<table>"
    + remoteok_row("Python Dev", "Acme", "/jobs/1", ("python",))
    + remoteok_row("Go Dev", "Initech", "/jobs/2", ("go",))
    + "</table>"
    + NEXT
)
PAGE_TWO = "<table>" + remoteok_row("Rust Dev", "Hooli", "/jobs/3") + "</table>"

LINKEDIN_V2_PAGE = """
<ul class="job-card-list">
  <li class="job-card-container">
    <a class="job-card-list__title" href="/jobs/view/1">Data Engineer</a>
    <span class="job-card-container__company-name">Globex</span>
    <span class="job-card-container__metadata-item">Remote</span>
  </li>
</ul>
"""


def make_remoteok(pages: dict[str, object]) -> tuple[VersionedScraper, FakeExecutor]:
    executor = FakeExecutor(pages)
    return remoteok.create_scraper(executor=executor, sleep=no_sleep), executor


def test_pages_are_walked_until_no_next_link() -> None:
    scraper, executor = make_remoteok({"https://remoteok.com": PAGE_ONE, "https://remoteok.com?page=2": PAGE_TWO})
    try:
        jobs = scraper.scrape_jobs(ScrapingOptions(max_pages=5))
    finally:
        scraper.close()
    assert [job.title for job in jobs] == ["Python Dev", "Go Dev", "Rust Dev"]
    assert executor.requested == ["https://remoteok.com", "https://remoteok.com?page=2"]
    metrics = scraper.get_metrics()
    assert metrics.total_requests == 2
    assert metrics.successful_requests == 2
    assert metrics.version == "v1"
    assert scraper.get_rate_limiter_metrics()["request_count"] == 2
    assert scraper.get_session_info() == {"request_count": 2}


def test_max_jobs_and_max_pages_bound_the_scrape() -> None:
    scraper, executor = make_remoteok({"https://remoteok.com": PAGE_ONE, "https://remoteok.com?page=2": PAGE_TWO})
    try:
        assert len(scraper.scrape_jobs(ScrapingOptions(max_jobs=1))) == 1
        assert len(scraper.scrape_jobs(ScrapingOptions(max_pages=1))) == 2
    finally:
        scraper.close()
    assert "https://remoteok.com?page=2" not in executor.requested


def test_later_page_failure_keeps_collected_postings() -> None:
    scraper, _ = make_remoteok(
        {"https://remoteok.com": PAGE_ONE, "https://remoteok.com?page=2": HttpStatusError(500, "Internal Server Error")}
    )
    try:
        jobs = scraper.scrape_jobs(ScrapingOptions(max_pages=3))
    finally:
        scraper.close()
    assert [job.title for job in jobs] == ["Python Dev", "Go Dev"]


def test_transient_first_page_failure_is_retried() -> None:
    scraper, _ = make_remoteok({"https://remoteok.com": [TransientNetworkError("reset"), PAGE_ONE]})
    try:
        jobs = scraper.scrape_jobs(ScrapingOptions(max_pages=1))
    finally:
        scraper.close()
    assert len(jobs) == 2
    metrics = scraper.get_metrics()
    assert metrics.failed_requests == 1
    assert metrics.successful_requests == 1


def test_filters_apply_after_scraping() -> None:
    scraper, _ = make_remoteok({"https://remoteok.com": PAGE_ONE})
    try:
        jobs = scraper.scrape_jobs(ScrapingOptions(max_pages=1, filters=JobFilters(tags=["go"])))
    finally:
        scraper.close()
    assert [job.title for job in jobs] == ["Go Dev"]


def test_layout_change_falls_back_to_detected_version() -> None:
    executor = FakeExecutor({"https://linkedin.com/jobs": LINKEDIN_V2_PAGE})
    scraper = linkedin.create_scraper(executor=executor, sleep=no_sleep)
    try:
        assert scraper.get_current_version() == "v1"
        jobs = scraper.scrape_jobs()
    finally:
        scraper.close()
    assert [job.title for job in jobs] == ["Data Engineer"]
    assert jobs[0].apply_link == "https://www.linkedin.com/jobs/view/1"
    assert scraper.get_current_version() == "v2"
    assert scraper.get_metrics().version == "v2"
    assert scraper.state is FallbackState.USING_FALLBACK


def test_all_versions_failed_when_no_layout_matches() -> None:
    executor = FakeExecutor({"https://linkedin.com/jobs": "<html><body>Down for maintenance</body></html>"})
    scraper = linkedin.create_scraper(executor=executor, sleep=no_sleep)
    try:
        with pytest.raises(AllVersionsFailedError, match=r"All LinkedIn scraper versions failed \(v1, v2\)"):
            scraper.scrape_jobs()
    finally:
        scraper.close()
    assert scraper.state is FallbackState.FAILED


def test_http_error_on_first_page_exhausts_versions() -> None:
    executor = FakeExecutor({"https://linkedin.com/jobs": HttpStatusError(503, "Service Unavailable")})
    scraper = linkedin.create_scraper(executor=executor, sleep=no_sleep)
    try:
        with pytest.raises(AllVersionsFailedError):
            scraper.scrape_jobs()
    finally:
        scraper.close()
    assert scraper.get_metrics().failed_requests >= 2


def test_detect_version_and_health() -> None:
    executor = FakeExecutor({"https://linkedin.com/jobs": LINKEDIN_V2_PAGE})
    scraper = linkedin.create_scraper(executor=executor, sleep=no_sleep)
    try:
        assert scraper.detect_version() == "v2"
        assert scraper.is_healthy() is True
        assert scraper.get_available_versions() == ["v1", "v2"]
    finally:
        scraper.close()

    broken = linkedin.create_scraper(executor=FakeExecutor({}), sleep=no_sleep)
    try:
        assert broken.is_healthy() is False
        assert broken.detect_version() is None
    finally:
        broken.close()
