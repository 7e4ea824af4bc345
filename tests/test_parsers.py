from __future__ import annotations

from datetime import datetime, timezone

import pytest

from jobingest.core.models import JobFilters
from jobingest.sources import arbeitnow, linkedin, relocate, remoteok
from jobingest.sources.filters import apply_filters
from jobingest.sources.parser import CardParser
from jobingest.utils.text import parse_salary_range

REMOTEOK_HTML = """
<table>
  <tr class="job">
    <td class="company_and_position"><h2>Senior Python Engineer</h2><h3>Acme</h3></td>
    <td class="location">Worldwide</td>
    <td class="source"><a href="/remote-jobs/123">Apply</a></td>
    <td class="date">2 days ago</td>
    <td class="salary">$120k - $150k</td>
    <td class="tags"><span>python</span><span>django</span></td>
  </tr>
  <tr class="job">
    <td class="company_and_position"><h2>Go Developer</h2><h3>Initech</h3></td>
    <td class="source"><a href="https://jobs.initech.com/42">Apply</a></td>
  </tr>
  <tr class="job">
    <td class="company_and_position"><h2></h2><h3>No Title Ltd</h3></td>
  </tr>
</table>
<div class="pagination"><span class="current">1</span><span class="next"><a href="?page=2">Next</a></span></div>
"""


def remoteok_parser() -> CardParser:
    return CardParser(remoteok.NAME, remoteok.BASE_URL, remoteok.SELECTORS_V1, default_location="Remote")


def test_remoteok_cards_parse_and_skip_incomplete() -> None:
    jobs = remoteok_parser().parse_jobs(REMOTEOK_HTML)
    assert [job.title for job in jobs] == ["Senior Python Engineer", "Go Developer"]

    first = jobs[0]
    assert first.company == "Acme"
    assert first.location == "Worldwide"
    assert first.apply_link == "https://remoteok.com/remote-jobs/123"
    assert first.salary == "$120k - $150k"
    assert first.tags == ("python", "django")
    assert first.source == "RemoteOK"
    assert first.source_id == "senior-python-engineer-acme"
    assert first.search_text == "senior python engineer acme worldwide"

    second = jobs[1]
    assert second.location == "Remote"
    assert second.apply_link == "https://jobs.initech.com/42"
    assert second.salary is None
    assert second.tags == ()


def test_remoteok_pagination_markers() -> None:
    parser = remoteok_parser()
    assert parser.has_next_page(REMOTEOK_HTML) is True
    assert parser.get_current_page(REMOTEOK_HTML) == 1
    assert parser.has_next_page("<table></table>") is False
    assert parser.get_current_page("<div class='pagination'><span class='current'>x</span></div>") == 1


def test_empty_markup_yields_no_postings() -> None:
    assert remoteok_parser().parse_jobs("") == []


ARBEITNOW_HTML = """
<div class="job-card">
  <h2 class="job-card__title"><a href="/jobs/backend-dev">Backend Developer</a></h2>
  <div class="job-card__company">Berlin GmbH</div>
  <div class="job-card__date">25.12.2023</div>
  <div class="job-card__tags"><span class="tag">go</span></div>
  <div class="job-card__benefits"><span class="benefit">Gym</span></div>
  <div class="job-card__perks"><span class="perk">Free lunch</span></div>
  <span class="job-card__full-time"></span>
  <span class="job-card__remote"></span>
</div>
<a class="pagination__next" href="/?page=2">Next</a>
"""


def test_arbeitnow_adds_benefits_perks_and_job_type() -> None:
    parser = arbeitnow.ArbeitnowParser()
    [job] = parser.parse_jobs(ARBEITNOW_HTML)
    assert job.location == "Germany"
    assert job.apply_link == "https://www.arbeitnow.com/jobs/backend-dev"
    assert job.tags == ("go", "Gym", "Free lunch", "Remote")
    assert job.posted_date == datetime(2023, 12, 25, tzinfo=timezone.utc)
    assert parser.has_next_page(ARBEITNOW_HTML) is True


RELOCATE_HTML = """
<div class="job-card">
  <h3 class="job-card__title"><a href="/netherlands/amsterdam/acme/java-engineer">Java Engineer</a></h3>
  <div class="job-card__company">Acme BV</div>
  <div class="job-card__location">Amsterdam</div>
  <div class="job-card__region">North Holland</div>
  <div class="job-card__country">Netherlands</div>
  <div class="job-card__tags"><span class="tag">java</span></div>
  <span class="job-card__onsite"></span>
  <span class="job-card__contract"></span>
  <span class="job-card__visa-sponsorship"></span>
  <span class="job-card__relocation-package"></span>
</div>
<div class="job-card">
  <h3 class="job-card__title"><a href="/anywhere/acme/sre">SRE</a></h3>
  <div class="job-card__company">Acme BV</div>
</div>
"""


def test_relocate_location_and_relocation_features() -> None:
    first, second = relocate.RelocateParser().parse_jobs(RELOCATE_HTML)
    assert first.location == "Amsterdam, North Holland, Netherlands"
    assert first.tags == ("java", "On-site", "Visa Sponsorship", "Relocation Package")
    assert first.apply_link == "https://relocate.me/netherlands/amsterdam/acme/java-engineer"
    assert second.location == "International"


LINKEDIN_V2_HTML = """
<div class="job-card-container">
  <a class="job-card-list__title" href="/jobs/view/42">Data Engineer</a>
  <span class="job-card-container__company-name">Globex</span>
  <span class="job-card-container__metadata-item">London, UK</span>
  <time>2024-01-01</time>
</div>
"""


def test_linkedin_v2_layout() -> None:
    parser = CardParser(linkedin.NAME, linkedin.LINK_ORIGIN, linkedin.SELECTORS_V2, version="v2")
    [job] = parser.parse_jobs(LINKEDIN_V2_HTML)
    assert job.title == "Data Engineer"
    assert job.company == "Globex"
    assert job.location == "London, UK"
    assert job.apply_link == "https://www.linkedin.com/jobs/view/42"
    assert job.posted_date == datetime(2024, 1, 1, tzinfo=timezone.utc)

    v1 = CardParser(linkedin.NAME, linkedin.LINK_ORIGIN, linkedin.SELECTORS_V1, version="v1")
    assert v1.parse_jobs(LINKEDIN_V2_HTML) == []


def test_filters_narrow_postings() -> None:
    jobs = remoteok_parser().parse_jobs(REMOTEOK_HTML)
    assert [j.title for j in apply_filters(jobs, JobFilters(tags=["Python"]))] == ["Senior Python Engineer"]
    assert [j.title for j in apply_filters(jobs, JobFilters(company="initech"))] == ["Go Developer"]
    assert len(apply_filters(jobs, JobFilters(remote=True))) == 2
    assert apply_filters(jobs, JobFilters(location="berlin")) == []
    assert apply_filters(jobs, None) == jobs


def test_salary_filter_keeps_overlapping_ranges_only() -> None:
    jobs = remoteok_parser().parse_jobs(REMOTEOK_HTML)
    assert [j.title for j in apply_filters(jobs, JobFilters(salary_min=140000))] == ["Senior Python Engineer"]
    assert [j.title for j in apply_filters(jobs, JobFilters(salary_max=125000))] == ["Senior Python Engineer"]
    assert apply_filters(jobs, JobFilters(salary_min=160000)) == []
    assert apply_filters(jobs, JobFilters(salary_max=100000)) == []
    with pytest.raises(ValueError):
        JobFilters(salary_min=200000, salary_max=100000)


def test_parse_salary_range_reads_common_formats() -> None:
    assert parse_salary_range("$120k - $150k") == (120000.0, 150000.0)
    assert parse_salary_range("60,000 - 45,000 EUR") == (45000.0, 60000.0)
    assert parse_salary_range("€85K") == (85000.0, 85000.0)
    assert parse_salary_range("Competitive") is None
    assert parse_salary_range(None) is None
