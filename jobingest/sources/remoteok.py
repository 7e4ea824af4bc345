from __future__ import annotations

from typing import Any

from jobingest.core.models import DelayRange, RateLimitConfig, ScraperConfig
from jobingest.sources.parser import CardParser, Selectors
from jobingest.sources.versioned import VersionedScraper

NAME = "RemoteOK"
BASE_URL = "https://remoteok.com"

SELECTORS_V1 = Selectors(
    job_cards="tr.job",
    title="td.company_and_position h2",
    company="td.company_and_position h3",
    location="td.location",
    apply_link="td.source a",
    posted_date="td.date",
    salary="td.salary",
    tags="td.tags span",
    next_page=".pagination .next a",
    current_page=".pagination .current",
)

FINGERPRINTS = {
    "v2": [".job-listing", ".company-name"],
    "v1": ["tr.job"],
}


def default_config() -> ScraperConfig:
    return ScraperConfig(
        enabled=True,
        rate_limit=RateLimitConfig(requests_per_minute=30, delay_between_requests=DelayRange(2000, 5000)),
        page_delay_ms=DelayRange(3000, 5000),
    )


def page_url(base_url: str, page: int) -> str:
    if page == 1:
        return base_url
    return f"{base_url}?page={page}"


def create_scraper(config: ScraperConfig | None = None, **kwargs: Any) -> VersionedScraper:
    config = config or default_config()
    return VersionedScraper(
        NAME,
        BASE_URL,
        [CardParser(NAME, BASE_URL, SELECTORS_V1, version="v1", default_location="Remote")],
        FINGERPRINTS,
        page_url,
        config,
        default_max_pages=5,
        default_max_jobs=100,
        **kwargs,
    )
