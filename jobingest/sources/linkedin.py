from __future__ import annotations

from typing import Any

from jobingest.core.models import DelayRange, RateLimitConfig, ScraperConfig
from jobingest.sources.parser import CardParser, Selectors
from jobingest.sources.versioned import VersionedScraper

NAME = "LinkedIn"
BASE_URL = "https://linkedin.com/jobs"
LINK_ORIGIN = "https://www.linkedin.com"
PAGE_SIZE = 25

SELECTORS_V1 = Selectors(
    job_cards=".job-search-card",
    title=".job-search-card__title",
    company=".job-search-card__subtitle",
    location=".job-search-card__location",
    apply_link=".job-search-card__title-link",
    posted_date=".job-search-card__listdate",
    salary=".job-search-card__salary-info",
    tags=".job-search-card__metadata-item",
    next_page=".artdeco-pagination__button--next",
    current_page=".artdeco-pagination__indicator--active",
)

# Card layout LinkedIn serves to some clients since the job-card-container redesign.
SELECTORS_V2 = Selectors(
    job_cards=".job-card-container",
    title=".job-card-list__title",
    company=".job-card-container__company-name",
    location=".job-card-container__metadata-item",
    apply_link="a.job-card-list__title",
    posted_date="time",
    salary=".job-card-container__salary",
    tags=".job-card-container__skills",
    next_page=".artdeco-pagination__button--next",
    current_page=".artdeco-pagination__indicator--active",
)

FINGERPRINTS = {
    "v2": [".job-card-container", ".job-card-list"],
    "v1": [".job-search-card", ".artdeco-pagination"],
}


def default_config() -> ScraperConfig:
    return ScraperConfig(
        enabled=True,
        rate_limit=RateLimitConfig(requests_per_minute=20, delay_between_requests=DelayRange(3000, 8000)),
        page_delay_ms=DelayRange(5000, 8000),
    )


def page_url(base_url: str, page: int) -> str:
    if page == 1:
        return base_url
    return f"{base_url}?start={(page - 1) * PAGE_SIZE}"


def create_scraper(config: ScraperConfig | None = None, **kwargs: Any) -> VersionedScraper:
    config = config or default_config()
    return VersionedScraper(
        NAME,
        BASE_URL,
        [
            CardParser(NAME, LINK_ORIGIN, SELECTORS_V1, version="v1"),
            CardParser(NAME, LINK_ORIGIN, SELECTORS_V2, version="v2"),
        ],
        FINGERPRINTS,
        page_url,
        config,
        default_max_pages=3,
        default_max_jobs=50,
        **kwargs,
    )
