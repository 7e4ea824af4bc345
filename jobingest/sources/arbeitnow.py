from __future__ import annotations

from typing import Any

from bs4 import Tag

from jobingest.core.models import DelayRange, RateLimitConfig, ScraperConfig
from jobingest.sources.extract import extract_texts, has_match
from jobingest.sources.parser import CardParser, Selectors
from jobingest.sources.versioned import VersionedScraper

NAME = "Arbeitnow"
BASE_URL = "https://www.arbeitnow.com"

SELECTORS_V1 = Selectors(
    job_cards=".job-card",
    title=".job-card__title",
    company=".job-card__company",
    location=".job-card__location",
    apply_link=".job-card__title a",
    posted_date=".job-card__date",
    salary=".job-card__salary",
    tags=".job-card__tags .tag",
    next_page=".pagination__next",
    current_page=".pagination__current",
)

BENEFITS = ".job-card__benefits .benefit"
PERKS = ".job-card__perks .perk"

# First match wins.
JOB_TYPES = [
    (".job-card__remote", "Remote"),
    (".job-card__full-time", "Full-time"),
    (".job-card__part-time", "Part-time"),
    (".job-card__contract", "Contract"),
    (".job-card__visa-sponsorship", "Visa Sponsorship"),
    (".job-card__relocation", "Relocation Package"),
]

FINGERPRINTS = {
    "v1": [".job-card", ".pagination__next"],
}


class ArbeitnowParser(CardParser):
    def __init__(self, version: str = "v1", selectors: Selectors = SELECTORS_V1) -> None:
        super().__init__(NAME, BASE_URL, selectors, version=version, default_location="Germany")

    def extra_tags(self, card: Tag) -> list[str]:
        tags = [*extract_texts(card, BENEFITS), *extract_texts(card, PERKS)]
        job_type = job_type_of(card)
        if job_type:
            tags.append(job_type)
        return tags


def job_type_of(card: Tag) -> str:
    for selector, label in JOB_TYPES:
        if has_match(card, selector):
            return label
    return ""


def default_config() -> ScraperConfig:
    return ScraperConfig(
        enabled=True,
        rate_limit=RateLimitConfig(
            requests_per_minute=30,
            delay_between_requests=DelayRange(2000, 5000),
            max_concurrent_requests=2,
        ),
        page_delay_ms=DelayRange(3000, 5000),
    )


def page_url(base_url: str, page: int) -> str:
    if page == 1:
        return base_url
    return f"{base_url}/?page={page}"


def create_scraper(config: ScraperConfig | None = None, **kwargs: Any) -> VersionedScraper:
    config = config or default_config()
    return VersionedScraper(
        NAME,
        BASE_URL,
        [ArbeitnowParser()],
        FINGERPRINTS,
        page_url,
        config,
        default_max_pages=5,
        default_max_jobs=100,
        **kwargs,
    )
