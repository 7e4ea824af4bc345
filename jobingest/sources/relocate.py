from __future__ import annotations

from typing import Any

from bs4 import Tag

from jobingest.core.models import DelayRange, RateLimitConfig, ScraperConfig
from jobingest.sources.extract import extract_text, extract_texts, has_match
from jobingest.sources.parser import CardParser, Selectors
from jobingest.sources.versioned import VersionedScraper

NAME = "Relocate.me"
BASE_URL = "https://relocate.me"

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

COUNTRY = ".job-card__country"
REGION = ".job-card__region"
BENEFITS = ".job-card__benefits .benefit"
PERKS = ".job-card__perks .perk"

JOB_TYPES = [
    (".job-card__remote", "Remote"),
    (".job-card__onsite", "On-site"),
    (".job-card__full-time", "Full-time"),
    (".job-card__part-time", "Part-time"),
    (".job-card__contract", "Contract"),
]

RELOCATION_FEATURES = [
    (".job-card__visa-sponsorship", "Visa Sponsorship"),
    (".job-card__relocation-package", "Relocation Package"),
    (".job-card__english-speaking", "English Speaking"),
]

FINGERPRINTS = {
    "v2": [".job-listing", ".job-grid"],
    "v1": [".job-card", ".pagination"],
}


class RelocateParser(CardParser):
    def __init__(self, version: str = "v1", selectors: Selectors = SELECTORS_V1) -> None:
        super().__init__(NAME, BASE_URL, selectors, version=version)

    def build_location(self, card: Tag, location: str) -> str:
        parts = [location, extract_text(card, REGION), extract_text(card, COUNTRY)]
        parts = [part for part in parts if part]
        return ", ".join(parts) if parts else "International"

    def extra_tags(self, card: Tag) -> list[str]:
        tags = [*extract_texts(card, BENEFITS), *extract_texts(card, PERKS)]
        job_type = next((label for selector, label in JOB_TYPES if has_match(card, selector)), "")
        if job_type:
            tags.append(job_type)
        tags.extend(label for selector, label in RELOCATION_FEATURES if has_match(card, selector))
        return tags


def default_config() -> ScraperConfig:
    return ScraperConfig(
        enabled=True,
        rate_limit=RateLimitConfig(
            requests_per_minute=25,
            delay_between_requests=DelayRange(2500, 6000),
            max_concurrent_requests=2,
        ),
        page_delay_ms=DelayRange(4000, 6000),
    )


def page_url(base_url: str, page: int) -> str:
    if page == 1:
        return f"{base_url}/jobs"
    return f"{base_url}/jobs?page={page}"


def create_scraper(config: ScraperConfig | None = None, **kwargs: Any) -> VersionedScraper:
    config = config or default_config()
    return VersionedScraper(
        NAME,
        BASE_URL,
        [RelocateParser()],
        FINGERPRINTS,
        page_url,
        config,
        default_max_pages=4,
        default_max_jobs=80,
        **kwargs,
    )
