from __future__ import annotations

import logging
from dataclasses import dataclass

from bs4 import Tag

from jobingest.core.models import JobPosting, utc_now
from jobingest.sources.base import ParserAdapter
from jobingest.sources.extract import extract_attribute, extract_text, extract_texts, make_soup
from jobingest.utils.dates import parse_flexible_date
from jobingest.utils.text import resolve_url, slugify_source_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Selectors:
    job_cards: str
    title: str
    company: str
    location: str
    apply_link: str
    posted_date: str
    salary: str
    tags: str
    next_page: str
    current_page: str


class CardParser(ParserAdapter):
    """Parser for boards that render one card element per posting."""

    def __init__(
        self,
        source: str,
        base_url: str,
        selectors: Selectors,
        version: str = "v1",
        default_location: str = "",
    ) -> None:
        self.source = source
        self.base_url = base_url
        self.selectors = selectors
        self.version = version
        self.default_location = default_location

    def parse_jobs(self, html: str) -> list[JobPosting]:
        soup = make_soup(html)
        cards = soup.select(self.selectors.job_cards)
        logger.debug("job_cards_found", extra={"extra_fields": {"source": self.source, "version": self.version, "cards": len(cards)}})
        jobs: list[JobPosting] = []
        for card in cards:
            try:
                job = self.parse_job_card(card)
            except Exception as exc:  # noqa: BLE001
                logger.warning("job_card_failed", extra={"extra_fields": {"source": self.source, "error": repr(exc)}})
                continue
            if job is not None:
                jobs.append(job)
        return jobs

    def parse_job_card(self, card: Tag) -> JobPosting | None:
        title = extract_text(card, self.selectors.title)
        company = extract_text(card, self.selectors.company)
        if not title or not company:
            logger.warning(
                "job_card_missing_required_fields",
                extra={"extra_fields": {"source": self.source, "title": title, "company": company}},
            )
            return None

        location = self.build_location(card, extract_text(card, self.selectors.location))
        href = extract_attribute(card, self.selectors.apply_link, "href")
        salary = extract_text(card, self.selectors.salary) or None
        tags = [*extract_texts(card, self.selectors.tags), *self.extra_tags(card)]
        now = utc_now()
        return JobPosting(
            title=title,
            company=company,
            location=location,
            apply_link=resolve_url(self.base_url, href),
            posted_date=parse_flexible_date(extract_text(card, self.selectors.posted_date), now=now),
            source=self.source,
            source_id=slugify_source_id(title, company),
            salary=salary,
            tags=tuple(tag for tag in tags if tag),
            date_scraped=now,
            last_updated=now,
        )

    def extra_tags(self, card: Tag) -> list[str]:
        return []

    def build_location(self, card: Tag, location: str) -> str:
        return location or self.default_location

    def has_next_page(self, html: str) -> bool:
        try:
            return make_soup(html).select_one(self.selectors.next_page) is not None
        except Exception as exc:  # noqa: BLE001
            logger.warning("next_page_check_failed", extra={"extra_fields": {"source": self.source, "error": repr(exc)}})
            return False

    def get_current_page(self, html: str) -> int:
        try:
            text = extract_text(make_soup(html), self.selectors.current_page)
            return int(text) if text else 1
        except Exception as exc:  # noqa: BLE001
            logger.warning("current_page_check_failed", extra={"extra_fields": {"source": self.source, "error": repr(exc)}})
            return 1
