from __future__ import annotations

from abc import ABC, abstractmethod

from jobingest.collectors.request_executor import ScrapeError
from jobingest.core.models import JobPosting, RateLimitConfig, ScrapingMetrics, ScrapingOptions


class ParseError(ScrapeError):
    """Markup could not be turned into postings at all."""


class EmptyPageError(ParseError):
    """A page loaded but no posting could be extracted from it."""


class AllVersionsFailedError(ScrapeError):
    def __init__(self, source: str, versions: list[str]) -> None:
        super().__init__(f"All {source} scraper versions failed ({', '.join(versions)})")
        self.source = source
        self.versions = versions


class ParserAdapter(ABC):
    """One adapter per site layout version."""

    version: str

    @abstractmethod
    def parse_jobs(self, html: str) -> list[JobPosting]:
        raise NotImplementedError

    def has_next_page(self, html: str) -> bool:
        return False

    def get_current_page(self, html: str) -> int:
        return 1


class Scraper(ABC):
    name: str
    base_url: str

    @abstractmethod
    def scrape_jobs(self, options: ScrapingOptions | None = None) -> list[JobPosting]:
        raise NotImplementedError

    @abstractmethod
    def is_healthy(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def get_rate_limit(self) -> RateLimitConfig:
        raise NotImplementedError

    @abstractmethod
    def get_metrics(self) -> ScrapingMetrics:
        raise NotImplementedError

    def get_current_version(self) -> str:
        return "v1"
