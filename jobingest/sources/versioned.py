from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from dataclasses import replace
from enum import Enum

from jobingest.collectors.request_executor import RequestExecutor, ScrapeError
from jobingest.core.models import JobPosting, RateLimitConfig, ScraperConfig, ScrapingMetrics, ScrapingOptions, utc_now
from jobingest.sources.base import AllVersionsFailedError, ParserAdapter, Scraper
from jobingest.sources.extract import has_match, make_soup
from jobingest.sources.filters import apply_filters
from jobingest.sources.paging import scrape_pages
from jobingest.utils.throttle import RateLimiter

logger = logging.getLogger(__name__)


class FallbackState(str, Enum):
    USING_CURRENT = "using_current"
    DETECTING = "detecting"
    USING_FALLBACK = "using_fallback"
    FAILED = "failed"


class VersionedScraper(Scraper):
    """Source scraper that switches parser versions when a site's layout changes."""

    def __init__(
        self,
        name: str,
        base_url: str,
        parsers: list[ParserAdapter],
        fingerprints: dict[str, list[str]],
        page_url: Callable[[str, int], str],
        config: ScraperConfig,
        *,
        executor: RequestExecutor | None = None,
        limiter: RateLimiter | None = None,
        default_max_pages: int = 5,
        default_max_jobs: int = 100,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
    ) -> None:
        if not parsers:
            raise ValueError(f"{name} needs at least one parser version")
        self.name = name
        self.base_url = (config.base_url or base_url).rstrip("/")
        self.versions: dict[str, ParserAdapter] = {parser.version: parser for parser in parsers}
        self.fingerprints = fingerprints
        self._page_url = page_url
        self.config = config
        self.executor = executor or RequestExecutor(user_agents=config.user_agents, timeout=config.timeout)
        self.limiter = limiter or RateLimiter(config.rate_limit, sleep=sleep, name=name)
        self.default_max_pages = default_max_pages
        self.default_max_jobs = default_max_jobs
        self._sleep = sleep
        self._rng = rng or random.Random()
        self.current_version = parsers[0].version
        self.state = FallbackState.USING_CURRENT
        self.metrics = ScrapingMetrics(version=self.current_version)

    def scrape_jobs(self, options: ScrapingOptions | None = None) -> list[JobPosting]:
        options = options or ScrapingOptions()
        max_pages = options.max_pages or self.default_max_pages
        max_jobs = options.max_jobs or self.default_max_jobs
        self.state = FallbackState.USING_CURRENT
        logger.info("scrape_started", extra={"extra_fields": {"source": self.name, "version": self.current_version}})

        try:
            jobs = self._scrape_with_version(self.current_version, max_pages, max_jobs)
        except ScrapeError as exc:
            logger.warning(
                "current_version_failed",
                extra={"extra_fields": {"source": self.name, "version": self.current_version, "error": repr(exc)}},
            )
            jobs = self._fall_back(max_pages, max_jobs)

        jobs = apply_filters(jobs, options.filters)[:max_jobs]
        logger.info(
            "scrape_completed",
            extra={"extra_fields": {"source": self.name, "version": self.current_version, "jobs": len(jobs)}},
        )
        return jobs

    def detect_version(self) -> str | None:
        try:
            html = self._fetch(self.base_url)
        except ScrapeError as exc:
            logger.error("version_detection_failed", extra={"extra_fields": {"source": self.name, "error": repr(exc)}})
            return None
        soup = make_soup(html)
        for version, selectors in self.fingerprints.items():
            if any(has_match(soup, selector) for selector in selectors):
                if version not in self.versions:
                    logger.warning(
                        "unsupported_layout_detected",
                        extra={"extra_fields": {"source": self.name, "version": version}},
                    )
                    return None
                return version
        return None

    def is_healthy(self) -> bool:
        try:
            self._fetch(self.base_url)
        except ScrapeError as exc:
            logger.error("health_check_failed", extra={"extra_fields": {"source": self.name, "error": repr(exc)}})
            return False
        return True

    def get_rate_limit(self) -> RateLimitConfig:
        return self.config.rate_limit

    def get_metrics(self) -> ScrapingMetrics:
        return replace(self.metrics)

    def get_current_version(self) -> str:
        return self.current_version

    def get_available_versions(self) -> list[str]:
        return list(self.versions)

    def get_rate_limiter_metrics(self) -> dict[str, float]:
        return self.limiter.get_metrics()

    def get_session_info(self) -> dict[str, object]:
        return self.executor.session_info()

    def configure(self, config: ScraperConfig) -> None:
        self.config = config
        self.limiter.config = config.rate_limit
        if config.base_url:
            self.base_url = config.base_url.rstrip("/")

    def close(self) -> None:
        self.limiter.close()
        self.executor.close()

    def _fall_back(self, max_pages: int, max_jobs: int) -> list[JobPosting]:
        self.state = FallbackState.DETECTING
        tried = [self.current_version]

        detected = self.detect_version()
        if detected and detected != self.current_version:
            logger.info(
                "version_switched",
                extra={"extra_fields": {"source": self.name, "from": self.current_version, "to": detected}},
            )
            self._activate(detected)
            self.state = FallbackState.USING_FALLBACK
            try:
                return self._scrape_with_version(detected, max_pages, max_jobs)
            except ScrapeError as exc:
                logger.error(
                    "detected_version_failed",
                    extra={"extra_fields": {"source": self.name, "version": detected, "error": repr(exc)}},
                )
            tried.append(detected)

        for version in self.versions:
            if version in tried:
                continue
            logger.info("trying_fallback_version", extra={"extra_fields": {"source": self.name, "version": version}})
            try:
                jobs = self._scrape_with_version(version, max_pages, max_jobs)
            except ScrapeError as exc:
                logger.warning(
                    "fallback_version_failed",
                    extra={"extra_fields": {"source": self.name, "version": version, "error": repr(exc)}},
                )
                continue
            if jobs:
                self._activate(version)
                self.state = FallbackState.USING_FALLBACK
                return jobs

        self.state = FallbackState.FAILED
        raise AllVersionsFailedError(self.name, list(self.versions))

    def _scrape_with_version(self, version: str, max_pages: int, max_jobs: int) -> list[JobPosting]:
        parser = self.versions[version]
        return scrape_pages(
            self._fetch,
            parser,
            lambda page: self._page_url(self.base_url, page),
            source=self.name,
            max_pages=max_pages,
            max_jobs=max_jobs,
            retry_attempts=self.config.retry_attempts,
            retry_base_delay_ms=self.config.retry_base_delay_ms,
            page_delay=self.config.page_delay_ms,
            sleep=self._sleep,
            rng=self._rng,
        )

    def _activate(self, version: str) -> None:
        self.current_version = version
        self.metrics.version = version

    def _fetch(self, url: str) -> str:
        return self.limiter.admit(lambda: self._timed_fetch(url))

    def _timed_fetch(self, url: str) -> str:
        started = time.perf_counter()
        try:
            response = self.executor.fetch(url)
        except Exception:
            self._record_request((time.perf_counter() - started) * 1000, success=False)
            raise
        self._record_request((time.perf_counter() - started) * 1000, success=True)
        return response.text

    def _record_request(self, duration_ms: float, success: bool) -> None:
        metrics = self.metrics
        metrics.total_requests += 1
        if success:
            metrics.successful_requests += 1
        else:
            metrics.failed_requests += 1
        total = metrics.average_response_time * (metrics.total_requests - 1) + duration_ms
        metrics.average_response_time = total / metrics.total_requests
        metrics.last_scraped_at = utc_now()
