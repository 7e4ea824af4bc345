from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import Any

from jobingest.core.models import (
    JobPosting,
    ScrapeResult,
    ScraperConfig,
    ScrapingMetrics,
    ScrapingOptions,
)
from jobingest.sources import arbeitnow, linkedin, relocate, remoteok
from jobingest.sources.base import Scraper
from jobingest.utils.config import build_scraper_config, merge_rate_limit, scraper_section

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RegisteredScraper:
    scraper: Scraper
    config: ScraperConfig


class ScraperRegistry:
    def __init__(self, max_workers: int = 1) -> None:
        self.max_workers = max(1, max_workers)
        self._entries: dict[str, RegisteredScraper] = {}

    def register(self, name: str, scraper: Scraper, config: ScraperConfig) -> None:
        key = name.strip().lower()
        if not key:
            raise ValueError("scraper name must not be empty")
        self._entries[key] = RegisteredScraper(scraper=scraper, config=config)
        logger.info("scraper_registered", extra={"extra_fields": {"name": key, "enabled": config.enabled}})

    def get_scraper(self, name: str) -> Scraper:
        entry = self._entries.get(name.strip().lower())
        if entry is None:
            raise KeyError(f"Scraper {name!r} not found")
        return entry.scraper

    def get_available_scrapers(self) -> list[str]:
        return list(self._entries)

    def get_enabled_scrapers(self) -> list[str]:
        return [name for name, entry in self._entries.items() if entry.config.enabled]

    def scrape_all(self, options: ScrapingOptions | None = None) -> list[JobPosting]:
        return _flatten(self.scrape_sources(self.get_enabled_scrapers(), options))

    def scrape_specific(self, names: list[str], options: ScrapingOptions | None = None) -> list[JobPosting]:
        return _flatten(self.scrape_sources(names, options))

    def scrape_sources(self, names: list[str], options: ScrapingOptions | None = None) -> list[ScrapeResult]:
        logger.info("scraping_started", extra={"extra_fields": {"sources": names}})
        if self.max_workers > 1 and len(names) > 1:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(names))) as pool:
                results = list(pool.map(lambda name: self._scrape_one(name, options), names))
        else:
            results = [self._scrape_one(name, options) for name in names]
        logger.info(
            "scraping_completed",
            extra={"extra_fields": {"total_jobs": sum(len(r.jobs) for r in results), "failed": [r.source for r in results if r.error]}},
        )
        return results

    def check_all_scrapers_health(self) -> dict[str, bool]:
        health: dict[str, bool] = {}
        for name, entry in self._entries.items():
            try:
                health[name] = bool(entry.scraper.is_healthy())
            except Exception as exc:  # noqa: BLE001
                logger.error("health_check_failed", extra={"extra_fields": {"name": name, "error": repr(exc)}})
                health[name] = False
        return health

    def get_scraper_metrics(self) -> dict[str, ScrapingMetrics]:
        return {name: entry.scraper.get_metrics() for name, entry in self._entries.items()}

    def get_scraper_config(self, name: str) -> ScraperConfig | None:
        entry = self._entries.get(name.strip().lower())
        return entry.config if entry else None

    def update_scraper_config(self, name: str, **changes: Any) -> ScraperConfig:
        key = name.strip().lower()
        entry = self._entries.get(key)
        if entry is None:
            raise KeyError(f"Scraper {name!r} not found")
        if isinstance(changes.get("rate_limit"), dict):
            changes["rate_limit"] = merge_rate_limit(entry.config.rate_limit, changes["rate_limit"], f"{key}.rate_limit")
        entry.config = replace(entry.config, **changes)
        configure = getattr(entry.scraper, "configure", None)
        if callable(configure):
            configure(entry.config)
        logger.info("scraper_config_updated", extra={"extra_fields": {"name": key, "fields": sorted(changes)}})
        return entry.config

    def get_scraper_info(self) -> list[dict[str, Any]]:
        return [
            {
                "name": name,
                "source": entry.scraper.name,
                "version": entry.scraper.get_current_version(),
                "base_url": entry.scraper.base_url,
                "enabled": entry.config.enabled,
            }
            for name, entry in self._entries.items()
        ]

    def close(self) -> None:
        for entry in self._entries.values():
            close = getattr(entry.scraper, "close", None)
            if callable(close):
                close()

    def _scrape_one(self, name: str, options: ScrapingOptions | None) -> ScrapeResult:
        started = time.perf_counter()
        try:
            scraper = self.get_scraper(name)
            jobs = scraper.scrape_jobs(options)
        except Exception as exc:  # noqa: BLE001
            logger.error("scrape_failed", extra={"extra_fields": {"name": name, "error": repr(exc)}})
            return ScrapeResult(source=name, error=str(exc), duration_ms=(time.perf_counter() - started) * 1000)
        logger.info("scrape_succeeded", extra={"extra_fields": {"name": name, "jobs": len(jobs)}})
        return ScrapeResult(source=name, jobs=jobs, duration_ms=(time.perf_counter() - started) * 1000)


def _flatten(results: list[ScrapeResult]) -> list[JobPosting]:
    return [job for result in results for job in result.jobs]


SITE_MODULES = {
    "remoteok": remoteok,
    "linkedin": linkedin,
    "arbeitnow": arbeitnow,
    "relocate": relocate,
}


def build_default_registry(config: dict[str, Any] | None = None, *, max_workers: int = 1, **scraper_kwargs: Any) -> ScraperRegistry:
    """Registers every known site, overlaying ``scrapers.<name>`` settings on each site's defaults."""
    config = config or {}
    registry = ScraperRegistry(max_workers=max_workers)
    for name, module in SITE_MODULES.items():
        site_config = build_scraper_config(name, scraper_section(config, name), module.default_config())
        registry.register(name, module.create_scraper(site_config, **scraper_kwargs), site_config)
    return registry
