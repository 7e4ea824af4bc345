from __future__ import annotations

from datetime import datetime, timezone

import pytest

from jobingest.collectors.request_executor import HttpStatusError
from jobingest.core.models import (
    DelayRange,
    JobPosting,
    RateLimitConfig,
    ScraperConfig,
    ScrapingMetrics,
    ScrapingOptions,
)
from jobingest.sources.base import Scraper
from jobingest.sources.manager import ScraperRegistry, build_default_registry
from jobingest.utils.config import ConfigError


def posting(title: str, source: str) -> JobPosting:
    return JobPosting(
        title=title,
        company="Acme",
        location="Remote",
        apply_link=f"https://example.com/{source}/{title}",
        posted_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
        source=source,
    )


class FakeScraper(Scraper):
    def __init__(self, name: str, jobs: list[JobPosting] | None = None, error: Exception | None = None, healthy: object = True) -> None:
        self.name = name
        self.base_url = f"https://{name.lower()}.example"
        self.jobs = jobs or []
        self.error = error
        self.healthy = healthy
        self.configured: list[ScraperConfig] = []
        self.closed = False

    def scrape_jobs(self, options: ScrapingOptions | None = None) -> list[JobPosting]:
        if self.error:
            raise self.error
        return list(self.jobs)

    def is_healthy(self) -> bool:
        if isinstance(self.healthy, Exception):
            raise self.healthy
        return bool(self.healthy)

    def get_rate_limit(self) -> RateLimitConfig:
        return RateLimitConfig(requests_per_minute=10, delay_between_requests=DelayRange(0, 0))

    def get_metrics(self) -> ScrapingMetrics:
        return ScrapingMetrics(version="v1")

    def configure(self, config: ScraperConfig) -> None:
        self.configured.append(config)

    def close(self) -> None:
        self.closed = True


def config(enabled: bool = True) -> ScraperConfig:
    return ScraperConfig(
        enabled=enabled,
        rate_limit=RateLimitConfig(requests_per_minute=10, delay_between_requests=DelayRange(0, 0)),
    )


def make_registry(max_workers: int = 1) -> ScraperRegistry:
    registry = ScraperRegistry(max_workers=max_workers)
    registry.register("alpha", FakeScraper("Alpha", [posting("a1", "alpha"), posting("a2", "alpha")]), config())
    registry.register("broken", FakeScraper("Broken", error=HttpStatusError(503, "Service Unavailable")), config())
    registry.register("gamma", FakeScraper("Gamma", [posting("g1", "gamma")]), config())
    registry.register("off", FakeScraper("Off", [posting("o1", "off")]), config(enabled=False))
    return registry


def test_scrape_all_isolates_failures_and_skips_disabled() -> None:
    registry = make_registry()
    jobs = registry.scrape_all()
    assert [job.title for job in jobs] == ["a1", "a2", "g1"]
    assert registry.get_enabled_scrapers() == ["alpha", "broken", "gamma"]
    assert registry.get_available_scrapers() == ["alpha", "broken", "gamma", "off"]


def test_concurrent_fan_out_keeps_registration_order() -> None:
    registry = make_registry(max_workers=4)
    results = registry.scrape_sources(["gamma", "broken", "alpha"])
    assert [result.source for result in results] == ["gamma", "broken", "alpha"]
    assert results[1].error == "HTTP 503: Service Unavailable"
    assert [job.title for job in registry.scrape_all()] == ["a1", "a2", "g1"]


def test_scrape_specific_reports_unknown_names() -> None:
    registry = make_registry()
    assert [job.title for job in registry.scrape_specific(["gamma", "missing"])] == ["g1"]
    results = registry.scrape_sources(["missing"])
    assert results[0].error is not None and "missing" in results[0].error


def test_health_check_turns_exceptions_into_false() -> None:
    registry = ScraperRegistry()
    registry.register("ok", FakeScraper("Ok"), config())
    registry.register("down", FakeScraper("Down", healthy=False), config())
    registry.register("boom", FakeScraper("Boom", healthy=RuntimeError("dns")), config())
    assert registry.check_all_scrapers_health() == {"ok": True, "down": False, "boom": False}


def test_update_scraper_config_merges_partially() -> None:
    registry = make_registry()
    scraper = registry.get_scraper("alpha")
    updated = registry.update_scraper_config(
        "Alpha",
        enabled=False,
        rate_limit={"requests_per_minute": 5, "delay_between_requests": {"min": 100, "max": 200}},
    )
    assert updated.enabled is False
    assert updated.rate_limit.requests_per_minute == 5
    assert updated.rate_limit.delay_between_requests == DelayRange(100, 200)
    assert updated.retry_attempts == 3
    assert registry.get_scraper_config("alpha") is updated
    assert "alpha" not in registry.get_enabled_scrapers()
    assert scraper.configured == [updated]
    with pytest.raises(KeyError):
        registry.update_scraper_config("nope", enabled=True)


def test_partial_rate_limit_update_keeps_current_values() -> None:
    registry = ScraperRegistry()
    registry.register(
        "alpha",
        FakeScraper("Alpha"),
        ScraperConfig(
            enabled=True,
            rate_limit=RateLimitConfig(requests_per_minute=10, delay_between_requests=DelayRange(300, 400)),
        ),
    )
    delay_only = registry.update_scraper_config("alpha", rate_limit={"delay_between_requests": {"min": 100, "max": 200}})
    assert delay_only.rate_limit.requests_per_minute == 10
    assert delay_only.rate_limit.delay_between_requests == DelayRange(100, 200)

    rpm_only = registry.update_scraper_config("alpha", rate_limit={"requests_per_minute": 30})
    assert rpm_only.rate_limit.requests_per_minute == 30
    assert rpm_only.rate_limit.delay_between_requests == DelayRange(100, 200)
    assert rpm_only.rate_limit.max_concurrent_requests == 1


def test_invalid_rate_limit_update_leaves_config_untouched() -> None:
    registry = make_registry()
    before = registry.get_scraper_config("alpha")
    with pytest.raises(ConfigError):
        registry.update_scraper_config("alpha", rate_limit={"requests_per_minute": 0})
    assert registry.get_scraper_config("alpha") is before


def test_lookup_info_metrics_and_close() -> None:
    registry = make_registry()
    with pytest.raises(KeyError):
        registry.get_scraper("nope")
    assert registry.get_scraper_config("nope") is None
    info = registry.get_scraper_info()
    assert info[0] == {
        "name": "alpha",
        "source": "Alpha",
        "version": "v1",
        "base_url": "https://alpha.example",
        "enabled": True,
    }
    assert set(registry.get_scraper_metrics()) == {"alpha", "broken", "gamma", "off"}
    registry.close()
    assert all(registry.get_scraper(name).closed for name in registry.get_available_scrapers())


def test_default_registry_applies_config_overlay() -> None:
    registry = build_default_registry(
        {
            "scrapers": {
                "linkedin": {"enabled": False},
                "remoteok": {"rate_limit": {"requests_per_minute": 12}, "retry_attempts": 5},
            }
        }
    )
    try:
        assert registry.get_available_scrapers() == ["remoteok", "linkedin", "arbeitnow", "relocate"]
        assert registry.get_enabled_scrapers() == ["remoteok", "arbeitnow", "relocate"]
        remote = registry.get_scraper_config("remoteok")
        assert remote.rate_limit.requests_per_minute == 12
        assert remote.rate_limit.delay_between_requests == DelayRange(2000, 5000)
        assert remote.retry_attempts == 5
        assert registry.get_scraper_config("relocate").rate_limit.max_concurrent_requests == 2
        assert registry.get_scraper("linkedin").get_rate_limit().requests_per_minute == 20
    finally:
        registry.close()
