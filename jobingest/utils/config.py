from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Any

import yaml

from jobingest.core.models import DelayRange, JobFilters, RateLimitConfig, ScraperConfig, ScrapingOptions


class ConfigError(RuntimeError):
    pass


def load_config(path: str | Path) -> dict[str, Any]:
    cfg_path = Path(path)
    if not cfg_path.exists():
        raise ConfigError(f"Config not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle) or {}
    if not isinstance(loaded, dict):
        raise ConfigError("Config root must be a mapping")
    return loaded


def _section(config: dict[str, Any], key: str) -> dict[str, Any]:
    value = config.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be a mapping")
    return value


def _delay_range(payload: Any, key: str) -> DelayRange:
    if not isinstance(payload, dict) or "min" not in payload or "max" not in payload:
        raise ConfigError(f"'{key}' needs 'min' and 'max' in milliseconds")
    return DelayRange(min=float(payload["min"]), max=float(payload["max"]))


def merge_rate_limit(current: RateLimitConfig, payload: Any, key: str) -> RateLimitConfig:
    """Overlay a partial ``rate_limit`` mapping on ``current``."""
    payload = payload or {}
    if not isinstance(payload, dict):
        raise ConfigError(f"'{key}' must be a mapping")
    try:
        return RateLimitConfig(
            requests_per_minute=int(payload.get("requests_per_minute", current.requests_per_minute)),
            delay_between_requests=(
                _delay_range(payload["delay_between_requests"], f"{key}.delay_between_requests")
                if "delay_between_requests" in payload
                else current.delay_between_requests
            ),
            max_concurrent_requests=int(payload.get("max_concurrent_requests", current.max_concurrent_requests)),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid '{key}': {exc}") from exc


def build_scraper_config(name: str, payload: dict[str, Any] | None, defaults: ScraperConfig) -> ScraperConfig:
    """Overlay one ``scrapers.<name>`` section on the source's default tuning."""
    payload = payload or {}
    if not isinstance(payload, dict):
        raise ConfigError(f"scrapers.{name} must be a mapping")
    changes: dict[str, Any] = {}
    try:
        if "enabled" in payload:
            changes["enabled"] = bool(payload["enabled"])
        if "base_url" in payload:
            changes["base_url"] = str(payload["base_url"])
        if "rate_limit" in payload:
            changes["rate_limit"] = merge_rate_limit(
                defaults.rate_limit, payload["rate_limit"], f"scrapers.{name}.rate_limit"
            )
        if "retry_attempts" in payload:
            changes["retry_attempts"] = int(payload["retry_attempts"])
        if "retry_base_delay_ms" in payload:
            changes["retry_base_delay_ms"] = float(payload["retry_base_delay_ms"])
        if "timeout" in payload:
            changes["timeout"] = float(payload["timeout"])
        if "user_agents" in payload:
            changes["user_agents"] = [str(agent) for agent in payload["user_agents"] or []]
        if "page_delay_ms" in payload:
            changes["page_delay_ms"] = _delay_range(payload["page_delay_ms"], f"scrapers.{name}.page_delay_ms")
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid settings for scraper '{name}': {exc}") from exc
    if changes.get("retry_attempts", defaults.retry_attempts) < 1:
        raise ConfigError(f"scrapers.{name}.retry_attempts must be at least 1")
    return replace(defaults, **changes)


def scraper_section(config: dict[str, Any], name: str) -> dict[str, Any] | None:
    return _section(config, "scrapers").get(name)


def _job_filters(payload: dict[str, Any]) -> JobFilters:
    def optional_float(key: str) -> float | None:
        return float(payload[key]) if payload.get(key) is not None else None

    return JobFilters(
        location=payload.get("location"),
        remote=bool(payload["remote"]) if payload.get("remote") is not None else None,
        company=payload.get("company"),
        tags=[str(tag) for tag in payload.get("tags") or []],
        salary_min=optional_float("salary_min"),
        salary_max=optional_float("salary_max"),
    )


def scraping_settings(config: dict[str, Any]) -> tuple[ScrapingOptions, int]:
    """Returns default scrape options and the registry worker count."""
    section = _section(config, "scraping")
    try:
        options = ScrapingOptions(
            max_pages=int(section["max_pages"]) if section.get("max_pages") else None,
            max_jobs=int(section["max_jobs"]) if section.get("max_jobs") else None,
            filters=_job_filters(_section(section, "filters")) if section.get("filters") else None,
            force_refresh=bool(section.get("force_refresh", False)),
        )
        max_workers = int(section.get("max_workers", 1))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid scraping settings: {exc}") from exc
    return options, max_workers


def deduplication_section(config: dict[str, Any]) -> dict[str, Any]:
    return _section(config, "deduplication")
