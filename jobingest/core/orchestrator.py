from __future__ import annotations

import logging
import sqlite3
from dataclasses import asdict, replace
from typing import Any

from jobingest.core.models import ACTION_CREATE, ACTION_UPDATE, JobPosting, ScrapingOptions, utc_now
from jobingest.dedupe.service import DeduplicationEngine, DeduplicationError, DeduplicationOptions
from jobingest.sources.manager import ScraperRegistry, build_default_registry
from jobingest.storage.repository import JobRepository
from jobingest.utils.config import deduplication_section, scraping_settings

logger = logging.getLogger(__name__)


def _timestamp() -> str:
    return utc_now().replace(microsecond=0).isoformat()


class IngestionOrchestrator:
    def __init__(
        self,
        config: dict[str, Any],
        repository: JobRepository | None = None,
        registry: ScraperRegistry | None = None,
        engine: DeduplicationEngine | None = None,
    ) -> None:
        self.config = config
        self.options, max_workers = scraping_settings(config)
        self.repository = repository or JobRepository(config.get("database_path", "data/jobingest.db"))
        self.registry = registry or build_default_registry(config, max_workers=max_workers)
        self.engine = engine or DeduplicationEngine(
            self.repository, DeduplicationOptions.from_dict(deduplication_section(config))
        )

    def run(
        self,
        sources: list[str] | None = None,
        options: ScrapingOptions | None = None,
        force_refresh: bool = False,
    ) -> dict[str, int]:
        options = options or self.options
        if force_refresh:
            options = replace(options, force_refresh=True)
        run_id = self.repository.create_run(_timestamp())
        names = sources or self.registry.get_enabled_scrapers()
        results = self.registry.scrape_sources(names, options)

        counts = {"scraped": 0, "created": 0, "updated": 0, "skipped": 0, "failed": 0, "sources_failed": 0}
        for result in results:
            if result.error:
                counts["sources_failed"] += 1
                self.repository.add_run_error(run_id, result.source, result.error)
                continue
            counts["scraped"] += len(result.jobs)
            for job in result.jobs:
                try:
                    action = self._ingest(job, options.force_refresh)
                except (DeduplicationError, sqlite3.Error, KeyError) as exc:
                    counts["failed"] += 1
                    logger.warning(
                        "job_ingest_failed",
                        extra={"extra_fields": {"source": result.source, "apply_link": job.apply_link, "error": repr(exc)}},
                    )
                    self.repository.add_run_error(run_id, result.source, str(exc), job.apply_link)
                    continue
                counts[action] += 1

        self.repository.finish_run(
            run_id,
            _timestamp(),
            {**counts, "failed": counts["failed"] + counts["sources_failed"]},
        )
        logger.info("run_completed", extra={"extra_fields": {"run_id": run_id, **counts}})
        return counts

    def _ingest(self, job: JobPosting, force_refresh: bool = False) -> str:
        decision = self.engine.check_for_duplicates(job)
        if decision.recommended_action == ACTION_CREATE:
            self.repository.upsert_job(job)
            return "created"
        # A forced refresh rewrites exact duplicates with the freshly scraped fields.
        if decision.recommended_action == ACTION_UPDATE or force_refresh:
            target = decision.similar_jobs[0].candidate_id
            self.repository.update_job(target, job)
            logger.info(
                "job_updated",
                extra={
                    "extra_fields": {
                        "job_id": target,
                        "confidence": decision.confidence,
                        "reason": decision.reason,
                        "forced": decision.recommended_action != ACTION_UPDATE,
                    }
                },
            )
            return "updated"
        return "skipped"

    def health(self) -> dict[str, bool]:
        return self.registry.check_all_scrapers_health()

    def stats(self) -> dict[str, Any]:
        metrics = self.registry.get_scraper_metrics()
        return {
            "jobs": self.repository.get_job_stats(),
            "deduplication": self.engine.get_deduplication_stats(),
            "scrapers": [
                {**info, "metrics": asdict(metrics[info["name"]])}
                for info in self.registry.get_scraper_info()
            ],
        }

    def close(self) -> None:
        self.registry.close()
        self.repository.close()
