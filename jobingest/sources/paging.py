from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable

from jobingest.collectors.request_executor import ScrapeError, TransientNetworkError
from jobingest.core.models import DelayRange, JobPosting
from jobingest.sources.base import EmptyPageError, ParseError, ParserAdapter
from jobingest.utils.retry import with_retry

logger = logging.getLogger(__name__)


def load_page(fetch: Callable[[str], str], parser: ParserAdapter, url: str) -> tuple[str, list[JobPosting]]:
    html = fetch(url)
    try:
        jobs = parser.parse_jobs(html)
    except ScrapeError:
        raise
    except Exception as exc:  # noqa: BLE001
        raise ParseError(f"{parser.version} parser failed on {url}: {exc!r}") from exc
    return html, jobs


def scrape_pages(
    fetch: Callable[[str], str],
    parser: ParserAdapter,
    page_url: Callable[[int], str],
    *,
    source: str,
    max_pages: int,
    max_jobs: int,
    retry_attempts: int = 3,
    retry_base_delay_ms: float = 1000.0,
    page_delay: DelayRange = DelayRange(5000, 8000),
    sleep: Callable[[float], None] = time.sleep,
    rng: random.Random | None = None,
) -> list[JobPosting]:
    """A failing first page raises; failures on later pages keep what was collected."""
    rng = rng or random.Random()
    jobs: list[JobPosting] = []
    page = 1

    def first_page() -> tuple[str, list[JobPosting]]:
        html, page_jobs = load_page(fetch, parser, page_url(1))
        if not page_jobs:
            raise EmptyPageError(f"no {source} postings parsed with {parser.version} on page 1")
        return html, page_jobs

    while page <= max_pages and len(jobs) < max_jobs:
        if page == 1:
            html, page_jobs = with_retry(
                first_page,
                max_attempts=retry_attempts,
                base_delay_ms=retry_base_delay_ms,
                retry_on=(TransientNetworkError,),
                sleep=sleep,
            )
        else:
            try:
                html, page_jobs = load_page(fetch, parser, page_url(page))
            except Exception as exc:  # noqa: BLE001
                logger.error("page_failed", extra={"extra_fields": {"source": source, "page": page, "error": repr(exc)}})
                break
            if not page_jobs:
                logger.warning("page_empty", extra={"extra_fields": {"source": source, "page": page}})
                break

        jobs.extend(page_jobs)
        logger.debug("page_scraped", extra={"extra_fields": {"source": source, "page": page, "jobs": len(page_jobs)}})

        if not parser.has_next_page(html):
            logger.debug("no_more_pages", extra={"extra_fields": {"source": source, "page": page}})
            break
        page += 1
        if page <= max_pages and len(jobs) < max_jobs:
            sleep(rng.uniform(page_delay.min, page_delay.max) / 1000.0)

    return jobs[:max_jobs]
