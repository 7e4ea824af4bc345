from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

STATUS_ACTIVE = "ACTIVE"
STATUS_INACTIVE = "INACTIVE"

ACTION_CREATE = "create"
ACTION_UPDATE = "update"
ACTION_SKIP = "skip"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def build_search_text(title: str, company: str, location: str) -> str:
    return f"{title} {company} {location}".lower()


@dataclass(slots=True, frozen=True)
class JobPosting:
    title: str
    company: str
    location: str
    apply_link: str
    posted_date: datetime
    source: str
    source_id: str | None = None
    salary: str | None = None
    tags: tuple[str, ...] = ()
    status: str = STATUS_ACTIVE
    applied: bool = False
    date_scraped: datetime = field(default_factory=utc_now)
    last_updated: datetime = field(default_factory=utc_now)
    search_text: str = ""

    def __post_init__(self) -> None:
        if not self.search_text:
            object.__setattr__(self, "search_text", build_search_text(self.title, self.company, self.location))
        if not isinstance(self.tags, tuple):
            object.__setattr__(self, "tags", tuple(self.tags))


@dataclass(slots=True, frozen=True)
class DelayRange:
    """Inclusive bounds in milliseconds."""

    min: float
    max: float

    def __post_init__(self) -> None:
        if self.min < 0 or self.max < 0:
            raise ValueError("delay bounds must be non-negative")
        if self.min > self.max:
            raise ValueError(f"delay min {self.min} exceeds max {self.max}")


@dataclass(slots=True, frozen=True)
class RateLimitConfig:
    requests_per_minute: int
    delay_between_requests: DelayRange
    # Advisory only, every source is drained by a single worker.
    max_concurrent_requests: int = 1

    def __post_init__(self) -> None:
        if self.requests_per_minute <= 0:
            raise ValueError("requests_per_minute must be greater than zero")
        if self.max_concurrent_requests <= 0:
            raise ValueError("max_concurrent_requests must be greater than zero")


@dataclass(slots=True)
class JobFilters:
    location: str | None = None
    remote: bool | None = None
    company: str | None = None
    tags: list[str] = field(default_factory=list)
    salary_min: float | None = None
    salary_max: float | None = None

    def __post_init__(self) -> None:
        if self.salary_min is not None and self.salary_max is not None and self.salary_min > self.salary_max:
            raise ValueError(f"salary_min {self.salary_min} exceeds salary_max {self.salary_max}")


@dataclass(slots=True)
class ScrapingOptions:
    max_pages: int | None = None
    max_jobs: int | None = None
    filters: JobFilters | None = None
    force_refresh: bool = False


@dataclass(slots=True)
class ScrapingMetrics:
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    average_response_time: float = 0.0
    last_scraped_at: datetime = field(default_factory=utc_now)
    version: str = "unknown"


@dataclass(slots=True)
class ScrapeResult:
    """Outcome of one source's scrape; ``error`` is set when it raised."""

    source: str
    jobs: list[JobPosting] = field(default_factory=list)
    error: str | None = None
    duration_ms: float = 0.0


@dataclass(slots=True, frozen=True)
class SimilarityScore:
    candidate_id: int
    score: float
    matched_fields: tuple[str, ...]
    reason: str


@dataclass(slots=True)
class DeduplicationDecision:
    is_duplicate: bool
    confidence: float
    similar_jobs: list[SimilarityScore]
    recommended_action: str
    reason: str


@dataclass(slots=True)
class DeduplicationBatchStats:
    total_processed: int = 0
    duplicates_found: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    average_similarity_score: float = 0.0
    elapsed_ms: float = 0.0


@dataclass(slots=True)
class ScraperConfig:
    enabled: bool
    rate_limit: RateLimitConfig
    retry_attempts: int = 3
    retry_base_delay_ms: float = 1000.0
    timeout: float = 30.0
    user_agents: list[str] = field(default_factory=list)
    page_delay_ms: DelayRange = field(default_factory=lambda: DelayRange(5000, 8000))
    base_url: str | None = None
