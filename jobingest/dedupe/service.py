from __future__ import annotations

import logging
import re
import time
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, fields
from typing import Any, Protocol

from jobingest.core.models import (
    ACTION_CREATE,
    ACTION_SKIP,
    ACTION_UPDATE,
    DeduplicationBatchStats,
    DeduplicationDecision,
    JobPosting,
    SimilarityScore,
)

logger = logging.getLogger(__name__)

APPLY_LINK_WEIGHT = 0.40
TITLE_WEIGHT = 0.30
COMPANY_WEIGHT = 0.20
LOCATION_WEIGHT = 0.10

SAME_TITLE_COMPANY_SCORE = 0.95
SKIP_THRESHOLD = 0.95

_LOCATION_SPLIT = re.compile(r"[,\s]+")


class DeduplicationError(Exception):
    pass


class StoredRecord(Protocol):
    id: int
    title: str
    company: str
    location: str
    apply_link: str


class JobStore(Protocol):
    def get_jobs(
        self,
        company: str | None = None,
        location: str | None = None,
        search_text: str | None = None,
        apply_link: str | None = None,
    ) -> Sequence[StoredRecord]: ...


@dataclass(slots=True)
class DeduplicationOptions:
    min_similarity_score: float = 0.8
    enable_fuzzy_matching: bool = True
    check_apply_link: bool = True
    check_title_company: bool = True
    check_location: bool = True

    @classmethod
    def from_dict(cls, payload: dict[str, Any] | None) -> DeduplicationOptions:
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in (payload or {}).items() if key in known})


def string_similarity(first: str | None, second: str | None) -> float:
    if not first or not second:
        return 0.0
    a = first.strip().lower()
    b = second.strip().lower()
    if a == b:
        return 1.0
    if a in b or b in a:
        return 0.9
    words_a = a.split()
    words_b = b.split()
    total = max(len(words_a), len(words_b))
    if total == 0:
        return 0.0
    common = sum((Counter(words_a) & Counter(words_b)).values())
    return common / total


def location_similarity(first: str | None, second: str | None) -> float:
    if not first or not second:
        return 0.0
    a = first.strip().lower()
    b = second.strip().lower()
    if a == b:
        return 1.0
    a_remote = "remote" in a
    b_remote = "remote" in b
    if a_remote and b_remote:
        return 0.9
    if a_remote or b_remote:
        return 0.3
    words_b = set(_LOCATION_SPLIT.split(b))
    shared = [word for word in _LOCATION_SPLIT.split(a) if word and word in words_b]
    return 0.7 if shared else 0.1


def _percent(score: float) -> int:
    return int(score * 100 + 0.5)


def matched_fields(candidate: JobPosting, existing: StoredRecord) -> tuple[str, ...]:
    pairs = (
        ("apply_link", candidate.apply_link, existing.apply_link),
        ("title", candidate.title, existing.title),
        ("company", candidate.company, existing.company),
        ("location", candidate.location, existing.location),
    )
    return tuple(name for name, ours, theirs in pairs if ours == theirs)


_FIELD_PHRASES = {
    "apply_link": "same apply link",
    "title": "same title",
    "company": "same company",
    "location": "same location",
}


def similarity_reason(matched: Iterable[str], score: float) -> str:
    phrases = [_FIELD_PHRASES[name] for name in matched]
    return ", ".join(phrases) if phrases else f"similar content ({_percent(score)}% match)"


def job_similarity(candidate: JobPosting, existing: StoredRecord, options: DeduplicationOptions) -> float:
    if options.check_apply_link and candidate.apply_link and candidate.apply_link == existing.apply_link:
        return 1.0
    if options.check_title_company and candidate.title == existing.title and candidate.company == existing.company:
        return SAME_TITLE_COMPANY_SCORE

    total = 0.0
    included = 0.0
    if options.check_apply_link:
        # Identical links already returned above.
        included += APPLY_LINK_WEIGHT
    if options.check_title_company and candidate.title:
        total += string_similarity(candidate.title, existing.title) * TITLE_WEIGHT
        included += TITLE_WEIGHT
    if options.check_title_company and candidate.company:
        total += string_similarity(candidate.company, existing.company) * COMPANY_WEIGHT
        included += COMPANY_WEIGHT
    if options.check_location and candidate.location:
        total += location_similarity(candidate.location, existing.location) * LOCATION_WEIGHT
        included += LOCATION_WEIGHT
    return total / included if included > 0 else 0.0


class DeduplicationEngine:
    """Read-only check; acting on the recommendation is the caller's job."""

    def __init__(self, store: JobStore, options: DeduplicationOptions | None = None) -> None:
        self.store = store
        self.options = options or DeduplicationOptions()

    def check_for_duplicates(
        self, candidate: JobPosting, options: DeduplicationOptions | None = None
    ) -> DeduplicationDecision:
        options = options or self.options
        logger.debug(
            "duplicate_check_started",
            extra={"extra_fields": {"title": candidate.title, "company": candidate.company, "source": candidate.source}},
        )
        try:
            existing = self._find_candidates(candidate, options)
        except Exception as exc:
            logger.error("duplicate_check_failed", extra={"extra_fields": {"title": candidate.title, "error": repr(exc)}})
            raise DeduplicationError("Failed to check for duplicates") from exc

        if not existing:
            return DeduplicationDecision(
                is_duplicate=False,
                confidence=1.0,
                similar_jobs=[],
                recommended_action=ACTION_CREATE,
                reason="No similar jobs found",
            )

        scores = sorted(
            (self._score(candidate, record, options) for record in existing),
            key=lambda item: item.score,
            reverse=True,
        )
        best = scores[0]
        is_duplicate = best.score >= options.min_similarity_score
        decision = DeduplicationDecision(
            is_duplicate=is_duplicate,
            confidence=best.score,
            similar_jobs=scores,
            recommended_action=_recommended_action(is_duplicate, best.score),
            reason=_decision_reason(best, is_duplicate),
        )
        logger.debug(
            "duplicate_check_completed",
            extra={
                "extra_fields": {
                    "is_duplicate": decision.is_duplicate,
                    "confidence": decision.confidence,
                    "action": decision.recommended_action,
                }
            },
        )
        return decision

    def process_batch(
        self, candidates: Sequence[JobPosting], options: DeduplicationOptions | None = None
    ) -> DeduplicationBatchStats:
        started = time.perf_counter()
        stats = DeduplicationBatchStats(total_processed=len(candidates))
        total_score = 0.0
        processed = 0
        for candidate in candidates:
            try:
                decision = self.check_for_duplicates(candidate, options)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "deduplication_item_failed",
                    extra={"extra_fields": {"title": candidate.title, "error": repr(exc)}},
                )
                stats.skipped += 1
                continue
            if decision.is_duplicate:
                stats.duplicates_found += 1
                if decision.recommended_action == ACTION_UPDATE:
                    stats.updated += 1
                else:
                    stats.skipped += 1
            else:
                stats.created += 1
            total_score += decision.confidence
            processed += 1

        stats.average_similarity_score = total_score / processed if processed else 0.0
        stats.elapsed_ms = max((time.perf_counter() - started) * 1000, 1.0)
        logger.info(
            "deduplication_batch_completed",
            extra={
                "extra_fields": {
                    "total": stats.total_processed,
                    "duplicates": stats.duplicates_found,
                    "created": stats.created,
                    "updated": stats.updated,
                    "skipped": stats.skipped,
                    "elapsed_ms": round(stats.elapsed_ms, 2),
                }
            },
        )
        return stats

    def get_deduplication_stats(self) -> dict[str, int]:
        """Counts stored postings that share a title and company."""
        try:
            records = self.store.get_jobs()
        except Exception as exc:
            logger.error("deduplication_stats_failed", extra={"extra_fields": {"error": repr(exc)}})
            raise DeduplicationError("Failed to get deduplication statistics") from exc

        groups: dict[str, int] = {}
        potential = 0
        for record in records:
            key = f"{record.title}-{record.company}"
            seen = groups.get(key, 0)
            if seen:
                potential += 1
            groups[key] = seen + 1
        return {
            "total_jobs": len(records),
            "potential_duplicates": potential,
            "duplicate_groups": sum(1 for count in groups.values() if count > 1),
        }

    def _find_candidates(self, candidate: JobPosting, options: DeduplicationOptions) -> list[StoredRecord]:
        found: list[StoredRecord] = []
        if options.check_apply_link and candidate.apply_link:
            found.extend(self.store.get_jobs(apply_link=candidate.apply_link))
        if options.check_title_company and candidate.title and candidate.company:
            matches = self.store.get_jobs(company=candidate.company, search_text=candidate.title)
            found.extend(job for job in matches if job.title == candidate.title)
        if options.enable_fuzzy_matching and candidate.title and candidate.company:
            for term in (candidate.title, candidate.company, f"{candidate.title} {candidate.company}"):
                found.extend(self.store.get_jobs(search_text=term))
        if options.check_location and candidate.location:
            found.extend(self.store.get_jobs(location=candidate.location))
        return _unique_by_id(found)

    def _score(self, candidate: JobPosting, record: StoredRecord, options: DeduplicationOptions) -> SimilarityScore:
        score = job_similarity(candidate, record, options)
        matched = matched_fields(candidate, record)
        return SimilarityScore(
            candidate_id=record.id,
            score=score,
            matched_fields=matched,
            reason=similarity_reason(matched, score),
        )


def _unique_by_id(records: Iterable[StoredRecord]) -> list[StoredRecord]:
    seen: set[int] = set()
    unique: list[StoredRecord] = []
    for record in records:
        if record.id in seen:
            continue
        seen.add(record.id)
        unique.append(record)
    return unique


def _recommended_action(is_duplicate: bool, best_score: float) -> str:
    if not is_duplicate:
        return ACTION_CREATE
    if best_score >= SKIP_THRESHOLD:
        return ACTION_SKIP
    return ACTION_UPDATE


def _decision_reason(best: SimilarityScore, is_duplicate: bool) -> str:
    if best.score == 0:
        return "No similar jobs found"
    if is_duplicate:
        return f"Found similar job ({_percent(best.score)}% match): {best.reason}"
    return f"Found similar job but below threshold ({_percent(best.score)}% match): {best.reason}"
