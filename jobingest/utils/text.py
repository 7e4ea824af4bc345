from __future__ import annotations

import re
from urllib.parse import urljoin

_NON_SLUG = re.compile(r"[^a-z0-9]")
_DASH_RUNS = re.compile(r"-+")

REMOTE_TOKENS = ("remote", "anywhere", "worldwide")


def normalize_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def resolve_url(base_url: str, href: str) -> str:
    if not href:
        return ""
    if href.startswith(("http://", "https://")):
        return href
    return urljoin(base_url.rstrip("/") + "/", href.lstrip("/"))


def slugify_source_id(title: str, company: str) -> str:
    base = f"{title}-{company}".lower()
    return _DASH_RUNS.sub("-", _NON_SLUG.sub("-", base))


def mentions_remote(text: str) -> bool:
    lowered = text.lower()
    return any(token in lowered for token in REMOTE_TOKENS)


_SALARY_AMOUNT = re.compile(r"(\d[\d,]*(?:\.\d+)?)\s*([kK])?")


def parse_salary_range(text: str | None) -> tuple[float, float] | None:
    """``"$120k - $150k"`` -> ``(120000.0, 150000.0)``; a single figure gives equal bounds."""
    if not text:
        return None
    amounts: list[float] = []
    for digits, thousands in _SALARY_AMOUNT.findall(text):
        value = float(digits.replace(",", ""))
        amounts.append(value * 1000 if thousands else value)
        if len(amounts) == 2:
            break
    if not amounts:
        return None
    return min(amounts), max(amounts)
