from __future__ import annotations

from bs4 import BeautifulSoup, Tag

from jobingest.utils.text import normalize_whitespace


def make_soup(html: str) -> BeautifulSoup:
    if html is None:
        raise TypeError("html must be a string")
    return BeautifulSoup(html, "html.parser")


def extract_text(element: Tag | None, selector: str) -> str:
    if element is None or not selector:
        return ""
    found = element.select_one(selector)
    if found is None:
        return ""
    return normalize_whitespace(found.get_text(" "))


def extract_attribute(element: Tag | None, selector: str, attribute: str) -> str:
    if element is None or not selector:
        return ""
    found = element.select_one(selector)
    if found is None:
        return ""
    value = found.get(attribute)
    if isinstance(value, list):
        value = " ".join(value)
    return (value or "").strip()


def extract_texts(element: Tag | None, selector: str) -> list[str]:
    if element is None or not selector:
        return []
    texts = (normalize_whitespace(node.get_text(" ")) for node in element.select(selector))
    return [text for text in texts if text]


def has_match(element: Tag | None, selector: str) -> bool:
    if element is None or not selector:
        return False
    return element.select_one(selector) is not None
