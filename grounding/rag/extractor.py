from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from bs4 import BeautifulSoup, Tag

from grounding.utils.text import collapse_whitespace, normalise_paragraphs

from .registry import SelectorHints

logger = logging.getLogger(__name__)

_NOISE_TAGS = ["script", "style", "noscript", "iframe", "nav", "header", "footer", "aside"]
_NOISE_SELECTORS = [".sidebar", ".advertisement", ".ads", ".social-share", ".comments", ".related-posts"]
_CONTENT_SELECTORS = [
    "article",
    '[role="main"]',
    ".content",
    ".post-content",
    ".entry-content",
    ".article-content",
    ".story-body",
    "main",
    "#content",
    ".main-content",
]
_TITLE_SELECTORS = [
    'meta[property="og:title"]',
    'meta[name="twitter:title"]',
    "h1",
    "title",
    ".article-title",
    ".post-title",
]
_MIN_BLOCK_CHARS = 200
_VOWEL_GROUPS = re.compile(r"[aeiouy]+")


class ExtractionEmpty(Exception):
    """Raised when a page yields no body text after cleaning."""

    kind = "extraction_empty"


@dataclass(frozen=True)
class ContentMetadata:
    author: Optional[str] = None
    published_at: Optional[str] = None
    description: Optional[str] = None
    keywords: List[str] = field(default_factory=list)
    language: Optional[str] = None


@dataclass(frozen=True)
class ExtractedContent:
    title: str
    body: str
    metadata: ContentMetadata = field(default_factory=ContentMetadata)
    readability_score: float = 0.0


def extract_content(html: str, url: str, selectors: Optional[SelectorHints] = None) -> ExtractedContent:
    soup = BeautifulSoup(html or "", "html.parser")

    for tag in soup(_NOISE_TAGS):
        tag.decompose()
    for selector in _NOISE_SELECTORS:
        for tag in soup.select(selector):
            tag.decompose()

    metadata = _extract_metadata(soup)
    title = _extract_title(soup, selectors)
    body = _extract_body(soup, selectors)
    if not body:
        logger.warning("grounding.extractor.empty", extra={"url": url})
        raise ExtractionEmpty(f"no extractable text at {url}")

    return ExtractedContent(
        title=title,
        body=body,
        metadata=metadata,
        readability_score=readability_score(body),
    )


def _extract_title(soup: BeautifulSoup, selectors: Optional[SelectorHints]) -> str:
    candidates = list(_TITLE_SELECTORS)
    if selectors and selectors.title:
        candidates.insert(0, selectors.title)

    for selector in candidates:
        node = soup.select_one(selector)
        if node is None:
            continue
        value = node.get("content") if node.name == "meta" else node.get_text(" ")
        value = collapse_whitespace(value or "")
        if value:
            return value
    return "Untitled"


def _extract_body(soup: BeautifulSoup, selectors: Optional[SelectorHints]) -> str:
    if selectors:
        for hint in (selectors.article, selectors.content):
            if not hint:
                continue
            text = _joined_text(soup.select(hint))
            if len(text) > _MIN_BLOCK_CHARS:
                return text

    for selector in _CONTENT_SELECTORS:
        node = soup.select_one(selector)
        if node is None:
            continue
        text = _element_text(node)
        if len(text) > _MIN_BLOCK_CHARS:
            return text

    block = _largest_paragraph_block(soup)
    if block:
        return block

    root = soup.body or soup
    return _element_text(root)


def _largest_paragraph_block(soup: BeautifulSoup) -> str:
    groups: Dict[int, List[str]] = {}
    sizes: Dict[int, int] = {}
    for paragraph in soup.find_all("p"):
        text = collapse_whitespace(paragraph.get_text(" "))
        if not text:
            continue
        key = id(paragraph.parent)
        groups.setdefault(key, []).append(text)
        sizes[key] = sizes.get(key, 0) + len(text)

    if not groups:
        return ""
    best = max(sizes, key=lambda key: sizes[key])
    return "\n\n".join(groups[best])


def _joined_text(nodes: List[Tag]) -> str:
    return "\n\n".join(text for text in (_element_text(node) for node in nodes) if text)


def _element_text(node: Tag) -> str:
    blocks = node.find_all(["p", "li", "h2", "h3", "h4", "blockquote", "pre"])
    if blocks:
        parts = [collapse_whitespace(block.get_text(" ")) for block in blocks]
        text = "\n\n".join(part for part in parts if part)
        if text:
            return text
    return normalise_paragraphs(node.get_text("\n"))


def _meta(soup: BeautifulSoup, **attrs: str) -> Optional[str]:
    node = soup.find("meta", attrs=attrs)
    if node is None:
        return None
    value = node.get("content")
    return value.strip() if value and value.strip() else None


def _extract_metadata(soup: BeautifulSoup) -> ContentMetadata:
    author = _meta(soup, name="author") or _meta(soup, property="article:author")
    if author is None:
        author_node = soup.select_one(".author")
        if author_node is not None:
            author = collapse_whitespace(author_node.get_text(" ")) or None

    published_at = _meta(soup, property="article:published_time") or _meta(soup, name="date")
    if published_at is None:
        time_node = soup.find("time")
        if time_node is not None and time_node.get("datetime"):
            published_at = time_node["datetime"]

    description = _meta(soup, name="description") or _meta(soup, property="og:description")
    raw_keywords = _meta(soup, name="keywords")
    keywords = [item.strip() for item in raw_keywords.split(",") if item.strip()] if raw_keywords else []

    html_node = soup.find("html")
    language = html_node.get("lang") if html_node is not None else None
    language = language or _meta(soup, **{"http-equiv": "content-language"})

    return ContentMetadata(
        author=author,
        published_at=published_at,
        description=description,
        keywords=keywords,
        language=language,
    )


def readability_score(text: str) -> float:
    """Flesch reading ease squeezed into [0, 1]; 0 for text under 100 characters."""
    if not text or len(text) < 100:
        return 0.0

    sentences = [part for part in re.split(r"[.!?]+", text) if part.strip()]
    words = text.split()
    if not sentences or not words:
        return 0.0

    words_per_sentence = len(words) / len(sentences)
    syllables_per_word = sum(_count_syllables(word.lower()) for word in words) / len(words)
    score = 206.835 - (1.015 * words_per_sentence) - (84.6 * syllables_per_word)
    return max(0.0, min(1.0, score / 100))


def _count_syllables(word: str) -> int:
    if len(word) <= 3:
        return 1
    groups = _VOWEL_GROUPS.findall(word)
    count = len(groups) if groups else 1
    if word.endswith("e"):
        count -= 1
    return max(1, count)
