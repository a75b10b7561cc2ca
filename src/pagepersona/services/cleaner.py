"""Strip boilerplate from raw text or HTML before it is sent for generation.

Pasted input often carries cookie banners, navigation menus, share links
and copyright lines. Removing them before generation keeps prompts short.
Input longer than the configured limit keeps its beginning and a short tail,
since conclusions tend to live at the end.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field

from bs4 import BeautifulSoup

from pagepersona.config import CleanerConfig

__all__ = [
    "CleanMetrics",
    "CleanedText",
    "TRUNCATION_SEPARATOR",
    "clean_text",
    "clean_text_for_llm",
    "estimate_tokens",
    "extract_text_from_html",
    "looks_like_html",
    "smart_truncate",
]

logger = logging.getLogger(__name__)

TRUNCATION_SEPARATOR = "\n\n[... middle content truncated for brevity ...]\n\n"
SEPARATOR_RESERVE = 100
MIN_BODY_TEXT = 50

HTML_NOISE_SELECTOR = (
    "script, style, noscript, iframe, object, embed, "
    "nav, header, footer, aside, "
    ".advertisement, .ads, .ad, .social-share, .social-sharing, "
    ".cookie-banner, .cookie-notice, .cookie-consent, "
    ".newsletter, .subscription-banner, "
    ".related-articles, .recommended, "
    '[class*="cookie"], [id*="cookie"], '
    '[class*="banner"], [class*="popup"], '
    '[class*="modal"], [class*="overlay"]'
)

_HTML_TAG = re.compile(r"<[a-z][\s\S]*>", re.IGNORECASE)

_ENTITIES = (
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&#x27;", "'"),
    ("&nbsp;", " "),
    ("&mdash;", "—"),
    ("&ndash;", "–"),
)

_LINKS = (
    re.compile(r"https?://\S+", re.IGNORECASE),
    re.compile(r"www\.\S+", re.IGNORECASE),
    re.compile(r"\S+@\S+\.\S+"),
)

_BOILERPLATE = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\b(?:cookie|cookies|cookie policy|cookie notice|cookie consent)\b[^\n.!?]{0,100}[.!?]",
        r"\b(?:privacy policy|terms of service|terms and conditions|legal notice)\b[^\n.!?]{0,100}[.!?]",
        r"\b(?:subscribe|newsletter|sign up for|join our|follow us)\b[^\n.!?]{0,100}[.!?]",
        r"\b(?:advertisement|sponsored content|ad choice|advertisements)\b[^\n.!?]{0,100}[.!?]",
        r"\b(?:all rights reserved|copyright \d{4})\b[^\n]{0,100}",
        r"\b(?:accept cookies|manage cookies|we use cookies)\b[^\n.!?]{0,200}[.!?]",
    )
)

_SEPARATOR_CHARS = re.compile(r"[|•\->/\\]")
_UPPERCASE = re.compile(r"[A-Z]")
_RULE_LINE = re.compile(r"^[\s\-=_*]{3,}$", re.MULTILINE)


@dataclass(slots=True)
class CleanMetrics:
    original_length: int
    cleaned_length: int
    reduction_percent: float
    estimated_original_tokens: int
    estimated_cleaned_tokens: int
    token_reduction: int
    was_truncated: bool


@dataclass(slots=True)
class CleanedText:
    """Cleaned text plus the numbers logged for the cleaning run."""

    text: str
    metrics: CleanMetrics
    headings: list[str] = field(default_factory=list)


def looks_like_html(raw: str) -> bool:
    return bool(_HTML_TAG.search(raw))


def extract_text_from_html(html: str) -> str:
    """Return the body text of ``html`` without scripts, menus and banners."""

    soup = BeautifulSoup(html, "lxml")
    for element in soup.select(HTML_NOISE_SELECTOR):
        element.decompose()

    text = soup.body.get_text() if soup.body else ""
    if len(text.strip()) < MIN_BODY_TEXT:
        text = soup.get_text()
    return text


def _extract_headings(html: str) -> list[str]:
    soup = BeautifulSoup(html, "lxml")
    headings = (tag.get_text(strip=True) for tag in soup.find_all(["h1", "h2", "h3", "h4", "h5", "h6"]))
    return [heading for heading in headings if heading]


def _is_navigation_line(line: str) -> bool:
    stripped = line.strip()
    length = len(stripped)
    if 0 < length < 10:
        return True
    if len(_SEPARATOR_CHARS.findall(stripped)) > length * 0.3:
        return True
    return len(_UPPERCASE.findall(stripped)) > length * 0.8 and length < 50


def clean_text(text: str) -> str:
    """Remove boilerplate, menu lines and noisy punctuation from plain text."""

    cleaned = text
    for entity, replacement in _ENTITIES:
        cleaned = cleaned.replace(entity, replacement)

    for pattern in _LINKS:
        cleaned = pattern.sub("", cleaned)

    for pattern in _BOILERPLATE:
        cleaned = pattern.sub("", cleaned)

    cleaned = "\n".join(line for line in cleaned.split("\n") if not _is_navigation_line(line))

    cleaned = re.sub(r"[ \t]+", " ", cleaned)
    cleaned = re.sub(r"\n\s*\n\s*\n+", "\n\n", cleaned)
    cleaned = re.sub(r"^\s+", "", cleaned, flags=re.MULTILINE).strip()

    cleaned = re.sub(r"\.{4,}", "...", cleaned)
    cleaned = re.sub(r"!{2,}", "!", cleaned)
    cleaned = re.sub(r"\?{2,}", "?", cleaned)
    cleaned = re.sub(r",{2,}", ",", cleaned)

    cleaned = _RULE_LINE.sub("", cleaned)
    return cleaned.strip()


def smart_truncate(text: str, max_chars: int, preserve_start_ratio: float) -> str:
    """Keep the start of ``text`` and a short tail, joined by a marker."""

    if len(text) <= max_chars:
        return text

    start_chars = math.floor(max_chars * preserve_start_ratio)
    end_chars = max_chars - start_chars - SEPARATOR_RESERVE
    tail = text[len(text) - end_chars:] if end_chars > 0 else ""
    return text[:start_chars] + TRUNCATION_SEPARATOR + tail


def estimate_tokens(text: str) -> int:
    """Rough token count at about four characters per token."""

    return math.ceil(len(text) / 4)


def clean_text_for_llm(
    raw: str,
    config: CleanerConfig | None = None,
    *,
    include_headings: bool = False,
) -> CleanedText:
    """Clean ``raw`` text or HTML and cap it at ``config.max_chars``."""

    config = config or CleanerConfig()
    is_html = looks_like_html(raw)
    extracted = extract_text_from_html(raw) if is_html else raw
    headings = _extract_headings(raw) if include_headings and is_html else []

    cleaned = clean_text(extracted)
    was_truncated = len(cleaned) > config.max_chars
    if was_truncated:
        cleaned = smart_truncate(cleaned, config.max_chars, config.preserve_start_ratio)

    original_tokens = estimate_tokens(raw)
    cleaned_tokens = estimate_tokens(cleaned)
    metrics = CleanMetrics(
        original_length=len(raw),
        cleaned_length=len(cleaned),
        reduction_percent=(len(raw) - len(cleaned)) / len(raw) * 100 if raw else 0.0,
        estimated_original_tokens=original_tokens,
        estimated_cleaned_tokens=cleaned_tokens,
        token_reduction=original_tokens - cleaned_tokens,
        was_truncated=was_truncated,
    )
    logger.info(
        "Cleaned %d chars of %s input down to %d (%.1f%% smaller, ~%d tokens saved%s)",
        metrics.original_length,
        "HTML" if is_html else "text",
        metrics.cleaned_length,
        metrics.reduction_percent,
        metrics.token_reduction,
        ", truncated" if was_truncated else "",
    )

    return CleanedText(text=cleaned, metrics=metrics, headings=headings)
