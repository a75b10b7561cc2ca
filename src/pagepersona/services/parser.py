"""Prepare fetched or pasted content for generation.

Both sources go through the same steps: entity decoding, whitespace
collapse, removal of common web artifacts, a minimum length check and
truncation. :meth:`ContentParser.validate_content` then rejects content with
too few words to be worth a completion.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from pagepersona.config import ParserConfig
from pagepersona.errors import ContentValidationError, InvalidTextError
from pagepersona.models import DIRECT_TEXT_MARKER, count_words

__all__ = [
    "ContentParser",
    "MAX_TITLE_LENGTH",
    "ParsedContent",
    "clean_title",
    "generate_summary",
    "normalize_text",
]

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200
SUMMARY_LENGTH = 200
TRUNCATION_MARKER = "..."

_ENTITIES = (
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&nbsp;", " "),
)

_WEB_ARTIFACTS = re.compile(
    r"\b(?:Cookie|Privacy Policy|Terms of Service|Subscribe|Newsletter|Advertisement)\b", re.IGNORECASE
)
_EMAIL = re.compile(r"\S+@\S+\.\S+")
_URL = re.compile(r"https?://\S+")
# "Title | Site" or "Title - Site"; a hyphen inside a word is not a separator.
_TITLE_SUFFIX = re.compile(r"\s*(?:\||\s[-–—]\s).*$")


@dataclass(slots=True)
class ParsedContent:
    """Cleaned text ready to be placed in a prompt."""

    cleaned_text: str
    title: str
    word_count: int
    summary: str | None = None


def _decode_entities(text: str) -> str:
    for entity, replacement in _ENTITIES:
        text = text.replace(entity, replacement)
    return text


def normalize_text(text: str) -> str:
    """Decode entities, collapse whitespace and strip web artifacts."""

    cleaned = re.sub(r"\s+", " ", _decode_entities(text)).strip()
    cleaned = _WEB_ARTIFACTS.sub("", cleaned)
    cleaned = _EMAIL.sub("", cleaned)
    cleaned = _URL.sub("", cleaned)
    cleaned = re.sub(r"\.{3,}", "...", cleaned)
    cleaned = re.sub(r"!{2,}", "!", cleaned)
    return re.sub(r"\?{2,}", "?", cleaned)


def clean_title(title: str) -> str:
    """Drop the site name after a ``|`` or dash separator and cap the length."""

    collapsed = re.sub(r"\s+", " ", _decode_entities(title)).strip()
    trimmed = _TITLE_SUFFIX.sub("", collapsed).strip()
    return (trimmed or collapsed)[:MAX_TITLE_LENGTH]


def generate_summary(text: str) -> str:
    """Use the first paragraph when it is a sensible size, else the opening characters."""

    first_paragraph = text.split("\n", 1)[0]
    if 50 < len(first_paragraph) < 300:
        return first_paragraph
    return text[:SUMMARY_LENGTH] + (TRUNCATION_MARKER if len(text) > SUMMARY_LENGTH else "")


class ContentParser:
    """Clean, bound and validate content before generation."""

    def __init__(self, config: ParserConfig | None = None) -> None:
        self.config = config or ParserConfig()

    def parse_web_content(self, title: str, raw_content: str) -> ParsedContent:
        """Clean a fetched page; raises :class:`ContentValidationError` when too short."""

        cleaned = normalize_text(raw_content)
        if len(cleaned) < self.config.min_content_length:
            raise ContentValidationError("Content too short to process")

        final_text = self._truncate(cleaned)
        return ParsedContent(
            cleaned_text=final_text,
            title=clean_title(title),
            word_count=count_words(final_text),
            summary=generate_summary(final_text),
        )

    def parse_direct_text(self, text: str) -> ParsedContent:
        """Clean pasted text; raises :class:`InvalidTextError` when too short."""

        cleaned = normalize_text(text)
        if len(cleaned) < self.config.min_content_length:
            raise InvalidTextError("Text too short to process")

        final_text = self._truncate(cleaned)
        return ParsedContent(
            cleaned_text=final_text,
            title=DIRECT_TEXT_MARKER,
            word_count=count_words(final_text),
        )

    def validate_content(self, content: ParsedContent) -> None:
        if not content.cleaned_text.strip():
            raise ContentValidationError("No valid content found")

        if content.word_count < self.config.min_word_count:
            raise ContentValidationError("Content too short for meaningful transformation")

        if content.word_count > self.config.long_content_words:
            logger.warning(
                "Content has %d words and may result in a truncated transformation", content.word_count
            )

    def _truncate(self, text: str) -> str:
        limit = self.config.max_content_length
        if len(text) <= limit:
            return text
        return text[:limit] + TRUNCATION_MARKER
