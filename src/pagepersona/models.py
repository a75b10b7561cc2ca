"""Domain models used across the pipeline."""

from __future__ import annotations

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from pagepersona.errors import ErrorCode

__all__ = [
    "ContentMetadata",
    "DIRECT_TEXT_MARKER",
    "OriginalContent",
    "Persona",
    "PersonaSummary",
    "ScrapedContent",
    "TokenUsage",
    "TransformationResult",
    "TransformationServiceResult",
    "count_words",
]

#: Title and URL recorded for transformations of pasted text.
DIRECT_TEXT_MARKER = "Direct Text Input"

_WORD_CHAR = re.compile(r"\w")


def count_words(text: str) -> int:
    """Count whitespace separated tokens that contain at least one word character."""

    return sum(1 for token in text.split() if _WORD_CHAR.search(token))


class _WireModel(BaseModel):
    """Base model serialising to the camelCase names used by API consumers."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class ContentMetadata(_WireModel):
    description: Optional[str] = None
    author: Optional[str] = None
    publish_date: Optional[str] = None
    word_count: int = Field(default=0, ge=0)


class ScrapedContent(_WireModel):
    """Normalised page content produced by the fetcher."""

    title: str
    content: str
    url: str
    metadata: ContentMetadata = Field(default_factory=ContentMetadata)


class Persona(_WireModel):
    """Reference data describing a voice the generator can write in."""

    id: str
    name: str
    description: str
    system_prompt: str
    tone_modifier: Optional[str] = None

    def summary(self) -> "PersonaSummary":
        return PersonaSummary(id=self.id, name=self.name, description=self.description)


class PersonaSummary(_WireModel):
    id: str
    name: str
    description: str


class OriginalContent(_WireModel):
    title: str
    content: str
    url: str
    word_count: int = Field(default=0, ge=0)

    @classmethod
    def from_scraped(cls, scraped: ScrapedContent) -> "OriginalContent":
        return cls(
            title=scraped.title,
            content=scraped.content,
            url=scraped.url,
            word_count=scraped.metadata.word_count,
        )

    @classmethod
    def from_text(cls, text: str) -> "OriginalContent":
        return cls(
            title=DIRECT_TEXT_MARKER,
            content=text,
            url=DIRECT_TEXT_MARKER,
            word_count=count_words(text),
        )


class TokenUsage(BaseModel):
    """Token accounting reported by the generation API."""

    model_config = ConfigDict(frozen=True)

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class TransformationResult(_WireModel):
    """Outcome of one transformation, cached when successful."""

    success: bool
    original_content: OriginalContent
    transformed_content: str = ""
    persona: PersonaSummary
    usage: Optional[TokenUsage] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def _check_outcome(self) -> "TransformationResult":
        if self.success:
            if self.error is not None:
                raise ValueError("successful results must not carry an error")
        else:
            if self.transformed_content:
                raise ValueError("failed results must not carry transformed content")
            if not self.error:
                raise ValueError("failed results must carry an error message")
        return self


class TransformationServiceResult(_WireModel):
    """Envelope returned by the pipeline to its callers."""

    success: bool
    data: Optional[TransformationResult] = None
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    details: Optional[str] = None
    cached: Optional[bool] = None

