"""Prompt construction for webpage and direct-text transformations."""

from __future__ import annotations

from pagepersona.models import ScrapedContent, count_words

__all__ = [
    "CONTENT_GUIDELINES",
    "FORMATTING_REQUIREMENTS",
    "build_text_prompt",
    "build_webpage_prompt",
]

FORMATTING_REQUIREMENTS = """
CRITICAL FORMATTING REQUIREMENTS:
- Break the content into 3-5 clearly separated sections
- Start each section with a markdown header (## Section Title)
- Keep paragraphs short: 1-2 sentences each
- Use bullet points or numbered lists wherever they help
- Leave a blank line between sections and paragraphs
- Write engaging, persona-flavoured subheadings
- Make the whole piece easy to scan at a glance
""".strip()

CONTENT_GUIDELINES = """
CONTENT GUIDELINES:
- Keep every key fact from the source; do not invent new ones
- Stay fully in character for the persona throughout
- Aim for 300-800 words
""".strip()


def build_webpage_prompt(content: ScrapedContent) -> str:
    """Return the user prompt for a fetched webpage."""

    return (
        "Transform the following webpage content using your persona.\n\n"
        f"WEBPAGE TITLE: {content.title}\n"
        f"SOURCE URL: {content.url}\n"
        f"WORD COUNT: {content.metadata.word_count}\n\n"
        f"CONTENT TO TRANSFORM:\n{content.content}\n\n"
        f"{FORMATTING_REQUIREMENTS}\n\n"
        f"{CONTENT_GUIDELINES}"
    )


def build_text_prompt(text: str) -> str:
    return (
        "Transform the following text using your persona.\n\n"
        f"WORD COUNT: {count_words(text)}\n\n"
        f"TEXT INPUT:\n{text}\n\n"
        f"{FORMATTING_REQUIREMENTS}\n\n"
        f"{CONTENT_GUIDELINES}"
    )
