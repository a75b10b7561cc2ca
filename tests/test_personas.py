from __future__ import annotations

from pagepersona.models import ContentMetadata, ScrapedContent
from pagepersona.personas import BASE_SYSTEM_PROMPT, PersonaRegistry, get_all_personas, get_persona
from pagepersona.services.prompts import FORMATTING_REQUIREMENTS, build_text_prompt, build_webpage_prompt


def test_default_personas() -> None:
    ids = [persona.id for persona in get_all_personas()]

    assert ids == ["eli5", "medieval-knight", "anime-hacker", "plague-doctor", "robot"]
    for persona in get_all_personas():
        assert persona.system_prompt.startswith(BASE_SYSTEM_PROMPT)
        assert persona.tone_modifier in persona.system_prompt


def test_unknown_persona_returns_none() -> None:
    assert get_persona("pirate") is None
    assert get_persona("robot").name == "Robot"


def test_custom_registry() -> None:
    registry = PersonaRegistry([get_persona("robot")])

    assert "robot" in registry
    assert "eli5" not in registry
    assert registry.get_persona("robot").summary().model_dump(by_alias=True) == {
        "id": "robot",
        "name": "Robot",
        "description": "Precise, emotionless, and perfectly logical",
    }


def test_webpage_prompt_includes_source_details() -> None:
    content = ScrapedContent(
        title="Solar power",
        content="Panels make electricity.",
        url="https://example.com/solar",
        metadata=ContentMetadata(word_count=3),
    )

    prompt = build_webpage_prompt(content)

    assert "WEBPAGE TITLE: Solar power" in prompt
    assert "SOURCE URL: https://example.com/solar" in prompt
    assert "WORD COUNT: 3" in prompt
    assert "CONTENT TO TRANSFORM:\nPanels make electricity." in prompt
    assert FORMATTING_REQUIREMENTS in prompt


def test_text_prompt_uses_text_input_section() -> None:
    prompt = build_text_prompt("Cats sleep a lot.")

    assert "TEXT INPUT:\nCats sleep a lot." in prompt
    assert "WORD COUNT: 4" in prompt
    assert FORMATTING_REQUIREMENTS in prompt
