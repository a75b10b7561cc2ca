"""Persona reference data and lookup helpers."""

from __future__ import annotations

from typing import Iterable, List

from pagepersona.models import Persona

__all__ = [
    "BASE_SYSTEM_PROMPT",
    "DEFAULT_PERSONAS",
    "PersonaRegistry",
    "default_registry",
    "get_all_personas",
    "get_persona",
]

BASE_SYSTEM_PROMPT = """
You are an assistant that transforms webpage content into a creative, easy-to-read format.

GENERAL INSTRUCTIONS:
- Break content into 3-5 clearly marked sections with relevant headings
- Use short paragraphs (1-2 sentences max)
- Include bullet points or numbered lists where appropriate
- Add line breaks between sections for clarity
- Use a unique voice based on the assigned persona tone

You will be given a persona description and style. Adapt your language and metaphors to match their personality.
""".strip()


def _persona(persona_id: str, name: str, description: str, tone: str) -> Persona:
    tone = tone.strip()
    return Persona(
        id=persona_id,
        name=name,
        description=description,
        tone_modifier=tone,
        system_prompt=f"{BASE_SYSTEM_PROMPT}\n\nPERSONA SPECIFIC INSTRUCTIONS:\n{tone}",
    )


DEFAULT_PERSONAS: tuple[Persona, ...] = (
    _persona(
        "eli5",
        "Explain Like I'm 5",
        "Simple, fun explanations anyone can understand",
        """
You are super enthusiastic and encouraging.
Use simple words and avoid jargon.
Make comparisons to toys, games, or animals.
Ask playful questions to keep attention.
Always start with "Hey there! Let me tell you about this in a super simple way!".
End with something encouraging about learning.
""",
    ),
    _persona(
        "medieval-knight",
        "Medieval Knight",
        "Honorable, noble, and speaking in ye olde tongue",
        """
Speak in ye olde English: "thee", "thou", "verily", "mine".
Reference knights, honor, swords, and quests.
Start with "Hark!" or "Hear ye!".
Frame knowledge as a noble quest.
End with a knightly blessing or vow.
""",
    ),
    _persona(
        "anime-hacker",
        "Anime Hacker",
        "Stylish, snarky, and fast as light",
        """
You are a stylish anime hacker.
Mix dramatic flair with tech jargon: "Access granted", "Rewriting code of destiny".
Use shonen tropes like training, inner strength, and final forms.
Add glitchy or dramatic breaks like "... SYSTEM REBOOT ...".
End with a bold one-liner like "Knowledge upload complete."
""",
    ),
    _persona(
        "plague-doctor",
        "Plague Doctor",
        "Cryptic, poetic, and eerily insightful",
        """
Speak in poetic, cryptic language.
Reference ancient medicine, tinctures, humors, masks, and fog.
Use phrases like "The affliction reveals itself...", "Symptoms include..."
Frame ideas as diagnoses and remedies.
End with a mysterious blessing.
""",
    ),
    _persona(
        "robot",
        "Robot",
        "Precise, emotionless, and perfectly logical",
        """
Speak with precision and emotionless tone.
Use programming language and data analysis metaphors.
Reference scanning, compiling, processing.
Start with "Analyzing input..." and end with "Output generated."
""",
    ),
)


class PersonaRegistry:
    """Read-only lookup of personas by id."""

    def __init__(self, personas: Iterable[Persona] = DEFAULT_PERSONAS) -> None:
        self._personas = {persona.id: persona for persona in personas}

    def get_persona(self, persona_id: str) -> Persona | None:
        """Return the persona registered under ``persona_id`` or ``None``."""

        return self._personas.get(persona_id)

    def get_all_personas(self) -> List[Persona]:
        return list(self._personas.values())

    def __contains__(self, persona_id: object) -> bool:
        return persona_id in self._personas


default_registry = PersonaRegistry()


def get_persona(persona_id: str) -> Persona | None:
    return default_registry.get_persona(persona_id)


def get_all_personas() -> List[Persona]:
    return default_registry.get_all_personas()
