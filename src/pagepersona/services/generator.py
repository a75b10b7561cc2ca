"""Thin wrapper around the OpenAI chat completions API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from openai import OpenAI

from pagepersona.config import GeneratorConfig, load_openai_api_key
from pagepersona.errors import GenerationError
from pagepersona.models import TokenUsage

__all__ = ["GenerationRequest", "GenerationResponse", "Generator"]

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class GenerationRequest:
    """Prompts and optional sampling overrides for one completion."""

    system_prompt: str
    user_prompt: str
    model: str | None = None
    max_tokens: int | None = None
    temperature: float | None = None
    presence_penalty: float | None = None
    frequency_penalty: float | None = None


@dataclass(slots=True)
class GenerationResponse:
    """Generated text plus the accounting data reported by the API."""

    content: str
    usage: TokenUsage | None = None
    finish_reason: str | None = None


def _token_usage(raw: Any) -> TokenUsage | None:
    if raw is None:
        return None
    return TokenUsage(
        prompt_tokens=getattr(raw, "prompt_tokens", 0) or 0,
        completion_tokens=getattr(raw, "completion_tokens", 0) or 0,
        total_tokens=getattr(raw, "total_tokens", 0) or 0,
    )


class Generator:
    """Send persona prompts to the chat completions API.

    The OpenAI client is created on first use so a generator can be built
    before credentials are needed. Tests pass ``client`` directly.
    """

    def __init__(
        self,
        api_key: str | None = None,
        client: Any | None = None,
        config: GeneratorConfig | None = None,
    ) -> None:
        self.config = config or GeneratorConfig()
        self._api_key = api_key
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            api_key = self._api_key or load_openai_api_key()
            try:
                self._client = OpenAI(api_key=api_key) if api_key else OpenAI()
            except Exception as exc:
                raise RuntimeError(
                    "Failed to initialise the OpenAI client. Ensure OPENAI_API_KEY is configured either in the "
                    "environment or in a .env file."
                ) from exc

        return self._client

    def generate(self, request: GenerationRequest) -> GenerationResponse:
        """Run one completion for ``request``.

        ``None`` content is treated as a failure while an empty string is a
        valid result. Errors raised while creating the client or by the API
        call are re-raised as :class:`GenerationError` with an
        ``OpenAI API error`` prefix.
        """

        model = request.model or self.config.model
        messages = [
            {"role": "system", "content": request.system_prompt},
            {"role": "user", "content": request.user_prompt},
        ]

        logger.info(
            "Requesting completion from %s (system prompt %d chars, user prompt %d chars)",
            model,
            len(request.system_prompt),
            len(request.user_prompt),
        )

        try:
            client = self._get_client()
            response = client.chat.completions.create(
                model=model,
                messages=messages,
                max_tokens=request.max_tokens or self.config.max_tokens,
                temperature=self.config.temperature if request.temperature is None else request.temperature,
                presence_penalty=(
                    self.config.presence_penalty if request.presence_penalty is None else request.presence_penalty
                ),
                frequency_penalty=(
                    self.config.frequency_penalty
                    if request.frequency_penalty is None
                    else request.frequency_penalty
                ),
            )
        except Exception as exc:
            logger.error("OpenAI request failed: %s", exc)
            raise GenerationError(f"OpenAI API error: {str(exc) or 'Unknown OpenAI API error'}") from exc

        choices = getattr(response, "choices", None) or []
        choice = choices[0] if choices else None
        content = choice.message.content if choice is not None else None
        if content is None:
            raise GenerationError("No content received from OpenAI")

        usage = _token_usage(getattr(response, "usage", None))
        finish_reason = getattr(choice, "finish_reason", None)
        logger.info(
            "Completion finished (reason=%s, total tokens=%s)",
            finish_reason,
            usage.total_tokens if usage else "n/a",
        )

        return GenerationResponse(content=content, usage=usage, finish_reason=finish_reason)

    def describe_model(self) -> dict[str, Any]:
        """Return the default model settings used for completions."""

        return {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "presence_penalty": self.config.presence_penalty,
            "frequency_penalty": self.config.frequency_penalty,
        }
