"""Fetch, cache and transform content through a persona."""

from __future__ import annotations

import logging
from typing import Callable, Literal

from pagepersona.cache import CacheService
from pagepersona.config import PipelineConfig, load_openai_api_key
from pagepersona.errors import (
    ERROR_MESSAGES,
    ContentFetchError,
    ContentValidationError,
    ErrorCode,
    GenerationError,
    InvalidTextError,
    classify_error,
    format_error,
)
from pagepersona.models import (
    DIRECT_TEXT_MARKER,
    OriginalContent,
    PersonaSummary,
    ScrapedContent,
    TransformationResult,
    TransformationServiceResult,
)
from pagepersona.personas import PersonaRegistry, default_registry
from pagepersona.services.cleaner import clean_text_for_llm
from pagepersona.services.fetcher import ContentFetcher, normalize_target_url
from pagepersona.services.generator import GenerationRequest, Generator
from pagepersona.services.parser import ContentParser
from pagepersona.services.prompts import build_text_prompt, build_webpage_prompt
from pagepersona.services.usage import UsageTracker

__all__ = ["SourceMode", "TransformationPipeline", "create_transformation_pipeline"]

logger = logging.getLogger(__name__)

SourceMode = Literal["webpage", "text"]


class TransformationPipeline:
    """Orchestrate fetching, caching, generation and usage accounting.

    Content is cleaned and checked by :class:`ContentParser` before any
    completion is requested; pasted text is run through the boilerplate
    cleaner first. Fetch failures raise :class:`ContentFetchError` to the
    caller. Every other failure comes back as an unsuccessful
    :class:`TransformationServiceResult`.
    """

    def __init__(
        self,
        fetcher: ContentFetcher,
        generator: Generator,
        cache: CacheService | None = None,
        personas: PersonaRegistry | None = None,
        usage_tracker: UsageTracker | None = None,
        config: PipelineConfig | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.generator = generator
        self.cache = cache or CacheService()
        self.personas = personas or default_registry
        self.usage_tracker = usage_tracker
        self.config = config or PipelineConfig()
        self.parser = ContentParser(self.config.parser)

    def transform_webpage(
        self, url: str, persona_id: str, user_id: str | None = None
    ) -> TransformationServiceResult:
        """Transform the page at ``url`` into the voice of ``persona_id``."""

        logger.info("Transforming webpage %s as %s", url, persona_id)

        try:
            url = normalize_target_url(url)
        except ContentFetchError as exc:
            logger.warning("Rejected URL %s: %s", url, exc)
            raise

        cached = self.cache.get_cached_transformation(url, persona_id)
        if cached is not None:
            logger.info("Serving cached transformation for %s (%s)", url, persona_id)
            self._record_usage(user_id, success=True)
            return TransformationServiceResult(success=True, data=cached, cached=True)

        try:
            scraped = self._get_content(url)
        except ContentFetchError as exc:
            logger.warning("Could not fetch %s: %s", url, exc)
            raise

        return self._transform(
            raw=OriginalContent.from_scraped(scraped),
            prepare=lambda: self._prepare_webpage(scraped),
            persona_id=persona_id,
            cache_source=url,
            user_id=user_id,
        )

    def transform_text(
        self, text: str, persona_id: str, user_id: str | None = None
    ) -> TransformationServiceResult:
        """Transform pasted ``text`` into the voice of ``persona_id``."""

        try:
            text = self._validate_text(text)
        except InvalidTextError as exc:
            logger.info("Rejected text input: %s", exc)
            return TransformationServiceResult(success=False, error=exc.user_message, error_code=exc.error_code)

        logger.info("Transforming %d characters of text as %s", len(text), persona_id)

        return self._transform(
            raw=OriginalContent.from_text(text),
            prepare=lambda: self._prepare_text(text),
            persona_id=persona_id,
            cache_source=self.cache.text_cache_source(text),
            user_id=user_id,
        )

    def get_cached_result(self, source: str, persona_id: str, mode: SourceMode) -> TransformationResult | None:
        """Look up a finished transformation without doing any work.

        ``source`` is the URL for ``webpage`` mode and the raw text for
        ``text`` mode.
        """

        if mode == "text":
            source = self.cache.text_cache_source(source.strip())
        else:
            try:
                source = normalize_target_url(source)
            except ContentFetchError:
                return None
        return self.cache.get_cached_transformation(source, persona_id)

    def _get_content(self, url: str) -> ScrapedContent:
        scraped = self.cache.get_cached_content(url)
        if scraped is not None:
            return scraped

        scraped = self.fetcher.fetch(url)
        self.cache.set_cached_content(url, scraped)
        return scraped

    def _validate_text(self, text: str | None) -> str:
        stripped = (text or "").strip()
        if not stripped:
            raise InvalidTextError()
        if len(stripped) < self.config.min_text_length:
            raise InvalidTextError(
                f"Text too short. Please enter at least {self.config.min_text_length} characters."
            )
        if len(stripped) > self.config.max_text_length:
            raise InvalidTextError(
                f"Text too long. Please keep it under {self.config.max_text_length} characters."
            )
        return stripped

    def _prepare_webpage(self, scraped: ScrapedContent) -> tuple[OriginalContent, str]:
        parsed = self.parser.parse_web_content(scraped.title, scraped.content)
        self.parser.validate_content(parsed)

        page = scraped.model_copy(
            update={
                "title": parsed.title,
                "content": parsed.cleaned_text,
                "metadata": scraped.metadata.model_copy(update={"word_count": parsed.word_count}),
            }
        )
        return OriginalContent.from_scraped(page), build_webpage_prompt(page)

    def _prepare_text(self, text: str) -> tuple[OriginalContent, str]:
        cleaned = clean_text_for_llm(text, self.config.cleaner)
        parsed = self.parser.parse_direct_text(cleaned.text)
        self.parser.validate_content(parsed)

        original = OriginalContent(
            title=DIRECT_TEXT_MARKER,
            content=parsed.cleaned_text,
            url=DIRECT_TEXT_MARKER,
            word_count=parsed.word_count,
        )
        return original, build_text_prompt(parsed.cleaned_text)

    def _transform(
        self,
        *,
        raw: OriginalContent,
        prepare: Callable[[], tuple[OriginalContent, str]],
        persona_id: str,
        cache_source: str,
        user_id: str | None,
    ) -> TransformationServiceResult:
        try:
            persona = self.personas.get_persona(persona_id)
            if persona is None:
                return self._failure(
                    raw,
                    PersonaSummary(id=persona_id, name=persona_id, description=""),
                    f"Unknown persona: {persona_id}",
                    user_id,
                )

            try:
                original, user_prompt = prepare()
            except (ContentValidationError, InvalidTextError) as exc:
                return self._failure(raw, persona.summary(), str(exc), user_id, exc.error_code)

            try:
                response = self.generator.generate(
                    GenerationRequest(system_prompt=persona.system_prompt, user_prompt=user_prompt)
                )
            except GenerationError as exc:
                return self._failure(original, persona.summary(), str(exc), user_id)

            result = TransformationResult(
                success=True,
                original_content=original,
                transformed_content=response.content,
                persona=persona.summary(),
                usage=response.usage,
            )
            self.cache.set_cached_transformation(cache_source, persona_id, result)
            self._record_usage(user_id, success=True)
            logger.info("Transformation as %s finished (%d chars)", persona_id, len(response.content))
            return TransformationServiceResult(success=True, data=result)
        except Exception as exc:
            logger.exception("Unexpected error while transforming content as %s", persona_id)
            self._record_usage(user_id, success=False)
            code = classify_error(exc)
            return TransformationServiceResult(
                success=False,
                error=format_error(exc) if code is not ErrorCode.UNKNOWN_ERROR else ERROR_MESSAGES[code],
                error_code=code,
                details=str(exc) if code is ErrorCode.UNKNOWN_ERROR else None,
            )

    def _failure(
        self,
        original: OriginalContent,
        persona: PersonaSummary,
        message: str,
        user_id: str | None,
        error_code: ErrorCode = ErrorCode.TRANSFORMATION_FAILED,
    ) -> TransformationServiceResult:
        logger.warning("Transformation as %s failed: %s", persona.id, message)
        self._record_usage(user_id, success=False)
        result = TransformationResult(
            success=False,
            original_content=original,
            persona=persona,
            error=message,
        )
        return TransformationServiceResult(
            success=False,
            data=result,
            error=message,
            error_code=error_code,
        )

    def _record_usage(self, user_id: str | None, *, success: bool) -> None:
        if not user_id or self.usage_tracker is None:
            return

        try:
            if success:
                self.usage_tracker.increment_user_usage(user_id, log_success=False)
            else:
                self.usage_tracker.increment_user_failed_attempt(user_id, log_success=False)
        except Exception as exc:
            logger.warning("Failed to record usage for %s: %s", user_id, exc)


def create_transformation_pipeline(
    config: PipelineConfig | None = None,
    api_key: str | None = None,
    usage_tracker: UsageTracker | None = None,
) -> TransformationPipeline:
    """Build a pipeline with shared caches and a lazily connected generator."""

    config = config or PipelineConfig.from_env()
    api_key = api_key or load_openai_api_key()
    if not api_key:
        raise RuntimeError(
            "OPENAI_API_KEY is not configured. Set it in the environment or in a .env file."
        )

    return TransformationPipeline(
        fetcher=ContentFetcher(config.scraper),
        generator=Generator(api_key=api_key, config=config.generator),
        cache=CacheService(config.content_cache, config.transform_cache),
        usage_tracker=usage_tracker,
        config=config,
    )
