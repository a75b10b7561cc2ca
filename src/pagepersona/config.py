"""Configuration models and helpers for the PagePersona pipeline."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Mapping

from pydantic import BaseModel, Field, ValidationError

__all__ = [
    "CachePolicy",
    "CleanerConfig",
    "CONTENT_CACHE_POLICY",
    "DEFAULT_USER_AGENT",
    "GeneratorConfig",
    "JobConfig",
    "ParserConfig",
    "PipelineConfig",
    "ScraperConfig",
    "TRANSFORM_CACHE_POLICY",
    "find_env_file",
    "load_openai_api_key",
    "read_env_file",
]

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/129.0.0.0 Safari/537.36"
)

MAX_CONTENT_LENGTH_WARNING = 50_000
REQUEST_TIMEOUT_WARNING = 60.0


def _positive_int(env: Mapping[str, str], name: str, default: int) -> int:
    """Parse ``env[name]`` as a positive integer, falling back to ``default``."""

    raw = env.get(name)
    if not raw:
        return default

    try:
        parsed = int(raw.strip())
    except ValueError:
        logger.warning("Invalid %s environment variable: %r. Using default: %s", name, raw, default)
        return default

    if parsed <= 0:
        logger.warning("%s must be positive. Got: %s. Using default: %s", name, parsed, default)
        return default

    return parsed


class ScraperConfig(BaseModel):
    """Settings for fetching and normalising external pages."""

    max_content_length: int = Field(default=8000, gt=0, description="Characters kept before truncation")
    request_timeout: float = Field(default=10.0, gt=0, description="HTTP timeout in seconds")
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="Browser User-Agent header")

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "ScraperConfig":
        """Build the scraper configuration from ``WEB_SCRAPER_*`` variables."""

        env = _environment(env)
        config = cls(
            max_content_length=_positive_int(env, "WEB_SCRAPER_MAX_CONTENT_LENGTH", 8000),
            request_timeout=_positive_int(env, "WEB_SCRAPER_REQUEST_TIMEOUT_MS", 10_000) / 1000,
            user_agent=env.get("WEB_SCRAPER_USER_AGENT") or DEFAULT_USER_AGENT,
        )

        if config.max_content_length > MAX_CONTENT_LENGTH_WARNING:
            logger.warning(
                "max_content_length is very high (%s). This may impact performance.",
                config.max_content_length,
            )
        if config.request_timeout > REQUEST_TIMEOUT_WARNING:
            logger.warning(
                "request_timeout is very high (%ss). This may cause long delays.",
                config.request_timeout,
            )

        return config


class CachePolicy(BaseModel):
    """Expiry and capacity settings for one cache tier."""

    ttl_seconds: float = Field(..., gt=0)
    max_entries: int = Field(..., gt=0)
    sweep_interval_seconds: float = Field(..., gt=0)


CONTENT_CACHE_POLICY = CachePolicy(ttl_seconds=3600, max_entries=1000, sweep_interval_seconds=600)
TRANSFORM_CACHE_POLICY = CachePolicy(ttl_seconds=86400, max_entries=5000, sweep_interval_seconds=3600)


class GeneratorConfig(BaseModel):
    """Default parameters for chat completion requests."""

    model: str = Field(default="gpt-4o-mini")
    max_tokens: int = Field(default=2500, gt=0)
    temperature: float = Field(default=0.7, ge=0, le=2)
    presence_penalty: float = Field(default=0.1)
    frequency_penalty: float = Field(default=0.1)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "GeneratorConfig":
        env = _environment(env)
        model = (env.get("OPENAI_MODEL") or "").strip()
        return cls(model=model) if model else cls()


class JobConfig(BaseModel):
    """Settings for background transformation jobs."""

    job_ttl_seconds: float = Field(default=3600, gt=0)
    lock_ttl_seconds: float = Field(default=300, gt=0, description="Longest time a job lock is held")
    max_workers: int = Field(default=4, gt=0)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "JobConfig":
        env = _environment(env)
        return cls(
            job_ttl_seconds=_positive_int(env, "JOB_TTL_SECONDS", 3600),
            lock_ttl_seconds=_positive_int(env, "JOB_LOCK_TTL_SECONDS", 300),
        )


class ParserConfig(BaseModel):
    """Thresholds applied to content before it is sent for generation."""

    min_content_length: int = Field(default=50, ge=0, description="Shortest cleaned text in characters")
    min_word_count: int = Field(default=10, ge=0, description="Fewest words worth transforming")
    max_content_length: int = Field(default=8000, gt=0, description="Characters kept before truncation")
    long_content_words: int = Field(default=2000, gt=0, description="Word count that triggers a warning")


class CleanerConfig(BaseModel):
    """Limits for the boilerplate cleaner run over direct text input."""

    max_chars: int = Field(default=45_000, gt=0)
    preserve_start_ratio: float = Field(default=0.8, gt=0, le=1)


class PipelineConfig(BaseModel):
    """Top level configuration shared by every pipeline component."""

    scraper: ScraperConfig = Field(default_factory=ScraperConfig)
    generator: GeneratorConfig = Field(default_factory=GeneratorConfig)
    jobs: JobConfig = Field(default_factory=JobConfig)
    parser: ParserConfig = Field(default_factory=ParserConfig)
    cleaner: CleanerConfig = Field(default_factory=CleanerConfig)
    content_cache: CachePolicy = Field(default_factory=lambda: CONTENT_CACHE_POLICY.model_copy())
    transform_cache: CachePolicy = Field(default_factory=lambda: TRANSFORM_CACHE_POLICY.model_copy())
    min_text_length: int = Field(default=1, ge=1, description="Shortest accepted direct text input")
    max_text_length: int = Field(default=50_000, gt=0, description="Longest accepted direct text input")

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "PipelineConfig":
        """Load every section from environment variables."""

        env = _environment(env)
        return cls(
            scraper=ScraperConfig.from_env(env),
            generator=GeneratorConfig.from_env(env),
            jobs=JobConfig.from_env(env),
        )

    @classmethod
    def from_file(cls, path: Path | str) -> "PipelineConfig":
        """Load configuration data from a JSON file."""

        config_path = Path(path)
        try:
            data = json.loads(config_path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise FileNotFoundError(f"Configuration file not found: {config_path}") from exc
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON in configuration file: {config_path}") from exc

        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Configuration file is invalid: {config_path}\n{exc}") from exc

    def dump(self, path: Path | str) -> None:
        """Persist the configuration to disk as JSON."""

        config_path = Path(path)
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(self.model_dump_json(indent=2), encoding="utf-8")


def find_env_file(start: Path | None = None) -> Path | None:
    """Return the nearest ``.env`` file at or above ``start``."""

    current = start.resolve() if start is not None else Path(__file__).resolve().parent
    for candidate in (current, *current.parents):
        possible = candidate / ".env"
        if possible.is_file():
            return possible
    return None


def read_env_file(start: Path | None = None) -> dict[str, str]:
    """Parse ``KEY=value`` lines from the nearest ``.env`` file.

    Comments and malformed lines are skipped and surrounding quotes are
    removed. A missing or unreadable file yields an empty mapping.
    """

    env_path = find_env_file(start)
    if env_path is None:
        return {}

    values: dict[str, str] = {}
    try:
        with env_path.open("r", encoding="utf-8") as env_file:
            for raw_line in env_file:
                line = raw_line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                key, value = line.split("=", 1)
                key = key.strip()
                if key:
                    values[key] = value.strip().strip('"').strip("'")
    except OSError as exc:
        logger.warning("Could not read %s: %s", env_path, exc)
        return {}

    return values


def _environment(env: Mapping[str, str] | None) -> Mapping[str, str]:
    """Return ``env`` or the process environment layered over the ``.env`` file."""

    if env is not None:
        return env
    return {**read_env_file(), **os.environ}


def load_openai_api_key(start: Path | None = None) -> str | None:
    """Return ``OPENAI_API_KEY`` from the environment or the nearest ``.env`` file."""

    env_key = os.environ.get("OPENAI_API_KEY")
    if env_key:
        return env_key

    return read_env_file(start).get("OPENAI_API_KEY") or None
