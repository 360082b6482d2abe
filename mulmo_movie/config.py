"""
mulmo_movie/config.py
======================
Run Configuration: mulmo-movie

Responsibility:
    - Read every tunable (API key, model names, concurrency limits,
      segment bounds, media binary) from the environment exactly once
    - Validate values and fail fast with ConfigError before any work starts
    - Hand a single immutable Settings object to every component

The CLI loads ``.env`` (python-dotenv) before calling ``Settings.from_env``.
No component reads ``os.environ`` on its own.

This module does NOT:
    - Parse command-line arguments (see cli.py)
    - Create API clients or limiters
"""

import logging
import os
from dataclasses import dataclass, replace
from typing import Mapping

logger = logging.getLogger("mulmo_movie.config")


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Source languages accepted on the command line, with their English names
# (used in prompts).
SUPPORTED_LANGUAGES: dict[str, str] = {
    "ja": "Japanese",
    "en": "English",
}

OUTPUT_FILENAME = "mulmo_view.json"
DEFAULT_OUTPUT_ROOT = "output"
TEST_MODE_DURATION_SECONDS = 300.0


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, constructed once at start-up."""

    openai_api_key: str
    openai_base_url: str | None = None

    whisper_model: str = "whisper-1"
    translation_model: str = "gpt-4o-mini"
    speaker_model: str = "gpt-4o"
    evaluation_model: str = "gpt-4o"
    tts_model: str = "tts-1"
    tts_voice: str = "alloy"

    whisper_concurrency: int = 3
    translation_concurrency: int = 10
    tts_concurrency: int = 3
    speaker_id_concurrency: int = 10

    min_segment_seconds: float = 20.0
    max_segment_seconds: float = 120.0

    ffmpeg_binary: str = "ffmpeg"

    source_lang: str = "en"
    thumbnails: bool = True

    @property
    def target_lang(self) -> str:
        """The translation counterpart of the source language."""
        return target_language_for(self.source_lang)

    def with_overrides(self, **changes) -> "Settings":
        """Return a copy with run-scoped values (e.g. language) replaced."""
        updated = replace(self, **changes)
        updated.validate()
        return updated

    def validate(self) -> None:
        """
        Check cross-field constraints.

        Raises:
            ConfigError: On the first invalid value.
        """
        if not self.openai_api_key:
            raise ConfigError(
                "Missing OPENAI_API_KEY environment variable. "
                "Create a .env file with your OpenAI API key."
            )
        for name in (
            "whisper_concurrency",
            "translation_concurrency",
            "tts_concurrency",
            "speaker_id_concurrency",
        ):
            if getattr(self, name) < 1:
                raise ConfigError(f"{name} must be >= 1, got {getattr(self, name)}")
        if self.min_segment_seconds <= 0:
            raise ConfigError("MIN_SEGMENT_SECONDS must be positive.")
        if self.max_segment_seconds < self.min_segment_seconds:
            raise ConfigError(
                f"MAX_SEGMENT_SECONDS ({self.max_segment_seconds}) is smaller than "
                f"MIN_SEGMENT_SECONDS ({self.min_segment_seconds})."
            )
        if self.source_lang not in SUPPORTED_LANGUAGES:
            raise ConfigError(
                f"Unsupported language '{self.source_lang}'. "
                f"Allowed: {', '.join(sorted(SUPPORTED_LANGUAGES))}"
            )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """
        Build Settings from environment variables.

        Args:
            environ: Mapping to read from (defaults to ``os.environ``).

        Returns:
            Validated Settings.

        Raises:
            ConfigError: If the API key is missing or a number is malformed.
        """
        env = os.environ if environ is None else environ

        settings = cls(
            openai_api_key=env.get("OPENAI_API_KEY", "").strip(),
            openai_base_url=env.get("OPENAI_BASE_URL") or None,
            whisper_model=env.get("WHISPER_MODEL", cls.whisper_model),
            translation_model=env.get("TRANSLATION_MODEL", cls.translation_model),
            speaker_model=env.get("SPEAKER_MODEL", cls.speaker_model),
            evaluation_model=env.get("EVALUATION_MODEL", cls.evaluation_model),
            tts_model=env.get("TTS_MODEL", cls.tts_model),
            tts_voice=env.get("TTS_VOICE", cls.tts_voice),
            whisper_concurrency=_env_int(env, "WHISPER_CONCURRENCY", 3),
            translation_concurrency=_env_int(env, "TRANSLATION_CONCURRENCY", 10),
            tts_concurrency=_env_int(env, "TTS_CONCURRENCY", 3),
            speaker_id_concurrency=_env_int(env, "SPEAKER_ID_CONCURRENCY", 10),
            min_segment_seconds=_env_float(env, "MIN_SEGMENT_SECONDS", 20.0),
            max_segment_seconds=_env_float(env, "MAX_SEGMENT_SECONDS", 120.0),
            ffmpeg_binary=env.get("FFMPEG_BINARY", cls.ffmpeg_binary),
        )
        settings.validate()

        logger.debug(
            "Settings loaded: whisper=%d translation=%d tts=%d speaker_id=%d",
            settings.whisper_concurrency,
            settings.translation_concurrency,
            settings.tts_concurrency,
            settings.speaker_id_concurrency,
        )
        return settings


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def target_language_for(source_lang: str) -> str:
    """Return the other language of the supported pair."""
    if source_lang not in SUPPORTED_LANGUAGES:
        raise ConfigError(f"Unsupported language '{source_lang}'.")
    return "en" if source_lang == "ja" else "ja"


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw, 10)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got '{raw}'.")


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got '{raw}'.")
