"""
mulmo_movie/nlp/speaker_identifier.py
======================================
Speaker Identifier: mulmo-movie

Responsibility:
    - Split one beat's transcript into speaker turns using OpenAI
    - Return the turns together with whether they were identified by the
      model or defaulted after a failure

Only the first turn's speaker is used downstream: multi-speaker beats are
collapsed to a single dominant label.

Degradation:
    Any API failure, unparseable JSON, schema mismatch or empty speaker list
    yields ``SpeakerIdentification(defaulted=True)`` carrying a single turn
    under the default label for the language. Nothing is raised.

This module does NOT:
    - Perform acoustic diarization
    - Translate text
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from mulmo_movie.config import SUPPORTED_LANGUAGES
from mulmo_movie.openai_retry import chat_completions_with_retry
from mulmo_movie.response_validator import (
    InferenceError,
    parse_json_content,
    validate_speaker_response,
)

logger = logging.getLogger("mulmo_movie.nlp.speaker_identifier")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_SPEAKER_LABELS: dict[str, str] = {
    "ja": "話者A",
    "en": "Speaker A",
}


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SpeakerTurn:
    """One utterance attributed to a speaker."""

    speaker: str
    text: str


@dataclass(frozen=True)
class SpeakerIdentification:
    """Speaker turns for one beat, and how they were obtained."""

    turns: tuple[SpeakerTurn, ...]
    defaulted: bool = False
    reason: str | None = field(default=None, compare=False)

    @property
    def main_speaker(self) -> str:
        return self.turns[0].speaker


def default_identification(
    text: str,
    language: str,
    reason: str | None = None,
) -> SpeakerIdentification:
    """Single-speaker fallback used when identification is unavailable."""
    label = DEFAULT_SPEAKER_LABELS.get(language, DEFAULT_SPEAKER_LABELS["en"])
    return SpeakerIdentification(
        turns=(SpeakerTurn(speaker=label, text=text),),
        defaulted=True,
        reason=reason,
    )


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------


def _system_prompt(language: str) -> str:
    language_name = SUPPORTED_LANGUAGES.get(language, language)
    example_a = "話者A" if language == "ja" else "Speaker A"
    example_b = "話者B" if language == "ja" else "Speaker B"
    return (
        "You are an expert at analyzing conversation transcripts and identifying "
        "different speakers.\n"
        f"Parse the given {language_name} conversation and separate it into "
        "individual utterances with speaker labels.\n"
        'Return ONLY a valid JSON object with a "speakers" array containing '
        'objects with "speaker" and "text" fields.\n'
        f'Use speaker names like "{example_a}", "{example_b}", etc.\n'
        "If you cannot identify multiple speakers, return all text under one speaker.\n\n"
        "Example format:\n"
        "{\n"
        '  "speakers": [\n'
        f'    {{"speaker": "{example_a}", "text": "..."}},\n'
        f'    {{"speaker": "{example_b}", "text": "..."}}\n'
        "  ]\n"
        "}"
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def identify_speakers(
    client: Any,
    text: str,
    language: str,
    model: str = "gpt-4o",
) -> SpeakerIdentification:
    """
    Identify speakers in a transcript.

    Args:
        client:   An ``openai.AsyncOpenAI`` instance.
        text:     Source-language transcript of one beat.
        language: Source language code.
        model:    Chat model name.

    Returns:
        SpeakerIdentification; ``defaulted`` is True when the model result
        could not be used.
    """
    if not text.strip():
        return default_identification(text, language, reason="empty transcript")

    try:
        response = await chat_completions_with_retry(
            client,
            model=model,
            messages=[
                {"role": "system", "content": _system_prompt(language)},
                {
                    "role": "user",
                    "content": (
                        "Please analyze this conversation transcript and identify "
                        f"the different speakers:\n\n{text}"
                    ),
                },
            ],
            response_format={"type": "json_object"},
        )
        content = response.choices[0].message.content if response.choices else None
        turns = validate_speaker_response(
            parse_json_content(content, "speaker identification")
        )
    except InferenceError as exc:
        logger.warning("Failed to identify speakers: %s", exc)
        return default_identification(text, language, reason=exc.message)
    except Exception as exc:
        logger.warning("Failed to identify speakers: %s", exc)
        return default_identification(text, language, reason=str(exc))

    if not turns:
        return default_identification(text, language, reason="no speakers returned")

    return SpeakerIdentification(
        turns=tuple(SpeakerTurn(speaker=t["speaker"], text=t["text"]) for t in turns),
    )
