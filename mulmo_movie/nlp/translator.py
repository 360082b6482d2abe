"""
mulmo_movie/nlp/translator.py
==============================
Translator: mulmo-movie (Beat Translation)

Responsibility:
    - Translate one beat's source-language text into the target language
      using OpenAI
    - Preserve meaning exactly: no summarising, no commentary
    - Return the translated text only

Unlike speaker identification, translation has no safe default: a failed
or empty translation raises InferenceError and aborts the beat.

This module does NOT:
    - Consult or update the translation cache (the orchestrator does)
    - Perform STT or audio processing
"""

import logging
from typing import Any

from mulmo_movie.config import SUPPORTED_LANGUAGES
from mulmo_movie.openai_retry import chat_completions_with_retry
from mulmo_movie.response_validator import InferenceError

logger = logging.getLogger("mulmo_movie.nlp.translator")


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------


def _system_prompt(from_lang: str, to_lang: str) -> str:
    source = SUPPORTED_LANGUAGES.get(from_lang, from_lang)
    target = SUPPORTED_LANGUAGES.get(to_lang, to_lang)
    return (
        f"You are a professional translator. Translate the given {source} text "
        f"to natural {target}. Preserve the meaning exactly: do not add, remove, "
        "or interpret anything. Only return the translated text, nothing else."
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def translate(
    client: Any,
    text: str,
    from_lang: str,
    to_lang: str,
    model: str = "gpt-4o-mini",
) -> str:
    """
    Translate *text* from *from_lang* to *to_lang*.

    Args:
        client:    An ``openai.AsyncOpenAI`` instance.
        text:      Source-language text (non-empty).
        from_lang: Source language code.
        to_lang:   Target language code.
        model:     Chat model name.

    Returns:
        Translated text.

    Raises:
        InferenceError: If the call fails or returns no content.
    """
    if from_lang == to_lang:
        return text

    try:
        response = await chat_completions_with_retry(
            client,
            model=model,
            messages=[
                {"role": "system", "content": _system_prompt(from_lang, to_lang)},
                {"role": "user", "content": text},
            ],
            temperature=0.0,
        )
    except Exception as exc:
        raise InferenceError("translation", str(exc)) from exc

    content = response.choices[0].message.content if response.choices else None
    if not content or not content.strip():
        raise InferenceError("translation", "Empty translation returned")

    translated = content.strip()
    logger.debug(
        "Translated %d chars (%s) → %d chars (%s).",
        len(text), from_lang, len(translated), to_lang,
    )
    return translated
