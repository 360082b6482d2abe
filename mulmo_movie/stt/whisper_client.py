"""
mulmo_movie/stt/whisper_client.py
==================================
OpenAI Whisper STT Client: mulmo-movie

Responsibility:
    - Transcribe one segment's audio file using the OpenAI Whisper API
    - Pin the transcription language to the recording's source language
    - Return plain text for the segment

This module does NOT:
    - Translate text (see nlp/translator.py)
    - Identify speakers (see nlp/speaker_identifier.py)
    - Cut or encode audio
"""

import asyncio
import logging
from pathlib import Path
from typing import Any

from mulmo_movie.openai_retry import call_with_retry
from mulmo_movie.response_validator import InferenceError

logger = logging.getLogger("mulmo_movie.stt.whisper_client")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def transcribe(
    client: Any,
    audio_path: str | Path,
    language: str,
    model: str = "whisper-1",
) -> str:
    """
    Transcribe an audio file with Whisper.

    Args:
        client:     An ``openai.AsyncOpenAI`` instance.
        audio_path: Path to the segment's mp3.
        language:   ISO 639-1 code of the spoken language.
        model:      Whisper model name.

    Returns:
        Transcribed text, stripped. May be empty for silent audio.

    Raises:
        InferenceError: If the file cannot be read or the API call fails.
    """
    path = Path(audio_path)

    try:
        audio_bytes = await asyncio.to_thread(path.read_bytes)
    except OSError as exc:
        raise InferenceError("transcription", f"{path.name}: {exc}") from exc

    try:
        response = await call_with_retry(
            client.audio.transcriptions.create,
            model=model,
            file=(path.name, audio_bytes),
            language=language,
        )
    except Exception as exc:
        raise InferenceError("transcription", f"{path.name}: {exc}") from exc

    text = getattr(response, "text", None)
    if text is None and isinstance(response, str):
        text = response
    if not isinstance(text, str):
        raise InferenceError(
            "transcription", f"{path.name}: response carried no text field"
        )

    text = text.strip()
    if not text:
        logger.warning("Whisper returned empty text for %s.", path.name)
    return text
