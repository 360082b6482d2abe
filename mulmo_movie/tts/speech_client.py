"""
mulmo_movie/tts/speech_client.py
=================================
OpenAI Speech Synthesis Client: mulmo-movie

Responsibility:
    - Synthesize target-language speech for one beat via the OpenAI
      speech endpoint
    - Write the mp3 to disk atomically (temp file + rename), so an existing
      file is always a complete one

This module does NOT:
    - Decide whether synthesis is needed (the orchestrator checks the file)
    - Translate text
"""

import logging
import os
from pathlib import Path
from typing import Any

from mulmo_movie.openai_retry import call_with_retry
from mulmo_movie.response_validator import InferenceError

logger = logging.getLogger("mulmo_movie.tts.speech_client")


async def synthesize_speech(
    client: Any,
    text: str,
    language: str,
    model: str = "tts-1",
    voice: str = "alloy",
) -> bytes:
    """
    Return mp3 bytes of *text* spoken aloud.

    The speech endpoint infers pronunciation from the text itself;
    *language* is only used for logging and error context.

    Raises:
        InferenceError: If the call fails or returns no audio.
    """
    try:
        response = await call_with_retry(
            client.audio.speech.create,
            model=model,
            voice=voice,
            input=text,
            response_format="mp3",
        )
    except Exception as exc:
        raise InferenceError("speech synthesis", f"[{language}] {exc}") from exc

    audio = getattr(response, "content", None)
    if audio is None and hasattr(response, "read"):
        audio = response.read()
    if not audio:
        raise InferenceError("speech synthesis", f"[{language}] empty audio returned")
    return audio


def write_audio(path: str | Path, audio: bytes) -> None:
    """Write *audio* to *path* via a temporary sibling and rename."""
    target = Path(path)
    partial = target.with_name(f".{target.stem}.partial{target.suffix}")
    partial.write_bytes(audio)
    os.replace(partial, target)
    logger.debug("Wrote %d bytes to %s.", len(audio), target.name)
