"""
mulmo_movie/limiters.py
========================
API Concurrency Limiters: mulmo-movie

Four independent named limiters bound the number of in-flight external
calls per stage class. Limits come from Settings (WHISPER_CONCURRENCY,
TRANSLATION_CONCURRENCY, TTS_CONCURRENCY, SPEAKER_ID_CONCURRENCY).

Usage::

    limiters = ApiLimiters.from_settings(settings)
    async with limiters.whisper:
        text = await inference.transcribe(path, "ja")
"""

import asyncio
from dataclasses import dataclass

from mulmo_movie.config import Settings


@dataclass
class ApiLimiters:
    """Named semaphores, one per external stage class."""

    whisper: asyncio.Semaphore
    translation: asyncio.Semaphore
    tts: asyncio.Semaphore
    speaker_id: asyncio.Semaphore

    @classmethod
    def from_settings(cls, settings: Settings) -> "ApiLimiters":
        return cls(
            whisper=asyncio.Semaphore(settings.whisper_concurrency),
            translation=asyncio.Semaphore(settings.translation_concurrency),
            tts=asyncio.Semaphore(settings.tts_concurrency),
            speaker_id=asyncio.Semaphore(settings.speaker_id_concurrency),
        )
