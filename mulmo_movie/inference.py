"""
mulmo_movie/inference.py
=========================
Inference Service: mulmo-movie

Responsibility:
    - Own the single ``AsyncOpenAI`` client for a run
    - Bind each stage client (Whisper, translator, speaker identifier,
      speech synthesis, evaluator) to the model names in Settings

The orchestrator only talks to this facade, so tests can replace the whole
remote side with one fake object.

This module does NOT:
    - Apply concurrency limits (the orchestrator holds limiter slots)
    - Read or write any cache
"""

import logging
from pathlib import Path
from typing import Any

from openai import AsyncOpenAI

from mulmo_movie.config import Settings
from mulmo_movie.models import Beat
from mulmo_movie.nlp.evaluator import SegmentEvaluation, evaluate_segments
from mulmo_movie.nlp.speaker_identifier import SpeakerIdentification, identify_speakers
from mulmo_movie.nlp.translator import translate
from mulmo_movie.stt.whisper_client import transcribe
from mulmo_movie.tts.speech_client import synthesize_speech

logger = logging.getLogger("mulmo_movie.inference")


class InferenceService:
    """OpenAI-backed implementation of every model stage."""

    def __init__(self, settings: Settings, client: Any | None = None):
        self._settings = settings
        self._client = client or AsyncOpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
        )

    async def transcribe(self, audio_path: str | Path, language: str) -> str:
        return await transcribe(
            self._client, audio_path, language, model=self._settings.whisper_model,
        )

    async def translate(self, text: str, from_lang: str, to_lang: str) -> str:
        return await translate(
            self._client, text, from_lang, to_lang,
            model=self._settings.translation_model,
        )

    async def identify_speakers(self, text: str, language: str) -> SpeakerIdentification:
        return await identify_speakers(
            self._client, text, language, model=self._settings.speaker_model,
        )

    async def synthesize_speech(self, text: str, language: str) -> bytes:
        return await synthesize_speech(
            self._client, text, language,
            model=self._settings.tts_model,
            voice=self._settings.tts_voice,
        )

    async def evaluate_batch(
        self,
        beats: list[Beat],
        source_lang: str,
    ) -> dict[int, SegmentEvaluation]:
        return await evaluate_segments(
            self._client, beats, source_lang, model=self._settings.evaluation_model,
        )
