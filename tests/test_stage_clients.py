"""
tests/test_stage_clients.py
============================
Stage Client Tests: Whisper, translator, speaker identifier, speech
synthesis and batch evaluator against a mocked AsyncOpenAI client

Test categories:
    1. Request shape (model, language, response format)
    2. Response handling (empty, malformed, schema mismatch)
    3. Degradation policy (speaker ID never raises; others raise
       InferenceError)
"""

import json
import os
import sys
import tempfile
import unittest
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from mulmo_movie import openai_retry
from mulmo_movie.config import Settings
from mulmo_movie.inference import InferenceService
from mulmo_movie.models import Beat
from mulmo_movie.nlp.evaluator import (
    EVALUATION_SCHEMA,
    build_evaluation_prompt,
    evaluate_segments,
    format_time,
)
from mulmo_movie.nlp.speaker_identifier import identify_speakers
from mulmo_movie.nlp.translator import translate
from mulmo_movie.response_validator import InferenceError
from mulmo_movie.stt.whisper_client import transcribe
from mulmo_movie.tts.speech_client import synthesize_speech, write_audio


# ===================================================================
# Helpers
# ===================================================================


def _chat_response(content):
    message = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _chat_client(content=None, side_effect=None):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        return_value=_chat_response(content), side_effect=side_effect,
    )
    return client


def _beat(number: int, ja: str, en: str, speaker: str = "話者A") -> Beat:
    return Beat(
        text=en,
        multi_linguals={"ja": ja, "en": en},
        audio_sources={"ja": f"{number}.mp3", "en": f"{number}_en.mp3"},
        video_source=f"{number}.mp4",
        speaker=speaker,
        start_time=(number - 1) * 60.0,
        end_time=number * 60.0,
        duration=60.0,
    )


class _NoSleepMixin:
    def setUp(self):
        patcher = patch.object(openai_retry, "_sleep", AsyncMock())
        patcher.start()
        self.addCleanup(patcher.stop)


# ===================================================================
# Whisper
# ===================================================================


class TestTranscribe(_NoSleepMixin, unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        super().setUp()
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.audio = Path(self.tmp.name) / "3.mp3"
        self.audio.write_bytes(b"ID3fake")

    async def test_language_pinned(self):
        client = MagicMock()
        client.audio.transcriptions.create = AsyncMock(
            return_value=SimpleNamespace(text="  こんにちは。  "),
        )

        text = await transcribe(client, self.audio, "ja")

        self.assertEqual(text, "こんにちは。")
        kwargs = client.audio.transcriptions.create.await_args.kwargs
        self.assertEqual(kwargs["language"], "ja")
        self.assertEqual(kwargs["model"], "whisper-1")
        self.assertEqual(kwargs["file"], ("3.mp3", b"ID3fake"))

    async def test_empty_text_returned(self):
        client = MagicMock()
        client.audio.transcriptions.create = AsyncMock(return_value=SimpleNamespace(text=""))
        self.assertEqual(await transcribe(client, self.audio, "en"), "")

    async def test_api_failure_raises(self):
        client = MagicMock()
        client.audio.transcriptions.create = AsyncMock(side_effect=ValueError("400"))
        with self.assertRaises(InferenceError) as ctx:
            await transcribe(client, self.audio, "en")
        self.assertEqual(ctx.exception.stage, "transcription")

    async def test_unreadable_file_raises(self):
        client = MagicMock()
        client.audio.transcriptions.create = AsyncMock()
        missing = Path(self.tmp.name) / "7.mp3"

        with self.assertRaises(InferenceError) as ctx:
            await transcribe(client, missing, "en")

        self.assertEqual(ctx.exception.stage, "transcription")
        self.assertIn("7.mp3", str(ctx.exception))
        client.audio.transcriptions.create.assert_not_awaited()


# ===================================================================
# Translator
# ===================================================================


class TestTranslate(_NoSleepMixin, unittest.IsolatedAsyncioTestCase):

    async def test_translates(self):
        client = _chat_client("Hello there.")
        result = await translate(client, "こんにちは。", "ja", "en")

        self.assertEqual(result, "Hello there.")
        kwargs = client.chat.completions.create.await_args.kwargs
        self.assertEqual(kwargs["model"], "gpt-4o-mini")
        self.assertEqual(kwargs["temperature"], 0.0)
        self.assertIn("Japanese", kwargs["messages"][0]["content"])
        self.assertIn("English", kwargs["messages"][0]["content"])
        self.assertEqual(kwargs["messages"][1]["content"], "こんにちは。")

    async def test_same_language_is_identity(self):
        client = _chat_client("unused")
        self.assertEqual(await translate(client, "Hi", "en", "en"), "Hi")
        client.chat.completions.create.assert_not_awaited()

    async def test_empty_translation_raises(self):
        with self.assertRaises(InferenceError):
            await translate(_chat_client("   "), "Hello", "en", "ja")

    async def test_api_failure_raises(self):
        with self.assertRaises(InferenceError):
            await translate(_chat_client(side_effect=ValueError("400")), "Hello", "en", "ja")


# ===================================================================
# Speaker identifier
# ===================================================================


class TestIdentifySpeakers(_NoSleepMixin, unittest.IsolatedAsyncioTestCase):

    async def test_first_turn_is_main_speaker(self):
        payload = {"speakers": [
            {"speaker": "Speaker B", "text": "So what's next?"},
            {"speaker": "Speaker A", "text": "Agents."},
        ]}
        client = _chat_client(json.dumps(payload))

        result = await identify_speakers(client, "So what's next? Agents.", "en")

        self.assertFalse(result.defaulted)
        self.assertEqual(result.main_speaker, "Speaker B")
        self.assertEqual(len(result.turns), 2)
        kwargs = client.chat.completions.create.await_args.kwargs
        self.assertEqual(kwargs["response_format"], {"type": "json_object"})
        self.assertEqual(kwargs["model"], "gpt-4o")

    async def test_api_failure_defaults(self):
        client = _chat_client(side_effect=ValueError("boom"))
        result = await identify_speakers(client, "今日は。", "ja")
        self.assertTrue(result.defaulted)
        self.assertEqual(result.main_speaker, "話者A")

    async def test_malformed_json_defaults(self):
        result = await identify_speakers(_chat_client("not json"), "Hello.", "en")
        self.assertTrue(result.defaulted)
        self.assertEqual(result.main_speaker, "Speaker A")

    async def test_empty_speaker_list_defaults(self):
        result = await identify_speakers(_chat_client('{"speakers": []}'), "Hello.", "en")
        self.assertTrue(result.defaulted)
        self.assertEqual(result.turns[0].text, "Hello.")

    async def test_empty_text_skips_call(self):
        client = _chat_client("{}")
        result = await identify_speakers(client, "  ", "en")
        self.assertTrue(result.defaulted)
        client.chat.completions.create.assert_not_awaited()


# ===================================================================
# Speech synthesis
# ===================================================================


class TestSpeech(_NoSleepMixin, unittest.IsolatedAsyncioTestCase):

    async def test_returns_audio_bytes(self):
        client = MagicMock()
        client.audio.speech.create = AsyncMock(return_value=SimpleNamespace(content=b"mp3data"))

        audio = await synthesize_speech(client, "こんにちは", "ja", voice="nova")

        self.assertEqual(audio, b"mp3data")
        kwargs = client.audio.speech.create.await_args.kwargs
        self.assertEqual(kwargs["input"], "こんにちは")
        self.assertEqual(kwargs["voice"], "nova")
        self.assertEqual(kwargs["model"], "tts-1")

    async def test_empty_audio_raises(self):
        client = MagicMock()
        client.audio.speech.create = AsyncMock(return_value=SimpleNamespace(content=b""))
        with self.assertRaises(InferenceError):
            await synthesize_speech(client, "Hi", "en")

    def test_write_audio_is_atomic(self):
        with tempfile.TemporaryDirectory() as tmp:
            target = Path(tmp) / "1_ja.mp3"
            write_audio(target, b"abc")
            self.assertEqual(target.read_bytes(), b"abc")
            self.assertEqual(sorted(p.name for p in Path(tmp).iterdir()), ["1_ja.mp3"])


# ===================================================================
# Evaluator
# ===================================================================


class TestEvaluationPrompt(unittest.TestCase):

    def test_format_time(self):
        self.assertEqual(format_time(0), "0:00")
        self.assertEqual(format_time(65.9), "1:05")
        self.assertEqual(format_time(3600), "60:00")

    def test_prompt_lists_every_segment(self):
        beats = [_beat(1, "未来の話", "About the future"), _beat(2, "雑談", "Small talk")]
        prompt = build_evaluation_prompt(beats, "ja")

        self.assertIn("Segment 1:", prompt)
        self.assertIn("Segment 2:", prompt)
        self.assertIn("Time: 1:00 (60.0s)", prompt)
        self.assertIn("Content: 未来の話", prompt)
        self.assertNotIn("About the future", prompt)
        self.assertIn("in Japanese", prompt)
        self.assertIn("8-10: about 5-10%", prompt)

    def test_schema_is_strict(self):
        items = EVALUATION_SCHEMA["properties"]["evaluations"]["items"]
        self.assertFalse(items["additionalProperties"])
        self.assertEqual(len(items["properties"]["category"]["enum"]), 8)


class TestEvaluateSegments(_NoSleepMixin, unittest.IsolatedAsyncioTestCase):

    async def test_returns_evaluations_by_number(self):
        payload = {"evaluations": [
            {"segmentNumber": 1, "importance": 9, "category": "key_point", "summary": "Prediction."},
            {"segmentNumber": 2, "importance": 1, "category": "tangent", "summary": "Chat."},
        ]}
        client = _chat_client(json.dumps(payload))
        beats = [_beat(1, "a", "a"), _beat(2, "b", "b")]

        result = await evaluate_segments(client, beats, "en")

        self.assertEqual(sorted(result), [1, 2])
        self.assertEqual(result[1].importance, 9)
        self.assertEqual(result[2].category, "tangent")
        kwargs = client.chat.completions.create.await_args.kwargs
        self.assertEqual(kwargs["temperature"], 0.5)
        self.assertEqual(kwargs["response_format"]["type"], "json_schema")
        self.assertTrue(kwargs["response_format"]["json_schema"]["strict"])

    async def test_schema_mismatch_raises(self):
        payload = {"evaluations": [
            {"segmentNumber": 1, "importance": 15, "category": "key_point", "summary": "x"},
        ]}
        with self.assertRaises(InferenceError):
            await evaluate_segments(_chat_client(json.dumps(payload)), [_beat(1, "a", "a")], "en")

    async def test_api_failure_raises(self):
        client = _chat_client(side_effect=ValueError("400"))
        with self.assertRaises(InferenceError):
            await evaluate_segments(client, [_beat(1, "a", "a")], "en")

    async def test_no_beats_no_call(self):
        client = _chat_client("{}")
        self.assertEqual(await evaluate_segments(client, [], "en"), {})
        client.chat.completions.create.assert_not_awaited()


# ===================================================================
# Inference facade
# ===================================================================


class TestInferenceService(_NoSleepMixin, unittest.IsolatedAsyncioTestCase):

    async def test_uses_configured_models(self):
        settings = Settings(
            openai_api_key="sk-test",
            translation_model="gpt-test-mini",
            tts_model="tts-test",
            tts_voice="shimmer",
        )
        client = _chat_client("Bonjour")
        client.audio.speech.create = AsyncMock(return_value=SimpleNamespace(content=b"x"))
        service = InferenceService(settings, client=client)

        await service.translate("Hello", "en", "ja")
        await service.synthesize_speech("こんにちは", "ja")

        self.assertEqual(
            client.chat.completions.create.await_args.kwargs["model"], "gpt-test-mini",
        )
        speech_kwargs = client.audio.speech.create.await_args.kwargs
        self.assertEqual(speech_kwargs["model"], "tts-test")
        self.assertEqual(speech_kwargs["voice"], "shimmer")


if __name__ == "__main__":
    unittest.main()
