"""
tests/test_config_cli.py
=========================
Configuration and CLI Tests

Test categories:
    1. Settings.from_env defaults, overrides and validation
    2. Argument parsing
    3. main(): exit codes and wiring (pipeline mocked)
"""

import os
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from mulmo_movie import cli
from mulmo_movie.cache import CacheReadError
from mulmo_movie.config import ConfigError, Settings, target_language_for
from mulmo_movie.limiters import ApiLimiters
from mulmo_movie.pipeline import PipelineError


# ===================================================================
# Settings
# ===================================================================


class TestSettingsFromEnv(unittest.TestCase):

    def test_defaults(self):
        settings = Settings.from_env({"OPENAI_API_KEY": "sk-test"})

        self.assertEqual(settings.whisper_model, "whisper-1")
        self.assertEqual(settings.translation_model, "gpt-4o-mini")
        self.assertEqual(settings.speaker_model, "gpt-4o")
        self.assertEqual(settings.evaluation_model, "gpt-4o")
        self.assertEqual(settings.tts_model, "tts-1")
        self.assertEqual(
            (settings.whisper_concurrency, settings.translation_concurrency,
             settings.tts_concurrency, settings.speaker_id_concurrency),
            (3, 10, 3, 10),
        )
        self.assertEqual(settings.min_segment_seconds, 20.0)
        self.assertEqual(settings.max_segment_seconds, 120.0)
        self.assertIsNone(settings.openai_base_url)
        self.assertEqual(settings.target_lang, "ja")

    def test_overrides_from_environment(self):
        settings = Settings.from_env({
            "OPENAI_API_KEY": "sk-test",
            "TTS_VOICE": "nova",
            "WHISPER_CONCURRENCY": "1",
            "MAX_SEGMENT_SECONDS": "90.5",
            "FFMPEG_BINARY": "/opt/ffmpeg/bin/ffmpeg",
        })
        self.assertEqual(settings.tts_voice, "nova")
        self.assertEqual(settings.whisper_concurrency, 1)
        self.assertEqual(settings.max_segment_seconds, 90.5)
        self.assertEqual(settings.ffmpeg_binary, "/opt/ffmpeg/bin/ffmpeg")

    def test_missing_key_rejected(self):
        with self.assertRaises(ConfigError):
            Settings.from_env({})

    def test_invalid_values_rejected(self):
        cases = [
            {"WHISPER_CONCURRENCY": "three"},
            {"TTS_CONCURRENCY": "0"},
            {"MIN_SEGMENT_SECONDS": "abc"},
            {"MIN_SEGMENT_SECONDS": "130"},
        ]
        for extra in cases:
            with self.subTest(extra=extra):
                with self.assertRaises(ConfigError):
                    Settings.from_env({"OPENAI_API_KEY": "sk-test", **extra})

    def test_with_overrides(self):
        settings = Settings(openai_api_key="sk-test").with_overrides(source_lang="ja")
        self.assertEqual(settings.target_lang, "en")
        with self.assertRaises(ConfigError):
            settings.with_overrides(source_lang="fr")

    def test_target_language_pairs(self):
        self.assertEqual(target_language_for("ja"), "en")
        self.assertEqual(target_language_for("en"), "ja")

    def test_limiters_follow_settings(self):
        limiters = ApiLimiters.from_settings(Settings(openai_api_key="k", tts_concurrency=2))
        self.assertEqual(limiters.tts._value, 2)
        self.assertEqual(limiters.translation._value, 10)


# ===================================================================
# Argument parsing
# ===================================================================


class TestArgumentParsing(unittest.TestCase):

    def test_defaults(self):
        args = cli.build_parser().parse_args(["talk.mp4"])
        self.assertEqual(args.lang, "en")
        self.assertFalse(args.test)
        self.assertIsNone(args.output)
        self.assertFalse(args.evaluate_only)
        self.assertFalse(args.no_thumbnails)

    def test_short_flags(self):
        args = cli.build_parser().parse_args(["talk.mp4", "-l", "ja", "-t", "-o", "out", "-v"])
        self.assertEqual((args.lang, args.test, args.output, args.verbose), ("ja", True, "out", True))

    def test_unknown_language_rejected(self):
        with patch("sys.stderr"):
            with self.assertRaises(SystemExit):
                cli.build_parser().parse_args(["talk.mp4", "--lang", "fr"])

    def test_default_output_dir(self):
        self.assertEqual(cli.default_output_dir(Path("videos/talk.mp4")), Path("output/talk"))


# ===================================================================
# main()
# ===================================================================


class TestMain(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.video = Path(self.tmp.name) / "talk.mp4"
        self.video.write_bytes(b"source")

        for target in ("mulmo_movie.cli.load_dotenv", "mulmo_movie.cli.configure_logging",
                       "mulmo_movie.cli.InferenceService"):
            patcher = patch(target)
            patcher.start()
            self.addCleanup(patcher.stop)

        env = patch.dict(os.environ, {"OPENAI_API_KEY": "sk-test"}, clear=True)
        env.start()
        self.addCleanup(env.stop)

        pipeline_patcher = patch("mulmo_movie.cli.BeatPipeline")
        self.pipeline_cls = pipeline_patcher.start()
        self.addCleanup(pipeline_patcher.stop)
        self.pipeline = MagicMock()
        self.pipeline.run = AsyncMock()
        self.pipeline.evaluate_only = AsyncMock()
        self.pipeline_cls.return_value = self.pipeline

    def test_success(self):
        status = cli.main([str(self.video), "--lang", "ja", "--test", "--no-thumbnails"])

        self.assertEqual(status, 0)
        self.pipeline.run.assert_awaited_once_with(
            self.video, Path("output") / "talk", test_mode=True,
        )
        settings = self.pipeline_cls.call_args.kwargs["settings"]
        self.assertEqual(settings.source_lang, "ja")
        self.assertFalse(settings.thumbnails)

    def test_explicit_output_dir(self):
        out = Path(self.tmp.name) / "out"
        self.assertEqual(cli.main([str(self.video), "-o", str(out)]), 0)
        self.assertEqual(self.pipeline.run.await_args.args[1], out)

    def test_missing_api_key(self):
        with patch.dict(os.environ, {}, clear=True):
            self.assertEqual(cli.main([str(self.video)]), 1)
        self.pipeline.run.assert_not_awaited()

    def test_missing_input(self):
        self.assertEqual(cli.main([str(Path(self.tmp.name) / "nope.mp4")]), 1)
        self.pipeline.run.assert_not_awaited()

    def test_pipeline_error_exit_code(self):
        self.pipeline.run.side_effect = PipelineError([(2, RuntimeError("boom"))])
        self.assertEqual(cli.main([str(self.video)]), 1)

    def test_evaluate_only_accepts_directory(self):
        status = cli.main([self.tmp.name, "--evaluate-only"])

        self.assertEqual(status, 0)
        self.pipeline.evaluate_only.assert_awaited_once_with(
            Path(self.tmp.name) / "mulmo_view.json",
        )
        self.pipeline.run.assert_not_awaited()

    def test_evaluate_only_unreadable_document(self):
        self.pipeline.evaluate_only.side_effect = CacheReadError("x.json", "missing")
        self.assertEqual(cli.main(["x.json", "--evaluate-only"]), 1)


if __name__ == "__main__":
    unittest.main()
