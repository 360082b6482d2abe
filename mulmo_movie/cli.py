"""
mulmo_movie/cli.py
===================
Command-line interface for mulmo-movie.

Usage:
    mulmo-movie INPUT [--lang {ja,en}] [--test] [--output DIR]
                      [--evaluate-only] [--no-thumbnails] [--verbose]

Exit status is 0 on success and 1 on any fatal error.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from mulmo_movie.audio.media_tool import MediaTool, MediaToolError
from mulmo_movie.cache import CacheReadError
from mulmo_movie.config import (
    DEFAULT_OUTPUT_ROOT,
    OUTPUT_FILENAME,
    SUPPORTED_LANGUAGES,
    ConfigError,
    Settings,
)
from mulmo_movie.inference import InferenceService
from mulmo_movie.limiters import ApiLimiters
from mulmo_movie.pipeline import BeatPipeline, PipelineError

logger = logging.getLogger("mulmo_movie.cli")

# OpenAI SDK transport loggers are silenced so only pipeline logs are shown.
_NOISY_LOGGERS = (
    "openai",
    "openai._base_client",
    "httpx",
    "httpcore",
    "httpcore.http11",
    "httpcore.connection",
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mulmo-movie",
        description="Split a recorded conversation into bilingual, narrated beats",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Japanese recording, translated and dubbed into English
  mulmo-movie talk.mp4 --lang ja

  # Try the first five minutes only
  mulmo-movie talk.mp4 --test

  # Re-score an existing result
  mulmo-movie output/talk/mulmo_view.json --evaluate-only
        """,
    )

    parser.add_argument(
        "input",
        help="Input video file (or mulmo_view.json with --evaluate-only)",
    )
    parser.add_argument(
        "--lang", "-l",
        choices=sorted(SUPPORTED_LANGUAGES),
        default="en",
        help="Spoken language of the recording (default: en)",
    )
    parser.add_argument(
        "--test", "-t",
        action="store_true",
        help="Process only the first 5 minutes",
    )
    parser.add_argument(
        "--output", "-o",
        help=f"Output directory (default: {DEFAULT_OUTPUT_ROOT}/<input name>)",
    )
    parser.add_argument(
        "--evaluate-only",
        action="store_true",
        help="Only (re)run importance evaluation on an existing mulmo_view.json",
    )
    parser.add_argument(
        "--no-thumbnails",
        action="store_true",
        help="Do not generate segment thumbnails",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.CRITICAL)


def default_output_dir(input_path: Path) -> Path:
    return Path(DEFAULT_OUTPUT_ROOT) / input_path.stem


def resolve_document_path(input_path: Path) -> Path:
    """Accept either the document itself or the directory holding it."""
    if input_path.is_dir():
        return input_path / OUTPUT_FILENAME
    return input_path


def main(argv: list[str] | None = None) -> int:
    """
    Entry point for the ``mulmo-movie`` command.

    Args:
        argv: Command-line arguments (for testing)

    Returns:
        Process exit status.
    """
    args = build_parser().parse_args(argv)

    load_dotenv()
    configure_logging(args.verbose)

    try:
        settings = Settings.from_env().with_overrides(
            source_lang=args.lang,
            thumbnails=not args.no_thumbnails,
        )
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        return 1

    input_path = Path(args.input)
    pipeline = BeatPipeline(
        settings=settings,
        media=MediaTool(settings.ffmpeg_binary),
        inference=InferenceService(settings),
        limiters=ApiLimiters.from_settings(settings),
    )

    try:
        if args.evaluate_only:
            asyncio.run(pipeline.evaluate_only(resolve_document_path(input_path)))
        else:
            if not input_path.is_file():
                logger.error("Input video not found: %s", input_path)
                return 1
            output_dir = Path(args.output) if args.output else default_output_dir(input_path)
            asyncio.run(pipeline.run(input_path, output_dir, test_mode=args.test))
    except CacheReadError as exc:
        logger.error("Cannot evaluate: %s", exc)
        return 1
    except PipelineError as exc:
        logger.error("Pipeline failed: %s", exc)
        return 1
    except MediaToolError as exc:
        logger.error("Media processing failed: %s", exc)
        return 1
    except KeyboardInterrupt:
        logger.error("Interrupted; rerun the same command to resume.")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
