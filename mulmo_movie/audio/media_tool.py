"""
mulmo_movie/audio/media_tool.py
================================
Media Tool Boundary: mulmo-movie

Responsibility:
    - Probe the total duration of the input recording
    - Run ffmpeg silence detection over its audio track
    - Cut a time-bounded video+audio sub-clip (stream copy, no re-encode)
    - Cut a time-bounded audio-only sub-clip encoded as mp3
    - Grab a single still frame as a fixed-width thumbnail

Every method is a coroutine: ffmpeg runs as an asyncio subprocess and
pydub work runs in a worker thread. Output files are written to a
temporary name and renamed into place, so a file that exists on disk is
always complete.

This module does NOT:
    - Decide where to cut (see segmenter.py)
    - Skip work whose output already exists (the orchestrator checks)
"""

import asyncio
import logging
import os
from pathlib import Path

from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError
from pydub.utils import mediainfo

from mulmo_movie.audio.silence import (
    DEFAULT_MIN_SILENCE_SECONDS,
    DEFAULT_NOISE_THRESHOLD_DB,
    parse_silence_output,
    silencedetect_filter,
)
from mulmo_movie.models import SilenceInterval

logger = logging.getLogger("mulmo_movie.audio.media_tool")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

THUMBNAIL_WIDTH = 640
AUDIO_CODEC = "libmp3lame"
AUDIO_FORMAT = "mp3"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class MediaToolError(Exception):
    """Raised when ffmpeg, ffprobe or pydub fails on a media operation."""
    pass


class DetectionError(MediaToolError):
    """Raised when silence detection fails; callers degrade to fixed segments."""
    pass


# ---------------------------------------------------------------------------
# Media tool
# ---------------------------------------------------------------------------


class MediaTool:
    """ffmpeg-backed implementation of the media capability."""

    def __init__(self, ffmpeg_binary: str = "ffmpeg"):
        self.ffmpeg_binary = ffmpeg_binary

    # ------------------------------------------------------------------
    # Probe
    # ------------------------------------------------------------------

    async def probe_duration(self, media_path: str | Path) -> float:
        """
        Return the container duration in seconds.

        Raises:
            MediaToolError: If the file is missing or ffprobe reports no duration.
        """
        path = str(media_path)
        if not os.path.exists(path):
            raise MediaToolError(f"Input media not found: {path}")

        try:
            info = await asyncio.to_thread(mediainfo, path)
        except Exception as exc:
            raise MediaToolError(f"ffprobe failed for {path}: {exc}") from exc

        raw = info.get("duration") if info else None
        try:
            duration = float(raw)
        except (TypeError, ValueError):
            raise MediaToolError(f"Could not read duration of {path} (got {raw!r}).")

        if duration <= 0:
            raise MediaToolError(f"Input media {path} has zero duration.")
        return duration

    # ------------------------------------------------------------------
    # Silence detection
    # ------------------------------------------------------------------

    async def detect_silence(
        self,
        media_path: str | Path,
        noise_threshold_db: float = DEFAULT_NOISE_THRESHOLD_DB,
        min_silence_duration: float = DEFAULT_MIN_SILENCE_SECONDS,
    ) -> list[SilenceInterval]:
        """
        Run ``silencedetect`` over the audio track.

        Raises:
            DetectionError: If ffmpeg cannot be started or exits with an error.
        """
        cmd = [
            self.ffmpeg_binary, "-hide_banner", "-nostats",
            "-i", str(media_path),
            "-vn",
            "-af", silencedetect_filter(noise_threshold_db, min_silence_duration),
            "-f", "null", "-",
        ]
        try:
            returncode, stderr = await self._run(cmd)
        except OSError as exc:
            raise DetectionError(f"Could not start ffmpeg: {exc}") from exc

        if returncode != 0:
            raise DetectionError(
                f"ffmpeg silencedetect exited with {returncode}: {_tail(stderr)}"
            )
        return parse_silence_output(stderr.splitlines())

    # ------------------------------------------------------------------
    # Cutting
    # ------------------------------------------------------------------

    async def cut_av(
        self,
        input_path: str | Path,
        output_path: str | Path,
        start: float,
        duration: float,
    ) -> None:
        """Copy [start, start + duration) of video and audio into *output_path*."""
        output = Path(output_path)
        partial = _partial_path(output)
        cmd = [
            self.ffmpeg_binary, "-y", "-hide_banner", "-loglevel", "error",
            "-ss", f"{start:.3f}",
            "-i", str(input_path),
            "-t", f"{duration:.3f}",
            "-c:v", "copy",
            "-c:a", "copy",
            str(partial),
        ]
        await self._run_checked(cmd, partial, output, "video cut")

    async def cut_audio(
        self,
        input_path: str | Path,
        output_path: str | Path,
        start: float,
        duration: float,
    ) -> None:
        """Encode [start, start + duration) of the audio track as mp3."""
        output = Path(output_path)
        partial = _partial_path(output)

        def _export() -> None:
            clip = AudioSegment.from_file(
                str(input_path), start_second=start, duration=duration,
            )
            clip.export(str(partial), format=AUDIO_FORMAT, codec=AUDIO_CODEC)

        try:
            await asyncio.to_thread(_export)
        except CouldntDecodeError as exc:
            _discard(partial)
            raise MediaToolError(f"Could not decode audio of {input_path}: {exc}") from exc
        except Exception as exc:
            _discard(partial)
            raise MediaToolError(f"Audio cut failed for {output}: {exc}") from exc

        os.replace(partial, output)

    async def grab_frame(
        self,
        video_path: str | Path,
        output_path: str | Path,
        timestamp: float = 0.0,
        width: int = THUMBNAIL_WIDTH,
    ) -> None:
        """Save one frame at *timestamp*, scaled to *width* (height keeps aspect)."""
        output = Path(output_path)
        partial = _partial_path(output)
        cmd = [
            self.ffmpeg_binary, "-y", "-hide_banner", "-loglevel", "error",
            "-ss", f"{timestamp:.3f}",
            "-i", str(video_path),
            "-frames:v", "1",
            "-vf", f"scale={width}:-2",
            str(partial),
        ]
        await self._run_checked(cmd, partial, output, "thumbnail")

    # ------------------------------------------------------------------
    # Subprocess helpers
    # ------------------------------------------------------------------

    async def _run(self, cmd: list[str]) -> tuple[int, str]:
        logger.debug("Running: %s", " ".join(cmd))
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await process.communicate()
        return process.returncode, stderr.decode("utf-8", errors="replace")

    async def _run_checked(
        self,
        cmd: list[str],
        partial: Path,
        output: Path,
        label: str,
    ) -> None:
        try:
            returncode, stderr = await self._run(cmd)
        except OSError as exc:
            raise MediaToolError(f"Could not start ffmpeg for {label}: {exc}") from exc

        if returncode != 0 or not partial.exists():
            _discard(partial)
            raise MediaToolError(
                f"ffmpeg {label} failed for {output.name} "
                f"(exit {returncode}): {_tail(stderr)}"
            )
        os.replace(partial, output)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _partial_path(output: Path) -> Path:
    """Temporary sibling keeping the extension so ffmpeg picks the muxer."""
    return output.with_name(f".{output.stem}.partial{output.suffix}")


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass


def _tail(stderr: str, lines: int = 5) -> str:
    return " | ".join(stderr.strip().splitlines()[-lines:])
