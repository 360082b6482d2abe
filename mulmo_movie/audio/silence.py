"""
mulmo_movie/audio/silence.py
=============================
Silence Detector: mulmo-movie

Responsibility:
    - Build the ffmpeg ``silencedetect`` audio filter expression
    - Parse the filter's diagnostic (stderr) stream into ordered
      SilenceInterval records

Parsing rules:
    - ``silence_start: <t>`` opens an interval, ``silence_end: <t>`` closes it
    - A start with no following end before end of stream is dropped
    - An end with no open start is ignored
    - A second start before an end replaces the first

This module does NOT:
    - Launch ffmpeg (see media_tool.py)
    - Decide segment boundaries (see segmenter.py)
"""

import logging
import re
from typing import Iterable

from mulmo_movie.models import SilenceInterval

logger = logging.getLogger("mulmo_movie.audio.silence")

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_NOISE_THRESHOLD_DB: float = -30.0
DEFAULT_MIN_SILENCE_SECONDS: float = 0.5

_START_RE = re.compile(r"silence_start:\s*(-?[\d.]+)")
_END_RE = re.compile(r"silence_end:\s*(-?[\d.]+)")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def silencedetect_filter(
    noise_threshold_db: float = DEFAULT_NOISE_THRESHOLD_DB,
    min_silence_duration: float = DEFAULT_MIN_SILENCE_SECONDS,
) -> str:
    """Return the ffmpeg ``-af`` expression, e.g. ``silencedetect=noise=-30dB:d=0.5``."""
    return f"silencedetect=noise={noise_threshold_db:g}dB:d={min_silence_duration:g}"


def parse_silence_output(lines: Iterable[str]) -> list[SilenceInterval]:
    """
    Pair ``silence_start`` / ``silence_end`` markers in emission order.

    Args:
        lines: ffmpeg stderr, one line per item.

    Returns:
        SilenceInterval list in stream order (may be empty).
    """
    silences: list[SilenceInterval] = []
    current_start: float | None = None

    for line in lines:
        start_match = _START_RE.search(line)
        if start_match:
            current_start = max(0.0, float(start_match.group(1)))

        end_match = _END_RE.search(line)
        if end_match and current_start is not None:
            end = float(end_match.group(1))
            if end > current_start:
                silences.append(SilenceInterval(start=current_start, end=end))
            current_start = None

    if current_start is not None:
        logger.debug(
            "Dropping incomplete silence starting at %.2fs (no silence_end).",
            current_start,
        )

    return silences
