"""
mulmo_movie/audio/segmenter.py
===============================
Segmenter: mulmo-movie (Silence-Anchored)

Responsibility:
    - Partition a recording [0, total_duration] into contiguous segments
      whose lengths fall within [min_duration, max_duration]
    - Prefer cut points at the midpoints of detected silences so beats are
      split at natural pauses, not mid-sentence
    - Fall back to a fixed-stride partition when no silence is available
      (none detected, or detection failed)
    - Restrict a segment list to an initial time window (test mode)

Known limitation:
    When a long stretch contains no silence, the overflow branch cuts at the
    silence closest to ``segment_start + max_duration`` even if that yields
    a segment longer than ``max_duration``. Such segments are logged and
    kept as-is.

This module does NOT:
    - Run ffmpeg itself (see media_tool.py)
    - Cut or encode media files
"""

import logging
from pathlib import Path

from mulmo_movie.audio.media_tool import DetectionError, MediaTool
from mulmo_movie.models import Segment, SilenceInterval

logger = logging.getLogger("mulmo_movie.audio.segmenter")

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_MIN_DURATION_SEC: float = 20.0
DEFAULT_MAX_DURATION_SEC: float = 120.0

# Stride of the fallback partition when no silence is available.
DEFAULT_FIXED_STRIDE_SEC: float = 60.0

# How far past the ideal cut point the overflow branch may look for a silence.
OVERFLOW_SEARCH_WINDOW_SEC: float = 30.0


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def segment(
    total_duration: float,
    min_duration: float,
    max_duration: float,
    silences: list[SilenceInterval],
) -> list[Segment]:
    """
    Partition ``[0, total_duration]`` using silence midpoints as cut points.

    Args:
        total_duration: Length of the recording in seconds.
        min_duration:   Shortest acceptable segment.
        max_duration:   Longest acceptable segment.
        silences:       Detected silences in chronological order.

    Returns:
        Ordered, contiguous Segment list covering the whole recording.

    Raises:
        ValueError: If min_duration is greater than max_duration.
    """
    if min_duration > max_duration:
        raise ValueError(
            f"min_duration ({min_duration}) exceeds max_duration ({max_duration})"
        )
    if total_duration <= 0:
        return []

    if not silences:
        logger.warning("No silence detected: using fixed-duration segmentation.")
        return segment_fixed(total_duration, min_duration, max_duration)

    segments: list[Segment] = []
    segment_start = 0.0

    for i, silence in enumerate(silences):
        midpoint = silence.midpoint
        if midpoint >= total_duration:
            break

        candidate = midpoint - segment_start
        if candidate < min_duration:
            continue

        if candidate <= max_duration:
            segments.append(Segment(start=segment_start, end=midpoint))
            segment_start = midpoint
            continue

        # Too long: cut at the silence closest to the ideal end point.
        ideal_end = segment_start + max_duration
        split_point = _find_closest_midpoint(silences, i, ideal_end)
        if split_point >= total_duration:
            break

        if split_point - segment_start > max_duration:
            logger.warning(
                "No silence near %.1fs: segment %.1fs-%.1fs exceeds max (%.1fs).",
                ideal_end, segment_start, split_point, split_point - segment_start,
            )
        segments.append(Segment(start=segment_start, end=split_point))
        segment_start = split_point

    # ------------------------------------------------------------------
    # Tail: emit as its own segment, or merge into the previous one
    # ------------------------------------------------------------------
    if segment_start < total_duration:
        remaining = total_duration - segment_start
        if remaining >= min_duration or not segments:
            segments.append(Segment(start=segment_start, end=total_duration))
        else:
            last = segments[-1]
            segments[-1] = Segment(start=last.start, end=total_duration)

    return segments


def segment_fixed(
    total_duration: float,
    min_duration: float = DEFAULT_MIN_DURATION_SEC,
    max_duration: float = DEFAULT_MAX_DURATION_SEC,
) -> list[Segment]:
    """
    Fixed-stride fallback partition.

    Walks from 0 in strides of ``min(60s, max_duration / 2)``; the remainder
    becomes the final segment. A remainder shorter than ``min_duration`` is
    merged into the previous segment when the result still fits
    ``max_duration``.
    """
    if total_duration <= 0:
        return []

    stride = min(DEFAULT_FIXED_STRIDE_SEC, max_duration / 2)
    segments: list[Segment] = []
    current = 0.0

    while current < total_duration:
        end = min(current + stride, total_duration)
        segments.append(Segment(start=current, end=end))
        current = end

    if len(segments) >= 2:
        last, previous = segments[-1], segments[-2]
        if last.duration < min_duration and last.end - previous.start <= max_duration:
            segments[-2:] = [Segment(start=previous.start, end=last.end)]

    return segments


async def segment_recording(
    media: MediaTool,
    media_path: str | Path,
    min_duration: float = DEFAULT_MIN_DURATION_SEC,
    max_duration: float = DEFAULT_MAX_DURATION_SEC,
    total_duration: float | None = None,
) -> list[Segment]:
    """
    Probe, detect silence, and segment a recording.

    Silence-detection failures degrade to the fixed partition rather than
    propagating; probe failures propagate as MediaToolError.
    """
    if total_duration is None:
        total_duration = await media.probe_duration(media_path)

    logger.info("Detecting silence in audio...")
    try:
        silences = await media.detect_silence(media_path)
    except DetectionError as exc:
        logger.warning(
            "Silence detection failed (%s): using fixed-duration segmentation.", exc,
        )
        return segment_fixed(total_duration, min_duration, max_duration)

    logger.info("Found %d silence intervals.", len(silences))
    return segment(total_duration, min_duration, max_duration, silences)


def limit_to_window(segments: list[Segment], window_end: float) -> list[Segment]:
    """
    Keep segments starting before *window_end*; clamp the last one to it.

    The last in-window segment is truncated rather than discarded.
    """
    kept = [seg for seg in segments if seg.start < window_end]
    if kept and kept[-1].end > window_end:
        kept[-1] = kept[-1].truncated(window_end)
    return kept


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _find_closest_midpoint(
    silences: list[SilenceInterval],
    index: int,
    ideal_end: float,
) -> float:
    """
    Find the midpoint closest to *ideal_end*, starting at ``silences[index]``.

    Later silences are considered while their midpoints stay within
    OVERFLOW_SEARCH_WINDOW_SEC past *ideal_end*. Ties keep the earlier one.
    """
    best_point = silences[index].midpoint
    best_dist = abs(best_point - ideal_end)

    for silence in silences[index + 1:]:
        midpoint = silence.midpoint
        if midpoint > ideal_end + OVERFLOW_SEARCH_WINDOW_SEC:
            break
        dist = abs(midpoint - ideal_end)
        if dist < best_dist:
            best_dist = dist
            best_point = midpoint

    return best_point
