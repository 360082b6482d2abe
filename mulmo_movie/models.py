"""
mulmo_movie/models.py
======================
Data Types: mulmo-movie

Typed records shared by the segmenter, the cache and the orchestrator.
JSON conversion keeps the camelCase keys of the ``mulmo_view.json``
document so files written by earlier runs stay loadable.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# Evaluation categories
# ---------------------------------------------------------------------------


class Category(str, Enum):
    """Role a segment plays in the conversation."""

    KEY_POINT = "key_point"
    INTRODUCTION = "introduction"
    EXPLANATION = "explanation"
    EXAMPLE = "example"
    DISCUSSION = "discussion"
    CONCLUSION = "conclusion"
    TANGENT = "tangent"
    TRANSITION = "transition"


VALID_CATEGORIES: set[str] = {c.value for c in Category}


# ---------------------------------------------------------------------------
# Time ranges
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SilenceInterval:
    """A stretch of audio below the noise threshold."""

    start: float
    end: float

    @property
    def midpoint(self) -> float:
        return (self.start + self.end) / 2


@dataclass(frozen=True)
class Segment:
    """A time interval [start, end) of the source recording."""

    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start

    def truncated(self, end: float) -> "Segment":
        """Return a copy whose end is clamped to *end*."""
        return Segment(start=self.start, end=min(self.end, end))


# ---------------------------------------------------------------------------
# Beat
# ---------------------------------------------------------------------------


@dataclass
class Beat:
    """One processed segment's bilingual record."""

    text: str
    multi_linguals: dict[str, str]
    audio_sources: dict[str, str]
    video_source: str
    thumbnail: str | None = None
    speaker: str | None = None
    start_time: float | None = None
    end_time: float | None = None
    duration: float | None = None
    importance: float | None = None
    category: str | None = None
    summary: str | None = None

    def has_languages(self, *langs: str) -> bool:
        """True if every language in *langs* has text (possibly empty) stored."""
        return all(isinstance(self.multi_linguals.get(lang), str) for lang in langs)

    @property
    def is_evaluated(self) -> bool:
        return (
            self.importance is not None
            and self.category is not None
            and self.summary is not None
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the document format, omitting unset optional fields."""
        data: dict[str, Any] = {
            "text": self.text,
            "audioSources": dict(self.audio_sources),
            "multiLinguals": dict(self.multi_linguals),
            "videoSource": self.video_source,
        }
        optional = (
            ("thumbnail", self.thumbnail),
            ("speaker", self.speaker),
            ("startTime", self.start_time),
            ("endTime", self.end_time),
            ("duration", self.duration),
            ("importance", self.importance),
            ("category", self.category),
            ("summary", self.summary),
        )
        for key, value in optional:
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "Beat":
        """
        Build a Beat from its document form.

        Raises:
            ValueError: If the record is not a dict or has malformed fields.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Beat must be an object, got {type(data).__name__}")

        multi = data.get("multiLinguals") or {}
        audio = data.get("audioSources") or {}
        if not isinstance(multi, dict) or not all(
            isinstance(v, str) for v in multi.values()
        ):
            raise ValueError("Beat multiLinguals must map language codes to strings")
        if not isinstance(audio, dict):
            raise ValueError("Beat audioSources must be an object")

        importance = data.get("importance")
        if importance is not None and (
            isinstance(importance, bool)
            or not isinstance(importance, (int, float))
            or not math.isfinite(importance)
            or not 0 <= importance <= 10
        ):
            raise ValueError(f"Beat importance must be a number in [0, 10], got {importance!r}")
        category = data.get("category")
        if category is not None and category not in VALID_CATEGORIES:
            raise ValueError(f"Beat category {category!r} is not a known category")
        summary = data.get("summary")
        if summary is not None and not isinstance(summary, str):
            raise ValueError("Beat summary must be a string")

        return cls(
            text=str(data.get("text", "")),
            multi_linguals=dict(multi),
            audio_sources=dict(audio),
            video_source=str(data.get("videoSource", "")),
            thumbnail=data.get("thumbnail"),
            speaker=data.get("speaker"),
            start_time=data.get("startTime"),
            end_time=data.get("endTime"),
            duration=data.get("duration"),
            importance=importance,
            category=category,
            summary=summary,
        )


# ---------------------------------------------------------------------------
# Output document
# ---------------------------------------------------------------------------


@dataclass
class OutputDocument:
    """The persisted ``mulmo_view.json`` document."""

    lang: str
    total_duration: float
    total_segments: int
    beats: list[Beat] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "lang": self.lang,
            "totalDuration": self.total_duration,
            "totalSegments": self.total_segments,
            "beats": [beat.to_dict() for beat in self.beats],
        }

    @classmethod
    def from_dict(cls, data: Any, default_lang: str = "en") -> "OutputDocument":
        """
        Build a document from parsed JSON.

        Raises:
            ValueError: If the top level or any beat is malformed.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Document must be an object, got {type(data).__name__}")
        raw_beats = data.get("beats")
        if not isinstance(raw_beats, list):
            raise ValueError("Document 'beats' must be a list")

        beats = [Beat.from_dict(item) for item in raw_beats]
        return cls(
            lang=data.get("lang") or default_lang,
            total_duration=float(data.get("totalDuration", 0.0)),
            total_segments=int(data.get("totalSegments", len(beats))),
            beats=beats,
        )
