"""
mulmo_movie/cache.py
=====================
Cache / Resume Store: mulmo-movie

Responsibility:
    - Load the ``mulmo_view.json`` left by a previous (possibly interrupted)
      run
    - Build the two read-only lookup indices used for resumption:
        beat_cache         segment video filename → Beat
        translation_cache  source text → target text

A missing file is an empty cache. An unreadable or malformed file raises
CacheReadError from ``load_document``; ``ResumeCache.load`` logs it and
starts from scratch instead.

This module does NOT:
    - Write the document (see output_store.py)
    - Check artifact files on disk
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from mulmo_movie.models import Beat, OutputDocument

logger = logging.getLogger("mulmo_movie.cache")


class CacheReadError(Exception):
    """Raised when an existing output document cannot be read or parsed."""

    def __init__(self, path: str | Path, message: str):
        self.path = str(path)
        self.message = message
        super().__init__(f"Cannot read {self.path}: {message}")


def load_document(path: str | Path, default_lang: str = "en") -> OutputDocument:
    """
    Read and parse an output document.

    Raises:
        CacheReadError: If the file is missing, unreadable or malformed.
    """
    doc_path = Path(path)
    try:
        raw = doc_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CacheReadError(doc_path, str(exc)) from exc

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise CacheReadError(doc_path, f"invalid JSON: {exc}") from exc

    try:
        return OutputDocument.from_dict(data, default_lang=default_lang)
    except (ValueError, TypeError) as exc:
        raise CacheReadError(doc_path, f"malformed document: {exc}") from exc


@dataclass
class ResumeCache:
    """Lookup indices rebuilt at the start of every run."""

    beat_cache: dict[str, Beat] = field(default_factory=dict)
    translation_cache: dict[str, str] = field(default_factory=dict)

    def cached_beat(self, video_filename: str) -> Beat | None:
        return self.beat_cache.get(video_filename)

    def cached_translation(self, text: str) -> str | None:
        return self.translation_cache.get(text)

    @classmethod
    def from_document(
        cls,
        document: OutputDocument,
        source_lang: str,
        target_lang: str,
    ) -> "ResumeCache":
        cache = cls()
        for beat in document.beats:
            if beat.video_source:
                cache.beat_cache[beat.video_source] = beat
            if beat.has_languages(source_lang, target_lang):
                source_text = beat.multi_linguals[source_lang]
                if source_text:
                    cache.translation_cache[source_text] = beat.multi_linguals[target_lang]
        return cache

    @classmethod
    def load(cls, path: str | Path, source_lang: str, target_lang: str) -> "ResumeCache":
        """
        Build the indices from the document at *path*.

        A missing file yields an empty cache silently; an unreadable one is
        logged and also yields an empty cache.
        """
        doc_path = Path(path)
        if not doc_path.exists():
            return cls()

        try:
            document = load_document(doc_path, default_lang=source_lang)
        except CacheReadError as exc:
            logger.warning("Ignoring existing output, starting fresh: %s", exc)
            return cls()

        cache = cls.from_document(document, source_lang, target_lang)
        logger.info(
            "Loaded cache: %d beats, %d translations.",
            len(cache.beat_cache), len(cache.translation_cache),
        )
        return cache
