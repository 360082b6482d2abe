"""
mulmo_movie/pipeline.py
========================
Beat Pipeline Orchestrator: mulmo-movie

Responsibility:
    1. Segment the recording (silence-anchored, fixed-partition fallback)
    2. Drive every segment through its stages concurrently:
           media cut → audio cut → transcription + translation
           → speaker identification → beat assembly
    3. Checkpoint the output document after every completed segment
    4. Synthesize target-language speech for every beat (phase 2)
    5. Evaluate all beats in one batched call (phase 3)

Resumption:
    Every expensive step is skipped when its durable result already exists:
    artifact files are checked on disk, text and speaker come from the
    previous document through ResumeCache. A second run over a finished
    output directory makes no model calls and rewrites an identical
    document.

Failure policy:
    - Media or transcription/translation failure → the segment fails;
      sibling segments still finish, then PipelineError is raised
    - Speaker identification failure → default label (never raised)
    - Speech synthesis failure → logged and counted, run continues
    - Evaluation failure → logged, beats keep no evaluation fields

Phase execution order:
    Phase 1: Segmentation + per-segment transcription/translation/speaker
    Phase 2: Target-language speech synthesis
    Phase 3: Batch importance evaluation
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path

from mulmo_movie.audio.media_tool import MediaTool
from mulmo_movie.audio.segmenter import limit_to_window, segment_recording
from mulmo_movie.cache import ResumeCache, load_document
from mulmo_movie.config import OUTPUT_FILENAME, TEST_MODE_DURATION_SECONDS, Settings
from mulmo_movie.inference import InferenceService
from mulmo_movie.limiters import ApiLimiters
from mulmo_movie.models import Beat, OutputDocument, Segment
from mulmo_movie.nlp.evaluator import SegmentEvaluation
from mulmo_movie.output_store import write_document
from mulmo_movie.response_validator import InferenceError
from mulmo_movie.tts.speech_client import write_audio

logger = logging.getLogger("mulmo_movie.pipeline")


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class PipelineError(Exception):
    """Raised after phase 1 when one or more segments failed."""

    def __init__(self, failures: list[tuple[int, BaseException]]):
        self.failures = failures
        number, first = failures[0]
        super().__init__(
            f"{len(failures)} segment(s) failed; first failure in segment "
            f"{number}: {first}"
        )


# ---------------------------------------------------------------------------
# Artifact naming
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SegmentFiles:
    """Artifact paths of one segment, numbered from 1."""

    video: Path
    audio: Path
    dubbed_audio: Path
    thumbnail: Path

    @classmethod
    def for_segment(cls, output_dir: Path, number: int, target_lang: str) -> "SegmentFiles":
        return cls(
            video=output_dir / f"{number}.mp4",
            audio=output_dir / f"{number}.mp3",
            dubbed_audio=output_dir / f"{number}_{target_lang}.mp3",
            thumbnail=output_dir / f"{number}.jpg",
        )


@dataclass
class _RunState:
    """Mutable state shared by the segment tasks of one run."""

    document_path: Path
    total_duration: float
    segments: list[Segment]
    beats: list[Beat | None]
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def completed_beats(self) -> list[Beat]:
        return [beat for beat in self.beats if beat is not None]


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class BeatPipeline:
    """Resumable bilingual beat pipeline for one recording."""

    def __init__(
        self,
        settings: Settings,
        media: MediaTool,
        inference: InferenceService,
        limiters: ApiLimiters | None = None,
    ):
        self.settings = settings
        self.media = media
        self.inference = inference
        self.limiters = limiters or ApiLimiters.from_settings(settings)

    @property
    def source_lang(self) -> str:
        return self.settings.source_lang

    @property
    def target_lang(self) -> str:
        return self.settings.target_lang

    # ------------------------------------------------------------------
    # Full run
    # ------------------------------------------------------------------

    async def run(
        self,
        input_path: str | Path,
        output_dir: str | Path,
        test_mode: bool = False,
    ) -> OutputDocument:
        """
        Process *input_path* into *output_dir* and return the final document.

        Raises:
            MediaToolError: If the recording cannot be probed.
            PipelineError:  If any segment failed in phase 1 (raised after
                all segments finished and the checkpoint was written).
        """
        input_path = Path(input_path)
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        document_path = output_dir / OUTPUT_FILENAME

        logger.info("Processing video: %s", input_path)
        logger.info("Language: %s → %s", self.source_lang, self.target_lang)

        cache = ResumeCache.load(document_path, self.source_lang, self.target_lang)

        total_duration = await self.media.probe_duration(input_path)
        logger.info("Total duration: %.2fs", total_duration)

        segments = await segment_recording(
            self.media,
            input_path,
            min_duration=self.settings.min_segment_seconds,
            max_duration=self.settings.max_segment_seconds,
            total_duration=total_duration,
        )
        if test_mode:
            segments = limit_to_window(segments, TEST_MODE_DURATION_SECONDS)
            total_duration = min(total_duration, TEST_MODE_DURATION_SECONDS)
            logger.info(
                "Test mode: processing the first %.0fs only.", TEST_MODE_DURATION_SECONDS,
            )
        logger.info("Created %d segments.", len(segments))

        state = _RunState(
            document_path=document_path,
            total_duration=total_duration,
            segments=segments,
            beats=[None] * len(segments),
        )

        # ==============================================================
        # PHASE 1: per-segment media, transcription, translation, speaker
        # ==============================================================
        logger.info("=" * 60)
        logger.info("PHASE 1: Transcription and Translation")
        logger.info("=" * 60)

        results = await asyncio.gather(
            *(
                self._process_segment(state, index, seg, input_path, output_dir, cache)
                for index, seg in enumerate(segments)
            ),
            return_exceptions=True,
        )

        failures: list[tuple[int, BaseException]] = []
        for index, result in enumerate(results):
            if isinstance(result, Exception):
                failures.append((index + 1, result))
            elif isinstance(result, BaseException):
                raise result

        await self._checkpoint(state)

        if failures:
            for number, exc in failures:
                logger.error("Segment %d failed: %s", number, exc)
            raise PipelineError(failures)

        beats = state.completed_beats()
        logger.info("Phase 1 complete: %d beats.", len(beats))

        # ==============================================================
        # PHASE 2: Target-language speech synthesis
        # ==============================================================
        logger.info("=" * 60)
        logger.info("PHASE 2: %s TTS Audio Generation", self.target_lang.upper())
        logger.info("=" * 60)

        tts_failures = await self._synthesize_all(beats, output_dir)
        await self._checkpoint(state)

        if tts_failures:
            logger.warning("Phase 2 complete with %d TTS failures.", tts_failures)
        else:
            logger.info("Phase 2 complete.")

        # ==============================================================
        # PHASE 3: Batch importance evaluation
        # ==============================================================
        logger.info("=" * 60)
        logger.info("PHASE 3: Importance Evaluation")
        logger.info("=" * 60)

        await self._evaluate(beats, self.source_lang, force=False)
        document = await self._checkpoint(state)

        logger.info("Processing complete. Results saved to %s", document_path)
        if segments:
            logger.info(
                "Total duration: %.2fs | segments: %d | average length: %.2fs",
                total_duration, len(segments), total_duration / len(segments),
            )
        return document

    # ------------------------------------------------------------------
    # Evaluate-only
    # ------------------------------------------------------------------

    async def evaluate_only(self, document_path: str | Path) -> OutputDocument:
        """
        Re-run evaluation over an existing document and rewrite it.

        Raises:
            CacheReadError: If the document is missing or unreadable.
        """
        document_path = Path(document_path)
        document = load_document(document_path, default_lang="en")
        logger.info("Found %d segments in %s", len(document.beats), document_path)

        await self._evaluate(document.beats, document.lang, force=True)
        write_document(document_path, document)

        logger.info("Saved updated data to %s", document_path)
        return document

    # ------------------------------------------------------------------
    # Phase 1: one segment
    # ------------------------------------------------------------------

    async def _process_segment(
        self,
        state: _RunState,
        index: int,
        seg: Segment,
        input_path: Path,
        output_dir: Path,
        cache: ResumeCache,
    ) -> Beat:
        number = index + 1
        files = SegmentFiles.for_segment(output_dir, number, self.target_lang)
        logger.info(
            "Processing segment %d/%d (%.1fs - %.1fs, duration: %.1fs)",
            number, len(state.segments), seg.start, seg.end, seg.duration,
        )

        await self._prepare_media(number, seg, input_path, files)

        cached = cache.cached_beat(files.video.name)
        multi_linguals = await self._transcribe_and_translate(
            number, files.audio, cached, cache,
        )
        speaker = await self._identify_speaker(
            number, multi_linguals[self.source_lang], cached,
        )

        beat = Beat(
            text=multi_linguals.get("en", ""),
            multi_linguals=multi_linguals,
            audio_sources={
                self.source_lang: files.audio.name,
                self.target_lang: files.dubbed_audio.name,
            },
            video_source=files.video.name,
            thumbnail=files.thumbnail.name if self.settings.thumbnails else None,
            speaker=speaker,
            start_time=seg.start,
            end_time=seg.end,
            duration=seg.duration,
        )
        if cached is not None:
            beat.importance = cached.importance
            beat.category = cached.category
            beat.summary = cached.summary

        async with state.lock:
            state.beats[index] = beat
            self._write(state)
        logger.info("Segment %d complete; progress saved.", number)
        return beat

    async def _prepare_media(
        self,
        number: int,
        seg: Segment,
        input_path: Path,
        files: SegmentFiles,
    ) -> None:
        thumbnails = self.settings.thumbnails
        media_present = files.video.exists() and (
            not thumbnails or files.thumbnail.exists()
        )
        if media_present:
            logger.info("Segment %d: video already exists, skipping split.", number)
        else:
            await self.media.cut_av(input_path, files.video, seg.start, seg.duration)
            if thumbnails:
                await self.media.grab_frame(files.video, files.thumbnail, 0.0)

        if files.audio.exists():
            logger.info("Segment %d: audio already exists, skipping extraction.", number)
        else:
            await self.media.cut_audio(input_path, files.audio, seg.start, seg.duration)

    async def _transcribe_and_translate(
        self,
        number: int,
        audio_path: Path,
        cached: Beat | None,
        cache: ResumeCache,
    ) -> dict[str, str]:
        source, target = self.source_lang, self.target_lang

        if cached is not None and cached.has_languages(source, target):
            logger.info(
                "Segment %d: transcription and translation cached, skipping API calls.",
                number,
            )
            return dict(cached.multi_linguals)

        async with self.limiters.whisper:
            text = await self.inference.transcribe(audio_path, source)

            if not text:
                logger.warning(
                    "Segment %d: empty transcript, skipping translation.", number,
                )
                translated = ""
            else:
                translated = cache.cached_translation(text)
                if translated is not None:
                    logger.info("Segment %d: translation cache hit.", number)
                else:
                    async with self.limiters.translation:
                        translated = await self.inference.translate(text, source, target)

        return {source: text, target: translated}

    async def _identify_speaker(
        self,
        number: int,
        source_text: str,
        cached: Beat | None,
    ) -> str:
        if cached is not None and cached.speaker:
            logger.info("Segment %d: speaker cached (%s).", number, cached.speaker)
            return cached.speaker

        async with self.limiters.speaker_id:
            identification = await self.inference.identify_speakers(
                source_text, self.source_lang,
            )

        if identification.defaulted:
            logger.warning(
                "Segment %d: speaker identification defaulted (%s).",
                number, identification.reason,
            )
        return identification.main_speaker

    # ------------------------------------------------------------------
    # Phase 2: speech synthesis
    # ------------------------------------------------------------------

    async def _synthesize_all(self, beats: list[Beat], output_dir: Path) -> int:
        """Synthesize every missing target-language track; return failures."""
        results = await asyncio.gather(
            *(
                self._synthesize_one(number, beat, output_dir)
                for number, beat in enumerate(beats, start=1)
            ),
            return_exceptions=True,
        )

        failures = 0
        for number, result in enumerate(results, start=1):
            if isinstance(result, Exception):
                failures += 1
                logger.error("Segment %d: speech synthesis failed: %s", number, result)
            elif isinstance(result, BaseException):
                raise result
        return failures

    async def _synthesize_one(self, number: int, beat: Beat, output_dir: Path) -> None:
        files = SegmentFiles.for_segment(output_dir, number, self.target_lang)
        if files.dubbed_audio.exists():
            logger.info(
                "Segment %d: %s TTS audio already exists, skipping.",
                number, self.target_lang,
            )
            return

        text = beat.multi_linguals.get(self.target_lang, "")
        if not text.strip():
            logger.info("Segment %d: no %s text, skipping TTS.", number, self.target_lang)
            return

        async with self.limiters.tts:
            audio = await self.inference.synthesize_speech(text, self.target_lang)
        write_audio(files.dubbed_audio, audio)
        logger.info("Segment %d: %s TTS audio generated.", number, self.target_lang)

    # ------------------------------------------------------------------
    # Phase 3: evaluation
    # ------------------------------------------------------------------

    async def _evaluate(self, beats: list[Beat], source_lang: str, force: bool) -> None:
        if not beats:
            logger.info("No beats to evaluate.")
            return
        if not force and all(beat.is_evaluated for beat in beats):
            logger.info("All segments already evaluated, skipping evaluation.")
            return

        try:
            evaluations = await self.inference.evaluate_batch(beats, source_lang)
        except InferenceError as exc:
            logger.error("Evaluation failed, continuing without scores: %s", exc)
            return

        merged = apply_evaluations(beats, evaluations)
        logger.info("Evaluation merged into %d of %d beats.", merged, len(beats))

    # ------------------------------------------------------------------
    # Checkpoints
    # ------------------------------------------------------------------

    def _document(self, state: _RunState) -> OutputDocument:
        return OutputDocument(
            lang=self.source_lang,
            total_duration=state.total_duration,
            total_segments=len(state.segments),
            beats=state.completed_beats(),
        )

    def _write(self, state: _RunState) -> OutputDocument:
        document = self._document(state)
        write_document(state.document_path, document)
        return document

    async def _checkpoint(self, state: _RunState) -> OutputDocument:
        async with state.lock:
            return self._write(state)


# ---------------------------------------------------------------------------
# Evaluation merge
# ---------------------------------------------------------------------------


def apply_evaluations(
    beats: list[Beat],
    evaluations: dict[int, SegmentEvaluation],
) -> int:
    """
    Copy evaluations onto beats by 1-based segment number.

    Numbers outside ``1..len(beats)`` are ignored; beats without an entry
    are left untouched. Returns the number of beats updated.
    """
    merged = 0
    for number, evaluation in sorted(evaluations.items()):
        if not 1 <= number <= len(beats):
            logger.warning("Ignoring evaluation for unknown segment %d.", number)
            continue
        beat = beats[number - 1]
        beat.importance = evaluation.importance
        beat.category = evaluation.category
        beat.summary = evaluation.summary
        merged += 1
    return merged
