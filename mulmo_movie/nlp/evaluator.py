"""
mulmo_movie/nlp/evaluator.py
=============================
Segment Evaluator: mulmo-movie (Batch Importance Evaluation)

Responsibility:
    - Score every beat's importance (0-10), assign a category and write a
      short summary, in ONE batched OpenAI call over the whole recording
    - Instruct the model to spread scores (relative, non-uniform) across a
      target distribution: cross-segment context is why the call is batched
    - Validate the structured response and return it keyed by 1-based
      segment number

The score distribution is a quality contract on the model's output; it is
requested in the prompt, never enforced on the numbers returned.

This module does NOT:
    - Merge results into beats (the orchestrator does)
    - Decide whether evaluation is needed
    - Print statistics or generate digests
"""

import logging
from dataclasses import dataclass
from typing import Any

from mulmo_movie.config import SUPPORTED_LANGUAGES
from mulmo_movie.models import Beat, Category
from mulmo_movie.openai_retry import chat_completions_with_retry
from mulmo_movie.response_validator import (
    InferenceError,
    parse_json_content,
    validate_evaluation_response,
)

logger = logging.getLogger("mulmo_movie.nlp.evaluator")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EVALUATION_TEMPERATURE: float = 0.5

# Structured Outputs schema sent with the request
EVALUATION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "evaluations": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "segmentNumber": {
                        "type": "number",
                        "description": "Segment number",
                    },
                    "importance": {
                        "type": "number",
                        "description": "Importance score (0-10)",
                    },
                    "category": {
                        "type": "string",
                        "description": "Category",
                        "enum": [c.value for c in Category],
                    },
                    "summary": {
                        "type": "string",
                        "description": "One or two sentence summary",
                    },
                },
                "required": ["segmentNumber", "importance", "category", "summary"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["evaluations"],
    "additionalProperties": False,
}

_SYSTEM_PROMPT: str = (
    "You are an expert at judging the importance of segments of a recorded "
    "conversation. Evaluate each segment's value to a viewer precisely. "
    "IMPORTANT: never give every segment the same score. Use the whole range "
    "from 0 to 10 according to the content and make clear distinctions."
)


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SegmentEvaluation:
    """Evaluation of one segment, as returned by the model."""

    segment_number: int
    importance: float
    category: str
    summary: str


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def evaluate_segments(
    client: Any,
    beats: list[Beat],
    source_lang: str,
    model: str = "gpt-4o",
) -> dict[int, SegmentEvaluation]:
    """
    Evaluate all beats in a single batched call.

    Args:
        client:      An ``openai.AsyncOpenAI`` instance.
        beats:       Every beat of the recording, in segment order.
        source_lang: Language of the text shown to the model (and of the
                     requested summaries).
        model:       Chat model name.

    Returns:
        Mapping of 1-based segment number → SegmentEvaluation. Segments the
        model left out are simply absent.

    Raises:
        InferenceError: If the call fails or the response does not match
            the schema.
    """
    if not beats:
        return {}

    prompt = build_evaluation_prompt(beats, source_lang)
    logger.info(
        "Evaluating %d segments (%d prompt characters).", len(beats), len(prompt),
    )

    try:
        response = await chat_completions_with_retry(
            client,
            model=model,
            messages=[
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            response_format={
                "type": "json_schema",
                "json_schema": {
                    "name": "segment_evaluation",
                    "strict": True,
                    "schema": EVALUATION_SCHEMA,
                },
            },
            temperature=EVALUATION_TEMPERATURE,
        )
    except Exception as exc:
        raise InferenceError("evaluation", str(exc)) from exc

    content = response.choices[0].message.content if response.choices else None
    entries = validate_evaluation_response(parse_json_content(content, "evaluation"))

    evaluations: dict[int, SegmentEvaluation] = {}
    for entry in entries:
        evaluations[entry["segmentNumber"]] = SegmentEvaluation(
            segment_number=entry["segmentNumber"],
            importance=entry["importance"],
            category=entry["category"],
            summary=entry["summary"],
        )

    logger.info("Successfully evaluated %d segments.", len(evaluations))
    return evaluations


# ---------------------------------------------------------------------------
# Prompt construction
# ---------------------------------------------------------------------------


def build_evaluation_prompt(beats: list[Beat], source_lang: str) -> str:
    """Render the scoring rubric followed by every segment's details."""
    language_name = SUPPORTED_LANGUAGES.get(source_lang, source_lang)

    parts = [
        "Below are the transcript segments of a recorded conversation. "
        "Evaluate every segment.\n",
        "Criteria:\n",
        "[importance (0-10)]",
        "Rate how important the content is.",
        "* 10: the most important conclusions, core claims, decisive information",
        "* 7-9: important points, key explanations, important facts",
        "* 4-6: supporting explanations, concrete examples, general discussion",
        "* 1-3: small talk, greetings, digressions, repetition",
        "* 0: meaningless content, noise\n",
        "[category]",
        "Choose the best fit:",
        "* key_point: an important claim or conclusion, a core message",
        "* introduction: introducing a topic",
        "* explanation: detailed explanation",
        "* example: a concrete example or case",
        "* discussion: exchange of opinions",
        "* conclusion: wrap-up, conclusion",
        "* tangent: small talk off the main topic",
        "* transition: change of topic, bridging remarks\n",
        "[summary]",
        f"Summarise the segment in {language_name} in one or two short sentences.\n",
        "Important notes:",
        "- Consider the context of the whole recording and find the parts that truly matter",
        "- Scores are relative: give high scores only to what is really important",
        "- **Do NOT give every segment the same score (especially 5). Make clear distinctions!**",
        "- Aim for roughly this distribution:",
        "  * 8-10: about 5-10% of segments (the most important points)",
        "  * 6-7: about 20-30% (important points)",
        "  * 3-5: about 40-50% (ordinary content)",
        "  * 0-2: about 20-30% (small talk and digressions)",
        "- Judge each segment carefully on its own content\n",
        "---\n",
        "Segments:\n",
    ]

    for number, beat in enumerate(beats, start=1):
        parts.append(
            f"Segment {number}:\n"
            f"Speaker: {beat.speaker or 'Unknown'}\n"
            f"Time: {format_time(beat.start_time or 0.0)} "
            f"({(beat.duration or 0.0):.1f}s)\n"
            f"Content: {beat.multi_linguals.get(source_lang, beat.text)}\n\n"
            "---"
        )

    parts.append("\nEvaluate all of the segments above and answer in JSON.")
    return "\n".join(parts)


def format_time(seconds: float) -> str:
    """Format seconds as ``m:ss``."""
    total = int(seconds)
    return f"{total // 60}:{total % 60:02d}"
