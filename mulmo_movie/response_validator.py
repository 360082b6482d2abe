"""
mulmo_movie/response_validator.py
==================================
Model Response Validator: mulmo-movie

Responsibility:
    - Decode JSON content returned by chat-completion calls
    - Check each payload against the schema the request asked for
    - FAIL FAST with InferenceError on any shape mismatch
    - NO auto-correction of values outside their allowed ranges

This module does NOT:
    - Call any external API
    - Decide fallback behaviour (callers choose to degrade or propagate)
"""

import json
import logging
import math
from typing import Any

from mulmo_movie.models import VALID_CATEGORIES

logger = logging.getLogger("mulmo_movie.response_validator")


# =====================================================================
# Custom exception for inference failures
# =====================================================================


class InferenceError(Exception):
    """Raised when a model call fails or returns an unusable payload."""

    def __init__(self, stage: str, message: str):
        self.stage = stage
        self.message = message
        super().__init__(f"{stage} inference failed: {message}")


# =====================================================================
# JSON decoding
# =====================================================================


def parse_json_content(raw: str | None, stage: str) -> Any:
    """
    Decode a JSON message body, tolerating markdown code fences.

    Raises:
        InferenceError: If the content is empty or not valid JSON.
    """
    if raw is None or not raw.strip():
        raise InferenceError(stage, "Empty response content")

    cleaned = raw.strip()
    if cleaned.startswith("```"):
        first_newline = cleaned.find("\n")
        cleaned = cleaned[first_newline + 1 :] if first_newline != -1 else ""
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    cleaned = cleaned.strip()

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise InferenceError(stage, f"Response is not valid JSON: {exc}") from exc


# =====================================================================
# Speaker identification
# =====================================================================


def validate_speaker_response(parsed: Any) -> list[dict[str, str]]:
    """
    Verify a speaker identification payload.

    Expected shape::

        {"speakers": [{"speaker": str, "text": str}, ...]}

    An empty ``speakers`` list is valid (the caller decides the default).

    Raises:
        InferenceError: If any check fails.
    """
    stage = "speaker identification"

    if not isinstance(parsed, dict):
        raise InferenceError(stage, f"Expected object, got {type(parsed).__name__}")

    speakers = parsed.get("speakers")
    if not isinstance(speakers, list):
        raise InferenceError(stage, "Missing 'speakers' array")

    turns: list[dict[str, str]] = []
    for i, item in enumerate(speakers):
        if not isinstance(item, dict):
            raise InferenceError(stage, f"Turn {i} is not an object")
        speaker = item.get("speaker")
        text = item.get("text")
        if not isinstance(speaker, str) or not speaker.strip():
            raise InferenceError(stage, f"Turn {i} has empty or non-string speaker")
        if not isinstance(text, str):
            raise InferenceError(stage, f"Turn {i} has non-string text")
        turns.append({"speaker": speaker.strip(), "text": text})

    return turns


# =====================================================================
# Segment evaluation
# =====================================================================


def validate_evaluation_response(parsed: Any) -> list[dict[str, Any]]:
    """
    Verify a batch evaluation payload.

    Expected shape::

        {"evaluations": [
            {"segmentNumber": int, "importance": 0-10,
             "category": <category>, "summary": str}, ...]}

    Checks:
        - segmentNumber is a whole number
        - importance is numeric and within [0, 10]
        - category is one of the fixed categories
        - summary is a string

    Raises:
        InferenceError: If any check fails.
    """
    stage = "evaluation"

    if not isinstance(parsed, dict):
        raise InferenceError(stage, f"Expected object, got {type(parsed).__name__}")

    evaluations = parsed.get("evaluations")
    if not isinstance(evaluations, list):
        raise InferenceError(stage, "Missing 'evaluations' array")

    results: list[dict[str, Any]] = []
    for i, item in enumerate(evaluations):
        if not isinstance(item, dict):
            raise InferenceError(stage, f"Evaluation {i} is not an object")

        for key in ("segmentNumber", "importance", "category", "summary"):
            if key not in item:
                raise InferenceError(stage, f"Evaluation {i} missing required key '{key}'")

        number = item["segmentNumber"]
        if (
            isinstance(number, bool)
            or not isinstance(number, (int, float))
            or not math.isfinite(number)
            or number != int(number)
        ):
            raise InferenceError(stage, f"Evaluation {i} segmentNumber is not an integer")

        importance = item["importance"]
        if (
            isinstance(importance, bool)
            or not isinstance(importance, (int, float))
            or not math.isfinite(importance)
        ):
            raise InferenceError(stage, f"Evaluation {i} importance is not a finite number")
        if not 0 <= importance <= 10:
            raise InferenceError(
                stage, f"Evaluation {i} importance {importance} outside [0, 10]"
            )

        if item["category"] not in VALID_CATEGORIES:
            raise InferenceError(
                stage, f"Evaluation {i} has unknown category '{item['category']}'"
            )

        if not isinstance(item["summary"], str):
            raise InferenceError(stage, f"Evaluation {i} summary is not a string")

        results.append({
            "segmentNumber": int(number),
            "importance": importance,
            "category": item["category"],
            "summary": item["summary"],
        })

    logger.debug("Evaluation response verified: %d entries.", len(results))
    return results
