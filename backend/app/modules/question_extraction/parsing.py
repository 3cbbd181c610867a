"""Turn the model's JSON-ish answer into canonical question records.

Parsing is two-staged: a strict `json.loads`, then at most one repair attempt for
arrays that were cut off mid-element (typically by the output token limit).
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

from .schemas import ExtractedQuestion

logger = logging.getLogger(__name__)

OPTION_LABELS = ("A", "B", "C", "D", "E")
DEFAULT_DIFFICULTY = "medium"

_FENCE_START = re.compile(r"^\s*```(?:json)?\s*", re.IGNORECASE)
_FENCE_END = re.compile(r"\s*```\s*$")
_LETTER_ANSWER = re.compile(r"^\(?([A-Ea-e])[).:]?$")


def strip_code_fences(text: str) -> str:
    text = _FENCE_START.sub("", text, count=1)
    return _FENCE_END.sub("", text, count=1)


def repair_truncated_array(text: str) -> str | None:
    """Cut a truncated JSON array after its last complete element and re-close it.

    Returns None when no complete top-level element exists.
    """
    text = text.strip()
    if not text.startswith("["):
        return None

    depth = 0
    in_string = False
    escaped = False
    last_complete: int | None = None

    for i, ch in enumerate(text[1:], start=1):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch in "{[":
            depth += 1
        elif ch in "}]":
            depth -= 1
            if depth == 0:
                last_complete = i
            elif depth < 0:
                # The outer array closed; anything after it is trailing junk.
                break

    if last_complete is None:
        return None
    return text[: last_complete + 1] + "]"


def load_question_payload(raw_text: str | None) -> list[Any]:
    """Return the list of raw question items found in a model response."""
    if not raw_text:
        return []

    cleaned = strip_code_fences(raw_text).strip()
    data: Any = None
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        repaired = repair_truncated_array(cleaned)
        if repaired is not None:
            try:
                data = json.loads(repaired)
                logger.info("Recovered truncated model response (%d chars)", len(cleaned))
            except json.JSONDecodeError:
                logger.warning("Model response could not be repaired; skipping chunk")
        else:
            logger.warning("Model response is not valid JSON; skipping chunk")

    if not isinstance(data, list):
        if data is not None:
            logger.warning("Model response is %s, expected a JSON array", type(data).__name__)
        return []
    return data


def normalize_options(raw: Any) -> list[str]:
    """Accept the array shape, or the legacy {"A": ..., "B": ...} object shape.

    Arrays keep every position, blanks included, since the model's answer index
    refers to them. Only the legacy shape drops missing or empty labels.
    """
    if isinstance(raw, list):
        return [_text(v) for v in raw]
    if isinstance(raw, dict):
        values = [raw.get(label) or raw.get(label.lower()) for label in OPTION_LABELS]
        return [_text(v) for v in values if _text(v)]
    return []


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def coerce_question(item: Any) -> ExtractedQuestion | None:
    if not isinstance(item, dict):
        return None
    question_text = _text(item.get("question_text"))
    if not question_text:
        return None

    has_image = item.get("has_image")
    if isinstance(has_image, str):
        has_image = has_image.strip().lower() == "true"

    return ExtractedQuestion(
        question_text=question_text,
        options=normalize_options(item.get("options")),
        correct_answer=_text(item.get("correct_answer")),
        topic=_text(item.get("topic")),
        subtopic=_text(item.get("subtopic")),
        difficulty=_text(item.get("difficulty")),
        explanation=_text(item.get("explanation")),
        has_image=bool(has_image),
        image_description=_text(item.get("image_description")) or None,
    )


def parse_questions(raw_text: str | None) -> list[ExtractedQuestion]:
    questions: list[ExtractedQuestion] = []
    for item in load_question_payload(raw_text):
        question = coerce_question(item)
        if question is None:
            logger.debug("Dropping malformed question item: %r", item)
            continue
        questions.append(question)
    return questions


# Correct-answer encodings seen in model output.


@dataclass(frozen=True)
class IndexAnswer:
    """0-based option index, e.g. "2"."""

    index: int


@dataclass(frozen=True)
class LetterAnswer:
    """Option label, e.g. "C" or "(c)"."""

    letter: str


@dataclass(frozen=True)
class TextAnswer:
    """The literal text of the correct option."""

    text: str


AnswerEncoding = IndexAnswer | LetterAnswer | TextAnswer


def classify_correct_answer(raw: Any) -> AnswerEncoding | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return IndexAnswer(raw)

    value = _text(raw)
    if not value:
        return None
    if value.isdigit():
        return IndexAnswer(int(value))

    match = _LETTER_ANSWER.match(value)
    if match:
        return LetterAnswer(match.group(1).upper())
    return TextAnswer(value)


def answer_index(encoding: AnswerEncoding, options: list[str]) -> int | None:
    if isinstance(encoding, IndexAnswer):
        index = encoding.index
    elif isinstance(encoding, LetterAnswer):
        index = OPTION_LABELS.index(encoding.letter)
    else:
        wanted = encoding.text.casefold()
        for i, option in enumerate(options):
            if option.strip().casefold() == wanted:
                return i
        return None
    return index if 0 <= index < len(OPTION_LABELS) else None


def resolve_correct_answer(raw: Any, options: list[str]) -> str:
    """Map any answer encoding to its option label (A-E).

    Unresolvable answers are returned verbatim so reviewers can fix them.
    """
    encoding = classify_correct_answer(raw)
    if encoding is None:
        return ""

    index = answer_index(encoding, options)
    if index is None:
        logger.warning("Could not resolve correct answer %r against %d options", raw, len(options))
        return _text(raw)
    if index >= len(options):
        logger.warning(
            "Correct answer %r points past the %d extracted options", raw, len(options)
        )
    return OPTION_LABELS[index]


def normalize_difficulty(raw: Any) -> str:
    return _text(raw).lower() or DEFAULT_DIFFICULTY
