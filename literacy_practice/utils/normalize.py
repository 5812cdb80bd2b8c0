"""Question normalization.

Question rows arrive loosely typed: `options` may be a native list, a
JSON-encoded string of a list, a list of `{id, text}` option objects,
matching pairs as `{left, right}` objects or `[left, right]` tuples, or
garbage. `normalize_question` turns any such row into one of four shaped
variants and never raises; unusable payloads degrade to empty defaults.
"""

import json
import logging
from typing import Any, Iterable, List, Literal, Optional, Union
from pydantic import BaseModel, Field

logger = logging.getLogger("literacy.normalize")

MULTIPLE_CHOICE = "multiple-choice"
SHORT_ANSWER = "short-answer"
PARAGRAPH = "paragraph"
MATCHING = "matching"
QUESTION_TYPES = (MULTIPLE_CHOICE, SHORT_ANSWER, PARAGRAPH, MATCHING)


class MatchingItem(BaseModel):
    left: str
    right: str


class BaseQuestion(BaseModel):
    id: str
    question: str
    points: int = 1


class MultipleChoiceQuestion(BaseQuestion):
    type: Literal["multiple-choice"] = MULTIPLE_CHOICE
    options: List[str] = Field(default_factory=list)
    correct_answer: str = ""


class ShortAnswerQuestion(BaseQuestion):
    type: Literal["short-answer"] = SHORT_ANSWER
    correct_answer: str = ""
    word_limit: Optional[int] = None


class ParagraphQuestion(BaseQuestion):
    type: Literal["paragraph"] = PARAGRAPH
    word_limit: Optional[int] = None
    rubric: str = ""


class MatchingQuestion(BaseQuestion):
    type: Literal["matching"] = MATCHING
    items: List[MatchingItem] = Field(default_factory=list)


NormalizedQuestion = Union[MultipleChoiceQuestion, ShortAnswerQuestion, ParagraphQuestion, MatchingQuestion]


def canonical_type(raw: Any) -> Optional[str]:
    """Map spellings like `multiple_choice` or `Short Answer` to a canonical type."""
    if not isinstance(raw, str):
        return None
    key = "-".join(raw.strip().lower().replace("_", " ").split())
    return key if key in QUESTION_TYPES else None


def _field(row: Any, *names: str) -> Any:
    """Return the first present value among `names` from a dict or model."""
    for name in names:
        if isinstance(row, dict):
            value = row.get(name)
        else:
            value = getattr(row, name, None)
        if value is not None:
            return value
    return None


def _decode_json(value: Any) -> Any:
    """Decode JSON text, tolerating double-encoded strings."""
    for _ in range(2):
        if not isinstance(value, str):
            return value
        try:
            value = json.loads(value)
        except (ValueError, TypeError):
            return None
    return value if not isinstance(value, str) else None


def _coerce_positive_int(value: Any, default: Optional[int]) -> Optional[int]:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def parse_options(value: Any) -> List[str]:
    """Return option strings from a list, a JSON string or `{id, text}` objects."""
    data = _decode_json(value)
    if not isinstance(data, list):
        return []
    out = []
    for entry in data:
        if isinstance(entry, dict):
            entry = entry.get("text") if entry.get("text") is not None else entry.get("value")
        if isinstance(entry, (str, int, float)) and not isinstance(entry, bool):
            text = str(entry)
            if text.strip():
                out.append(text)
    return out


def parse_pairs(value: Any) -> List[MatchingItem]:
    """Return matching pairs from `{left, right}` objects or positional tuples."""
    data = _decode_json(value)
    if isinstance(data, dict):
        data = [[k, v] for k, v in data.items()]
    if not isinstance(data, list):
        return []
    out = []
    for entry in data:
        left = right = None
        if isinstance(entry, dict):
            left, right = entry.get("left"), entry.get("right")
        elif isinstance(entry, (list, tuple)) and len(entry) >= 2:
            left, right = entry[0], entry[1]
        if left is None or right is None:
            continue
        out.append(MatchingItem(left=str(left), right=str(right)))
    return out


def normalize_question(row: Any) -> Optional[NormalizedQuestion]:
    """Normalize a raw question row into its shaped variant.

    Returns `None` for rows whose declared type is unknown; any other
    malformed field falls back to an empty default.
    """
    try:
        qtype = canonical_type(_field(row, "question_type", "type"))
        if qtype is None:
            logger.warning("skipping question %r with unknown type", _field(row, "id"))
            return None
        base = {
            "id": str(_field(row, "id") if _field(row, "id") is not None else ""),
            "question": str(_field(row, "question_text", "question") or ""),
            "points": _coerce_positive_int(_field(row, "points"), 1),
        }
        correct = _field(row, "correct_answer", "correctAnswer")
        correct = "" if correct is None else str(correct)
        word_limit = _coerce_positive_int(_field(row, "word_limit", "wordLimit"), None)
        if qtype == MULTIPLE_CHOICE:
            return MultipleChoiceQuestion(**base, options=parse_options(_field(row, "options")), correct_answer=correct)
        if qtype == SHORT_ANSWER:
            return ShortAnswerQuestion(**base, correct_answer=correct, word_limit=word_limit)
        if qtype == PARAGRAPH:
            rubric = _field(row, "rubric")
            if not isinstance(rubric, str):
                rubric = json.dumps(rubric) if rubric is not None else ""
            return ParagraphQuestion(**base, word_limit=word_limit, rubric=rubric)
        return MatchingQuestion(**base, items=parse_pairs(_field(row, "options", "items", "pairs")))
    except Exception:
        logger.exception("failed to normalize question row")
        return None


def normalize_questions(rows: Iterable[Any]) -> List[NormalizedQuestion]:
    """Normalize a question set, dropping rows that cannot be shaped."""
    out = []
    for row in rows or []:
        q = normalize_question(row)
        if q is not None:
            out.append(q)
    return out


def public_view(question: NormalizedQuestion) -> dict:
    """Return the student-facing shape of a question (answers withheld)."""
    out = {"id": question.id, "type": question.type, "question": question.question, "points": question.points}
    if isinstance(question, MultipleChoiceQuestion):
        out["options"] = list(question.options)
    elif isinstance(question, ShortAnswerQuestion):
        out["word_limit"] = question.word_limit
    elif isinstance(question, ParagraphQuestion):
        out["word_limit"] = question.word_limit
        out["rubric"] = question.rubric
    elif isinstance(question, MatchingQuestion):
        out["left_items"] = [item.left for item in question.items]
        out["choices"] = [item.right for item in question.items]
    return out
