"""Search and filter helpers for practice content listings."""

from typing import Iterable, List, Optional, Sequence
from .normalize import canonical_type

DIFFICULTIES = ("easy", "medium", "hard")


def _normalize_set(values: Optional[Iterable[str]], canon) -> Optional[set]:
    if not values:
        return None
    out = set()
    for v in values:
        for part in str(v).split(","):
            key = canon(part)
            if key:
                out.add(key)
    return out


def _difficulty(value) -> Optional[str]:
    key = str(value or "").strip().lower()
    return key if key in DIFFICULTIES else None


def matches_search(title: Optional[str], description: Optional[str], term: Optional[str]) -> bool:
    """Case-insensitive substring match on title or description."""
    if not term or not term.strip():
        return True
    needle = term.strip().lower()
    return needle in (title or "").lower() or needle in (description or "").lower()


def filter_practice(
    items: Sequence,
    search: Optional[str] = None,
    question_types: Optional[Iterable[str]] = None,
    difficulties: Optional[Iterable[str]] = None,
) -> List:
    """Filter content rows by search term, question type and difficulty.

    A missing filter set means "all"; an explicit set that normalizes to
    nothing valid matches nothing.
    """
    types = _normalize_set(question_types, canonical_type)
    levels = _normalize_set(difficulties, _difficulty)
    out = []
    for item in items:
        if not matches_search(getattr(item, "title", None), getattr(item, "description", None), search):
            continue
        if types is not None and canonical_type(getattr(item, "question_type", None)) not in types:
            continue
        if levels is not None and _difficulty(getattr(item, "difficulty", None)) not in levels:
            continue
        out.append(item)
    return out
