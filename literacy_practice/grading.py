"""Answer-scoring engine.

Given a normalized question set and a student's answer map (question id
-> answer), `grade_answers` produces per-question feedback and a composite
score. Scoring heuristics per type:

- multiple-choice: exact string match against the stored correct answer.
- short-answer: trimmed, case-insensitive equality with the stored answer.
- paragraph: word-count step function (0 / half / full points).
- matching: points scaled by the share of positionally correct pairs.

`PracticeSession` wraps one rendered question set: answers can be edited
until the first submit, further submits return the first result, and
`reset` starts the exercise over.
"""

import threading
from typing import Any, Dict, List, Optional, Sequence
from pydantic import BaseModel, Field
from .utils.normalize import (
    NormalizedQuestion,
    MultipleChoiceQuestion,
    ShortAnswerQuestion,
    ParagraphQuestion,
    MatchingQuestion,
)

PARAGRAPH_HALF_CREDIT_WORDS = 10
PARAGRAPH_FULL_CREDIT_WORDS = 20


class QuestionFeedback(BaseModel):
    correct: bool
    message: str
    awarded: int
    points: int


class GradeResult(BaseModel):
    score: int
    total_points: int
    correct_answers: int
    total_questions: int
    summary: str
    feedback: Dict[str, QuestionFeedback] = Field(default_factory=dict)

    @property
    def percentage(self) -> float:
        return (self.score / self.total_points) * 100 if self.total_points > 0 else 0.0


def count_words(text: Optional[str]) -> int:
    if not isinstance(text, str):
        return 0
    return len(text.split())


def _as_text(answer: Any) -> str:
    return answer if isinstance(answer, str) else ""


def _as_matches(answer: Any, size: int) -> List[Optional[str]]:
    """Coerce a matching answer into exactly `size` positional selections.

    Dict answers are keyed by position; keys outside `0 <= i < size` are ignored.
    """
    out: List[Optional[str]] = [None] * size
    if isinstance(answer, dict):
        for key, value in answer.items():
            try:
                index = int(key)
            except (TypeError, ValueError):
                continue
            if 0 <= index < size:
                out[index] = value
    elif isinstance(answer, (list, tuple)):
        for index, value in enumerate(answer[:size]):
            out[index] = value
    return out


def grade_multiple_choice(question: MultipleChoiceQuestion, answer: Any) -> QuestionFeedback:
    given = _as_text(answer)
    correct = bool(given) and given == question.correct_answer
    return QuestionFeedback(
        correct=correct,
        message="Correct!" if correct else f"The correct answer is: {question.correct_answer}",
        awarded=question.points if correct else 0,
        points=question.points,
    )


def grade_short_answer(question: ShortAnswerQuestion, answer: Any) -> QuestionFeedback:
    given = _as_text(answer).strip().lower()
    correct = bool(given) and given == question.correct_answer.strip().lower()
    return QuestionFeedback(
        correct=correct,
        message="Good answer!" if correct else f"A model answer would be: {question.correct_answer}",
        awarded=question.points if correct else 0,
        points=question.points,
    )


def grade_paragraph(question: ParagraphQuestion, answer: Any) -> QuestionFeedback:
    words = count_words(_as_text(answer))
    if words >= PARAGRAPH_FULL_CREDIT_WORDS:
        awarded = question.points
    elif words >= PARAGRAPH_HALF_CREDIT_WORDS:
        awarded = question.points // 2
    else:
        awarded = 0
    full = awarded == question.points
    detail = "Good detailed response!" if full else "Consider adding more specific details from the text to support your answer."
    return QuestionFeedback(
        correct=full,
        message=f"You wrote {words} words. {detail}",
        awarded=awarded,
        points=question.points,
    )


def grade_matching(question: MatchingQuestion, answer: Any) -> QuestionFeedback:
    matches = _as_matches(answer, len(question.items))
    total = len(question.items)
    hits = 0
    for index, item in enumerate(question.items):
        if index < len(matches) and matches[index] == item.right:
            hits += 1
    awarded = (question.points * hits) // total if total else 0
    return QuestionFeedback(
        correct=total > 0 and hits == total,
        message=f"You matched {hits} out of {total} items correctly.",
        awarded=awarded,
        points=question.points,
    )


def grade_question(question: NormalizedQuestion, answer: Any) -> QuestionFeedback:
    """Dispatch to the per-type grader."""
    if isinstance(question, MultipleChoiceQuestion):
        return grade_multiple_choice(question, answer)
    if isinstance(question, ShortAnswerQuestion):
        return grade_short_answer(question, answer)
    if isinstance(question, ParagraphQuestion):
        return grade_paragraph(question, answer)
    if isinstance(question, MatchingQuestion):
        return grade_matching(question, answer)
    raise ValueError(f"unsupported question type: {type(question).__name__}")


def summary_message(score: int, total_points: int) -> str:
    if score == total_points:
        return "Excellent work! You've mastered this exercise."
    if score >= total_points / 2:
        return "Good effort! Review the feedback to improve further."
    return "Review the feedback carefully and try again to improve your score."


def grade_answers(questions: Sequence[NormalizedQuestion], answers: Dict[str, Any]) -> GradeResult:
    """Grade every question against `answers` and aggregate the score."""
    answers = answers or {}
    feedback: Dict[str, QuestionFeedback] = {}
    score = 0
    correct = 0
    for q in questions:
        fb = grade_question(q, answers.get(q.id))
        feedback[q.id] = fb
        score += fb.awarded
        if fb.correct:
            correct += 1
    total_points = sum(q.points for q in questions)
    return GradeResult(
        score=score,
        total_points=total_points,
        correct_answers=correct,
        total_questions=len(questions),
        summary=summary_message(score, total_points),
        feedback=feedback,
    )


class PracticeSession:
    """In-memory state of one rendered question set."""

    def __init__(self, questions: Sequence[NormalizedQuestion]):
        self.questions = list(questions)
        self._by_id = {q.id: q for q in self.questions}
        self._lock = threading.Lock()
        self.answers: Dict[str, Any] = {}
        self.submitted = False
        self.result: Optional[GradeResult] = None
        self._completion_claimed = False

    @property
    def total_points(self) -> int:
        return sum(q.points for q in self.questions)

    def set_answer(self, question_id: str, value: Any) -> bool:
        """Record an answer; returns False once submitted or for unknown ids."""
        with self._lock:
            if self.submitted or question_id not in self._by_id:
                return False
            self.answers[question_id] = value
            return True

    def set_match(self, question_id: str, index: int, value: str) -> bool:
        """Set one positional selection of a matching question."""
        with self._lock:
            question = self._by_id.get(question_id)
            if self.submitted or not isinstance(question, MatchingQuestion):
                return False
            if index < 0 or index >= len(question.items):
                return False
            current = _as_matches(self.answers.get(question_id), len(question.items))
            current[index] = value
            self.answers[question_id] = current
            return True

    def submit(self) -> GradeResult:
        """Grade once; subsequent calls return the stored result unchanged."""
        with self._lock:
            if self.submitted and self.result is not None:
                return self.result
            self.result = grade_answers(self.questions, self.answers)
            self.submitted = True
            return self.result

    def claim_completion(self) -> bool:
        """True for exactly one caller per submitted result; reset re-arms it."""
        with self._lock:
            if not self.submitted or self._completion_claimed:
                return False
            self._completion_claimed = True
            return True

    def reset(self) -> None:
        with self._lock:
            self.answers = {}
            self.submitted = False
            self.result = None
            self._completion_claimed = False
