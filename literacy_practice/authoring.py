"""Three-step content authoring wizard.

Step 1 collects the passage details, step 2 an optional image (and
optional reading document), step 3 the question set. `submit` writes one
content row and N question rows. The writes are sequential and not
transactional: if a later write fails the content row stays behind with
partial or no questions, and the failure is reported as an
`AuthoringError` carrying the orphaned content id.
"""

import logging
from typing import Any, List, Optional, Union
from sqlmodel import Session
from . import models, repositories
from .schemas import QuestionDraft
from .storage import ObjectStorage
from .realtime import ContentChannel
from .utils.normalize import (
    MULTIPLE_CHOICE,
    SHORT_ANSWER,
    MATCHING,
    canonical_type,
    parse_options,
    parse_pairs,
)
from .utils.search import DIFFICULTIES
from .utils.uploads import validate_image, validate_document

logger = logging.getLogger("literacy.authoring")

DEFAULT_TIME_ESTIMATE = "15 mins"


class AuthoringError(Exception):
    """A backend write failed during submission."""

    def __init__(self, message: str, content_id: Optional[int] = None):
        super().__init__(message)
        self.content_id = content_id


def validate_question_draft(draft: Union[QuestionDraft, dict]) -> dict:
    """Validate a question draft and return `Question` column values.

    Raises ValueError with a user-facing message on the first problem.
    """
    if isinstance(draft, dict):
        draft = QuestionDraft(**draft)
    elif not isinstance(draft, QuestionDraft):
        raise ValueError("Each question must be an object")
    text = (draft.text or "").strip()
    if not text:
        raise ValueError("Question text is required")
    qtype = canonical_type(draft.type)
    if qtype is None:
        raise ValueError("Select a question type")
    row = {
        "question_text": text,
        "question_type": qtype,
        "options": None,
        "correct_answer": None,
        "points": draft.points,
        "word_limit": draft.word_limit,
        "rubric": draft.rubric,
    }
    correct = (draft.correct_answer or "").strip()
    if qtype == MULTIPLE_CHOICE:
        options = [o.strip() for o in parse_options(draft.options or [])]
        if len(options) < 2:
            raise ValueError("Multiple choice questions need at least two options")
        if not correct:
            raise ValueError("Enter the correct answer")
        if correct not in options:
            raise ValueError("The correct answer must be one of the options")
        row["options"] = options
        row["correct_answer"] = correct
    elif qtype == SHORT_ANSWER:
        if not correct:
            raise ValueError("Enter the correct answer")
        row["correct_answer"] = correct
    elif qtype == MATCHING:
        raw_pairs = [p.model_dump() for p in draft.pairs] if draft.pairs else (draft.options or [])
        pairs = parse_pairs(raw_pairs)
        if not pairs or any(not p.left.strip() or not p.right.strip() for p in pairs):
            raise ValueError("Matching questions need at least one complete pair")
        row["options"] = [{"left": p.left.strip(), "right": p.right.strip()} for p in pairs]
    return row


class _Attachment:
    def __init__(self, filename: str, content_type: Optional[str], payload: bytes):
        self.filename = filename
        self.content_type = content_type
        self.payload = payload


class AuthoringWizard:
    """State machine behind the create flow."""

    def __init__(self):
        self.step = 1
        self.title = ""
        self.description = ""
        self.question_type = ""
        self.difficulty = ""
        self.time_estimate = DEFAULT_TIME_ESTIMATE
        self.image: Optional[_Attachment] = None
        self.document: Optional[_Attachment] = None
        self.questions: List[dict] = []
        self.status = "idle"

    # step 1
    def set_details(self, title: Optional[str] = None, description: Optional[str] = None,
                    question_type: Optional[str] = None, difficulty: Optional[str] = None,
                    time_estimate: Optional[str] = None) -> None:
        if title is not None:
            self.title = title.strip()
        if description is not None:
            self.description = description.strip()
        if question_type is not None:
            self.question_type = canonical_type(question_type) or ""
        if difficulty is not None:
            level = difficulty.strip().lower()
            self.difficulty = level if level in DIFFICULTIES else ""
        if time_estimate is not None and time_estimate.strip():
            self.time_estimate = time_estimate.strip()

    # step 2
    def attach_image(self, filename: str, content_type: Optional[str], payload: bytes) -> None:
        ctype = validate_image(filename, content_type, payload)
        self.image = _Attachment(filename, ctype, payload)

    def clear_image(self) -> None:
        self.image = None

    def attach_document(self, filename: str, payload: bytes, content_type: Optional[str] = None) -> None:
        validate_document(filename, payload)
        self.document = _Attachment(filename, content_type, payload)

    # step 3
    def add_question(self, draft: Union[QuestionDraft, dict]) -> int:
        self.questions.append(validate_question_draft(draft))
        return len(self.questions) - 1

    def remove_question(self, index: int) -> None:
        if index < 0 or index >= len(self.questions):
            raise IndexError("no question at that position")
        self.questions.pop(index)

    def can_advance(self) -> bool:
        if self.step == 1:
            return all([self.title, self.description, self.question_type, self.difficulty])
        if self.step == 2:
            return True
        return False

    def next_step(self) -> int:
        if not self.can_advance():
            raise ValueError("Complete the required fields before continuing")
        self.step += 1
        return self.step

    def prev_step(self) -> int:
        if self.step > 1 and self.status == "idle":
            self.step -= 1
        return self.step

    def can_submit(self) -> bool:
        return self.step == 3 and self.status == "idle" and len(self.questions) > 0

    def retry(self) -> None:
        """Return to the question list after a failed submission."""
        if self.status == "error":
            self.status = "idle"

    def submit(self, session: Session, storage: ObjectStorage, channel: Optional[ContentChannel] = None,
               user_id: Optional[int] = None) -> models.PracticeContent:
        """Write the content row, attachments and questions, in that order."""
        if not self.can_submit():
            raise ValueError("Please fill in all required fields and add at least one question.")
        self.status = "uploading"
        content_repo = repositories.ContentRepository(session)
        content: Optional[models.PracticeContent] = None
        content_id: Optional[int] = None
        try:
            content = content_repo.create(models.PracticeContent(
                title=self.title,
                description=self.description,
                difficulty=self.difficulty,
                time_estimate=self.time_estimate,
                question_type=self.question_type,
                created_by=user_id,
            ))
            content_id = content.id
            if self.image is not None:
                path = storage.object_path(self.image.filename, prefix="images")
                storage.upload(path, self.image.payload, self.image.content_type)
                content.image_path = path
                content = content_repo.update(content)
            if self.document is not None:
                path = storage.object_path(self.document.filename, prefix="documents")
                storage.upload(path, self.document.payload, self.document.content_type)
                document = repositories.DocumentRepository(session).create(
                    models.Document(title=self.title, description=self.description, file_url=path)
                )
                content.document_id = document.id
                content = content_repo.update(content)
            repositories.QuestionRepository(session).create_many(
                [models.Question(practice_content_id=content.id, **row) for row in self.questions]
            )
        except Exception as exc:
            session.rollback()
            self.status = "error"
            logger.exception("content upload failed (content_id=%s)", content_id)
            raise AuthoringError("Failed to upload content", content_id=content_id) from exc
        self.status = "success"
        if channel is not None:
            channel.publish({
                "event": "INSERT",
                "table": "practice_content",
                "record": {
                    "id": content.id,
                    "title": content.title,
                    "difficulty": content.difficulty,
                    "question_type": content.question_type,
                },
            })
        return content


def build_wizard(details: dict, questions: List[Any], image: Optional[tuple] = None,
                 document: Optional[tuple] = None) -> AuthoringWizard:
    """Drive a wizard through all three steps from a single request."""
    wizard = AuthoringWizard()
    wizard.set_details(**details)
    wizard.next_step()
    if image is not None:
        wizard.attach_image(*image)
    if document is not None:
        wizard.attach_document(*document)
    wizard.next_step()
    for q in questions:
        wizard.add_question(q)
    return wizard
