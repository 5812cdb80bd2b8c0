import io

import pytest
from PIL import Image
from sqlmodel import Session

from literacy_practice import models, repositories
from literacy_practice.authoring import AuthoringError, AuthoringWizard, build_wizard, validate_question_draft
from literacy_practice.database import engine
from literacy_practice.realtime import ContentChannel
from literacy_practice.storage import ObjectStorage, StorageError
from literacy_practice.utils.uploads import UploadRejected


def _make_png() -> bytes:
    img = Image.new("RGB", (64, 32), "white")
    bio = io.BytesIO()
    img.save(bio, format="PNG")
    return bio.getvalue()


class BrokenStorage(ObjectStorage):
    def upload(self, path, payload, content_type=None, upsert=False):
        raise StorageError("bucket unavailable")


DETAILS = {
    'title': 'Night Sky',
    'description': 'Maria looks at the stars.',
    'question_type': 'Multiple Choice',
    'difficulty': 'Easy',
}
MC_DRAFT = {'text': 'What did Maria see?', 'type': 'multiple-choice', 'options': ['Stars', 'Rain'], 'correct_answer': 'Stars'}


def test_multiple_choice_draft_requires_valid_answer():
    with pytest.raises(ValueError):
        validate_question_draft({'text': 'Q', 'type': 'multiple-choice', 'options': ['only one'], 'correct_answer': 'only one'})
    with pytest.raises(ValueError):
        validate_question_draft({'text': 'Q', 'type': 'multiple-choice', 'options': ['a', 'b'], 'correct_answer': 'c'})
    row = validate_question_draft(MC_DRAFT)
    assert row['options'] == ['Stars', 'Rain']
    assert row['question_type'] == 'multiple-choice'


def test_other_draft_rules():
    with pytest.raises(ValueError):
        validate_question_draft({'text': '', 'type': 'paragraph'})
    with pytest.raises(ValueError):
        validate_question_draft({'text': 'Q', 'type': 'essay'})
    with pytest.raises(ValueError):
        validate_question_draft({'text': 'Q', 'type': 'short-answer'})
    with pytest.raises(ValueError):
        validate_question_draft({'text': 'Q', 'type': 'matching', 'pairs': [{'left': 'a', 'right': ' '}]})
    row = validate_question_draft({'text': 'Q', 'type': 'matching', 'pairs': [{'left': 'a', 'right': 'b'}]})
    assert row['options'] == [{'left': 'a', 'right': 'b'}]
    assert validate_question_draft({'text': 'Write', 'type': 'paragraph', 'rubric': 'two details'})['rubric'] == 'two details'


def test_wizard_step_gating():
    wizard = AuthoringWizard()
    assert not wizard.can_advance()
    with pytest.raises(ValueError):
        wizard.next_step()
    wizard.set_details(title='T', description='D', question_type='paragraph', difficulty='extreme')
    assert not wizard.can_advance()
    wizard.set_details(difficulty='hard')
    assert wizard.next_step() == 2
    assert wizard.can_advance()
    assert wizard.next_step() == 3
    assert not wizard.can_submit()
    wizard.add_question({'text': 'Explain', 'type': 'paragraph'})
    assert wizard.can_submit()
    wizard.remove_question(0)
    assert not wizard.can_submit()
    assert wizard.prev_step() == 2


def test_wizard_rejects_bad_image():
    wizard = AuthoringWizard()
    with pytest.raises(UploadRejected) as exc:
        wizard.attach_image('notes.txt', 'text/plain', b'hello')
    assert exc.value.status_code == 415
    with pytest.raises(UploadRejected) as exc:
        wizard.attach_image('fake.png', 'image/png', b'not really a png')
    assert exc.value.status_code == 415
    wizard.attach_image('ok.png', 'image/png', _make_png())
    assert wizard.image is not None
    wizard.clear_image()
    assert wizard.image is None


def test_submit_writes_content_questions_and_publishes(tmp_path):
    store = ObjectStorage(tmp_path, 'practice-materials', 'secret')
    channel = ContentChannel()
    sub = channel.subscribe()
    wizard = build_wizard(
        DETAILS,
        [MC_DRAFT, {'text': 'Why?', 'type': 'short-answer', 'correct_answer': 'dark'}],
        image=('sky.png', 'image/png', _make_png()),
        document=('story.txt', b'Once upon a time', 'text/plain'),
    )
    with Session(engine) as session:
        content = wizard.submit(session, store, channel=channel)
        assert wizard.status == 'success'
        assert content.question_type == 'multiple-choice'
        assert content.difficulty == 'easy'
        assert store.exists(content.image_path)
        document = repositories.DocumentRepository(session).get(content.document_id)
        assert store.exists(document.file_url)
        rows = repositories.QuestionRepository(session).list_for_content(content.id)
        assert [r.question_type for r in rows] == ['multiple-choice', 'short-answer']
    event = sub.get(timeout=1)
    assert event['event'] == 'INSERT'
    assert event['record']['id'] == content.id


def test_submit_failure_leaves_orphaned_content(tmp_path):
    store = BrokenStorage(tmp_path, 'practice-materials', 'secret')
    wizard = build_wizard(DETAILS, [MC_DRAFT], image=('sky.png', 'image/png', _make_png()))
    with Session(engine) as session:
        with pytest.raises(AuthoringError) as exc:
            wizard.submit(session, store)
        assert wizard.status == 'error'
        content_id = exc.value.content_id
        assert content_id is not None
        assert session.get(models.PracticeContent, content_id) is not None
        assert repositories.QuestionRepository(session).list_for_content(content_id) == []
    wizard.retry()
    assert wizard.status == 'idle'
    assert wizard.can_submit()
