import io
import json

from fastapi.testclient import TestClient
from PIL import Image

from literacy_practice import main
from literacy_practice.main import app
from literacy_practice.realtime import content_channel
from literacy_practice.storage import StorageError

client = TestClient(app)

FIELDS = {
    'title': 'The Lighthouse Keeper',
    'description': 'A keeper tends the lamp through a storm.',
    'question_type': 'short-answer',
    'difficulty': 'medium',
}
DRAFTS = [
    {'text': 'What does the keeper tend?', 'type': 'short-answer', 'correct_answer': 'The lamp'},
    {'text': 'Pick the weather.', 'type': 'multiple_choice', 'options': ['Storm', 'Sun'], 'correct_answer': 'Storm'},
    {'text': 'Match them.', 'type': 'matching', 'pairs': [{'left': 'lamp', 'right': 'light'}]},
]


def _make_png() -> bytes:
    img = Image.new("RGB", (32, 32), "yellow")
    bio = io.BytesIO()
    img.save(bio, format="PNG")
    return bio.getvalue()


def _form(questions=DRAFTS, **overrides):
    data = dict(FIELDS, questions=json.dumps(questions))
    data.update(overrides)
    return data


def test_create_with_attachments_and_play(register_user):
    headers, user_id = register_user()
    sub = content_channel.subscribe()
    try:
        png = _make_png()
        files = {
            'image': ('cover.png', png, 'image/png'),
            'document': ('story.pdf', b'%PDF-1.4 fake body', 'application/pdf'),
        }
        r = client.post('/create', data=_form(), files=files, headers=headers)
        assert r.status_code == 201, r.text
        created = r.json()
        assert created['question_count'] == 3
        assert created['image_path'].startswith('practice-materials/images/')
        event = sub.get(timeout=1)
        assert event['record']['id'] == created['id']
    finally:
        sub.close()

    detail = client.get(f"/practice/{created['id']}", headers=headers).json()
    image = client.get(detail['image_url'])
    assert image.status_code == 200
    assert image.content == png
    assert detail['document']['file_url'].startswith('/storage/practice-materials/documents/')
    assert client.get(f"/storage/{created['image_path']}", params={'token': 'bad'}).status_code == 403

    attempt = client.post(f"/practice/{created['id']}/attempts", headers=headers).json()
    assert attempt['is_sample'] is False
    assert [q['type'] for q in attempt['questions']] == ['short-answer', 'multiple-choice', 'matching']

    lib = client.get('/library', headers=headers).json()
    assert created['id'] in [c['id'] for c in lib['created']]


def test_create_requires_login():
    r = client.post('/create', data=_form())
    assert r.status_code == 401
    assert r.json()['login_url'] == '/auth?next=/create'


def test_create_validation_errors(register_user):
    headers, _ = register_user()
    assert client.post('/create', data=_form(questions=[]), headers=headers).status_code == 400
    assert client.post('/create', data=_form(difficulty='impossible'), headers=headers).status_code == 400
    bad_mc = [{'text': 'Q', 'type': 'multiple-choice', 'options': ['a', 'b'], 'correct_answer': 'z'}]
    r = client.post('/create', data=_form(questions=bad_mc), headers=headers)
    assert r.status_code == 400
    assert 'one of the options' in r.json()['detail']
    r = client.post('/create', data=dict(FIELDS, questions='not json'), headers=headers)
    assert r.status_code == 400
    r = client.post('/create', data=_form(questions=['oops']), headers=headers)
    assert r.status_code == 400
    assert r.json()['detail'] == 'Each question must be an object'


def test_create_rejects_bad_attachments(register_user, monkeypatch):
    headers, _ = register_user()
    files = {'image': ('cover.gif', b'GIF89a-not-really', 'image/gif')}
    assert client.post('/create', data=_form(), files=files, headers=headers).status_code == 415
    files = {'image': ('notes.txt', b'hello', 'text/plain')}
    assert client.post('/create', data=_form(), files=files, headers=headers).status_code == 415
    monkeypatch.setattr(main.settings, 'MAX_IMAGE_BYTES', 100)
    files = {'image': ('cover.png', _make_png() + b'\0' * 200, 'image/png')}
    r = client.post('/create', data=_form(), files=files, headers=headers)
    assert r.status_code == 413
    assert r.json()['detail'] == 'Image must be smaller than 100 bytes'


def test_create_backend_failure_is_502(register_user, monkeypatch):
    headers, _ = register_user()

    def broken_upload(path, payload, content_type=None, upsert=False):
        raise StorageError('bucket unavailable')

    monkeypatch.setattr(main.storage, 'upload', broken_upload)
    files = {'image': ('cover.png', _make_png(), 'image/png')}
    r = client.post('/create', data=_form(), files=files, headers=headers)
    assert r.status_code == 502
    assert r.json()['detail'] == 'Failed to upload content'
    assert r.json()['content_id'] is not None
