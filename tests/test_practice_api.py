import uuid

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from literacy_practice.main import app
from literacy_practice.services import ContentService

client = TestClient(app)

QUESTIONS = [
    {
        'question_text': 'Which colour is the sky?',
        'question_type': 'multiple_choice',
        'options': '["Blue", "Green"]',
        'correct_answer': 'Blue',
        'points': 1,
    },
    {
        'question_text': 'Name the planet we live on.',
        'question_type': 'short-answer',
        'correct_answer': 'Earth',
        'points': 2,
    },
    {
        'question_text': 'Match the animal to its sound.',
        'question_type': 'matching',
        'options': [{'left': 'cat', 'right': 'meow'}, {'left': 'dog', 'right': 'woof'}],
        'points': 2,
    },
    {
        'question_text': 'An essay nobody can grade.',
        'question_type': 'essay',
    },
]


def _start(content_id, headers):
    r = client.post(f'/practice/{content_id}/attempts', headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


def test_list_filters_and_detail(register_user, make_content):
    headers, _ = register_user()
    tag = uuid.uuid4().hex[:8]
    easy = make_content(title=f'Ocean {tag}', difficulty='easy', question_type='multiple-choice')
    hard = make_content(title=f'Desert {tag}', difficulty='hard', question_type='paragraph',
                        description=f'Dry and hot {tag}')
    listed = client.get('/practice', params={'search': tag}, headers=headers).json()
    assert [c['id'] for c in listed] == [hard, easy]
    only_hard = client.get('/practice', params={'search': tag, 'difficulty': 'hard'}, headers=headers).json()
    assert [c['id'] for c in only_hard] == [hard]
    both_types = client.get(
        '/practice', params=[('search', tag), ('question_type', 'paragraph'), ('question_type', 'multiple-choice')],
        headers=headers,
    ).json()
    assert len(both_types) == 2
    assert client.get('/practice', params={'search': tag, 'limit': 1}, headers=headers).json()[0]['id'] == hard

    detail = client.get(f'/practice/{easy}', headers=headers)
    assert detail.status_code == 200
    assert detail.json()['title'] == f'Ocean {tag}'
    assert detail.json()['image_url'] is None
    missing = client.get('/practice/987654', headers=headers)
    assert missing.status_code == 404
    assert missing.json()['detail'] == 'Failed to load practice content'


def test_list_degrades_to_empty_on_backend_error(register_user, monkeypatch):
    headers, _ = register_user()

    def boom(self, limit=None):
        raise OperationalError('select', {}, Exception('down'))

    monkeypatch.setattr('literacy_practice.repositories.ContentRepository.list_recent', boom)
    r = client.get('/practice', headers=headers)
    assert r.status_code == 200
    assert r.json() == []


def test_attempt_flow_grades_and_submit_is_idempotent(register_user, make_content):
    headers, _ = register_user()
    content_id = make_content(questions=QUESTIONS)
    attempt = _start(content_id, headers)
    assert attempt['is_sample'] is False
    assert attempt['total_points'] == 5
    assert [q['type'] for q in attempt['questions']] == ['multiple-choice', 'short-answer', 'matching']
    assert all('correct_answer' not in q for q in attempt['questions'])
    ids = [q['id'] for q in attempt['questions']]
    base = f"/practice/{content_id}/attempts/{attempt['attempt_id']}"

    saved = client.put(f'{base}/answers', headers=headers, json={'answers': {
        ids[0]: 'Blue', ids[1]: ' earth ', ids[2]: ['meow', 'meow'], 'bogus': 'x',
    }})
    assert saved.json() == {'accepted': ids, 'ignored': ['bogus']}

    first = client.post(f'{base}/submit', headers=headers).json()
    assert first['score'] == 4
    assert first['total_points'] == 5
    assert first['correct_answers'] == 2
    assert first['feedback'][ids[2]]['message'] == 'You matched 1 out of 2 items correctly.'
    assert first['summary'] == 'Good effort! Review the feedback to improve further.'

    locked = client.put(f'{base}/answers', headers=headers, json={'answers': {ids[2]: ['meow', 'woof']}})
    assert locked.status_code == 409
    second = client.post(f'{base}/submit', headers=headers).json()
    assert second == first

    assert client.post(f'{base}/reset', headers=headers).status_code == 200
    client.put(f'{base}/answers', headers=headers, json={'answers': {
        ids[0]: 'Blue', ids[1]: 'Earth', ids[2]: ['meow', 'woof'],
    }})
    retry = client.post(f'{base}/submit', headers=headers).json()
    assert retry['score'] == 5
    assert retry['summary'] == "Excellent work! You've mastered this exercise."


def test_unknown_attempt_is_404(register_user, make_content):
    headers, _ = register_user()
    content_id = make_content(questions=QUESTIONS)
    r = client.post(f'/practice/{content_id}/attempts/doesnotexist/submit', headers=headers)
    assert r.status_code == 404
    attempt = _start(content_id, headers)
    other_headers, _ = register_user()
    stolen = client.post(f"/practice/{content_id}/attempts/{attempt['attempt_id']}/submit", headers=other_headers)
    assert stolen.status_code == 404


def test_sample_fallback_without_questions(register_user, make_content):
    headers, _ = register_user()
    content_id = make_content(questions=[QUESTIONS[3]])
    attempt = _start(content_id, headers)
    assert attempt['is_sample'] is True
    assert [q['id'] for q in attempt['questions']] == ['q1', 'q2', 'q3', 'q4', 'q5']
    assert attempt['total_points'] == 10


def test_sample_fallback_when_question_load_fails(register_user, make_content, monkeypatch):
    headers, _ = register_user()
    content_id = make_content(questions=QUESTIONS)

    def boom(self, content_id):
        raise OperationalError('select', {}, Exception('down'))

    monkeypatch.setattr('literacy_practice.repositories.QuestionRepository.list_for_content', boom)
    attempt = _start(content_id, headers)
    assert attempt['is_sample'] is True


def test_submit_updates_profile_stats_and_library(register_user, make_content):
    headers, _ = register_user(first_name='Ada', last_name='Reader')
    content_id = make_content(questions=QUESTIONS)
    attempt = _start(content_id, headers)
    base = f"/practice/{content_id}/attempts/{attempt['attempt_id']}"
    client.put(f'{base}/answers', headers=headers, json={'answers': {attempt['questions'][0]['id']: 'Blue'}})
    client.post(f'{base}/submit', headers=headers)
    client.post(f'{base}/submit', headers=headers)

    profile = client.get('/profile', headers=headers).json()
    assert profile['profile']['first_name'] == 'Ada'
    assert profile['stats']['practice_completed'] == 1
    assert profile['stats']['questions_answered'] == 3
    assert profile['stats']['correct_answers'] == 1
    assert profile['stats']['accuracy'] == 33
    assert profile['stats']['current_streak_days'] == 1
    assert profile['recent_activity'][0]['practice_content_id'] == content_id
    assert profile['recent_activity'][0]['score'] == 1

    assert client.post(f'/practice/{content_id}/save', headers=headers).status_code == 200
    assert client.post(f'/practice/{content_id}/save', headers=headers).status_code == 200
    lib = client.get('/library', headers=headers).json()
    assert [c['id'] for c in lib['saved']] == [content_id]
    assert [c['id'] for c in lib['recent']] == [content_id]
    assert lib['created'] == []


def test_profile_update(register_user):
    headers, _ = register_user()
    r = client.put('/profile', headers=headers, json={'school': 'Hillside High', 'grade': '10'})
    assert r.status_code == 200
    assert r.json()['school'] == 'Hillside High'
    assert r.json()['first_name'] == 'Test'
    assert client.put('/profile', headers=headers, json={'first_name': '   '}).status_code == 400
    assert client.put('/profile', headers=headers, json={'last_name': ''}).status_code == 422


def test_content_service_signs_image_urls(make_content):
    from sqlmodel import Session
    from literacy_practice.database import engine
    from literacy_practice.storage import storage

    path = storage.object_path('cover.png', prefix='images')
    content_id = make_content(image_path=path)
    with Session(engine) as session:
        svc = ContentService(session, storage)
        detail = svc.content_detail(svc.get_content(content_id))
    assert detail['image_url'].startswith(f'/storage/{path}?token=')
