import uuid

from fastapi.testclient import TestClient

from literacy_practice import main
from literacy_practice.main import app
from literacy_practice.utils.rate_limit import InMemoryRateLimiter

client = TestClient(app)


def _payload(**overrides):
    data = {
        'email': f"reader-{uuid.uuid4().hex[:8]}@example.com",
        'password': 'password123',
        'confirm_password': 'password123',
        'first_name': 'Maria',
        'last_name': 'Lopez',
    }
    data.update(overrides)
    return data


def test_register_login_and_session():
    data = _payload()
    r = client.post('/auth/register', json=data)
    assert r.status_code == 201
    assert r.json()['email'] == data['email']
    dup = client.post('/auth/register', json=data)
    assert dup.status_code == 409
    bad = client.post('/auth/login', json={'email': data['email'], 'password': 'wrong-password'})
    assert bad.status_code == 401
    login = client.post('/auth/login', json={'email': data['email'].upper(), 'password': 'password123'})
    assert login.status_code == 200
    assert login.json()['token_type'] == 'bearer'
    headers = {'Authorization': f"Bearer {login.json()['access_token']}"}
    session = client.get('/auth/session', headers=headers).json()
    assert session['user']['email'] == data['email']
    assert session['profile']['first_name'] == 'Maria'


def test_register_validation():
    assert client.post('/auth/register', json=_payload(confirm_password='different1')).status_code == 422
    assert client.post('/auth/register', json=_payload(password='short', confirm_password='short')).status_code == 422
    assert client.post('/auth/register', json=_payload(email='not-an-email')).status_code == 422
    assert client.post('/auth/register', json=_payload(first_name='M')).status_code == 422


def test_anonymous_session_is_empty():
    r = client.get('/auth/session')
    assert r.json() == {'user': None, 'profile': None}
    r = client.get('/auth/session', headers={'Authorization': 'Bearer garbage'})
    assert r.json() == {'user': None, 'profile': None}


def test_gated_routes_return_login_url():
    for path in ('/practice', '/library', '/profile', '/practice/1'):
        r = client.get(path)
        assert r.status_code == 401
        assert r.json()['login_url'] == f'/auth?next={path}'
    r = client.get('/library', headers={'Authorization': 'Bearer garbage'})
    assert r.status_code == 401
    assert r.json()['detail'] == 'invalid token'


def test_browsers_are_redirected_to_login():
    r = client.get('/library', headers={'Accept': 'text/html'}, follow_redirects=False)
    assert r.status_code == 303
    assert r.headers['location'] == '/auth?next=/library'
    landing = client.get('/auth', params={'next': '/library'})
    assert landing.json()['next'] == '/library'
    assert client.get('/auth', params={'next': '//evil.example'}).json()['next'] == '/'


def test_unknown_route_is_json_404():
    r = client.get('/no/such/page')
    assert r.status_code == 404
    assert r.json() == {'detail': 'not found', 'path': '/no/such/page'}


def test_home_and_health():
    assert client.get('/health').json() == {'status': 'ok'}
    home = client.get('/')
    assert home.status_code == 200
    assert 'Literacy Practice' in home.text
    assert 'X-Request-ID' in home.headers


def test_login_rate_limited(monkeypatch):
    monkeypatch.setattr(main, '_rate_limiter', InMemoryRateLimiter())
    monkeypatch.setattr(main.settings, 'LOGIN_RATE_LIMIT_PER_MIN', 2)
    creds = {'email': 'nobody@example.com', 'password': 'whatever1'}
    assert client.post('/auth/login', json=creds).status_code == 401
    assert client.post('/auth/login', json=creds).status_code == 401
    limited = client.post('/auth/login', json=creds)
    assert limited.status_code == 429
    assert 'Retry-After' in limited.headers


def test_rate_limiter_window_slides():
    now = [100.0]
    limiter = InMemoryRateLimiter(clock=lambda: now[0])
    assert limiter.allow('k', 2, 60) == (True, 0)
    now[0] += 10
    assert limiter.allow('k', 2, 60) == (True, 0)
    allowed, retry_after = limiter.allow('k', 2, 60)
    assert not allowed and retry_after == 50
    now[0] += 50
    assert limiter.allow('k', 2, 60)[0]
    limiter.reset('k')
    assert limiter.allow('k', 1, 60) == (True, 0)
