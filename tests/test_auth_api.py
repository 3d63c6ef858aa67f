"""Tests for session auth, Kakao OAuth and the error envelope."""
from app.services.kakao_client import KakaoClient

from conftest import register


def test_health_and_root(client):
    assert client.get('/api/health').get_json() == {'ok': True}
    assert client.get('/').get_json()['ok'] is True


def test_me_without_session(client):
    resp = client.get('/api/auth/me')
    assert resp.status_code == 200
    assert resp.get_json() == {'ok': True, 'authenticated': False, 'user': None}


def test_register_normalizes_email_and_logs_in(client):
    user = register(client, email='  Bob@Example.COM ', name='Bob')
    assert user['email'] == 'bob@example.com'
    assert user['provider'] == 'local'

    me = client.get('/api/auth/me').get_json()
    assert me['authenticated'] is True
    assert me['user']['id'] == user['id']


def test_register_duplicate_email_conflicts(client, app):
    register(client, email='dup@example.com')
    other = app.test_client()
    resp = other.post('/api/auth/register', json={'email': 'DUP@example.com', 'password': 'x'})
    assert resp.status_code == 409
    assert resp.get_json()['code'] == 'EMAIL_TAKEN'


def test_register_requires_fields(client):
    resp = client.post('/api/auth/register', json={'email': 'a@b.c'})
    assert resp.status_code == 400
    body = resp.get_json()
    assert body['ok'] is False
    assert body['error'] == 'BAD_REQUEST'


def test_login_and_logout(client, app):
    register(client, email='carol@example.com', password='secret')
    client.post('/api/auth/logout')
    assert client.get('/api/auth/me').get_json()['authenticated'] is False

    bad = client.post('/api/auth/login', json={'email': 'carol@example.com', 'password': 'nope'})
    assert bad.status_code == 401
    assert bad.get_json()['code'] == 'INVALID_CREDENTIALS'

    ok = client.post('/api/auth/login', json={'email': 'Carol@example.com', 'password': 'secret'})
    assert ok.status_code == 200
    assert client.get('/api/auth/me').get_json()['authenticated'] is True


def test_logout_without_session_is_ok(client):
    assert client.post('/api/auth/logout').get_json() == {'ok': True}


def test_protected_endpoint_requires_login(client):
    resp = client.get('/api/taste-records')
    assert resp.status_code == 401
    assert resp.get_json()['code'] == 'UNAUTHORIZED'


def test_unknown_route_returns_json_404(client):
    resp = client.get('/api/does-not-exist')
    assert resp.status_code == 404
    assert resp.get_json() == {
        'ok': False, 'error': 'Not Found', 'path': '/api/does-not-exist', 'method': 'GET',
    }


def test_kakao_login_unconfigured(client):
    resp = client.get('/api/auth/kakao')
    assert resp.status_code == 500
    assert resp.get_json()['code'] == 'KAKAO_NOT_CONFIGURED'


def test_kakao_login_redirects_when_configured(client, app):
    app.config['KAKAO_CLIENT_ID'] = 'client-123'
    resp = client.get('/api/auth/kakao')
    assert resp.status_code == 302
    assert resp.headers['Location'].startswith('https://kauth.kakao.com/oauth/authorize?')
    assert 'client_id=client-123' in resp.headers['Location']


def test_kakao_callback_error_redirects(client):
    resp = client.get('/api/auth/kakao/callback?error=access_denied')
    assert resp.status_code == 302
    assert resp.headers['Location'].endswith('/before-login?error=kakao_auth_failed')

    resp = client.get('/api/auth/kakao/callback')
    assert resp.headers['Location'].endswith('/before-login?error=no_code')


def test_kakao_callback_creates_and_links_users(client, app, monkeypatch):
    monkeypatch.setattr(KakaoClient, 'exchange_code', lambda self, code: 'token-' + code)
    monkeypatch.setattr(KakaoClient, 'fetch_user', lambda self, token: {
        'id': 987654, 'email': None, 'nickname': None, 'profile_image': 'http://img',
    })

    resp = client.get('/api/auth/kakao/callback?code=abc')
    assert resp.status_code == 302
    assert resp.headers['Location'].endswith('/dashboard')

    me = client.get('/api/auth/me').get_json()['user']
    assert me['provider'] == 'kakao'
    assert me['email'] == 'kakao_987654@kakao.user'
    assert me['name'] == '카카오사용자7654'

    # Same Kakao id maps to the same account
    second = app.test_client()
    second.get('/api/auth/kakao/callback?code=def')
    assert second.get('/api/auth/me').get_json()['user']['id'] == me['id']


def test_kakao_callback_links_existing_email(client, app, monkeypatch):
    local = register(app.test_client(), email='dana@example.com', name='Dana')
    monkeypatch.setattr(KakaoClient, 'exchange_code', lambda self, code: 'token')
    monkeypatch.setattr(KakaoClient, 'fetch_user', lambda self, token: {
        'id': 42, 'email': 'Dana@example.com', 'nickname': 'dana', 'profile_image': None,
    })

    client.get('/api/auth/kakao/callback?code=abc')
    me = client.get('/api/auth/me').get_json()['user']
    assert me['id'] == local['id']
    assert me['provider'] == 'kakao'


def test_kakao_callback_failure_redirects(client, monkeypatch):
    def boom(self, code):
        raise RuntimeError('token endpoint down')

    monkeypatch.setattr(KakaoClient, 'exchange_code', boom)
    resp = client.get('/api/auth/kakao/callback?code=abc')
    assert resp.status_code == 302
    assert resp.headers['Location'].endswith('/before-login?error=kakao_callback_failed')
