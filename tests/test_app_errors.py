"""Tests for the JSON error envelope of the app shell."""
import io
import logging


def _add_failing_route(app):
    @app.route('/api/boom')
    def boom():
        raise RuntimeError('kuzu exploded')


def test_unhandled_error_shows_message_in_development(app, client, caplog):
    _add_failing_route(app)
    app.config['APP_ENV'] = 'development'

    with caplog.at_level(logging.ERROR):
        resp = client.get('/api/boom')

    assert resp.status_code == 500
    assert resp.get_json() == {
        'ok': False, 'error': 'SERVER_ERROR', 'code': 'SERVER_ERROR', 'message': 'kuzu exploded',
    }
    logged = [r for r in caplog.records if 'Unhandled error on GET /api/boom' in r.getMessage()]
    assert logged and logged[0].exc_info is not None


def test_unhandled_error_is_generic_in_production(app, client):
    _add_failing_route(app)
    app.config['APP_ENV'] = 'production'

    resp = client.get('/api/boom')
    assert resp.status_code == 500
    body = resp.get_json()
    assert body['code'] == 'SERVER_ERROR'
    assert body['message'] == 'Internal Server Error'


def test_wrong_method_is_json(client):
    resp = client.get('/api/auth/register')
    assert resp.status_code == 405
    body = resp.get_json()
    assert body['ok'] is False
    assert body['error'] == 'METHOD_NOT_ALLOWED'


def test_oversized_upload_is_json(app, auth_client):
    app.config['MAX_CONTENT_LENGTH'] = 1024
    data = {'file': (io.BytesIO(b'x' * 4096), 'big.png')}
    resp = auth_client.post('/api/uploads/guilds', data=data, content_type='multipart/form-data')
    assert resp.status_code == 413
    body = resp.get_json()
    assert body['ok'] is False
    assert body['error'] == 'PAYLOAD_TOO_LARGE'
