import os
import tempfile

# Config reads the environment at import time
os.environ.setdefault('APP_ENV', 'development')
os.environ.setdefault('SECRET_KEY', 'test-secret-key')
os.environ.setdefault('DATA_DIR', tempfile.mkdtemp(prefix='tastelog-test-'))
os.environ.setdefault('SEED_DEMO_USER', 'false')

import pytest

from app import create_app
from config import TestConfig


@pytest.fixture
def app(tmp_path):
    class _Config(TestConfig):
        KUZU_DB_PATH = str(tmp_path / 'kuzu')
        UPLOAD_FOLDER = str(tmp_path / 'uploads')

    os.makedirs(_Config.KUZU_DB_PATH, exist_ok=True)
    return create_app(_Config)


@pytest.fixture
def client(app):
    return app.test_client()


def register(client, email='alice@example.com', password='pw1234', name='Alice'):
    resp = client.post('/api/auth/register', json={'email': email, 'password': password, 'name': name})
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()['user']


@pytest.fixture
def make_client(app):
    """Factory for extra logged-in clients, one per user."""
    def _make(email, name=None, password='pw1234'):
        c = app.test_client()
        user = register(c, email=email, password=password, name=name or email.split('@')[0])
        return c, user
    return _make


@pytest.fixture
def auth_client(make_client):
    c, user = make_client('alice@example.com', 'Alice')
    c.user = user
    return c
