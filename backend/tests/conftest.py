import os
import sys
import threading
import pytest

# Ensure the backend root (containing the `duelroom` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from config import Config
from duelroom import create_app, get_lobby, socketio
from duelroom.errors import ExternalFetchFailure


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    TOKEN_SECRET = 'test-token-secret-0123456789abcdef0123456789abcdef'
    CARD_FETCH_RETRIES = 0


class FakeCatalog:
    """Stands in for the card catalog; hands out numbered URLs."""

    def __init__(self, fail=False):
        self.fail = fail
        self.calls = 0
        self._lock = threading.Lock()

    def random_card_url(self):
        with self._lock:
            self.calls += 1
            n = self.calls
        if self.fail:
            raise ExternalFetchFailure('catalog down')
        return f'https://cards.test/{n}.jpg'


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        yield application


@pytest.fixture()
def catalog():
    return FakeCatalog()


@pytest.fixture()
def lobby(flask_app, catalog):
    room_lobby = get_lobby(flask_app)
    room_lobby.duels.catalog = catalog
    return room_lobby


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def connect(flask_app, lobby):
    """Factory for Socket.IO test clients on /ws; all are disconnected on teardown."""
    opened = []

    def _connect():
        test_client = socketio.test_client(flask_app, namespace='/ws')
        test_client.get_received('/ws')  # drop 'connected'
        opened.append(test_client)
        return test_client

    yield _connect
    for test_client in opened:
        try:
            test_client.disconnect(namespace='/ws')
        except Exception:
            pass
