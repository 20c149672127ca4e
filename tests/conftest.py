import os
import sys
import pytest

# Ensure the project root (containing the `quickten` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from quickten import create_app
from quickten.db import db


class TestConfig:
    TESTING = True
    SECRET_KEY = 'test-secret'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    AUTO_CREATE_TABLES = True
    RATELIMIT_ENABLED = False
    LOG_LEVEL = 'WARNING'
    ROUND_SECONDS = 60
    WARNING_SECONDS = 10
    REWARD_SECONDS = 15
    TARGET = 10
    SOLVABLE_ONLY = True
    SCORE_STORE = 'sql'


class FakeClock:
    """Manually advanced stand-in for time.time."""

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def flask_app(clock):
    application = create_app(TestConfig)
    application.extensions['quickten_clock'] = clock
    with application.app_context():
        import quickten.models  # noqa: F401
        db.create_all()
    # requests push their own app context (and their own flask.g)
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def app_ctx(flask_app):
    with flask_app.app_context():
        yield flask_app
        db.session.remove()
