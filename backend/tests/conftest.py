import os
import sys
import pytest
from flask import g

# Ensure the backend root (containing the `gameshow` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from gameshow import create_app, db, socketio, import_quiz_document


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    QUESTION_DURATION_SEC = 60
    REVIEW_DURATION_SEC = 6
    MIN_PLAYERS = 1
    MAX_PLAYERS = 30
    PIN_MAX_ATTEMPTS = 20
    NICKNAME_MAX_ATTEMPTS = 10
    CONFLICT_RETRIES = 3
    HOST_GRACE_SEC = 0


HOST = 'host-user-1'

QUIZ_DOC = {
    'id': 'quiz-three',
    'title': 'Three questions',
    'timePerQuestion': 60,
    'questions': [
        {'question': '2 + 2?', 'answers': ['3', '4', '5', '22'],
         'correctAnswers': [False, True, False, False], 'timeLimit': 60, 'points': 'standard'},
        {'question': 'Primes?', 'answers': ['2', '4', '7', '9'],
         'correctAnswers': [True, False, True, False], 'timeLimit': 60, 'points': 'double'},
        {'question': 'Sky colour?', 'answers': ['Blue', 'Green'],
         'correctAnswers': [True, False], 'timeLimit': 60, 'points': 'standard'},
    ],
}


def _app_for(config_class):
    application = create_app(config_class)

    @application.before_request
    def forget_cached_identity():
        # Test requests reuse the fixture's app context, so Flask-Login's
        # cached user on g would leak from one request into the next
        g.pop('_login_user', None)

    with application.app_context():
        # Ensure models are imported so tables are created
        import gameshow.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def flask_app():
    yield from _app_for(TestConfig)


@pytest.fixture()
def file_app(tmp_path):
    """App on a file-backed SQLite so separate app contexts get separate connections."""
    class FileConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'gameshow.db'}"

    yield from _app_for(FileConfig)


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def host_headers():
    return {'X-User-Id': HOST}


def add_quiz(doc=None):
    quiz = import_quiz_document(dict(doc or QUIZ_DOC))
    db.session.commit()
    return quiz.id


@pytest.fixture()
def quiz_id(flask_app):
    return add_quiz()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
