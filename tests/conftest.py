import os
import sys
import pytest

# Ensure the project root (containing the `gamelab` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from gamelab import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = ['http://localhost:5173']
    MIN_TOURNAMENT_PLAYERS = 2
    MAX_ROUNDS_LIMIT = 20
    SESSION_NAME_MAX_LENGTH = 80


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import gamelab.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')


def as_player(player_id, name=None):
    """Request headers identifying ``player_id``."""
    return {'X-Player-Id': player_id, 'X-Player-Name': name or player_id.title()}


@pytest.fixture()
def file_app(tmp_path):
    """App on a file database, so separate app contexts get separate connections."""
    class FileConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'gamelab.db'}"

    application = create_app(FileConfig)
    with application.app_context():
        import gamelab.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()
