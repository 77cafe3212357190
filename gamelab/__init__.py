from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from gamelab.config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or Config.CORS_ORIGINS

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from gamelab.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/games')

    from gamelab.api.sessions import sessions
    flask_app.register_blueprint(sessions, url_prefix='/api/sessions')

    from gamelab.errors import GameError

    @flask_app.errorhandler(GameError)
    def handle_game_error(exc):
        return jsonify(exc.to_dict()), exc.status_code

    # Register Socket.IO event handlers on the initialized socketio instance
    from gamelab.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the session tables."""
        import gamelab.models  # noqa: F401
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
