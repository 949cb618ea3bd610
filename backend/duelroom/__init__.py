from flask import Flask, current_app
from flask_cors import CORS
from flask_socketio import SocketIO
import click
from config import Config

allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)


def get_lobby(flask_app=None):
    return (flask_app or current_app).extensions['duelroom']


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Session core: one store and one bus registry for the whole process
    from duelroom.events import EventBusRegistry
    from duelroom.registry import SessionRegistry
    from duelroom.services.cards import CardCatalog
    from duelroom.services.duel import DuelEngine
    from duelroom.services.lobby import Lobby
    from duelroom.tokens import TokenService, load_or_create_secret

    secret = flask_app.config.get('TOKEN_SECRET') or load_or_create_secret(
        flask_app.config['TOKEN_SECRET_FILE']
    )
    registry = SessionRegistry(max_code_attempts=flask_app.config['JOIN_CODE_MAX_ATTEMPTS'])
    catalog = CardCatalog(
        url=flask_app.config['CARD_API_URL'],
        timeout=flask_app.config['CARD_FETCH_TIMEOUT_SEC'],
        retries=flask_app.config['CARD_FETCH_RETRIES'],
    )
    flask_app.extensions['duelroom'] = Lobby(
        registry=registry,
        tokens=TokenService(secret),
        buses=EventBusRegistry(max_listeners=flask_app.config['MAX_LISTENERS_PER_SESSION']),
        duels=DuelEngine(registry, catalog),
    )

    # Import and register blueprints here
    from duelroom.main import main
    flask_app.register_blueprint(main)

    from duelroom.api.sessions import sessions
    flask_app.register_blueprint(sessions, url_prefix='/api/sessions')

    # Register Socket.IO event handlers
    # Importing here ensures the handlers bind to the initialized socketio instance
    from duelroom.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    @click.command('rotate-secret')
    def rotate_secret_command():
        """Replaces the token signing secret. Every issued token stops working."""
        from duelroom.tokens import rotate_secret
        path = flask_app.config['TOKEN_SECRET_FILE']
        rotate_secret(path)
        print(f'Signing secret rotated in {path}; all outstanding tokens are now invalid.')

    flask_app.cli.add_command(rotate_secret_command)

    return flask_app
