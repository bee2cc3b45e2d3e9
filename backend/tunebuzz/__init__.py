from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_socketio import SocketIO
import json
import logging
import click
from config import Config

db = SQLAlchemy()
socketio = SocketIO(async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(getattr(logging, str(flask_app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO))

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or '*'
    db.init_app(flask_app)
    CORS(flask_app, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from tunebuzz.services import init_services
    init_services(flask_app)

    # Import and register blueprints here
    from tunebuzz.main import main
    flask_app.register_blueprint(main)

    from tunebuzz.api.pending_games import pending_games
    from tunebuzz.api.games import games
    flask_app.register_blueprint(pending_games, url_prefix='/api/v1/pending-games')
    flask_app.register_blueprint(games, url_prefix='/api/v1/games')

    from tunebuzz.errors import GameError

    @flask_app.errorhandler(GameError)
    def handle_game_error(err):
        flask_app.logger.info(f"[http-error] {err.code}: {err.message}")
        return jsonify(err.to_dict()), err.status_code

    from tunebuzz.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    with flask_app.app_context():
        import tunebuzz.models  # noqa: F401
        db.create_all()

    @click.command('db-reset')
    @click.option('--catalog', 'catalog_path', type=click.Path(exists=True, dir_okay=False), default=None,
                  help='JSON list of songs (each with a "genre") to seed the catalog with.')
    def db_reset_command(catalog_path):
        """Drops, recreates, and optionally seeds the song catalog."""
        from tunebuzz.services import get_services
        from tunebuzz.services.games.playlist import seed_catalog
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            if catalog_path:
                with open(catalog_path, encoding='utf-8') as fh:
                    entries = json.load(fh)
                count = seed_catalog(get_services().store, entries)
                click.echo(f'Seeded {count} catalog songs.')
            click.echo('Database has been reset!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
