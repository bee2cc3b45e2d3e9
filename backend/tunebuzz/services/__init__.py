from flask import current_app

from tunebuzz.store import make_store
from .games.engine import GameEngine
from .games.locks import KeyedLocks
from .lobby import LobbyManager

EXTENSION_KEY = 'tunebuzz'


class Services:
    def __init__(self, store, engine, lobby):
        self.store = store
        self.engine = engine
        self.lobby = lobby


def init_services(flask_app, store=None) -> Services:
    cfg = flask_app.config
    store = store or make_store(cfg)
    locks = KeyedLocks(timeout_sec=float(cfg.get('GAME_LOCK_TIMEOUT_SEC', 5)))
    services = Services(
        store=store,
        engine=GameEngine(store, locks, cas_attempts=int(cfg.get('STORE_CAS_ATTEMPTS', 3))),
        lobby=LobbyManager(store, locks, max_players=int(cfg.get('MAX_LOBBY_PLAYERS', 4))),
    )
    flask_app.extensions[EXTENSION_KEY] = services
    return services


def get_services() -> Services:
    return current_app.extensions[EXTENSION_KEY]


def game_engine() -> GameEngine:
    return get_services().engine


def lobby_manager() -> LobbyManager:
    return get_services().lobby
