import os
import random
import sys
import pytest

# Ensure the backend root (containing the `tunebuzz` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from tunebuzz import create_app, db, socketio
from tunebuzz.services import get_services
from tunebuzz.services.games.engine import GameEngine
from tunebuzz.services.games.locks import KeyedLocks
from tunebuzz.services.games.playlist import seed_catalog
from tunebuzz.services.lobby import LobbyManager
from tunebuzz.store import MemoryStore


GENRE = '90s'

SONGS = [
    {
        'name': 'Bohemian Rhapsody',
        'albumName': 'A Night at the Opera',
        'artistName': 'Queen',
        'releaseDate': '1975-10-31',
        'acceptedSongNames': ['bohemian rhapsody'],
        'acceptedArtistNames': ['queen'],
        'img': 'https://img.example/queen.jpg',
        'musicSample': 'https://audio.example/queen.mp3',
    },
    {
        'name': 'Smells Like Teen Spirit',
        'albumName': 'Nevermind',
        'artistName': 'Nirvana',
        'releaseDate': '1991-09-10',
        'acceptedSongNames': ['smells like teen spirit', 'teen spirit'],
        'acceptedArtistNames': ['nirvana'],
        'img': 'https://img.example/nirvana.jpg',
        'musicSample': 'https://audio.example/nirvana.mp3',
    },
    {
        'name': 'Wonderwall',
        'albumName': "(What's the Story) Morning Glory?",
        'artistName': 'Oasis',
        'releaseDate': '1995-10-30',
        'acceptedSongNames': ['wonderwall'],
        'acceptedArtistNames': ['oasis'],
        'img': 'https://img.example/oasis.jpg',
        'musicSample': 'https://audio.example/oasis.mp3',
    },
    {
        'name': 'No Scrubs',
        'albumName': 'FanMail',
        'artistName': 'TLC',
        'releaseDate': '1999-02-02',
        'acceptedSongNames': ['no scrubs'],
        'acceptedArtistNames': ['tlc'],
        'img': 'https://img.example/tlc.jpg',
        'musicSample': 'https://audio.example/tlc.mp3',
    },
]


def players(n):
    return [{'id': f'p{i}', 'displayName': f'Player {i}', 'isHost': i == 1} for i in range(1, n + 1)]


def answer_for(state, engine):
    """A correct guess for the game's current round."""
    song = engine.get_game(state['gameId']).current_song
    return f'{song.accepted_song_names[0]} by {song.accepted_artist_names[0]}'


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    STORE_BACKEND = 'sql'
    STORE_RETRY_WAIT_MS = 0
    GAME_LOCK_TIMEOUT_SEC = 2
    CORS_ORIGINS = '*'
    LOG_LEVEL = 'DEBUG'


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        db.create_all()
        seed_catalog(get_services().store, SONGS, genre=GENRE)
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
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


@pytest.fixture()
def store():
    memory = MemoryStore(retry_wait_ms=0)
    seed_catalog(memory, SONGS, genre=GENRE)
    return memory


@pytest.fixture()
def engine(store):
    return GameEngine(store, KeyedLocks(timeout_sec=2), rng=random.Random(7))


@pytest.fixture()
def lobby(store):
    return LobbyManager(store, KeyedLocks(timeout_sec=2))
