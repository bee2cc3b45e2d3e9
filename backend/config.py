import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///tunebuzz.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # 'sql' (document table) or 'memory' (single-process dev)
    STORE_BACKEND = os.environ.get('STORE_BACKEND', 'sql')
    # Store call retry policy
    STORE_RETRY_ATTEMPTS = int(os.environ.get('STORE_RETRY_ATTEMPTS', '3'))
    STORE_RETRY_WAIT_MS = int(os.environ.get('STORE_RETRY_WAIT_MS', '50'))
    # Conditional-write retries when another process updated the same game
    STORE_CAS_ATTEMPTS = int(os.environ.get('STORE_CAS_ATTEMPTS', '3'))
    # Max wait for a per-game lock before reporting a conflict (seconds)
    GAME_LOCK_TIMEOUT_SEC = float(os.environ.get('GAME_LOCK_TIMEOUT_SEC', '5'))
    MAX_LOBBY_PLAYERS = int(os.environ.get('MAX_LOBBY_PLAYERS', '4'))
    CORS_ORIGINS = [o.strip() for o in os.environ.get(
        'CORS_ORIGINS', 'http://localhost:5173,http://127.0.0.1:5173'
    ).split(',') if o.strip()]
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
