from flask_socketio import join_room, emit
from tunebuzz import socketio
from flask import current_app, request
from tunebuzz.errors import GameError, InvalidInput
from tunebuzz.services import game_engine
from tunebuzz.services.games.records import PlayerRef
from dataclasses import dataclass, field
from typing import Dict, Optional, Set
import threading


NAMESPACE = '/ws'


@dataclass
class PlayerSession:
    """What the server knows about one socket connection."""
    sid: str
    user: Optional[PlayerRef] = None
    game_id: Optional[str] = None
    room_code: Optional[str] = None
    rooms: Set[str] = field(default_factory=set)


_sessions: Dict[str, PlayerSession] = {}
_sessions_lock = threading.Lock()


def _get_sid() -> str:
    # request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _session() -> PlayerSession:
    sid = _get_sid()
    with _sessions_lock:
        return _sessions.setdefault(sid, PlayerSession(sid=sid))


def room_name(room_code: str) -> str:
    return f"room:{room_code}"


def members_of(room_code: str):
    with _sessions_lock:
        return [s for s in _sessions.values() if room_code in s.rooms]


# ---- broadcasts (callers hold the game's lock so order follows writes) ----

def broadcast_game_state(state: dict) -> None:
    socketio.emit('gameUpdated', state, to=room_name(state['roomCode']), namespace=NAMESPACE)


def broadcast_guess_result(room_code: str, user: dict, is_correct: bool) -> None:
    socketio.emit('updatePlayerGuessResult', (user, is_correct), to=room_name(room_code), namespace=NAMESPACE)


def _emit_error(room_code: Optional[str], message: str) -> None:
    if room_code:
        socketio.emit('socketError', message, to=room_name(room_code), namespace=NAMESPACE)
    else:
        emit('socketError', message)


def _guarded(room_code: Optional[str], event: str, action) -> None:
    """Run a socket action; failures become a ``socketError`` for the room."""
    try:
        action()
    except GameError as exc:
        current_app.logger.info(f"[socket-error] event={event} room={room_code} {exc.code}: {exc.message}")
        _emit_error(room_code, exc.message)
    except Exception:
        current_app.logger.exception(f"[socket-crash] event={event} room={room_code}")
        _emit_error(room_code, 'internal error')


def _require_text(value, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput(f'{name} is required')
    return value


# ---- connection lifecycle ----

def handle_connect(auth=None):
    _session()
    emit('connected', {'message': f'Connected to {NAMESPACE}'})


def handle_disconnect(reason=None):
    with _sessions_lock:
        session = _sessions.pop(_get_sid(), None)
    if not session or not session.user or not session.game_id:
        return
    game_id, room_code, user_id = session.game_id, session.room_code, session.user.id

    def cleanup():
        engine = game_engine()
        with engine.exclusive(game_id):
            state = engine.disconnect_cleanup(game_id, user_id)
            if state is not None:
                broadcast_game_state(state)

    _guarded(room_code, 'disconnect', cleanup)


def handle_create_user(user):
    def action():
        _session().user = PlayerRef.from_dict(user)

    _guarded(None, 'createUser', action)


def handle_create_game_data(game_data):
    def action():
        data = game_data if isinstance(game_data, dict) else {}
        session = _session()
        session.game_id = _require_text(data.get('gameId'), 'gameId')
        session.room_code = _require_text(data.get('roomCode'), 'roomCode')

    _guarded(None, 'createGameData', action)


def handle_create_room(room_code):
    def action():
        code = _require_text(room_code, 'roomCode')
        join_room(room_name(code))
        _session().rooms.add(code)
        current_app.logger.info(f"[room-create] room={code} sid={_get_sid()}")

    _guarded(None, 'createRoom', action)


def handle_join_room(room_code):
    def action():
        code = _require_text(room_code, 'roomCode')
        session = _session()
        join_room(room_name(code))
        session.rooms.add(code)
        users = [s.user.to_dict() for s in members_of(code) if s.user]
        current_app.logger.info(f"[room-join] room={code} user={session.user.id if session.user else None}")
        socketio.emit('userJoinedRoom', users, to=room_name(code), namespace=NAMESPACE)

    _guarded(None, 'joinRoom', action)


# ---- lobby relays ----

def handle_host_deleted_pending_game(room_code):
    _guarded(room_code, 'hostDidDeletePendingGame', lambda: socketio.emit(
        'pendingGameDeleted', to=room_name(_require_text(room_code, 'roomCode')), namespace=NAMESPACE))


def handle_host_created_game(room_code, game_id):
    _guarded(room_code, 'hostDidCreateGame', lambda: socketio.emit(
        'gameCreated', _require_text(game_id, 'gameId'), to=room_name(room_code), namespace=NAMESPACE))


def handle_pending_game_created(room_code, pending_game_id):
    _guarded(room_code, 'pendingGameCreated', lambda: socketio.emit(
        'leaveCurrentGameAndJoinPendingGame', _require_text(pending_game_id, 'pendingGameId'),
        to=room_name(room_code), namespace=NAMESPACE))


# ---- gameplay ----

def handle_round_status(game_id, room_code, round_status):
    def action():
        engine = game_engine()
        with engine.exclusive(game_id):
            broadcast_game_state(engine.set_round_status(game_id, round_status))

    _guarded(room_code, 'clientUpdatedRoundStatus', action)


def handle_buzz_in(game_id, room_code, user_id):
    def action():
        engine = game_engine()
        with engine.exclusive(game_id):
            state = engine.buzz_in(game_id, _require_text(user_id, 'userId'))
            broadcast_game_state(state)
            score = next(s for s in state['userScores'] if s['userId'] == user_id)
            socketio.emit(
                'updatePlayerGuessing',
                {'id': user_id, 'displayName': score['userName'], 'isHost': score['isHost']},
                to=room_name(state['roomCode']),
                namespace=NAMESPACE,
            )

    _guarded(room_code, 'playerBuzzedIn', action)


def handle_clear_buzz_in(game_id, room_code):
    def action():
        engine = game_engine()
        with engine.exclusive(game_id):
            broadcast_game_state(engine.clear_buzz_in(game_id))

    _guarded(room_code, 'clientClearedBuzzIn', action)


def handle_score_guess(game_id, room_code, user, guess):
    def action():
        player = PlayerRef.from_dict(user)
        engine = game_engine()
        with engine.exclusive(game_id):
            outcome = engine.apply_guess(game_id, player.id, guess)
            broadcast_game_state(outcome.state)
            if outcome.correct is not None:
                broadcast_guess_result(outcome.state['roomCode'], player.to_dict(), outcome.correct)

    _guarded(room_code, 'scoreGuess', action)


def handle_advance_round(game_id, room_code):
    def action():
        engine = game_engine()
        with engine.exclusive(game_id):
            broadcast_game_state(engine.advance_round(game_id))

    _guarded(room_code, 'clientAdvancedRound', action)


def handle_error(exc):
    # Raised before a handler ran, e.g. a client sent the wrong number of arguments.
    current_app.logger.warning(f"[socket-bad-event] sid={_get_sid()} error={exc!r}")
    emit('socketError', 'malformed event')


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on namespace '/ws'."""
    events = {
        'connect': handle_connect,
        'disconnect': handle_disconnect,
        'createUser': handle_create_user,
        'createGameData': handle_create_game_data,
        'createRoom': handle_create_room,
        'joinRoom': handle_join_room,
        'hostDidDeletePendingGame': handle_host_deleted_pending_game,
        'hostDidCreateGame': handle_host_created_game,
        'pendingGameCreated': handle_pending_game_created,
        'clientUpdatedRoundStatus': handle_round_status,
        'playerBuzzedIn': handle_buzz_in,
        'clientClearedBuzzIn': handle_clear_buzz_in,
        'scoreGuess': handle_score_guess,
        'clientAdvancedRound': handle_advance_round,
    }
    for name, handler in events.items():
        socketio.on_event(name, handler, namespace=NAMESPACE)
    socketio.on_error(NAMESPACE)(handle_error)
