import logging
import uuid
from typing import Any, Optional

from tunebuzz.errors import Forbidden, InvalidInput, NotFound, Rejected, Stale
from tunebuzz.services.games.locks import KeyedLocks
from tunebuzz.services.games.records import PendingGame, PlayerRef
from tunebuzz.store import PENDING_GAMES, KeyedStore

logger = logging.getLogger(__name__)

MAX_PLAYERS = 4


def _player(value: Any) -> PlayerRef:
    return value if isinstance(value, PlayerRef) else PlayerRef.from_dict(value)


def _room_code(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput('roomCode is required')
    return value


class LobbyManager:
    """Pending (pre-game) rooms: create, join, look up and delete."""

    def __init__(self, store: KeyedStore, locks: Optional[KeyedLocks] = None, max_players: int = MAX_PLAYERS):
        self.store = store
        self.locks = locks or KeyedLocks()
        self.max_players = max_players

    def create_lobby(self, room_code: str, host: Any) -> PendingGame:
        lobby = PendingGame(id=uuid.uuid4().hex, room_code=_room_code(room_code), players=[_player(host)])
        self.store.put(PENDING_GAMES, lobby.id, lobby.to_dict())
        logger.info(f"[lobby-create] lobby={lobby.id} room={lobby.room_code} host={lobby.players[0].id}")
        return lobby

    def _by_room_code(self, room_code: str) -> PendingGame:
        docs = self.store.query(PENDING_GAMES, 'roomCode', room_code)
        if not docs:
            raise NotFound(f'no pending game for room {room_code}')
        return PendingGame.from_dict(docs[0])

    def join_lobby(self, room_code: str, player: Any) -> PendingGame:
        """Add ``player`` to the lobby for ``room_code``.

        The lobby is looked up by its exact room code, so a code that matches
        no lobby ends as ``NotFound``. Raises ``Rejected`` when the lobby is
        full or the player is already a member.
        """
        room_code = _room_code(room_code)
        player = _player(player)
        lobby_id = self._by_room_code(room_code).id

        with self.locks.hold(f'lobby:{lobby_id}'):
            lobby = PendingGame.from_dict(self.store.get(PENDING_GAMES, lobby_id).data)
            if len(lobby.players) >= self.max_players:
                raise Rejected('lobby_full', f'room {room_code} already has {self.max_players} players')
            if player.id in lobby.player_ids:
                raise Rejected('already_joined', f'player {player.id} is already in room {room_code}')

            updated = PendingGame(id=lobby.id, room_code=lobby.room_code, players=[*lobby.players, player])
            self.store.put(PENDING_GAMES, lobby.id, updated.to_dict())

        logger.info(f"[lobby-join] lobby={lobby_id} room={room_code} player={player.id} size={len(updated.players)}")
        return updated

    def find_lobby(self, lobby_id: str, room_code: str, requester_id: str) -> PendingGame:
        """Pre-check used by a client before joining an existing lobby."""
        lobby = PendingGame.from_dict(self.store.get(PENDING_GAMES, lobby_id).data)
        if lobby.room_code != room_code:
            raise Forbidden(f'pending game {lobby_id} is not for room {room_code}')
        if requester_id in lobby.player_ids:
            raise Stale(f'player {requester_id} is already part of pending game {lobby_id}')
        return lobby

    def delete_lobby(self, lobby_id: str) -> None:
        with self.locks.hold(f'lobby:{lobby_id}'):
            self.store.delete(PENDING_GAMES, lobby_id)
        logger.info(f"[lobby-delete] lobby={lobby_id}")
