"""Authoritative game state machine.

Every mutation is a read -> compute -> single conditional write cycle run while
holding the game's lock, so two buzz-ins (or a guess racing a disconnect) can
never both see "nobody has buzzed". Callers that broadcast the result should
do so inside ``exclusive(game_id)`` so room updates go out in write order.
"""
import logging
import random
import time
import uuid
from dataclasses import replace
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple

from tunebuzz.errors import Conflict, Forbidden, GameOver, InvalidInput, NotFound, VersionConflict
from tunebuzz.store import GAMES, KeyedStore
from .locks import KeyedLocks
from .playlist import load_catalog, sample
from .records import Game, PlayerRef, Round, RoundStatus, UserScore
from .scoring import score_current_round

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


def _round_count(value: Any) -> int:
    """``numRounds`` as an int; only whole numbers (or their strings) pass."""
    if isinstance(value, bool):
        raise InvalidInput(f'numRounds must be an integer, got {value!r}')
    if isinstance(value, float):
        if not value.is_integer():
            raise InvalidInput(f'numRounds must be an integer, got {value!r}')
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidInput(f'numRounds must be an integer, got {value!r}') from None


class GuessOutcome(NamedTuple):
    state: Dict[str, Any]
    correct: Optional[bool]


class GameEngine:
    def __init__(
        self,
        store: KeyedStore,
        locks: Optional[KeyedLocks] = None,
        cas_attempts: int = 3,
        clock: Callable[[], int] = now_ms,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.locks = locks or KeyedLocks()
        self.cas_attempts = max(1, int(cas_attempts))
        self.clock = clock
        self.rng = rng

    def exclusive(self, game_id: str):
        return self.locks.hold(f'game:{game_id}')

    # ---- reads ----

    def _load(self, game_id: str) -> Tuple[Game, int]:
        record = self.store.get(GAMES, game_id)
        return Game.from_dict(record.data), record.version

    def get_game(self, game_id: str) -> Game:
        return self._load(game_id)[0]

    def get_state(self, game_id: str) -> Dict[str, Any]:
        return self.get_game(game_id).to_state()

    def find_by_room_code(self, room_code: str) -> List[Dict[str, Any]]:
        return [Game.from_dict(doc).to_state() for doc in self.store.query(GAMES, 'roomCode', room_code)]

    def round_answers(self, game_id: str, round_num: Any) -> Dict[str, Any]:
        """Reveal the song behind a round once that round is over."""
        try:
            round_num = int(round_num)
        except (TypeError, ValueError):
            raise InvalidInput(f'invalid round number: {round_num!r}') from None
        game = self.get_game(game_id)
        if not 1 <= round_num <= game.num_rounds:
            raise NotFound(f'game {game_id} has no round {round_num}')
        if not game.rounds[round_num - 1].is_round_over:
            raise Forbidden(f'round {round_num} is still being played')
        return game.playlist[round_num - 1].to_dict()

    # ---- mutation plumbing ----

    def _mutate(self, game_id: str, compute: Callable[[Game], Tuple[Game, Any]]) -> Tuple[Game, Any]:
        with self.exclusive(game_id):
            for attempt in range(1, self.cas_attempts + 1):
                game, version = self._load(game_id)
                next_game, result = compute(game)
                if next_game is game:
                    return game, result
                next_game.check_invariants()
                try:
                    self.store.put(GAMES, game_id, next_game.to_dict(), expected_version=version)
                except VersionConflict:
                    logger.warning(f"[cas-retry] game={game_id} attempt={attempt} lost a concurrent write")
                    continue
                return next_game, result
        raise Conflict(f'game {game_id} kept changing underneath the update, try again')

    @staticmethod
    def _ensure_active(game: Game) -> None:
        if game.is_game_over:
            raise GameOver(f'game {game.id} is over')

    # ---- transitions ----

    def create(self, room_code: str, genre: str, users: List[Any], num_rounds: Any) -> Dict[str, Any]:
        if not isinstance(room_code, str) or not room_code.strip():
            raise InvalidInput('roomCode is required')
        if not isinstance(genre, str) or not genre.strip():
            raise InvalidInput('genre is required')
        if not isinstance(users, list) or not users:
            raise InvalidInput('at least one user is required')
        players = [u if isinstance(u, PlayerRef) else PlayerRef.from_dict(u) for u in users]
        if len({p.id for p in players}) != len(players):
            raise InvalidInput('user ids must be unique')
        num_rounds = _round_count(num_rounds)

        catalog = load_catalog(self.store, genre)
        if not catalog:
            raise InvalidInput(f'no songs available for genre {genre!r}')
        playlist = sample(catalog, num_rounds, self.rng)
        rounds = [Round(round_num=i + 1) for i in range(len(playlist))]

        game = Game(
            id=uuid.uuid4().hex,
            room_code=room_code,
            music_genre=genre,
            user_scores=[UserScore.for_player(p) for p in players],
            num_rounds=len(rounds),
            current_round=1,
            rounds=rounds,
            round_status=RoundStatus.WAITING_START,
            playlist=playlist,
            is_game_over=False,
        )
        game.check_invariants()
        self.store.put(GAMES, game.id, game.to_dict())
        logger.info(f"[create] game={game.id} room={room_code} genre={genre} rounds={game.num_rounds} players={len(players)}")
        return game.to_state()

    def overwrite(self, game_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """Raw overwrite of a stored game with a full record."""
        game = Game.from_dict(record)
        if game.id != game_id:
            raise InvalidInput(f'record id {game.id} does not match {game_id}')
        game.check_invariants()
        updated, _ = self._mutate(game_id, lambda current: (game, None))
        logger.info(f"[overwrite] game={game_id}")
        return updated.to_dict()

    def set_round_status(self, game_id: str, status: Any) -> Dict[str, Any]:
        status = RoundStatus.parse(status)

        def compute(game):
            self._ensure_active(game)
            return game.evolve(round_status=status), None

        game, _ = self._mutate(game_id, compute)
        logger.info(f"[round-status] game={game_id} status={status.value}")
        return game.to_state()

    def buzz_in(self, game_id: str, user_id: str) -> Dict[str, Any]:
        def compute(game):
            self._ensure_active(game)
            holder = game.buzzed_in_user_id
            if holder is not None:
                raise Conflict('already buzzed')
            if game.score_for(user_id) is None:
                raise NotFound(f'userId: {user_id} not found in game: {game_id}')
            stamp = self.clock()
            scores = [
                replace(s, buzzed_in_timestamp=stamp) if s.user_id == user_id else s
                for s in game.user_scores
            ]
            return game.evolve(user_scores=scores, round_status=RoundStatus.PAUSED), None

        game, _ = self._mutate(game_id, compute)
        logger.info(f"[buzz-in] game={game_id} user={user_id} round={game.current_round}")
        return game.to_state()

    @staticmethod
    def _cleared(game: Game) -> Game:
        scores = [replace(s, buzzed_in_timestamp=None) for s in game.user_scores]
        return game.evolve(user_scores=scores, round_status=RoundStatus.RESUMED)

    def clear_buzz_in(self, game_id: str) -> Dict[str, Any]:
        def compute(game):
            self._ensure_active(game)
            return self._cleared(game), None

        game, _ = self._mutate(game_id, compute)
        logger.info(f"[buzz-clear] game={game_id}")
        return game.to_state()

    def apply_guess(self, game_id: str, player_id: str, guess: str) -> GuessOutcome:
        if not isinstance(guess, str):
            raise InvalidInput('guess must be a string')

        def compute(game):
            self._ensure_active(game)
            return score_current_round(game, player_id, guess)

        game, correct = self._mutate(game_id, compute)
        logger.info(f"[guess] game={game_id} player={player_id} round={game.current_round} correct={correct}")
        return GuessOutcome(game.to_state(), correct)

    def advance_round(self, game_id: str) -> Dict[str, Any]:
        def compute(game):
            self._ensure_active(game)
            rounds = list(game.rounds)
            idx = game.current_index
            rounds[idx] = replace(rounds[idx], is_round_over=True)
            next_round = game.current_round + 1
            if next_round > game.num_rounds:
                return game.evolve(
                    rounds=rounds,
                    current_round=None,
                    is_game_over=True,
                    round_status=RoundStatus.ENDED,
                ), None
            return game.evolve(
                rounds=rounds,
                current_round=next_round,
                round_status=RoundStatus.WAITING_START,
            ), None

        game, _ = self._mutate(game_id, compute)
        if game.is_game_over:
            logger.info(f"[finish] game={game_id} finished after {game.num_rounds} rounds")
        else:
            logger.info(f"[advance] game={game_id} round -> {game.current_round}")
        return game.to_state()

    def disconnect_cleanup(self, game_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        """Release the buzz-in held by a departing player.

        Returns the new state, or ``None`` if the player held nothing.
        """
        def compute(game):
            if game.buzzed_in_user_id != user_id:
                return game, False
            return self._cleared(game), True

        game, changed = self._mutate(game_id, compute)
        if not changed:
            return None
        logger.info(f"[disconnect] game={game_id} user={user_id} released buzz-in")
        return game.to_state()
