"""Game, round, score and song records plus the client-facing projection.

Records travel as camelCase dicts, both in the store and on the wire.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from tunebuzz.errors import InvalidInput


class RoundStatus(str, Enum):
    WAITING_START = 'WAITING_START'
    STARTED = 'STARTED'
    PAUSED = 'PAUSED'
    RESUMED = 'RESUMED'
    PHASE_ENDED = 'PHASE_ENDED'
    ENDED = 'ENDED'

    @classmethod
    def parse(cls, value: Any) -> 'RoundStatus':
        try:
            return cls(value)
        except ValueError:
            raise InvalidInput(f'unknown round status: {value!r}') from None


def _require(data: Any, key: str, kind=None):
    if not isinstance(data, dict):
        raise InvalidInput(f'expected an object, got {type(data).__name__}')
    if key not in data:
        raise InvalidInput(f'missing field: {key}')
    value = data[key]
    if kind is not None and not isinstance(value, kind):
        raise InvalidInput(f'field {key} has the wrong type')
    return value


def _names(data: Dict[str, Any], key: str) -> List[str]:
    names = data.get(key)
    if names is None:
        return []
    if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
        raise InvalidInput(f'field {key} must be a list of strings')
    return list(names)


@dataclass(frozen=True)
class PlayerRef:
    id: str
    display_name: str = ''
    is_host: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PlayerRef':
        player_id = _require(data, 'id')
        if not isinstance(player_id, str) or not player_id.strip():
            raise InvalidInput('player id is required')
        return cls(
            id=player_id,
            display_name=str(data.get('displayName') or ''),
            is_host=bool(data.get('isHost', False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'displayName': self.display_name, 'isHost': self.is_host}


@dataclass(frozen=True)
class PendingGame:
    id: str
    room_code: str
    players: List[PlayerRef] = field(default_factory=list)

    @property
    def player_ids(self) -> List[str]:
        return [p.id for p in self.players]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PendingGame':
        return cls(
            id=_require(data, 'id', str),
            room_code=_require(data, 'roomCode', str),
            players=[PlayerRef.from_dict(p) for p in _require(data, 'players', list)],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'roomCode': self.room_code,
            'players': [p.to_dict() for p in self.players],
        }


@dataclass(frozen=True)
class SongEntry:
    name: str
    album_name: str = ''
    artist_name: str = ''
    release_date: str = ''
    accepted_artist_names: List[str] = field(default_factory=list)
    accepted_song_names: List[str] = field(default_factory=list)
    img: str = ''
    music_sample: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SongEntry':
        return cls(
            name=_require(data, 'name', str),
            album_name=data.get('albumName') or '',
            artist_name=data.get('artistName') or '',
            release_date=data.get('releaseDate') or '',
            accepted_artist_names=_names(data, 'acceptedArtistNames'),
            accepted_song_names=_names(data, 'acceptedSongNames'),
            img=data.get('img') or '',
            music_sample=data.get('musicSample') or '',
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'albumName': self.album_name,
            'artistName': self.artist_name,
            'releaseDate': self.release_date,
            'acceptedArtistNames': list(self.accepted_artist_names),
            'acceptedSongNames': list(self.accepted_song_names),
            'img': self.img,
            'musicSample': self.music_sample,
        }


@dataclass(frozen=True)
class UserScore:
    user_id: str
    user_name: str = ''
    is_host: bool = False
    total_score: int = 0
    buzzed_in_timestamp: Optional[int] = None

    @classmethod
    def for_player(cls, player: PlayerRef) -> 'UserScore':
        return cls(user_id=player.id, user_name=player.display_name, is_host=player.is_host)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UserScore':
        return cls(
            user_id=_require(data, 'userId', str),
            user_name=data.get('userName') or '',
            is_host=bool(data.get('isHost', False)),
            total_score=int(data.get('totalScore') or 0),
            buzzed_in_timestamp=data.get('buzzedInTimestamp'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'userId': self.user_id,
            'userName': self.user_name,
            'isHost': self.is_host,
            'totalScore': self.total_score,
            'buzzedInTimestamp': self.buzzed_in_timestamp,
        }


@dataclass(frozen=True)
class Round:
    round_num: int
    current_guess_phase: int = 1
    player_ids_guessed: List[str] = field(default_factory=list)
    correct_guess_player_id: Optional[str] = None
    is_round_over: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Round':
        return cls(
            round_num=int(_require(data, 'roundNum')),
            current_guess_phase=int(data.get('currentGuessPhase') or 1),
            player_ids_guessed=list(data.get('playerIdsGuessed') or []),
            correct_guess_player_id=data.get('correctGuessPlayerId'),
            is_round_over=bool(data.get('isRoundOver', False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'roundNum': self.round_num,
            'currentGuessPhase': self.current_guess_phase,
            'playerIdsGuessed': list(self.player_ids_guessed),
            'correctGuessPlayerId': self.correct_guess_player_id,
            'isRoundOver': self.is_round_over,
        }


@dataclass(frozen=True)
class Game:
    id: str
    room_code: str
    music_genre: str
    user_scores: List[UserScore]
    num_rounds: int
    current_round: Optional[int]
    rounds: List[Round]
    round_status: RoundStatus
    playlist: List[SongEntry]
    is_game_over: bool = False

    @property
    def current_index(self) -> Optional[int]:
        return self.current_round - 1 if self.current_round else None

    @property
    def current_song(self) -> Optional[SongEntry]:
        idx = self.current_index
        return self.playlist[idx] if idx is not None else None

    @property
    def current_round_record(self) -> Optional[Round]:
        idx = self.current_index
        return self.rounds[idx] if idx is not None else None

    @property
    def buzzed_in_user_id(self) -> Optional[str]:
        for score in self.user_scores:
            if score.buzzed_in_timestamp is not None:
                return score.user_id
        return None

    def score_for(self, user_id: str) -> Optional[UserScore]:
        for score in self.user_scores:
            if score.user_id == user_id:
                return score
        return None

    def evolve(self, **changes) -> 'Game':
        return replace(self, **changes)

    def check_invariants(self) -> None:
        if len(self.rounds) != self.num_rounds or len(self.playlist) < self.num_rounds:
            raise InvalidInput('rounds, numRounds and playlist disagree')
        if self.is_game_over != (self.current_round is None):
            raise InvalidInput('currentRound must be null exactly when the game is over')
        if self.current_round is not None and not 1 <= self.current_round <= self.num_rounds:
            raise InvalidInput(f'currentRound {self.current_round} out of range')
        if sum(1 for s in self.user_scores if s.buzzed_in_timestamp is not None) > 1:
            raise InvalidInput('more than one player is buzzed in')

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Game':
        current_round = data.get('currentRound') if isinstance(data, dict) else None
        try:
            return cls(
                id=_require(data, 'id', str),
                room_code=_require(data, 'roomCode', str),
                music_genre=data.get('musicGenre') or '',
                user_scores=[UserScore.from_dict(s) for s in _require(data, 'userScores', list)],
                num_rounds=int(_require(data, 'numRounds')),
                current_round=int(current_round) if current_round is not None else None,
                rounds=[Round.from_dict(r) for r in _require(data, 'rounds', list)],
                round_status=RoundStatus.parse(_require(data, 'roundStatus')),
                playlist=[SongEntry.from_dict(s) for s in _require(data, 'playlist', list)],
                is_game_over=bool(data.get('isGameOver', False)),
            )
        except (TypeError, ValueError) as exc:
            raise InvalidInput(f'malformed game record: {exc}') from exc

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'roomCode': self.room_code,
            'musicGenre': self.music_genre,
            'userScores': [s.to_dict() for s in self.user_scores],
            'numRounds': self.num_rounds,
            'currentRound': self.current_round,
            'rounds': [r.to_dict() for r in self.rounds],
            'roundStatus': self.round_status.value,
            'playlist': [s.to_dict() for s in self.playlist],
            'isGameOver': self.is_game_over,
        }

    def to_state(self) -> Dict[str, Any]:
        """Client-facing ``CurrentGameState`` projection."""
        song = self.current_song
        return {
            'gameId': self.id,
            'roomCode': self.room_code,
            'musicGenre': self.music_genre,
            'userScores': [s.to_dict() for s in self.user_scores],
            'currentRound': self.current_round,
            'currentRoundStatus': self.round_status.value,
            'currentAudioSrc': song.music_sample if song else None,
            'isGameOver': self.is_game_over,
        }
