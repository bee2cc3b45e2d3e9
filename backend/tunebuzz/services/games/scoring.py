from dataclasses import replace
from typing import Optional, Tuple

from tunebuzz.errors import NotFound
from .matching import score_guess
from .records import Game, RoundStatus

ROUND_SCORE = 1


def score_current_round(game: Game, player_id: str, guess: str) -> Tuple[Game, Optional[bool]]:
    """Apply one guess to the current round and return ``(next_game, correct)``.

    A correct guess scores +1 for the guesser, clears their buzz-in and closes
    the round. A wrong guess only clears the guesser's buzz-in and resumes
    play; the guesser is not recorded so they may buzz in again. Guesses that
    arrive after the round closed leave the game untouched and yield
    ``correct=None``.
    """
    current = game.current_round_record
    if current is None or current.is_round_over:
        return game, None

    if game.score_for(player_id) is None:
        raise NotFound(f'player {player_id} is not in game {game.id}')

    song = game.current_song
    correct = score_guess(guess, song.accepted_song_names, song.accepted_artist_names).correct

    user_scores = [
        replace(
            s,
            total_score=s.total_score + (ROUND_SCORE if correct else 0),
            buzzed_in_timestamp=None,
        ) if s.user_id == player_id else s
        for s in game.user_scores
    ]

    if not correct:
        return game.evolve(user_scores=user_scores, round_status=RoundStatus.RESUMED), False

    rounds = list(game.rounds)
    rounds[game.current_index] = replace(
        current,
        player_ids_guessed=[*current.player_ids_guessed, player_id],
        correct_guess_player_id=player_id,
        is_round_over=True,
    )
    return game.evolve(user_scores=user_scores, rounds=rounds, round_status=RoundStatus.ENDED), True
