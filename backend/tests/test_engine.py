import pytest

from tunebuzz.errors import Conflict, Forbidden, GameOver, InvalidInput, NotFound
from tunebuzz.services.games.records import RoundStatus
from tunebuzz.store import GAMES

from conftest import GENRE, answer_for, players


def _new_game(engine, n_players=2, num_rounds=3):
    return engine.create('ABCD', GENRE, players(n_players), num_rounds)


def test_create_game_initial_state(engine, store):
    state = _new_game(engine)
    assert state['currentRound'] == 1
    assert state['currentRoundStatus'] == 'WAITING_START'
    assert state['isGameOver'] is False
    assert [s['totalScore'] for s in state['userScores']] == [0, 0]
    assert all(s['buzzedInTimestamp'] is None for s in state['userScores'])

    record = store.get(GAMES, state['gameId']).data
    assert record['numRounds'] == 3
    assert len(record['rounds']) == 3
    assert [r['roundNum'] for r in record['rounds']] == [1, 2, 3]
    assert all(r['currentGuessPhase'] == 1 for r in record['rounds'])
    assert state['currentAudioSrc'] == record['playlist'][0]['musicSample']


def test_create_caps_rounds_at_catalog_size(engine):
    state = engine.create('ABCD', GENRE, players(2), 50)
    game = engine.get_game(state['gameId'])
    assert game.num_rounds == len(game.rounds) == len(game.playlist) == 4
    assert len({s.name for s in game.playlist}) == 4


def test_create_rejects_unknown_genre_and_bad_input(engine):
    with pytest.raises(InvalidInput):
        engine.create('ABCD', 'polka', players(2), 3)
    with pytest.raises(InvalidInput):
        engine.create('ABCD', GENRE, [], 3)
    with pytest.raises(InvalidInput):
        engine.create('ABCD', GENRE, players(1) + players(1), 3)
    with pytest.raises(InvalidInput):
        engine.create('ABCD', GENRE, players(2), 'lots')


def test_create_requires_whole_round_count(engine):
    for bad in (2.9, True, '2.9', None):
        with pytest.raises(InvalidInput):
            engine.create('ABCD', GENRE, players(2), bad)
    assert engine.get_game(engine.create('ABCD', GENRE, players(2), 2.0)['gameId']).num_rounds == 2
    assert engine.get_game(engine.create('ABCD', GENRE, players(2), '3')['gameId']).num_rounds == 3


def test_games_are_queryable_by_room_code(engine):
    state = _new_game(engine)
    found = engine.find_by_room_code('ABCD')
    assert [g['gameId'] for g in found] == [state['gameId']]
    assert engine.find_by_room_code('NOPE') == []


def test_set_round_status_is_unconditional(engine):
    game_id = _new_game(engine)['gameId']
    for status in ['ENDED', 'STARTED', 'PHASE_ENDED', 'WAITING_START']:
        assert engine.set_round_status(game_id, status)['currentRoundStatus'] == status
    with pytest.raises(InvalidInput):
        engine.set_round_status(game_id, 'DANCING')


def test_buzz_in_pauses_and_blocks_others(engine):
    game_id = _new_game(engine)['gameId']
    state = engine.buzz_in(game_id, 'p1')
    assert state['currentRoundStatus'] == 'PAUSED'
    stamps = {s['userId']: s['buzzedInTimestamp'] for s in state['userScores']}
    assert stamps['p1'] is not None
    assert stamps['p2'] is None

    with pytest.raises(Conflict):
        engine.buzz_in(game_id, 'p2')
    with pytest.raises(Conflict):
        engine.buzz_in(game_id, 'p1')


def test_buzz_in_unknown_player(engine):
    game_id = _new_game(engine)['gameId']
    with pytest.raises(NotFound):
        engine.buzz_in(game_id, 'stranger')


def test_unknown_game_is_not_found(engine):
    with pytest.raises(NotFound):
        engine.buzz_in('missing', 'p1')
    with pytest.raises(NotFound):
        engine.get_state('missing')


def test_clear_buzz_in_resumes(engine):
    game_id = _new_game(engine)['gameId']
    engine.buzz_in(game_id, 'p1')
    state = engine.clear_buzz_in(game_id)
    assert state['currentRoundStatus'] == 'RESUMED'
    assert all(s['buzzedInTimestamp'] is None for s in state['userScores'])
    assert engine.buzz_in(game_id, 'p2')['currentRoundStatus'] == 'PAUSED'


def test_wrong_guess_resumes_without_recording_guesser(engine):
    game_id = _new_game(engine)['gameId']
    engine.buzz_in(game_id, 'p1')
    outcome = engine.apply_guess(game_id, 'p1', 'definitely not it')
    assert outcome.correct is False
    assert outcome.state['currentRoundStatus'] == 'RESUMED'
    assert all(s['buzzedInTimestamp'] is None for s in outcome.state['userScores'])
    assert all(s['totalScore'] == 0 for s in outcome.state['userScores'])

    game = engine.get_game(game_id)
    assert game.rounds[0].player_ids_guessed == []
    assert game.rounds[0].is_round_over is False
    assert game.current_round == 1
    # the same player may buzz again
    assert engine.buzz_in(game_id, 'p1')['currentRoundStatus'] == 'PAUSED'


def test_correct_guess_scores_and_closes_round(engine):
    state = _new_game(engine)
    game_id = state['gameId']
    engine.buzz_in(game_id, 'p2')
    outcome = engine.apply_guess(game_id, 'p2', answer_for(state, engine))
    assert outcome.correct is True
    scores = {s['userId']: s for s in outcome.state['userScores']}
    assert scores['p2']['totalScore'] == 1
    assert scores['p2']['buzzedInTimestamp'] is None
    assert outcome.state['currentRoundStatus'] == 'ENDED'

    round_one = engine.get_game(game_id).rounds[0]
    assert round_one.is_round_over is True
    assert round_one.correct_guess_player_id == 'p2'
    assert round_one.player_ids_guessed == ['p2']


def test_late_guess_is_a_no_op(engine, store):
    state = _new_game(engine)
    game_id = state['gameId']
    engine.apply_guess(game_id, 'p1', answer_for(state, engine))
    version = store.get(GAMES, game_id).version

    late = engine.apply_guess(game_id, 'p2', answer_for(state, engine))
    assert late.correct is None
    assert {s['userId']: s['totalScore'] for s in late.state['userScores']} == {'p1': 1, 'p2': 0}
    assert store.get(GAMES, game_id).version == version


def test_guess_from_unknown_player(engine):
    game_id = _new_game(engine)['gameId']
    with pytest.raises(NotFound):
        engine.apply_guess(game_id, 'stranger', 'whatever')


def test_advance_round_is_monotonic_and_terminal(engine):
    game_id = _new_game(engine)['gameId']
    seen = []
    for _ in range(3):
        state = engine.advance_round(game_id)
        seen.append(state['currentRound'])
    assert seen == [2, 3, None]
    assert state['isGameOver'] is True
    assert state['currentRoundStatus'] == 'ENDED'
    assert state['currentAudioSrc'] is None
    assert all(r.is_round_over for r in engine.get_game(game_id).rounds)

    with pytest.raises(GameOver):
        engine.advance_round(game_id)
    assert engine.get_state(game_id) == state


@pytest.mark.parametrize('operation', [
    lambda e, gid: e.buzz_in(gid, 'p1'),
    lambda e, gid: e.clear_buzz_in(gid),
    lambda e, gid: e.apply_guess(gid, 'p1', 'anything'),
    lambda e, gid: e.set_round_status(gid, 'STARTED'),
])
def test_round_operations_fail_once_game_is_over(engine, operation):
    game_id = engine.create('ABCD', GENRE, players(2), 1)['gameId']
    engine.advance_round(game_id)
    with pytest.raises(GameOver):
        operation(engine, game_id)


def test_disconnect_releases_only_the_holder(engine):
    game_id = _new_game(engine)['gameId']
    assert engine.disconnect_cleanup(game_id, 'p1') is None

    engine.buzz_in(game_id, 'p1')
    assert engine.disconnect_cleanup(game_id, 'p2') is None
    state = engine.disconnect_cleanup(game_id, 'p1')
    assert state['currentRoundStatus'] == 'RESUMED'
    assert all(s['buzzedInTimestamp'] is None for s in state['userScores'])


def test_round_answers_only_after_round_is_over(engine):
    state = _new_game(engine)
    game_id = state['gameId']
    with pytest.raises(Forbidden):
        engine.round_answers(game_id, 1)
    engine.advance_round(game_id)
    answers = engine.round_answers(game_id, '1')
    assert answers['musicSample'] == state['currentAudioSrc']
    assert answers['acceptedSongNames']
    with pytest.raises(NotFound):
        engine.round_answers(game_id, 9)
    with pytest.raises(InvalidInput):
        engine.round_answers(game_id, 'first')


def test_overwrite_replaces_record(engine):
    game_id = _new_game(engine)['gameId']
    record = engine.get_game(game_id).to_dict()
    record['roundStatus'] = RoundStatus.STARTED.value
    record['userScores'][0]['totalScore'] = 5
    updated = engine.overwrite(game_id, record)
    assert updated['userScores'][0]['totalScore'] == 5
    assert engine.get_state(game_id)['currentRoundStatus'] == 'STARTED'

    with pytest.raises(InvalidInput):
        engine.overwrite('other-id', record)
    with pytest.raises(InvalidInput):
        engine.overwrite(game_id, {'id': game_id})
    bad = dict(record, currentRound=None)
    with pytest.raises(InvalidInput):
        engine.overwrite(game_id, bad)


def test_overwrite_of_missing_game(engine):
    record = engine.get_game(_new_game(engine)['gameId']).to_dict()
    record['id'] = 'ghost'
    with pytest.raises(NotFound):
        engine.overwrite('ghost', record)


def test_three_round_game_end_to_end(engine):
    state = engine.create('ROOM', GENRE, players(2), 3)
    game_id = state['gameId']
    assert state['currentRound'] == 1
    assert state['currentRoundStatus'] == 'WAITING_START'

    state = engine.buzz_in(game_id, 'p1')
    assert state['currentRoundStatus'] == 'PAUSED'
    assert state['userScores'][0]['buzzedInTimestamp'] is not None

    outcome = engine.apply_guess(game_id, 'p1', answer_for(state, engine))
    assert outcome.correct is True
    assert outcome.state['userScores'][0]['totalScore'] == 1
    assert outcome.state['currentRoundStatus'] == 'ENDED'
    assert engine.get_game(game_id).rounds[0].is_round_over

    state = engine.advance_round(game_id)
    assert state['currentRound'] == 2
    assert state['currentRoundStatus'] == 'WAITING_START'

    engine.set_round_status(game_id, 'STARTED')
    engine.buzz_in(game_id, 'p2')
    engine.apply_guess(game_id, 'p2', answer_for(state, engine))
    state = engine.advance_round(game_id)
    assert state['currentRound'] == 3

    engine.buzz_in(game_id, 'p1')
    engine.apply_guess(game_id, 'p1', 'no idea')
    state = engine.advance_round(game_id)
    assert state['currentRound'] is None
    assert state['isGameOver'] is True
    assert {s['userId']: s['totalScore'] for s in state['userScores']} == {'p1': 1, 'p2': 1}
