import random

import pytest

from gamelab.services.games import registry, rounds, tournament


@pytest.mark.parametrize('count', [2, 3, 4, 7, 10])
def test_pairing_is_a_matching(count):
    players = [f'p{i}' for i in range(count)]
    for seed in range(5):
        matches = tournament.pair_players(players, random.Random(seed))
        assert set(matches) == set(players)
        waiting = [pid for pid, opp in matches.items() if opp == tournament.WAITING]
        assert len(waiting) == count % 2
        for pid, opp in matches.items():
            if opp != tournament.WAITING:
                assert opp != pid
                assert matches[opp] == pid


def test_match_pairs_and_ids():
    matches = {'b': 'a', 'a': 'b', 'c': tournament.WAITING}
    assert tournament.match_pairs(matches) == [['b', 'a']]
    assert tournament.match_id(['b', 'a']) == tournament.match_id(['a', 'b']) == 'a:b'


def play_match(game_id, moves, max_rounds):
    game = registry.get_game_by_id(game_id)
    state = game.initialize_game(game.get_default_game_state(max_rounds), ['a', 'b'], random.Random(1))
    results = {}
    for a_move, b_move in moves:
        state, _ = rounds.submit_decision(state, game, 'a', a_move)
        state, result = rounds.submit_decision(state, game, 'b', b_move)
        results = tournament.record_match_result(results, game, state, result)
    return results


def test_results_accumulate_and_resolve_at_match_end():
    results = play_match('prisoners-dilemma', [('cooperate', 'defect'), ('defect', 'defect')], max_rounds=2)
    assert results['a']['total_score'] == 1
    assert results['b']['total_score'] == 6
    assert results['a']['cooperate_count'] == 1 and results['a']['defect_count'] == 1
    assert results['b']['defect_count'] == 2
    assert results['a']['losses'] == 1 and results['b']['wins'] == 1
    assert results['a']['matches_played'] == results['b']['matches_played'] == 1


def test_unfinished_match_does_not_count():
    results = play_match('prisoners-dilemma', [('cooperate', 'cooperate')], max_rounds=3)
    assert results['a']['total_score'] == 3
    assert results['a']['matches_played'] == 0
    assert results['a']['wins'] + results['a']['losses'] + results['a']['draws'] == 0


def test_equal_scores_are_a_draw():
    results = play_match('stag-hunt', [('stag', 'stag')], max_rounds=1)
    assert results['a']['draws'] == results['b']['draws'] == 1
    assert results['a']['wins'] == results['b']['wins'] == 0


def test_zero_sum_games_do_not_track_cooperation():
    results = play_match('rock-paper-scissors', [('rock', 'scissors')], max_rounds=1)
    assert results['a']['cooperate_count'] == results['a']['defect_count'] == 0
    assert results['a']['wins'] == 1


def test_leaderboard_orders_by_score_and_keeps_ties_stable():
    results = {
        'a': dict(tournament.new_result('a'), total_score=5),
        'b': dict(tournament.new_result('b'), total_score=9, cooperate_count=3, defect_count=1),
        'c': dict(tournament.new_result('c'), total_score=5),
    }
    board = tournament.leaderboard(results)
    assert [row['player_id'] for row in board] == ['b', 'a', 'c']
    assert [row['rank'] for row in board] == [1, 2, 3]
    assert board[0]['cooperation_rate'] == 0.75
    assert board[1]['cooperation_rate'] == 0.0


def test_split_coordination_vote_is_neither_cooperation_nor_defection():
    results = play_match('coordination-game', [('A', 'B')], max_rounds=1)
    for pid in ('a', 'b'):
        assert results[pid]['cooperate_count'] == results[pid]['defect_count'] == 0


def test_ultimatum_cooperation_counts_fair_offers_and_acceptance():
    game = registry.get_game_by_id('ultimatum-game')
    state = game.initialize_game(game.get_default_game_state(1), ['a', 'b'], random.Random(1))
    proposer = next(pid for pid, role in state['player_roles'].items() if role == 'proposer')
    responder = 'b' if proposer == 'a' else 'a'
    state, _ = rounds.submit_decision(state, game, proposer, 10)
    state, result = rounds.submit_decision(state, game, responder, 'accept')
    results = tournament.record_match_result({}, game, state, result)
    assert results[proposer]['defect_count'] == 1
    assert results[responder]['cooperate_count'] == 1
