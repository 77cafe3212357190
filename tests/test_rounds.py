import copy
import random

import pytest

from gamelab.errors import (
    EvaluationAbortedError,
    InvalidRoleError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from gamelab.services.games import registry, rounds


def start(game_id, players=('a', 'b'), max_rounds=None, seed=0):
    game = registry.get_game_by_id(game_id)
    state = game.initialize_game(game.get_default_game_state(max_rounds), list(players), random.Random(seed))
    return game, state


def play_round(state, game, decisions):
    result = None
    for pid, decision in decisions.items():
        state, result = rounds.submit_decision(state, game, pid, decision)
    return state, result


def test_initialization_is_idempotent():
    game = registry.get_game_by_id('stag-hunt')
    default = game.get_default_game_state()
    assert rounds.needs_initialization(default)
    state, changed = rounds.ensure_initialized(default, game, ['a', 'b'])
    assert changed
    assert state['status'] == 'in_progress'
    assert state['round'] == 1
    assert state['player_data']['a'] == {'total_score': 0, 'decision': None, 'ready': False}
    again, changed = rounds.ensure_initialized(state, game, ['a', 'b', 'c'])
    assert not changed
    assert again == state


def test_initialize_rejects_bad_player_count():
    game = registry.get_game_by_id('prisoners-dilemma')
    with pytest.raises(ValidationError):
        game.initialize_game(game.get_default_game_state(), ['a', 'b', 'c'])


def test_partial_round_waits_for_everyone():
    game, state = start('prisoners-dilemma')
    state, result = rounds.submit_decision(state, game, 'a', 'cooperate')
    assert result is None
    assert state['player_data']['a'] == {'total_score': 0, 'decision': 'cooperate', 'ready': True}
    assert not rounds.all_ready(state, game)


def test_submit_does_not_mutate_input():
    game, state = start('prisoners-dilemma')
    snapshot = copy.deepcopy(state)
    rounds.submit_decision(state, game, 'a', 'defect')
    assert state == snapshot


def test_history_is_append_only_and_totals_match():
    game, state = start('chicken', max_rounds=4)
    seen = []
    for moves in [('swerve', 'straight'), ('straight', 'straight'), ('swerve', 'swerve'), ('straight', 'swerve')]:
        state, result = play_round(state, game, dict(zip(('a', 'b'), moves)))
        assert state['history'][:len(seen)] == seen
        seen = copy.deepcopy(state['history'])
        assert result == state['history'][-1]
    assert len(state['history']) == 4
    assert state['status'] == 'completed'
    assert state['round'] == 4
    for pid in ('a', 'b'):
        assert state['player_data'][pid]['total_score'] == sum(h['scores'][pid] for h in state['history'])
    assert all(not entry['ready'] and entry['decision'] is None for entry in state['player_data'].values())


def test_round_advances_until_max_rounds():
    game, state = start('prisoners-dilemma', max_rounds=2)
    state, _ = play_round(state, game, {'a': 'cooperate', 'b': 'cooperate'})
    assert state['status'] == 'in_progress'
    assert state['round'] == 2
    assert len(state['history']) == state['round'] - 1
    state, _ = play_round(state, game, {'a': 'cooperate', 'b': 'cooperate'})
    assert state['status'] == 'completed'
    with pytest.raises(InvalidStateError):
        rounds.submit_decision(state, game, 'a', 'cooperate')


def test_rejections():
    game, state = start('prisoners-dilemma')
    with pytest.raises(ValidationError):
        rounds.submit_decision(state, game, 'a', 'maybe')
    with pytest.raises(NotFoundError):
        rounds.submit_decision(state, game, 'z', 'defect')
    with pytest.raises(InvalidStateError):
        rounds.submit_decision(state, game, 'a', 'defect', expected_round=3)
    state, _ = rounds.submit_decision(state, game, 'a', 'defect', expected_round=1)
    with pytest.raises(InvalidStateError):
        rounds.submit_decision(state, game, 'a', 'cooperate')


def test_recipient_cannot_act_in_dictator_game():
    game, state = start('dictator-game')
    recipient = next(pid for pid, role in state['player_roles'].items() if role == 'recipient')
    dictator = next(pid for pid, role in state['player_roles'].items() if role == 'dictator')
    with pytest.raises(InvalidRoleError):
        rounds.submit_decision(state, game, recipient, 10)
    assert game.required_players(state) == [dictator]
    state, result = rounds.submit_decision(state, game, dictator, 30)
    assert result['scores'] == {dictator: 70, recipient: 30}
    assert state['player_roles'] == {dictator: 'recipient', recipient: 'dictator'}


@pytest.mark.parametrize('decision', [True, 2.5, '40', None, -1, 101])
def test_numeric_decisions_are_validated(decision):
    game, state = start('dictator-game')
    dictator = game.required_players(state)[0]
    with pytest.raises(ValidationError):
        rounds.submit_decision(state, game, dictator, decision)


def test_integral_float_is_accepted():
    game, state = start('dictator-game')
    dictator = game.required_players(state)[0]
    state, result = rounds.submit_decision(state, game, dictator, 40.0)
    assert result['decisions'] == {dictator: 40}


def test_evaluation_aborts_without_all_decisions():
    game, state = start('prisoners-dilemma')
    state = rounds.record_decision(state, game, 'a', 'cooperate')
    with pytest.raises(EvaluationAbortedError):
        rounds.evaluate_round(state, game)


def test_public_goods_round_details():
    game, state = start('public-goods-game', players=('a', 'b', 'c'))
    state, result = play_round(state, game, {'a': 20, 'b': 10, 'c': 0})
    assert result['public_pool'] == 30
    assert result['returns'] == {'a': 20, 'b': 20, 'c': 20}
    assert rounds.final_scores(state) == {'a': 20, 'b': 30, 'c': 40}


def test_battle_of_the_sexes_assigns_preferences():
    game, state = start('battle-of-the-sexes')
    assert state['player_data']['a']['preferred_event'] == 'opera'
    assert state['player_data']['b']['preferred_event'] == 'football'
    _, result = play_round(state, game, {'a': 'football', 'b': 'football'})
    assert result['scores'] == {'a': 2, 'b': 3}


def ultimatum_roles(state):
    roles = state['player_roles']
    proposer = next(pid for pid, role in roles.items() if role == 'proposer')
    responder = next(pid for pid, role in roles.items() if role == 'responder')
    return proposer, responder


def test_ultimatum_response_waits_for_the_proposal():
    game, state = start('ultimatum-game')
    proposer, responder = ultimatum_roles(state)
    assert state['current_stage'] == 'proposal'
    with pytest.raises(InvalidRoleError):
        rounds.submit_decision(state, game, responder, 'accept')

    state, result = rounds.submit_decision(state, game, proposer, 40)
    assert result is None
    assert state['current_stage'] == 'response'
    assert state['player_data'][proposer]['decision'] == 40
    with pytest.raises(InvalidRoleError):
        rounds.submit_decision(state, game, proposer, 'accept')
    with pytest.raises(ValidationError):
        rounds.submit_decision(state, game, responder, 40)


@pytest.mark.parametrize('offer', [-1, 101, 'accept'])
def test_ultimatum_offer_must_fit_the_total(offer):
    game, state = start('ultimatum-game')
    proposer, _ = ultimatum_roles(state)
    with pytest.raises(ValidationError):
        rounds.submit_decision(state, game, proposer, offer)


def test_ultimatum_accepted_offer_splits_the_total():
    game, state = start('ultimatum-game', max_rounds=2)
    proposer, responder = ultimatum_roles(state)
    state, _ = rounds.submit_decision(state, game, proposer, 40)
    state, result = rounds.submit_decision(state, game, responder, 'accept')
    assert result['scores'] == {proposer: 60, responder: 40}
    assert result['proposal'] == {'proposer_id': proposer, 'amount': 40}
    assert result['response'] == 'accept'
    assert state['player_roles'] == {proposer: 'responder', responder: 'proposer'}
    assert state['current_stage'] == 'proposal'
    assert state['round'] == 2


def test_ultimatum_rejected_offer_pays_nobody():
    game, state = start('ultimatum-game', max_rounds=1)
    proposer, responder = ultimatum_roles(state)
    state, _ = rounds.submit_decision(state, game, proposer, 5)
    state, result = rounds.submit_decision(state, game, responder, 'reject')
    assert result['scores'] == {proposer: 0, responder: 0}
    assert state['status'] == 'completed'
    assert rounds.final_scores(state) == {proposer: 0, responder: 0}
