"""Round engine shared by every game.

All functions work on plain game-state documents (the JSON stored on a
session) and never mutate their input: they return a new document. The
calling service is responsible for persisting the result in a single
versioned write, which is what makes "all ready -> evaluate -> append ->
advance" happen at most once per round.
"""

import copy
import random
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from gamelab.errors import (
    EvaluationAbortedError,
    InvalidRoleError,
    InvalidStateError,
    NotFoundError,
)
from .registry import GameDefinition


def needs_initialization(game_state: Optional[Mapping]) -> bool:
    if not game_state:
        return True
    return (
        game_state.get('status') == 'setup'
        or not game_state.get('round')
        or not game_state.get('player_data')
    )


def ensure_initialized(game_state: Mapping, definition: GameDefinition, player_ids: Sequence[str],
                       rng: Optional[random.Random] = None) -> Tuple[Dict[str, Any], bool]:
    """Seed the state for ``player_ids`` unless it is already running.

    Returns ``(state, changed)``; calling it on an initialized state is a
    no-op.
    """
    if not needs_initialization(game_state):
        return copy.deepcopy(dict(game_state)), False
    base = game_state or definition.get_default_game_state()
    return definition.initialize_game(base, player_ids, rng), True


def all_ready(game_state: Mapping, definition: GameDefinition) -> bool:
    player_data = game_state.get('player_data') or {}
    required = definition.required_players(game_state)
    return bool(required) and all(player_data[pid].get('ready') for pid in required)


def record_decision(game_state: Mapping, definition: GameDefinition, player_id: str, decision: Any,
                    expected_round: Optional[int] = None) -> Dict[str, Any]:
    """Validate and store one player's decision without scoring the round."""
    if game_state.get('status') != 'in_progress':
        raise InvalidStateError('Decisions are only accepted while the game is in progress')
    if expected_round is not None and expected_round != game_state.get('round'):
        raise InvalidStateError(
            f"Round {expected_round} is no longer current (now round {game_state.get('round')})"
        )
    player_data = game_state.get('player_data') or {}
    if player_id not in player_data:
        raise NotFoundError('Player is not part of this game')
    acting_roles = definition.stage_roles(game_state)
    if acting_roles:
        role = (game_state.get('player_roles') or {}).get(player_id)
        if role not in acting_roles:
            stage = game_state.get('current_stage')
            when = f'during the {stage} stage' if stage else 'this round'
            raise InvalidRoleError(f"Players with role {role or 'none'} cannot act {when}")
    if player_data[player_id].get('ready'):
        raise InvalidStateError('You have already decided this round')

    value = definition.validate_decision(decision, game_state)

    state = copy.deepcopy(dict(game_state))
    state['player_data'][player_id].update({'decision': value, 'ready': True})
    definition.advance_stage(state)
    return state


def submit_decision(game_state: Mapping, definition: GameDefinition, player_id: str, decision: Any,
                    expected_round: Optional[int] = None) -> Tuple[Dict[str, Any], Optional[Dict[str, Any]]]:
    """Record ``player_id``'s decision and score the round if it was the last one missing.

    Returns ``(new_state, round_result)``; ``round_result`` is None while
    other players still have to decide.
    """
    state = record_decision(game_state, definition, player_id, decision, expected_round)
    if not all_ready(state, definition):
        return state, None
    return evaluate_round(state, definition)


def evaluate_round(game_state: Mapping, definition: GameDefinition) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Score the current round, append it to history and advance.

    Raises ``EvaluationAbortedError`` if any required decision is missing.
    """
    player_data = game_state.get('player_data') or {}
    required = definition.required_players(game_state)
    missing = [pid for pid in required if player_data[pid].get('decision') is None]
    if not required or missing:
        raise EvaluationAbortedError(
            f"Round {game_state.get('round')} evaluated without decisions from {', '.join(missing) or 'anyone'}"
        )

    decisions = {pid: player_data[pid]['decision'] for pid in required}
    scores = definition.evaluate(decisions, game_state)
    result = {
        'round': game_state['round'],
        'decisions': decisions,
        'scores': dict(scores),
    }
    result.update(definition.describe_round(decisions, game_state, scores))

    state = copy.deepcopy(dict(game_state))
    for pid, entry in state['player_data'].items():
        entry['total_score'] = entry.get('total_score', 0) + scores.get(pid, 0)
        entry['decision'] = None
        entry['ready'] = False
    state['history'] = list(state.get('history') or []) + [result]

    if state['round'] >= state['max_rounds']:
        state['status'] = 'completed'
    else:
        state['round'] += 1
        if definition.after_round:
            definition.after_round(state)
    definition.reset_stage(state)
    return state, copy.deepcopy(result)


def final_scores(game_state: Mapping) -> Dict[str, float]:
    return {pid: entry.get('total_score', 0) for pid, entry in (game_state.get('player_data') or {}).items()}
