"""Tournament bookkeeping: random pairings, per-player aggregates, leaderboard."""

import copy
import random
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .registry import GameDefinition

WAITING = 'waiting'


def pair_players(player_ids: Sequence[str], rng: Optional[random.Random] = None) -> Dict[str, str]:
    """Randomly pair players against each other.

    With an odd count the player left over is marked ``WAITING``.
    """
    rng = rng or random.Random()
    pool = list(dict.fromkeys(player_ids))
    rng.shuffle(pool)
    matches: Dict[str, str] = {}
    for first, second in zip(pool[0::2], pool[1::2]):
        matches[first] = second
        matches[second] = first
    if len(pool) % 2:
        matches[pool[-1]] = WAITING
    return matches


def match_pairs(player_matches: Mapping[str, str]) -> List[List[str]]:
    """Distinct pairs from a pairing map, in first-seen order."""
    seen = set()
    pairs = []
    for pid, opponent in player_matches.items():
        if opponent == WAITING or pid in seen:
            continue
        seen.update((pid, opponent))
        pairs.append([pid, opponent])
    return pairs


def match_id(pair: Sequence[str]) -> str:
    return ':'.join(sorted(pair))


def new_result(player_id: str) -> Dict[str, Any]:
    return {
        'player_id': player_id,
        'total_score': 0,
        'matches_played': 0,
        'cooperate_count': 0,
        'defect_count': 0,
        'wins': 0,
        'losses': 0,
        'draws': 0,
    }


def record_match_result(results: Mapping[str, Mapping], definition: GameDefinition,
                        match_state: Mapping, round_result: Mapping) -> Dict[str, Dict[str, Any]]:
    """Fold one evaluated round of a match into the tournament aggregates.

    Scores and cooperate/defect counts are added every round. Once the
    match has reached its last round (``match_state`` is completed), every
    player in it gets ``matches_played`` and exactly one of wins, losses or
    draws based on final match totals.
    """
    updated = copy.deepcopy(dict(results))
    match_players = list(match_state.get('player_data') or {})
    decisions = round_result.get('decisions') or {}
    scores = round_result.get('scores') or {}
    for pid in match_players:
        entry = updated.setdefault(pid, new_result(pid))
        entry['total_score'] += scores.get(pid, 0)
        if pid in decisions:
            cooperative = definition.is_cooperative(pid, decisions, match_state)
            if cooperative is True:
                entry['cooperate_count'] += 1
            elif cooperative is False:
                entry['defect_count'] += 1

    if match_state.get('status') == 'completed':
        totals = {pid: match_state['player_data'][pid].get('total_score', 0) for pid in match_players}
        best = max(totals.values())
        everyone_tied = all(total == best for total in totals.values())
        for pid, total in totals.items():
            entry = updated[pid]
            entry['matches_played'] += 1
            if everyone_tied:
                entry['draws'] += 1
            elif total == best:
                entry['wins'] += 1
            else:
                entry['losses'] += 1
    return updated


def cooperation_rate(result: Mapping) -> float:
    decided = result.get('cooperate_count', 0) + result.get('defect_count', 0)
    if not decided:
        return 0.0
    return result['cooperate_count'] / decided


def leaderboard(results: Mapping[str, Mapping]) -> List[Dict[str, Any]]:
    """Results ordered by total score, highest first; ties keep their order."""
    rows = sorted(results.values(), key=lambda r: r.get('total_score', 0), reverse=True)
    board = []
    for rank, row in enumerate(rows, start=1):
        entry = dict(row)
        entry['rank'] = rank
        entry['cooperation_rate'] = cooperation_rate(row)
        board.append(entry)
    return board
