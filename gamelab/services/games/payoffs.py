"""Payoff evaluators.

Each evaluator is a pure function ``evaluate(decisions, context)`` where
``decisions`` maps player id to that player's decision for the round and
``context`` is the (read-only) game state the round is played in. It
returns a mapping of player id to the score delta for the round.

Payoff constants are module level tables so that every cell of a matrix
is visible in one place.
"""

from typing import Callable, Dict, Mapping, Tuple

Decisions = Mapping[str, object]
Scores = Dict[str, float]
Evaluator = Callable[[Decisions, Mapping], Scores]


# ---- symmetric two-action games -------------------------------------------

PRISONERS_DILEMMA = {
    'BOTH_COOPERATE': 3,
    'BOTH_DEFECT': 1,
    'COOPERATE_WHEN_OTHER_DEFECTS': 0,
    'DEFECT_WHEN_OTHER_COOPERATES': 5,
}

STAG_HUNT = {
    'BOTH_HUNT_STAG': 4,
    'BOTH_HUNT_HARE': 2,
    'HUNT_STAG_ALONE': 0,
    'HUNT_HARE_WHILE_OTHER_HUNTS_STAG': 3,
}

CHICKEN = {
    'BOTH_SWERVE': 3,
    'BOTH_STRAIGHT': 0,
    'SWERVE_WHEN_OTHER_STRAIGHT': 1,
    'STRAIGHT_WHEN_OTHER_SWERVES': 5,
}


def symmetric_matrix(mutual_a: float, mutual_b: float, a_vs_b: float, b_vs_a: float,
                     action_a: str, action_b: str) -> Dict[Tuple[str, str], float]:
    """Build a (my action, their action) -> my payoff table for a 2x2 game."""
    return {
        (action_a, action_a): mutual_a,
        (action_b, action_b): mutual_b,
        (action_a, action_b): a_vs_b,
        (action_b, action_a): b_vs_a,
    }


def pairwise(table: Mapping[Tuple[str, str], float]) -> Evaluator:
    """Evaluator for a two-player game where each payoff depends only on
    (own decision, opponent decision)."""

    def evaluate(decisions: Decisions, context: Mapping) -> Scores:
        first, second = _two_players(decisions)
        return {
            first: table[(decisions[first], decisions[second])],
            second: table[(decisions[second], decisions[first])],
        }

    return evaluate


PRISONERS_DILEMMA_TABLE = symmetric_matrix(
    PRISONERS_DILEMMA['BOTH_COOPERATE'],
    PRISONERS_DILEMMA['BOTH_DEFECT'],
    PRISONERS_DILEMMA['COOPERATE_WHEN_OTHER_DEFECTS'],
    PRISONERS_DILEMMA['DEFECT_WHEN_OTHER_COOPERATES'],
    'cooperate', 'defect',
)

STAG_HUNT_TABLE = symmetric_matrix(
    STAG_HUNT['BOTH_HUNT_STAG'],
    STAG_HUNT['BOTH_HUNT_HARE'],
    STAG_HUNT['HUNT_STAG_ALONE'],
    STAG_HUNT['HUNT_HARE_WHILE_OTHER_HUNTS_STAG'],
    'stag', 'hare',
)

CHICKEN_TABLE = symmetric_matrix(
    CHICKEN['BOTH_SWERVE'],
    CHICKEN['BOTH_STRAIGHT'],
    CHICKEN['SWERVE_WHEN_OTHER_STRAIGHT'],
    CHICKEN['STRAIGHT_WHEN_OTHER_SWERVES'],
    'swerve', 'straight',
)

evaluate_prisoners_dilemma = pairwise(PRISONERS_DILEMMA_TABLE)
evaluate_stag_hunt = pairwise(STAG_HUNT_TABLE)
evaluate_chicken = pairwise(CHICKEN_TABLE)


# ---- zero-sum games -------------------------------------------------------

ROCK_PAPER_SCISSORS = {'WIN': 1, 'LOSE': -1, 'DRAW': 0}

_BEATS = {'rock': 'scissors', 'paper': 'rock', 'scissors': 'paper'}

ROCK_PAPER_SCISSORS_TABLE = {
    (mine, theirs): (
        ROCK_PAPER_SCISSORS['DRAW'] if mine == theirs
        else ROCK_PAPER_SCISSORS['WIN'] if _BEATS[mine] == theirs
        else ROCK_PAPER_SCISSORS['LOSE']
    )
    for mine in _BEATS
    for theirs in _BEATS
}

evaluate_rock_paper_scissors = pairwise(ROCK_PAPER_SCISSORS_TABLE)


MATCHING_PENNIES = {
    'MATCHER_WINS': {'matcher': 1, 'mismatcher': -1},
    'MISMATCHER_WINS': {'matcher': -1, 'mismatcher': 1},
}


def evaluate_matching_pennies(decisions: Decisions, context: Mapping) -> Scores:
    roles = context['player_roles']
    first, second = _two_players(decisions)
    outcome = 'MATCHER_WINS' if decisions[first] == decisions[second] else 'MISMATCHER_WINS'
    return {pid: MATCHING_PENNIES[outcome][roles[pid]] for pid in (first, second)}


# ---- coordination games ---------------------------------------------------

BATTLE_OF_THE_SEXES = {
    'BOTH_CHOOSE_OPERA': {'opera': 3, 'football': 2},
    'BOTH_CHOOSE_FOOTBALL': {'opera': 2, 'football': 3},
    'DIFFERENT_CHOICES': 0,
}


def evaluate_battle_of_the_sexes(decisions: Decisions, context: Mapping) -> Scores:
    """Payoff depends on the shared event and on each player's preferred one."""
    player_data = context['player_data']
    first, second = _two_players(decisions)
    if decisions[first] != decisions[second]:
        return {first: BATTLE_OF_THE_SEXES['DIFFERENT_CHOICES'],
                second: BATTLE_OF_THE_SEXES['DIFFERENT_CHOICES']}
    cell = 'BOTH_CHOOSE_OPERA' if decisions[first] == 'opera' else 'BOTH_CHOOSE_FOOTBALL'
    return {pid: BATTLE_OF_THE_SEXES[cell][player_data[pid]['preferred_event']]
            for pid in (first, second)}


# Unanimity pays COORDINATE. Otherwise players in the strict majority get
# MAJORITY, the rest MINORITY; an exact tie between options pays SPLIT.
COORDINATION = {
    'COORDINATE': 10,
    'MAJORITY': 5,
    'SPLIT': 0,
    'MINORITY': 0,
}


def choice_counts(decisions: Decisions) -> Dict[object, int]:
    counts: Dict[object, int] = {}
    for choice in decisions.values():
        counts[choice] = counts.get(choice, 0) + 1
    return counts


def evaluate_coordination(decisions: Decisions, context: Mapping) -> Scores:
    counts = choice_counts(decisions)
    if len(counts) == 1:
        return {pid: COORDINATION['COORDINATE'] for pid in decisions}
    top = max(counts.values())
    leaders = [choice for choice, n in counts.items() if n == top]
    if len(leaders) > 1:
        return {pid: COORDINATION['SPLIT'] for pid in decisions}
    majority = leaders[0]
    return {
        pid: COORDINATION['MAJORITY'] if choice == majority else COORDINATION['MINORITY']
        for pid, choice in decisions.items()
    }


VOLUNTEERS_DILEMMA = {
    'VOLUNTEER_COST': 4,
    'PUBLIC_BENEFIT': 10,
    'NO_VOLUNTEER_PENALTY': -8,
}


def evaluate_volunteers_dilemma(decisions: Decisions, context: Mapping) -> Scores:
    volunteers = sum(1 for d in decisions.values() if d == 'volunteer')
    if not volunteers:
        return {pid: VOLUNTEERS_DILEMMA['NO_VOLUNTEER_PENALTY'] for pid in decisions}
    return {
        pid: VOLUNTEERS_DILEMMA['PUBLIC_BENEFIT']
        - (VOLUNTEERS_DILEMMA['VOLUNTEER_COST'] if d == 'volunteer' else 0)
        for pid, d in decisions.items()
    }


# ---- allocation and market games ------------------------------------------

def evaluate_dictator(decisions: Decisions, context: Mapping) -> Scores:
    """The dictator keeps ``total_amount - recipient_amount``."""
    roles = context['player_roles']
    dictator_id = _role_holder(roles, 'dictator')
    recipient_id = _role_holder(roles, 'recipient')
    recipient_amount = decisions[dictator_id]
    return {
        dictator_id: context['total_amount'] - recipient_amount,
        recipient_id: recipient_amount,
    }


ULTIMATUM = {'REJECTED': 0}


def evaluate_ultimatum(decisions: Decisions, context: Mapping) -> Scores:
    """An accepted offer splits ``total_amount``; a rejected one pays nobody."""
    roles = context['player_roles']
    proposer_id = _role_holder(roles, 'proposer')
    responder_id = _role_holder(roles, 'responder')
    offer = decisions[proposer_id]
    if decisions[responder_id] != 'accept':
        return {proposer_id: ULTIMATUM['REJECTED'], responder_id: ULTIMATUM['REJECTED']}
    return {
        proposer_id: context['total_amount'] - offer,
        responder_id: offer,
    }


def evaluate_public_goods(decisions: Decisions, context: Mapping) -> Scores:
    pool = sum(decisions.values())
    share = pool * context['multiplier'] / len(decisions)
    return {pid: context['initial_endowment'] - contribution + share
            for pid, contribution in decisions.items()}


def evaluate_travelers_dilemma(decisions: Decisions, context: Mapping) -> Scores:
    lowest = min(decisions.values())
    if len(set(decisions.values())) == 1:
        return {pid: lowest for pid in decisions}
    bonus = context['bonus']
    return {pid: lowest + bonus if claim == lowest else lowest - bonus
            for pid, claim in decisions.items()}


def evaluate_bertrand(decisions: Decisions, context: Mapping) -> Scores:
    lowest = min(decisions.values())
    winners = [pid for pid, price in decisions.items() if price == lowest]
    share = context['market_demand'] / len(winners)
    return {pid: (price - context['marginal_cost']) * share if pid in winners else 0
            for pid, price in decisions.items()}


def evaluate_cournot(decisions: Decisions, context: Mapping) -> Scores:
    total = sum(decisions.values())
    price = max(0, context['demand_intercept'] - context['demand_slope'] * total)
    return {pid: (price - context['marginal_cost']) * quantity
            for pid, quantity in decisions.items()}


def _two_players(decisions: Decisions) -> Tuple[str, str]:
    if len(decisions) != 2:
        raise ValueError(f'expected exactly 2 decisions, got {len(decisions)}')
    first, second = decisions
    return first, second


def _role_holder(roles: Mapping[str, str], role: str) -> str:
    for pid, assigned in roles.items():
        if assigned == role:
            return pid
    raise ValueError(f'no player holds role {role!r}')
