"""Catalogue of the games a session can be created for.

A ``GameDefinition`` is the capability set the round engine needs:
which decisions are valid, which roles act, how a round is scored and
how per-game state is seeded. New games are added by registering another
definition in ``GAMES``; the round engine itself never changes.
"""

import copy
import random
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from gamelab.errors import ValidationError
from . import payoffs


@dataclass(frozen=True)
class Stage:
    """One step of a multi-step round: who may act and what they may choose."""
    name: str
    acting_roles: Tuple[str, ...]
    choices: Optional[Tuple[str, ...]] = None
    bounds: Optional[Callable[[Mapping], Tuple[int, int]]] = None


@dataclass(frozen=True)
class GameDefinition:
    id: str
    name: str
    description: str
    min_players: int
    max_players: int
    max_rounds: int
    rules: str
    evaluate: payoffs.Evaluator
    # Either a fixed set of choices or a (state -> (low, high)) integer range
    choices: Optional[Tuple[str, ...]] = None
    bounds: Optional[Callable[[Mapping], Tuple[int, int]]] = None
    state_defaults: Mapping[str, Any] = field(default_factory=dict)
    # Role-asymmetric games: assign_roles(player_ids, rng) -> {player_id: role}
    assign_roles: Optional[Callable[[List[str], random.Random], Dict[str, str]]] = None
    acting_roles: Optional[Tuple[str, ...]] = None
    setup_player: Optional[Callable[[int, str], Dict[str, Any]]] = None
    after_round: Optional[Callable[[Dict[str, Any]], None]] = None
    round_details: Optional[Callable[[Mapping, Mapping, Mapping], Dict[str, Any]]] = None
    # cooperation(player_id, decisions, state) -> True / False / None (not tracked)
    cooperation: Optional[Callable[[str, Mapping, Mapping], Optional[bool]]] = None
    # Ordered steps within a round; each role acts in exactly one of them
    stages: Optional[Tuple[Stage, ...]] = None

    def validate_player_count(self, player_count: int) -> bool:
        return self.min_players <= player_count <= self.max_players

    def get_default_game_state(self, max_rounds: Optional[int] = None) -> Dict[str, Any]:
        state = {
            'status': 'setup',
            'round': 0,
            'max_rounds': max_rounds or self.max_rounds,
            'player_data': {},
            'history': [],
        }
        if self.assign_roles:
            state['player_roles'] = {}
        if self.stages:
            state['current_stage'] = self.stages[0].name
        state.update(copy.deepcopy(dict(self.state_defaults)))
        return state

    def initialize_game(self, game_state: Mapping, player_ids: Sequence[str],
                        rng: Optional[random.Random] = None) -> Dict[str, Any]:
        """Seed per-player data (and roles) and open round 1."""
        rng = rng or random.Random()
        player_ids = list(player_ids)
        if not self.validate_player_count(len(player_ids)):
            raise ValidationError(
                f'{self.name} requires between {self.min_players} and {self.max_players} players'
            )
        state = copy.deepcopy(dict(game_state))
        player_data = {}
        for index, pid in enumerate(player_ids):
            entry = {'total_score': 0, 'decision': None, 'ready': False}
            if self.setup_player:
                entry.update(self.setup_player(index, pid))
            player_data[pid] = entry
        state.update({
            'status': 'in_progress',
            'round': 1,
            'player_data': player_data,
            'history': [],
        })
        if self.assign_roles:
            state['player_roles'] = self.assign_roles(player_ids, rng)
        self.reset_stage(state)
        return state

    def required_players(self, game_state: Mapping) -> List[str]:
        """Players whose decision is needed before the round can be scored."""
        player_ids = list(game_state.get('player_data') or {})
        if not self.acting_roles:
            return player_ids
        roles = game_state.get('player_roles') or {}
        return [pid for pid in player_ids if roles.get(pid) in self.acting_roles]

    def current_stage(self, game_state: Mapping) -> Optional[Stage]:
        if not self.stages:
            return None
        name = game_state.get('current_stage')
        for stage in self.stages:
            if stage.name == name:
                return stage
        return self.stages[0]

    def stage_roles(self, game_state: Mapping) -> Optional[Tuple[str, ...]]:
        """Roles allowed to decide right now, or None when everyone may."""
        stage = self.current_stage(game_state)
        return stage.acting_roles if stage else self.acting_roles

    def advance_stage(self, game_state: Dict[str, Any]) -> None:
        """Move to the next stage once every player acting in this one is ready."""
        stage = self.current_stage(game_state)
        if stage is None or stage is self.stages[-1]:
            return
        roles = game_state.get('player_roles') or {}
        acting = [pid for pid, role in roles.items() if role in stage.acting_roles]
        if all(game_state['player_data'][pid].get('ready') for pid in acting):
            game_state['current_stage'] = self.stages[self.stages.index(stage) + 1].name

    def reset_stage(self, game_state: Dict[str, Any]) -> None:
        if self.stages:
            game_state['current_stage'] = self.stages[0].name

    def validate_decision(self, decision: Any, game_state: Mapping) -> Any:
        stage = self.current_stage(game_state)
        choices = stage.choices if stage else self.choices
        bounds = stage.bounds if stage else self.bounds
        if choices is not None:
            if decision not in choices:
                raise ValidationError(
                    f"Invalid decision {decision!r} for {self.name}; expected one of {', '.join(choices)}"
                )
            return decision
        if isinstance(decision, bool) or not isinstance(decision, (int, float)):
            raise ValidationError(f'{self.name} expects a whole number, got {decision!r}')
        if isinstance(decision, float):
            if not decision.is_integer():
                raise ValidationError(f'{self.name} expects a whole number, got {decision!r}')
            decision = int(decision)
        low, high = bounds(game_state)
        if not low <= decision <= high:
            raise ValidationError(f'{self.name} decision must be between {low} and {high}')
        return decision

    def describe_round(self, decisions: Mapping, game_state: Mapping, scores: Mapping) -> Dict[str, Any]:
        if self.round_details:
            return self.round_details(decisions, game_state, scores)
        return {}

    def is_cooperative(self, player_id: str, decisions: Mapping, game_state: Mapping) -> Optional[bool]:
        if self.cooperation is None:
            return None
        return self.cooperation(player_id, decisions, game_state)

    def to_option(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'min_players': self.min_players,
            'max_players': self.max_players,
            'max_rounds': self.max_rounds,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.to_option()
        data.update({
            'rules': self.rules,
            'choices': list(self.choices) if self.choices is not None else None,
            'roles': list(self.acting_roles) if self.acting_roles else None,
            'stages': [
                {'name': s.name, 'roles': list(s.acting_roles),
                 'choices': list(s.choices) if s.choices is not None else None}
                for s in self.stages
            ] if self.stages else None,
            'default_game_state': self.get_default_game_state(),
        })
        return data


# ---- per-game hooks -------------------------------------------------------

def _cooperates_with(action: str):
    def cooperation(player_id, decisions, game_state):
        return decisions[player_id] == action
    return cooperation


def _random_pair_roles(first_role: str, second_role: str):
    def assign(player_ids, rng):
        if len(player_ids) != 2:
            raise ValidationError('Role assignment requires exactly 2 players')
        first = rng.randrange(2)
        return {player_ids[first]: first_role, player_ids[1 - first]: second_role}
    return assign


def _swap_roles(first_role: str, second_role: str):
    def swap(game_state):
        game_state['player_roles'] = {
            pid: second_role if role == first_role else first_role
            for pid, role in game_state['player_roles'].items()
        }
    return swap


def _dictator_details(decisions, game_state, scores):
    dictator_id = next(iter(decisions))
    return {'allocation': {'dictator_id': dictator_id, 'recipient_amount': decisions[dictator_id]}}


# Offers of at least this much count as cooperative in tournament stats
FAIR_OFFER = 30


def _ultimatum_details(decisions, game_state, scores):
    roles = game_state['player_roles']
    proposer_id = next(pid for pid in decisions if roles[pid] == 'proposer')
    responder_id = next(pid for pid in decisions if roles[pid] == 'responder')
    return {
        'proposal': {'proposer_id': proposer_id, 'amount': decisions[proposer_id]},
        'response': decisions[responder_id],
    }


def _fair_or_accepting(player_id, decisions, game_state):
    # Roles have already swapped when this runs; the decision type tells them apart
    decision = decisions[player_id]
    if isinstance(decision, str):
        return decision == 'accept'
    return decision >= FAIR_OFFER


def _preferred_event(index, player_id):
    return {'preferred_event': 'opera' if index == 0 else 'football'}


def _yields_to_partner(player_id, decisions, game_state):
    return decisions[player_id] != game_state['player_data'][player_id]['preferred_event']


def _joins_majority(player_id, decisions, game_state):
    counts = payoffs.choice_counts(decisions)
    top = max(counts.values())
    leaders = [choice for choice, n in counts.items() if n == top]
    if len(leaders) > 1:
        # No majority to join on a split vote
        return None
    return decisions[player_id] == leaders[0]


def _choice_distribution(decisions, game_state, scores):
    return {'choice_counts': payoffs.choice_counts(decisions)}


def _volunteer_details(decisions, game_state, scores):
    return {'volunteers_count': sum(1 for d in decisions.values() if d == 'volunteer')}


def _public_goods_details(decisions, game_state, scores):
    pool = sum(decisions.values())
    share = pool * game_state['multiplier'] / len(decisions)
    return {
        'public_pool': pool,
        'multiplier': game_state['multiplier'],
        'returns': {pid: share for pid in decisions},
    }


def _bertrand_details(decisions, game_state, scores):
    lowest = min(decisions.values())
    winners = [pid for pid, price in decisions.items() if price == lowest]
    share = game_state['market_demand'] / len(winners)
    return {'market_shares': {pid: share if pid in winners else 0 for pid in decisions}}


def _cournot_details(decisions, game_state, scores):
    total = sum(decisions.values())
    return {
        'total_quantity': total,
        'market_price': max(0, game_state['demand_intercept'] - game_state['demand_slope'] * total),
    }


# ---- catalogue ------------------------------------------------------------

PRISONERS_DILEMMA = GameDefinition(
    id='prisoners-dilemma',
    name="Prisoner's Dilemma",
    description='Two players decide simultaneously whether to cooperate or defect.',
    min_players=2,
    max_players=2,
    max_rounds=6,
    rules=(
        'Each round both players choose to cooperate or defect. Mutual cooperation pays '
        f"{payoffs.PRISONERS_DILEMMA['BOTH_COOPERATE']} each, mutual defection "
        f"{payoffs.PRISONERS_DILEMMA['BOTH_DEFECT']} each. A defector facing a cooperator gets "
        f"{payoffs.PRISONERS_DILEMMA['DEFECT_WHEN_OTHER_COOPERATES']} and the cooperator "
        f"{payoffs.PRISONERS_DILEMMA['COOPERATE_WHEN_OTHER_DEFECTS']}."
    ),
    evaluate=payoffs.evaluate_prisoners_dilemma,
    choices=('cooperate', 'defect'),
    cooperation=_cooperates_with('cooperate'),
)

STAG_HUNT = GameDefinition(
    id='stag-hunt',
    name='Stag Hunt',
    description='Two hunters choose between a shared stag and a safe hare.',
    min_players=2,
    max_players=2,
    max_rounds=6,
    rules=(
        'Hunting the stag only succeeds if both hunters commit to it. Both on stag pays '
        f"{payoffs.STAG_HUNT['BOTH_HUNT_STAG']}, both on hare {payoffs.STAG_HUNT['BOTH_HUNT_HARE']}; "
        f"a lone stag hunter gets {payoffs.STAG_HUNT['HUNT_STAG_ALONE']} while the hare hunter gets "
        f"{payoffs.STAG_HUNT['HUNT_HARE_WHILE_OTHER_HUNTS_STAG']}."
    ),
    evaluate=payoffs.evaluate_stag_hunt,
    choices=('stag', 'hare'),
    cooperation=_cooperates_with('stag'),
)

CHICKEN = GameDefinition(
    id='chicken',
    name='Chicken (Hawk-Dove)',
    description='Two drivers head towards each other; whoever swerves is the chicken.',
    min_players=2,
    max_players=2,
    max_rounds=5,
    rules=(
        f"Both swerve: {payoffs.CHICKEN['BOTH_SWERVE']} each. Both straight: "
        f"{payoffs.CHICKEN['BOTH_STRAIGHT']} each. Going straight against a swerver pays "
        f"{payoffs.CHICKEN['STRAIGHT_WHEN_OTHER_SWERVES']}, the swerver gets "
        f"{payoffs.CHICKEN['SWERVE_WHEN_OTHER_STRAIGHT']}."
    ),
    evaluate=payoffs.evaluate_chicken,
    choices=('swerve', 'straight'),
    cooperation=_cooperates_with('swerve'),
)

BATTLE_OF_THE_SEXES = GameDefinition(
    id='battle-of-the-sexes',
    name='Event Coordination Dilemma',
    description='Two players want to attend the same event but prefer different ones.',
    min_players=2,
    max_players=2,
    max_rounds=6,
    rules=(
        'One player prefers the opera, the other football. Meeting at your preferred event pays 3, '
        'meeting at the other event pays 2, and going to different events pays 0.'
    ),
    evaluate=payoffs.evaluate_battle_of_the_sexes,
    choices=('opera', 'football'),
    setup_player=_preferred_event,
    cooperation=_yields_to_partner,
)

MATCHING_PENNIES = GameDefinition(
    id='matching-pennies',
    name='Matching Pennies',
    description='A zero-sum game: the matcher wins when the coins match, the mismatcher otherwise.',
    min_players=2,
    max_players=2,
    max_rounds=6,
    rules='Both players show heads or tails. Matching coins pay the matcher 1 and cost the mismatcher 1; otherwise the reverse.',
    evaluate=payoffs.evaluate_matching_pennies,
    choices=('heads', 'tails'),
    assign_roles=_random_pair_roles('matcher', 'mismatcher'),
    acting_roles=('matcher', 'mismatcher'),
)

ROCK_PAPER_SCISSORS = GameDefinition(
    id='rock-paper-scissors',
    name='Rock, Paper, Scissors',
    description='The classic cyclic zero-sum game.',
    min_players=2,
    max_players=2,
    max_rounds=6,
    rules='Rock beats scissors, scissors beat paper, paper beats rock. A win pays 1, a loss costs 1, a draw pays 0.',
    evaluate=payoffs.evaluate_rock_paper_scissors,
    choices=('rock', 'paper', 'scissors'),
)

DICTATOR = GameDefinition(
    id='dictator-game',
    name='Dictator Game',
    description='One player decides alone how to split an amount with the other.',
    min_players=2,
    max_players=2,
    max_rounds=6,
    rules=(
        'The dictator chooses how much of the total to give to the recipient and keeps the rest. '
        'The recipient cannot act. Roles swap after every round.'
    ),
    evaluate=payoffs.evaluate_dictator,
    bounds=lambda state: (0, state['total_amount']),
    state_defaults={'total_amount': 100},
    assign_roles=_random_pair_roles('dictator', 'recipient'),
    acting_roles=('dictator',),
    after_round=_swap_roles('dictator', 'recipient'),
    round_details=_dictator_details,
)

ULTIMATUM = GameDefinition(
    id='ultimatum-game',
    name='Ultimatum Game',
    description='One player proposes how to split an amount; the other accepts it or both get nothing.',
    min_players=2,
    max_players=2,
    max_rounds=5,
    rules=(
        'Each round the proposer offers the responder part of the total. If the responder accepts, both '
        'receive the proposed amounts; if the responder rejects, both receive nothing. Roles swap after '
        'every round.'
    ),
    evaluate=payoffs.evaluate_ultimatum,
    state_defaults={'total_amount': 100},
    assign_roles=_random_pair_roles('proposer', 'responder'),
    acting_roles=('proposer', 'responder'),
    after_round=_swap_roles('proposer', 'responder'),
    round_details=_ultimatum_details,
    cooperation=_fair_or_accepting,
    stages=(
        Stage('proposal', ('proposer',), bounds=lambda state: (0, state['total_amount'])),
        Stage('response', ('responder',), choices=('accept', 'reject')),
    ),
)

COORDINATION = GameDefinition(
    id='coordination-game',
    name='Coordination Game',
    description='Every player gains most by picking the same option as everyone else.',
    min_players=2,
    max_players=10,
    max_rounds=5,
    rules=(
        f"If everyone picks the same option each player gets {payoffs.COORDINATION['COORDINATE']}. "
        f"Otherwise the majority gets {payoffs.COORDINATION['MAJORITY']} and the minority "
        f"{payoffs.COORDINATION['MINORITY']}; an exact tie pays {payoffs.COORDINATION['SPLIT']}."
    ),
    evaluate=payoffs.evaluate_coordination,
    choices=('A', 'B'),
    state_defaults={'options': ['A', 'B']},
    round_details=_choice_distribution,
    cooperation=_joins_majority,
)

VOLUNTEERS_DILEMMA = GameDefinition(
    id='volunteers-dilemma',
    name="Volunteer's Dilemma",
    description='Everyone benefits if at least one player volunteers at a personal cost.',
    min_players=2,
    max_players=10,
    max_rounds=6,
    rules=(
        f"If anyone volunteers, everybody receives {payoffs.VOLUNTEERS_DILEMMA['PUBLIC_BENEFIT']} and each "
        f"volunteer pays {payoffs.VOLUNTEERS_DILEMMA['VOLUNTEER_COST']}. If nobody volunteers everybody gets "
        f"{payoffs.VOLUNTEERS_DILEMMA['NO_VOLUNTEER_PENALTY']}."
    ),
    evaluate=payoffs.evaluate_volunteers_dilemma,
    choices=('volunteer', 'not_volunteer'),
    state_defaults={
        'benefit_all': payoffs.VOLUNTEERS_DILEMMA['PUBLIC_BENEFIT'],
        'cost_volunteer': payoffs.VOLUNTEERS_DILEMMA['VOLUNTEER_COST'],
    },
    round_details=_volunteer_details,
    cooperation=_cooperates_with('volunteer'),
)

PUBLIC_GOODS = GameDefinition(
    id='public-goods-game',
    name='Public Goods Game',
    description='Players contribute to a common pool that is multiplied and shared equally.',
    min_players=3,
    max_players=10,
    max_rounds=6,
    rules=(
        'Each round every player receives an endowment and chooses how much of it to contribute. '
        'The pool is multiplied and split equally; you keep whatever you did not contribute.'
    ),
    evaluate=payoffs.evaluate_public_goods,
    bounds=lambda state: (0, state['initial_endowment']),
    state_defaults={'initial_endowment': 20, 'multiplier': 2},
    round_details=_public_goods_details,
)

TRAVELERS_DILEMMA = GameDefinition(
    id='travelers-dilemma',
    name="Traveler's Dilemma",
    description='Both players claim a value; the lower claim wins a bonus and sets the payout.',
    min_players=2,
    max_players=2,
    max_rounds=5,
    rules=(
        'Both players are paid the lowest claim. If the claims differ, the lower claimant gets the bonus '
        'added and the higher claimant has it deducted.'
    ),
    evaluate=payoffs.evaluate_travelers_dilemma,
    bounds=lambda state: (state['min_claim'], state['max_claim']),
    state_defaults={'min_claim': 2, 'max_claim': 100, 'bonus': 2},
)

BERTRAND = GameDefinition(
    id='bertrand-competition',
    name='Bertrand Competition',
    description='Firms compete on price; the cheapest firm captures the market.',
    min_players=2,
    max_players=5,
    max_rounds=6,
    rules=(
        'Each firm sets a price. The firms with the lowest price share the market demand equally and earn '
        '(price - marginal cost) per unit; everyone else sells nothing.'
    ),
    evaluate=payoffs.evaluate_bertrand,
    bounds=lambda state: (state['min_price'], state['max_price']),
    state_defaults={'max_price': 50, 'min_price': 10, 'marginal_cost': 10, 'market_demand': 100},
    round_details=_bertrand_details,
)

COURNOT = GameDefinition(
    id='cournot-competition',
    name='Cournot Competition',
    description='Firms choose production quantities that together set the market price.',
    min_players=2,
    max_players=5,
    max_rounds=6,
    rules=(
        'Each firm chooses a quantity. The market price is intercept - slope x total quantity (never below 0) '
        'and each firm earns (price - marginal cost) x its quantity.'
    ),
    evaluate=payoffs.evaluate_cournot,
    bounds=lambda state: (state['min_quantity'], state['max_quantity']),
    state_defaults={
        'max_quantity': 20,
        'min_quantity': 0,
        'marginal_cost': 10,
        'demand_intercept': 100,
        'demand_slope': 1,
    },
    round_details=_cournot_details,
)

GAMES: Dict[str, GameDefinition] = {
    game.id: game
    for game in (
        PRISONERS_DILEMMA,
        STAG_HUNT,
        CHICKEN,
        BATTLE_OF_THE_SEXES,
        MATCHING_PENNIES,
        ROCK_PAPER_SCISSORS,
        DICTATOR,
        ULTIMATUM,
        COORDINATION,
        VOLUNTEERS_DILEMMA,
        PUBLIC_GOODS,
        TRAVELERS_DILEMMA,
        BERTRAND,
        COURNOT,
    )
}


def get_game_options() -> List[Dict[str, Any]]:
    return [game.to_option() for game in GAMES.values()]


def get_game_by_id(game_id: str) -> Optional[GameDefinition]:
    return GAMES.get(game_id)


def game_exists(game_id: str) -> bool:
    return game_id in GAMES


def is_valid_player_count(game_id: str, player_count: int) -> bool:
    game = GAMES.get(game_id)
    if not game:
        return False
    return game.validate_player_count(player_count)
