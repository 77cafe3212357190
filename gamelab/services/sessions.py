"""Session lifecycle and round submission.

Every public function here loads one ``GameSession``, validates the
caller against it, mutates it and commits once. The session row is
versioned, so a commit that races another writer fails with
``StaleDataError``; that surfaces as ``InvalidStateError`` and is never
retried here.
"""

import random
from typing import Any, Dict, Mapping, Optional

from flask import current_app
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from gamelab import db, socketio
from gamelab.errors import (
    EvaluationAbortedError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from gamelab.models import GameSession, SessionPlayer
from gamelab.services.games import rounds, tournament
from gamelab.services.games.registry import GameDefinition, get_game_by_id


# ---- helpers ---------------------------------------------------------------

def _broadcast(session_id: str, event: str = 'state_update') -> None:
    socketio.emit(event, {'session_id': session_id}, to=f"session:{session_id}", namespace='/ws')


def _load(session_id: str) -> GameSession:
    session = GameSession.query.filter_by(id=(session_id or '').upper()).first()
    if not session:
        raise NotFoundError('Session not found')
    return session


def _definition(session: GameSession) -> GameDefinition:
    game = get_game_by_id(session.game_id)
    if not game:
        raise NotFoundError(f'Game {session.game_id} is not available')
    return game


def _require_member(session: GameSession, player_id: str) -> SessionPlayer:
    player = session.get_player(player_id)
    if not player:
        raise NotFoundError('You are not a player in this session')
    return player


def _require_host(session: GameSession, player_id: str) -> None:
    player = _require_member(session, player_id)
    if not player.is_host:
        raise PermissionDeniedError('Only the host can do that')


def _require_creator(session: GameSession, player_id: str) -> None:
    if session.created_by != player_id:
        raise PermissionDeniedError('Only the session creator can do that')


def _commit(session_id: str, action: str) -> None:
    try:
        db.session.commit()
    except StaleDataError:
        db.session.rollback()
        current_app.logger.warning(f"[stale] session={session_id} action={action} lost a concurrent write")
        raise InvalidStateError('The session changed while you were acting; reload and try again')


def _touch(session: GameSession) -> None:
    # Roster rows live in their own table; writing the session row makes the
    # commit conditional on the version the roster change was based on
    flag_modified(session, 'status')


def _validate_name(name: Optional[str]) -> str:
    name = (name or '').strip()
    if not name:
        raise ValidationError('Session name is required')
    limit = int(current_app.config.get('SESSION_NAME_MAX_LENGTH', 80))
    if len(name) > limit:
        raise ValidationError(f'Session name must be at most {limit} characters')
    return name


def _validate_max_rounds(max_rounds: Any) -> Optional[int]:
    if max_rounds in (None, ''):
        return None
    try:
        value = int(max_rounds)
    except (TypeError, ValueError):
        raise ValidationError('max_rounds must be a whole number')
    limit = int(current_app.config.get('MAX_ROUNDS_LIMIT', 20))
    if not 1 <= value <= limit:
        raise ValidationError(f'max_rounds must be between 1 and {limit}')
    return value


def _default_state(game: GameDefinition, is_tournament: bool, max_rounds: Optional[int]) -> Dict[str, Any]:
    if is_tournament:
        return {'status': 'setup', 'max_rounds': max_rounds or game.max_rounds, 'matches': {}}
    return game.get_default_game_state(max_rounds)


def _check_player_count(session: GameSession, game: GameDefinition) -> None:
    count = len(session.players)
    if session.is_tournament:
        minimum = int(current_app.config.get('MIN_TOURNAMENT_PLAYERS', 2))
        if count < minimum:
            raise InvalidStateError(f'A tournament needs at least {minimum} players')
    elif not game.validate_player_count(count):
        raise InvalidStateError(
            f'{game.name} requires between {game.min_players} and {game.max_players} players'
        )


def _tournament_state(session: GameSession, game: GameDefinition,
                      rng: Optional[random.Random]) -> Dict[str, Any]:
    """Fresh pairings plus one independent match per pair."""
    rng = rng or random.Random()
    max_rounds = (session.game_state or {}).get('max_rounds')
    pairing = tournament.pair_players(session.player_ids, rng)
    matches = {}
    for pair in tournament.match_pairs(pairing):
        match = game.initialize_game(game.get_default_game_state(max_rounds), pair, rng)
        match['match_id'] = tournament.match_id(pair)
        matches[match['match_id']] = match
    session.player_matches = pairing
    return {'status': 'in_progress', 'max_rounds': max_rounds or game.max_rounds, 'matches': matches}


def _begin_play(session: GameSession, game: GameDefinition, rng: Optional[random.Random]) -> None:
    if session.is_tournament:
        session.game_state = _tournament_state(session, game, rng)
    else:
        max_rounds = (session.game_state or {}).get('max_rounds')
        session.game_state = game.initialize_game(game.get_default_game_state(max_rounds),
                                                  session.player_ids, rng)
    session.status = 'playing'


# ---- lifecycle ---------------------------------------------------------------

def list_sessions(status: Optional[str] = None):
    query = GameSession.query
    if status:
        query = query.filter_by(status=status)
    return query.order_by(GameSession.created_at.desc()).all()


def get_session(session_id: str) -> GameSession:
    return _load(session_id)


def create_session(player_id: str, display_name: str, name: Optional[str], game_id: Optional[str],
                   is_tournament: bool = False, max_rounds: Any = None) -> GameSession:
    name = _validate_name(name)
    game = get_game_by_id(game_id or '')
    if not game:
        raise ValidationError('Invalid game selected')
    if is_tournament and game.min_players > 2:
        raise ValidationError(f'{game.name} cannot be played as a 1:1 tournament')
    rounds_override = _validate_max_rounds(max_rounds)

    session = GameSession(
        name=name,
        status='waiting',
        created_by=player_id,
        is_tournament=bool(is_tournament),
        game_id=game.id,
    )
    session.game_state = _default_state(game, session.is_tournament, rounds_override)
    if session.is_tournament:
        session.tournament_results = {}
        session.player_matches = {}
    session.players.append(SessionPlayer(player_id=player_id, display_name=display_name, is_host=True))
    db.session.add(session)
    db.session.commit()
    current_app.logger.info(
        f"[create] session={session.id} game={game.id} tournament={session.is_tournament} host={player_id}"
    )
    return session


def join_session(session_id: str, player_id: str, display_name: str) -> GameSession:
    session = _load(session_id)
    if session.get_player(player_id):
        return session
    if session.status != 'waiting':
        raise InvalidStateError('This session is not accepting players')
    if not session.is_tournament:
        game = _definition(session)
        if len(session.players) + 1 > game.max_players:
            raise InvalidStateError(f'{game.name} does not support {len(session.players) + 1} players')

    sid = session.id
    session.players.append(SessionPlayer(player_id=player_id, display_name=display_name, is_host=False))
    _touch(session)
    _commit(sid, 'join')
    current_app.logger.info(f"[join] session={sid} player={player_id} players={len(session.players)}")
    _broadcast(sid)
    return session


def leave_session(session_id: str, player_id: str) -> Optional[GameSession]:
    """Remove the caller; returns None when that emptied (and deleted) the session."""
    session = _load(session_id)
    player = _require_member(session, player_id)
    if session.status == 'playing':
        raise InvalidStateError('You cannot leave while a game is in progress')

    sid = session.id
    was_host = player.is_host
    session.players.remove(player)
    if not session.players:
        db.session.delete(session)
        _commit(sid, 'leave')
        current_app.logger.info(f"[leave] session={sid} last player left, session deleted")
        _broadcast(sid, 'session_ended')
        return None
    if was_host:
        session.players[0].is_host = True
    _touch(session)
    _commit(sid, 'leave')
    if was_host:
        current_app.logger.info(f"[leave] session={sid} host passed to {session.players[0].player_id}")
    current_app.logger.info(f"[leave] session={sid} player={player_id}")
    _broadcast(sid)
    return session


def start_game(session_id: str, player_id: str, rng: Optional[random.Random] = None) -> GameSession:
    session = _load(session_id)
    _require_host(session, player_id)
    if session.status == 'playing':
        # Idempotent start: already started
        return session
    if session.status != 'waiting':
        raise InvalidStateError('Game has already finished; reset it to play again')
    game = _definition(session)
    _check_player_count(session, game)

    sid = session.id
    _begin_play(session, game, rng)
    _commit(sid, 'start')
    current_app.logger.info(f"[start] session={sid} game={game.id} players={len(session.players)}")
    _broadcast(sid)
    return session


def reset_game(session_id: str, player_id: str, clear_results: bool = False,
               rng: Optional[random.Random] = None) -> GameSession:
    session = _load(session_id)
    _require_host(session, player_id)
    if session.status != 'finished':
        raise InvalidStateError('Only a finished game can be reset')
    game = _definition(session)
    _check_player_count(session, game)

    sid = session.id
    _begin_play(session, game, rng)
    if session.is_tournament and clear_results:
        session.tournament_results = {}
    _commit(sid, 'reset')
    current_app.logger.info(f"[reset] session={sid} cleared_results={bool(clear_results)}")
    _broadcast(sid)
    return session


def shuffle_matches(session_id: str, player_id: str, rng: Optional[random.Random] = None) -> GameSession:
    session = _load(session_id)
    _require_host(session, player_id)
    if not session.is_tournament:
        raise InvalidStateError('Only tournaments have matches to shuffle')
    if session.status == 'waiting':
        raise InvalidStateError('Start the tournament before shuffling matches')
    game = _definition(session)
    _check_player_count(session, game)

    sid = session.id
    _begin_play(session, game, rng)
    _commit(sid, 'shuffle')
    current_app.logger.info(f"[shuffle] session={sid} pairs={session.player_matches}")
    _broadcast(sid)
    return session


def finish_game(session_id: str, player_id: str) -> GameSession:
    """Let a player leave the game view; closes the session once play is over."""
    session = _load(session_id)
    _require_member(session, player_id)
    state = session.game_state or {}
    if session.status == 'playing' and state.get('status') == 'completed':
        sid = session.id
        session.status = 'finished'
        _commit(sid, 'finish')
        current_app.logger.info(f"[finish] session={sid} closed by {player_id}")
        _broadcast(sid)
    return session


def delete_session(session_id: str, player_id: str) -> None:
    session = _load(session_id)
    _require_creator(session, player_id)
    sid = session.id
    db.session.delete(session)
    _commit(sid, 'delete')
    current_app.logger.info(f"[delete] session={sid} by {player_id}")
    _broadcast(sid, 'session_ended')


def update_session_metadata(session_id: str, player_id: str, updates: Mapping[str, Any]) -> GameSession:
    session = _load(session_id)
    _require_creator(session, player_id)
    unknown = set(updates) - {'name', 'game_id', 'max_rounds'}
    if unknown:
        raise ValidationError(f"Cannot update {', '.join(sorted(unknown))}")
    if ('game_id' in updates or 'max_rounds' in updates) and session.status != 'waiting':
        raise InvalidStateError('The game can only be changed before it starts')

    if 'name' in updates:
        session.name = _validate_name(updates['name'])
    if 'game_id' in updates or 'max_rounds' in updates:
        game = get_game_by_id(updates.get('game_id', session.game_id))
        if not game:
            raise ValidationError('Invalid game selected')
        if session.is_tournament and game.min_players > 2:
            raise ValidationError(f'{game.name} cannot be played as a 1:1 tournament')
        if 'max_rounds' in updates:
            max_rounds = _validate_max_rounds(updates['max_rounds'])
        else:
            max_rounds = (session.game_state or {}).get('max_rounds') if game.id == session.game_id else None
        session.game_id = game.id
        session.game_state = _default_state(game, session.is_tournament, max_rounds)

    sid = session.id
    _commit(sid, 'update')
    current_app.logger.info(f"[update] session={sid} fields={sorted(updates)}")
    _broadcast(sid)
    return session


# ---- rounds ------------------------------------------------------------------

def get_game_state(session_id: str, player_id: Optional[str] = None) -> Dict[str, Any]:
    """The caller's view of play: the whole state, or their match in a tournament."""
    session = _load(session_id)
    state = session.game_state or {}
    if not session.is_tournament or not player_id:
        return state
    opponent = (session.player_matches or {}).get(player_id)
    if opponent is None:
        if session.status == 'playing':
            raise NotFoundError('You are not part of the current pairings')
        # Nobody is paired before the tournament starts
        return state
    if opponent == tournament.WAITING:
        return {'status': tournament.WAITING, 'opponent': tournament.WAITING}
    match = dict(state.get('matches', {}).get(tournament.match_id([player_id, opponent])) or {})
    match['opponent'] = opponent
    return match


def submit_decision(session_id: str, player_id: str, decision: Any,
                    expected_round: Optional[int] = None) -> Dict[str, Any]:
    session = _load(session_id)
    _require_member(session, player_id)
    if session.status != 'playing':
        raise InvalidStateError('The game is not being played')
    game = _definition(session)
    sid = session.id

    if session.is_tournament:
        opponent = (session.player_matches or {}).get(player_id)
        if opponent is None:
            raise NotFoundError('You are not part of the current pairings')
        if opponent == tournament.WAITING:
            raise InvalidStateError('You are waiting for an opponent this round')
        doc = session.game_state
        mid = tournament.match_id([player_id, opponent])
        state, result = _play(sid, game, doc['matches'][mid], player_id, decision, expected_round)
        doc['matches'][mid] = state
        if result:
            session.tournament_results = tournament.record_match_result(
                session.tournament_results or {}, game, state, result
            )
        if all(m.get('status') == 'completed' for m in doc['matches'].values()):
            doc['status'] = 'completed'
        session.game_state = doc
        finished = doc['status'] == 'completed'
    else:
        current, seeded = rounds.ensure_initialized(session.game_state, game, session.player_ids)
        if seeded:
            current_app.logger.info(f"[init] session={sid} seeded round 1 for {len(session.players)} players")
        state, result = _play(sid, game, current, player_id, decision, expected_round)
        session.game_state = state
        finished = state['status'] == 'completed'

    if finished:
        session.status = 'finished'
    _commit(sid, 'decision')
    if finished:
        current_app.logger.info(f"[finish] session={sid} all rounds played")
    _broadcast(sid)
    return {'game_state': state, 'round_result': result}


def _play(sid: str, game: GameDefinition, state: Mapping, player_id: str, decision: Any,
          expected_round: Optional[int]):
    state = rounds.record_decision(state, game, player_id, decision, expected_round)
    if not rounds.all_ready(state, game):
        return state, None
    try:
        new_state, result = rounds.evaluate_round(state, game)
    except EvaluationAbortedError as exc:
        current_app.logger.warning(f"[round-abort] session={sid} {exc.message}")
        return state, None
    current_app.logger.info(
        f"[round] session={sid} round={result['round']} scores={result['scores']} status={new_state['status']}"
    )
    return new_state, result


def get_leaderboard(session_id: str):
    session = _load(session_id)
    if not session.is_tournament:
        raise InvalidStateError('Only tournaments have a leaderboard')
    names = {p.player_id: p.display_name for p in session.players}
    board = tournament.leaderboard(session.tournament_results or {})
    for row in board:
        row['display_name'] = names.get(row['player_id'])
    return board
