from flask import request

from gamelab.errors import ValidationError


def current_player_id() -> str:
    """Id of the calling player, from ``X-Player-Id`` or the JSON body."""
    data = request.get_json(silent=True) or {}
    player_id = request.headers.get('X-Player-Id') or data.get('player_id')
    if not player_id:
        raise ValidationError('Player id is required (X-Player-Id header)')
    return str(player_id)


def current_display_name() -> str:
    data = request.get_json(silent=True) or {}
    name = request.headers.get('X-Player-Name') or data.get('display_name')
    return ((name or '').strip() or 'Anonymous')[:64]
