from flask_socketio import join_room, leave_room, emit
from gamelab import socketio


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def _room(data):
    session_id = (data or {}).get('session_id')
    if not session_id:
        emit('error', {'message': 'session_id is required'})
        return None
    return f"session:{session_id.upper()}"


def handle_join_session(data):
    # Subscribing only; membership changes go through the HTTP API
    room = _room(data)
    if room:
        join_room(room)
        emit('joined', {'room': room})


def handle_leave_session(data):
    room = _room(data)
    if room:
        leave_room(room)
        emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('join_session', handle_join_session, namespace=namespace)
        socketio.on_event('leave_session', handle_leave_session, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
