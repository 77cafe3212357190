from conftest import as_player


def test_socket_connect_and_join(sio_client):
    assert sio_client.is_connected('/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'connected' for pkt in received)

    sio_client.emit('join_session', {'session_id': 'abcd12'}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert {'name': 'joined', 'args': [{'room': 'session:ABCD12'}], 'namespace': '/ws'} in received


def test_join_without_session_id_errors(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('join_session', {}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'error' for pkt in received)


def test_ping_pong(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('ping', {'t': 1}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'pong' and pkt['args'][0] == {'t': 1} for pkt in received)


def test_mutations_broadcast_state_update(client, sio_client):
    sid = client.post('/api/sessions', json={'name': 'Live', 'game_id': 'chicken'},
                      headers=as_player('alice')).get_json()['id']
    sio_client.emit('join_session', {'session_id': sid}, namespace='/ws')
    sio_client.get_received('/ws')

    client.post(f'/api/sessions/{sid}/join', headers=as_player('bob'))
    events = sio_client.get_received('/ws')
    assert any(e['name'] == 'state_update' and e['args'][0] == {'session_id': sid} for e in events)


def test_leaving_room_stops_updates(client, sio_client):
    sid = client.post('/api/sessions', json={'name': 'Live', 'game_id': 'chicken'},
                      headers=as_player('alice')).get_json()['id']
    sio_client.emit('join_session', {'session_id': sid}, namespace='/ws')
    sio_client.emit('leave_session', {'session_id': sid}, namespace='/ws')
    sio_client.get_received('/ws')

    client.post(f'/api/sessions/{sid}/join', headers=as_player('bob'))
    assert not any(e['name'] == 'state_update' for e in sio_client.get_received('/ws'))


def test_delete_emits_session_ended(client, sio_client):
    sid = client.post('/api/sessions', json={'name': 'Live', 'game_id': 'chicken'},
                      headers=as_player('alice')).get_json()['id']
    sio_client.emit('join_session', {'session_id': sid}, namespace='/ws')
    sio_client.get_received('/ws')

    client.delete(f'/api/sessions/{sid}', headers=as_player('alice'))
    events = sio_client.get_received('/ws')
    assert any(e['name'] == 'session_ended' for e in events)
