from duelroom.tokens import AccessClaims, PreAuthClaims


def _new_session(client, name='Trivia Night', password='pw1', nickname='Host'):
    res = client.post('/api/sessions/new', json={'name': name, 'password': password, 'nickname': nickname})
    assert res.status_code == 201
    return res.get_json()['token']


def _bind(client, token):
    res = client.post('/api/sessions/bind', json={'token': token})
    assert res.status_code == 200
    return res.get_json()['token']


def test_health(client):
    res = client.get('/health')
    assert res.status_code == 200
    assert res.get_json() == {'status': 'ok', 'sessions': 0}


def test_create_session(client, lobby):
    token = _new_session(client)
    claims = lobby.tokens.verify(token)
    assert isinstance(claims, PreAuthClaims)
    assert claims.is_admin and claims.is_player
    assert claims.nickname == 'Host'
    session = lobby.registry.get_session(claims.session_id)
    assert session.name == 'Trivia Night'
    # the password is not kept in the clear
    assert session.password_hash != 'pw1'
    assert client.get('/health').get_json()['sessions'] == 1


def test_create_session_requires_fields(client):
    res = client.post('/api/sessions/new', json={'name': 'x', 'password': 'pw'})
    assert res.status_code == 400
    assert 'error' in res.get_json()


def test_join_by_code(client, lobby):
    admin = lobby.tokens.verify(_new_session(client))
    code = lobby.registry.get_session(admin.session_id).code

    res = client.post('/api/sessions/join', json={'code': code.lower(), 'password': 'pw1', 'nickname': 'Bob'})
    assert res.status_code == 200
    claims = lobby.tokens.verify(res.get_json()['token'])
    assert claims.session_id == admin.session_id
    assert claims.is_player and not claims.is_admin
    assert claims.nickname == 'Bob'


def test_join_errors(client, lobby):
    admin = lobby.tokens.verify(_new_session(client))
    code = lobby.registry.get_session(admin.session_id).code

    res = client.post('/api/sessions/join', json={'code': code, 'password': 'nope', 'nickname': 'Bob'})
    assert res.status_code == 403
    assert res.get_json() == {'error': 'invalid password'}

    res = client.post('/api/sessions/join', json={'code': 'ZZZZ' if code != 'ZZZZ' else 'YYYY',
                                                  'password': 'pw1', 'nickname': 'Bob'})
    assert res.status_code == 404
    assert res.get_json() == {'error': 'invalid code'}

    res = client.post('/api/sessions/join', json={'password': 'pw1'})
    assert res.status_code == 400


def test_long_passwords_compare_in_full(client, lobby):
    long_password = 'p' * 80
    admin = lobby.tokens.verify(_new_session(client, password=long_password))
    code = lobby.registry.get_session(admin.session_id).code

    res = client.post('/api/sessions/join', json={'code': code, 'password': long_password, 'nickname': 'Bob'})
    assert res.status_code == 200

    # same first 72 bytes, different tail
    res = client.post('/api/sessions/join', json={'code': code, 'password': 'p' * 72 + 'x' * 8, 'nickname': 'Eve'})
    assert res.status_code == 403
    assert res.get_json() == {'error': 'invalid password'}

    res = client.post('/api/sessions/join', json={'code': code, 'password': 'x' * 80, 'nickname': 'Eve'})
    assert res.status_code == 403


def test_spectate(client, lobby):
    admin = lobby.tokens.verify(_new_session(client))
    code = lobby.registry.get_session(admin.session_id).code

    res = client.post('/api/sessions/spectate', json={'code': code})
    assert res.status_code == 200
    claims = lobby.tokens.verify(res.get_json()['token'])
    assert claims.session_id == admin.session_id
    assert not claims.is_admin and not claims.is_player


def test_spectate_unknown_code_then_bind(client, lobby):
    res = client.post('/api/sessions/spectate', json={'code': 'ZZZZ'})
    assert res.status_code == 200
    token = res.get_json()['token']
    assert lobby.tokens.verify(token).session_id is None

    res = client.post('/api/sessions/bind', json={'token': token})
    assert res.status_code == 404
    assert res.get_json() == {'error': "game doesn't exist"}


def test_bind_registers_roster_entries(client, lobby):
    host_access = lobby.tokens.verify_access(_bind(client, _new_session(client)))
    code = lobby.registry.get_session(host_access.session_id).code
    watcher = client.post('/api/sessions/spectate', json={'code': code}).get_json()['token']
    watcher_access = lobby.tokens.verify_access(_bind(client, watcher))

    session = lobby.registry.get_session(host_access.session_id)
    assert [p.id for p in session.players] == [host_access.user_id]
    assert session.players[0].name == 'Host'
    assert [a.id for a in session.audience] == [watcher_access.user_id]
    assert isinstance(host_access, AccessClaims) and host_access.is_admin


def test_bind_rejects_bad_token(client):
    res = client.post('/api/sessions/bind', json={'token': 'garbage'})
    assert res.status_code == 401
    assert res.get_json() == {'error': 'invalid token'}


def test_end_session_is_admin_only(client, lobby):
    host = _bind(client, _new_session(client))
    session_id = lobby.tokens.verify_access(host).session_id
    code = lobby.registry.get_session(session_id).code
    bob = client.post('/api/sessions/join', json={'code': code, 'password': 'pw1', 'nickname': 'Bob'}).get_json()['token']
    bob = _bind(client, bob)

    res = client.post('/api/sessions/end', json={'token': bob})
    assert res.status_code == 403
    assert session_id in lobby.registry

    # a pre-auth admin token is not enough either
    res = client.post('/api/sessions/end', json={'token': _new_session(client)})
    assert res.status_code == 401

    res = client.post('/api/sessions/end', json={'token': host})
    assert res.status_code == 200
    assert session_id not in lobby.registry

    res = client.post('/api/sessions/end', json={'token': host})
    assert res.status_code == 404


def test_api_is_a_regular_package():
    import duelroom.api

    # namespace packages have no __file__ and are skipped by package discovery
    assert duelroom.api.__file__ is not None
