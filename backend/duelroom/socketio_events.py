from flask_socketio import emit
from flask import current_app, request
from duelroom import socketio, get_lobby
from duelroom.errors import DuelRoomError, InvalidToken, SessionNotFound, UnknownMember
from duelroom.events import EventKind
from typing import Any, Callable, Dict
import functools
import threading

NAMESPACE = '/ws'

# Bus event -> socket event pushed to each subscribed connection
PUSH_EVENTS = {
    EventKind.USERS_CHANGED: 'users',
    EventKind.DUEL_STARTED: 'duel',
    EventKind.SESSION_DELETED: 'leave',
}

# Answered with a bare 'leave'; the client is not told why.
TERMINAL_ERRORS = (InvalidToken, SessionNotFound, UnknownMember)

# Card slot key on vote; older clients send cardSlot or number
VOTE_SLOT_KEYS = ('slot', 'cardSlot', 'number')

_sid_to_ctx: Dict[str, Dict[str, Any]] = {}
_ctx_lock = threading.Lock()


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _payload(data) -> Dict[str, Any]:
    return data if isinstance(data, dict) else {}


def _reject(event: str, exc: DuelRoomError) -> None:
    if isinstance(exc, TERMINAL_ERRORS):
        current_app.logger.warning(f"[{event}] sid={_get_sid()} sent leave: {exc}")
        emit('leave')
    else:
        current_app.logger.info(f"[{event}] sid={_get_sid()} rejected ({exc.code}): {exc}")
        emit('error', {'code': exc.code})


def authenticated(event: str) -> Callable:
    """Verify the access token carried by every inbound event.

    The wrapped handler receives ``(lobby, identity, data)``. No identity is
    cached per connection: each event stands on its own token.
    """
    def decorator(handler):
        @functools.wraps(handler)
        def wrapper(data=None):
            data = _payload(data)
            lobby = get_lobby()
            try:
                identity = lobby.tokens.verify_access(data.get('token'))
                return handler(lobby, identity, data)
            except DuelRoomError as exc:
                _reject(event, exc)
        return wrapper
    return decorator


# ---- subscriptions ----

def _forwarder(sid: str, event: str):
    def forward(payload=None):
        # Use socketio.emit since this may run outside the subscriber's own event
        if payload is None:
            socketio.emit(event, to=sid, namespace=NAMESPACE)
        else:
            socketio.emit(event, payload, to=sid, namespace=NAMESPACE)
    return forward


def _subscribe(lobby, sid: str, identity) -> None:
    _drop_subscriptions(sid)
    bus = lobby.buses.get(identity.session_id)
    subscriptions = []
    try:
        for kind, event in PUSH_EVENTS.items():
            callback = _forwarder(sid, event)
            bus.subscribe(kind, callback)
            subscriptions.append((kind, callback))
    except DuelRoomError:
        for kind, callback in subscriptions:
            bus.unsubscribe(kind, callback)
        raise
    with _ctx_lock:
        _sid_to_ctx[sid] = {
            'session_id': identity.session_id,
            'user_id': identity.user_id,
            'bus': bus,
            'subscriptions': subscriptions,
        }


def _drop_subscriptions(sid: str) -> None:
    with _ctx_lock:
        ctx = _sid_to_ctx.pop(sid, None)
    if not ctx:
        return
    for kind, callback in ctx['subscriptions']:
        ctx['bus'].unsubscribe(kind, callback)


def _sids_for(session_id: str, user_id: str):
    with _ctx_lock:
        return [
            sid for sid, ctx in _sid_to_ctx.items()
            if ctx['session_id'] == session_id and ctx['user_id'] == user_id
        ]


# ---- handlers ----

def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(reason=None):
    _drop_subscriptions(_get_sid())


def handle_bind_events(data=None):
    data = _payload(data)
    lobby = get_lobby()
    sid = _get_sid()
    try:
        identity, token = lobby.bind(data.get('token'))
        _subscribe(lobby, sid, identity)
        users = lobby.users(identity)
    except DuelRoomError as exc:
        _reject('bind-events', exc)
        return
    current_app.logger.info(f"[bind-events] sid={sid} session={identity.session_id} user={identity.user_id}")
    emit('token', token)
    emit('users', users)


@authenticated('admin-check')
def handle_admin_check(lobby, identity, data):
    lobby.session_for(identity)
    emit('admin', identity.is_admin)


@authenticated('get-code')
def handle_get_code(lobby, identity, data):
    emit('code', lobby.code(identity))


@authenticated('get-users')
def handle_get_users(lobby, identity, data):
    emit('users', lobby.users(identity))


@authenticated('get-duel')
def handle_get_duel(lobby, identity, data):
    emit('duel', lobby.duel(identity) or {'card1': None, 'card2': None})


@authenticated('vote')
def handle_vote(lobby, identity, data):
    slot = next((data[key] for key in VOTE_SLOT_KEYS if data.get(key) is not None), None)
    lobby.vote(identity, slot)


@authenticated('request-duel')
def handle_request_duel(lobby, identity, data):
    lobby.request_duel(identity)


@authenticated('leaving')
def handle_leaving(lobby, identity, data):
    if not identity.is_admin:
        # stop pushes to the leaver before the others hear about it
        _drop_subscriptions(_get_sid())
    lobby.leave(identity)
    _drop_subscriptions(_get_sid())


@authenticated('kick')
def handle_kick(lobby, identity, data):
    user_id = data.get('user_id')
    if not lobby.kick(identity, user_id):
        return
    for sid in _sids_for(identity.session_id, user_id):
        _drop_subscriptions(sid)
        socketio.emit('leave', to=sid, namespace=NAMESPACE)


def handle_ping(data=None):
    emit('pong', data or {})


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on namespace '/ws'."""
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=NAMESPACE)
    socketio.on_event('bind-events', handle_bind_events, namespace=NAMESPACE)
    socketio.on_event('admin-check', handle_admin_check, namespace=NAMESPACE)
    socketio.on_event('get-code', handle_get_code, namespace=NAMESPACE)
    socketio.on_event('get-users', handle_get_users, namespace=NAMESPACE)
    socketio.on_event('get-duel', handle_get_duel, namespace=NAMESPACE)
    socketio.on_event('vote', handle_vote, namespace=NAMESPACE)
    socketio.on_event('request-duel', handle_request_duel, namespace=NAMESPACE)
    socketio.on_event('leaving', handle_leaving, namespace=NAMESPACE)
    socketio.on_event('kick', handle_kick, namespace=NAMESPACE)
    socketio.on_event('ping', handle_ping, namespace=NAMESPACE)
