"""Per-session publish/subscribe.

Each live session owns one ``EventBus``. ``publish`` delivers synchronously
to the listeners registered when it is called; nothing is queued for
listeners that subscribe later.
"""

import enum
import logging
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

from .errors import ListenerLimitExceeded, SessionNotFound

logger = logging.getLogger(__name__)

DEFAULT_MAX_LISTENERS = 100000

Listener = Callable[[Any], None]


class EventKind(str, enum.Enum):
    USERS_CHANGED = 'users_changed'
    DUEL_STARTED = 'duel_started'
    SESSION_DELETED = 'session_deleted'


class EventBus:
    def __init__(self, session_id: str, max_listeners: int = DEFAULT_MAX_LISTENERS):
        self.session_id = session_id
        self.max_listeners = max_listeners
        self._listeners: Dict[EventKind, List[Listener]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, kind: EventKind, callback: Listener) -> None:
        with self._lock:
            listeners = self._listeners[kind]
            if len(listeners) >= self.max_listeners:
                raise ListenerLimitExceeded(
                    f"session {self.session_id} already has {len(listeners)} {kind.value} listeners"
                )
            listeners.append(callback)

    def unsubscribe(self, kind: EventKind, callback: Listener) -> None:
        with self._lock:
            listeners = self._listeners.get(kind)
            if not listeners:
                return
            try:
                listeners.remove(callback)
            except ValueError:
                return
            if not listeners:
                self._listeners.pop(kind, None)

    def publish(self, kind: EventKind, payload: Any = None) -> int:
        """Call every current listener of ``kind``; returns how many were called."""
        with self._lock:
            listeners = list(self._listeners.get(kind, ()))
        delivered = 0
        for callback in listeners:
            try:
                callback(payload)
            except Exception:
                logger.exception("[publish] session=%s kind=%s listener failed", self.session_id, kind.value)
                continue
            delivered += 1
        return delivered

    def listener_count(self, kind: Optional[EventKind] = None) -> int:
        with self._lock:
            if kind is not None:
                return len(self._listeners.get(kind, ()))
            return sum(len(v) for v in self._listeners.values())

    def clear(self) -> None:
        with self._lock:
            self._listeners.clear()


class EventBusRegistry:
    """Buses keyed by session id."""

    def __init__(self, max_listeners: int = DEFAULT_MAX_LISTENERS):
        self.max_listeners = max_listeners
        self._buses: Dict[str, EventBus] = {}
        self._lock = threading.Lock()

    def create(self, session_id: str) -> EventBus:
        with self._lock:
            bus = self._buses.get(session_id)
            if bus is None:
                bus = EventBus(session_id, max_listeners=self.max_listeners)
                self._buses[session_id] = bus
            return bus

    def get(self, session_id: str) -> EventBus:
        bus = self._buses.get(session_id)
        if bus is None:
            raise SessionNotFound(session_id)
        return bus

    def discard(self, session_id: str) -> Optional[EventBus]:
        with self._lock:
            return self._buses.pop(session_id, None)

    def __contains__(self, session_id) -> bool:
        return session_id in self._buses
