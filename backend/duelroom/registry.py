"""In-memory session store and join-code index.

All mutation of a session goes through ``SessionRegistry.locked`` so that
roster changes, votes, duel installs and deletion on one session are mutually
exclusive. Separate sessions never share a lock.
"""

import logging
import random
import threading
import uuid
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Tuple

from .errors import (
    CodeSpaceExhausted,
    InvalidCardSlot,
    InvalidCode,
    NoActiveDuel,
    SessionNotFound,
    UnknownMember,
)
from .models import AudienceMember, Player, Session

logger = logging.getLogger(__name__)

# 32 symbols: no I, L, O or 0 so codes survive being read aloud or scribbled down.
JOIN_CODE_ALPHABET = 'ABCDEFGHJKMNPQRSTUVWXYZ123456789'
JOIN_CODE_LENGTH = 4
CARD_SLOTS = (1, 2)


def generate_join_code(length: int = JOIN_CODE_LENGTH, rng: Optional[random.Random] = None) -> str:
    chooser = rng or random
    return ''.join(chooser.choices(JOIN_CODE_ALPHABET, k=length))


class SessionRegistry:
    def __init__(self, max_code_attempts: int = 50, rng: Optional[random.Random] = None):
        self.max_code_attempts = max_code_attempts
        self._rng = rng
        self._sessions: Dict[str, Session] = {}
        self._codes: Dict[str, str] = {}
        self._locks: Dict[str, threading.RLock] = {}
        self._index_lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id) -> bool:
        return session_id in self._sessions

    def session_ids(self) -> List[str]:
        with self._index_lock:
            return list(self._sessions)

    # ---- creation / lookup ----

    def create_session(self, name: str, password_hash: str) -> Tuple[str, str]:
        session_id = str(uuid.uuid4())
        with self._index_lock:
            code = self._unused_code()
            self._sessions[session_id] = Session(
                id=session_id,
                name=name,
                code=code,
                password_hash=password_hash,
            )
            self._codes[code] = session_id
            self._locks[session_id] = threading.RLock()
        logger.info("[session-created] id=%s code=%s", session_id, code)
        return session_id, code

    def _unused_code(self) -> str:
        for _ in range(self.max_code_attempts):
            code = generate_join_code(rng=self._rng)
            if code not in self._codes:
                return code
        raise CodeSpaceExhausted(f"no free join code after {self.max_code_attempts} attempts")

    def resolve_code(self, code: str) -> str:
        session_id = self._codes.get((code or '').strip().upper())
        if session_id is None:
            raise InvalidCode(f"join code {code!r} is not in use")
        return session_id

    def get_session(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    @contextmanager
    def locked(self, session_id: str) -> Iterator[Session]:
        """Hold the session's lock and yield the live Session."""
        lock = self._locks.get(session_id)
        if lock is None:
            raise SessionNotFound(session_id)
        with lock:
            # deleted while we were waiting
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFound(session_id)
            yield session

    # ---- roster ----

    def add_player(self, session_id: str, nickname: str) -> str:
        player_id = str(uuid.uuid4())
        with self.locked(session_id) as session:
            session.players.append(Player(id=player_id, name=nickname))
        return player_id

    def add_audience(self, session_id: str) -> str:
        audience_id = str(uuid.uuid4())
        with self.locked(session_id) as session:
            session.audience.append(AudienceMember(id=audience_id))
        return audience_id

    def remove_player(self, session_id: str, player_id: str) -> bool:
        with self.locked(session_id) as session:
            before = len(session.players)
            session.players = [p for p in session.players if p.id != player_id]
            return len(session.players) != before

    def remove_audience(self, session_id: str, audience_id: str) -> bool:
        with self.locked(session_id) as session:
            before = len(session.audience)
            session.audience = [a for a in session.audience if a.id != audience_id]
            return len(session.audience) != before

    def players(self, session_id: str) -> List[dict]:
        with self.locked(session_id) as session:
            return [p.to_dict() for p in session.players]

    def snapshot(self, session_id: str) -> dict:
        with self.locked(session_id) as session:
            return session.to_dict()

    def duel(self, session_id: str) -> Optional[dict]:
        with self.locked(session_id) as session:
            return session.duel.to_dict() if session.duel else None

    # ---- voting ----

    def cast_vote(self, session_id: str, voter_id: str, slot: int, as_player: bool) -> dict:
        if isinstance(slot, bool) or slot not in CARD_SLOTS:
            raise InvalidCardSlot(f"card slot must be 1 or 2, got {slot!r}")
        with self.locked(session_id) as session:
            if not session.has_member(voter_id):
                raise UnknownMember(f"{voter_id} is not in session {session_id}")
            if session.duel is None:
                raise NoActiveDuel(f"session {session_id} has no active duel")
            card = session.duel.card(slot)
            if as_player:
                card.votes += 1
            else:
                card.audience_votes += 1
            return card.to_dict()

    # ---- teardown ----

    def delete_session(self, session_id: str) -> Session:
        with self.locked(session_id) as session:
            with self._index_lock:
                self._sessions.pop(session_id, None)
                if self._codes.get(session.code) == session_id:
                    del self._codes[session.code]
                self._locks.pop(session_id, None)
        logger.info("[session-deleted] id=%s code=%s", session_id, session.code)
        return session
