"""Room lifecycle shared by the HTTP control plane and the socket handlers.

``Lobby`` is the one object that owns the registry, the token service, the
per-session event buses and the duel engine. Routes and socket handlers stay
thin and only translate between the wire and these calls.
"""

import logging
from typing import List, Optional, Tuple

from werkzeug.security import check_password_hash, generate_password_hash

from duelroom.errors import InvalidCode, InvalidPassword, NotAuthorized, SessionNotFound
from duelroom.events import EventBusRegistry, EventKind
from duelroom.registry import SessionRegistry
from duelroom.services.duel import DuelEngine
from duelroom.tokens import AccessClaims, PreAuthClaims, TokenService

logger = logging.getLogger(__name__)

DEFAULT_NICKNAME = 'Player'


class Lobby:
    def __init__(self, registry: SessionRegistry, tokens: TokenService,
                 buses: EventBusRegistry, duels: DuelEngine):
        self.registry = registry
        self.tokens = tokens
        self.buses = buses
        self.duels = duels

    # ---- control plane ----

    def create_session(self, name: str, password: str, nickname: str) -> str:
        password_hash = generate_password_hash(str(password))
        session_id, code = self.registry.create_session(name, password_hash)
        self.buses.create(session_id)
        return self.tokens.issue_pre_auth(PreAuthClaims(
            session_id=session_id, is_admin=True, is_player=True, nickname=nickname,
        ))

    def spectate(self, code: str) -> str:
        """Spectator token; an unknown code yields a token with no session."""
        try:
            session_id = self.registry.resolve_code(code)
        except InvalidCode as exc:
            logger.info("[spectate] code=%r unresolved: %s", code, exc)
            session_id = None
        return self.tokens.issue_pre_auth(PreAuthClaims(
            session_id=session_id, is_admin=False, is_player=False,
        ))

    def join(self, code: str, password: str, nickname: str) -> str:
        session_id = self.registry.resolve_code(code)
        session = self.registry.get_session(session_id)
        if not check_password_hash(session.password_hash, str(password or '')):
            raise InvalidPassword(f"wrong password for session {session_id}")
        return self.tokens.issue_pre_auth(PreAuthClaims(
            session_id=session_id, is_admin=False, is_player=True, nickname=nickname,
        ))

    def bind(self, token: str) -> Tuple[AccessClaims, str]:
        """Exchange a pre-auth token for an access token and a roster entry.

        An access token for a live session is handed back unchanged, so a
        reconnecting client can re-subscribe without joining twice.
        """
        claims = self.tokens.verify(token)
        if isinstance(claims, AccessClaims):
            self.registry.get_session(claims.session_id)
            return claims, token
        if claims.session_id is None:
            raise SessionNotFound(None)
        if claims.is_player:
            user_id = self.registry.add_player(claims.session_id, claims.nickname or DEFAULT_NICKNAME)
        else:
            user_id = self.registry.add_audience(claims.session_id)
        access = AccessClaims(
            session_id=claims.session_id,
            user_id=user_id,
            is_admin=claims.is_admin,
            is_player=claims.is_player,
        )
        logger.info("[bind] session=%s user=%s player=%s admin=%s",
                    access.session_id, user_id, access.is_player, access.is_admin)
        self.publish_users(access.session_id)
        return access, self.tokens.issue_access(access)

    # ---- queries ----

    def session_for(self, identity: AccessClaims):
        return self.registry.get_session(identity.session_id)

    def users(self, identity: AccessClaims) -> List[dict]:
        return self.registry.players(identity.session_id)

    def code(self, identity: AccessClaims) -> str:
        return self.session_for(identity).code

    def duel(self, identity: AccessClaims) -> Optional[dict]:
        return self.registry.duel(identity.session_id)

    # ---- gameplay ----

    def vote(self, identity: AccessClaims, slot) -> dict:
        return self.registry.cast_vote(identity.session_id, identity.user_id, slot, identity.is_player)

    def request_duel(self, identity: AccessClaims) -> dict:
        if not identity.is_player:
            raise NotAuthorized('spectators cannot start a duel')
        duel = self.duels.run_duel(identity.session_id)
        self.buses.get(identity.session_id).publish(EventKind.DUEL_STARTED, duel)
        return duel

    def leave(self, identity: AccessClaims) -> None:
        if identity.is_admin:
            self.end_session(identity)
            return
        if identity.is_player:
            self.registry.remove_player(identity.session_id, identity.user_id)
        else:
            self.registry.remove_audience(identity.session_id, identity.user_id)
        self.publish_users(identity.session_id)

    def kick(self, identity: AccessClaims, user_id: str) -> bool:
        if not identity.is_admin:
            raise NotAuthorized('only the session admin can remove players')
        if user_id == identity.user_id:
            raise NotAuthorized('the admin leaves by ending the session')
        removed = self.registry.remove_player(identity.session_id, user_id)
        if removed:
            logger.info("[kick] session=%s user=%s", identity.session_id, user_id)
            self.publish_users(identity.session_id)
        return removed

    def end_session(self, identity: AccessClaims) -> None:
        if not identity.is_admin:
            raise NotAuthorized('only the session admin can end the session')
        self.registry.delete_session(identity.session_id)
        bus = self.buses.discard(identity.session_id)
        if bus is not None:
            delivered = bus.publish(EventKind.SESSION_DELETED)
            bus.clear()
            logger.info("[end-session] session=%s notified=%d", identity.session_id, delivered)

    def publish_users(self, session_id: str) -> None:
        players = self.registry.players(session_id)
        self.buses.get(session_id).publish(EventKind.USERS_CHANGED, players)
