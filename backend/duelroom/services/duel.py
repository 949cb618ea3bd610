import logging
import random
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Set

from duelroom.errors import DuelInProgress, ExternalFetchFailure, NotEnoughPlayers
from duelroom.models import Card, Duel
from duelroom.registry import SessionRegistry

logger = logging.getLogger(__name__)

MIN_DUEL_PLAYERS = 2


class DuelEngine:
    """Draws two cards and hands them to two distinct players of a session.

    The catalog is called with no session lock held. Only one duel may be
    drawn per session at a time; a second request while one is in flight is
    rejected rather than queued.
    """

    def __init__(self, registry: SessionRegistry, catalog, rng: Optional[random.Random] = None):
        self.registry = registry
        self.catalog = catalog
        self._rng = rng or random.Random()
        self._pending: Set[str] = set()
        self._pending_lock = threading.Lock()

    def run_duel(self, session_id: str) -> dict:
        with self._pending_lock:
            if session_id in self._pending:
                raise DuelInProgress(f"a duel is already being drawn for session {session_id}")
            self._pending.add(session_id)
        try:
            with self.registry.locked(session_id) as session:
                self._require_players(session)
            first_url, second_url = self._fetch_pair()
            with self.registry.locked(session_id) as session:
                self._require_players(session)
                first, second = self._rng.sample(session.players, 2)
                session.duel = Duel(card1=Card(url=first_url, player=first),
                                    card2=Card(url=second_url, player=second))
                logger.info("[duel] session=%s %s vs %s", session_id, first.id, second.id)
                return session.duel.to_dict()
        finally:
            with self._pending_lock:
                self._pending.discard(session_id)

    def _fetch_pair(self):
        with ThreadPoolExecutor(max_workers=2) as pool:
            futures = [pool.submit(self.catalog.random_card_url) for _ in range(2)]
            try:
                return tuple(f.result() for f in futures)
            except ExternalFetchFailure:
                raise
            except Exception as exc:
                raise ExternalFetchFailure(f"card fetch failed: {exc}") from exc

    @staticmethod
    def _require_players(session) -> None:
        if len(session.players) < MIN_DUEL_PLAYERS:
            raise NotEnoughPlayers(
                f"session {session.id} has {len(session.players)} players, need {MIN_DUEL_PLAYERS}"
            )
