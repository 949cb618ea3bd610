from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class Player:
    id: str
    name: str
    score: int = 0

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'score': self.score,
        }


@dataclass
class AudienceMember:
    id: str

    def to_dict(self):
        return {'id': self.id}


@dataclass
class Card:
    url: str
    player: Player
    votes: int = 0
    audience_votes: int = 0

    def to_dict(self):
        return {
            'url': self.url,
            'user': self.player.to_dict(),
            'votes': self.votes,
            'audience_votes': self.audience_votes,
        }


@dataclass
class Duel:
    card1: Card
    card2: Card

    def card(self, slot: int) -> Card:
        return self.card1 if slot == 1 else self.card2

    def to_dict(self):
        return {
            'card1': self.card1.to_dict(),
            'card2': self.card2.to_dict(),
        }


@dataclass
class Session:
    """One game room. ``id`` is fixed at creation; ``code`` is its join code."""

    id: str
    name: str
    code: str
    password_hash: str
    players: List[Player] = field(default_factory=list)
    audience: List[AudienceMember] = field(default_factory=list)
    duel: Optional[Duel] = None

    def find_player(self, player_id: str) -> Optional[Player]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def has_member(self, user_id: str) -> bool:
        if self.find_player(user_id) is not None:
            return True
        return any(a.id == user_id for a in self.audience)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'code': self.code,
            'players': [p.to_dict() for p in self.players],
            'audience_count': len(self.audience),
            'duel': self.duel.to_dict() if self.duel else None,
        }
