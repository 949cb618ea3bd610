"""Capability tokens (JWT, HS256) and the signing secret they depend on.

A pre-auth token is handed out by the control plane before the holder has a
roster entry. Binding exchanges it for an access token that also names the
holder's user id. Tokens carry no expiry: they stay valid for as long as the
signing secret does, so rotating the secret logs out every session at once.
"""

from __future__ import annotations

import os
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import jwt

from .errors import InvalidSignature, MalformedToken

ALGORITHM = 'HS256'
PRE_AUTH = 'pre'
ACCESS = 'access'
SECRET_BYTES = 32


@dataclass(frozen=True)
class PreAuthClaims:
    session_id: Optional[str]
    is_admin: bool
    is_player: bool
    nickname: Optional[str] = None
    issued_at: Optional[int] = None


@dataclass(frozen=True)
class AccessClaims:
    session_id: str
    user_id: str
    is_admin: bool
    is_player: bool
    issued_at: Optional[int] = None


Claims = Union[PreAuthClaims, AccessClaims]


def load_or_create_secret(path: Union[str, Path]) -> str:
    """Read the signing secret from ``path``, creating it on first use."""
    secret_path = Path(path)
    if secret_path.exists():
        return secret_path.read_text(encoding='utf-8').strip()
    return rotate_secret(secret_path)


def rotate_secret(path: Union[str, Path]) -> str:
    secret_path = Path(path)
    secret_path.parent.mkdir(parents=True, exist_ok=True)
    value = secrets.token_hex(SECRET_BYTES)
    fd = os.open(secret_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, 'w', encoding='utf-8') as fh:
        fh.write(value)
    return value


class TokenService:
    def __init__(self, secret: str):
        if not secret:
            raise ValueError('token secret must not be empty')
        self._secret = secret

    def issue_pre_auth(self, claims: PreAuthClaims) -> str:
        payload = {
            'typ': PRE_AUTH,
            'session_id': claims.session_id,
            'admin': bool(claims.is_admin),
            'player': bool(claims.is_player),
            'iat': claims.issued_at or int(time.time()),
        }
        if claims.nickname is not None:
            payload['nickname'] = claims.nickname
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def issue_access(self, claims: AccessClaims) -> str:
        payload = {
            'typ': ACCESS,
            'session_id': claims.session_id,
            'user_id': claims.user_id,
            'admin': bool(claims.is_admin),
            'player': bool(claims.is_player),
            'iat': claims.issued_at or int(time.time()),
        }
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def verify(self, token) -> Claims:
        if not token or not isinstance(token, str):
            raise MalformedToken('token is missing')
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={'require': ['iat'], 'verify_iat': False},
            )
        except jwt.InvalidSignatureError as exc:
            raise InvalidSignature(str(exc)) from exc
        except jwt.InvalidTokenError as exc:
            raise MalformedToken(str(exc)) from exc
        return self._claims_from(payload)

    def verify_access(self, token) -> AccessClaims:
        claims = self.verify(token)
        if not isinstance(claims, AccessClaims):
            raise MalformedToken('expected an access token, got a pre-auth token')
        return claims

    @staticmethod
    def _claims_from(payload: dict) -> Claims:
        kind = payload.get('typ')
        admin = payload.get('admin')
        player = payload.get('player')
        if not isinstance(admin, bool) or not isinstance(player, bool):
            raise MalformedToken('role flags missing from token')
        session_id = payload.get('session_id')
        if kind == PRE_AUTH:
            return PreAuthClaims(
                session_id=session_id,
                is_admin=admin,
                is_player=player,
                nickname=payload.get('nickname'),
                issued_at=payload.get('iat'),
            )
        if kind == ACCESS:
            user_id = payload.get('user_id')
            if not session_id or not user_id:
                raise MalformedToken('access token is missing its session or user')
            return AccessClaims(
                session_id=session_id,
                user_id=user_id,
                is_admin=admin,
                is_player=player,
                issued_at=payload.get('iat'),
            )
        raise MalformedToken(f"unknown token type {kind!r}")
