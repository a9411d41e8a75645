"""
Signed token codec.

Tokens are compact JWTs (PyJWT, HS256 by default) carrying:
- sub:  subject (account id)
- jti:  token id, the join key with the persisted TokenRecord
- type: token kind (access | refresh | activation | reset)
- iat / exp / iss
Access tokens additionally carry `username` so the gate can build an
Identity without touching storage.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional

import jwt

from identity.errors import InvalidSignature, InvalidToken, TokenExpired
from identity.settings import AuthSettings


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"
    ACTIVATION = "activation"
    RESET = "reset"

    @property
    def persisted(self) -> bool:
        return self is not TokenKind.ACCESS


@dataclass(frozen=True)
class TokenClaims:
    subject_id: str
    token_id: str
    kind: TokenKind
    expires_at: datetime
    username: Optional[str] = None


def generate_token_id() -> str:
    """Generate a unique token id (JWT `jti`)."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC now; every timestamp in the service is naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TokenCodec:
    def __init__(self, settings: AuthSettings):
        self._secret = settings.signing_secret
        self._algorithm = settings.algorithm
        self._issuer = settings.issuer

    def issue(self, subject_id: str, token_id: str, kind: TokenKind, ttl: timedelta,
              **claims: Any) -> str:
        now = utcnow()
        payload: Dict[str, Any] = {
            "iss": self._issuer,
            "sub": str(subject_id),
            "jti": str(token_id),
            "type": TokenKind(kind).value,
            "iat": _timestamp(now),
            "exp": _timestamp(now + ttl),
        }
        payload.update({k: v for k, v in claims.items() if v is not None})
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def decode(self, token: str, expected_kind: Optional[TokenKind] = None,
               verify_expiry: bool = True) -> TokenClaims:
        """
        Verify signature and expiry and return the embedded claims.
        Raises TokenExpired, InvalidSignature or InvalidToken. The last two
        share one generic message on purpose.
        """
        if not token or not isinstance(token, str):
            raise InvalidToken()
        try:
            decoded = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                issuer=self._issuer,
                options={
                    "require": ["sub", "jti", "type", "exp"],
                    "verify_exp": verify_expiry,
                },
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpired()
        except jwt.InvalidSignatureError:
            raise InvalidSignature()
        except jwt.InvalidTokenError:
            raise InvalidToken()

        try:
            kind = TokenKind(decoded["type"])
            expires_at = datetime.fromtimestamp(int(decoded["exp"]), tz=timezone.utc).replace(tzinfo=None)
        except (ValueError, TypeError, OverflowError):
            raise InvalidToken()
        if expected_kind is not None and kind is not TokenKind(expected_kind):
            raise InvalidToken()
        # exp is re-checked here even though PyJWT already enforced it
        if verify_expiry and expires_at <= utcnow():
            raise TokenExpired()

        return TokenClaims(
            subject_id=str(decoded["sub"]),
            token_id=str(decoded["jti"]),
            kind=kind,
            expires_at=expires_at,
            username=decoded.get("username"),
        )


def _timestamp(value: datetime) -> int:
    return int(value.replace(tzinfo=timezone.utc).timestamp())
