"""
AuthGate: turns a bearer access token into an Identity.

Access tokens are stateless: signature + embedded expiry decide validity,
nothing is looked up in storage. The connection variant authenticates
once at connect time and keeps the identity in a SessionRegistry for the
lifetime of the connection.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from identity.codec import TokenCodec, TokenKind
from identity.errors import NoToken
from identity.registry import SessionRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    subject_id: str
    username: Optional[str] = None


def parse_bearer(header: Optional[str]) -> Optional[str]:
    """Extract the token from an `Authorization: Bearer <token>` value."""
    if not header:
        return None
    scheme, _, token = header.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class AuthGate:
    def __init__(self, codec: TokenCodec, registry: Optional[SessionRegistry] = None):
        self.codec = codec
        self.registry = registry if registry is not None else SessionRegistry()

    def authenticate(self, token: Optional[str]) -> Identity:
        """Raises NoToken, TokenExpired or InvalidToken."""
        if not token:
            raise NoToken()
        claims = self.codec.decode(token, TokenKind.ACCESS)
        return Identity(subject_id=claims.subject_id, username=claims.username)

    def connect(self, connection_id: str, handshake: Optional[Mapping]) -> Identity:
        """Authenticate a streaming connection from its handshake payload."""
        token = (handshake or {}).get("token")
        identity = self.authenticate(token)
        self.registry.add(connection_id, identity)
        logger.info("User connected: %s with connection %s", identity.subject_id, connection_id)
        return identity

    def disconnect(self, connection_id: str) -> Optional[Identity]:
        identity = self.registry.remove(connection_id)
        if identity is not None:
            logger.info("User disconnected: %s", identity.subject_id)
        return identity
