"""
Token store: persisted TokenRecord rows for activation, reset and refresh
tokens. This is the single source of truth for single-use and revocation.

Consumption is a conditional UPDATE (`... WHERE used = false`); the row
count decides which of several concurrent callers actually consumed the
token. Methods never commit; callers wrap them in DBStorage.transaction().
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import update

from identity.codec import TokenKind, utcnow
from identity.errors import InvalidInput, InvalidSubject, TokenNotFoundOrUsed
from models.account import Account
from models.token_record import TokenRecord

logger = logging.getLogger(__name__)


class TokenStore:
    def __init__(self, storage):
        self.storage = storage

    @property
    def _session(self):
        return self.storage.get_session()

    def create(self, token_id: str, kind: TokenKind, subject_id: str,
               expires_at: datetime) -> TokenRecord:
        kind = TokenKind(kind)
        if not kind.persisted:
            raise InvalidInput(f"{kind.value} tokens are not persisted")
        if not subject_id or self._session.get(Account, subject_id) is None:
            raise InvalidSubject()

        record = TokenRecord(
            token_id=token_id,
            kind=kind.value,
            subject_id=subject_id,
            issued_at=utcnow(),
            expires_at=expires_at,
            used=False,
        )
        self._session.add(record)
        self._session.flush()
        logger.debug("Issued %s token %s for %s", kind.value, token_id, subject_id)
        return record

    def find_active(self, token_id: str, kind: TokenKind) -> Optional[TokenRecord]:
        """Return the unused record of this kind, or None (unknown or replayed)."""
        if not token_id:
            return None
        return (
            self._session.query(TokenRecord)
            .filter(
                TokenRecord.id == token_id,
                TokenRecord.kind == TokenKind(kind).value,
                TokenRecord.used.is_(False),
            )
            .first()
        )

    def mark_used(self, token_id: str) -> None:
        """
        Consume a record. Raises TokenNotFoundOrUsed when no unused row
        matched, i.e. another transaction consumed it first.
        """
        if not self.revoke(token_id):
            raise TokenNotFoundOrUsed()

    def revoke(self, token_id: str) -> bool:
        """Like mark_used() but reports a no-op instead of raising."""
        result = self._session.execute(
            update(TokenRecord)
            .where(TokenRecord.id == token_id, TokenRecord.used == False)  # noqa: E712
            .values(used=True, used_at=utcnow())
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount == 1

    def revoke_all(self, subject_id: str, kind: TokenKind) -> int:
        """Mark every live record of `kind` for the subject as used."""
        result = self._session.execute(
            update(TokenRecord)
            .where(
                TokenRecord.subject_id == subject_id,
                TokenRecord.kind == TokenKind(kind).value,
                TokenRecord.used == False,  # noqa: E712
            )
            .values(used=True, used_at=utcnow())
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount

    @staticmethod
    def expired(record: TokenRecord, now: Optional[datetime] = None) -> bool:
        return record.expires_at < (now or utcnow())
