"""
Account store: the account lookups and the two mutations the identity
core is allowed to perform (activation, password change).

Methods never commit; they run inside the caller's DBStorage.transaction().
"""
from __future__ import annotations

from typing import Optional

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError

from identity.errors import AlreadyActivated, ConflictError, InvalidSubject
from models.account import Account


class AccountStore:
    def __init__(self, storage):
        self.storage = storage

    @property
    def _session(self):
        return self.storage.get_session()

    def find_by_id(self, account_id: str) -> Optional[Account]:
        if not account_id:
            return None
        return self._session.get(Account, account_id)

    def find_by_email(self, email: str) -> Optional[Account]:
        return self._session.query(Account).filter(Account.email == email.strip().lower()).first()

    def find_by_username(self, username: str) -> Optional[Account]:
        return self._session.query(Account).filter(Account.username == username).first()

    def find_by_email_or_username(self, identifier: str) -> Optional[Account]:
        if not identifier:
            return None
        identifier = identifier.strip()
        return (
            self._session.query(Account)
            .filter(or_(Account.email == identifier.lower(), Account.username == identifier))
            .first()
        )

    def create(self, username: str, email: str, password_hash: str) -> Account:
        account = Account(
            username=username,
            email=email.strip().lower(),
            password_hash=password_hash,
            is_active=False,
        )
        session = self._session
        session.add(account)
        try:
            session.flush()
        except IntegrityError:
            # lost a race with a concurrent registration
            raise ConflictError("Email or username already exists")
        return account

    def update_activation(self, account_id: str) -> None:
        """Flip is_active false -> true; a second flip raises AlreadyActivated."""
        result = self._session.execute(
            update(Account)
            .where(Account.id == account_id, Account.is_active == False)  # noqa: E712
            .values(is_active=True)
            .execution_options(synchronize_session="evaluate")
        )
        if result.rowcount != 1:
            if self.find_by_id(account_id) is None:
                raise InvalidSubject()
            raise AlreadyActivated()

    def update_password_hash(self, account_id: str, password_hash: str) -> None:
        result = self._session.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(password_hash=password_hash)
            .execution_options(synchronize_session="evaluate")
        )
        if result.rowcount != 1:
            raise InvalidSubject()
