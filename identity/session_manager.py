"""
SessionManager: registration, activation, login, refresh, logout and
password reset on top of the codec, the token store, the credential
verifier and the account store.

Every operation is one unit of work inside DBStorage.transaction():
it either commits completely or not at all. Token consumption relies on
TokenStore.mark_used() losing cleanly (TokenNotFoundOrUsed) when another
transaction consumed the same record first.

Notification failures: the token record is committed before dispatch;
if dispatch fails the fresh record is revoked and NotificationFailed is
raised, so no live token exists that nobody was told about.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Callable, Optional

from marshmallow import ValidationError as MarshmallowValidationError

from identity.accounts import AccountStore
from identity.codec import TokenClaims, TokenCodec, TokenKind, generate_token_id, utcnow
from identity.credentials import CredentialVerifier
from identity.errors import (
    AccountInactive,
    AccountNotFound,
    AlreadyActivated,
    DuplicateEmail,
    DuplicateUsername,
    InvalidCredentials,
    InvalidInput,
    InvalidRefreshToken,
    InvalidToken,
    NotificationFailed,
    RefreshExpired,
    TokenExpired,
    TokenNotFoundOrUsed,
)
from identity.notifications import NotificationDispatcher
from identity.settings import AuthSettings
from identity.token_store import TokenStore
from models.schemas.account import AccountOutSchema, RegisterSchema, ResetPasswordSchema

logger = logging.getLogger(__name__)

PASSWORD_POLICY_MESSAGE = "Password must be at least 8 characters long."

account_out_schema = AccountOutSchema()
register_schema = RegisterSchema()
reset_password_schema = ResetPasswordSchema()


def default_password_policy(password: str) -> bool:
    return isinstance(password, str) and len(password) >= 8


class SessionManager:
    def __init__(
        self,
        settings: AuthSettings,
        storage,
        dispatcher: NotificationDispatcher,
        codec: Optional[TokenCodec] = None,
        credentials: Optional[CredentialVerifier] = None,
        password_policy: Callable[[str], bool] = default_password_policy,
    ):
        self.settings = settings
        self.storage = storage
        self.dispatcher = dispatcher
        self.codec = codec or TokenCodec(settings)
        self.credentials = credentials or CredentialVerifier.from_settings(settings)
        self.accounts = AccountStore(storage)
        self.tokens = TokenStore(storage)
        self.password_policy = password_policy

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    @staticmethod
    def public(account) -> dict:
        return account_out_schema.dump(account)

    @staticmethod
    def _load(schema, data: dict) -> dict:
        try:
            return schema.load(data)
        except MarshmallowValidationError as err:
            raise InvalidInput("Invalid input", details=err.messages)

    def _check_password(self, password: str) -> None:
        if not self.password_policy(password):
            raise InvalidInput(PASSWORD_POLICY_MESSAGE, details={"password": [PASSWORD_POLICY_MESSAGE]})

    def _issue_record(self, account, kind: TokenKind, ttl: timedelta) -> tuple[str, str]:
        token_id = generate_token_id()
        token = self.codec.issue(account.id, token_id, kind, ttl)
        self.tokens.create(token_id, kind, account.id, utcnow() + ttl)
        return token, token_id

    def _access_token(self, account) -> str:
        return self.codec.issue(
            account.id,
            generate_token_id(),
            TokenKind.ACCESS,
            self.settings.access_ttl,
            username=account.username,
        )

    def _token_response(self, account, access_token: str) -> dict:
        return {
            "user": self.public(account),
            "access_token": access_token,
            "token_type": "bearer",
            "expires_in": int(self.settings.access_ttl.total_seconds()),
        }

    def _find_record(self, claims: TokenClaims, kind: TokenKind):
        record = self.tokens.find_active(claims.token_id, kind)
        if record is None:
            raise TokenNotFoundOrUsed()
        if record.subject_id != claims.subject_id:
            raise InvalidToken()
        return record

    def _dispatch(self, send, account, token: str, token_id: str, failure_message: Optional[str] = None):
        try:
            send(account, token)
        except Exception as exc:
            logger.warning("Notification for account %s failed, revoking token %s: %s",
                           account.id, token_id, exc)
            with self.storage.transaction():
                self.tokens.revoke(token_id)
            raise NotificationFailed(failure_message) from exc

    # ------------------------------------------------------------------
    # registration / activation
    # ------------------------------------------------------------------

    def register(self, username: str, email: str, password: str,
                 confirm_password: Optional[str] = None) -> dict:
        """
        Create an inactive account and send its activation token.
        Returns the public account fields.
        """
        data = self._load(register_schema, {
            "username": username,
            "email": email,
            "password": password,
            "confirm_password": confirm_password,
        })
        self._check_password(data["password"])
        password_hash = self.credentials.hash(data["password"])

        with self.storage.transaction():
            if self.accounts.find_by_email(data["email"]):
                raise DuplicateEmail()
            if self.accounts.find_by_username(data["username"]):
                raise DuplicateUsername()
            account = self.accounts.create(data["username"], data["email"], password_hash)
            token, token_id = self._issue_record(
                account, TokenKind.ACTIVATION, self.settings.activation_ttl
            )
        logger.info("Registered account %s", account.id)

        self._dispatch(
            self.dispatcher.send_activation, account, token, token_id,
            "Account created but the activation email could not be sent. "
            "Please request a new activation email.",
        )
        return self.public(account)

    def activate(self, token: str) -> dict:
        """Consume an activation token and flip the account active, atomically."""
        claims = self.codec.decode(token, TokenKind.ACTIVATION)
        with self.storage.transaction():
            record = self._find_record(claims, TokenKind.ACTIVATION)
            # claim first: a concurrent loser fails here, and any later
            # failure rolls the claim back with the rest of the transaction
            self.tokens.mark_used(record.token_id)
            account = self.accounts.find_by_id(record.subject_id)
            if account is None:
                raise TokenNotFoundOrUsed()
            if account.is_active:
                raise AlreadyActivated()
            if self.tokens.expired(record):
                raise TokenExpired("Activation token expired")
            self.accounts.update_activation(account.id)
        logger.info("Activated account %s", account.id)
        return self.public(account)

    def resend_activation(self, identifier: str) -> None:
        """Issue a fresh activation token; earlier ones stay valid."""
        with self.storage.transaction():
            account = self.accounts.find_by_email_or_username(identifier)
            if account is None:
                raise AccountNotFound()
            if account.is_active:
                raise AlreadyActivated()
            token, token_id = self._issue_record(
                account, TokenKind.ACTIVATION, self.settings.activation_ttl
            )
        self._dispatch(self.dispatcher.send_activation, account, token, token_id)

    # ------------------------------------------------------------------
    # sessions
    # ------------------------------------------------------------------

    def login(self, identifier: str, password: str) -> dict:
        """
        Authenticate by username or email. Unknown identifier and wrong
        password fail identically with InvalidCredentials.
        """
        with self.storage.transaction():
            account = self.accounts.find_by_email_or_username(identifier)
        if account is None:
            self.credentials.dummy_verify()
            raise InvalidCredentials()
        if not self.credentials.verify(password, account.password_hash):
            raise InvalidCredentials()
        if not account.is_active:
            raise AccountInactive()
        new_hash = None
        if self.credentials.needs_rehash(account.password_hash):
            new_hash = self.credentials.hash(password)

        with self.storage.transaction():
            if new_hash is not None:
                self.accounts.update_password_hash(account.id, new_hash)
            access_token = self._access_token(account)
            refresh_token, refresh_id = self._issue_record(
                account, TokenKind.REFRESH, self.settings.refresh_ttl
            )
        logger.info("Account %s logged in (session %s)", account.id, refresh_id)

        result = self._token_response(account, access_token)
        result["refresh_token"] = refresh_token
        return result

    def _decode_refresh(self, refresh_token: str) -> TokenClaims:
        if not refresh_token:
            raise InvalidRefreshToken()
        try:
            return self.codec.decode(refresh_token, TokenKind.REFRESH)
        except TokenExpired:
            try:
                claims = self.codec.decode(refresh_token, TokenKind.REFRESH, verify_expiry=False)
            except InvalidToken:
                raise InvalidRefreshToken()
            with self.storage.transaction():
                record = self.tokens.find_active(claims.token_id, TokenKind.REFRESH)
                if record is not None and record.subject_id == claims.subject_id:
                    self.tokens.revoke(record.token_id)
            raise RefreshExpired()
        except InvalidToken:
            raise InvalidRefreshToken()

    def refresh_access_token(self, refresh_token: str) -> dict:
        """
        Mint a new access token from a live refresh token. When rotation is
        enabled the refresh token is consumed and a new one is returned.
        """
        claims = self._decode_refresh(refresh_token)
        expired = False
        result = None
        with self.storage.transaction():
            record = self.tokens.find_active(claims.token_id, TokenKind.REFRESH)
            if record is None or record.subject_id != claims.subject_id:
                raise InvalidRefreshToken()
            if self.tokens.expired(record):
                # swept now rather than left dangling
                self.tokens.revoke(record.token_id)
                expired = True
            else:
                account = self.accounts.find_by_id(record.subject_id)
                if account is None or not account.is_active:
                    raise InvalidRefreshToken()
                result = self._token_response(account, self._access_token(account))
                if self.settings.rotate_refresh_tokens:
                    try:
                        self.tokens.mark_used(record.token_id)
                    except TokenNotFoundOrUsed:
                        raise InvalidRefreshToken()
                    result["refresh_token"], _ = self._issue_record(
                        account, TokenKind.REFRESH, self.settings.refresh_ttl
                    )
        if expired:
            raise RefreshExpired()
        return result

    def logout(self, refresh_token: str) -> None:
        """
        Revoke one refresh session. A second logout with the same token
        raises InvalidRefreshToken, meaning "already logged out".
        """
        if not refresh_token:
            raise InvalidRefreshToken()
        try:
            claims = self.codec.decode(refresh_token, TokenKind.REFRESH, verify_expiry=False)
        except InvalidToken:
            raise InvalidRefreshToken()
        with self.storage.transaction():
            record = self.tokens.find_active(claims.token_id, TokenKind.REFRESH)
            if record is None or record.subject_id != claims.subject_id:
                raise InvalidRefreshToken()
            try:
                self.tokens.mark_used(record.token_id)
            except TokenNotFoundOrUsed:
                raise InvalidRefreshToken()
        logger.info("Account %s logged out (session %s)", claims.subject_id, claims.token_id)

    # ------------------------------------------------------------------
    # password reset
    # ------------------------------------------------------------------

    def forgot_password(self, identifier: str) -> None:
        with self.storage.transaction():
            account = self.accounts.find_by_email_or_username(identifier)
            if account is None:
                raise AccountNotFound()
            if not account.is_active:
                raise AccountInactive("Account is inactive. Please activate your account first.")
            token, token_id = self._issue_record(account, TokenKind.RESET, self.settings.reset_ttl)
        self._dispatch(self.dispatcher.send_password_reset, account, token, token_id)

    def reset_password(self, token: str, new_password: str,
                       confirm_password: Optional[str] = None) -> None:
        """
        Consume a reset token and store the new password hash atomically.
        Optionally revokes every live refresh session of the account.
        """
        data = self._load(reset_password_schema, {
            "password": new_password,
            "confirm_password": confirm_password,
        })
        self._check_password(data["password"])
        claims = self.codec.decode(token, TokenKind.RESET)
        password_hash = self.credentials.hash(data["password"])

        revoked = 0
        with self.storage.transaction():
            record = self._find_record(claims, TokenKind.RESET)
            if self.tokens.expired(record):
                raise TokenExpired("Reset token expired")
            self.tokens.mark_used(record.token_id)
            self.accounts.update_password_hash(record.subject_id, password_hash)
            if self.settings.revoke_sessions_on_reset:
                revoked = self.tokens.revoke_all(record.subject_id, TokenKind.REFRESH)
        logger.info("Password reset for account %s (%d sessions revoked)", claims.subject_id, revoked)
