"""
Password hashing via argon2-cffi (argon2id, salted per hash).
"""
from __future__ import annotations

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from identity.settings import AuthSettings

# Used by dummy_verify() so unknown identifiers cost the same as wrong passwords
_DUMMY_PASSWORD = "not-a-real-password"


class CredentialVerifier:
    def __init__(self, time_cost: int = 3, memory_cost: int = 65536, parallelism: int = 4):
        self._ph = PasswordHasher(
            time_cost=time_cost, memory_cost=memory_cost, parallelism=parallelism
        )
        self._dummy_hash = self._ph.hash(_DUMMY_PASSWORD)

    @classmethod
    def from_settings(cls, settings: AuthSettings) -> "CredentialVerifier":
        return cls(
            time_cost=settings.argon2_time_cost,
            memory_cost=settings.argon2_memory_cost,
            parallelism=settings.argon2_parallelism,
        )

    def hash(self, plaintext: str) -> str:
        """Hash a plaintext password using Argon2."""
        if not isinstance(plaintext, str):
            raise TypeError("password must be a string")
        return self._ph.hash(plaintext)

    def verify(self, plaintext: str, digest: str) -> bool:
        """Verify a plaintext password against a stored digest."""
        if not isinstance(plaintext, str) or not isinstance(digest, str):
            return False
        try:
            return self._ph.verify(digest, plaintext)
        except (VerifyMismatchError, VerificationError, InvalidHashError):
            return False

    def needs_rehash(self, digest: str) -> bool:
        return self._ph.check_needs_rehash(digest)

    def dummy_verify(self) -> None:
        self.verify(_DUMMY_PASSWORD + "!", self._dummy_hash)
