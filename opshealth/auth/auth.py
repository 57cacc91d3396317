from abc import ABC, abstractmethod
from typing import Iterable, Optional

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from pydantic import BaseModel

ADMIN_ACCOUNT_TYPES = frozenset({"super_admin", "admin"})


class Unauthorized(Exception):
    """Caller is not an administrator."""


class AdminUser(BaseModel):
    id: str
    account_type: str


def hash_password(password: str) -> str:
    """
    Hash a password or token using Argon2.

    :param password: The secret to hash.
    :return: The hashed secret.
    """
    ph = PasswordHasher()
    return ph.hash(password)


def verify_credential(password: str, hashed_password: str) -> bool:
    """
    Verify a secret against an Argon2 hash.

    :param password: The plain text secret to verify.
    :param hashed_password: The hash to verify against.
    :return: True if the secret matches the hash, False otherwise.
    """
    ph = PasswordHasher()
    try:
        return ph.verify(hashed_password, password)
    except (VerificationError, InvalidHashError):
        return False


def ensure_admin(user: Optional[AdminUser]) -> AdminUser:
    """Return ``user`` if it holds an admin account type, else raise Unauthorized."""
    if user is None:
        raise Unauthorized("Authentication required")
    if user.account_type not in ADMIN_ACCOUNT_TYPES:
        raise Unauthorized("Forbidden: Admin access required")
    return user


class AdminGuard(ABC):
    """Authorization collaborator consulted before any health work."""

    @abstractmethod
    async def require_admin(self, credentials: Optional[str]) -> AdminUser:
        """Return the admin user or raise Unauthorized."""
        ...


class TokenAdminGuard(AdminGuard):
    """Admits bearer tokens matching one of the configured Argon2 hashes."""

    def __init__(self, token_hashes: Iterable[str]):  # noqa: D107
        self.token_hashes = list(token_hashes)

    async def require_admin(self, credentials: Optional[str]) -> AdminUser:
        if not credentials:
            raise Unauthorized("Authentication required")
        for index, token_hash in enumerate(self.token_hashes):
            if verify_credential(credentials, token_hash):
                return ensure_admin(AdminUser(id=f"token-{index}", account_type="admin"))
        raise Unauthorized("Forbidden: Admin access required")
