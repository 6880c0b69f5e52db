"""
auth/passwords.py -- bcrypt password hashing and admin authentication.

Security design decisions:
  bcrypt directly (no passlib wrapper). The salt is generated per hash and
  embedded in the stored string together with the cost factor, so verify()
  needs nothing but the candidate and the stored value. bcrypt.checkpw()
  compares digests in constant time.

  The cost factor comes from Settings.bcrypt_rounds and is fixed per
  PasswordHasher instance. Existing hashes keep the cost they were created
  with; raising BCRYPT_ROUNDS only affects new hashes.

  authenticate_admin() always runs exactly one bcrypt verification, against a
  dummy hash when the identifier is unknown, so response time does not reveal
  whether an email is provisioned.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import secrets
from typing import TYPE_CHECKING

import bcrypt

if TYPE_CHECKING:
    from auth.models import AdminCredential
    from auth.store import AdminStore

logger = logging.getLogger("carz.auth")

# bcrypt only looks at the first 72 bytes of its input.
MAX_PASSWORD_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:MAX_PASSWORD_BYTES]


class PasswordHasher:
    """Salted one-way password hashing with a fixed bcrypt work factor.

    Usage:
        hasher = PasswordHasher(rounds=12)
        stored = hasher.hash("correct-horse")
        hasher.verify("correct-horse", stored)  # True
    """

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds
        # Computed once so the first unknown-identifier login is not cheaper
        # than the rest.
        self._dummy_hash = self.hash(secrets.token_urlsafe(16))

    def hash(self, plain: str) -> str:
        """Return a bcrypt hash of the given plaintext password.

        Input beyond 72 bytes is ignored by bcrypt; _encode() truncates it
        explicitly because bcrypt 5 raises instead.
        """
        return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, candidate: str, stored_hash: str) -> bool:
        """Return True if candidate matches stored_hash.

        Fails closed: a malformed or empty stored hash returns False instead
        of raising.
        """
        if not stored_hash:
            return False
        try:
            return bcrypt.checkpw(_encode(candidate), stored_hash.encode("utf-8"))
        except (ValueError, TypeError):
            logger.warning("Stored password hash is not a valid bcrypt hash")
            return False

    def burn(self, candidate: str) -> None:
        """Run one verification against the dummy hash and discard the result."""
        self.verify(candidate, self._dummy_hash)


def authenticate_admin(
    store: AdminStore,
    hasher: PasswordHasher,
    identifier: str,
    password: str,
) -> AdminCredential | None:
    """Check an identifier/password pair with timing equalization.

    - Unknown identifier: bcrypt runs against the dummy hash (same cost).
    - Wrong password: bcrypt runs against the real hash.
    - Inactive admin: the password is still checked before rejecting.

    Returns the AdminCredential on success, None on any credential failure.
    StoreUnavailable from the lookup propagates to the caller.
    """
    admin = store.find_by_identifier(identifier)
    if admin is None:
        # Do NOT return before running bcrypt.
        hasher.burn(password)
        logger.info("Login rejected: unknown identifier")
        return None
    if not hasher.verify(password, admin.secret_hash):
        logger.info("Login rejected: admin_id=%s wrong password", admin.id)
        return None
    if not admin.is_active:
        logger.info("Login rejected: admin_id=%s inactive", admin.id)
        return None
    return admin
