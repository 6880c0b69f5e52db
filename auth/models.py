"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). The store and the
token service do the work.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class AdminCredential:
    """A back-office administrator as seen by the auth core.

    identifier is the admin's email address and is unique across the table.
    secret_hash is a bcrypt hash; the salt and work factor travel inside it.
    """

    identifier: str
    secret_hash: str
    name: str
    role: str = "ADMIN"  # "ADMIN", "SUPER_ADMIN"
    id: int | None = None
    is_active: bool = True
    created_at: str | None = None
    last_login: str | None = None


@dataclass(frozen=True)
class SessionToken:
    """A freshly issued bearer token plus the claims it was minted with.

    Only `token` goes over the wire; the timestamps are returned alongside it
    so the login response can tell the client when to re-authenticate.
    """

    token: str
    subject_id: str
    issued_at: datetime
    expires_at: datetime

    @property
    def expires_in(self) -> int:
        return int((self.expires_at - self.issued_at).total_seconds())
