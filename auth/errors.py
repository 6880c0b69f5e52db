"""
auth/errors.py -- Failure taxonomy for admin authentication.

Every AuthError is reported to the client as the same generic 401; the
`kind` attribute exists for logs only, so a caller cannot learn which check
failed.

StoreUnavailable is deliberately NOT an AuthError: a broken database is a
server-side problem (503), and the client must be able to tell "try again
later" apart from "your credentials are wrong".
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every authentication rejection."""

    kind = "auth_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.kind)


class MissingCredential(AuthError):
    """No bearer token on the request."""

    kind = "missing_credential"


class InvalidCredential(AuthError):
    """Bad signature, wrong token type, or the subject is gone/inactive."""

    kind = "invalid_credential"


class ExpiredCredential(AuthError):
    """Signature is valid but the token is past its expiry."""

    kind = "expired_credential"


class MalformedToken(AuthError):
    """The bearer value is not a structurally valid token."""

    kind = "malformed_token"


class StoreUnavailable(Exception):
    """The credential store could not be reached or failed mid-query."""
