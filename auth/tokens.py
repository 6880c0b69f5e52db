"""
auth/tokens.py -- Signed, time-limited session tokens for admins.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       sub (admin id), iat, nbf, exp and type="admin". Nothing else goes in
       the payload; the token is an opaque bearer string to the client.

  Stateless: tokens are never stored server-side and can only die by
       expiry. Rotating SECRET_KEY invalidates every outstanding token.

  Verification order: structure -> signature -> expiry -> claims. jose
       checks the signature before any claim, so an expired token with a
       forged signature is reported as invalid, never as expired. The
       signature segment must also be canonical base64url: jose decodes
       leniently, and a re-spelled signature is still a modified token.

  nbf = iat: a token is never valid before the moment it was issued.

  The signing key is injected by the caller (create_app passes
  Settings.secret_key); this module has no config lookup and no default key.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt
from jose.utils import base64url_decode, base64url_encode

from auth.errors import ExpiredCredential, InvalidCredential, MalformedToken, MissingCredential
from auth.models import SessionToken

_ALGORITHM = "HS256"
TOKEN_TYPE = "admin"
_REQUIRED_CLAIMS = ("sub", "iat", "exp", "type")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_canonical_segment(segment: str) -> bool:
    """True when segment is the one unpadded base64url spelling of its bytes.

    The decoder ignores the spare low bits of the last character and any
    trailing "=", so several strings decode to the same signature.
    """
    if "=" in segment:
        return False
    try:
        raw = base64url_decode(segment.encode("ascii"))
    except ValueError:
        return False
    return base64url_encode(raw).decode("ascii") == segment


class TokenService:
    """Issue and verify admin session tokens with one symmetric key.

    Usage:
        tokens = TokenService(settings.secret_key, settings.token_expire_seconds)
        session = tokens.issue("42")
        subject_id = tokens.verify(session.token)  # "42"

    clock is injectable so tests can mint tokens "in the past"; verification
    always uses the real wall clock.
    """

    def __init__(
        self,
        secret_key: str,
        expire_seconds: int = 86400,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not secret_key:
            raise ValueError("TokenService requires a signing key")
        self._secret_key = secret_key
        self.default_expiry = timedelta(seconds=expire_seconds)
        self._clock = clock

    def issue(self, subject_id: str, expiry: timedelta | None = None) -> SessionToken:
        """Mint a signed token for subject_id valid for `expiry` (default: configured)."""
        # JWT NumericDate has one-second resolution; drop microseconds so the
        # returned timestamps match the claims exactly.
        issued_at = self._clock().replace(microsecond=0)
        expires_at = issued_at + (expiry if expiry is not None else self.default_expiry)
        payload = {
            "sub": str(subject_id),
            "iat": int(issued_at.timestamp()),
            "nbf": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
            "type": TOKEN_TYPE,
        }
        token = jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)
        return SessionToken(token=token, subject_id=str(subject_id), issued_at=issued_at, expires_at=expires_at)

    def verify(self, token: str | None) -> str:
        """Validate a bearer token and return its subject id.

        Raises:
            MissingCredential: token is None or empty.
            MalformedToken:    not a JWS, payload not a JSON object, or a
                               required claim is missing.
            InvalidCredential: bad signature, not yet valid, or wrong type.
            ExpiredCredential: signature valid but now >= exp.
        """
        if not token:
            raise MissingCredential()

        segments = token.split(".")
        if len(segments) != 3:
            raise MalformedToken(f"expected 3 segments, got {len(segments)}")
        try:
            header = jwt.get_unverified_header(token)
            jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise MalformedToken(str(exc)) from exc
        if header.get("alg") != _ALGORITHM:
            raise InvalidCredential(f"unexpected alg {header.get('alg')!r}")
        if not _is_canonical_segment(segments[2]):
            raise InvalidCredential("non-canonical signature encoding")

        try:
            claims = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM])
        except ExpiredSignatureError as exc:
            raise ExpiredCredential() from exc
        except JWTError as exc:
            raise InvalidCredential(str(exc)) from exc

        missing = [c for c in _REQUIRED_CLAIMS if c not in claims]
        if missing:
            raise MalformedToken(f"missing claims: {', '.join(missing)}")
        if claims["type"] != TOKEN_TYPE:
            raise InvalidCredential(f"token type {claims['type']!r}")
        # jose tolerates exp == now; the boundary itself is already expired.
        if int(_utcnow().timestamp()) >= int(claims["exp"]):
            raise ExpiredCredential()
        return str(claims["sub"])
