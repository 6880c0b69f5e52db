"""
auth/dependencies.py -- FastAPI Depends() gate for admin-only routes.

Only one auth method exists: Authorization: Bearer <token>, where the token
was issued by POST /api/admin/login.

authenticate_request() walks the verifier state machine and either returns
the AdminCredential or raises an AuthError subclass. require_admin() is the
dependency routes use: it turns every AuthError into the same generic 401
and logs the specific kind.

StoreUnavailable is not caught here. It propagates to the exception handler
in api/main.py and becomes a 503.

Layer rule: no imports from api/ or core/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request

from auth.errors import AuthError, InvalidCredential, MalformedToken, MissingCredential
from auth.models import AdminCredential
from auth.store import AdminStore
from auth.tokens import TokenService

logger = logging.getLogger("carz.auth")


def extract_bearer_token(request: Request) -> str:
    """Return the raw token from the Authorization header.

    Raises MissingCredential when the header is absent or empty, and
    MalformedToken when it uses another scheme or carries no token.
    """
    auth_header = request.headers.get("Authorization", "").strip()
    if not auth_header:
        raise MissingCredential()
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer":
        raise MalformedToken(f"unsupported scheme {scheme!r}")
    token = token.strip()
    if not token:
        raise MissingCredential()
    return token


def authenticate_request(request: Request) -> AdminCredential:
    """Resolve the request's bearer token to an active AdminCredential.

    The subject must still exist and be active: deprovisioning an admin
    locks them out immediately even though their token has not expired.
    """
    tokens: TokenService = request.app.state.tokens
    store: AdminStore = request.app.state.admin_store

    subject_id = tokens.verify(extract_bearer_token(request))
    if not subject_id.isdigit():
        raise InvalidCredential("non-numeric subject")
    admin = store.get_by_id(int(subject_id))
    if admin is None or not admin.is_active:
        raise InvalidCredential(f"admin_id={subject_id} missing or inactive")
    return admin


def require_admin(request: Request) -> AdminCredential:
    """Require a valid admin token. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/admin/stats")
        def stats(admin: AdminCredential = Depends(require_admin)): ...

    The authenticated admin is also attached to request.state.admin for
    middleware and handlers that do not take it as a parameter.
    """
    try:
        admin = authenticate_request(request)
    except AuthError as exc:
        logger.info("Rejected %s %s: %s", request.method, request.url.path, exc.kind)
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
    request.state.admin = admin
    return admin
