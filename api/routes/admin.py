"""
api/routes/admin.py -- Admin authentication REST endpoints.

Routes:
  POST /api/admin/login  -- email/password login; returns a bearer token
  GET  /api/admin/me     -- current admin info (requires auth)

Security:
  POST /login is rate-limited per IP (api.limiter.LOGIN_RATE_LIMIT).
  authenticate_admin() provides timing equalization -- use it, never inline.
  Unknown email, wrong password and inactive account all produce the same
  401 status and body.
  Cache-Control: no-store on every login response.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import LOGIN_RATE_LIMIT, limiter
from api.models import AdminInfo, ErrorDetail, ErrorResponse, LoginRequest, LoginResponse, MeResponse
from auth.dependencies import require_admin
from auth.errors import StoreUnavailable
from auth.models import AdminCredential
from auth.passwords import PasswordHasher, authenticate_admin
from auth.store import AdminStore
from auth.tokens import TokenService

logger = logging.getLogger("carz.api.admin")

# Auth policy:
# - POST /api/admin/login: public -- login endpoint must be unauthenticated
# - GET  /api/admin/me:    requires auth (require_admin)
router = APIRouter()

_BAD_CREDENTIALS = ErrorResponse(
    error=ErrorDetail(code="unauthorized", message="Invalid credentials."),
).model_dump(exclude_none=True)


@router.post("/login", response_model=LoginResponse)
@limiter.limit(LOGIN_RATE_LIMIT)  # must be BELOW @router so the registered endpoint is the limited one
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return a signed bearer token.

    A plain def route: FastAPI runs it in the threadpool, so bcrypt never
    blocks the event loop.

    StoreUnavailable propagates to the 503 handler in api/main.py.
    """
    store: AdminStore = request.app.state.admin_store
    hasher: PasswordHasher = request.app.state.hasher
    tokens: TokenService = request.app.state.tokens

    admin = authenticate_admin(store, hasher, body.email, body.password)
    if admin is None:
        resp = JSONResponse(status_code=401, content=_BAD_CREDENTIALS)
        resp.headers["Cache-Control"] = "no-store"
        return resp

    session = tokens.issue(str(admin.id))
    try:
        store.update_last_login(admin.id)
    except StoreUnavailable:
        # The credential check already succeeded; bookkeeping must not undo it.
        logger.warning("Could not record last_login for admin_id=%s", admin.id)
    logger.info("Admin login admin_id=%s expires_at=%s", admin.id, session.expires_at.isoformat())

    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            token=session.token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_at=session.expires_at,
            expires_in=session.expires_in,
            admin=AdminInfo.from_credential(admin),
        ).model_dump(mode="json"),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/me", response_model=MeResponse)
def me(admin: AdminCredential = Depends(require_admin)) -> MeResponse:
    """Return identity information for the currently authenticated admin."""
    return MeResponse(admin=AdminInfo.from_credential(admin))
