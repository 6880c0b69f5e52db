"""
API request and response models for the back-office REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import AdminCredential

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/admin/login.

    password is capped at 72 characters; bcrypt ignores input past 72 bytes.
    """

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=72)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class AdminInfo(BaseModel):
    """Public view of an admin. Never includes the password hash."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    name: str
    role: str

    @classmethod
    def from_credential(cls, admin: AdminCredential) -> "AdminInfo":
        return cls(id=admin.id, email=admin.identifier, name=admin.name, role=admin.role)


class LoginResponse(BaseModel):
    """Response body for a successful POST /api/admin/login."""

    model_config = ConfigDict(frozen=True)

    token: str
    token_type: str = "bearer"
    expires_at: datetime
    expires_in: int
    admin: AdminInfo


class MeResponse(BaseModel):
    """Response for GET /api/admin/me."""

    model_config = ConfigDict(frozen=True)

    admin: AdminInfo


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
    timestamp: datetime
