"""
API request and response models for the Fabric QR REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
materials/models.py, which own the internal domain representation. Route
handlers map between the two.

Wire format is camelCase (googleId, canScanQr, qrCodeId, ...) to stay
compatible with the existing web and mobile clients; Python attributes stay
snake_case via alias_generator=to_camel.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auth.models import User
from materials.models import Material

# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class MessageResponse(BaseModel):
    """Body of every error response: a human-readable message, plus the
    underlying error text where it is safe to expose."""

    model_config = ConfigDict(frozen=True)

    message: str
    error: Optional[str] = None


class InfoResponse(BaseModel):
    """Response for GET /."""

    model_config = ConfigDict(frozen=True)

    message: str
    routes: dict[str, str]


# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class GoogleLoginRequest(BaseModel):
    """Request body for POST /auth/google-login.

    The client has already completed Google sign-in; googleId is the provider's
    stable account id. name is accepted for client compatibility but not stored.
    """

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    google_id: str = Field(alias="googleId", min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")
    name: Optional[str] = Field(default=None, max_length=255)


# ---------------------------------------------------------------------------
# Auth -- response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public projection of a user. Never carries the password hash."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    username: Optional[str]
    email: str
    google_id: Optional[str] = None
    can_scan_qr: bool
    is_admin: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id or "",
            username=user.username,
            email=user.email,
            google_id=user.federated_id,
            can_scan_qr=user.can_scan_qr,
            is_admin=user.is_admin,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class LoginResponse(BaseModel):
    """Response for both login flows: the bearer token and who it belongs to."""

    model_config = ConfigDict(frozen=True)

    token: str
    user: UserResponse


# ---------------------------------------------------------------------------
# Materials
# ---------------------------------------------------------------------------


class MaterialResponse(BaseModel):
    """Full material document. Fields beyond the known ones pass through unchanged."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str
    qr_code_id: str
    material_name: str
    material_type: Optional[str] = None
    color: Optional[str] = None
    manufacturer: Optional[str] = None
    production_date: Optional[str] = None
    features: list[str] = Field(default_factory=list)
    care_instructions: Optional[str] = None
    image_url: Optional[str] = None

    @classmethod
    def from_material(cls, material: Material) -> "MaterialResponse":
        extra: dict[str, Any] = {k: v for k, v in material.extra.items() if k not in cls.model_fields}
        return cls(
            id=material.id or "",
            qr_code_id=material.qr_code_id,
            material_name=material.material_name,
            material_type=material.material_type,
            color=material.color,
            manufacturer=material.manufacturer,
            production_date=material.production_date,
            features=material.features,
            care_instructions=material.care_instructions,
            image_url=material.image_url,
            **extra,
        )
