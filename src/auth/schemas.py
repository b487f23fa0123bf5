"""Caller identity extracted from the access token."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict

from src.auth.permissions import UserRole


class CallerIdentity(BaseModel):
    """Authenticated caller (identity + role)."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    role: UserRole
    email: str | None = None
