# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel, field_validator


class AuthContext(BaseModel):
    """Identity supplied by the upstream auth layer, trusted as authenticated."""

    user_id: uuid.UUID
    role: str = "EMPLOYEE"

    @field_validator("role")
    @classmethod
    def _normalize_role(cls, v: str) -> str:
        return v.strip().upper()
