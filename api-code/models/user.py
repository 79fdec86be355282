from __future__ import annotations

from datetime import datetime
from typing import Any, ClassVar, Optional

from pydantic import Field, field_validator

from .base import DocumentUpdate, MongoModel, Timestamped


PROTECTED_ATTRIBUTES: frozenset[str] = frozenset(
    {"github_access_token", "github_user_id", "signed_in_at"}
)


class User(MongoModel, Timestamped):
    id_field: ClassVar[str] = "user_id"

    user_id: str = Field(..., alias="_id", description="Primary identifier (UUID).")
    username: str = Field(..., min_length=1, description="GitHub login, lower-cased.")
    email: Optional[str] = Field(default=None)
    github_access_token: Optional[str] = Field(default=None)
    github_user_id: Optional[str] = Field(default=None)
    signed_in_at: Optional[datetime] = Field(default=None)

    @field_validator("username")
    @classmethod
    def _lowercase_username(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: Optional[str]) -> Optional[str]:
        if value and "@" not in value:
            raise ValueError("email: Validation isEmail on email failed")
        return value

    def to_public(self) -> dict[str, Any]:
        payload = self.model_dump(exclude=set(PROTECTED_ATTRIBUTES))
        payload["id"] = payload.pop("user_id")
        return payload


class UserUpdate(DocumentUpdate):
    email: Optional[str] = None
    github_access_token: Optional[str] = None
    github_user_id: Optional[str] = None
    signed_in_at: Optional[datetime] = None
