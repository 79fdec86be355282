from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from models import User, UserAction


class UserSummary(BaseModel):
    id: str = Field(..., description="User identifier.")
    username: str = Field(..., description="GitHub login, lower-cased.")

    @classmethod
    def from_user(cls, user: User) -> "UserSummary":
        return cls(id=user.user_id, username=user.username)


class UserResponse(UserSummary):
    email: Optional[str] = Field(default=None)
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls.model_validate(user.to_public())


class UserActionResponse(BaseModel):
    id: str = Field(..., description="User action identifier.")
    action: str = Field(..., description="add, remove or update.")
    target_type: str = Field(..., description="Kind of record the action targeted.")
    target_id: str = Field(..., description="Identifier of the targeted record.")
    target: Optional[UserSummary] = Field(
        default=None, description="Targeted user, when it still exists."
    )
    actor_id: str = Field(..., description="User who performed the action.")
    created_at: datetime

    @classmethod
    def from_action(cls, action: UserAction, target: Optional[User]) -> "UserActionResponse":
        return cls(
            id=action.action_id,
            action=action.action,
            target_type=action.target_type,
            target_id=action.target_id,
            target=UserSummary.from_user(target) if target else None,
            actor_id=action.user_id,
            created_at=action.created_at,
        )
